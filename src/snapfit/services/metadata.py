"""
Metadata cache backed by Redis.

Records are JSON strings stored under their own key with a TTL. A single
sorted set (all scores 0) indexes every key so that a prefix can be listed in
lexicographic order with ZRANGEBYLEX. The index never expires on its own:
members whose value has expired are pruned while listing, in a script that
re-checks each one so a record re-put in the meantime stays indexed.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field

import redis
from redis.exceptions import RedisError

from ..config import get_env, get_redis_url
from ..errors import InvalidInputError, MetadataError
from ..logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_INDEX_KEY = "snapfit:keys"
MAX_LIST_LIMIT = 1000

# KEYS[1] is the index, KEYS[2..] the candidates. A candidate re-put since it
# was seen missing exists again and stays indexed.
PRUNE_EXPIRED_SCRIPT = """
local removed = {}
for i = 2, #KEYS do
    if redis.call('EXISTS', KEYS[i]) == 0 then
        redis.call('ZREM', KEYS[1], KEYS[i])
        table.insert(removed, KEYS[i])
    end
end
return removed
"""


@dataclass
class KeyListing:
    """One page of keys under a prefix."""

    keys: list[str] = field(default_factory=list)
    cursor: str | None = None
    list_complete: bool = True


class MetadataCache:
    """Key-value store with prefix listing, cursor pagination and per-key TTL."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        url: str | None = None,
        index_key: str | None = None,
    ) -> None:
        """
        Initialize the metadata cache.

        Args:
            client: Ready Redis client (built from ``url`` when omitted)
            url: Redis URL (defaults to REDIS_URL environment variable)
            index_key: Sorted set holding every key (defaults to METADATA_INDEX_KEY)
        """
        self.index_key = index_key or str(get_env("METADATA_INDEX_KEY", DEFAULT_INDEX_KEY))
        try:
            self.client = client or redis.Redis.from_url(url or get_redis_url(), decode_responses=True)
        except (RedisError, ValueError) as e:
            raise MetadataError(f"Failed to initialize Redis client: {e}", original_exception=e) from e

        self._prune_expired = self.client.register_script(PRUNE_EXPIRED_SCRIPT)

        logger.info("metadata_cache_initialized", index_key=self.index_key)

    def put(self, key: str, record: dict, ttl_seconds: int) -> None:
        """
        Write a record and (re)start its expiration clock.

        Raises:
            MetadataError: If the write fails
        """
        payload = json.dumps(record)
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.set(key, payload, ex=ttl_seconds)
            pipe.zadd(self.index_key, {key: 0})
            pipe.execute()
        except RedisError as e:
            raise MetadataError(f"Failed to write '{key}': {e}", details={"key": key}, original_exception=e) from e

        logger.debug("metadata_written", key=key, ttl_seconds=ttl_seconds)

    def get(self, key: str) -> dict | None:
        """
        Read a record.

        Returns:
            The decoded record, or None if absent or expired

        Raises:
            MetadataError: If the read fails or the stored value is not JSON
        """
        try:
            raw = self.client.get(key)
        except RedisError as e:
            raise MetadataError(f"Failed to read '{key}': {e}", details={"key": key}, original_exception=e) from e

        if raw is None:
            return None

        try:
            record = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MetadataError(
                f"Corrupt metadata under '{key}'", code="metadata_corrupt", details={"key": key}, original_exception=e
            ) from e

        if not isinstance(record, dict):
            raise MetadataError(f"Corrupt metadata under '{key}'", code="metadata_corrupt", details={"key": key})
        return record

    def list_keys(self, prefix: str, cursor: str | None = None, limit: int = MAX_LIST_LIMIT) -> KeyListing:
        """
        List live keys under a prefix in key order.

        Args:
            prefix: Key prefix
            cursor: Token from a previous listing or ``cursor_after``
            limit: Maximum number of keys to return

        Returns:
            KeyListing with a cursor when more keys remain

        Raises:
            InvalidInputError: If the cursor is malformed or belongs to another prefix
            MetadataError: If Redis fails
        """
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        start_after = self._decode_cursor(cursor, prefix) if cursor else None

        lower = b"(" + start_after.encode() if start_after else b"[" + prefix.encode()
        upper = b"[" + prefix.encode() + b"\xff"

        live: list[str] = []
        try:
            while len(live) <= limit:
                wanted = limit + 1 - len(live)
                members = self.client.zrangebylex(self.index_key, lower, upper, start=0, num=wanted)
                if not members:
                    break

                alive = self._exists_many(members)
                expired = [member for member, ok in zip(members, alive) if not ok]
                if expired:
                    removed = self._prune_expired(keys=[self.index_key, *expired])
                    logger.debug("metadata_index_pruned", prefix=prefix, pruned=len(removed))

                live.extend(member for member, ok in zip(members, alive) if ok)
                lower = b"(" + members[-1].encode()

                if len(members) < wanted:
                    break
        except RedisError as e:
            raise MetadataError(
                f"Failed to list keys under '{prefix}': {e}", details={"prefix": prefix}, original_exception=e
            ) from e

        keys = live[:limit]
        has_more = len(live) > limit
        return KeyListing(
            keys=keys,
            cursor=self.cursor_after(keys[-1]) if has_more and keys else None,
            list_complete=not has_more,
        )

    def cursor_after(self, key: str) -> str:
        """Cursor that resumes a listing right after ``key``."""
        return base64.urlsafe_b64encode(key.encode()).decode().rstrip("=")

    def ping(self) -> bool:
        """Check Redis is reachable."""
        try:
            return bool(self.client.ping())
        except RedisError as e:
            logger.error("metadata_cache_ping_failed", error=str(e))
            return False

    def _exists_many(self, keys: list[str]) -> list[bool]:
        pipe = self.client.pipeline(transaction=False)
        for key in keys:
            pipe.exists(key)
        return [bool(result) for result in pipe.execute()]

    @staticmethod
    def _decode_cursor(cursor: str, prefix: str) -> str:
        try:
            padded = cursor + "=" * (-len(cursor) % 4)
            key = base64.urlsafe_b64decode(padded.encode()).decode()
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise InvalidInputError("Invalid cursor", code="invalid_cursor") from e

        if not key.startswith(prefix):
            raise InvalidInputError("Invalid cursor", code="invalid_cursor")
        return key


_metadata_cache: MetadataCache | None = None


def get_metadata_cache() -> MetadataCache:
    """Get the global metadata cache instance."""
    global _metadata_cache
    if _metadata_cache is None:
        _metadata_cache = MetadataCache()
    return _metadata_cache
