"""
Token bucket rate limiter kept in Redis.

Buckets live in Redis rather than process memory so every API instance
draws from the same bucket. Refill uses the Redis server clock.
"""

import redis
from redis.exceptions import RedisError

from ..config import RateLimitSettings, load_rate_limit_settings
from ..errors import RateLimitedError
from ..logging_config import get_logger, log_security_event

logger = get_logger(__name__)

TOKEN_BUCKET_SCRIPT = """
local capacity = tonumber(ARGV[1])
local rate = tonumber(ARGV[2])
local requested = tonumber(ARGV[3])
local clock = redis.call('TIME')
local now = tonumber(clock[1]) + tonumber(clock[2]) / 1000000

local state = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
local tokens = tonumber(state[1]) or capacity
local ts = tonumber(state[2]) or now
tokens = math.min(capacity, tokens + math.max(0, now - ts) * rate)

local allowed = 0
if tokens >= requested then
    tokens = tokens - requested
    allowed = 1
end

redis.call('HSET', KEYS[1], 'tokens', tostring(tokens), 'ts', tostring(now))
redis.call('EXPIRE', KEYS[1], math.ceil(capacity / rate) + 1)
return {allowed, tostring(tokens)}
"""


class RateLimiter:
    """Per-identity token bucket shared across instances."""

    KEY_PREFIX = "ratelimit"

    def __init__(self, client: redis.Redis, settings: RateLimitSettings | None = None) -> None:
        self.client = client
        self.settings = settings or load_rate_limit_settings()
        self._script = client.register_script(TOKEN_BUCKET_SCRIPT)

    def check(self, identity: str, action: str, cost: int = 1) -> None:
        """
        Take ``cost`` tokens from the identity's bucket for an action.

        Redis failures let the request through; they are logged, not raised.

        Raises:
            RateLimitedError: If the bucket does not hold enough tokens
        """
        if not self.settings.enabled:
            return

        key = f"{self.KEY_PREFIX}:{action}:{identity}"
        try:
            allowed, remaining = self._script(
                keys=[key],
                args=[self.settings.capacity, self.settings.refill_per_second, cost],
            )
        except RedisError as e:
            logger.error("rate_limit_check_failed", key=key, error=str(e))
            return

        if int(allowed) == 1:
            return

        retry_after = max(0.0, (cost - float(remaining)) / self.settings.refill_per_second)
        log_security_event("rate_limited", user_id=identity, action=action, retry_after=retry_after)
        raise RateLimitedError(retry_after=retry_after, details={"action": action})
