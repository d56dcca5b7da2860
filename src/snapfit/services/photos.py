"""
Photo service: the operations behind the HTTP API.

Composes the blob store, metadata cache, image transform, vision model and
rate limiter. Every operation is request scoped and keeps no state between
calls. Blocking client libraries run in worker threads so that independent
calls within one request can proceed concurrently.
"""

import asyncio
from dataclasses import dataclass, field
from urllib.parse import quote

from ..config import PhotoSettings
from ..errors import InvalidInputError, MetadataError, PhotoNotFoundError, UnauthorizedError, VisionError
from ..logging_config import get_logger, log_security_event, log_user_action
from ..models.photo import (
    PhotoMetadata,
    PhotoVariant,
    is_valid_taken_at,
    is_valid_user_id,
    metadata_key,
    metadata_prefix,
)
from ..models.schemas import UserAttributes
from .image_processor import ImageProcessor
from .metadata import MetadataCache
from .rate_limit import RateLimiter
from .storage import BlobInfo, StorageService, StoredBlob
from .vision import BodyFatAnalyzer

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_KEYS_PER_REQUEST = 50

MIME_TYPES = {
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "HEIF": "image/heic",
}


@dataclass
class PhotoPage:
    """One page of the photo timeline."""

    photos: list[dict] = field(default_factory=list)
    cursor: str | None = None
    has_more: bool = False
    preload_urls: list[str] | None = None

    def to_dict(self) -> dict:
        data: dict = {"photos": self.photos, "cursor": self.cursor, "hasMore": self.has_more}
        if self.preload_urls is not None:
            data["preloadUrls"] = self.preload_urls
        return data


def photo_url(user_id: str, taken_at: str, variant: PhotoVariant) -> str:
    """Cache-stable API path serving one rendition."""
    return f"/photos/{quote(user_id, safe='')}/{quote(taken_at, safe='')}/{variant.value}"


def parse_variant(value: str | None) -> PhotoVariant:
    """
    Parse a ``type`` parameter.

    Raises:
        InvalidInputError: If the value is not a known variant
    """
    try:
        return PhotoVariant(value)
    except ValueError as e:
        raise InvalidInputError(
            f"Invalid type '{value}'. Expected 'thumbnail' or 'original'", code="invalid_type"
        ) from e


def _require_fields(**fields) -> None:
    missing = [name for name, value in fields.items() if value is None or value == "" or value == b""]
    if missing:
        raise InvalidInputError(
            f"Missing required fields: {', '.join(missing)}",
            code="missing_fields",
            details={"missing": missing},
        )


def _check_user_id(user_id: str) -> None:
    if not is_valid_user_id(user_id):
        raise InvalidInputError("Invalid userId", code="invalid_user_id")


def _check_taken_at(taken_at: str) -> None:
    if not is_valid_taken_at(taken_at):
        raise InvalidInputError("Invalid takenAt", code="invalid_taken_at")


def _check_record(record: PhotoMetadata) -> None:
    if not record.validate():
        raise InvalidInputError(
            "bodyFat must be within 0-100 and weight positive, both finite", code="invalid_measurements"
        )


class PhotoService:
    """Upload, list, fetch and update progress photos."""

    def __init__(
        self,
        storage: StorageService,
        metadata: MetadataCache,
        processor: ImageProcessor,
        analyzer: BodyFatAnalyzer | None = None,
        rate_limiter: RateLimiter | None = None,
        settings: PhotoSettings | None = None,
    ) -> None:
        self.storage = storage
        self.metadata = metadata
        self.processor = processor
        self.analyzer = analyzer
        self.rate_limiter = rate_limiter
        self.settings = settings or processor.settings

    async def upload(
        self,
        user_id: str | None,
        taken_at: str | None,
        image_data: bytes | None,
        body_fat: float | None = None,
        weight: float | None = None,
    ) -> PhotoMetadata:
        """
        Store both renditions of a photo, then its metadata record.

        The record is written only after both blob writes have completed, so
        anyone who can read it can also read both renditions. A failure in
        either transform or either write aborts before the record is written.

        Raises:
            InvalidInputError: If a field is missing or the image is unusable
            RateLimitedError: If the user's upload bucket is empty
            UpstreamError: If a transform, blob write or metadata write fails
        """
        _require_fields(userId=user_id, takenAt=taken_at, image=image_data)
        _check_user_id(user_id)
        _check_taken_at(taken_at)

        record = PhotoMetadata.create_new(user_id, taken_at, body_fat=body_fat, weight=weight)
        _check_record(record)

        await self._check_rate_limit(user_id, "upload")
        await asyncio.to_thread(self.processor.validate_image, image_data)

        thumbnail_data, original_data = await asyncio.gather(
            asyncio.to_thread(self.processor.generate_thumbnail, image_data),
            asyncio.to_thread(self.processor.generate_original, image_data),
        )

        await asyncio.gather(
            asyncio.to_thread(self.storage.put_photo, record.thumbnail_key, thumbnail_data),
            asyncio.to_thread(self.storage.put_photo, record.original_key, original_data),
        )

        await asyncio.to_thread(
            self.metadata.put, record.cache_key, record.to_dict(), self.settings.metadata_ttl_seconds
        )

        log_user_action(
            user_id,
            "photo_uploaded",
            taken_at=taken_at,
            thumbnail_size=len(thumbnail_data),
            original_size=len(original_data),
        )
        return record

    async def list_photos(
        self,
        user_id: str | None,
        cursor: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        variant: str | PhotoVariant = PhotoVariant.THUMBNAIL,
        preload: bool = True,
    ) -> PhotoPage:
        """
        List a page of photos, optionally resolving the following page ahead of time.

        At most MAX_KEYS_PER_REQUEST keys are requested from the cache, the
        lookahead included. Entries that cannot be resolved are dropped.
        The returned cursor resumes right after the last entry of this page,
        so lookahead photos open the next page.

        Raises:
            InvalidInputError: If userId, limit, type or cursor is invalid
            MetadataError: If the cache listing fails
        """
        _require_fields(userId=user_id)
        _check_user_id(user_id)
        if not isinstance(variant, PhotoVariant):
            variant = parse_variant(variant)
        if limit < 1:
            raise InvalidInputError("limit must be at least 1", code="invalid_limit")

        page_size = min(limit, MAX_KEYS_PER_REQUEST)
        request_size = min(page_size * 2 if preload else page_size, MAX_KEYS_PER_REQUEST)

        listing = await asyncio.to_thread(self.metadata.list_keys, metadata_prefix(user_id), cursor, request_size)
        current = listing.keys[:page_size]
        lookahead = listing.keys[page_size:] if preload else []

        resolved = await asyncio.gather(*(self._resolve_entry(user_id, key, variant) for key in current + lookahead))
        current_resolved = resolved[: len(current)]
        lookahead_resolved = resolved[len(current) :]

        photos = []
        for entry in current_resolved:
            if entry is None:
                continue
            record, info = entry
            photos.append(
                {
                    "metadata": record.to_dict(),
                    "photoUrl": photo_url(record.user_id, record.taken_at, variant),
                    "etag": info.http_etag,
                    "contentType": info.content_type,
                }
            )

        has_more = bool(lookahead) or not listing.list_complete
        page = PhotoPage(
            photos=photos,
            cursor=self.metadata.cursor_after(current[-1]) if has_more and current else None,
            has_more=has_more,
        )
        if preload:
            page.preload_urls = [
                photo_url(record.user_id, record.taken_at, variant)
                for record, _ in filter(None, lookahead_resolved)
            ]

        logger.debug(
            "photo_page_listed",
            user_id=user_id,
            requested=request_size,
            returned=len(photos),
            dropped=len(current) - len(photos),
            has_more=has_more,
        )
        return page

    async def get_photo(self, user_id: str | None, taken_at: str | None, variant: str | None) -> StoredBlob:
        """
        Fetch one rendition after checking the record's owner.

        Raises:
            InvalidInputError: If a parameter is missing or invalid
            PhotoNotFoundError: If the record or the blob is missing
            UnauthorizedError: If the record belongs to another user
        """
        _require_fields(userId=user_id, takenAt=taken_at, type=variant)
        _check_user_id(user_id)
        photo_variant = parse_variant(variant)

        record = await self._load_owned_record(user_id, taken_at)

        blob = await asyncio.to_thread(self.storage.read, record.key_for(photo_variant))
        if blob is None:
            logger.warning("photo_blob_missing", user_id=user_id, taken_at=taken_at, variant=photo_variant.value)
            raise PhotoNotFoundError(details={"taken_at": taken_at, "variant": photo_variant.value})
        return blob

    async def update_metadata(self, user_id: str | None, taken_at: str | None, changes: dict) -> PhotoMetadata:
        """
        Merge bodyFat/weight changes into a record and refresh its TTL.

        Only keys present in ``changes`` are written. Concurrent updates are
        last-write-wins.

        Raises:
            InvalidInputError: If an identifier is missing or invalid
            PhotoNotFoundError: If no record exists
            UnauthorizedError: If the record belongs to another user
        """
        _require_fields(userId=user_id, takenAt=taken_at)
        _check_user_id(user_id)

        record = await self._load_owned_record(user_id, taken_at)
        record.apply_update(changes)
        _check_record(record)

        await asyncio.to_thread(
            self.metadata.put, record.cache_key, record.to_dict(), self.settings.metadata_ttl_seconds
        )

        log_user_action(user_id, "photo_metadata_updated", taken_at=taken_at, fields=sorted(changes))
        return record

    async def analyze(
        self,
        image_data: bytes | None,
        attributes: UserAttributes | None = None,
        identity: str | None = None,
    ) -> float:
        """
        Estimate body fat for a photo with the vision model.

        Raises:
            InvalidInputError: If the image is missing or unusable
            RateLimitedError: If the caller's analyze bucket is empty
            VisionError: If the model is unavailable or answers badly
        """
        _require_fields(image=image_data)
        if identity:
            await self._check_rate_limit(identity, "analyze")

        await asyncio.to_thread(self.processor.validate_image, image_data)
        info = await asyncio.to_thread(self.processor.get_image_info, image_data)
        mime_type = MIME_TYPES.get(info["format"], "image/jpeg")

        if self.analyzer is None or not self.analyzer.enabled:
            raise VisionError("Vision model is not configured", code="vision_not_configured")

        return await self.analyzer.estimate(image_data, mime_type, attributes)

    async def _load_owned_record(self, user_id: str, taken_at: str) -> PhotoMetadata:
        data = await asyncio.to_thread(self.metadata.get, metadata_key(user_id, taken_at))
        if data is None:
            raise PhotoNotFoundError(details={"taken_at": taken_at})

        try:
            record = PhotoMetadata.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise MetadataError(
                "Stored metadata is incomplete", code="metadata_corrupt", details={"taken_at": taken_at}
            ) from e

        if record.user_id != user_id:
            raise UnauthorizedError(details={"user_id": user_id, "taken_at": taken_at})
        return record

    async def _resolve_entry(
        self, user_id: str, key: str, variant: PhotoVariant
    ) -> tuple[PhotoMetadata, BlobInfo] | None:
        """Metadata and blob info for one listed key, or None when either is unavailable."""
        try:
            data = await asyncio.to_thread(self.metadata.get, key)
            if data is None:
                logger.warning("photo_list_entry_dropped", key=key, reason="metadata_missing")
                return None

            record = PhotoMetadata.from_dict(data)
            if not record.validate():
                logger.warning("photo_list_entry_dropped", key=key, reason="metadata_invalid")
                return None

            if record.user_id != user_id:
                log_security_event("ownership_mismatch", user_id=user_id, key=key)
                return None

            info = await asyncio.to_thread(self.storage.stat, record.key_for(variant))
            if info is None:
                logger.warning("photo_list_entry_dropped", key=key, reason="blob_missing")
                return None
            return record, info

        except Exception as e:
            logger.warning("photo_list_entry_dropped", key=key, reason="resolution_failed", error=str(e))
            return None

    async def _check_rate_limit(self, identity: str, action: str) -> None:
        if self.rate_limiter is not None:
            await asyncio.to_thread(self.rate_limiter.check, identity, action)
