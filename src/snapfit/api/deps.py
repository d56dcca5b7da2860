"""Dependency providers wiring the services into the routes."""

from collections.abc import Callable

from ..config import load_photo_settings
from ..services.image_processor import ImageProcessor
from ..services.metadata import MetadataCache, get_metadata_cache
from ..services.photos import PhotoService
from ..services.rate_limit import RateLimiter
from ..services.storage import StorageService, get_storage_service
from ..services.vision import get_body_fat_analyzer

_photo_service: PhotoService | None = None


def get_photo_service() -> PhotoService:
    """Get the process-wide photo service, building it on first use."""
    global _photo_service
    if _photo_service is None:
        cache = get_metadata_cache()
        settings = load_photo_settings()
        _photo_service = PhotoService(
            storage=get_storage_service(),
            metadata=cache,
            processor=ImageProcessor(settings),
            analyzer=get_body_fat_analyzer(),
            rate_limiter=RateLimiter(cache.client),
            settings=settings,
        )
    return _photo_service


def storage_factory() -> Callable[[], StorageService]:
    """Health checks build the storage client themselves so they can report its failure."""
    return get_storage_service


def cache_factory() -> Callable[[], MetadataCache]:
    return get_metadata_cache
