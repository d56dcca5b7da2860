"""
Services module for the snapfit service.

- StorageService: Google Cloud Storage blob store for photo renditions
- MetadataCache: Redis key-value store with prefix listing and TTL
- ImageProcessor: validation and WebP encoding
- BodyFatAnalyzer: hosted vision model client
- RateLimiter: Redis token bucket
- PhotoService: the API operations composed from the above
"""

from .image_processor import ImageProcessor
from .metadata import KeyListing, MetadataCache, get_metadata_cache
from .photos import PhotoPage, PhotoService
from .rate_limit import RateLimiter
from .storage import BlobInfo, StorageService, StoredBlob, get_storage_service
from .vision import BodyFatAnalyzer, get_body_fat_analyzer

__all__ = [
    "BlobInfo",
    "BodyFatAnalyzer",
    "get_body_fat_analyzer",
    "ImageProcessor",
    "KeyListing",
    "MetadataCache",
    "get_metadata_cache",
    "PhotoPage",
    "PhotoService",
    "RateLimiter",
    "StorageService",
    "StoredBlob",
    "get_storage_service",
]
