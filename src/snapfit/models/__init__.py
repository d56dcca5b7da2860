"""
Models module for the snapfit service.

- PhotoMetadata: the per-photo record kept in the metadata cache
- PhotoVariant and key helpers linking a record to its blobs
- Request bodies for the HTTP API
"""

from .photo import PhotoMetadata, PhotoVariant, metadata_key, metadata_prefix, storage_key
from .schemas import AnalyzeRequest, PhotoUpdate, UploadRequest, UserAttributes

__all__ = [
    "PhotoMetadata",
    "PhotoVariant",
    "metadata_key",
    "metadata_prefix",
    "storage_key",
    "AnalyzeRequest",
    "PhotoUpdate",
    "UploadRequest",
    "UserAttributes",
]
