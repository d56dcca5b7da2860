"""Blob store for photo renditions, backed by Google Cloud Storage."""

import os
from dataclasses import dataclass
from datetime import datetime

from google.cloud import storage  # type: ignore[attr-defined]
from google.cloud.exceptions import GoogleCloudError, NotFound

from ..config import BLOB_CACHE_CONTROL
from ..errors import StorageError
from ..logging_config import get_logger

logger = get_logger(__name__)

WEBP_CONTENT_TYPE = "image/webp"


@dataclass
class BlobInfo:
    """Stored object properties needed to serve or reference a photo."""

    key: str
    etag: str | None
    content_type: str
    size: int | None = None
    cache_control: str | None = None

    @property
    def http_etag(self) -> str | None:
        """Entity tag quoted for use in HTTP headers."""
        if not self.etag:
            return None
        if self.etag.startswith('"') or self.etag.startswith("W/"):
            return self.etag
        return f'"{self.etag}"'


@dataclass
class StoredBlob:
    """A downloaded object with its properties."""

    info: BlobInfo
    data: bytes


class StorageService:
    """Service for Google Cloud Storage operations."""

    def __init__(self, bucket_name: str | None = None, project_id: str | None = None) -> None:
        """
        Initialize the storage service.

        Args:
            bucket_name: GCS photos bucket name (defaults to GCS_PHOTOS_BUCKET environment variable)
            project_id: GCP project ID (defaults to GOOGLE_CLOUD_PROJECT environment variable)
        """
        self.photos_bucket_name = bucket_name or os.getenv("GCS_PHOTOS_BUCKET")
        self.project_id = project_id or os.getenv("GOOGLE_CLOUD_PROJECT")

        if not self.photos_bucket_name:
            raise StorageError("GCS_PHOTOS_BUCKET environment variable is required")
        if not self.project_id:
            raise StorageError("GOOGLE_CLOUD_PROJECT environment variable is required")

        try:
            self.client = storage.Client(project=self.project_id)
            self.photos_bucket = self.client.bucket(self.photos_bucket_name)
            logger.info(
                "storage_service_initialized",
                photos_bucket=self.photos_bucket_name,
                project_id=self.project_id,
            )
        except Exception as e:
            raise StorageError(f"Failed to initialize GCS client: {e}", original_exception=e) from e

    def put_photo(
        self,
        key: str,
        data: bytes,
        content_type: str = WEBP_CONTENT_TYPE,
        cache_control: str = BLOB_CACHE_CONTROL,
    ) -> BlobInfo:
        """
        Store one rendition, overwriting any previous object under the key.

        Args:
            key: Object key
            data: Encoded image bytes
            content_type: MIME type recorded on the object
            cache_control: Cache directive recorded on the object

        Returns:
            BlobInfo: Properties of the stored object

        Raises:
            StorageError: If upload fails
        """
        try:
            blob = self.photos_bucket.blob(key)
            blob.cache_control = cache_control
            blob.metadata = {
                "uploaded_at": datetime.now().isoformat(),
                "file_size": str(len(data)),
            }
            blob.upload_from_string(data, content_type=content_type)

            logger.info("photo_blob_stored", key=key, size=len(data), content_type=content_type)
            return BlobInfo(
                key=key,
                etag=blob.etag,
                content_type=content_type,
                size=len(data),
                cache_control=cache_control,
            )

        except GoogleCloudError as e:
            raise StorageError(f"Failed to upload '{key}': {e}", details={"key": key}, original_exception=e) from e
        except Exception as e:
            raise StorageError(
                f"Unexpected error uploading '{key}': {e}", details={"key": key}, original_exception=e
            ) from e

    def stat(self, key: str) -> BlobInfo | None:
        """
        Look up object properties without downloading the body.

        Returns:
            BlobInfo, or None if the object does not exist

        Raises:
            StorageError: If the lookup fails
        """
        try:
            blob = self.photos_bucket.get_blob(key)
            if blob is None:
                return None
            return self._to_info(key, blob)

        except NotFound:
            return None
        except GoogleCloudError as e:
            raise StorageError(f"Failed to stat '{key}': {e}", details={"key": key}, original_exception=e) from e

    def read(self, key: str) -> StoredBlob | None:
        """
        Download an object with its properties.

        Returns:
            StoredBlob, or None if the object does not exist

        Raises:
            StorageError: If download fails
        """
        try:
            blob = self.photos_bucket.get_blob(key)
            if blob is None:
                return None

            data: bytes = blob.download_as_bytes()
            logger.debug("photo_blob_downloaded", key=key, size=len(data))
            return StoredBlob(info=self._to_info(key, blob), data=data)

        except NotFound:
            return None
        except GoogleCloudError as e:
            raise StorageError(
                f"Failed to download '{key}': {e}", details={"key": key}, original_exception=e
            ) from e

    def check_bucket_exists(self) -> bool:
        """Check the photos bucket is reachable."""
        try:
            return bool(self.photos_bucket.exists())
        except GoogleCloudError as e:
            logger.error("bucket_check_failed", bucket=self.photos_bucket_name, error=str(e))
            return False

    @staticmethod
    def _to_info(key: str, blob) -> BlobInfo:
        return BlobInfo(
            key=key,
            etag=blob.etag,
            content_type=blob.content_type or WEBP_CONTENT_TYPE,
            size=blob.size,
            cache_control=blob.cache_control,
        )


_storage_service: StorageService | None = None


def get_storage_service(bucket_name: str | None = None, project_id: str | None = None) -> StorageService:
    """
    Get the global storage service instance.

    Args:
        bucket_name: GCS bucket name (optional)
        project_id: GCP project ID (optional)

    Returns:
        StorageService: Global storage service instance
    """
    global _storage_service

    if _storage_service is None:
        _storage_service = StorageService(bucket_name=bucket_name, project_id=project_id)

    return _storage_service
