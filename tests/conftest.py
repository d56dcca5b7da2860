"""
Pytest configuration and fixtures for snapfit tests.

The blob store and metadata cache fakes keep everything in memory and mirror
the behaviour of the real services closely enough for the photo service and
the HTTP layer to run end to end.
"""

import copy
import hashlib
import io
from unittest.mock import patch

import pytest
from PIL import Image

from snapfit.config import BLOB_CACHE_CONTROL, PhotoSettings, get_config
from snapfit.errors import StorageError
from snapfit.services.image_processor import ImageProcessor
from snapfit.services.metadata import KeyListing, MetadataCache
from snapfit.services.photos import PhotoService
from snapfit.services.storage import BlobInfo, StoredBlob

TEST_ENV = {
    "ENVIRONMENT": "development",
    "GCS_PHOTOS_BUCKET": "test-photos-bucket",
    "GOOGLE_CLOUD_PROJECT": "test-project",
    "REDIS_URL": "redis://localhost:6379/15",
}


def make_image(format_type: str = "JPEG", size=(640, 480), mode: str = "RGB", color="red") -> bytes:
    """Create a test image in memory."""
    image = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    image.save(buffer, format=format_type)
    return buffer.getvalue()


class FakeBlobStore:
    """In-memory stand-in for StorageService."""

    photos_bucket_name = "test-photos-bucket"

    def __init__(self):
        self.objects: dict[str, tuple[BlobInfo, bytes]] = {}
        self.fail_on: set[str] = set()

    def put_photo(self, key, data, content_type="image/webp", cache_control=BLOB_CACHE_CONTROL):
        if key in self.fail_on:
            raise StorageError(f"Failed to upload '{key}'", details={"key": key})
        info = BlobInfo(
            key=key,
            etag=hashlib.sha256(data).hexdigest()[:32],
            content_type=content_type,
            size=len(data),
            cache_control=cache_control,
        )
        self.objects[key] = (info, data)
        return info

    def stat(self, key):
        entry = self.objects.get(key)
        return entry[0] if entry else None

    def read(self, key):
        entry = self.objects.get(key)
        return StoredBlob(info=entry[0], data=entry[1]) if entry else None

    def check_bucket_exists(self):
        return True


class FakeMetadataCache:
    """In-memory stand-in for MetadataCache using the real cursor encoding."""

    def __init__(self):
        self.records: dict[str, dict] = {}
        self.ttls: dict[str, int] = {}
        self.list_calls: list[dict] = []

    def put(self, key, record, ttl_seconds):
        self.records[key] = copy.deepcopy(record)
        self.ttls[key] = ttl_seconds

    def get(self, key):
        record = self.records.get(key)
        return copy.deepcopy(record) if record is not None else None

    def list_keys(self, prefix, cursor=None, limit=1000):
        self.list_calls.append({"prefix": prefix, "cursor": cursor, "limit": limit})
        keys = sorted(key for key in self.records if key.startswith(prefix))
        if cursor:
            after = MetadataCache._decode_cursor(cursor, prefix)
            keys = [key for key in keys if key > after]

        page = keys[:limit]
        has_more = len(keys) > limit
        return KeyListing(
            keys=page,
            cursor=self.cursor_after(page[-1]) if has_more and page else None,
            list_complete=not has_more,
        )

    cursor_after = MetadataCache.cursor_after

    def ping(self):
        return True


@pytest.fixture(autouse=True)
def test_environment():
    """Run every test against a known environment and a fresh config cache."""
    with patch.dict("os.environ", TEST_ENV):
        get_config().clear_cache()
        yield
    get_config().clear_cache()


@pytest.fixture
def jpeg_image() -> bytes:
    """A 640x480 JPEG."""
    return make_image("JPEG", (640, 480))


@pytest.fixture
def png_image() -> bytes:
    """A 300x300 PNG with transparency."""
    return make_image("PNG", (300, 300), mode="RGBA", color=(0, 128, 255, 128))


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def metadata_cache() -> FakeMetadataCache:
    return FakeMetadataCache()


@pytest.fixture
def photo_settings() -> PhotoSettings:
    return PhotoSettings()


@pytest.fixture
def photo_service(blob_store, metadata_cache, photo_settings) -> PhotoService:
    """PhotoService wired to the in-memory fakes, with no analyzer or rate limiter."""
    return PhotoService(
        storage=blob_store,
        metadata=metadata_cache,
        processor=ImageProcessor(photo_settings),
        settings=photo_settings,
    )
