"""
Unit tests for the PhotoMetadata model and key helpers.
"""

from datetime import UTC, datetime

import pytest

from snapfit.models.photo import (
    PhotoMetadata,
    PhotoVariant,
    is_valid_taken_at,
    is_valid_user_id,
    metadata_key,
    metadata_prefix,
    storage_key,
)


class TestKeyHelpers:
    """Test cases for the key helpers."""

    def test_metadata_key(self):
        assert metadata_prefix("u1") == "photo:u1:"
        assert metadata_key("u1", "1000") == "photo:u1:1000"

    def test_storage_key(self):
        assert storage_key("u1", "1000", PhotoVariant.THUMBNAIL) == "users/u1/photos/1000-thumbnail.webp"
        assert storage_key("u1", "1000", PhotoVariant.ORIGINAL) == "users/u1/photos/1000-original.webp"

    @pytest.mark.parametrize("user_id", ["u1", "user.name@example.com", "A-b_c"])
    def test_valid_user_ids(self, user_id):
        assert is_valid_user_id(user_id)

    @pytest.mark.parametrize("user_id", ["", None, "u:1", "u/1", "a" * 129, "has space"])
    def test_invalid_user_ids(self, user_id):
        assert not is_valid_user_id(user_id)

    def test_user_id_cannot_reach_another_prefix(self):
        """A colon would let one user's prefix cover another's keys."""
        assert not is_valid_user_id("u1:evil")

    @pytest.mark.parametrize("taken_at", ["1000", "2024-01-15T10:30:00+09:00", "1700000000.123"])
    def test_valid_taken_at(self, taken_at):
        assert is_valid_taken_at(taken_at)

    @pytest.mark.parametrize("taken_at", ["", None, "../etc", "a b", "x" * 65])
    def test_invalid_taken_at(self, taken_at):
        assert not is_valid_taken_at(taken_at)


class TestPhotoMetadata:
    """Test cases for PhotoMetadata class."""

    def test_create_new(self):
        """Test creating a record derives both storage keys."""
        record = PhotoMetadata.create_new("u1", "1000", body_fat=21.5)

        assert record.user_id == "u1"
        assert record.taken_at == "1000"
        assert record.thumbnail_key == "users/u1/photos/1000-thumbnail.webp"
        assert record.original_key == "users/u1/photos/1000-original.webp"
        assert record.body_fat == 21.5
        assert record.weight is None
        assert record.uploaded_at.tzinfo is not None
        assert record.cache_key == "photo:u1:1000"

    def test_key_for(self):
        record = PhotoMetadata.create_new("u1", "1000")

        assert record.key_for(PhotoVariant.THUMBNAIL) == record.thumbnail_key
        assert record.key_for(PhotoVariant.ORIGINAL) == record.original_key

    def test_to_dict_omits_unset_measurements(self):
        uploaded_at = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        record = PhotoMetadata.create_new("u1", "1000", uploaded_at=uploaded_at)

        assert record.to_dict() == {
            "userId": "u1",
            "takenAt": "1000",
            "thumbnailKey": "users/u1/photos/1000-thumbnail.webp",
            "originalKey": "users/u1/photos/1000-original.webp",
            "uploadedAt": "2024-01-15T10:30:00+00:00",
        }

    def test_to_dict_includes_measurements(self):
        record = PhotoMetadata.create_new("u1", "1000", body_fat=18.5, weight=72.3)
        data = record.to_dict()

        assert data["bodyFat"] == 18.5
        assert data["weight"] == 72.3

    def test_from_dict(self):
        data = {
            "userId": "u1",
            "takenAt": "1000",
            "thumbnailKey": "users/u1/photos/1000-thumbnail.webp",
            "originalKey": "users/u1/photos/1000-original.webp",
            "bodyFat": 18.5,
            "uploadedAt": "2024-01-15T10:30:00+00:00",
        }

        record = PhotoMetadata.from_dict(data)

        assert record.user_id == "u1"
        assert record.body_fat == 18.5
        assert record.weight is None
        assert record.uploaded_at == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        assert record.to_dict() == data

    def test_from_dict_without_uploaded_at(self):
        """Records written by older clients have no uploadedAt."""
        record = PhotoMetadata.from_dict(
            {"userId": "u1", "takenAt": "1000", "thumbnailKey": "t", "originalKey": "o"}
        )

        assert record.uploaded_at is not None

    def test_from_dict_missing_field(self):
        with pytest.raises(KeyError):
            PhotoMetadata.from_dict({"userId": "u1", "takenAt": "1000"})

    def test_validate(self):
        assert PhotoMetadata.create_new("u1", "1000", body_fat=20.0, weight=70.0).validate() is True
        assert PhotoMetadata.create_new("u1", "1000", body_fat=120.0).validate() is False
        assert PhotoMetadata.create_new("u1", "1000", weight=0).validate() is False
        assert PhotoMetadata.create_new("u:1", "1000").validate() is False

    @pytest.mark.parametrize(
        "measurements",
        [{"weight": float("inf")}, {"weight": float("nan")}, {"body_fat": float("nan")}, {"weight": True}],
    )
    def test_validate_rejects_unrenderable_measurements(self, measurements):
        assert PhotoMetadata.create_new("u1", "1000", **measurements).validate() is False

    def test_apply_update_touches_only_given_fields(self):
        record = PhotoMetadata.create_new("u1", "1000", body_fat=20.0, weight=70.0)

        record.apply_update({"bodyFat": 18.5})

        assert record.body_fat == 18.5
        assert record.weight == 70.0

    def test_apply_update_explicit_null_clears(self):
        record = PhotoMetadata.create_new("u1", "1000", body_fat=20.0, weight=70.0)

        record.apply_update({"weight": None})

        assert record.body_fat == 20.0
        assert record.weight is None
        assert "weight" not in record.to_dict()
