"""
Photo metadata model for the snapfit service.

This module contains the PhotoMetadata dataclass stored in the metadata
cache, the photo variants, and the key helpers that tie a record to its
blobs.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9._@-]{1,128}$")
TAKEN_AT_PATTERN = re.compile(r"^[A-Za-z0-9._:+-]{1,64}$")


class PhotoVariant(str, Enum):
    """The two stored renditions of a photo."""

    THUMBNAIL = "thumbnail"
    ORIGINAL = "original"


def metadata_prefix(user_id: str) -> str:
    """Metadata cache prefix covering every photo of a user."""
    return f"photo:{user_id}:"


def metadata_key(user_id: str, taken_at: str) -> str:
    """Metadata cache key for one photo."""
    return f"{metadata_prefix(user_id)}{taken_at}"


def storage_key(user_id: str, taken_at: str, variant: PhotoVariant) -> str:
    """Blob store key for one rendition of a photo."""
    return f"users/{user_id}/photos/{taken_at}-{variant.value}.webp"


def is_valid_user_id(user_id: str | None) -> bool:
    return bool(user_id) and USER_ID_PATTERN.match(user_id) is not None


def is_valid_taken_at(taken_at: str | None) -> bool:
    return bool(taken_at) and TAKEN_AT_PATTERN.match(taken_at) is not None


@dataclass
class PhotoMetadata:
    """
    Metadata for one progress photo.

    A record is keyed by ``(user_id, taken_at)`` and always points at both
    renditions; it is only written once both blobs exist.
    """

    user_id: str
    taken_at: str
    thumbnail_key: str
    original_key: str
    body_fat: float | None = None
    weight: float | None = None
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create_new(
        cls,
        user_id: str,
        taken_at: str,
        body_fat: float | None = None,
        weight: float | None = None,
        uploaded_at: datetime | None = None,
    ) -> "PhotoMetadata":
        """
        Create a record with storage keys derived from the user and capture time.

        Args:
            user_id: Owner of the photo
            taken_at: Client-supplied capture timestamp
            body_fat: Initial body fat percentage, if known
            weight: Initial weight, if known
            uploaded_at: Upload time (defaults to now)

        Returns:
            New PhotoMetadata instance
        """
        return cls(
            user_id=user_id,
            taken_at=taken_at,
            thumbnail_key=storage_key(user_id, taken_at, PhotoVariant.THUMBNAIL),
            original_key=storage_key(user_id, taken_at, PhotoVariant.ORIGINAL),
            body_fat=body_fat,
            weight=weight,
            uploaded_at=uploaded_at or datetime.now(UTC),
        )

    @property
    def cache_key(self) -> str:
        return metadata_key(self.user_id, self.taken_at)

    def key_for(self, variant: PhotoVariant) -> str:
        """Storage key of the requested rendition."""
        if variant is PhotoVariant.THUMBNAIL:
            return self.thumbnail_key
        return self.original_key

    def to_dict(self) -> dict:
        """
        Convert to the JSON shape stored in the cache and returned by the API.

        Optional measurements are omitted while unset.
        """
        data: dict = {
            "userId": self.user_id,
            "takenAt": self.taken_at,
            "thumbnailKey": self.thumbnail_key,
            "originalKey": self.original_key,
            "uploadedAt": self.uploaded_at.isoformat(),
        }
        if self.body_fat is not None:
            data["bodyFat"] = self.body_fat
        if self.weight is not None:
            data["weight"] = self.weight
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PhotoMetadata":
        """
        Create PhotoMetadata from a stored record.

        Records written before ``uploadedAt`` existed fall back to now.

        Raises:
            KeyError: If a required field is missing
        """
        uploaded_at = data.get("uploadedAt")
        if isinstance(uploaded_at, str):
            uploaded_at = datetime.fromisoformat(uploaded_at)

        return cls(
            user_id=data["userId"],
            taken_at=data["takenAt"],
            thumbnail_key=data["thumbnailKey"],
            original_key=data["originalKey"],
            body_fat=data.get("bodyFat"),
            weight=data.get("weight"),
            uploaded_at=uploaded_at or datetime.now(UTC),
        )

    def validate(self) -> bool:
        """
        Validate the record.

        Returns:
            True if valid, False otherwise
        """
        if not is_valid_user_id(self.user_id) or not is_valid_taken_at(self.taken_at):
            return False

        if not self.thumbnail_key or not self.original_key:
            return False

        # Stored records must stay JSON-renderable
        for value in (self.body_fat, self.weight):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int | float) or not math.isfinite(value):
                return False

        if self.body_fat is not None and not 0 <= self.body_fat <= 100:
            return False

        if self.weight is not None and self.weight <= 0:
            return False

        return True

    def apply_update(self, changes: dict) -> None:
        """Merge measurement changes; only the keys present are touched."""
        if "bodyFat" in changes:
            self.body_fat = changes["bodyFat"]
        if "weight" in changes:
            self.weight = changes["weight"]
