"""
Request bodies accepted by the HTTP API.

Required-ness of identifiers and the image is enforced by the photo service
so that JSON and multipart uploads fail the same way; these models only pin
down types, ranges and unknown fields.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class UploadRequest(BaseModel):
    """JSON upload body. ``image`` is base64 encoded."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", allow_inf_nan=False)

    user_id: str | None = Field(default=None, validation_alias=AliasChoices("userId", "user_id"))
    taken_at: str | None = Field(
        default=None, validation_alias=AliasChoices("takenAt", "timestamp", "taken_at")
    )
    image: str | None = None
    body_fat: float | None = Field(default=None, ge=0, le=100, validation_alias=AliasChoices("bodyFat", "body_fat"))
    weight: float | None = Field(default=None, gt=0)


class PhotoUpdate(BaseModel):
    """Partial measurement update; fields left out of the body stay untouched."""

    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    bodyFat: float | None = Field(default=None, ge=0, le=100)
    weight: float | None = Field(default=None, gt=0)

    def changes(self) -> dict:
        """Only the fields the caller actually sent, explicit nulls included."""
        return self.model_dump(exclude_unset=True)


class UserAttributes(BaseModel):
    """Optional context passed to the body-fat model alongside the photo."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", allow_inf_nan=False)

    height_cm: float | None = Field(default=None, gt=0, lt=300, validation_alias=AliasChoices("heightCm", "height_cm"))
    weight_kg: float | None = Field(default=None, gt=0, lt=700, validation_alias=AliasChoices("weightKg", "weight_kg"))
    age: int | None = Field(default=None, gt=0, lt=130)
    gender: str | None = Field(default=None, max_length=32)

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class AnalyzeRequest(UserAttributes):
    """JSON analyze body. ``image`` is base64 encoded; any ``userId`` is ignored."""

    image: str | None = None

    def attributes(self) -> UserAttributes:
        return UserAttributes(
            height_cm=self.height_cm, weight_kg=self.weight_kg, age=self.age, gender=self.gender
        )
