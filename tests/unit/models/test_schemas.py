"""
Unit tests for the API request bodies.
"""

import pytest
from pydantic import ValidationError

from snapfit.models.schemas import AnalyzeRequest, PhotoUpdate, UploadRequest, UserAttributes


class TestUploadRequest:
    """Test cases for UploadRequest."""

    def test_accepts_timestamp_alias(self):
        body = UploadRequest.model_validate({"userId": "u1", "timestamp": "1000", "image": "abc"})

        assert body.user_id == "u1"
        assert body.taken_at == "1000"
        assert body.image == "abc"

    def test_accepts_taken_at(self):
        body = UploadRequest.model_validate({"userId": "u1", "takenAt": "1000", "bodyFat": 18.5, "weight": 70})

        assert body.taken_at == "1000"
        assert body.body_fat == 18.5
        assert body.weight == 70.0

    def test_missing_fields_are_left_to_the_service(self):
        body = UploadRequest.model_validate({})

        assert body.user_id is None
        assert body.taken_at is None
        assert body.image is None

    def test_body_fat_range(self):
        with pytest.raises(ValidationError):
            UploadRequest.model_validate({"userId": "u1", "takenAt": "1", "bodyFat": 150})

    def test_weight_must_be_positive(self):
        with pytest.raises(ValidationError):
            UploadRequest.model_validate({"userId": "u1", "takenAt": "1", "weight": -1})

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_rejects_non_finite_weight(self, value):
        with pytest.raises(ValidationError):
            UploadRequest.model_validate({"userId": "u1", "takenAt": "1", "weight": value})


class TestPhotoUpdate:
    """Test cases for PhotoUpdate."""

    def test_changes_only_contains_sent_fields(self):
        assert PhotoUpdate.model_validate({"bodyFat": 18.5}).changes() == {"bodyFat": 18.5}

    def test_changes_keeps_explicit_null(self):
        assert PhotoUpdate.model_validate({"weight": None}).changes() == {"weight": None}

    def test_empty_update(self):
        assert PhotoUpdate.model_validate({}).changes() == {}

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            PhotoUpdate.model_validate({"userId": "someone-else"})

    def test_rejects_non_numeric(self):
        with pytest.raises(ValidationError):
            PhotoUpdate.model_validate({"bodyFat": "lots"})

    @pytest.mark.parametrize("field", ["bodyFat", "weight"])
    def test_rejects_infinity(self, field):
        with pytest.raises(ValidationError):
            PhotoUpdate.model_validate({field: float("inf")})


class TestAnalyzeRequest:
    """Test cases for AnalyzeRequest and UserAttributes."""

    def test_attributes(self):
        body = AnalyzeRequest.model_validate(
            {"image": "abc", "heightCm": 180, "weightKg": 80.5, "age": 34, "gender": "male"}
        )
        attributes = body.attributes()

        assert attributes.height_cm == 180
        assert attributes.weight_kg == 80.5
        assert attributes.age == 34
        assert attributes.gender == "male"
        assert not attributes.is_empty()

    def test_empty_attributes(self):
        assert UserAttributes().is_empty()
        assert AnalyzeRequest.model_validate({"image": "abc"}).attributes().is_empty()

    def test_rejects_implausible_age(self):
        with pytest.raises(ValidationError):
            AnalyzeRequest.model_validate({"image": "abc", "age": 500})
