"""
Unit tests for configuration management.
"""

from unittest.mock import patch

import pytest

from snapfit.config import (
    Config,
    PhotoSettings,
    get_config,
    get_cors_origins,
    get_redis_url,
    load_photo_settings,
    load_rate_limit_settings,
    load_vision_settings,
)


class TestConfig:
    """Test cases for Config class."""

    def setup_method(self):
        self.config = Config()

    def test_get_with_default(self):
        with patch.dict("os.environ", {}, clear=True):
            assert self.config.get("MISSING", "fallback") == "fallback"

    def test_get_casts(self):
        with patch.dict("os.environ", {"PORT": "9000", "RATIO": "0.5", "FLAG": "yes"}):
            assert self.config.get("PORT", cast_type=int) == 9000
            assert self.config.get("RATIO", cast_type=float) == 0.5
            assert self.config.get("FLAG", cast_type=bool) is True

    def test_get_bad_cast_falls_back(self):
        with patch.dict("os.environ", {"PORT": "not-a-number"}):
            assert self.config.get("PORT", 8080, int) == 8080

    def test_values_are_cached(self):
        with patch.dict("os.environ", {"SOME_KEY": "first"}):
            assert self.config.get("SOME_KEY") == "first"
        with patch.dict("os.environ", {"SOME_KEY": "second"}):
            assert self.config.get("SOME_KEY") == "first"
            self.config.clear_cache()
            assert self.config.get("SOME_KEY") == "second"

    @pytest.mark.parametrize(
        "environment,development",
        [("development", True), ("local", True), ("production", False), ("staging", False)],
    )
    def test_environment_modes(self, environment, development):
        with patch.dict("os.environ", {"ENVIRONMENT": environment}):
            assert self.config.is_development() is development


class TestSettingsLoaders:
    """Test cases for the settings loaders."""

    def test_photo_settings_defaults(self):
        settings = load_photo_settings()

        assert settings == PhotoSettings()
        assert (settings.thumbnail_width, settings.thumbnail_height) == (300, 400)
        assert settings.metadata_ttl_seconds == 86400 * 30

    def test_photo_settings_from_environment(self):
        with patch.dict("os.environ", {"THUMBNAIL_WIDTH": "200", "METADATA_TTL_SECONDS": "3600"}):
            get_config().clear_cache()
            settings = load_photo_settings()

        assert settings.thumbnail_width == 200
        assert settings.metadata_ttl_seconds == 3600

    def test_photo_settings_out_of_range(self):
        with patch.dict("os.environ", {"THUMBNAIL_QUALITY": "150"}):
            get_config().clear_cache()
            with pytest.raises(ValueError, match="thumbnail_quality"):
                load_photo_settings()

    @pytest.mark.parametrize(
        "kwargs",
        [{"original_quality": -1}, {"thumbnail_height": 0}, {"metadata_ttl_seconds": 0}, {"min_file_size": 10**9}],
    )
    def test_photo_settings_validation(self, kwargs):
        with pytest.raises(ValueError):
            PhotoSettings(**kwargs)

    def test_vision_settings(self):
        with patch.dict("os.environ", {"VISION_API_KEY": "secret", "VISION_ENDPOINT": "https://example.test/v1/"}):
            get_config().clear_cache()
            settings = load_vision_settings()

        assert settings.enabled is True
        assert settings.api_key == "secret"
        assert settings.endpoint == "https://example.test/v1"
        assert settings.model == "gemini-1.5-flash"

    def test_vision_disabled_without_key(self):
        with patch.dict("os.environ", {}, clear=True):
            get_config().clear_cache()
            assert load_vision_settings().enabled is False

    def test_rate_limit_settings(self):
        with patch.dict("os.environ", {"RATE_LIMIT_ENABLED": "true", "RATE_LIMIT_CAPACITY": "3"}):
            get_config().clear_cache()
            settings = load_rate_limit_settings()

        assert settings.enabled is True
        assert settings.capacity == 3
        assert settings.refill_per_second == 0.2

    def test_rate_limit_disabled_by_default(self):
        with patch.dict("os.environ", {}, clear=True):
            get_config().clear_cache()
            assert load_rate_limit_settings().enabled is False

    def test_redis_url(self):
        assert get_redis_url() == "redis://localhost:6379/15"

    def test_cors_origins(self):
        with patch.dict("os.environ", {"CORS_ALLOW_ORIGINS": "https://a.test, https://b.test,"}):
            get_config().clear_cache()
            assert get_cors_origins() == ["https://a.test", "https://b.test"]
