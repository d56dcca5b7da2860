"""
Unit tests for health checks.
"""

from unittest.mock import MagicMock, patch

from snapfit.config import get_config
from snapfit.errors import StorageError
from snapfit.health import (
    check_cache_health,
    check_environment_health,
    check_storage_health,
    perform_health_check,
)


def healthy_storage():
    storage = MagicMock()
    storage.photos_bucket_name = "test-photos-bucket"
    storage.check_bucket_exists.return_value = True
    return storage


def healthy_cache():
    cache = MagicMock()
    cache.ping.return_value = True
    return cache


class TestHealthChecks:
    """Test cases for the individual checks."""

    def test_storage_healthy(self):
        result = check_storage_health(healthy_storage)

        assert result["status"] == "healthy"
        assert "test-photos-bucket" in result["message"]

    def test_storage_bucket_unreachable(self):
        storage = healthy_storage()
        storage.check_bucket_exists.return_value = False

        assert check_storage_health(lambda: storage)["status"] == "unhealthy"

    def test_storage_init_failure(self):
        def broken():
            raise StorageError("GCS_PHOTOS_BUCKET environment variable is required")

        result = check_storage_health(broken)

        assert result["status"] == "unhealthy"
        assert "GCS_PHOTOS_BUCKET" in result["message"]

    def test_cache_healthy(self):
        assert check_cache_health(healthy_cache)["status"] == "healthy"

    def test_cache_no_pong(self):
        cache = healthy_cache()
        cache.ping.return_value = False

        assert check_cache_health(lambda: cache)["status"] == "unhealthy"

    def test_environment_healthy(self):
        assert check_environment_health()["status"] == "healthy"

    def test_environment_missing_vars(self):
        with patch.dict("os.environ", {}, clear=True):
            result = check_environment_health()

        assert result["status"] == "unhealthy"
        assert result["missing_vars"] == ["GCS_PHOTOS_BUCKET", "GOOGLE_CLOUD_PROJECT"]


class TestPerformHealthCheck:
    """Test cases for perform_health_check."""

    def test_all_healthy(self):
        report = perform_health_check(healthy_storage, healthy_cache)

        assert report["status"] == "healthy"
        assert set(report["checks"]) == {"storage", "cache", "environment"}
        assert "unhealthy_services" not in report
        assert report["version"] == "0.1.0"

    def test_one_unhealthy(self):
        cache = healthy_cache()
        cache.ping.return_value = False

        report = perform_health_check(healthy_storage, lambda: cache)

        assert report["status"] == "unhealthy"
        assert report["unhealthy_services"] == ["cache"]

    def test_reports_configured_environment(self):
        with patch.dict("os.environ", {"ENVIRONMENT": "staging"}):
            get_config().clear_cache()
            report = perform_health_check(healthy_storage, healthy_cache)

        assert report["environment"] == "staging"
