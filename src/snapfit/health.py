"""
Health checks for the snapfit service.

Each check returns ``{"status": "healthy"|"unhealthy", "message": ...}`` and
never raises; the overall report is healthy only when every check is.
"""

import os
import time
from collections.abc import Callable
from typing import Any

from . import __version__
from .config import get_environment
from .logging_config import get_logger
from .services.metadata import MetadataCache
from .services.storage import StorageService

logger = get_logger(__name__)

REQUIRED_ENV_VARS = ["GCS_PHOTOS_BUCKET", "GOOGLE_CLOUD_PROJECT"]

_start_time = time.time()


def check_storage_health(get_storage: Callable[[], StorageService]) -> dict[str, Any]:
    """Check Google Cloud Storage connectivity."""
    try:
        storage = get_storage()
        if not storage.check_bucket_exists():
            return {
                "status": "unhealthy",
                "message": f"Bucket not reachable: {storage.photos_bucket_name}",
                "timestamp": time.time(),
            }

        return {
            "status": "healthy",
            "message": f"Storage connection successful to bucket: {storage.photos_bucket_name}",
            "timestamp": time.time(),
        }
    except Exception as e:
        logger.error("storage_health_check_failed", error=str(e))
        return {"status": "unhealthy", "message": f"Storage connection failed: {e}", "timestamp": time.time()}


def check_cache_health(get_cache: Callable[[], MetadataCache]) -> dict[str, Any]:
    """Check Redis connectivity."""
    try:
        if not get_cache().ping():
            return {"status": "unhealthy", "message": "Metadata cache did not answer ping", "timestamp": time.time()}

        return {"status": "healthy", "message": "Metadata cache connection successful", "timestamp": time.time()}
    except Exception as e:
        logger.error("cache_health_check_failed", error=str(e))
        return {"status": "unhealthy", "message": f"Metadata cache connection failed: {e}", "timestamp": time.time()}


def check_environment_health() -> dict[str, Any]:
    """Check environment configuration."""
    missing_vars = [var for var in REQUIRED_ENV_VARS if not os.getenv(var)]

    if missing_vars:
        return {
            "status": "unhealthy",
            "message": f"Missing environment variables: {', '.join(missing_vars)}",
            "timestamp": time.time(),
            "missing_vars": missing_vars,
        }

    return {"status": "healthy", "message": "Environment configuration is valid", "timestamp": time.time()}


def perform_health_check(
    get_storage: Callable[[], StorageService], get_cache: Callable[[], MetadataCache]
) -> dict[str, Any]:
    """Perform all health checks."""
    start_time = time.time()

    checks = {
        "storage": check_storage_health(get_storage),
        "cache": check_cache_health(get_cache),
        "environment": check_environment_health(),
    }

    unhealthy_services = [name for name, result in checks.items() if result["status"] != "healthy"]
    overall_status = "unhealthy" if unhealthy_services else "healthy"

    health_response: dict[str, Any] = {
        "status": overall_status,
        "version": __version__,
        "environment": get_environment(),
        "uptime": round(time.time() - _start_time, 1),
        "duration_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }
    if unhealthy_services:
        health_response["unhealthy_services"] = unhealthy_services

    logger.info(
        "health_check_completed",
        status=overall_status,
        duration_ms=health_response["duration_ms"],
        unhealthy_services=unhealthy_services,
    )
    return health_response
