"""Configuration management for the snapfit service.

Everything is read from environment variables. Values are cast on first read
and cached; call ``get_config().clear_cache()`` after changing the environment
in tests.
"""

import os
from dataclasses import dataclass
from typing import Any

from .logging_config import get_logger

logger = get_logger(__name__)

METADATA_TTL_SECONDS = 86400 * 30
BLOB_CACHE_CONTROL = "public, max-age=31536000"
LIST_CACHE_CONTROL = "public, max-age=60"
DEFAULT_VISION_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"


class Config:
    """Centralized configuration management using environment variables."""

    def __init__(self):
        """Initialize configuration."""
        self._cache = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get configuration value from environment variables.

        Args:
            key: Configuration key
            default: Default value if not found
            cast_type: Type to cast the value to (str, int, bool, float)

        Returns:
            Configuration value cast to the specified type
        """
        cache_key = f"{key}:{cast_type.__name__}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = os.getenv(key)

        if value is None:
            value = default

        if value is not None:
            try:
                if cast_type is bool:
                    if isinstance(value, str):
                        value = value.lower() in ("true", "1", "yes", "on")  # type: ignore[assignment]
                    else:
                        value = bool(value)  # type: ignore[assignment]
                elif cast_type is not str:
                    value = cast_type(value)
            except (ValueError, TypeError) as e:
                logger.warning(f"Failed to cast config value '{key}' to {cast_type.__name__}: {e}")
                value = default

        self._cache[cache_key] = value
        return value

    def is_development(self) -> bool:
        """Check if running in development mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["development", "dev", "local"]

    def clear_cache(self):
        """Clear configuration cache."""
        self._cache.clear()


_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    """Get environment variable with type casting."""
    return get_config().get(key, default, cast_type)


def is_development() -> bool:
    """Check if running in development mode."""
    return get_config().is_development()


def get_environment() -> str:
    """Get current environment."""
    return str(get_env("ENVIRONMENT", "development"))


def get_redis_url() -> str:
    """Get the Redis connection URL used by the metadata cache and rate limiter."""
    return str(get_env("REDIS_URL", "redis://localhost:6379/0"))


def get_cors_origins() -> list[str]:
    """Get allowed CORS origins."""
    raw = str(get_env("CORS_ALLOW_ORIGINS", "*"))
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass(frozen=True)
class PhotoSettings:
    """Image transform and retention settings for photo ingestion."""

    thumbnail_width: int = 300
    thumbnail_height: int = 400
    thumbnail_quality: int = 75
    original_quality: int = 90
    metadata_ttl_seconds: int = METADATA_TTL_SECONDS
    max_file_size: int = 20 * 1024 * 1024
    min_file_size: int = 100

    def __post_init__(self) -> None:
        for name in ("thumbnail_quality", "original_quality"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")
        for name in ("thumbnail_width", "thumbnail_height", "metadata_ttl_seconds"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.min_file_size > self.max_file_size:
            raise ValueError("min_file_size must not exceed max_file_size")


def load_photo_settings() -> PhotoSettings:
    """Build PhotoSettings from the environment.

    Raises:
        ValueError: If a value is out of range
    """
    defaults = PhotoSettings()
    return PhotoSettings(
        thumbnail_width=get_env("THUMBNAIL_WIDTH", defaults.thumbnail_width, int),
        thumbnail_height=get_env("THUMBNAIL_HEIGHT", defaults.thumbnail_height, int),
        thumbnail_quality=get_env("THUMBNAIL_QUALITY", defaults.thumbnail_quality, int),
        original_quality=get_env("ORIGINAL_QUALITY", defaults.original_quality, int),
        metadata_ttl_seconds=get_env("METADATA_TTL_SECONDS", defaults.metadata_ttl_seconds, int),
        max_file_size=get_env("MAX_FILE_SIZE", defaults.max_file_size, int),
        min_file_size=get_env("MIN_FILE_SIZE", defaults.min_file_size, int),
    )


@dataclass(frozen=True)
class VisionSettings:
    """Connection settings for the hosted body-fat vision model."""

    api_key: str | None = None
    model: str = "gemini-1.5-flash"
    endpoint: str = DEFAULT_VISION_ENDPOINT
    timeout_seconds: float = 30.0

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


def load_vision_settings() -> VisionSettings:
    """Build VisionSettings from the environment."""
    defaults = VisionSettings()
    return VisionSettings(
        api_key=get_env("VISION_API_KEY"),
        model=get_env("VISION_MODEL", defaults.model),
        endpoint=str(get_env("VISION_ENDPOINT", defaults.endpoint)).rstrip("/"),
        timeout_seconds=get_env("VISION_TIMEOUT_SECONDS", defaults.timeout_seconds, float),
    )


@dataclass(frozen=True)
class RateLimitSettings:
    """Token bucket settings shared by every API instance."""

    enabled: bool = False
    capacity: int = 20
    refill_per_second: float = 0.2

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError(f"capacity must be positive, got {self.capacity}")
        if self.refill_per_second <= 0:
            raise ValueError(f"refill_per_second must be positive, got {self.refill_per_second}")


def load_rate_limit_settings() -> RateLimitSettings:
    """Build RateLimitSettings from the environment."""
    defaults = RateLimitSettings()
    return RateLimitSettings(
        enabled=get_env("RATE_LIMIT_ENABLED", defaults.enabled, bool),
        capacity=get_env("RATE_LIMIT_CAPACITY", defaults.capacity, int),
        refill_per_second=get_env("RATE_LIMIT_REFILL_PER_SECOND", defaults.refill_per_second, float),
    )
