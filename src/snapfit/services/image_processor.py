"""Image transform service: validation and WebP encoding of uploaded photos."""

import io
from datetime import datetime

from PIL import Image, ImageOps
from pillow_heif import register_heif_opener  # type: ignore[import-untyped]

from ..config import PhotoSettings
from ..errors import ImageProcessingError, InvalidInputError
from ..logging_config import get_logger, log_performance

register_heif_opener()

logger = get_logger(__name__)


class ImageProcessor:
    """Service for validating images and producing WebP renditions."""

    # Formats a phone camera or gallery export can hand us
    SUPPORTED_FORMATS = {"JPEG", "PNG", "WEBP", "HEIF", "MPO"}

    def __init__(self, settings: PhotoSettings | None = None) -> None:
        """Initialize the image processor."""
        self.settings = settings or PhotoSettings()

    def validate_file_size(self, image_data: bytes) -> None:
        """
        Validate that the payload size is within acceptable limits.

        Raises:
            InvalidInputError: If the size is outside the configured bounds
        """
        file_size = len(image_data)

        if file_size < self.settings.min_file_size:
            raise InvalidInputError(
                f"Image is too small ({file_size} bytes). Minimum size: {self.settings.min_file_size} bytes",
                code="file_too_small",
                details={"file_size": file_size, "min_size": self.settings.min_file_size},
            )

        if file_size > self.settings.max_file_size:
            max_size_mb = self.settings.max_file_size / (1024 * 1024)
            raise InvalidInputError(
                f"Image is too large ({file_size / (1024 * 1024):.1f}MB). Maximum size: {max_size_mb:.0f}MB",
                code="file_too_large",
                details={"file_size": file_size, "max_size": self.settings.max_file_size},
            )

    def validate_image(self, image_data: bytes) -> None:
        """
        Validate that the bytes are a decodable image in a supported format.

        Raises:
            InvalidInputError: If the image is too small/large, corrupt or unsupported
        """
        self.validate_file_size(image_data)

        try:
            with Image.open(io.BytesIO(image_data)) as image:
                image.verify()
                detected_format = image.format
        except Exception as e:
            raise InvalidInputError(
                f"Invalid or corrupted image: {e}",
                code="image_invalid",
                details={"file_size": len(image_data)},
            ) from e

        if detected_format not in self.SUPPORTED_FORMATS:
            raise InvalidInputError(
                f"Detected format '{detected_format}' is not supported. "
                f"Supported formats: {', '.join(sorted(self.SUPPORTED_FORMATS))}",
                code="unsupported_format",
                details={"detected_format": detected_format},
            )

        logger.debug("image_validation_success", format=detected_format, file_size=len(image_data))

    def get_image_info(self, image_data: bytes) -> dict:
        """
        Get basic image information.

        Raises:
            ImageProcessingError: If image cannot be read
        """
        try:
            with Image.open(io.BytesIO(image_data)) as image:
                return {
                    "format": image.format,
                    "mode": image.mode,
                    "width": image.width,
                    "height": image.height,
                }
        except Exception as e:
            raise ImageProcessingError(
                f"Failed to get image info: {e}",
                code="image_info_failed",
                details={"file_size": len(image_data)},
                original_exception=e,
            ) from e

    def to_webp(
        self,
        image_data: bytes,
        width: int | None = None,
        height: int | None = None,
        quality: int = 80,
    ) -> bytes:
        """
        Re-encode an image as WebP, optionally fitting it inside a box.

        The aspect ratio is preserved and images are never upscaled. EXIF
        orientation is applied before resizing.

        Args:
            image_data: Raw image data as bytes
            width: Maximum width (None leaves the width unconstrained)
            height: Maximum height (None leaves the height unconstrained)
            quality: WebP quality (0-100)

        Returns:
            bytes: WebP encoded image

        Raises:
            ImageProcessingError: If decoding or encoding fails
        """
        start_time = datetime.now()

        try:
            with Image.open(io.BytesIO(image_data)) as source:
                image = ImageOps.exif_transpose(source)
                original_size = image.size

                if image.mode not in ("RGB", "RGBA"):
                    has_alpha = "A" in image.getbands() or "transparency" in image.info
                    image = image.convert("RGBA" if has_alpha else "RGB")

                target_size = self._calculate_target_size(original_size, width, height)
                if target_size != original_size:
                    image = image.resize(target_size, Image.Resampling.LANCZOS)

                buffer = io.BytesIO()
                image.save(buffer, format="WEBP", quality=quality, method=4)
                webp_data = buffer.getvalue()

            duration = (datetime.now() - start_time).total_seconds()
            log_performance(
                "to_webp",
                duration,
                original_size=original_size,
                target_size=target_size,
                original_file_size=len(image_data),
                webp_file_size=len(webp_data),
                quality=quality,
            )
            return webp_data

        except Exception as e:
            raise ImageProcessingError(
                f"Failed to convert image to WebP: {e}",
                code="webp_conversion_failed",
                details={"original_file_size": len(image_data), "width": width, "height": height, "quality": quality},
                original_exception=e,
            ) from e

    def generate_thumbnail(self, image_data: bytes) -> bytes:
        """Small rendition fitting the configured thumbnail box."""
        return self.to_webp(
            image_data,
            width=self.settings.thumbnail_width,
            height=self.settings.thumbnail_height,
            quality=self.settings.thumbnail_quality,
        )

    def generate_original(self, image_data: bytes) -> bytes:
        """Full-size rendition at the configured original quality."""
        return self.to_webp(image_data, quality=self.settings.original_quality)

    @staticmethod
    def _calculate_target_size(
        original_size: tuple[int, int], max_width: int | None, max_height: int | None
    ) -> tuple[int, int]:
        """
        Calculate the size that fits inside the box while preserving aspect ratio.

        Returns:
            tuple: Target size as (width, height), never larger than the original
        """
        original_width, original_height = original_size
        width_ratio = max_width / original_width if max_width else 1.0
        height_ratio = max_height / original_height if max_height else 1.0

        scale_ratio = min(width_ratio, height_ratio, 1.0)
        if scale_ratio >= 1.0:
            return original_size

        return (max(1, int(original_width * scale_ratio)), max(1, int(original_height * scale_ratio)))
