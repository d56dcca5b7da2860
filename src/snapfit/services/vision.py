"""Body-fat estimation through a hosted vision model (Gemini generateContent)."""

import base64
import re

import httpx

from ..config import VisionSettings, load_vision_settings
from ..errors import VisionError
from ..logging_config import get_logger
from ..models.schemas import UserAttributes

logger = get_logger(__name__)

MIN_BODY_FAT = 3.0
MAX_BODY_FAT = 60.0

SYSTEM_PROMPT = """You are a fitness analyst estimating body composition from a photo.

Reply with ONE decimal number only: the estimated body fat percentage, rounded
to 0.1, between 3.0 and 60.0, always with a decimal point (e.g. 15.0).
No percent sign, no ranges, no words.

Judge from muscle definition, fat distribution, vascularity, visible anatomical
landmarks and overall shape. Account for lighting, posture and image quality,
and for sex-specific fat distribution when it is known."""

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def build_prompt(attributes: UserAttributes | None = None) -> str:
    """Prompt text, with any known user attributes appended as context."""
    if attributes is None or attributes.is_empty():
        return SYSTEM_PROMPT

    lines = []
    if attributes.gender:
        lines.append(f"- sex: {attributes.gender}")
    if attributes.age is not None:
        lines.append(f"- age: {attributes.age}")
    if attributes.height_cm is not None:
        lines.append(f"- height: {attributes.height_cm:.0f} cm")
    if attributes.weight_kg is not None:
        lines.append(f"- weight: {attributes.weight_kg:.1f} kg")
    return SYSTEM_PROMPT + "\n\nAbout the person in the photo:\n" + "\n".join(lines)


def parse_body_fat(text: str) -> float:
    """
    Extract the percentage from the model's reply.

    Raises:
        VisionError: If the reply holds no single number in range
    """
    numbers = _NUMBER.findall(text or "")
    if len(numbers) != 1:
        raise VisionError(
            "Vision model returned an unusable answer",
            code="vision_bad_answer",
            details={"reply": (text or "")[:200]},
        )

    value = float(numbers[0])
    if not MIN_BODY_FAT <= value <= MAX_BODY_FAT:
        raise VisionError(
            f"Vision model estimate {value} is outside {MIN_BODY_FAT}-{MAX_BODY_FAT}",
            code="vision_out_of_range",
            details={"reply": (text or "")[:200]},
        )
    return round(value, 1)


class BodyFatAnalyzer:
    """Client for the hosted vision model."""

    def __init__(self, settings: VisionSettings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or load_vision_settings()
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    async def estimate(self, image_data: bytes, mime_type: str, attributes: UserAttributes | None = None) -> float:
        """
        Ask the model for a body-fat percentage.

        Args:
            image_data: Photo bytes
            mime_type: MIME type of the photo
            attributes: Optional context about the person

        Returns:
            float: Body fat percentage rounded to 0.1

        Raises:
            VisionError: If the model is not configured, unreachable, or answers badly
        """
        if not self.settings.enabled:
            raise VisionError("Vision model is not configured", code="vision_not_configured")

        url = f"{self.settings.endpoint}/models/{self.settings.model}:generateContent"
        body = {
            "contents": [
                {
                    "parts": [
                        {"text": build_prompt(attributes)},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(image_data).decode("ascii"),
                            }
                        },
                    ]
                }
            ],
            "generationConfig": {"temperature": 0, "maxOutputTokens": 16},
        }
        headers = {"x-goog-api-key": self.settings.api_key or "", "Content-Type": "application/json"}

        try:
            async with httpx.AsyncClient(timeout=self.settings.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise VisionError(f"Vision model request failed: {e}", code="vision_unreachable", original_exception=e) from e

        if response.status_code != 200:
            raise VisionError(
                f"Vision model returned HTTP {response.status_code}",
                code="vision_http_error",
                details={"status": response.status_code},
            )

        try:
            payload = response.json()
            text = payload["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise VisionError(
                "Vision model returned an invalid response", code="vision_bad_response", original_exception=e
            ) from e

        body_fat = parse_body_fat(text)
        logger.info("body_fat_estimated", model=self.settings.model, body_fat=body_fat)
        return body_fat


_analyzer: BodyFatAnalyzer | None = None


def get_body_fat_analyzer() -> BodyFatAnalyzer:
    """Get the global analyzer instance."""
    global _analyzer
    if _analyzer is None:
        _analyzer = BodyFatAnalyzer()
    return _analyzer
