"""Food detection service using vision LLMs."""

import base64
import logging
from dataclasses import dataclass
from typing import Protocol

from mealscan.domain.nutrition import DetectedFood
from mealscan.domain.vision import FoodDetection, VisionExtract, VisionFood
from mealscan.services.calculator import describe_serving

DEFAULT_CONFIDENCE = 0.5

VISION_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "foods": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "quantity": {"type": "number"},
                    "unit": {"type": "string"},
                    "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
                },
                "required": ["name", "quantity", "unit", "confidence"],
                "additionalProperties": False,
            },
        },
        "overall_confidence": {
            "anyOf": [
                {"type": "number", "minimum": 0.0, "maximum": 1.0},
                {"type": "null"},
            ]
        },
        "notes": {"anyOf": [{"type": "string"}, {"type": "null"}]},
    },
    "required": ["foods", "overall_confidence", "notes"],
    "additionalProperties": False,
}

FOOD_IDENTIFICATION_PROMPT = (
    "You are a nutrition expert. Identify every visible food item in the meal "
    "photo. For each item give a specific name (for example 'brown rice' rather "
    "than 'rice', 'grilled chicken breast' rather than 'chicken'), a realistic "
    "quantity, a measurement unit (cup, oz, g, piece, slice, tbsp, ...) and your "
    "confidence from 0 to 1. Combine identical items, include visible sauces and "
    "condiments, and mention cooking methods when obvious. Also return an "
    "overall confidence and optional notes."
)

_logger = logging.getLogger(__name__)


class VisionClient(Protocol):
    """Interface for LLM vision extraction."""

    async def extract(
        self,
        *,
        model: str,
        store: bool,
        image_url: str,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        """Return structured vision extraction data."""


@dataclass
class VisionService:
    """Service that prompts the vision model and validates its foods."""

    client: VisionClient
    model: str
    store: bool = False
    prompt: str = FOOD_IDENTIFICATION_PROMPT

    async def detect(
        self, *, image_url: str | None = None, image_bytes: bytes | None = None
    ) -> FoodDetection:
        """Detect foods in an image given by URL or raw bytes."""
        if image_bytes is not None:
            image_url = _to_data_url(image_bytes)
        if not image_url:
            raise ValueError("Either image_url or image_bytes must be provided")

        raw = await self.client.extract(
            model=self.model,
            store=self.store,
            image_url=image_url,
            schema=VISION_SCHEMA,
            prompt=self.prompt,
        )
        extract = VisionExtract.model_validate(raw)
        foods = [_to_detected_food(food) for food in extract.foods if _is_usable(food)]
        dropped = len(extract.foods) - len(foods)
        if dropped:
            _logger.warning("Dropped %s unusable foods from vision output", dropped)
        return FoodDetection(
            foods=foods,
            confidence=extract.overall_confidence
            if extract.overall_confidence is not None
            else DEFAULT_CONFIDENCE,
            notes=extract.notes,
        )


def _is_usable(food: VisionFood) -> bool:
    return bool(food.name.strip()) and food.quantity > 0 and bool(food.unit.strip())


def _to_detected_food(food: VisionFood) -> DetectedFood:
    unit = food.unit.strip()
    return DetectedFood(
        name=food.name.strip(),
        serving=describe_serving(food.quantity, unit),
        confidence=food.confidence,
    )


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
