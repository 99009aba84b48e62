"""Models for vision extraction results."""

from dataclasses import dataclass

from pydantic import BaseModel, Field

from mealscan.domain.nutrition import DetectedFood


class VisionFood(BaseModel):
    """Single food item as reported by the vision model."""

    name: str
    quantity: float
    unit: str
    confidence: float = Field(ge=0.0, le=1.0)


class VisionExtract(BaseModel):
    """Structured output for vision extraction."""

    foods: list[VisionFood]
    overall_confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    notes: str | None = None


@dataclass(frozen=True)
class FoodDetection:
    """Foods detected in one image with the model's overall confidence."""

    foods: list[DetectedFood]
    confidence: float
    notes: str | None = None
