"""Domain models for meal analysis and logging."""

from dataclasses import dataclass
from datetime import datetime

from mealscan.domain.nutrition import NutritionProfile, ServingDescriptor


@dataclass(frozen=True)
class AnalyzedFood:
    """Detected food with the nutrition computed for its serving.

    ``profile`` is the per-100g catalog entry it was matched to, if any.
    """

    name: str
    serving: ServingDescriptor
    confidence: float
    nutrition: NutritionProfile | None
    fdc_id: int | None = None
    description: str | None = None
    data_type: str | None = None
    placeholder: bool = False
    profile: NutritionProfile | None = None


@dataclass(frozen=True)
class MealAnalysis:
    """Result of analyzing one meal photo."""

    foods: list[AnalyzedFood]
    totals: NutritionProfile
    confidence: float
    notes: str | None = None


@dataclass(frozen=True)
class MealFoodRecord:
    """Stored food row belonging to a meal."""

    fdc_id: int | None
    name: str
    quantity: float
    unit: str
    grams: float
    nutrition: NutritionProfile | None = None


@dataclass(frozen=True)
class MealRecord:
    """Stored meal with its totals."""

    id: str
    image_url: str
    description: str
    logged_at: datetime
    totals: NutritionProfile
    confidence: float | None = None
    foods: tuple[MealFoodRecord, ...] = ()
