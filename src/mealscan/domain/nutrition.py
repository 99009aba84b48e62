"""Nutrition domain models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class NutritionProfile:
    """Nutrient values for either a 100 g reference amount or an actual serving.

    Optional nutrients are ``None`` when unknown, which is distinct from a
    measured zero.
    """

    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
    fiber_g: float | None = None
    sugar_g: float | None = None
    sodium_mg: float | None = None


@dataclass(frozen=True)
class MacroPercentages:
    """Share of calories contributed by each macronutrient."""

    protein_percent: int
    carbs_percent: int
    fat_percent: int


@dataclass(frozen=True)
class GramEstimate:
    """Gram weight with a flag telling whether a fallback produced it."""

    grams: float
    estimated: bool


@dataclass(frozen=True)
class ServingDescriptor:
    """Quantity and unit as reported, with the derived gram weight."""

    quantity: float
    unit: str
    grams: float
    estimated: bool = False


@dataclass(frozen=True)
class DetectedFood:
    """A food identified in a meal photo."""

    name: str
    serving: ServingDescriptor
    confidence: float


@dataclass(frozen=True)
class FoodSummary:
    """Summary information about a food from FDC."""

    fdc_id: int
    description: str
    brand_owner: str | None
    data_type: str | None


@dataclass(frozen=True)
class FoodDetails:
    """Full food details with a per-100g profile."""

    summary: FoodSummary
    profile: NutritionProfile
    serving_size: float | None
    serving_size_unit: str | None


@dataclass(frozen=True)
class CatalogMatch:
    """Best catalog hit for a free-text food name."""

    summary: FoodSummary
    profile: NutritionProfile
