"""Unit conversion and nutrition arithmetic.

Every function in this module is pure and total: unrecognized input degrades
to a default estimate instead of raising.
"""

import logging
import math
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType

from mealscan.domain.nutrition import (
    GramEstimate,
    MacroPercentages,
    NutritionProfile,
    ServingDescriptor,
)

_logger = logging.getLogger(__name__)

DEFAULT_GRAMS_PER_UNIT = 100.0
REFERENCE_GRAMS = 100.0
# Floats this large carry no fractional digits worth rounding.
MAX_ROUNDED_MAGNITUDE = 1e15

SERVING_CONVERSIONS = MappingProxyType(
    {
        # volume
        "cup": 240.0,
        "fl oz": 30.0,
        "tablespoon": 15.0,
        "tbsp": 15.0,
        "teaspoon": 5.0,
        "tsp": 5.0,
        # weight
        "g": 1.0,
        "gram": 1.0,
        "kg": 1000.0,
        "kilogram": 1000.0,
        "oz": 28.35,
        "ounce": 28.35,
        "lb": 453.59,
        "pound": 453.59,
        # informal counts
        "piece": 100.0,
        "slice": 30.0,
        "serving": 100.0,
        "whole": 150.0,
        "medium": 120.0,
        "large": 180.0,
        "small": 80.0,
    }
)

# First match wins, so order matters.
DESCRIPTION_KEYWORDS: tuple[tuple[tuple[str, ...], float], ...] = (
    (("whole", "entire"), 150.0),
    (("slice",), 30.0),
    (("piece", "chunk"), 100.0),
    (("cup",), 240.0),
    (("tablespoon", "tbsp"), 15.0),
    (("teaspoon", "tsp"), 5.0),
)

ATWATER_PROTEIN = 4
ATWATER_CARBS = 4
ATWATER_FAT = 9


def normalize_unit(unit: str) -> str:
    """Lowercase a unit label and collapse its whitespace."""
    return " ".join(unit.lower().split())


def resolve_grams(quantity: float, unit: str) -> GramEstimate:
    """Convert a quantity to grams, reporting whether a fallback was used."""
    if not math.isfinite(quantity) or quantity <= 0:
        return GramEstimate(grams=0.0, estimated=quantity != 0)

    normalized = normalize_unit(unit)
    factor = SERVING_CONVERSIONS.get(normalized)
    if factor is None and normalized.endswith("s"):
        factor = SERVING_CONVERSIONS.get(normalized[:-1])
    if factor is not None:
        return GramEstimate(grams=quantity * factor, estimated=False)

    _logger.debug(
        "Unknown serving unit %r, assuming %sg per unit", unit, DEFAULT_GRAMS_PER_UNIT
    )
    return GramEstimate(grams=quantity * DEFAULT_GRAMS_PER_UNIT, estimated=True)


def convert_to_grams(quantity: float, unit: str) -> float:
    """Convert a quantity in a free-text unit to grams."""
    return resolve_grams(quantity, unit).grams


def describe_serving(quantity: float, unit: str) -> ServingDescriptor:
    """Build a serving descriptor with its gram weight derived once."""
    estimate = resolve_grams(quantity, unit)
    return ServingDescriptor(
        quantity=quantity,
        unit=unit,
        grams=estimate.grams,
        estimated=estimate.estimated,
    )


def estimate_grams_from_description(description: str, quantity: float) -> float:
    """Guess grams from keywords in a description when no unit is known."""
    lowered = description.lower()
    for keywords, grams_per_unit in DESCRIPTION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return quantity * grams_per_unit
    return quantity * DEFAULT_GRAMS_PER_UNIT


def calculate_nutrition_for_serving(
    profile: NutritionProfile, grams: float
) -> NutritionProfile:
    """Scale a per-100g profile to the given serving weight."""
    factor = grams / REFERENCE_GRAMS
    return NutritionProfile(
        calories=profile.calories * factor,
        protein_g=profile.protein_g * factor,
        carbs_g=profile.carbs_g * factor,
        fat_g=profile.fat_g * factor,
        fiber_g=_scale_optional(profile.fiber_g, factor),
        sugar_g=_scale_optional(profile.sugar_g, factor),
        sodium_mg=_scale_optional(profile.sodium_mg, factor),
    )


def calculate_total_nutrition(
    entries: Iterable[tuple[NutritionProfile, float]],
) -> NutritionProfile:
    """Sum per-serving nutrition for (per-100g profile, grams) entries."""
    return _sum_and_round(
        calculate_nutrition_for_serving(profile, grams) for profile, grams in entries
    )


def calculate_daily_totals(meals: Iterable[NutritionProfile]) -> NutritionProfile:
    """Sum already computed meal totals into a single rounded profile."""
    return _sum_and_round(meals)


def calculate_macro_percentages(profile: NutritionProfile) -> MacroPercentages:
    """Return the percent of calories from protein, carbs and fat."""
    total_calories = profile.calories or 1
    return MacroPercentages(
        protein_percent=_percent(profile.protein_g * ATWATER_PROTEIN, total_calories),
        carbs_percent=_percent(profile.carbs_g * ATWATER_CARBS, total_calories),
        fat_percent=_percent(profile.fat_g * ATWATER_FAT, total_calories),
    )


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going away from zero."""
    if not math.isfinite(value) or abs(value) >= MAX_ROUNDED_MAGNITUDE:
        return value
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _percent(part_calories: float, total_calories: float) -> int:
    return int(round_half_up(part_calories / total_calories * 100))


def _scale_optional(value: float | None, factor: float) -> float | None:
    if value is None:
        return None
    return value * factor


def _sum_and_round(profiles: Iterable[NutritionProfile]) -> NutritionProfile:
    calories = protein = carbs = fat = fiber = sugar = sodium = 0.0
    for profile in profiles:
        calories += profile.calories
        protein += profile.protein_g
        carbs += profile.carbs_g
        fat += profile.fat_g
        fiber += profile.fiber_g or 0.0
        sugar += profile.sugar_g or 0.0
        sodium += profile.sodium_mg or 0.0

    return NutritionProfile(
        calories=round_half_up(calories),
        protein_g=round_half_up(protein, 1),
        carbs_g=round_half_up(carbs, 1),
        fat_g=round_half_up(fat, 1),
        fiber_g=round_half_up(fiber, 1) if fiber > 0 else None,
        sugar_g=round_half_up(sugar, 1) if sugar > 0 else None,
        sodium_mg=round_half_up(sodium) if sodium > 0 else None,
    )
