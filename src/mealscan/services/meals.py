"""Meal analysis and logging services."""

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Protocol

from mealscan.domain.meals import AnalyzedFood, MealAnalysis, MealFoodRecord, MealRecord
from mealscan.domain.nutrition import DetectedFood, NutritionProfile
from mealscan.services.calculator import (
    calculate_daily_totals,
    calculate_nutrition_for_serving,
)
from mealscan.services.nutrition import NutritionService
from mealscan.services.vision import VisionService

# Per-serving stand-in for foods the catalog cannot resolve.
PLACEHOLDER_SERVING_NUTRITION = NutritionProfile(
    calories=100.0,
    protein_g=5.0,
    carbs_g=15.0,
    fat_g=3.0,
    fiber_g=1.0,
    sugar_g=2.0,
    sodium_mg=100.0,
)

_logger = logging.getLogger(__name__)


class MealRepository(Protocol):
    """Persistence interface for meals."""

    def create_meal(
        self,
        *,
        image_url: str,
        description: str,
        logged_at: datetime,
        totals: NutritionProfile,
        confidence: float | None,
        analysis: dict[str, object] | None,
    ) -> str:
        """Create a meal row and return its id."""

    def create_meal_foods(self, meal_id: str, foods: list[MealFoodRecord]) -> None:
        """Insert all food rows of a meal at once."""

    def get_meal(self, meal_id: str) -> MealRecord | None:
        """Return a meal with its foods."""

    def update_meal(
        self, meal_id: str, description: str, totals: NutritionProfile
    ) -> None:
        """Overwrite a meal's description and totals."""

    def delete_meal(self, meal_id: str) -> None:
        """Delete a meal and its food rows."""

    def list_meals(
        self,
        start: datetime | None,
        end: datetime | None,
        limit: int,
        offset: int,
    ) -> list[MealRecord]:
        """Return meals newest first, optionally within a time range."""


async def resolve_food(
    nutrition_service: NutritionService, food: DetectedFood
) -> AnalyzedFood | None:
    """Look up a detected food in the catalog and scale it to its serving.

    Returns None when the catalog has no match; lookup errors propagate.
    """
    match = await nutrition_service.lookup_profile(food.name)
    if match is None:
        return None
    return AnalyzedFood(
        name=food.name,
        serving=food.serving,
        confidence=food.confidence,
        nutrition=calculate_nutrition_for_serving(match.profile, food.serving.grams),
        fdc_id=match.summary.fdc_id,
        description=match.summary.description,
        data_type=match.summary.data_type,
        profile=match.profile,
    )


@dataclass
class MealAnalysisService:
    """Detects foods in a photo and attaches catalog nutrition."""

    vision_service: VisionService
    nutrition_service: NutritionService

    async def analyze(
        self, *, image_url: str | None = None, image_bytes: bytes | None = None
    ) -> MealAnalysis:
        """Analyze a meal photo; unresolved foods get placeholder nutrition."""
        detection = await self.vision_service.detect(
            image_url=image_url, image_bytes=image_bytes
        )
        foods = list(
            await asyncio.gather(
                *(self._analyze_food(food) for food in detection.foods)
            )
        )
        totals = calculate_daily_totals(
            food.nutrition for food in foods if food.nutrition is not None
        )
        return MealAnalysis(
            foods=foods,
            totals=totals,
            confidence=detection.confidence,
            notes=detection.notes,
        )

    async def _analyze_food(self, food: DetectedFood) -> AnalyzedFood:
        try:
            analyzed = await resolve_food(self.nutrition_service, food)
        except Exception:
            _logger.exception("Nutrition lookup failed for %r", food.name)
            analyzed = None
        if analyzed is not None:
            return analyzed
        _logger.info("Using placeholder nutrition for %r", food.name)
        return AnalyzedFood(
            name=food.name,
            serving=food.serving,
            confidence=food.confidence,
            nutrition=PLACEHOLDER_SERVING_NUTRITION,
            placeholder=True,
        )


@dataclass
class MealLogService:
    """Persists analyzed meals and reads them back."""

    repository: MealRepository

    def save_meal(
        self,
        analysis: MealAnalysis,
        image_url: str,
        description: str | None = None,
    ) -> MealRecord:
        """Store a meal and its foods.

        The meal row is removed again when its foods cannot be inserted.
        """
        logged_at = datetime.now(tz=UTC)
        resolved_description = description or ", ".join(
            food.name for food in analysis.foods
        )
        foods = [
            MealFoodRecord(
                fdc_id=food.fdc_id,
                name=food.name,
                quantity=food.serving.quantity,
                unit=food.serving.unit,
                grams=food.serving.grams,
                nutrition=food.nutrition,
            )
            for food in analysis.foods
        ]
        meal_id = self.repository.create_meal(
            image_url=image_url,
            description=resolved_description,
            logged_at=logged_at,
            totals=analysis.totals,
            confidence=analysis.confidence,
            analysis=_serialize_analysis(analysis),
        )
        if foods:
            try:
                self.repository.create_meal_foods(meal_id, foods)
            except Exception:
                _logger.warning("Removing meal %s after failed food insert", meal_id)
                self.repository.delete_meal(meal_id)
                raise
        return MealRecord(
            id=meal_id,
            image_url=image_url,
            description=resolved_description,
            logged_at=logged_at,
            totals=analysis.totals,
            confidence=analysis.confidence,
            foods=tuple(foods),
        )

    def get_meal(self, meal_id: str) -> MealRecord | None:
        """Return a meal by id."""
        return self.repository.get_meal(meal_id)

    def update_meal(
        self,
        meal_id: str,
        *,
        description: str | None = None,
        totals: NutritionProfile | None = None,
    ) -> MealRecord | None:
        """Change a meal's description or totals; None when it does not exist."""
        meal = self.repository.get_meal(meal_id)
        if meal is None:
            return None
        self.repository.update_meal(
            meal_id,
            description if description is not None else meal.description,
            totals if totals is not None else meal.totals,
        )
        return self.repository.get_meal(meal_id)

    def delete_meal(self, meal_id: str) -> bool:
        """Delete a meal with its foods; False when it does not exist."""
        if self.repository.get_meal(meal_id) is None:
            return False
        self.repository.delete_meal(meal_id)
        return True

    def list_meals(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[MealRecord]:
        """Return meals newest first; ``limit`` is capped at 100."""
        return self.repository.list_meals(start, end, min(limit, 100), offset)


def _serialize_analysis(analysis: MealAnalysis) -> dict[str, object]:
    return {
        "confidence": analysis.confidence,
        "notes": analysis.notes,
        "foods": [
            {
                "name": food.name,
                "quantity": food.serving.quantity,
                "unit": food.serving.unit,
                "grams": food.serving.grams,
                "estimated": food.serving.estimated,
                "confidence": food.confidence,
                "fdc_id": food.fdc_id,
                "placeholder": food.placeholder,
                "nutrition": asdict(food.nutrition) if food.nutrition else None,
            }
            for food in analysis.foods
        ],
    }
