"""Supabase repository for meals."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from mealscan.domain.meals import MealFoodRecord, MealRecord
from mealscan.domain.nutrition import NutritionProfile
from mealscan.services.meals import MealRepository

_MEAL_COLUMNS = (
    "id, image_url, description, confidence, calories, protein, carbs, fat, "
    "fiber, sugar, sodium, timestamp"
)
_FOOD_COLUMNS = (
    "fdc_id, name, quantity, unit, grams, calories, protein, carbs, fat, "
    "fiber, sugar, sodium"
)


@dataclass
class SupabaseMealRepository(MealRepository):
    """Supabase implementation for meals and their foods."""

    client: Client

    def create_meal(  # noqa: PLR0913
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
        response = (
            self.client.table("meals")
            .insert(
                {
                    "image_url": image_url,
                    "description": description,
                    "ai_analysis": analysis,
                    "confidence": confidence,
                    **_nutrition_columns(totals),
                    "timestamp": logged_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create meal")
        return str(response.data[0]["id"])

    def create_meal_foods(self, meal_id: str, foods: list[MealFoodRecord]) -> None:
        """Insert every food row in one request."""
        payload = [
            {
                "meal_id": meal_id,
                "fdc_id": food.fdc_id,
                "name": food.name,
                "quantity": food.quantity,
                "unit": food.unit,
                "grams": food.grams,
                **_nutrition_columns(food.nutrition),
            }
            for food in foods
        ]
        if payload:
            self.client.table("meal_food_items").insert(payload).execute()

    def get_meal(self, meal_id: str) -> MealRecord | None:
        """Return a meal with its foods."""
        response = (
            self.client.table("meals")
            .select(_MEAL_COLUMNS)
            .eq("id", meal_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        foods_response = (
            self.client.table("meal_food_items")
            .select(_FOOD_COLUMNS)
            .eq("meal_id", meal_id)
            .execute()
        )
        foods = tuple(_parse_food(row) for row in foods_response.data or [])
        return _parse_meal(response.data[0], foods)

    def update_meal(
        self, meal_id: str, description: str, totals: NutritionProfile
    ) -> None:
        """Update a meal's description and totals."""
        self.client.table("meals").update(
            {
                "description": description,
                **_nutrition_columns(totals),
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).eq("id", meal_id).execute()

    def delete_meal(self, meal_id: str) -> None:
        """Delete a meal after its food rows."""
        self.client.table("meal_food_items").delete().eq("meal_id", meal_id).execute()
        self.client.table("meals").delete().eq("id", meal_id).execute()

    def list_meals(
        self,
        start: datetime | None,
        end: datetime | None,
        limit: int,
        offset: int,
    ) -> list[MealRecord]:
        """Return meals newest first; foods are not loaded."""
        query = self.client.table("meals").select(_MEAL_COLUMNS)
        if start is not None:
            query = query.gte("timestamp", start.isoformat())
        if end is not None:
            query = query.lt("timestamp", end.isoformat())
        response = (
            query.order("timestamp", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [_parse_meal(row, ()) for row in response.data or []]


def _optional_float(value: object) -> float | None:
    return float(value) if isinstance(value, int | float) else None


def _nutrition_columns(profile: NutritionProfile | None) -> dict[str, object]:
    if profile is None:
        return dict.fromkeys(
            ("calories", "protein", "carbs", "fat", "fiber", "sugar", "sodium")
        )
    return {
        "calories": profile.calories,
        "protein": profile.protein_g,
        "carbs": profile.carbs_g,
        "fat": profile.fat_g,
        "fiber": profile.fiber_g,
        "sugar": profile.sugar_g,
        "sodium": profile.sodium_mg,
    }


def _parse_nutrition(row: dict[str, object]) -> NutritionProfile:
    return NutritionProfile(
        calories=float(row.get("calories") or 0.0),
        protein_g=float(row.get("protein") or 0.0),
        carbs_g=float(row.get("carbs") or 0.0),
        fat_g=float(row.get("fat") or 0.0),
        fiber_g=_optional_float(row.get("fiber")),
        sugar_g=_optional_float(row.get("sugar")),
        sodium_mg=_optional_float(row.get("sodium")),
    )


def _parse_meal(
    row: dict[str, object], foods: tuple[MealFoodRecord, ...]
) -> MealRecord:
    return MealRecord(
        id=str(row["id"]),
        image_url=str(row.get("image_url", "")),
        description=str(row.get("description") or ""),
        logged_at=datetime.fromisoformat(str(row["timestamp"])),
        totals=_parse_nutrition(row),
        confidence=_optional_float(row.get("confidence")),
        foods=foods,
    )


def _parse_food(row: dict[str, object]) -> MealFoodRecord:
    fdc_id = row.get("fdc_id")
    return MealFoodRecord(
        fdc_id=int(fdc_id) if fdc_id is not None else None,
        name=str(row.get("name", "")),
        quantity=float(row.get("quantity") or 0.0),
        unit=str(row.get("unit", "")),
        grams=float(row.get("grams") or 0.0),
        nutrition=_parse_nutrition(row) if row.get("calories") is not None else None,
    )
