"""Nutrition catalog service integrating USDA FDC."""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mealscan.adapters.fdc_client import FdcClient
from mealscan.domain.nutrition import (
    CatalogMatch,
    FoodDetails,
    FoodSummary,
    NutritionProfile,
)
from mealscan.services.cache import Cache

NUTRIENT_IDS = {
    "calories": 1008,
    "protein": 1003,
    "carbs": 1005,
    "fat": 1004,
    "fiber": 1079,
    "sugar": 2000,
    "sodium": 1093,
}
_FIELDS_BY_NUTRIENT_ID = {
    nutrient_id: name for name, nutrient_id in NUTRIENT_IDS.items()
}

_logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


@dataclass
class NutritionService:
    """Catalog lookups with read-through caching."""

    fdc_client: FdcClient
    cache: Cache
    search_ttl_seconds: int = 3600
    food_ttl_seconds: int | None = None
    debug: bool = False
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3

    async def search(self, query: str, limit: int = 10) -> list[FoodSummary]:
        """Search FDC foods with caching.

        Profiles embedded in the search payload are cached per food so a later
        lookup does not need a detail request.
        """
        cache_key = f"fdc:search:{query.lower()}:{limit}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            return cached

        payload = await self._call_with_retry(
            lambda: self.fdc_client.search_foods(query, page_size=limit),
            action="search",
        )
        foods = []
        for food in payload.get("foods", []):
            summary = _parse_summary(food)
            nutrients = food.get("foodNutrients")
            if nutrients:
                self.cache.set(
                    _profile_key(summary.fdc_id),
                    extract_profile(nutrients),
                    ttl_seconds=self.food_ttl_seconds,
                )
            foods.append(summary)
        self.cache.set(cache_key, foods, ttl_seconds=self.search_ttl_seconds)
        if self.debug:
            _logger.info("Nutrition search FDC: query=%s results=%s", query, len(foods))
        return foods

    async def get_food(self, fdc_id: int) -> FoodDetails:
        """Retrieve food details with a per-100g profile from FDC."""
        cache_key = f"fdc:food:{fdc_id}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, FoodDetails):
            return cached

        payload = await self._call_with_retry(
            lambda: self.fdc_client.get_food(fdc_id),
            action=f"get_food:{fdc_id}",
        )
        details = FoodDetails(
            summary=_parse_summary(payload),
            profile=extract_profile(payload.get("foodNutrients", [])),
            serving_size=payload.get("servingSize"),
            serving_size_unit=payload.get("servingSizeUnit"),
        )
        self.cache.set(cache_key, details, ttl_seconds=self.food_ttl_seconds)
        self.cache.set(
            _profile_key(fdc_id), details.profile, ttl_seconds=self.food_ttl_seconds
        )
        if self.debug:
            _logger.info("Nutrition food FDC: fdc_id=%s", fdc_id)
        return details

    async def lookup_profile(self, name: str) -> CatalogMatch | None:
        """Return the top catalog hit for a food name, or None if nothing matches."""
        results = await self.search(name, limit=1)
        if not results:
            return None
        summary = results[0]
        profile = self.cache.get(_profile_key(summary.fdc_id))
        if not isinstance(profile, NutritionProfile):
            profile = (await self.get_food(summary.fdc_id)).profile
        return CatalogMatch(summary=summary, profile=profile)

    async def _call_with_retry(
        self, func: "Callable[[], Awaitable[dict[str, object]]]", *, action: str
    ) -> dict[str, object]:
        """Call an async function with a short retry."""
        attempt = 0
        while True:
            try:
                return await func()
            except Exception as exc:
                attempt += 1
                if self.debug:
                    _logger.warning(
                        "Nutrition %s failed (attempt %s/%s, status=%s): %s",
                        action,
                        attempt,
                        self.retry_attempts + 1,
                        _status_code_from_exception(exc),
                        exc,
                    )
                if attempt > self.retry_attempts:
                    raise
                await asyncio.sleep(self.retry_delay_seconds)


def extract_profile(food_nutrients: list[dict[str, object]]) -> NutritionProfile:
    """Build a per-100g profile from FDC nutrient rows.

    Search results carry ``nutrientId``/``value`` while food details carry a
    nested ``nutrient.id`` with ``amount``; both shapes are accepted.
    """
    values: dict[str, float] = {}
    for nutrient in food_nutrients:
        nutrient_info = nutrient.get("nutrient") or {}
        nutrient_id = nutrient_info.get("id") or nutrient.get("nutrientId")
        amount = nutrient.get("amount", nutrient.get("value"))
        name = _FIELDS_BY_NUTRIENT_ID.get(nutrient_id)
        if name is None or not isinstance(amount, int | float):
            continue
        values[name] = float(amount)

    return NutritionProfile(
        calories=values.get("calories", 0.0),
        protein_g=values.get("protein", 0.0),
        carbs_g=values.get("carbs", 0.0),
        fat_g=values.get("fat", 0.0),
        fiber_g=values.get("fiber"),
        sugar_g=values.get("sugar"),
        sodium_mg=values.get("sodium"),
    )


def _parse_summary(food: dict[str, object]) -> FoodSummary:
    return FoodSummary(
        fdc_id=int(food["fdcId"]),
        description=str(food.get("description", "")),
        brand_owner=food.get("brandOwner"),
        data_type=food.get("dataType"),
    )


def _profile_key(fdc_id: int) -> str:
    return f"fdc:profile:{fdc_id}"


def _status_code_from_exception(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"
