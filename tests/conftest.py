"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from mealscan.adapters.fdc_client import FdcClient
from mealscan.config import Settings
from mealscan.containers import AppContainer
from mealscan.domain.evaluation import BenchmarkItem, EvaluationRun
from mealscan.domain.meals import MealFoodRecord, MealRecord
from mealscan.domain.nutrition import NutritionProfile
from mealscan.services.benchmark import BenchmarkRepository, BenchmarkService
from mealscan.services.cache import InMemoryCache
from mealscan.services.evaluation import EvaluationRunRepository, EvaluationService
from mealscan.services.meals import MealAnalysisService, MealLogService, MealRepository
from mealscan.services.nutrition import NutritionService
from mealscan.services.stats import StatsService
from mealscan.services.vision import VisionClient, VisionService

CHICKEN_FOOD: dict[str, object] = {
    "fdcId": 171077,
    "description": "Chicken, broiler, breast, grilled",
    "dataType": "SR Legacy",
    "foodNutrients": [
        {"nutrientId": 1008, "value": 165},
        {"nutrientId": 1003, "value": 31},
        {"nutrientId": 1005, "value": 0},
        {"nutrientId": 1004, "value": 3.6},
        {"nutrientId": 1093, "value": 74},
    ],
}

RICE_FOOD: dict[str, object] = {
    "fdcId": 168878,
    "description": "Rice, white, long-grain, cooked",
    "dataType": "SR Legacy",
    "foodNutrients": [
        {"nutrientId": 1008, "value": 130},
        {"nutrientId": 1003, "value": 2.7},
        {"nutrientId": 1005, "value": 28.2},
        {"nutrientId": 1004, "value": 0.3},
        {"nutrientId": 1079, "value": 0.4},
    ],
}

CHICKEN_AND_RICE_DETECTION: dict[str, object] = {
    "foods": [
        {"name": "grilled chicken", "quantity": 6, "unit": "oz", "confidence": 0.9},
        {"name": "rice", "quantity": 1, "unit": "cup", "confidence": 0.8},
    ],
    "overall_confidence": 0.85,
    "notes": "dinner plate",
}

CHICKEN_RICE_BROCCOLI_TRUTH: dict[str, object] = {
    "foods": [
        {
            "name": "grilled chicken breast",
            "quantity": 6,
            "unit": "oz",
            "calories": 280,
            "protein": 53,
            "carbs": 0,
            "fat": 6,
        },
        {
            "name": "brown rice",
            "quantity": 1,
            "unit": "cup",
            "calories": 312,
            "protein": 6.5,
            "carbs": 68,
            "fat": 0.7,
        },
        {
            "name": "broccoli",
            "quantity": 1,
            "unit": "cup",
            "calories": 55,
            "protein": 3.7,
            "carbs": 11,
            "fat": 0.6,
        },
    ],
    "totalCalories": 647,
    "totalProtein": 63.2,
    "totalCarbs": 79,
    "totalFat": 7.3,
}


@dataclass
class FakeVisionClient(VisionClient):
    """Fake vision client returning a fixed payload."""

    payload: dict[str, object] = field(
        default_factory=lambda: dict(CHICKEN_AND_RICE_DETECTION)
    )
    fail_urls: set[str] = field(default_factory=set)
    seen_urls: list[str] = field(default_factory=list)

    async def extract(
        self,
        *,
        model: str,
        store: bool,
        image_url: str,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        self.seen_urls.append(image_url)
        if image_url in self.fail_urls:
            raise RuntimeError("vision model unavailable")
        return self.payload


@dataclass
class FakeFdcClient(FdcClient):
    """Fake FDC client matching queries by keyword."""

    foods: dict[str, dict[str, object]] = field(
        default_factory=lambda: {"chicken": CHICKEN_FOOD, "rice": RICE_FOOD}
    )
    fail_queries: set[str] = field(default_factory=set)
    search_calls: int = 0
    food_calls: int = 0

    async def search_foods(
        self, query: str, page_size: int = 10, data_types: list[str] | None = None
    ) -> dict[str, object]:
        self.search_calls += 1
        if query in self.fail_queries:
            raise RuntimeError("FDC unavailable")
        lowered = query.lower()
        matches = [food for key, food in self.foods.items() if key in lowered]
        return {"totalHits": len(matches), "foods": matches[:page_size]}

    async def get_food(self, fdc_id: int) -> dict[str, object]:
        self.food_calls += 1
        for food in self.foods.values():
            if food["fdcId"] == fdc_id:
                return food
        raise RuntimeError(f"food {fdc_id} not found")


@dataclass
class InMemoryMealRepository(MealRepository):
    """In-memory meal repository for tests."""

    meals: dict[str, MealRecord] = field(default_factory=dict)
    analyses: dict[str, dict[str, object] | None] = field(default_factory=dict)
    food_inserts: list[tuple[str, list[MealFoodRecord]]] = field(default_factory=list)

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
        meal_id = str(uuid4())
        self.meals[meal_id] = MealRecord(
            id=meal_id,
            image_url=image_url,
            description=description,
            logged_at=logged_at,
            totals=totals,
            confidence=confidence,
        )
        self.analyses[meal_id] = analysis
        return meal_id

    def create_meal_foods(self, meal_id: str, foods: list[MealFoodRecord]) -> None:
        self.food_inserts.append((meal_id, foods))
        meal = self.meals[meal_id]
        self.meals[meal_id] = MealRecord(
            id=meal.id,
            image_url=meal.image_url,
            description=meal.description,
            logged_at=meal.logged_at,
            totals=meal.totals,
            confidence=meal.confidence,
            foods=meal.foods + tuple(foods),
        )

    def get_meal(self, meal_id: str) -> MealRecord | None:
        return self.meals.get(meal_id)

    def update_meal(
        self, meal_id: str, description: str, totals: NutritionProfile
    ) -> None:
        meal = self.meals[meal_id]
        self.meals[meal_id] = MealRecord(
            id=meal.id,
            image_url=meal.image_url,
            description=description,
            logged_at=meal.logged_at,
            totals=totals,
            confidence=meal.confidence,
            foods=meal.foods,
        )

    def delete_meal(self, meal_id: str) -> None:
        self.meals.pop(meal_id, None)
        self.analyses.pop(meal_id, None)

    def list_meals(self, start, end, limit: int, offset: int) -> list[MealRecord]:
        meals = [
            meal
            for meal in self.meals.values()
            if (start is None or meal.logged_at >= start)
            and (end is None or meal.logged_at < end)
        ]
        meals.sort(key=lambda meal: meal.logged_at, reverse=True)
        return meals[offset : offset + limit]

    def add(self, logged_at: datetime, totals: NutritionProfile) -> MealRecord:
        meal_id = str(uuid4())
        meal = MealRecord(
            id=meal_id,
            image_url=f"https://images.test/{meal_id}.jpg",
            description="meal",
            logged_at=logged_at,
            totals=totals,
        )
        self.meals[meal_id] = meal
        return meal


@dataclass
class InMemoryBenchmarkRepository(BenchmarkRepository):
    """In-memory benchmark repository for tests."""

    items: list[BenchmarkItem] = field(default_factory=list)

    def create_item(self, item: BenchmarkItem) -> str:
        item_id = str(uuid4())
        self.items.append(
            item.model_copy(update={"id": item_id, "created_at": datetime.now(tz=UTC)})
        )
        return item_id

    def list_items(
        self, ids: list[str] | None, limit: int | None
    ) -> list[BenchmarkItem]:
        items = [item for item in self.items if ids is None or item.id in ids]
        return items[:limit] if limit is not None else items

    def delete_item(self, item_id: str) -> None:
        self.items = [item for item in self.items if item.id != item_id]

    def delete_all(self) -> int:
        count = len(self.items)
        self.items = []
        return count


@dataclass
class InMemoryEvaluationRunRepository(EvaluationRunRepository):
    """In-memory evaluation run repository for tests."""

    runs: list[EvaluationRun] = field(default_factory=list)

    def create_run(self, run: EvaluationRun) -> str:
        run_id = str(uuid4())
        self.runs.append(run)
        return run_id

    def list_runs(self, limit: int) -> list[EvaluationRun]:
        return list(reversed(self.runs))[:limit]


def make_nutrition_service(fdc_client: FdcClient | None = None) -> NutritionService:
    return NutritionService(
        fdc_client=fdc_client or FakeFdcClient(),
        cache=InMemoryCache(),
        retry_delay_seconds=0,
    )


def make_vision_service(client: VisionClient | None = None) -> VisionService:
    return VisionService(client=client or FakeVisionClient(), model="gpt-4o")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        fdc_api_key="fdc-key",
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
    )


@pytest.fixture
def container(settings: Settings) -> AppContainer:
    vision_service = make_vision_service()
    nutrition_service = make_nutrition_service()
    meal_repository = InMemoryMealRepository()
    benchmark_repository = InMemoryBenchmarkRepository()
    evaluation_service = EvaluationService(
        vision_service=vision_service,
        nutrition_service=nutrition_service,
        benchmark_repository=benchmark_repository,
        run_repository=InMemoryEvaluationRunRepository(),
        model_version=settings.resolved_model_version,
        prompt_version=settings.prompt_version,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        vision_service=vision_service,
        nutrition_service=nutrition_service,
        meal_analysis_service=MealAnalysisService(
            vision_service=vision_service,
            nutrition_service=nutrition_service,
        ),
        meal_log_service=MealLogService(meal_repository),
        stats_service=StatsService(meal_repository),
        benchmark_service=BenchmarkService(benchmark_repository),
        evaluation_service=evaluation_service,
        close_resources=close_resources,
    )
