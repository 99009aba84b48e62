"""Tests for Supabase adapter implementations."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from mealscan.adapters.supabase_benchmark_repository import SupabaseBenchmarkRepository
from mealscan.adapters.supabase_evaluation_repository import (
    SupabaseEvaluationRunRepository,
)
from mealscan.adapters.supabase_meal_repository import SupabaseMealRepository
from mealscan.domain.evaluation import (
    AggregatedMetrics,
    BenchmarkItem,
    EvaluationMetrics,
    EvaluationResult,
    EvaluationRun,
    GroundTruth,
)
from mealscan.domain.meals import MealFoodRecord
from mealscan.domain.nutrition import NutritionProfile
from mealscan.services.evaluation import EvaluationService
from tests.conftest import (
    CHICKEN_RICE_BROCCOLI_TRUTH,
    InMemoryEvaluationRunRepository,
    make_nutrition_service,
    make_vision_service,
)


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "insert": [], "update": [], "delete": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    last_range: tuple[int, int] | None = None

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "update"
        self.last_payload = payload
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def neq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def in_(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def range(self, start: int, end: int) -> "FakeTable":
        self.last_range = (start, end)
        return self

    def order(self, _column: str, desc: bool = False) -> "FakeTable":
        return self

    def gte(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def lt(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def _meal_row(meal_id: str) -> dict[str, object]:
    return {
        "id": meal_id,
        "image_url": "https://images.test/meal.jpg",
        "description": "grilled chicken, rice",
        "confidence": 0.85,
        "calories": 593,
        "protein": 59.2,
        "carbs": 67.7,
        "fat": 6.8,
        "fiber": 1.0,
        "sugar": None,
        "sodium": 126,
        "timestamp": "2024-05-01T18:30:00+00:00",
    }


def test_supabase_benchmark_repository_create_uses_aliases() -> None:
    client = FakeSupabaseClient()
    table = client.table("benchmark_items")
    item_id = str(uuid4())
    table.queue("insert", [{"id": item_id}])

    repository = SupabaseBenchmarkRepository(client)
    created = repository.create_item(
        BenchmarkItem.model_validate(
            {
                "imageUrl": "https://images.test/dinner.jpg",
                "groundTruth": CHICKEN_RICE_BROCCOLI_TRUTH,
                "metadata": {"mealType": "dinner"},
            }
        )
    )

    assert created == item_id
    assert isinstance(table.last_payload, dict)
    assert table.last_payload["ground_truth"]["totalCalories"] == 647
    assert table.last_payload["metadata"] == {"mealType": "dinner"}


def test_supabase_benchmark_repository_parses_rows() -> None:
    client = FakeSupabaseClient()
    table = client.table("benchmark_items")
    item_id = str(uuid4())
    table.queue(
        "select",
        [
            {
                "id": item_id,
                "image_url": "https://images.test/dinner.jpg",
                "ground_truth": json.dumps(CHICKEN_RICE_BROCCOLI_TRUTH),
                "metadata": None,
                "created_at": "2024-05-01T10:00:00+00:00",
            }
        ],
    )

    repository = SupabaseBenchmarkRepository(client)
    items = repository.list_items([item_id], limit=None)

    assert items[0].id == item_id
    assert items[0].ground_truth.total_calories == 647
    assert items[0].created_at == datetime(2024, 5, 1, 10, tzinfo=UTC)
    assert ("id", [item_id]) in table.last_filters


def test_stored_items_with_inconsistent_totals_are_still_scored() -> None:
    client = FakeSupabaseClient()
    rows = [
        {
            "id": str(uuid4()),
            "image_url": f"https://images.test/{name}.jpg",
            "ground_truth": truth,
            "metadata": {"source": "nutrition5k", "dishId": name},
            "created_at": "2024-05-01T10:00:00+00:00",
        }
        for name, truth in (
            ("good", CHICKEN_RICE_BROCCOLI_TRUTH),
            ("zero_carbs", dict(CHICKEN_RICE_BROCCOLI_TRUTH, totalCarbs=0)),
        )
    ]
    client.table("benchmark_items").queue("select", rows)
    runs = InMemoryEvaluationRunRepository()
    service = EvaluationService(
        vision_service=make_vision_service(),
        nutrition_service=make_nutrition_service(),
        benchmark_repository=SupabaseBenchmarkRepository(client),
        run_repository=runs,
        model_version="gpt-4o",
        prompt_version="1.0",
    )

    run = asyncio.run(service.run())

    good, zero_carbs = run.results
    assert good.errors == []
    assert zero_carbs.errors == []
    assert zero_carbs.ground_truth.total_carbs == 0
    assert zero_carbs.metrics.carbs_accuracy == 1.0
    assert good.metrics.f1_score == zero_carbs.metrics.f1_score
    assert runs.runs == [run]


def test_supabase_benchmark_repository_delete_all_counts_rows() -> None:
    client = FakeSupabaseClient()
    table = client.table("benchmark_items")
    table.queue("delete", [{"id": "a"}, {"id": "b"}])

    assert SupabaseBenchmarkRepository(client).delete_all() == 2


def test_supabase_evaluation_repository_roundtrip() -> None:
    client = FakeSupabaseClient()
    table = client.table("evaluation_runs")
    run_id = str(uuid4())
    table.queue("insert", [{"id": run_id}])
    metrics = EvaluationMetrics.failed()
    run = EvaluationRun(
        id=None,
        aggregated=AggregatedMetrics(
            metrics=metrics,
            total_items=1,
            average_confidence=0.0,
            model_version="gpt-4o",
            timestamp=datetime(2024, 5, 1, tzinfo=UTC),
        ),
        prompt_version="1.0",
        results=[
            EvaluationResult(
                image_url="https://images.test/dinner.jpg",
                ground_truth=GroundTruth.model_validate(CHICKEN_RICE_BROCCOLI_TRUTH),
                metrics=metrics,
                errors=["boom"],
            )
        ],
    )

    repository = SupabaseEvaluationRunRepository(client)
    created = repository.create_run(run)

    assert created == run_id
    payload = table.last_payload
    assert isinstance(payload, dict)
    assert payload["metrics"]["total_items"] == 1
    assert payload["metrics"]["avg_quantity_error"] == 1.0
    assert payload["results"][0]["errors"] == ["boom"]
    assert payload["results"][0]["foods"] is None

    table.queue(
        "select",
        [
            {
                "id": run_id,
                "model_version": "gpt-4o",
                "prompt_version": "1.0",
                "metrics": payload["metrics"],
                "timestamp": payload["timestamp"],
            }
        ],
    )
    (listed,) = repository.list_runs(limit=5)

    assert listed.id == run_id
    assert listed.aggregated.metrics == metrics
    assert listed.aggregated.total_items == 1
    assert listed.aggregated.timestamp == datetime(2024, 5, 1, tzinfo=UTC)
    assert listed.results == []


def test_supabase_evaluation_repository_parses_metrics_stored_as_text() -> None:
    client = FakeSupabaseClient()
    metrics = EvaluationMetrics.failed()
    client.table("evaluation_runs").queue(
        "select",
        [
            {
                "id": "run-1",
                "model_version": "gpt-4o",
                "prompt_version": None,
                "metrics": json.dumps(
                    {"precision": 0.0, "avg_quantity_error": 1.0, "total_items": 3}
                ),
                "timestamp": "2024-05-01T00:00:00+00:00",
            }
        ],
    )

    (listed,) = SupabaseEvaluationRunRepository(client).list_runs(limit=1)

    assert listed.aggregated.metrics == metrics
    assert listed.aggregated.total_items == 3


def test_supabase_meal_repository_create() -> None:
    client = FakeSupabaseClient()
    meals_table = client.table("meals")
    foods_table = client.table("meal_food_items")
    meal_id = str(uuid4())
    meals_table.queue("insert", [{"id": meal_id}])

    repository = SupabaseMealRepository(client)
    created = repository.create_meal(
        image_url="https://images.test/meal.jpg",
        description="rice",
        logged_at=datetime(2024, 5, 1, tzinfo=UTC),
        totals=NutritionProfile(calories=312, protein_g=6.5, carbs_g=67.7, fat_g=0.7),
        confidence=0.8,
        analysis={"foods": []},
    )
    repository.create_meal_foods(
        created,
        [
            MealFoodRecord(
                fdc_id=168878,
                name="rice",
                quantity=1,
                unit="cup",
                grams=240,
                nutrition=NutritionProfile(
                    calories=312, protein_g=6.5, carbs_g=67.7, fat_g=0.7
                ),
            ),
            MealFoodRecord(
                fdc_id=None, name="sauce", quantity=2, unit="tbsp", grams=30
            ),
        ],
    )

    assert created == meal_id
    assert isinstance(meals_table.last_payload, dict)
    assert meals_table.last_payload["calories"] == 312
    assert meals_table.last_payload["fiber"] is None
    assert isinstance(foods_table.last_payload, list)
    assert [row["meal_id"] for row in foods_table.last_payload] == [meal_id, meal_id]
    rice_row, sauce_row = foods_table.last_payload
    assert rice_row["calories"] == 312
    assert rice_row["carbs"] == 67.7
    assert rice_row["sodium"] is None
    assert sauce_row["calories"] is None


def test_supabase_meal_repository_get_meal_loads_foods() -> None:
    client = FakeSupabaseClient()
    meal_id = str(uuid4())
    client.table("meals").queue("select", [_meal_row(meal_id)])
    client.table("meal_food_items").queue(
        "select",
        [
            {
                "fdc_id": 168878,
                "name": "rice",
                "quantity": 1,
                "unit": "cup",
                "grams": 240,
                "calories": 312,
                "protein": 6.5,
                "carbs": 67.7,
                "fat": 0.7,
                "fiber": None,
                "sugar": None,
                "sodium": None,
            },
            {
                "fdc_id": None,
                "name": "sauce",
                "quantity": 2,
                "unit": "tbsp",
                "grams": 30,
                "calories": None,
            },
        ],
    )

    meal = SupabaseMealRepository(client).get_meal(meal_id)

    assert meal is not None
    assert meal.totals.protein_g == 59.2
    assert meal.totals.sugar_g is None
    assert meal.foods[0].fdc_id == 168878
    assert meal.foods[0].nutrition == NutritionProfile(
        calories=312, protein_g=6.5, carbs_g=67.7, fat_g=0.7
    )
    assert meal.foods[1].nutrition is None
    assert meal.logged_at == datetime(2024, 5, 1, 18, 30, tzinfo=UTC)


def test_supabase_meal_repository_get_missing_meal() -> None:
    client = FakeSupabaseClient()

    assert SupabaseMealRepository(client).get_meal(str(uuid4())) is None


def test_supabase_meal_repository_update_meal() -> None:
    client = FakeSupabaseClient()
    table = client.table("meals")
    meal_id = str(uuid4())

    SupabaseMealRepository(client).update_meal(
        meal_id,
        "rice bowl",
        NutritionProfile(calories=400, protein_g=8, carbs_g=80, fat_g=2, fiber_g=3),
    )

    assert isinstance(table.last_payload, dict)
    assert table.last_payload["description"] == "rice bowl"
    assert table.last_payload["calories"] == 400
    assert table.last_payload["fiber"] == 3
    assert "updated_at" in table.last_payload
    assert ("id", meal_id) in table.last_filters


def test_supabase_meal_repository_delete_meal_removes_foods() -> None:
    client = FakeSupabaseClient()
    meal_id = str(uuid4())

    SupabaseMealRepository(client).delete_meal(meal_id)

    assert client.table("meal_food_items").last_filters == [("meal_id", meal_id)]
    assert client.table("meals").last_filters == [("id", meal_id)]


def test_supabase_meal_repository_list_meals_paginates() -> None:
    client = FakeSupabaseClient()
    table = client.table("meals")
    table.queue("select", [_meal_row(str(uuid4()))])
    start = datetime(2024, 5, 1, tzinfo=UTC)
    end = datetime(2024, 5, 2, tzinfo=UTC)

    meals = SupabaseMealRepository(client).list_meals(start, end, limit=20, offset=40)

    assert len(meals) == 1
    assert meals[0].foods == ()
    assert table.last_range == (40, 59)
    assert ("timestamp", start.isoformat()) in table.last_filters
