"""Benchmark evaluation runs."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from mealscan.domain.evaluation import (
    AggregatedMetrics,
    BenchmarkItem,
    EvaluationMetrics,
    EvaluationResult,
    EvaluationRun,
    NutrientTotals,
)
from mealscan.domain.meals import AnalyzedFood
from mealscan.domain.nutrition import DetectedFood
from mealscan.services.benchmark import BenchmarkRepository
from mealscan.services.meals import resolve_food
from mealscan.services.metrics import aggregate_metrics, calculate_metrics
from mealscan.services.nutrition import NutritionService
from mealscan.services.vision import VisionService

_logger = logging.getLogger(__name__)


class NoBenchmarkItemsError(LookupError):
    """Raised when an evaluation run has nothing to score."""


class EvaluationRunRepository(Protocol):
    """Persistence interface for evaluation runs."""

    def create_run(self, run: EvaluationRun) -> str:
        """Store a run and return its id."""

    def list_runs(self, limit: int) -> list[EvaluationRun]:
        """Return recent runs without per-item results."""


@dataclass
class EvaluationService:
    """Scores the vision pipeline against the benchmark dataset."""

    vision_service: VisionService
    nutrition_service: NutritionService
    benchmark_repository: BenchmarkRepository
    run_repository: EvaluationRunRepository
    model_version: str
    prompt_version: str | None = None
    batch_limit: int = 20
    unified_matching: bool = False

    async def run(self, benchmark_ids: list[str] | None = None) -> EvaluationRun:
        """Evaluate the selected items, or the first ``batch_limit`` items."""
        items = self.benchmark_repository.list_items(
            benchmark_ids or None, None if benchmark_ids else self.batch_limit
        )
        if not items:
            raise NoBenchmarkItemsError(
                "No benchmark items found. Load a benchmark dataset first."
            )

        results = []
        for item in items:
            results.append(await self.evaluate_item(item))

        scored = [result for result in results if result.metrics.overall_score > 0]
        average_confidence = sum(result.confidence or 0.0 for result in scored) / max(
            len(scored), 1
        )
        aggregated = AggregatedMetrics(
            metrics=aggregate_metrics([result.metrics for result in scored]),
            total_items=len(results),
            average_confidence=average_confidence,
            model_version=self.model_version,
            timestamp=datetime.now(tz=UTC),
        )
        run = EvaluationRun(
            id=None,
            aggregated=aggregated,
            prompt_version=self.prompt_version,
            results=results,
        )
        run.id = self.run_repository.create_run(run)
        _logger.info(
            "Evaluation run %s: items=%s scored=%s overall=%.3f",
            run.id,
            len(results),
            len(scored),
            aggregated.metrics.overall_score,
        )
        return run

    async def evaluate_item(self, item: BenchmarkItem) -> EvaluationResult:
        """Score one item; failures yield zeroed metrics and an error note."""
        try:
            detection = await self.vision_service.detect(image_url=item.image_url)
            foods = list(
                await asyncio.gather(
                    *(self._lookup_food(food) for food in detection.foods)
                )
            )
            ai_totals = sum_nutrient_totals(foods)
            metrics = calculate_metrics(
                detection.foods,
                item.ground_truth,
                ai_totals,
                unified_matching=self.unified_matching,
            )
        except Exception as exc:
            _logger.exception("Evaluation failed for %s", item.image_url)
            return EvaluationResult(
                image_url=item.image_url,
                ground_truth=item.ground_truth,
                metrics=EvaluationMetrics.failed(),
                benchmark_id=item.id,
                errors=[str(exc) or type(exc).__name__],
            )

        return EvaluationResult(
            image_url=item.image_url,
            ground_truth=item.ground_truth,
            metrics=metrics,
            benchmark_id=item.id,
            foods=foods,
            ai_totals=ai_totals,
            confidence=detection.confidence,
        )

    def list_runs(self, limit: int = 10) -> list[EvaluationRun]:
        """Return recent runs."""
        return self.run_repository.list_runs(limit)

    async def _lookup_food(self, food: DetectedFood) -> AnalyzedFood:
        try:
            analyzed = await resolve_food(self.nutrition_service, food)
        except Exception as exc:
            _logger.warning("Nutrition lookup failed for %r: %s", food.name, exc)
            analyzed = None
        if analyzed is not None:
            return analyzed
        return AnalyzedFood(
            name=food.name,
            serving=food.serving,
            confidence=food.confidence,
            nutrition=None,
        )


def sum_nutrient_totals(foods: Iterable[AnalyzedFood]) -> NutrientTotals:
    """Sum macro nutrition over foods that resolved in the catalog."""
    calories = protein = carbs = fat = 0.0
    for food in foods:
        if food.nutrition is None:
            continue
        calories += food.nutrition.calories
        protein += food.nutrition.protein_g
        carbs += food.nutrition.carbs_g
        fat += food.nutrition.fat_g
    return NutrientTotals(calories=calories, protein=protein, carbs=carbs, fat=fat)
