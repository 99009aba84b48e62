"""Supabase repository for evaluation runs."""

from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from supabase import Client

from mealscan.adapters.supabase_benchmark_repository import load_json
from mealscan.domain.evaluation import (
    AggregatedMetrics,
    EvaluationMetrics,
    EvaluationResult,
    EvaluationRun,
)
from mealscan.domain.meals import AnalyzedFood
from mealscan.services.evaluation import EvaluationRunRepository


@dataclass
class SupabaseEvaluationRunRepository(EvaluationRunRepository):
    """Supabase implementation for evaluation runs."""

    client: Client

    def create_run(self, run: EvaluationRun) -> str:
        """Insert a run with its aggregated metrics and per-item results."""
        aggregated = run.aggregated
        response = (
            self.client.table("evaluation_runs")
            .insert(
                {
                    "model_version": aggregated.model_version,
                    "prompt_version": run.prompt_version,
                    "metrics": serialize_aggregated(aggregated),
                    "results": [serialize_result(result) for result in run.results],
                    "timestamp": aggregated.timestamp.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create evaluation run")
        return str(response.data[0]["id"])

    def list_runs(self, limit: int) -> list[EvaluationRun]:
        """Return recent runs, newest first, without per-item results."""
        response = (
            self.client.table("evaluation_runs")
            .select("id, model_version, prompt_version, metrics, timestamp")
            .order("timestamp", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_run(row) for row in response.data or []]


def serialize_aggregated(aggregated: AggregatedMetrics) -> dict[str, object]:
    """Flatten aggregated metrics into a JSON object."""
    return {
        **asdict(aggregated.metrics),
        "total_items": aggregated.total_items,
        "average_confidence": aggregated.average_confidence,
    }


def serialize_result(result: EvaluationResult) -> dict[str, object]:
    """Convert a per-item result into a JSON object."""
    return {
        "image_url": result.image_url,
        "benchmark_id": result.benchmark_id,
        "ground_truth": result.ground_truth.model_dump(by_alias=True),
        "metrics": asdict(result.metrics),
        "foods": [_serialize_food(food) for food in result.foods]
        if result.foods is not None
        else None,
        "ai_totals": asdict(result.ai_totals) if result.ai_totals else None,
        "confidence": result.confidence,
        "errors": result.errors,
    }


def _serialize_food(food: AnalyzedFood) -> dict[str, object]:
    return {
        "name": food.name,
        "quantity": food.serving.quantity,
        "unit": food.serving.unit,
        "grams": food.serving.grams,
        "estimated": food.serving.estimated,
        "confidence": food.confidence,
        "fdc_id": food.fdc_id,
        "description": food.description,
        "nutrition": asdict(food.nutrition) if food.nutrition else None,
    }


def _parse_run(row: dict[str, object]) -> EvaluationRun:
    raw_metrics = load_json(row.get("metrics")) or {}
    metrics = EvaluationMetrics(
        **{
            name: float(raw_metrics.get(name, 0.0))
            for name in EvaluationMetrics.field_names()
        }
    )
    timestamp_raw = row.get("timestamp")
    timestamp = (
        datetime.fromisoformat(timestamp_raw)
        if isinstance(timestamp_raw, str) and timestamp_raw
        else datetime.min.replace(tzinfo=UTC)
    )
    return EvaluationRun(
        id=str(row["id"]),
        aggregated=AggregatedMetrics(
            metrics=metrics,
            total_items=int(raw_metrics.get("total_items", 0)),
            average_confidence=float(raw_metrics.get("average_confidence", 0.0)),
            model_version=str(row.get("model_version", "")),
            timestamp=timestamp,
        ),
        prompt_version=row.get("prompt_version"),
    )
