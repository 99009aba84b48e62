"""Domain models for benchmark evaluation."""

import math
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, model_validator

from mealscan.domain.meals import AnalyzedFood

# (field name, JSON alias, per-food attribute)
_TOTAL_FIELDS = (
    ("total_calories", "totalCalories", "calories"),
    ("total_protein", "totalProtein", "protein"),
    ("total_carbs", "totalCarbs", "carbs"),
    ("total_fat", "totalFat", "fat"),
)
TOTALS_REL_TOLERANCE = 0.01
TOTALS_ABS_TOLERANCE = 1.0
# Validation context that turns on the totals consistency check.
INGESTION_CONTEXT: dict[str, object] = {"check_totals": True}


class GroundTruthFood(BaseModel):
    """Hand-labeled food with nutrition already scaled to the portion."""

    model_config = ConfigDict(frozen=True)

    name: str
    quantity: float = Field(ge=0.0)
    unit: str
    calories: float = Field(ge=0.0)
    protein: float = Field(ge=0.0)
    carbs: float = Field(ge=0.0)
    fat: float = Field(ge=0.0)


class GroundTruth(BaseModel):
    """Labeled foods for one benchmark image plus their stored totals.

    Missing totals are filled from the foods. Totals that disagree with the
    foods are rejected only when validating with ``INGESTION_CONTEXT``; rows
    read back from storage keep their stored totals.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    foods: list[GroundTruthFood]
    total_calories: float = Field(alias="totalCalories", ge=0.0)
    total_protein: float = Field(alias="totalProtein", ge=0.0)
    total_carbs: float = Field(alias="totalCarbs", ge=0.0)
    total_fat: float = Field(alias="totalFat", ge=0.0)

    @model_validator(mode="before")
    @classmethod
    def _fill_missing_totals(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        foods = data.get("foods") or []
        filled = dict(data)
        for name, alias, attribute in _TOTAL_FIELDS:
            if name in filled or alias in filled:
                continue
            filled[alias] = sum(_food_value(food, attribute) for food in foods)
        return filled

    @model_validator(mode="after")
    def _check_totals(self, info: ValidationInfo) -> "GroundTruth":
        if not (info.context or {}).get("check_totals"):
            return self
        for name, _alias, attribute in _TOTAL_FIELDS:
            stored = getattr(self, name)
            summed = sum(getattr(food, attribute) for food in self.foods)
            if not math.isclose(
                stored,
                summed,
                rel_tol=TOTALS_REL_TOLERANCE,
                abs_tol=TOTALS_ABS_TOLERANCE,
            ):
                raise ValueError(
                    f"{name}={stored} does not match the sum of foods ({summed})"
                )
        return self


def _food_value(food: object, attribute: str) -> float:
    if isinstance(food, dict):
        value = food.get(attribute, 0.0)
    else:
        value = getattr(food, attribute, 0.0)
    return float(value) if isinstance(value, int | float) else 0.0


class BenchmarkMetadata(BaseModel):
    """Optional descriptive labels for a benchmark item."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    meal_type: Literal["breakfast", "lunch", "dinner", "snack"] | None = Field(
        default=None, alias="mealType"
    )
    complexity: Literal["simple", "medium", "complex"] | None = None
    cuisine: str | None = None
    description: str | None = None


class BenchmarkItem(BaseModel):
    """Benchmark image with its ground truth."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    image_url: str = Field(alias="imageUrl", min_length=1)
    ground_truth: GroundTruth = Field(alias="groundTruth")
    metadata: BenchmarkMetadata | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")


@dataclass(frozen=True)
class NutrientTotals:
    """Summed nutrition for all foods the model reported."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0


@dataclass(frozen=True)
class NutritionAccuracy:
    """Per-nutrient accuracy of the AI totals."""

    calorie_accuracy: float
    protein_accuracy: float
    carbs_accuracy: float
    fat_accuracy: float


@dataclass(frozen=True)
class EvaluationMetrics:
    """Scores for one AI result against one ground truth."""

    precision: float
    recall: float
    f1_score: float
    food_detection_accuracy: float
    quantity_accuracy: float
    avg_quantity_error: float
    calorie_accuracy: float
    protein_accuracy: float
    carbs_accuracy: float
    fat_accuracy: float
    overall_score: float

    @classmethod
    def failed(cls) -> "EvaluationMetrics":
        """Return the record substituted for an item that could not be scored."""
        return cls(
            precision=0.0,
            recall=0.0,
            f1_score=0.0,
            food_detection_accuracy=0.0,
            quantity_accuracy=0.0,
            avg_quantity_error=1.0,
            calorie_accuracy=0.0,
            protein_accuracy=0.0,
            carbs_accuracy=0.0,
            fat_accuracy=0.0,
            overall_score=0.0,
        )

    @classmethod
    def field_names(cls) -> list[str]:
        """Return metric field names in declaration order."""
        return [item.name for item in fields(cls)]


@dataclass(frozen=True)
class AggregatedMetrics:
    """Batch-level metrics for one evaluation run."""

    metrics: EvaluationMetrics
    total_items: int
    average_confidence: float
    model_version: str
    timestamp: datetime


@dataclass
class EvaluationResult:
    """Outcome of scoring a single benchmark item."""

    image_url: str
    ground_truth: GroundTruth
    metrics: EvaluationMetrics
    benchmark_id: str | None = None
    foods: list[AnalyzedFood] | None = None
    ai_totals: NutrientTotals | None = None
    confidence: float | None = None
    errors: list[str] = field(default_factory=list)


@dataclass
class EvaluationRun:
    """A stored evaluation run."""

    id: str | None
    aggregated: AggregatedMetrics
    prompt_version: str | None
    results: list[EvaluationResult] = field(default_factory=list)
