"""Scoring of AI food detection against hand-labeled ground truth."""

from collections.abc import Sequence

from mealscan.domain.evaluation import (
    EvaluationMetrics,
    GroundTruth,
    GroundTruthFood,
    NutrientTotals,
    NutritionAccuracy,
)
from mealscan.domain.nutrition import DetectedFood
from mealscan.services.calculator import convert_to_grams

F1_WEIGHT = 0.4
QUANTITY_WEIGHT = 0.3
CALORIE_WEIGHT = 0.3

NO_NUTRITION_ACCURACY = NutritionAccuracy(
    calorie_accuracy=0.0,
    protein_accuracy=0.0,
    carbs_accuracy=0.0,
    fat_accuracy=0.0,
)


def normalize_food_name(name: str) -> str:
    """Lowercase a food name and collapse its whitespace."""
    return " ".join(name.lower().split())


def foods_match(first: str, second: str) -> bool:
    """Return True when names are equal or one contains the other."""
    left = normalize_food_name(first)
    right = normalize_food_name(second)
    return left == right or left in right or right in left


def overall_score(
    f1_score: float, quantity_accuracy: float, calorie_accuracy: float
) -> float:
    """Weighted composite favouring correct food identification."""
    return (
        F1_WEIGHT * f1_score
        + QUANTITY_WEIGHT * quantity_accuracy
        + CALORIE_WEIGHT * calorie_accuracy
    )


def calculate_metrics(
    detected_foods: Sequence[DetectedFood],
    ground_truth: GroundTruth,
    ai_totals: NutrientTotals | None = None,
    *,
    unified_matching: bool = False,
) -> EvaluationMetrics:
    """Score one detection result against its ground truth.

    Detection matching is greedy: each detected food, in order, claims the
    first unclaimed ground-truth food it matches. The quantity pass looks up
    matches independently of those claims unless ``unified_matching`` is set,
    in which case it reuses the claimed pairs. Nutrition accuracies are zero
    when ``ai_totals`` is not supplied.
    """
    actual_foods = ground_truth.foods
    pairs = _greedy_pairs(detected_foods, actual_foods)

    true_positives = len(pairs)
    false_positives = len(detected_foods) - true_positives
    false_negatives = len(actual_foods) - true_positives

    precision = (
        true_positives / (true_positives + false_positives) if true_positives else 0.0
    )
    recall = (
        true_positives / (true_positives + false_negatives) if true_positives else 0.0
    )
    f1_score = (
        2 * precision * recall / (precision + recall) if precision + recall else 0.0
    )
    food_detection_accuracy = (
        true_positives / len(actual_foods) if actual_foods else 0.0
    )

    if unified_matching:
        quantity_pairs = [
            (detected_foods[detected], actual_foods[actual])
            for detected, actual in pairs
        ]
    else:
        quantity_pairs = _unconstrained_pairs(detected_foods, actual_foods)
    avg_quantity_error = _average_quantity_error(quantity_pairs)
    quantity_accuracy = max(0.0, 1.0 - avg_quantity_error)

    if ai_totals is None:
        accuracy = NO_NUTRITION_ACCURACY
    else:
        accuracy = calculate_nutrition_accuracy(ai_totals, ground_truth)

    return EvaluationMetrics(
        precision=precision,
        recall=recall,
        f1_score=f1_score,
        food_detection_accuracy=food_detection_accuracy,
        quantity_accuracy=quantity_accuracy,
        avg_quantity_error=avg_quantity_error,
        calorie_accuracy=accuracy.calorie_accuracy,
        protein_accuracy=accuracy.protein_accuracy,
        carbs_accuracy=accuracy.carbs_accuracy,
        fat_accuracy=accuracy.fat_accuracy,
        overall_score=overall_score(
            f1_score, quantity_accuracy, accuracy.calorie_accuracy
        ),
    )


def calculate_nutrition_accuracy(
    ai_totals: NutrientTotals, ground_truth: GroundTruth
) -> NutritionAccuracy:
    """Compare summed AI nutrition against the stored ground-truth totals."""
    return NutritionAccuracy(
        calorie_accuracy=_accuracy(ai_totals.calories, ground_truth.total_calories),
        protein_accuracy=_accuracy(ai_totals.protein, ground_truth.total_protein),
        carbs_accuracy=_accuracy(ai_totals.carbs, ground_truth.total_carbs),
        fat_accuracy=_accuracy(ai_totals.fat, ground_truth.total_fat),
    )


def apply_nutrition_accuracy(
    metrics: EvaluationMetrics, accuracy: NutritionAccuracy
) -> EvaluationMetrics:
    """Return metrics with new nutrition accuracies and a recomputed score."""
    return EvaluationMetrics(
        precision=metrics.precision,
        recall=metrics.recall,
        f1_score=metrics.f1_score,
        food_detection_accuracy=metrics.food_detection_accuracy,
        quantity_accuracy=metrics.quantity_accuracy,
        avg_quantity_error=metrics.avg_quantity_error,
        calorie_accuracy=accuracy.calorie_accuracy,
        protein_accuracy=accuracy.protein_accuracy,
        carbs_accuracy=accuracy.carbs_accuracy,
        fat_accuracy=accuracy.fat_accuracy,
        overall_score=overall_score(
            metrics.f1_score, metrics.quantity_accuracy, accuracy.calorie_accuracy
        ),
    )


def aggregate_metrics(results: Sequence[EvaluationMetrics]) -> EvaluationMetrics:
    """Average every metric field independently across a batch."""
    if not results:
        return EvaluationMetrics.failed()
    count = len(results)
    means = {
        name: sum(getattr(result, name) for result in results) / count
        for name in EvaluationMetrics.field_names()
    }
    return EvaluationMetrics(**means)


def _greedy_pairs(
    detected_foods: Sequence[DetectedFood], actual_foods: Sequence[GroundTruthFood]
) -> list[tuple[int, int]]:
    claimed: set[int] = set()
    pairs: list[tuple[int, int]] = []
    for detected_index, detected in enumerate(detected_foods):
        for actual_index, actual in enumerate(actual_foods):
            if actual_index in claimed:
                continue
            if foods_match(detected.name, actual.name):
                claimed.add(actual_index)
                pairs.append((detected_index, actual_index))
                break
    return pairs


def _unconstrained_pairs(
    detected_foods: Sequence[DetectedFood], actual_foods: Sequence[GroundTruthFood]
) -> list[tuple[DetectedFood, GroundTruthFood]]:
    pairs = []
    for detected in detected_foods:
        match = next(
            (
                actual
                for actual in actual_foods
                if foods_match(detected.name, actual.name)
            ),
            None,
        )
        if match is not None:
            pairs.append((detected, match))
    return pairs


def _average_quantity_error(
    pairs: Sequence[tuple[DetectedFood, GroundTruthFood]],
) -> float:
    errors = []
    for detected, actual in pairs:
        actual_grams = convert_to_grams(actual.quantity, actual.unit)
        if actual_grams <= 0:
            continue
        errors.append(abs(detected.serving.grams - actual_grams) / actual_grams)
    if not errors:
        return 1.0
    return sum(errors) / len(errors)


def _accuracy(predicted: float, expected: float) -> float:
    error = abs(predicted - expected) / expected if expected > 0 else 0.0
    return max(0.0, 1.0 - error)
