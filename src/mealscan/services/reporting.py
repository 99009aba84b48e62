"""Plain-text rendering of evaluation runs."""

from mealscan.domain.evaluation import EvaluationResult, EvaluationRun, NutrientTotals

GOOD_THRESHOLD = 0.8
FAIR_THRESHOLD = 0.6
POOR_THRESHOLD = 0.4

_SUMMARY_METRICS = (
    ("Overall score", "overall_score"),
    ("F1 score", "f1_score"),
    ("Precision", "precision"),
    ("Recall", "recall"),
    ("Food detection", "food_detection_accuracy"),
    ("Quantity accuracy", "quantity_accuracy"),
    ("Calorie accuracy", "calorie_accuracy"),
    ("Protein accuracy", "protein_accuracy"),
    ("Carbs accuracy", "carbs_accuracy"),
    ("Fat accuracy", "fat_accuracy"),
)


def grade(score: float) -> str:
    """Bucket a 0-1 score into a label."""
    if score >= GOOD_THRESHOLD:
        return "good"
    if score >= FAIR_THRESHOLD:
        return "fair"
    if score >= POOR_THRESHOLD:
        return "poor"
    return "failing"


def format_percentage(value: float) -> str:
    """Format a 0-1 fraction as a percentage with one decimal."""
    return f"{value * 100:.1f}%"


def render_run_summary(run: EvaluationRun) -> str:
    """Render aggregate metrics and per-item comparisons for a run."""
    aggregated = run.aggregated
    lines = [
        f"Evaluation run {run.id or '-'}",
        f"Model: {aggregated.model_version} (prompt {run.prompt_version or '-'})",
        f"Timestamp: {aggregated.timestamp.isoformat()}",
        f"Items: {aggregated.total_items}",
        f"Average confidence: {format_percentage(aggregated.average_confidence)}",
        "",
    ]
    for label, name in _SUMMARY_METRICS:
        value = getattr(aggregated.metrics, name)
        lines.append(f"{label:<20} {format_percentage(value):>7}  [{grade(value)}]")
    lines.append(
        f"{'Avg quantity error':<20} "
        f"{format_percentage(aggregated.metrics.avg_quantity_error):>7}"
    )
    for index, result in enumerate(run.results, start=1):
        lines.append("")
        lines.extend(_render_result(index, result))
    return "\n".join(lines)


def _render_result(index: int, result: EvaluationResult) -> list[str]:
    score = result.metrics.overall_score
    lines = [
        f"#{index} {result.image_url}: {format_percentage(score)} [{grade(score)}]"
    ]
    if result.errors:
        lines.extend(f"  error: {error}" for error in result.errors)
        return lines

    detected = ", ".join(
        f"{food.name} ({food.serving.quantity:g} {food.serving.unit})"
        for food in result.foods or []
    )
    expected = ", ".join(
        f"{food.name} ({food.quantity:g} {food.unit})"
        for food in result.ground_truth.foods
    )
    lines.append(f"  detected: {detected or '-'}")
    lines.append(f"  expected: {expected or '-'}")

    totals = result.ai_totals or NutrientTotals()
    truth = result.ground_truth
    for label, predicted, actual, unit in (
        ("calories", totals.calories, truth.total_calories, "kcal"),
        ("protein", totals.protein, truth.total_protein, "g"),
        ("carbs", totals.carbs, truth.total_carbs, "g"),
        ("fat", totals.fat, truth.total_fat, "g"),
    ):
        lines.append(
            f"  {label:<8} ai={predicted:.1f}{unit} truth={actual:.1f}{unit} "
            f"diff={predicted - actual:+.1f}{unit}"
        )
    return lines
