"""Daily and weekly nutrition statistics."""

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from mealscan.domain.meals import MealRecord
from mealscan.domain.nutrition import MacroPercentages, NutritionProfile
from mealscan.services.calculator import (
    calculate_daily_totals,
    calculate_macro_percentages,
    round_half_up,
)
from mealscan.services.meals import MealRepository

MAX_MEALS_PER_PERIOD = 1000


@dataclass(frozen=True)
class DailySummary:
    """Totals for one local calendar day."""

    day: date
    totals: NutritionProfile
    macros: MacroPercentages
    meal_count: int


@dataclass(frozen=True)
class PeriodSummary:
    """Daily summaries for a period plus the average daily calories."""

    daily: list[DailySummary]
    avg_calories: float


@dataclass
class StatsService:
    """Computes statistics in the caller's timezone."""

    repository: MealRepository

    def get_today(self, timezone_name: str = "UTC") -> DailySummary:
        """Return today's totals."""
        tz = ZoneInfo(timezone_name)
        start = _start_of_day(datetime.now(tz=tz))
        meals = self._meals_between(start, start + timedelta(days=1))
        return _summarize_day(start.date(), meals, tz)

    def get_week(self, timezone_name: str = "UTC") -> PeriodSummary:
        """Return week-to-date summaries starting on Monday."""
        tz = ZoneInfo(timezone_name)
        now = datetime.now(tz=tz)
        start = _start_of_day(now - timedelta(days=now.weekday()))
        meals = self._meals_between(start, start + timedelta(days=7))
        daily = [
            _summarize_day((start + timedelta(days=offset)).date(), meals, tz)
            for offset in range(7)
        ]
        avg_calories = sum(day.totals.calories for day in daily) / len(daily)
        return PeriodSummary(daily=daily, avg_calories=round_half_up(avg_calories))

    def get_history(self, limit: int = 10) -> list[MealRecord]:
        """Return the most recent meals."""
        return self.repository.list_meals(None, None, limit, 0)

    def _meals_between(self, start: datetime, end: datetime) -> list[MealRecord]:
        return self.repository.list_meals(
            start.astimezone(UTC), end.astimezone(UTC), MAX_MEALS_PER_PERIOD, 0
        )


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _summarize_day(day: date, meals: list[MealRecord], tz: ZoneInfo) -> DailySummary:
    todays = [meal for meal in meals if meal.logged_at.astimezone(tz).date() == day]
    totals = calculate_daily_totals(meal.totals for meal in todays)
    return DailySummary(
        day=day,
        totals=totals,
        macros=calculate_macro_percentages(totals),
        meal_count=len(todays),
    )
