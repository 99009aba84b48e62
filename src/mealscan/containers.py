"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from mealscan.adapters.fdc_client import HttpxFdcClient
from mealscan.adapters.openai_vision_client import OpenAIVisionClient
from mealscan.adapters.supabase_benchmark_repository import SupabaseBenchmarkRepository
from mealscan.adapters.supabase_evaluation_repository import (
    SupabaseEvaluationRunRepository,
)
from mealscan.adapters.supabase_meal_repository import SupabaseMealRepository
from mealscan.config import Settings
from mealscan.services.benchmark import BenchmarkService
from mealscan.services.cache import InMemoryCache
from mealscan.services.evaluation import EvaluationService
from mealscan.services.meals import MealAnalysisService, MealLogService
from mealscan.services.nutrition import NutritionService
from mealscan.services.stats import StatsService
from mealscan.services.vision import VisionService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    vision_service: VisionService
    nutrition_service: NutritionService
    meal_analysis_service: MealAnalysisService
    meal_log_service: MealLogService
    stats_service: StatsService
    benchmark_service: BenchmarkService
    evaluation_service: EvaluationService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    meal_repository = SupabaseMealRepository(supabase_client)
    benchmark_repository = SupabaseBenchmarkRepository(supabase_client)
    run_repository = SupabaseEvaluationRunRepository(supabase_client)

    openai_client = OpenAIVisionClient.create(resolved_settings.openai_api_key)
    vision_service = VisionService(
        client=openai_client,
        model=resolved_settings.openai_model,
        store=resolved_settings.openai_store,
    )
    fdc_client = HttpxFdcClient.create(
        api_key=resolved_settings.fdc_api_key,
        base_url=resolved_settings.fdc_base_url,
    )
    nutrition_service = NutritionService(
        fdc_client=fdc_client,
        cache=InMemoryCache(),
        debug=resolved_settings.debug,
    )
    evaluation_service = EvaluationService(
        vision_service=vision_service,
        nutrition_service=nutrition_service,
        benchmark_repository=benchmark_repository,
        run_repository=run_repository,
        model_version=resolved_settings.resolved_model_version,
        prompt_version=resolved_settings.prompt_version,
        batch_limit=resolved_settings.evaluation_batch_limit,
        unified_matching=resolved_settings.unified_matching,
    )

    async def close_resources() -> None:
        await fdc_client.close()
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
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
