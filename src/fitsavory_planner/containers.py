"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from fitsavory_planner.adapters.calorieninjas_client import HttpxCalorieNinjasClient
from fitsavory_planner.adapters.mealdb_client import HttpxMealDbClient
from fitsavory_planner.adapters.supabase_diet_plan_repository import (
    SupabaseDietPlanRepository,
)
from fitsavory_planner.adapters.supabase_meal_plan_repository import (
    SupabaseMealPlanRepository,
)
from fitsavory_planner.adapters.supabase_recipe_repository import (
    SupabaseRecipeRepository,
)
from fitsavory_planner.config import Settings
from fitsavory_planner.domain.plans import PlanMode
from fitsavory_planner.services.allocation import MealAllocator
from fitsavory_planner.services.backfill import MealNotesBackfill
from fitsavory_planner.services.cache import InMemoryCache
from fitsavory_planner.services.candidates import CandidateSupplier
from fitsavory_planner.services.nutrition import NutritionResolver
from fitsavory_planner.services.plans import MealPlanService
from fitsavory_planner.services.recipes import RecipeService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    recipe_service: RecipeService
    meal_plan_service: MealPlanService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    recipe_repository = SupabaseRecipeRepository(supabase_client)
    meal_plan_repository = SupabaseMealPlanRepository(supabase_client)
    diet_plan_repository = SupabaseDietPlanRepository(supabase_client)
    mealdb_client = HttpxMealDbClient.create(resolved_settings.mealdb_base_url)
    calorieninjas_client = HttpxCalorieNinjasClient.create(
        api_key=resolved_settings.calorieninjas_api_key,
        base_url=resolved_settings.calorieninjas_base_url,
    )
    recipe_service = RecipeService(
        community_repository=recipe_repository,
        mealdb_client=mealdb_client,
        calorieninjas_client=calorieninjas_client,
        cache=InMemoryCache(),
    )
    resolver = NutritionResolver(recipe_service)
    allocator = MealAllocator(
        supplier=CandidateSupplier(
            community_picker=recipe_service, external_picker=recipe_service
        ),
        resolver=resolver,
    )
    meal_plan_service = MealPlanService(
        allocator=allocator,
        plan_repository=meal_plan_repository,
        diet_plan_repository=diet_plan_repository,
        backfill=MealNotesBackfill(resolver=resolver, repository=meal_plan_repository),
        default_mode=PlanMode.parse(
            resolved_settings.default_plan_mode, PlanMode.SCALED
        ),
        generation_timeout_seconds=resolved_settings.generation_timeout_seconds,
    )

    async def close_resources() -> None:
        await mealdb_client.close()
        await calorieninjas_client.close()

    return AppContainer(
        settings=resolved_settings,
        recipe_service=recipe_service,
        meal_plan_service=meal_plan_service,
        close_resources=close_resources,
    )
