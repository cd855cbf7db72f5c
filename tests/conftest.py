"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import date

import pytest

from fitsavory_planner.adapters.calorieninjas_client import CalorieNinjasClient
from fitsavory_planner.adapters.mealdb_client import MealDbClient
from fitsavory_planner.config import Settings
from fitsavory_planner.containers import AppContainer
from fitsavory_planner.domain.macros import MacroVector
from fitsavory_planner.domain.meals import (
    CandidateMeal,
    MealNotes,
    MealSource,
    StoredMealRow,
)
from fitsavory_planner.domain.plans import DietPlan, PlanDayRow, PlanDraft, PlanHeader
from fitsavory_planner.domain.recipes import CommunityRecipe, CommunityRecipeRef
from fitsavory_planner.services.allocation import MealAllocator
from fitsavory_planner.services.backfill import MealNotesBackfill
from fitsavory_planner.services.cache import InMemoryCache
from fitsavory_planner.services.candidates import (
    CandidateSupplier,
    CommunityRecipePicker,
    ExternalRecipePicker,
)
from fitsavory_planner.services.nutrition import NutritionResolver, RecipeNutritionLookup
from fitsavory_planner.services.plans import (
    DietPlanRepository,
    MealPlanRepository,
    MealPlanService,
)
from fitsavory_planner.services.recipes import CommunityRecipeRepository, RecipeService

OATS = MacroVector(calories=500, protein=30, carbs=50, fat=15)


def make_candidate(
    identifier: str = "oat-bowl",
    nutrition: MacroVector | None = OATS,
    source: MealSource = MealSource.COMMUNITY,
    local_recipe_id: int | None = None,
    title: str = "Oat Bowl",
) -> CandidateMeal:
    return CandidateMeal(
        identifier=identifier,
        title=title,
        source=source,
        nutrition=nutrition,
        local_recipe_id=local_recipe_id,
        external_id=identifier,
    )


@dataclass
class RepeatingCommunityPicker(CommunityRecipePicker):
    """Returns the same candidate on every call."""

    candidate: CandidateMeal | None
    calls: int = 0

    async def pick_random_community(
        self, excluded_ids: set[int]
    ) -> CandidateMeal | None:
        self.calls += 1
        if self.candidate is None:
            return None
        if self.candidate.local_recipe_id in excluded_ids:
            return None
        return self.candidate


@dataclass
class QueuedExternalPicker(ExternalRecipePicker):
    """Returns queued candidates, then None."""

    candidates: list[CandidateMeal] = field(default_factory=list)
    calls: int = 0

    async def pick_random_external(self) -> CandidateMeal | None:
        self.calls += 1
        if not self.candidates:
            return None
        return self.candidates.pop(0)


@dataclass
class FakeRecipeLookup(RecipeNutritionLookup):
    """Recipe lookup answering from dictionaries and recording calls."""

    recipes: dict[tuple[str, MealSource], CandidateMeal] = field(default_factory=dict)
    estimates: dict[str, MacroVector] = field(default_factory=dict)
    recipe_calls: list[tuple[str, MealSource]] = field(default_factory=list)
    nutrition_calls: list[str] = field(default_factory=list)
    fail_recipe_lookup: bool = False

    async def get_recipe_with_nutrition(
        self, identifier: str, source: MealSource
    ) -> CandidateMeal | None:
        self.recipe_calls.append((identifier, source))
        if self.fail_recipe_lookup:
            raise RuntimeError("recipe service unavailable")
        return self.recipes.get((identifier, source))

    async def get_nutrition_info(self, query: str) -> MacroVector | None:
        self.nutrition_calls.append(query)
        return self.estimates.get(query)


@dataclass
class InMemoryMealPlanRepository(MealPlanRepository):
    """In-memory meal plan storage for tests."""

    headers: dict[int, PlanHeader] = field(default_factory=dict)
    days: dict[int, PlanDayRow] = field(default_factory=dict)
    meals: dict[int, StoredMealRow] = field(default_factory=dict)
    note_updates: list[tuple[int, dict[str, object]]] = field(default_factory=list)
    fail_on_create: bool = False
    failing_meal_ids: set[int] = field(default_factory=set)

    def create_plan(self, draft: PlanDraft) -> int:
        if self.fail_on_create:
            raise RuntimeError("insert into meal_plan_meals failed")
        plan_id = len(self.headers) + 1
        targets = draft.document.targets
        self.headers[plan_id] = PlanHeader(
            id=plan_id,
            user_id=draft.user_id,
            diet_plan_id=draft.diet_plan_id,
            name=draft.name,
            description={
                "generatedAt": draft.generated_at.isoformat(),
                "targets": targets.to_document(),
            },
            target_calories=targets.calories,
            target_protein=targets.protein,
            target_carbs=targets.carbs,
            target_fat=targets.fat,
            start_date=draft.start_date,
            end_date=draft.end_date,
            created_at=draft.generated_at,
        )
        for day in draft.document.days:
            day_id = len(self.days) + 1
            notes: dict[str, object] = {
                "totals": day.totals.as_dict(),
                "waterGoalMl": day.water_goal_ml,
            }
            if day.remaining is not None:
                notes["remaining"] = day.remaining.as_dict()
            self.days[day_id] = PlanDayRow(
                id=day_id,
                plan_id=plan_id,
                day_number=day.day_number,
                date=day.date,
                notes=notes,
            )
            for slot, order, meal in day.iter_meals():
                meal_id = len(self.meals) + 1
                self.meals[meal_id] = StoredMealRow(
                    id=meal_id,
                    day_id=day_id,
                    meal_type=slot,
                    order=order,
                    name=meal.title,
                    description=meal.description,
                    recipe_id=meal.local_recipe_id,
                    notes=MealNotes.for_meal(meal),
                )
        return plan_id

    def get_plan(self, user_id: int, plan_id: int) -> PlanHeader | None:
        header = self.headers.get(plan_id)
        if header is None or header.user_id != user_id:
            return None
        return header

    def find_latest_plan(
        self, user_id: int, diet_plan_id: int | None = None
    ) -> PlanHeader | None:
        candidates = [
            header
            for header in self.headers.values()
            if header.user_id == user_id
            and (diet_plan_id is None or header.diet_plan_id == diet_plan_id)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda header: header.id)

    def list_days(self, plan_id: int) -> list[PlanDayRow]:
        rows = [day for day in self.days.values() if day.plan_id == plan_id]
        return sorted(rows, key=lambda day: day.day_number)

    def list_meals(self, day_ids: list[int]) -> list[StoredMealRow]:
        rows = [meal for meal in self.meals.values() if meal.day_id in day_ids]
        return sorted(rows, key=lambda meal: (meal.day_id, meal.order, meal.id))

    def update_meal_notes(self, meal_id: int, notes: dict[str, object]) -> None:
        if meal_id in self.failing_meal_ids:
            raise RuntimeError("row is locked")
        self.note_updates.append((meal_id, notes))
        row = self.meals.get(meal_id)
        if row is not None:
            self.meals[meal_id] = StoredMealRow(
                id=row.id,
                day_id=row.day_id,
                meal_type=row.meal_type,
                order=row.order,
                name=row.name,
                description=row.description,
                recipe_id=row.recipe_id,
                notes=MealNotes.from_raw(notes),
                recipe_title=row.recipe_title,
                recipe_slug=row.recipe_slug,
                recipe_nutrition=row.recipe_nutrition,
            )


@dataclass
class InMemoryDietPlanRepository(DietPlanRepository):
    """In-memory diet plan storage for tests."""

    plans: dict[int, DietPlan] = field(default_factory=dict)

    def get_diet_plan(self, diet_plan_id: int, user_id: int) -> DietPlan | None:
        plan = self.plans.get(diet_plan_id)
        if plan is None or plan.user_id != user_id:
            return None
        return plan


@dataclass
class InMemoryCommunityRecipeRepository(CommunityRecipeRepository):
    """In-memory community recipes for tests."""

    recipes: list[CommunityRecipe] = field(default_factory=list)
    lookups: list[str] = field(default_factory=list)
    sample_sizes: list[int] = field(default_factory=list)

    def sample_public_recipe_refs(self, count: int) -> list[CommunityRecipeRef]:
        self.sample_sizes.append(count)
        return [
            CommunityRecipeRef(id=recipe.id, slug=recipe.slug)
            for recipe in self.recipes[:count]
        ]

    def get_recipe(self, identifier: str) -> CommunityRecipe | None:
        self.lookups.append(identifier)
        for recipe in self.recipes:
            if identifier in {recipe.slug, str(recipe.id)}:
                return recipe
        return None


@dataclass
class FakeMealDbClient(MealDbClient):
    """Fake TheMealDB client backed by a dictionary of meals."""

    meals: dict[str, dict[str, object]] = field(default_factory=dict)
    random_calls: int = 0
    lookup_calls: list[str] = field(default_factory=list)

    async def random_meal(self) -> dict[str, object] | None:
        self.random_calls += 1
        return next(iter(self.meals.values()), None)

    async def lookup_meal(self, meal_id: str) -> dict[str, object] | None:
        self.lookup_calls.append(meal_id)
        return self.meals.get(meal_id)


@dataclass
class FakeCalorieNinjasClient(CalorieNinjasClient):
    """Fake CalorieNinjas client with canned items per query."""

    items: dict[str, list[dict[str, object]]] = field(default_factory=dict)
    queries: list[str] = field(default_factory=list)

    async def nutrition(self, query: str) -> dict[str, object]:
        self.queries.append(query)
        return {"items": self.items.get(query, [])}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="test.service.key",
        calorieninjas_api_key="ninja-key",
    )


@pytest.fixture
def plan_repository() -> InMemoryMealPlanRepository:
    return InMemoryMealPlanRepository()


@pytest.fixture
def diet_plan_repository() -> InMemoryDietPlanRepository:
    return InMemoryDietPlanRepository(
        plans={
            9: DietPlan(
                id=9,
                user_id=42,
                name="Cut",
                goal="lose_weight",
                plan_type="custom",
                start_date=date(2025, 3, 1),
                end_date=date(2025, 3, 3),
                total_days=3,
                daily_calories=1800,
                protein_g=140,
                carbs_g=180,
                fat_g=60,
                target_weight_kg=72.5,
                status="active",
            )
        }
    )


@pytest.fixture
def recipe_service() -> RecipeService:
    return RecipeService(
        community_repository=InMemoryCommunityRecipeRepository(
            recipes=[
                CommunityRecipe(
                    id=1,
                    slug="overnight-oats",
                    title="Overnight Oats",
                    description="Oats soaked in milk",
                    nutrition=OATS,
                )
            ]
        ),
        mealdb_client=FakeMealDbClient(),
        calorieninjas_client=FakeCalorieNinjasClient(),
        cache=InMemoryCache(),
        retry_delay_seconds=0,
    )


@pytest.fixture
def container(
    settings: Settings,
    recipe_service: RecipeService,
    plan_repository: InMemoryMealPlanRepository,
    diet_plan_repository: InMemoryDietPlanRepository,
) -> AppContainer:
    resolver = NutritionResolver(recipe_service)
    allocator = MealAllocator(
        supplier=CandidateSupplier(
            community_picker=recipe_service, external_picker=recipe_service
        ),
        resolver=resolver,
    )
    meal_plan_service = MealPlanService(
        allocator=allocator,
        plan_repository=plan_repository,
        diet_plan_repository=diet_plan_repository,
        backfill=MealNotesBackfill(resolver=resolver, repository=plan_repository),
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        recipe_service=recipe_service,
        meal_plan_service=meal_plan_service,
        close_resources=close_resources,
    )
