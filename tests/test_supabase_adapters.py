"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime

import pytest

from fitsavory_planner.adapters.supabase_diet_plan_repository import (
    SupabaseDietPlanRepository,
)
from fitsavory_planner.adapters.supabase_meal_plan_repository import (
    SupabaseMealPlanRepository,
)
from fitsavory_planner.adapters.supabase_recipe_repository import (
    SupabaseRecipeRepository,
)
from fitsavory_planner.domain.macros import MacroVector
from fitsavory_planner.domain.meals import MealSlot, MealSource, ScaledMeal
from fitsavory_planner.domain.plans import (
    DayPlan,
    MacroTargets,
    MealPlanDocument,
    PlanDraft,
)


@dataclass
class FakeResponse:
    data: object


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "update": []}
    )
    last_payload: object | None = None
    last_select: str | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, columns: str) -> "FakeTable":
        self._action = "select"
        self.last_select = columns
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "update"
        self.last_payload = payload
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def in_(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, _column: str, desc: bool = False) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeRpc:
    data: object

    def execute(self) -> FakeResponse:
        return FakeResponse(data=self.data)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    rpc_result: object = None
    rpc_calls: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]

    def rpc(self, name: str, params: dict[str, object]) -> FakeRpc:
        self.rpc_calls.append((name, params))
        return FakeRpc(data=self.rpc_result)


def _draft() -> PlanDraft:
    breakfast = ScaledMeal(
        identifier="overnight-oats",
        title="Overnight Oats",
        source=MealSource.COMMUNITY,
        nutrition=MacroVector(calories=1500, protein=90, carbs=150, fat=45),
        local_recipe_id=1,
        external_id="overnight-oats",
        slug="overnight-oats",
        portion_multiplier=3.0,
    )
    snack = ScaledMeal(
        identifier="52893",
        title="Apple Frangipan Tart",
        source=MealSource.EXTERNAL,
        nutrition=MacroVector(calories=300, protein=5, carbs=40, fat=12),
        external_id="52893",
        slug="apple-frangipan-tart",
    )
    day = DayPlan(day_number=1, date=date(2025, 5, 1), water_goal_ml=2500)
    day.assign(MealSlot.BREAKFAST, breakfast)
    day.assign(MealSlot.SNACK, snack)
    day.totals = MacroVector(calories=1800, protein=95, carbs=190, fat=57)
    day.remaining = MacroVector(calories=200, protein=55, carbs=60, fat=10)
    return PlanDraft(
        user_id=42,
        diet_plan_id=None,
        name="FitSavory Plan (2025-05-01)",
        start_date=date(2025, 5, 1),
        end_date=date(2025, 5, 1),
        generated_at=datetime(2025, 5, 1, 8, 0, tzinfo=UTC),
        document=MealPlanDocument(
            targets=MacroTargets(
                calories=2000, protein=150, carbs=250, fat=67, water_ml=2500
            ),
            days=[day],
        ),
    )


def test_create_plan_sends_whole_plan_in_one_rpc() -> None:
    client = FakeSupabaseClient(rpc_result=17)
    repository = SupabaseMealPlanRepository(client)

    plan_id = repository.create_plan(_draft())

    assert plan_id == 17
    assert len(client.rpc_calls) == 1
    name, params = client.rpc_calls[0]
    assert name == "create_meal_plan"
    plan = params["plan"]
    assert plan["user_id"] == 42
    assert plan["target_calories"] == 2000
    assert plan["description"]["generatedAt"] == "2025-05-01T08:00:00+00:00"
    day = plan["days"][0]
    assert day["notes"]["remaining"] == {
        "calories": 200,
        "protein": 55,
        "carbs": 60,
        "fat": 10,
    }
    breakfast, snack = day["meals"]
    assert breakfast["meal_type"] == "BREAKFAST"
    assert breakfast["slot_order"] == 1
    assert breakfast["recipe_id"] == 1
    assert breakfast["notes"]["portionMultiplier"] == 3.0
    assert snack["meal_type"] == "SNACK"
    assert snack["slot_order"] == 4
    assert snack["recipe_id"] is None
    assert snack["notes"] == {
        "nutrition": {"calories": 300, "protein": 5, "carbs": 40, "fat": 12},
        "source": "external",
        "externalId": "52893",
        "slug": "apple-frangipan-tart",
    }


def test_create_plan_without_id_raises() -> None:
    repository = SupabaseMealPlanRepository(FakeSupabaseClient(rpc_result=None))

    with pytest.raises(RuntimeError):
        repository.create_plan(_draft())


def test_find_latest_plan_prefers_active_diet_plan() -> None:
    client = FakeSupabaseClient()
    client.table("meal_plans").queue(
        "select",
        [
            {
                "id": 5,
                "user_id": 42,
                "diet_plan_id": 3,
                "name": "Newest",
                "description": {},
                "created_at": "2025-05-03T10:00:00+00:00",
                "diet_plans": {"status": "completed"},
            },
            {
                "id": 4,
                "user_id": 42,
                "diet_plan_id": 2,
                "name": "Active",
                "description": {"generatedAt": "2025-05-02T10:00:00+00:00"},
                "target_calories": "1800",
                "start_date": "2025-05-02",
                "created_at": "2025-05-02T10:00:00+00:00",
                "diet_plans": {"status": "active"},
            },
        ],
    )
    repository = SupabaseMealPlanRepository(client)

    header = repository.find_latest_plan(42)

    assert header is not None
    assert header.id == 4
    assert header.target_calories == 1800
    assert header.start_date == date(2025, 5, 2)


def test_list_days_and_meals_parse_rows() -> None:
    client = FakeSupabaseClient()
    client.table("meal_plan_days").queue(
        "select",
        [
            {
                "id": 11,
                "meal_plan_id": 4,
                "day_number": 1,
                "date": "2025-05-02",
                "notes": {"totals": {"calories": 500}},
            }
        ],
    )
    client.table("meal_plan_meals").queue(
        "select",
        [
            {
                "id": 21,
                "day_id": 11,
                "meal_type": "lunch",
                "recipe_id": 8,
                "custom_meal_name": "Lentil Soup",
                "custom_meal_description": None,
                "slot_order": 2,
                "notes": '{"source": "mealdb", "externalId": 52772}',
                "recipes": {
                    "title": "Lentil Soup",
                    "slug": "lentil-soup",
                    "nutritional_info": [
                        {"calories": 310, "protein": 18, "carbs": 45, "fats": 6}
                    ],
                },
            }
        ],
    )
    repository = SupabaseMealPlanRepository(client)

    days = repository.list_days(4)
    meals = repository.list_meals([day.id for day in days])

    assert days[0].notes == {"totals": {"calories": 500}}
    meal = meals[0]
    assert meal.meal_type is MealSlot.LUNCH
    assert meal.order == 2
    assert meal.notes.source is MealSource.EXTERNAL
    assert meal.notes.external_id == "52772"
    assert meal.recipe_slug == "lentil-soup"
    assert meal.recipe_nutrition == MacroVector(calories=310, protein=18, carbs=45, fat=6)
    assert ("day_id", [11]) in client.table("meal_plan_meals").last_filters


def test_update_meal_notes_targets_row() -> None:
    client = FakeSupabaseClient()
    repository = SupabaseMealPlanRepository(client)

    repository.update_meal_notes(21, {"slug": "lentil-soup"})

    table = client.table("meal_plan_meals")
    assert table.last_payload == {"notes": {"slug": "lentil-soup"}}
    assert ("id", 21) in table.last_filters


def test_diet_plan_repository_scopes_to_owner() -> None:
    client = FakeSupabaseClient()
    client.table("diet_plans").queue(
        "select",
        [
            {
                "id": 9,
                "user_id": 42,
                "name": "Cut",
                "goal": "lose_weight",
                "plan_type": "custom",
                "start_date": "2025-03-01",
                "end_date": "2025-03-03",
                "total_days": 3,
                "daily_calories": 1800,
                "protein_g": "140",
                "carbs_g": None,
                "fat_g": 60,
                "target_weight_kg": 72.5,
                "status": "active",
            }
        ],
    )
    repository = SupabaseDietPlanRepository(client)

    plan = repository.get_diet_plan(9, 42)
    missing = repository.get_diet_plan(9, 7)

    assert plan is not None
    assert plan.protein_g == 140
    assert plan.carbs_g is None
    assert plan.end_date == date(2025, 3, 3)
    assert missing is None
    assert ("user_id", 42) in client.table("diet_plans").last_filters


def test_recipe_repository_refs_and_slug_lookup() -> None:
    client = FakeSupabaseClient(
        rpc_result=[{"id": 1, "slug": "oats"}, {"id": "2", "slug": None}]
    )
    client.table("recipes").queue(
        "select",
        [
            {
                "id": 1,
                "slug": "oats",
                "title": "Oats",
                "description": None,
                "nutritional_info": {"calories": 350, "protein": 12, "carbs": 60, "fats": 7},
            }
        ],
    )
    repository = SupabaseRecipeRepository(client)

    refs = repository.sample_public_recipe_refs(5)
    recipe = repository.get_recipe("oats")

    assert client.rpc_calls == [("sample_community_recipes", {"sample_size": 5})]
    assert [ref.id for ref in refs] == [1, 2]
    assert recipe is not None
    assert recipe.nutrition == MacroVector(calories=350, protein=12, carbs=60, fat=7)
    assert ("slug", "oats") in client.table("recipes").last_filters
    assert repository.get_recipe("99") is None
    assert ("id", 99) in client.table("recipes").last_filters
