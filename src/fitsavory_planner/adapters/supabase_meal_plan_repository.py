"""Supabase repository for meal plans."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from supabase import Client

from fitsavory_planner.domain.macros import MacroVector
from fitsavory_planner.domain.meals import MealNotes, MealSlot, StoredMealRow
from fitsavory_planner.domain.plans import PlanDayRow, PlanDraft, PlanHeader
from fitsavory_planner.services.plans import MealPlanRepository

_CANDIDATE_PLANS = 50
_DIET_STATUS_PRIORITY = {"active": 0, None: 1}


@dataclass
class SupabaseMealPlanRepository(MealPlanRepository):
    """Supabase implementation for meal plan storage."""

    client: Client

    def create_plan(self, draft: PlanDraft) -> int:
        """Insert header, days and meals through one transactional RPC call."""
        response = self.client.rpc(
            "create_meal_plan", {"plan": serialize_draft(draft)}
        ).execute()
        plan_id = _scalar(response.data, "create_meal_plan")
        if plan_id is None:
            raise RuntimeError("Failed to create meal plan")
        return int(plan_id)

    def get_plan(self, user_id: int, plan_id: int) -> PlanHeader | None:
        """Return a user's plan header by id."""
        response = (
            self.client.table("meal_plans")
            .select("*")
            .eq("id", plan_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_header(response.data[0])

    def find_latest_plan(
        self, user_id: int, diet_plan_id: int | None = None
    ) -> PlanHeader | None:
        """Return the newest plan, preferring ones linked to an active diet plan."""
        if diet_plan_id is not None:
            response = (
                self.client.table("meal_plans")
                .select("*")
                .eq("user_id", user_id)
                .eq("diet_plan_id", diet_plan_id)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
            return _parse_header(response.data[0]) if response.data else None

        response = (
            self.client.table("meal_plans")
            .select("*, diet_plans(status)")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(_CANDIDATE_PLANS)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        best = min(rows, key=lambda row: _DIET_STATUS_PRIORITY.get(_diet_status(row), 2))
        return _parse_header(best)

    def list_days(self, plan_id: int) -> list[PlanDayRow]:
        """Return day rows ordered by day number."""
        response = (
            self.client.table("meal_plan_days")
            .select("id, meal_plan_id, day_number, date, notes")
            .eq("meal_plan_id", plan_id)
            .order("day_number", desc=False)
            .execute()
        )
        return [_parse_day(row) for row in response.data or []]

    def list_meals(self, day_ids: list[int]) -> list[StoredMealRow]:
        """Return meal rows with their linked recipe, ordered for display."""
        if not day_ids:
            return []
        response = (
            self.client.table("meal_plan_meals")
            .select(
                "id, day_id, meal_type, recipe_id, custom_meal_name, "
                "custom_meal_description, slot_order, notes, "
                "recipes(title, slug, nutritional_info(calories, protein, carbs, fats))"
            )
            .in_("day_id", day_ids)
            .order("day_id", desc=False)
            .order("slot_order", desc=False)
            .order("id", desc=False)
            .execute()
        )
        return [_parse_meal(row) for row in response.data or []]

    def update_meal_notes(self, meal_id: int, notes: dict[str, object]) -> None:
        """Replace the notes of a plan meal."""
        self.client.table("meal_plan_meals").update({"notes": notes}).eq(
            "id", meal_id
        ).execute()


def serialize_draft(draft: PlanDraft) -> dict[str, object]:
    """Build the JSON document consumed by the ``create_meal_plan`` function."""
    targets = draft.document.targets
    days = []
    for day in draft.document.days:
        day_notes: dict[str, object] = {
            "totals": _whole(day.totals),
            "waterGoalMl": day.water_goal_ml,
        }
        if day.remaining is not None:
            day_notes["remaining"] = _whole(day.remaining)
        days.append(
            {
                "day_number": day.day_number,
                "date": day.date.isoformat() if day.date else None,
                "notes": day_notes,
                "meals": [
                    {
                        "meal_type": slot.value,
                        "recipe_id": meal.local_recipe_id,
                        "custom_meal_name": meal.title
                        or f"Untitled {slot.value.lower()}",
                        "custom_meal_description": meal.description,
                        "slot_order": order,
                        "notes": MealNotes.for_meal(meal).to_json(),
                    }
                    for slot, order, meal in day.iter_meals()
                ],
            }
        )
    return {
        "user_id": draft.user_id,
        "diet_plan_id": draft.diet_plan_id,
        "name": draft.name,
        "description": {
            "source": "FitSavory",
            "generatedAt": draft.generated_at.isoformat(),
            "targets": targets.to_document(),
            "dietPlanId": draft.diet_plan_id,
        },
        "target_calories": targets.calories,
        "target_protein": targets.protein,
        "target_carbs": targets.carbs,
        "target_fat": targets.fat,
        "start_date": draft.start_date.isoformat(),
        "end_date": draft.end_date.isoformat(),
        "days": days,
    }


def _scalar(data: Any, key: str) -> object | None:
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        data = data.get(key)
    if isinstance(data, int | str) and str(data).isdigit():
        return data
    return None


def _diet_status(row: dict[str, object]) -> str | None:
    linked = row.get("diet_plans")
    if isinstance(linked, list):
        linked = linked[0] if linked else None
    if isinstance(linked, dict):
        return linked.get("status")
    return None


def _parse_header(row: dict[str, object]) -> PlanHeader:
    description = row.get("description")
    return PlanHeader(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        diet_plan_id=int(row["diet_plan_id"]) if row.get("diet_plan_id") else None,
        name=str(row.get("name") or ""),
        description=description if isinstance(description, dict) else {},
        target_calories=_optional_float(row.get("target_calories")),
        target_protein=_optional_float(row.get("target_protein")),
        target_carbs=_optional_float(row.get("target_carbs")),
        target_fat=_optional_float(row.get("target_fat")),
        start_date=_parse_date(row.get("start_date")),
        end_date=_parse_date(row.get("end_date")),
        created_at=(
            datetime.fromisoformat(row["created_at"])
            if isinstance(row.get("created_at"), str)
            else None
        ),
    )


def _parse_day(row: dict[str, object]) -> PlanDayRow:
    notes = row.get("notes")
    return PlanDayRow(
        id=int(row["id"]),
        plan_id=int(row["meal_plan_id"]),
        day_number=int(row["day_number"]),
        date=_parse_date(row.get("date")),
        notes=notes if isinstance(notes, dict) else {},
    )


def _parse_meal(row: dict[str, object]) -> StoredMealRow:
    recipe = row.get("recipes") if isinstance(row.get("recipes"), dict) else {}
    nutrition_raw = recipe.get("nutritional_info")
    if isinstance(nutrition_raw, list):
        nutrition_raw = nutrition_raw[0] if nutrition_raw else None
    meal_type = str(row.get("meal_type") or MealSlot.SNACK.value).upper()
    return StoredMealRow(
        id=int(row["id"]),
        day_id=int(row["day_id"]),
        meal_type=(
            MealSlot(meal_type)
            if meal_type in MealSlot.__members__
            else MealSlot.SNACK
        ),
        order=int(row.get("slot_order") or 0),
        name=row.get("custom_meal_name"),
        description=row.get("custom_meal_description"),
        recipe_id=int(row["recipe_id"]) if row.get("recipe_id") else None,
        notes=MealNotes.from_raw(row.get("notes")),
        recipe_title=recipe.get("title"),
        recipe_slug=recipe.get("slug"),
        recipe_nutrition=(
            MacroVector.from_mapping(nutrition_raw)
            if isinstance(nutrition_raw, dict)
            else None
        ),
    )


def _whole(vector: MacroVector) -> dict[str, int]:
    return {name: int(value) for name, value in vector.rounded().as_dict().items()}


def _optional_float(value: object) -> float | None:
    if isinstance(value, int | float | str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _parse_date(value: object) -> date | None:
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    return None
