"""Supabase repository for diet plans."""

from dataclasses import dataclass
from datetime import date

from supabase import Client

from fitsavory_planner.domain.plans import DietPlan
from fitsavory_planner.services.plans import DietPlanRepository

_DIET_PLAN_COLUMNS = (
    "id, user_id, name, goal, plan_type, start_date, end_date, total_days, "
    "daily_calories, protein_g, carbs_g, fat_g, target_weight_kg, status"
)


@dataclass
class SupabaseDietPlanRepository(DietPlanRepository):
    """Supabase-backed read access to diet plans."""

    client: Client

    def get_diet_plan(self, diet_plan_id: int, user_id: int) -> DietPlan | None:
        """Return a diet plan owned by ``user_id``."""
        response = (
            self.client.table("diet_plans")
            .select(_DIET_PLAN_COLUMNS)
            .eq("id", diet_plan_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_diet_plan(response.data[0])


def _parse_diet_plan(row: dict[str, object]) -> DietPlan:
    return DietPlan(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        name=row.get("name"),
        goal=row.get("goal"),
        plan_type=row.get("plan_type"),
        start_date=_parse_date(row.get("start_date")),
        end_date=_parse_date(row.get("end_date")),
        total_days=int(row["total_days"]) if row.get("total_days") is not None else None,
        daily_calories=_optional_float(row.get("daily_calories")),
        protein_g=_optional_float(row.get("protein_g")),
        carbs_g=_optional_float(row.get("carbs_g")),
        fat_g=_optional_float(row.get("fat_g")),
        target_weight_kg=_optional_float(row.get("target_weight_kg")),
        status=row.get("status"),
    )


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)


def _parse_date(value: object) -> date | None:
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    return None
