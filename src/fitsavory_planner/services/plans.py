"""Meal plan creation and loading."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol

from fitsavory_planner.domain.errors import DietPlanNotFoundError, PlanPersistenceError
from fitsavory_planner.domain.macros import MacroVector
from fitsavory_planner.domain.meals import ScaledMeal, StoredMealRow
from fitsavory_planner.domain.plans import (
    DayPlan,
    DietPlan,
    MacroTargets,
    PlanDayRow,
    PlanDraft,
    PlanHeader,
    PlanMode,
)
from fitsavory_planner.services.allocation import MealAllocator
from fitsavory_planner.services.backfill import MealNotesBackfill
from fitsavory_planner.services.requests import (
    diet_plan_targets,
    normalize_targets,
    requested_diet_plan_id,
    resolve_generation_request,
)

_logger = logging.getLogger(__name__)

EMPTY_PLAN_RESPONSE: dict[str, object] = {
    "mealPlan": None,
    "targets": None,
    "metadata": None,
}


class MealPlanRepository(Protocol):
    """Persistence interface for meal plans."""

    def create_plan(self, draft: PlanDraft) -> int:
        """Store header, days and meals atomically and return the plan id."""

    def get_plan(self, user_id: int, plan_id: int) -> PlanHeader | None:
        """Return a user's plan header by id."""

    def find_latest_plan(
        self, user_id: int, diet_plan_id: int | None = None
    ) -> PlanHeader | None:
        """Return the most relevant plan for a user or one of their diet plans."""

    def list_days(self, plan_id: int) -> list[PlanDayRow]:
        """Return day rows ordered by day number."""

    def list_meals(self, day_ids: list[int]) -> list[StoredMealRow]:
        """Return meal rows ordered by day, slot order and id."""

    def update_meal_notes(self, meal_id: int, notes: dict[str, object]) -> None:
        """Replace the stored notes of a plan meal."""


class DietPlanRepository(Protocol):
    """Read access to long-term diet plans."""

    def get_diet_plan(self, diet_plan_id: int, user_id: int) -> DietPlan | None:
        """Return a diet plan owned by ``user_id``."""


@dataclass
class MealPlanService:
    """Generates, stores and reloads meal plans for a caller."""

    allocator: MealAllocator
    plan_repository: MealPlanRepository
    diet_plan_repository: DietPlanRepository
    backfill: MealNotesBackfill
    default_mode: PlanMode = PlanMode.SCALED
    generation_timeout_seconds: float | None = 60.0

    async def create_plan(
        self, user_id: int, payload: Mapping[str, object]
    ) -> dict[str, object]:
        """Generate a plan for ``payload``, store it and return the stored view."""
        diet_plan: DietPlan | None = None
        diet_plan_id = requested_diet_plan_id(payload)
        if diet_plan_id is not None:
            diet_plan = self.diet_plan_repository.get_diet_plan(diet_plan_id, user_id)
            if diet_plan is None:
                raise DietPlanNotFoundError(diet_plan_id)

        now = datetime.now(tz=UTC)
        request = resolve_generation_request(
            payload, diet_plan, today=now.date(), default_mode=self.default_mode
        )
        document = await asyncio.wait_for(
            self.allocator.generate(
                request.targets, request.days, request.start_date, request.mode
            ),
            timeout=self.generation_timeout_seconds,
        )
        draft = PlanDraft(
            user_id=user_id,
            diet_plan_id=diet_plan.id if diet_plan else None,
            name=request.name,
            start_date=request.start_date,
            end_date=request.end_date,
            generated_at=now,
            document=document,
        )
        try:
            plan_id = self.plan_repository.create_plan(draft)
        except Exception as exc:
            raise PlanPersistenceError("Failed to store meal plan") from exc
        _logger.info(
            "Stored meal plan: plan_id=%s user_id=%s days=%s mode=%s",
            plan_id,
            user_id,
            request.days,
            request.mode.value,
        )
        return await self.load_plan(user_id, plan_id=plan_id)

    async def load_plan(
        self,
        user_id: int,
        plan_id: int | None = None,
        diet_plan_id: int | None = None,
    ) -> dict[str, object]:
        """Load the requested, or most relevant, stored plan for a user."""
        if plan_id is not None:
            header = self.plan_repository.get_plan(user_id, plan_id)
        else:
            header = self.plan_repository.find_latest_plan(user_id, diet_plan_id)
        if header is None:
            return dict(EMPTY_PLAN_RESPONSE)

        linked = (
            self.diet_plan_repository.get_diet_plan(header.diet_plan_id, user_id)
            if header.diet_plan_id is not None
            else None
        )
        day_rows = self.plan_repository.list_days(header.id)
        meal_rows = (
            self.plan_repository.list_meals([day.id for day in day_rows])
            if day_rows
            else []
        )
        report = await self.backfill.run(meal_rows)
        return build_plan_response(header, day_rows, report.rows, linked)


def build_plan_response(
    header: PlanHeader,
    day_rows: list[PlanDayRow],
    meal_rows: list[StoredMealRow],
    diet_plan: DietPlan | None,
) -> dict[str, object]:
    """Map stored rows back into the plan response document."""
    days: dict[int, DayPlan] = {day.id: _day_from_row(day) for day in day_rows}
    for row in meal_rows:
        day = days.get(row.day_id)
        if day is not None:
            day.assign(row.meal_type, _meal_from_row(row))

    plan_targets = stored_plan_targets(header)
    linked_targets = diet_plan_targets(diet_plan, plan_targets) if diet_plan else None
    ordered_days = sorted(days.values(), key=lambda day: day.day_number)
    return {
        "planId": header.id,
        "name": header.name,
        "targets": (linked_targets or plan_targets).to_document(),
        "metadata": {
            "startDate": _iso(header.start_date),
            "endDate": _iso(header.end_date),
            "generatedAt": header.description.get("generatedAt"),
            "dietPlanId": diet_plan.id if diet_plan else None,
        },
        "dietPlan": _diet_plan_document(diet_plan, linked_targets),
        "mealPlan": [day.to_document() for day in ordered_days],
    }


def stored_plan_targets(header: PlanHeader) -> MacroTargets:
    """Targets stored on a plan, falling back to its description, then defaults."""
    described = header.description.get("targets")
    described = described if isinstance(described, Mapping) else {}
    return normalize_targets(
        {
            "calories": _first_present(header.target_calories, described.get("calories")),
            "protein": _first_present(header.target_protein, described.get("protein")),
            "carbs": _first_present(header.target_carbs, described.get("carbs")),
            "fat": _first_present(header.target_fat, described.get("fat")),
            "waterMl": described.get("waterMl"),
        }
    )


def _day_from_row(row: PlanDayRow) -> DayPlan:
    totals = row.notes.get("totals")
    remaining = row.notes.get("remaining")
    water = row.notes.get("waterGoalMl")
    return DayPlan(
        day_number=row.day_number,
        date=row.date,
        totals=MacroVector.from_mapping(totals if isinstance(totals, dict) else None),
        remaining=(
            MacroVector.from_mapping(remaining) if isinstance(remaining, dict) else None
        ),
        water_goal_ml=water if isinstance(water, int | float) and water > 0 else None,
    )


def _meal_from_row(row: StoredMealRow) -> ScaledMeal:
    notes = row.notes
    nutrition = notes.nutrition if notes.has_usable_nutrition() else row.recipe_nutrition
    identifier = notes.external_id or (
        str(row.recipe_id) if row.recipe_id is not None else str(row.id)
    )
    return ScaledMeal(
        identifier=identifier,
        title=row.name or row.recipe_title or "Custom meal",
        source=notes.source,
        nutrition=nutrition,
        local_recipe_id=row.recipe_id,
        external_id=notes.external_id,
        slug=row.recipe_slug or notes.slug,
        description=row.description,
        portion_multiplier=notes.portion_multiplier,
    )


def _diet_plan_document(
    diet_plan: DietPlan | None, targets: MacroTargets | None
) -> dict[str, object] | None:
    if diet_plan is None:
        return None
    return {
        "id": diet_plan.id,
        "name": diet_plan.name,
        "goal": diet_plan.goal,
        "planType": diet_plan.plan_type,
        "startDate": _iso(diet_plan.start_date),
        "endDate": _iso(diet_plan.end_date),
        "totalDays": diet_plan.total_days,
        "targets": targets.to_document() if targets else None,
        "dailyCalories": diet_plan.daily_calories,
        "targetWeightKg": diet_plan.target_weight_kg,
        "status": diet_plan.status or "active",
    }


def _first_present(*values: object) -> object:
    return next((value for value in values if value is not None), None)


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None
