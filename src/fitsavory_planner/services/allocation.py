"""Macro-budget meal allocation.

A day is filled greedily: breakfast, lunch and dinner first, then snacks until
the remaining budget is within tolerance. A candidate is only accepted when its
base portion already fits every macro it contains; it is then scaled *up*
toward the tightest macro, capped at ``MAX_PORTION_MULTIPLIER``. Nothing is
ever scaled below one serving, and assigned slots are never revisited.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta

from fitsavory_planner.domain.macros import (
    MACRO_FIELDS,
    REMAINING_TOLERANCE,
    MacroVector,
    accumulate,
    fits_within,
    round_half_up,
    subtract_floored,
    within_tolerance,
)
from fitsavory_planner.domain.meals import CORE_SLOTS, CandidateMeal, MealSlot, ScaledMeal
from fitsavory_planner.domain.plans import DayPlan, MacroTargets, MealPlanDocument, PlanMode
from fitsavory_planner.services.candidates import CandidateSupplier
from fitsavory_planner.services.nutrition import NutritionResolver

MAX_MEAL_ATTEMPTS = 10
MAX_SNACKS_PER_DAY = 6
MAX_SNACK_ATTEMPTS = MAX_SNACKS_PER_DAY * MAX_MEAL_ATTEMPTS
MIN_PORTION_MULTIPLIER = 1.0
MAX_PORTION_MULTIPLIER = 3.0
BALANCED_SNACKS_PER_DAY = 2
MULTIPLIER_EPSILON = 0.01

_logger = logging.getLogger(__name__)


def scale_for_remaining(
    meal: CandidateMeal,
    remaining: MacroVector,
    tolerance: float = REMAINING_TOLERANCE,
) -> ScaledMeal | None:
    """Scale a meal up to fit ``remaining``, or return None if it cannot fit."""
    if meal.nutrition is None:
        return None

    multiplier = MAX_PORTION_MULTIPLIER
    has_positive_macro = False
    for name in MACRO_FIELDS:
        value = getattr(meal.nutrition, name)
        if not math.isfinite(value) or value <= 0:
            continue
        has_positive_macro = True
        need = getattr(remaining, name)
        if need <= tolerance:
            return None
        ratio = need / value
        if not math.isfinite(ratio) or ratio < 1:
            return None
        multiplier = min(multiplier, ratio)

    if not has_positive_macro:
        return None

    multiplier = max(MIN_PORTION_MULTIPLIER, min(multiplier, MAX_PORTION_MULTIPLIER))
    scaled = MacroVector(
        **{
            name: float(round_half_up(value * multiplier)) if value > 0 else 0.0
            for name, value in meal.nutrition.as_dict().items()
        }
    )
    if not scaled.has_positive_field() or not fits_within(scaled, remaining, tolerance):
        return None

    normalized = round(multiplier, 2)
    portion = normalized if abs(normalized - 1) > MULTIPLIER_EPSILON else None
    return ScaledMeal.from_candidate(meal, scaled, portion)


@dataclass
class MealAllocator:
    """Builds multi-day plans from supplied candidates."""

    supplier: CandidateSupplier
    resolver: NutritionResolver

    async def generate(
        self,
        targets: MacroTargets,
        days: int,
        start_date: date | None = None,
        mode: PlanMode = PlanMode.SCALED,
    ) -> MealPlanDocument:
        """Generate ``days`` day plans in ascending order."""
        excluded_community_ids: set[int] = set()
        plans: list[DayPlan] = []
        for day_number in range(1, days + 1):
            day_date = (
                start_date + timedelta(days=day_number - 1) if start_date else None
            )
            if mode is PlanMode.BALANCED:
                day = await self.build_balanced_day(
                    day_number, day_date, targets, excluded_community_ids
                )
            else:
                day = await self.build_scaled_day(
                    day_number, day_date, targets, excluded_community_ids
                )
            plans.append(day)
        return MealPlanDocument(targets=targets, days=plans)

    async def pick_scaled_meal(
        self, remaining: MacroVector, excluded_community_ids: set[int]
    ) -> ScaledMeal | None:
        """Try up to ``MAX_MEAL_ATTEMPTS`` candidates against ``remaining``."""
        for _ in range(MAX_MEAL_ATTEMPTS):
            candidate = await self.supplier.next_candidate(excluded_community_ids)
            if candidate is None:
                continue
            nutrition = await self.resolver.resolve(candidate)
            if nutrition is None:
                continue
            scaled = scale_for_remaining(candidate.with_nutrition(nutrition), remaining)
            if scaled is not None:
                return scaled
        return None

    async def build_scaled_day(
        self,
        day_number: int,
        day_date: date | None,
        targets: MacroTargets,
        excluded_community_ids: set[int],
    ) -> DayPlan:
        """Fill one day against the macro budget."""
        day = DayPlan(
            day_number=day_number, date=day_date, water_goal_ml=targets.water_ml
        )
        remaining = targets.budget()

        for slot in CORE_SLOTS:
            meal = await self.pick_scaled_meal(remaining, excluded_community_ids)
            if meal is None:
                _logger.info("Day %s: no candidate fits %s", day_number, slot.value)
                continue
            day.assign(slot, meal)
            day.totals = accumulate(day.totals, meal.nutrition)
            remaining = subtract_floored(remaining, meal.nutrition)

        attempts = 0
        while (
            not within_tolerance(remaining)
            and len(day.snacks) < MAX_SNACKS_PER_DAY
            and attempts < MAX_SNACK_ATTEMPTS
        ):
            attempts += 1
            snack = await self.pick_scaled_meal(remaining, excluded_community_ids)
            if snack is None:
                continue
            day.assign(MealSlot.SNACK, snack)
            day.totals = accumulate(day.totals, snack.nutrition)
            remaining = subtract_floored(remaining, snack.nutrition)

        if not within_tolerance(remaining):
            day.remaining = remaining
        return day

    async def build_balanced_day(
        self,
        day_number: int,
        day_date: date | None,
        targets: MacroTargets,
        excluded_community_ids: set[int],
    ) -> DayPlan:
        """Fill one day with one unscaled candidate per slot."""
        day = DayPlan(
            day_number=day_number, date=day_date, water_goal_ml=targets.water_ml
        )
        slots = [*CORE_SLOTS, *([MealSlot.SNACK] * BALANCED_SNACKS_PER_DAY)]
        for slot in slots:
            candidate = await self.supplier.next_candidate(excluded_community_ids)
            if candidate is None:
                continue
            nutrition = await self.resolver.resolve(candidate)
            meal = ScaledMeal.from_candidate(candidate, nutrition)
            day.assign(slot, meal)
            day.totals = accumulate(day.totals, nutrition)
        return day
