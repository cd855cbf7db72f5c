"""Normalization of plan-generation requests.

Invalid or missing inputs are defaulted or clamped, never rejected.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from fitsavory_planner.domain.macros import round_half_up, to_finite_float
from fitsavory_planner.domain.plans import DEFAULT_TARGETS, DietPlan, MacroTargets, PlanMode

DEFAULT_PLAN_DAYS = 7
MIN_PLAN_DAYS = 1
MAX_PLAN_DAYS = 14

_WATER_KEYS = ("waterMl", "water_ml", "waterGoal", "water_goal")


@dataclass(frozen=True)
class GenerationRequest:
    """A fully resolved plan-generation request."""

    targets: MacroTargets
    days: int
    start_date: date
    end_date: date
    name: str
    mode: PlanMode
    diet_plan: DietPlan | None


def normalize_targets(
    raw: Mapping[str, object] | None, fallback: MacroTargets = DEFAULT_TARGETS
) -> MacroTargets:
    """Take positive values from ``raw`` and ``fallback`` for the rest."""
    raw = raw or {}
    water_raw = next((raw[key] for key in _WATER_KEYS if raw.get(key) is not None), None)
    water = _positive_whole(water_raw)
    return MacroTargets(
        calories=_positive_whole(raw.get("calories")) or fallback.calories,
        protein=_positive_whole(raw.get("protein")) or fallback.protein,
        carbs=_positive_whole(raw.get("carbs")) or fallback.carbs,
        fat=_positive_whole(raw.get("fat")) or fallback.fat,
        water_ml=water if water is not None else fallback.water_ml,
    )


def diet_plan_targets(
    diet_plan: DietPlan, fallback: MacroTargets = DEFAULT_TARGETS
) -> MacroTargets:
    """Return a diet plan's macros as targets."""
    return normalize_targets(
        {
            "calories": diet_plan.daily_calories,
            "protein": diet_plan.protein_g,
            "carbs": diet_plan.carbs_g,
            "fat": diet_plan.fat_g,
        },
        fallback,
    )


def clamp_day_count(value: object, default: int = DEFAULT_PLAN_DAYS) -> int:
    """Clamp a day count to [1, 14]; non-numeric or non-positive gives ``default``."""
    parsed = to_finite_float(value)
    if parsed is None or parsed <= 0:
        return default
    return max(MIN_PLAN_DAYS, min(MAX_PLAN_DAYS, round_half_up(parsed)))


def inclusive_day_count(start: date | None, end: date | None) -> int | None:
    """Number of days from ``start`` to ``end`` inclusive, or None if invalid."""
    if start is None or end is None:
        return None
    diff = (end - start).days
    return diff + 1 if diff >= 0 else None


def parse_date(value: object) -> date | None:
    """Parse an ISO date or datetime string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_int(value: object) -> int | None:
    """Parse an integer id, returning None for anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def requested_diet_plan_id(payload: Mapping[str, object]) -> int | None:
    """Return the diet plan id referenced by a request, if any."""
    for key in ("dietPlanId", "diet_plan_id", "planId"):
        parsed = parse_int(payload.get(key))
        if parsed is not None:
            return parsed
    return None


def resolve_generation_request(
    payload: Mapping[str, object],
    diet_plan: DietPlan | None,
    today: date,
    default_mode: PlanMode = PlanMode.SCALED,
) -> GenerationRequest:
    """Resolve targets, day count, dates, name and mode for a request."""
    fallback = diet_plan_targets(diet_plan) if diet_plan else DEFAULT_TARGETS
    nested = payload.get("targets")
    raw_targets: dict[str, object] = dict(nested) if isinstance(nested, Mapping) else {}
    for key in ("calories", "protein", "carbs", "fat", *_WATER_KEYS):
        if payload.get(key) is not None:
            raw_targets[key] = payload[key]
    targets = normalize_targets(raw_targets, fallback)

    requested_start = parse_date(payload.get("startDate"))
    requested_end = parse_date(payload.get("endDate"))
    requested_days = payload.get("days", payload.get("totalDays"))
    if clamp_day_count(requested_days, default=0):
        days = clamp_day_count(requested_days)
    elif inclusive_day_count(requested_start, requested_end):
        days = clamp_day_count(inclusive_day_count(requested_start, requested_end))
    elif diet_plan is not None:
        diet_days = inclusive_day_count(diet_plan.start_date, diet_plan.end_date)
        days = clamp_day_count(diet_days or diet_plan.total_days)
    else:
        days = DEFAULT_PLAN_DAYS

    start = requested_start or (diet_plan.start_date if diet_plan else None)
    end = requested_end or (diet_plan.end_date if diet_plan else None)
    if start is None and end is not None:
        start = end - timedelta(days=days - 1)
    start = start or today
    if not inclusive_day_count(start, end):
        end = start + timedelta(days=days - 1)

    name_raw = payload.get("name")
    name = (
        (name_raw.strip() if isinstance(name_raw, str) else "")
        or (diet_plan.name if diet_plan and diet_plan.name else "")
        or f"FitSavory Plan ({start.isoformat()})"
    )
    return GenerationRequest(
        targets=targets,
        days=days,
        start_date=start,
        end_date=end,
        name=name,
        mode=PlanMode.parse(payload.get("mode"), default_mode),
        diet_plan=diet_plan,
    )


def _positive_whole(value: object) -> int | None:
    parsed = to_finite_float(value)
    if parsed is None or parsed <= 0:
        return None
    return round_half_up(parsed)
