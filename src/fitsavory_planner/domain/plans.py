"""Domain models for generated and stored meal plans."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum

from fitsavory_planner.domain.macros import MacroVector
from fitsavory_planner.domain.meals import CORE_SLOTS, MealSlot, ScaledMeal


class PlanMode(StrEnum):
    """Day-building strategy."""

    SCALED = "scaled"
    BALANCED = "balanced"

    @classmethod
    def parse(cls, value: object, default: "PlanMode") -> "PlanMode":
        """Parse a mode flag, falling back to ``default``."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return default
        return default


@dataclass(frozen=True)
class MacroTargets:
    """Daily macro targets plus an optional water goal."""

    calories: int
    protein: int
    carbs: int
    fat: int
    water_ml: int | None = None

    def budget(self) -> MacroVector:
        """Return the allocatable part of the targets."""
        return MacroVector(
            calories=self.calories,
            protein=self.protein,
            carbs=self.carbs,
            fat=self.fat,
        )

    def to_document(self) -> dict[str, object]:
        """Render the targets for API responses."""
        return {
            "calories": self.calories,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
            "waterMl": self.water_ml,
        }


DEFAULT_TARGETS = MacroTargets(calories=2000, protein=150, carbs=250, fat=67)


@dataclass
class DayPlan:
    """Meals assigned to one day of a plan."""

    day_number: int
    date: date | None
    breakfast: ScaledMeal | None = None
    lunch: ScaledMeal | None = None
    dinner: ScaledMeal | None = None
    snacks: list[ScaledMeal] = field(default_factory=list)
    totals: MacroVector = field(default_factory=MacroVector)
    remaining: MacroVector | None = None
    water_goal_ml: float | None = None

    def slot(self, slot: MealSlot) -> ScaledMeal | None:
        """Return the meal in a core slot."""
        return getattr(self, slot.value.lower())

    def assign(self, slot: MealSlot, meal: ScaledMeal) -> None:
        """Place a meal in a slot, appending for snacks."""
        if slot is MealSlot.SNACK:
            self.snacks.append(meal)
        else:
            setattr(self, slot.value.lower(), meal)

    def iter_meals(self) -> Iterator[tuple[MealSlot, int, ScaledMeal]]:
        """Yield (slot, order, meal) in storage order."""
        for index, slot in enumerate(CORE_SLOTS, start=1):
            meal = self.slot(slot)
            if meal is not None:
                yield slot, index, meal
        for index, snack in enumerate(self.snacks, start=len(CORE_SLOTS) + 1):
            yield MealSlot.SNACK, index, snack

    def to_document(self) -> dict[str, object]:
        """Render the day for API responses."""
        document: dict[str, object] = {
            "day": self.day_number,
            "date": self.date.isoformat() if self.date else None,
            "breakfast": self.breakfast.to_document() if self.breakfast else None,
            "lunch": self.lunch.to_document() if self.lunch else None,
            "dinner": self.dinner.to_document() if self.dinner else None,
            "snacks": [snack.to_document() for snack in self.snacks],
            "totals": _whole(self.totals),
            "waterGoalMl": self.water_goal_ml,
        }
        if self.remaining is not None:
            document["remaining"] = _whole(self.remaining)
        return document


@dataclass(frozen=True)
class MealPlanDocument:
    """Output of a generation run, independent of storage."""

    targets: MacroTargets
    days: list[DayPlan]


@dataclass(frozen=True)
class DietPlan:
    """A user's longer-term diet plan."""

    id: int
    user_id: int
    name: str | None
    goal: str | None
    plan_type: str | None
    start_date: date | None
    end_date: date | None
    total_days: int | None
    daily_calories: float | None
    protein_g: float | None
    carbs_g: float | None
    fat_g: float | None
    target_weight_kg: float | None
    status: str | None


@dataclass(frozen=True)
class PlanHeader:
    """Stored meal plan header row."""

    id: int
    user_id: int
    diet_plan_id: int | None
    name: str
    description: dict[str, object]
    target_calories: float | None
    target_protein: float | None
    target_carbs: float | None
    target_fat: float | None
    start_date: date | None
    end_date: date | None
    created_at: datetime | None = None


@dataclass(frozen=True)
class PlanDayRow:
    """Stored meal plan day row."""

    id: int
    plan_id: int
    day_number: int
    date: date | None
    notes: dict[str, object]


@dataclass(frozen=True)
class PlanDraft:
    """Everything needed to persist a generated plan in one transaction."""

    user_id: int
    diet_plan_id: int | None
    name: str
    start_date: date
    end_date: date
    generated_at: datetime
    document: MealPlanDocument


def _whole(vector: MacroVector) -> dict[str, int]:
    return {name: int(value) for name, value in vector.rounded().as_dict().items()}
