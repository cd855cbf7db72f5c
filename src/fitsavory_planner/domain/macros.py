"""Macro-nutrient vectors and the arithmetic used by the plan builder."""

import math
from collections.abc import Mapping
from dataclasses import dataclass, fields

MACRO_FIELDS = ("calories", "protein", "carbs", "fat")
REMAINING_TOLERANCE = 0.5

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "calories": ("calories", "kcal"),
    "protein": ("protein", "protein_g"),
    "carbs": ("carbs", "carbs_g", "carbohydrates_total_g"),
    "fat": ("fat", "fats", "fat_g", "fat_total_g"),
}


@dataclass(frozen=True)
class MacroVector:
    """Calories and grams of protein, carbs and fat."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object] | None) -> "MacroVector":
        """Build a vector from loosely typed data, treating junk as zero."""
        if not raw:
            return cls()
        values: dict[str, float] = {}
        for name, aliases in _FIELD_ALIASES.items():
            value = 0.0
            for alias in aliases:
                parsed = to_finite_float(raw.get(alias))
                if parsed is not None:
                    value = parsed
                    break
            values[name] = max(value, 0.0)
        return cls(**values)

    def as_dict(self) -> dict[str, float]:
        """Return the vector as a plain mapping."""
        return {item.name: getattr(self, item.name) for item in fields(self)}

    def rounded(self) -> "MacroVector":
        """Return the vector rounded to whole units."""
        return MacroVector(
            **{name: float(round_half_up(value)) for name, value in self.as_dict().items()}
        )

    def has_positive_field(self) -> bool:
        """Return True when at least one macro is positive."""
        return any(value > 0 for value in self.as_dict().values())


def to_finite_float(value: object) -> float | None:
    """Parse a number, returning None for missing or non-finite input."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int | float):
        try:
            parsed = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return parsed if math.isfinite(parsed) else None


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return math.floor(value + 0.5)


def accumulate(vector: MacroVector, delta: MacroVector | None) -> MacroVector:
    """Add ``delta`` to ``vector`` without mutating either."""
    if delta is None:
        return vector
    totals = vector.as_dict()
    for name in MACRO_FIELDS:
        amount = getattr(delta, name, None)
        if isinstance(amount, int | float) and math.isfinite(amount):
            totals[name] += amount
    return MacroVector(**totals)


def subtract_floored(vector: MacroVector, delta: MacroVector | None) -> MacroVector:
    """Subtract ``delta`` per field, never going below zero."""
    remaining: dict[str, float] = {}
    for name in MACRO_FIELDS:
        base = getattr(vector, name)
        amount = getattr(delta, name, 0.0) if delta is not None else 0.0
        result = base - amount
        remaining[name] = result if math.isfinite(result) and result > 0 else 0.0
    return MacroVector(**remaining)


def within_tolerance(
    vector: MacroVector, tolerance: float = REMAINING_TOLERANCE
) -> bool:
    """Return True when every field is at or below ``tolerance``."""
    return all(getattr(vector, name) <= tolerance for name in MACRO_FIELDS)


def fits_within(
    nutrition: MacroVector,
    remaining: MacroVector,
    tolerance: float = REMAINING_TOLERANCE,
) -> bool:
    """Return True when ``nutrition`` fits ``remaining`` up to ``tolerance``."""
    return all(
        getattr(remaining, name) + tolerance >= getattr(nutrition, name)
        for name in MACRO_FIELDS
    )
