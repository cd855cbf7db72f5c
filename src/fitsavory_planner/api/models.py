"""Pydantic models for meal plan requests."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class MealPlanRequest(BaseModel):
    """Body of a plan-generation request.

    Every field accepts any JSON value: bad values are defaulted or clamped
    by the service rather than rejected here.
    """

    model_config = ConfigDict(extra="allow")

    calories: Any = None
    protein: Any = None
    carbs: Any = None
    fat: Any = None
    waterMl: Any = None
    targets: Any = None
    days: Any = None
    startDate: Any = None
    endDate: Any = None
    dietPlanId: Any = None
    name: Any = None
    mode: Any = None

    @classmethod
    def from_body(cls, body: Any) -> "MealPlanRequest":
        """Build a request from a decoded JSON body; non-objects count as empty."""
        if not isinstance(body, dict):
            return cls()
        return cls.model_validate(body)

    def to_payload(self) -> dict[str, object]:
        """Return the fields that were actually provided."""
        return self.model_dump(exclude_none=True)
