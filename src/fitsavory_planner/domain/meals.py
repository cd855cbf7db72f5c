"""Domain models for candidate, planned and stored meals."""

import json
import re
from dataclasses import dataclass, field, replace
from enum import StrEnum

from fitsavory_planner.domain.macros import MacroVector, to_finite_float


class MealSource(StrEnum):
    """Where a meal came from."""

    COMMUNITY = "community"
    EXTERNAL = "external"

    @classmethod
    def parse(cls, value: object) -> "MealSource | None":
        """Parse a stored source tag, mapping legacy provider names."""
        if isinstance(value, MealSource):
            return value
        if not isinstance(value, str) or not value.strip():
            return None
        normalized = value.strip().lower()
        if normalized == cls.COMMUNITY.value:
            return cls.COMMUNITY
        if normalized in {cls.EXTERNAL.value, "mealdb", "themealdb"}:
            return cls.EXTERNAL
        return None


class MealSlot(StrEnum):
    """Slot a meal occupies within a day."""

    BREAKFAST = "BREAKFAST"
    LUNCH = "LUNCH"
    DINNER = "DINNER"
    SNACK = "SNACK"


CORE_SLOTS = (MealSlot.BREAKFAST, MealSlot.LUNCH, MealSlot.DINNER)


@dataclass(frozen=True)
class CandidateMeal:
    """A meal offered by a recipe picker, not yet verified or scaled."""

    identifier: str
    title: str
    source: MealSource
    nutrition: MacroVector | None = None
    local_recipe_id: int | None = None
    external_id: str | None = None
    slug: str | None = None
    description: str | None = None
    ingredients: tuple[str, ...] = ()

    def with_nutrition(self, nutrition: MacroVector | None) -> "CandidateMeal":
        """Return a copy carrying ``nutrition``."""
        return replace(self, nutrition=nutrition)


@dataclass(frozen=True)
class ScaledMeal:
    """A meal assigned to a plan slot, with its (possibly scaled) nutrition."""

    identifier: str
    title: str
    source: MealSource | None
    nutrition: MacroVector | None
    local_recipe_id: int | None = None
    external_id: str | None = None
    slug: str | None = None
    description: str | None = None
    portion_multiplier: float | None = None

    @classmethod
    def from_candidate(
        cls,
        candidate: CandidateMeal,
        nutrition: MacroVector | None,
        portion_multiplier: float | None = None,
    ) -> "ScaledMeal":
        """Build a planned meal from a candidate."""
        return cls(
            identifier=candidate.identifier,
            title=candidate.title,
            source=candidate.source,
            nutrition=nutrition,
            local_recipe_id=candidate.local_recipe_id,
            external_id=candidate.external_id or candidate.identifier,
            slug=candidate.slug or to_slug(candidate.title),
            description=candidate.description,
            portion_multiplier=portion_multiplier,
        )

    def to_document(self) -> dict[str, object]:
        """Render the meal for API responses."""
        document: dict[str, object] = {
            "id": self.identifier,
            "title": self.title,
            "description": self.description,
            "recipeSlug": self.slug,
            "nutrition": _nutrition_document(self.nutrition),
            "source": self.source.value if self.source else None,
        }
        if self.portion_multiplier is not None:
            document["portionMultiplier"] = self.portion_multiplier
        return document


@dataclass(frozen=True)
class MealNotes:
    """Metadata stored alongside each plan meal row."""

    nutrition: MacroVector | None = None
    source: MealSource | None = None
    external_id: str | None = None
    slug: str | None = None
    portion_multiplier: float | None = None

    @classmethod
    def from_raw(cls, raw: object) -> "MealNotes":
        """Decode notes stored as a JSON object or legacy JSON text."""
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                return cls()
        if not isinstance(raw, dict):
            return cls()
        nutrition_raw = raw.get("nutrition")
        nutrition = (
            MacroVector.from_mapping(nutrition_raw)
            if isinstance(nutrition_raw, dict)
            else None
        )
        external_id = raw.get("externalId")
        slug = raw.get("slug")
        return cls(
            nutrition=nutrition,
            source=MealSource.parse(raw.get("source")),
            external_id=str(external_id) if external_id not in (None, "") else None,
            slug=str(slug) if slug else None,
            portion_multiplier=to_finite_float(raw.get("portionMultiplier")),
        )

    @classmethod
    def for_meal(cls, meal: ScaledMeal) -> "MealNotes":
        """Build the notes persisted for a planned meal."""
        return cls(
            nutrition=meal.nutrition,
            source=meal.source,
            external_id=meal.external_id,
            slug=meal.slug,
            portion_multiplier=meal.portion_multiplier,
        )

    def has_usable_nutrition(self) -> bool:
        """Return True when the stored nutrition has a positive macro."""
        return self.nutrition is not None and self.nutrition.has_positive_field()

    def to_json(self) -> dict[str, object]:
        """Serialize the notes for storage."""
        payload: dict[str, object] = {
            "nutrition": _nutrition_document(self.nutrition),
            "source": self.source.value if self.source else None,
            "externalId": self.external_id,
            "slug": self.slug,
        }
        if self.portion_multiplier is not None:
            payload["portionMultiplier"] = self.portion_multiplier
        return payload


@dataclass(frozen=True)
class StoredMealRow:
    """A plan meal row joined with its linked recipe, if any."""

    id: int
    day_id: int
    meal_type: MealSlot
    order: int
    name: str | None
    description: str | None
    recipe_id: int | None
    notes: MealNotes = field(default_factory=MealNotes)
    recipe_title: str | None = None
    recipe_slug: str | None = None
    recipe_nutrition: MacroVector | None = None


def to_slug(value: object) -> str | None:
    """Turn a title into a URL slug."""
    if not value:
        return None
    slug = re.sub(r"[^a-z0-9]+", "-", str(value).strip().lower()).strip("-")
    return slug or None


def _nutrition_document(nutrition: MacroVector | None) -> dict[str, int] | None:
    if nutrition is None:
        return None
    rounded = nutrition.rounded()
    return {name: int(value) for name, value in rounded.as_dict().items()}
