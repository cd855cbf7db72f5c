"""Nutrition resolution chain for meals with missing macros."""

import logging
from dataclasses import dataclass
from typing import Protocol

from fitsavory_planner.domain.macros import MacroVector
from fitsavory_planner.domain.meals import (
    CandidateMeal,
    MealNotes,
    MealSource,
    StoredMealRow,
)
from fitsavory_planner.services.recipes import build_ingredient_query

_logger = logging.getLogger(__name__)


class RecipeNutritionLookup(Protocol):
    """Recipe/nutrition service consumed by the resolver."""

    async def get_recipe_with_nutrition(
        self, identifier: str, source: MealSource
    ) -> CandidateMeal | None:
        """Return a recipe with nutrition for an identifier, if found."""

    async def get_nutrition_info(self, query: str) -> MacroVector | None:
        """Return a keyword-based nutrition estimate, if any."""


@dataclass
class NutritionResolver:
    """Resolves usable macros via existing data, recipe lookup, then keywords."""

    lookup: RecipeNutritionLookup

    async def resolve(self, meal: CandidateMeal) -> MacroVector | None:
        """Return normalized macros for a candidate meal, or None."""
        identifier = meal.external_id or _id_text(meal.local_recipe_id) or meal.slug
        query = build_ingredient_query(meal.ingredients) or meal.title
        return await self._resolve(
            existing=meal.nutrition,
            identifier=identifier,
            source=meal.source,
            query=query,
        )

    async def resolve_stored(
        self, row: StoredMealRow, notes: MealNotes
    ) -> MacroVector | None:
        """Return normalized macros for a stored plan meal, or None."""
        existing = notes.nutrition
        if not (existing and existing.has_positive_field()):
            existing = row.recipe_nutrition
        source = notes.source or (
            MealSource.COMMUNITY if row.recipe_id is not None else MealSource.EXTERNAL
        )
        identifier = (
            notes.external_id
            or _id_text(row.recipe_id)
            or row.recipe_slug
            or notes.slug
        )
        return await self._resolve(
            existing=existing,
            identifier=identifier,
            source=source,
            query=_stored_query(row),
        )

    async def _resolve(
        self,
        *,
        existing: MacroVector | None,
        identifier: str | None,
        source: MealSource,
        query: str,
    ) -> MacroVector | None:
        normalized = normalize_nutrition(existing)
        if normalized:
            return normalized

        if identifier:
            try:
                recipe = await self.lookup.get_recipe_with_nutrition(identifier, source)
            except Exception as exc:
                _logger.warning(
                    "Recipe nutrition lookup failed for %s (%s): %s",
                    identifier,
                    source.value,
                    exc,
                )
                recipe = None
            normalized = normalize_nutrition(recipe.nutrition if recipe else None)
            if normalized:
                return normalized

        if query:
            try:
                estimate = await self.lookup.get_nutrition_info(query)
            except Exception as exc:
                _logger.warning("Keyword nutrition lookup failed for %r: %s", query, exc)
                estimate = None
            normalized = normalize_nutrition(estimate)
            if normalized:
                return normalized

        return None


def normalize_nutrition(nutrition: MacroVector | None) -> MacroVector | None:
    """Round macros to whole units; None when nothing positive remains."""
    if nutrition is None:
        return None
    rounded = nutrition.rounded()
    return rounded if rounded.has_positive_field() else None


def _id_text(value: int | None) -> str | None:
    return str(value) if value is not None else None


def _stored_query(row: StoredMealRow) -> str:
    parts: list[str] = []
    if row.name:
        parts.append(row.name)
    if row.recipe_title and row.recipe_title != row.name:
        parts.append(row.recipe_title)
    if row.recipe_slug and row.recipe_slug != row.name:
        parts.append(row.recipe_slug)
    return ", ".join(parts)
