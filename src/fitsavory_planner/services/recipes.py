"""Recipe and nutrition lookups backed by community and external sources."""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from fitsavory_planner.adapters.calorieninjas_client import CalorieNinjasClient
from fitsavory_planner.adapters.mealdb_client import MealDbClient
from fitsavory_planner.domain.macros import MacroVector, accumulate
from fitsavory_planner.domain.meals import CandidateMeal, MealSource, to_slug
from fitsavory_planner.domain.recipes import CommunityRecipe, CommunityRecipeRef
from fitsavory_planner.services.cache import Cache

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_logger = logging.getLogger(__name__)

_MEALDB_INGREDIENT_SLOTS = 20
_COMMUNITY_CANDIDATES_PER_PICK = 5


class CommunityRecipeRepository(Protocol):
    """Read access to public community recipes."""

    def sample_public_recipe_refs(self, count: int) -> list[CommunityRecipeRef]:
        """Return up to ``count`` random publishable community recipes."""

    def get_recipe(self, identifier: str) -> CommunityRecipe | None:
        """Return a recipe by numeric id or slug, with nutrition."""


@dataclass
class RecipeService:
    """Random recipe pickers plus structured and keyword nutrition lookups."""

    community_repository: CommunityRecipeRepository
    mealdb_client: MealDbClient
    calorieninjas_client: CalorieNinjasClient
    cache: Cache
    lookup_ttl_seconds: int = 86400
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3

    async def pick_random_community(
        self, excluded_ids: set[int]
    ) -> CandidateMeal | None:
        """Pick a random public community recipe not in ``excluded_ids``."""
        refs = self.community_repository.sample_public_recipe_refs(
            _COMMUNITY_CANDIDATES_PER_PICK
        )
        for ref in refs:
            if ref.id in excluded_ids:
                continue
            recipe = self.community_repository.get_recipe(ref.slug or str(ref.id))
            if recipe is not None:
                return _community_candidate(recipe)
        return None

    async def pick_random_external(self) -> CandidateMeal | None:
        """Pick a random TheMealDB recipe."""
        meal = await self._call_with_retry(
            self.mealdb_client.random_meal, action="mealdb:random"
        )
        return _mealdb_candidate(meal) if meal else None

    async def get_recipe_with_nutrition(
        self, identifier: str, source: MealSource
    ) -> CandidateMeal | None:
        """Fetch a recipe by identifier, filling nutrition when it can."""
        cache_key = f"recipe:{source.value}:{identifier}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, CandidateMeal):
            return cached

        if source is MealSource.COMMUNITY:
            recipe = self.community_repository.get_recipe(identifier)
            candidate = _community_candidate(recipe) if recipe else None
        else:
            meal = await self._call_with_retry(
                lambda: self.mealdb_client.lookup_meal(identifier),
                action=f"mealdb:lookup:{identifier}",
            )
            candidate = _mealdb_candidate(meal) if meal else None
            if candidate and candidate.ingredients and candidate.nutrition is None:
                estimate = await self.get_nutrition_info(
                    build_ingredient_query(candidate.ingredients)
                )
                candidate = candidate.with_nutrition(estimate)

        if candidate is not None:
            self.cache.set(cache_key, candidate, ttl_seconds=self.lookup_ttl_seconds)
        return candidate

    async def get_nutrition_info(self, query: str) -> MacroVector | None:
        """Estimate total nutrition for a free-text query."""
        normalized = query.strip()
        if not normalized:
            return None
        cache_key = f"nutrition:{normalized.lower()}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, MacroVector):
            return cached

        payload = await self._call_with_retry(
            lambda: self.calorieninjas_client.nutrition(normalized),
            action="calorieninjas:nutrition",
        )
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list) or not items:
            return None
        total = MacroVector()
        for item in items:
            if isinstance(item, dict):
                total = accumulate(total, MacroVector.from_mapping(item))
        self.cache.set(cache_key, total, ttl_seconds=self.lookup_ttl_seconds)
        return total

    async def _call_with_retry(
        self, func: "Callable[[], Awaitable[object]]", *, action: str
    ) -> object:
        """Call an async function with a short retry."""
        attempt = 0
        while True:
            try:
                return await func()
            except Exception as exc:
                attempt += 1
                _logger.warning(
                    "Recipe lookup %s failed (attempt %s/%s, status=%s): %s",
                    action,
                    attempt,
                    self.retry_attempts + 1,
                    _status_code_from_exception(exc),
                    exc,
                )
                if attempt > self.retry_attempts:
                    raise
                await asyncio.sleep(self.retry_delay_seconds)


def build_ingredient_query(ingredients: tuple[str, ...] | list[str]) -> str:
    """Join ingredient lines into a keyword nutrition query."""
    return ", ".join(line.strip() for line in ingredients if line and line.strip())


def _status_code_from_exception(exc: Exception) -> str:
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"


def _community_candidate(recipe: CommunityRecipe) -> CandidateMeal:
    identifier = recipe.slug or str(recipe.id)
    return CandidateMeal(
        identifier=identifier,
        title=recipe.title,
        source=MealSource.COMMUNITY,
        nutrition=recipe.nutrition,
        local_recipe_id=recipe.id,
        external_id=identifier,
        slug=recipe.slug or to_slug(recipe.title),
        description=recipe.description,
    )


def _mealdb_candidate(meal: dict[str, object]) -> CandidateMeal | None:
    meal_id = meal.get("idMeal")
    if not meal_id:
        return None
    title = str(meal.get("strMeal") or "Untitled meal")
    ingredients: list[str] = []
    for index in range(1, _MEALDB_INGREDIENT_SLOTS + 1):
        ingredient = str(meal.get(f"strIngredient{index}") or "").strip()
        if not ingredient:
            continue
        measure = str(meal.get(f"strMeasure{index}") or "").strip()
        ingredients.append(f"{measure} {ingredient}".strip())
    category = meal.get("strCategory")
    area = meal.get("strArea")
    description = " ".join(str(part) for part in (area, category) if part) or None
    return CandidateMeal(
        identifier=str(meal_id),
        title=title,
        source=MealSource.EXTERNAL,
        external_id=str(meal_id),
        slug=to_slug(title),
        description=description,
        ingredients=tuple(ingredients),
    )
