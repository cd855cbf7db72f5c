"""Supabase repository for community recipes."""

from dataclasses import dataclass

from supabase import Client

from fitsavory_planner.domain.macros import MacroVector
from fitsavory_planner.domain.recipes import CommunityRecipe, CommunityRecipeRef
from fitsavory_planner.services.recipes import CommunityRecipeRepository

_RECIPE_COLUMNS = (
    "id, slug, title, description, "
    "nutritional_info(calories, protein, carbs, fats)"
)


@dataclass
class SupabaseRecipeRepository(CommunityRecipeRepository):
    """Reads community recipes that are public, approved and not premium."""

    client: Client

    def sample_public_recipe_refs(self, count: int) -> list[CommunityRecipeRef]:
        """Return a random sample drawn from the whole publishable recipe pool."""
        response = self.client.rpc(
            "sample_community_recipes", {"sample_size": count}
        ).execute()
        return [
            CommunityRecipeRef(id=int(row["id"]), slug=row.get("slug"))
            for row in response.data or []
        ]

    def get_recipe(self, identifier: str) -> CommunityRecipe | None:
        """Return a recipe by numeric id or slug."""
        column = "id" if identifier.isdigit() else "slug"
        response = (
            self.client.table("recipes")
            .select(_RECIPE_COLUMNS)
            .eq(column, int(identifier) if column == "id" else identifier)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_recipe(response.data[0])


def _parse_recipe(row: dict[str, object]) -> CommunityRecipe:
    nutrition_raw = row.get("nutritional_info")
    if isinstance(nutrition_raw, list):
        nutrition_raw = nutrition_raw[0] if nutrition_raw else None
    return CommunityRecipe(
        id=int(row["id"]),
        slug=row.get("slug"),
        title=str(row.get("title") or ""),
        description=row.get("description"),
        nutrition=(
            MacroVector.from_mapping(nutrition_raw)
            if isinstance(nutrition_raw, dict)
            else None
        ),
    )
