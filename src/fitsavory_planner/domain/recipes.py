"""Domain models for community recipes."""

from dataclasses import dataclass

from fitsavory_planner.domain.macros import MacroVector


@dataclass(frozen=True)
class CommunityRecipeRef:
    """Identifiers of a public community recipe."""

    id: int
    slug: str | None


@dataclass(frozen=True)
class CommunityRecipe:
    """A community recipe with its nutrition facts, when recorded."""

    id: int
    slug: str | None
    title: str
    description: str | None
    nutrition: MacroVector | None
