"""Candidate meal supplier with community-first source fallback."""

import logging
from dataclasses import dataclass
from typing import Protocol

from fitsavory_planner.domain.meals import CandidateMeal

_logger = logging.getLogger(__name__)


class CommunityRecipePicker(Protocol):
    """Picks random community recipes."""

    async def pick_random_community(
        self, excluded_ids: set[int]
    ) -> CandidateMeal | None:
        """Return a random community recipe outside ``excluded_ids``, if any."""


class ExternalRecipePicker(Protocol):
    """Picks random recipes from an external catalogue."""

    async def pick_random_external(self) -> CandidateMeal | None:
        """Return a random external recipe, if any."""


@dataclass
class CandidateSupplier:
    """Produces the next candidate meal for a plan."""

    community_picker: CommunityRecipePicker
    external_picker: ExternalRecipePicker

    async def next_candidate(self, excluded_community_ids: set[int]) -> CandidateMeal | None:
        """Return a community candidate, else an external one, else None.

        A community pick records its recipe id in ``excluded_community_ids`` so
        later calls in the same run avoid repeating it.
        """
        try:
            community = await self.community_picker.pick_random_community(
                excluded_community_ids
            )
        except Exception as exc:
            _logger.warning("Community recipe pick failed: %s", exc)
            community = None
        if community is not None:
            if community.local_recipe_id is not None:
                excluded_community_ids.add(community.local_recipe_id)
            return community

        try:
            return await self.external_picker.pick_random_external()
        except Exception as exc:
            _logger.warning("External recipe pick failed: %s", exc)
            return None
