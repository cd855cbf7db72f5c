"""Repairs stored plan meals whose metadata is incomplete."""

import logging
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Protocol

from fitsavory_planner.domain.meals import MealNotes, MealSource, StoredMealRow, to_slug
from fitsavory_planner.services.nutrition import NutritionResolver

_logger = logging.getLogger(__name__)


class MealNotesRepository(Protocol):
    """Write access to plan meal metadata."""

    def update_meal_notes(self, meal_id: int, notes: dict[str, object]) -> None:
        """Replace the stored notes of a plan meal."""


class BackfillOutcome(StrEnum):
    """Result of persisting one repaired row."""

    OK = "ok"
    FAILED = "failed"


@dataclass(frozen=True)
class BackfillResult:
    """Per-row outcome of a backfill write."""

    row_id: int
    outcome: BackfillOutcome
    reason: str | None = None


@dataclass(frozen=True)
class BackfillReport:
    """Rows after in-memory repair, plus the outcome of each write."""

    rows: list[StoredMealRow]
    results: list[BackfillResult]

    @property
    def succeeded(self) -> list[int]:
        """Ids of rows whose repaired notes were stored."""
        return [
            result.row_id
            for result in self.results
            if result.outcome is BackfillOutcome.OK
        ]


@dataclass
class MealNotesBackfill:
    """Fills missing slug, source, external id and nutrition on stored meals."""

    resolver: NutritionResolver
    repository: MealNotesRepository

    async def run(self, rows: list[StoredMealRow]) -> BackfillReport:
        """Repair rows in memory and persist only the ones that changed."""
        repaired_rows: list[StoredMealRow] = []
        changed: list[StoredMealRow] = []
        for row in rows:
            notes = await self.repair_notes(row)
            if notes != row.notes:
                row = replace(row, notes=notes)
                changed.append(row)
            repaired_rows.append(row)

        results: list[BackfillResult] = []
        for row in changed:
            try:
                self.repository.update_meal_notes(row.id, row.notes.to_json())
            except Exception as exc:
                _logger.warning(
                    "Failed to backfill meal notes: meal_plan_meal_id=%s error=%s",
                    row.id,
                    exc,
                )
                results.append(
                    BackfillResult(row.id, BackfillOutcome.FAILED, reason=str(exc))
                )
                continue
            results.append(BackfillResult(row.id, BackfillOutcome.OK))
        return BackfillReport(rows=repaired_rows, results=results)

    async def repair_notes(self, row: StoredMealRow) -> MealNotes:
        """Return the row's notes with every derivable field filled in."""
        notes = row.notes
        slug = (
            notes.slug
            or row.recipe_slug
            or to_slug(row.recipe_title)
            or to_slug(row.name)
        )
        source = notes.source or (
            MealSource.COMMUNITY if row.recipe_id is not None else MealSource.EXTERNAL
        )
        external_id = notes.external_id or (
            str(row.recipe_id) if row.recipe_id is not None else row.recipe_slug
        )
        repaired = replace(notes, slug=slug, source=source, external_id=external_id)
        if not repaired.has_usable_nutrition():
            nutrition = await self.resolver.resolve_stored(row, repaired)
            if nutrition is not None:
                repaired = replace(repaired, nutrition=nutrition)
        return repaired
