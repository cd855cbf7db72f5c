"""TheMealDB API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class MealDbClient(Protocol):
    """Interface for TheMealDB interactions."""

    async def random_meal(self) -> dict[str, object] | None:
        """Return one random meal as raw API data, if any."""

    async def lookup_meal(self, meal_id: str) -> dict[str, object] | None:
        """Return a meal by TheMealDB id, if present."""


@dataclass
class HttpxMealDbClient(MealDbClient):
    """HTTPX-backed TheMealDB client."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "HttpxMealDbClient":
        """Create a client with a managed httpx session."""
        return cls(base_url=base_url, http_client=httpx.AsyncClient())

    async def random_meal(self) -> dict[str, object] | None:
        """Fetch a random meal."""
        response = await self.http_client.get(f"{self.base_url}/random.php", timeout=15)
        response.raise_for_status()
        return _first_meal(response.json())

    async def lookup_meal(self, meal_id: str) -> dict[str, object] | None:
        """Fetch a meal by id."""
        response = await self.http_client.get(
            f"{self.base_url}/lookup.php",
            params={"i": meal_id},
            timeout=15,
        )
        response.raise_for_status()
        return _first_meal(response.json())

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _first_meal(payload: object) -> dict[str, object] | None:
    if not isinstance(payload, dict):
        return None
    meals = payload.get("meals")
    if isinstance(meals, list) and meals and isinstance(meals[0], dict):
        return meals[0]
    return None
