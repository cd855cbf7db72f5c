"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from fitsavory_planner.api.models import MealPlanRequest
from fitsavory_planner.app_logging import configure_logging
from fitsavory_planner.containers import AppContainer
from fitsavory_planner.domain.errors import DietPlanNotFoundError, PlanPersistenceError


async def require_user_id(x_user_id: str | None = Header(default=None)) -> int:
    """Resolve the caller from the ``X-User-Id`` header."""
    value = (x_user_id or "").strip()
    if not value.isdigit() or int(value) <= 0:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return int(value)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post(
        "/meal-plans", status_code=status.HTTP_201_CREATED, response_model=None
    )
    async def create_meal_plan(
        request: Request,
        user_id: int = Depends(require_user_id),
    ) -> dict[str, object] | JSONResponse:
        """Generate, store and return a meal plan for the caller."""
        state_container: AppContainer = request.app.state.container
        payload = MealPlanRequest.from_body(await _read_json(request)).to_payload()
        try:
            return await state_container.meal_plan_service.create_plan(user_id, payload)
        except DietPlanNotFoundError:
            return _error(status.HTTP_404_NOT_FOUND, "Diet plan not found")
        except TimeoutError:
            logger.warning("Meal plan generation timed out: user_id=%s", user_id)
            return _error(
                status.HTTP_504_GATEWAY_TIMEOUT, "Meal plan generation timed out"
            )
        except PlanPersistenceError:
            logger.exception("Failed to store meal plan: user_id=%s", user_id)
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create meal plan"
            )
        except Exception:
            logger.exception("Failed to generate meal plan: user_id=%s", user_id)
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create meal plan"
            )

    @app.get("/meal-plans", response_model=None)
    async def get_meal_plan(
        request: Request,
        plan_id: int | None = Query(default=None, alias="planId"),
        diet_plan_id: int | None = Query(default=None, alias="dietPlanId"),
        user_id: int = Depends(require_user_id),
    ) -> dict[str, object] | JSONResponse:
        """Return the requested, or most relevant, stored plan."""
        state_container: AppContainer = request.app.state.container
        try:
            return await state_container.meal_plan_service.load_plan(
                user_id, plan_id=plan_id, diet_plan_id=diet_plan_id
            )
        except Exception:
            logger.exception("Failed to load meal plan: user_id=%s", user_id)
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to load meal plan"
            )

    return app


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _read_json(request: Request) -> Any:
    """Decode the request body, treating an empty or malformed body as absent."""
    try:
        return await request.json()
    except ValueError:
        return None
