"""ASGI entrypoint for the meal plan API."""

from fitsavory_planner.api.app import create_app
from fitsavory_planner.containers import build_container

app = create_app(build_container())
