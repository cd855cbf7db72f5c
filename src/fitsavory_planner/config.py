"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    calorieninjas_api_key: str
    calorieninjas_base_url: str = "https://api.calorieninjas.com/v1"
    mealdb_base_url: str = "https://www.themealdb.com/api/json/v1/1"
    generation_timeout_seconds: float = 60.0
    default_plan_mode: str = "scaled"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
