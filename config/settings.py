"""
Configuration settings for the MediBook scheduling engine.
Loads from environment variables with validation.
"""

from datetime import time
from functools import lru_cache
from typing import Literal, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: Literal["development", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Storage Configuration
    store_backend: Literal["memory", "supabase"] = "memory"
    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_service_role_key: Optional[str] = Field(
        default=None, description="Supabase service role key"
    )
    storage_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Timeout applied to every storage call"
    )

    # Appointment Configuration
    slot_duration_minutes: int = 30
    cancellation_notice_hours: int = 24
    default_work_start: time = time(8, 0)
    default_work_end: time = time(17, 0)
    default_working_days: list[str] = [
        "monday", "tuesday", "wednesday", "thursday", "friday",
    ]

    # Facility search
    search_default_radius_km: float = 20.0
    search_default_limit: int = 20

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8082

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
