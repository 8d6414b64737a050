"""Configuration management using Pydantic settings."""

import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from POLYGON_MAPPER_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="POLYGON_MAPPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Polygon Mapper"
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # Saved polygons (JSON list, rewritten on every change)
    storage_path: Path = Path("data/polygons.json")

    # Default map view (center of India)
    map_center_lat: float = 20.5937
    map_center_lng: float = 78.9629
    map_zoom: int = 5

    # Geolocation: fixed position for this deployment, unset = unsupported
    location_lat: Optional[float] = None
    location_lon: Optional[float] = None
    location_timeout_seconds: float = 10.0
    locate_zoom: int = 15


def configure_logging(level: str) -> None:
    """Send loguru output to stderr at the given level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
