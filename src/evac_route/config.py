"""Centralized settings for the evacuation route engine."""
from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "EVAC_ROUTE_"}

    # OpenRouteService; an empty key means only the mock provider is usable
    ors_api_key: str = ""
    ors_base_url: str = "https://api.openrouteservice.org/v2/directions"
    user_agent: str = "evac-route/0.1 (evacuation routing)"

    # HTTP transport
    http_timeout_s: int = 20
    http_tries: int = 1           # retry belongs to the caller, not the transport
    http_backoff_s: float = 0.8

    # Navigation thresholds
    deviation_threshold_m: float = 25.0   # farther than this from every route point -> off route
    trim_radius_m: float = 10.0           # leading points closer than this are consumed
    arrival_min_points: int = 3           # fewer remaining points while evacuating -> arrived

    # Nearest-destination mode only considers this category
    meeting_point_category: str = "punto_encuentro"

    # Static datasets
    hazards_path: str = "data/hazards.geojson"
    destinations_path: str = "data/destinations.json"

    # Mock provider sample spacing
    mock_step_m: float = 8.0


settings = Settings()
