"""OpenRouteService directions client."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from evac_route.contracts.route_contract import RouteRequest
from evac_route.core.models import TravelProfile
from evac_route.providers.base import RoutingProvider
from evac_route.providers.http import HTTPClient

log = logging.getLogger(__name__)


ORS_PROFILES: Dict[TravelProfile, str] = {
    TravelProfile.WALK: "foot-walking",
    TravelProfile.BICYCLE: "cycling-regular",
    TravelProfile.DRIVE: "driving-car",
}


def build_request_body(request: RouteRequest) -> Dict[str, Any]:
    """JSON body for POST /v2/directions/{profile}. ``options`` only when avoiding."""
    body: Dict[str, Any] = {
        "coordinates": [request.start.as_lonlat(), request.end.as_lonlat()],
        "format": "json",
    }
    if request.avoids:
        body["options"] = {
            "avoid_polygons": {
                "type": "MultiPolygon",
                "coordinates": [
                    [[c.as_lonlat() for c in ring]] for ring in request.avoid_polygons
                ],
            }
        }
    return body


class OpenRouteServiceProvider(RoutingProvider):
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        http: Optional[HTTPClient] = None,
    ):
        from evac_route.config import settings

        self.base_url = (base_url or settings.ors_base_url).rstrip("/")
        key = api_key if api_key is not None else settings.ors_api_key
        if not key:
            log.warning("No OpenRouteService API key configured (EVAC_ROUTE_ORS_API_KEY)")
        self.http = http or HTTPClient(
            user_agent=settings.user_agent,
            timeout_s=settings.http_timeout_s,
            tries=settings.http_tries,
            backoff_s=settings.http_backoff_s,
            headers={"Authorization": key, "Content-Type": "application/json"},
        )

    def fetch_route(self, request: RouteRequest) -> Dict[str, Any]:
        url = f"{self.base_url}/{ORS_PROFILES[request.profile]}"
        body = build_request_body(request)
        log.debug("ORS request %s avoid_polygons=%s", url, "options" in body)
        return self.http.post_json(url, body)
