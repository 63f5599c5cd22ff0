"""Single route request: hazard avoidance, polyline decoding, hazard validation."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import polyline
import requests

from evac_route.contracts.route_contract import RouteRequest
from evac_route.core.errors import HazardValidationFailure, ProviderFailure
from evac_route.core.models import Coordinate, Destination, HazardPolygon, TravelProfile
from evac_route.geo.geometry import path_intersects_any, point_in_any_polygon
from evac_route.providers.base import RoutingProvider

log = logging.getLogger(__name__)


def build_route_request(
    start: Coordinate,
    destination: Destination,
    profile: TravelProfile,
    active_hazards: Sequence[HazardPolygon],
) -> RouteRequest:
    """
    Avoid the active hazards unless ``start`` already lies inside one of them.

    A traveler standing in a flood zone has to leave it first, and asking the
    router to avoid that zone would make the request infeasible.
    """
    avoid = None
    if active_hazards and not point_in_any_polygon(start, active_hazards):
        avoid = tuple(p.ring for p in active_hazards)
    return RouteRequest(start=start, end=destination.coordinate, profile=profile, avoid_polygons=avoid)


def decode_path(response: Dict[str, Any]) -> List[Coordinate]:
    try:
        encoded = response["routes"][0]["geometry"]
    except (KeyError, IndexError, TypeError) as e:
        raise ProviderFailure("routing response has no geometry") from e
    if not encoded or not isinstance(encoded, str):
        raise ProviderFailure("routing response has no geometry")

    try:
        pairs = polyline.decode(encoded, 5)
        path = [Coordinate(lat=lat, lon=lon) for lat, lon in pairs]
    except (ValueError, IndexError, TypeError) as e:
        raise ProviderFailure(f"could not decode route geometry: {e}") from e

    if not path:
        raise ProviderFailure("routing response decoded to an empty path")
    return path


class RouteCalculator:
    def __init__(self, provider: RoutingProvider):
        self.provider = provider

    def compute_route(
        self,
        start: Coordinate,
        destination: Destination,
        profile: TravelProfile,
        active_hazards: Sequence[HazardPolygon],
    ) -> List[Coordinate]:
        """
        Ask the provider for a path and make sure it does not cross a hazard.

        Raises
        ------
        ProviderFailure
            Transport error, malformed response or missing/undecodable geometry.
        HazardValidationFailure
            The provider's path crosses an active hazard polygon.
        """
        request = build_route_request(start, destination, profile, active_hazards)

        try:
            response = self.provider.fetch_route(request)
        except requests.RequestException as e:
            log.warning("Routing provider error for %s: %s", destination.name, e)
            raise ProviderFailure(f"routing provider error: {e}") from e
        except ValueError as e:
            # requests raises ValueError subclasses for bodies that are not JSON
            log.warning("Routing provider returned a malformed body: %s", e)
            raise ProviderFailure(f"malformed routing response: {e}") from e

        path = decode_path(response)

        if path_intersects_any(path, active_hazards):
            log.warning(
                "Route to %s crosses an active hazard (avoidance requested=%s)",
                destination.name, request.avoids,
            )
            raise HazardValidationFailure("route crosses an active hazard zone")

        log.debug("Route to %s: %d point(s)", destination.name, len(path))
        return path
