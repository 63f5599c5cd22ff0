from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict

from evac_route.contracts.route_contract import RouteRequest


class RoutingProvider(ABC):
    """Fetch a route between two coordinates, honouring avoid-polygons when asked."""

    @abstractmethod
    def fetch_route(self, request: RouteRequest) -> Dict[str, Any]:
        """Return an OpenRouteService-shaped response: ``{"routes": [{"geometry": "<polyline>"}]}``."""
        raise NotImplementedError
