from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

import polyline

from evac_route.contracts.route_contract import RouteRequest
from evac_route.core.models import Coordinate
from evac_route.geo.geometry import haversine_m
from evac_route.providers.base import RoutingProvider


class MockRoutingProvider(RoutingProvider):
    """
    Deterministic fake router so the pipeline runs end-to-end without an API key.

    Without a fixed ``path`` it returns the straight line from start to end,
    sampled roughly every ``step_m`` metres.  It ignores avoid-polygons, which
    is exactly what the hazard validation step exists to catch.
    """

    def __init__(self, path: Optional[Sequence[Coordinate]] = None, step_m: Optional[float] = None):
        if step_m is None:
            from evac_route.config import settings

            step_m = settings.mock_step_m
        self.path = list(path) if path is not None else None
        self.step_m = step_m
        self.requests: List[RouteRequest] = []

    def _straight_line(self, start: Coordinate, end: Coordinate) -> List[tuple]:
        dist = haversine_m(start, end)
        n = max(1, int(math.ceil(dist / self.step_m)))
        return [
            (start.lat + (end.lat - start.lat) * i / n, start.lon + (end.lon - start.lon) * i / n)
            for i in range(n + 1)
        ]

    def fetch_route(self, request: RouteRequest) -> Dict[str, Any]:
        self.requests.append(request)

        if self.path is not None:
            pts = [(c.lat, c.lon) for c in self.path]
        else:
            pts = self._straight_line(request.start, request.end)

        return {"routes": [{"geometry": polyline.encode(pts, 5)}]}
