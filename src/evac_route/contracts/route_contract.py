from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from evac_route.core.models import Coordinate, TravelProfile


Ring = Tuple[Coordinate, ...]


@dataclass(frozen=True)
class RouteRequest:
    start: Coordinate
    end: Coordinate
    profile: TravelProfile
    avoid_polygons: Optional[Tuple[Ring, ...]] = None  # None -> no avoidance requested

    @property
    def avoids(self) -> bool:
        return bool(self.avoid_polygons)
