"""Live navigation: route trimming, off-route detection, arrival."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence

from evac_route.core.errors import InvalidTransition
from evac_route.core.models import Coordinate, NavPhase
from evac_route.geo.geometry import haversine_m

log = logging.getLogger(__name__)


_TRANSITIONS: Dict[NavPhase, FrozenSet[NavPhase]] = {
    NavPhase.IDLE: frozenset({NavPhase.AWAITING_ROUTE}),
    NavPhase.AWAITING_ROUTE: frozenset({NavPhase.ACTIVE, NavPhase.IDLE}),
    NavPhase.ACTIVE: frozenset({NavPhase.RECALCULATING, NavPhase.ARRIVED, NavPhase.AWAITING_ROUTE}),
    NavPhase.RECALCULATING: frozenset({NavPhase.ACTIVE, NavPhase.IDLE}),
    NavPhase.ARRIVED: frozenset({NavPhase.AWAITING_ROUTE}),
}

TRACKING_PHASES = frozenset({NavPhase.ACTIVE, NavPhase.RECALCULATING})


def min_distance_m(point: Coordinate, route: Sequence[Coordinate]) -> float:
    """Smallest haversine distance from ``point`` to any route vertex (inf if empty)."""
    return min((haversine_m(point, c) for c in route), default=float("inf"))


def trim_route(point: Coordinate, route: Sequence[Coordinate], radius_m: float) -> List[Coordinate]:
    """Drop the leading vertices that lie within ``radius_m`` of ``point``."""
    i = 0
    while i < len(route) and haversine_m(point, route[i]) <= radius_m:
        i += 1
    return list(route[i:])


@dataclass
class MonitorStep:
    """What one location sample did to the active route."""

    route: List[Coordinate]
    distance_m: Optional[float] = None
    off_route: bool = False
    recalculate: bool = False
    arrived: bool = False
    trimmed: int = 0


class NavigationMonitor:
    def __init__(
        self,
        deviation_threshold_m: float = 25.0,
        trim_radius_m: float = 10.0,
        arrival_min_points: int = 3,
    ):
        self.deviation_threshold_m = deviation_threshold_m
        self.trim_radius_m = trim_radius_m
        self.arrival_min_points = arrival_min_points
        self.phase = NavPhase.IDLE

    @classmethod
    def from_settings(cls) -> NavigationMonitor:
        from evac_route.config import settings

        return cls(
            deviation_threshold_m=settings.deviation_threshold_m,
            trim_radius_m=settings.trim_radius_m,
            arrival_min_points=settings.arrival_min_points,
        )

    def transition(self, to: NavPhase) -> None:
        if to not in _TRANSITIONS[self.phase]:
            raise InvalidTransition(f"{self.phase.value} -> {to.value}")
        log.debug("Navigation %s -> %s", self.phase.value, to.value)
        self.phase = to

    def reset(self) -> None:
        """Explicit cancel: any phase goes back to idle."""
        self.phase = NavPhase.IDLE

    def observe(self, point: Coordinate, route: Sequence[Coordinate], evacuating: bool) -> MonitorStep:
        """
        Process one sample against the remaining route.

        Only acts while ACTIVE or RECALCULATING.  The off-route check runs
        first; a deviation seen while already RECALCULATING is ignored and the
        route is trimmed as usual.
        """
        if self.phase not in TRACKING_PHASES or not route:
            return MonitorStep(route=list(route))

        dist = min_distance_m(point, route)
        off_route = dist > self.deviation_threshold_m

        if off_route and self.phase is NavPhase.ACTIVE:
            log.info("Off route by %.1f m, recalculating", dist)
            self.transition(NavPhase.RECALCULATING)
            return MonitorStep(route=list(route), distance_m=dist, off_route=True, recalculate=True)

        remaining = trim_route(point, route, self.trim_radius_m)
        step = MonitorStep(
            route=remaining,
            distance_m=dist,
            off_route=off_route,
            trimmed=len(route) - len(remaining),
        )
        if (
            self.phase is NavPhase.ACTIVE
            and evacuating
            and len(remaining) < self.arrival_min_points
        ):
            log.info("Arrived: %d route point(s) left", len(remaining))
            self.transition(NavPhase.ARRIVED)
            step.route = []
            step.arrived = True

        return step
