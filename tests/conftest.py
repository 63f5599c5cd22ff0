from __future__ import annotations

from concurrent.futures import Executor, Future
from pathlib import Path
from typing import List

import pytest

from evac_route.core.calculator import RouteCalculator
from evac_route.core.models import Coordinate, Destination, EmergencyKind, HazardPolygon, Severity
from evac_route.core.monitor import NavigationMonitor
from evac_route.core.session import InlineExecutor, RouteSession
from evac_route.providers.mock import MockRoutingProvider

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class DeferredExecutor(Executor):
    """Holds submitted work until the test lets it start and finish."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def start_all(self) -> None:
        for future, *_ in self.jobs:
            future.set_running_or_notify_cancel()

    def finish_all(self) -> None:
        jobs, self.jobs = self.jobs, []
        for future, fn, args, kwargs in jobs:
            if future.cancelled():
                continue
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                future.set_exception(e)
            else:
                future.set_result(result)

    def run_pending(self) -> None:
        self.start_all()
        self.finish_all()


def square(lat0: float, lon0: float, size: float) -> List[Coordinate]:
    return [
        Coordinate(lat=lat0, lon=lon0),
        Coordinate(lat=lat0, lon=lon0 + size),
        Coordinate(lat=lat0 + size, lon=lon0 + size),
        Coordinate(lat=lat0 + size, lon=lon0),
    ]


def east_line(lat: float, lon0: float, n: int, step_deg: float = 0.00005) -> List[Coordinate]:
    """n points heading east, ~5.5 m apart at lat 10."""
    return [Coordinate(lat=lat, lon=round(lon0 + i * step_deg, 5)) for i in range(n)]


@pytest.fixture
def flood_zone() -> HazardPolygon:
    return HazardPolygon(
        ring=tuple(square(10.0, 20.0, 0.002)),
        hazard_kind=EmergencyKind.FLOOD,
        severity=Severity.HIGH,
        name="river bank",
    )


@pytest.fixture
def destinations() -> List[Destination]:
    return [
        Destination(id=1, name="Plaza", category="punto_encuentro", lat=9.99, lon=20.01),
        Destination(id=2, name="Stadium", category="punto_encuentro", lat=10.02, lon=20.0),
        Destination(id=3, name="Clinic", category="hospital", lat=9.9901, lon=20.0001),
    ]


@pytest.fixture
def monitor() -> NavigationMonitor:
    return NavigationMonitor(deviation_threshold_m=25.0, trim_radius_m=10.0, arrival_min_points=3)


@pytest.fixture
def deferred() -> DeferredExecutor:
    return DeferredExecutor()


@pytest.fixture
def make_session(flood_zone, destinations, monitor):
    """Build a session over the fixture data with a recording mock provider."""

    def _make(path=None, executor=None, provider=None):
        provider = provider or MockRoutingProvider(path=path, step_m=5.0)
        session = RouteSession(
            [flood_zone],
            destinations,
            RouteCalculator(provider),
            monitor=monitor,
            executor=executor or InlineExecutor(),
            meeting_point_category="punto_encuentro",
        )
        return session, provider

    return _make
