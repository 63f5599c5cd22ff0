"""RouteSession: the single owner of route configuration, navigation state and the active route.

Every command takes the session lock, so location samples and route results
(the two external events) are applied one at a time.  Route computation runs
on an executor; its completion handler compares the generation captured at
dispatch with the current one and drops results that arrive after a cancel.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from evac_route.core.calculator import RouteCalculator
from evac_route.core.destinations import load_destinations, nearest, of_category
from evac_route.core.errors import LocationUnavailable, NoFeasibleDestination, ProviderFailure, RouteError
from evac_route.core.feed import LocationMailbox
from evac_route.core.models import (
    Coordinate,
    Destination,
    DestinationMode,
    EmergencyKind,
    HazardPolygon,
    LocationSample,
    NavigationState,
    NavPhase,
    RouteConfiguration,
    RouteErrorKind,
    Severity,
    StartMode,
    TravelProfile,
)
from evac_route.core.monitor import TRACKING_PHASES, MonitorStep, NavigationMonitor
from evac_route.geo.geometry import haversine_m
from evac_route.geo.hazards import compute_active, group_by_severity, load_hazard_polygons
from evac_route.providers.base import RoutingProvider

log = logging.getLogger(__name__)


class RouteTrigger(str, Enum):
    EXPLICIT = "explicit"      # user command
    DEVIATION = "deviation"    # traveler left the route
    RESUME = "resume"          # traveler moved on after a failed recalculation


_TRANSIENT_ERRORS = frozenset({RouteErrorKind.PROVIDER_FAILURE, RouteErrorKind.HAZARD_VALIDATION_FAILURE})


class InlineExecutor(Executor):
    """Runs submitted work immediately in the calling thread (CLI replay, API)."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)
        return future


class RouteSession:
    def __init__(
        self,
        hazard_source: Sequence[HazardPolygon],
        destinations: Sequence[Destination],
        calculator: RouteCalculator,
        monitor: Optional[NavigationMonitor] = None,
        executor: Optional[Executor] = None,
        configuration: Optional[RouteConfiguration] = None,
        meeting_point_category: Optional[str] = None,
    ):
        from evac_route.config import settings

        self._lock = threading.RLock()
        self._hazard_source: Tuple[HazardPolygon, ...] = tuple(hazard_source)
        self._destinations: Tuple[Destination, ...] = tuple(destinations)
        self._calculator = calculator
        self._monitor = monitor or NavigationMonitor.from_settings()
        self._owns_executor = executor is None
        # One worker: a superseded computation can never overlap the next one
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="evac-route")
        self._meeting_point_category = meeting_point_category or settings.meeting_point_category

        self._config = configuration.model_copy() if configuration else RouteConfiguration()
        self._state = NavigationState()
        self._route: List[Coordinate] = []
        self._generation = 0
        self._pending: Optional[Future] = None
        # Start of the last failed recalculation; set only while a retry is allowed
        self._retry_from: Optional[Coordinate] = None
        self._active_hazards: Tuple[HazardPolygon, ...] = ()
        self._recompute_hazards()

    @classmethod
    def from_datasets(
        cls,
        provider: RoutingProvider,
        hazards_path: Optional[Path] = None,
        destinations_path: Optional[Path] = None,
        **kwargs,
    ) -> RouteSession:
        from evac_route.config import settings

        hazards = load_hazard_polygons(Path(hazards_path or settings.hazards_path))
        destinations = load_destinations(Path(destinations_path or settings.destinations_path))
        return cls(hazards, destinations, RouteCalculator(provider), **kwargs)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Read-only snapshots for rendering
    # ------------------------------------------------------------------

    @property
    def active_route(self) -> Tuple[Coordinate, ...]:
        with self._lock:
            return tuple(self._route)

    @property
    def state(self) -> NavigationState:
        with self._lock:
            return self._state.model_copy(update={"phase": self._monitor.phase})

    @property
    def active_hazards(self) -> Tuple[HazardPolygon, ...]:
        with self._lock:
            return self._active_hazards

    @property
    def configuration(self) -> RouteConfiguration:
        with self._lock:
            return self._config.model_copy()

    @property
    def destinations(self) -> Tuple[Destination, ...]:
        return self._destinations

    def hazard_overlays(self) -> Dict[Severity, List[HazardPolygon]]:
        return group_by_severity(self.active_hazards)

    # ------------------------------------------------------------------
    # Configuration commands
    # ------------------------------------------------------------------

    def set_travel_profile(self, profile: TravelProfile) -> None:
        with self._lock:
            self._config.travel_profile = TravelProfile(profile)
            self._recompute_hazards()

    def set_emergency_kind(self, kind: EmergencyKind) -> None:
        with self._lock:
            self._config.emergency_kind = EmergencyKind(kind)
            self._recompute_hazards()

    def set_start_mode(self, mode: StartMode) -> None:
        mode = StartMode(mode)
        with self._lock:
            if mode is StartMode.DEVICE_LOCATION:
                self._config.manual_start_point = None
            elif mode is not StartMode.MANUAL_POINT:
                raise ValueError(f"Unknown start mode: {mode}")
            self._config.start_mode = mode

    def set_manual_start_point(self, point: Optional[Coordinate]) -> bool:
        with self._lock:
            if point is not None and self._config.start_mode is not StartMode.MANUAL_POINT:
                log.warning("Ignoring manual start point while start mode is %s", self._config.start_mode.value)
                return False
            self._config.manual_start_point = point
            return True

    def set_destination_mode(self, mode: DestinationMode) -> None:
        with self._lock:
            self._config.destination_mode = DestinationMode(mode)

    def set_explicit_destination(self, destination: Optional[Destination]) -> None:
        with self._lock:
            self._config.explicit_destination = destination

    def select_destination(self, destination: Destination) -> bool:
        """Pick a destination from the catalog and route to it."""
        with self._lock:
            self._config.destination_mode = DestinationMode.EXPLICIT
            self._config.explicit_destination = destination
            return self.request_route_calculation()

    # ------------------------------------------------------------------
    # Navigation commands
    # ------------------------------------------------------------------

    def request_route_calculation(self) -> bool:
        """Start a route computation. Returns False when coalesced or refused."""
        with self._lock:
            if self._state.is_recalculating:
                log.debug("Route request coalesced into the one in flight")
                return False
            try:
                start = self._resolve_start()
            except RouteError as e:
                self._record_failure(e, notify=True)
                return False
            return self._dispatch(start, RouteTrigger.EXPLICIT)

    def start_evacuation(self) -> bool:
        with self._lock:
            try:
                start = self._resolve_start()
            except RouteError as e:
                self._record_failure(e, notify=True)
                return False

            if self._state.is_recalculating:
                self._discard_pending()
                self._monitor.reset()

            self._config.destination_mode = DestinationMode.NEAREST
            self._config.explicit_destination = None
            self._state.is_evacuating = True
            self._state.arrived = False
            log.info("Evacuation started from (%.5f, %.5f)", start.lat, start.lon)
            return self._dispatch(start, RouteTrigger.EXPLICIT)

    def cancel_evacuation(self) -> None:
        with self._lock:
            self._discard_pending()
            self._route = []
            self._monitor.reset()
            self._state.is_evacuating = False
            self._state.off_route = False
            self._state.arrived = False
            self._state.last_error = None
            self._state.last_error_message = None
            self._state.notify_failure = False
            self._retry_from = None
            log.info("Evacuation cancelled")

    # ------------------------------------------------------------------
    # Location stream
    # ------------------------------------------------------------------

    def on_location(self, sample: LocationSample) -> Optional[MonitorStep]:
        with self._lock:
            point = sample.coordinate
            self._state.last_known_location = point
            phase = self._monitor.phase

            if phase in TRACKING_PHASES:
                step = self._monitor.observe(point, self._route, self._state.is_evacuating)
                self._route = step.route
                self._state.off_route = step.off_route
                if step.arrived:
                    self._state.is_evacuating = False
                    self._state.arrived = True
                if step.recalculate:
                    self._dispatch(point, RouteTrigger.DEVIATION)
                return step

            if phase is NavPhase.IDLE and self._state.is_evacuating and self._should_retry(point):
                log.info("Retrying route after %s", self._state.last_error.value)
                self._dispatch(point, RouteTrigger.RESUME)
            return None

    def drain(self, mailbox: LocationMailbox) -> Optional[MonitorStep]:
        """Process only the newest sample waiting in ``mailbox``."""
        sample = mailbox.take()
        if sample is None:
            return None
        return self.on_location(sample)

    # ------------------------------------------------------------------
    # Internals (lock held)
    # ------------------------------------------------------------------

    def _recompute_hazards(self) -> None:
        self._active_hazards = compute_active(
            self._hazard_source, self._config.emergency_kind, self._config.travel_profile
        )
        log.info(
            "Active hazards: %d (emergency=%s, profile=%s)",
            len(self._active_hazards),
            self._config.emergency_kind.value,
            self._config.travel_profile.value,
        )

    def _should_retry(self, point: Coordinate) -> bool:
        """A failed recalculation is retried once the traveler has moved away from where it started."""
        if self._retry_from is None or self._state.last_error not in _TRANSIENT_ERRORS:
            return False
        return haversine_m(point, self._retry_from) > self._monitor.deviation_threshold_m

    def _resolve_start(self) -> Coordinate:
        mode = self._config.start_mode
        if mode is StartMode.MANUAL_POINT:
            if self._config.manual_start_point is not None:
                return self._config.manual_start_point
        elif mode is not StartMode.DEVICE_LOCATION:
            raise ValueError(f"Unknown start mode: {mode}")

        if self._state.last_known_location is None:
            raise LocationUnavailable("no location sample received yet")
        return self._state.last_known_location

    def _resolve_destination(self, reference: Coordinate) -> Destination:
        mode = self._config.destination_mode
        if mode is DestinationMode.NEAREST:
            candidates = of_category(self._destinations, self._meeting_point_category)
            destination = nearest(reference, candidates)
        elif mode is DestinationMode.EXPLICIT:
            destination = self._config.explicit_destination
        else:
            raise ValueError(f"Unknown destination mode: {mode}")

        if destination is None:
            raise NoFeasibleDestination(f"no destination available ({mode.value} mode)")
        return destination

    def _discard_pending(self) -> None:
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._state.is_recalculating = False

    def _dispatch(self, start: Coordinate, trigger: RouteTrigger) -> bool:
        if trigger is not RouteTrigger.DEVIATION:
            self._monitor.transition(NavPhase.AWAITING_ROUTE)
        self._state.last_error = None
        self._state.last_error_message = None
        self._state.notify_failure = False
        self._retry_from = None

        try:
            destination = self._resolve_destination(start)
        except RouteError as e:
            self._fail(e, trigger, start)
            return False

        self._generation += 1
        token = self._generation
        self._state.is_recalculating = True
        log.info(
            "Route request (%s) from (%.5f, %.5f) to %s [%s]",
            trigger.value, start.lat, start.lon, destination.name, self._config.travel_profile.value,
        )

        future = self._executor.submit(
            self._calculator.compute_route,
            start,
            destination,
            self._config.travel_profile,
            self._active_hazards,
        )
        self._pending = future
        # Runs immediately (in this thread) if the future is already done
        future.add_done_callback(partial(self._on_route_done, token, trigger, start, destination))
        return True

    def _on_route_done(
        self, token: int, trigger: RouteTrigger, start: Coordinate, destination: Destination, future: Future
    ) -> None:
        with self._lock:
            if token != self._generation:
                log.info("Discarding stale route result for %s", destination.name)
                return
            self._pending = None
            self._state.is_recalculating = False

            try:
                path = future.result()
            except RouteError as e:
                self._fail(e, trigger, start)
                return
            except Exception as e:
                log.exception("Route computation crashed")
                self._fail(ProviderFailure(f"{type(e).__name__}: {e}"), trigger, start)
                return

            self._route = list(path)
            self._state.destination = destination
            self._state.off_route = False
            self._monitor.transition(NavPhase.ACTIVE)
            log.info("Route installed: %d point(s) to %s", len(self._route), destination.name)

    def _fail(self, error: RouteError, trigger: RouteTrigger, start: Coordinate) -> None:
        self._route = []
        self._state.is_recalculating = False
        if self._monitor.phase in (NavPhase.AWAITING_ROUTE, NavPhase.RECALCULATING):
            self._monitor.transition(NavPhase.IDLE)
        # Failed recalculations get no notice; they are retried once the traveler moves on
        if trigger is not RouteTrigger.EXPLICIT and error.kind in _TRANSIENT_ERRORS:
            self._retry_from = start
        self._record_failure(error, notify=trigger is RouteTrigger.EXPLICIT)

    def _record_failure(self, error: RouteError, notify: bool) -> None:
        self._state.last_error = error.kind
        self._state.last_error_message = str(error)
        self._state.notify_failure = notify
        log.warning("Route failure (%s): %s", error.kind.value, error)
