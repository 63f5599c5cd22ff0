from __future__ import annotations

import pytest

from evac_route.core.errors import InvalidTransition
from evac_route.core.models import Coordinate, NavPhase
from evac_route.core.monitor import min_distance_m, trim_route

from conftest import east_line


def _activate(monitor):
    monitor.transition(NavPhase.AWAITING_ROUTE)
    monitor.transition(NavPhase.ACTIVE)
    return monitor


def north_of(c: Coordinate, metres: float) -> Coordinate:
    return Coordinate(lat=c.lat + metres / 111_195.0, lon=c.lon)


def test_trim_drops_leading_points_within_radius():
    route = east_line(9.99, 20.0, 10)
    remaining = trim_route(route[1], route, 10.0)
    assert remaining == route[3:]


def test_trim_only_touches_the_prefix():
    route = east_line(9.99, 20.0, 3)
    far = Coordinate(lat=9.995, lon=20.0)
    loop_back = Coordinate(lat=9.99, lon=20.00005)
    route = route + [far, loop_back]

    remaining = trim_route(route[1], route, 10.0)
    assert remaining == [far, loop_back]


def test_trim_is_monotonic():
    route = east_line(9.99, 20.0, 40)
    samples = [route[i] for i in (0, 3, 2, 7, 7, 5, 12, 30, 1)]
    lengths = [len(route)]
    for s in samples:
        route = trim_route(s, route, 10.0)
        lengths.append(len(route))
    assert lengths == sorted(lengths, reverse=True)


def test_min_distance_empty_route_is_infinite():
    assert min_distance_m(Coordinate(lat=0, lon=0), []) == float("inf")


def test_on_route_sample_trims(monitor):
    _activate(monitor)
    route = east_line(9.99, 20.0, 10)
    step = monitor.observe(route[1], route, evacuating=True)

    assert not step.off_route
    assert not step.recalculate
    assert step.trimmed == 3
    assert step.route == route[3:]
    assert monitor.phase is NavPhase.ACTIVE


def test_off_route_recalculates_exactly_once(monitor):
    _activate(monitor)
    route = east_line(9.99, 20.0, 10)

    steps = [monitor.observe(north_of(route[4], metres), route, evacuating=True) for metres in (40, 45, 60)]

    assert [s.recalculate for s in steps] == [True, False, False]
    assert all(s.off_route for s in steps)
    assert monitor.phase is NavPhase.RECALCULATING
    # the first (triggering) sample leaves the route untouched
    assert steps[0].route == route


def test_small_deviation_is_jitter(monitor):
    _activate(monitor)
    route = east_line(9.99, 20.0, 10)
    step = monitor.observe(north_of(route[5], 20), route, evacuating=True)
    assert not step.off_route
    assert monitor.phase is NavPhase.ACTIVE


def test_trimming_continues_while_recalculating(monitor):
    _activate(monitor)
    route = east_line(9.99, 20.0, 10)
    monitor.observe(north_of(route[0], 40), route, evacuating=True)
    assert monitor.phase is NavPhase.RECALCULATING

    step = monitor.observe(route[0], route, evacuating=True)
    assert step.trimmed == 2
    assert not step.recalculate
    assert monitor.phase is NavPhase.RECALCULATING


def test_arrival_with_two_point_route(monitor):
    _activate(monitor)
    route = east_line(9.99, 20.0, 2)
    step = monitor.observe(route[0], route, evacuating=True)

    assert step.arrived
    assert step.route == []
    assert monitor.phase is NavPhase.ARRIVED


def test_no_arrival_when_not_evacuating(monitor):
    _activate(monitor)
    route = east_line(9.99, 20.0, 2, step_deg=0.0002)  # ~22 m apart
    step = monitor.observe(route[0], route, evacuating=False)

    assert not step.arrived
    assert step.route == route[1:]
    assert monitor.phase is NavPhase.ACTIVE


def test_idle_monitor_ignores_samples(monitor):
    route = east_line(9.99, 20.0, 5)
    step = monitor.observe(north_of(route[0], 500), route, evacuating=True)
    assert step.route == route
    assert not step.off_route and not step.recalculate
    assert monitor.phase is NavPhase.IDLE


def test_illegal_transition(monitor):
    with pytest.raises(InvalidTransition):
        monitor.transition(NavPhase.ACTIVE)
    _activate(monitor)
    with pytest.raises(InvalidTransition):
        monitor.transition(NavPhase.IDLE)
    monitor.reset()
    assert monitor.phase is NavPhase.IDLE
