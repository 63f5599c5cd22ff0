"""Route error taxonomy. Every one of these is recovered at the RouteSession boundary."""
from __future__ import annotations

from evac_route.core.models import RouteErrorKind


class RouteError(Exception):
    kind: RouteErrorKind = RouteErrorKind.PROVIDER_FAILURE


class NoFeasibleDestination(RouteError):
    kind = RouteErrorKind.NO_FEASIBLE_DESTINATION


class ProviderFailure(RouteError):
    kind = RouteErrorKind.PROVIDER_FAILURE


class HazardValidationFailure(RouteError):
    kind = RouteErrorKind.HAZARD_VALIDATION_FAILURE


class LocationUnavailable(RouteError):
    kind = RouteErrorKind.LOCATION_UNAVAILABLE


class InvalidTransition(ValueError):
    """Raised when the navigation state machine is asked for an illegal move."""
