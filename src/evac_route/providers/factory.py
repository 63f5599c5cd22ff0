from __future__ import annotations

from evac_route.providers.base import RoutingProvider


def build_provider(name: str) -> RoutingProvider:
    """
    Build a routing provider from a CLI/API name:
      "ors"  -> OpenRouteService (needs EVAC_ROUTE_ORS_API_KEY)
      "mock" -> deterministic straight-line router
    """
    token = (name or "").strip().lower()

    # Local imports keep requests out of mock-only runs
    if token == "ors":
        from evac_route.providers.ors import OpenRouteServiceProvider

        return OpenRouteServiceProvider()
    if token == "mock":
        from evac_route.providers.mock import MockRoutingProvider

        return MockRoutingProvider()
    raise ValueError(f"Unknown routing provider: '{name}' (supported: ors, mock)")
