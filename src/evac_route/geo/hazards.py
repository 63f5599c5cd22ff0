"""Hazard-zone dataset loading and active-set filtering."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from shapely.geometry import Polygon, shape

from evac_route.core.models import (
    Coordinate,
    EmergencyKind,
    HazardPolygon,
    Severity,
    TravelProfile,
)

log = logging.getLogger(__name__)


def compute_active(
    source: Sequence[HazardPolygon],
    emergency_kind: EmergencyKind,
    travel_profile: TravelProfile,
) -> Tuple[HazardPolygon, ...]:
    """Polygons relevant to the current emergency and travel profile.

    Pure: the same inputs always give the same tuple, and ``none`` gives ().
    """
    if emergency_kind is EmergencyKind.NONE:
        return ()
    return tuple(
        p
        for p in source
        if p.hazard_kind is emergency_kind and (p.profile is None or p.profile is travel_profile)
    )


def group_by_severity(active: Sequence[HazardPolygon]) -> Dict[Severity, List[HazardPolygon]]:
    """Split an active set into medium/high buckets for overlay rendering."""
    out: Dict[Severity, List[HazardPolygon]] = {s: [] for s in Severity}
    for p in active:
        out[p.severity].append(p)
    return out


# ---------------------------------------------------------------------------
# GeoJSON loading
# ---------------------------------------------------------------------------

def _first(props: Dict[str, Any], *keys: str) -> Optional[Any]:
    for k in keys:
        v = props.get(k)
        if v not in (None, ""):
            return v
    return None


def _ring_of(polygon: Polygon) -> Tuple[Coordinate, ...]:
    # shapely exterior coords are (lon, lat)
    return tuple(Coordinate(lat=y, lon=x) for x, y, *_ in polygon.exterior.coords)


def parse_feature(feature: Dict[str, Any]) -> List[HazardPolygon]:
    """Turn one GeoJSON feature into zero or more HazardPolygons."""
    geometry = feature.get("geometry")
    if not geometry:
        return []

    geom = shape(geometry)
    if geom.geom_type == "Polygon":
        polygons = [geom]
    elif geom.geom_type == "MultiPolygon":
        polygons = list(geom.geoms)
    else:
        log.debug("Skipping non-polygon hazard geometry: %s", geom.geom_type)
        return []

    props = feature.get("properties") or {}
    kind = _first(props, "hazard_kind", "reason")
    if kind is None:
        raise ValueError(f"hazard feature without hazard_kind/reason: {props}")
    severity = _first(props, "severity", "Categoria") or Severity.MEDIUM
    profile = _first(props, "profile")
    name = _first(props, "name", "nombre")

    return [
        HazardPolygon(
            ring=_ring_of(poly),
            hazard_kind=kind,
            severity=severity,
            profile=profile,
            name=name,
        )
        for poly in polygons
    ]


def load_hazard_polygons(path: Path) -> List[HazardPolygon]:
    """Read a GeoJSON FeatureCollection of hazard zones."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    out: List[HazardPolygon] = []
    for i, feature in enumerate(data.get("features", [])):
        try:
            out.extend(parse_feature(feature))
        except ValueError as e:
            raise ValueError(f"{path}: bad hazard feature #{i}: {e}") from e
    log.info("Loaded %d hazard polygon(s) from %s", len(out), path)
    return out
