from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from evac_route.core.models import Coordinate, Destination
from evac_route.geo.geometry import planar_sq_distance

log = logging.getLogger(__name__)


def nearest(reference: Coordinate, candidates: Sequence[Destination]) -> Optional[Destination]:
    """
    Closest candidate by squared planar distance; first one wins on ties.

    Only meaningful over a few kilometres.  Callers filter ``candidates`` to
    the relevant category first.
    """
    closest: Optional[Destination] = None
    best = float("inf")
    for d in candidates:
        dist = planar_sq_distance(reference, d.coordinate)
        if dist < best:
            best = dist
            closest = d
    return closest


def of_category(destinations: Sequence[Destination], category: str) -> List[Destination]:
    return [d for d in destinations if d.category == category]


def load_destinations(path: Path) -> List[Destination]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    out = [Destination.model_validate(row) for row in data]
    log.info("Loaded %d destination(s) from %s", len(out), path)
    return out
