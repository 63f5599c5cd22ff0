"""FastAPI control surface for a presentation layer driving route sessions."""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from evac_route.core.calculator import RouteCalculator
from evac_route.core.destinations import load_destinations
from evac_route.core.models import (
    Coordinate,
    Destination,
    DestinationMode,
    EmergencyKind,
    HazardPolygon,
    LocationSample,
    NavigationState,
    RouteConfiguration,
    StartMode,
    TravelProfile,
)
from evac_route.core.session import InlineExecutor, RouteSession
from evac_route.geo.hazards import load_hazard_polygons
from evac_route.providers.factory import build_provider

log = logging.getLogger(__name__)

app = FastAPI(title="Evac Route", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Datasets and sessions (process lifetime)
# ---------------------------------------------------------------------------

Catalog = Tuple[List[HazardPolygon], List[Destination]]

_catalog: Optional[Catalog] = None
_sessions: Dict[str, RouteSession] = {}


def get_catalog() -> Catalog:
    global _catalog
    if _catalog is None:
        from evac_route.config import settings

        _catalog = (
            load_hazard_polygons(Path(settings.hazards_path)),
            load_destinations(Path(settings.destinations_path)),
        )
    return _catalog


def _get_session(session_id: str) -> RouteSession:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _find_destination(session: RouteSession, destination_id: int) -> Destination:
    for d in session.destinations:
        if d.id == destination_id:
            return d
    raise HTTPException(status_code=404, detail=f"Destination {destination_id} not found")


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class SessionCreate(BaseModel):
    provider: str = "mock"
    travel_profile: TravelProfile = TravelProfile.WALK
    emergency_kind: EmergencyKind = EmergencyKind.NONE


class ConfigUpdate(BaseModel):
    travel_profile: Optional[TravelProfile] = None
    emergency_kind: Optional[EmergencyKind] = None
    start_mode: Optional[StartMode] = None
    manual_start_point: Optional[Coordinate] = None
    destination_mode: Optional[DestinationMode] = None
    explicit_destination_id: Optional[int] = None


class RouteCommand(BaseModel):
    destination_id: Optional[int] = None


class HazardOut(BaseModel):
    hazard_kind: str
    severity: str
    name: Optional[str] = None
    ring: List[Coordinate]


class SessionOut(BaseModel):
    id: str
    configuration: RouteConfiguration
    state: NavigationState
    route: List[Coordinate]
    hazards: List[HazardOut] = []
    accepted: Optional[bool] = None


def _snapshot(session_id: str, session: RouteSession, accepted: Optional[bool] = None) -> SessionOut:
    return SessionOut(
        id=session_id,
        configuration=session.configuration,
        state=session.state,
        route=list(session.active_route),
        hazards=[
            HazardOut(
                hazard_kind=h.hazard_kind.value,
                severity=h.severity.value,
                name=h.name,
                ring=list(h.ring),
            )
            for h in session.active_hazards
        ],
        accepted=accepted,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok", "sessions": len(_sessions)}


@app.get("/destinations", response_model=List[Destination])
def list_destinations(catalog: Catalog = Depends(get_catalog)):
    return catalog[1]


@app.post("/sessions", response_model=SessionOut, status_code=201)
def create_session(body: SessionCreate, catalog: Catalog = Depends(get_catalog)):
    try:
        provider = build_provider(body.provider)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    hazards, destinations = catalog
    session = RouteSession(
        hazards,
        destinations,
        RouteCalculator(provider),
        executor=InlineExecutor(),
        configuration=RouteConfiguration(
            travel_profile=body.travel_profile,
            emergency_kind=body.emergency_kind,
        ),
    )
    session_id = uuid.uuid4().hex
    _sessions[session_id] = session
    log.info("Session %s created (provider=%s)", session_id, body.provider)
    return _snapshot(session_id, session)


@app.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session_id: str):
    return _snapshot(session_id, _get_session(session_id))


@app.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str):
    session = _sessions.pop(session_id, None)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    session.close()
    log.info("Session %s closed", session_id)


@app.put("/sessions/{session_id}/config", response_model=SessionOut)
def update_config(session_id: str, body: ConfigUpdate):
    session = _get_session(session_id)
    fields: Dict[str, Any] = body.model_dump(exclude_unset=True)

    # Resolve before touching the session so a 404 leaves it unchanged
    dest = None
    if body.explicit_destination_id is not None:
        dest = _find_destination(session, body.explicit_destination_id)

    if body.travel_profile is not None:
        session.set_travel_profile(body.travel_profile)
    if body.emergency_kind is not None:
        session.set_emergency_kind(body.emergency_kind)
    if body.start_mode is not None:
        session.set_start_mode(body.start_mode)
    accepted = None
    if "manual_start_point" in fields:
        accepted = session.set_manual_start_point(body.manual_start_point)
    if body.destination_mode is not None:
        session.set_destination_mode(body.destination_mode)
    if "explicit_destination_id" in fields:
        session.set_explicit_destination(dest)

    return _snapshot(session_id, session, accepted=accepted)


@app.post("/sessions/{session_id}/location", response_model=SessionOut)
def push_location(session_id: str, sample: LocationSample):
    session = _get_session(session_id)
    session.on_location(sample)
    return _snapshot(session_id, session)


@app.post("/sessions/{session_id}/route", response_model=SessionOut)
def request_route(session_id: str, body: RouteCommand):
    session = _get_session(session_id)
    if body.destination_id is not None:
        accepted = session.select_destination(_find_destination(session, body.destination_id))
    else:
        accepted = session.request_route_calculation()
    return _snapshot(session_id, session, accepted=accepted)


@app.post("/sessions/{session_id}/evacuation", response_model=SessionOut)
def start_evacuation(session_id: str):
    session = _get_session(session_id)
    accepted = session.start_evacuation()
    return _snapshot(session_id, session, accepted=accepted)


@app.delete("/sessions/{session_id}/evacuation", response_model=SessionOut)
def cancel_evacuation(session_id: str):
    session = _get_session(session_id)
    session.cancel_evacuation()
    return _snapshot(session_id, session)
