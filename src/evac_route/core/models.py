from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class _AliasEnum(str, Enum):
    """String enum that also accepts legacy/provider spellings (case-insensitive)."""

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {}

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        key = cls._aliases().get(key, key)
        for member in cls:
            if member.value == key:
                return member
        return None


class TravelProfile(_AliasEnum):
    WALK = "walk"
    BICYCLE = "bicycle"
    DRIVE = "drive"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {
            "foot-walking": "walk",
            "cycling-regular": "bicycle",
            "driving-car": "drive",
        }


class EmergencyKind(_AliasEnum):
    NONE = "none"
    FLOOD = "flood"
    LANDSLIDE = "landslide"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {"ninguna": "none", "inundacion": "flood", "derrumbe": "landslide"}


class Severity(_AliasEnum):
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {"media": "medium", "alta": "high"}


class StartMode(str, Enum):
    DEVICE_LOCATION = "device-location"
    MANUAL_POINT = "manual-point"


class DestinationMode(str, Enum):
    EXPLICIT = "explicit"
    NEAREST = "nearest"


class NavPhase(str, Enum):
    IDLE = "idle"
    AWAITING_ROUTE = "awaiting_route"
    ACTIVE = "active"
    RECALCULATING = "recalculating"
    ARRIVED = "arrived"


class RouteErrorKind(str, Enum):
    NO_FEASIBLE_DESTINATION = "no_feasible_destination"
    PROVIDER_FAILURE = "provider_failure"
    HAZARD_VALIDATION_FAILURE = "hazard_validation_failure"
    LOCATION_UNAVAILABLE = "location_unavailable"


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)

    def as_lonlat(self) -> List[float]:
        """GeoJSON / OpenRouteService axis order."""
        return [self.lon, self.lat]


class Destination(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    name: str = Field(validation_alias=AliasChoices("name", "nombre"))
    category: str = Field(validation_alias=AliasChoices("category", "tipo"))
    lat: float
    lon: float = Field(validation_alias=AliasChoices("lon", "lng"))

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lon=self.lon)


class HazardPolygon(BaseModel):
    model_config = ConfigDict(frozen=True)

    ring: Tuple[Coordinate, ...]
    hazard_kind: EmergencyKind
    severity: Severity = Severity.MEDIUM
    profile: Optional[TravelProfile] = None  # None -> applies to every travel profile
    name: Optional[str] = None

    @field_validator("hazard_kind")
    @classmethod
    def _not_none(cls, v: EmergencyKind) -> EmergencyKind:
        if v is EmergencyKind.NONE:
            raise ValueError("hazard_kind must be flood or landslide")
        return v

    @field_validator("ring")
    @classmethod
    def _closed_ring(cls, v: Tuple[Coordinate, ...]) -> Tuple[Coordinate, ...]:
        if len(v) < 3:
            raise ValueError("a hazard ring needs at least 3 vertices")
        if v[0] != v[-1]:
            v = v + (v[0],)
        return v


class LocationSample(BaseModel):
    """One reading from the live location provider."""

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)
    accuracy_m: Optional[float] = None
    timestamp: Optional[float] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lon=self.lon)


class RouteConfiguration(BaseModel):
    travel_profile: TravelProfile = TravelProfile.WALK
    start_mode: StartMode = StartMode.DEVICE_LOCATION
    manual_start_point: Optional[Coordinate] = None
    destination_mode: DestinationMode = DestinationMode.EXPLICIT
    explicit_destination: Optional[Destination] = None
    emergency_kind: EmergencyKind = EmergencyKind.NONE

    @model_validator(mode="after")
    def _manual_point_needs_manual_mode(self) -> "RouteConfiguration":
        if self.manual_start_point is not None and self.start_mode is not StartMode.MANUAL_POINT:
            raise ValueError("manual_start_point is only allowed with start_mode=manual-point")
        return self


class NavigationState(BaseModel):
    phase: NavPhase = NavPhase.IDLE
    is_evacuating: bool = False
    is_recalculating: bool = False
    last_known_location: Optional[Coordinate] = None
    destination: Optional[Destination] = None

    # Flags for the presentation layer
    off_route: bool = False
    arrived: bool = False
    last_error: Optional[RouteErrorKind] = None
    last_error_message: Optional[str] = None
    notify_failure: bool = False
