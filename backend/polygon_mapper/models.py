"""
Data model and Pydantic schemas.

These models provide:
- The persisted Polygon record (and its JSON shape)
- Area measurements stamped on each polygon
- Request/response bodies for the API (shows up in /docs)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidCoordinate

MIN_VERTICES = 3


class Coordinate(NamedTuple):
    """(longitude, latitude) in decimal degrees, WGS-84. GeoJSON order."""

    lon: float
    lat: float


Ring = Sequence[Coordinate]


def make_coordinate(value: Sequence[float]) -> Coordinate:
    """
    Build a Coordinate from a (lon, lat) pair, checking the WGS-84 ranges.

    Raises:
        InvalidCoordinate: pair is malformed or out of range
    """
    try:
        lon, lat = (float(v) for v in value)
    except (TypeError, ValueError) as e:
        raise InvalidCoordinate(f"Expected a (lon, lat) pair, got {value!r}") from e

    if not -180.0 <= lon <= 180.0:
        raise InvalidCoordinate(f"Longitude must be in [-180, 180], got {lon}")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate(f"Latitude must be in [-90, 90], got {lat}")
    return Coordinate(lon, lat)


class AreaMeasurement(BaseModel):
    """Ground area of a ring. Always recomputed from vertices, never edited."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    square_meters: float = Field(0.0, ge=0, alias="squareMeters", description="Area in m²")
    hectares: float = Field(0.0, ge=0, description="Area in hectares")


class Polygon(BaseModel):
    """A saved polygon. Frozen: a rename replaces it with a copy."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., description="Opaque unique id")
    name: str = Field(..., description="Display name")
    vertices: Tuple[Coordinate, ...] = Field(..., description="Open ring of [lon, lat] pairs")
    area: AreaMeasurement = Field(..., description="Area computed at creation time")
    created_at: datetime = Field(..., alias="created", description="Creation timestamp")

    @field_validator("vertices", mode="before")
    @classmethod
    def _check_vertices(cls, value: Any) -> Tuple[Coordinate, ...]:
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"Expected a list of [lon, lat] pairs, got {type(value).__name__}")
        try:
            vertices = [make_coordinate(v) for v in value]
        except InvalidCoordinate as e:
            raise ValueError(str(e)) from e
        if len(vertices) < MIN_VERTICES:
            raise ValueError(f"A polygon needs at least {MIN_VERTICES} vertices, got {len(vertices)}")
        return tuple(vertices)

    @property
    def label(self) -> str:
        return f"{self.name}: {self.area.hectares} ha ({self.area.square_meters} m²)"


# ---------------------------------------------------------------------------
# API schemas
# ---------------------------------------------------------------------------


class DrawingMode(str, Enum):
    """Drawing session states."""

    IDLE = "idle"
    DRAWING = "drawing"


class VertexIn(BaseModel):
    """A clicked map position."""

    lon: float = Field(..., ge=-180, le=180, description="Longitude")
    lat: float = Field(..., ge=-90, le=90, description="Latitude")


class SessionState(BaseModel):
    """Current drawing session, as shown in the control panel."""

    mode: DrawingMode
    vertices: List[Coordinate] = Field(default_factory=list)
    point_count: int = Field(0, description="Number of draft vertices")
    area: Optional[AreaMeasurement] = Field(None, description="Live area once 3+ points exist")
    accepted: Optional[bool] = Field(None, description="Whether the last vertex was added")


class SaveRequest(BaseModel):
    name: Optional[str] = Field(None, description="Polygon name (defaults to 'Polygon N')")


class RenameRequest(BaseModel):
    name: str = Field(..., min_length=1, description="New display name")


class VisibilityRequest(BaseModel):
    visible: bool


class RingIn(BaseModel):
    """Ring submitted for an area report."""

    vertices: List[List[float]] = Field(..., description="Open ring of [lon, lat] pairs")


class AreaReport(BaseModel):
    """Spherical area (the stored value) compared with the WGS-84 ellipsoid."""

    area: AreaMeasurement
    area_spherical_m2: float = Field(..., description="Spherical area in m² (unrounded)")
    area_ellipsoidal_m2: float = Field(..., description="Ellipsoidal (WGS-84) area in m²")
    difference_m2: float = Field(..., description="Ellipsoidal minus spherical (m²)")
    difference_percent: float = Field(..., description="Difference relative to ellipsoidal (%)")
    ring_valid: bool = Field(..., description="Ring is a simple, non-degenerate polygon")


class LocationOut(BaseModel):
    center: Coordinate
    zoom: int


class MapView(BaseModel):
    center: Coordinate
    zoom: int


class FeatureCollection(BaseModel):
    type: str = "FeatureCollection"
    features: List[Dict[str, Any]] = Field(default_factory=list)
