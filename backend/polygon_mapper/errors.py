"""
Error kinds raised by the drawing session, record store and location lookup.

The HTTP layer in main.py maps these onto HTTPException status codes.
"""


class PolygonMapperError(Exception):
    """Base class for all polygon mapper errors."""


class InvalidCoordinate(PolygonMapperError, ValueError):
    """Longitude or latitude outside the WGS-84 range."""


class InsufficientVertices(PolygonMapperError):
    """A polygon needs at least 3 vertices."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"Need at least 3 points to create a polygon, got {count}")


class DuplicateId(PolygonMapperError):
    """A polygon with this id is already stored."""

    def __init__(self, polygon_id: str):
        self.polygon_id = polygon_id
        super().__init__(f"Polygon '{polygon_id}' already exists")


class NotFound(PolygonMapperError, LookupError):
    """No polygon with this id is stored."""

    def __init__(self, polygon_id: str):
        self.polygon_id = polygon_id
        super().__init__(f"Polygon '{polygon_id}' not found")


class PersistenceUnavailable(PolygonMapperError):
    """Write-through to the durable store failed; the mutation was rolled back."""


class MalformedPersistedData(PolygonMapperError):
    """Stored polygon data could not be decoded."""


class LocationUnavailable(PolygonMapperError):
    """Current position could not be determined (denied, timed out, unsupported)."""
