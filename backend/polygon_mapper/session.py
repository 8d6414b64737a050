"""
Drawing session: the in-progress polygon the user is tracing.

States:
    idle --start()--> drawing --cancel()/finalize()--> idle

A restart while drawing discards the draft; there is never more than one.
"""

import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from loguru import logger

from .errors import InsufficientVertices
from .geometry import compute_area
from .models import MIN_VERTICES, AreaMeasurement, Coordinate, DrawingMode, Polygon, make_coordinate
from .render import MapLayerAdapter, NullLayerAdapter


def new_polygon_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DrawingSession:
    """Accumulates clicked vertices and turns them into a Polygon."""

    def __init__(
        self,
        renderer: Optional[MapLayerAdapter] = None,
        id_factory: Callable[[], str] = new_polygon_id,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            renderer: Map layer adapter for draft feedback (default: no-op)
            id_factory: Generates polygon ids
            clock: Generates creation timestamps
        """
        self.renderer = renderer or NullLayerAdapter()
        self._id_factory = id_factory
        self._clock = clock

        self._mode = DrawingMode.IDLE
        self._draft: List[Coordinate] = []

    @property
    def mode(self) -> DrawingMode:
        return self._mode

    @property
    def is_drawing(self) -> bool:
        return self._mode is DrawingMode.DRAWING

    @property
    def vertices(self) -> List[Coordinate]:
        """Copy of the draft vertices in click order."""
        return list(self._draft)

    @property
    def live_area(self) -> Optional[AreaMeasurement]:
        """Area of the draft once it has 3 or more vertices."""
        if len(self._draft) < MIN_VERTICES:
            return None
        return compute_area(self._draft)

    def start(self) -> None:
        """Begin a new draft, discarding any draft in progress."""
        if self._draft:
            logger.info(f"Discarding draft with {len(self._draft)} points")
        self._draft = []
        self._mode = DrawingMode.DRAWING
        self.renderer.clear_draft()

    def toggle(self) -> DrawingMode:
        """Start drawing, or stop drawing and abandon the draft."""
        if self.is_drawing:
            self.cancel()
        else:
            self.start()
        return self._mode

    def add_vertex(self, coordinate: Sequence[float]) -> bool:
        """
        Append a clicked position to the draft.

        Args:
            coordinate: (lon, lat) pair

        Returns:
            False if not drawing (the click is ignored), True otherwise

        Raises:
            InvalidCoordinate: position out of range (only while drawing)
        """
        if not self.is_drawing:
            return False

        self._draft.append(make_coordinate(coordinate))
        self.renderer.render_draft(list(self._draft))
        return True

    def cancel(self) -> None:
        """Stop drawing and discard the draft."""
        self._draft = []
        self._mode = DrawingMode.IDLE
        self.renderer.clear_draft()

    def finalize(self, name: Optional[str] = None, existing_count: int = 0) -> Polygon:
        """
        Turn the draft into a Polygon and reset to idle.

        The polygon is not stored; that is the caller's job.

        Args:
            name: Display name; blank or None gives "Polygon N"
            existing_count: Number of polygons already stored, used for N

        Raises:
            InsufficientVertices: fewer than 3 vertices (session unchanged)
        """
        if len(self._draft) < MIN_VERTICES:
            logger.warning(f"Rejected save with {len(self._draft)} points")
            raise InsufficientVertices(len(self._draft))

        vertices = list(self._draft)
        name = name.strip() if name else ""

        polygon = Polygon(
            id=self._id_factory(),
            name=name or f"Polygon {existing_count + 1}",
            vertices=vertices,
            area=compute_area(vertices),
            created_at=self._clock(),
        )

        self.cancel()
        return polygon
