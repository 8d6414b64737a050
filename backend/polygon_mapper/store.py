"""Polygon record store with write-through persistence."""

from typing import Dict, List, Optional

import orjson
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from .errors import DuplicateId, MalformedPersistedData, NotFound, PersistenceUnavailable
from .models import Polygon
from .persistence import PersistenceProvider
from .render import MapLayerAdapter, NullLayerAdapter

_POLYGON_LIST = TypeAdapter(List[Polygon])


def encode_polygons(polygons: List[Polygon]) -> bytes:
    """Serialize polygons to the stored JSON list."""
    return orjson.dumps(
        [p.model_dump(mode="json", by_alias=True) for p in polygons],
        option=orjson.OPT_INDENT_2,
    )


def decode_polygons(blob: bytes) -> List[Polygon]:
    """
    Parse the stored JSON list back into polygons.

    Raises:
        MalformedPersistedData: invalid JSON, invalid records or duplicate ids
    """
    try:
        data = orjson.loads(blob)
    except orjson.JSONDecodeError as e:
        raise MalformedPersistedData(f"Invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise MalformedPersistedData(f"Expected a list of polygons, got {type(data).__name__}")

    try:
        polygons = _POLYGON_LIST.validate_python(data)
    except ValidationError as e:
        raise MalformedPersistedData(f"Invalid polygon record: {e}") from e

    ids = [p.id for p in polygons]
    if len(set(ids)) != len(ids):
        raise MalformedPersistedData("Duplicate polygon ids")

    return polygons


class PolygonRecordStore:
    """Owns all saved polygons; every mutation is persisted before it returns."""

    def __init__(self, persistence: PersistenceProvider, renderer: Optional[MapLayerAdapter] = None):
        """
        Load saved polygons and render them.

        Args:
            persistence: Durable blob store
            renderer: Map layer adapter (default: no-op)
        """
        self.persistence = persistence
        self.renderer = renderer or NullLayerAdapter()
        self.visible = True

        self._polygons: Dict[str, Polygon] = {}
        self._load()

        for polygon in self._polygons.values():
            self._render(polygon)

    def _load(self):
        """Load polygons from the persistence provider; bad data means empty."""
        try:
            blob = self.persistence.read_all()
        except OSError as e:
            logger.error(f"Failed to read saved polygons: {e}")
            return

        if blob is None:
            return

        try:
            polygons = decode_polygons(blob)
        except MalformedPersistedData as e:
            logger.error(f"Ignoring malformed saved polygons: {e}")
            return

        self._polygons = {p.id: p for p in polygons}
        logger.info(f"Loaded {len(self._polygons)} polygons")

    def _commit(self, snapshot: Dict[str, Polygon]):
        """Write the whole collection; on failure restore the snapshot."""
        try:
            self.persistence.write_all(encode_polygons(list(self._polygons.values())))
        except Exception as e:
            self._polygons = snapshot
            logger.error(f"Failed to persist polygons, mutation rolled back: {e}")
            raise PersistenceUnavailable(f"{type(e).__name__}: {e}") from e

    def _render(self, polygon: Polygon):
        self.renderer.render_polygon(polygon.id, polygon.vertices, polygon.label)

    def __len__(self) -> int:
        return len(self._polygons)

    def __contains__(self, polygon_id: object) -> bool:
        return polygon_id in self._polygons

    # ==================
    # Polygon CRUD
    # ==================

    def create(self, polygon: Polygon) -> Polygon:
        """
        Store a new polygon.

        Raises:
            DuplicateId: id already stored
            PersistenceUnavailable: write failed (nothing stored)
        """
        if polygon.id in self._polygons:
            raise DuplicateId(polygon.id)

        snapshot = dict(self._polygons)
        self._polygons[polygon.id] = polygon
        self._commit(snapshot)

        self._render(polygon)
        logger.info(f"Created polygon '{polygon.name}' ({polygon.area.hectares} ha)")
        return polygon

    def list(self) -> List[Polygon]:
        """All polygons in insertion order."""
        return list(self._polygons.values())

    def get(self, polygon_id: str) -> Polygon:
        try:
            return self._polygons[polygon_id]
        except KeyError:
            raise NotFound(polygon_id) from None

    def delete(self, polygon_id: str) -> None:
        """
        Remove a polygon and its map layer.

        Raises:
            NotFound: id not stored
            PersistenceUnavailable: write failed (polygon kept)
        """
        if polygon_id not in self._polygons:
            raise NotFound(polygon_id)

        snapshot = dict(self._polygons)
        del self._polygons[polygon_id]
        self._commit(snapshot)

        self.renderer.remove_polygon(polygon_id)
        logger.info(f"Deleted polygon {polygon_id}")

    def rename(self, polygon_id: str, new_name: str) -> Polygon:
        """
        Change a polygon's display name.

        Raises:
            NotFound: id not stored
            ValueError: blank name
            PersistenceUnavailable: write failed (old name kept)
        """
        polygon = self.get(polygon_id)

        new_name = new_name.strip()
        if not new_name:
            raise ValueError("Polygon name must not be blank")

        snapshot = dict(self._polygons)
        renamed = polygon.model_copy(update={"name": new_name})
        self._polygons[polygon_id] = renamed
        self._commit(snapshot)

        self._render(renamed)
        logger.info(f"Renamed polygon {polygon_id} to '{new_name}'")
        return renamed

    # ==================
    # Visibility
    # ==================

    def set_visible(self, visible: bool) -> None:
        """Show or hide all saved polygons on the map."""
        self.visible = visible
        self.renderer.set_polygons_visible(visible)

    def toggle_visibility(self) -> bool:
        self.set_visible(not self.visible)
        return self.visible
