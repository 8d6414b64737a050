"""
Map layer adapters.

The session and store push render commands through MapLayerAdapter and never
read anything back. Layer handles are keyed by polygon id and never own the
polygon; the store does.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from shapely.geometry import LineString, Point, mapping
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.geometry.base import BaseGeometry

from .models import MIN_VERTICES, Coordinate


class MapLayerAdapter(Protocol):
    """Render commands issued by the drawing session and the record store."""

    def render_draft(self, ring: Sequence[Coordinate]) -> None:
        ...

    def clear_draft(self) -> None:
        ...

    def render_polygon(self, polygon_id: str, ring: Sequence[Coordinate], label: str) -> None:
        ...

    def remove_polygon(self, polygon_id: str) -> None:
        ...

    def set_polygons_visible(self, visible: bool) -> None:
        ...


class NullLayerAdapter:
    """Adapter for headless use: every command is dropped."""

    def render_draft(self, ring: Sequence[Coordinate]) -> None:
        pass

    def clear_draft(self) -> None:
        pass

    def render_polygon(self, polygon_id: str, ring: Sequence[Coordinate], label: str) -> None:
        pass

    def remove_polygon(self, polygon_id: str) -> None:
        pass

    def set_polygons_visible(self, visible: bool) -> None:
        pass


@dataclass
class LayerHandle:
    """Rendered saved polygon."""

    geometry: ShapelyPolygon
    label: str


def _draft_geometry(ring: Sequence[Coordinate]) -> Optional[BaseGeometry]:
    # Vertex markers until a line exists, outline until a polygon exists
    if not ring:
        return None
    if len(ring) == 1:
        return Point(ring[0])
    if len(ring) < MIN_VERTICES:
        return LineString(ring)
    return ShapelyPolygon(ring)


class GeoJSONLayerAdapter:
    """
    Keeps the current map layers as shapely geometries and serves them as a
    GeoJSON FeatureCollection for a web map client.

    Draft:
    - 1 vertex: Point
    - 2 vertices: LineString
    - 3+ vertices: Polygon

    Hidden saved polygons stay in the handle map but are left out of the
    collection, so toggling visibility back on needs no re-render.
    """

    def __init__(self):
        self._draft: Optional[BaseGeometry] = None
        self._layers: Dict[str, LayerHandle] = {}
        self.polygons_visible = True

    def render_draft(self, ring: Sequence[Coordinate]) -> None:
        self._draft = _draft_geometry(ring)

    def clear_draft(self) -> None:
        self._draft = None

    def render_polygon(self, polygon_id: str, ring: Sequence[Coordinate], label: str) -> None:
        # Re-rendering an id replaces its handle (e.g. after a rename)
        self._layers[polygon_id] = LayerHandle(geometry=ShapelyPolygon(ring), label=label)

    def remove_polygon(self, polygon_id: str) -> None:
        self._layers.pop(polygon_id, None)

    def set_polygons_visible(self, visible: bool) -> None:
        self.polygons_visible = visible

    @property
    def layer_ids(self) -> List[str]:
        return list(self._layers)

    def feature_collection(self) -> Dict[str, Any]:
        """Visible layers: saved polygons first, then the draft."""
        features = []

        if self.polygons_visible:
            for polygon_id, handle in self._layers.items():
                features.append({
                    "type": "Feature",
                    "id": polygon_id,
                    "geometry": mapping(handle.geometry),
                    "properties": {"layer": "saved", "label": handle.label},
                })

        if self._draft is not None:
            features.append({
                "type": "Feature",
                "geometry": mapping(self._draft),
                "properties": {"layer": "draft"},
            })

        return {"type": "FeatureCollection", "features": features}
