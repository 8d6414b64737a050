"""
Polygon Mapper API

A FastAPI application that drives the drawing session and the polygon store
for a web map client.
"""

from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import Settings, configure_logging
from .errors import (
    InsufficientVertices,
    InvalidCoordinate,
    LocationUnavailable,
    NotFound,
    PersistenceUnavailable,
)
from .geometry import compare_area
from .location import FixedLocationProvider, LocationProvider, locate
from .models import (
    AreaReport,
    Coordinate,
    FeatureCollection,
    LocationOut,
    MapView,
    Polygon,
    RenameRequest,
    RingIn,
    SaveRequest,
    SessionState,
    VertexIn,
    VisibilityRequest,
    make_coordinate,
)
from .persistence import JsonFilePersistence, PersistenceProvider
from .render import GeoJSONLayerAdapter
from .session import DrawingSession
from .store import PolygonRecordStore


def create_app(
    settings: Optional[Settings] = None,
    persistence: Optional[PersistenceProvider] = None,
    location_provider: Optional[LocationProvider] = None,
) -> FastAPI:
    """
    Build the application with its own layers, session and store.

    Args:
        settings: Settings (default: read from the environment)
        persistence: Blob store (default: JSON file at settings.storage_path)
        location_provider: Position source (default: configured fixed position)
    """
    settings = settings or Settings()
    configure_logging(settings.log_level)

    if persistence is None:
        persistence = JsonFilePersistence(settings.storage_path)

    if location_provider is None:
        position = None
        if settings.location_lat is not None and settings.location_lon is not None:
            position = Coordinate(settings.location_lon, settings.location_lat)
        location_provider = FixedLocationProvider(position)

    layers = GeoJSONLayerAdapter()
    session = DrawingSession(renderer=layers)
    store = PolygonRecordStore(persistence, renderer=layers)

    app = FastAPI(
        title=settings.app_name,
        description="Trace polygons on a map and measure their geodesic area",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.layers = layers
    app.state.session = session
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def session_state(accepted: Optional[bool] = None) -> SessionState:
        vertices = session.vertices
        return SessionState(
            mode=session.mode,
            vertices=vertices,
            point_count=len(vertices),
            area=session.live_area,
            accepted=accepted,
        )

    @app.get("/")
    def root():
        """Root endpoint - health check."""
        return {"message": "Polygon Mapper API", "status": "running"}

    @app.get("/api/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/api/map", response_model=MapView)
    def map_view():
        """Initial map center and zoom."""
        return MapView(
            center=Coordinate(settings.map_center_lng, settings.map_center_lat),
            zoom=settings.map_zoom,
        )

    # ==================
    # Drawing session
    # ==================

    @app.get("/api/session", response_model=SessionState)
    def get_session():
        return session_state()

    @app.post("/api/session/start", response_model=SessionState)
    def start_drawing():
        session.start()
        return session_state()

    @app.post("/api/session/toggle", response_model=SessionState)
    def toggle_drawing():
        """Start drawing, or stop and abandon the current draft."""
        session.toggle()
        return session_state()

    @app.post("/api/session/cancel", response_model=SessionState)
    def cancel_drawing():
        session.cancel()
        return session_state()

    @app.post("/api/session/vertices", response_model=SessionState)
    def add_vertex(vertex: VertexIn):
        """
        Add a clicked map position to the draft.

        Ignored (accepted = false) when not drawing.
        """
        try:
            accepted = session.add_vertex((vertex.lon, vertex.lat))
        except InvalidCoordinate as e:
            raise HTTPException(status_code=422, detail=str(e))
        return session_state(accepted=accepted)

    @app.post("/api/session/save", response_model=Polygon)
    def save_polygon(request: SaveRequest):
        """
        Save the draft as a polygon.

        The draft is kept if the polygon could not be persisted.
        """
        draft = session.vertices

        try:
            polygon = session.finalize(request.name, existing_count=len(store))
        except InsufficientVertices as e:
            raise HTTPException(status_code=400, detail=str(e))

        try:
            store.create(polygon)
        except PersistenceUnavailable as e:
            session.start()
            for vertex in draft:
                session.add_vertex(vertex)
            raise HTTPException(status_code=503, detail=f"Could not save polygon: {e}")

        return polygon

    # ==================
    # Saved polygons
    # ==================

    @app.get("/api/polygons", response_model=List[Polygon])
    def list_polygons():
        return store.list()

    @app.get("/api/polygons/{polygon_id}", response_model=Polygon)
    def get_polygon(polygon_id: str):
        try:
            return store.get(polygon_id)
        except NotFound as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.patch("/api/polygons/{polygon_id}", response_model=Polygon)
    def rename_polygon(polygon_id: str, request: RenameRequest):
        try:
            return store.rename(polygon_id, request.name)
        except NotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        except PersistenceUnavailable as e:
            raise HTTPException(status_code=503, detail=f"Could not rename polygon: {e}")
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @app.delete("/api/polygons/{polygon_id}", status_code=204)
    def delete_polygon(polygon_id: str):
        try:
            store.delete(polygon_id)
        except NotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        except PersistenceUnavailable as e:
            raise HTTPException(status_code=503, detail=f"Could not delete polygon: {e}")

    @app.post("/api/polygons/visibility")
    def set_visibility(request: VisibilityRequest):
        """Show or hide saved polygons on the map."""
        store.set_visible(request.visible)
        return {"visible": store.visible}

    @app.get("/api/layers", response_model=FeatureCollection)
    def get_layers():
        """Visible map layers as a GeoJSON FeatureCollection."""
        return layers.feature_collection()

    # ==================
    # Area and location
    # ==================

    @app.post("/api/area", response_model=AreaReport)
    def area_report(ring: RingIn):
        """
        Area of an arbitrary ring.

        Returns the spherical area (the value stored on save) alongside the
        WGS-84 ellipsoidal area for comparison.
        """
        try:
            vertices = [make_coordinate(v) for v in ring.vertices]
        except InvalidCoordinate as e:
            raise HTTPException(status_code=422, detail=str(e))
        return AreaReport(**compare_area(vertices))

    @app.get("/api/location", response_model=LocationOut)
    async def current_location():
        """Current position to re-center the map on."""
        try:
            position = await locate(location_provider, timeout=settings.location_timeout_seconds)
        except LocationUnavailable as e:
            raise HTTPException(status_code=503, detail=f"Unable to retrieve your location: {e}")

        logger.info(f"Located at {position.lat:.5f}, {position.lon:.5f}")
        return LocationOut(center=position, zoom=settings.locate_zoom)

    return app

