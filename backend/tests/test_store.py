"""
Tests for the polygon record store.

Tests:
- Create / list / get / rename / delete
- Write-through persistence and reload after restart
- Rollback when the durable write fails
- Malformed persisted data treated as an empty store
"""

from datetime import datetime, timezone

import orjson
import pytest
from pydantic import ValidationError

from polygon_mapper.errors import DuplicateId, NotFound, PersistenceUnavailable
from polygon_mapper.geometry import compute_area
from polygon_mapper.persistence import JsonFilePersistence, MemoryPersistence
from polygon_mapper.render import GeoJSONLayerAdapter
from polygon_mapper.session import DrawingSession
from polygon_mapper.store import PolygonRecordStore, decode_polygons, encode_polygons


@pytest.fixture
def make_polygon(field_ring, id_factory, fixed_clock):
    session = DrawingSession(id_factory=id_factory, clock=fixed_clock)

    def _make(name=None, existing_count=0):
        session.start()
        for vertex in field_ring:
            session.add_vertex(vertex)
        return session.finalize(name, existing_count=existing_count)

    return _make


@pytest.fixture
def persistence():
    return MemoryPersistence()


@pytest.fixture
def store(persistence, recorder):
    return PolygonRecordStore(persistence, renderer=recorder)


def test_empty_store(store):
    assert store.list() == []
    assert len(store) == 0


def test_create_and_list_in_insertion_order(store, make_polygon):
    first = store.create(make_polygon("B field"))
    second = store.create(make_polygon("A field"))

    assert [p.id for p in store.list()] == [first.id, second.id]
    assert len(store) == 2
    assert first.id in store


def test_create_duplicate_id_rejected(store, make_polygon, persistence):
    polygon = store.create(make_polygon())
    blob = persistence.blob

    with pytest.raises(DuplicateId):
        store.create(polygon.model_copy(update={"name": "Copy"}))

    assert store.list() == [polygon]
    assert persistence.blob == blob


def test_create_is_persisted_before_returning(store, make_polygon, persistence):
    polygon = store.create(make_polygon("North field"))

    stored = orjson.loads(persistence.blob)

    assert len(stored) == 1
    record = stored[0]
    assert record["id"] == polygon.id
    assert record["name"] == "North field"
    assert record["vertices"][0] == [77.5946, 12.9716]
    assert record["area"] == {
        "squareMeters": polygon.area.square_meters,
        "hectares": polygon.area.hectares,
    }
    assert record["created"].startswith("2024-03-01T09:30:15.123456")


def test_reload_round_trip(persistence, make_polygon):
    """After a restart the store lists polygons equal in all fields."""
    store = PolygonRecordStore(persistence)
    created = [store.create(make_polygon()), store.create(make_polygon("South"))]

    reloaded = PolygonRecordStore(persistence)

    assert reloaded.list() == created
    assert reloaded.list()[0].area == created[0].area


def test_reload_from_json_file(tmp_path, make_polygon):
    path = tmp_path / "data" / "polygons.json"

    store = PolygonRecordStore(JsonFilePersistence(path))
    polygon = store.create(make_polygon("Orchard"))

    assert path.exists()
    assert PolygonRecordStore(JsonFilePersistence(path)).list() == [polygon]


def test_area_not_recomputed_on_load(persistence, make_polygon):
    polygon = make_polygon()
    data = orjson.loads(encode_polygons([polygon]))
    data[0]["area"] = {"squareMeters": 1.5, "hectares": 0.0}
    persistence.blob = orjson.dumps(data)

    loaded = PolygonRecordStore(persistence).get(polygon.id)

    assert loaded.area.square_meters == 1.5
    assert loaded.area != compute_area(loaded.vertices)


def test_loaded_polygons_are_rendered(persistence, make_polygon, recorder):
    polygon = make_polygon()
    persistence.blob = encode_polygons([polygon])

    PolygonRecordStore(persistence, renderer=recorder)

    assert recorder.calls == [("render_polygon", polygon.id, list(polygon.vertices), polygon.label)]


def test_delete(store, make_polygon, persistence, recorder):
    keep = store.create(make_polygon())
    gone = store.create(make_polygon())

    store.delete(gone.id)

    assert gone.id not in [p.id for p in store.list()]
    assert store.list() == [keep]
    assert [r["id"] for r in orjson.loads(persistence.blob)] == [keep.id]
    assert recorder.calls[-1] == ("remove_polygon", gone.id)


def test_delete_twice_fails(store, make_polygon):
    polygon = store.create(make_polygon())
    store.delete(polygon.id)

    with pytest.raises(NotFound):
        store.delete(polygon.id)


def test_get_missing(store):
    with pytest.raises(NotFound):
        store.get("nope")


def test_rename_changes_only_name(store, make_polygon, persistence, recorder):
    polygon = store.create(make_polygon())

    renamed = store.rename(polygon.id, "  Paddy field ")

    assert renamed.name == "Paddy field"
    assert renamed.vertices == polygon.vertices
    assert renamed.area == polygon.area
    assert renamed.created_at == polygon.created_at
    assert store.get(polygon.id).name == "Paddy field"
    assert orjson.loads(persistence.blob)[0]["name"] == "Paddy field"
    assert recorder.calls[-1] == ("render_polygon", polygon.id, list(polygon.vertices), renamed.label)


def test_rename_missing(store):
    with pytest.raises(NotFound):
        store.rename("nope", "Name")


def test_rename_blank(store, make_polygon):
    polygon = store.create(make_polygon("Keep"))

    with pytest.raises(ValueError):
        store.rename(polygon.id, "   ")

    assert store.get(polygon.id).name == "Keep"


def test_failed_create_rolls_back(failing_persistence, make_polygon, recorder):
    store = PolygonRecordStore(failing_persistence, renderer=recorder)

    with pytest.raises(PersistenceUnavailable):
        store.create(make_polygon())

    assert store.list() == []
    assert recorder.calls == []


def test_failed_delete_rolls_back(failing_persistence, make_polygon, recorder):
    failing_persistence.fail = False
    store = PolygonRecordStore(failing_persistence, renderer=recorder)
    polygon = store.create(make_polygon())
    failing_persistence.fail = True

    with pytest.raises(PersistenceUnavailable):
        store.delete(polygon.id)

    assert store.list() == [polygon]
    assert ("remove_polygon", polygon.id) not in recorder.calls


def test_failed_rename_rolls_back(failing_persistence, make_polygon):
    failing_persistence.fail = False
    store = PolygonRecordStore(failing_persistence)
    polygon = store.create(make_polygon("Old"))
    failing_persistence.fail = True

    with pytest.raises(PersistenceUnavailable):
        store.rename(polygon.id, "New")

    assert store.get(polygon.id).name == "Old"
    assert PolygonRecordStore(MemoryPersistence(failing_persistence.blob)).get(polygon.id).name == "Old"


def test_failed_write_of_any_kind_rolls_back(make_polygon):
    """Provider errors other than OSError still leave memory matching storage."""
    class Broken:
        def read_all(self):
            return None

        def write_all(self, blob):
            raise RuntimeError("quota exceeded")

    store = PolygonRecordStore(Broken())

    with pytest.raises(PersistenceUnavailable, match="quota exceeded"):
        store.create(make_polygon())

    assert store.list() == []


def test_listed_polygons_cannot_be_changed_in_place(persistence, make_polygon):
    """Saved polygons only change through the store, so a reload keeps them all."""
    store = PolygonRecordStore(persistence)
    keep = store.create(make_polygon("Keep"))
    other = store.create(make_polygon("Other"))

    listed = store.list()[1]
    with pytest.raises(AttributeError):
        listed.vertices.pop()
    with pytest.raises(ValidationError):
        listed.name = "Sneaky"
    with pytest.raises(ValidationError):
        listed.vertices = listed.vertices[:2]

    store.rename(keep.id, "Renamed")
    reloaded = PolygonRecordStore(persistence)

    assert [p.id for p in reloaded.list()] == [keep.id, other.id]
    assert reloaded.get(other.id) == other
    assert len(reloaded.get(other.id).vertices) == 4


@pytest.mark.parametrize("blob", [
    b"{not json",
    b'{"id": "x"}',
    b'[{"id": "x", "name": "no vertices"}]',
    b'[{"id": "x", "name": "two", "vertices": [[0, 0], [1, 1]],'
    b' "area": {"squareMeters": 0, "hectares": 0}, "created": "2024-01-01T00:00:00Z"}]',
    b'[{"id": "x", "name": "bad lat", "vertices": [[0, 0], [1, 95], [1, 0]],'
    b' "area": {"squareMeters": 0, "hectares": 0}, "created": "2024-01-01T00:00:00Z"}]',
])
def test_malformed_data_gives_empty_store(blob):
    """A corrupt blob must never block usage."""
    store = PolygonRecordStore(MemoryPersistence(blob))

    assert store.list() == []


def test_duplicate_ids_in_data_gives_empty_store(make_polygon):
    polygon = make_polygon()
    blob = encode_polygons([polygon, polygon])

    assert PolygonRecordStore(MemoryPersistence(blob)).list() == []


def test_unreadable_storage_gives_empty_store():
    class Unreadable:
        def read_all(self):
            raise OSError("Permission denied")

        def write_all(self, blob):
            pass

    assert PolygonRecordStore(Unreadable()).list() == []


def test_store_usable_after_malformed_load(make_polygon):
    persistence = MemoryPersistence(b"garbage")
    store = PolygonRecordStore(persistence)

    polygon = store.create(make_polygon())

    assert decode_polygons(persistence.blob) == [polygon]


def test_visibility_toggle(store, recorder):
    assert store.visible is True

    assert store.toggle_visibility() is False
    store.set_visible(True)

    assert store.visible is True
    assert recorder.calls == [("set_polygons_visible", False), ("set_polygons_visible", True)]


def test_store_and_layers_in_lockstep(make_polygon):
    layers = GeoJSONLayerAdapter()
    store = PolygonRecordStore(MemoryPersistence(), renderer=layers)

    a = store.create(make_polygon())
    b = store.create(make_polygon())
    store.delete(a.id)

    assert layers.layer_ids == [b.id]


def test_decoded_timestamps_are_utc(make_polygon):
    polygon = make_polygon()

    decoded = decode_polygons(encode_polygons([polygon]))[0]

    assert decoded.created_at == datetime(2024, 3, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)
    assert decoded.created_at.utcoffset().total_seconds() == 0
