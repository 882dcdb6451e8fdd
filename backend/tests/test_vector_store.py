import numpy as np
import pytest

from app.core.exceptions import VectorDimensionError
from app.core.identifiers import AppId
from app.core.interfaces import ItemRecord
from app.core.vectors import cosine_distance
from tests.fakes import axis, make_metadata, unit

def test_query_orders_by_distance(store):
    store.store(AppId(1), unit(1, 1), make_metadata("Diagonal"))
    store.store(AppId(2), axis(0), make_metadata("Same"))
    store.store(AppId(3), -axis(0), make_metadata("Opposite"))
    neighbors = store.query(axis(0), 3)
    assert [n.app_id for n in neighbors] == [2, 1, 3]
    for neighbor, vector in zip(neighbors, (axis(0), unit(1, 1), -axis(0))):
        assert neighbor.distance == pytest.approx(cosine_distance(axis(0), vector), abs=1e-6)
    assert all(0.0 <= n.distance <= 2.0 for n in neighbors)

def test_query_vector_is_normalized(store):
    store.store(AppId(1), axis(0), make_metadata())
    assert store.query(10 * axis(0), 1)[0].distance == pytest.approx(0.0, abs=1e-6)

def test_store_replaces_existing_item(store):
    store.store(AppId(1), axis(0), make_metadata("Old"))
    store.store(AppId(1), axis(1), make_metadata("New"))
    assert len(store) == 1
    assert store.get_metadata(AppId(1)).name == "New"
    assert store.query(axis(1), 1)[0].distance == pytest.approx(0.0, abs=1e-6)

def test_remove(store):
    store.store(AppId(1), axis(0), make_metadata())
    assert store.remove(AppId(1))
    assert not store.remove(AppId(1))
    assert len(store) == 0
    assert store.query(axis(0), 5) == []

def test_predicate_widens_search(store):
    for app_id in range(1, 21):
        store.store(AppId(app_id), unit(1, app_id * 0.05), make_metadata(is_free=app_id > 17))
    neighbors = store.query(axis(0), 2, lambda app_id, metadata: metadata.is_free)
    assert [n.app_id for n in neighbors] == [18, 19]

def test_ties_break_by_app_id(store):
    store.store(AppId(9), axis(0), make_metadata())
    store.store(AppId(4), axis(0), make_metadata())
    assert [n.app_id for n in store.query(axis(0), 2)] == [4, 9]

def test_large_app_ids_survive(store):
    big = AppId(2 ** 62 + 1)
    store.store(big, axis(0), make_metadata())
    assert store.query(axis(0), 1)[0].app_id == big

def test_dimension_mismatch(store):
    with pytest.raises(VectorDimensionError):
        store.store(AppId(1), np.ones(3), make_metadata())
    with pytest.raises(VectorDimensionError):
        store.query(np.ones(12), 1)

def test_hydrate(store):
    records = [ItemRecord(AppId(i), axis(i % 8), make_metadata(f"G{i}")) for i in range(1, 6)]
    assert store.hydrate(records) == 5
    assert len(store) == 5
    assert store.get_metadata(AppId(3)).name == "G3"
