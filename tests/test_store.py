"""Tests for the entity store adapter over mongomock."""

from unittest.mock import MagicMock, patch

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from storeagent.core import store as store_module
from storeagent.core.errors import ServiceUnavailableError, StoreFailure
from storeagent.core.store import EntityStore, is_valid_id, normalize_query, serialize


def test_normalize_query_converts_id_strings() -> None:
    oid = ObjectId()
    out = normalize_query({"_id": str(oid), "name": "x"})
    assert out == {"_id": oid, "name": "x"}


def test_normalize_query_converts_in_and_nested_or() -> None:
    a, b = ObjectId(), ObjectId()
    out = normalize_query({"$or": [{"_id": {"$in": [str(a), str(b)]}}, {"name": "x"}]})
    assert out == {"$or": [{"_id": {"$in": [a, b]}}, {"name": "x"}]}


def test_normalize_query_leaves_invalid_ids_alone() -> None:
    assert normalize_query({"_id": "not-an-id"}) == {"_id": "not-an-id"}
    assert normalize_query(None) == {}


def test_serialize_renders_object_ids_recursively() -> None:
    oid = ObjectId()
    assert serialize({"_id": oid, "refs": [oid], "nested": {"id": oid}}) == {
        "_id": str(oid),
        "refs": [str(oid)],
        "nested": {"id": str(oid)},
    }


def test_is_valid_id() -> None:
    assert is_valid_id(str(ObjectId()))
    assert is_valid_id(ObjectId())
    assert not is_valid_id("abc")
    assert not is_valid_id(None)


def test_insert_and_find_one_by_string_id(store: EntityStore) -> None:
    new_id = store.insert_one("products", {"name": "Pen", "price": 10})
    doc = store.find_one("products", {"_id": new_id})
    assert doc == {"_id": new_id, "name": "Pen", "price": 10}


def test_find_paginated_reports_total_and_sorts(store: EntityStore) -> None:
    store.insert_many("products", [{"name": f"p{i}", "price": i} for i in range(5)])
    page = store.find_paginated("products", {}, {"_id": 0}, sort={"price": -1}, offset=1, limit=2)
    assert page["total"] == 5
    assert page["items"] == [{"name": "p3", "price": 3}, {"name": "p2", "price": 2}]


def test_update_and_delete_report_counts(store: EntityStore) -> None:
    store.insert_many("categories", [{"name": "a"}, {"name": "b"}])
    assert store.update_many("categories", {}, {"$set": {"flag": True}}) == {"matched_count": 2, "modified_count": 2}
    assert store.delete_many("categories", {"name": "a"}) == {"deleted_count": 1}
    assert store.count("categories") == 1


def test_insert_many_empty_is_noop(store: EntityStore) -> None:
    assert store.insert_many("products", []) == []


def test_driver_errors_surface_as_store_failure() -> None:
    database = MagicMock()
    database.__getitem__.return_value.insert_one.side_effect = PyMongoError("boom")
    with pytest.raises(StoreFailure) as exc:
        EntityStore(database).insert_one("orders", {"x": 1})
    assert exc.value.operation == "insert_one"
    assert exc.value.collection == "orders"


def test_get_store_without_uri_is_unavailable() -> None:
    with patch.object(store_module, "_store", None), patch.object(store_module, "MONGODB_URI", ""):
        with pytest.raises(ServiceUnavailableError):
            store_module.get_store()
