"""Tests for the per-user selection (cart) and its finalization into an order."""

from unittest.mock import patch

import pytest
from bson import ObjectId

from storeagent.core.config import DRAFTS, ORDERS
from storeagent.core.errors import StoreFailure


def _product(store, name: str, price: float) -> str:
    return store.insert_one("products", {"name": name, "price": price})


def test_select_twice_accumulates_one_line(store, drafts) -> None:
    p = _product(store, "Pen", 10)
    drafts.select("u", p, 2)
    result = drafts.select("u", p, 3)
    assert result["success"] is True
    assert result["data"]["quantity"] == 5
    assert result["data"]["items"] == [{"product_id": p, "quantity": 5}]


def test_select_rejects_bad_input(store, drafts) -> None:
    p = _product(store, "Pen", 10)
    assert drafts.select("u", p, 0)["success"] is False
    assert drafts.select("u", "not-an-id", 1)["success"] is False
    assert drafts.select("u", str(ObjectId()), 1)["success"] is False
    assert store.count(DRAFTS) == 0


def test_finalize_empty_draft_fails_without_side_effects(store, drafts) -> None:
    result = drafts.finalize("u")
    assert result["success"] is False
    assert store.count(ORDERS) == 0
    assert store.count(DRAFTS) == 0


def test_finalize_creates_order_at_current_prices_and_empties_draft(store, drafts) -> None:
    p1 = _product(store, "Book", 100)
    p2 = _product(store, "Mug", 50)
    drafts.select("u", p1, 2)
    drafts.select("u", p2, 1)

    result = drafts.finalize("u")

    assert result["success"] is True
    assert result["data"]["total_price"] == 250
    order = store.find_one(ORDERS, {"_id": result["data"]["order_id"]})
    assert order["user_id"] == "u"
    assert order["order_status"] == "pending"
    assert order["total_price"] == 250
    assert order["product_ids"] == [p1, p2]
    assert drafts.view("u")["data"]["item_count"] == 0


def test_finalize_skips_products_deleted_meanwhile(store, drafts) -> None:
    p1 = _product(store, "Book", 100)
    p2 = _product(store, "Mug", 50)
    drafts.select("u", p1, 1)
    drafts.select("u", p2, 1)
    store.delete_many("products", {"_id": p2})

    result = drafts.finalize("u")

    assert result["data"]["total_price"] == 100
    assert result["data"]["skipped"] == 1


def test_finalize_with_only_unavailable_items_keeps_draft(store, drafts) -> None:
    p = _product(store, "Book", 100)
    drafts.select("u", p, 1)
    store.delete_many("products", {})
    assert drafts.finalize("u")["success"] is False
    assert store.count(ORDERS) == 0
    assert store.find_one(DRAFTS, {"user_id": "u"})["items"] == [{"product_id": p, "quantity": 1}]


def test_clear_then_view_is_empty(store, drafts) -> None:
    drafts.select("u", _product(store, "Pen", 10), 1)
    drafts.clear("u")
    view = drafts.view("u")
    assert view["success"] is True
    assert view["data"]["item_count"] == 0
    assert drafts.clear("nobody")["success"] is True


def test_unselect_absent_product_is_noop(store, drafts) -> None:
    p = _product(store, "Pen", 10)
    assert drafts.unselect("u", p)["success"] is True
    drafts.select("u", p, 1)
    drafts.unselect("u", p)
    assert drafts.view("u")["data"]["items"] == []


def test_view_resolves_current_prices(store, drafts) -> None:
    p = _product(store, "Pen", 10)
    drafts.select("u", p, 3)
    store.update_many("products", {"_id": p}, {"$set": {"price": 12}})
    data = drafts.view("u")["data"]
    assert data["total_price"] == 36
    assert data["items"][0]["name"] == "Pen"
    assert data["items"][0]["available"] is True


def test_drafts_are_per_user(store, drafts) -> None:
    p = _product(store, "Pen", 10)
    drafts.select("a", p, 1)
    assert drafts.view("b")["data"]["item_count"] == 0


def test_select_by_differently_cased_id_keeps_one_line(store, drafts) -> None:
    p = _product(store, "Pen", 10)
    drafts.select("u", p.upper(), 2)
    drafts.select("u", p, 1)
    assert store.find_one(DRAFTS, {"user_id": "u"})["items"] == [{"product_id": p, "quantity": 3}]

    result = drafts.finalize("u")

    assert result["data"]["total_price"] == 30
    assert result["data"]["skipped"] == 0


def test_unselect_by_differently_cased_id(store, drafts) -> None:
    p = _product(store, "Pen", 10)
    drafts.select("u", p, 1)
    drafts.unselect("u", p.upper())
    assert drafts.view("u")["data"]["item_count"] == 0


def test_failed_order_insert_leaves_draft_unchanged(store, drafts) -> None:
    p = _product(store, "Book", 100)
    drafts.select("u", p, 2)
    with patch.object(store, "insert_one", side_effect=StoreFailure("insert_one", ORDERS)):
        with pytest.raises(StoreFailure):
            drafts.finalize("u")
    assert store.count(ORDERS) == 0
    assert store.find_one(DRAFTS, {"user_id": "u"})["items"] == [{"product_id": p, "quantity": 2}]
