"""
Draft saga: one mutable product selection (cart) per user, finalized into an Order.

Responsibility: select / unselect / view / clear / finalize over the `drafts`
collection. Unsuccessful outcomes (empty draft, unknown product) are normal
results with success=False; only store faults raise (StoreFailure).

Read-modify-write without locking: callers are expected to serialize turns per user.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from storeagent.core.config import DRAFTS, ORDERS, PRODUCTS
from storeagent.core.store import EntityStore, is_valid_id, to_object_id

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _result(success: bool, message: str, data: Any = None) -> dict[str, Any]:
    return {"success": success, "message": message, "data": data}


def _canonical_id(product_id: Any) -> Any:
    """Lower-case 24-hex form, as ids leave the store. Invalid ids are returned unchanged."""
    return str(to_object_id(product_id)) if is_valid_id(product_id) else product_id


class DraftSaga:
    """Per-user selection aggregate. All operations are keyed by user_id."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def _load(self, user_id: str) -> dict[str, Any] | None:
        return self._store.find_one(DRAFTS, {"user_id": user_id})

    def _save_items(self, user_id: str, items: list[dict[str, Any]]) -> None:
        self._store.update_many(DRAFTS, {"user_id": user_id}, {"$set": {"items": items, "updated_at": _now()}})

    def _products_by_id(self, product_ids: list[str]) -> dict[str, dict[str, Any]]:
        valid = [pid for pid in product_ids if is_valid_id(pid)]
        if not valid:
            return {}
        products = self._store.find(PRODUCTS, {"_id": {"$in": valid}}, {"name": 1, "price": 1})
        return {p["_id"]: p for p in products}

    def select(self, user_id: str, product_id: str, quantity: int = 1) -> dict[str, Any]:
        """Add quantity of a product; increments the existing line if the product is already selected."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            return _result(False, "Quantity must be a whole number of at least 1.")
        if not is_valid_id(product_id):
            return _result(False, f"'{product_id}' is not a valid product id.")
        product = self._store.find_one(PRODUCTS, {"_id": product_id}, {"name": 1, "price": 1})
        if product is None:
            return _result(False, f"Product {product_id} was not found.")
        product_id = product["_id"]

        draft = self._load(user_id)
        if draft is None:
            now = _now()
            items = [{"product_id": product_id, "quantity": quantity}]
            self._store.insert_one(DRAFTS, {"user_id": user_id, "items": items, "created_at": now, "updated_at": now})
        else:
            items = list(draft.get("items") or [])
            for line in items:
                if line.get("product_id") == product_id:
                    line["quantity"] = int(line.get("quantity", 0)) + quantity
                    break
            else:
                items.append({"product_id": product_id, "quantity": quantity})
            self._save_items(user_id, items)

        line_qty = next(line["quantity"] for line in items if line["product_id"] == product_id)
        logger.info("[draft:select] user=%s product=%s qty=%d line_qty=%d", user_id, product_id, quantity, line_qty)
        return _result(
            True,
            f"Added {quantity} x {product.get('name', product_id)} to your selection (now {line_qty}).",
            {"product_id": product_id, "quantity": line_qty, "items": items},
        )

    def unselect(self, user_id: str, product_id: str) -> dict[str, Any]:
        """Remove a product line. Absent draft or product is a no-op."""
        product_id = _canonical_id(product_id)
        draft = self._load(user_id)
        items = list((draft or {}).get("items") or [])
        remaining = [line for line in items if line.get("product_id") != product_id]
        if draft is None or len(remaining) == len(items):
            logger.info("[draft:unselect] user=%s product=%s no-op", user_id, product_id)
            return _result(True, "That product was not in your selection.", {"items": items})
        self._save_items(user_id, remaining)
        logger.info("[draft:unselect] user=%s product=%s removed", user_id, product_id)
        return _result(True, "Removed the product from your selection.", {"items": remaining})

    def view(self, user_id: str) -> dict[str, Any]:
        """Resolve every line against current product data. An empty draft is not an error."""
        draft = self._load(user_id)
        items = list((draft or {}).get("items") or [])
        if not items:
            return _result(True, "Your selection is empty.", {"items": [], "item_count": 0, "total_price": 0})
        products = self._products_by_id([line["product_id"] for line in items])
        lines = []
        total = 0
        for line in items:
            product = products.get(line["product_id"])
            qty = int(line.get("quantity", 0))
            if product is None:
                lines.append({"product_id": line["product_id"], "name": None, "quantity": qty, "available": False})
                continue
            price = product.get("price") or 0
            lines.append({
                "product_id": line["product_id"],
                "name": product.get("name"),
                "unit_price": price,
                "quantity": qty,
                "line_total": price * qty,
                "available": True,
            })
            total += price * qty
        return _result(
            True,
            f"Your selection has {len(lines)} item(s).",
            {"items": lines, "item_count": len(lines), "total_price": total},
        )

    def clear(self, user_id: str) -> dict[str, Any]:
        """Empty the selection. Idempotent."""
        if self._load(user_id) is not None:
            self._save_items(user_id, [])
        logger.info("[draft:clear] user=%s", user_id)
        return _result(True, "Your selection has been cleared.", {"items": []})

    def finalize(self, user_id: str) -> dict[str, Any]:
        """
        Turn the selection into a pending Order priced at current product prices, then empty it.

        The order is inserted before the draft is emptied: if the insert fails the
        draft is untouched; a crash between the two steps can yield a duplicate order
        on retry but never a lost one.
        """
        draft = self._load(user_id)
        items = list((draft or {}).get("items") or [])
        if not items:
            return _result(False, "There is nothing to finalize: your selection is empty.")

        products = self._products_by_id([line.get("product_id") for line in items])
        order_items = []
        for line in items:
            product = products.get(line.get("product_id"))
            qty = line.get("quantity")
            if product is None or not isinstance(qty, int) or qty < 1:
                continue
            order_items.append({
                "product_id": line["product_id"],
                "quantity": qty,
                "unit_price": product.get("price") or 0,
            })
        if not order_items:
            return _result(False, "There are no valid items in your selection to order.")

        total = sum(i["unit_price"] * i["quantity"] for i in order_items)
        now = _now()
        order = {
            "user_id": user_id,
            "product_ids": [i["product_id"] for i in order_items],
            "items": order_items,
            "total_price": total,
            "order_status": "pending",
            "created_at": now,
            "updated_at": now,
        }
        order_id = self._store.insert_one(ORDERS, order)
        self._save_items(user_id, [])
        skipped = len(items) - len(order_items)
        logger.info("[draft:finalize] user=%s order=%s total=%s skipped=%d", user_id, order_id, total, skipped)
        message = f"Order {order_id} placed with {len(order_items)} item(s), total {total}."
        if skipped:
            message += f" {skipped} unavailable item(s) were left out."
        return _result(
            True,
            message,
            {"order_id": order_id, "total_price": total, "items": order_items, "skipped": skipped},
        )
