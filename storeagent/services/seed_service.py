"""Sample catalogue for demos and tests: three categories and five products."""

import logging
from datetime import datetime, timezone

from storeagent.core.config import CATEGORIES, PRODUCTS
from storeagent.core.store import EntityStore

logger = logging.getLogger(__name__)

SAMPLE_CATEGORIES = ["Electronics", "Health & Beauty", "Home & Garden"]

# (name, price, category name)
SAMPLE_PRODUCTS = [
    ("Wireless Headphones", 2500, "Electronics"),
    ("Electric Toothbrush", 1500, "Health & Beauty"),
    ("Smart Watch", 8000, "Electronics"),
    ("Garden Hose", 800, "Home & Garden"),
    ("Face Moisturizer", 450, "Health & Beauty"),
]


def seed_sample_data(store: EntityStore, reset: bool = False) -> dict:
    """Insert the sample catalogue. With reset=True, products and categories are wiped first."""
    if reset:
        store.delete_many(PRODUCTS, {})
        store.delete_many(CATEGORIES, {})
        logger.info("[seed] cleared products and categories")
    now = datetime.now(timezone.utc)
    category_ids = store.insert_many(
        CATEGORIES, [{"name": name, "created_at": now, "updated_at": now} for name in SAMPLE_CATEGORIES]
    )
    by_name = dict(zip(SAMPLE_CATEGORIES, category_ids))
    product_ids = store.insert_many(
        PRODUCTS,
        [
            {"name": name, "price": price, "category_id": by_name[category], "created_at": now, "updated_at": now}
            for name, price, category in SAMPLE_PRODUCTS
        ],
    )
    logger.info("[seed] inserted categories=%d products=%d", len(category_ids), len(product_ids))
    return {"categories": len(category_ids), "products": len(product_ids), "category_ids": by_name}
