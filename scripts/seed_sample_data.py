#!/usr/bin/env python3
"""
Seed the store's MongoDB database with the sample catalogue for demos or tests.

Inserts three categories and five products into the database named by
MONGODB_DB (default "storeagent"). Use --reset to clear existing products
and categories first.

Run from project root:

    python scripts/seed_sample_data.py
    python scripts/seed_sample_data.py --reset

Requires MONGODB_URI in .env.
"""

import argparse
import sys
from pathlib import Path

# Project root on path so "storeagent" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from storeagent.core.store import get_store
from storeagent.services.seed_service import SAMPLE_PRODUCTS, seed_sample_data


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the sample catalogue for demos/tests.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear all existing products and categories before inserting.",
    )
    args = parser.parse_args()

    summary = seed_sample_data(get_store(), reset=args.reset)
    if args.reset:
        print("Cleared existing products and categories.")

    for name, category_id in summary["category_ids"].items():
        print(f"  category: {name} ({category_id})")
    for name, price, category in SAMPLE_PRODUCTS:
        print(f"  product: {name} - {price} [{category}]")

    print(f"Done. Seeded {summary['categories']} categories and {summary['products']} products.")


if __name__ == "__main__":
    main()
