#!/usr/bin/env python3
"""
Seed the medicine catalogue from a JSON file, or from a small built-in list.

The JSON file is a list of objects with at least `sku`, `name` and either
`price_cents` or `price` (rupees); `requires_prescription` marks controlled
items.

Usage:
    python scripts/seed_products.py
    python scripts/seed_products.py --file catalogue.json --reset
"""
import argparse
import json
import logging
import os
import sys

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from medstore.db import SessionLocal, init_db
from medstore.repositories.product_repo import ProductRepository

log = logging.getLogger("seed_products")

DEFAULT_PRODUCTS = [
    {"sku": "PARA-500", "name": "Paracetamol 500mg (10 tabs)", "price_cents": 3500, "stock": 200},
    {"sku": "CETI-10", "name": "Cetirizine 10mg (10 tabs)", "price_cents": 2200, "stock": 150},
    {"sku": "ORS-21", "name": "ORS Sachet 21g", "price_cents": 2000, "stock": 300},
    {"sku": "VITC-500", "name": "Vitamin C 500mg (15 tabs)", "price_cents": 4500, "stock": 80},
    {"sku": "AMOX-500", "name": "Amoxicillin 500mg (10 caps)", "price_cents": 9800, "stock": 60,
     "requires_prescription": True},
    {"sku": "AZI-500", "name": "Azithromycin 500mg (3 tabs)", "price_cents": 12000, "stock": 40,
     "requires_prescription": True},
    {"sku": "METF-500", "name": "Metformin 500mg (20 tabs)", "price_cents": 5400, "stock": 90,
     "requires_prescription": True},
]


def _normalize_entry(entry):
    """Return a dict with sku, name, price_cents, stock, requires_prescription, description, image."""
    if entry.get("price_cents") is not None:
        price_cents = int(entry["price_cents"])
    else:
        price_cents = int(round(float(entry.get("price", 0)) * 100))
    return {
        "sku": str(entry["sku"]),
        "name": entry.get("name") or entry["sku"],
        "price_cents": price_cents,
        "stock": int(entry.get("stock", entry.get("stock_quantity", 0))),
        "requires_prescription": bool(entry.get("requires_prescription", False)),
        "description": entry.get("description"),
        "image": entry.get("image") or entry.get("image_url"),
    }


def seed(entries, reset: bool = False) -> int:
    init_db(reset=reset)
    db = SessionLocal()
    try:
        repo = ProductRepository(db)
        for entry in entries:
            repo.create_or_update(**_normalize_entry(entry))
        db.commit()
        return len(entries)
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--file", help="JSON catalogue to load (defaults to a built-in list)")
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables first")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    if args.file:
        with open(args.file, encoding="utf-8") as fh:
            entries = json.load(fh)
        if isinstance(entries, dict):
            entries = entries.get("products") or entries.get("items") or []
    else:
        entries = DEFAULT_PRODUCTS
    n = seed(entries, reset=args.reset)
    log.info("Seeded %d products", n)


if __name__ == "__main__":
    main()
