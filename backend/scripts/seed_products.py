#!/usr/bin/env python3
"""
Seed a demo catalog: a few simple products, a bundle built from them, a
grouped product, a virtual gift card and a configurable T-shirt with
Color/Size variants.

Products can also be loaded from a JSON file (a list of entries, or an
object with an "items" list); each entry needs at least a sku.

Usage:
    python scripts/seed_products.py
    python scripts/seed_products.py --file products.json --reset
"""
import argparse
import json
import os
import sys
from decimal import Decimal, InvalidOperation as DecimalError

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from pim.db import SessionLocal, init_db
from pim.models.product import Product, ProductType
from pim.repositories.product_repo import ProductRepository
from pim.schemas.composition_schema import GroupedItemIn
from pim.schemas.variant_schema import VariantAxisIn
from pim.services.composition_service import CompositionService
from pim.services.variant_service import VariantService
from pim.utils.logging import configure_logging, get_logger

logger = get_logger("seed_products")

DEMO_PRODUCTS = [
    {"sku": "MUG-01", "name": "Ceramic Mug", "price": "8.50", "stock": 40},
    {"sku": "BEANS-250", "name": "Coffee Beans 250g", "price": "6.00", "stock": 25},
    {"sku": "FILTER-100", "name": "Paper Filters (100)", "price": "3.20", "stock": 60},
    {"sku": "GIFT-25", "name": "Gift Card 25", "price": "25.00", "type": "VIRTUAL"},
    {"sku": "TSHIRT", "name": "Logo T-Shirt", "price": "19.90", "brand": "Local Shop"},
]

DEMO_AXES = [
    {"code": "color", "name": "Color", "position": 0},
    {"code": "size", "name": "Size", "position": 1},
]


def _normalize_entry(entry):
    """Return a dict with keys: sku, name, price, stock, type, description, brand"""
    sku = entry.get("sku") or entry.get("id")
    name = entry.get("name") or entry.get("title") or sku or ""
    try:
        price = Decimal(str(entry["price"])) if entry.get("price") is not None else None
    except DecimalError:
        price = None
    try:
        stock = int(entry.get("stock", entry.get("stock_quantity", 0)) or 0)
    except (TypeError, ValueError):
        stock = 0
    try:
        product_type = ProductType(str(entry.get("type", "SIMPLE")).upper())
    except ValueError:
        product_type = ProductType.SIMPLE
    return {
        "sku": sku,
        "name": name,
        "price": price,
        "stock": max(0, stock),
        "type": product_type,
        "description": entry.get("description"),
        "brand": entry.get("brand"),
    }


def _load_file(path):
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        return data.get("items", list(data.values()))
    return data if isinstance(data, list) else []


def upsert_products(db, entries):
    repo = ProductRepository(db)
    by_sku = {}
    for entry in map(_normalize_entry, entries):
        if not entry["sku"]:
            continue
        p = repo.get_by_sku(entry["sku"])
        if p is None:
            # type changes on existing products go through TypeConversionService
            p = Product(sku=entry["sku"], type=entry["type"])
        p.name = entry["name"]
        p.price = entry["price"]
        p.description = entry["description"]
        p.brand = entry["brand"]
        p.requires_shipping = p.type != ProductType.VIRTUAL
        p.stock_quantity = entry["stock"]
        p.is_in_stock = p.type == ProductType.VIRTUAL or entry["stock"] > 0
        by_sku[p.sku] = repo.save(p)
    db.commit()
    return by_sku


def seed_demo_structure(db, products):
    """Bundle, grouped product and T-shirt variants on top of the demo products."""
    composition = CompositionService(db)
    variants = VariantService(db)

    kit = upsert_products(db, [{"sku": "BREW-KIT", "name": "Brewing Kit", "type": "BUNDLE"}])["BREW-KIT"]
    if not composition.list_components(kit.id):
        composition.add_component(kit.id, products["MUG-01"].id, quantity=2)
        composition.add_component(kit.id, products["BEANS-250"].id)
        composition.add_component(kit.id, products["FILTER-100"].id, special_price=Decimal("2.00"))

    shelf = upsert_products(db, [{"sku": "COFFEE-SHELF", "name": "Coffee Corner", "type": "GROUPED"}])["COFFEE-SHELF"]
    if not composition.list_grouped_items(shelf.id):
        composition.set_grouped_items(
            shelf.id,
            [GroupedItemIn(child_id=products[sku].id) for sku in ("MUG-01", "BEANS-250", "FILTER-100")],
        )

    axes = {a.code: a for a in variants.list_axes()}
    for spec in DEMO_AXES:
        if spec["code"] not in axes:
            axes[spec["code"]] = variants.create_axis(VariantAxisIn(**spec))
    db.commit()

    shirt = products["TSHIRT"]
    color_id, size_id = axes["color"].id, axes["size"].id
    variants.configure_variants(shirt.id, [color_id, size_id])
    created = variants.bulk_create(
        shirt.id,
        [{color_id: color, size_id: size} for color in ("Black", "White") for size in ("S", "M", "L")],
    )
    db.commit()
    return len(created)


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", "-f", default=None, help="JSON list of product entries (defaults to the demo catalog)")
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables first")
    args = parser.parse_args()

    configure_logging()
    init_db(reset=args.reset)

    if args.file and not os.path.exists(args.file):
        print("File not found:", args.file)
        sys.exit(1)

    db = SessionLocal()
    try:
        if args.file:
            products = upsert_products(db, _load_file(args.file))
            print("Seeded products:", len(products))
            return
        products = upsert_products(db, DEMO_PRODUCTS)
        created = seed_demo_structure(db, products)
        logger.info("seed.done", products=len(products), variants_created=created)
        print("Seeded products:", len(products), "variants:", created)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
