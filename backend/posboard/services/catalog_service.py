# Overview: Service-layer operations for the product catalog.

"""
Catalog Service

Reads product records for the POS product grid and the products page, and
exposes current stock so the cart can enforce its per-line ceiling.
Create/update/delete exist for back-office maintenance; checkout is the
only path that decrements stock.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product

PRODUCT_MUTABLE_FIELDS = {"name", "price", "category", "stock", "description", "image_url"}

ALL_CATEGORIES = "all"


class CatalogError(Exception):
    """Raised when a product cannot be found or changed."""
    pass


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def product_matches(product: Product, term: str) -> bool:
    """Case-insensitive substring match on name, category or description."""
    needle = term.strip().lower()
    if not needle:
        return True
    haystacks = (product.name, product.category, product.description)
    return any(h and needle in h.lower() for h in haystacks)


def list_products(search: str | None = None, category: str | None = None) -> dict:
    """
    All products ordered by name, optionally filtered.

    Filtering happens in memory over the fetched list; the catalog is small
    enough that the POS grid reloads it whole.
    """
    products = (
        db.session.query(Product)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    if category and category != ALL_CATEGORIES:
        products = [p for p in products if p.category == category]
    if search:
        products = [p for p in products if product_matches(p, search)]

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def list_categories() -> list[str]:
    rows = db.session.query(Product.category).distinct().all()
    return sorted(row[0] for row in rows)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise CatalogError(f"Product {product_id} not found")
    return product


def get_stock(product_id: int) -> int:
    return get_product(product_id).stock


def stock_levels(product_ids) -> dict[int, int]:
    """Current stock keyed by product id; unknown ids are simply absent."""
    product_ids = list(product_ids)
    if not product_ids:
        return {}
    rows = db.session.query(Product.id, Product.stock).filter(Product.id.in_(product_ids)).all()
    return {row.id: row.stock for row in rows}


def create_product(patch: dict) -> dict:
    product = Product(stock=0)
    apply_product_patch(product, patch)
    db.session.add(product)
    db.session.commit()
    return product.to_dict()


def update_product(product_id: int, patch: dict) -> dict:
    product = get_product(product_id)
    apply_product_patch(product, patch)
    db.session.commit()
    return product.to_dict()


def delete_product(product_id: int) -> None:
    product = get_product(product_id)
    db.session.delete(product)
    db.session.commit()
