# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

"""
Product routes.

Reads are anonymous (the storefront and POS grid both list products).
Writes require an authenticated admin.
"""
from flask import Blueprint, request, jsonify

from ..models import Product
from ..services import catalog_service
from ..services.catalog_service import CatalogError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
)
from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset(catalog_service.PRODUCT_MUTABLE_FIELDS),
    required_on_create=frozenset({"name", "price", "category"}),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products ordered by name.

    Query params:
    - search: str (optional) - matches name, category or description
    - category: str (optional) - exact category, "all" for no filter
    """
    result = catalog_service.list_products(
        search=request.args.get("search"),
        category=request.args.get("category"),
    )
    return jsonify(result), 200


@products_bp.get("/categories")
def list_categories():
    return jsonify({"items": catalog_service.list_categories()}), 200


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except CatalogError:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product.to_dict()), 200


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    created = catalog_service.create_product(patch)
    return jsonify(created), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        updated = catalog_service.update_product(product_id, patch)
    except CatalogError:
        return jsonify({"error": "Product not found"}), 404

    return jsonify(updated), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id)
    except CatalogError:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"ok": True}), 200
