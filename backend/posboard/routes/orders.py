# Overview: Flask API routes for storefront orders.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import order_service
from ..services.order_service import OrderError


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
def create_order_route():
    """Anonymous: the storefront places orders without a staff session."""
    try:
        order = order_service.create_order(request.get_json(silent=True))
    except OrderError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"order": order}), 201


@orders_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_orders_route():
    """Orders by created_at; ?start= and ?end= are inclusive ISO-8601 bounds."""
    try:
        result = order_service.list_orders(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
    except OrderError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result), 200
