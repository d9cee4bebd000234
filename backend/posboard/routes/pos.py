# Overview: Flask API routes for the POS screen: cart, checkout, history, receipts.

"""
POS routes. All require an authenticated cashier or admin.

The cart is client-owned: every cart call posts the current cart and one
action, and gets the next cart back. Checkout posts the whole screen state.
"""

from flask import Blueprint, Response, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services import catalog_service, checkout_service, history_service
from ..services.cart_service import (
    CartError,
    cart_from_payload,
    cart_total,
    reduce_cart,
    refresh_stock,
)
from ..services.catalog_service import CatalogError
from ..services.checkout_service import CheckoutError
from ..services.history_service import HistoryError, HistoryFilters
from ..services.receipt_service import build_receipt, render_receipt_html, render_receipt_text
from ..services.snapshot_feed import RECENT_TRANSACTIONS, get_feed
from ..validation import ValidationError, coerce_int


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _recent_limit() -> int:
    return current_app.config.get("RECENT_TRANSACTIONS_LIMIT", checkout_service.DEFAULT_RECENT_LIMIT)


@pos_bp.post("/cart")
@require_auth
def apply_cart_action_route():
    """
    Apply one cart action.

    Body: {"cart": [...lines], "action": {"type": ..., ...}}
    add_line accepts {"product_id": N} and loads the product from the catalog.
    Lines are re-checked against current stock first, so warnings may come
    from that refresh as well as from the action itself.
    """
    data = request.get_json(silent=True) or {}
    action = data.get("action")
    if not isinstance(action, dict):
        return jsonify({"error": "action required"}), 400

    try:
        cart = cart_from_payload(data.get("cart"))

        if action.get("type") == "add_line" and "product" not in action:
            product = catalog_service.get_product(coerce_int(action.get("product_id"), "product_id"))
            action = {"type": "add_line", "product": product.to_dict()}

        refreshed = refresh_stock(cart, catalog_service.stock_levels(line.product_id for line in cart.lines))
        result = reduce_cart(refreshed.cart, action)
    except CatalogError:
        return jsonify({"error": "Product not found"}), 404
    except (CartError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "cart": result.cart.to_list(),
        "total": cart_total(result.cart),
        "warnings": [w.to_dict() for w in refreshed.warnings + result.warnings],
    }), 200


@pos_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Complete a sale.

    Body: {"cart", "payment_method", "cash_amount", "customer_name", "recent"}
    Returns the stored transaction, its receipt and the next screen state.
    """
    try:
        session = checkout_service.session_from_payload(request.get_json(silent=True))
        result = checkout_service.checkout(session, cashier=g.current_user)
    except CheckoutError as e:
        return jsonify({
            "error": str(e),
            "code": e.code,
            "details": e.details,
            "trail": [state.value for state in e.trail],
        }), 400
    except Exception:
        current_app.logger.exception("Failed to process checkout")
        return jsonify({"error": "Transaction failed"}), 500

    next_session = checkout_service.complete_checkout(session, result.transaction, limit=_recent_limit())

    return jsonify({
        "transaction": result.transaction,
        "receipt": result.receipt,
        "trail": [state.value for state in result.trail],
        "session": next_session.to_dict(),
    }), 201


@pos_bp.get("/recent")
@require_auth
def recent_transactions_route():
    return jsonify({"items": checkout_service.recent_transactions(_recent_limit())}), 200


@pos_bp.get("/feed")
@require_auth
def recent_feed_route():
    """
    Live recent-transactions view.

    ?since=<version> returns changed=false when the client already holds the
    current version; otherwise the full snapshot, which replaces the client's
    copy. The first read after startup seeds the feed from storage.
    """
    since = request.args.get("since", 0, type=int)
    feed = get_feed(RECENT_TRANSACTIONS)
    feed.seed(lambda: checkout_service.recent_transactions(_recent_limit()))
    changed = feed.changed_since(since)
    if changed is None:
        version, _ = feed.latest()
        return jsonify({"version": version, "changed": False}), 200

    version, snapshot = changed
    return jsonify({"version": version, "changed": True, "snapshot": snapshot}), 200


@pos_bp.get("/transactions")
@require_auth
def list_transactions_route():
    """
    Transaction history.

    Query params:
    - search: matches customer name, transaction id or cashier name
    - date_filter: all | today | yesterday | week | month
    """
    try:
        filters = HistoryFilters()
        filters = history_service.reduce_filters(
            filters, {"type": "set_search", "value": request.args.get("search", "")}
        )
        filters = history_service.reduce_filters(
            filters, {"type": "set_date_filter", "value": request.args.get("date_filter", "all")}
        )
        result = history_service.transaction_history(filters)
    except HistoryError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to load transactions")
        return jsonify({"error": "Failed to load transactions"}), 500

    return jsonify(result), 200


@pos_bp.get("/transactions/<transaction_id>")
@require_auth
def get_transaction_route(transaction_id: str):
    try:
        transaction = history_service.get_transaction(transaction_id)
    except HistoryError:
        return jsonify({"error": "Transaction not found"}), 404
    return jsonify({"transaction": transaction}), 200


@pos_bp.get("/transactions/<transaction_id>/receipt")
@require_auth
def transaction_receipt_route(transaction_id: str):
    """Receipt as JSON (default), or ?format=text / ?format=html for printing."""
    try:
        transaction = history_service.get_transaction(transaction_id)
    except HistoryError:
        return jsonify({"error": "Transaction not found"}), 404

    receipt = build_receipt(transaction)
    fmt = request.args.get("format", "json")
    if fmt == "text":
        return Response(render_receipt_text(receipt), mimetype="text/plain")
    if fmt == "html":
        return Response(render_receipt_html(receipt), mimetype="text/html")
    if fmt != "json":
        return jsonify({"error": "format must be json, text, or html"}), 400
    return jsonify({"receipt": receipt}), 200
