# Overview: Service-layer operations for online-shop orders feeding the reports.

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from ..extensions import db
from ..models import Order
from ..validation import ValidationError, coerce_int
from posboard.time_utils import parse_iso_datetime, utcnow


class OrderError(Exception):
    """Raised for invalid order payloads."""
    pass


def _clean_item(raw: Any) -> dict:
    if not isinstance(raw, Mapping):
        raise OrderError("order item must be an object")
    name = str(raw.get("name") or "").strip()
    if not name:
        raise OrderError("order item name is required")

    price = coerce_int(raw.get("price"), "price")
    quantity = coerce_int(raw.get("quantity"), "quantity")
    if price < 0:
        raise OrderError("price must be >= 0")
    if quantity < 1:
        raise OrderError("quantity must be >= 1")

    product_id = raw.get("product_id")
    return {
        "product_id": coerce_int(product_id, "product_id") if product_id is not None else None,
        "name": name,
        "price": price,
        "quantity": quantity,
        "category": str(raw.get("category") or "").strip() or None,
    }


def create_order(payload: Mapping[str, Any] | None) -> dict:
    """
    Record a storefront order.

    total_price is always computed here: item subtotal plus shipping fee.
    """
    payload = payload or {}
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise OrderError("items must be a non-empty list")

    try:
        cleaned = [_clean_item(raw) for raw in items]
        shipping_fee = coerce_int(payload.get("shipping_fee", 0), "shipping_fee")
    except ValidationError as exc:
        raise OrderError(str(exc)) from exc
    if shipping_fee < 0:
        raise OrderError("shipping_fee must be >= 0")

    user_id = payload.get("user_id")
    email = payload.get("customer_email")

    order = Order(
        items=cleaned,
        shipping_fee=shipping_fee,
        total_price=sum(i["price"] * i["quantity"] for i in cleaned) + shipping_fee,
        user_id=str(user_id) if user_id else None,
        customer_email=str(email).strip() if email else None,
        created_at=utcnow(),
    )
    db.session.add(order)
    db.session.commit()
    return order.to_dict()


def list_orders(start: str | None = None, end: str | None = None) -> dict:
    try:
        start_dt: datetime | None = parse_iso_datetime(start)
        end_dt: datetime | None = parse_iso_datetime(end)
    except ValueError as exc:
        raise OrderError("start and end must be ISO-8601 datetimes") from exc

    query = db.session.query(Order)
    if start_dt:
        query = query.filter(Order.created_at >= start_dt)
    if end_dt:
        query = query.filter(Order.created_at <= end_dt)

    orders = query.order_by(Order.created_at.asc(), Order.id.asc()).all()
    return {"items": [o.to_dict() for o in orders], "count": len(orders)}
