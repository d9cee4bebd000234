# Overview: Service-layer operations for POS checkout; one atomic sale per call.

"""
Checkout Processor

Turns a cart into a persisted PosTransaction and decrements stock for every
line, all inside one database transaction:

    IDLE -> VALIDATING -> PERSISTING -> STOCK_UPDATING -> COMPLETE
                 \\______________\\______________\\________-> FAILED

VALIDATION (before any write):
- cart must not be empty
- payment method must be Cash or Non-Cash
- Cash requires cash_amount >= total

ATOMICITY:
- every product row is locked and re-read before it is decremented
- each line's price and name must still match the catalog row
- if any line asks for more than the current stock, nothing is written
- any failure rolls back the transaction record and all decrements together

The POS screen state (cart, customer name, cash amount, recent list) is a
PosSession snapshot owned by the client; complete_checkout() produces the
next snapshot after a successful sale.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from flask import current_app

from ..extensions import db
from ..models import PosTransaction, Product, User
from ..validation import ValidationError, coerce_int
from posboard.time_utils import utcnow
from .auth_service import cashier_name_for
from .cart_service import Cart, EMPTY_CART, CartError, cart_from_payload, cart_total, change_for
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .receipt_service import build_receipt
from .snapshot_feed import RECENT_TRANSACTIONS, get_feed


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

PAYMENT_CASH = "Cash"
PAYMENT_NON_CASH = "Non-Cash"

VALID_PAYMENT_METHODS = [PAYMENT_CASH, PAYMENT_NON_CASH]

DEFAULT_CUSTOMER_NAME = "Customer"
DEFAULT_RECENT_LIMIT = 5


# =============================================================================
# ERROR CODES
# =============================================================================

EMPTY_CART_CODE = "EMPTY_CART"
INVALID_PAYMENT_METHOD = "INVALID_PAYMENT_METHOD"
INSUFFICIENT_PAYMENT = "INSUFFICIENT_PAYMENT"
INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
PRICE_CHANGED = "PRICE_CHANGED"
INVALID_REQUEST = "INVALID_REQUEST"


class CheckoutState(str, Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    PERSISTING = "PERSISTING"
    STOCK_UPDATING = "STOCK_UPDATING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


class CheckoutError(Exception):
    """Raised when a checkout is rejected; nothing has been written."""
    def __init__(self, message: str, code: str, details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.trail: tuple[CheckoutState, ...] = ()


@dataclass(frozen=True)
class PosSession:
    cart: Cart = EMPTY_CART
    payment_method: str = PAYMENT_CASH
    cash_amount: int | None = None
    customer_name: str = ""
    recent: tuple[dict, ...] = ()

    def to_dict(self) -> dict:
        return {
            "cart": self.cart.to_list(),
            "total": cart_total(self.cart),
            "payment_method": self.payment_method,
            "cash_amount": self.cash_amount,
            "customer_name": self.customer_name,
            "recent": list(self.recent),
        }


@dataclass
class CheckoutResult:
    transaction: dict
    receipt: dict
    trail: tuple[CheckoutState, ...] = field(default_factory=tuple)


def session_from_payload(payload: Mapping[str, Any] | None) -> PosSession:
    """Rebuild the client's POS screen state from request JSON."""
    payload = payload or {}
    try:
        cart = cart_from_payload(payload.get("cart"))
        raw_cash = payload.get("cash_amount")
        cash_amount = None if raw_cash in (None, "") else coerce_int(raw_cash, "cash_amount")
    except (CartError, ValidationError) as exc:
        raise CheckoutError(str(exc), INVALID_REQUEST) from exc

    recent = payload.get("recent") or []
    if not isinstance(recent, list):
        raise CheckoutError("recent must be a list", INVALID_REQUEST)

    return PosSession(
        cart=cart,
        payment_method=str(payload.get("payment_method") or PAYMENT_CASH),
        cash_amount=cash_amount,
        customer_name=str(payload.get("customer_name") or "").strip(),
        recent=tuple(recent),
    )


def validate_checkout(session: PosSession) -> int:
    """
    Reject a checkout that can never succeed. Returns the cart total.

    Pure: reads nothing from the database.
    """
    if len(session.cart) == 0:
        raise CheckoutError("Add products to the cart first", EMPTY_CART_CODE)

    if session.payment_method not in VALID_PAYMENT_METHODS:
        raise CheckoutError(
            f"Invalid payment method: {session.payment_method}. Must be one of {VALID_PAYMENT_METHODS}",
            INVALID_PAYMENT_METHOD,
        )

    total = cart_total(session.cart)
    if session.payment_method == PAYMENT_CASH:
        if session.cash_amount is None or session.cash_amount < total:
            raise CheckoutError(
                "Payment amount is less than the cart total",
                INSUFFICIENT_PAYMENT,
                details={"total": total, "cash_amount": session.cash_amount},
            )
    return total


def complete_checkout(session: PosSession, transaction: dict, limit: int = DEFAULT_RECENT_LIMIT) -> PosSession:
    """Next screen state: cart and form fields cleared, sale prepended to recent."""
    return replace(
        session,
        cart=EMPTY_CART,
        cash_amount=None,
        customer_name="",
        recent=((transaction,) + session.recent)[:limit],
    )


def recent_transactions(limit: int = DEFAULT_RECENT_LIMIT) -> list[dict]:
    rows = (
        db.session.query(PosTransaction)
        .order_by(PosTransaction.timestamp.desc())
        .limit(limit)
        .all()
    )
    return [row.to_dict() for row in rows]


def _decrement_stock(session: PosSession) -> None:
    # Quantities are per product; cart lines are unique by product_id
    insufficient = []
    missing = []
    changed = []
    for line in session.cart.lines:
        product = lock_for_update(db.session.query(Product).filter_by(id=line.product_id)).first()
        if product is None:
            missing.append(line.product_id)
            continue
        if line.price != product.price or line.name != product.name:
            changed.append({
                "product_id": line.product_id,
                "name": product.name,
                "cart_name": line.name,
                "price": product.price,
                "cart_price": line.price,
            })
            continue
        if product.stock < line.quantity:
            insufficient.append({
                "product_id": line.product_id,
                "name": product.name,
                "requested_quantity": line.quantity,
                "stock": product.stock,
            })
            continue
        product.stock = product.stock - line.quantity
        product.updated_at = utcnow()

    if missing:
        raise CheckoutError("Product not found", PRODUCT_NOT_FOUND, details={"product_ids": missing})
    if changed:
        raise CheckoutError(
            "Product price or name changed; refresh the cart",
            PRICE_CHANGED,
            details={"items": changed},
        )
    if insufficient:
        raise CheckoutError("Insufficient stock to complete sale", INSUFFICIENT_STOCK, details={"items": insufficient})


def checkout(session: PosSession, cashier: User | None = None) -> CheckoutResult:
    """
    Persist one sale and decrement stock atomically.

    Raises CheckoutError for business rejections (nothing written). Database
    lock conflicts are retried; other errors propagate after rollback.
    """
    trail: list[CheckoutState] = [CheckoutState.IDLE, CheckoutState.VALIDATING]

    cashier_name = cashier_name_for(cashier)
    cashier_id = cashier.id if cashier is not None else None

    try:
        total = validate_checkout(session)
    except CheckoutError as exc:
        exc.trail = tuple(trail + [CheckoutState.FAILED])
        current_app.logger.warning("Checkout rejected: %s (%s)", exc, exc.code)
        raise

    is_cash = session.payment_method == PAYMENT_CASH

    def _op():
        del trail[2:]
        begin_immediate()

        trail.append(CheckoutState.PERSISTING)
        txn = PosTransaction(
            items=[line.to_item() for line in session.cart.lines],
            total=total,
            cashier_name=cashier_name,
            cashier_id=cashier_id,
            customer_name=session.customer_name or DEFAULT_CUSTOMER_NAME,
            payment_method=session.payment_method,
            cash_amount=session.cash_amount if is_cash else None,
            change_amount=change_for(total, session.cash_amount) if is_cash else None,
            timestamp=utcnow(),
        )
        db.session.add(txn)
        db.session.flush()

        trail.append(CheckoutState.STOCK_UPDATING)
        _decrement_stock(session)

        transaction = txn.to_dict()
        db.session.commit()
        return transaction

    try:
        transaction = run_with_retry(_op)
    except CheckoutError as exc:
        trail.append(CheckoutState.FAILED)
        exc.trail = tuple(trail)
        current_app.logger.warning("Checkout rejected: %s (%s)", exc, exc.code)
        raise
    except Exception:
        trail.append(CheckoutState.FAILED)
        current_app.logger.exception("Checkout failed in state %s", trail[-2].value)
        raise

    trail.append(CheckoutState.COMPLETE)
    current_app.logger.info(
        "Checkout %s completed: total=%s lines=%s cashier=%s",
        transaction["id"], total, len(session.cart), cashier_name,
    )

    limit = current_app.config.get("RECENT_TRANSACTIONS_LIMIT", DEFAULT_RECENT_LIMIT)
    get_feed(RECENT_TRANSACTIONS).publish(recent_transactions(limit))

    return CheckoutResult(
        transaction=transaction,
        receipt=build_receipt(transaction),
        trail=tuple(trail),
    )
