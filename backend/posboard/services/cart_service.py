# Overview: Pure cart reducer; the cart itself lives with the client.

"""
Cart Aggregator

The cart is an immutable snapshot: a tuple of frozen CartLine values. Every
change goes through reduce_cart(cart, action), which returns a new snapshot
plus any user-facing warnings. Nothing here touches the database; routes
refresh stock ceilings from the catalog before reducing.

ACTIONS (keyed by "type"):
- add_line         {"product": {id, name, price, category, stock}}
- change_quantity  {"product_id", "delta"}
- remove_line      {"product_id"}
- clear            {}

INVARIANT: 1 <= line.quantity <= line.stock for every line.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

from ..validation import ValidationError, coerce_int


WARNING_OUT_OF_STOCK = "OUT_OF_STOCK"
WARNING_STOCK_LIMIT = "STOCK_LIMIT"
WARNING_NOT_IN_CART = "NOT_IN_CART"


class CartError(Exception):
    """Raised for malformed cart payloads or unknown actions."""
    pass


@dataclass(frozen=True)
class CartLine:
    product_id: int
    name: str
    price: int
    quantity: int
    category: str
    stock: int

    @property
    def line_total(self) -> int:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "category": self.category,
            "stock": self.stock,
            "line_total": self.line_total,
        }

    def to_item(self) -> dict:
        """Shape persisted on a transaction (no stock ceiling, no derived total)."""
        return {
            "product_id": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "category": self.category,
        }


@dataclass(frozen=True)
class Cart:
    lines: tuple[CartLine, ...] = ()

    def __len__(self) -> int:
        return len(self.lines)

    def find(self, product_id: int) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def to_list(self) -> list[dict]:
        return [line.to_dict() for line in self.lines]


@dataclass(frozen=True)
class CartWarning:
    code: str
    message: str
    product_id: int | None = None

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "product_id": self.product_id}


@dataclass(frozen=True)
class CartResult:
    cart: Cart
    warnings: tuple[CartWarning, ...] = ()


EMPTY_CART = Cart()


# =============================================================================
# DERIVED VALUES
# =============================================================================

def cart_total(cart: Cart) -> int:
    """Sum of price * quantity. Recomputed on every call, never cached."""
    return sum(line.price * line.quantity for line in cart.lines)


def change_for(total: int, cash_amount: int) -> int:
    return cash_amount - total


# =============================================================================
# REDUCERS
# =============================================================================

def _stock_limit_warning(name: str, stock: int, product_id: int) -> CartWarning:
    return CartWarning(WARNING_STOCK_LIMIT, f"Only {stock} {name} available", product_id)


def _add_line(cart: Cart, action: Mapping[str, Any]) -> CartResult:
    product = action.get("product")
    if not isinstance(product, Mapping):
        raise CartError("add_line requires a product")

    product_id = coerce_int(product.get("id"), "product.id")
    name = str(product.get("name") or "")
    stock = coerce_int(product.get("stock", 0), "product.stock")

    if stock <= 0:
        return CartResult(cart, (CartWarning(WARNING_OUT_OF_STOCK, f"{name} is out of stock", product_id),))

    existing = cart.find(product_id)
    if existing is None:
        line = CartLine(
            product_id=product_id,
            name=name,
            price=coerce_int(product.get("price"), "product.price"),
            quantity=1,
            category=str(product.get("category") or ""),
            stock=stock,
        )
        return CartResult(Cart(cart.lines + (line,)))

    if existing.quantity + 1 > stock:
        return CartResult(cart, (_stock_limit_warning(name, stock, product_id),))

    updated = replace(existing, quantity=existing.quantity + 1, stock=stock)
    return CartResult(_replace_line(cart, updated))


def _change_quantity(cart: Cart, action: Mapping[str, Any]) -> CartResult:
    product_id = coerce_int(action.get("product_id"), "product_id")
    delta = coerce_int(action.get("delta"), "delta")

    line = cart.find(product_id)
    if line is None:
        return CartResult(cart, (CartWarning(WARNING_NOT_IN_CART, "Product is not in the cart", product_id),))

    new_quantity = line.quantity + delta
    if new_quantity < 1:
        return CartResult(cart)
    if new_quantity > line.stock:
        return CartResult(cart, (_stock_limit_warning(line.name, line.stock, product_id),))

    return CartResult(_replace_line(cart, replace(line, quantity=new_quantity)))


def _remove_line(cart: Cart, action: Mapping[str, Any]) -> CartResult:
    product_id = coerce_int(action.get("product_id"), "product_id")
    return CartResult(Cart(tuple(line for line in cart.lines if line.product_id != product_id)))


def _clear(cart: Cart, action: Mapping[str, Any]) -> CartResult:
    return CartResult(EMPTY_CART)


def _replace_line(cart: Cart, updated: CartLine) -> Cart:
    return Cart(tuple(updated if line.product_id == updated.product_id else line for line in cart.lines))


_REDUCERS: dict[str, Callable[[Cart, Mapping[str, Any]], CartResult]] = {
    "add_line": _add_line,
    "change_quantity": _change_quantity,
    "remove_line": _remove_line,
    "clear": _clear,
}


def reduce_cart(cart: Cart, action: Mapping[str, Any]) -> CartResult:
    """Apply one action to a cart snapshot and return the next snapshot."""
    if not isinstance(action, Mapping):
        raise CartError("action must be an object")
    reducer = _REDUCERS.get(action.get("type"))
    if reducer is None:
        raise CartError(f"Unknown cart action: {action.get('type')!r}")
    try:
        return reducer(cart, action)
    except ValidationError as exc:
        raise CartError(str(exc)) from exc


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================

def cart_from_payload(payload: Any) -> Cart:
    """
    Rebuild a cart snapshot from client JSON (list of line dicts).

    Lines must carry product_id, name, price and quantity >= 1. A missing
    stock ceiling defaults to the quantity itself; routes refresh ceilings
    from the catalog before reducing anyway.
    """
    if payload is None:
        return EMPTY_CART
    if not isinstance(payload, list):
        raise CartError("cart must be a list of lines")

    lines: list[CartLine] = []
    seen: set[int] = set()
    try:
        for raw in payload:
            if not isinstance(raw, Mapping):
                raise CartError("cart line must be an object")
            product_id = coerce_int(raw.get("product_id"), "product_id")
            if product_id in seen:
                raise CartError(f"Duplicate cart line for product {product_id}")
            seen.add(product_id)

            quantity = coerce_int(raw.get("quantity"), "quantity")
            if quantity < 1:
                raise CartError("quantity must be >= 1")
            price = coerce_int(raw.get("price"), "price")
            if price < 0:
                raise CartError("price must be >= 0")

            stock = raw.get("stock")
            lines.append(CartLine(
                product_id=product_id,
                name=str(raw.get("name") or ""),
                price=price,
                quantity=quantity,
                category=str(raw.get("category") or ""),
                stock=quantity if stock is None else coerce_int(stock, "stock"),
            ))
    except ValidationError as exc:
        raise CartError(str(exc)) from exc

    return Cart(tuple(lines))


def refresh_stock(cart: Cart, stock_by_product: Mapping[int, int]) -> CartResult:
    """
    Replace each line's stock ceiling with the catalog's current value.

    A line whose quantity no longer fits is clamped down to the new stock
    (STOCK_LIMIT); a line whose product has sold out is dropped (OUT_OF_STOCK).
    Products missing from stock_by_product keep their current ceiling.
    """
    lines: list[CartLine] = []
    warnings: list[CartWarning] = []
    for line in cart.lines:
        stock = stock_by_product.get(line.product_id, line.stock)
        if stock <= 0:
            warnings.append(CartWarning(WARNING_OUT_OF_STOCK, f"{line.name} is out of stock", line.product_id))
            continue
        if line.quantity > stock:
            warnings.append(_stock_limit_warning(line.name, stock, line.product_id))
            lines.append(replace(line, quantity=stock, stock=stock))
            continue
        lines.append(replace(line, stock=stock))
    return CartResult(Cart(tuple(lines)), tuple(warnings))
