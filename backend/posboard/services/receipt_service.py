# Overview: Receipt documents for printing; the print dialog itself is the client's job.

from __future__ import annotations

from flask import current_app, render_template

from posboard.money import format_yen
from posboard.time_utils import business_tz, parse_iso_datetime, to_local


RECEIPT_WIDTH = 40
FOOTER = "Thank you & happy shopping!"


def short_transaction_number(transaction_id: str) -> str:
    return f"#{transaction_id[:8]}"


def build_receipt(transaction: dict) -> dict:
    """
    Receipt content for a serialized transaction (PosTransaction.to_dict()).

    Amounts are kept raw alongside their Yen display strings so the client can
    lay them out however its printer needs.
    """
    local_ts = to_local(parse_iso_datetime(transaction["timestamp"]), business_tz())

    lines = []
    for item in transaction["items"]:
        subtotal = item["price"] * item["quantity"]
        lines.append({
            "name": item["name"],
            "quantity": item["quantity"],
            "price": item["price"],
            "subtotal": subtotal,
            "price_display": format_yen(item["price"]),
            "subtotal_display": format_yen(subtotal),
        })

    receipt = {
        "shop_name": current_app.config.get("SHOP_NAME", "INJAPAN POS"),
        "shop_tagline": current_app.config.get("SHOP_TAGLINE", ""),
        "transaction_id": transaction["id"],
        "transaction_number": short_transaction_number(transaction["id"]),
        "date": local_ts.strftime("%d/%m/%Y"),
        "time": local_ts.strftime("%H:%M:%S"),
        "cashier_name": transaction["cashier_name"],
        "customer_name": transaction.get("customer_name"),
        "payment_method": transaction["payment_method"],
        "lines": lines,
        "subtotal": transaction["total"],
        "total": transaction["total"],
        "subtotal_display": format_yen(transaction["total"]),
        "total_display": format_yen(transaction["total"]),
        "footer": FOOTER,
    }
    if transaction.get("cash_amount") is not None:
        receipt["cash_amount"] = transaction["cash_amount"]
        receipt["change_amount"] = transaction["change_amount"]
        receipt["cash_amount_display"] = format_yen(transaction["cash_amount"])
        receipt["change_amount_display"] = format_yen(transaction["change_amount"])
    return receipt


def _row(left: str, right: str, width: int = RECEIPT_WIDTH) -> str:
    gap = max(width - len(left) - len(right), 1)
    return f"{left}{' ' * gap}{right}"


def render_receipt_text(receipt: dict, width: int = RECEIPT_WIDTH) -> str:
    """Fixed-width plain-text receipt for thermal printers."""
    rule = "-" * width
    out = [
        receipt["shop_name"].center(width).rstrip(),
        receipt["shop_tagline"].center(width).rstrip(),
        rule,
        _row("Date", receipt["date"], width),
        _row("Time", receipt["time"], width),
        _row("Cashier", receipt["cashier_name"], width),
        _row("Txn No.", receipt["transaction_number"], width),
        rule,
        _row("Item", f"{'Qty':>4} {'Price':>9} {'Subtotal':>10}", width),
    ]
    for line in receipt["lines"]:
        figures = f"{line['quantity']:>4} {line['price_display']:>9} {line['subtotal_display']:>10}"
        name_width = max(width - len(figures) - 1, 1)
        out.append(_row(line["name"][:name_width], figures, width))
    out += [
        rule,
        _row("Subtotal", receipt["subtotal_display"], width),
        _row("TOTAL", receipt["total_display"], width),
    ]
    if "cash_amount" in receipt:
        out += [
            _row("Cash", receipt["cash_amount_display"], width),
            _row("Change", receipt["change_amount_display"], width),
        ]
    out += [rule, receipt["footer"].center(width).rstrip()]
    return "\n".join(out) + "\n"


def render_receipt_html(receipt: dict) -> str:
    return render_template("receipt.html", receipt=receipt)
