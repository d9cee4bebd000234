# Overview: Yen amounts and ratio arithmetic shared by receipts and reports.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


YEN_SIGN = "￥"  # full-width, as rendered by ja-JP currency formatting
BPS_DENOMINATOR = 10_000


def round_yen(amount) -> int:
    """Round to whole Yen, halves away from zero."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_yen(amount) -> str:
    """
    Render an amount as Japanese Yen with zero fractional digits.

    1000 -> "￥1,000", -50000 -> "-￥50,000", None -> "￥0"
    """
    value = round_yen(amount or 0)
    sign = "-" if value < 0 else ""
    return f"{sign}{YEN_SIGN}{abs(value):,}"


def apply_bps(amount: int, bps: int) -> int:
    """amount * bps / 10000, rounded to whole Yen."""
    return round_yen(Decimal(amount) * Decimal(bps) / Decimal(BPS_DENOMINATOR))


def percent_of(part: int, whole: int) -> int | None:
    """Whole-number percentage of part in whole; None when whole is zero."""
    if not whole:
        return None
    return round_yen(Decimal(part) * 100 / Decimal(whole))
