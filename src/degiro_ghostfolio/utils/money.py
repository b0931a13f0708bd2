"""Money helpers for DEGIRO amounts and deterministic rounding."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


UNIT_PRICE_STEP = Decimal("0.001")


def parse_amount(raw: str | None) -> Decimal:
    """Parse a DEGIRO amount such as ``-1.234,56`` or ``-2,00``.

    When both separators appear, the last one is the decimal separator, so
    ``1,234.56`` also parses. A lone comma is always decimal. Empty cells count
    as zero. Raises ``ValueError`` for anything that is not a finite number.
    """
    text = str(raw or "").strip().replace(" ", "").replace("−", "-")
    if not text:
        return Decimal("0")
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError(f"Unable to parse amount: {raw!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Amount is not a finite number: {raw!r}")
    return value


def abs_amount(raw: str | None) -> Decimal:
    return abs(parse_amount(raw))


def round_unit_price(value: Decimal) -> Decimal:
    return value.quantize(UNIT_PRICE_STEP, rounding=ROUND_HALF_UP)
