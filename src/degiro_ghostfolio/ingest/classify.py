from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from degiro_ghostfolio.models import DegiroRecord


# Description examples:
# "Koop 5 @ 143,46 EUR"
# "Verkoop 1.000 @ 0,50 EUR"
# "Dividend" / "Dividendbelasting"
# "Valuta Creditering" / "Valuta Debitering"
# "DEGIRO Transactiekosten en/of kosten van derden"
IRRELEVANT_MARKERS = ("ideal", "derden", "flatex", "cash sweep", "withdrawal")
DIVIDEND_TAX_MARKERS = ("dividendbelasting", "dividend tax")
DIVIDEND_MARKER = "dividend"
FX_CREDIT_MARKER = "valuta creditering"
FX_DEBIT_MARKER = "valuta debitering"
TRANSACTION_FEE_MARKER = "transactiekosten"

_SELL_RE = re.compile(r"\bverkoop ([\d.,]+)")
_BUY_RE = re.compile(r"(?<!ver)koop ([\d.,]+)")
_QUANTITY_RE = re.compile(r"^(\d{1,3}(\.\d{3})+|\d+)$")


class RecordKind(str, Enum):
    IRRELEVANT = "IRRELEVANT"
    DIVIDEND_TAX = "DIVIDEND_TAX"
    DIVIDEND = "DIVIDEND"
    SELL = "SELL"
    BUY = "BUY"
    FX_CREDIT = "FX_CREDIT"
    FX_DEBIT = "FX_DEBIT"
    TRANSACTION_FEE = "TRANSACTION_FEE"
    NO_IDENTIFIER = "NO_IDENTIFIER"
    UNMATCHED = "UNMATCHED"


@dataclass(frozen=True)
class Classification:
    kind: RecordKind
    quantity_text: str = ""


def parse_quantity(text: str) -> int:
    """Parse a trade count such as ``10`` or ``1.000`` (dot as thousands separator).

    Fractional or malformed counts raise ``ValueError``.
    """
    token = text.strip().rstrip(".")
    if not _QUANTITY_RE.match(token):
        raise ValueError(f"Trade quantity is not a whole number: {text!r}")
    return int(token.replace(".", ""))


def _is_noise(text: str) -> bool:
    for marker in IRRELEVANT_MARKERS:
        if marker not in text:
            continue
        # the fee label itself mentions third-party costs
        if marker == "derden" and TRANSACTION_FEE_MARKER in text:
            continue
        return True
    return False


def classify_description(description: str, isin: str) -> Classification:
    """Map a DEGIRO description onto the bookkeeping line it represents.

    Rules are checked in order; the first hit wins. Fee and currency
    conversion postings only count when an ISIN is present.
    """
    text = description.strip().lower()

    if not text or _is_noise(text):
        return Classification(RecordKind.IRRELEVANT)
    if any(marker in text for marker in DIVIDEND_TAX_MARKERS):
        return Classification(RecordKind.DIVIDEND_TAX)
    if DIVIDEND_MARKER in text:
        return Classification(RecordKind.DIVIDEND)

    sell = _SELL_RE.search(text)
    if sell:
        return Classification(RecordKind.SELL, sell.group(1))
    buy = _BUY_RE.search(text)
    if buy:
        return Classification(RecordKind.BUY, buy.group(1))

    if isin.strip():
        if FX_CREDIT_MARKER in text:
            return Classification(RecordKind.FX_CREDIT)
        if FX_DEBIT_MARKER in text:
            return Classification(RecordKind.FX_DEBIT)
        if TRANSACTION_FEE_MARKER in text:
            return Classification(RecordKind.TRANSACTION_FEE)
        return Classification(RecordKind.UNMATCHED)

    return Classification(RecordKind.NO_IDENTIFIER)


def classify_record(record: DegiroRecord) -> Classification:
    return classify_description(record.description, record.isin)
