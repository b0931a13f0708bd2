from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


DATA_SOURCE_YAHOO = "YAHOO"


class ConversionError(Exception):
    """Base class for every condition that stops a conversion run."""


class ActivityType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    DIVIDEND = "DIVIDEND"


class TailMarker(str, Enum):
    """State carried by the newest activities while they may still change."""

    NONE = ""
    AWAITING_DIVIDEND_TAX = "awaiting-dividend-tax"
    PENDING_BUY_FEE = "pending-buy-fee"
    PENDING_SELL_FEE = "pending-sell-fee"
    PENDING_FEE = "pending-fee"

    @property
    def is_pending_fee(self) -> bool:
        return self in _PENDING_FEE_MARKERS

    def satisfies(self, side: ActivityType) -> bool:
        if self is TailMarker.PENDING_FEE:
            return side in {ActivityType.BUY, ActivityType.SELL}
        if self is TailMarker.PENDING_BUY_FEE:
            return side is ActivityType.BUY
        if self is TailMarker.PENDING_SELL_FEE:
            return side is ActivityType.SELL
        return False


_PENDING_FEE_MARKERS = frozenset(
    {TailMarker.PENDING_BUY_FEE, TailMarker.PENDING_SELL_FEE, TailMarker.PENDING_FEE}
)


@dataclass(frozen=True)
class DegiroRecord:
    date: str
    time: str
    value_date: str
    product: str
    isin: str
    description: str
    fx: str
    currency: str
    amount: str
    col1: str
    col2: str
    order_id: str
    line_number: int = 0


@dataclass
class Activity:
    account_id: str
    date: str
    type: ActivityType | None = None
    symbol: str = ""
    isin: str = ""
    quantity: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")
    fee: Decimal = Decimal("0")
    currency: str = ""
    marker: TailMarker = TailMarker.NONE
    data_source: str = DATA_SOURCE_YAHOO
    source_line: int = 0

    @property
    def is_pending_fee(self) -> bool:
        return self.marker.is_pending_fee


class ReviewReason(str, Enum):
    UNMATCHED = "UNMATCHED"
    UNRESOLVED_SYMBOL = "UNRESOLVED_SYMBOL"
    ORPHANED_FEE = "ORPHANED_FEE"


@dataclass(frozen=True)
class ReviewItem:
    line_number: int
    reason: ReviewReason
    description: str
    isin: str = ""
    detail: str = ""


@dataclass(frozen=True)
class ReconstructionResult:
    activities: list[Activity]
    review: list[ReviewItem] = field(default_factory=list)
    records_total: int = 0
    records_skipped: int = 0
