"""Rebuild Ghostfolio activities from split DEGIRO bookkeeping lines.

DEGIRO books one trade as several adjacent rows (currency conversion or
transaction fee postings followed by the trade itself) and one dividend as a
dividend row followed by its withholding tax. The only link between those rows
is their order, so the pass below keeps the newest activities open through a
``TailMarker`` and closes them as the matching rows arrive.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from decimal import Decimal
from typing import Protocol

from degiro_ghostfolio.config.settings import ReconstructionPolicy, TradePricePolicy
from degiro_ghostfolio.ingest.classify import RecordKind, classify_record, parse_quantity
from degiro_ghostfolio.models import (
    Activity,
    ActivityType,
    ConversionError,
    DegiroRecord,
    ReconstructionResult,
    ReviewItem,
    ReviewReason,
    TailMarker,
)
from degiro_ghostfolio.utils.dates import (
    DEFAULT_TIMEZONE,
    parse_degiro_datetime,
    resolve_timezone,
    to_iso_with_offset,
)
from degiro_ghostfolio.utils.logging import get_logger
from degiro_ghostfolio.utils.money import abs_amount, round_unit_price

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int, DegiroRecord], None]

MAX_PENDING_FEES = 2

_FEE_MARKERS = {
    RecordKind.FX_CREDIT: TailMarker.PENDING_BUY_FEE,
    RecordKind.FX_DEBIT: TailMarker.PENDING_SELL_FEE,
    RecordKind.TRANSACTION_FEE: TailMarker.PENDING_FEE,
}


class InvalidRecordError(ConversionError):
    def __init__(self, record: DegiroRecord, message: str) -> None:
        super().__init__(f"Line {record.line_number}: {message}")
        self.line_number = record.line_number


class SynchronizationError(ConversionError):
    """A row expected a tail state that the rows before it did not leave."""

    def __init__(self, line_number: int | None, message: str) -> None:
        prefix = f"Line {line_number}: " if line_number else ""
        super().__init__(f"{prefix}{message}")
        self.line_number = line_number


class SymbolSource(Protocol):
    def resolve(self, isin: str) -> str: ...


class TransactionReconstructor:
    def __init__(
        self,
        resolver: SymbolSource,
        *,
        account_id: str,
        policy: ReconstructionPolicy | None = None,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        self.resolver = resolver
        self.account_id = account_id
        self.policy = policy or ReconstructionPolicy()
        self.zone = resolve_timezone(timezone)
        self._activities: list[Activity] = []
        self._review: list[ReviewItem] = []

    def reconstruct(
        self,
        records: Sequence[DegiroRecord],
        progress: ProgressCallback | None = None,
    ) -> ReconstructionResult:
        self._activities = []
        self._review = []
        skipped = 0
        total = len(records)

        for index, record in enumerate(records, start=1):
            if progress is not None:
                progress(index, total, record)
            logger.debug("Processing %d of %d (line %d)", index, total, record.line_number)
            if not self._process(record):
                skipped += 1

        self._finish()
        logger.info(
            "Reconstructed %d activities from %d records (%d skipped, %d for review)",
            len(self._activities),
            total,
            skipped,
            len(self._review),
        )
        return ReconstructionResult(
            activities=list(self._activities),
            review=list(self._review),
            records_total=total,
            records_skipped=skipped,
        )

    def _process(self, record: DegiroRecord) -> bool:
        classification = classify_record(record)
        kind = classification.kind

        if kind in {RecordKind.IRRELEVANT, RecordKind.NO_IDENTIFIER}:
            return False
        if kind is RecordKind.UNMATCHED:
            logger.warning(
                "Line %d: unrecognised description %r for %s, skipped",
                record.line_number,
                record.description,
                record.isin,
            )
            self._review.append(
                ReviewItem(
                    line_number=record.line_number,
                    reason=ReviewReason.UNMATCHED,
                    description=record.description,
                    isin=record.isin,
                    detail=record.product,
                )
            )
            return False

        if kind is RecordKind.DIVIDEND_TAX:
            self._apply_dividend_tax(record)
        elif kind is RecordKind.DIVIDEND:
            self._add_dividend(record)
        elif kind is RecordKind.SELL:
            self._add_trade(record, ActivityType.SELL, classification.quantity_text)
        elif kind is RecordKind.BUY:
            self._add_trade(record, ActivityType.BUY, classification.quantity_text)
        else:
            self._add_pending_fee(record, kind)
        return True

    # Tail handling

    def _tail(self, record: DegiroRecord, expected: str) -> Activity:
        if not self._activities:
            raise SynchronizationError(
                record.line_number,
                f"{record.description!r} needs a preceding {expected}, but no activity exists yet",
            )
        return self._activities[-1]

    def _trailing_pending(self) -> list[int]:
        indexes: list[int] = []
        for index in range(len(self._activities) - 1, -1, -1):
            if not self._activities[index].is_pending_fee:
                break
            indexes.append(index)
        indexes.reverse()
        return indexes

    def _drop_pending(self, record: DegiroRecord | None, indexes: Iterable[int], why: str) -> None:
        indexes = sorted(indexes)
        if not indexes:
            return
        first = self._activities[indexes[0]]
        if self.policy.strict_pending:
            line = record.line_number if record is not None else first.source_line
            raise SynchronizationError(
                line,
                f"fee posting from line {first.source_line} {why}",
            )
        for index in reversed(indexes):
            orphan = self._activities.pop(index)
            logger.warning(
                "Line %d: dropping fee posting of %s %s (%s)",
                orphan.source_line,
                orphan.fee,
                orphan.currency,
                why,
            )
            self._review.append(
                ReviewItem(
                    line_number=orphan.source_line,
                    reason=ReviewReason.ORPHANED_FEE,
                    description=orphan.marker.value,
                    detail=f"fee {orphan.fee} {orphan.currency}: {why}",
                )
            )

    def _seal_tail(self, record: DegiroRecord, why: str) -> None:
        self._drop_pending(record, self._trailing_pending(), why)
        if self._activities and self._activities[-1].marker is TailMarker.AWAITING_DIVIDEND_TAX:
            self._activities[-1].marker = TailMarker.NONE

    def _finish(self) -> None:
        self._drop_pending(None, self._trailing_pending(), "was never followed by a trade")
        for activity in self._activities:
            activity.marker = TailMarker.NONE

    # Rules

    def _apply_dividend_tax(self, record: DegiroRecord) -> None:
        tail = self._tail(record, "dividend")
        if tail.type is not ActivityType.DIVIDEND or tail.marker is not TailMarker.AWAITING_DIVIDEND_TAX:
            raise SynchronizationError(
                record.line_number,
                f"dividend tax does not follow an open dividend (last activity is "
                f"{tail.type.value if tail.type else 'a pending fee'} from line {tail.source_line})",
            )
        tail.fee = self._amount(record, record.amount)
        tail.currency = record.currency
        tail.marker = TailMarker.NONE

    def _add_dividend(self, record: DegiroRecord) -> None:
        self._seal_tail(record, "was followed by a dividend instead of a trade")
        self._activities.append(
            Activity(
                account_id=self.account_id,
                date=self._timestamp(record),
                type=ActivityType.DIVIDEND,
                symbol=self._symbol(record),
                isin=record.isin,
                quantity=Decimal(self.policy.dividend_quantity),
                unit_price=self._amount(record, record.amount),
                currency=record.currency,
                marker=TailMarker.AWAITING_DIVIDEND_TAX,
                source_line=record.line_number,
            )
        )

    def _add_trade(self, record: DegiroRecord, side: ActivityType, quantity_text: str) -> None:
        quantity = self._quantity(record, quantity_text)
        unit_price = self._unit_price(record, quantity)
        symbol = self._symbol(record)

        pending = self._trailing_pending()
        if pending:
            same_side = [i for i in pending if self._activities[i].marker.satisfies(side)]
            matching = [i for i in same_side if self._activities[i].isin == record.isin]
            if matching:
                target = self._activities[matching[0]]
                target.type = side
                target.symbol = symbol
                target.quantity = Decimal(quantity)
                target.unit_price = unit_price
                target.currency = record.currency
                target.marker = TailMarker.NONE
                for index in sorted((i for i in pending if i != matching[0]), reverse=True):
                    del self._activities[index]
                return

            if same_side:
                isins = ", ".join(sorted({self._activities[i].isin for i in same_side}))
                why = f"belongs to {isins}, not to the {side.value.lower()} of {record.isin}"
            else:
                markers = ", ".join(self._activities[i].marker.value for i in pending)
                why = f"is for the other side ({markers}) of the {side.value.lower()}"
            if self.policy.strict_pending:
                raise SynchronizationError(
                    record.line_number,
                    f"{side.value.lower()} is preceded by a fee posting that {why}",
                )
            self._drop_pending(record, pending, why)

        self._seal_tail(record, "was not followed by a trade")
        self._activities.append(
            Activity(
                account_id=self.account_id,
                date=self._timestamp(record),
                type=side,
                symbol=symbol,
                isin=record.isin,
                quantity=Decimal(quantity),
                unit_price=unit_price,
                currency=record.currency,
                source_line=record.line_number,
            )
        )

    def _add_pending_fee(self, record: DegiroRecord, kind: RecordKind) -> None:
        pending = self._trailing_pending()
        if len(pending) >= MAX_PENDING_FEES:
            self._drop_pending(record, pending[:1], "was not followed by a trade")
        if self._activities and self._activities[-1].marker is TailMarker.AWAITING_DIVIDEND_TAX:
            self._activities[-1].marker = TailMarker.NONE

        raw_fee = record.amount if kind is RecordKind.TRANSACTION_FEE else record.fx
        self._activities.append(
            Activity(
                account_id=self.account_id,
                date=self._timestamp(record),
                fee=self._amount(record, raw_fee),
                isin=record.isin,
                currency=record.currency,
                marker=_FEE_MARKERS[kind],
                source_line=record.line_number,
            )
        )

    # Field helpers

    def _symbol(self, record: DegiroRecord) -> str:
        symbol = self.resolver.resolve(record.isin) if record.isin else ""
        if not symbol:
            self._review.append(
                ReviewItem(
                    line_number=record.line_number,
                    reason=ReviewReason.UNRESOLVED_SYMBOL,
                    description=record.description,
                    isin=record.isin,
                    detail=record.product if record.isin else "row has no ISIN",
                )
            )
        return symbol

    def _quantity(self, record: DegiroRecord, text: str) -> int:
        try:
            quantity = parse_quantity(text)
        except ValueError as exc:
            raise InvalidRecordError(record, str(exc)) from exc
        if quantity <= 0:
            raise InvalidRecordError(record, f"trade quantity must be positive, got {quantity}")
        return quantity

    def _amount(self, record: DegiroRecord, raw: str) -> Decimal:
        try:
            return abs_amount(raw)
        except ValueError as exc:
            raise InvalidRecordError(record, str(exc)) from exc

    def _unit_price(self, record: DegiroRecord, quantity: int) -> Decimal:
        amount = self._amount(record, record.amount)
        if self.policy.trade_price is TradePricePolicy.PER_UNIT:
            return round_unit_price(amount / Decimal(quantity))
        return amount

    def _timestamp(self, record: DegiroRecord) -> str:
        try:
            return to_iso_with_offset(parse_degiro_datetime(record.date, record.time, self.zone))
        except ValueError as exc:
            raise InvalidRecordError(record, str(exc)) from exc
