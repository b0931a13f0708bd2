from __future__ import annotations

from collections.abc import Callable

import pytest

from degiro_ghostfolio.models import DegiroRecord
from degiro_ghostfolio.providers.symbols import AuthenticationError

ISIN_VWRL = "IE00B3RBWM25"
ISIN_AAPL = "US0378331005"
ISIN_UNKNOWN = "XS0000000000"

CSV_HEADER = (
    "Datum,Tijd,Valutadatum,Product,ISIN,Omschrijving,FX,Mutatie,,Saldo,,Order Id"
)


class FakeResolver:
    def __init__(self, symbols: dict[str, str] | None = None, fail_on_call: int | None = None) -> None:
        self.symbols = symbols or {ISIN_VWRL: "VWRL.AS", ISIN_AAPL: "AAPL"}
        self.fail_on_call = fail_on_call
        self.calls: list[str] = []

    def resolve(self, isin: str) -> str:
        self.calls.append(isin)
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise AuthenticationError("Ghostfolio access token is not valid")
        return self.symbols.get(isin, "")


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def make_record() -> Callable[..., DegiroRecord]:
    counter = {"line": 1}

    def _make(
        description: str,
        *,
        isin: str = ISIN_VWRL,
        amount: str = "",
        fx: str = "",
        currency: str = "EUR",
        date: str = "01-03-2024",
        time: str = "10:15",
        product: str = "VANGUARD FTSE ALL-WORLD UCITS ETF",
    ) -> DegiroRecord:
        counter["line"] += 1
        return DegiroRecord(
            date=date,
            time=time,
            value_date=date,
            product=product,
            isin=isin,
            description=description,
            fx=fx,
            currency=currency,
            amount=amount,
            col1="",
            col2="",
            order_id="",
            line_number=counter["line"],
        )

    return _make


def csv_row(*fields: str) -> str:
    return ",".join(f'"{field}"' if "," in field else field for field in fields)


@pytest.fixture
def sample_csv_text() -> str:
    rows = [
        CSV_HEADER,
        csv_row("01-03-2024", "10:15", "01-03-2024", "VANGUARD FTSE ALL-WORLD UCITS ETF", ISIN_VWRL,
                "Transactiekosten", "", "EUR", "-2,00", "EUR", "1000,00", "abc-1"),
        csv_row("01-03-2024", "10:15", "01-03-2024", "VANGUARD FTSE ALL-WORLD UCITS ETF", ISIN_VWRL,
                "Koop 10 @ 50 EUR", "", "EUR", "-500,00", "EUR", "500,00", "abc-1"),
        csv_row("02-03-2024", "09:00", "02-03-2024", "", "",
                "Cash Sweep Transfer", "", "EUR", "100,00", "EUR", "600,00", ""),
        csv_row("15-03-2024", "07:30", "15-03-2024", "APPLE INC", ISIN_AAPL,
                "Dividend", "", "USD", "2,40", "USD", "2,40", ""),
        csv_row("15-03-2024", "07:30", "15-03-2024", "APPLE INC", ISIN_AAPL,
                "Dividendbelasting", "", "USD", "-0,36", "USD", "2,04", ""),
    ]
    return "\n".join(rows) + "\n"
