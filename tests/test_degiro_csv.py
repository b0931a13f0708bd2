from __future__ import annotations

from pathlib import Path

import pytest

from conftest import CSV_HEADER, ISIN_AAPL, ISIN_VWRL
from degiro_ghostfolio.ingest.degiro_csv import (
    MalformedCsvError,
    load_degiro_csv,
    parse_degiro_csv,
)


def test_parse_skips_header_and_keeps_row_order(sample_csv_text):
    records = parse_degiro_csv(sample_csv_text)

    assert [r.description for r in records] == [
        "Transactiekosten",
        "Koop 10 @ 50 EUR",
        "Cash Sweep Transfer",
        "Dividend",
        "Dividendbelasting",
    ]
    first = records[0]
    assert first.isin == ISIN_VWRL
    assert first.amount == "-2,00"
    assert first.currency == "EUR"
    assert first.order_id == "abc-1"
    assert first.line_number == 2
    assert records[3].isin == ISIN_AAPL
    assert records[2].isin == ""


def test_wrong_column_count_fails_the_whole_parse(sample_csv_text):
    broken = sample_csv_text + "01-04-2024,10:00,01-04-2024,Product\n"

    with pytest.raises(MalformedCsvError) as exc_info:
        parse_degiro_csv(broken)

    assert exc_info.value.line_number == 7
    assert exc_info.value.found == 4


def test_blank_lines_are_ignored():
    text = CSV_HEADER + "\n\n" + ",".join(["01-03-2024", "10:15"] + [""] * 10) + "\n"

    records = parse_degiro_csv(text)

    assert len(records) == 1
    assert records[0].description == ""


def test_header_only_file_yields_no_records():
    assert parse_degiro_csv(CSV_HEADER + "\n") == []


def test_load_reads_utf8_with_bom(tmp_path: Path, sample_csv_text):
    csv_path = tmp_path / "Account.csv"
    csv_path.write_text("\ufeff" + sample_csv_text, encoding="utf-8")

    records = load_degiro_csv(csv_path)

    assert len(records) == 5
