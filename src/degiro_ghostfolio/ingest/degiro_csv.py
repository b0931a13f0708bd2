"""Reader for the DEGIRO ``Account.csv`` export."""

from __future__ import annotations

import csv
import io
from pathlib import Path

from degiro_ghostfolio.models import ConversionError, DegiroRecord


DEGIRO_COLUMNS = [
    "date",
    "time",
    "value_date",
    "product",
    "isin",
    "description",
    "fx",
    "currency",
    "amount",
    "col1",
    "col2",
    "order_id",
]


class MalformedCsvError(ConversionError):
    """Raised when a row does not have the fixed DEGIRO column layout."""

    def __init__(self, line_number: int, found: int) -> None:
        super().__init__(
            f"Line {line_number}: expected {len(DEGIRO_COLUMNS)} fields, found {found}"
        )
        self.line_number = line_number
        self.found = found


def parse_degiro_csv(text: str) -> list[DegiroRecord]:
    reader = csv.reader(io.StringIO(text), delimiter=",")
    records: list[DegiroRecord] = []
    header_seen = False
    for row in reader:
        if not header_seen:
            header_seen = True
            continue
        if not row or all(not cell.strip() for cell in row):
            continue
        if len(row) != len(DEGIRO_COLUMNS):
            raise MalformedCsvError(reader.line_num, len(row))
        values = dict(zip(DEGIRO_COLUMNS, (cell.strip() for cell in row)))
        records.append(DegiroRecord(**values, line_number=reader.line_num))
    return records


def load_degiro_csv(csv_path: str | Path) -> list[DegiroRecord]:
    with Path(csv_path).open("r", newline="", encoding="utf-8-sig") as handle:
        return parse_degiro_csv(handle.read())
