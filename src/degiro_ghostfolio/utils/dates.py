"""Date parsing helpers for DEGIRO timestamps."""

from __future__ import annotations

from datetime import datetime, tzinfo

from dateutil import tz


DEGIRO_DATETIME_FORMATS = (
    "%d-%m-%Y %H:%M",
    "%d-%m-%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
)
DEFAULT_TIMEZONE = "Europe/Amsterdam"


def resolve_timezone(name: str | None) -> tzinfo:
    zone = tz.gettz(name or DEFAULT_TIMEZONE)
    if zone is None:
        raise ValueError(f"Unknown timezone: {name}")
    return zone


def parse_degiro_datetime(date_text: str, time_text: str, zone: tzinfo) -> datetime:
    text = f"{date_text.strip()} {time_text.strip() or '00:00'}"
    for fmt in DEGIRO_DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=zone)
        except ValueError:
            continue
    raise ValueError(f"Unable to parse datetime: {text}")


def to_iso_with_offset(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def utc_now() -> datetime:
    return datetime.now(tz.UTC)
