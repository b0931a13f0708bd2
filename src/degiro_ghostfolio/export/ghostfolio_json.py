"""Ghostfolio import document builder and atomic writer."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from degiro_ghostfolio.models import Activity
from degiro_ghostfolio.utils.dates import utc_now

EXPORT_VERSION = "v0"


def _number(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def activity_to_dict(activity: Activity) -> dict[str, Any]:
    if activity.type is None:
        raise ValueError(f"Activity from line {activity.source_line} has no type")
    return {
        "accountId": activity.account_id,
        "comment": activity.marker.value,
        "fee": _number(activity.fee),
        "quantity": _number(activity.quantity),
        "type": activity.type.value,
        "unitPrice": _number(activity.unit_price),
        "currency": activity.currency,
        "dataSource": activity.data_source,
        "date": activity.date,
        "symbol": activity.symbol,
    }


def build_export(
    activities: Iterable[Activity],
    *,
    generated_at: datetime | None = None,
    version: str = EXPORT_VERSION,
) -> dict[str, Any]:
    stamp = generated_at or utc_now()
    return {
        "meta": {
            "date": stamp.isoformat(timespec="milliseconds"),
            "version": version,
        },
        "activities": [activity_to_dict(activity) for activity in activities],
    }


def write_export(
    path: str | Path,
    activities: Iterable[Activity],
    *,
    generated_at: datetime | None = None,
    version: str = EXPORT_VERSION,
) -> Path:
    """Serialize the activities and move the file into place in one step."""
    target = Path(path)
    document = build_export(activities, generated_at=generated_at, version=version)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(document, handle, ensure_ascii=False, indent=2)
            handle.write("\n")
        os.replace(temp_name, target)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
    return target
