from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from degiro_ghostfolio.models import ReviewItem

REVIEW_COLUMNS = ["line_number", "reason", "description", "isin", "detail"]


def review_frame(items: Iterable[ReviewItem]) -> pd.DataFrame:
    rows = [
        {
            "line_number": item.line_number,
            "reason": item.reason.value,
            "description": item.description,
            "isin": item.isin,
            "detail": item.detail,
        }
        for item in items
    ]
    return pd.DataFrame(rows, columns=REVIEW_COLUMNS)


def write_review_report(path: str | Path, items: Iterable[ReviewItem]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    frame = review_frame(items).sort_values(["reason", "line_number"], kind="stable")
    frame.to_csv(target, index=False)
    return target


def summarize_review(items: Iterable[ReviewItem]) -> dict[str, int]:
    counts = Counter(item.reason.value for item in items)
    return dict(sorted(counts.items()))
