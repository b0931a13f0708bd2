from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from degiro_ghostfolio.models import ConversionError
from degiro_ghostfolio.utils.dates import DEFAULT_TIMEZONE


DEFAULT_OUTPUT_FILE = "ghostfolio-degiro.json"


class SettingsError(ConversionError):
    """Raised when required configuration is missing or invalid."""


class TradePricePolicy(str, Enum):
    """How the unit price of a buy/sell is derived from the booked amount.

    Older exports were imported with the raw booked amount as unit price;
    later ones divide the amount by the quantity.
    """

    RAW_AMOUNT = "raw_amount"
    PER_UNIT = "per_unit"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _env_text(name: str) -> str | None:
    raw = str(os.getenv(name, "") or "").strip()
    return raw or None


def _env_price_policy(name: str, default: TradePricePolicy) -> TradePricePolicy:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    try:
        return TradePricePolicy(raw)
    except ValueError as exc:
        choices = ", ".join(policy.value for policy in TradePricePolicy)
        raise SettingsError(f"{name} must be one of: {choices} (got {raw!r})") from exc


def _env_dividend_quantity(name: str, default: int) -> int:
    raw = str(os.getenv(name, "") or "").strip()
    if not raw:
        return default
    if raw not in {"0", "1"}:
        raise SettingsError(f"{name} must be 0 or 1 (got {raw!r})")
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = str(os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise SettingsError(f"{name} must be a number (got {raw!r})") from exc


@dataclass(frozen=True)
class ReconstructionPolicy:
    trade_price: TradePricePolicy = TradePricePolicy.RAW_AMOUNT
    dividend_quantity: int = 0
    strict_pending: bool = True


@dataclass(frozen=True)
class Settings:
    input_file: Path | None
    account_id: str | None
    api_url: str | None
    api_secret: str | None
    output_file: Path
    review_report_file: Path | None
    policy: ReconstructionPolicy
    timezone: str
    http_timeout_seconds: float
    log_level: str

    def require_input(self) -> Path:
        if self.input_file is None:
            raise SettingsError("INPUT_FILE is not set")
        return self.input_file

    def require_account(self) -> str:
        if not self.account_id:
            raise SettingsError("GHOSTFOLIO_ACCOUNT_ID is not set")
        return self.account_id

    def require_api(self) -> tuple[str, str]:
        missing = [
            name
            for name, value in (
                ("GHOSTFOLIO_API_URL", self.api_url),
                ("GHOSTFOLIO_SECRET", self.api_secret),
            )
            if not value
        ]
        if missing:
            raise SettingsError(f"Missing configuration: {', '.join(missing)}")
        return str(self.api_url), str(self.api_secret)


def get_settings(*, dotenv_path: str | Path | None = None, load_env_file: bool = True) -> Settings:
    if load_env_file:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    input_file = _env_text("INPUT_FILE")
    review_report = _env_text("REVIEW_REPORT_FILE")
    api_url = _env_text("GHOSTFOLIO_API_URL")
    return Settings(
        input_file=Path(input_file).expanduser() if input_file else None,
        account_id=_env_text("GHOSTFOLIO_ACCOUNT_ID"),
        api_url=api_url.rstrip("/") if api_url else None,
        api_secret=_env_text("GHOSTFOLIO_SECRET"),
        output_file=Path(_env_text("OUTPUT_FILE") or DEFAULT_OUTPUT_FILE).expanduser(),
        review_report_file=Path(review_report).expanduser() if review_report else None,
        policy=ReconstructionPolicy(
            trade_price=_env_price_policy("TRADE_PRICE_POLICY", TradePricePolicy.RAW_AMOUNT),
            dividend_quantity=_env_dividend_quantity("DIVIDEND_QUANTITY", 0),
            strict_pending=_env_bool("STRICT_PENDING_FEES", True),
        ),
        timezone=_env_text("EXPORT_TIMEZONE") or DEFAULT_TIMEZONE,
        http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 30.0),
        log_level=(_env_text("LOG_LEVEL") or "INFO").upper(),
    )
