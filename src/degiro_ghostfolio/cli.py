from __future__ import annotations

import argparse
import sys
from collections import Counter
from pathlib import Path

from degiro_ghostfolio.config.settings import (
    ReconstructionPolicy,
    Settings,
    TradePricePolicy,
    get_settings,
)
from degiro_ghostfolio.export.ghostfolio_json import write_export
from degiro_ghostfolio.export.review_report import summarize_review, write_review_report
from degiro_ghostfolio.ingest.classify import RecordKind, classify_record
from degiro_ghostfolio.ingest.degiro_csv import load_degiro_csv
from degiro_ghostfolio.ingest.reconstruct import TransactionReconstructor
from degiro_ghostfolio.models import ConversionError, DegiroRecord
from degiro_ghostfolio.providers.symbols import GhostfolioClient, SymbolResolver
from degiro_ghostfolio.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def _client(settings: Settings) -> GhostfolioClient:
    api_url, secret = settings.require_api()
    return GhostfolioClient(api_url, secret, timeout_seconds=settings.http_timeout_seconds)


def _print_progress(index: int, total: int, _: DegiroRecord) -> None:
    end = "\n" if index == total else ""
    print(f"\rProcessing {index} of {total}", end=end, file=sys.stderr, flush=True)


def _policy(settings: Settings, args: argparse.Namespace) -> ReconstructionPolicy:
    policy = settings.policy
    return ReconstructionPolicy(
        trade_price=TradePricePolicy(args.price_policy) if args.price_policy else policy.trade_price,
        dividend_quantity=(
            args.dividend_quantity if args.dividend_quantity is not None else policy.dividend_quantity
        ),
        strict_pending=False if args.lenient else policy.strict_pending,
    )


def _cmd_convert(args: argparse.Namespace, settings: Settings) -> int:
    input_file = Path(args.input) if args.input else settings.require_input()
    output_file = Path(args.output) if args.output else settings.output_file
    review_file = Path(args.review_report) if args.review_report else settings.review_report_file
    account_id = settings.require_account()
    policy = _policy(settings, args)

    records = load_degiro_csv(input_file)
    print(f"Read CSV file {input_file}. Start processing..")
    logger.info(
        "Using trade price policy %s, dividend quantity %d, strict pending fees %s",
        policy.trade_price.value,
        policy.dividend_quantity,
        policy.strict_pending,
    )

    client = _client(settings)
    try:
        client.authenticate()
        reconstructor = TransactionReconstructor(
            SymbolResolver(client),
            account_id=account_id,
            policy=policy,
            timezone=settings.timezone,
        )
        result = reconstructor.reconstruct(
            records, progress=None if args.quiet else _print_progress
        )
    except ConversionError:
        logger.error("Conversion aborted, nothing written to %s", output_file)
        raise

    print("Processing complete, writing to file..")
    written = write_export(output_file, result.activities)
    print(f"Wrote {len(result.activities)} activities to '{written}'!")

    if result.review:
        summary = ", ".join(f"{reason}={count}" for reason, count in summarize_review(result.review).items())
        print(f"{len(result.review)} records need review ({summary})")
        if review_file is not None:
            write_review_report(review_file, result.review)
            print(f"Wrote review report to '{review_file}'")
    return 0


def _cmd_inspect(args: argparse.Namespace, settings: Settings) -> int:
    input_file = Path(args.input) if args.input else settings.require_input()
    records = load_degiro_csv(input_file)

    kinds: Counter[str] = Counter()
    unmatched: Counter[str] = Counter()
    for record in records:
        kind = classify_record(record).kind
        kinds[kind.value] += 1
        if kind is RecordKind.UNMATCHED:
            unmatched[record.description] += 1

    print(f"{len(records)} records in {input_file}")
    for kind, count in kinds.most_common():
        print(f"{count:6d}  {kind}")
    if unmatched:
        print("Most common unmatched descriptions:")
        for description, count in unmatched.most_common(args.top):
            print(f"{count:6d}  {description}")
    return 0


def _cmd_lookup(args: argparse.Namespace, settings: Settings) -> int:
    client = _client(settings)
    client.authenticate()
    candidates = client.lookup(args.identifier)
    if not candidates:
        print(f"No symbols found for {args.identifier}")
        return 0
    for symbol in candidates:
        print(symbol)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert DEGIRO account exports into Ghostfolio activity imports"
    )
    parser.add_argument("--env-file", default=None, help="Path to a .env file to load.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sp_convert = subparsers.add_parser("convert", help="Write the Ghostfolio import JSON")
    sp_convert.add_argument("--input", default=None, help="DEGIRO CSV (overrides INPUT_FILE).")
    sp_convert.add_argument("--output", default=None, help="Export path (overrides OUTPUT_FILE).")
    sp_convert.add_argument(
        "--review-report",
        default=None,
        help="CSV file for records that need manual review.",
    )
    sp_convert.add_argument(
        "--price-policy",
        choices=[policy.value for policy in TradePricePolicy],
        default=None,
        help="Unit price of trades: raw booked amount or amount per unit.",
    )
    sp_convert.add_argument(
        "--dividend-quantity",
        type=int,
        choices=[0, 1],
        default=None,
        help="Quantity recorded on dividend activities.",
    )
    sp_convert.add_argument(
        "--lenient",
        action="store_true",
        help="Drop fee postings without a trade instead of aborting.",
    )
    sp_convert.add_argument("--quiet", action="store_true", help="Hide per-record progress.")
    sp_convert.set_defaults(func=_cmd_convert)

    sp_inspect = subparsers.add_parser(
        "inspect", help="Count record kinds and list unmatched descriptions"
    )
    sp_inspect.add_argument("--input", default=None, help="DEGIRO CSV (overrides INPUT_FILE).")
    sp_inspect.add_argument("--top", type=int, default=30, help="Unmatched descriptions to list.")
    sp_inspect.set_defaults(func=_cmd_inspect)

    sp_lookup = subparsers.add_parser("lookup", help="Look up ticker symbols for an ISIN")
    sp_lookup.add_argument("identifier", help="ISIN to look up.")
    sp_lookup.set_defaults(func=_cmd_lookup)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = get_settings(dotenv_path=args.env_file)
        configure_logging(settings.log_level)
        return args.func(args, settings)
    except (ConversionError, OSError) as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
