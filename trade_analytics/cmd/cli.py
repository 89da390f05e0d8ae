import argparse
import json
import logging
import sys

from trade_analytics.config.logging import logger, setup_logging
from trade_analytics.core.exceptions import AppError
from trade_analytics.infrastructure.fx.client import HttpRateProvider, StaticRateProvider
from trade_analytics.services.analytics import AnalyticsService
from trade_analytics.services.report_formatter import ReportFormatter


def _rate_provider(offline: bool):
    return StaticRateProvider() if offline else HttpRateProvider()


def run_analyze(path: str, as_json: bool, offline: bool) -> int:
    if as_json:
        # logs share stdout with the JSON document
        setup_logging(level=logging.WARNING)

    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read bundle {path}: {e}")
        return 1

    try:
        result = AnalyticsService(rate_provider=_rate_provider(offline)).analyze(raw)
    except AppError as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    if as_json:
        print(json.dumps(result.to_contract(), indent=2, ensure_ascii=False))
    else:
        print(ReportFormatter.format_summary(result))
    return 0


def run_rates(offline: bool) -> int:
    try:
        provider = _rate_provider(offline)
    except AppError as e:
        logger.error(f"Cannot create rate provider: {e}")
        return 1
    rates = provider.get_rates()
    for code in sorted(rates):
        print(f"{code}\t{rates[code]}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Trade Analytics CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Command: analyze
    analyze_parser = subparsers.add_parser("analyze", help="Analyze a trade bundle JSON file")
    analyze_parser.add_argument("bundle", help="Path to the bundle JSON (trade list or structured object)")
    analyze_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    analyze_parser.add_argument("--offline", action="store_true", help="Use the built-in FX table")

    # Command: rates
    rates_parser = subparsers.add_parser("rates", help="Show the FX rates in use")
    rates_parser.add_argument("--offline", action="store_true", help="Use the built-in FX table")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "analyze":
        sys.exit(run_analyze(args.bundle, args.json, args.offline))

    elif args.command == "rates":
        sys.exit(run_rates(args.offline))

if __name__ == "__main__":
    main()
