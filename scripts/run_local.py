#!/usr/bin/env python3
"""Run the recommendation agent locally and print the ranked brief."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def main():
    parser = argparse.ArgumentParser(description="Rank watch-list assets by attractiveness")
    parser.add_argument(
        "--asset-class",
        choices=["us_stock", "indian_stock", "crypto"],
        default=None,
        help="Analyze a single asset class (default: all)",
    )
    parser.add_argument(
        "--symbol",
        default=None,
        help="Analyze one symbol on demand (requires --asset-class), e.g. AAPL, TCS, DOGE",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML config (default: config/config.yaml)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full report as JSON instead of the text brief",
    )
    args = parser.parse_args()
    if args.symbol and not args.asset_class:
        parser.error("--symbol requires --asset-class")

    from market_scout.agents.recommendation_agent import run, run_symbol
    from market_scout.formatters.recommendation_message import format_recommendation_report
    from market_scout.utils.config import load_config

    config = load_config(args.config)
    if args.symbol:
        report = asyncio.run(run_symbol(args.symbol, args.asset_class, config))
    else:
        report = asyncio.run(run(asset_class=args.asset_class, config=config))

    if args.json:
        print(report.model_dump_json(indent=2))
    else:
        print(format_recommendation_report(report))

    if report.status == "all_failed":
        sys.exit(1)


if __name__ == "__main__":
    main()
