"""Recommendation agent: fetches history per watch-list symbol, scores and ranks."""

import asyncio
import sys
from datetime import datetime, timezone
from typing import Callable

from market_scout.analyzers.pipeline import analyze_asset
from market_scout.analyzers.scoring import create_recommendation, rank_recommendations
from market_scout.data_sources import coingecko, yahoo_finance
from market_scout.errors import ProviderError
from market_scout.formatters.recommendation_message import format_recommendation_report
from market_scout.models.analysis import Asset, AssetClass, Quote, RecommendationReport
from market_scout.utils.config import AppConfig, WatchlistEntry, load_config
from market_scout.utils.logger import setup_logger

logger = setup_logger("recommendation_agent")

ASSET_CLASSES: tuple[AssetClass, ...] = ("us_stock", "indian_stock", "crypto")


def _best_effort_quote(fetch: Callable[[], Quote], symbol: str) -> Quote | None:
    """Quotes are optional; the pipeline falls back to the last two bars."""
    try:
        return fetch()
    except ProviderError as e:
        logger.warning("Quote unavailable for %s: %s", symbol, e, extra={"symbol": symbol})
        return None


def analyze_symbol(entry: WatchlistEntry, asset_class: AssetClass, config: AppConfig) -> Asset:
    """Fetch data for one watch-list entry and run the full analysis."""
    data_cfg = config.data
    if asset_class == "crypto":
        coin_id = entry.provider_id
        series = coingecko.get_price_series(coin_id, days=data_cfg.crypto_days)
        quote = _best_effort_quote(lambda: coingecko.get_quote(coin_id), entry.symbol)
        fundamentals = {}
    else:
        series = yahoo_finance.get_price_series(
            entry.provider_id, asset_class, period=data_cfg.history_period
        )
        quote = _best_effort_quote(
            lambda: yahoo_finance.get_quote(entry.provider_id, asset_class), entry.symbol
        )
        fundamentals = yahoo_finance.get_fundamentals(entry.provider_id, asset_class)

    return analyze_asset(
        entry.symbol,
        entry.name,
        asset_class,
        series,
        config,
        quote=quote,
        **fundamentals,
    )


def resolve_entry(symbol: str, asset_class: AssetClass, config: AppConfig) -> WatchlistEntry:
    """Watch-list entry for an on-demand symbol.

    Symbols already on the watch-list reuse their entry. Other crypto
    tickers are resolved to a CoinGecko id.
    """
    wanted = symbol.strip()
    for entry in getattr(config.watchlists, asset_class):
        if entry.symbol.upper() == wanted.upper() or entry.id == wanted.lower():
            return entry

    coin_id = coingecko.resolve_coin_id(wanted) if asset_class == "crypto" else None
    return WatchlistEntry(symbol=wanted.upper(), name=wanted.upper(), id=coin_id)


def _configure_caches(config: AppConfig) -> None:
    yahoo_finance.configure_cache(config.data.cache_ttl_seconds)
    coingecko.configure_cache(config.data.cache_ttl_seconds)


def _selected_jobs(
    config: AppConfig, asset_class: AssetClass | None
) -> list[tuple[AssetClass, WatchlistEntry]]:
    classes = ASSET_CLASSES if asset_class is None else (asset_class,)
    return [
        (cls, entry)
        for cls in classes
        for entry in getattr(config.watchlists, cls)
    ]


async def run(
    asset_class: AssetClass | None = None,
    config: AppConfig | None = None,
) -> RecommendationReport:
    """Analyze every selected watch-list symbol concurrently and rank the results.

    A failing symbol is logged and recorded in `errors`; it never aborts the
    others. An empty selection and a batch where every symbol failed are
    reported with distinct statuses.
    """
    config = config or load_config()
    _configure_caches(config)

    jobs = _selected_jobs(config, asset_class)
    total = len(jobs)
    if total == 0:
        logger.warning("No symbols selected for analysis (asset class: %s)", asset_class or "all")
        return RecommendationReport(
            timestamp=datetime.now(timezone.utc),
            status="empty_watchlist",
        )

    logger.info("Analyzing %d symbols", total)
    semaphore = asyncio.Semaphore(config.data.max_concurrency)

    async def _analyze(cls: AssetClass, entry: WatchlistEntry) -> Asset:
        async with semaphore:
            return await asyncio.to_thread(analyze_symbol, entry, cls, config)

    results = await asyncio.gather(
        *(_analyze(cls, entry) for cls, entry in jobs),
        return_exceptions=True,
    )

    assets: list[Asset] = []
    errors: list[str] = []
    for (cls, entry), result in zip(jobs, results):
        if isinstance(result, Exception):
            logger.error(
                "Analysis failed for %s: %s",
                entry.symbol,
                result,
                extra={"symbol": entry.symbol, "asset_class": cls},
            )
            errors.append(f"{entry.symbol}: {result}")
        elif isinstance(result, BaseException):
            raise result
        else:
            assets.append(result)

    if not assets:
        logger.error("All %d analyses failed", total)
        return RecommendationReport(
            timestamp=datetime.now(timezone.utc),
            status="all_failed",
            total_symbols=total,
            errors=errors,
        )

    recommendations, filtered_out = rank_recommendations(assets, config.policy, config.scoring)
    logger.info(
        "Ranked %d recommendations (%d/%d symbols analyzed, %d filtered by policy)",
        len(recommendations),
        len(assets),
        total,
        filtered_out,
    )
    return RecommendationReport(
        timestamp=datetime.now(timezone.utc),
        status="ok",
        recommendations=recommendations,
        total_symbols=total,
        successful_symbols=len(assets),
        filtered_out=filtered_out,
        errors=errors,
    )


async def run_symbol(
    symbol: str,
    asset_class: AssetClass,
    config: AppConfig | None = None,
) -> RecommendationReport:
    """Analyze one symbol on demand, whether or not it is on a watch-list.

    Ranking policy does not apply; a failure yields an `all_failed` report.
    """
    config = config or load_config()
    _configure_caches(config)

    entry = await asyncio.to_thread(resolve_entry, symbol, asset_class, config)
    try:
        asset = await asyncio.to_thread(analyze_symbol, entry, asset_class, config)
    except Exception as e:
        logger.error(
            "Analysis failed for %s: %s",
            entry.symbol,
            e,
            extra={"symbol": entry.symbol, "asset_class": asset_class},
        )
        return RecommendationReport(
            timestamp=datetime.now(timezone.utc),
            status="all_failed",
            total_symbols=1,
            errors=[f"{entry.symbol}: {e}"],
        )

    return RecommendationReport(
        timestamp=datetime.now(timezone.utc),
        status="ok",
        recommendations=[create_recommendation(asset, config.scoring)],
        total_symbols=1,
        successful_symbols=1,
    )


def main() -> None:
    report = asyncio.run(run())
    print(format_recommendation_report(report))
    if report.status == "all_failed":
        sys.exit(1)


if __name__ == "__main__":
    main()
