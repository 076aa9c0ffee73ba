"""Analysis pipeline: price series in, scored Asset out.

Phase one computes the independent analyses into an immutable
AssetAnalysis; phase two (scoring.score_asset) folds them into the final
overall score, confidence and label on a new Asset.
"""

from market_scout.analyzers.fundamentals import analyze_fundamentals
from market_scout.analyzers.momentum import calculate_momentum_score
from market_scout.analyzers.scoring import score_asset
from market_scout.analyzers.technical import calculate_support_resistance, compute_indicators
from market_scout.analyzers.trend import analyze_trend
from market_scout.models.analysis import Asset, AssetAnalysis, AssetClass, Quote
from market_scout.models.price import PriceSeries
from market_scout.utils.config import AppConfig


def price_change_from_series(series: PriceSeries) -> tuple[float, float]:
    """Change and percent change between the last two bars."""
    if len(series) < 2:
        return 0.0, 0.0
    previous = series.bars[-2].close
    change = series.last_close - previous
    # Closes are validated positive; the guard keeps a zero from leaking as inf
    change_percent = change / previous * 100 if previous else 0.0
    return change, change_percent


def build_asset_analysis(
    symbol: str,
    name: str,
    asset_class: AssetClass,
    series: PriceSeries,
    config: AppConfig | None = None,
    quote: Quote | None = None,
    market_cap: float | None = None,
    pe_ratio: float | None = None,
    price_to_book: float | None = None,
) -> AssetAnalysis:
    cfg = config or AppConfig()
    indicators = compute_indicators(series, cfg.indicators)

    if quote is not None:
        price, change, change_percent = quote.price, quote.change, quote.change_percent
    else:
        price = series.last_close
        change, change_percent = price_change_from_series(series)

    return AssetAnalysis(
        symbol=symbol,
        name=name,
        asset_class=asset_class,
        current_price=price,
        price_change=change,
        price_change_percent=change_percent,
        price_history=series.bars[-cfg.data.history_window:],
        data_points=len(series),
        indicators=indicators,
        support_resistance=calculate_support_resistance(series),
        fundamentals=analyze_fundamentals(series, market_cap, pe_ratio, price_to_book),
        trend=analyze_trend(indicators, series),
        momentum=calculate_momentum_score(indicators, series, cfg.momentum),
    )


def analyze_asset(
    symbol: str,
    name: str,
    asset_class: AssetClass,
    series: PriceSeries,
    config: AppConfig | None = None,
    quote: Quote | None = None,
    **fundamentals: float | None,
) -> Asset:
    """Run both phases for one instrument."""
    cfg = config or AppConfig()
    analysis = build_asset_analysis(
        symbol, name, asset_class, series, cfg, quote=quote, **fundamentals
    )
    return score_asset(analysis, cfg.scoring)
