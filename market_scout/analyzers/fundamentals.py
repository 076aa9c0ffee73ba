from market_scout.errors import InsufficientDataError
from market_scout.models.analysis import FundamentalData, VolumeTrend
from market_scout.models.price import PriceSeries
from market_scout.utils.logger import setup_logger

logger = setup_logger(__name__)

VOLUME_WINDOW = 20
VOLUME_CHANGE_THRESHOLD = 10.0


def classify_volume_trend(series: PriceSeries, window: int = VOLUME_WINDOW) -> VolumeTrend:
    """Compare average volume of the last `window` bars with the `window` bars before.

    With fewer than 2 * `window` bars the older window is whatever precedes
    the recent one. An empty or zero-volume older window reports "stable".
    """
    n = len(series)
    volumes = series.volumes
    recent = volumes.iloc[max(0, n - window):]
    older = volumes.iloc[max(0, n - 2 * window):max(0, n - window)]

    if older.empty or older.mean() == 0:
        logger.debug("No usable older volume window (%d bars), reporting stable", len(older))
        return "stable"

    change_pct = (recent.mean() - older.mean()) / older.mean() * 100
    if change_pct > VOLUME_CHANGE_THRESHOLD:
        return "increasing"
    if change_pct < -VOLUME_CHANGE_THRESHOLD:
        return "decreasing"
    return "stable"


def analyze_fundamentals(
    series: PriceSeries,
    market_cap: float | None = None,
    pe_ratio: float | None = None,
    price_to_book: float | None = None,
) -> FundamentalData:
    """Volume-trend classification plus provider-supplied valuation figures."""
    if len(series) == 0:
        raise InsufficientDataError("analyze_fundamentals", 1, 0)

    recent_volumes = series.tail(VOLUME_WINDOW).volumes
    return FundamentalData(
        pe_ratio=pe_ratio,
        market_cap=market_cap,
        price_to_book=price_to_book,
        volume_trend=classify_volume_trend(series),
        average_volume=float(recent_volumes.mean()),
    )


def calculate_fundamental_score(fundamentals: FundamentalData) -> float:
    """Score 0-100 around a neutral 50.

    - Increasing volume +15, decreasing -15
    - P/E below 10 (and positive) +10, above 25 -10
    - Price-to-book below 1 (and positive) +10, above 3 -10
    """
    score = 50.0

    if fundamentals.volume_trend == "increasing":
        score += 15
    elif fundamentals.volume_trend == "decreasing":
        score -= 15

    pe = fundamentals.pe_ratio
    if pe is not None:
        if 0 < pe < 10:
            score += 10
        elif pe > 25:
            score -= 10

    pb = fundamentals.price_to_book
    if pb is not None:
        if 0 < pb < 1:
            score += 10
        elif pb > 3:
            score -= 10

    return max(0.0, min(100.0, score))
