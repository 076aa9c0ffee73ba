from market_scout.analyzers.technical import calculate_ema
from market_scout.errors import InsufficientDataError
from market_scout.models.analysis import Crossover, IndicatorBundle, TrendAnalysis
from market_scout.models.price import PriceSeries
from market_scout.utils.logger import setup_logger

logger = setup_logger(__name__)

MIN_TREND_BARS = 2
STRENGTH_WINDOW = 20
REVERSAL_WINDOW = 14
SIDEWAYS_STRENGTH = 25.0


def calculate_trend_strength(series: PriceSeries, direction: str) -> float:
    """Trend strength from the trailing 20 closes.

    strength = price move in the trend's direction (%) * 2
             + share of daily steps that followed the trend (%) * 0.5
    """
    closes = series.tail(STRENGTH_WINDOW).closes.tolist()
    first, last = closes[0], closes[-1]
    if direction == "up":
        price_change = (last - first) / first * 100
    else:
        price_change = (first - last) / first * 100

    steps = len(closes) - 1
    if steps == 0:
        return 0.0

    consistent = 0
    for prev, cur in zip(closes, closes[1:]):
        if direction == "up" and cur >= prev:
            consistent += 1
        elif direction == "down" and cur <= prev:
            consistent += 1

    consistency = consistent / steps * 100
    return min(100.0, max(0.0, price_change * 2 + consistency * 0.5))


def detect_crossover(
    indicators: IndicatorBundle,
    series: PriceSeries,
    fast: int = 12,
    slow: int = 26,
) -> Crossover:
    """EMA(fast)/EMA(slow) cross that happened on the last bar."""
    previous = series.truncated(1).closes
    prev_fast = calculate_ema(previous, fast)
    prev_slow = calculate_ema(previous, slow)
    ema_fast = indicators.ema.ema12
    ema_slow = indicators.ema.ema26

    if ema_fast > ema_slow and prev_fast <= prev_slow:
        return "bullish"
    if ema_fast < ema_slow and prev_fast >= prev_slow:
        return "bearish"
    return "none"


def detect_reversal(indicators: IndicatorBundle, series: PriceSeries) -> bool:
    """Flag a possible reversal when momentum disagrees with the recent price move.

    This compares the 14-bar price direction against RSI extremes and the
    MACD histogram sign. It is a coarse proxy, not a comparison of price
    extrema against indicator extrema.
    """
    closes = series.tail(REVERSAL_WINDOW).closes
    price_up = closes.iloc[-1] > closes.iloc[0]
    histogram = indicators.macd.histogram

    if price_up and indicators.rsi > 70 and histogram < 0:
        return True
    if not price_up and indicators.rsi < 30 and histogram > 0:
        return True
    return False


def analyze_trend(indicators: IndicatorBundle, series: PriceSeries) -> TrendAnalysis:
    """Classify trend direction, strength, crossover and reversal risk."""
    if len(series) < MIN_TREND_BARS:
        raise InsufficientDataError("analyze_trend", MIN_TREND_BARS, len(series))

    price = series.last_close
    sma = indicators.sma

    # Without 200 bars sma200 falls back to sma50, so the last link is non-strict
    if price > sma.sma20 > sma.sma50 >= sma.sma200:
        direction = "uptrend"
        strength = calculate_trend_strength(series, "up")
    elif price < sma.sma20 < sma.sma50 <= sma.sma200:
        direction = "downtrend"
        strength = calculate_trend_strength(series, "down")
    else:
        direction = "sideways"
        strength = SIDEWAYS_STRENGTH

    analysis = TrendAnalysis(
        direction=direction,
        strength=strength,
        reversal_signal=detect_reversal(indicators, series),
        moving_average_crossover=detect_crossover(indicators, series),
    )
    logger.debug(
        "Trend %s (strength %.1f, crossover %s)",
        analysis.direction,
        analysis.strength,
        analysis.moving_average_crossover,
    )
    return analysis
