from market_scout.errors import DegenerateInputError, InsufficientDataError
from market_scout.models.analysis import IndicatorBundle, MomentumBreakdown, MomentumScore
from market_scout.models.price import PriceSeries
from market_scout.utils.config import MomentumWeights
from market_scout.utils.logger import setup_logger

logger = setup_logger(__name__)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _percent_change(current: float, reference: float) -> float:
    if reference == 0:
        raise DegenerateInputError("Reference price is zero, percent change is undefined")
    return (current - reference) / reference * 100


def rsi_score(rsi: float) -> float:
    """Oversold maps to 50-100, overbought to 0-50, neutral band peaks at RSI 50."""
    if rsi < 30:
        return 100 - (rsi / 30) * 50
    if rsi > 70:
        return 50 - ((rsi - 70) / 30) * 50
    return 50 + ((50 - abs(rsi - 50)) / 20) * 30


def macd_score(indicators: IndicatorBundle, price: float) -> float:
    if price == 0:
        raise DegenerateInputError("Current price is zero, MACD score is undefined")
    ratio = min(50.0, abs(indicators.macd.histogram / price) * 10000)
    if indicators.macd.line > indicators.macd.signal:
        return 50 + ratio
    return 50 - ratio


def sma_score(indicators: IndicatorBundle, price: float) -> float:
    sma = indicators.sma
    if price <= sma.sma20:
        return 25.0
    if price <= sma.sma50:
        return 50.0
    if price <= sma.sma200:
        return 75.0
    return 100.0


def bollinger_score(indicators: IndicatorBundle, price: float) -> float:
    bands = indicators.bollinger
    width = bands.upper - bands.lower
    # Zero-width bands (flat closes) sit at the midpoint
    position = 0.5 if width == 0 else (price - bands.lower) / width
    if position < 0.2:
        return 100.0
    if position > 0.8:
        return 0.0
    return 50 + (0.5 - position) * 100


def stochastic_score(k: float) -> float:
    if k < 20:
        return 100.0
    if k > 80:
        return 0.0
    return 50 + (50 - k) * 0.625


def adx_score(adx: float) -> float:
    if adx > 25:
        return min(100.0, 50 + (adx - 25) * 2)
    return adx * 2


def volume_score(indicators: IndicatorBundle, series: PriceSeries, window: int = 5) -> float:
    """75 when recent volume runs above its 20-bar average, else 25."""
    recent = series.tail(window).volumes.mean()
    return 75.0 if recent > indicators.volume_sma else 25.0


def calculate_momentum_score(
    indicators: IndicatorBundle,
    series: PriceSeries,
    weights: MomentumWeights | None = None,
) -> MomentumScore:
    """Blend technical sub-scores with short and long-term price change.

    "N days ago" falls back to the first bar when the series is shorter than N.
    """
    if len(series) == 0:
        raise InsufficientDataError("calculate_momentum_score", 1, 0)

    w = weights or MomentumWeights()
    bars = series.bars
    price = bars[-1].close
    price_short_ago = bars[max(0, len(bars) - w.short_term_days)].close
    price_long_ago = bars[max(0, len(bars) - w.long_term_days)].close

    scores = {
        "rsi": rsi_score(indicators.rsi),
        "macd": macd_score(indicators, price),
        "sma": sma_score(indicators, price),
        "bollinger": bollinger_score(indicators, price),
        "stochastic": stochastic_score(indicators.stochastic.k),
        "adx": adx_score(indicators.adx),
        "volume": volume_score(indicators, series, w.volume_window),
    }
    scores = {name: _clamp(value) for name, value in scores.items()}
    technical = sum(scores[name] * getattr(w, name) for name in scores)

    short_change = _percent_change(price, price_short_ago)
    long_change = _percent_change(price, price_long_ago)
    short_term = 50 + _clamp(short_change * w.short_term_multiplier, -50, 50)
    long_term = 50 + _clamp(long_change * w.long_term_multiplier, -50, 50)

    overall = technical * w.technical + short_term * w.short_term + long_term * w.long_term

    logger.debug("Momentum sub-scores: %s", {k: round(v, 1) for k, v in scores.items()})
    return MomentumScore(
        score=_clamp(overall),
        short_term=_clamp(short_term),
        long_term=_clamp(long_term),
        breakdown=MomentumBreakdown(
            technical=_clamp(technical),
            trend=_clamp(scores["adx"]),
            volume=_clamp(scores["volume"]),
        ),
    )
