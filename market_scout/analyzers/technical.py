import numpy as np
import pandas as pd

from market_scout.errors import InsufficientDataError
from market_scout.models.analysis import (
    MACD,
    BollingerBands,
    ExponentialAverages,
    IndicatorBundle,
    MovingAverages,
    Stochastic,
    SupportResistance,
)
from market_scout.models.price import PriceSeries
from market_scout.utils.config import IndicatorConfig
from market_scout.utils.logger import setup_logger

logger = setup_logger(__name__)

MIN_INDICATOR_BARS = 50
SUPPORT_RESISTANCE_WINDOW = 50


def _seeded_ewm(values: pd.Series, period: int, alpha: float) -> pd.Series:
    """Exponential smoothing seeded with the mean of the first `period` values.

    The returned series starts at the seed position (index `period - 1`).
    Callers must pass at least `period` values.
    """
    seed = pd.Series([values.iloc[:period].mean()], index=[values.index[period - 1]])
    seeded = pd.concat([seed, values.iloc[period:]])
    return seeded.ewm(alpha=alpha, adjust=False).mean()


def _ema_series(values: pd.Series, period: int) -> pd.Series:
    return _seeded_ewm(values, period, 2.0 / (period + 1))


def calculate_rsi(closes: pd.Series, period: int = 14) -> float:
    """Calculate Relative Strength Index with Wilder's smoothing.

    RSI = 100 - (100 / (1 + RS))
    RS = average gain / average loss, both seeded with a simple mean of the
    first `period` deltas. Returns 50 (neutral) without enough data.
    """
    if len(closes) < period + 1:
        return 50.0

    deltas = closes.diff().dropna().reset_index(drop=True)
    gains = deltas.clip(lower=0.0)
    losses = (-deltas).clip(lower=0.0)

    avg_gain = _seeded_ewm(gains, period, 1.0 / period).iloc[-1]
    avg_loss = _seeded_ewm(losses, period, 1.0 / period).iloc[-1]

    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0

    rs = avg_gain / avg_loss
    rsi = 100.0 - (100.0 / (1.0 + rs))
    return float(min(100.0, max(0.0, rsi)))


def calculate_ema(closes: pd.Series, period: int) -> float:
    """Calculate Exponential Moving Average, seeded by the SMA of the first `period` closes.

    Falls back to the last close when the series is shorter than `period`.
    """
    if len(closes) < period:
        return float(closes.iloc[-1])
    return float(_ema_series(closes, period).iloc[-1])


def calculate_sma(values: pd.Series, period: int) -> float | None:
    """Calculate Simple Moving Average."""
    if len(values) < period:
        return None
    return float(values.iloc[-period:].mean())


def calculate_macd(
    closes: pd.Series,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACD:
    """Calculate MACD (Moving Average Convergence Divergence).

    Line is EMA(fast) - EMA(slow) from the first bar where the slow EMA
    exists; signal is EMA(signal) of the line. Zeros without enough data.
    """
    if len(closes) < slow + signal - 1:
        return MACD()

    ema_fast = _ema_series(closes, fast)
    ema_slow = _ema_series(closes, slow)
    line = (ema_fast - ema_slow).dropna().reset_index(drop=True)
    signal_line = _ema_series(line, signal)

    line_value = float(line.iloc[-1])
    signal_value = float(signal_line.iloc[-1])
    return MACD(line=line_value, signal=signal_value, histogram=line_value - signal_value)


def calculate_bollinger_bands(
    closes: pd.Series, period: int = 20, num_std: float = 2.0
) -> BollingerBands:
    """Bollinger Bands using the population standard deviation of the window."""
    if len(closes) < period:
        last = float(closes.iloc[-1])
        return BollingerBands(upper=last, middle=last, lower=last)

    window = closes.iloc[-period:]
    middle = float(window.mean())
    width = num_std * float(window.std(ddof=0))
    return BollingerBands(upper=middle + width, middle=middle, lower=middle - width)


def calculate_stochastic(
    highs: pd.Series,
    lows: pd.Series,
    closes: pd.Series,
    period: int = 14,
    smooth: int = 3,
) -> Stochastic:
    """Stochastic oscillator: %K over the trailing range, %D = SMA of %K."""
    if len(closes) < period + smooth - 1:
        return Stochastic()

    highest = highs.rolling(window=period).max()
    lowest = lows.rolling(window=period).min()
    spread = highest - lowest

    k = ((closes - lowest) / spread.where(spread != 0)) * 100
    # A flat range puts the close in the middle
    k = k.iloc[period - 1:].fillna(50.0).clip(0.0, 100.0)
    d = k.rolling(window=smooth).mean()

    return Stochastic(
        k=float(k.iloc[-1]),
        d=float(min(100.0, max(0.0, d.iloc[-1]))),
    )


def calculate_adx(
    highs: pd.Series,
    lows: pd.Series,
    closes: pd.Series,
    period: int = 14,
) -> float:
    """Average Directional Index (Wilder). Returns 25 without enough data."""
    if len(closes) < 2 * period:
        return 25.0

    prev_close = closes.shift(1)
    true_range = pd.concat(
        [highs - lows, (highs - prev_close).abs(), (lows - prev_close).abs()],
        axis=1,
    ).max(axis=1)

    up_move = highs.diff()
    down_move = -lows.diff()
    plus_dm = up_move.where((up_move > down_move) & (up_move > 0), 0.0)
    minus_dm = down_move.where((down_move > up_move) & (down_move > 0), 0.0)

    true_range = true_range.iloc[1:].reset_index(drop=True)
    plus_dm = plus_dm.iloc[1:].reset_index(drop=True)
    minus_dm = minus_dm.iloc[1:].reset_index(drop=True)

    alpha = 1.0 / period
    atr = _seeded_ewm(true_range, period, alpha)
    atr = atr.where(atr != 0)
    plus_di = (100 * _seeded_ewm(plus_dm, period, alpha) / atr).fillna(0.0)
    minus_di = (100 * _seeded_ewm(minus_dm, period, alpha) / atr).fillna(0.0)

    di_sum = plus_di + minus_di
    dx = (100 * (plus_di - minus_di).abs() / di_sum.where(di_sum != 0)).fillna(0.0)
    dx = dx.reset_index(drop=True)
    if len(dx) < period:
        return 25.0

    adx = _seeded_ewm(dx, period, alpha).iloc[-1]
    return float(min(100.0, max(0.0, adx)))


def calculate_obv(closes: pd.Series, volumes: pd.Series) -> float:
    """On-Balance Volume over the whole series, seeded at 0 on the first bar."""
    direction = np.sign(closes.diff().fillna(0.0))
    return float((direction * volumes).sum())


def compute_indicators(
    series: PriceSeries, config: IndicatorConfig | None = None
) -> IndicatorBundle:
    """Compute the full indicator bundle as of the last bar of `series`."""
    if len(series) < MIN_INDICATOR_BARS:
        raise InsufficientDataError("compute_indicators", MIN_INDICATOR_BARS, len(series))

    cfg = config or IndicatorConfig()
    closes = series.closes
    highs = series.highs
    lows = series.lows
    volumes = series.volumes
    last_close = float(closes.iloc[-1])

    sma_short = calculate_sma(closes, cfg.sma_short)
    sma_mid = calculate_sma(closes, cfg.sma_mid)
    sma_long = calculate_sma(closes, cfg.sma_long)
    sma20 = sma_short if sma_short is not None else last_close
    sma50 = sma_mid if sma_mid is not None else last_close
    sma200 = sma_long if sma_long is not None else sma50

    volume_sma = calculate_sma(volumes, cfg.volume_sma)

    bundle = IndicatorBundle(
        rsi=calculate_rsi(closes, cfg.rsi_period),
        macd=calculate_macd(closes, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal),
        sma=MovingAverages(sma20=sma20, sma50=sma50, sma200=sma200),
        ema=ExponentialAverages(
            ema12=calculate_ema(closes, cfg.macd_fast),
            ema26=calculate_ema(closes, cfg.macd_slow),
        ),
        bollinger=calculate_bollinger_bands(closes, cfg.bollinger_period, cfg.bollinger_std),
        stochastic=calculate_stochastic(
            highs, lows, closes, cfg.stochastic_period, cfg.stochastic_smooth
        ),
        adx=calculate_adx(highs, lows, closes, cfg.adx_period),
        obv=calculate_obv(closes, volumes),
        volume_sma=volume_sma if volume_sma is not None else float(volumes.iloc[-1]),
    )
    logger.debug("Computed indicators over %d bars (rsi=%.1f)", len(series), bundle.rsi)
    return bundle


def calculate_support_resistance(series: PriceSeries) -> SupportResistance:
    """Support = lowest low, resistance = highest high over the trailing 50 bars."""
    if len(series) == 0:
        raise InsufficientDataError("calculate_support_resistance", 1, 0)

    recent = series.tail(SUPPORT_RESISTANCE_WINDOW)
    return SupportResistance(
        support=float(recent.lows.min()),
        resistance=float(recent.highs.max()),
    )
