import pandas as pd
import pytest

from factories import build_series, random_walk_series
from market_scout.analyzers.technical import (
    calculate_adx,
    calculate_bollinger_bands,
    calculate_ema,
    calculate_macd,
    calculate_obv,
    calculate_rsi,
    calculate_sma,
    calculate_stochastic,
    calculate_support_resistance,
    compute_indicators,
)
from market_scout.errors import InsufficientDataError
from market_scout.models.price import PriceSeries


@pytest.fixture
def uptrend_closes():
    """Steadily rising prices, RSI should be above 50."""
    return pd.Series([100 + i * 0.5 for i in range(60)])


@pytest.fixture
def downtrend_closes():
    """Steadily falling prices, RSI should be below 50."""
    return pd.Series([130 - i * 0.5 for i in range(60)])


class TestRSI:
    def test_all_gains_rsi_100(self, uptrend_closes):
        assert calculate_rsi(uptrend_closes, period=14) == 100.0

    def test_all_losses_rsi_0(self, downtrend_closes):
        assert calculate_rsi(downtrend_closes, period=14) == 0.0

    def test_losing_streak_approaches_zero(self):
        rising = [200 + i * 0.5 for i in range(45)]
        losing = [rising[-1] - 5 * (i + 1) for i in range(15)]
        rsi = calculate_rsi(pd.Series(rising + losing), period=14)
        assert 0 <= rsi < 10

    def test_insufficient_data_is_neutral(self):
        assert calculate_rsi(pd.Series([100.0, 101.0, 102.0]), period=14) == 50.0

    def test_flat_prices_neutral(self):
        assert calculate_rsi(pd.Series([100.0] * 30)) == 50.0

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_rsi_bounds_on_random_walk(self, seed):
        rsi = calculate_rsi(random_walk_series(seed).closes)
        assert 0 <= rsi <= 100


class TestSMA:
    def test_sma_correct_value(self):
        closes = pd.Series([10.0, 20.0, 30.0, 40.0, 50.0])
        assert calculate_sma(closes, period=5) == 30.0

    def test_sma_uses_trailing_window(self):
        closes = pd.Series([1000.0, 10.0, 20.0, 30.0])
        assert calculate_sma(closes, period=3) == 20.0

    def test_sma_insufficient_data(self):
        assert calculate_sma(pd.Series([10.0, 20.0]), period=5) is None


class TestEMA:
    def test_seeded_with_simple_mean(self):
        # seed = mean(1, 2, 3) = 2, alpha = 0.5 -> 3 -> 4
        closes = pd.Series([1.0, 2.0, 3.0, 4.0, 5.0])
        assert calculate_ema(closes, period=3) == pytest.approx(4.0)

    def test_short_series_returns_last_close(self):
        closes = pd.Series([10.0, 20.0])
        assert calculate_ema(closes, period=5) == 20.0


class TestMACD:
    def test_macd_uptrend_positive(self, uptrend_closes):
        macd = calculate_macd(uptrend_closes)
        assert macd.line > 0
        assert macd.histogram == pytest.approx(macd.line - macd.signal)

    def test_macd_insufficient_data(self):
        macd = calculate_macd(pd.Series([100.0] * 10))
        assert (macd.line, macd.signal, macd.histogram) == (0.0, 0.0, 0.0)

    def test_macd_linear_trend_line_value(self, uptrend_closes):
        # EMA lag on a linear trend is (period - 1) / 2 bars
        macd = calculate_macd(uptrend_closes)
        assert macd.line == pytest.approx((12.5 - 5.5) * 0.5)


class TestBollingerBands:
    def test_population_std(self):
        closes = pd.Series([float(i) for i in range(1, 21)])
        bands = calculate_bollinger_bands(closes)
        assert bands.middle == pytest.approx(10.5)
        assert bands.upper == pytest.approx(10.5 + 2 * 33.25 ** 0.5)
        assert bands.lower == pytest.approx(10.5 - 2 * 33.25 ** 0.5)

    def test_flat_prices_collapse(self):
        bands = calculate_bollinger_bands(pd.Series([50.0] * 25))
        assert bands.upper == bands.middle == bands.lower == 50.0


class TestStochastic:
    def test_rising_closes_near_top_of_range(self, rising_series):
        stoch = calculate_stochastic(
            rising_series.highs, rising_series.lows, rising_series.closes
        )
        assert stoch.k == pytest.approx(14 / 15 * 100)
        assert stoch.d == pytest.approx(14 / 15 * 100)

    def test_defaults_without_data(self):
        short = build_series([100.0, 101.0])
        stoch = calculate_stochastic(short.highs, short.lows, short.closes)
        assert (stoch.k, stoch.d) == (50.0, 50.0)


class TestADX:
    def test_strong_steady_trend(self, rising_series):
        adx = calculate_adx(rising_series.highs, rising_series.lows, rising_series.closes)
        assert adx == pytest.approx(100.0)

    def test_flat_prices_no_trend(self, flat_series):
        adx = calculate_adx(flat_series.highs, flat_series.lows, flat_series.closes)
        assert adx == 0.0

    def test_defaults_without_data(self):
        short = build_series([100.0 + i for i in range(20)])
        assert calculate_adx(short.highs, short.lows, short.closes) == 25.0


class TestOBV:
    def test_rising_closes_sum_volumes(self, rising_series):
        obv = calculate_obv(rising_series.closes, rising_series.volumes)
        assert obv == 59 * 1000

    def test_signed_by_direction(self):
        closes = pd.Series([10.0, 11.0, 10.5, 10.5, 12.0])
        volumes = pd.Series([100.0, 200.0, 300.0, 400.0, 500.0])
        assert calculate_obv(closes, volumes) == 200 - 300 + 500


class TestComputeIndicators:
    def test_requires_fifty_bars(self):
        with pytest.raises(InsufficientDataError):
            compute_indicators(build_series([100.0 + i for i in range(49)]))

    def test_fifty_bars_fall_back_for_sma200(self):
        bundle = compute_indicators(build_series([100.0 + i for i in range(50)]))
        assert bundle.sma.sma200 == bundle.sma.sma50
        assert bundle.sma.sma50 == pytest.approx(124.5)

    def test_rising_scenario(self, rising_series):
        bundle = compute_indicators(rising_series)
        assert bundle.obv == 59000
        assert bundle.rsi == 100.0
        assert bundle.sma.sma20 == pytest.approx(149.5)
        assert bundle.volume_sma == 1000.0

    @pytest.mark.parametrize("seed", [3, 11, 2024])
    def test_oscillators_in_range(self, seed):
        bundle = compute_indicators(random_walk_series(seed, n=250))
        assert 0 <= bundle.rsi <= 100
        assert 0 <= bundle.stochastic.k <= 100
        assert 0 <= bundle.stochastic.d <= 100
        assert bundle.sma.sma200 != bundle.sma.sma50

    def test_idempotent(self):
        series = random_walk_series(5)
        assert compute_indicators(series) == compute_indicators(series)


class TestSupportResistance:
    def test_trailing_window(self):
        closes = [500.0] + [100.0 + i for i in range(50)]
        levels = calculate_support_resistance(build_series(closes))
        # The 500 bar falls outside the trailing 50 bars
        assert levels.support == 99.0
        assert levels.resistance == 150.0

    def test_short_series_uses_all_bars(self):
        levels = calculate_support_resistance(build_series([10.0, 12.0, 11.0]))
        assert (levels.support, levels.resistance) == (9.0, 13.0)

    def test_empty_series_raises(self):
        with pytest.raises(InsufficientDataError):
            calculate_support_resistance(PriceSeries())
