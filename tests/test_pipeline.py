import pytest

from factories import build_series, random_walk_series
from market_scout.analyzers.pipeline import (
    analyze_asset,
    build_asset_analysis,
    price_change_from_series,
)
from market_scout.errors import InsufficientDataError
from market_scout.models.analysis import Asset, Quote
from market_scout.utils.config import AppConfig, DataConfig


class TestPriceChange:
    def test_last_two_bars(self):
        change, pct = price_change_from_series(build_series([100.0, 110.0]))
        assert change == 10.0
        assert pct == pytest.approx(10.0)

    def test_single_bar(self):
        assert price_change_from_series(build_series([100.0])) == (0.0, 0.0)


class TestBuildAssetAnalysis:
    def test_rising_scenario(self, rising_series):
        analysis = build_asset_analysis("AAPL", "Apple Inc.", "us_stock", rising_series)
        assert analysis.trend.direction == "uptrend"
        assert analysis.indicators.obv == 59000
        assert analysis.fundamentals.volume_trend == "stable"
        assert analysis.data_points == 60
        assert analysis.current_price == 159.0
        assert analysis.price_change == 1.0

    def test_quote_overrides_series_price(self, rising_series):
        quote = Quote(symbol="AAPL", price=161.5, change=2.5, change_percent=1.57)
        analysis = build_asset_analysis(
            "AAPL", "Apple Inc.", "us_stock", rising_series, quote=quote
        )
        assert analysis.current_price == 161.5
        assert analysis.price_change_percent == 1.57

    def test_history_window_is_trimmed(self):
        series = random_walk_series(1, n=150)
        config = AppConfig(data=DataConfig(history_window=100))
        analysis = build_asset_analysis("X", "X", "crypto", series, config)
        assert len(analysis.price_history) == 100
        assert analysis.price_history[-1] == series.bars[-1]
        assert analysis.data_points == 150

    def test_short_series_fails_loudly(self):
        with pytest.raises(InsufficientDataError):
            build_asset_analysis("X", "X", "us_stock", build_series([100.0] * 30))


class TestAnalyzeAsset:
    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_scores_in_range(self, seed):
        asset = analyze_asset("X", "X", "us_stock", random_walk_series(seed, n=220))
        assert isinstance(asset, Asset)
        assert 0 <= asset.overall_score <= 100
        assert 0 <= asset.confidence <= 100
        assert asset.recommendation in ("strong_buy", "buy", "hold", "sell", "strong_sell")

    def test_fundamentals_flow_through(self, rising_series):
        asset = analyze_asset(
            "AAPL", "Apple Inc.", "us_stock", rising_series, pe_ratio=8.0, price_to_book=0.8
        )
        assert asset.fundamentals.pe_ratio == 8.0
        assert asset.fundamentals.price_to_book == 0.8

    def test_idempotent(self, rising_series):
        first = analyze_asset("AAPL", "Apple Inc.", "us_stock", rising_series)
        second = analyze_asset("AAPL", "Apple Inc.", "us_stock", rising_series)
        assert first == second
