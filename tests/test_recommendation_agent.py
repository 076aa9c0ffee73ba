from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from factories import TimingOutFastInfo, random_walk_series
from market_scout.agents.recommendation_agent import (
    analyze_symbol,
    resolve_entry,
    run,
    run_symbol,
)
from market_scout.data_sources import yahoo_finance
from market_scout.errors import ProviderError
from market_scout.models.analysis import Quote
from market_scout.utils.cache import TTLCache
from market_scout.utils.config import AppConfig, PolicyConfig, WatchlistEntry, Watchlists

AGENT = "market_scout.agents.recommendation_agent"


@pytest.fixture
def config():
    return AppConfig(
        watchlists=Watchlists(
            us_stock=[
                WatchlistEntry(symbol="AAPL", name="Apple Inc."),
                WatchlistEntry(symbol="MSFT", name="Microsoft Corporation"),
            ],
            indian_stock=[WatchlistEntry(symbol="TCS", name="Tata Consultancy Services")],
            crypto=[WatchlistEntry(symbol="BTC", name="Bitcoin", id="bitcoin")],
        )
    )


@pytest.fixture
def mock_yf():
    with patch(f"{AGENT}.yahoo_finance") as mock:
        mock.get_price_series.return_value = random_walk_series(1, n=220)
        mock.get_quote.return_value = Quote(
            symbol="AAPL", price=120.0, change=1.2, change_percent=1.01
        )
        mock.get_fundamentals.return_value = {"pe_ratio": 12.0}
        yield mock


@pytest.fixture
def mock_cg():
    with patch(f"{AGENT}.coingecko") as mock:
        mock.get_price_series.return_value = random_walk_series(2, n=220)
        mock.get_quote.return_value = Quote(
            symbol="BITCOIN", price=65_000.0, change=500.0, change_percent=0.78
        )
        yield mock


class TestAnalyzeSymbol:
    def test_stock_uses_yahoo(self, mock_yf, config):
        entry = config.watchlists.indian_stock[0]
        asset = analyze_symbol(entry, "indian_stock", config)
        mock_yf.get_price_series.assert_called_once_with("TCS", "indian_stock", period="1y")
        assert asset.symbol == "TCS"
        assert asset.current_price == 120.0
        assert asset.fundamentals.pe_ratio == 12.0

    def test_crypto_uses_coingecko_id(self, mock_cg, config):
        entry = config.watchlists.crypto[0]
        asset = analyze_symbol(entry, "crypto", config)
        mock_cg.get_price_series.assert_called_once_with("bitcoin", days=365)
        assert asset.symbol == "BTC"
        assert asset.asset_class == "crypto"
        assert asset.fundamentals.pe_ratio is None

    def test_quote_failure_falls_back_to_history(self, mock_yf, config):
        mock_yf.get_quote.side_effect = ProviderError("yahoo_finance", "AAPL", "timeout")
        series = mock_yf.get_price_series.return_value
        asset = analyze_symbol(config.watchlists.us_stock[0], "us_stock", config)
        assert asset.current_price == series.last_close

    def test_quote_timeout_falls_back_to_history(self, monkeypatch, no_retry_wait, config):
        series = random_walk_series(4, n=220)
        history = pd.DataFrame(
            [[b.open, b.high, b.low, b.close, b.volume] for b in series.bars],
            columns=["Open", "High", "Low", "Close", "Volume"],
            index=pd.DatetimeIndex([b.date for b in series.bars]),
        )
        ticker = SimpleNamespace(fast_info=TimingOutFastInfo(), info={})
        monkeypatch.setattr(yahoo_finance, "_cache", TTLCache())
        monkeypatch.setattr(yahoo_finance, "_download_history", MagicMock(return_value=history))
        fake_yf = SimpleNamespace(Ticker=MagicMock(return_value=ticker))
        monkeypatch.setattr(yahoo_finance, "yf", fake_yf)

        asset = analyze_symbol(config.watchlists.us_stock[0], "us_stock", config)
        assert asset.current_price == series.last_close
        assert asset.price_change == pytest.approx(series.bars[-1].close - series.bars[-2].close)

    def test_history_failure_propagates(self, mock_yf, config):
        mock_yf.get_price_series.side_effect = ProviderError(
            "yahoo_finance", "AAPL", "empty history"
        )
        with pytest.raises(ProviderError):
            analyze_symbol(config.watchlists.us_stock[0], "us_stock", config)


class TestRecommendationAgentRun:
    async def test_ranks_all_classes(self, mock_yf, mock_cg, config):
        report = await run(config=config)
        assert report.status == "ok"
        assert report.total_symbols == 4
        assert report.successful_symbols == 4
        assert report.errors == []
        scores = [r.asset.overall_score for r in report.recommendations]
        assert scores == sorted(scores, reverse=True)
        mock_yf.configure_cache.assert_called_once_with(300)

    async def test_single_asset_class(self, mock_yf, mock_cg, config):
        report = await run(asset_class="crypto", config=config)
        assert report.total_symbols == 1
        assert [r.asset.symbol for r in report.recommendations] == ["BTC"]
        mock_yf.get_price_series.assert_not_called()

    async def test_partial_failure(self, mock_yf, mock_cg, config):
        mock_cg.get_price_series.side_effect = ProviderError("coingecko", "bitcoin", "rate limited")
        report = await run(config=config)
        assert report.status == "ok"
        assert report.successful_symbols == 3
        assert len(report.errors) == 1
        assert report.errors[0].startswith("BTC:")
        assert "BTC" not in [r.asset.symbol for r in report.recommendations]

    async def test_unexpected_exception_is_isolated(self, mock_yf, mock_cg, config):
        def flaky(symbol, asset_class, period="1y"):
            if symbol == "MSFT":
                raise ValueError("malformed payload")
            return random_walk_series(3, n=220)

        mock_yf.get_price_series.side_effect = flaky
        report = await run(asset_class="us_stock", config=config)
        assert report.status == "ok"
        assert [r.asset.symbol for r in report.recommendations] == ["AAPL"]
        assert report.errors == ["MSFT: malformed payload"]

    async def test_all_failed(self, mock_yf, mock_cg, config):
        mock_yf.get_price_series.side_effect = ProviderError("yahoo_finance", "X", "down")
        mock_cg.get_price_series.side_effect = ProviderError("coingecko", "X", "down")
        report = await run(config=config)
        assert report.status == "all_failed"
        assert report.recommendations == []
        assert len(report.errors) == 4

    async def test_empty_watchlist(self, mock_yf, mock_cg):
        report = await run(config=AppConfig())
        assert report.status == "empty_watchlist"
        assert report.total_symbols == 0
        mock_yf.get_price_series.assert_not_called()

    async def test_loads_config_when_missing(self, mock_yf, mock_cg, config):
        with patch(f"{AGENT}.load_config", MagicMock(return_value=config)) as mock_load:
            report = await run(asset_class="indian_stock")
        mock_load.assert_called_once()
        assert report.total_symbols == 1


class TestOnDemandSymbol:
    def test_watchlist_entry_is_reused(self, mock_cg, config):
        entry = resolve_entry("btc", "crypto", config)
        assert entry.provider_id == "bitcoin"
        mock_cg.resolve_coin_id.assert_not_called()

    def test_unknown_crypto_resolves_coin_id(self, mock_cg, config):
        mock_cg.resolve_coin_id.return_value = "dogecoin"
        entry = resolve_entry("doge", "crypto", config)
        assert entry.symbol == "DOGE"
        assert entry.provider_id == "dogecoin"

    def test_unknown_stock_uses_symbol(self, mock_cg, config):
        entry = resolve_entry("infy", "indian_stock", config)
        assert entry.provider_id == "INFY"
        mock_cg.resolve_coin_id.assert_not_called()

    async def test_run_symbol(self, mock_yf, mock_cg, config):
        mock_cg.resolve_coin_id.return_value = "dogecoin"
        report = await run_symbol("DOGE", "crypto", config)
        assert report.status == "ok"
        assert report.total_symbols == 1
        assert report.recommendations[0].asset.symbol == "DOGE"
        mock_cg.get_price_series.assert_called_once_with("dogecoin", days=365)

    async def test_run_symbol_ignores_ranking_policy(self, mock_yf, mock_cg, config):
        strict = AppConfig(watchlists=config.watchlists, policy=PolicyConfig(min_confidence=100))
        report = await run_symbol("NFLX", "us_stock", strict)
        assert [r.asset.symbol for r in report.recommendations] == ["NFLX"]

    async def test_run_symbol_failure(self, mock_yf, mock_cg, config):
        mock_yf.get_price_series.side_effect = ProviderError(
            "yahoo_finance", "ZZZZ", "empty history"
        )
        report = await run_symbol("zzzz", "us_stock", config)
        assert report.status == "all_failed"
        assert report.errors == ["ZZZZ: yahoo_finance failed for ZZZZ: empty history"]
