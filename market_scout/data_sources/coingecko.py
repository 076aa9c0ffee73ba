import threading
import time

import pandas as pd
import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from market_scout.data_sources.bars import frame_to_series
from market_scout.errors import ProviderError
from market_scout.models.analysis import Quote
from market_scout.models.price import PriceSeries
from market_scout.utils.cache import TTLCache
from market_scout.utils.logger import setup_logger

logger = setup_logger(__name__)

SOURCE = "coingecko"
BASE_URL = "https://api.coingecko.com/api/v3"

# Simple rate limiter: track last request time
_last_request_time = 0.0
_min_interval = 2.1  # seconds between requests (30 calls/min = 2s each)
_rate_lock = threading.Lock()

_cache = TTLCache(ttl_seconds=300)


def configure_cache(ttl_seconds: float) -> None:
    _cache.ttl_seconds = ttl_seconds


def _rate_limit() -> None:
    """Enforce rate limiting between requests across worker threads."""
    global _last_request_time
    with _rate_lock:
        now = time.monotonic()
        elapsed = now - _last_request_time
        if elapsed < _min_interval:
            time.sleep(_min_interval - elapsed)
        _last_request_time = time.monotonic()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=2, min=3, max=30),
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    reraise=True,
)
def _get(endpoint: str, params: dict | None = None) -> dict | list:
    """Make a rate-limited GET request to CoinGecko."""
    _rate_limit()
    url = f"{BASE_URL}/{endpoint}"
    resp = requests.get(url, params=params, timeout=15)
    resp.raise_for_status()
    return resp.json()


def _fetch(endpoint: str, coin_id: str, params: dict | None = None) -> dict | list:
    try:
        return _get(endpoint, params=params)
    except (requests.RequestException, ValueError) as e:
        raise ProviderError(SOURCE, coin_id, str(e)) from e


def _daily_volumes(market_chart: dict) -> pd.Series:
    volumes = market_chart.get("total_volumes") or []
    if not volumes:
        return pd.Series(dtype="float64")
    frame = pd.DataFrame(volumes, columns=["timestamp", "volume"])
    days = pd.to_datetime(frame["timestamp"], unit="ms").dt.normalize()
    return frame.groupby(days)["volume"].last()


def _load_price_series(coin_id: str, days: int) -> PriceSeries:
    ohlc = _fetch(f"coins/{coin_id}/ohlc", coin_id, {"vs_currency": "usd", "days": days})
    if not isinstance(ohlc, list) or not ohlc:
        raise ProviderError(SOURCE, coin_id, "no OHLC data returned")

    market_chart = _fetch(
        f"coins/{coin_id}/market_chart",
        coin_id,
        {"vs_currency": "usd", "days": days, "interval": "daily"},
    )
    if not isinstance(market_chart, dict):
        raise ProviderError(SOURCE, coin_id, "malformed market_chart payload")

    candles = pd.DataFrame(ohlc, columns=["timestamp", "open", "high", "low", "close"])
    days_index = pd.to_datetime(candles["timestamp"], unit="ms").dt.normalize()
    bars = candles.groupby(days_index).agg(
        open=("open", "first"),
        high=("high", "max"),
        low=("low", "min"),
        close=("close", "last"),
    )
    bars["volume"] = _daily_volumes(market_chart).reindex(bars.index).fillna(0)

    series = frame_to_series(bars, SOURCE, coin_id)
    if len(series) == 0:
        raise ProviderError(SOURCE, coin_id, "no valid bars in history")

    logger.info("Fetched %d bars for %s", len(series), coin_id, extra={"symbol": coin_id})
    return series


def get_price_series(coin_id: str, days: int = 365) -> PriceSeries:
    """Fetch OHLC candles plus daily volumes and merge them into bars.

    Candles are grouped per calendar day of their close time (first open,
    highest high, lowest low, last close). CoinGecko sizes candles by the
    requested range: 30 minutes up to 2 days, 4 hours up to 30 days and
    4 days beyond that. With the default 365 days each bar therefore
    spans four days, and its volume is the single-day volume of the day
    the candle closes on. Days without a volume point get volume 0.
    """
    return _cache.get_or_fetch(
        f"history:{coin_id}:{days}", lambda: _load_price_series(coin_id, days)
    )


def resolve_coin_id(symbol: str) -> str:
    """Map a ticker such as BTC to a CoinGecko id such as bitcoin.

    Takes the first listed coin with that ticker. Falls back to the
    lower-cased symbol when the coin list is unavailable or has no match.
    """
    wanted = symbol.strip().lower()
    try:
        coins = _cache.get_or_fetch("coins:list", lambda: _fetch("coins/list", wanted))
    except ProviderError as e:
        logger.warning("Coin list unavailable: %s", e, extra={"symbol": symbol, "source": SOURCE})
        return wanted

    if isinstance(coins, list):
        for coin in coins:
            if str(coin.get("symbol", "")).lower() == wanted and coin.get("id"):
                return coin["id"]
    logger.warning("No CoinGecko id for %s, using it as the id", symbol, extra={"symbol": symbol})
    return wanted


def get_quote(coin_id: str) -> Quote:
    """Current USD price and 24h change."""
    data = _fetch(
        "simple/price",
        coin_id,
        {"ids": coin_id, "vs_currencies": "usd", "include_24hr_change": "true"},
    )
    item = data.get(coin_id) if isinstance(data, dict) else None
    if not item or not item.get("usd"):
        raise ProviderError(SOURCE, coin_id, "no price in response")

    price = float(item["usd"])
    change_percent = float(item.get("usd_24h_change") or 0.0)
    previous = price / (1 + change_percent / 100) if change_percent > -100 else price
    return Quote(
        symbol=coin_id.upper(),
        price=price,
        change=round(price - previous, 8),
        change_percent=round(change_percent, 2),
    )
