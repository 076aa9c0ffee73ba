import pandas as pd
import yfinance as yf
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from market_scout.data_sources.bars import frame_to_series
from market_scout.errors import ProviderError
from market_scout.models.analysis import AssetClass, Quote
from market_scout.models.price import PriceSeries
from market_scout.utils.cache import TTLCache
from market_scout.utils.logger import setup_logger

logger = setup_logger(__name__)

SOURCE = "yahoo_finance"
INDIAN_SUFFIXES = (".NS", ".BO")

_cache = TTLCache(ttl_seconds=300)


def configure_cache(ttl_seconds: float) -> None:
    _cache.ttl_seconds = ttl_seconds


def normalize_symbol(symbol: str, asset_class: AssetClass = "us_stock") -> str:
    """Indian tickers default to the NSE listing (RELIANCE -> RELIANCE.NS)."""
    symbol = symbol.strip().upper()
    if asset_class == "indian_stock" and not symbol.endswith(INDIAN_SUFFIXES):
        return f"{symbol}.NS"
    return symbol


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((ConnectionError, TimeoutError)),
    reraise=True,
)
def _download_history(symbol: str, period: str) -> pd.DataFrame:
    return yf.Ticker(symbol).history(period=period, interval="1d", auto_adjust=False)


def get_price_series(
    symbol: str,
    asset_class: AssetClass = "us_stock",
    period: str = "1y",
) -> PriceSeries:
    """Fetch daily OHLCV history as a validated PriceSeries."""
    yf_symbol = normalize_symbol(symbol, asset_class)

    def _load() -> PriceSeries:
        try:
            df = _download_history(yf_symbol, period)
        except Exception as e:
            raise ProviderError(SOURCE, yf_symbol, str(e)) from e

        if df is None or df.empty:
            raise ProviderError(SOURCE, yf_symbol, "empty history")

        series = frame_to_series(df.rename(columns=str.lower), SOURCE, yf_symbol)
        if len(series) == 0:
            raise ProviderError(SOURCE, yf_symbol, "no valid bars in history")

        logger.info(
            "Fetched %d bars for %s", len(series), yf_symbol, extra={"symbol": yf_symbol}
        )
        return series

    return _cache.get_or_fetch(f"history:{yf_symbol}:{period}", _load)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((ConnectionError, TimeoutError)),
    reraise=True,
)
def _fetch_fast_info(yf_symbol: str) -> tuple[float | None, float | None]:
    info = yf.Ticker(yf_symbol).fast_info
    return info.last_price, info.previous_close


def get_quote(symbol: str, asset_class: AssetClass = "us_stock") -> Quote:
    """Fetch the current price and change versus the previous close.

    Network errors are retried; once retries run out they surface as
    ProviderError like every other quote failure.
    """
    yf_symbol = normalize_symbol(symbol, asset_class)
    try:
        price, prev_close = _fetch_fast_info(yf_symbol)
    except Exception as e:
        raise ProviderError(SOURCE, yf_symbol, str(e) or type(e).__name__) from e

    if price is None or prev_close is None or price <= 0 or prev_close <= 0:
        raise ProviderError(SOURCE, yf_symbol, "invalid quote data")

    change = price - prev_close
    return Quote(
        symbol=yf_symbol,
        price=round(price, 4),
        change=round(change, 4),
        change_percent=round(change / prev_close * 100, 2),
    )


def get_fundamentals(symbol: str, asset_class: AssetClass = "us_stock") -> dict[str, float | None]:
    """Best-effort valuation figures; an empty dict when the provider has none."""
    yf_symbol = normalize_symbol(symbol, asset_class)

    def _load() -> dict[str, float | None]:
        info = yf.Ticker(yf_symbol).info or {}
        return {
            "market_cap": _as_float(info.get("marketCap")),
            "pe_ratio": _as_float(info.get("trailingPE")),
            "price_to_book": _as_float(info.get("priceToBook")),
        }

    # Failures are not cached, the next run asks again
    try:
        return _cache.get_or_fetch(f"fundamentals:{yf_symbol}", _load)
    except Exception as e:
        logger.warning(
            "Fundamentals unavailable for %s: %s", yf_symbol, e, extra={"symbol": yf_symbol}
        )
        return {}


def _as_float(value) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
