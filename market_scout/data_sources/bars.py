import pandas as pd

from market_scout.errors import ProviderError
from market_scout.models.price import PriceBar, PriceSeries
from market_scout.utils.logger import setup_logger

logger = setup_logger(__name__)

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]


def _is_valid_row(row: pd.Series) -> bool:
    if row[["open", "high", "low", "close"]].isna().any():
        return False
    if row["close"] <= 0 or row["low"] < 0:
        return False
    body_low = min(row["open"], row["close"])
    body_high = max(row["open"], row["close"])
    return bool(row["low"] <= body_low and body_high <= row["high"])


def frame_to_series(df: pd.DataFrame, source: str, identifier: str) -> PriceSeries:
    """Turn a provider DataFrame into a validated daily PriceSeries.

    Expects a datetime-like index and lower-case OHLCV columns. Rows that
    break bar invariants are dropped; duplicate days keep the last row.
    """
    missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
    if missing:
        raise ProviderError(source, identifier, f"missing columns {missing}")

    frame = df[OHLCV_COLUMNS].copy()
    if frame.empty:
        return PriceSeries()

    frame["volume"] = frame["volume"].fillna(0).clip(lower=0)
    valid = frame.apply(_is_valid_row, axis=1).astype(bool)
    dropped = int((~valid).sum())
    if dropped:
        logger.warning(
            "Dropped %d invalid bars for %s", dropped, identifier,
            extra={"symbol": identifier, "source": source},
        )
    frame = frame[valid]

    frame.index = pd.DatetimeIndex(frame.index).date
    frame = frame[~frame.index.duplicated(keep="last")].sort_index()

    bars = [
        PriceBar(
            date=day,
            open=float(row["open"]),
            high=float(row["high"]),
            low=float(row["low"]),
            close=float(row["close"]),
            volume=int(row["volume"]),
        )
        for day, row in frame.iterrows()
    ]
    return PriceSeries(bars=bars)
