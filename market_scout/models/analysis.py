from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from market_scout.models.price import PriceBar

AssetClass = Literal["us_stock", "indian_stock", "crypto"]
TrendDirection = Literal["uptrend", "downtrend", "sideways"]
Crossover = Literal["bullish", "bearish", "none"]
VolumeTrend = Literal["increasing", "decreasing", "stable"]
RecommendationLabel = Literal["strong_buy", "buy", "hold", "sell", "strong_sell"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class MACD(_Frozen):
    line: float = 0.0
    signal: float = 0.0
    histogram: float = 0.0


class MovingAverages(_Frozen):
    sma20: float
    sma50: float
    sma200: float


class ExponentialAverages(_Frozen):
    ema12: float
    ema26: float


class BollingerBands(_Frozen):
    upper: float
    middle: float
    lower: float


class Stochastic(_Frozen):
    k: float = Field(default=50.0, ge=0, le=100)
    d: float = Field(default=50.0, ge=0, le=100)


class IndicatorBundle(_Frozen):
    """Indicator values as of the last bar of a series."""

    rsi: float = Field(ge=0, le=100)
    macd: MACD
    sma: MovingAverages
    ema: ExponentialAverages
    bollinger: BollingerBands
    stochastic: Stochastic
    adx: float
    obv: float
    volume_sma: float


class SupportResistance(_Frozen):
    support: float
    resistance: float


class TrendAnalysis(_Frozen):
    direction: TrendDirection
    strength: float = Field(ge=0, le=100)
    reversal_signal: bool = False
    moving_average_crossover: Crossover = "none"


class MomentumBreakdown(_Frozen):
    technical: float = Field(ge=0, le=100)
    trend: float = Field(ge=0, le=100)
    volume: float = Field(ge=0, le=100)


class MomentumScore(_Frozen):
    score: float = Field(ge=0, le=100)
    short_term: float = Field(ge=0, le=100)
    long_term: float = Field(ge=0, le=100)
    breakdown: MomentumBreakdown


class FundamentalData(_Frozen):
    pe_ratio: float | None = None
    market_cap: float | None = None
    price_to_book: float | None = None
    volume_trend: VolumeTrend = "stable"
    average_volume: float = Field(default=0.0, ge=0)


class Quote(_Frozen):
    symbol: str
    price: float = Field(gt=0)
    change: float = 0.0
    change_percent: float = 0.0


class AssetAnalysis(_Frozen):
    """Every independent analysis of one instrument, before scoring."""

    symbol: str
    name: str
    asset_class: AssetClass
    current_price: float = Field(gt=0)
    price_change: float
    price_change_percent: float
    price_history: list[PriceBar] = []
    data_points: int = Field(ge=0)
    indicators: IndicatorBundle
    support_resistance: SupportResistance
    fundamentals: FundamentalData
    trend: TrendAnalysis
    momentum: MomentumScore


class Asset(AssetAnalysis):
    overall_score: float = Field(ge=0, le=100)
    confidence: float = Field(ge=0, le=100)
    recommendation: RecommendationLabel


class KeyMetric(_Frozen):
    label: str
    value: str | float


class Recommendation(_Frozen):
    asset: Asset
    reasoning: list[str] = []
    key_metrics: list[KeyMetric] = []


class RecommendationReport(_Frozen):
    timestamp: datetime
    status: Literal["ok", "empty_watchlist", "all_failed"]
    recommendations: list[Recommendation] = []
    total_symbols: int = 0
    successful_symbols: int = 0
    filtered_out: int = 0
    errors: list[str] = []
