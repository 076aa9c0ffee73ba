import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

from market_scout.utils.logger import setup_logger

logger = setup_logger(__name__)

CONFIG_ENV_VAR = "MARKET_SCOUT_CONFIG"


class IndicatorConfig(BaseModel):
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    sma_short: int = 20
    sma_mid: int = 50
    sma_long: int = 200
    volume_sma: int = 20
    bollinger_period: int = 20
    bollinger_std: float = 2.0
    stochastic_period: int = 14
    stochastic_smooth: int = 3
    adx_period: int = 14


class MomentumWeights(BaseModel):
    """Weights of the technical sub-scores and of the final momentum blend."""

    rsi: float = 0.15
    macd: float = 0.20
    sma: float = 0.20
    bollinger: float = 0.10
    stochastic: float = 0.10
    adx: float = 0.10
    volume: float = 0.15

    technical: float = 0.60
    short_term: float = 0.25
    long_term: float = 0.15

    short_term_days: int = 20
    long_term_days: int = 50
    short_term_multiplier: float = 5.0
    long_term_multiplier: float = 2.0
    volume_window: int = 5

    @model_validator(mode="after")
    def check_weights(self) -> "MomentumWeights":
        technical_sum = (
            self.rsi + self.macd + self.sma + self.bollinger
            + self.stochastic + self.adx + self.volume
        )
        if abs(technical_sum - 1.0) > 1e-6:
            raise ValueError(f"Technical weights must sum to 1, got {technical_sum:.3f}")
        blend_sum = self.technical + self.short_term + self.long_term
        if abs(blend_sum - 1.0) > 1e-6:
            raise ValueError(f"Momentum blend weights must sum to 1, got {blend_sum:.3f}")
        return self


class ScoreWeights(BaseModel):
    momentum: float = 0.5
    trend: float = 0.3
    fundamental: float = 0.2

    @model_validator(mode="after")
    def check_sum(self) -> "ScoreWeights":
        total = self.momentum + self.trend + self.fundamental
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Score weights must sum to 1, got {total:.3f}")
        return self


class RecommendationThresholds(BaseModel):
    strong_buy: float = 70
    buy: float = 55
    sell: float = 45
    strong_sell: float = 30
    strong_confidence: float = 60
    min_confidence: float = 35


class ConfidenceConfig(BaseModel):
    bullish_above: float = 55
    bearish_below: float = 45
    agreement_weight: float = 0.7
    sufficiency_weight: float = 0.3
    ideal_bars: int = 200


class ScoringConfig(BaseModel):
    weights: ScoreWeights = Field(default_factory=ScoreWeights)
    thresholds: RecommendationThresholds = Field(default_factory=RecommendationThresholds)
    confidence: ConfidenceConfig = Field(default_factory=ConfidenceConfig)
    crossover_bonus: float = 5.0
    reversal_penalty: float = 5.0
    rsi_overbought: float = 70
    rsi_oversold: float = 30


class PolicyConfig(BaseModel):
    min_confidence: float = Field(default=0, ge=0, le=100)
    max_results_per_class: int = Field(default=10, ge=1)
    max_results: int = Field(default=20, ge=1)


class DataConfig(BaseModel):
    cache_ttl_seconds: float = Field(default=300, gt=0)
    history_period: str = "1y"
    crypto_days: int = 365
    history_window: int = 100
    max_concurrency: int = Field(default=4, ge=1)


class WatchlistEntry(BaseModel):
    symbol: str
    name: str
    id: str | None = None  # provider id, e.g. CoinGecko "bitcoin"

    @property
    def provider_id(self) -> str:
        return self.id or self.symbol


class Watchlists(BaseModel):
    us_stock: list[WatchlistEntry] = Field(default_factory=list)
    indian_stock: list[WatchlistEntry] = Field(default_factory=list)
    crypto: list[WatchlistEntry] = Field(default_factory=list)


class AppConfig(BaseModel):
    watchlists: Watchlists = Field(default_factory=Watchlists)
    indicators: IndicatorConfig = Field(default_factory=IndicatorConfig)
    momentum: MomentumWeights = Field(default_factory=MomentumWeights)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    data: DataConfig = Field(default_factory=DataConfig)


def load_config(config_path: str | None = None) -> AppConfig:
    """Load config from a YAML file.

    Args:
        config_path: Path to YAML config. Defaults to $MARKET_SCOUT_CONFIG,
                     then config/config.yaml, falling back to
                     config/config.example.yaml.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR)
    if config_path is None:
        project_root = Path(__file__).parent.parent.parent
        config_path = str(project_root / "config" / "config.yaml")
        if not Path(config_path).exists():
            config_path = str(project_root / "config" / "config.example.yaml")
            logger.info("Using config.example.yaml (no config.yaml found)")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    config = AppConfig(**raw)
    logger.info(
        "Config loaded: %d US, %d Indian, %d crypto watchlist items",
        len(config.watchlists.us_stock),
        len(config.watchlists.indian_stock),
        len(config.watchlists.crypto),
    )
    return config
