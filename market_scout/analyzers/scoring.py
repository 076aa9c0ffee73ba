from collections import defaultdict

from market_scout.analyzers.fundamentals import calculate_fundamental_score
from market_scout.models.analysis import (
    Asset,
    AssetAnalysis,
    KeyMetric,
    Recommendation,
    RecommendationLabel,
)
from market_scout.utils.config import PolicyConfig, RecommendationThresholds, ScoringConfig
from market_scout.utils.logger import setup_logger

logger = setup_logger(__name__)

LONG_AVERAGE_BARS = 200


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def trend_component(analysis: AssetAnalysis, config: ScoringConfig) -> float:
    """Map the trend analysis onto 0-100 with 50 meaning no directional bias."""
    trend = analysis.trend
    if trend.direction == "uptrend":
        value = 50 + trend.strength / 2
    elif trend.direction == "downtrend":
        value = 50 - trend.strength / 2
    else:
        value = 50.0

    if trend.moving_average_crossover == "bullish":
        value += config.crossover_bonus
    elif trend.moving_average_crossover == "bearish":
        value -= config.crossover_bonus

    if trend.reversal_signal:
        # Pull toward neutral, never past it
        if value > 50:
            value = max(50.0, value - config.reversal_penalty)
        elif value < 50:
            value = min(50.0, value + config.reversal_penalty)

    return _clamp(value)


def calculate_overall_score(analysis: AssetAnalysis, config: ScoringConfig) -> float:
    w = config.weights
    score = (
        analysis.momentum.score * w.momentum
        + trend_component(analysis, config) * w.trend
        + calculate_fundamental_score(analysis.fundamentals) * w.fundamental
    )
    return _clamp(score)


def calculate_confidence(analysis: AssetAnalysis, config: ScoringConfig) -> float:
    """Confidence from agreement between sub-analyses and history length.

    Momentum, trend and fundamentals each vote bullish, bearish or neutral;
    agreement is the share of votes held by the most common side.
    """
    cfg = config.confidence
    signals = [
        analysis.momentum.score,
        trend_component(analysis, config),
        calculate_fundamental_score(analysis.fundamentals),
    ]
    votes = {"bullish": 0, "bearish": 0, "neutral": 0}
    for value in signals:
        if value > cfg.bullish_above:
            votes["bullish"] += 1
        elif value < cfg.bearish_below:
            votes["bearish"] += 1
        else:
            votes["neutral"] += 1

    agreement = max(votes.values()) / len(signals)
    sufficiency = min(1.0, analysis.data_points / cfg.ideal_bars)
    confidence = 100 * (cfg.agreement_weight * agreement + cfg.sufficiency_weight * sufficiency)
    return _clamp(confidence)


def get_recommendation(
    score: float,
    confidence: float,
    thresholds: RecommendationThresholds | None = None,
) -> RecommendationLabel:
    """Threshold the overall score; low confidence pulls labels toward hold."""
    t = thresholds or RecommendationThresholds()

    if score >= t.strong_buy:
        label = "strong_buy" if confidence >= t.strong_confidence else "buy"
    elif score >= t.buy:
        label = "buy"
    elif score <= t.strong_sell:
        label = "strong_sell" if confidence >= t.strong_confidence else "sell"
    elif score < t.sell:
        label = "sell"
    else:
        label = "hold"

    if label != "hold" and confidence < t.min_confidence:
        return "hold"
    return label


def score_asset(analysis: AssetAnalysis, config: ScoringConfig | None = None) -> Asset:
    """Fold the independent analyses into a final, immutable Asset."""
    cfg = config or ScoringConfig()
    overall = calculate_overall_score(analysis, cfg)
    confidence = calculate_confidence(analysis, cfg)
    recommendation = get_recommendation(overall, confidence, cfg.thresholds)

    logger.info(
        "Scored %s: %.1f (confidence %.1f) -> %s",
        analysis.symbol,
        overall,
        confidence,
        recommendation,
        extra={"symbol": analysis.symbol, "asset_class": analysis.asset_class},
    )
    return Asset(
        **dict(analysis),
        overall_score=overall,
        confidence=confidence,
        recommendation=recommendation,
    )


def generate_reasoning(asset: Asset, config: ScoringConfig | None = None) -> list[str]:
    """Short facts about the asset, most important signal first."""
    cfg = config or ScoringConfig()
    ind = asset.indicators
    trend = asset.trend
    reasons: list[str] = []

    if trend.direction == "uptrend":
        reasons.append(
            f"Uptrend (strength {trend.strength:.0f}/100): "
            "price above rising 20/50/200-day averages"
        )
    elif trend.direction == "downtrend":
        reasons.append(
            f"Downtrend (strength {trend.strength:.0f}/100): "
            "price below falling 20/50/200-day averages"
        )
    else:
        reasons.append("No clear trend: moving averages are not aligned")

    if trend.moving_average_crossover == "bullish":
        reasons.append("Bullish crossover: EMA12 moved above EMA26 on the latest session")
    elif trend.moving_average_crossover == "bearish":
        reasons.append("Bearish crossover: EMA12 moved below EMA26 on the latest session")

    if trend.reversal_signal:
        reasons.append("Possible reversal: RSI at an extreme while MACD momentum disagrees")

    momentum = asset.momentum.score
    if momentum >= 65:
        reasons.append(f"Strong momentum (score {momentum:.0f})")
    elif momentum <= 35:
        reasons.append(f"Weak momentum (score {momentum:.0f})")
    else:
        reasons.append(f"Moderate momentum (score {momentum:.0f})")

    if ind.rsi > cfg.rsi_overbought:
        reasons.append(f"RSI {ind.rsi:.1f} is overbought")
    elif ind.rsi < cfg.rsi_oversold:
        reasons.append(f"RSI {ind.rsi:.1f} is oversold")
    else:
        reasons.append(f"RSI {ind.rsi:.1f} in neutral range")

    if ind.macd.line > ind.macd.signal:
        reasons.append("MACD above signal line (bullish bias)")
    elif ind.macd.line < ind.macd.signal:
        reasons.append("MACD below signal line (bearish bias)")

    # Shorter histories carry the 50-day average in the sma200 slot
    if asset.data_points >= LONG_AVERAGE_BARS:
        average_label = "200-day average"
    else:
        average_label = "50-day average (under 200 bars of history)"
    if asset.current_price > ind.sma.sma200:
        reasons.append(f"Price above {average_label} ({ind.sma.sma200:.2f})")
    elif asset.current_price < ind.sma.sma200:
        reasons.append(f"Price below {average_label} ({ind.sma.sma200:.2f})")

    volume_trend = asset.fundamentals.volume_trend
    if volume_trend != "stable":
        reasons.append(f"Trading volume {volume_trend} versus the prior 20 sessions")
    else:
        reasons.append("Trading volume stable")

    pe = asset.fundamentals.pe_ratio
    if pe is not None and 0 < pe < 10:
        reasons.append(f"Low P/E of {pe:.1f}")
    elif pe is not None and pe > 25:
        reasons.append(f"High P/E of {pe:.1f}")

    return reasons


def build_key_metrics(asset: Asset) -> list[KeyMetric]:
    ind = asset.indicators
    metrics = [
        KeyMetric(label="RSI", value=round(ind.rsi, 1)),
        KeyMetric(label="Momentum Score", value=round(asset.momentum.score, 1)),
        KeyMetric(label="Trend Strength", value=round(asset.trend.strength, 1)),
        KeyMetric(label="MACD Histogram", value=round(ind.macd.histogram, 4)),
        KeyMetric(label="Support", value=round(asset.support_resistance.support, 2)),
        KeyMetric(label="Resistance", value=round(asset.support_resistance.resistance, 2)),
        KeyMetric(label="Volume Trend", value=asset.fundamentals.volume_trend),
    ]
    if asset.fundamentals.pe_ratio is not None:
        metrics.append(KeyMetric(label="P/E Ratio", value=round(asset.fundamentals.pe_ratio, 2)))
    return metrics


def create_recommendation(asset: Asset, config: ScoringConfig | None = None) -> Recommendation:
    return Recommendation(
        asset=asset,
        reasoning=generate_reasoning(asset, config),
        key_metrics=build_key_metrics(asset),
    )


def rank_recommendations(
    assets: list[Asset],
    policy: PolicyConfig | None = None,
    config: ScoringConfig | None = None,
) -> tuple[list[Recommendation], int]:
    """Apply the confidence floor and per-class cap, best score first.

    Returns the ranked recommendations and how many assets policy removed.
    """
    p = policy or PolicyConfig()
    eligible = [a for a in assets if a.confidence >= p.min_confidence]
    eligible.sort(key=lambda a: a.overall_score, reverse=True)

    per_class: dict[str, int] = defaultdict(int)
    kept: list[Asset] = []
    for asset in eligible:
        if per_class[asset.asset_class] >= p.max_results_per_class:
            continue
        per_class[asset.asset_class] += 1
        kept.append(asset)

    kept = kept[: p.max_results]
    return [create_recommendation(a, config) for a in kept], len(assets) - len(kept)
