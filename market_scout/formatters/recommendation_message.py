from market_scout.models.analysis import Recommendation, RecommendationReport

CLASS_LABELS = {
    "us_stock": "US",
    "indian_stock": "IN",
    "crypto": "CRYPTO",
}

RECOMMENDATION_LABELS = {
    "strong_buy": "STRONG BUY",
    "buy": "BUY",
    "hold": "HOLD",
    "sell": "SELL",
    "strong_sell": "STRONG SELL",
}


def _format_number(n: float, prefix: str = "$") -> str:
    """Format a number with appropriate suffix (K, M, B)."""
    abs_n = abs(n)
    if abs_n >= 1_000_000_000:
        return f"{prefix}{n / 1_000_000_000:.1f}B"
    if abs_n >= 1_000_000:
        return f"{prefix}{n / 1_000_000:.1f}M"
    if abs_n >= 1_000:
        return f"{prefix}{n / 1_000:.1f}K"
    return f"{prefix}{n:,.2f}"


def _change_arrow(pct: float) -> str:
    if pct > 0:
        return f"+{pct:.2f}%"
    return f"{pct:.2f}%"


def _format_recommendation(rank: int, rec: Recommendation, max_reasons: int) -> list[str]:
    asset = rec.asset
    lines = [
        f"{rank}. {asset.symbol} - {asset.name} [{CLASS_LABELS[asset.asset_class]}]",
        f"   {_format_number(asset.current_price)} | {_change_arrow(asset.price_change_percent)}",
        (
            f"   {RECOMMENDATION_LABELS[asset.recommendation]} | "
            f"score {asset.overall_score:.1f} | confidence {asset.confidence:.0f}%"
        ),
    ]
    metrics = ", ".join(
        f"{m.label}: {m.value}" for m in rec.key_metrics[:4]
    )
    if metrics:
        lines.append(f"   {metrics}")
    for reason in rec.reasoning[:max_reasons]:
        lines.append(f"   - {reason}")
    return lines


def format_recommendation_report(report: RecommendationReport, max_reasons: int = 3) -> str:
    """Build a plain-text brief of the ranked recommendations."""
    parts: list[str] = []

    header = (
        f"Market Scout Recommendations\n"
        f"Generated: {report.timestamp.strftime('%Y-%m-%d %H:%M UTC')} | "
        f"{report.successful_symbols}/{report.total_symbols} symbols analyzed"
    )
    parts.append(header)

    if report.status == "empty_watchlist":
        parts.append("No symbols selected: the watch-list is empty.")
    elif report.status == "all_failed":
        parts.append(f"All analyses failed ({report.total_symbols} symbols attempted).")
    elif not report.recommendations:
        parts.append(
            f"No recommendations passed the policy filters ({report.filtered_out} filtered out)."
        )
    else:
        lines: list[str] = []
        for rank, rec in enumerate(report.recommendations, 1):
            if lines:
                lines.append("")
            lines.extend(_format_recommendation(rank, rec, max_reasons))
        parts.append("\n".join(lines))

    if report.errors:
        lines = ["WARNINGS"]
        for err in report.errors:
            lines.append(f"- {err}")
        parts.append("\n".join(lines))

    return "\n\n".join(parts)
