from trade_analytics.core.results import AnalyticsResult


def _signed(value: float) -> str:
    sign = '+' if value > 0 else ''
    return f"{sign}{value:,.2f}"


class ReportFormatter:
    @staticmethod
    def format_summary(result: AnalyticsResult) -> str:
        """
        Formats an analysis into a plain-text terminal report.
        """
        if result.total_trades == 0:
            return ReportFormatter.format_no_trades()

        cur = result.currency
        header = f"📊 Trading Analytics ({cur})"
        original = result.metadata.get("originalCurrency")
        if original:
            header += f" - converted from {original}"
        lines = [header]
        lines.append(f"Trades: {result.total_trades} (completed {result.completed_trades})")
        lines.append("")

        # Performance
        lines.append("🔢 Performance")
        lines.append(f"Total P&L: {_signed(result.total_pnl)} {cur}")
        lines.append(f"ROI: {_signed(result.roi)}%")
        lines.append(f"Win rate: {result.win_rate:.1f}% ({result.winning_trades}W / {result.losing_trades}L)")
        lines.append(f"Avg win / loss: {result.avg_win:,.2f} / {result.avg_loss:,.2f}")
        lines.append(f"Profit factor: {result.profit_factor:.2f}")
        lines.append(f"Max consecutive losses: {result.max_consecutive_losses}")
        lines.append(f"Max drawdown: {result.drawdown.max_drawdown:,.2f} {cur}")
        lines.append(f"Commission: {result.total_commission:,.2f} {cur}")
        lines.append("")

        # Split by source
        lines.append("💱 Spot / Futures")
        lines.append(f"Spot: {_signed(result.spot_pnl)} ({result.spot_trades} transactions, {result.spot_win_rate:.1f}% WR)")
        lines.append(f"Futures: {_signed(result.futures_pnl)} ({result.futures_trades} trades, {result.futures_win_rate:.1f}% WR)")
        lines.append(f"Unrealized: {_signed(result.total_unrealized_pnl)} {cur}")
        external = result.spot_analysis.external_sales
        if external.count:
            lines.append(f"External sales (excluded): {external.count} ({external.total_value:,.2f} {cur})")
        lines.append("")

        if result.best_symbol:
            lines.append(f"🏆 Best symbol: {result.best_symbol}")
            lines.append("")

        # Psychology
        psychology = result.psychology
        lines.append(f"🧠 Discipline score: {psychology.discipline_score}/100")
        lines.append(f"Behavioral health: {result.behavioral.health_score}/100")
        for strength in psychology.strengths:
            lines.append(f"✅ {strength.message}")
        for weakness in psychology.weaknesses:
            lines.append(f"⚠️ {weakness.message}")

        if psychology.recommendations:
            lines.append("")
            lines.append("🧾 Recommendations")
            for i, rec in enumerate(psychology.recommendations, 1):
                lines.append(f"{i}) {rec.title}: {rec.message}")

        return "\n".join(lines)

    @staticmethod
    def format_no_trades() -> str:
        return "📊 Trading Analytics\n\nNo trades to analyze 💤"
