from typing import Sequence

from trade_analytics.core.results import DrawdownSummary, TradeEvent


class DrawdownAnalyzer:
    @staticmethod
    def analyze(events: Sequence[TradeEvent]) -> DrawdownSummary:
        """
        Drawdown of the realized-P&L equity curve.
        Events must be chronological; the curve starts at 0.
        Amounts are returned as negative values for display.
        """
        pnls = [e.realized_pnl for e in events if e.realized_pnl != 0]
        if not pnls:
            return DrawdownSummary()

        equity = 0.0
        peak = 0.0
        max_dd = 0.0
        max_dd_pct = 0.0
        periods = 0
        length = 0
        longest = 0
        in_drawdown = False

        for pnl in pnls:
            equity += pnl
            if equity >= peak:
                peak = equity
                in_drawdown = False
                length = 0
                continue

            if not in_drawdown:
                in_drawdown = True
                periods += 1
            length += 1
            longest = max(longest, length)

            dd = peak - equity
            if dd > max_dd:
                max_dd = dd
                max_dd_pct = (dd / peak) * 100 if peak > 0 else 0.0

        return DrawdownSummary(
            max_drawdown=round(-max_dd, 2),
            max_drawdown_percent=round(max_dd_pct, 2),
            current_drawdown=round(-(peak - equity), 2),
            peak_equity=round(peak, 2),
            final_equity=round(equity, 2),
            drawdown_periods=periods,
            longest_drawdown_trades=longest,
            recovered=not in_drawdown,
        )
