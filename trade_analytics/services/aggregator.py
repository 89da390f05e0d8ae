from typing import Dict, List, Optional, Sequence

from trade_analytics.config.logging import logger
from trade_analytics.core.models import BundleMetadata
from trade_analytics.core.results import (
    AnalyticsResult,
    DayBucket,
    DayPerformance,
    FuturesAnalysis,
    HourBucket,
    HourPerformance,
    MonthlyPoint,
    SpotAnalysis,
    TradeEvent,
    TradeSizes,
    WEEKDAYS,
)
from trade_analytics.services.drawdown import DrawdownAnalyzer
from trade_analytics.services.performance import month_sort_key
from trade_analytics.services.reconciliation import UnrealizedReconciler
from trade_analytics.services.symbols import infer_exchange

SMALL_TRADE = 100.0
LARGE_TRADE = 1000.0


def merge_days(*sources: Dict[str, DayBucket]) -> Dict[str, DayBucket]:
    merged = {day: {"wins": 0, "losses": 0, "pnl": 0.0, "count": 0} for day in WEEKDAYS}
    for days in sources:
        for day, bucket in days.items():
            slot = merged.setdefault(day, {"wins": 0, "losses": 0, "pnl": 0.0, "count": 0})
            slot["wins"] += bucket.wins
            slot["losses"] += bucket.losses
            slot["pnl"] += bucket.pnl
            slot["count"] += bucket.count
    return {day: DayBucket(**data) for day, data in merged.items()}


def merge_hours(*sources: Sequence[HourBucket]) -> List[HourBucket]:
    trades = [0] * 24
    pnl = [0.0] * 24
    for hours in sources:
        for i, bucket in enumerate(hours[:24]):
            trades[i] += bucket.trades
            pnl[i] += bucket.pnl
    return [HourBucket(hour=f"{i}:00", trades=trades[i], pnl=pnl[i]) for i in range(24)]


def merge_months(*sources: Dict[str, float]) -> Dict[str, float]:
    merged: Dict[str, float] = {}
    for months in sources:
        for month, pnl in months.items():
            merged[month] = merged.get(month, 0.0) + pnl
    return {key: merged[key] for key in sorted(merged, key=month_sort_key)}


class MasterAggregator:
    """
    Combines the spot and futures analyses into one AnalyticsResult.

    Averages are weighted by each side's win/loss counts and profit factor
    is rebuilt from gross totals; averaging the two sides' ratios would
    misweight whichever side traded less.
    """

    def __init__(self, reconciler: Optional[UnrealizedReconciler] = None):
        self.reconciler = reconciler or UnrealizedReconciler()

    def aggregate(self, spot: SpotAnalysis, futures: FuturesAnalysis,
                  metadata: Optional[BundleMetadata] = None, currency: str = "USD") -> AnalyticsResult:
        metadata = metadata or BundleMetadata()

        total_pnl = spot.total_pnl + futures.net_pnl
        total_invested = spot.total_invested
        completed = spot.completed_trades + futures.completed_trades
        wins = spot.winning_trades + futures.winning_trades
        losses = spot.losing_trades + futures.losing_trades

        gross_profit = spot.avg_win * spot.winning_trades + futures.avg_win * futures.winning_trades
        gross_loss = spot.avg_loss * spot.losing_trades + futures.avg_loss * futures.losing_trades

        symbols: Dict[str, object] = dict(spot.symbols)
        for symbol, stat in futures.symbols.items():
            key = f"{symbol}:FUTURES" if symbol in symbols else symbol
            symbols[key] = stat
        best_symbol = max(symbols, key=lambda s: symbols[s].performance) if symbols else None

        days = merge_days(spot.trades_by_day, futures.trades_by_day)
        hours = merge_hours(spot.trades_by_hour, futures.trades_by_hour)
        months = merge_months(spot.monthly_pnl, futures.monthly_pnl)

        all_trades = self._normalize_events(spot.events, futures.events, metadata.exchanges)

        reconciliation = self.reconciler.reconcile(metadata.spot_holdings, spot.open_positions)
        spot_unrealized = reconciliation.total_unrealized_pnl

        spot_events = spot.events
        result = AnalyticsResult(
            currency=currency,
            metadata=metadata.to_dict(),
            all_trades=all_trades,
            total_pnl=total_pnl,
            total_invested=total_invested,
            roi=(total_pnl / total_invested) * 100 if total_invested > 0 else 0.0,
            total_trades=spot.total_trades + futures.total_trades,
            completed_trades=completed,
            buy_trades=sum(1 for e in spot_events if e.side == "buy"),
            sell_trades=sum(1 for e in spot_events if e.side == "sell"),
            winning_trades=wins,
            losing_trades=losses,
            win_rate=(wins / completed) * 100 if completed > 0 else 0.0,
            avg_win=gross_profit / wins if wins > 0 else 0.0,
            avg_loss=gross_loss / losses if losses > 0 else 0.0,
            profit_factor=gross_profit / gross_loss if gross_loss > 0 else 0.0,
            largest_win=max(spot.largest_win, futures.largest_win),
            largest_loss=min(spot.largest_loss, futures.largest_loss),
            max_consecutive_wins=max(spot.max_consecutive_wins, futures.max_consecutive_wins),
            max_consecutive_losses=max(spot.max_consecutive_losses, futures.max_consecutive_losses),
            total_commission=spot.total_commission + futures.total_commission,
            symbols=symbols,
            best_symbol=best_symbol,
            day_performance=self._day_performance(days),
            hour_performance=self._hour_performance(hours),
            monthly_data=[MonthlyPoint(month=m, pnl=p) for m, p in months.items()][-12:],
            trade_sizes=self._trade_sizes(spot_events),
            spot_pnl=spot.total_pnl,
            spot_trades=spot.total_trades,
            spot_completed_trades=spot.completed_trades,
            spot_wins=spot.winning_trades,
            spot_losses=spot.losing_trades,
            spot_win_rate=spot.win_rate,
            spot_invested=spot.total_invested,
            spot_roi=spot.roi,
            spot_unrealized_pnl=spot_unrealized,
            spot_open_positions=spot.open_positions,
            futures_pnl=futures.net_pnl,
            futures_realized_pnl=futures.realized_pnl,
            futures_unrealized_pnl=futures.unrealized_pnl,
            futures_trades=futures.total_trades,
            futures_completed_trades=futures.completed_trades,
            futures_wins=futures.winning_trades,
            futures_losses=futures.losing_trades,
            futures_win_rate=futures.win_rate,
            futures_commission=futures.total_commission,
            futures_funding_fees=futures.total_funding_fees,
            futures_open_positions=futures.open_positions,
            futures_funding_by_symbol=futures.funding_by_symbol,
            futures_commission_by_symbol=futures.commission_by_symbol,
            futures_income_by_type=futures.income_by_type,
            total_unrealized_pnl=spot_unrealized + futures.unrealized_pnl,
            unrealized_reconciliation=reconciliation,
            drawdown=DrawdownAnalyzer.analyze(all_trades),
            spot_analysis=spot,
            futures_analysis=futures,
        )
        logger.info(
            f"Aggregated: total P&L {result.total_pnl:.2f} {currency}, {result.total_trades} trades, "
            f"win rate {result.win_rate:.2f}%, best symbol {result.best_symbol}"
        )
        return result

    @staticmethod
    def _normalize_events(spot_events: Sequence[TradeEvent], futures_events: Sequence[TradeEvent],
                          exchanges: Sequence[str]) -> List[TradeEvent]:
        events = []
        for event in list(spot_events) + list(futures_events):
            exchange = infer_exchange(event.symbol, event.exchange, exchanges)
            events.append(event if exchange == event.exchange else event.model_copy(update={"exchange": exchange}))
        return sorted(events, key=lambda e: e.timestamp)

    @staticmethod
    def _day_performance(days: Dict[str, DayBucket]) -> List[DayPerformance]:
        rows = [
            DayPerformance(
                day=day,
                pnl=bucket.pnl,
                win_rate=(bucket.wins / bucket.count) * 100 if bucket.count > 0 else 0.0,
                count=bucket.count,
            )
            for day, bucket in days.items()
            if bucket.count > 0
        ]
        return sorted(rows, key=lambda r: r.pnl, reverse=True)

    @staticmethod
    def _hour_performance(hours: List[HourBucket]) -> List[HourPerformance]:
        rows = [HourPerformance(hour=i, trades=h.trades, pnl=h.pnl) for i, h in enumerate(hours) if h.trades > 0]
        return sorted(rows, key=lambda r: r.pnl, reverse=True)[:3]

    @staticmethod
    def _trade_sizes(spot_events: Sequence[TradeEvent]) -> TradeSizes:
        sizes = {"small": 0, "medium": 0, "large": 0}
        for event in spot_events:
            value = event.notional
            if value < SMALL_TRADE:
                sizes["small"] += 1
            elif value < LARGE_TRADE:
                sizes["medium"] += 1
            else:
                sizes["large"] += 1
        return TradeSizes(**sizes)
