import datetime
from typing import Dict, List, Optional, Sequence, Set

from trade_analytics.config.logging import logger
from trade_analytics.core.models import FuturesPosition, IncomeRecord, IncomeType
from trade_analytics.core.results import FuturesAnalysis, FuturesSymbolStat, OpenFuturesPosition, TradeEvent
from trade_analytics.services.performance import OutcomeTracker, TimeBuckets


class _SymbolIncome:
    def __init__(self):
        self.realized = 0.0
        self.commission = 0.0
        self.funding = 0.0
        self.trade_ids: Set[str] = set()
        self.unlabeled = 0
        self.outcomes = OutcomeTracker()

    @property
    def trades(self) -> int:
        return len(self.trade_ids) + self.unlabeled


class FuturesIncomeClassifier:
    """
    Futures analysis from the income ledger rather than order fills.

    One REALIZED_PNL record is one closed position, so that is the unit
    every count, streak and bucket is built on. Commission and funding only
    move the net figure.
    """

    def __init__(self, tz: Optional[datetime.tzinfo] = None):
        self.tz = tz

    def analyze(self, income: Sequence[IncomeRecord],
                positions: Sequence[FuturesPosition] = ()) -> FuturesAnalysis:
        logger.info(f"Futures classifier: {len(income)} income records, {len(positions)} position snapshots")
        open_positions = self.open_positions(positions)
        if not income:
            return FuturesAnalysis(
                open_positions=open_positions,
                unrealized_pnl=sum(p.unrealized_profit for p in open_positions),
            )

        records = sorted(income, key=lambda r: r.timestamp)
        income_by_type: Dict[str, float] = {t.value: 0.0 for t in IncomeType}
        per_symbol: Dict[str, _SymbolIncome] = {}
        funding_by_symbol: Dict[str, float] = {}
        commission_by_symbol: Dict[str, float] = {}
        trade_ids: Set[str] = set()
        unlabeled = 0
        overall = OutcomeTracker()
        buckets = TimeBuckets(self.tz)
        events: List[TradeEvent] = []

        for record in records:
            income_by_type[record.income_type.value] += record.amount
            symbol = record.symbol or "UNKNOWN"

            if record.income_type == IncomeType.REALIZED_PNL:
                stats = per_symbol.setdefault(symbol, _SymbolIncome())
                stats.realized += record.amount
                stats.outcomes.record(record.amount)
                overall.record(record.amount)
                buckets.record(record.timestamp, record.amount)
                if record.trade_id:
                    trade_ids.add(record.trade_id)
                    stats.trade_ids.add(record.trade_id)
                else:
                    unlabeled += 1
                    stats.unlabeled += 1
                events.append(self._event(record, side="close", pnl=record.amount))

            elif record.income_type == IncomeType.COMMISSION:
                stats = per_symbol.setdefault(symbol, _SymbolIncome())
                stats.commission += record.amount
                commission_by_symbol[symbol] = commission_by_symbol.get(symbol, 0.0) + abs(record.amount)
                events.append(self._event(record, side="commission", pnl=record.amount,
                                          commission=abs(record.amount)))

            elif record.income_type == IncomeType.FUNDING_FEE:
                stats = per_symbol.setdefault(symbol, _SymbolIncome())
                stats.funding += record.amount
                funding_by_symbol[symbol] = funding_by_symbol.get(symbol, 0.0) + record.amount

            else:
                logger.debug(f"  {record.income_type.value} {record.amount:.4f} ({symbol}) not part of trading P&L")

        symbols = {
            symbol: FuturesSymbolStat(
                realized=stats.realized,
                commission=stats.commission,
                funding=stats.funding,
                net_pnl=stats.realized + stats.commission + stats.funding,
                trades=stats.trades,
                wins=stats.outcomes.wins,
                losses=stats.outcomes.losses,
                win_rate=stats.outcomes.win_rate,
            )
            for symbol, stats in per_symbol.items()
        }

        realized = income_by_type[IncomeType.REALIZED_PNL.value]
        commission = income_by_type[IncomeType.COMMISSION.value]
        funding = income_by_type[IncomeType.FUNDING_FEE.value]
        # commission is already negative in the ledger
        net_pnl = realized + commission + funding

        analysis = FuturesAnalysis(
            total_pnl=net_pnl,
            realized_pnl=realized,
            unrealized_pnl=sum(p.unrealized_profit for p in open_positions),
            total_commission=abs(commission),
            total_funding_fees=funding,
            net_pnl=net_pnl,
            total_trades=len(trade_ids) + unlabeled,
            completed_trades=overall.completed,
            winning_trades=overall.wins,
            losing_trades=overall.losses,
            win_rate=overall.win_rate,
            avg_win=overall.avg_win,
            avg_loss=overall.avg_loss,
            profit_factor=overall.profit_factor,
            largest_win=overall.largest_win,
            largest_loss=overall.largest_loss,
            max_consecutive_wins=overall.max_consecutive_wins,
            max_consecutive_losses=overall.max_consecutive_losses,
            symbols=symbols,
            open_positions=open_positions,
            trades_by_day=buckets.day_buckets(),
            trades_by_hour=buckets.hour_buckets(),
            monthly_pnl=buckets.monthly(),
            funding_by_symbol=funding_by_symbol,
            commission_by_symbol=commission_by_symbol,
            income_by_type=income_by_type,
            events=events,
        )
        logger.info(
            f"Futures analysis complete: realized {realized:.2f}, commission {abs(commission):.2f}, "
            f"funding {funding:.2f}, net {net_pnl:.2f}, {analysis.total_trades} trades"
        )
        return analysis

    @staticmethod
    def open_positions(positions: Sequence[FuturesPosition]) -> List[OpenFuturesPosition]:
        """Snapshots with a non-zero size, taken as reported."""
        return [
            OpenFuturesPosition(
                symbol=p.symbol,
                size=p.position_amt,
                entry_price=p.entry_price,
                mark_price=p.mark_price,
                unrealized_profit=p.unrealized_profit,
                leverage=p.leverage,
                margin=p.margin,
                side="LONG" if p.position_amt > 0 else "SHORT",
            )
            for p in positions
            if p.position_amt != 0
        ]

    @staticmethod
    def _event(record: IncomeRecord, side: str, pnl: float = 0.0, commission: float = 0.0) -> TradeEvent:
        return TradeEvent(
            timestamp=record.timestamp,
            realized_pnl=pnl,
            symbol=record.symbol or "UNKNOWN",
            type="futures",
            side=side,
            exchange=record.exchange,
            commission=commission,
            income_type=record.income_type.value,
        )
