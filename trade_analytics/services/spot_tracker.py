import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from trade_analytics.config.logging import logger
from trade_analytics.core.models import SpotTrade
from trade_analytics.core.results import ExternalSales, OpenLot, SpotAnalysis, SpotSymbolStat, TradeEvent
from trade_analytics.services.performance import OutcomeTracker, TimeBuckets
from trade_analytics.services.symbols import commission_in_quote

# Oversell excess at or below this many units is float dust, not an external sale
DUST_QTY = 0.0001
FLAT_EPSILON = 1e-12


class _SymbolLedger:
    """Average-cost ledger for one symbol."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        self.position = 0.0
        self.total_cost = 0.0
        self.realized = 0.0
        self.buys = 0
        self.sells = 0
        self.peak_cost = 0.0
        self.opened_at: Optional[datetime.datetime] = None
        self.outcomes = OutcomeTracker()
        self.external = ExternalSalesCounter()

    @property
    def avg_cost(self) -> float:
        return self.total_cost / self.position if self.position > 0 else 0.0


class ExternalSalesCounter:
    def __init__(self):
        self.count = 0
        self.quantity = 0.0
        self.total_value = 0.0

    def add(self, quantity: float, value: float) -> None:
        self.count += 1
        self.quantity += quantity
        self.total_value += value

    def merge(self, other: "ExternalSalesCounter") -> None:
        self.count += other.count
        self.quantity += other.quantity
        self.total_value += other.total_value

    def to_model(self) -> ExternalSales:
        return ExternalSales(count=self.count, quantity=self.quantity, total_value=self.total_value)


class SpotPositionTracker:
    """
    Turns a flat list of spot fills into realized P&L with average-cost accounting.

    Every buy and every sell counts toward totalTrades (spot convention);
    completedTrades only counts sells that closed against a tracked position.
    Sells with nothing tracked to sell against are external sales: the asset
    came in from outside the observed history, so they stay out of P&L.
    """

    def __init__(self, tz: Optional[datetime.tzinfo] = None):
        self.tz = tz

    def analyze(self, trades: Sequence[SpotTrade]) -> SpotAnalysis:
        logger.info(f"Spot tracker: {len(trades)} transactions")
        if not trades:
            return SpotAnalysis()

        grouped: Dict[str, List[SpotTrade]] = {}
        accepted = 0
        for trade in trades:
            if trade.qty <= 0:
                logger.warning(f"Skipping {trade.side} {trade.symbol} fill with non-positive quantity {trade.qty}")
                continue
            accepted += 1
            grouped.setdefault(trade.symbol, []).append(trade)

        ledgers: Dict[str, _SymbolLedger] = {}
        events: List[TradeEvent] = []
        realized_events: List[Tuple[datetime.datetime, float]] = []
        total_invested = 0.0
        total_commission = 0.0

        for symbol, fills in grouped.items():
            fills.sort(key=lambda t: t.timestamp)
            ledger = _SymbolLedger(symbol)
            ledgers[symbol] = ledger

            for trade in fills:
                commission = commission_in_quote(trade)
                total_commission += commission
                if trade.is_buyer:
                    total_invested += self._buy(ledger, trade)
                    events.append(self._event(trade, commission))
                else:
                    pnl, hold = self._sell(ledger, trade, commission)
                    if pnl is not None:
                        realized_events.append((trade.timestamp, pnl))
                    events.append(self._event(trade, commission, pnl or 0.0, hold))

            logger.debug(
                f"{symbol}: realized {ledger.realized:.2f}, "
                f"wins {ledger.outcomes.wins}, losses {ledger.outcomes.losses}, open {ledger.position:.8f}"
            )

        # Streaks and buckets run over realized sells in time order across all symbols
        realized_events.sort(key=lambda item: item[0])
        overall = OutcomeTracker()
        buckets = TimeBuckets(self.tz)
        for when, pnl in realized_events:
            overall.record(pnl)
            buckets.record(when, pnl)

        external_total = ExternalSalesCounter()
        symbols: Dict[str, SpotSymbolStat] = {}
        open_positions: List[OpenLot] = []
        for symbol, ledger in ledgers.items():
            external_total.merge(ledger.external)
            symbols[symbol] = SpotSymbolStat(
                realized=ledger.realized,
                position=ledger.position,
                avg_price=ledger.avg_cost,
                trades=ledger.buys + ledger.sells,
                buys=ledger.buys,
                sells=ledger.sells,
                wins=ledger.outcomes.wins,
                losses=ledger.outcomes.losses,
                win_rate=ledger.outcomes.win_rate,
                external_sales=ledger.external.to_model() if ledger.external.count else None,
            )
            if ledger.position > 0:
                open_positions.append(OpenLot(
                    symbol=symbol,
                    quantity=ledger.position,
                    avg_entry_price=ledger.avg_cost,
                    cost_basis=ledger.total_cost,
                ))

        total_pnl = sum(ledger.realized for ledger in ledgers.values())
        if external_total.count:
            logger.warning(
                f"{external_total.count} external spot sales excluded from P&L "
                f"(qty {external_total.quantity:.8f}, value {external_total.total_value:.2f})"
            )

        analysis = SpotAnalysis(
            total_pnl=total_pnl,
            total_invested=total_invested,
            max_capital_at_risk=max((ledger.peak_cost for ledger in ledgers.values()), default=0.0),
            roi=(total_pnl / total_invested) * 100 if total_invested > 0 else 0.0,
            total_trades=accepted,
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
            total_commission=total_commission,
            symbols=symbols,
            trades_by_day=buckets.day_buckets(),
            trades_by_hour=buckets.hour_buckets(),
            monthly_pnl=buckets.monthly(),
            open_positions=open_positions,
            external_sales=external_total.to_model(),
            events=sorted(events, key=lambda e: e.timestamp),
        )
        logger.info(
            f"Spot analysis complete: P&L {analysis.total_pnl:.2f}, "
            f"{analysis.total_trades} transactions, {analysis.completed_trades} completed, "
            f"win rate {analysis.win_rate:.2f}%"
        )
        return analysis

    @staticmethod
    def _buy(ledger: _SymbolLedger, trade: SpotTrade) -> float:
        value = trade.qty * trade.price
        if ledger.position <= 0:
            ledger.opened_at = trade.timestamp
        ledger.position += trade.qty
        ledger.total_cost += value
        ledger.buys += 1
        ledger.peak_cost = max(ledger.peak_cost, ledger.total_cost)
        logger.debug(f"  BUY {trade.symbol}: {trade.qty} @ {trade.price} (position {ledger.position:.8f})")
        return value

    @staticmethod
    def _sell(ledger: _SymbolLedger, trade: SpotTrade, commission: float) -> Tuple[Optional[float], Optional[float]]:
        """Returns (realized pnl, hold seconds); pnl is None for a pure external sale."""
        ledger.sells += 1
        qty = trade.qty

        if ledger.position <= 0:
            value = max(0.0, qty * trade.price - commission)
            ledger.external.add(qty, value)
            logger.debug(f"  SELL {trade.symbol} (external): {qty} @ {trade.price}, no cost basis")
            return None, None

        avg_cost = ledger.avg_cost
        sold = min(qty, ledger.position)
        fee = commission * (sold / qty)
        pnl = (trade.price - avg_cost) * sold - fee
        hold = (trade.timestamp - ledger.opened_at).total_seconds() if ledger.opened_at else None

        ledger.realized += pnl
        ledger.outcomes.record(pnl)
        ledger.position -= sold
        if ledger.position <= FLAT_EPSILON:
            ledger.position = 0.0
            ledger.opened_at = None
        # remaining basis stays at the pre-sale average cost
        ledger.total_cost = avg_cost * ledger.position

        excess = qty - sold
        if excess > DUST_QTY:
            value = max(0.0, excess * trade.price - (commission - fee))
            ledger.external.add(excess, value)
            logger.debug(f"  SELL {trade.symbol} (external excess): {excess:.8f} @ {trade.price}")
        logger.debug(f"  SELL {trade.symbol}: {sold} @ {trade.price} | avg cost {avg_cost:.4f} | pnl {pnl:.4f}")
        return pnl, hold

    @staticmethod
    def _event(trade: SpotTrade, commission: float, pnl: float = 0.0, hold: Optional[float] = None) -> TradeEvent:
        return TradeEvent(
            timestamp=trade.timestamp,
            realized_pnl=pnl,
            symbol=trade.symbol or "UNKNOWN",
            quantity=trade.qty,
            price=trade.price,
            type="spot",
            side=trade.side,
            exchange=trade.exchange,
            commission=commission,
            hold_seconds=hold,
        )
