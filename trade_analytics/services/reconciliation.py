from typing import List, Optional, Sequence

from trade_analytics.config.logging import logger
from trade_analytics.config.settings import settings
from trade_analytics.core.models import Holding
from trade_analytics.core.results import (
    OpenLot,
    ReconciliationEntry,
    UnmatchedHolding,
    UnmatchedPosition,
    UnrealizedReconciliation,
)
from trade_analytics.services.symbols import match_holdings


class UnrealizedReconciler:
    """
    Unrealized spot P&L from current holdings against tracked open lots.

    Only the quantity both sides agree on is valued: a holding larger than
    the tracked lot includes deposits we have no cost basis for.
    """

    def __init__(self, multiplier: Optional[float] = None):
        if multiplier is None:
            multiplier = settings.UNREALIZED_SANITY_MULTIPLIER if settings else 2.0
        self.multiplier = multiplier

    def reconcile(self, holdings: Sequence[Holding], positions: Sequence[OpenLot]) -> UnrealizedReconciliation:
        table = match_holdings(holdings, positions)
        matched: List[ReconciliationEntry] = []
        total = 0.0
        for holding, lot in table.pairs:
            entry = self._value(holding, lot)
            matched.append(entry)
            if entry.match == "full":
                total += entry.unrealized_pnl

        if table.unmatched_holdings:
            logger.info(f"Holdings without a tracked position: {', '.join(h.asset for h in table.unmatched_holdings)}")
        if table.unmatched_positions:
            logger.info(f"Open positions without a holding: {', '.join(p.symbol for p in table.unmatched_positions)}")
        logger.info(f"Reconciled {len(matched)} holdings, unrealized P&L {total:.2f}")

        return UnrealizedReconciliation(
            total_unrealized_pnl=total,
            matched=matched,
            unmatched_holdings=[
                UnmatchedHolding(asset=h.asset, quantity=h.quantity, price=h.price, usd_value=h.usd_value)
                for h in table.unmatched_holdings
            ],
            unmatched_positions=[
                UnmatchedPosition(symbol=p.symbol, quantity=p.quantity, avg_entry_price=p.avg_entry_price)
                for p in table.unmatched_positions
            ],
        )

    def _value(self, holding: Holding, lot: OpenLot) -> ReconciliationEntry:
        base = dict(
            asset=holding.asset,
            symbol=lot.symbol,
            holding_quantity=holding.quantity,
            position_quantity=lot.quantity,
            holding_usd_value=holding.usd_value,
        )
        if holding.quantity <= 0 or lot.quantity <= 0:
            return ReconciliationEntry(**base, match="invalid", reason="non-positive quantity")

        unit_price = holding.usd_value / holding.quantity if holding.usd_value > 0 else holding.price
        if unit_price <= 0:
            return ReconciliationEntry(**base, match="invalid", reason="holding has no market value")

        quantity_used = min(holding.quantity, lot.quantity)
        market_value = unit_price * quantity_used
        entry_cost = (lot.cost_basis / lot.quantity) * quantity_used
        pnl = market_value - entry_cost
        values = dict(
            quantity_used=quantity_used,
            current_market_value=market_value,
            entry_cost=entry_cost,
            unrealized_pnl=pnl,
        )

        if abs(pnl) > self.multiplier * market_value:
            logger.warning(
                f"Discarding unrealized P&L for {holding.asset}: {pnl:.2f} exceeds "
                f"{self.multiplier}x market value {market_value:.2f}"
            )
            return ReconciliationEntry(
                **base, **values, match="skipped",
                reason=f"|unrealized| above {self.multiplier}x market value",
            )
        return ReconciliationEntry(**base, **values)
