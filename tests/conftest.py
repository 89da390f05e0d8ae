from datetime import datetime, timedelta, timezone

import pytest

from trade_analytics.core.models import FuturesPosition, Holding, IncomeRecord, IncomeType, SpotTrade
from trade_analytics.core.results import TradeEvent
from trade_analytics.infrastructure.fx.client import StaticRateProvider

# A Monday, 10:00 UTC
T0 = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def spot_trade():
    def make(symbol="BTCUSDT", qty=1.0, price=100.0, buy=True, minutes=0.0, commission=0.0,
             commission_asset="USDT", maker=False, exchange=None):
        return SpotTrade(
            symbol=symbol,
            timestamp=T0 + timedelta(minutes=minutes),
            qty=qty,
            price=price,
            is_buyer=buy,
            commission=commission,
            commission_asset=commission_asset,
            quote_qty=qty * price,
            is_maker=maker,
            exchange=exchange,
        )
    return make


@pytest.fixture
def income():
    def make(amount, income_type="REALIZED_PNL", symbol="BTCUSDT", minutes=0.0, trade_id=None):
        return IncomeRecord(
            symbol=symbol,
            timestamp=T0 + timedelta(minutes=minutes),
            amount=amount,
            income_type=IncomeType.parse(income_type),
            trade_id=trade_id,
        )
    return make


@pytest.fixture
def position():
    def make(symbol="BTCUSDT", amt=1.0, entry=100.0, mark=110.0, unrealized=10.0, leverage=5.0, margin=20.0):
        return FuturesPosition(
            symbol=symbol, position_amt=amt, entry_price=entry, mark_price=mark,
            unrealized_profit=unrealized, leverage=leverage, margin=margin,
        )
    return make


@pytest.fixture
def holding():
    def make(asset="ETH", quantity=1.0, usd_value=0.0, price=0.0):
        return Holding(asset=asset, quantity=quantity, price=price, usd_value=usd_value)
    return make


@pytest.fixture
def event():
    def make(pnl=0.0, minutes=0.0, symbol="BTCUSDT", side=None, qty=1.0, price=100.0, hold=None, kind="spot"):
        if side is None:
            side = "sell" if pnl else "buy"
        return TradeEvent(
            timestamp=T0 + timedelta(minutes=minutes),
            realized_pnl=pnl,
            symbol=symbol,
            quantity=qty,
            price=price,
            type=kind,
            side=side,
            hold_seconds=hold,
        )
    return make


@pytest.fixture
def static_rates():
    return StaticRateProvider({"USD": 1.0, "INR": 87.0, "EUR": 0.92})
