from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

class IncomeType(str, Enum):
    """Futures income ledger categories."""
    REALIZED_PNL = "REALIZED_PNL"
    COMMISSION = "COMMISSION"
    FUNDING_FEE = "FUNDING_FEE"
    TRANSFER = "TRANSFER"
    LIQUIDATION = "LIQUIDATION"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "IncomeType":
        try:
            return cls(str(raw).upper())
        except ValueError:
            return cls.OTHER

@dataclass(frozen=True)
class SpotTrade:
    """
    A single spot fill (one buy or one sell).
    Money fields are in the bundle's source currency until normalized.
    """
    symbol: str            # Trading pair (e.g. "BTCUSDT")
    timestamp: datetime    # Fill time (tz-aware, UTC)
    qty: float             # Base-asset quantity, never converted
    price: float           # Quote price per unit
    is_buyer: bool
    commission: float = 0.0
    commission_asset: str = ""
    quote_qty: float = 0.0
    is_maker: bool = False
    exchange: Optional[str] = None
    trade_id: Optional[str] = None

    @property
    def side(self) -> str:
        return "buy" if self.is_buyer else "sell"

    @property
    def notional(self) -> float:
        return self.quote_qty if self.quote_qty > 0 else self.qty * self.price

@dataclass(frozen=True)
class IncomeRecord:
    """
    A futures income ledger entry.
    One REALIZED_PNL entry stands for one closed position.
    """
    symbol: str
    timestamp: datetime
    amount: float
    income_type: IncomeType
    trade_id: Optional[str] = None
    exchange: Optional[str] = None

    def is_profit(self) -> bool:
        return self.income_type == IncomeType.REALIZED_PNL and self.amount > 0

@dataclass(frozen=True)
class FuturesPosition:
    """Open futures position snapshot as reported by the exchange."""
    symbol: str
    position_amt: float    # Signed: positive = long, negative = short
    entry_price: float = 0.0
    mark_price: float = 0.0
    unrealized_profit: float = 0.0
    leverage: float = 1.0
    margin: float = 0.0
    liquidation_price: float = 0.0

@dataclass(frozen=True)
class Holding:
    """Current account balance of one asset, valued in USD by the holdings provider."""
    asset: str
    quantity: float
    price: float = 0.0
    usd_value: float = 0.0

@dataclass(frozen=True)
class BundleMetadata:
    primary_currency: Optional[str] = None
    spot_holdings: Tuple[Holding, ...] = ()
    exchanges: Tuple[str, ...] = ()
    original_currency: Optional[str] = None
    converted_to_usd: bool = False
    conversion_timestamp: Optional[str] = None
    # Unrecognized metadata keys, carried through untouched
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        if self.primary_currency:
            data["primaryCurrency"] = self.primary_currency
        if self.exchanges:
            data["exchanges"] = list(self.exchanges)
        data["spotHoldings"] = [
            {"asset": h.asset, "quantity": h.quantity, "price": h.price, "usdValue": h.usd_value}
            for h in self.spot_holdings
        ]
        if self.converted_to_usd:
            data["originalCurrency"] = self.original_currency
            data["convertedToUSD"] = True
            data["conversionTimestamp"] = self.conversion_timestamp
        return data

@dataclass(frozen=True)
class TradeBundle:
    """Everything one analysis call works on."""
    spot_trades: Tuple[SpotTrade, ...] = ()
    futures_income: Tuple[IncomeRecord, ...] = ()
    futures_positions: Tuple[FuturesPosition, ...] = ()
    metadata: BundleMetadata = field(default_factory=BundleMetadata)
