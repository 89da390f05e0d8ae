"""Output models: the AnalyticsResult contract and everything nested in it.

All models are frozen. Attributes are snake_case in Python and serialize to
the camelCase keys the presentation layer reads (``totalPnL``, ``winRate``,
``futuresIncomeByType``...). Call ``.to_contract()`` for the JSON-ready dict.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def contract_alias(name: str) -> str:
    # total_pnl -> totalPnL, spot_unrealized_pnl -> spotUnrealizedPnL
    return to_camel(name).replace("Pnl", "PnL")


class ContractModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=contract_alias)

    def to_contract(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# Time buckets

class DayBucket(ContractModel):
    wins: int = 0
    losses: int = 0
    pnl: float = 0.0
    count: int = 0


class HourBucket(ContractModel):
    hour: str
    trades: int = 0
    pnl: float = 0.0


def empty_day_buckets() -> Dict[str, DayBucket]:
    return {day: DayBucket() for day in WEEKDAYS}


def empty_hour_buckets() -> List[HourBucket]:
    return [HourBucket(hour=f"{i}:00") for i in range(24)]


# Normalized trade event (one row of allTrades)

class TradeEvent(ContractModel):
    timestamp: datetime
    realized_pnl: float = Field(0.0, alias="realizedPnl")
    symbol: str = "UNKNOWN"
    quantity: float = 0.0
    price: float = 0.0
    type: Literal["spot", "futures"] = "spot"
    side: str = "unknown"
    exchange: Optional[str] = None
    commission: float = 0.0
    income_type: Optional[str] = None
    hold_seconds: Optional[float] = None

    @property
    def notional(self) -> float:
        return self.quantity * self.price

    @property
    def is_completed(self) -> bool:
        """True for events that resolved a position with a non-zero result."""
        return self.realized_pnl != 0 and self.side in ("sell", "close")


# Per-symbol stats: a tagged union on accountType

class ExternalSales(ContractModel):
    count: int = 0
    quantity: float = 0.0
    total_value: float = 0.0


class SpotSymbolStat(ContractModel):
    account_type: Literal["SPOT"] = "SPOT"
    realized: float = 0.0
    position: float = 0.0
    avg_price: float = 0.0
    trades: int = 0
    buys: int = 0
    sells: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    external_sales: Optional[ExternalSales] = None

    @property
    def performance(self) -> float:
        return self.realized


class FuturesSymbolStat(ContractModel):
    account_type: Literal["FUTURES"] = "FUTURES"
    realized: float = 0.0
    commission: float = 0.0
    funding: float = 0.0
    net_pnl: float = 0.0
    trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0

    @property
    def performance(self) -> float:
        return self.net_pnl


SymbolStat = Annotated[Union[SpotSymbolStat, FuturesSymbolStat], Field(discriminator="account_type")]


# Positions

class OpenLot(ContractModel):
    """Open spot position derived from fill history."""
    symbol: str
    quantity: float
    avg_entry_price: float
    cost_basis: float


class OpenFuturesPosition(ContractModel):
    symbol: str
    size: float
    entry_price: float = 0.0
    mark_price: float = 0.0
    unrealized_profit: float = 0.0
    leverage: float = 1.0
    margin: float = 0.0
    side: Literal["LONG", "SHORT"] = "LONG"


# Per-source analyses

class SpotAnalysis(ContractModel):
    total_pnl: float = 0.0
    total_invested: float = 0.0
    max_capital_at_risk: float = 0.0
    roi: float = 0.0
    total_trades: int = 0
    completed_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    total_commission: float = 0.0
    symbols: Dict[str, SpotSymbolStat] = Field(default_factory=dict)
    trades_by_day: Dict[str, DayBucket] = Field(default_factory=empty_day_buckets)
    trades_by_hour: List[HourBucket] = Field(default_factory=empty_hour_buckets)
    monthly_pnl: Dict[str, float] = Field(default_factory=dict)
    open_positions: List[OpenLot] = Field(default_factory=list)
    external_sales: ExternalSales = Field(default_factory=ExternalSales)
    # Per-fill events feed allTrades; not repeated inside spotAnalysis
    events: List[TradeEvent] = Field(default_factory=list, exclude=True)


class FuturesAnalysis(ContractModel):
    total_pnl: float = 0.0
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    total_commission: float = 0.0
    total_funding_fees: float = 0.0
    net_pnl: float = 0.0
    total_trades: int = 0
    completed_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    symbols: Dict[str, FuturesSymbolStat] = Field(default_factory=dict)
    open_positions: List[OpenFuturesPosition] = Field(default_factory=list)
    trades_by_day: Dict[str, DayBucket] = Field(default_factory=empty_day_buckets)
    trades_by_hour: List[HourBucket] = Field(default_factory=empty_hour_buckets)
    monthly_pnl: Dict[str, float] = Field(default_factory=dict)
    funding_by_symbol: Dict[str, float] = Field(default_factory=dict)
    commission_by_symbol: Dict[str, float] = Field(default_factory=dict)
    income_by_type: Dict[str, float] = Field(default_factory=dict)
    events: List[TradeEvent] = Field(default_factory=list, exclude=True)


# Holdings reconciliation diagnostics

class ReconciliationEntry(ContractModel):
    asset: str
    symbol: str
    holding_quantity: float
    position_quantity: float
    quantity_used: float = 0.0
    current_market_value: float = 0.0
    entry_cost: float = 0.0
    unrealized_pnl: float = 0.0
    holding_usd_value: float = 0.0
    match: Literal["full", "skipped", "invalid"] = "full"
    reason: Optional[str] = None


class UnmatchedHolding(ContractModel):
    asset: str
    quantity: float
    price: float = 0.0
    usd_value: float = 0.0


class UnmatchedPosition(ContractModel):
    symbol: str
    quantity: float
    avg_entry_price: float


class UnrealizedReconciliation(ContractModel):
    total_unrealized_pnl: float = 0.0
    matched: List[ReconciliationEntry] = Field(default_factory=list)
    unmatched_holdings: List[UnmatchedHolding] = Field(default_factory=list)
    unmatched_positions: List[UnmatchedPosition] = Field(default_factory=list)


# Drawdown

class DrawdownSummary(ContractModel):
    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    current_drawdown: float = 0.0
    peak_equity: float = 0.0
    final_equity: float = 0.0
    drawdown_periods: int = 0
    longest_drawdown_trades: int = 0
    recovered: bool = True


# Psychology profile

class PsychologyFinding(ContractModel):
    type: str
    message: str
    severity: Optional[str] = None


class Recommendation(ContractModel):
    type: str
    title: str
    message: str
    priority: Literal["high", "medium", "low"] = "medium"


class SizingSide(ContractModel):
    avg_size: float = 0.0
    win_rate: float = 0.0
    count: int = 0


class BehavioralPatterns(ContractModel):
    after_wins: SizingSide = Field(default_factory=SizingSide)
    after_losses: SizingSide = Field(default_factory=SizingSide)
    overconfidence_ratio: float = 1.0
    is_overconfident: bool = False
    is_fear_based: bool = False


class HourStat(ContractModel):
    hour: int
    trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0

    @property
    def hour_range(self) -> str:
        return f"{self.hour}:00-{self.hour + 1}:00"


class DayStat(ContractModel):
    day: str
    trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0


class TimeBasedInsights(ContractModel):
    hourly_stats: List[HourStat] = Field(default_factory=list)
    daily_stats: List[DayStat] = Field(default_factory=list)
    best_hours: List[HourStat] = Field(default_factory=list)
    worst_hours: List[HourStat] = Field(default_factory=list)


class SymbolInsight(ContractModel):
    symbol: str
    trades: int
    win_rate: float
    avg_hold_seconds: float = 0.0
    category: str = "neutral"
    message: str = ""


class RevengeSession(ContractModel):
    start_time: datetime
    trades: int
    span_seconds: float


class PsychologyProfile(ContractModel):
    discipline_score: int = 50
    strengths: List[PsychologyFinding] = Field(default_factory=list)
    weaknesses: List[PsychologyFinding] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    behavioral_patterns: BehavioralPatterns = Field(default_factory=BehavioralPatterns)
    time_based_insights: TimeBasedInsights = Field(default_factory=TimeBasedInsights)
    symbol_behavior: List[SymbolInsight] = Field(default_factory=list)
    revenge_sessions: List[RevengeSession] = Field(default_factory=list)


# Behavioral profile

class PanicEvent(ContractModel):
    timestamp: datetime
    symbol: str
    gap_minutes: float
    value: float


class PanicPatterns(ContractModel):
    detected: bool = False
    count: int = 0
    events: List[PanicEvent] = Field(default_factory=list)
    severity: Literal["high", "medium", "low"] = "low"
    score: float = 0.0


class TradingStyle(ContractModel):
    buy_to_sell_ratio: float = 0.0
    buys: int = 0
    sells: int = 0
    maker_percentage: float = 0.0
    taker_percentage: float = 0.0
    pattern: str = "unknown"
    avg_gap_hours: float = 0.0
    max_gap_hours: float = 0.0
    rapid_trade_count: int = 0
    rapid_fire_percent: float = 0.0
    is_overtrading: bool = False


class FeeAnalysis(ContractModel):
    total_fees: float = 0.0
    maker_fees: float = 0.0
    taker_fees: float = 0.0
    potential_savings: float = 0.0
    commission_by_asset: Dict[str, float] = Field(default_factory=dict)
    fee_percentage: float = 0.0
    efficiency: float = 0.0


class PositionSizing(ContractModel):
    avg_size: float = 0.0
    std_dev: float = 0.0
    coefficient_of_variation: float = 0.0
    consistency_score: float = 100.0
    score: float = 1.0
    label: str = "No Data"
    largest_trade: float = 0.0
    smallest_trade: float = 0.0
    is_consistent: bool = True
    has_strategy: bool = True


class TimingPatterns(ContractModel):
    most_active_hour: int = 0
    least_active_hour: int = 0
    night_trade_percentage: float = 0.0
    is_night_trader: bool = False
    hour_distribution: List[int] = Field(default_factory=lambda: [0] * 24)
    day_distribution: Dict[str, int] = Field(default_factory=lambda: {d: 0 for d in WEEKDAYS})


class EmotionalState(ContractModel):
    revenge_trading: int = 0
    chasing: int = 0
    impulsive: int = 0
    emotional_score: float = 0.0
    is_emotional: bool = False
    severity: Literal["high", "medium", "low"] = "low"


class BehavioralInsight(ContractModel):
    type: str
    category: str
    title: str
    description: str
    impact: Literal["high", "medium", "low"]
    action_steps: List[str] = Field(default_factory=list)


class BehavioralWarning(ContractModel):
    severity: str
    message: str
    category: str


class BehavioralProfile(ContractModel):
    health_score: int = 50
    panic_patterns: PanicPatterns = Field(default_factory=PanicPatterns)
    trading_style: TradingStyle = Field(default_factory=TradingStyle)
    fee_analysis: FeeAnalysis = Field(default_factory=FeeAnalysis)
    position_sizing: PositionSizing = Field(default_factory=PositionSizing)
    timing_patterns: TimingPatterns = Field(default_factory=TimingPatterns)
    emotional_state: EmotionalState = Field(default_factory=EmotionalState)
    consistency_score: int = 50
    insights: List[BehavioralInsight] = Field(default_factory=list)
    warnings: List[BehavioralWarning] = Field(default_factory=list)


# Chart-ready series

class DayPerformance(ContractModel):
    day: str
    pnl: float
    win_rate: float
    count: int


class HourPerformance(ContractModel):
    hour: int
    trades: int
    pnl: float


class MonthlyPoint(ContractModel):
    month: str
    pnl: float


class TradeSizes(ContractModel):
    small: int = 0
    medium: int = 0
    large: int = 0


# The single output aggregate

class AnalyticsResult(ContractModel):
    currency: str = "USD"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    all_trades: List[TradeEvent] = Field(default_factory=list)

    total_pnl: float = 0.0
    total_invested: float = 0.0
    roi: float = 0.0
    total_trades: int = 0
    completed_trades: int = 0
    buy_trades: int = 0
    sell_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0

    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    total_commission: float = 0.0

    symbols: Dict[str, SymbolStat] = Field(default_factory=dict)
    best_symbol: Optional[str] = None

    day_performance: List[DayPerformance] = Field(default_factory=list)
    hour_performance: List[HourPerformance] = Field(default_factory=list)
    monthly_data: List[MonthlyPoint] = Field(default_factory=list)
    trade_sizes: TradeSizes = Field(default_factory=TradeSizes)

    spot_pnl: float = 0.0
    spot_trades: int = 0
    spot_completed_trades: int = 0
    spot_wins: int = 0
    spot_losses: int = 0
    spot_win_rate: float = 0.0
    spot_invested: float = 0.0
    spot_roi: float = 0.0
    spot_unrealized_pnl: float = 0.0
    spot_open_positions: List[OpenLot] = Field(default_factory=list)

    futures_pnl: float = 0.0
    futures_realized_pnl: float = 0.0
    futures_unrealized_pnl: float = 0.0
    futures_trades: int = 0
    futures_completed_trades: int = 0
    futures_wins: int = 0
    futures_losses: int = 0
    futures_win_rate: float = 0.0
    futures_commission: float = 0.0
    futures_funding_fees: float = 0.0
    futures_open_positions: List[OpenFuturesPosition] = Field(default_factory=list)
    futures_funding_by_symbol: Dict[str, float] = Field(default_factory=dict)
    futures_commission_by_symbol: Dict[str, float] = Field(default_factory=dict)
    futures_income_by_type: Dict[str, float] = Field(default_factory=dict)

    total_unrealized_pnl: float = 0.0
    unrealized_reconciliation: UnrealizedReconciliation = Field(default_factory=UnrealizedReconciliation)
    drawdown: DrawdownSummary = Field(default_factory=DrawdownSummary)

    psychology: PsychologyProfile = Field(default_factory=PsychologyProfile)
    behavioral: BehavioralProfile = Field(default_factory=BehavioralProfile)

    spot_analysis: SpotAnalysis = Field(default_factory=SpotAnalysis)
    futures_analysis: FuturesAnalysis = Field(default_factory=FuturesAnalysis)
