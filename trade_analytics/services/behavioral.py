"""Behavioral pattern detection over spot fills.

Looks past P&L at how the trader acts: clustered panic sells, maker/taker
habits and the fees they cost, position-size discipline, time-of-day
habits and rapid re-entries. Every section is a plain threshold heuristic;
together they roll up into a 0-100 health score.
"""

import datetime
from statistics import mean, pstdev
from typing import Dict, List, Optional, Sequence

from trade_analytics.config.logging import logger
from trade_analytics.core.models import SpotTrade
from trade_analytics.core.results import (
    BehavioralInsight,
    BehavioralProfile,
    BehavioralWarning,
    EmotionalState,
    FeeAnalysis,
    PanicEvent,
    PanicPatterns,
    PositionSizing,
    TimingPatterns,
    TradingStyle,
    WEEKDAYS,
)
from trade_analytics.services.performance import resolve_timezone
from trade_analytics.services.symbols import commission_in_quote

PANIC_GAP_MINUTES = 10
RAPID_GAP_HOURS = 5 / 60
REBUY_GAP_MINUTES = 30
NIGHT_HOURS = (22, 23, 0, 1, 2)


def _severity(score: float, high: float, medium: float) -> str:
    if score > high:
        return "high"
    if score > medium:
        return "medium"
    return "low"


class BehavioralPatternDetector:
    def __init__(self, tz: Optional[datetime.tzinfo] = None):
        self.tz = tz or resolve_timezone()

    def analyze(self, trades: Sequence[SpotTrade]) -> BehavioralProfile:
        fills = sorted(trades, key=lambda t: t.timestamp)
        if not fills:
            logger.info("Behavioral: no spot fills, neutral profile")
            return BehavioralProfile()

        panic = self.panic_selling(fills)
        style = self.trading_style(fills)
        fees = self.fee_efficiency(fills)
        sizing = self.position_sizing(fills)
        timing = self.timing(fills)
        emotional = self.emotional_state(fills)
        consistency = self.consistency(fills)

        health = self.health_score(panic, style, fees, sizing, emotional, consistency)
        profile = BehavioralProfile(
            health_score=health,
            panic_patterns=panic,
            trading_style=style,
            fee_analysis=fees,
            position_sizing=sizing,
            timing_patterns=timing,
            emotional_state=emotional,
            consistency_score=consistency,
            insights=self.insights(panic, style, fees, sizing, timing),
            warnings=self.warnings(health, panic, emotional, fees),
        )
        logger.info(
            f"Behavioral: health {health}, pattern {style.pattern}, "
            f"{panic.count} panic sells, maker {style.maker_percentage:.0f}%"
        )
        return profile

    @staticmethod
    def panic_selling(fills: Sequence[SpotTrade]) -> PanicPatterns:
        """Same-symbol sells less than 10 minutes after the previous sell."""
        sells = [t for t in fills if not t.is_buyer]
        events = []
        for previous, current in zip(sells, sells[1:]):
            gap = (current.timestamp - previous.timestamp).total_seconds() / 60
            if gap < PANIC_GAP_MINUTES and current.symbol == previous.symbol:
                events.append(PanicEvent(
                    timestamp=current.timestamp,
                    symbol=current.symbol,
                    gap_minutes=gap,
                    value=current.notional,
                ))
        score = min(len(events) / max(len(sells), 1) * 100, 100)
        return PanicPatterns(
            detected=bool(events),
            count=len(events),
            events=events,
            severity=_severity(score, 30, 10),
            score=score,
        )

    @staticmethod
    def trading_style(fills: Sequence[SpotTrade]) -> TradingStyle:
        buys = sum(1 for t in fills if t.is_buyer)
        sells = len(fills) - buys
        ratio = buys / max(sells, 1)
        maker_pct = sum(1 for t in fills if t.is_maker) / len(fills) * 100

        gaps = [(b.timestamp - a.timestamp).total_seconds() / 3600 for a, b in zip(fills, fills[1:])]
        avg_gap = mean(gaps) if gaps else 0.0
        rapid = sum(1 for g in gaps if g < RAPID_GAP_HOURS)

        if ratio < 0.2:
            pattern = "liquidation"
        elif ratio > 5:
            pattern = "accumulation"
        elif rapid > len(fills) * 0.5:
            pattern = "rapid"
        elif avg_gap > 24:
            pattern = "casual"
        else:
            pattern = "balanced"

        return TradingStyle(
            buy_to_sell_ratio=ratio,
            buys=buys,
            sells=sells,
            maker_percentage=maker_pct,
            taker_percentage=100 - maker_pct,
            pattern=pattern,
            avg_gap_hours=avg_gap,
            max_gap_hours=max(gaps) if gaps else 0.0,
            rapid_trade_count=rapid,
            rapid_fire_percent=rapid / len(fills) * 100,
            is_overtrading=rapid > len(fills) * 0.3,
        )

    @staticmethod
    def fee_efficiency(fills: Sequence[SpotTrade]) -> FeeAnalysis:
        maker_fees = sum(commission_in_quote(t) for t in fills if t.is_maker)
        taker_fees = sum(commission_in_quote(t) for t in fills if not t.is_maker)
        total = maker_fees + taker_fees

        # raw amounts, in whatever asset each fee was charged
        by_asset: Dict[str, float] = {}
        for t in fills:
            asset = t.commission_asset or "USDT"
            by_asset[asset] = by_asset.get(asset, 0.0) + t.commission

        volume = sum(t.notional for t in fills)
        return FeeAnalysis(
            total_fees=total,
            maker_fees=maker_fees,
            taker_fees=taker_fees,
            # maker rates are roughly half of taker rates
            potential_savings=taker_fees * 0.5,
            commission_by_asset=by_asset,
            fee_percentage=total / max(volume, 1) * 100,
            efficiency=sum(1 for t in fills if t.is_maker) / len(fills) * 100,
        )

    @staticmethod
    def position_sizing(fills: Sequence[SpotTrade]) -> PositionSizing:
        sizes = [t.notional for t in fills if t.notional > 0]
        if not sizes:
            return PositionSizing()

        avg = mean(sizes)
        std = pstdev(sizes)
        cv = std / avg if avg > 0 else 0.0
        consistency = max(0.0, min(100.0, 100 - cv * 100))
        score = consistency / 100
        if score >= 0.8:
            label = "Highly Consistent"
        elif score >= 0.6:
            label = "Consistent"
        elif score >= 0.4:
            label = "Moderate"
        else:
            label = "Erratic"

        return PositionSizing(
            avg_size=avg,
            std_dev=std,
            coefficient_of_variation=cv,
            consistency_score=consistency,
            score=score,
            label=label,
            largest_trade=max(sizes),
            smallest_trade=min(sizes),
            is_consistent=cv < 0.5,
            has_strategy=cv < 0.3,
        )

    def timing(self, fills: Sequence[SpotTrade]) -> TimingPatterns:
        hours = [0] * 24
        days = {day: 0 for day in WEEKDAYS}
        for t in fills:
            local = t.timestamp.astimezone(self.tz)
            hours[local.hour] += 1
            days[WEEKDAYS[local.weekday()]] += 1

        active = [h for h in range(24) if hours[h] > 0]
        night = sum(hours[h] for h in NIGHT_HOURS) / len(fills) * 100
        return TimingPatterns(
            most_active_hour=max(range(24), key=lambda h: hours[h]),
            least_active_hour=min(active, key=lambda h: hours[h]) if active else 0,
            night_trade_percentage=night,
            is_night_trader=night > 30,
            hour_distribution=hours,
            day_distribution=days,
        )

    @staticmethod
    def emotional_state(fills: Sequence[SpotTrade]) -> EmotionalState:
        """Buys less than 30 minutes after the previous buy: same symbol is revenge, another is chasing."""
        buys = [t for t in fills if t.is_buyer]
        revenge = chasing = 0
        for previous, current in zip(buys, buys[1:]):
            if (current.timestamp - previous.timestamp).total_seconds() / 60 < REBUY_GAP_MINUTES:
                if current.symbol == previous.symbol:
                    revenge += 1
                else:
                    chasing += 1
        score = min((revenge + chasing) / len(fills) * 100, 100)
        return EmotionalState(
            revenge_trading=revenge,
            chasing=chasing,
            impulsive=revenge + chasing,
            emotional_score=score,
            is_emotional=score > 20,
            severity=_severity(score, 40, 20),
        )

    @staticmethod
    def consistency(fills: Sequence[SpotTrade]) -> int:
        """Blend of timing regularity and size regularity; 50 when there is too little data."""
        if len(fills) < 5:
            return 50
        gaps = [(b.timestamp - a.timestamp).total_seconds() / 3600 for a, b in zip(fills, fills[1:])]
        avg_gap = mean(gaps)
        time_score = max(0.0, 100 - pstdev(gaps) / max(avg_gap, 1) * 10)

        sizes = [t.notional for t in fills]
        avg_size = mean(sizes)
        size_score = max(0.0, 100 - pstdev(sizes) / max(avg_size, 1) * 50)
        return round((time_score + size_score) / 2)

    @staticmethod
    def health_score(panic: PanicPatterns, style: TradingStyle, fees: FeeAnalysis, sizing: PositionSizing,
                     emotional: EmotionalState, consistency: int) -> int:
        score = 100.0
        score -= panic.score * 0.3

        if fees.efficiency < 40:
            score -= 20
        elif fees.efficiency < 60:
            score -= 10

        if style.taker_percentage > 80:
            score -= 15
        elif style.taker_percentage > 50:
            score -= 7

        score -= (100 - sizing.consistency_score) * 0.15
        score -= emotional.emotional_score * 0.2
        if style.is_overtrading:
            score -= 10
        score += (consistency - 50) * 0.1
        return round(max(0.0, min(100.0, score)))

    @staticmethod
    def insights(panic: PanicPatterns, style: TradingStyle, fees: FeeAnalysis, sizing: PositionSizing,
                 timing: TimingPatterns) -> List[BehavioralInsight]:
        insights = []
        if panic.detected and panic.count > 3:
            insights.append(BehavioralInsight(
                type="critical",
                category="emotional",
                title="Panic Selling Detected",
                description=f"{panic.count} rapid-fire sells of the same symbol. "
                            f"Clustered exits tend to land at the worst prices.",
                impact="high",
                action_steps=[
                    "Set exit points before entering a trade",
                    "Use stop-loss orders instead of manual exits",
                    "Wait 24 hours before selling again after a rapid sell",
                ],
            ))

        if fees.total_fees > 0 and fees.potential_savings > fees.total_fees * 0.3:
            insights.append(BehavioralInsight(
                type="opportunity",
                category="fees",
                title="Fee Optimization Opportunity",
                description=f"Fees paid: {fees.total_fees:.2f}. Limit orders instead of market orders "
                            f"could save about {fees.potential_savings:.2f}.",
                impact="high",
                action_steps=[
                    "Use limit (maker) orders instead of market (taker) orders",
                    f"Current maker/taker split: {style.maker_percentage:.0f}% / {style.taker_percentage:.0f}%",
                ],
            ))

        if not sizing.is_consistent:
            insights.append(BehavioralInsight(
                type="warning",
                category="risk",
                title="Inconsistent Position Sizing",
                description=f"Trade sizes vary by {sizing.coefficient_of_variation:.2f}x their average.",
                impact="medium",
                action_steps=[
                    "Size every trade as a fixed share of the portfolio (1-2%)",
                    "Never risk more than 5% on a single trade",
                ],
            ))

        if style.is_overtrading:
            insights.append(BehavioralInsight(
                type="warning",
                category="behavior",
                title="Overtrading Detected",
                description=f"{style.rapid_trade_count} trades came within 5 minutes of the previous one.",
                impact="medium",
                action_steps=[
                    "Leave at least an hour between trades",
                    "Ask whether the trade would still make sense in 24 hours",
                ],
            ))

        if style.pattern == "liquidation":
            insights.append(BehavioralInsight(
                type="info",
                category="pattern",
                title="Liquidation Mode Detected",
                description=f"{style.sells} sells against {style.buys} buys "
                            f"(ratio {style.buy_to_sell_ratio:.2f}): positions are being exited, not traded.",
                impact="medium",
                action_steps=[
                    "Expected if the assets were deposited from another wallet",
                    "Otherwise review the exit plan and its tax timing",
                ],
            ))

        if timing.is_night_trader:
            insights.append(BehavioralInsight(
                type="info",
                category="timing",
                title="Night Trading Pattern",
                description=f"{timing.night_trade_percentage:.0f}% of trades happen between 22:00 and 03:00.",
                impact="low",
                action_steps=[
                    "Compare night and day win rates",
                    "Consider a no-trading-after-22:00 rule",
                ],
            ))
        return insights

    @staticmethod
    def warnings(health: int, panic: PanicPatterns, emotional: EmotionalState,
                 fees: FeeAnalysis) -> List[BehavioralWarning]:
        warnings = []
        if health < 40:
            warnings.append(BehavioralWarning(
                severity="critical",
                message="Multiple behavioral red flags. Consider a break to review the strategy.",
                category="health",
            ))
        if panic.severity == "high":
            warnings.append(BehavioralWarning(
                severity="high", message="Frequent panic selling detected.", category="emotional",
            ))
        if emotional.is_emotional and emotional.severity == "high":
            warnings.append(BehavioralWarning(
                severity="high",
                message="High emotional trading activity: rapid re-buys after previous entries.",
                category="emotional",
            ))
        if fees.fee_percentage > 2:
            warnings.append(BehavioralWarning(
                severity="medium",
                message=f"Fees are {fees.fee_percentage:.2f}% of trading volume.",
                category="fees",
            ))
        return warnings
