import datetime
from statistics import mean
from typing import Dict, List, Optional, Sequence

from trade_analytics.config.logging import logger
from trade_analytics.core.results import (
    AnalyticsResult,
    BehavioralPatterns,
    DayStat,
    HourStat,
    PsychologyFinding,
    PsychologyProfile,
    Recommendation,
    RevengeSession,
    SizingSide,
    SymbolInsight,
    TimeBasedInsights,
    TradeEvent,
    WEEKDAYS,
)
from trade_analytics.services.performance import resolve_timezone

FOUR_HOURS = 4 * 3600
REVENGE_WINDOW = 5
REVENGE_SPAN_SECONDS = 30 * 60
WEEKEND_MIN_SAMPLES = 10
MIN_HOUR_TRADES = 3


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def format_duration(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    if hours >= 24:
        return f"{hours // 24}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def discipline_score(win_rate: float, profit_factor: float, max_consecutive_losses: int) -> int:
    """
    0-100 composite, starting from a neutral 50.
    Each rule adds or removes a bounded number of points.
    """
    score = 50

    if win_rate >= 60:
        score += 20
    elif win_rate >= 50:
        score += 10
    elif win_rate < 40:
        score -= 10

    if profit_factor >= 2:
        score += 15
    elif profit_factor >= 1.5:
        score += 10
    elif profit_factor < 1:
        score -= 15

    if max_consecutive_losses <= 3:
        score += 15
    elif max_consecutive_losses <= 5:
        score += 5
    else:
        score -= 10

    return int(clamp(score))


def avg_hold(events: Sequence[TradeEvent]) -> Optional[float]:
    holds = [e.hold_seconds for e in events if e.hold_seconds is not None]
    return mean(holds) if holds else None


def base_symbol_key(key: str) -> str:
    # merged dictionaries store colliding futures symbols as "<symbol>:FUTURES"
    return key.split(":", 1)[0]


class PsychologyScorer:
    """Discipline score plus strengths, weaknesses and recommendations from the trade sequence."""

    def __init__(self, tz: Optional[datetime.tzinfo] = None):
        self.tz = tz or resolve_timezone()

    def score(self, result: AnalyticsResult) -> PsychologyProfile:
        trades = self._trade_sequence(result.all_trades)
        if not trades:
            logger.info("Psychology: no trades, neutral profile")
            return PsychologyProfile()

        winners = [e for e in trades if e.realized_pnl > 0]
        losers = [e for e in trades if e.realized_pnl < 0]
        winner_hold = avg_hold(winners)
        loser_hold = avg_hold(losers)

        revenge = self.revenge_sessions(trades)
        patterns = self.behavioral_patterns(trades)
        time_insights = self.time_insights(trades)

        profile = PsychologyProfile(
            discipline_score=discipline_score(result.win_rate, result.profit_factor, result.max_consecutive_losses),
            strengths=self._strengths(result, winner_hold, loser_hold),
            weaknesses=self._weaknesses(result, trades, winner_hold, loser_hold, revenge, patterns),
            recommendations=self._recommendations(result, time_insights, loser_hold),
            behavioral_patterns=patterns,
            time_based_insights=time_insights,
            symbol_behavior=self.symbol_behavior(result, trades),
            revenge_sessions=revenge,
        )
        logger.info(
            f"Psychology: discipline {profile.discipline_score}, "
            f"{len(profile.strengths)} strengths, {len(profile.weaknesses)} weaknesses"
        )
        return profile

    @staticmethod
    def _trade_sequence(events: Sequence[TradeEvent]) -> List[TradeEvent]:
        # commission rows are ledger bookkeeping, not decisions
        return sorted((e for e in events if e.side != "commission"), key=lambda e: e.timestamp)

    def _strengths(self, result: AnalyticsResult, winner_hold: Optional[float],
                   loser_hold: Optional[float]) -> List[PsychologyFinding]:
        strengths = []
        if winner_hold is not None and winner_hold > FOUR_HOURS:
            strengths.append(PsychologyFinding(
                type="patience",
                message=f"Patient on winning trades (avg hold: {format_duration(winner_hold)})",
            ))
        if result.win_rate >= 60:
            strengths.append(PsychologyFinding(type="win_rate", message=f"Strong win rate of {result.win_rate:.1f}%"))
        if result.profit_factor >= 2:
            strengths.append(PsychologyFinding(
                type="profit_factor", message=f"Excellent profit factor: {result.profit_factor:.2f}x",
            ))

        mastered = sorted(
            ((s, stat) for s, stat in result.symbols.items() if stat.trades >= 5 and stat.win_rate >= 60),
            key=lambda item: item[1].win_rate,
            reverse=True,
        )[:2]
        for symbol, stat in mastered:
            strengths.append(PsychologyFinding(
                type="symbol_mastery",
                message=f"Strong on {symbol} ({stat.win_rate:.0f}% WR, {stat.trades} trades)",
            ))

        if winner_hold and loser_hold is not None and loser_hold < winner_hold * 0.7:
            strengths.append(PsychologyFinding(type="loss_cutting", message="Good at cutting losses quickly"))
        return strengths

    def _weaknesses(self, result: AnalyticsResult, trades: List[TradeEvent], winner_hold: Optional[float],
                    loser_hold: Optional[float], revenge: List[RevengeSession],
                    patterns: BehavioralPatterns) -> List[PsychologyFinding]:
        weaknesses = []
        if winner_hold and loser_hold is not None and loser_hold > winner_hold * 1.5:
            weaknesses.append(PsychologyFinding(
                type="holding_losers",
                message=f"Holding losers {loser_hold / winner_hold:.1f}x longer than winners",
                severity="high",
            ))

        if revenge:
            weaknesses.append(PsychologyFinding(
                type="revenge_trading",
                message=f"{len(revenge)} revenge trading sessions detected",
                severity="high",
            ))

        weekend = [
            e for e in trades
            if e.realized_pnl != 0 and e.timestamp.astimezone(self.tz).weekday() >= 5
        ]
        if len(weekend) >= WEEKEND_MIN_SAMPLES:
            weekend_rate = sum(1 for e in weekend if e.realized_pnl > 0) / len(weekend) * 100
            if weekend_rate < result.win_rate - 15:
                weaknesses.append(PsychologyFinding(
                    type="weekend_trading",
                    message=f"Weekend trading underperforms ({weekend_rate:.0f}% vs {result.win_rate:.0f}% WR)",
                    severity="medium",
                ))

        weak_futures = [
            s for s, stat in result.futures_analysis.symbols.items() if stat.trades >= 3 and stat.win_rate < 45
        ]
        if weak_futures:
            weaknesses.append(PsychologyFinding(
                type="overleveraging",
                message=f"Poor performance on leveraged trades ({', '.join(weak_futures)})",
                severity="high",
            ))

        fomo = [
            s for s, stat in result.symbols.items()
            if stat.wins + stat.losses > 0 and stat.trades <= 3 and stat.win_rate < 40
        ]
        if fomo:
            weaknesses.append(PsychologyFinding(
                type="fomo_trading",
                message=f"FOMO trading on {len(fomo)} symbols (low win rate)",
                severity="medium",
            ))

        if patterns.is_overconfident:
            weaknesses.append(PsychologyFinding(
                type="overconfidence",
                message=f"Position sizes increase {(patterns.overconfidence_ratio - 1) * 100:.0f}% after wins",
                severity="medium",
            ))
        elif patterns.is_fear_based:
            weaknesses.append(PsychologyFinding(
                type="fear_sizing",
                message=f"Position sizes shrink {(1 - patterns.overconfidence_ratio) * 100:.0f}% after wins",
                severity="low",
            ))
        return weaknesses

    @staticmethod
    def _recommendations(result: AnalyticsResult, time_insights: TimeBasedInsights,
                         loser_hold: Optional[float]) -> List[Recommendation]:
        recommendations = []
        if time_insights.best_hours:
            best = time_insights.best_hours[0]
            recommendations.append(Recommendation(
                type="timing",
                title="Trade during your peak hours",
                message=f"Your best performance: {best.hour_range} ({best.win_rate:.0f}% WR)",
                priority="high",
            ))
        if time_insights.worst_hours:
            worst = time_insights.worst_hours[0]
            if not time_insights.best_hours or worst.hour != time_insights.best_hours[0].hour:
                recommendations.append(Recommendation(
                    type="timing",
                    title="Avoid trading at these times",
                    message=f"Poor performance: {worst.hour_range} ({worst.win_rate:.0f}% WR)",
                    priority="high",
                ))

        candidates = [(s, stat) for s, stat in result.symbols.items() if stat.trades >= 5]
        if candidates:
            symbol, stat = max(candidates, key=lambda item: item[1].win_rate)
            recommendations.append(Recommendation(
                type="symbol",
                title="Focus on your best symbol",
                message=f"{symbol} is your strength ({stat.win_rate:.0f}% WR)",
                priority="medium",
            ))

        if loser_hold is not None and loser_hold > FOUR_HOURS:
            recommendations.append(Recommendation(
                type="risk_management",
                title="Set time-based stop losses",
                message="Consider exiting losing trades after 2-3 hours",
                priority="high",
            ))

        if result.futures_analysis.symbols:
            recommendations.append(Recommendation(
                type="leverage",
                title="Keep leverage conservative",
                message="Limit leverage to 3-5x for better consistency",
                priority="medium",
            ))
        return recommendations

    @staticmethod
    def revenge_sessions(trades: Sequence[TradeEvent]) -> List[RevengeSession]:
        """Every window of 5 consecutive trades inside 30 minutes that opens with a loss."""
        sessions = []
        for i in range(len(trades) - REVENGE_WINDOW + 1):
            window = trades[i:i + REVENGE_WINDOW]
            span = (window[-1].timestamp - window[0].timestamp).total_seconds()
            if span < REVENGE_SPAN_SECONDS and window[0].realized_pnl < 0:
                sessions.append(RevengeSession(start_time=window[0].timestamp, trades=len(window), span_seconds=span))
        return sessions

    @staticmethod
    def behavioral_patterns(trades: Sequence[TradeEvent]) -> BehavioralPatterns:
        """Size and outcome of the trade that follows a win versus one that follows a loss."""
        after: Dict[str, List[TradeEvent]] = {"win": [], "loss": []}
        for previous, current in zip(trades, trades[1:]):
            if previous.realized_pnl > 0:
                after["win"].append(current)
            elif previous.realized_pnl < 0:
                after["loss"].append(current)

        def side(events: List[TradeEvent]) -> SizingSide:
            if not events:
                return SizingSide()
            wins = sum(1 for e in events if e.realized_pnl > 0)
            return SizingSide(
                avg_size=mean(e.notional for e in events),
                win_rate=wins / len(events) * 100,
                count=len(events),
            )

        after_wins, after_losses = side(after["win"]), side(after["loss"])
        if after_wins.count and after_losses.avg_size > 0:
            ratio = after_wins.avg_size / after_losses.avg_size
        else:
            ratio = 1.0
        return BehavioralPatterns(
            after_wins=after_wins,
            after_losses=after_losses,
            overconfidence_ratio=ratio,
            is_overconfident=ratio > 1.3,
            is_fear_based=ratio < 0.7,
        )

    def time_insights(self, trades: Sequence[TradeEvent]) -> TimeBasedInsights:
        hours = [{"trades": 0, "wins": 0, "losses": 0} for _ in range(24)]
        days = {day: {"trades": 0, "wins": 0, "losses": 0} for day in WEEKDAYS}
        for event in trades:
            local = event.timestamp.astimezone(self.tz)
            for slot in (hours[local.hour], days[WEEKDAYS[local.weekday()]]):
                slot["trades"] += 1
                if event.realized_pnl > 0:
                    slot["wins"] += 1
                elif event.realized_pnl < 0:
                    slot["losses"] += 1

        def rate(slot: dict) -> float:
            decided = slot["wins"] + slot["losses"]
            return slot["wins"] / decided * 100 if decided else 0.0

        hourly = [HourStat(hour=h, win_rate=rate(slot), **slot) for h, slot in enumerate(hours)]
        daily = [DayStat(day=d, win_rate=rate(slot), **slot) for d, slot in days.items()]
        active = [h for h in hourly if h.trades >= MIN_HOUR_TRADES]
        return TimeBasedInsights(
            hourly_stats=hourly,
            daily_stats=daily,
            best_hours=sorted(active, key=lambda h: h.win_rate, reverse=True)[:3],
            worst_hours=sorted(active, key=lambda h: h.win_rate)[:3],
        )

    @staticmethod
    def symbol_behavior(result: AnalyticsResult, trades: Sequence[TradeEvent]) -> List[SymbolInsight]:
        insights = []
        for key, stat in result.symbols.items():
            if stat.trades < 3:
                continue
            symbol = base_symbol_key(key)
            hold = avg_hold([e for e in trades if e.symbol == symbol])

            category, message = "neutral", ""
            if stat.win_rate >= 65 and stat.trades >= 10:
                category, message = "strength", "Your go-to symbol, keep trading it"
            elif stat.win_rate >= 50 and stat.trades >= 5:
                category, message = "decent", "Solid performance, room for improvement"
            elif stat.win_rate < 40:
                category = "weakness"
                message = "Possible FOMO trades" if stat.trades <= 5 else "Consider avoiding"
            if hold is not None and hold < 3600 and stat.win_rate < 45:
                category, message = "fomo", "Impulsive entries detected"

            insights.append(SymbolInsight(
                symbol=key,
                trades=stat.trades,
                win_rate=stat.win_rate,
                avg_hold_seconds=hold or 0.0,
                category=category,
                message=message,
            ))
        return sorted(insights, key=lambda i: i.win_rate, reverse=True)
