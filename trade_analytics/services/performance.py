import datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from trade_analytics.config.logging import logger
from trade_analytics.config.settings import settings
from trade_analytics.core.results import DayBucket, HourBucket, MONTHS, WEEKDAYS


def resolve_timezone(name: Optional[str] = None) -> datetime.tzinfo:
    """Timezone used for weekday / hour / month bucketing."""
    name = name or (settings.ANALYTICS_TZ if settings else "UTC")
    try:
        return ZoneInfo(name)
    except Exception:
        logger.warning(f"Invalid timezone {name}, falling back to UTC")
        return datetime.timezone.utc


def month_key(when: datetime.datetime) -> str:
    return f"{MONTHS[when.month - 1]} {when.year}"


def month_sort_key(key: str) -> tuple:
    """Chronological sort key for 'Jan 2024' style month labels."""
    name, _, year = key.partition(" ")
    try:
        return (int(year), MONTHS.index(name))
    except ValueError:
        return (0, 0)


class OutcomeTracker:
    """
    Win/loss bookkeeping over a chronological stream of realized results.
    Zero results are breakeven: they reset both streaks and count as neither.
    """

    def __init__(self):
        self.wins = 0
        self.losses = 0
        self.gross_profit = 0.0
        self.gross_loss = 0.0
        self.largest_win = 0.0
        self.largest_loss = 0.0
        self.consecutive_wins = 0
        self.consecutive_losses = 0
        self.max_consecutive_wins = 0
        self.max_consecutive_losses = 0

    def record(self, pnl: float) -> None:
        if pnl > 0:
            self.wins += 1
            self.gross_profit += pnl
            self.largest_win = max(self.largest_win, pnl)
            self.consecutive_wins += 1
            self.consecutive_losses = 0
            self.max_consecutive_wins = max(self.max_consecutive_wins, self.consecutive_wins)
        elif pnl < 0:
            self.losses += 1
            self.gross_loss += abs(pnl)
            self.largest_loss = min(self.largest_loss, pnl)
            self.consecutive_losses += 1
            self.consecutive_wins = 0
            self.max_consecutive_losses = max(self.max_consecutive_losses, self.consecutive_losses)
        else:
            self.consecutive_wins = 0
            self.consecutive_losses = 0

    @property
    def completed(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        return (self.wins / self.completed) * 100 if self.completed > 0 else 0.0

    @property
    def avg_win(self) -> float:
        return self.gross_profit / self.wins if self.wins > 0 else 0.0

    @property
    def avg_loss(self) -> float:
        return self.gross_loss / self.losses if self.losses > 0 else 0.0

    @property
    def profit_factor(self) -> float:
        # avgWin / avgLoss, 0 when there are no losses to divide by
        return self.avg_win / self.avg_loss if self.avg_loss > 0 else 0.0


class TimeBuckets:
    """Weekday (7), hour-of-day (24) and calendar-month accumulators for realized results."""

    def __init__(self, tz: Optional[datetime.tzinfo] = None):
        self.tz = tz or resolve_timezone()
        self._days: Dict[str, dict] = {day: {"wins": 0, "losses": 0, "pnl": 0.0, "count": 0} for day in WEEKDAYS}
        self._hours: List[dict] = [{"trades": 0, "pnl": 0.0} for _ in range(24)]
        self._months: Dict[str, float] = {}

    def localize(self, when: datetime.datetime) -> datetime.datetime:
        return when.astimezone(self.tz)

    def record(self, when: datetime.datetime, pnl: float) -> None:
        local = self.localize(when)

        day = self._days[WEEKDAYS[local.weekday()]]
        day["count"] += 1
        day["pnl"] += pnl
        if pnl > 0:
            day["wins"] += 1
        elif pnl < 0:
            day["losses"] += 1

        hour = self._hours[local.hour]
        hour["trades"] += 1
        hour["pnl"] += pnl

        key = month_key(local)
        self._months[key] = self._months.get(key, 0.0) + pnl

    def day_buckets(self) -> Dict[str, DayBucket]:
        return {day: DayBucket(**data) for day, data in self._days.items()}

    def hour_buckets(self) -> List[HourBucket]:
        return [HourBucket(hour=f"{i}:00", **data) for i, data in enumerate(self._hours)]

    def monthly(self) -> Dict[str, float]:
        return {key: self._months[key] for key in sorted(self._months, key=month_sort_key)}
