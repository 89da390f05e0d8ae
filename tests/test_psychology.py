from datetime import timezone

import pytest

from trade_analytics.core.results import AnalyticsResult, FuturesAnalysis, FuturesSymbolStat, SpotSymbolStat
from trade_analytics.services.psychology import PsychologyScorer, discipline_score, format_duration

SATURDAY = 5 * 24 * 60


def score(**fields):
    return PsychologyScorer(timezone.utc).score(AnalyticsResult(**fields))


def types(findings):
    return [f.type for f in findings]


@pytest.mark.parametrize("win_rate", [0, 39.9, 45, 50, 60, 100])
@pytest.mark.parametrize("profit_factor", [0, 0.5, 1.2, 1.5, 2, 1e9])
@pytest.mark.parametrize("losses", [0, 3, 5, 6, 10_000])
def test_discipline_score_bounds(win_rate, profit_factor, losses):
    assert 0 <= discipline_score(win_rate, profit_factor, losses) <= 100


def test_discipline_score_rules():
    assert discipline_score(60, 2, 3) == 100
    assert discipline_score(0, 0, 10) == 15
    assert discipline_score(50, 1.5, 5) == 75
    assert discipline_score(45, 1.2, 4) == 55


def test_empty_trades_give_neutral_profile():
    profile = score()
    assert profile.discipline_score == 50
    assert profile.strengths == []
    assert profile.weaknesses == []
    assert profile.recommendations == []
    assert profile.behavioral_patterns.overconfidence_ratio == 1.0


def test_revenge_session_after_loss(event):
    trades = [event(pnl=-5, minutes=0)] + [event(minutes=m) for m in (5, 10, 15, 20)]
    profile = score(all_trades=trades)

    assert len(profile.revenge_sessions) == 1
    assert profile.revenge_sessions[0].trades == 5
    assert profile.revenge_sessions[0].span_seconds == pytest.approx(20 * 60)
    assert "revenge_trading" in types(profile.weaknesses)


def test_no_revenge_when_spread_out_or_opened_by_win(event):
    slow = [event(pnl=-5, minutes=0)] + [event(minutes=m) for m in (10, 20, 30, 40)]
    assert score(all_trades=slow).revenge_sessions == []

    winning_start = [event(pnl=5, minutes=0)] + [event(minutes=m) for m in (1, 2, 3, 4)]
    assert score(all_trades=winning_start).revenge_sessions == []


def test_commission_rows_do_not_count_as_trades(event):
    trades = [event(pnl=-5, minutes=0)]
    trades += [event(minutes=m, side="commission", kind="futures") for m in (1, 2, 3)]
    trades += [event(minutes=4)]
    assert score(all_trades=trades).revenge_sessions == []


def test_holding_losers_too_long(event):
    trades = [
        event(pnl=10, minutes=0, hold=3600),
        event(pnl=-5, minutes=300, hold=3 * 3600),
        event(pnl=8, minutes=600, hold=3600),
        event(pnl=-4, minutes=900, hold=3 * 3600),
    ]
    profile = score(all_trades=trades)

    weakness = next(w for w in profile.weaknesses if w.type == "holding_losers")
    assert weakness.severity == "high"
    assert "3.0x" in weakness.message


def test_patience_and_loss_cutting_strengths(event):
    trades = [
        event(pnl=10, minutes=0, hold=5 * 3600),
        event(pnl=-2, minutes=600, hold=3600),
    ]
    profile = score(all_trades=trades)
    assert {"patience", "loss_cutting"} <= set(types(profile.strengths))


def test_time_based_stop_loss_recommendation(event):
    profile = score(all_trades=[event(pnl=-3, hold=5 * 3600)])
    assert "risk_management" in [r.type for r in profile.recommendations]


def test_overconfident_sizing(event):
    trades = [
        event(pnl=10, minutes=0),
        event(minutes=100, qty=5, price=100),
        event(pnl=-10, minutes=200),
        event(minutes=300, qty=1, price=100),
    ]
    patterns = score(all_trades=trades).behavioral_patterns

    assert patterns.after_wins.avg_size == pytest.approx(500)
    assert patterns.after_losses.avg_size == pytest.approx(100)
    assert patterns.overconfidence_ratio == pytest.approx(5)
    assert patterns.is_overconfident
    assert not patterns.is_fear_based


def test_fear_based_sizing(event):
    trades = [
        event(pnl=10, minutes=0),
        event(minutes=100, qty=0.5, price=100),
        event(pnl=-10, minutes=200),
        event(minutes=300, qty=2, price=100),
    ]
    profile = score(all_trades=trades)
    assert profile.behavioral_patterns.is_fear_based
    assert "fear_sizing" in types(profile.weaknesses)


def test_best_and_worst_hours_drive_recommendations(event):
    # three wins at 10:00, three losses at 14:00
    trades = [event(pnl=5, minutes=m) for m in (0, 10, 20)]
    trades += [event(pnl=-5, minutes=240 + m) for m in (0, 10, 20)]
    profile = score(all_trades=trades, win_rate=50)

    insights = profile.time_based_insights
    assert insights.best_hours[0].hour == 10
    assert insights.worst_hours[0].hour == 14
    assert len(insights.hourly_stats) == 24
    assert [d.day for d in insights.daily_stats][0] == "Mon"

    messages = [r.message for r in profile.recommendations if r.type == "timing"]
    assert messages == [
        "Your best performance: 10:00-11:00 (100% WR)",
        "Poor performance: 14:00-15:00 (0% WR)",
    ]


def test_weekend_underperformance(event):
    weekend = [event(pnl=-1, minutes=SATURDAY + m) for m in range(10)]
    profile = score(all_trades=weekend, win_rate=60)
    assert "weekend_trading" in types(profile.weaknesses)

    too_few = [event(pnl=-1, minutes=SATURDAY + m) for m in range(9)]
    assert "weekend_trading" not in types(score(all_trades=too_few, win_rate=60).weaknesses)


def test_symbol_findings(event):
    symbols = {
        "ETHUSDT": SpotSymbolStat(trades=10, wins=7, losses=3, win_rate=70),
        "PEPEUSDT": SpotSymbolStat(trades=2, wins=0, losses=1, win_rate=0),
        "SOLUSDT": SpotSymbolStat(trades=2, buys=2),
    }
    profile = score(all_trades=[event(pnl=1)], symbols=symbols, win_rate=70, profit_factor=2.5)

    assert {"win_rate", "profit_factor", "symbol_mastery"} <= set(types(profile.strengths))
    fomo = next(w for w in profile.weaknesses if w.type == "fomo_trading")
    assert "1 symbols" in fomo.message
    best = next(r for r in profile.recommendations if r.type == "symbol")
    assert best.message.startswith("ETHUSDT")
    assert [s.symbol for s in profile.symbol_behavior] == ["ETHUSDT"]
    assert profile.symbol_behavior[0].category == "strength"


def test_leverage_findings_from_futures(event):
    futures = FuturesAnalysis(symbols={"BTCUSDT": FuturesSymbolStat(trades=4, wins=1, losses=3, win_rate=25)})
    profile = score(all_trades=[event(pnl=-1, kind="futures", side="close")], futures_analysis=futures)

    assert "overleveraging" in types(profile.weaknesses)
    assert "leverage" in [r.type for r in profile.recommendations]


def test_format_duration():
    assert format_duration(59) == "0m"
    assert format_duration(90 * 60) == "1h 30m"
    assert format_duration(50 * 3600) == "2d 2h"
