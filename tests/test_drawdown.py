import pytest

from trade_analytics.services.drawdown import DrawdownAnalyzer


def test_drawdown_empty():
    summary = DrawdownAnalyzer.analyze([])
    assert summary.max_drawdown == 0
    assert summary.drawdown_periods == 0
    assert summary.recovered


def test_drawdown_curve(event):
    # Equity: 0 -> 1 -> -1 -> -2 -> 0, peak stays at 1
    trades = [event(pnl=p, minutes=i) for i, p in enumerate([1, -2, -1, 2])]
    summary = DrawdownAnalyzer.analyze(trades)

    assert summary.max_drawdown == -3.0
    assert summary.max_drawdown_percent == 300.0
    assert summary.peak_equity == 1.0
    assert summary.final_equity == 0.0
    assert summary.current_drawdown == -1.0
    assert summary.drawdown_periods == 1
    assert summary.longest_drawdown_trades == 3
    assert not summary.recovered


def test_drawdown_recovery_and_periods(event):
    trades = [event(pnl=p, minutes=i) for i, p in enumerate([10, -4, 6, -1, -1, 5])]
    summary = DrawdownAnalyzer.analyze(trades)

    assert summary.max_drawdown == -4.0
    assert summary.max_drawdown_percent == pytest.approx(40.0)
    assert summary.drawdown_periods == 2
    assert summary.longest_drawdown_trades == 2
    assert summary.recovered
    assert summary.current_drawdown == 0


def test_drawdown_ignores_zero_pnl_events(event):
    trades = [event(pnl=5, minutes=0), event(minutes=1), event(pnl=-2, minutes=2)]
    summary = DrawdownAnalyzer.analyze(trades)
    assert summary.longest_drawdown_trades == 1
    assert summary.final_equity == 3.0


def test_losses_from_the_start(event):
    summary = DrawdownAnalyzer.analyze([event(pnl=-5), event(pnl=-5, minutes=1)])
    assert summary.max_drawdown == -10.0
    assert summary.max_drawdown_percent == 0
    assert summary.peak_equity == 0
