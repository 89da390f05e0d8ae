from datetime import timezone

import pytest

from trade_analytics.services.behavioral import BehavioralPatternDetector


@pytest.fixture
def detector():
    return BehavioralPatternDetector(timezone.utc)


def test_no_fills_gives_neutral_profile(detector):
    profile = detector.analyze([])
    assert profile.health_score == 50
    assert profile.consistency_score == 50
    assert profile.insights == []
    assert profile.warnings == []


def test_clustered_same_symbol_sells_are_panic(detector, spot_trade):
    fills = [
        spot_trade(buy=False, minutes=0),
        spot_trade(buy=False, minutes=5),
        spot_trade(buy=False, minutes=8),
        spot_trade(symbol="ETHUSDT", buy=False, minutes=9),
    ]
    panic = detector.panic_selling(fills)

    assert panic.detected
    assert panic.count == 2
    assert [e.gap_minutes for e in panic.events] == pytest.approx([5, 3])
    assert panic.score == pytest.approx(50)
    assert panic.severity == "high"


def test_spaced_sells_are_not_panic(detector, spot_trade):
    fills = [spot_trade(buy=False, minutes=m) for m in (0, 15, 30)]
    panic = detector.panic_selling(fills)
    assert not panic.detected
    assert panic.severity == "low"


def test_liquidation_pattern(detector, spot_trade):
    fills = [spot_trade(buy=True, minutes=0)] + [spot_trade(buy=False, minutes=60 * i) for i in range(1, 7)]
    profile = detector.analyze(fills)

    assert profile.trading_style.pattern == "liquidation"
    assert profile.trading_style.buys == 1
    assert profile.trading_style.sells == 6
    assert "Liquidation Mode Detected" in [i.title for i in profile.insights]


def test_accumulation_and_rapid_patterns(detector, spot_trade):
    buys = [spot_trade(minutes=60 * i) for i in range(6)]
    assert detector.trading_style(buys).pattern == "accumulation"

    rapid = [spot_trade(buy=i % 2 == 0, minutes=i) for i in range(6)]
    style = detector.trading_style(rapid)
    assert style.pattern == "rapid"
    assert style.rapid_trade_count == 5
    assert style.is_overtrading


def test_fee_split_and_savings(detector, spot_trade):
    fills = [
        spot_trade(commission=1.0, maker=False, minutes=0),
        spot_trade(commission=0.01, commission_asset="BTC", maker=False, minutes=60),
        spot_trade(commission=0.5, maker=True, minutes=120),
    ]
    fees = detector.fee_efficiency(fills)

    assert fees.taker_fees == pytest.approx(2.0)
    assert fees.maker_fees == pytest.approx(0.5)
    assert fees.total_fees == pytest.approx(2.5)
    assert fees.potential_savings == pytest.approx(1.0)
    assert fees.commission_by_asset == pytest.approx({"USDT": 1.5, "BTC": 0.01})
    assert fees.efficiency == pytest.approx(100 / 3)


def test_identical_sizes_are_highly_consistent(detector, spot_trade):
    sizing = detector.position_sizing([spot_trade(minutes=m) for m in (0, 60, 120)])
    assert sizing.coefficient_of_variation == 0
    assert sizing.label == "Highly Consistent"
    assert sizing.has_strategy


def test_erratic_sizes(detector, spot_trade):
    fills = [spot_trade(qty=q, minutes=60 * i) for i, q in enumerate((0.1, 10, 0.2, 20))]
    sizing = detector.position_sizing(fills)
    assert sizing.label == "Erratic"
    assert not sizing.is_consistent
    assert sizing.largest_trade == pytest.approx(2000)
    assert sizing.smallest_trade == pytest.approx(10)


def test_quick_rebuys_split_into_revenge_and_chasing(detector, spot_trade):
    fills = [
        spot_trade(minutes=0),
        spot_trade(minutes=10),
        spot_trade(symbol="ETHUSDT", minutes=20),
        spot_trade(symbol="ETHUSDT", minutes=120),
    ]
    emotional = detector.emotional_state(fills)
    assert emotional.revenge_trading == 1
    assert emotional.chasing == 1
    assert emotional.impulsive == 2
    assert emotional.emotional_score == pytest.approx(50)
    assert emotional.severity == "high"


def test_night_trading(detector, spot_trade):
    # 10:00 and 23:00 UTC
    timing = detector.timing([spot_trade(minutes=0), spot_trade(minutes=13 * 60)])
    assert timing.night_trade_percentage == pytest.approx(50)
    assert timing.is_night_trader
    assert timing.hour_distribution[23] == 1
    assert timing.day_distribution["Mon"] == 2


@pytest.mark.parametrize("maker", [True, False])
@pytest.mark.parametrize("gap", [1, 600])
def test_health_score_is_bounded(detector, spot_trade, maker, gap):
    fills = [
        spot_trade(buy=i % 3 == 0, qty=1 + i * 3, commission=5, maker=maker, minutes=i * gap)
        for i in range(12)
    ]
    profile = detector.analyze(fills)
    assert 0 <= profile.health_score <= 100
    assert 0 <= profile.consistency_score <= 100


def test_disciplined_trader_scores_well(detector, spot_trade):
    fills = [spot_trade(buy=i % 2 == 0, maker=True, minutes=i * 24 * 60) for i in range(6)]
    profile = detector.analyze(fills)
    assert profile.health_score >= 90
    assert profile.warnings == []


def test_third_asset_fees_only_reported_per_asset(detector, spot_trade):
    fills = [
        spot_trade(commission=0.01, commission_asset="BNB", minutes=0),
        spot_trade(commission=1.0, minutes=60),
    ]
    fees = detector.fee_efficiency(fills)

    assert fees.total_fees == pytest.approx(1.0)
    assert fees.commission_by_asset == pytest.approx({"BNB": 0.01, "USDT": 1.0})
