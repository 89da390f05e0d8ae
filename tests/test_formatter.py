from trade_analytics.core.results import AnalyticsResult
from trade_analytics.services.analytics import AnalyticsService
from trade_analytics.services.report_formatter import ReportFormatter

T0_MS = 1704103200000


def test_format_no_trades():
    msg = ReportFormatter.format_no_trades()
    assert "No trades to analyze" in msg
    assert ReportFormatter.format_summary(AnalyticsResult()) == msg


def test_format_summary(static_rates):
    raw = {
        "spotTrades": [
            {"symbol": "BTCUSDT", "side": "BUY", "qty": "1", "price": "100", "time": T0_MS},
            {"symbol": "BTCUSDT", "side": "SELL", "qty": "1", "price": "150", "time": T0_MS + 3600_000},
            {"symbol": "ETHUSDT", "side": "SELL", "qty": "1", "price": "80", "time": T0_MS + 7200_000},
        ],
        "futuresIncome": [
            {"symbol": "ETHUSDT", "incomeType": "REALIZED_PNL", "income": "-10", "time": T0_MS, "tradeId": "7"},
        ],
    }
    result = AnalyticsService(rate_provider=static_rates, tz="UTC").analyze(raw)
    msg = ReportFormatter.format_summary(result)

    assert msg.startswith("📊 Trading Analytics (USD)")
    assert "Total P&L: +40.00 USD" in msg
    assert "ROI: +40.00%" in msg
    assert "Win rate: 50.0% (1W / 1L)" in msg
    assert "Spot: +50.00 (3 transactions, 100.0% WR)" in msg
    assert "Futures: -10.00 (1 trades, 0.0% WR)" in msg
    assert "External sales (excluded): 1 (80.00 USD)" in msg
    assert "🏆 Best symbol: BTCUSDT" in msg
    assert "🧠 Discipline score:" in msg


def test_format_summary_mentions_conversion(static_rates):
    raw = {
        "spotTrades": [
            {"symbol": "BTCINR", "side": "BUY", "qty": "1", "price": "8700", "time": T0_MS},
            {"symbol": "BTCINR", "side": "SELL", "qty": "1", "price": "8700", "time": T0_MS + 60_000},
        ],
        "metadata": {"primaryCurrency": "INR"},
    }
    result = AnalyticsService(rate_provider=static_rates, tz="UTC").analyze(raw)
    msg = ReportFormatter.format_summary(result)

    assert "converted from INR" in msg
    assert "Total P&L: 0.00 USD" in msg
