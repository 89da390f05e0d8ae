import json

import pytest

from trade_analytics.cmd.cli import main

T0_MS = 1704103200000


def run(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def test_analyze_json(tmp_path, capsys):
    path = tmp_path / "bundle.json"
    path.write_text(json.dumps([
        {"symbol": "ETHUSDT", "side": "BUY", "qty": "1", "price": "100", "time": T0_MS},
        {"symbol": "ETHUSDT", "side": "SELL", "qty": "1", "price": "130", "time": T0_MS + 60_000},
    ]))

    assert run(["analyze", str(path), "--json", "--offline"]) == 0
    contract = json.loads(capsys.readouterr().out)
    assert contract["totalPnL"] == pytest.approx(30)
    assert contract["allTrades"][1]["realizedPnl"] == pytest.approx(30)


def test_analyze_text_report(tmp_path, capsys):
    path = tmp_path / "bundle.json"
    path.write_text("{}")

    assert run(["analyze", str(path), "--offline"]) == 0
    assert "No trades to analyze" in capsys.readouterr().out


def test_analyze_failures(tmp_path):
    assert run(["analyze", str(tmp_path / "missing.json"), "--offline"]) == 1

    broken = tmp_path / "broken.json"
    broken.write_text('{"spotTrades": [{"symbol": "BTCUSDT", "side": "BUY", "qty": "x", "price": "1", "time": 1}]}')
    assert run(["analyze", str(broken), "--offline"]) == 1


def test_offline_rates(capsys):
    assert run(["rates", "--offline"]) == 0
    out = capsys.readouterr().out
    assert "USD\t1.0" in out
    assert "INR\t87.0" in out


def test_no_command():
    assert run([]) == 1
