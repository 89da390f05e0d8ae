import pytest
import requests

from trade_analytics.core.exceptions import ConfigurationError
from trade_analytics.core.models import BundleMetadata, IncomeType, TradeBundle
from trade_analytics.infrastructure.fx.base import FALLBACK_RATES
from trade_analytics.infrastructure.fx.client import HttpRateProvider, StaticRateProvider
from trade_analytics.services.currency import CurrencyNormalizer


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"HTTP {self.status}")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = 0

    def get(self, url, timeout=None):
        self.calls += 1
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class Clock:
    def __init__(self):
        self.now = 1_000.0

    def __call__(self):
        return self.now


def test_detect_currency():
    assert CurrencyNormalizer.detect_currency(BundleMetadata(primary_currency="inr")) == "INR"
    assert CurrencyNormalizer.detect_currency(BundleMetadata(exchanges=("coindcx",))) == "INR"
    assert CurrencyNormalizer.detect_currency(BundleMetadata(exchanges=("binance",))) == "USD"
    assert CurrencyNormalizer.detect_currency(None) == "USD"


def test_convert_round_trip(static_rates):
    normalizer = CurrencyNormalizer(static_rates)
    inr = normalizer.convert(123.45, "USD", "INR")
    assert inr == pytest.approx(123.45 * 87)
    assert normalizer.convert(inr, "INR", "USD") == pytest.approx(123.45)


def test_unknown_currency_converts_at_par(static_rates):
    assert CurrencyNormalizer(static_rates).convert(10, "XYZ", "USD") == pytest.approx(10)


def test_usd_bundle_is_returned_untouched(static_rates, spot_trade, income):
    bundle = TradeBundle(spot_trades=(spot_trade(),), futures_income=(income(5),))
    converted = CurrencyNormalizer(static_rates).auto_convert_to_usd(bundle)

    assert converted is bundle
    assert "convertedToUSD" not in converted.metadata.to_dict()


def test_inr_bundle_converted(static_rates, spot_trade, income, position):
    bundle = TradeBundle(
        spot_trades=(
            spot_trade(symbol="BTCINR", qty=0.5, price=8700, commission=87, commission_asset="INR"),
            spot_trade(symbol="BTCINR", qty=0.5, price=8700, commission=0.001, commission_asset="BTC"),
        ),
        futures_income=(income(870, income_type="REALIZED_PNL"),),
        futures_positions=(position(entry=870, mark=1740, unrealized=870, margin=174),),
        metadata=BundleMetadata(primary_currency="INR"),
    )
    converted = CurrencyNormalizer(static_rates).auto_convert_to_usd(bundle)

    first, second = converted.spot_trades
    assert first.price == pytest.approx(100)
    assert first.qty == 0.5
    assert first.quote_qty == pytest.approx(50)
    assert first.commission == pytest.approx(1)
    # fee charged in BTC is a quantity, not money
    assert second.commission == pytest.approx(0.001)

    assert converted.futures_income[0].amount == pytest.approx(10)
    assert converted.futures_income[0].income_type == IncomeType.REALIZED_PNL
    pos = converted.futures_positions[0]
    assert (pos.entry_price, pos.mark_price, pos.unrealized_profit, pos.margin) == pytest.approx((10, 20, 10, 2))

    meta = converted.metadata.to_dict()
    assert meta["originalCurrency"] == "INR"
    assert meta["convertedToUSD"] is True
    assert meta["conversionTimestamp"]

    # input left as it was
    assert bundle.spot_trades[0].price == 8700
    assert not bundle.metadata.converted_to_usd


def test_http_provider_caches_within_ttl():
    session = FakeSession(FakeResponse({"rates": {"USD": 1, "INR": 83.1}}))
    clock = Clock()
    provider = HttpRateProvider(url="https://fx.test/latest", ttl_seconds=60, session=session, clock=clock)

    assert provider.get_rates()["INR"] == pytest.approx(83.1)
    clock.now += 30
    assert provider.get_rates()["INR"] == pytest.approx(83.1)
    assert session.calls == 1

    status = provider.cache_status()
    assert status["cached"] is True
    assert status["remaining"] == pytest.approx(30)


def test_http_provider_refreshes_after_ttl():
    session = FakeSession(
        FakeResponse({"rates": {"INR": 83.0}}),
        FakeResponse({"rates": {"INR": 84.0}}),
    )
    clock = Clock()
    provider = HttpRateProvider(url="https://fx.test/latest", ttl_seconds=60, session=session, clock=clock)

    provider.get_rates()
    clock.now += 61
    rates = provider.get_rates()
    assert rates["INR"] == pytest.approx(84.0)
    assert rates["USD"] == 1.0
    assert session.calls == 2


def test_http_provider_falls_back_without_caching():
    session = FakeSession(
        requests.ConnectionError("down"),
        FakeResponse({"rates": {"INR": 83.0}}),
    )
    provider = HttpRateProvider(url="https://fx.test/latest", session=session, clock=Clock())

    assert provider.get_rates() == FALLBACK_RATES
    assert provider.cache_status()["cached"] is False
    assert provider.get_rates()["INR"] == pytest.approx(83.0)
    assert session.calls == 2


@pytest.mark.parametrize("response", [
    FakeResponse({}, status=503),
    FakeResponse(ValueError("not json")),
    FakeResponse({"result": "error"}),
])
def test_http_provider_bad_responses_use_fallback(response):
    provider = HttpRateProvider(url="https://fx.test/latest", session=FakeSession(response), clock=Clock())
    assert provider.get_rates() == FALLBACK_RATES


def test_http_provider_via_monkeypatched_session(monkeypatch):
    def fake_get(self, url, timeout=None):
        assert url == "https://fx.test/latest"
        return FakeResponse({"rates": {"EUR": 0.9}})

    monkeypatch.setattr(requests.Session, "get", fake_get)
    provider = HttpRateProvider(url="https://fx.test/latest")
    assert provider.get_rates()["EUR"] == pytest.approx(0.9)


def test_clear_cache_forces_refetch():
    session = FakeSession(FakeResponse({"rates": {"INR": 83.0}}), FakeResponse({"rates": {"INR": 85.0}}))
    provider = HttpRateProvider(url="https://fx.test/latest", session=session, clock=Clock())

    provider.get_rates()
    provider.clear_cache()
    assert provider.get_rates()["INR"] == pytest.approx(85.0)


def test_http_provider_rejects_non_http_url():
    with pytest.raises(ConfigurationError):
        HttpRateProvider(url="ftp://fx.test/latest")


def test_normalizer_survives_failing_provider():
    class Broken(StaticRateProvider):
        def get_rates(self):
            raise RuntimeError("boom")

    assert CurrencyNormalizer(Broken()).get_rates() == FALLBACK_RATES


def test_converted_bundle_is_not_converted_again(static_rates, spot_trade, income):
    bundle = TradeBundle(
        spot_trades=(spot_trade(symbol="BTCINR", price=8700),),
        futures_income=(income(870),),
        metadata=BundleMetadata(primary_currency="INR"),
    )
    normalizer = CurrencyNormalizer(static_rates)
    once = normalizer.auto_convert_to_usd(bundle)
    twice = normalizer.auto_convert_to_usd(once)

    assert twice is once
    assert twice.spot_trades[0].price == pytest.approx(100)
    assert twice.futures_income[0].amount == pytest.approx(10)
    assert twice.metadata.original_currency == "INR"
