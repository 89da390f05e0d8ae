from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Optional

from trade_analytics.config.logging import logger
from trade_analytics.config.settings import settings
from trade_analytics.core.models import BundleMetadata, TradeBundle
from trade_analytics.infrastructure.fx.base import FALLBACK_RATES, RateProvider
from trade_analytics.infrastructure.fx.client import HttpRateProvider
from trade_analytics.services.symbols import quote_asset

# Exchanges that only quote in one fiat currency
EXCHANGE_CURRENCIES = {
    "coindcx": "INR",
}


class CurrencyNormalizer:
    """
    Detects the currency a bundle is denominated in and converts every
    monetary field to the canonical currency. Quantities are base-asset
    counts and are never touched.
    """

    def __init__(self, rate_provider: Optional[RateProvider] = None, target: Optional[str] = None):
        self.rate_provider = rate_provider or HttpRateProvider()
        self.target = (target or (settings.CANONICAL_CURRENCY if settings else "USD")).upper()

    @staticmethod
    def detect_currency(metadata: Optional[BundleMetadata]) -> str:
        if metadata is None:
            return "USD"
        if metadata.primary_currency:
            return metadata.primary_currency.upper()
        for exchange in metadata.exchanges:
            hinted = EXCHANGE_CURRENCIES.get(exchange.lower())
            if hinted:
                return hinted
        return "USD"

    def get_rates(self) -> Dict[str, float]:
        try:
            return self.rate_provider.get_rates()
        except Exception as e:
            logger.error(f"Rate provider failed, using fallback rates: {e}")
            return dict(FALLBACK_RATES)

    def convert(self, amount: float, from_currency: str, to_currency: str,
                rates: Optional[Dict[str, float]] = None) -> float:
        """Pivot through USD: amount / rates[from] * rates[to]."""
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency or not amount:
            return amount
        rates = rates if rates is not None else self.get_rates()
        return amount / self._rate(rates, from_currency) * self._rate(rates, to_currency)

    @staticmethod
    def _rate(rates: Dict[str, float], code: str) -> float:
        rate = rates.get(code)
        if not rate:
            logger.warning(f"No FX rate for {code}, converting at 1.0")
            return 1.0
        return rate

    def auto_convert_to_usd(self, bundle: TradeBundle) -> TradeBundle:
        """
        Returns a converted copy. A bundle already in the target currency, or
        one this normalizer has already converted, comes back as is.
        """
        if bundle.metadata.converted_to_usd:
            logger.debug(f"Bundle already converted from {bundle.metadata.original_currency}, no conversion")
            return bundle
        source = self.detect_currency(bundle.metadata)
        if source == self.target:
            logger.debug(f"Bundle already in {self.target}, no conversion")
            return bundle

        rates = self.get_rates()
        logger.info(f"Converting bundle from {source} to {self.target} (1 USD = {rates.get(source, 1.0)} {source})")

        def money(value: float) -> float:
            return self.convert(value, source, self.target, rates)

        spot = []
        for trade in bundle.spot_trades:
            fee_asset = trade.commission_asset.upper()
            # crypto-denominated fees are not money in the source currency
            converts_fee = fee_asset in ("", source, quote_asset(trade.symbol))
            spot.append(replace(
                trade,
                price=money(trade.price),
                quote_qty=money(trade.quote_qty),
                commission=money(trade.commission) if converts_fee else trade.commission,
            ))

        income = [replace(record, amount=money(record.amount)) for record in bundle.futures_income]

        positions = [
            replace(
                position,
                entry_price=money(position.entry_price),
                mark_price=money(position.mark_price),
                liquidation_price=money(position.liquidation_price),
                unrealized_profit=money(position.unrealized_profit),
                margin=money(position.margin),
            )
            for position in bundle.futures_positions
        ]

        metadata = replace(
            bundle.metadata,
            original_currency=source,
            converted_to_usd=True,
            conversion_timestamp=datetime.now(timezone.utc).isoformat(),
        )
        return TradeBundle(
            spot_trades=tuple(spot),
            futures_income=tuple(income),
            futures_positions=tuple(positions),
            metadata=metadata,
        )
