import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from trade_analytics.config.logging import logger
from trade_analytics.config.settings import settings
from trade_analytics.core.exceptions import InputValidationError
from trade_analytics.core.models import (
    BundleMetadata,
    FuturesPosition,
    Holding,
    IncomeRecord,
    IncomeType,
    SpotTrade,
    TradeBundle,
)

# Epoch values above this are milliseconds
_MS_THRESHOLD = 1e11

_METADATA_KEYS = ("primaryCurrency", "spotHoldings", "exchanges")


class BundleMapper:
    """
    Turns the raw JSON bundle delivered by the fetching collaborators into
    immutable domain models. This is the only place input is validated.
    """

    def __init__(self, strict: Optional[bool] = None):
        if strict is None:
            strict = settings.STRICT_NUMERIC if settings else True
        self.strict = strict

    def to_bundle(self, raw: Any) -> TradeBundle:
        if isinstance(raw, TradeBundle):
            return raw
        if isinstance(raw, list):
            return self._from_legacy(raw)
        if isinstance(raw, dict):
            return self._from_structured(raw)
        raise InputValidationError("bundle", type(raw).__name__, "expected a list of trades or an object")

    def _from_structured(self, raw: Dict[str, Any]) -> TradeBundle:
        spot = [self.to_spot_trade(t) for t in raw.get("spotTrades") or []]
        income = [self.to_income_record(r) for r in raw.get("futuresIncome") or []]
        positions = [self.to_position(p) for p in raw.get("futuresPositions") or []]
        metadata = self.to_metadata(raw.get("metadata") or {})
        logger.info(
            f"Mapped bundle: {len(spot)} spot fills, {len(income)} income records, "
            f"{len(positions)} positions, {len(metadata.spot_holdings)} holdings"
        )
        return TradeBundle(
            spot_trades=tuple(spot),
            futures_income=tuple(income),
            futures_positions=tuple(positions),
            metadata=metadata,
        )

    def _from_legacy(self, raw: Sequence[Any]) -> TradeBundle:
        spot: List[SpotTrade] = []
        ignored = 0
        for entry in raw:
            if not isinstance(entry, dict):
                raise InputValidationError("trade", entry, "expected an object")
            account = str(entry.get("accountType") or "SPOT").upper()
            if account == "FUTURES":
                ignored += 1
                continue
            spot.append(self.to_spot_trade(entry))

        extra: Dict[str, Any] = {}
        if ignored:
            logger.warning(f"Ignored {ignored} legacy FUTURES fills: futures analysis needs the income ledger")
            extra["ignoredLegacyFuturesFills"] = ignored
        logger.info(f"Mapped legacy trade list: {len(spot)} spot fills")
        return TradeBundle(spot_trades=tuple(spot), metadata=BundleMetadata(extra=extra))

    def to_spot_trade(self, raw: Dict[str, Any]) -> SpotTrade:
        symbol = self._symbol(raw, required=True)
        qty = self.to_float(raw.get("qty"), "qty")
        price = self.to_float(raw.get("price"), "price")
        quote_qty = self.to_float(raw.get("quoteQty"), "quoteQty") or qty * price
        return SpotTrade(
            symbol=symbol,
            timestamp=self.to_timestamp(raw.get("time"), "time"),
            qty=qty,
            price=price,
            is_buyer=self._is_buyer(raw),
            commission=self.to_float(raw.get("commission"), "commission"),
            commission_asset=str(raw.get("commissionAsset") or "").upper(),
            quote_qty=quote_qty,
            is_maker=self._to_bool(raw.get("isMaker")),
            exchange=self._optional_str(raw.get("exchange")),
            trade_id=self._optional_str(raw.get("id")),
        )

    def to_income_record(self, raw: Dict[str, Any]) -> IncomeRecord:
        return IncomeRecord(
            # transfers carry no symbol
            symbol=self._symbol(raw, required=False),
            timestamp=self.to_timestamp(raw.get("time"), "time"),
            amount=self.to_float(raw.get("income"), "income"),
            income_type=IncomeType.parse(raw.get("incomeType")),
            trade_id=self._optional_str(raw.get("tradeId")),
            exchange=self._optional_str(raw.get("exchange")),
        )

    def to_position(self, raw: Dict[str, Any]) -> FuturesPosition:
        unrealized = raw.get("unRealizedProfit", raw.get("unrealizedProfit"))
        margin = raw.get("initialMargin", raw.get("isolatedMargin", raw.get("margin")))
        return FuturesPosition(
            symbol=self._symbol(raw, required=True),
            position_amt=self.to_float(raw.get("positionAmt"), "positionAmt"),
            entry_price=self.to_float(raw.get("entryPrice"), "entryPrice"),
            mark_price=self.to_float(raw.get("markPrice"), "markPrice"),
            unrealized_profit=self.to_float(unrealized, "unRealizedProfit"),
            leverage=self.to_float(raw.get("leverage"), "leverage") or 1.0,
            margin=self.to_float(margin, "margin"),
            liquidation_price=self.to_float(raw.get("liquidationPrice"), "liquidationPrice"),
        )

    def to_holding(self, raw: Dict[str, Any]) -> Holding:
        asset = str(raw.get("asset") or "").strip().upper()
        if not asset:
            raise InputValidationError("asset", raw.get("asset"), "holding needs an asset")
        return Holding(
            asset=asset,
            quantity=self.to_float(raw.get("quantity"), "quantity"),
            price=self.to_float(raw.get("price"), "price"),
            usd_value=self.to_float(raw.get("usdValue"), "usdValue"),
        )

    def to_metadata(self, raw: Dict[str, Any]) -> BundleMetadata:
        if not isinstance(raw, dict):
            raise InputValidationError("metadata", raw, "expected an object")
        currency = raw.get("primaryCurrency")
        return BundleMetadata(
            primary_currency=str(currency).upper() if currency else None,
            spot_holdings=tuple(self.to_holding(h) for h in raw.get("spotHoldings") or []),
            exchanges=tuple(str(e).lower() for e in raw.get("exchanges") or []),
            extra={k: v for k, v in raw.items() if k not in _METADATA_KEYS},
        )

    def to_float(self, value: Any, field: str) -> float:
        """Coerce a JSON number or numeric string. None and '' are 0."""
        if value is None or (isinstance(value, str) and not value.strip()):
            return 0.0
        try:
            number = float(value.strip() if isinstance(value, str) else value)
        except (TypeError, ValueError):
            number = math.nan
        if math.isfinite(number):
            return number
        if self.strict:
            raise InputValidationError(field, value, "not a finite number")
        logger.warning(f"Treating invalid {field}={value!r} as 0")
        return 0.0

    @staticmethod
    def to_timestamp(value: Any, field: str = "time") -> datetime:
        """Epoch milliseconds, epoch seconds, ISO-8601 string or datetime; returned tz-aware."""
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        if isinstance(value, str):
            text = value.strip()
            try:
                value = float(text)
            except ValueError:
                try:
                    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
                except ValueError:
                    raise InputValidationError(field, value, "unparseable timestamp")
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
            seconds = value / 1000 if value > _MS_THRESHOLD else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        raise InputValidationError(field, value, "missing or unparseable timestamp")

    @staticmethod
    def _symbol(raw: Dict[str, Any], required: bool) -> str:
        symbol = str(raw.get("symbol") or "").strip().upper()
        if required and not symbol:
            raise InputValidationError("symbol", raw.get("symbol"), "symbol is required")
        return symbol

    @staticmethod
    def _is_buyer(raw: Dict[str, Any]) -> bool:
        if raw.get("isBuyer") is not None:
            return BundleMapper._to_bool(raw.get("isBuyer"))
        side = str(raw.get("side") or "").upper()
        if side in ("BUY", "SELL"):
            return side == "BUY"
        raise InputValidationError("side", raw.get("side"), "need isBuyer or side BUY/SELL")

    @staticmethod
    def _to_bool(value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        return bool(value)

    @staticmethod
    def _optional_str(value: Any) -> Optional[str]:
        return str(value) if value not in (None, "") else None
