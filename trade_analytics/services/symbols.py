from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from trade_analytics.core.models import Holding, SpotTrade
from trade_analytics.core.results import OpenLot

# Checked in order, so longer tickers that end in a shorter one come first
QUOTE_ASSETS = ("USDT", "USDC", "BUSD", "INR", "USD", "EUR", "GBP", "BTC", "ETH", "BNB")

# Quote suffixes stripped when matching holdings to open positions
MATCH_SUFFIXES = ("USDT", "USDC", "BUSD", "INR", "USD")

SEPARATORS = ("/", "-", "_", " ")

# Fee assets taken at par with the canonical currency
STABLE_ASSETS = ("USDT", "USDC", "BUSD", "USD")


def split_symbol(symbol: str) -> Tuple[str, str]:
    """
    Split a pair into (base, quote).
    BTCUSDT -> (BTC, USDT), ETH/INR -> (ETH, INR), B-BTC_USDT -> (BTC, USDT).
    Unknown quote assets fall back to ("<symbol>", "USD").
    """
    raw = (symbol or "").upper().strip()
    if raw.startswith("B-") and "_" in raw:
        base, _, quote = raw[2:].partition("_")
        return base, quote
    for sep in ("/", "-", "_"):
        if sep in raw:
            base, _, quote = raw.partition(sep)
            return base, quote
    for quote in QUOTE_ASSETS:
        if raw.endswith(quote) and len(raw) > len(quote):
            return raw[: -len(quote)], quote
    return raw, "USD"


def quote_asset(symbol: str) -> str:
    return split_symbol(symbol)[1]


def base_asset(symbol: str) -> str:
    return split_symbol(symbol)[0]


def normalize_symbol(symbol: str) -> str:
    """Uppercase, drop separators and a trailing quote suffix: 'eth/usdt' -> 'ETH'."""
    cleaned = (symbol or "").upper().strip()
    if cleaned.startswith("B-") and "_" in cleaned:
        return split_symbol(cleaned)[0]
    for sep in SEPARATORS:
        cleaned = cleaned.replace(sep, "")
    for suffix in MATCH_SUFFIXES:
        if cleaned.endswith(suffix) and len(cleaned) > len(suffix):
            return cleaned[: -len(suffix)]
    return cleaned


def commission_in_quote(trade: SpotTrade) -> float:
    """
    Commission valued in the pair's quote currency.
    Fees charged in the base asset are priced at the fill price. Fees in a
    third asset (e.g. BNB) cannot be priced from the fill and count as 0;
    their raw amounts are only reported per asset.
    """
    asset = (trade.commission_asset or "").upper()
    base, quote = split_symbol(trade.symbol)
    if not asset or asset == quote:
        return trade.commission
    if asset == base:
        return trade.commission * trade.price
    if asset in STABLE_ASSETS:
        return trade.commission
    return 0.0


def infer_exchange(symbol: str, explicit: Optional[str], exchanges: Sequence[str]) -> str:
    if explicit:
        return explicit.lower()
    upper = (symbol or "").upper()
    if "INR" in upper:
        return "coindcx"
    known = [e.lower() for e in exchanges]
    if any(stable in upper for stable in ("USDT", "USDC", "BUSD")) and "binance" in known:
        return "binance"
    return known[0] if known else "unknown"


@dataclass
class SymbolMatchTable:
    """Explicit holding <-> open position pairing, unmatched entries kept for diagnostics."""
    pairs: List[Tuple[Holding, OpenLot]] = field(default_factory=list)
    unmatched_holdings: List[Holding] = field(default_factory=list)
    unmatched_positions: List[OpenLot] = field(default_factory=list)


def match_holdings(holdings: Sequence[Holding], positions: Sequence[OpenLot]) -> SymbolMatchTable:
    """Pair each holding with at most one open position sharing its normalized symbol."""
    by_key: Dict[str, List[OpenLot]] = {}
    for lot in positions:
        by_key.setdefault(normalize_symbol(lot.symbol), []).append(lot)

    table = SymbolMatchTable()
    used = set()
    for holding in holdings:
        candidates = [lot for lot in by_key.get(normalize_symbol(holding.asset), []) if id(lot) not in used]
        if candidates:
            lot = candidates[0]
            used.add(id(lot))
            table.pairs.append((holding, lot))
        else:
            table.unmatched_holdings.append(holding)

    table.unmatched_positions = [lot for lot in positions if id(lot) not in used]
    return table
