from typing import Any, Optional

from trade_analytics.config.logging import logger
from trade_analytics.core.results import AnalyticsResult
from trade_analytics.infrastructure.bundle.mapper import BundleMapper
from trade_analytics.infrastructure.fx.base import RateProvider
from trade_analytics.services.aggregator import MasterAggregator
from trade_analytics.services.behavioral import BehavioralPatternDetector
from trade_analytics.services.currency import CurrencyNormalizer
from trade_analytics.services.futures_classifier import FuturesIncomeClassifier
from trade_analytics.services.performance import resolve_timezone
from trade_analytics.services.psychology import PsychologyScorer
from trade_analytics.services.reconciliation import UnrealizedReconciler
from trade_analytics.services.spot_tracker import SpotPositionTracker


class AnalyticsService:
    """
    Runs the whole pipeline for one bundle:
    map -> normalize currency -> spot / futures -> aggregate -> psychology / behavioral.
    Holds no state between calls apart from the rate provider's cache.
    """

    def __init__(self, rate_provider: Optional[RateProvider] = None, tz: Optional[str] = None,
                 strict: Optional[bool] = None, sanity_multiplier: Optional[float] = None):
        zone = resolve_timezone(tz)
        self.mapper = BundleMapper(strict=strict)
        self.normalizer = CurrencyNormalizer(rate_provider)
        self.spot_tracker = SpotPositionTracker(zone)
        self.futures_classifier = FuturesIncomeClassifier(zone)
        self.aggregator = MasterAggregator(UnrealizedReconciler(sanity_multiplier))
        self.psychology = PsychologyScorer(zone)
        self.behavioral = BehavioralPatternDetector(zone)

    def analyze(self, raw: Any) -> AnalyticsResult:
        """
        raw: legacy trade list, structured bundle dict, or a TradeBundle.
        Raises InputValidationError for malformed input; never for empty input.
        """
        bundle = self.normalizer.auto_convert_to_usd(self.mapper.to_bundle(raw))

        spot = self.spot_tracker.analyze(bundle.spot_trades)
        futures = self.futures_classifier.analyze(bundle.futures_income, bundle.futures_positions)
        result = self.aggregator.aggregate(spot, futures, bundle.metadata, currency=self.normalizer.target)

        result = result.model_copy(update={
            "psychology": self.psychology.score(result),
            "behavioral": self.behavioral.analyze(bundle.spot_trades),
        })
        logger.info(f"Analysis finished: {result.total_trades} trades, P&L {result.total_pnl:.2f} {result.currency}")
        return result
