from abc import ABC, abstractmethod
from typing import Dict

# Used whenever live rates are unavailable. Units of currency per 1 USD.
FALLBACK_RATES: Dict[str, float] = {
    "USD": 1.0,
    "INR": 87.0,
    "EUR": 0.92,
    "GBP": 0.79,
    "JPY": 149.5,
    "AUD": 1.52,
    "CAD": 1.36,
    "CNY": 7.24,
    "SGD": 1.34,
    "CHF": 0.88,
}


class RateProvider(ABC):
    """
    Abstract source of FX rates.
    The currency normalizer only talks to this interface, so the rate cache
    lives with the provider instance rather than in module state.
    """

    @abstractmethod
    def get_rates(self) -> Dict[str, float]:
        """
        Returns a table of currency code -> units per 1 USD.
        Implementations must not raise; on failure they return fallback rates.
        """
        pass
