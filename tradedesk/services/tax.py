"""
Tax rate providers - the single order-level rate applied to summed line totals
"""
from decimal import Decimal
from typing import Protocol, runtime_checkable

from tradedesk.core.config import settings


@runtime_checkable
class TaxRateProvider(Protocol):
    def rate_for(self, order) -> Decimal:
        """Rate as a fraction, e.g. Decimal("0.18")"""
        ...


class FixedTaxRate:
    def __init__(self, rate):
        self.rate = Decimal(str(rate))

    def rate_for(self, order) -> Decimal:
        return self.rate


class SettingsTaxRate:
    """Reads DEFAULT_TAX_RATE once per computation"""

    def rate_for(self, order) -> Decimal:
        return Decimal(str(settings.DEFAULT_TAX_RATE))
