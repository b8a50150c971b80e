import math
from dataclasses import dataclass
from typing import Mapping

from marketplace.config import DEFAULT_COMMISSION_RATES
from marketplace.errors import InvalidAmount, UnknownCategory


@dataclass(frozen=True)
class CommissionSplit:
    commission: float
    seller_amount: float
    rate: float


def rate_for(category, rates: Mapping[str, float] = DEFAULT_COMMISSION_RATES) -> float:
    if not isinstance(category, str) or category not in rates:
        raise UnknownCategory(f"Unknown category: {category}")
    return rates[category]


def commission_for(price, category, rates: Mapping[str, float] = DEFAULT_COMMISSION_RATES) -> CommissionSplit:
    """Split ``price`` between the marketplace and the seller.

    No rounding happens here; minor-unit rounding belongs to whoever moves the
    money.
    """
    if isinstance(price, bool) or not isinstance(price, (int, float)) or not math.isfinite(price) or price < 0:
        raise InvalidAmount("Price must be a non-negative number.")
    rate = rate_for(category, rates)
    commission = price * rate
    return CommissionSplit(commission=commission, seller_amount=price - commission, rate=rate)
