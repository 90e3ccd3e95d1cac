"""
pension_valuation/buyout.py - Lump-Sum Buyout Comparison

Compares a lump-sum offer against the fair value of the pension
(present value with COLA plus the survivor's value):

    difference = offer - fair_value
    difference / fair_value > +10%  -> accept   (offer is rich)
    difference / fair_value < -10%  -> reject   (offer is stingy)
    otherwise                       -> neutral

Author: Pension Valuation Project
License: MIT
"""

from dataclasses import dataclass, field
from enum import Enum
import logging

from .assumptions import ValuationAssumptions

logger = logging.getLogger(__name__)


class BuyoutRecommendation(Enum):
    """Outcome of a buyout comparison."""
    ACCEPT = "accept"
    REJECT = "reject"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class BuyoutComparison:
    """Result of comparing an offer to fair value."""
    fair_value: float
    difference: float
    recommendation: BuyoutRecommendation

    @property
    def difference_percent(self) -> float:
        if self.fair_value <= 0:
            return 0.0
        return self.difference / self.fair_value * 100


@dataclass
class BuyoutComparator:
    """Classifies a lump-sum offer against the pension's fair value."""

    assumptions: ValuationAssumptions = field(default_factory=ValuationAssumptions)

    def classify(self, difference: float, fair_value: float) -> BuyoutRecommendation:
        """
        Classify a difference against the threshold band.

        With no positive fair value to compare against, any positive offer
        premium is an accept and everything else is neutral.
        """
        threshold = self.assumptions.buyout_threshold_percent

        if fair_value <= 0:
            return BuyoutRecommendation.ACCEPT if difference > 0 else BuyoutRecommendation.NEUTRAL

        difference_percent = difference / fair_value * 100
        if difference_percent > threshold:
            return BuyoutRecommendation.ACCEPT
        elif difference_percent < -threshold:
            return BuyoutRecommendation.REJECT
        return BuyoutRecommendation.NEUTRAL

    def compare(self, lump_sum_offer: float, fair_value: float) -> BuyoutComparison:
        difference = lump_sum_offer - fair_value
        return BuyoutComparison(
            fair_value=fair_value,
            difference=difference,
            recommendation=self.classify(difference, fair_value),
        )
