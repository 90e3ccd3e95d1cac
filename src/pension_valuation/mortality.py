"""
pension_valuation/mortality.py - Life Expectancy Adjustment

Shifts a stated life expectancy by a flat, per-category offset:

    private +0, federal_fers +2, federal_csrs +2, state_local +1, military -1

Government-employee populations skew healthier; the military mortality and
disability profile skews the other way. This is a lookup table, not a
statistical mortality model.

Author: Pension Valuation Project
License: MIT
"""

from typing import Optional, Union
from dataclasses import dataclass, field
import logging

from .assumptions import PensionType, ValuationAssumptions, enum_key

logger = logging.getLogger(__name__)


@dataclass
class LifeExpectancyAdjuster:
    """
    Pension-category life expectancy adjustment.

    Unrecognized categories default to a zero offset rather than raising,
    so any user-entered category still produces an estimate.
    """

    assumptions: ValuationAssumptions = field(default_factory=ValuationAssumptions)

    def get_offset(self, pension_type: Union[PensionType, str, None]) -> float:
        """
        Get the mortality offset (years) for a pension category.

        Args:
            pension_type: PensionType member or its string value

        Returns:
            Offset in years (0 for unknown categories)
        """
        return self.assumptions.life_expectancy_offsets.get(enum_key(pension_type), 0)

    def adjust(self, base_life_expectancy: float,
               pension_type: Union[PensionType, str, None]) -> float:
        """Apply the category offset to a base life expectancy."""
        return base_life_expectancy + self.get_offset(pension_type)


def create_life_expectancy_adjuster(
        assumptions: Optional[ValuationAssumptions] = None) -> LifeExpectancyAdjuster:
    return LifeExpectancyAdjuster(assumptions or ValuationAssumptions())
