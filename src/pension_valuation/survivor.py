"""
pension_valuation/survivor.py - Joint & Survivor Benefit Model

Maps a survivor election to:
- a reduction factor (share of the primary benefit given up to fund the
  survivor annuity)
- a continuation rate (share of the *reduced* benefit paid on to the survivor)

    Option        Reduction   Continuation
    single_life     0.0%          0%
    joint_50        5.0%         50%
    joint_75        7.5%         75%
    joint_100      10.0%        100%

These are flat approximations of actuarial joint-and-survivor tables, not
insurer-grade output.

Author: Pension Valuation Project
License: MIT
"""

from typing import Optional, Union
from dataclasses import dataclass, field
import logging

from .assumptions import SurvivorOption, ValuationAssumptions, enum_key

logger = logging.getLogger(__name__)


@dataclass
class SurvivorBenefitModel:
    """Survivor election lookups. Unknown options map to 0 for both tables."""

    assumptions: ValuationAssumptions = field(default_factory=ValuationAssumptions)

    def reduction_factor(self, option: Union[SurvivorOption, str, None]) -> float:
        """Fraction of the primary benefit given up for the survivor annuity."""
        return self.assumptions.survivor_reduction_factors.get(enum_key(option), 0.0)

    def continuation_rate(self, option: Union[SurvivorOption, str, None]) -> float:
        """Fraction of the reduced benefit that continues to the survivor."""
        return self.assumptions.survivor_continuation_rates.get(enum_key(option), 0.0)

    def reduced_benefit(self, monthly_benefit: float,
                        option: Union[SurvivorOption, str, None]) -> float:
        """Monthly benefit after the survivor reduction."""
        return monthly_benefit * (1 - self.reduction_factor(option))

    @staticmethod
    def is_joint(option: Union[SurvivorOption, str, None]) -> bool:
        return enum_key(option) != SurvivorOption.SINGLE_LIFE.value


def create_survivor_model(
        assumptions: Optional[ValuationAssumptions] = None) -> SurvivorBenefitModel:
    return SurvivorBenefitModel(assumptions or ValuationAssumptions())
