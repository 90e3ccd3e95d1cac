"""
pension_valuation/social_security.py - Social Security Offsets (WEP / GPO)

Applies only when the pension-qualifying job was NOT covered by Social
Security.

Windfall Elimination Provision (worker's own benefit):
- 30+ years of substantial earnings: exempt
- 20-29 years: MAX_WEP × (1 - (years - 20) × 5%)
- < 20 years: full MAX_WEP
- Never more than 50% of the benefit

Government Pension Offset (spousal/survivor benefit):
- min(pension × 2/3, SS benefit)

GPO conceptually reduces a spousal/survivor benefit, which is a different
underlying benefit from the worker benefit WEP reduces. Both are computed
here against the same stated SS benefit.

Author: Pension Valuation Project
License: MIT
"""

from typing import Optional
from dataclasses import dataclass, field
import logging

from .assumptions import ValuationAssumptions

logger = logging.getLogger(__name__)


@dataclass
class SocialSecurityOffsetCalculator:
    """WEP and GPO reductions to a stated monthly Social Security benefit."""

    assumptions: ValuationAssumptions = field(default_factory=ValuationAssumptions)

    def get_wep_factor(self, years_of_substantial_earnings: float) -> float:
        """
        Share of the maximum WEP reduction that applies.

        Args:
            years_of_substantial_earnings: SS-covered years with substantial earnings

        Returns:
            Factor in [0, 1]
        """
        a = self.assumptions
        if years_of_substantial_earnings >= a.wep_exemption_years:
            return 0.0
        if years_of_substantial_earnings >= a.wep_phase_in_years:
            return 1 - (years_of_substantial_earnings - a.wep_phase_in_years) * a.wep_step_per_year
        return 1.0

    def wep_reduction(self, ss_monthly_benefit: float,
                      years_of_substantial_earnings: Optional[float]) -> float:
        """
        Calculate the monthly WEP reduction.

        Missing years are treated as 0 (full reduction).
        """
        years = years_of_substantial_earnings or 0
        factor = self.get_wep_factor(years)
        if factor <= 0:
            return 0.0

        cap = ss_monthly_benefit * self.assumptions.wep_benefit_cap
        return min(self.assumptions.max_wep_reduction * factor, cap)

    def gpo_reduction(self, pension_monthly_benefit: float,
                      ss_monthly_benefit: float) -> float:
        """Calculate the monthly GPO reduction."""
        offset = pension_monthly_benefit * self.assumptions.gpo_pension_fraction
        return min(offset, ss_monthly_benefit)

    def effective_benefit(self, ss_monthly_benefit: float, wep_reduction: float) -> float:
        """SS benefit after WEP, floored at zero."""
        return max(0.0, ss_monthly_benefit - wep_reduction)

    def is_wep_exempt(self, years_of_substantial_earnings: Optional[float]) -> bool:
        return (years_of_substantial_earnings or 0) >= self.assumptions.wep_exemption_years
