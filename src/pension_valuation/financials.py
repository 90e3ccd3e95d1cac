"""
pension_valuation/financials.py - Financial Mathematics Engine

Implements the time-value-of-money calculations for pension valuations.

Mathematical Framework:
- Monthly rates: i_m = i / 12, g_m = g / 12  (flat division, not (1+i)^{1/12} - 1)
- Discount factors: v^m = (1 + i_m)^{-m}, m = months from today
- COLA growth: B_{k+1} = B_k × (1 + g_m)  (compounded monthly)
- PV = Σ_{m} B_m × v^m over every payment month
- Portfolio equivalent: C = I / w

The flat monthly conversion is a known simplification; changing it would
move every present value, so it is kept as-is.

Author: Pension Valuation Project
License: MIT
"""

import numpy as np
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


@dataclass
class PresentValueDiscounter:
    """
    Present value of a level (or COLA-growing) monthly payment stream.

    Rates are annual percentages (5.0 means 5%).
    """

    def get_monthly_rate(self, annual_rate_percent: float) -> float:
        """Convert an annual percentage rate to a flat monthly fraction."""
        return annual_rate_percent / MONTHS_PER_YEAR / 100

    def get_discount_factor(self, months: float, annual_discount_rate: float) -> float:
        """
        Calculate the discount divisor for a payment `months` from today.

        Formula: (1 + i_m)^m
        """
        monthly_discount = self.get_monthly_rate(annual_discount_rate)
        return np.power(1 + monthly_discount, months)

    def present_value(self, monthly_benefit: float, start_age: float,
                      current_age: float, end_age: float,
                      annual_discount_rate: float,
                      annual_growth_rate: float = 0.0) -> float:
        """
        Calculate present value of a monthly pension stream.

        Payments run from `start_age` up to `end_age`; the first payment month
        is (start_age - current_age) × 12 months from today. A window with
        end_age <= start_age has no payments and is worth 0.

        Args:
            monthly_benefit: First monthly payment
            start_age: Age at first payment
            current_age: Age today
            end_age: Age payments stop
            annual_discount_rate: Discount rate (percent)
            annual_growth_rate: COLA rate (percent), compounded monthly

        Returns:
            Present value as of today
        """
        years_to_start = max(0, start_age - current_age)
        years_of_payment = max(0, end_age - start_age)
        monthly_discount = self.get_monthly_rate(annual_discount_rate)
        monthly_growth = self.get_monthly_rate(annual_growth_rate)

        present_value = 0.0
        current_benefit = monthly_benefit

        # A fractional window still pays its final partial year in full months
        for year in range(int(np.ceil(years_of_payment))):
            for month in range(MONTHS_PER_YEAR):
                total_months = (years_to_start + year) * MONTHS_PER_YEAR + month
                discount_factor = np.power(1 + monthly_discount, total_months)

                present_value += current_benefit / discount_factor

                current_benefit *= 1 + monthly_growth

        return float(present_value)

    def nominal_total(self, monthly_benefit: float, start_age: float,
                      end_age: float) -> float:
        """Undiscounted sum of level payments (display only)."""
        years_of_payment = max(0, end_age - start_age)
        return monthly_benefit * MONTHS_PER_YEAR * years_of_payment


@dataclass
class PortfolioEquivalentConverter:
    """
    Invested capital that generates an income stream at a withdrawal rate.

    Formula: C = I / (w / 100)
    """

    def equivalent_capital(self, annual_income: float,
                           withdrawal_rate_percent: float) -> float:
        if withdrawal_rate_percent <= 0:
            return 0.0
        return annual_income / (withdrawal_rate_percent / 100)

    def implied_withdrawal_rate(self, annual_income: float, capital: float) -> float:
        """Income as a percent of capital (0 when capital <= 0)."""
        if capital <= 0:
            return 0.0
        return annual_income / capital * 100


def deflate(amount: float, years: float, inflation_rate: float) -> float:
    """
    Express a future amount in today's dollars.

    Formula: A / (1 + π)^max(0, t)
    """
    return float(amount / np.power(1 + inflation_rate, max(0, years)))


if __name__ == "__main__":
    print("=" * 60)
    print("FINANCIAL ENGINE CHECKS")
    print("=" * 60)

    discounter = PresentValueDiscounter()

    print("\nCheck 1: Flat World (discount=0, COLA=0)")
    pv = discounter.present_value(1000.0, 65, 65, 70, 0.0)
    print(f"  PV of $1,000/month × 5 years = ${pv:,.0f} (expected: $60,000)")

    print("\nCheck 2: Discounting (5%)")
    for current_age in [45, 55, 65]:
        pv = discounter.present_value(3000.0, 65, current_age, 90, 5.0)
        print(f"  Age {current_age}: PV = ${pv:,.0f}")

    print("\nCheck 3: COLA")
    for cola in [0.0, 1.0, 2.0, 3.0]:
        pv = discounter.present_value(3000.0, 65, 55, 90, 5.0, cola)
        print(f"  COLA {cola:.1f}%: PV = ${pv:,.0f}")
