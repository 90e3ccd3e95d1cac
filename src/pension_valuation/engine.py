"""
pension_valuation/engine.py - Pension Valuation Engine

Converts a description of a pension benefit into:
- Present value, with and without COLA
- COLA value added
- Survivor (joint & survivor) value to the spouse
- Lump-sum buyout comparison
- WEP / GPO offsets to Social Security
- Portfolio equivalent and implied withdrawal rate

Pipeline order (every step after 2 uses the survivor-reduced benefit):
 1. Adjust life expectancy by pension type
 2. Apply the survivor reduction
 3. PV without COLA / PV with COLA
 4. Survivor value to spouse
 5. Nominal (undiscounted) total
 6. COLA value added
 7. Buyout comparison
 8. WEP / GPO
 9. Portfolio equivalent and withdrawal rate
10. Real annual benefit at retirement

compute() never raises: every subtraction that could go negative is floored
at zero and every division is guarded.

Author: Pension Valuation Project
License: MIT
"""

import pandas as pd
from typing import Dict, List, Optional, Union, Callable, Any, Mapping
from dataclasses import dataclass, asdict, fields, replace
from enum import Enum
from functools import lru_cache
import logging

from .assumptions import (
    PensionType,
    SurvivorOption,
    ValuationAssumptions,
    coerce_enum,
    enum_key,
    create_assumptions,
)
from .mortality import LifeExpectancyAdjuster
from .survivor import SurvivorBenefitModel
from .financials import PresentValueDiscounter, PortfolioEquivalentConverter, deflate
from .social_security import SocialSecurityOffsetCalculator
from .buyout import BuyoutComparator, BuyoutRecommendation

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ('monthly_benefit', 'pension_start_age', 'current_age', 'life_expectancy')

BOOL_FIELDS = ('has_cola', 'has_ss_coverage')

ENUM_FIELDS = {
    'pension_type': PensionType,
    'survivor_option': SurvivorOption,
}

# Normalized key -> field name, for keys that do not simply collapse to a field
FIELD_ALIASES = {
    'benefit': 'monthly_benefit',
    'monthlypension': 'monthly_benefit',
    'startage': 'pension_start_age',
    'retirementage': 'pension_start_age',
    'age': 'current_age',
    'survivor': 'survivor_option',
    'type': 'pension_type',
    'cola': 'cola_rate',
    'offer': 'lump_sum_offer',
    'lumpsum': 'lump_sum_offer',
    'ssbenefit': 'ss_monthly_benefit',
    'yearsofsubstantialearning': 'years_of_substantial_earnings',
}

ID_KEYS = ('scenarioid', 'id', 'scenario', 'name')


def normalize_key(key: Any) -> str:
    return str(key).lower().replace(' ', '').replace('_', '').replace('-', '')


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', 'yes', 'y', '1', 't')
    return bool(value)


def _to_number(value: Any) -> Union[int, float]:
    number = float(value)
    return int(number) if number.is_integer() else number


@dataclass(frozen=True)
class PensionInputs:
    """
    Immutable description of a pension benefit.

    Rates are percentages (5.0 means 5%). Optional fields stay None when not
    supplied; None and 0 are kept distinct in the record even where the
    pipeline treats them alike.
    """
    monthly_benefit: float
    pension_start_age: int
    current_age: int
    life_expectancy: int
    pension_type: PensionType = PensionType.PRIVATE
    has_cola: bool = False
    cola_rate: float = 2.0
    survivor_option: SurvivorOption = SurvivorOption.SINGLE_LIFE
    spouse_age: Optional[int] = None
    spouse_life_expectancy: Optional[int] = None
    discount_rate: float = 5.0
    lump_sum_offer: Optional[float] = None
    has_ss_coverage: bool = True
    ss_monthly_benefit: Optional[float] = None
    years_of_substantial_earnings: Optional[int] = None

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Any]) -> 'PensionInputs':
        """
        Build inputs from a loosely keyed mapping.

        Accepts snake_case, camelCase ("monthlyBenefit", "hasCOLA") and
        spaced column headers. Missing or NaN values fall back to defaults.

        Raises:
            ValueError: if a required field is missing
        """
        field_names = {normalize_key(f.name): f.name for f in fields(cls)}

        values: Dict[str, Any] = {}
        for key, value in mapping.items():
            norm = normalize_key(key)
            name = field_names.get(norm) or FIELD_ALIASES.get(norm)
            if name is None or name in values or _is_missing(value):
                continue

            if name in BOOL_FIELDS:
                values[name] = _to_bool(value)
            elif name in ENUM_FIELDS:
                values[name] = coerce_enum(ENUM_FIELDS[name], value)
            else:
                values[name] = _to_number(value)

        missing = [f for f in REQUIRED_FIELDS if f not in values]
        if missing:
            raise ValueError(f"Pension inputs missing required fields: {missing}")

        return cls(**values)

    def replace(self, **changes) -> 'PensionInputs':
        return replace(self, **changes)


@dataclass(frozen=True)
class PensionValuation:
    """Complete valuation results for a single pension."""
    present_value: float
    present_value_with_cola: float
    nominal_total: float
    annual_benefit: float
    real_annual_benefit_at_retirement: float
    cola_value_added: float
    cola_value_percent: float
    survivor_reduction: float
    survivor_value_to_spouse: float
    portfolio_equivalent: float
    withdrawal_rate_equivalent: float
    buyout_fair_value: Optional[float] = None
    buyout_difference: Optional[float] = None
    buyout_recommendation: Optional[BuyoutRecommendation] = None
    wep_reduction: Optional[float] = None
    gpo_reduction: Optional[float] = None
    effective_ss_benefit: Optional[float] = None
    adjusted_life_expectancy: float = 0.0
    adjusted_monthly_benefit: float = 0.0
    payment_years: float = 0.0

    @property
    def total_pension_value(self) -> float:
        """PV with COLA plus the survivor's value."""
        return self.present_value_with_cola + self.survivor_value_to_spouse

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, Enum):
                result[key] = value.value
        return result


# Output column names for tabulated results
RESULT_COLUMNS = {
    'present_value': 'PresentValue',
    'present_value_with_cola': 'PresentValueWithCOLA',
    'nominal_total': 'NominalTotal',
    'annual_benefit': 'AnnualBenefit',
    'real_annual_benefit_at_retirement': 'RealAnnualBenefit',
    'cola_value_added': 'COLAValueAdded',
    'cola_value_percent': 'COLAValuePct',
    'survivor_reduction': 'SurvivorReductionPct',
    'survivor_value_to_spouse': 'SurvivorValue',
    'buyout_fair_value': 'BuyoutFairValue',
    'buyout_difference': 'BuyoutDifference',
    'buyout_recommendation': 'BuyoutRecommendation',
    'wep_reduction': 'WEPReduction',
    'gpo_reduction': 'GPOReduction',
    'effective_ss_benefit': 'EffectiveSSBenefit',
    'portfolio_equivalent': 'PortfolioEquivalent',
    'withdrawal_rate_equivalent': 'WithdrawalRatePct',
    'adjusted_life_expectancy': 'AdjustedLifeExpectancy',
    'adjusted_monthly_benefit': 'AdjustedMonthlyBenefit',
    'payment_years': 'PaymentYears',
}


def valuations_to_dataframe(valuations: List[PensionValuation],
                            scenario_ids: Optional[List[str]] = None) -> pd.DataFrame:
    """Tabulate valuations, one row per scenario."""
    if scenario_ids is None:
        scenario_ids = [f'S{i}' for i in range(len(valuations))]

    rows = []
    for scenario_id, valuation in zip(scenario_ids, valuations):
        row = {'ScenarioID': scenario_id}
        row.update({RESULT_COLUMNS[k]: v for k, v in valuation.to_dict().items()})
        rows.append(row)

    return pd.DataFrame(rows, columns=['ScenarioID'] + list(RESULT_COLUMNS.values()))


class PensionValuationEngine:
    """Pension valuation pipeline."""

    def __init__(self, assumptions: Optional[ValuationAssumptions] = None):
        self.assumptions = assumptions or ValuationAssumptions()

        self.life_expectancy = LifeExpectancyAdjuster(self.assumptions)
        self.survivor = SurvivorBenefitModel(self.assumptions)
        self.discounter = PresentValueDiscounter()
        self.social_security = SocialSecurityOffsetCalculator(self.assumptions)
        self.portfolio = PortfolioEquivalentConverter()
        self.buyout = BuyoutComparator(self.assumptions)

        logger.info(
            f"PensionValuationEngine initialized: inflation={self.assumptions.inflation_rate:.2%}, "
            f"withdrawal={self.assumptions.reference_withdrawal_rate:.1f}%, "
            f"max WEP=${self.assumptions.max_wep_reduction:,.0f}"
        )

    def compute(self, inputs: PensionInputs) -> PensionValuation:
        """Value a single pension. Pure function of `inputs` and the assumptions."""
        a = self.assumptions

        # 1. Mortality adjustment
        adjusted_life_exp = self.life_expectancy.adjust(inputs.life_expectancy, inputs.pension_type)

        # 2. Survivor reduction
        reduction_factor = self.survivor.reduction_factor(inputs.survivor_option)
        adjusted_benefit = inputs.monthly_benefit * (1 - reduction_factor)

        # 3. Present values
        effective_cola = inputs.cola_rate if inputs.has_cola else 0.0
        pv_no_cola = self.discounter.present_value(
            adjusted_benefit, inputs.pension_start_age, inputs.current_age,
            adjusted_life_exp, inputs.discount_rate, 0.0
        )
        pv_with_cola = self.discounter.present_value(
            adjusted_benefit, inputs.pension_start_age, inputs.current_age,
            adjusted_life_exp, inputs.discount_rate, effective_cola
        )

        # 4. Survivor value, paid from the primary's adjusted expectancy onward
        survivor_value = 0.0
        if (self.survivor.is_joint(inputs.survivor_option)
                and inputs.spouse_age is not None
                and inputs.spouse_life_expectancy is not None):
            survivor_benefit = adjusted_benefit * self.survivor.continuation_rate(inputs.survivor_option)
            spouse_survival_years = max(
                0, inputs.spouse_life_expectancy - adjusted_life_exp + a.survivor_buffer_years
            )
            if spouse_survival_years > 0:
                survivor_value = self.discounter.present_value(
                    survivor_benefit, adjusted_life_exp, inputs.current_age,
                    adjusted_life_exp + spouse_survival_years,
                    inputs.discount_rate, effective_cola
                )

        # 5. Nominal total
        payment_years = max(0, adjusted_life_exp - inputs.pension_start_age)
        nominal_total = self.discounter.nominal_total(
            adjusted_benefit, inputs.pension_start_age, adjusted_life_exp
        )

        # 6. COLA impact
        cola_value_added = pv_with_cola - pv_no_cola
        cola_value_percent = cola_value_added / pv_no_cola * 100 if pv_no_cola > 0 else 0.0

        total_pension_value = pv_with_cola + survivor_value

        # 7. Buyout
        buyout_fair_value = None
        buyout_difference = None
        buyout_recommendation = None
        if inputs.lump_sum_offer is not None and inputs.lump_sum_offer > 0:
            comparison = self.buyout.compare(inputs.lump_sum_offer, total_pension_value)
            buyout_fair_value = comparison.fair_value
            buyout_difference = comparison.difference
            buyout_recommendation = comparison.recommendation

        # 8. WEP / GPO
        wep_reduction = None
        gpo_reduction = None
        effective_ss_benefit = None
        if (not inputs.has_ss_coverage
                and inputs.ss_monthly_benefit is not None
                and inputs.ss_monthly_benefit > 0):
            wep_reduction = self.social_security.wep_reduction(
                inputs.ss_monthly_benefit, inputs.years_of_substantial_earnings
            )
            effective_ss_benefit = self.social_security.effective_benefit(
                inputs.ss_monthly_benefit, wep_reduction
            )
            if (enum_key(inputs.pension_type) != PensionType.PRIVATE.value
                    and self.survivor.is_joint(inputs.survivor_option)):
                gpo_reduction = self.social_security.gpo_reduction(
                    inputs.monthly_benefit, inputs.ss_monthly_benefit
                )

        # 9. Portfolio translation
        annual_benefit = adjusted_benefit * 12
        portfolio_equivalent = self.portfolio.equivalent_capital(
            annual_benefit, a.reference_withdrawal_rate
        )
        withdrawal_rate_equivalent = self.portfolio.implied_withdrawal_rate(
            annual_benefit, total_pension_value
        )

        # 10. Real value at retirement
        years_to_start = max(0, inputs.pension_start_age - inputs.current_age)
        real_annual_benefit = deflate(annual_benefit, years_to_start, a.inflation_rate)

        logger.debug(
            f"Valued pension: PV=${pv_no_cola:,.0f}, PV(COLA)=${pv_with_cola:,.0f}, "
            f"survivor=${survivor_value:,.0f}, nominal=${nominal_total:,.0f}"
        )

        return PensionValuation(
            present_value=pv_no_cola,
            present_value_with_cola=pv_with_cola,
            nominal_total=nominal_total,
            annual_benefit=annual_benefit,
            real_annual_benefit_at_retirement=real_annual_benefit,
            cola_value_added=cola_value_added,
            cola_value_percent=cola_value_percent,
            survivor_reduction=reduction_factor * 100,
            survivor_value_to_spouse=survivor_value,
            portfolio_equivalent=portfolio_equivalent,
            withdrawal_rate_equivalent=withdrawal_rate_equivalent,
            buyout_fair_value=buyout_fair_value,
            buyout_difference=buyout_difference,
            buyout_recommendation=buyout_recommendation,
            wep_reduction=wep_reduction,
            gpo_reduction=gpo_reduction,
            effective_ss_benefit=effective_ss_benefit,
            adjusted_life_expectancy=adjusted_life_exp,
            adjusted_monthly_benefit=adjusted_benefit,
            payment_years=payment_years,
        )

    def run_batch(self, scenarios: pd.DataFrame,
                  progress_callback: Optional[Callable] = None) -> pd.DataFrame:
        """
        Value every row of a scenario table.

        Args:
            scenarios: One pension per row, columns named like PensionInputs fields
            progress_callback: Called with (processed, total) after each row

        Returns:
            DataFrame with one result row per scenario
        """
        total = len(scenarios)
        logger.info(f"Starting batch valuation: {total} scenarios")

        scenario_ids = []
        valuations = []
        for processed, (idx, row) in enumerate(scenarios.iterrows(), start=1):
            scenario_ids.append(self._row_to_scenario_id(row, idx))
            valuations.append(self.compute(PensionInputs.from_dict(row.to_dict())))
            if progress_callback:
                progress_callback(processed, total)

        results_df = valuations_to_dataframe(valuations, scenario_ids)
        if total:
            logger.info(
                f"Batch valuation complete: total PV(COLA)=${results_df['PresentValueWithCOLA'].sum():,.0f}"
            )
        return results_df

    def _row_to_scenario_id(self, row: pd.Series, idx: Any) -> str:
        for key, value in row.items():
            if normalize_key(key) in ID_KEYS and not _is_missing(value):
                return str(value)
        return f'S{idx}'


def create_engine(config: Optional[Dict] = None) -> PensionValuationEngine:
    """
    Factory function to create an engine from a configuration dictionary.

    Args:
        config: Assumption overrides (see ValuationAssumptions); None for defaults
    """
    return PensionValuationEngine(create_assumptions(config))


@lru_cache(maxsize=1)
def get_default_engine() -> PensionValuationEngine:
    """Shared engine with default assumptions, built once per process."""
    return PensionValuationEngine()


def compute(inputs: PensionInputs,
            assumptions: Optional[ValuationAssumptions] = None) -> PensionValuation:
    """Value a single pension with default (or supplied) assumptions."""
    if assumptions is None:
        return get_default_engine().compute(inputs)
    return PensionValuationEngine(assumptions).compute(inputs)


if __name__ == "__main__":
    print("=" * 60)
    print("PENSION VALUATION ENGINE")
    print("=" * 60)

    engine = PensionValuationEngine()
    base = PensionInputs(monthly_benefit=3000, pension_start_age=65,
                         current_age=55, life_expectancy=90)

    for label, inputs in [
        ("Single life, no COLA", base),
        ("Single life, 2% COLA", base.replace(has_cola=True, cola_rate=2.0)),
        ("Joint & 100%, 2% COLA", base.replace(
            has_cola=True, survivor_option=SurvivorOption.JOINT_100,
            spouse_age=53, spouse_life_expectancy=88)),
    ]:
        v = engine.compute(inputs)
        print(f"\n{label}")
        print(f"  PV:            ${v.present_value:>12,.0f}")
        print(f"  PV (COLA):     ${v.present_value_with_cola:>12,.0f}")
        print(f"  Survivor:      ${v.survivor_value_to_spouse:>12,.0f}")
        print(f"  Nominal:       ${v.nominal_total:>12,.0f}")
        print(f"  Withdrawal:    {v.withdrawal_rate_equivalent:>12.2f}%")
