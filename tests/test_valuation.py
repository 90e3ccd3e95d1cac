"""
tests/test_valuation.py - Pension Valuation Engine Tests

Validates the end-to-end pipeline:
1. Zero-discount nominal equivalence
2. COLA monotonicity
3. Degenerate payment windows
4. The reference scenario (3000/month, 65 -> 90, 5% discount)
5. Survivor value, buyout classification and WEP/GPO wiring

Plus:
- Determinism (identical inputs -> identical outputs)
- No-raise behavior for inconsistent inputs
- Batch valuation and tabulation

Author: Pension Valuation Project
License: MIT
"""

import pytest
import numpy as np
import pandas as pd
from pension_valuation.assumptions import (
    PensionType, SurvivorOption, ValuationAssumptions, create_assumptions
)
from pension_valuation.buyout import BuyoutRecommendation
from pension_valuation.engine import (
    PensionInputs, PensionValuation, PensionValuationEngine,
    valuations_to_dataframe, create_engine, get_default_engine, compute
)


def reference_inputs(**changes) -> PensionInputs:
    """3000/month from 65 to 90, valued at 55, 5% discount, single life, no COLA."""
    inputs = PensionInputs(
        monthly_benefit=3000,
        pension_start_age=65,
        current_age=55,
        life_expectancy=90,
        pension_type=PensionType.PRIVATE,
        has_cola=False,
        survivor_option=SurvivorOption.SINGLE_LIFE,
        discount_rate=5.0,
    )
    return inputs.replace(**changes)


class TestZeroDiscountNominalEquivalence:
    """
    Test 1: Zero-discount nominal equivalence

    Setup: discount rate 0%, COLA 0%, single life.

    Expectation: presentValue equals nominalTotal exactly.

    Why: With no time value of money the PV is just the sum of the
         payments. Any difference means the loop bounds are off.
    """

    def test_present_value_equals_nominal_total(self):
        """300 level payments of $3,000 with no discounting sum to $900,000."""
        valuation = compute(reference_inputs(discount_rate=0.0))

        assert valuation.present_value == valuation.nominal_total, \
            f"Expected ${valuation.nominal_total:,.0f}, got ${valuation.present_value:,.0f}"
        assert valuation.nominal_total == 900000

    def test_zero_cola_with_cola_flag_matches_no_cola(self):
        """hasCOLA with a 0% rate adds nothing."""
        valuation = compute(reference_inputs(discount_rate=0.0, has_cola=True, cola_rate=0.0))

        assert valuation.present_value_with_cola == valuation.present_value
        assert valuation.cola_value_added == 0
        assert valuation.cola_value_percent == 0


class TestCOLAMonotonicity:
    """
    Test 2: COLA monotonicity

    Setup: Same pension, COLA rate stepped from 1% to 4%.

    Expectation: presentValueWithCOLA and colaValueAdded strictly increase.
    """

    def test_higher_cola_increases_value(self):
        engine = PensionValuationEngine()
        rates = [1.0, 2.0, 3.0, 4.0]
        results = [engine.compute(reference_inputs(has_cola=True, cola_rate=r)) for r in rates]

        pv_with_cola = np.array([r.present_value_with_cola for r in results])
        cola_added = np.array([r.cola_value_added for r in results])

        assert np.all(np.diff(pv_with_cola) > 0), \
            f"PV with COLA not increasing: {pv_with_cola}"
        assert np.all(np.diff(cola_added) > 0), \
            f"COLA value added not increasing: {cola_added}"

    def test_cola_ignored_without_flag(self):
        """A COLA rate has no effect when hasCOLA is false."""
        valuation = compute(reference_inputs(has_cola=False, cola_rate=3.0))

        assert valuation.present_value_with_cola == valuation.present_value
        assert valuation.cola_value_added == 0


class TestDegenerateWindow:
    """
    Test 3: Degenerate payment windows

    Setup: lifeExpectancy equal to (or below) pensionStartAge.

    Expectation: presentValue = 0 and nominalTotal = 0, no exception.
    """

    def test_zero_year_window(self):
        valuation = compute(reference_inputs(life_expectancy=65))

        assert valuation.present_value == 0
        assert valuation.present_value_with_cola == 0
        assert valuation.nominal_total == 0
        assert valuation.payment_years == 0

    def test_life_expectancy_before_start_age(self):
        """Inconsistent ages clamp to an empty window rather than raising."""
        valuation = compute(reference_inputs(life_expectancy=60, has_cola=True))

        assert valuation.present_value == 0
        assert valuation.nominal_total == 0
        assert valuation.cola_value_percent == 0
        assert valuation.withdrawal_rate_equivalent == 0

    def test_already_retired(self):
        """Current age past the start age values payments from today."""
        later = compute(reference_inputs(current_age=70))
        at_start = compute(reference_inputs(current_age=65))

        assert later.present_value == pytest.approx(at_start.present_value)
        assert later.real_annual_benefit_at_retirement == later.annual_benefit


class TestReferenceScenario:
    """
    Test 4: The reference scenario

    Setup: 3000/month, start 65, current 55, life expectancy 90, private,
           single life, 5% discount.

    Expectation:
    - annualBenefit = 36,000
    - 0 < presentValue < nominalTotal = 900,000
    - With a 2% COLA, PV(COLA) > PV and colaValuePercent > 0
    """

    def test_no_cola(self):
        valuation = compute(reference_inputs())

        assert valuation.annual_benefit == 36000
        assert valuation.nominal_total == 900000
        assert 0 < valuation.present_value < valuation.nominal_total, \
            f"Expected 0 < PV < $900,000, got ${valuation.present_value:,.0f}"

    def test_with_cola(self):
        valuation = compute(reference_inputs(has_cola=True, cola_rate=2.0))

        assert valuation.present_value_with_cola > valuation.present_value
        assert valuation.cola_value_percent > 0
        assert valuation.cola_value_added == pytest.approx(
            valuation.present_value_with_cola - valuation.present_value
        )

    def test_portfolio_translation(self):
        """36,000/year at a 4% withdrawal rate is $900,000 of capital."""
        valuation = compute(reference_inputs())

        assert valuation.portfolio_equivalent == pytest.approx(900000)
        assert valuation.withdrawal_rate_equivalent == pytest.approx(
            36000 / valuation.total_pension_value * 100
        )

    def test_real_annual_benefit(self):
        """Ten years to retirement at 2.5% inflation."""
        valuation = compute(reference_inputs())

        assert valuation.real_annual_benefit_at_retirement == pytest.approx(36000 / 1.025 ** 10)

    def test_optional_sections_absent(self):
        valuation = compute(reference_inputs())

        assert valuation.buyout_fair_value is None
        assert valuation.buyout_recommendation is None
        assert valuation.wep_reduction is None
        assert valuation.gpo_reduction is None
        assert valuation.effective_ss_benefit is None
        assert valuation.survivor_value_to_spouse == 0
        assert valuation.survivor_reduction == 0


class TestLifeExpectancyAdjustment:
    """Pension type shifts the payment end age."""

    def test_federal_pension_pays_two_more_years(self):
        valuation = compute(reference_inputs(pension_type=PensionType.FEDERAL_FERS))

        assert valuation.adjusted_life_expectancy == 92
        assert valuation.payment_years == 27
        assert valuation.nominal_total == 3000 * 12 * 27

    def test_military_pays_one_less_year(self):
        private = compute(reference_inputs())
        military = compute(reference_inputs(pension_type=PensionType.MILITARY))

        assert military.adjusted_life_expectancy == 89
        assert military.present_value < private.present_value

    def test_unknown_pension_type_defaults_to_no_offset(self):
        valuation = compute(reference_inputs(pension_type="municipal_special"))

        assert valuation.adjusted_life_expectancy == 90


class TestSurvivorValuation:
    """
    Joint & survivor elections reduce the primary benefit and add a
    spouse benefit paid after the primary's adjusted life expectancy.
    """

    def test_joint_100_reduces_benefit_ten_percent(self):
        valuation = compute(reference_inputs(survivor_option=SurvivorOption.JOINT_100))

        assert valuation.survivor_reduction == pytest.approx(10.0)
        assert valuation.adjusted_monthly_benefit == pytest.approx(2700)
        assert valuation.annual_benefit == pytest.approx(32400)

    def test_survivor_value_requires_spouse_ages(self):
        without_spouse = compute(reference_inputs(survivor_option=SurvivorOption.JOINT_50))
        with_spouse = compute(reference_inputs(
            survivor_option=SurvivorOption.JOINT_50,
            spouse_age=53, spouse_life_expectancy=92,
        ))

        assert without_spouse.survivor_value_to_spouse == 0
        assert with_spouse.survivor_value_to_spouse > 0

    def test_survivor_value_zero_discount(self):
        """
        Spouse expectancy 92, primary 90: 92 - 90 + 3 = 5 years of survivor
        payments at 50% of the reduced benefit (2850 × 0.5).
        """
        valuation = compute(reference_inputs(
            discount_rate=0.0,
            survivor_option=SurvivorOption.JOINT_50,
            spouse_age=53, spouse_life_expectancy=92,
        ))

        assert valuation.survivor_value_to_spouse == pytest.approx(1425 * 12 * 5)

    def test_spouse_much_younger_than_buffer(self):
        """A spouse expected to die well before the primary gets nothing."""
        valuation = compute(reference_inputs(
            survivor_option=SurvivorOption.JOINT_100,
            spouse_age=50, spouse_life_expectancy=80,
        ))

        assert valuation.survivor_value_to_spouse == 0

    def test_single_life_ignores_spouse(self):
        valuation = compute(reference_inputs(spouse_age=53, spouse_life_expectancy=95))

        assert valuation.survivor_value_to_spouse == 0


class TestBuyoutWiring:
    """
    Fair value is PV with COLA plus the survivor value; an offer outside
    ±10% of it is an accept or a reject.
    """

    def _fair_value(self, **changes) -> float:
        return compute(reference_inputs(**changes)).total_pension_value

    @pytest.mark.parametrize("multiplier, expected", [
        (1.11, BuyoutRecommendation.ACCEPT),
        (0.89, BuyoutRecommendation.REJECT),
        (1.00, BuyoutRecommendation.NEUTRAL),
    ])
    def test_offer_classification(self, multiplier, expected):
        fair_value = self._fair_value()
        valuation = compute(reference_inputs(lump_sum_offer=fair_value * multiplier))

        assert valuation.buyout_recommendation == expected
        assert valuation.buyout_fair_value == pytest.approx(fair_value)
        assert valuation.buyout_difference == pytest.approx(fair_value * (multiplier - 1))

    def test_fair_value_includes_survivor(self):
        changes = dict(
            has_cola=True, survivor_option=SurvivorOption.JOINT_100,
            spouse_age=53, spouse_life_expectancy=92,
        )
        plain = compute(reference_inputs(**changes))
        valuation = compute(reference_inputs(lump_sum_offer=100000, **changes))

        assert valuation.buyout_fair_value == pytest.approx(
            plain.present_value_with_cola + plain.survivor_value_to_spouse
        )

    def test_zero_offer_is_treated_as_absent(self):
        valuation = compute(reference_inputs(lump_sum_offer=0))

        assert valuation.buyout_fair_value is None
        assert valuation.buyout_difference is None
        assert valuation.buyout_recommendation is None

    def test_offer_against_empty_pension(self):
        """No payments means no fair value; any offer beats nothing."""
        valuation = compute(reference_inputs(life_expectancy=65, lump_sum_offer=50000))

        assert valuation.buyout_recommendation == BuyoutRecommendation.ACCEPT


class TestSocialSecurityWiring:
    """
    WEP/GPO only apply when the pension job had no SS coverage and a
    positive SS benefit is supplied. GPO additionally needs a
    non-private pension with a joint election.
    """

    def test_covered_employment_skips_offsets(self):
        valuation = compute(reference_inputs(has_ss_coverage=True, ss_monthly_benefit=1200))

        assert valuation.wep_reduction is None
        assert valuation.gpo_reduction is None

    def test_wep_phase_in(self):
        """25 years: 587 × (1 - 5 × 5%) = 440.25, under the 600 cap."""
        valuation = compute(reference_inputs(
            has_ss_coverage=False, ss_monthly_benefit=1200,
            years_of_substantial_earnings=25,
        ))

        assert valuation.wep_reduction == pytest.approx(440.25)
        assert valuation.effective_ss_benefit == pytest.approx(759.75)
        assert valuation.gpo_reduction is None

    def test_missing_years_gets_full_reduction_capped(self):
        valuation = compute(reference_inputs(has_ss_coverage=False, ss_monthly_benefit=1000))

        assert valuation.wep_reduction == pytest.approx(500)
        assert valuation.effective_ss_benefit == pytest.approx(500)

    def test_gpo_for_public_joint_pension(self):
        """GPO = min(3000 × 2/3, 1200) = 1200, on the unreduced benefit."""
        valuation = compute(reference_inputs(
            pension_type=PensionType.STATE_LOCAL,
            survivor_option=SurvivorOption.JOINT_50,
            has_ss_coverage=False, ss_monthly_benefit=1200,
            years_of_substantial_earnings=30,
        ))

        assert valuation.wep_reduction == 0
        assert valuation.effective_ss_benefit == pytest.approx(1200)
        assert valuation.gpo_reduction == pytest.approx(1200)

    def test_private_pension_never_gets_gpo(self):
        valuation = compute(reference_inputs(
            survivor_option=SurvivorOption.JOINT_50,
            has_ss_coverage=False, ss_monthly_benefit=1200,
        ))

        assert valuation.gpo_reduction is None

    def test_zero_ss_benefit_skips_offsets(self):
        valuation = compute(reference_inputs(has_ss_coverage=False, ss_monthly_benefit=0))

        assert valuation.wep_reduction is None


class TestDeterminism:
    """Identical inputs produce identical, hashable records."""

    def test_repeat_calls_identical(self):
        inputs = reference_inputs(
            has_cola=True, survivor_option=SurvivorOption.JOINT_75,
            spouse_age=60, spouse_life_expectancy=93, lump_sum_offer=400000,
        )
        engine = PensionValuationEngine()

        assert engine.compute(inputs) == engine.compute(inputs)
        assert compute(inputs) == engine.compute(inputs)

    def test_default_engine_built_once(self, caplog):
        """
        Repeated module-level computes reuse one engine, so the
        construction log line is not emitted per valuation.
        """
        compute(reference_inputs())

        with caplog.at_level("INFO", logger="pension_valuation.engine"):
            compute(reference_inputs())
            compute(reference_inputs(has_cola=True))

        assert get_default_engine() is get_default_engine()
        assert "PensionValuationEngine initialized" not in caplog.text

    def test_inputs_are_hashable(self):
        cache = {reference_inputs(): "a"}

        assert cache[reference_inputs()] == "a"

    def test_inputs_are_immutable(self):
        inputs = reference_inputs()
        with pytest.raises(Exception):
            inputs.monthly_benefit = 1


class TestConfiguredEngine:
    """Assumption overrides flow through the engine."""

    def test_custom_withdrawal_rate(self):
        engine = create_engine({'reference_withdrawal_rate': 5.0, 'not_an_assumption': 1})
        valuation = engine.compute(reference_inputs())

        assert valuation.portfolio_equivalent == pytest.approx(36000 / 0.05)

    def test_custom_survivor_table(self):
        assumptions = create_assumptions({
            'survivor_reduction_factors': {'single_life': 0.0, 'joint_50': 0.2},
        })
        valuation = compute(reference_inputs(survivor_option=SurvivorOption.JOINT_50), assumptions)

        assert valuation.adjusted_monthly_benefit == pytest.approx(2400)

    def test_custom_inflation(self):
        assumptions = ValuationAssumptions(inflation_rate=0.0)
        valuation = compute(reference_inputs(), assumptions)

        assert valuation.real_annual_benefit_at_retirement == pytest.approx(36000)


class TestBatchValuation:
    """Scenario tables are valued row by row."""

    def test_run_batch(self):
        scenarios = pd.DataFrame([
            {'ScenarioID': 'base', 'monthly_benefit': 3000, 'pension_start_age': 65,
             'current_age': 55, 'life_expectancy': 90},
            {'ScenarioID': 'cola', 'monthly_benefit': 3000, 'pension_start_age': 65,
             'current_age': 55, 'life_expectancy': 90, 'has_cola': True, 'cola_rate': 2.0},
            {'ScenarioID': 'offer', 'monthly_benefit': 3000, 'pension_start_age': 65,
             'current_age': 55, 'life_expectancy': 90, 'lump_sum_offer': 10000},
        ])
        seen = []
        results = PensionValuationEngine().run_batch(
            scenarios, progress_callback=lambda done, total: seen.append((done, total))
        )

        assert list(results['ScenarioID']) == ['base', 'cola', 'offer']
        assert seen[-1] == (3, 3)
        assert results.loc[1, 'PresentValueWithCOLA'] > results.loc[0, 'PresentValueWithCOLA']
        assert results.loc[2, 'BuyoutRecommendation'] == 'reject'
        assert pd.isna(results.loc[0, 'BuyoutRecommendation'])
        assert results.loc[0, 'PresentValue'] == pytest.approx(
            compute(reference_inputs()).present_value
        )

    def test_missing_scenario_id_falls_back_to_index(self):
        scenarios = pd.DataFrame([
            {'monthly_benefit': 2000, 'pension_start_age': 62,
             'current_age': 60, 'life_expectancy': 85},
        ])
        results = PensionValuationEngine().run_batch(scenarios)

        assert results.loc[0, 'ScenarioID'] == 'S0'

    def test_valuations_to_dataframe_columns(self):
        df = valuations_to_dataframe([compute(reference_inputs())])

        assert df.columns[0] == 'ScenarioID'
        assert 'PresentValueWithCOLA' in df.columns
        assert df.loc[0, 'AnnualBenefit'] == 36000


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
