"""
pension_valuation/reporting.py - Pension Valuation Reporting

Produces:
1. Insights: the display figures and narrative a reader sees next to the
   raw valuation (headline lump-sum value, purchasing power, buyout verdict,
   WEP impact, spending coverage)
2. Sensitivity analysis (5 runs: baseline + ±1% discount / COLA)
3. Excel workbooks (Summary, Inputs, Assumptions, Sensitivity, Batch Results)
4. Console summaries

Author: Pension Valuation Project
License: MIT
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Union
from dataclasses import dataclass, field
from pathlib import Path
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill
from openpyxl.utils.dataframe import dataframe_to_rows

from .assumptions import SurvivorOption, ValuationAssumptions, enum_key
from .buyout import BuyoutRecommendation
from .engine import PensionInputs, PensionValuation, PensionValuationEngine
from .financials import deflate
from .social_security import SocialSecurityOffsetCalculator

logger = logging.getLogger(__name__)


DEFAULT_SPENDING_NEED = 80_000.0

BUYOUT_HEADLINES = {
    BuyoutRecommendation.ACCEPT: "Lump Sum May Be Favorable",
    BuyoutRecommendation.REJECT: "Pension May Be More Valuable",
    BuyoutRecommendation.NEUTRAL: "Close Call - Consider Other Factors",
}

SURVIVOR_LABELS = {
    SurvivorOption.SINGLE_LIFE.value: "Single Life",
    SurvivorOption.JOINT_50.value: "Joint & 50% Survivor",
    SurvivorOption.JOINT_75.value: "Joint & 75% Survivor",
    SurvivorOption.JOINT_100.value: "Joint & 100% Survivor",
}


# =============================================================================
# INSIGHTS
# =============================================================================

@dataclass
class ValuationInsights:
    """Display figures and narrative derived from a valuation."""
    lump_sum_value: float
    payment_years: float
    purchasing_power_at_life_expectancy: float
    survivor_monthly_cost: float
    spending_need: float
    spending_coverage_percent: float
    portfolio_withdrawal_needed: float
    wep_exempt: bool
    offer_percent_of_fair_value: Optional[float] = None
    buyout_headline: Optional[str] = None
    narrative: List[str] = field(default_factory=list)


def build_insights(inputs: PensionInputs, valuation: PensionValuation,
                   assumptions: Optional[ValuationAssumptions] = None,
                   spending_need: float = DEFAULT_SPENDING_NEED) -> ValuationInsights:
    """
    Derive display figures and narrative text from a valuation.

    Payment years and purchasing power use the inputs as entered (no
    mortality adjustment), matching what a reader typed in.
    """
    a = assumptions or ValuationAssumptions()

    lump_sum_value = (valuation.present_value_with_cola if inputs.has_cola
                      else valuation.present_value)
    payment_years = max(0, inputs.life_expectancy - inputs.pension_start_age)
    purchasing_power = deflate(inputs.monthly_benefit, payment_years, a.inflation_rate)
    survivor_monthly_cost = inputs.monthly_benefit * valuation.survivor_reduction / 100

    if spending_need > 0:
        coverage = min(100.0, valuation.annual_benefit / spending_need * 100)
    else:
        coverage = 100.0
    withdrawal_needed = max(0.0, spending_need - valuation.annual_benefit)

    wep_exempt = SocialSecurityOffsetCalculator(a).is_wep_exempt(
        inputs.years_of_substantial_earnings
    )

    offer_percent = None
    headline = None
    if valuation.buyout_recommendation is not None:
        if valuation.buyout_fair_value > 0:
            offer_percent = inputs.lump_sum_offer / valuation.buyout_fair_value * 100
        headline = BUYOUT_HEADLINES[valuation.buyout_recommendation]

    narrative = [
        f"Your ${inputs.monthly_benefit:,.0f}/month pension is equivalent to "
        f"${valuation.portfolio_equivalent:,.0f} invested at a "
        f"{a.reference_withdrawal_rate:g}% withdrawal rate."
    ]

    if inputs.has_cola:
        narrative.append(
            f"Your {inputs.cola_rate:g}% annual COLA adds ${valuation.cola_value_added:,.0f} "
            f"({valuation.cola_value_percent:.0f}% more) to your pension's value over "
            f"{payment_years:g} years of payments."
        )
    else:
        narrative.append(
            f"Without a COLA, your ${inputs.monthly_benefit:,.0f}/month benefit will be worth "
            f"about ${purchasing_power:,.0f}/month in today's dollars at age "
            f"{inputs.life_expectancy:g} (assuming {a.inflation_rate:.1%} inflation)."
        )

    option_key = enum_key(inputs.survivor_option)
    if option_key != SurvivorOption.SINGLE_LIFE.value:
        label = SURVIVOR_LABELS.get(option_key, option_key)
        narrative.append(
            f"{label} reduces your benefit by {valuation.survivor_reduction:.1f}% "
            f"(${survivor_monthly_cost:,.0f}/month) and provides "
            f"${valuation.survivor_value_to_spouse:,.0f} of present value to your spouse."
        )

    if headline is not None:
        direction = "more" if valuation.buyout_difference > 0 else "less"
        narrative.append(
            f"{headline}: the lump sum is ${abs(valuation.buyout_difference):,.0f} {direction} "
            f"than the pension's present value."
        )

    if valuation.wep_reduction is not None and valuation.wep_reduction > 0:
        narrative.append(
            f"Your Social Security benefit will be reduced by approximately "
            f"${valuation.wep_reduction:,.0f}/month due to WEP. Effective SS benefit: "
            f"${valuation.effective_ss_benefit:,.0f}/month."
        )
    elif not inputs.has_ss_coverage and wep_exempt:
        narrative.append(
            f"With {a.wep_exemption_years}+ years of substantial SS-covered earnings, "
            f"you are exempt from the Windfall Elimination Provision."
        )

    if valuation.gpo_reduction is not None and valuation.gpo_reduction > 0:
        narrative.append(
            f"The Government Pension Offset may reduce a spousal/survivor Social Security "
            f"benefit by up to ${valuation.gpo_reduction:,.0f}/month."
        )

    narrative.append(
        f"Your pension provides ${valuation.annual_benefit:,.0f}/year in guaranteed income, "
        f"covering {coverage:.0f}% of a ${spending_need:,.0f}/year spending need; "
        f"${withdrawal_needed:,.0f}/year must come from your portfolio."
    )

    return ValuationInsights(
        lump_sum_value=lump_sum_value,
        payment_years=payment_years,
        purchasing_power_at_life_expectancy=purchasing_power,
        survivor_monthly_cost=survivor_monthly_cost,
        spending_need=spending_need,
        spending_coverage_percent=coverage,
        portfolio_withdrawal_needed=withdrawal_needed,
        wep_exempt=wep_exempt,
        offer_percent_of_fair_value=offer_percent,
        buyout_headline=headline,
        narrative=narrative,
    )


# =============================================================================
# SENSITIVITY ANALYZER
# =============================================================================

@dataclass
class SensitivityResult:
    """Result from a sensitivity analysis run."""
    scenario: str
    discount_rate: float
    cola_rate: float
    present_value: float
    present_value_with_cola: float
    total_value: float
    description: str = ""


class SensitivityAnalyzer:
    """
    Runs automatic sensitivity analysis.

    Performs 5 valuations:
    1. Baseline
    2. Discount rate -1%
    3. Discount rate +1%
    4. COLA -1% (floored at 0)
    5. COLA +1%

    COLA shifts only move the value of a pension that has a COLA.
    """

    SCENARIOS = [
        ("baseline", 0.0, 0.0),
        ("disc_minus_1", -1.0, 0.0),
        ("disc_plus_1", 1.0, 0.0),
        ("cola_minus_1", 0.0, -1.0),
        ("cola_plus_1", 0.0, 1.0),
    ]

    DESCRIPTIONS = {
        'baseline': 'Current assumptions',
        'disc_minus_1': 'Discount rate decreased 1%',
        'disc_plus_1': 'Discount rate increased 1%',
        'cola_minus_1': 'COLA decreased 1%',
        'cola_plus_1': 'COLA increased 1%',
    }

    def __init__(self, engine: Optional[PensionValuationEngine] = None):
        self.engine = engine or PensionValuationEngine()

    def run_all_scenarios(self, inputs: PensionInputs) -> Dict[str, SensitivityResult]:
        """
        Run all 5 sensitivity scenarios.

        Returns:
            Dict mapping scenario name to SensitivityResult
        """
        results = {}

        for scenario_name, disc_adj, cola_adj in self.SCENARIOS:
            logger.info(f"Running sensitivity scenario: {scenario_name}")

            scenario_inputs = inputs.replace(
                discount_rate=inputs.discount_rate + disc_adj,
                cola_rate=max(0.0, inputs.cola_rate + cola_adj),
            )
            valuation = self.engine.compute(scenario_inputs)

            results[scenario_name] = SensitivityResult(
                scenario=scenario_name,
                discount_rate=scenario_inputs.discount_rate,
                cola_rate=scenario_inputs.cola_rate,
                present_value=valuation.present_value,
                present_value_with_cola=valuation.present_value_with_cola,
                total_value=valuation.total_pension_value,
                description=self.DESCRIPTIONS.get(scenario_name, scenario_name),
            )

        return results

    def discount_rate_curve(self, inputs: PensionInputs, low: float = 2.0,
                            high: float = 8.0, steps: int = 13) -> pd.DataFrame:
        """
        Present value across a grid of discount rates.

        Returns:
            DataFrame with DiscountRate, PresentValue, PresentValueWithCOLA, TotalValue
        """
        rows = []
        for rate in np.linspace(low, high, steps):
            valuation = self.engine.compute(inputs.replace(discount_rate=float(rate)))
            rows.append({
                'DiscountRate': float(rate),
                'PresentValue': valuation.present_value,
                'PresentValueWithCOLA': valuation.present_value_with_cola,
                'TotalValue': valuation.total_pension_value,
            })
        return pd.DataFrame(rows)

    @staticmethod
    def to_dataframe(results: Dict[str, SensitivityResult]) -> pd.DataFrame:
        """Tabulate sensitivity results with the change from baseline."""
        df = pd.DataFrame([
            {
                'Scenario': r.scenario, 'Description': r.description,
                'DiscountRate': r.discount_rate, 'COLARate': r.cola_rate,
                'PresentValue': r.present_value,
                'PresentValueWithCOLA': r.present_value_with_cola,
                'TotalValue': r.total_value,
            }
            for r in results.values()
        ])
        baseline = results.get('baseline')
        df['ChangeFromBaseline'] = df['TotalValue'] - (baseline.total_value if baseline else 0.0)
        return df


# =============================================================================
# EXCEL REPORT GENERATOR
# =============================================================================

class ExcelReportGenerator:
    """
    Generates pension valuation Excel workbooks.

    Percent figures held in percent units (5.0) are written as fractions
    so the '0.00%' number format displays them correctly.
    """

    SHEETS = ["Summary", "Inputs", "Assumptions", "Sensitivity"]

    def __init__(self):
        self.workbook = None

        self.currency_format = '$#,##0'
        self.percent_format = '0.00%'

        self.header_font = Font(bold=True, size=11)
        self.title_font = Font(bold=True, size=14)
        self.header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        self.header_font_white = Font(bold=True, size=11, color="FFFFFF")

    def create_new_workbook(self) -> None:
        """Create a new workbook with the standard report sheets."""
        self.workbook = Workbook()

        if 'Sheet' in self.workbook.sheetnames:
            del self.workbook['Sheet']

        for sheet_name in self.SHEETS:
            self.workbook.create_sheet(sheet_name)

        logger.info(f"Created workbook with {len(self.SHEETS)} sheets")

    def _get_sheet(self, sheet_name: str):
        if self.workbook is None:
            self.create_new_workbook()
        if sheet_name not in self.workbook.sheetnames:
            self.workbook.create_sheet(sheet_name)
        return self.workbook[sheet_name]

    def _write_rows(self, sheet, rows: List[tuple], start: int) -> int:
        """Write (label, value, format) rows; returns the next free row."""
        row = start
        for label, value, fmt in rows:
            sheet[f'A{row}'] = label
            if fmt == "percent" and value is not None:
                value = value / 100
            sheet[f'B{row}'] = value
            if fmt == "currency":
                sheet[f'B{row}'].number_format = self.currency_format
            elif fmt == "percent":
                sheet[f'B{row}'].number_format = self.percent_format
            row += 1
        return row

    def populate_summary(self, valuation: PensionValuation,
                         insights: Optional[ValuationInsights] = None) -> None:
        """Populate the Summary sheet."""
        sheet = self._get_sheet("Summary")

        sheet['A1'] = "Pension Valuation Summary"
        sheet['A1'].font = self.title_font

        sheet['A3'] = "KEY RESULTS"
        sheet['A3'].font = self.header_font

        recommendation = (valuation.buyout_recommendation.value
                          if valuation.buyout_recommendation else None)
        summary_data = [
            ("Present Value", valuation.present_value, "currency"),
            ("Present Value with COLA", valuation.present_value_with_cola, "currency"),
            ("Nominal Total (undiscounted)", valuation.nominal_total, "currency"),
            ("Annual Benefit", valuation.annual_benefit, "currency"),
            ("Real Annual Benefit at Retirement", valuation.real_annual_benefit_at_retirement, "currency"),
            ("COLA Value Added", valuation.cola_value_added, "currency"),
            ("COLA Value Added (%)", valuation.cola_value_percent, "percent"),
            ("Survivor Reduction (%)", valuation.survivor_reduction, "percent"),
            ("Survivor Value to Spouse", valuation.survivor_value_to_spouse, "currency"),
            ("Buyout Fair Value", valuation.buyout_fair_value, "currency"),
            ("Buyout Difference", valuation.buyout_difference, "currency"),
            ("Buyout Recommendation", recommendation, "text"),
            ("WEP Reduction (monthly)", valuation.wep_reduction, "currency"),
            ("GPO Reduction (monthly)", valuation.gpo_reduction, "currency"),
            ("Effective SS Benefit (monthly)", valuation.effective_ss_benefit, "currency"),
            ("Portfolio Equivalent", valuation.portfolio_equivalent, "currency"),
            ("Withdrawal Rate Equivalent", valuation.withdrawal_rate_equivalent, "percent"),
        ]
        row = self._write_rows(sheet, summary_data, start=4)

        if insights is not None:
            row += 1
            sheet[f'A{row}'] = "INSIGHTS"
            sheet[f'A{row}'].font = self.header_font
            row += 1
            for line in insights.narrative:
                sheet[f'A{row}'] = line
                row += 1

        sheet.column_dimensions['A'].width = 36
        sheet.column_dimensions['B'].width = 18

    def populate_inputs(self, inputs: PensionInputs) -> None:
        """Populate the Inputs sheet."""
        sheet = self._get_sheet("Inputs")

        sheet['A1'] = "Pension Inputs"
        sheet['A1'].font = self.title_font

        input_data = [
            ("Monthly Benefit", inputs.monthly_benefit, "currency"),
            ("Pension Start Age", inputs.pension_start_age, "number"),
            ("Current Age", inputs.current_age, "number"),
            ("Life Expectancy", inputs.life_expectancy, "number"),
            ("Pension Type", enum_key(inputs.pension_type), "text"),
            ("Has COLA", inputs.has_cola, "text"),
            ("COLA Rate", inputs.cola_rate, "percent"),
            ("Survivor Option", enum_key(inputs.survivor_option), "text"),
            ("Spouse Age", inputs.spouse_age, "number"),
            ("Spouse Life Expectancy", inputs.spouse_life_expectancy, "number"),
            ("Discount Rate", inputs.discount_rate, "percent"),
            ("Lump Sum Offer", inputs.lump_sum_offer, "currency"),
            ("Has SS Coverage", inputs.has_ss_coverage, "text"),
            ("SS Monthly Benefit", inputs.ss_monthly_benefit, "currency"),
            ("Years of Substantial Earnings", inputs.years_of_substantial_earnings, "number"),
        ]
        self._write_rows(sheet, input_data, start=3)
        sheet.column_dimensions['A'].width = 32

    def populate_assumptions(self, assumptions: ValuationAssumptions) -> None:
        """Populate the Assumptions sheet."""
        sheet = self._get_sheet("Assumptions")

        sheet['A1'] = "Valuation Assumptions"
        sheet['A1'].font = self.title_font

        assumption_data = [
            ("Maximum WEP Reduction", assumptions.max_wep_reduction, "currency"),
            ("WEP Exemption Years", assumptions.wep_exemption_years, "number"),
            ("WEP Phase-in Years", assumptions.wep_phase_in_years, "number"),
            ("GPO Pension Fraction", assumptions.gpo_pension_fraction * 100, "percent"),
            ("Survivor Buffer Years", assumptions.survivor_buffer_years, "number"),
            ("Reference Withdrawal Rate", assumptions.reference_withdrawal_rate, "percent"),
            ("Buyout Threshold", assumptions.buyout_threshold_percent, "percent"),
            ("Inflation", assumptions.inflation_rate * 100, "percent"),
        ]
        self._write_rows(sheet, assumption_data, start=3)
        sheet.column_dimensions['A'].width = 32

    def generate_sensitivity_table(self, sensitivity_results: Dict[str, SensitivityResult]) -> None:
        """
        Generate a formatted sensitivity analysis table.

        Args:
            sensitivity_results: Dict of sensitivity results
        """
        sheet = self._get_sheet("Sensitivity")

        sheet['A1'] = "Sensitivity of Pension Value"
        sheet['A1'].font = self.title_font

        headers = ["Scenario", "Discount Rate", "COLA Rate", "Total Value", "Change from Baseline"]
        for col, header in enumerate(headers, start=1):
            cell = sheet.cell(row=3, column=col, value=header)
            cell.font = self.header_font_white
            cell.fill = self.header_fill
            cell.alignment = Alignment(horizontal='center')

        baseline = sensitivity_results.get('baseline')
        baseline_value = baseline.total_value if baseline else 0.0

        row = 4
        for result in sensitivity_results.values():
            sheet.cell(row=row, column=1, value=result.description)

            disc_cell = sheet.cell(row=row, column=2, value=result.discount_rate / 100)
            disc_cell.number_format = self.percent_format

            cola_cell = sheet.cell(row=row, column=3, value=result.cola_rate / 100)
            cola_cell.number_format = self.percent_format

            value_cell = sheet.cell(row=row, column=4, value=result.total_value)
            value_cell.number_format = self.currency_format

            change_cell = sheet.cell(row=row, column=5, value=result.total_value - baseline_value)
            change_cell.number_format = self.currency_format

            row += 1

        sheet.column_dimensions['A'].width = 30
        sheet.column_dimensions['B'].width = 15
        sheet.column_dimensions['C'].width = 15
        sheet.column_dimensions['D'].width = 22
        sheet.column_dimensions['E'].width = 22

    def write_dataframe(self, sheet_name: str, df: pd.DataFrame) -> None:
        """Write a results table (e.g. batch valuations) to its own sheet."""
        sheet = self._get_sheet(sheet_name)

        for r_idx, row_data in enumerate(dataframe_to_rows(df, index=False, header=True), start=1):
            for c_idx, value in enumerate(row_data, start=1):
                if isinstance(value, float) and np.isnan(value):
                    value = None
                cell = sheet.cell(row=r_idx, column=c_idx, value=value)
                if r_idx == 1:
                    cell.font = self.header_font

    def save(self, output_path: Union[str, Path]) -> Path:
        """
        Save the workbook to file.

        Raises:
            ValueError: if no workbook has been created
        """
        output_path = Path(output_path)

        if self.workbook is None:
            raise ValueError("No workbook to save - call create_new_workbook() first")

        self.workbook.save(output_path)
        logger.info(f"Saved report to: {output_path}")

        return output_path


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def generate_pension_report(
    inputs: PensionInputs,
    valuation: PensionValuation,
    output_path: Union[str, Path],
    assumptions: Optional[ValuationAssumptions] = None,
    sensitivity_results: Optional[Dict[str, SensitivityResult]] = None,
    batch_results: Optional[pd.DataFrame] = None,
) -> Path:
    """
    Generate a complete pension valuation Excel report.

    Returns:
        Path to generated file
    """
    assumptions = assumptions or ValuationAssumptions()

    generator = ExcelReportGenerator()
    generator.create_new_workbook()

    generator.populate_summary(valuation, build_insights(inputs, valuation, assumptions))
    generator.populate_inputs(inputs)
    generator.populate_assumptions(assumptions)

    if sensitivity_results:
        generator.generate_sensitivity_table(sensitivity_results)

    if batch_results is not None:
        generator.write_dataframe("Batch Results", batch_results)

    return generator.save(output_path)


def print_valuation_summary(inputs: PensionInputs, valuation: PensionValuation,
                            insights: Optional[ValuationInsights] = None) -> None:
    """Print formatted valuation summary."""
    print("=" * 60)
    print("PENSION VALUATION SUMMARY")
    print("=" * 60)
    print(f"Monthly Benefit:         ${inputs.monthly_benefit:>12,.0f}")
    print(f"Pension Type:            {enum_key(inputs.pension_type):>13}")
    print(f"Survivor Option:         {enum_key(inputs.survivor_option):>13}")
    print(f"Discount Rate:           {inputs.discount_rate:>12.2f}%")
    print()
    print("Values:")
    print(f"  Present Value:          ${valuation.present_value:>12,.0f}")
    print(f"  Present Value (COLA):   ${valuation.present_value_with_cola:>12,.0f}")
    print(f"  Survivor Value:         ${valuation.survivor_value_to_spouse:>12,.0f}")
    print(f"  Nominal Total:          ${valuation.nominal_total:>12,.0f}")
    print(f"  Portfolio Equivalent:   ${valuation.portfolio_equivalent:>12,.0f}")
    print(f"  Withdrawal Rate Equiv.: {valuation.withdrawal_rate_equivalent:>12.2f}%")

    if valuation.buyout_recommendation is not None:
        print()
        print("Buyout:")
        print(f"  Fair Value:             ${valuation.buyout_fair_value:>12,.0f}")
        print(f"  Difference:             ${valuation.buyout_difference:>12,.0f}")
        print(f"  Recommendation:         {valuation.buyout_recommendation.value:>13}")

    if valuation.wep_reduction is not None:
        print()
        print("Social Security:")
        print(f"  WEP Reduction:          ${valuation.wep_reduction:>12,.0f}")
        if valuation.gpo_reduction is not None:
            print(f"  GPO Reduction:          ${valuation.gpo_reduction:>12,.0f}")
        print(f"  Effective SS Benefit:   ${valuation.effective_ss_benefit:>12,.0f}")

    if insights is not None:
        print()
        for line in insights.narrative:
            print(f"  - {line}")
    print("=" * 60)
