#!/usr/bin/env python3
"""
run_valuation.py - Pension Valuation Runner

This script values a pension from start to finish:
1. Load inputs (command-line flags, a JSON file, or a scenario table)
2. Run the valuation engine
3. Optionally calculate sensitivities (±1% discount, ±1% COLA)
4. Optionally write an Excel report
5. Print a summary

Usage:
    python run_valuation.py \\
        --monthly-benefit 3000 --start-age 65 --current-age 55 \\
        --life-expectancy 90 --has-cola --cola-rate 2 --sensitivity

    python run_valuation.py --inputs pension.json --output report.xlsx

    python run_valuation.py --scenarios scenarios.csv --output batch.xlsx

Author: Pension Valuation Project
Version: 1.0.0
"""

import argparse
import sys
import logging
from pathlib import Path
from typing import Optional, Dict, Any

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def run_single_valuation(
    inputs,
    assumptions=None,
    output_path: Optional[str] = None,
    sensitivity: bool = False,
) -> Dict[str, Any]:
    """
    Value one pension and report on it.

    Args:
        inputs: PensionInputs
        assumptions: ValuationAssumptions (defaults if None)
        output_path: Excel report path (no report if None)
        sensitivity: Run the 5 sensitivity scenarios

    Returns:
        Dict with the valuation, insights and sensitivity results
    """
    from pension_valuation import (
        PensionValuationEngine,
        SensitivityAnalyzer,
        build_insights,
        generate_pension_report,
        print_valuation_summary,
    )

    engine = PensionValuationEngine(assumptions)
    valuation = engine.compute(inputs)
    insights = build_insights(inputs, valuation, engine.assumptions)

    sensitivity_results = None
    if sensitivity:
        sensitivity_results = SensitivityAnalyzer(engine).run_all_scenarios(inputs)

    print_valuation_summary(inputs, valuation, insights)

    if sensitivity_results:
        print()
        print("Sensitivity:")
        for result in sensitivity_results.values():
            print(f"  {result.description:<28} ${result.total_value:>12,.0f}")

    output = None
    if output_path:
        output = generate_pension_report(
            inputs, valuation, output_path,
            assumptions=engine.assumptions,
            sensitivity_results=sensitivity_results,
        )
        print(f"\nReport saved to: {output}")

    return {
        'valuation': valuation,
        'insights': insights,
        'sensitivity': sensitivity_results,
        'output_path': output,
    }


def run_batch_valuation(
    scenarios_path: str,
    assumptions=None,
    output_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Value every scenario in a CSV/Excel table.

    Returns:
        Dict with the results table and the input file hash
    """
    from pension_valuation import (
        PensionValuationEngine,
        ExcelReportGenerator,
        load_scenarios,
    )

    print("=" * 70)
    print("PENSION VALUATION - BATCH")
    print("=" * 70)

    loaded = load_scenarios(scenarios_path)
    print(f"Scenarios:   {loaded.total_records}")
    print(f"Input hash:  {loaded.input_hash[:16]}...")
    print()

    engine = PensionValuationEngine(assumptions)
    results = engine.run_batch(loaded.data)

    print(results[['ScenarioID', 'PresentValue', 'PresentValueWithCOLA',
                   'SurvivorValue', 'BuyoutRecommendation']].to_string(index=False))

    output = None
    if output_path:
        generator = ExcelReportGenerator()
        generator.create_new_workbook()
        generator.populate_assumptions(engine.assumptions)
        generator.write_dataframe("Batch Results", results)
        output = generator.save(output_path)
        print(f"\nResults saved to: {output}")

    return {
        'results': results,
        'input_hash': loaded.input_hash,
        'output_path': output,
    }


def inputs_from_args(args: argparse.Namespace):
    """Build PensionInputs from individual command-line flags."""
    from pension_valuation import inputs_from_dict

    values = {
        'monthly_benefit': args.monthly_benefit,
        'pension_start_age': args.start_age,
        'current_age': args.current_age,
        'life_expectancy': args.life_expectancy,
        'pension_type': args.pension_type,
        'has_cola': args.has_cola,
        'cola_rate': args.cola_rate,
        'survivor_option': args.survivor_option,
        'spouse_age': args.spouse_age,
        'spouse_life_expectancy': args.spouse_life_expectancy,
        'discount_rate': args.discount_rate,
        'lump_sum_offer': args.lump_sum_offer,
        'has_ss_coverage': not args.no_ss_coverage,
        'ss_monthly_benefit': args.ss_benefit,
        'years_of_substantial_earnings': args.ss_years,
    }
    return inputs_from_dict({k: v for k, v in values.items() if v is not None})


def main():
    parser = argparse.ArgumentParser(
        description='Run Pension Valuation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single pension from flags
  python run_valuation.py \\
      --monthly-benefit 3000 --start-age 65 --current-age 55 \\
      --life-expectancy 90 --pension-type state_local \\
      --survivor-option joint_50 --spouse-age 53 --spouse-life-expectancy 88 \\
      --lump-sum-offer 450000 --sensitivity --output report.xlsx

  # Single pension (or several) from JSON
  python run_valuation.py --inputs pension.json

  # Batch of scenarios
  python run_valuation.py --scenarios scenarios.xlsx --output batch.xlsx
"""
    )

    parser.add_argument('--inputs', type=str, help='JSON file with pension inputs')
    parser.add_argument('--scenarios', type=str, help='Scenario table (CSV or Excel) for batch mode')
    parser.add_argument('--config', type=str, help='JSON file with assumption overrides')
    parser.add_argument('--output', type=str, help='Output Excel file')
    parser.add_argument('--sensitivity', action='store_true',
                        help='Run ±1%% discount / COLA sensitivities')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    parser.add_argument('--monthly-benefit', type=float, help='Monthly pension benefit ($)')
    parser.add_argument('--start-age', type=int, help='Age pension payments begin')
    parser.add_argument('--current-age', type=int, help='Current age')
    parser.add_argument('--life-expectancy', type=int, help='Expected age at death')
    parser.add_argument('--pension-type', type=str,
                        help='private, federal_fers, federal_csrs, state_local, military')
    parser.add_argument('--has-cola', action='store_true', help='Pension has a COLA')
    parser.add_argument('--cola-rate', type=float, help='Annual COLA (e.g., 2.0 for 2%%)')
    parser.add_argument('--survivor-option', type=str,
                        help='single_life, joint_50, joint_75, joint_100')
    parser.add_argument('--spouse-age', type=int, help='Spouse current age')
    parser.add_argument('--spouse-life-expectancy', type=int, help='Spouse expected age at death')
    parser.add_argument('--discount-rate', type=float, help='Discount rate (e.g., 5.0 for 5%%)')
    parser.add_argument('--lump-sum-offer', type=float, help='Lump-sum buyout offer ($)')
    parser.add_argument('--no-ss-coverage', action='store_true',
                        help='Pension job was not covered by Social Security')
    parser.add_argument('--ss-benefit', type=float, help='Monthly Social Security benefit ($)')
    parser.add_argument('--ss-years', type=int, help='Years of substantial SS-covered earnings')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    from pension_valuation import ValuationAssumptions, load_assumptions, load_inputs_json

    assumptions = load_assumptions(args.config) if args.config else ValuationAssumptions()

    if args.scenarios:
        if not Path(args.scenarios).exists():
            print(f"ERROR: File not found: {args.scenarios}")
            sys.exit(1)
        run_batch_valuation(args.scenarios, assumptions, args.output)
        return

    if args.inputs:
        if not Path(args.inputs).exists():
            print(f"ERROR: File not found: {args.inputs}")
            sys.exit(1)
        all_inputs = load_inputs_json(args.inputs)
        for i, inputs in enumerate(all_inputs):
            output = args.output
            if output and len(all_inputs) > 1:
                path = Path(output)
                output = str(path.with_name(f"{path.stem}_{i + 1}{path.suffix}"))
            run_single_valuation(inputs, assumptions, output, args.sensitivity)
        return

    # Check required arguments
    required = ['monthly_benefit', 'start_age', 'current_age', 'life_expectancy']
    missing = [arg for arg in required if getattr(args, arg) is None]

    if missing:
        print(f"ERROR: Missing required arguments: {', '.join('--' + m.replace('_', '-') for m in missing)}")
        print("Use --inputs, --scenarios or --help for usage.")
        sys.exit(1)

    run_single_valuation(inputs_from_args(args), assumptions, args.output, args.sensitivity)


if __name__ == '__main__':
    main()
