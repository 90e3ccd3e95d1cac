"""
Pension Valuation Engine

Converts a description of a defined-benefit pension into its present value
(with and without COLA), the value of a survivor benefit, a lump-sum buyout
verdict, WEP/GPO offsets to Social Security, and the invested capital it is
equivalent to.

Version: 1.0.0

Figures are planning estimates built on illustrative constants
(see ValuationAssumptions), not certified actuarial output.

Author: Pension Valuation Project
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Pension Valuation Project"

from .assumptions import (
    PensionType,
    SurvivorOption,
    ValuationAssumptions,
    create_assumptions,
    load_assumptions,
)

from .engine import (
    PensionValuationEngine,
    PensionInputs,
    PensionValuation,
    valuations_to_dataframe,
    create_engine,
    get_default_engine,
    compute,
)

from .mortality import (
    LifeExpectancyAdjuster,
    create_life_expectancy_adjuster,
)

from .survivor import (
    SurvivorBenefitModel,
    create_survivor_model,
)

from .financials import (
    PresentValueDiscounter,
    PortfolioEquivalentConverter,
    deflate,
)

from .social_security import SocialSecurityOffsetCalculator

from .buyout import (
    BuyoutRecommendation,
    BuyoutComparison,
    BuyoutComparator,
)

from .ingestion import (
    ScenarioLoader,
    ScenarioResult,
    inputs_from_dict,
    load_inputs_json,
    load_scenarios,
)

from .reporting import (
    # Insights
    ValuationInsights,
    build_insights,

    # Sensitivity
    SensitivityAnalyzer,
    SensitivityResult,

    # Excel / console output
    ExcelReportGenerator,
    generate_pension_report,
    print_valuation_summary,
)

__all__ = [
    # Main engine
    "PensionValuationEngine",
    "create_engine",
    "get_default_engine",
    "compute",

    # Inputs and results
    "PensionInputs",
    "PensionValuation",
    "valuations_to_dataframe",

    # Assumptions
    "PensionType",
    "SurvivorOption",
    "ValuationAssumptions",
    "create_assumptions",
    "load_assumptions",

    # Components
    "LifeExpectancyAdjuster",
    "create_life_expectancy_adjuster",
    "SurvivorBenefitModel",
    "create_survivor_model",
    "PresentValueDiscounter",
    "PortfolioEquivalentConverter",
    "deflate",
    "SocialSecurityOffsetCalculator",
    "BuyoutRecommendation",
    "BuyoutComparison",
    "BuyoutComparator",

    # Ingestion
    "ScenarioLoader",
    "ScenarioResult",
    "inputs_from_dict",
    "load_inputs_json",
    "load_scenarios",

    # Reporting
    "ValuationInsights",
    "build_insights",
    "SensitivityAnalyzer",
    "SensitivityResult",
    "ExcelReportGenerator",
    "generate_pension_report",
    "print_valuation_summary",
]
