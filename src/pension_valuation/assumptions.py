"""
pension_valuation/assumptions.py - Valuation Assumptions (Configuration)

DESIGN PRINCIPLE: No hardcoded plan rules inside the pipeline.
Every illustrative constant the engine relies on (WEP maximum, survivor
factors, inflation, the 4% reference withdrawal rate) lives here and is
validated once, when the assumptions are built.

The figures are illustrative planning constants, not IRS/SSA-certified tables.

Author: Pension Valuation Project
License: MIT
"""

from typing import Dict, Union, Any
from pathlib import Path
from enum import Enum
import json
from pydantic import BaseModel, Field
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================

class PensionType(Enum):
    """Pension categories (drives the mortality adjustment)."""
    PRIVATE = "private"
    FEDERAL_FERS = "federal_fers"
    FEDERAL_CSRS = "federal_csrs"
    STATE_LOCAL = "state_local"
    MILITARY = "military"


class SurvivorOption(Enum):
    """Joint-and-survivor payout elections."""
    SINGLE_LIFE = "single_life"
    JOINT_50 = "joint_50"
    JOINT_75 = "joint_75"
    JOINT_100 = "joint_100"


def enum_key(value: Union[Enum, str, None]) -> str:
    """Normalize an enum member or raw string to its lookup key."""
    if isinstance(value, Enum):
        return str(value.value)
    if value is None:
        return ""
    return str(value).strip().lower()


def coerce_enum(enum_cls, value: Any):
    """
    Convert a raw value to a member of `enum_cls`.

    Matches on value or member name, case-insensitively. Values that match
    nothing are returned unchanged so downstream lookups can fall back to
    their defaults.
    """
    if isinstance(value, enum_cls):
        return value
    key = enum_key(value)
    for member in enum_cls:
        if key in (member.value, member.name.lower()):
            return member
    logger.warning(f"Unrecognized {enum_cls.__name__} value: {value!r}")
    return value


# =============================================================================
# PYDANTIC MODELS FOR CONFIGURATION
# =============================================================================

def _default_life_expectancy_offsets() -> Dict[str, float]:
    # Government populations skew healthier; military skews the other way
    return {
        PensionType.PRIVATE.value: 0,
        PensionType.FEDERAL_FERS.value: 2,
        PensionType.FEDERAL_CSRS.value: 2,
        PensionType.STATE_LOCAL.value: 1,
        PensionType.MILITARY.value: -1,
    }


def _default_survivor_reductions() -> Dict[str, float]:
    return {
        SurvivorOption.SINGLE_LIFE.value: 0.0,
        SurvivorOption.JOINT_50.value: 0.05,
        SurvivorOption.JOINT_75.value: 0.075,
        SurvivorOption.JOINT_100.value: 0.10,
    }


def _default_survivor_continuations() -> Dict[str, float]:
    return {
        SurvivorOption.SINGLE_LIFE.value: 0.0,
        SurvivorOption.JOINT_50.value: 0.50,
        SurvivorOption.JOINT_75.value: 0.75,
        SurvivorOption.JOINT_100.value: 1.00,
    }


class ValuationAssumptions(BaseModel):
    """Complete assumption set for a pension valuation."""

    # Windfall Elimination Provision
    max_wep_reduction: float = Field(
        587.0, ge=0, description="Maximum monthly WEP reduction ($)"
    )
    wep_exemption_years: int = Field(
        30, ge=0, description="Years of substantial earnings that fully exempt WEP"
    )
    wep_phase_in_years: int = Field(
        20, ge=0, description="Years of substantial earnings where WEP starts phasing out"
    )
    wep_step_per_year: float = Field(
        0.05, ge=0, le=1, description="WEP reduction removed per year above phase-in"
    )
    wep_benefit_cap: float = Field(
        0.5, ge=0, le=1, description="WEP can never remove more than this share of the benefit"
    )

    # Government Pension Offset
    gpo_pension_fraction: float = Field(
        2.0 / 3.0, ge=0, le=1, description="Share of the pension offset against SS"
    )

    # Survivor heuristics
    survivor_buffer_years: float = Field(
        3, ge=0, description="Years a spouse is assumed to outlive the primary's expectancy"
    )

    # Portfolio translation
    reference_withdrawal_rate: float = Field(
        4.0, gt=0, le=100, description="Safe withdrawal rate (percent)"
    )

    # Buyout classification band
    buyout_threshold_percent: float = Field(
        10.0, ge=0, description="Offer must differ from fair value by more than this (percent)"
    )

    # Inflation (fraction, compounded annually)
    inflation_rate: float = Field(0.025, gt=-1, description="Assumed annual inflation")

    # Lookup tables keyed by enum value
    life_expectancy_offsets: Dict[str, float] = Field(
        default_factory=_default_life_expectancy_offsets
    )
    survivor_reduction_factors: Dict[str, float] = Field(
        default_factory=_default_survivor_reductions
    )
    survivor_continuation_rates: Dict[str, float] = Field(
        default_factory=_default_survivor_continuations
    )


def create_assumptions(config: Dict[str, Any] = None) -> ValuationAssumptions:
    """
    Factory function to build assumptions from a configuration dictionary.

    Keys that are not assumption fields are ignored, so a full engine
    configuration can be passed straight through.
    """
    config = config or {}
    fields = {k: v for k, v in config.items() if k in ValuationAssumptions.model_fields}
    return ValuationAssumptions(**fields)


def load_assumptions(path: Union[str, Path]) -> ValuationAssumptions:
    """Load assumptions from a JSON file."""
    path = Path(path)
    with open(path, 'r') as f:
        config = json.load(f)
    logger.info(f"Loaded assumptions: {path.name}")
    return create_assumptions(config)
