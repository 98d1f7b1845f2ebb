"""
Global constants for FinSim.

Purpose
-------
Centralizes default values and policy constants used throughout the FinSim
codebase. The market-model constants below define the shape of the joint
return/inflation/bond model and are part of the product behavior, not
incidental tuning knobs.

Usage
-----
>>> from finsim.constants import DEFAULT_SIMULATION_COUNT, CONFIDENCE_PERCENTILES
>>>
>>> engine.run_sync(inputs.model_copy(update={"simulation_count": DEFAULT_SIMULATION_COUNT}), adapter)

Categories
----------
- Simulation: trial counts, worker threshold, sample sizes
- Market model: crash threshold, flight-to-quality and real-yield adjustments
- Retirement policy: glide path, sequence-of-returns penalty
- Reporting: confidence percentiles, safe withdrawal rate
"""

from typing import Tuple

__all__ = [
    # Simulation
    "DEFAULT_SIMULATION_COUNT",
    "DEFAULT_WORKER_THRESHOLD",
    "TRIAL_SAMPLE_SIZE",
    "PROGRESS_STEPS",
    "SCHEMA_VERSION",
    # Market model
    "FLIGHT_TO_QUALITY_THRESHOLD",
    "FLIGHT_TO_QUALITY_BONUS",
    "REAL_YIELD_FLOOR",
    "DEFAULT_BOND_VOLATILITY",
    "DEFAULT_CRASH_MAGNITUDE",
    # Retirement policy
    "FALLBACK_MARKET_RETURN",
    "FALLBACK_INFLATION_RATE",
    "FALLBACK_BOND_RETURN",
    "GLIDE_PATH_ANCHOR_AGE",
    "GLIDE_PATH_MIN_EQUITY",
    "GLIDE_PATH_MAX_EQUITY",
    "SEQUENCE_RISK_PENALTY",
    "SEQUENCE_RISK_YEARS",
    "MIN_RETIREMENT_RETURN",
    "MIN_NET_BOND_RETURN",
    # Reporting
    "CONFIDENCE_PERCENTILES",
    "SAFE_WITHDRAWAL_RATE",
    "MONTHS_PER_YEAR",
    "CATCH_UP_AGE",
    "CATCH_UP_LIMIT",
]


# =============================================================================
# Simulation Defaults
# =============================================================================

DEFAULT_SIMULATION_COUNT: int = 10_000
"""Number of trials when the plan does not specify `simulation_count`."""

DEFAULT_WORKER_THRESHOLD: int = 1_000
"""Trial counts above this run in the background worker process."""

TRIAL_SAMPLE_SIZE: int = 100
"""Number of leading trials kept in AggregateResult.sample_of_trials."""

PROGRESS_STEPS: int = 100
"""A running-phase progress update is emitted every ceil(total / PROGRESS_STEPS) trials."""

SCHEMA_VERSION: str = "0.1.0"
"""Plan file schema version understood by serialization.load_plan()."""


# =============================================================================
# Market Model
# =============================================================================

FLIGHT_TO_QUALITY_THRESHOLD: float = -0.10
"""Equity returns below this trigger the bond flight-to-quality bonus."""

FLIGHT_TO_QUALITY_BONUS: float = 0.02
"""Bond return bonus in years where equities fall past the threshold."""

REAL_YIELD_FLOOR: float = -0.02
"""Lower bound of the inflation-surprise adjustment applied to bond returns."""

DEFAULT_BOND_VOLATILITY: float = 0.05
"""Bond volatility used when MarketParameters.bond_volatility is zero."""

DEFAULT_CRASH_MAGNITUDE: float = 0.3
"""Crash year return is -DEFAULT_CRASH_MAGNITUDE when no magnitude is configured."""


# =============================================================================
# Retirement Policy
# =============================================================================

FALLBACK_MARKET_RETURN: float = 0.07
FALLBACK_INFLATION_RATE: float = 0.025
FALLBACK_BOND_RETURN: float = 0.035

GLIDE_PATH_ANCHOR_AGE: int = 110
"""Equity percentage during retirement is (110 - age), clamped below."""

GLIDE_PATH_MIN_EQUITY: int = 20
GLIDE_PATH_MAX_EQUITY: int = 80

SEQUENCE_RISK_PENALTY: float = 0.01
"""Flat return haircut in the first SEQUENCE_RISK_YEARS years of retirement."""

SEQUENCE_RISK_YEARS: int = 5

MIN_RETIREMENT_RETURN: float = 0.005
"""Floor for the blended retirement-year growth rate."""

MIN_NET_BOND_RETURN: float = 0.005
"""Floor for the fee-adjusted bond return of defined-contribution plans."""


# =============================================================================
# Reporting
# =============================================================================

CONFIDENCE_PERCENTILES: Tuple[int, ...] = (10, 25, 50, 75, 90)
"""Percentiles reported for final balances and yearly projections."""

SAFE_WITHDRAWAL_RATE: float = 0.04
"""4% rule used to turn a median balance into replacement income."""

MONTHS_PER_YEAR: int = 12

CATCH_UP_AGE: int = 50
CATCH_UP_LIMIT: float = 7_500.0
