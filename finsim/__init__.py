"""
FinSim — Monte Carlo projections for retirement and 401(k) plans

A product-agnostic simulation engine: correlated market scenarios are
walked through a product adapter (retirement plan, defined-contribution
plan) many times, and the trials are aggregated into success probability,
percentile bands and product-specific metrics.

Modules
-------
- market         : Market parameters, asset allocations, regimes, risk profiles
- scenario       : Per-trial return / inflation / bond paths
- adapters       : Product adapter contract and registry
- retirement     : Retirement plan adapter
- defined_contribution : 401(k)-style plan adapter
- engine         : Run orchestration, progress, cancellation
- worker / dispatcher  : Background process execution
- serialization  : Plan files and result JSON

"""

__version__ = "0.1.0"

from .adapters import AdapterKind, SimulationAdapter, SimulationParameters, adapter_for
from .aggregation import AggregateResult, TrialOutcome
from .config import (
    AppSettings,
    AssetAllocationConfig,
    DefinedContributionInputs,
    RetirementInputs,
    SimulationConfig,
)
from .defined_contribution import DefinedContributionAdapter, DefinedContributionResults
from .engine import MonteCarloEngine, SimulationRun
from .exceptions import (
    FinSimError,
    SimulationCancelled,
    SimulationError,
    UnknownAdapterKind,
)
from .market import ECONOMIC_REGIMES, RISK_PROFILES, MarketParameters
from .retirement import RetirementAdapter, RetirementResults
from .scenario import MarketScenario, ScenarioGenerator
from .types import SimulationProgress
