"""
Product adapter contract for FinSim.

Purpose
-------
The engine, scenario generator and aggregator are product-agnostic. Each
financial product plugs in by implementing SimulationAdapter:

1. prepare_parameters(inputs)   -> SimulationParameters
2. simulate_trial(inputs, s, i) -> TrialOutcome
3. yearly_balances(inputs, s)   -> list of year-end balances
4. classify_success(balance, inputs)
5. recommendations / product_metrics (optional post-processing)

Products are identified by a closed AdapterKind tag, which is also what
crosses the process boundary to the background worker. The tag is resolved
to an adapter instance once per run.

Example
-------
>>> from finsim.adapters import AdapterKind, adapter_for
>>> adapter = adapter_for("retirement")
>>> adapter.kind is AdapterKind.RETIREMENT
True
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, List, Mapping, Optional, Tuple, Type, Union

from .aggregation import AggregateResult, TrialOutcome
from .config import AssetAllocationConfig, BaseSimulationInputs
from .exceptions import UnknownAdapterKind
from .market import (
    ECONOMIC_REGIMES,
    AssetAllocation,
    EconomicRegime,
    MarketParameters,
    allocation_by_age,
    get_risk_profile,
)
from .scenario import MarketScenario
from .types import RiskAdjustmentsDict, SimulationParametersDict

__all__ = [
    "AdapterKind",
    "RiskAdjustments",
    "SimulationParameters",
    "SimulationAdapter",
    "adapter_for",
    "resolve_allocation",
    "safe_ratio",
]


class AdapterKind(str, Enum):
    """Closed set of supported products."""

    RETIREMENT = "retirement"
    DEFINED_CONTRIBUTION = "defined_contribution"

    def create(self) -> "SimulationAdapter":
        # Imported here because the product modules import this one.
        if self is AdapterKind.RETIREMENT:
            from .retirement import RetirementAdapter
            return RetirementAdapter()
        from .defined_contribution import DefinedContributionAdapter
        return DefinedContributionAdapter()


def adapter_for(kind: Union[AdapterKind, str]) -> "SimulationAdapter":
    """Resolve a product tag to a fresh adapter instance."""
    try:
        resolved = AdapterKind(kind)
    except ValueError:
        raise UnknownAdapterKind(
            f"Unknown adapter kind '{kind}'. "
            f"Available: {[k.value for k in AdapterKind]}"
        ) from None
    return resolved.create()


# ---------------------------------------------------------------------------
# Simulation parameters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RiskAdjustments:
    sequence_of_returns_risk: bool = False
    longevity_risk: bool = False
    inflation_risk: bool = False

    def to_dict(self) -> RiskAdjustmentsDict:
        return {
            "sequence_of_returns_risk": self.sequence_of_returns_risk,
            "longevity_risk": self.longevity_risk,
            "inflation_risk": self.inflation_risk,
        }


@dataclass(frozen=True)
class SimulationParameters:
    """
    Engine-ready model derived from one plan.

    Attributes
    ----------
    market_parameters : MarketParameters
        Base return/inflation/bond model.
    asset_allocation : AssetAllocation, optional
        Allocation the parameters were blended from.
    economic_regimes : list of EconomicRegime, optional
        Regime catalog; None disables regime switching.
    risk_adjustments : RiskAdjustments
        Which risk treatments the product applies (informational).
    """

    market_parameters: MarketParameters
    asset_allocation: Optional[AssetAllocation] = None
    economic_regimes: Optional[List[EconomicRegime]] = None
    risk_adjustments: RiskAdjustments = field(default_factory=RiskAdjustments)

    def to_dict(self) -> SimulationParametersDict:
        return {
            "market_parameters": self.market_parameters.to_dict(),
            "asset_allocation": self.asset_allocation.to_dict() if self.asset_allocation else None,
            "economic_regimes": (
                [regime.to_dict() for regime in self.economic_regimes]
                if self.economic_regimes is not None else None
            ),
            "risk_adjustments": self.risk_adjustments.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: SimulationParametersDict) -> "SimulationParameters":
        allocation = payload.get("asset_allocation")
        regimes = payload.get("economic_regimes")
        return cls(
            market_parameters=MarketParameters.from_dict(payload["market_parameters"]),
            asset_allocation=AssetAllocation.from_dict(allocation) if allocation else None,
            economic_regimes=(
                [EconomicRegime.from_dict(r) for r in regimes] if regimes is not None else None
            ),
            risk_adjustments=RiskAdjustments(**payload.get("risk_adjustments", {})),
        )


def resolve_allocation(
    current_age: int,
    risk_profile: Optional[str] = None,
    asset_allocation: Optional[AssetAllocationConfig] = None,
) -> AssetAllocation:
    """
    Pick the allocation a plan invests with.

    Explicit allocation first, then the named risk profile's allocation,
    then the moderate age-based allocation.
    """
    if asset_allocation is not None:
        return asset_allocation.to_allocation()
    if risk_profile:
        return get_risk_profile(risk_profile).asset_allocation
    return allocation_by_age(current_age, "moderate")


# ---------------------------------------------------------------------------
# Adapter contract
# ---------------------------------------------------------------------------

class SimulationAdapter(ABC):
    """
    Base class for product adapters.

    Subclasses set `kind` and `inputs_model` and implement the abstract
    methods. Adapters hold no per-run state, so one instance may serve any
    number of trials.
    """

    kind: ClassVar[AdapterKind]
    inputs_model: ClassVar[Type[BaseSimulationInputs]]

    def parse_inputs(self, payload: Mapping[str, Any]) -> BaseSimulationInputs:
        """Rebuild typed inputs from their model_dump() form."""
        return self.inputs_model.model_validate(dict(payload))

    @abstractmethod
    def prepare_parameters(self, inputs: BaseSimulationInputs) -> SimulationParameters:
        ...

    @abstractmethod
    def simulate_trial(
        self,
        inputs: BaseSimulationInputs,
        scenario: MarketScenario,
        trial_id: int,
    ) -> TrialOutcome:
        ...

    @abstractmethod
    def yearly_balances(self, inputs: BaseSimulationInputs, scenario: MarketScenario) -> List[float]:
        ...

    @abstractmethod
    def classify_success(self, final_balance: float, inputs: BaseSimulationInputs) -> bool:
        ...

    @abstractmethod
    def default_horizon(self, inputs: BaseSimulationInputs) -> int:
        ...

    def simulate(
        self,
        inputs: BaseSimulationInputs,
        scenario: MarketScenario,
        trial_id: int,
    ) -> Tuple[TrialOutcome, List[float]]:
        """Outcome and yearly balances of one trial. Products may fuse the two walks."""
        return self.simulate_trial(inputs, scenario, trial_id), self.yearly_balances(inputs, scenario)

    def horizon(self, inputs: BaseSimulationInputs) -> int:
        """Years to simulate: the plan's time_horizon when set, else the product default."""
        if inputs.time_horizon is not None:
            return inputs.time_horizon
        return max(0, self.default_horizon(inputs))

    def recommendations(self, results: AggregateResult, inputs: BaseSimulationInputs) -> List[str]:
        return []

    def product_metrics(self, aggregate: AggregateResult, inputs: BaseSimulationInputs) -> AggregateResult:
        return aggregate

    @staticmethod
    def regimes_for(inputs: BaseSimulationInputs) -> Optional[List[EconomicRegime]]:
        return list(ECONOMIC_REGIMES) if inputs.use_economic_regimes else None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r})"


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is zero."""
    return numerator / denominator if denominator else 0.0
