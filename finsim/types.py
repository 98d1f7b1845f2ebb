"""
Type definitions for FinSim.

Purpose
-------
Provides TypedDict definitions for the message protocol exchanged between
the host process and the background simulation worker, plus the dict forms
of results carried by those messages. Every payload is built from plain
Python scalars, lists and dicts, so the same schema can be reused as an IPC
format by any other implementation.

Usage
-----
>>> from finsim.types import StartSimulationMessage
>>>
>>> message: StartSimulationMessage = {
...     "type": "StartSimulation",
...     "inputs": inputs.model_dump(),
...     "parameters": parameters.to_dict(),
...     "adapter_kind": "retirement",
...     "simulation_count": 5_000,
...     "horizon": 56,
...     "seed": None,
... }

Type Definitions
----------------
Outbound (host -> worker)
    StartSimulationMessage, StopSimulationMessage

Inbound (worker -> host)
    ProgressUpdateMessage, SimulationCompleteMessage, ErrorMessage

Payloads
    ProgressDict, TrialOutcomeDict, YearlyProjectionDict, AggregateResultDict,
    MarketParametersDict, AssetAllocationDict, EconomicRegimeDict,
    SimulationParametersDict
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Union

from typing_extensions import NotRequired, TypedDict

__all__ = [
    "Phase",
    "SimulationProgress",
    "ProgressDict",
    "MarketParametersDict",
    "AssetAllocationDict",
    "EconomicRegimeDict",
    "RiskAdjustmentsDict",
    "SimulationParametersDict",
    "TrialOutcomeDict",
    "YearlyProjectionDict",
    "ConfidenceIntervalDict",
    "AggregateResultDict",
    "StartSimulationMessage",
    "StopSimulationMessage",
    "ProgressUpdateMessage",
    "SimulationCompleteMessage",
    "ErrorMessage",
    "WorkerMessage",
]


Phase = Literal["setup", "running", "analyzing", "complete"]


class ProgressDict(TypedDict):
    """Wire form of SimulationProgress."""

    completed: int
    total: int
    phase: Phase
    estimated_time_remaining: NotRequired[Optional[float]]


@dataclass(frozen=True)
class SimulationProgress:
    """
    Progress snapshot handed to the caller's progress callback.

    Attributes
    ----------
    completed : int
        Trials finished so far.
    total : int
        Trials requested for the run.
    phase : {"setup", "running", "analyzing", "complete"}
        Current stage of the run.
    estimated_time_remaining : float, optional
        Rough seconds remaining, extrapolated from elapsed time. Only set
        during the running phase.
    """

    completed: int
    total: int
    phase: Phase
    estimated_time_remaining: Optional[float] = None

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total > 0 else 0.0

    def to_dict(self) -> ProgressDict:
        payload: ProgressDict = {
            "completed": self.completed,
            "total": self.total,
            "phase": self.phase,
        }
        if self.estimated_time_remaining is not None:
            payload["estimated_time_remaining"] = self.estimated_time_remaining
        return payload

    @classmethod
    def from_dict(cls, payload: ProgressDict) -> "SimulationProgress":
        return cls(
            completed=int(payload["completed"]),
            total=int(payload["total"]),
            phase=payload["phase"],
            estimated_time_remaining=payload.get("estimated_time_remaining"),
        )


# ---------------------------------------------------------------------------
# Market payloads
# ---------------------------------------------------------------------------

class MarketParametersDict(TypedDict):
    average_return: float
    standard_deviation: float
    average_inflation: float
    inflation_volatility: float
    correlation_to_inflation: float
    bond_return: float
    bond_volatility: float
    crash_probability: NotRequired[Optional[float]]
    crash_magnitude: NotRequired[Optional[float]]


class AssetAllocationDict(TypedDict):
    equities: float
    bonds: float
    real_estate: NotRequired[float]
    cash: NotRequired[float]


class EconomicRegimeDict(TypedDict):
    name: str
    probability: float
    expected_return: float
    volatility: float
    inflation_rate: float
    duration_years: int


class RiskAdjustmentsDict(TypedDict, total=False):
    sequence_of_returns_risk: bool
    longevity_risk: bool
    inflation_risk: bool


class SimulationParametersDict(TypedDict):
    """Wire form of adapters.SimulationParameters."""

    market_parameters: MarketParametersDict
    asset_allocation: NotRequired[Optional[AssetAllocationDict]]
    economic_regimes: NotRequired[Optional[List[EconomicRegimeDict]]]
    risk_adjustments: NotRequired[RiskAdjustmentsDict]


# ---------------------------------------------------------------------------
# Result payloads
# ---------------------------------------------------------------------------

class TrialOutcomeDict(TypedDict):
    trial_id: int
    final_balance: float
    success: bool
    depletion_year: NotRequired[Optional[int]]
    extra_metrics: NotRequired[Dict[str, float]]


class YearlyProjectionDict(TypedDict):
    age: int
    percentile10: float
    percentile25: float
    median: float
    percentile75: float
    percentile90: float


class ConfidenceIntervalDict(TypedDict):
    percentile: int
    value: float


class AggregateResultDict(TypedDict):
    """Wire form of aggregation.AggregateResult."""

    success_probability: float
    probability_of_depletion: float
    median_outcome: float
    worst_case_10th: float
    best_case_90th: float
    confidence_intervals: List[ConfidenceIntervalDict]
    yearly_projections: List[YearlyProjectionDict]
    sample_of_trials: List[TrialOutcomeDict]


# ---------------------------------------------------------------------------
# Worker message protocol
# ---------------------------------------------------------------------------

class StartSimulationMessage(TypedDict):
    type: Literal["StartSimulation"]
    inputs: Dict[str, Any]
    parameters: SimulationParametersDict
    adapter_kind: str
    simulation_count: int
    horizon: int
    seed: NotRequired[Optional[int]]
    sample_size: NotRequired[int]


class StopSimulationMessage(TypedDict):
    type: Literal["StopSimulation"]


class ProgressUpdateMessage(TypedDict):
    type: Literal["ProgressUpdate"]
    progress: ProgressDict


class SimulationCompleteMessage(TypedDict):
    type: Literal["SimulationComplete"]
    data: AggregateResultDict


class ErrorMessage(TypedDict):
    """
    Failure reported by the worker.

    `error_kind` carries the exception class name so the host can raise a
    distinguished error (e.g. UnknownAdapterKind) instead of a generic one.
    """

    type: Literal["Error"]
    error: str
    error_kind: NotRequired[str]


WorkerMessage = Union[
    StartSimulationMessage,
    StopSimulationMessage,
    ProgressUpdateMessage,
    SimulationCompleteMessage,
    ErrorMessage,
]
