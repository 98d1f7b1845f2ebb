"""
Result aggregation for FinSim Monte Carlo runs.

Purpose
-------
Collects per-trial outcomes and per-year balance samples across all trials
and reduces them to an AggregateResult: success probability, nearest-rank
percentile bands of the final balance distribution, and cross-sectional
percentile bands for every simulated year.

Percentile convention
---------------------
Nearest rank, no interpolation:

    percentile(s, p) = s[min(floor(n · p / 100), n - 1)],   0.0 when n = 0

so p = 0 returns the minimum and p = 100 returns the maximum without
indexing out of bounds.

Example
-------
>>> from finsim.aggregation import ResultAggregator, TrialOutcome
>>> agg = ResultAggregator()
>>> agg.add(TrialOutcome(0, 1_000.0, True), [500.0, 1_000.0])
>>> agg.add(TrialOutcome(1, 0.0, False, depletion_year=80), [400.0, 0.0])
>>> result = agg.finalize(start_age=65)
>>> result.success_probability
50.0
>>> [p.age for p in result.yearly_projections]
[65, 66]
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .constants import CONFIDENCE_PERCENTILES, TRIAL_SAMPLE_SIZE
from .types import AggregateResultDict, TrialOutcomeDict

__all__ = [
    "percentile",
    "TrialOutcome",
    "ConfidenceInterval",
    "YearlyProjection",
    "AggregateResult",
    "ResultAggregator",
    "aggregate",
]


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile of an ascending sequence.

    Parameters
    ----------
    sorted_values : sequence of float
        Values sorted ascending.
    p : float
        Percentile in [0, 100].

    Returns
    -------
    float
        The selected element, or 0.0 for an empty sequence.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = min(max(0, math.floor(n * p / 100)), n - 1)
    return float(sorted_values[index])


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrialOutcome:
    """
    Result of one simulated trial.

    `final_balance` is clamped to >= 0 on construction.
    """

    trial_id: int
    final_balance: float
    success: bool
    depletion_year: Optional[int] = None
    extra_metrics: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "final_balance", max(0.0, float(self.final_balance)))

    def to_dict(self) -> TrialOutcomeDict:
        return asdict(self)  # type: ignore[return-value]

    @classmethod
    def from_dict(cls, payload: TrialOutcomeDict) -> "TrialOutcome":
        return cls(
            trial_id=int(payload["trial_id"]),
            final_balance=float(payload["final_balance"]),
            success=bool(payload["success"]),
            depletion_year=payload.get("depletion_year"),
            extra_metrics=dict(payload.get("extra_metrics") or {}),
        )


@dataclass(frozen=True)
class ConfidenceInterval:
    percentile: int
    value: float


@dataclass(frozen=True)
class YearlyProjection:
    age: int
    percentile10: float
    percentile25: float
    median: float
    percentile75: float
    percentile90: float


@dataclass(frozen=True)
class AggregateResult:
    """
    Summary of a completed run.

    Attributes
    ----------
    success_probability : float
        Percentage of successful trials (0-100).
    probability_of_depletion : float
        100 - success_probability.
    median_outcome, worst_case_10th, best_case_90th : float
        Final balance at the 50th, 10th and 90th percentiles.
    confidence_intervals : list of ConfidenceInterval
        Final balance at each of CONFIDENCE_PERCENTILES.
    yearly_projections : list of YearlyProjection
        Per year of the product walk, the cross-trial percentile bands,
        labelled by age (start age + year index). The walk covers the
        product's full age range even when `time_horizon` is shorter; years
        past the horizon use fixed fallback rates, so their spread only
        reflects the balances carried in from the simulated years.
    sample_of_trials : list of TrialOutcome
        The first trials of the run, in order (bounded, not a random sample).
    """

    success_probability: float
    probability_of_depletion: float
    median_outcome: float
    worst_case_10th: float
    best_case_90th: float
    confidence_intervals: List[ConfidenceInterval]
    yearly_projections: List[YearlyProjection]
    sample_of_trials: List[TrialOutcome]

    def base_fields(self) -> Dict[str, Any]:
        """AggregateResult fields only, for building product result subclasses."""
        return {f.name: getattr(self, f.name) for f in fields(AggregateResult)}

    def yearly_frame(self) -> pd.DataFrame:
        """Yearly percentile bands as a DataFrame indexed by age."""
        columns = ["age", "percentile10", "percentile25", "median", "percentile75", "percentile90"]
        frame = pd.DataFrame([asdict(p) for p in self.yearly_projections], columns=columns)
        return frame.set_index("age")

    def confidence_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [asdict(ci) for ci in self.confidence_intervals],
            columns=["percentile", "value"],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form (includes product fields on subclasses)."""
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: AggregateResultDict) -> "AggregateResult":
        return AggregateResult(
            success_probability=float(payload["success_probability"]),
            probability_of_depletion=float(payload["probability_of_depletion"]),
            median_outcome=float(payload["median_outcome"]),
            worst_case_10th=float(payload["worst_case_10th"]),
            best_case_90th=float(payload["best_case_90th"]),
            confidence_intervals=[
                ConfidenceInterval(int(ci["percentile"]), float(ci["value"]))
                for ci in payload["confidence_intervals"]
            ],
            yearly_projections=[YearlyProjection(**p) for p in payload["yearly_projections"]],
            sample_of_trials=[TrialOutcome.from_dict(t) for t in payload["sample_of_trials"]],
        )


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class ResultAggregator:
    """
    Incremental collector of trial outcomes.

    Final balances and per-year balances are kept for every trial; only the
    first `sample_size` TrialOutcome objects are retained.

    Parameters
    ----------
    sample_size : int
        Number of leading trials kept in `sample_of_trials`.
    """

    def __init__(self, sample_size: int = TRIAL_SAMPLE_SIZE):
        self.sample_size = sample_size
        self._final_balances: List[float] = []
        self._successes = 0
        self._sample: List[TrialOutcome] = []
        self._yearly: List[List[float]] = []

    def __len__(self) -> int:
        return len(self._final_balances)

    def add(self, outcome: TrialOutcome, yearly_balances: Iterable[float] = ()) -> None:
        """Record one trial and its year-by-year balances."""
        self._final_balances.append(outcome.final_balance)
        if outcome.success:
            self._successes += 1
        if len(self._sample) < self.sample_size:
            self._sample.append(outcome)

        for year, balance in enumerate(yearly_balances):
            if year >= len(self._yearly):
                self._yearly.append([])
            self._yearly[year].append(float(balance))

    def finalize(self, start_age: int) -> AggregateResult:
        """Reduce everything collected so far to an AggregateResult."""
        total = len(self._final_balances)
        success_probability = 100.0 * self._successes / total if total else 0.0

        finals = np.sort(np.asarray(self._final_balances, dtype=float))
        confidence = [
            ConfidenceInterval(p, percentile(finals, p)) for p in CONFIDENCE_PERCENTILES
        ]

        projections = []
        for index, balances in enumerate(self._yearly):
            ordered = np.sort(np.asarray(balances, dtype=float))
            projections.append(
                YearlyProjection(
                    age=start_age + index,
                    percentile10=percentile(ordered, 10),
                    percentile25=percentile(ordered, 25),
                    median=percentile(ordered, 50),
                    percentile75=percentile(ordered, 75),
                    percentile90=percentile(ordered, 90),
                )
            )

        return AggregateResult(
            success_probability=success_probability,
            probability_of_depletion=100.0 - success_probability,
            median_outcome=percentile(finals, 50),
            worst_case_10th=percentile(finals, 10),
            best_case_90th=percentile(finals, 90),
            confidence_intervals=confidence,
            yearly_projections=projections,
            sample_of_trials=list(self._sample),
        )


def aggregate(
    outcomes: Iterable[TrialOutcome],
    yearly_balances: Iterable[Sequence[float]],
    start_age: int,
    sample_size: int = TRIAL_SAMPLE_SIZE,
) -> AggregateResult:
    """Functional form of ResultAggregator: pair outcomes with their yearly balances."""
    aggregator = ResultAggregator(sample_size=sample_size)
    for outcome, balances in zip(outcomes, yearly_balances):
        aggregator.add(outcome, balances)
    return aggregator.finalize(start_age)
