"""
Market scenario generation for FinSim.

Purpose
-------
Builds one simulated market path per trial: parallel year-indexed arrays of
equity return, inflation rate and bond return. The generator applies two
kinds of discrete shocks on top of the Gaussian draws in random_variates:

- Economic regimes: when a regime catalog is configured, a regime is drawn
  by weight and held for `duration_years`, overriding the mean return,
  volatility and mean inflation for those years.
- Crashes: with probability `crash_probability` a year's drawn return is
  replaced (not offset) by `-crash_magnitude`.

Inflation and bond return are always derived from the final (possibly
crash-overridden) market return, so a crash year also sees the bond
flight-to-quality bonus.

Example
-------
>>> import numpy as np
>>> from finsim.market import RISK_PROFILES, ECONOMIC_REGIMES
>>> from finsim.scenario import ScenarioGenerator
>>> params = RISK_PROFILES["moderate"].market_parameters
>>> gen = ScenarioGenerator(params, regimes=ECONOMIC_REGIMES, rng=42)
>>> scenario = gen.generate(30)
>>> len(scenario)
30
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from .constants import DEFAULT_CRASH_MAGNITUDE
from .exceptions import ConfigurationError
from .market import EconomicRegime, MarketParameters
from .random_variates import bond_return, correlated_inflation, normal

__all__ = [
    "MarketScenario",
    "ScenarioGenerator",
    "select_regime",
    "generate_scenario",
]

RandomState = Union[np.random.Generator, int, None]


# ---------------------------------------------------------------------------
# Scenario value object
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MarketScenario:
    """
    One simulated market path.

    Attributes
    ----------
    returns : np.ndarray, shape (H,)
        Annual equity returns.
    inflation_rates : np.ndarray, shape (H,)
        Annual inflation rates (>= 0 when produced by the generator).
    bond_returns : np.ndarray, shape (H,), optional
        Annual bond returns. Consumers fall back to a default rate when
        absent.
    """

    returns: np.ndarray
    inflation_rates: np.ndarray
    bond_returns: Optional[np.ndarray] = None

    def __post_init__(self):
        returns = np.asarray(self.returns, dtype=float)
        inflation = np.asarray(self.inflation_rates, dtype=float)
        if returns.shape != inflation.shape:
            raise ValueError(
                f"returns and inflation_rates must have equal length, "
                f"got {returns.shape[0]} and {inflation.shape[0]}"
            )
        object.__setattr__(self, "returns", returns)
        object.__setattr__(self, "inflation_rates", inflation)
        if self.bond_returns is not None:
            bonds = np.asarray(self.bond_returns, dtype=float)
            if bonds.shape != returns.shape:
                raise ValueError(
                    f"bond_returns must match returns length, "
                    f"got {bonds.shape[0]} and {returns.shape[0]}"
                )
            object.__setattr__(self, "bond_returns", bonds)

    def __len__(self) -> int:
        return int(self.returns.shape[0])

    @classmethod
    def constant(
        cls,
        horizon: int,
        market_return: float,
        inflation_rate: float = 0.0,
        bond_return: Optional[float] = None,
    ) -> "MarketScenario":
        """Deterministic path with the same values every year."""
        horizon = max(0, int(horizon))
        return cls(
            returns=np.full(horizon, market_return, dtype=float),
            inflation_rates=np.full(horizon, inflation_rate, dtype=float),
            bond_returns=None if bond_return is None else np.full(horizon, bond_return, dtype=float),
        )


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def select_regime(regimes: Sequence[EconomicRegime], rng: np.random.Generator) -> EconomicRegime:
    """
    Draw a regime by weight.

    Weights are normalized by their total at draw time. The last regime is
    returned when floating-point rounding leaves the draw unmatched.
    """
    if not regimes:
        raise ConfigurationError("Economic regime catalog is empty")

    total = sum(regime.probability for regime in regimes)
    draw = rng.random() * total
    cumulative = 0.0
    for regime in regimes:
        cumulative += regime.probability
        if draw <= cumulative:
            return regime
    return regimes[-1]


def generate_scenario(
    horizon: int,
    parameters: MarketParameters,
    rng: np.random.Generator,
    regimes: Optional[Sequence[EconomicRegime]] = None,
) -> MarketScenario:
    """
    Generate one market path of `horizon` years.

    Parameters
    ----------
    horizon : int
        Number of simulated years. Non-positive values yield an empty path.
    parameters : MarketParameters
        Base model. Regimes override only mean return, volatility and mean
        inflation; crash and correlation settings always come from here.
    rng : np.random.Generator
        Random source for every draw in the path.
    regimes : sequence of EconomicRegime, optional
        Regime catalog. None (or empty) disables regime switching.

    Returns
    -------
    MarketScenario
        Arrays of length max(0, horizon).
    """
    horizon = max(0, int(horizon))
    returns = np.empty(horizon, dtype=float)
    inflation = np.empty(horizon, dtype=float)
    bonds = np.empty(horizon, dtype=float)

    regime: Optional[EconomicRegime] = None
    years_remaining = 0

    for year in range(horizon):
        if regimes and (regime is None or years_remaining <= 0):
            regime = select_regime(regimes, rng)
            years_remaining = regime.duration_years

        effective = parameters.with_regime(regime) if regime is not None else parameters

        market_return = normal(effective.average_return, effective.standard_deviation, rng)
        crash_probability = effective.crash_probability
        if crash_probability and rng.random() < crash_probability:
            market_return = -(effective.crash_magnitude or DEFAULT_CRASH_MAGNITUDE)

        inflation_rate = correlated_inflation(market_return, effective, rng)
        returns[year] = market_return
        inflation[year] = inflation_rate
        bonds[year] = bond_return(market_return, inflation_rate, effective, rng)

        if regime is not None:
            years_remaining -= 1

    return MarketScenario(returns=returns, inflation_rates=inflation, bond_returns=bonds)


class ScenarioGenerator:
    """
    Stateful convenience wrapper around generate_scenario().

    Holds the parameters, optional regime catalog and a numpy Generator so
    that successive calls to generate() continue the same random stream.

    Parameters
    ----------
    parameters : MarketParameters
        Base market model.
    regimes : sequence of EconomicRegime, optional
        Regime catalog for regime switching.
    rng : np.random.Generator or int, optional
        Existing generator, or a seed passed to np.random.default_rng().
    """

    def __init__(
        self,
        parameters: MarketParameters,
        regimes: Optional[Sequence[EconomicRegime]] = None,
        rng: RandomState = None,
    ):
        if regimes is not None and len(regimes) == 0:
            raise ConfigurationError("Economic regime catalog is empty")
        self.parameters = parameters
        self.regimes = list(regimes) if regimes is not None else None
        self.rng = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)

    def generate(self, horizon_years: int) -> MarketScenario:
        return generate_scenario(horizon_years, self.parameters, self.rng, self.regimes)

    def __repr__(self) -> str:
        n_regimes = len(self.regimes) if self.regimes else 0
        return (
            f"ScenarioGenerator(average_return={self.parameters.average_return:.4f}, "
            f"standard_deviation={self.parameters.standard_deviation:.4f}, regimes={n_regimes})"
        )
