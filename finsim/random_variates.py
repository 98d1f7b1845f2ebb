"""
Random variates for the FinSim market model.

Mathematical Model
------------------
Within one simulated year the three market variables follow a causal chain:

    r_t   = μ + σ · Z₁                                      (equity return)
    π_t   = max(0, π̄ + ρ · ((r_t - μ) / σ) · σ_π + √(1 - ρ²) · σ_π · Z₂)
    b_t   = b̄ + 𝟙[r_t < -0.10] · 0.02 + max(-0.02, π_t - π̄) + σ_b · Z₃

with Z₁, Z₂, Z₃ independent standard normals drawn by the Box-Muller
transform. Draws are independent from year to year; the dependence lives
only in the r → π → b chain within a year.

Design principles
-----------------
- Stateless: every function takes an explicit numpy Generator, so
  independent contexts (threads, processes) never share random state.
- Scalar API: one draw per call, matching the year-by-year scenario walk.
"""

from __future__ import annotations

import math

import numpy as np

from .constants import (
    DEFAULT_BOND_VOLATILITY,
    FLIGHT_TO_QUALITY_BONUS,
    FLIGHT_TO_QUALITY_THRESHOLD,
    REAL_YIELD_FLOOR,
)
from .market import MarketParameters

__all__ = [
    "standard_normal",
    "normal",
    "correlated_inflation",
    "bond_return",
]


def standard_normal(rng: np.random.Generator) -> float:
    """
    Draw one N(0, 1) value with the Box-Muller transform.

    u1 is taken from (0, 1] so that log(u1) is always finite.
    """
    u1 = 1.0 - rng.random()
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def normal(mean: float, std: float, rng: np.random.Generator) -> float:
    """Draw one N(mean, std²) value."""
    return mean + std * standard_normal(rng)


def correlated_inflation(
    market_return: float,
    params: MarketParameters,
    rng: np.random.Generator,
) -> float:
    """
    Inflation rate correlated with the year's market return.

    Parameters
    ----------
    market_return : float
        The year's (possibly crash-overridden) equity return.
    params : MarketParameters
        Effective parameters for the year.
    rng : np.random.Generator
        Source of the independent residual.

    Returns
    -------
    float
        Annual inflation rate, never negative.
    """
    rho = params.correlation_to_inflation
    if params.standard_deviation > 0:
        deviation = (market_return - params.average_return) / params.standard_deviation
    else:
        deviation = 0.0

    correlated = rho * deviation * params.inflation_volatility
    residual = math.sqrt(max(0.0, 1.0 - rho * rho)) * normal(0.0, params.inflation_volatility, rng)
    return max(0.0, params.average_inflation + correlated + residual)


def bond_return(
    market_return: float,
    inflation_rate: float,
    params: MarketParameters,
    rng: np.random.Generator,
) -> float:
    """
    Bond return with flight-to-quality and real-yield adjustments.

    Bonds gain a 2% bonus in years where equities lose more than 10%, and
    move with the inflation surprise (floored at -2%).
    """
    flight_to_quality = FLIGHT_TO_QUALITY_BONUS if market_return < FLIGHT_TO_QUALITY_THRESHOLD else 0.0
    real_yield = max(REAL_YIELD_FLOOR, inflation_rate - params.average_inflation)
    volatility = params.bond_volatility or DEFAULT_BOND_VOLATILITY
    return normal(params.bond_return + flight_to_quality + real_yield, volatility, rng)
