"""
Market parameter catalog for FinSim.

Purpose
-------
Defines the static market configuration consumed by the scenario
generator: per-asset-class return/volatility/crash parameters, the economic
regime catalog, named risk profiles, and the age-based allocation and
blending utilities adapters use to derive per-plan MarketParameters.

Key components
--------------
- MarketParameters:
    Immutable value object describing one return/inflation/bond model.
    Validated on construction; use dataclasses.replace() for overrides.
- AssetAllocation:
    Fractions held in equities, bonds, real estate and cash. Expected to sum
    to about 1 but not enforced.
- EconomicRegime:
    Named macro state with its own return, volatility, inflation and
    expected duration.
- RiskProfile:
    Named allocation + market parameters (conservative/moderate/aggressive).

Example
-------
>>> from finsim.market import allocation_by_age, blend_market_parameters
>>> allocation = allocation_by_age(45, "moderate")
>>> allocation.equities
0.65
>>> params = blend_market_parameters(allocation)
>>> round(params.average_return, 4)
0.0791
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Dict, List, Literal, Optional

import numpy as np

from .exceptions import ConfigurationError
from .types import AssetAllocationDict, EconomicRegimeDict, MarketParametersDict

__all__ = [
    "MarketParameters",
    "AssetAllocation",
    "EconomicRegime",
    "RiskProfile",
    "RiskProfileName",
    "ASSET_CLASS_PARAMETERS",
    "ECONOMIC_REGIMES",
    "RISK_PROFILES",
    "get_risk_profile",
    "allocation_by_age",
    "glide_path",
    "blend_allocations",
    "blend_market_parameters",
    "adjust_for_time_period",
    "custom_market_parameters",
]

RiskProfileName = Literal["conservative", "moderate", "aggressive"]


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MarketParameters:
    """
    Joint return/inflation/bond model for one plan.

    Parameters
    ----------
    average_return : float
        Expected annual equity (blended portfolio) return, e.g. 0.08.
    standard_deviation : float
        Annual return volatility (>= 0).
    average_inflation : float
        Expected annual inflation rate.
    inflation_volatility : float
        Standard deviation of annual inflation (>= 0).
    correlation_to_inflation : float
        Correlation between return surprises and inflation, in [-1, 1].
    bond_return : float
        Expected annual bond return.
    bond_volatility : float
        Bond return volatility (>= 0). Zero means "use the default".
    crash_probability : float, optional
        Per-year probability that the year's return is replaced by a crash.
    crash_magnitude : float, optional
        Size of a crash year loss, in [0, 1]. A crash year returns
        -crash_magnitude.
    """

    average_return: float
    standard_deviation: float
    average_inflation: float
    inflation_volatility: float
    correlation_to_inflation: float
    bond_return: float
    bond_volatility: float
    crash_probability: Optional[float] = None
    crash_magnitude: Optional[float] = None

    def __post_init__(self):
        if not -1.0 <= self.correlation_to_inflation <= 1.0:
            raise ConfigurationError(
                f"correlation_to_inflation must be in [-1, 1], "
                f"got {self.correlation_to_inflation}"
            )
        for name in ("standard_deviation", "inflation_volatility", "bond_volatility"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be non-negative, got {getattr(self, name)}")
        for name in ("crash_probability", "crash_magnitude"):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be in [0, 1], got {value}")

    def with_regime(self, regime: "EconomicRegime") -> "MarketParameters":
        """Override return, volatility and inflation with a regime's values."""
        return replace(
            self,
            average_return=regime.expected_return,
            standard_deviation=regime.volatility,
            average_inflation=regime.inflation_rate,
        )

    def to_dict(self) -> MarketParametersDict:
        return asdict(self)  # type: ignore[return-value]

    @classmethod
    def from_dict(cls, payload: MarketParametersDict) -> "MarketParameters":
        return cls(**payload)


@dataclass(frozen=True)
class AssetAllocation:
    """Portfolio weights. Callers are responsible for weights summing to ~1."""

    equities: float
    bonds: float
    real_estate: float = 0.0
    cash: float = 0.0

    @property
    def total(self) -> float:
        return self.equities + self.bonds + self.real_estate + self.cash

    def to_dict(self) -> AssetAllocationDict:
        return asdict(self)  # type: ignore[return-value]

    @classmethod
    def from_dict(cls, payload: AssetAllocationDict) -> "AssetAllocation":
        return cls(**payload)


@dataclass(frozen=True)
class EconomicRegime:
    """
    Named macroeconomic state.

    `probability` is a selection weight; a catalog's weights are normalized
    by their total when a regime is drawn, so they need not sum to 1.
    """

    name: str
    probability: float
    expected_return: float
    volatility: float
    inflation_rate: float
    duration_years: int

    def __post_init__(self):
        if self.probability < 0:
            raise ConfigurationError(f"regime '{self.name}' has negative probability")
        if self.duration_years < 1:
            raise ConfigurationError(
                f"regime '{self.name}' duration_years must be >= 1, got {self.duration_years}"
            )

    def to_dict(self) -> EconomicRegimeDict:
        return asdict(self)  # type: ignore[return-value]

    @classmethod
    def from_dict(cls, payload: EconomicRegimeDict) -> "EconomicRegime":
        return cls(**payload)


@dataclass(frozen=True)
class RiskProfile:
    name: Literal["conservative", "moderate", "aggressive", "custom"]
    description: str
    asset_allocation: AssetAllocation
    market_parameters: MarketParameters


# ---------------------------------------------------------------------------
# Catalogs
# ---------------------------------------------------------------------------

ASSET_CLASS_PARAMETERS: Dict[str, MarketParameters] = {
    "us_equities": MarketParameters(
        average_return=0.10,
        standard_deviation=0.20,
        average_inflation=0.025,
        inflation_volatility=0.015,
        correlation_to_inflation=-0.3,
        bond_return=0.035,
        bond_volatility=0.05,
        crash_probability=0.08,
        crash_magnitude=0.25,
    ),
    "international_equities": MarketParameters(
        average_return=0.085,
        standard_deviation=0.22,
        average_inflation=0.025,
        inflation_volatility=0.015,
        correlation_to_inflation=-0.2,
        bond_return=0.030,
        bond_volatility=0.06,
        crash_probability=0.10,
        crash_magnitude=0.30,
    ),
    "bonds": MarketParameters(
        average_return=0.04,
        standard_deviation=0.05,
        average_inflation=0.025,
        inflation_volatility=0.015,
        correlation_to_inflation=0.6,
        bond_return=0.035,
        bond_volatility=0.03,
    ),
    "real_estate": MarketParameters(
        average_return=0.08,
        standard_deviation=0.15,
        average_inflation=0.025,
        inflation_volatility=0.015,
        correlation_to_inflation=0.4,
        bond_return=0.035,
        bond_volatility=0.05,
    ),
    "commodities": MarketParameters(
        average_return=0.05,
        standard_deviation=0.25,
        average_inflation=0.025,
        inflation_volatility=0.015,
        correlation_to_inflation=0.8,
        bond_return=0.035,
        bond_volatility=0.05,
    ),
}

ECONOMIC_REGIMES: List[EconomicRegime] = [
    EconomicRegime("Bull Market", 0.65, 0.12, 0.15, 0.025, 7),
    EconomicRegime("Bear Market", 0.15, -0.05, 0.25, 0.015, 2),
    EconomicRegime("Stagnation", 0.15, 0.03, 0.10, 0.035, 4),
    EconomicRegime("Recovery", 0.05, 0.20, 0.20, 0.02, 2),
]

RISK_PROFILES: Dict[str, RiskProfile] = {
    "conservative": RiskProfile(
        name="conservative",
        description="Low risk, stable returns with capital preservation focus",
        asset_allocation=AssetAllocation(equities=0.30, bonds=0.60, real_estate=0.05, cash=0.05),
        market_parameters=MarketParameters(
            average_return=0.06,
            standard_deviation=0.08,
            average_inflation=0.025,
            inflation_volatility=0.01,
            correlation_to_inflation=-0.1,
            bond_return=0.035,
            bond_volatility=0.03,
            crash_probability=0.03,
            crash_magnitude=0.10,
        ),
    ),
    "moderate": RiskProfile(
        name="moderate",
        description="Balanced approach with moderate risk and growth potential",
        asset_allocation=AssetAllocation(equities=0.60, bonds=0.30, real_estate=0.08, cash=0.02),
        market_parameters=MarketParameters(
            average_return=0.08,
            standard_deviation=0.12,
            average_inflation=0.025,
            inflation_volatility=0.015,
            correlation_to_inflation=-0.2,
            bond_return=0.035,
            bond_volatility=0.04,
            crash_probability=0.06,
            crash_magnitude=0.18,
        ),
    ),
    "aggressive": RiskProfile(
        name="aggressive",
        description="High growth potential with increased volatility and risk",
        asset_allocation=AssetAllocation(equities=0.85, bonds=0.10, real_estate=0.05, cash=0.0),
        market_parameters=MarketParameters(
            average_return=0.10,
            standard_deviation=0.18,
            average_inflation=0.025,
            inflation_volatility=0.015,
            correlation_to_inflation=-0.3,
            bond_return=0.035,
            bond_volatility=0.05,
            crash_probability=0.08,
            crash_magnitude=0.25,
        ),
    ),
}


def get_risk_profile(name: str) -> RiskProfile:
    """Look up a risk profile by (case-insensitive) name."""
    try:
        return RISK_PROFILES[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown risk profile '{name}'. Available: {sorted(RISK_PROFILES)}"
        ) from None


# ---------------------------------------------------------------------------
# Allocation utilities
# ---------------------------------------------------------------------------

_RISK_ADJUSTMENT = {"conservative": -0.15, "moderate": 0.0, "aggressive": 0.15}


def allocation_by_age(age: int, risk_profile: RiskProfileName = "moderate") -> AssetAllocation:
    """
    Rule-of-110 allocation, shifted by risk profile.

    Equity share is clamp(110 - age, 20, 90) / 100, adjusted by -15/0/+15
    points for conservative/moderate/aggressive and clamped to [0.1, 0.9].
    Bonds take the remainder (at most 0.8); a small real-estate sleeve fades
    out with age; cash absorbs whatever is left. Values are rounded to 3
    decimals.
    """
    base_equity = max(20, min(90, 110 - age)) / 100
    equity = max(0.1, min(0.9, base_equity + _RISK_ADJUSTMENT[risk_profile]))
    bonds = min(0.8, 1 - equity)
    real_estate = min(0.1, max(0.0, 0.1 - (age - 30) * 0.002))
    cash = max(0.0, 1 - equity - bonds - real_estate)
    return AssetAllocation(
        equities=round(equity, 3),
        bonds=round(bonds, 3),
        real_estate=round(real_estate, 3),
        cash=round(cash, 3),
    )


def glide_path(
    current_age: int,
    retirement_age: int,
    risk_profile: RiskProfileName = "moderate",
    years_after_retirement: int = 20,
) -> List[AssetAllocation]:
    """Target-date style allocations, one per age up to retirement + 20 years."""
    return [
        allocation_by_age(age, risk_profile)
        for age in range(current_age, retirement_age + years_after_retirement + 1)
    ]


def blend_allocations(first: AssetAllocation, second: AssetAllocation, weight: float) -> AssetAllocation:
    """Linear blend: `weight` of `first` plus `1 - weight` of `second`."""
    other = 1 - weight
    return AssetAllocation(
        equities=first.equities * weight + second.equities * other,
        bonds=first.bonds * weight + second.bonds * other,
        real_estate=first.real_estate * weight + second.real_estate * other,
        cash=first.cash * weight + second.cash * other,
    )


# ---------------------------------------------------------------------------
# Parameter utilities
# ---------------------------------------------------------------------------

def blend_market_parameters(allocation: AssetAllocation) -> MarketParameters:
    """
    Derive MarketParameters from an allocation.

    Mean return and inflation correlation are weight-averaged across US
    equities, bonds and real estate; volatility is the square root of the
    weight-averaged variances. Crash probability and magnitude scale with
    the equity share. Cash carries no weight. An allocation with no
    invested weight falls back to pure bonds.
    """
    eq = ASSET_CLASS_PARAMETERS["us_equities"]
    bd = ASSET_CLASS_PARAMETERS["bonds"]
    re = ASSET_CLASS_PARAMETERS["real_estate"]

    weights = np.array([allocation.equities, allocation.bonds, allocation.real_estate], dtype=float)
    total = float(weights.sum())
    if total <= 0:
        weights, total = np.array([0.0, 1.0, 0.0]), 1.0

    returns = np.array([eq.average_return, bd.average_return, re.average_return])
    variances = np.array([eq.standard_deviation, bd.standard_deviation, re.standard_deviation]) ** 2
    correlations = np.array([
        eq.correlation_to_inflation, bd.correlation_to_inflation, re.correlation_to_inflation
    ])

    return MarketParameters(
        average_return=float(weights @ returns / total),
        standard_deviation=float(np.sqrt(weights @ variances / total)),
        average_inflation=eq.average_inflation,
        inflation_volatility=eq.inflation_volatility,
        correlation_to_inflation=float(weights @ correlations / total),
        bond_return=bd.bond_return,
        bond_volatility=bd.bond_volatility,
        crash_probability=min(1.0, max(0.0, eq.crash_probability * allocation.equities)),
        crash_magnitude=min(1.0, max(0.0, eq.crash_magnitude * allocation.equities)),
    )


def adjust_for_time_period(params: MarketParameters, years: int) -> MarketParameters:
    """
    Scale volatility with the horizon and damp crash frequency.

    Volatility is multiplied by min(1.2, 1 + (years - 10) * 0.01); crash
    probability, when set, is multiplied by 0.8.
    """
    factor = min(1.2, 1 + (years - 10) * 0.01)
    crash = params.crash_probability * 0.8 if params.crash_probability else None
    return replace(
        params,
        standard_deviation=max(0.0, params.standard_deviation * factor),
        crash_probability=crash,
    )


_RISK_LEVELS = {
    # level: (volatility multiplier, crash probability, crash magnitude)
    "low": (0.6, 0.03, 0.15),
    "medium": (1.0, 0.06, 0.20),
    "high": (1.5, 0.10, 0.30),
}


def custom_market_parameters(
    expected_return: float,
    risk_level: Literal["low", "medium", "high"],
    inflation_expectation: Optional[float] = None,
) -> MarketParameters:
    """Build parameters from a user's expected return and coarse risk level."""
    if risk_level not in _RISK_LEVELS:
        raise ConfigurationError(f"risk_level must be one of {sorted(_RISK_LEVELS)}, got '{risk_level}'")
    multiplier, crash_probability, crash_magnitude = _RISK_LEVELS[risk_level]
    return MarketParameters(
        average_return=expected_return,
        standard_deviation=0.15 * multiplier,
        average_inflation=inflation_expectation or 0.025,
        inflation_volatility=0.015,
        correlation_to_inflation=-0.2,
        bond_return=0.035,
        bond_volatility=0.04,
        crash_probability=crash_probability,
        crash_magnitude=crash_magnitude,
    )
