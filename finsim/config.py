"""
Configuration management module for FinSim.

Purpose
-------
Centralized configuration using Pydantic models for type-safe plan inputs,
engine settings and environment-driven application settings.

Design Principles
-----------------
- Type-safe: Pydantic enforces types and validates ranges
- Immutable: Frozen models prevent accidental mutation
- Serializable: model_dump() output is the `inputs` payload of worker
  messages and plan files
- Environment-aware: AppSettings reads FINSIM_* variables and .env files

Units
-----
All rates are fractions (0.07 for 7%). Monetary amounts are in the plan's
currency; `monthly_*` fields are per month, the rest per year unless noted.

Example
-------
>>> from finsim.config import RetirementInputs, SimulationConfig
>>> inputs = RetirementInputs(
...     current_age=40,
...     retirement_age=65,
...     life_expectancy=90,
...     current_savings=150_000,
...     monthly_contribution=1_500,
...     current_annual_income=120_000,
...     desired_income_replacement=0.8,
...     social_security_benefits=2_200,
...     monthly_expenses={"housing": 2_000, "food": 800},
...     simulation_count=2_000,
... )
>>> inputs.model_dump()["retirement_age"]
65
>>> SimulationConfig(worker_threshold=500).use_worker
True
"""

from __future__ import annotations
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_SIMULATION_COUNT,
    DEFAULT_WORKER_THRESHOLD,
    TRIAL_SAMPLE_SIZE,
)
from .market import AssetAllocation

__all__ = [
    "AssetAllocationConfig",
    "BaseSimulationInputs",
    "RetirementInputs",
    "DefinedContributionInputs",
    "SimulationConfig",
    "AppSettings",
]

RiskProfileName = Literal["conservative", "moderate", "aggressive"]


# ---------------------------------------------------------------------------
# Allocation Configuration
# ---------------------------------------------------------------------------

class AssetAllocationConfig(BaseModel):
    """
    Explicit portfolio weights supplied with a plan.

    Weights are expected to sum to about 1; this is not enforced.

    Examples
    --------
    >>> AssetAllocationConfig(equities=0.7, bonds=0.3).to_allocation().total
    1.0
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    equities: float = Field(ge=0, le=1, description="Equity weight")
    bonds: float = Field(ge=0, le=1, description="Bond weight")
    real_estate: float = Field(default=0.0, ge=0, le=1, description="Real estate weight")
    cash: float = Field(default=0.0, ge=0, le=1, description="Cash weight")

    def to_allocation(self) -> AssetAllocation:
        return AssetAllocation(
            equities=self.equities,
            bonds=self.bonds,
            real_estate=self.real_estate,
            cash=self.cash,
        )


# ---------------------------------------------------------------------------
# Plan Inputs
# ---------------------------------------------------------------------------

class BaseSimulationInputs(BaseModel):
    """
    Fields every product's inputs carry.

    Attributes
    ----------
    current_age : int
        Age at the start of the projection; yearly projections are labelled
        from this age.
    time_horizon : int, optional
        Years to project. When None, the product adapter's default horizon
        is used.
    simulation_count : int, optional
        Number of trials. When None, SimulationConfig.default_simulation_count.
    use_economic_regimes : bool
        Draw yearly parameters from the economic regime catalog instead of
        the plan's fixed market parameters.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    current_age: int = Field(ge=0, le=120, description="Current age in years")
    time_horizon: Optional[int] = Field(
        default=None,
        ge=0,
        le=150,
        description="Projection horizon in years"
    )
    simulation_count: Optional[int] = Field(
        default=None,
        ge=1,
        le=1_000_000,
        description="Number of Monte Carlo trials"
    )
    use_economic_regimes: bool = Field(
        default=False,
        description="Switch between the economic regimes of market.ECONOMIC_REGIMES"
    )


class RetirementInputs(BaseSimulationInputs):
    """
    Inputs for a retirement accumulation + decumulation plan.

    Attributes
    ----------
    retirement_age : int
        Age at which contributions stop and withdrawals begin.
    life_expectancy : int
        Last age simulated.
    current_savings : float
        Balance today.
    monthly_contribution : float
        Contribution per month during accumulation.
    current_annual_income : float
        Gross annual income today.
    desired_income_replacement : float
        Target retirement income as a fraction of current income (0.8 = 80%).
    social_security_benefits : float
        Expected monthly Social Security benefit.
    other_income : float
        Other monthly retirement income (pensions, rentals).
    monthly_expenses : dict of str to float
        Current monthly expenses by category.
    expected_inflation : float
        Inflation used to project today's expenses to the retirement date.
    risk_profile : {"conservative", "moderate", "aggressive"}, optional
        Named allocation used when `asset_allocation` is not given.
    asset_allocation : AssetAllocationConfig, optional
        Explicit allocation; takes precedence over `risk_profile`.
    """

    retirement_age: int = Field(ge=0, le=120, description="Retirement age")
    life_expectancy: int = Field(ge=0, le=120, description="Last simulated age")
    current_savings: float = Field(default=0.0, ge=0, description="Current savings balance")
    monthly_contribution: float = Field(default=0.0, ge=0, description="Monthly contribution")
    current_annual_income: float = Field(default=0.0, ge=0, description="Current annual income")
    desired_income_replacement: float = Field(
        default=0.8,
        ge=0,
        le=2.0,
        description="Target income replacement (fraction of current income)"
    )
    social_security_benefits: float = Field(default=0.0, ge=0, description="Monthly Social Security benefit")
    other_income: float = Field(default=0.0, ge=0, description="Other monthly retirement income")
    monthly_expenses: Dict[str, float] = Field(
        default_factory=dict,
        description="Current monthly expenses by category"
    )
    expected_inflation: float = Field(
        default=0.025,
        ge=-0.05,
        le=0.5,
        description="Expected annual inflation for expense projection"
    )
    risk_profile: Optional[RiskProfileName] = Field(
        default=None,
        description="Named risk profile"
    )
    asset_allocation: Optional[AssetAllocationConfig] = Field(
        default=None,
        description="Explicit asset allocation"
    )

    @field_validator("retirement_age")
    @classmethod
    def validate_retirement_age(cls, v, info):
        """Ensure retirement is not in the past."""
        current_age = info.data.get("current_age")
        if current_age is not None and v < current_age:
            raise ValueError(f"retirement_age ({v}) must be >= current_age ({current_age})")
        return v

    @field_validator("life_expectancy")
    @classmethod
    def validate_life_expectancy(cls, v, info):
        """Ensure the projection covers at least the current age."""
        current_age = info.data.get("current_age")
        if current_age is not None and v < current_age:
            raise ValueError(f"life_expectancy ({v}) must be >= current_age ({current_age})")
        return v

    @field_validator("monthly_expenses")
    @classmethod
    def validate_expenses(cls, v):
        """Expense amounts must be non-negative."""
        negative = [name for name, amount in v.items() if amount < 0]
        if negative:
            raise ValueError(f"Negative monthly expenses: {negative}")
        return v

    @property
    def total_monthly_expenses(self) -> float:
        return float(sum(self.monthly_expenses.values()))


class DefinedContributionInputs(BaseSimulationInputs):
    """
    Inputs for a defined-contribution (401(k)-style) accumulation plan.

    Attributes
    ----------
    retirement_age : int
        Age at which the projection ends.
    annual_income : float
        Gross annual income today.
    current_balance : float
        Account balance today.
    monthly_contribution : float
        Employee contribution per month.
    employer_match : float
        Fraction of the employee contribution matched (0.5 = 50%).
    employer_match_limit : float
        Match applies up to this fraction of salary (0.06 = 6%).
    estimated_return : float
        Expected annual return, overriding the blended allocation return.
    total_fees : float
        Annual fee drag (expense ratios + plan fees), as a fraction.
    include_inflation : bool
        Grow income and contributions by `income_growth_rate` each year.
    inflation_rate : float
        Expected annual inflation.
    income_growth_rate : float
        Annual income growth used when `include_inflation` is set.
    """

    retirement_age: int = Field(ge=0, le=120, description="Retirement age")
    annual_income: float = Field(default=0.0, ge=0, description="Current annual income")
    current_balance: float = Field(default=0.0, ge=0, description="Current account balance")
    monthly_contribution: float = Field(default=0.0, ge=0, description="Monthly employee contribution")
    employer_match: float = Field(default=0.0, ge=0, le=2.0, description="Employer match rate")
    employer_match_limit: float = Field(
        default=0.0,
        ge=0,
        le=1.0,
        description="Salary fraction eligible for matching"
    )
    estimated_return: float = Field(default=0.07, ge=-0.5, le=1.0, description="Expected annual return")
    total_fees: float = Field(default=0.0, ge=0, le=0.2, description="Annual fees")
    include_inflation: bool = Field(default=False, description="Grow income and contributions yearly")
    inflation_rate: float = Field(default=0.025, ge=-0.05, le=0.5, description="Expected inflation")
    income_growth_rate: float = Field(default=0.03, ge=-0.5, le=0.5, description="Annual income growth")
    risk_profile: Optional[RiskProfileName] = Field(
        default=None,
        description="Named risk profile"
    )
    asset_allocation: Optional[AssetAllocationConfig] = Field(
        default=None,
        description="Explicit asset allocation"
    )

    @field_validator("retirement_age")
    @classmethod
    def validate_retirement_age(cls, v, info):
        """Ensure retirement is not in the past."""
        current_age = info.data.get("current_age")
        if current_age is not None and v < current_age:
            raise ValueError(f"retirement_age ({v}) must be >= current_age ({current_age})")
        return v


# ---------------------------------------------------------------------------
# Engine Configuration
# ---------------------------------------------------------------------------

class SimulationConfig(BaseModel):
    """
    Configuration for the Monte Carlo engine.

    Attributes
    ----------
    default_simulation_count : int
        Trials used when the plan leaves `simulation_count` unset.
    worker_threshold : int
        Runs with more trials than this go to the background worker.
    use_worker : bool
        Allow the background worker at all.
    seed : int, optional
        Random seed for reproducibility. If None, uses fresh entropy.
    trial_sample_size : int
        Number of leading trials kept in the result sample.
    poll_interval : float
        Seconds between checks of the worker's outbox.

    Examples
    --------
    >>> config = SimulationConfig(seed=42, use_worker=False)
    >>> config.default_simulation_count
    10000
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    default_simulation_count: int = Field(
        default=DEFAULT_SIMULATION_COUNT,
        ge=1,
        le=1_000_000,
        description="Default number of Monte Carlo trials"
    )
    worker_threshold: int = Field(
        default=DEFAULT_WORKER_THRESHOLD,
        ge=0,
        description="Minimum trial count (exclusive) for the background worker"
    )
    use_worker: bool = Field(
        default=True,
        description="Enable the background worker process"
    )
    seed: Optional[int] = Field(
        default=None,
        description="Random seed for reproducibility"
    )
    trial_sample_size: int = Field(
        default=TRIAL_SAMPLE_SIZE,
        ge=0,
        le=10_000,
        description="Trials kept in the result sample"
    )
    poll_interval: float = Field(
        default=0.01,
        gt=0,
        le=1.0,
        description="Worker outbox polling interval (seconds)"
    )


# ---------------------------------------------------------------------------
# Application Settings (Environment Variables)
# ---------------------------------------------------------------------------

class AppSettings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Supports .env files for local development. Environment variables
    should be prefixed with FINSIM_ (e.g., FINSIM_LOG_LEVEL=DEBUG).

    Attributes
    ----------
    debug : bool
        Enable debug mode with verbose logging
    log_level : str
        Logging level: "DEBUG", "INFO", "WARNING", "ERROR"
    use_worker : bool
        Global switch for the background worker process
    worker_start_method : str
        multiprocessing start method for the worker

    Examples
    --------
    >>> settings = AppSettings()
    >>> settings.worker_start_method
    'spawn'

    # With .env file:
    # FINSIM_USE_WORKER=false
    >>> settings = AppSettings(_env_file=".env")
    >>> settings.use_worker
    False
    """

    model_config = SettingsConfigDict(
        env_prefix="FINSIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )
    use_worker: bool = Field(
        default=True,
        description="Allow the background worker process"
    )
    worker_start_method: Literal["spawn", "forkserver", "fork"] = Field(
        default="spawn",
        description="multiprocessing start method for the worker"
    )

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level
