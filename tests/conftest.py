"""
Pytest configuration and fixtures for FinSim test suite.

This module provides reusable fixtures for testing all FinSim components.
Fixtures follow the principle of "arrange-act-assert" with clear separation.
"""

import json

import numpy as np
import pytest

from finsim.config import (
    AppSettings,
    DefinedContributionInputs,
    RetirementInputs,
    SimulationConfig,
)
from finsim.market import MarketParameters, RISK_PROFILES
from finsim.serialization import plan_to_dict


# ---------------------------------------------------------------------------
# Random State Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def seed() -> int:
    """Standard random seed for reproducibility."""
    return 42


@pytest.fixture
def rng(seed) -> np.random.Generator:
    """Seeded numpy Generator."""
    return np.random.default_rng(seed)


# ---------------------------------------------------------------------------
# Market Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def moderate_params() -> MarketParameters:
    """Market parameters of the moderate risk profile."""
    return RISK_PROFILES["moderate"].market_parameters


@pytest.fixture
def calm_params() -> MarketParameters:
    """
    Market model without crashes.

    Return: 7% annually
    Volatility: 12% annually
    """
    return MarketParameters(
        average_return=0.07,
        standard_deviation=0.12,
        average_inflation=0.025,
        inflation_volatility=0.01,
        correlation_to_inflation=-0.2,
        bond_return=0.035,
        bond_volatility=0.04,
    )


# ---------------------------------------------------------------------------
# Plan Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def retirement_inputs() -> RetirementInputs:
    """
    Mid-career retirement plan.

    Age 40, retiring at 65, planning to 90
    Savings: 150,000 + 1,500/month
    Income: 120,000/year, 80% replacement target
    """
    return RetirementInputs(
        current_age=40,
        retirement_age=65,
        life_expectancy=90,
        current_savings=150_000,
        monthly_contribution=1_500,
        current_annual_income=120_000,
        desired_income_replacement=0.8,
        social_security_benefits=2_200,
        monthly_expenses={"housing": 2_000, "food": 800, "other": 1_200},
        risk_profile="moderate",
        simulation_count=300,
    )


@pytest.fixture
def dc_inputs() -> DefinedContributionInputs:
    """
    401(k) plan with a 50% match up to 6% of salary.

    Age 35, retiring at 65
    Balance: 50,000 + 500/month
    Income: 100,000/year, fees 0.5%
    """
    return DefinedContributionInputs(
        current_age=35,
        retirement_age=65,
        annual_income=100_000,
        current_balance=50_000,
        monthly_contribution=500,
        employer_match=0.5,
        employer_match_limit=0.06,
        estimated_return=0.07,
        total_fees=0.005,
        risk_profile="moderate",
        simulation_count=300,
    )


# ---------------------------------------------------------------------------
# Engine Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def in_process_config(seed) -> SimulationConfig:
    """Seeded engine configuration that never starts a worker process."""
    return SimulationConfig(seed=seed, use_worker=False, trial_sample_size=50)


@pytest.fixture
def settings() -> AppSettings:
    """Settings independent of the environment and any .env file."""
    return AppSettings(_env_file=None, log_level="WARNING", use_worker=True)


# ---------------------------------------------------------------------------
# File Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def retirement_plan_file(tmp_path, retirement_inputs):
    """Retirement plan written to a temporary JSON file."""
    path = tmp_path / "retirement_plan.json"
    path.write_text(json.dumps(plan_to_dict("retirement", retirement_inputs)), encoding="utf-8")
    return path


@pytest.fixture
def dc_plan_file(tmp_path, dc_inputs):
    """Defined-contribution plan written to a temporary JSON file."""
    path = tmp_path / "dc_plan.json"
    path.write_text(json.dumps(plan_to_dict("defined_contribution", dc_inputs)), encoding="utf-8")
    return path
