"""
Retirement plan adapter for FinSim.

Purpose
-------
Projects a plan through an accumulation phase (contributions compound at
the year's equity return) and a withdrawal phase (an inflation-indexed
withdrawal funded from a glide-path portfolio) until life expectancy.

Withdrawal model
----------------
The base annual withdrawal, fixed at the start of the plan, is the larger of

    income_need  = max(0, income · replacement - 12 · (ss + other))
    expense_need = max(0, 12 · Σ expenses · (1 + π_e)^(R - A) - 12 · (ss + other))

where R is the retirement age, A the current age and π_e the expected
inflation. In retirement year k (k = 0 at R) the withdrawal is the base
scaled by the product of the drawn inflation rates of years 1..k.

Retirement-year growth blends equities and bonds with equity share
clamp(110 - age, 20, 80) / 100, minus a 1% sequence-of-returns haircut in
the first five retirement years, floored at 0.5%.

Example
-------
>>> from finsim.retirement import RetirementAdapter
>>> from finsim.scenario import MarketScenario
>>> adapter = RetirementAdapter()
>>> outcome = adapter.simulate_trial(inputs, MarketScenario.constant(56, 0.07, 0.025, 0.035), 0)
>>> outcome.success
True
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from .adapters import (
    AdapterKind,
    RiskAdjustments,
    SimulationAdapter,
    SimulationParameters,
    resolve_allocation,
    safe_ratio,
)
from .aggregation import AggregateResult, TrialOutcome
from .config import RetirementInputs
from .constants import (
    FALLBACK_BOND_RETURN,
    FALLBACK_INFLATION_RATE,
    FALLBACK_MARKET_RETURN,
    GLIDE_PATH_ANCHOR_AGE,
    GLIDE_PATH_MAX_EQUITY,
    GLIDE_PATH_MIN_EQUITY,
    MIN_RETIREMENT_RETURN,
    MONTHS_PER_YEAR,
    SAFE_WITHDRAWAL_RATE,
    SEQUENCE_RISK_PENALTY,
    SEQUENCE_RISK_YEARS,
)
from .market import adjust_for_time_period, blend_market_parameters
from .scenario import MarketScenario

logger = logging.getLogger(__name__)

__all__ = [
    "RetirementResults",
    "RetirementAdapter",
    "base_withdrawal_need",
    "retirement_equity_share",
]


@dataclass(frozen=True)
class RetirementResults(AggregateResult):
    """
    AggregateResult plus retirement-specific metrics.

    Attributes
    ----------
    expected_monthly_income : float
        4% rule income from the median final balance, per month.
    income_replacement_ratio : float
        expected_monthly_income as a percentage of current monthly income.
    social_security_coverage : float
        Social Security benefit as a percentage of current monthly income.
    shortfall_probability : float
        Same as probability_of_depletion.
    average_years_until_depletion : float, optional
        Mean years from retirement to depletion over failed trials in the
        sample; None when none of them failed.
    recommendations : list of str
        Rule-based suggestions.
    """

    expected_monthly_income: float = 0.0
    income_replacement_ratio: float = 0.0
    social_security_coverage: float = 0.0
    shortfall_probability: float = 0.0
    average_years_until_depletion: Optional[float] = None
    recommendations: List[str] = field(default_factory=list)


def base_withdrawal_need(inputs: RetirementInputs) -> float:
    """Annual amount the portfolio must fund in the first retirement year."""
    offsets = MONTHS_PER_YEAR * (inputs.social_security_benefits + inputs.other_income)
    income_need = max(0.0, inputs.current_annual_income * inputs.desired_income_replacement - offsets)

    years_to_retirement = inputs.retirement_age - inputs.current_age
    projected_expenses = (
        MONTHS_PER_YEAR
        * inputs.total_monthly_expenses
        * (1 + inputs.expected_inflation) ** years_to_retirement
    )
    expense_need = max(0.0, projected_expenses - offsets)
    return max(income_need, expense_need)


def retirement_equity_share(age: int) -> float:
    """Glide-path equity weight during retirement."""
    pct = max(GLIDE_PATH_MIN_EQUITY, min(GLIDE_PATH_MAX_EQUITY, GLIDE_PATH_ANCHOR_AGE - age))
    return pct / 100


def _year_values(scenario: MarketScenario, index: int) -> Tuple[float, float, float]:
    """(market return, inflation, bond return) for a year; defaults past the end of the path."""
    if index < len(scenario):
        bond = (
            float(scenario.bond_returns[index])
            if scenario.bond_returns is not None
            else FALLBACK_BOND_RETURN
        )
        return float(scenario.returns[index]), float(scenario.inflation_rates[index]), bond
    return FALLBACK_MARKET_RETURN, FALLBACK_INFLATION_RATE, FALLBACK_BOND_RETURN


class RetirementAdapter(SimulationAdapter):
    """Accumulation + decumulation retirement plan."""

    kind = AdapterKind.RETIREMENT
    inputs_model = RetirementInputs

    # -------------------- Parameters --------------------

    def prepare_parameters(self, inputs: RetirementInputs) -> SimulationParameters:
        allocation = resolve_allocation(inputs.current_age, inputs.risk_profile, inputs.asset_allocation)
        params = blend_market_parameters(allocation)
        params = adjust_for_time_period(params, inputs.retirement_age - inputs.current_age)
        logger.debug(
            "Retirement parameters: return=%.4f vol=%.4f crash=%s",
            params.average_return, params.standard_deviation, params.crash_probability,
        )
        return SimulationParameters(
            market_parameters=params,
            asset_allocation=allocation,
            economic_regimes=self.regimes_for(inputs),
            risk_adjustments=RiskAdjustments(
                sequence_of_returns_risk=True,
                longevity_risk=True,
                inflation_risk=True,
            ),
        )

    def default_horizon(self, inputs: RetirementInputs) -> int:
        return inputs.life_expectancy - inputs.current_age + 1

    # -------------------- Trial walk --------------------

    def _walk(self, inputs: RetirementInputs, scenario: MarketScenario):
        base_need = base_withdrawal_need(inputs)
        annual_contribution = MONTHS_PER_YEAR * inputs.monthly_contribution
        balance = inputs.current_savings
        cumulative_inflation = 1.0
        depletion_year: Optional[int] = None
        balances: List[float] = []

        for index, age in enumerate(range(inputs.current_age, inputs.life_expectancy + 1)):
            market_return, inflation_rate, bond = _year_values(scenario, index)

            if age < inputs.retirement_age:
                balance += balance * market_return + annual_contribution
            else:
                if age == inputs.retirement_age:
                    cumulative_inflation = 1.0
                else:
                    cumulative_inflation *= 1 + inflation_rate
                withdrawal = base_need * cumulative_inflation

                equity = retirement_equity_share(age)
                blended = equity * market_return + (1 - equity) * bond
                if age - inputs.retirement_age < SEQUENCE_RISK_YEARS:
                    blended -= SEQUENCE_RISK_PENALTY
                growth = max(MIN_RETIREMENT_RETURN, blended)

                balance = balance * (1 + growth) - withdrawal
                if balance <= 0:
                    if depletion_year is None:
                        depletion_year = age
                    balance = 0.0

            balances.append(balance)

        metrics = {
            "base_withdrawal_need": base_need,
            "final_cumulative_inflation": cumulative_inflation,
        }
        return balance, depletion_year, balances, metrics

    def simulate(self, inputs: RetirementInputs, scenario: MarketScenario, trial_id: int):
        balance, depletion_year, balances, metrics = self._walk(inputs, scenario)
        if depletion_year is not None:
            success = False
        elif inputs.retirement_age > inputs.life_expectancy:
            success = self.classify_success(balance, inputs)
        else:
            success = True
        outcome = TrialOutcome(
            trial_id=trial_id,
            final_balance=balance,
            success=success,
            depletion_year=depletion_year,
            extra_metrics=metrics,
        )
        return outcome, balances

    def simulate_trial(self, inputs: RetirementInputs, scenario: MarketScenario, trial_id: int) -> TrialOutcome:
        return self.simulate(inputs, scenario, trial_id)[0]

    def yearly_balances(self, inputs: RetirementInputs, scenario: MarketScenario) -> List[float]:
        return self._walk(inputs, scenario)[2]

    def classify_success(self, final_balance: float, inputs: RetirementInputs) -> bool:
        return final_balance > 0

    # -------------------- Post-processing --------------------

    def product_metrics(self, aggregate: AggregateResult, inputs: RetirementInputs) -> RetirementResults:
        monthly_income = inputs.current_annual_income / MONTHS_PER_YEAR
        expected_monthly_income = aggregate.median_outcome * SAFE_WITHDRAWAL_RATE / MONTHS_PER_YEAR

        depleted = [
            trial.depletion_year - inputs.retirement_age
            for trial in aggregate.sample_of_trials
            if not trial.success and trial.depletion_year is not None
        ]
        average_years = sum(depleted) / len(depleted) if depleted else None

        results = RetirementResults(
            **aggregate.base_fields(),
            expected_monthly_income=expected_monthly_income,
            income_replacement_ratio=100 * safe_ratio(expected_monthly_income, monthly_income),
            social_security_coverage=100 * safe_ratio(inputs.social_security_benefits, monthly_income),
            shortfall_probability=aggregate.probability_of_depletion,
            average_years_until_depletion=average_years,
        )
        return replace(results, recommendations=self.recommendations(results, inputs))

    def recommendations(self, results: RetirementResults, inputs: RetirementInputs) -> List[str]:
        notes: List[str] = []

        if results.success_probability < 70:
            notes.append(
                f"Your plan succeeds in {results.success_probability:.1f}% of simulations. "
                "Consider increasing monthly contributions or delaying retirement."
            )
        if results.success_probability < 50:
            notes.append(
                "Critical: major adjustments are needed. Consider working 2-3 more years "
                "or doubling your monthly contributions."
            )
        if results.income_replacement_ratio < 70:
            notes.append(
                "Projected retirement income may not sustain your current lifestyle. "
                "Aim for 70-90% income replacement."
            )
        if results.social_security_coverage < 40:
            notes.append(
                "Consider delaying Social Security until full retirement age or later "
                "to increase your benefit."
            )

        years_to_retirement = inputs.retirement_age - inputs.current_age
        if years_to_retirement > 10 and inputs.risk_profile == "conservative":
            notes.append(
                "With more than 10 years to retirement, a more growth-oriented allocation "
                "could improve your outcome."
            )
        if years_to_retirement < 5 and inputs.risk_profile == "aggressive":
            notes.append(
                "Retirement is close: consider reducing portfolio risk to limit "
                "sequence-of-returns exposure."
            )

        if inputs.current_annual_income > 0:
            savings_rate = MONTHS_PER_YEAR * inputs.monthly_contribution / inputs.current_annual_income
            if savings_rate < 0.15:
                notes.append(
                    f"You are saving {savings_rate * 100:.1f}% of income. "
                    "Aim for a savings rate of 15-20%."
                )

        if inputs.total_monthly_expenses > 0:
            if inputs.current_savings / inputs.total_monthly_expenses < 6:
                notes.append(
                    "Build an emergency fund of 6-12 months of expenses before "
                    "increasing retirement contributions."
                )

        return notes
