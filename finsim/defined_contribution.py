"""
Defined-contribution (401(k)-style) plan adapter for FinSim.

Purpose
-------
Projects an employer-sponsored account from today to retirement. Each year
the balance grows at the year's market return net of fees, then receives
the employee contribution and the employer match:

    B_y = B_{y-1} · (1 + r_y - fees) + c_y + m_y
    m_y = min(c_y · match_rate, income_y · match_limit · match_rate)

With `include_inflation`, income and contribution grow by
`income_growth_rate` between years and the match is recomputed.

Product metrics
---------------
Beyond the aggregate bands, results report contribution and match totals,
replacement income by the 4% rule, match efficiency and the fee impact.
The fee impact compares two deterministic projections at
`estimated_return` (zero fees vs. stated fees); it is not a re-simulation.
"""

from __future__ import annotations

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
from .config import DefinedContributionInputs
from .constants import (
    CATCH_UP_AGE,
    CATCH_UP_LIMIT,
    MIN_NET_BOND_RETURN,
    MONTHS_PER_YEAR,
    SAFE_WITHDRAWAL_RATE,
)
from .market import blend_market_parameters
from .scenario import MarketScenario

__all__ = [
    "DefinedContributionResults",
    "DefinedContributionAdapter",
    "employer_match",
    "future_value",
]


@dataclass(frozen=True)
class DefinedContributionResults(AggregateResult):
    """AggregateResult plus account metrics. Rates and efficiencies are percentages."""

    total_employer_match: float = 0.0
    total_contributions: float = 0.0
    total_growth: float = 0.0
    fee_impact: float = 0.0
    monthly_replacement_income: float = 0.0
    income_replacement_ratio: float = 0.0
    max_employer_match: float = 0.0
    employer_match_efficiency: float = 0.0
    contribution_rate: float = 0.0
    recommendations: List[str] = field(default_factory=list)


def employer_match(contribution: float, income: float, inputs: DefinedContributionInputs) -> float:
    """Annual employer match for a given contribution and salary."""
    return min(
        contribution * inputs.employer_match,
        income * inputs.employer_match_limit * inputs.employer_match,
    )


def _walk(
    inputs: DefinedContributionInputs,
    scenario: MarketScenario,
    fees: Optional[float] = None,
):
    """Year-by-year projection. Returns (final balance, yearly balances, metrics)."""
    fees = inputs.total_fees if fees is None else fees
    years = inputs.retirement_age - inputs.current_age

    balance = inputs.current_balance
    income = inputs.annual_income
    contribution = MONTHS_PER_YEAR * inputs.monthly_contribution
    match = employer_match(contribution, income, inputs)
    total_contributions = inputs.current_balance
    total_match = 0.0
    balances: List[float] = []

    for year in range(1, years + 1):
        index = year - 1
        market_return = float(scenario.returns[index]) if index < len(scenario) else inputs.estimated_return

        balance = balance * (1 + market_return - fees) + contribution + match
        total_contributions += contribution
        total_match += match
        balances.append(balance)

        if inputs.include_inflation and year < years:
            income *= 1 + inputs.income_growth_rate
            contribution *= 1 + inputs.income_growth_rate
            match = employer_match(contribution, income, inputs)

    metrics = {
        "total_contributions": total_contributions,
        "total_employer_match": total_match,
        "total_growth": balance - total_contributions - total_match,
        "final_income": income,
    }
    return balance, balances, metrics


def future_value(inputs: DefinedContributionInputs, fees: float) -> float:
    """Deterministic balance at retirement when every year returns `estimated_return`."""
    years = max(0, inputs.retirement_age - inputs.current_age)
    path = MarketScenario.constant(years, inputs.estimated_return, inputs.inflation_rate)
    return _walk(inputs, path, fees=fees)[0]


class DefinedContributionAdapter(SimulationAdapter):
    """Employer-sponsored accumulation account."""

    kind = AdapterKind.DEFINED_CONTRIBUTION
    inputs_model = DefinedContributionInputs

    def prepare_parameters(self, inputs: DefinedContributionInputs) -> SimulationParameters:
        allocation = resolve_allocation(inputs.current_age, inputs.risk_profile, inputs.asset_allocation)
        blended = blend_market_parameters(allocation)
        params = replace(
            blended,
            average_return=inputs.estimated_return,
            average_inflation=inputs.inflation_rate,
            bond_return=max(MIN_NET_BOND_RETURN, blended.bond_return - inputs.total_fees),
        )
        return SimulationParameters(
            market_parameters=params,
            asset_allocation=allocation,
            economic_regimes=self.regimes_for(inputs),
            risk_adjustments=RiskAdjustments(inflation_risk=inputs.include_inflation),
        )

    def default_horizon(self, inputs: DefinedContributionInputs) -> int:
        return inputs.retirement_age - inputs.current_age

    def simulate(
        self,
        inputs: DefinedContributionInputs,
        scenario: MarketScenario,
        trial_id: int,
    ) -> Tuple[TrialOutcome, List[float]]:
        balance, balances, metrics = _walk(inputs, scenario)
        outcome = TrialOutcome(
            trial_id=trial_id,
            final_balance=balance,
            success=self.classify_success(balance, inputs),
            extra_metrics=metrics,
        )
        return outcome, balances

    def simulate_trial(
        self,
        inputs: DefinedContributionInputs,
        scenario: MarketScenario,
        trial_id: int,
    ) -> TrialOutcome:
        return self.simulate(inputs, scenario, trial_id)[0]

    def yearly_balances(self, inputs: DefinedContributionInputs, scenario: MarketScenario) -> List[float]:
        return _walk(inputs, scenario)[1]

    def classify_success(self, final_balance: float, inputs: DefinedContributionInputs) -> bool:
        return final_balance > 0

    # -------------------- Post-processing --------------------

    def product_metrics(
        self,
        aggregate: AggregateResult,
        inputs: DefinedContributionInputs,
    ) -> DefinedContributionResults:
        years = max(0, inputs.retirement_age - inputs.current_age)
        annual_contribution = MONTHS_PER_YEAR * inputs.monthly_contribution
        max_match = inputs.annual_income * inputs.employer_match_limit * inputs.employer_match
        current_match = employer_match(annual_contribution, inputs.annual_income, inputs)
        growth = 1 + inputs.income_growth_rate if inputs.include_inflation else 1.0

        # Projection with the match capped at today's salary.
        total_contributions = inputs.current_balance
        total_match = 0.0
        contribution = annual_contribution
        for _ in range(years):
            total_contributions += contribution
            total_match += min(contribution * inputs.employer_match, current_match)
            contribution *= growth

        monthly_income = aggregate.median_outcome * SAFE_WITHDRAWAL_RATE / MONTHS_PER_YEAR

        results = DefinedContributionResults(
            **aggregate.base_fields(),
            total_employer_match=total_match,
            total_contributions=total_contributions,
            total_growth=aggregate.median_outcome - total_contributions - total_match,
            fee_impact=future_value(inputs, 0.0) - future_value(inputs, inputs.total_fees),
            monthly_replacement_income=monthly_income,
            income_replacement_ratio=100 * safe_ratio(MONTHS_PER_YEAR * monthly_income, inputs.annual_income),
            max_employer_match=max_match,
            employer_match_efficiency=100 * safe_ratio(current_match, max_match),
            contribution_rate=100 * safe_ratio(annual_contribution, inputs.annual_income),
        )
        return replace(results, recommendations=self.recommendations(results, inputs))

    def recommendations(
        self,
        results: DefinedContributionResults,
        inputs: DefinedContributionInputs,
    ) -> List[str]:
        notes: List[str] = []
        years = inputs.retirement_age - inputs.current_age

        if results.contribution_rate < 15:
            notes.append(
                f"Consider contributing at least 15% of income. "
                f"You currently contribute {results.contribution_rate:.1f}%."
            )

        if results.max_employer_match > 0:
            if results.employer_match_efficiency < 100:
                missed = results.max_employer_match - safe_ratio(results.total_employer_match, years)
                notes.append(
                    f"You are leaving about ${missed:,.0f} of employer match on the table each year. "
                    f"Contribute at least {inputs.employer_match_limit * 100:.0f}% of salary to capture it."
                )
            else:
                notes.append("You are capturing the full employer match.")

        if inputs.total_fees > 0.015:
            notes.append(
                f"Fees of {inputs.total_fees * 100:.2f}% erode long-term growth "
                f"(about ${results.fee_impact:,.0f} by retirement). Look for lower-cost funds."
            )

        if results.income_replacement_ratio < 70:
            notes.append(
                f"You are on track for {results.income_replacement_ratio:.0f}% income replacement. "
                "Aim for 70-90%."
            )

        if years > 10:
            notes.append(
                "With more than 10 years to retirement, steady contributions through "
                "market swings matter more than timing."
            )

        if inputs.current_age >= CATCH_UP_AGE:
            notes.append(
                f"You are eligible for catch-up contributions of up to ${CATCH_UP_LIMIT:,.0f} per year."
            )

        if inputs.risk_profile == "conservative" and years > 15:
            notes.append(
                "With a long horizon, a more growth-oriented allocation could improve your outcome."
            )
        if inputs.risk_profile == "aggressive" and years < 5:
            notes.append(
                "Retirement is close: consider gradually reducing portfolio risk."
            )

        return notes
