"""
Unit tests for retirement.py module.

Trials are walked over deterministic MarketScenario.constant() paths so
balances can be checked against closed-form values.
"""

import pytest

from finsim.aggregation import aggregate
from finsim.config import RetirementInputs
from finsim.market import AssetAllocation
from finsim.retirement import (
    RetirementAdapter,
    RetirementResults,
    base_withdrawal_need,
    retirement_equity_share,
)
from finsim.scenario import MarketScenario


@pytest.fixture
def adapter() -> RetirementAdapter:
    return RetirementAdapter()


def _plan(**overrides) -> RetirementInputs:
    fields = dict(current_age=65, retirement_age=65, life_expectancy=65)
    fields.update(overrides)
    return RetirementInputs(**fields)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestWithdrawalNeed:
    """Tests for base_withdrawal_need()."""

    def test_income_replacement_minus_benefits(self):
        inputs = _plan(current_annual_income=100_000, desired_income_replacement=0.8,
                       social_security_benefits=2_000, other_income=500)

        assert base_withdrawal_need(inputs) == pytest.approx(80_000 - 12 * 2_500)

    def test_projected_expenses(self):
        inputs = RetirementInputs(
            current_age=55,
            retirement_age=65,
            life_expectancy=90,
            monthly_expenses={"housing": 1_000},
            expected_inflation=0.02,
            social_security_benefits=500,
        )

        assert base_withdrawal_need(inputs) == pytest.approx(12_000 * 1.02 ** 10 - 6_000)

    def test_never_negative(self):
        inputs = _plan(current_annual_income=10_000, social_security_benefits=5_000)

        assert base_withdrawal_need(inputs) == 0.0


class TestEquityShare:
    @pytest.mark.parametrize("age, share", [(25, 0.8), (60, 0.5), (90, 0.2), (100, 0.2)])
    def test_glide_path(self, age, share):
        assert retirement_equity_share(age) == pytest.approx(share)


# ---------------------------------------------------------------------------
# Trial walk
# ---------------------------------------------------------------------------

class TestAccumulation:
    """Plans that never reach retirement inside the horizon."""

    def test_constant_return_compounds(self, adapter):
        inputs = RetirementInputs(
            current_age=30, retirement_age=90, life_expectancy=59, current_savings=10_000
        )
        scenario = MarketScenario.constant(30, 0.07, 0.025, 0.035)

        outcome = adapter.simulate_trial(inputs, scenario, trial_id=0)

        assert outcome.final_balance == pytest.approx(10_000 * 1.07 ** 30)
        assert outcome.success is True
        assert outcome.depletion_year is None

    def test_contributions_added_yearly(self, adapter):
        inputs = RetirementInputs(
            current_age=30, retirement_age=90, life_expectancy=31, monthly_contribution=100
        )

        balances = adapter.yearly_balances(inputs, MarketScenario.constant(2, 0.0))

        assert balances == pytest.approx([1_200.0, 2_400.0])

    def test_zero_return_is_not_replaced_by_default(self, adapter):
        inputs = RetirementInputs(
            current_age=30, retirement_age=90, life_expectancy=39, current_savings=10_000
        )

        outcome = adapter.simulate_trial(inputs, MarketScenario.constant(10, 0.0), 0)

        assert outcome.final_balance == pytest.approx(10_000)

    def test_short_path_uses_fallback_rates(self, adapter):
        inputs = RetirementInputs(
            current_age=30, retirement_age=90, life_expectancy=39, current_savings=10_000
        )

        outcome = adapter.simulate_trial(inputs, MarketScenario.constant(0, 0.0), 0)

        assert outcome.final_balance == pytest.approx(10_000 * 1.07 ** 10)

    def test_empty_savings_fails(self, adapter):
        inputs = RetirementInputs(current_age=30, retirement_age=90, life_expectancy=39)

        outcome = adapter.simulate_trial(inputs, MarketScenario.constant(10, 0.07), 0)

        assert outcome.final_balance == 0.0
        assert outcome.success is False


class TestDecumulation:
    """Plans that withdraw from the first simulated year."""

    def test_sequence_risk_haircut(self, adapter):
        inputs = _plan(current_age=60, retirement_age=60, life_expectancy=60, current_savings=100_000)

        outcome = adapter.simulate_trial(inputs, MarketScenario.constant(1, 0.07, 0.0, 0.035), 0)

        # equity share 0.5: 0.5 * 7% + 0.5 * 3.5% - 1%
        assert outcome.final_balance == pytest.approx(100_000 * 1.0425)
        assert outcome.success is True

    def test_growth_floor(self, adapter):
        inputs = _plan(current_age=70, retirement_age=70, life_expectancy=70, current_savings=100_000)

        outcome = adapter.simulate_trial(inputs, MarketScenario.constant(1, -0.5, 0.0, -0.2), 0)

        assert outcome.final_balance == pytest.approx(100_500)

    def test_withdrawal_indexed_by_drawn_inflation(self, adapter):
        inputs = _plan(
            life_expectancy=66,
            current_savings=1_000_000,
            current_annual_income=100_000,
            desired_income_replacement=0.5,
        )
        scenario = MarketScenario.constant(2, 0.0, 0.10, 0.0)

        balances = adapter.yearly_balances(inputs, scenario)

        first = 1_000_000 * 1.005 - 50_000
        assert balances[0] == pytest.approx(first)
        assert balances[1] == pytest.approx(first * 1.005 - 55_000)

    def test_inflation_index_starts_at_retirement_year(self, adapter):
        inputs = _plan(life_expectancy=67, current_savings=1_000_000)

        outcome = adapter.simulate_trial(inputs, MarketScenario.constant(3, 0.05, 0.10, 0.03), 0)

        # 65 resets to 1.0, then two years of 10% inflation
        assert outcome.extra_metrics["final_cumulative_inflation"] == pytest.approx(1.21)

    def test_depletion_recorded_once_and_clamped(self, adapter):
        inputs = _plan(
            life_expectancy=70,
            current_savings=10_000,
            current_annual_income=100_000,
        )

        outcome, balances = adapter.simulate(inputs, MarketScenario.constant(6, 0.05, 0.02, 0.03), 3)

        assert outcome.success is False
        assert outcome.depletion_year == 65
        assert outcome.final_balance == 0.0
        assert balances == [0.0] * 6
        assert outcome.trial_id == 3

    def test_trial_is_idempotent(self, adapter, retirement_inputs):
        scenario = MarketScenario.constant(51, 0.06, 0.03, 0.03)

        assert adapter.simulate(retirement_inputs, scenario, 0) == adapter.simulate(retirement_inputs, scenario, 0)

    def test_yearly_balances_cover_every_age(self, adapter, retirement_inputs):
        balances = adapter.yearly_balances(retirement_inputs, MarketScenario.constant(51, 0.06, 0.03, 0.03))

        assert len(balances) == 90 - 40 + 1


# ---------------------------------------------------------------------------
# Parameters and post-processing
# ---------------------------------------------------------------------------

class TestPrepareParameters:
    def test_profile_allocation_and_horizon_adjustment(self, adapter, retirement_inputs):
        params = adapter.prepare_parameters(retirement_inputs)

        assert params.asset_allocation == AssetAllocation(equities=0.60, bonds=0.30, real_estate=0.08, cash=0.02)
        assert params.economic_regimes is None
        assert params.risk_adjustments.sequence_of_returns_risk is True
        # 25 years to retirement: volatility scaled by 1.15
        assert params.market_parameters.crash_probability is not None

    def test_default_horizon(self, adapter, retirement_inputs):
        assert adapter.default_horizon(retirement_inputs) == 51


class TestProductMetrics:
    def _aggregate(self, inputs, adapter, scenarios):
        pairs = [adapter.simulate(inputs, s, i) for i, s in enumerate(scenarios)]
        return aggregate([p[0] for p in pairs], [p[1] for p in pairs], inputs.current_age)

    def test_income_metrics(self, adapter):
        inputs = RetirementInputs(
            current_age=30,
            retirement_age=90,
            life_expectancy=39,
            current_savings=300_000,
            current_annual_income=120_000,
            social_security_benefits=2_000,
        )
        base = self._aggregate(inputs, adapter, [MarketScenario.constant(10, 0.0)])

        results = adapter.product_metrics(base, inputs)

        assert isinstance(results, RetirementResults)
        assert results.expected_monthly_income == pytest.approx(300_000 * 0.04 / 12)
        assert results.income_replacement_ratio == pytest.approx(100 * 1_000 / 10_000)
        assert results.social_security_coverage == pytest.approx(20.0)
        assert results.shortfall_probability == results.probability_of_depletion
        assert results.average_years_until_depletion is None

    def test_average_years_until_depletion(self, adapter):
        inputs = _plan(retirement_age=65, life_expectancy=70, current_savings=150_000,
                       current_annual_income=100_000)
        scenarios = [MarketScenario.constant(6, 0.0, 0.0, 0.0)]

        results = adapter.product_metrics(self._aggregate(inputs, adapter, scenarios), inputs)

        # 150,000 at 0.5% floor growth funds one 80,000 withdrawal
        assert results.average_years_until_depletion == 1.0
        assert results.success_probability == 0.0

    def test_zero_income_has_no_ratio(self, adapter):
        inputs = _plan(current_savings=1_000)
        results = adapter.product_metrics(
            self._aggregate(inputs, adapter, [MarketScenario.constant(1, 0.0)]), inputs
        )

        assert results.income_replacement_ratio == 0.0
        assert results.social_security_coverage == 0.0


class TestRecommendations:
    def _results(self, **overrides) -> RetirementResults:
        fields = dict(
            success_probability=90.0,
            probability_of_depletion=10.0,
            median_outcome=1_000_000.0,
            worst_case_10th=0.0,
            best_case_90th=2_000_000.0,
            confidence_intervals=[],
            yearly_projections=[],
            sample_of_trials=[],
            income_replacement_ratio=85.0,
            social_security_coverage=45.0,
        )
        fields.update(overrides)
        return RetirementResults(**fields)

    def test_healthy_plan(self, adapter):
        inputs = RetirementInputs(
            current_age=40, retirement_age=65, life_expectancy=90,
            current_savings=100_000, monthly_contribution=2_000, current_annual_income=100_000,
            monthly_expenses={"all": 4_000},
        )

        assert adapter.recommendations(self._results(), inputs) == []

    def test_low_success_adds_two_notes(self, adapter, retirement_inputs):
        notes = adapter.recommendations(self._results(success_probability=40.0), retirement_inputs)

        assert any("40.0%" in note for note in notes)
        assert any(note.startswith("Critical") for note in notes)

    def test_fifteen_percent_savings_rate_is_enough(self, adapter, retirement_inputs):
        notes = adapter.recommendations(self._results(), retirement_inputs)

        assert not any("savings rate" in note for note in notes)

    def test_low_savings_rate(self, adapter):
        inputs = RetirementInputs(
            current_age=40, retirement_age=65, life_expectancy=90,
            monthly_contribution=500, current_annual_income=100_000,
        )

        notes = adapter.recommendations(self._results(), inputs)

        assert any("6.0% of income" in note for note in notes)

    def test_emergency_fund(self, adapter):
        inputs = RetirementInputs(
            current_age=40, retirement_age=65, life_expectancy=90,
            current_savings=5_000, monthly_expenses={"rent": 2_000},
        )

        notes = adapter.recommendations(self._results(), inputs)

        assert any("emergency fund" in note for note in notes)

    def test_conservative_with_long_horizon(self, adapter):
        inputs = RetirementInputs(
            current_age=30, retirement_age=65, life_expectancy=90, risk_profile="conservative",
        )

        notes = adapter.recommendations(self._results(), inputs)

        assert any("growth-oriented" in note for note in notes)
