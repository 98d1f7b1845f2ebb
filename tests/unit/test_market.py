"""
Unit tests for market.py module.

Tests parameter validation, the regime and risk-profile catalogs, and the
allocation and blending utilities.
"""

from dataclasses import replace

import pytest

from finsim.exceptions import ConfigurationError
from finsim.market import (
    ASSET_CLASS_PARAMETERS,
    ECONOMIC_REGIMES,
    RISK_PROFILES,
    AssetAllocation,
    EconomicRegime,
    MarketParameters,
    adjust_for_time_period,
    allocation_by_age,
    blend_allocations,
    blend_market_parameters,
    custom_market_parameters,
    get_risk_profile,
    glide_path,
)


# ---------------------------------------------------------------------------
# MarketParameters
# ---------------------------------------------------------------------------

class TestMarketParameters:
    """Tests for MarketParameters validation and conversion."""

    @pytest.mark.parametrize("rho", [-1.01, 1.5])
    def test_correlation_out_of_range(self, calm_params, rho):
        with pytest.raises(ConfigurationError, match="correlation_to_inflation"):
            replace(calm_params, correlation_to_inflation=rho)

    def test_negative_volatility(self, calm_params):
        with pytest.raises(ConfigurationError, match="standard_deviation"):
            replace(calm_params, standard_deviation=-0.1)

    def test_crash_probability_out_of_range(self, calm_params):
        with pytest.raises(ConfigurationError, match="crash_probability"):
            replace(calm_params, crash_probability=1.2)

    def test_with_regime_overrides_only_mean_volatility_inflation(self, moderate_params):
        regime = ECONOMIC_REGIMES[1]
        effective = moderate_params.with_regime(regime)

        assert effective.average_return == regime.expected_return
        assert effective.standard_deviation == regime.volatility
        assert effective.average_inflation == regime.inflation_rate
        assert effective.crash_probability == moderate_params.crash_probability
        assert effective.correlation_to_inflation == moderate_params.correlation_to_inflation

    def test_dict_round_trip(self, moderate_params):
        assert MarketParameters.from_dict(moderate_params.to_dict()) == moderate_params


class TestEconomicRegime:
    def test_catalog_names(self):
        names = [regime.name for regime in ECONOMIC_REGIMES]
        assert names == ["Bull Market", "Bear Market", "Stagnation", "Recovery"]

    def test_zero_duration_rejected(self):
        with pytest.raises(ConfigurationError, match="duration_years"):
            EconomicRegime("Flash", 0.1, 0.0, 0.1, 0.02, 0)

    def test_negative_weight_rejected(self):
        with pytest.raises(ConfigurationError):
            EconomicRegime("Never", -0.1, 0.0, 0.1, 0.02, 1)


# ---------------------------------------------------------------------------
# Risk profiles
# ---------------------------------------------------------------------------

class TestRiskProfiles:
    def test_catalog(self):
        assert set(RISK_PROFILES) == {"conservative", "moderate", "aggressive"}

    def test_lookup_is_case_insensitive(self):
        assert get_risk_profile("Moderate") is RISK_PROFILES["moderate"]

    def test_unknown_profile(self):
        with pytest.raises(ConfigurationError, match="Unknown risk profile"):
            get_risk_profile("reckless")

    def test_volatility_increases_with_risk(self):
        vols = [RISK_PROFILES[name].market_parameters.standard_deviation
                for name in ("conservative", "moderate", "aggressive")]
        assert vols == sorted(vols)


# ---------------------------------------------------------------------------
# Allocation utilities
# ---------------------------------------------------------------------------

class TestAllocationByAge:
    def test_young_moderate(self):
        allocation = allocation_by_age(30, "moderate")

        assert allocation.equities == pytest.approx(0.8)
        assert allocation.bonds == pytest.approx(0.2)
        assert allocation.real_estate == pytest.approx(0.1)

    def test_aggressive_is_capped(self):
        assert allocation_by_age(30, "aggressive").equities == pytest.approx(0.9)

    def test_conservative_older(self):
        allocation = allocation_by_age(70, "conservative")

        assert allocation.equities == pytest.approx(0.25)
        assert allocation.real_estate == pytest.approx(0.02)

    def test_equity_never_below_floor(self):
        assert allocation_by_age(105, "conservative").equities == pytest.approx(0.1)

    def test_glide_path_length_and_trend(self):
        path = glide_path(40, 65)

        assert len(path) == 65 + 20 - 40 + 1
        equities = [a.equities for a in path]
        assert equities == sorted(equities, reverse=True)

    def test_blend_allocations(self):
        blended = blend_allocations(
            AssetAllocation(equities=1.0, bonds=0.0),
            AssetAllocation(equities=0.0, bonds=1.0),
            0.25,
        )

        assert blended.equities == pytest.approx(0.25)
        assert blended.bonds == pytest.approx(0.75)


class TestBlendMarketParameters:
    def test_pure_bonds(self):
        params = blend_market_parameters(AssetAllocation(equities=0.0, bonds=1.0))
        bonds = ASSET_CLASS_PARAMETERS["bonds"]

        assert params.average_return == pytest.approx(bonds.average_return)
        assert params.standard_deviation == pytest.approx(bonds.standard_deviation)
        assert params.correlation_to_inflation == pytest.approx(bonds.correlation_to_inflation)
        assert params.crash_probability == 0.0

    def test_cash_only_falls_back_to_bonds(self):
        params = blend_market_parameters(AssetAllocation(equities=0.0, bonds=0.0, cash=1.0))

        assert params.average_return == pytest.approx(ASSET_CLASS_PARAMETERS["bonds"].average_return)

    def test_age_45_moderate(self):
        params = blend_market_parameters(allocation_by_age(45, "moderate"))

        assert params.average_return == pytest.approx(0.0791, abs=1e-4)

    def test_crash_scales_with_equities(self):
        params = blend_market_parameters(AssetAllocation(equities=0.5, bonds=0.5))
        equities = ASSET_CLASS_PARAMETERS["us_equities"]

        assert params.crash_probability == pytest.approx(equities.crash_probability * 0.5)
        assert params.crash_magnitude == pytest.approx(equities.crash_magnitude * 0.5)


class TestParameterAdjustments:
    def test_long_horizon_increases_volatility(self, moderate_params):
        adjusted = adjust_for_time_period(moderate_params, 30)

        assert adjusted.standard_deviation == pytest.approx(moderate_params.standard_deviation * 1.2)
        assert adjusted.crash_probability == pytest.approx(moderate_params.crash_probability * 0.8)

    def test_ten_years_is_neutral_for_volatility(self, moderate_params):
        adjusted = adjust_for_time_period(moderate_params, 10)

        assert adjusted.standard_deviation == pytest.approx(moderate_params.standard_deviation)

    def test_no_crash_stays_none(self, calm_params):
        assert adjust_for_time_period(calm_params, 20).crash_probability is None

    def test_custom_parameters(self):
        params = custom_market_parameters(0.09, "high")

        assert params.average_return == 0.09
        assert params.standard_deviation == pytest.approx(0.225)
        assert params.crash_probability == 0.10
        assert params.average_inflation == 0.025

    def test_custom_parameters_unknown_level(self):
        with pytest.raises(ConfigurationError, match="risk_level"):
            custom_market_parameters(0.09, "extreme")
