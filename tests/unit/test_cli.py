"""
Unit tests for CLI module.

Tests command-line interface functionality using Click's testing utilities.
"""

import json

import pytest
from click.testing import CliRunner

from finsim.cli import main, __version__


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def runner(monkeypatch):
    """Create CLI test runner with quiet logging and wide rich output."""
    monkeypatch.setenv("FINSIM_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("COLUMNS", "200")
    return CliRunner()


def _json_output(output: str) -> dict:
    return json.loads(output[output.index("{"):])


# ============================================================================
# MAIN GROUP
# ============================================================================

class TestMainGroup:
    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        for command in ("simulate", "validate", "profiles", "regimes"):
            assert command in result.output


# ============================================================================
# SIMULATE
# ============================================================================

class TestSimulateCommand:
    def test_json_output(self, runner, retirement_plan_file):
        result = runner.invoke(
            main, ["simulate", str(retirement_plan_file), "-n", "100", "--seed", "1", "--no-worker", "--json"]
        )

        assert result.exit_code == 0, result.output
        data = _json_output(result.output)
        assert 0.0 <= data["success_probability"] <= 100.0
        assert "expected_monthly_income" in data
        assert len(data["yearly_projections"]) == 51

    def test_seed_is_reproducible(self, runner, dc_plan_file):
        args = ["simulate", str(dc_plan_file), "-n", "80", "-s", "9", "--no-worker", "--json"]

        first = _json_output(runner.invoke(main, args).output)
        second = _json_output(runner.invoke(main, args).output)

        assert first["median_outcome"] == second["median_outcome"]
        assert "fee_impact" in first

    def test_table_output(self, runner, retirement_plan_file):
        result = runner.invoke(main, ["simulate", str(retirement_plan_file), "-n", "100", "--no-worker"])

        assert result.exit_code == 0, result.output
        assert "Simulation Results" in result.output
        assert "Success Probability" in result.output
        assert "Yearly Projection" in result.output

    def test_defined_contribution_table(self, runner, dc_plan_file):
        result = runner.invoke(main, ["-q", "simulate", str(dc_plan_file), "-n", "50", "--no-worker"])

        assert result.exit_code == 0, result.output
        assert "Total Employer Match" in result.output

    def test_horizon_override(self, runner, dc_plan_file):
        result = runner.invoke(
            main, ["simulate", str(dc_plan_file), "-n", "20", "-T", "5", "--no-worker", "--json"]
        )

        assert result.exit_code == 0, result.output

    def test_invalid_plan(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"product": "annuity", "inputs": {}}), encoding="utf-8")

        result = runner.invoke(main, ["simulate", str(path)])

        assert result.exit_code == 1
        assert "Error loading plan" in result.output

    def test_missing_plan(self, runner, tmp_path):
        result = runner.invoke(main, ["simulate", str(tmp_path / "missing.json")])

        assert result.exit_code != 0

    def test_rejects_zero_simulations(self, runner, retirement_plan_file):
        result = runner.invoke(main, ["simulate", str(retirement_plan_file), "-n", "0"])

        assert result.exit_code == 2


# ============================================================================
# OTHER COMMANDS
# ============================================================================

class TestValidateCommand:
    def test_valid_plan(self, runner, retirement_plan_file):
        result = runner.invoke(main, ["validate", str(retirement_plan_file)])

        assert result.exit_code == 0
        assert "Plan is valid" in result.output

    def test_invalid_inputs(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        payload = {"product": "retirement", "inputs": {"current_age": 40}}
        path.write_text(json.dumps(payload), encoding="utf-8")

        result = runner.invoke(main, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Invalid plan" in result.output


class TestCatalogCommands:
    def test_profiles(self, runner):
        result = runner.invoke(main, ["profiles"])

        assert result.exit_code == 0
        for name in ("conservative", "moderate", "aggressive"):
            assert name in result.output

    def test_regimes(self, runner):
        result = runner.invoke(main, ["regimes"])

        assert result.exit_code == 0
        assert "Bull Market" in result.output
        assert "Recovery" in result.output
