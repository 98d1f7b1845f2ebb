"""
Command-Line Interface for FinSim.

Purpose
-------
Runs plan projections from JSON plan files and inspects the built-in market
catalogs without writing Python code.

Commands
--------
- simulate: Run a Monte Carlo projection for a plan file
- validate: Check a plan file and show its resolved inputs
- profiles: List the named risk profiles
- regimes: List the economic regime catalog

Example Usage
-------------
    # Run a retirement plan with 5,000 trials
    $ finsim simulate plan.json -n 5000 --seed 42

    # Machine-readable output, no background worker
    $ finsim simulate plan.json --no-worker --json > result.json

    # Show version
    $ finsim --version
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeRemainingColumn
from rich.table import Table

from . import __version__
from .aggregation import AggregateResult
from .config import AppSettings, SimulationConfig
from .defined_contribution import DefinedContributionResults
from .engine import MonteCarloEngine
from .exceptions import FinSimError
from .market import ECONOMIC_REGIMES, RISK_PROFILES
from .retirement import RetirementResults
from .serialization import load_plan, result_to_json
from .types import SimulationProgress


@click.group()
@click.version_option(version=__version__, prog_name="finsim")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def main(ctx: click.Context, quiet: bool) -> None:
    """
    FinSim - Monte Carlo projections for retirement and 401(k) plans.

    Use 'finsim COMMAND --help' for command-specific help.
    """
    settings = AppSettings()
    logging.basicConfig(
        level=settings.effective_log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["settings"] = settings
    ctx.obj["console"] = Console()


@main.command()
@click.argument("plan", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--simulations", "-n",
    type=click.IntRange(min=1),
    default=None,
    help="Number of Monte Carlo trials (default: plan value or 10,000)"
)
@click.option(
    "--seed", "-s",
    type=int,
    default=None,
    help="Random seed for reproducibility"
)
@click.option(
    "--horizon", "-T",
    type=click.IntRange(min=0),
    default=None,
    help="Projection horizon in years (default: product default)"
)
@click.option("--no-worker", is_flag=True, help="Run trials in-process")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
@click.pass_context
def simulate(
    ctx: click.Context,
    plan: Path,
    simulations: Optional[int],
    seed: Optional[int],
    horizon: Optional[int],
    no_worker: bool,
    as_json: bool,
) -> None:
    """
    Run a Monte Carlo projection.

    Loads a plan file, runs the trials (in a background worker for large
    runs) and prints success probability, percentile bands, a yearly
    projection table and recommendations.

    Example:
        finsim simulate plan.json -n 5000 --seed 42
    """
    console: Console = ctx.obj["console"]
    quiet = ctx.obj["quiet"] or as_json
    settings: AppSettings = ctx.obj["settings"]

    try:
        kind, inputs = load_plan(plan)
    except FinSimError as e:
        click.echo(f"Error loading plan: {e}", err=True)
        sys.exit(1)

    overrides = {}
    if simulations is not None:
        overrides["simulation_count"] = simulations
    if horizon is not None:
        overrides["time_horizon"] = horizon
    if overrides:
        inputs = inputs.model_copy(update=overrides)

    config = SimulationConfig(seed=seed, use_worker=not no_worker)
    adapter = kind.create()
    total = inputs.simulation_count or config.default_simulation_count

    if not quiet:
        console.print(
            f"[bold blue]Running {total:,} {kind.value.replace('_', ' ')} trials "
            f"over {adapter.horizon(inputs)} years...[/bold blue]"
        )

    try:
        with MonteCarloEngine(config, settings) as engine:
            if quiet:
                result = engine.run_sync(inputs, adapter)
            else:
                progress = Progress(
                    SpinnerColumn(),
                    TextColumn("{task.description}"),
                    BarColumn(),
                    TextColumn("{task.percentage:>3.0f}%"),
                    TimeRemainingColumn(),
                    console=console,
                    transient=True,
                )

                with progress:
                    task = progress.add_task(f"setup 0/{total:,}", total=1.0)

                    def on_progress(update: SimulationProgress) -> None:
                        progress.update(
                            task,
                            completed=update.fraction,
                            description=f"{update.phase} {update.completed:,}/{update.total:,}",
                        )

                    result = engine.run_sync(inputs, adapter, on_progress)
    except FinSimError as e:
        click.echo(f"Error during simulation: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(result_to_json(result))
        return

    _print_result(console, result)


def _print_result(console: Console, result: AggregateResult) -> None:
    table = Table(title="Simulation Results", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")

    table.add_row("Success Probability", f"{result.success_probability:.1f}%")
    table.add_row("Probability of Depletion", f"{result.probability_of_depletion:.1f}%")
    table.add_row("", "")
    table.add_row("Median Final Balance", f"${result.median_outcome:,.0f}")
    table.add_row("10th Percentile", f"${result.worst_case_10th:,.0f}")
    table.add_row("90th Percentile", f"${result.best_case_90th:,.0f}")

    if isinstance(result, RetirementResults):
        table.add_row("", "")
        table.add_row("Expected Monthly Income", f"${result.expected_monthly_income:,.0f}")
        table.add_row("Income Replacement", f"{result.income_replacement_ratio:.1f}%")
        table.add_row("Social Security Coverage", f"{result.social_security_coverage:.1f}%")
        if result.average_years_until_depletion is not None:
            table.add_row("Avg. Years Until Depletion", f"{result.average_years_until_depletion:.1f}")
    elif isinstance(result, DefinedContributionResults):
        table.add_row("", "")
        table.add_row("Total Contributions", f"${result.total_contributions:,.0f}")
        table.add_row("Total Employer Match", f"${result.total_employer_match:,.0f}")
        table.add_row("Fee Impact", f"${result.fee_impact:,.0f}")
        table.add_row("Monthly Replacement Income", f"${result.monthly_replacement_income:,.0f}")
        table.add_row("Income Replacement", f"{result.income_replacement_ratio:.1f}%")
        table.add_row("Match Efficiency", f"{result.employer_match_efficiency:.1f}%")

    console.print(table)

    frame = result.yearly_frame()
    if not frame.empty:
        bands = Table(title="Yearly Projection", show_header=True)
        bands.add_column("Age", justify="right")
        for column in frame.columns:
            bands.add_column(column, justify="right")
        # Every fifth year plus the last keeps long horizons readable.
        ages = list(frame.index)
        shown = ages[::5] if ages[-1] in ages[::5] else ages[::5] + [ages[-1]]
        for age in shown:
            row = frame.loc[age]
            bands.add_row(str(age), *(f"${value:,.0f}" for value in row))
        console.print(bands)

    recommendations = getattr(result, "recommendations", None)
    if recommendations:
        console.print(
            Panel("\n".join(f"- {note}" for note in recommendations), title="Recommendations")
        )


@main.command()
@click.argument("plan", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def validate(ctx: click.Context, plan: Path) -> None:
    """
    Validate a plan file.

    Example:
        finsim validate plan.json
    """
    console: Console = ctx.obj["console"]
    try:
        kind, inputs = load_plan(plan)
    except FinSimError as e:
        click.echo(f"Invalid plan: {e}", err=True)
        sys.exit(1)

    table = Table(title=f"Plan: {kind.value}", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in inputs.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)
    console.print("[bold green]Plan is valid[/bold green]")


@main.command()
@click.pass_context
def profiles(ctx: click.Context) -> None:
    """List the named risk profiles."""
    console: Console = ctx.obj["console"]
    table = Table(title="Risk Profiles", show_header=True)
    table.add_column("Profile", style="cyan")
    table.add_column("Equities", justify="right")
    table.add_column("Bonds", justify="right")
    table.add_column("Real Estate", justify="right")
    table.add_column("Cash", justify="right")
    table.add_column("Return", justify="right")
    table.add_column("Volatility", justify="right")
    table.add_column("Description")

    for name, profile in RISK_PROFILES.items():
        allocation = profile.asset_allocation
        params = profile.market_parameters
        table.add_row(
            name,
            f"{allocation.equities:.0%}",
            f"{allocation.bonds:.0%}",
            f"{allocation.real_estate:.0%}",
            f"{allocation.cash:.0%}",
            f"{params.average_return:.1%}",
            f"{params.standard_deviation:.1%}",
            profile.description,
        )
    console.print(table)


@main.command()
@click.pass_context
def regimes(ctx: click.Context) -> None:
    """List the economic regime catalog."""
    console: Console = ctx.obj["console"]
    table = Table(title="Economic Regimes", show_header=True)
    table.add_column("Regime", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Return", justify="right")
    table.add_column("Volatility", justify="right")
    table.add_column("Inflation", justify="right")
    table.add_column("Duration (years)", justify="right")

    for regime in ECONOMIC_REGIMES:
        table.add_row(
            regime.name,
            f"{regime.probability:.0%}",
            f"{regime.expected_return:.1%}",
            f"{regime.volatility:.1%}",
            f"{regime.inflation_rate:.1%}",
            str(regime.duration_years),
        )
    console.print(table)


if __name__ == "__main__":
    main()
