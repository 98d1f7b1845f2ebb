"""
Monte Carlo engine for FinSim.

Purpose
-------
Orchestrates a projection run: asks the product adapter for its market
model, runs N independent trials (scenario generation + adapter walk),
streams progress, aggregates the trials into percentile bands and hands the
aggregate back to the adapter for product-specific metrics.

Execution strategies
--------------------
- In-process (cooperative): trials run on the event loop's thread. Control
  is yielded with `await asyncio.sleep(0)` at progress boundaries only,
  never in the middle of a trial.
- Background worker: when enabled and the trial count exceeds
  `worker_threshold`, the run is delegated to a WorkerDispatcher process.
  If the process cannot be created the engine logs a warning and falls
  back to the in-process strategy.

Progress phases are emitted in order: setup -> running (every
ceil(total / 100) trials, with an ETA in seconds) -> analyzing -> complete.

Cancellation
------------
`engine.stop()` (or `SimulationRun.stop()`) flips the run's stop flag. The
in-process loop checks it before every trial; a worker run is torn down.
Either way the run raises SimulationCancelled, never a partial result.

Example
-------
>>> from finsim import MonteCarloEngine, SimulationConfig, RetirementAdapter
>>> engine = MonteCarloEngine(SimulationConfig(seed=7, use_worker=False))
>>> result = engine.run_sync(inputs, RetirementAdapter(), on_progress=print)
>>> round(result.success_probability, 1)
87.4
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Callable, Optional

import numpy as np

from .adapters import SimulationAdapter, SimulationParameters
from .aggregation import AggregateResult, ResultAggregator
from .config import AppSettings, BaseSimulationInputs, SimulationConfig
from .constants import PROGRESS_STEPS
from .dispatcher import WorkerDispatcher
from .exceptions import SimulationCancelled, SimulationError, WorkerUnavailable
from .scenario import generate_scenario
from .types import Phase, SimulationProgress, StartSimulationMessage

logger = logging.getLogger(__name__)

__all__ = ["MonteCarloEngine", "SimulationRun", "ProgressCallback"]

ProgressCallback = Callable[[SimulationProgress], None]


class SimulationRun:
    """
    State of one in-flight run.

    Awaiting the run yields its result (or raises). `stop()` requests
    cancellation and is safe to call at any time, any number of times.

    Attributes
    ----------
    total : int
        Trials requested.
    horizon : int
        Simulated years per trial.
    completed : int
        Trials finished so far (as last reported).
    started_at : float
        time.monotonic() at creation; basis of the ETA estimate.
    """

    def __init__(self, total: int, horizon: int, on_progress: Optional[ProgressCallback] = None):
        self.total = total
        self.horizon = horizon
        self.completed = 0
        self.started_at = time.monotonic()
        self.stopped = False
        self._on_progress = on_progress
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return not self.stopped and not self.done()

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def stop(self) -> None:
        self.stopped = True

    def estimate_remaining(self, completed: int) -> float:
        if completed <= 0:
            return 0.0
        elapsed = time.monotonic() - self.started_at
        return elapsed / completed * (self.total - completed)

    def emit(self, phase: Phase, completed: int, eta: Optional[float] = None) -> None:
        self.report(SimulationProgress(completed, self.total, phase, eta))

    def report(self, progress: SimulationProgress) -> None:
        self.completed = progress.completed
        if self._on_progress is not None:
            self._on_progress(progress)

    def __await__(self):
        if self._task is None:
            raise SimulationError("Run has not been started")
        return self._task.__await__()

    def __repr__(self) -> str:
        state = "running" if self.running else ("stopped" if self.stopped else "done")
        return f"SimulationRun({self.completed}/{self.total}, {state})"


class MonteCarloEngine:
    """
    Product-agnostic Monte Carlo runner.

    Parameters
    ----------
    config : SimulationConfig, optional
        Trial defaults, worker threshold and seed.
    settings : AppSettings, optional
        Environment settings (worker switch and start method).

    Notes
    -----
    One engine runs one simulation at a time; starting a second while the
    first is in flight raises SimulationError.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        settings: Optional[AppSettings] = None,
    ):
        self.config = config or SimulationConfig()
        self.settings = settings or AppSettings()
        self._dispatcher: Optional[WorkerDispatcher] = None
        self._current: Optional[SimulationRun] = None

    # -------------------- Public API --------------------

    @property
    def current_run(self) -> Optional[SimulationRun]:
        return self._current

    def start(
        self,
        inputs: BaseSimulationInputs,
        adapter: SimulationAdapter,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SimulationRun:
        """Schedule a run on the running event loop and return its handle."""
        if self._current is not None and not self._current.done():
            raise SimulationError("A simulation is already running on this engine")

        total = inputs.simulation_count or self.config.default_simulation_count
        run = SimulationRun(total, adapter.horizon(inputs), on_progress)
        self._current = run
        run._task = asyncio.get_running_loop().create_task(self._execute(run, inputs, adapter))
        return run

    async def run(
        self,
        inputs: BaseSimulationInputs,
        adapter: SimulationAdapter,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AggregateResult:
        """
        Run a full projection.

        Returns
        -------
        AggregateResult
            The adapter's product result (a subclass of AggregateResult).

        Raises
        ------
        SimulationCancelled
            If stop() was called before the run finished.
        SimulationError
            If another run is in flight or the worker failed.
        """
        return await self.start(inputs, adapter, on_progress)

    def run_sync(
        self,
        inputs: BaseSimulationInputs,
        adapter: SimulationAdapter,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AggregateResult:
        """Blocking wrapper around run() for scripts and the CLI."""
        return asyncio.run(self.run(inputs, adapter, on_progress))

    def stop(self) -> None:
        """Request cancellation of the current run, if any."""
        if self._current is not None:
            self._current.stop()

    def close(self) -> None:
        """Tear down the background worker, if one was started."""
        if self._dispatcher is not None:
            self._dispatcher.close()
            self._dispatcher = None

    def __enter__(self) -> "MonteCarloEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------- Orchestration --------------------

    def _use_worker(self, total: int) -> bool:
        return (
            self.config.use_worker
            and self.settings.use_worker
            and total > self.config.worker_threshold
        )

    async def _execute(
        self,
        run: SimulationRun,
        inputs: BaseSimulationInputs,
        adapter: SimulationAdapter,
    ) -> AggregateResult:
        logger.info(
            "Starting %s simulation: %d trials x %d years",
            adapter.kind.value, run.total, run.horizon,
        )
        parameters = adapter.prepare_parameters(inputs)

        try:
            if self._use_worker(run.total):
                try:
                    aggregate = await self._run_in_worker(run, inputs, adapter, parameters)
                except WorkerUnavailable as exc:
                    logger.warning("Background worker unavailable, running in-process: %s", exc)
                    aggregate = await self._run_in_process(run, inputs, adapter, parameters)
            else:
                logger.info("Running in-process")
                aggregate = await self._run_in_process(run, inputs, adapter, parameters)
        except SimulationCancelled:
            logger.info("Simulation cancelled after %d/%d trials", run.completed, run.total)
            raise

        if run.stopped:
            logger.info("Simulation cancelled during analysis")
            raise SimulationCancelled("Simulation cancelled")

        result = adapter.product_metrics(aggregate, inputs)
        run.emit("complete", run.total)
        logger.info(
            "Simulation finished in %.2fs: success=%.1f%% median=%.0f",
            time.monotonic() - run.started_at, result.success_probability, result.median_outcome,
        )
        return result

    async def _run_in_process(
        self,
        run: SimulationRun,
        inputs: BaseSimulationInputs,
        adapter: SimulationAdapter,
        parameters: SimulationParameters,
    ) -> AggregateResult:
        rng = np.random.default_rng(self.config.seed)
        aggregator = ResultAggregator(sample_size=self.config.trial_sample_size)
        step = max(1, math.ceil(run.total / PROGRESS_STEPS))

        run.emit("setup", 0)
        for trial_id in range(run.total):
            if run.stopped:
                raise SimulationCancelled(
                    f"Simulation cancelled after {trial_id}/{run.total} trials"
                )
            scenario = generate_scenario(
                run.horizon, parameters.market_parameters, rng, parameters.economic_regimes
            )
            outcome, balances = adapter.simulate(inputs, scenario, trial_id)
            aggregator.add(outcome, balances)

            completed = trial_id + 1
            if completed % step == 0 or completed == run.total:
                run.emit("running", completed, run.estimate_remaining(completed))
                await asyncio.sleep(0)

        if run.stopped:
            raise SimulationCancelled(f"Simulation cancelled after {run.total}/{run.total} trials")

        run.emit("analyzing", run.total)
        return aggregator.finalize(inputs.current_age)

    async def _run_in_worker(
        self,
        run: SimulationRun,
        inputs: BaseSimulationInputs,
        adapter: SimulationAdapter,
        parameters: SimulationParameters,
    ) -> AggregateResult:
        if self._dispatcher is None or self._dispatcher.closed:
            self._dispatcher = WorkerDispatcher(
                start_method=self.settings.worker_start_method,
                poll_interval=self.config.poll_interval,
            )
        logger.info("Running in background worker (%s)", self.settings.worker_start_method)

        message: StartSimulationMessage = {
            "type": "StartSimulation",
            "inputs": inputs.model_dump(mode="json"),
            "parameters": parameters.to_dict(),
            "adapter_kind": adapter.kind.value,
            "simulation_count": run.total,
            "horizon": run.horizon,
            "seed": self.config.seed,
            "sample_size": self.config.trial_sample_size,
        }
        try:
            return await self._dispatcher.run(
                message, on_progress=run.report, is_cancelled=lambda: run.stopped
            )
        except SimulationCancelled:
            self._dispatcher = None
            raise
