"""
Background worker process for FinSim.

Purpose
-------
Runs the trial loop in a separate process with its own memory. The only
interaction with the host is the message protocol in finsim.types:

    host -> worker   StartSimulation, StopSimulation, None (shutdown)
    worker -> host   ProgressUpdate, SimulationComplete, Error

The worker resolves the adapter kind once per run, rebuilds the typed
inputs and parameters from their dict forms, and drives the same pure
functions as the in-process loop (generate_scenario + adapter.simulate).
A StopSimulation message is honoured at the next progress boundary; any
exception during a run is reported as an Error message and the worker
keeps serving.

Notes
-----
`worker_main` must stay a module-level function so the spawn start method
can import it in the child.
"""

from __future__ import annotations

import logging
import math
import queue
import time
from typing import Any, Callable, Optional, Tuple

import numpy as np

from .adapters import SimulationParameters, adapter_for
from .aggregation import ResultAggregator
from .constants import PROGRESS_STEPS, TRIAL_SAMPLE_SIZE
from .exceptions import SimulationCancelled
from .scenario import generate_scenario
from .types import (
    AggregateResultDict,
    ErrorMessage,
    StartSimulationMessage,
    SimulationProgress,
)

logger = logging.getLogger(__name__)

__all__ = ["worker_main", "run_simulation"]


def _drain(inbox: Any) -> Tuple[bool, bool]:
    """
    Drain pending host messages without blocking.

    Returns
    -------
    (stop, shutdown) : tuple of bool
        Whether a StopSimulation or a shutdown (None) was among them.
    """
    stop = shutdown = False
    while True:
        try:
            message = inbox.get_nowait()
        except queue.Empty:
            return stop, shutdown
        if message is None:
            shutdown = True
        elif message.get("type") == "StopSimulation":
            stop = True


def run_simulation(
    message: StartSimulationMessage,
    emit: Callable[[dict], None],
    should_stop: Callable[[], bool] = lambda: False,
) -> AggregateResultDict:
    """
    Execute one StartSimulation request.

    Parameters
    ----------
    message : StartSimulationMessage
        Request payload.
    emit : callable
        Receives outbound ProgressUpdate messages.
    should_stop : callable
        Polled at every progress boundary.

    Returns
    -------
    AggregateResultDict
        Wire form of the aggregate result.

    Raises
    ------
    UnknownAdapterKind
        If `adapter_kind` names no product.
    SimulationCancelled
        If `should_stop()` returned True.
    """
    adapter = adapter_for(message["adapter_kind"])
    inputs = adapter.parse_inputs(message["inputs"])
    parameters = SimulationParameters.from_dict(message["parameters"])
    total = int(message["simulation_count"])
    horizon = int(message["horizon"])
    rng = np.random.default_rng(message.get("seed"))
    aggregator = ResultAggregator(sample_size=message.get("sample_size", TRIAL_SAMPLE_SIZE))

    def progress(completed: int, phase: str, eta: Optional[float] = None) -> None:
        update = SimulationProgress(completed, total, phase, eta)  # type: ignore[arg-type]
        emit({"type": "ProgressUpdate", "progress": update.to_dict()})

    progress(0, "setup")
    step = max(1, math.ceil(total / PROGRESS_STEPS))
    started = time.monotonic()

    for trial_id in range(total):
        scenario = generate_scenario(
            horizon, parameters.market_parameters, rng, parameters.economic_regimes
        )
        outcome, balances = adapter.simulate(inputs, scenario, trial_id)
        aggregator.add(outcome, balances)

        completed = trial_id + 1
        if completed % step == 0 or completed == total:
            elapsed = time.monotonic() - started
            progress(completed, "running", elapsed / completed * (total - completed))
            if should_stop():
                raise SimulationCancelled(f"Simulation cancelled after {completed}/{total} trials")

    progress(total, "analyzing")
    return aggregator.finalize(inputs.current_age).to_dict()  # type: ignore[return-value]


def worker_main(inbox: Any, outbox: Any) -> None:
    """
    Process entry point: serve StartSimulation requests until shutdown.

    A None message on the inbox shuts the worker down, cancelling the run
    in progress if there is one.
    """
    shutdown = False

    def should_stop() -> bool:
        nonlocal shutdown
        stop, shutdown_seen = _drain(inbox)
        shutdown = shutdown or shutdown_seen
        return stop or shutdown_seen

    while not shutdown:
        message = inbox.get()
        if message is None:
            break

        kind = message.get("type")
        if kind == "StopSimulation":
            continue
        if kind != "StartSimulation":
            error: ErrorMessage = {
                "type": "Error",
                "error": f"Unexpected message type '{kind}'",
                "error_kind": "ValidationError",
            }
            outbox.put(error)
            continue

        try:
            data = run_simulation(message, outbox.put, should_stop)
        except SimulationCancelled as exc:
            logger.info("%s", exc)
            continue
        except Exception as exc:  # reported to the host, worker keeps serving
            logger.exception("Simulation failed in worker")
            outbox.put({"type": "Error", "error": str(exc), "error_kind": type(exc).__name__})
            continue

        outbox.put({"type": "SimulationComplete", "data": data})
