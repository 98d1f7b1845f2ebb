"""
Host side of the background worker protocol.

Purpose
-------
WorkerDispatcher owns one worker process (see finsim.worker) and a pair of
multiprocessing queues. It sends a StartSimulation message, forwards the
worker's ProgressUpdate messages to the caller in arrival order, and
resolves with the AggregateResult carried by SimulationComplete.

Rules
-----
- One pending run per dispatcher; a second concurrent run raises
  SimulationError.
- The outbox is polled with `await asyncio.sleep(poll_interval)` so the
  host event loop stays responsive while the worker computes.
- Cancelling a run tears the worker down (in-flight trials are not
  individually interruptible) and raises SimulationCancelled.
- After close() the dispatcher is unusable and raises DispatcherClosed.

Example
-------
>>> dispatcher = WorkerDispatcher()
>>> try:
...     result = asyncio.run(dispatcher.run(message, on_progress=print))
... finally:
...     dispatcher.close()
"""

from __future__ import annotations

import asyncio
import logging
import multiprocessing
import queue
from typing import Callable, Optional

from .aggregation import AggregateResult
from .exceptions import (
    DispatcherClosed,
    SimulationCancelled,
    SimulationError,
    UnknownAdapterKind,
    WorkerUnavailable,
)
from .types import SimulationProgress, StartSimulationMessage
from .worker import worker_main

logger = logging.getLogger(__name__)

__all__ = ["WorkerDispatcher"]

ProgressCallback = Callable[[SimulationProgress], None]


class WorkerDispatcher:
    """
    Message-passing bridge to a background simulation process.

    Parameters
    ----------
    start_method : {"spawn", "forkserver", "fork"}
        multiprocessing start method used for the worker.
    poll_interval : float
        Seconds to sleep between empty polls of the worker's outbox.
    """

    def __init__(self, start_method: str = "spawn", poll_interval: float = 0.01):
        self.start_method = start_method
        self.poll_interval = poll_interval
        self._process = None
        self._inbox = None
        self._outbox = None
        self._pending = False
        self._closed = False

    # -------------------- Lifecycle --------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def busy(self) -> bool:
        return self._pending

    def _ensure_worker(self) -> None:
        if self._closed:
            raise DispatcherClosed("Dispatcher has been closed")
        if self._process is not None and self._process.is_alive():
            return

        try:
            context = multiprocessing.get_context(self.start_method)
            inbox = context.Queue()
            outbox = context.Queue()
            process = context.Process(
                target=worker_main,
                args=(inbox, outbox),
                name="finsim-worker",
                daemon=True,
            )
            process.start()
        except (OSError, ValueError, RuntimeError) as exc:
            raise WorkerUnavailable(f"Could not start worker process: {exc}") from exc

        self._inbox, self._outbox, self._process = inbox, outbox, process
        logger.debug("Started worker process pid=%s (%s)", process.pid, self.start_method)

    def close(self) -> None:
        """Terminate the worker. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        process, self._process = self._process, None
        if process is not None:
            if process.is_alive():
                process.terminate()
            process.join(timeout=1.0)
            logger.debug("Worker process pid=%s terminated", process.pid)
        for q in (self._inbox, self._outbox):
            if q is not None:
                q.cancel_join_thread()
                q.close()
        self._inbox = self._outbox = None

    def __enter__(self) -> "WorkerDispatcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------- Runs --------------------

    async def run(
        self,
        message: StartSimulationMessage,
        on_progress: Optional[ProgressCallback] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> AggregateResult:
        """
        Execute one simulation in the worker.

        Parameters
        ----------
        message : StartSimulationMessage
            Request forwarded to the worker unchanged.
        on_progress : callable, optional
            Receives each SimulationProgress reported by the worker.
        is_cancelled : callable, optional
            Polled between outbox reads; when it returns True the worker is
            torn down and SimulationCancelled is raised.

        Raises
        ------
        DispatcherClosed
            If close() was called before.
        SimulationError
            If a run is already pending, the worker reports an error, or
            the worker exits unexpectedly.
        UnknownAdapterKind
            If the worker could not resolve the adapter kind.
        WorkerUnavailable
            If the worker process could not be started.
        """
        if self._closed:
            raise DispatcherClosed("Dispatcher has been closed")
        if self._pending:
            raise SimulationError("A simulation is already running on this dispatcher")

        self._ensure_worker()
        self._pending = True
        try:
            self._inbox.put(message)
            while True:
                if is_cancelled is not None and is_cancelled():
                    self._cancel()
                    raise SimulationCancelled("Simulation cancelled; worker terminated")

                reply = self._next_reply()
                if reply is None:
                    await asyncio.sleep(self.poll_interval)
                    continue

                kind = reply.get("type")
                if kind == "ProgressUpdate":
                    if on_progress is not None:
                        on_progress(SimulationProgress.from_dict(reply["progress"]))
                elif kind == "SimulationComplete":
                    return AggregateResult.from_dict(reply["data"])
                elif kind == "Error":
                    error = reply.get("error") or "Simulation failed"
                    logger.error("Worker reported %s: %s", reply.get("error_kind", "error"), error)
                    if reply.get("error_kind") == UnknownAdapterKind.__name__:
                        raise UnknownAdapterKind(error)
                    raise SimulationError(error)
                else:
                    logger.warning("Ignoring unexpected worker message type %r", kind)
        finally:
            self._pending = False

    def _next_reply(self) -> Optional[dict]:
        try:
            return self._outbox.get_nowait()
        except queue.Empty:
            if not self._process.is_alive():
                raise SimulationError(
                    f"Worker process exited unexpectedly (exit code {self._process.exitcode})"
                ) from None
            return None

    def _cancel(self) -> None:
        self._inbox.put({"type": "StopSimulation"})
        self.close()
