"""
Unit tests for dispatcher.py module.

Lifecycle rules only; runs against a real worker process live in
tests/integration/test_workflow.py.
"""

import asyncio

import pytest

from finsim.dispatcher import WorkerDispatcher
from finsim.exceptions import DispatcherClosed, SimulationError, WorkerUnavailable


class TestDispatcherLifecycle:
    def test_initial_state(self):
        dispatcher = WorkerDispatcher()

        assert dispatcher.closed is False
        assert dispatcher.busy is False

    def test_close_is_idempotent(self):
        dispatcher = WorkerDispatcher()

        dispatcher.close()
        dispatcher.close()

        assert dispatcher.closed is True

    def test_run_after_close(self):
        dispatcher = WorkerDispatcher()
        dispatcher.close()

        with pytest.raises(DispatcherClosed):
            asyncio.run(dispatcher.run({"type": "StartSimulation"}))

    def test_context_manager_closes(self):
        with WorkerDispatcher() as dispatcher:
            pass

        assert dispatcher.closed is True

    def test_unknown_start_method(self):
        dispatcher = WorkerDispatcher(start_method="teleport")

        with pytest.raises(WorkerUnavailable):
            asyncio.run(dispatcher.run({"type": "StartSimulation"}))
        assert dispatcher.busy is False

    def test_second_pending_run_rejected(self):
        dispatcher = WorkerDispatcher()
        dispatcher._pending = True

        with pytest.raises(SimulationError, match="already running"):
            asyncio.run(dispatcher.run({"type": "StartSimulation"}))
