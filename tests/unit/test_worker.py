"""
Unit tests for worker.py module.

The worker loop is exercised in-process with queue.Queue standing in for
multiprocessing queues; real worker processes are covered in
tests/integration.
"""

import queue
import threading

import pytest

from finsim.aggregation import AggregateResult
from finsim.engine import MonteCarloEngine
from finsim.exceptions import SimulationCancelled, UnknownAdapterKind
from finsim.retirement import RetirementAdapter
from finsim.types import SimulationProgress
from finsim.worker import run_simulation, worker_main


@pytest.fixture
def start_message(retirement_inputs, seed):
    """StartSimulation request for the retirement fixture plan."""
    adapter = RetirementAdapter()
    return {
        "type": "StartSimulation",
        "inputs": retirement_inputs.model_dump(mode="json"),
        "parameters": adapter.prepare_parameters(retirement_inputs).to_dict(),
        "adapter_kind": "retirement",
        "simulation_count": 120,
        "horizon": adapter.horizon(retirement_inputs),
        "seed": seed,
        "sample_size": 50,
    }


def _drain(outbox):
    messages = []
    while True:
        try:
            messages.append(outbox.get_nowait())
        except queue.Empty:
            return messages


class TestRunSimulation:
    """Tests for run_simulation()."""

    def test_progress_messages(self, start_message):
        sent = []

        run_simulation(start_message, sent.append)

        assert all(m["type"] == "ProgressUpdate" for m in sent)
        progress = [SimulationProgress.from_dict(m["progress"]) for m in sent]
        assert progress[0].phase == "setup"
        assert progress[-1].phase == "analyzing"
        assert {p.total for p in progress} == {120}
        assert [p.completed for p in progress] == sorted(p.completed for p in progress)

    def test_result_payload(self, start_message):
        data = run_simulation(start_message, lambda message: None)

        result = AggregateResult.from_dict(data)
        assert len(result.yearly_projections) == 51
        assert len(result.sample_of_trials) == 50

    def test_matches_in_process_engine(self, start_message, retirement_inputs, in_process_config, settings):
        """Both strategies drive the same pure functions from the same seed."""
        inputs = retirement_inputs.model_copy(update={"simulation_count": 120})
        engine_result = MonteCarloEngine(in_process_config, settings).run_sync(inputs, RetirementAdapter())

        worker_result = AggregateResult.from_dict(run_simulation(start_message, lambda message: None))

        assert worker_result == AggregateResult(**engine_result.base_fields())

    def test_should_stop(self, start_message):
        with pytest.raises(SimulationCancelled):
            run_simulation(start_message, lambda message: None, should_stop=lambda: True)

    def test_unknown_adapter(self, start_message):
        with pytest.raises(UnknownAdapterKind):
            run_simulation({**start_message, "adapter_kind": "pension"}, lambda message: None)


class TestWorkerMain:
    """Tests for the worker message loop."""

    def test_unknown_adapter_reported(self, start_message):
        inbox, outbox = queue.Queue(), queue.Queue()
        inbox.put({**start_message, "adapter_kind": "pension"})
        inbox.put(None)

        worker_main(inbox, outbox)

        (error,) = _drain(outbox)
        assert error["type"] == "Error"
        assert error["error_kind"] == "UnknownAdapterKind"
        assert "pension" in error["error"]

    def test_unexpected_message_type(self):
        inbox, outbox = queue.Queue(), queue.Queue()
        inbox.put({"type": "Reticulate"})
        inbox.put(None)

        worker_main(inbox, outbox)

        (error,) = _drain(outbox)
        assert error["error_kind"] == "ValidationError"

    def test_idle_stop_is_ignored(self):
        inbox, outbox = queue.Queue(), queue.Queue()
        inbox.put({"type": "StopSimulation"})
        inbox.put(None)

        worker_main(inbox, outbox)

        assert _drain(outbox) == []

    def test_invalid_inputs_reported_and_worker_keeps_serving(self, start_message):
        inbox, outbox = queue.Queue(), queue.Queue()
        bad_inputs = {**start_message["inputs"], "current_age": -5}
        inbox.put({**start_message, "inputs": bad_inputs})
        inbox.put({"type": "Reticulate"})
        inbox.put(None)

        worker_main(inbox, outbox)

        errors = _drain(outbox)
        assert [e["type"] for e in errors] == ["Error", "Error"]
        assert errors[0]["error_kind"] == "ValidationError"

    def test_completed_run(self, start_message):
        inbox, outbox = queue.Queue(), queue.Queue()
        thread = threading.Thread(target=worker_main, args=(inbox, outbox), daemon=True)
        thread.start()
        inbox.put(start_message)

        messages = []
        while not messages or messages[-1]["type"] != "SimulationComplete":
            messages.append(outbox.get(timeout=30))
        inbox.put(None)
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert messages[0]["type"] == "ProgressUpdate"
        assert messages[-1]["data"]["success_probability"] >= 0.0

    def test_shutdown_cancels_run_in_progress(self, start_message):
        inbox, outbox = queue.Queue(), queue.Queue()
        inbox.put(start_message)
        inbox.put(None)

        worker_main(inbox, outbox)

        types = {m["type"] for m in _drain(outbox)}
        assert types == {"ProgressUpdate"}
