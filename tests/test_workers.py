"""
Tests for controller/workers.py module.

The executor delivers its callbacks through queued connections, so the
tests spin the Qt event loop until the controller is idle again.
"""

import time

import numpy as np
import pytest
from PySide6.QtCore import QCoreApplication

from meshflow.algorithms.base import AlgorithmSuite
from meshflow.controller.navigation import Intent
from meshflow.controller.pipeline import ResultJob, ResultPipeline
from meshflow.controller.workers import PipelineWorker, QtJobExecutor
from meshflow.errors import SolverFailed
from meshflow.model.bc import FixedValueCondition
from meshflow.model.geometry_primitives import Edge
from meshflow.model.state import SolverSettings, Step

from conftest import SignalRecorder, make_controller


def wait_until(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while not predicate() and time.monotonic() < deadline:
        QCoreApplication.processEvents()
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def square_job(square):
    mesh = AlgorithmSuite.default().triangulator.run(square)
    conditions = {Edge(0, 3): FixedValueCondition(0.0), Edge(1, 2): FixedValueCondition(1.0)}
    return ResultJob.snapshot(ResultPipeline(AlgorithmSuite.default()), mesh, conditions, SolverSettings())


# =============================================================================
# PipelineWorker
# =============================================================================

class TestPipelineWorker:

    def test_success_signal(self, square_job):
        worker = PipelineWorker(square_job)
        succeeded = SignalRecorder(worker.succeeded)
        failed = SignalRecorder(worker.failed)

        # Run synchronously on this thread
        worker.run()

        assert len(failed) == 0
        job, solution = succeeded.calls[0]
        assert job is square_job
        np.testing.assert_allclose(solution.values, [0.0, 1.0, 1.0, 0.0], atol=1e-10)

    def test_failure_signal(self, square_job):
        square_job.conditions.clear()
        worker = PipelineWorker(square_job)
        failed = SignalRecorder(worker.failed)

        worker.run()

        job, error = failed.calls[0]
        assert job is square_job
        assert isinstance(error, SolverFailed)


# =============================================================================
# QtJobExecutor
# =============================================================================

class TestQtJobExecutor:

    def test_callbacks_on_main_thread(self, square_job):
        executor = QtJobExecutor()
        results = []

        executor.submit(square_job, lambda job, s: results.append(("ok", job, s)), lambda job, e: results.append(("err", job, e)))

        assert wait_until(lambda: results)
        assert executor.wait_all(5000)
        kind, job, solution = results[0]
        assert kind == "ok"
        assert job is square_job
        assert executor.running_jobs == 0

    def test_failure_callback(self, square_job):
        square_job.conditions.clear()
        executor = QtJobExecutor()
        results = []

        executor.submit(square_job, lambda job, s: results.append("ok"), lambda job, e: results.append(e))

        assert wait_until(lambda: results)
        assert executor.wait_all(5000)
        assert isinstance(results[0], SolverFailed)

    def test_controller_round_trip(self, square):
        executor = QtJobExecutor()
        controller = make_controller(square, executor=executor)
        busy = SignalRecorder(controller.busy_changed)
        controller.dispatch(Intent.GO_AUTO)
        controller.dispatch(Intent.CONTINUE)
        controller.set_edge_condition(Edge(0, 3), FixedValueCondition(0.0))
        controller.set_edge_condition(Edge(1, 2), FixedValueCondition(1.0))

        outcome = controller.dispatch(Intent.CONTINUE)

        assert outcome.pending
        assert wait_until(lambda: not controller.busy)
        assert executor.wait_all(5000)
        assert controller.active_step == Step.RESULT
        assert busy.calls == [True, False]
        np.testing.assert_allclose(controller.state.solution.values, [0.0, 1.0, 1.0, 0.0], atol=1e-10)
