"""
Background Workers (Threading)
==============================
This module contains the QThread subclass running the Result pipeline.

Why is this file needed?
------------------------
1. Responsiveness: If we run renumbering and the FEM solver on the main thread,
   the GUI freezes. The worker pushes the calculation to a background thread.
2. Signals: Results travel back through queued Qt signal connections, so the
   controller only ever touches the Workflow State on the main thread.

Classes:
    PipelineWorker: Runs one ResultJob.
    QtJobExecutor: JobExecutor implementation built on PipelineWorker.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Tuple

from PySide6.QtCore import QObject, QThread, Qt, Signal, Slot

from meshflow.controller.pipeline import ResultJob
from meshflow.model.fem_input import Solution

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[ResultJob, Solution], None]
FailureCallback = Callable[[ResultJob, BaseException], None]


class PipelineWorker(QThread):
    # Signals to hand the outcome back to the main thread
    succeeded = Signal(object, object)  # (job, Solution)
    failed = Signal(object, object)  # (job, exception)

    def __init__(self, job: ResultJob, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self.job = job

    def run(self) -> None:
        try:
            logger.info("Starting Result pipeline in background thread...")
            solution = self.job.run()
        except Exception as e:
            logger.error(f"Error in PipelineWorker: {e}")
            self.failed.emit(self.job, e)
            return
        self.succeeded.emit(self.job, solution)


class QtJobExecutor(QObject):
    """
    Runs every submitted job on its own PipelineWorker.

    The executor must live on the main thread; the worker signals are
    connected with Qt.QueuedConnection, so the callbacks run there.
    """

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._pending: Dict[int, Tuple[SuccessCallback, FailureCallback]] = {}
        # A QThread must outlive its run(); workers are only dropped once finished
        self._workers: List[PipelineWorker] = []

    @property
    def running_jobs(self) -> int:
        return len(self._pending)

    def submit(self, job: ResultJob, on_success: SuccessCallback, on_failure: FailureCallback) -> None:
        self._workers = [w for w in self._workers if not w.isFinished()]

        worker = PipelineWorker(job)
        self._pending[id(job)] = (on_success, on_failure)
        self._workers.append(worker)

        worker.succeeded.connect(self._on_succeeded, Qt.ConnectionType.QueuedConnection)
        worker.failed.connect(self._on_failed, Qt.ConnectionType.QueuedConnection)

        logger.debug(f"Submitting job {id(job):#x} to a worker thread.")
        worker.start()

    def wait_all(self, msecs: int = -1) -> bool:
        """Blocks until all worker threads have finished (used on shutdown)."""
        done = True
        for worker in self._workers:
            done = (worker.wait() if msecs < 0 else worker.wait(msecs)) and done
        return done

    @Slot(object, object)
    def _on_succeeded(self, job: ResultJob, solution: Solution) -> None:
        entry = self._pending.pop(id(job), None)
        if entry is None:
            return
        on_success, _ = entry
        on_success(job, solution)

    @Slot(object, object)
    def _on_failed(self, job: ResultJob, error: BaseException) -> None:
        entry = self._pending.pop(id(job), None)
        if entry is None:
            return
        _, on_failure = entry
        on_failure(job, error)
