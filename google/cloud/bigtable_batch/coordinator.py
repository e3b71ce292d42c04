# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
from __future__ import annotations

from typing import Callable, Iterable, Optional

import functools
import logging
import queue
import threading

from dataclasses import dataclass

from google.cloud.bigtable_batch._helpers import _validate_positive_int
from google.cloud.bigtable_batch._helpers import _validate_timeout
from google.cloud.bigtable_batch.batch_executor import BatchOutcome
from google.cloud.bigtable_batch.exceptions import CoordinatorTimeout
from google.cloud.bigtable_batch.metrics import AggregateResult
from google.cloud.bigtable_batch.metrics import MetricsAggregator
from google.cloud.bigtable_batch.partitioner import Batch

LOGGER = logging.getLogger(__name__)

# worker count used when parallel mode is requested without one
DEFAULT_WORKER_COUNT = 4

# seconds to wait for outstanding batches once the pool is shut down
DEFAULT_TERMINATION_TIMEOUT = 60.0

ExecuteFn = Callable[[Batch], BatchOutcome]
BatchStartCallback = Callable[[Batch, int], None]


@dataclass(frozen=True)
class ExecutionMode:
    """
    Sequential execution on the calling thread, or parallel execution on a
    pool of exactly worker_count threads.
    """

    worker_count: Optional[int] = None

    @classmethod
    def sequential(cls) -> ExecutionMode:
        return cls()

    @classmethod
    def parallel(cls, worker_count: int = DEFAULT_WORKER_COUNT) -> ExecutionMode:
        """
        Raises:
          - InvalidConfiguration if worker_count < 1
        """
        return cls(_validate_positive_int(worker_count, "worker_count"))

    @property
    def is_parallel(self) -> bool:
        return self.worker_count is not None

    def __str__(self) -> str:
        if self.is_parallel:
            return f"Parallel (Threads: {self.worker_count})"
        return "Sequential"


class ConcurrencyCoordinator:
    """
    Runs batches sequentially or over a bounded thread pool, and folds each
    outcome into a MetricsAggregator.

    No exception raised by a batch crosses this class: anything escaping the
    execute function is recorded as a BatchFailure for that batch.
    """

    def __init__(
        self,
        mode: ExecutionMode,
        *,
        termination_timeout: float | None = DEFAULT_TERMINATION_TIMEOUT,
    ):
        """
        Args:
          - mode: ExecutionMode.sequential() or ExecutionMode.parallel(n)
          - termination_timeout: seconds to wait for outstanding batches after
              the worker pool is asked to shut down. None waits forever.
        """
        self.mode = mode
        self.termination_timeout = _validate_timeout(
            termination_timeout, "termination_timeout"
        )

    def run(
        self,
        batches: Iterable[Batch],
        execute_fn: ExecuteFn,
        *,
        metrics: MetricsAggregator | None = None,
        cancel_event: threading.Event | None = None,
        on_batch_start: BatchStartCallback | None = None,
    ) -> AggregateResult:
        """
        Execute every batch and return the aggregated result.

        Row keys in the result follow batch index order, independent of the
        order in which parallel batches complete.

        Args:
          - batches: the batches to run
          - execute_fn: called once per batch; expected to return a BatchOutcome
          - metrics: aggregator to record into. A new one is created if None
          - cancel_event: when set, batches not yet started are skipped.
              Batches already running are allowed to finish.
          - on_batch_start: called with (batch, total_batches) before each batch
        """
        metrics = metrics if metrics is not None else MetricsAggregator()
        self.dispatch(
            batches,
            execute_fn,
            metrics=metrics,
            cancel_event=cancel_event,
            on_batch_start=on_batch_start,
        )
        return metrics.snapshot()

    def dispatch(
        self,
        batches: Iterable[Batch],
        execute_fn: ExecuteFn,
        *,
        metrics: MetricsAggregator,
        cancel_event: threading.Event | None = None,
        on_batch_start: BatchStartCallback | None = None,
    ) -> None:
        """
        Like run(), but leaves the aggregator open so the caller can extend
        the measured span (e.g. with a final flush) before taking a snapshot.
        """
        batches = list(batches)
        metrics.add_batches(len(batches))
        metrics.start()
        try:
            if self.mode.is_parallel:
                self._run_parallel(
                    batches, execute_fn, metrics, cancel_event, on_batch_start
                )
            else:
                self._run_sequential(
                    batches, execute_fn, metrics, cancel_event, on_batch_start
                )
        finally:
            metrics.stop()

    def _run_sequential(
        self,
        batches: list[Batch],
        execute_fn: ExecuteFn,
        metrics: MetricsAggregator,
        cancel_event: threading.Event | None,
        on_batch_start: BatchStartCallback | None,
    ) -> None:
        for position, batch in enumerate(batches):
            if cancel_event is not None and cancel_event.is_set():
                LOGGER.warning(
                    "cancelled: %d of %d batches were not started",
                    len(batches) - position,
                    len(batches),
                )
                metrics.mark_cancelled()
                return
            LOGGER.info(
                "Sequential: Processing batch %d of %d (Keys count: %d)",
                batch.index,
                len(batches),
                len(batch),
            )
            self._execute_one(batch, len(batches), execute_fn, metrics, on_batch_start)

    def _run_parallel(
        self,
        batches: list[Batch],
        execute_fn: ExecuteFn,
        metrics: MetricsAggregator,
        cancel_event: threading.Event | None,
        on_batch_start: BatchStartCallback | None,
    ) -> None:
        total = len(batches)
        if not total:
            return
        pool = _WorkerPool(
            self.mode.worker_count,
            functools.partial(
                self._worker,
                total=total,
                execute_fn=execute_fn,
                metrics=metrics,
                cancel_event=cancel_event,
                on_batch_start=on_batch_start,
            ),
        )
        pool.start(batches)
        pending = pool.wait(self.termination_timeout)
        if pending:
            # queued batches are dropped; running ones cannot be interrupted
            pool.abandon()
            timeout = CoordinatorTimeout(pending, self.termination_timeout)
            LOGGER.warning(
                "Thread pool did not terminate gracefully within %s seconds: %s",
                self.termination_timeout,
                timeout,
            )
            metrics.record_timeout(timeout)
        skipped = pool.skipped
        if skipped or (cancel_event is not None and cancel_event.is_set()):
            LOGGER.warning("cancelled: %d of %d batches were not started", skipped, total)
            metrics.mark_cancelled()

    def _worker(
        self,
        batch: Batch,
        *,
        total: int,
        execute_fn: ExecuteFn,
        metrics: MetricsAggregator,
        cancel_event: threading.Event | None,
        on_batch_start: BatchStartCallback | None,
    ) -> BatchOutcome | None:
        """
        Runs on a pool thread. Returns None if the batch was skipped because
        of cancellation.
        """
        if cancel_event is not None and cancel_event.is_set():
            return None
        LOGGER.info(
            "Parallel: Starting batch %d of %d (Keys count: %d) in thread %s",
            batch.index,
            total,
            len(batch),
            threading.current_thread().name,
        )
        return self._execute_one(batch, total, execute_fn, metrics, on_batch_start)

    @staticmethod
    def _execute_one(
        batch: Batch,
        total: int,
        execute_fn: ExecuteFn,
        metrics: MetricsAggregator,
        on_batch_start: BatchStartCallback | None,
    ) -> BatchOutcome:
        try:
            if on_batch_start is not None:
                on_batch_start(batch, total)
            outcome = execute_fn(batch)
        except Exception as e:
            LOGGER.warning("Error processing batch %d: %r", batch.index, e)
            outcome = BatchOutcome.failed(batch, e)
        metrics.record_batch(outcome)
        return outcome


class _WorkerPool:
    """
    A fixed number of daemon threads draining a queue of batches.

    Daemon threads are not joined at interpreter exit, so a batch still
    stuck after the termination timeout cannot keep the process alive.
    """

    def __init__(
        self,
        worker_count: int,
        run_batch: Callable[[Batch], Optional[BatchOutcome]],
    ):
        self._run_batch = run_batch
        self._queue: queue.SimpleQueue[Optional[Batch]] = queue.SimpleQueue()
        self._done = threading.Condition()
        self._submitted = 0
        self._resolved = 0
        self._skipped = 0
        self._abandoned = threading.Event()
        self._threads = [
            threading.Thread(target=self._work, name=f"batch-worker-{i}", daemon=True)
            for i in range(worker_count)
        ]

    def start(self, batches: list[Batch]) -> None:
        self._submitted = len(batches)
        for batch in batches:
            self._queue.put(batch)
        # one stop marker per worker, behind the batches
        for _ in self._threads:
            self._queue.put(None)
        for thread in self._threads:
            thread.start()

    def _work(self) -> None:
        while True:
            batch = self._queue.get()
            if batch is None or self._abandoned.is_set():
                return
            started = False
            try:
                started = self._run_batch(batch) is not None
            finally:
                with self._done:
                    self._resolved += 1
                    if not started:
                        self._skipped += 1
                    self._done.notify_all()

    def wait(self, timeout: float | None) -> int:
        """
        Block until every batch has been resolved, or until timeout seconds
        have passed. Returns the number of batches still unresolved.
        """
        with self._done:
            self._done.wait_for(
                lambda: self._resolved >= self._submitted, timeout=timeout
            )
            return self._submitted - self._resolved

    def abandon(self) -> None:
        """Stop workers from starting any batch still in the queue"""
        self._abandoned.set()

    @property
    def skipped(self) -> int:
        with self._done:
            return self._skipped
