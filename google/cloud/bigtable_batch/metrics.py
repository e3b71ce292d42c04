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
from __future__ import annotations

from typing import Callable, TYPE_CHECKING

import logging
import threading
import time

from dataclasses import dataclass

from google.cloud.bigtable_batch.exceptions import BatchFailure
from google.cloud.bigtable_batch.exceptions import CoordinatorTimeout
from google.cloud.bigtable_batch.exceptions import PartialBatchFailure

if TYPE_CHECKING:
    from google.cloud.bigtable_batch.batch_executor import BatchOutcome


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregateResult:
    """
    An immutable summary of a completed batch operation.

    row_keys lists the keys of successfully processed rows, in original
    batch index order. per_batch_errors is ordered by batch index.
    """

    rows_processed: int
    cells_processed: int
    elapsed_millis: int
    per_batch_errors: tuple[BatchFailure, ...] = ()
    row_keys: tuple[bytes, ...] = ()
    batches_total: int = 0
    batches_completed: int = 0
    partial_failure: PartialBatchFailure | None = None
    timed_out: CoordinatorTimeout | None = None
    cancelled: bool = False

    @property
    def failure_count(self) -> int:
        """Number of failed batches plus the number of failed mutation entries"""
        count = len(self.per_batch_errors)
        if self.partial_failure is not None:
            count += len(self.partial_failure.failed_entries)
            count += len(self.partial_failure.unattributed_errors)
        return count

    @property
    def succeeded(self) -> bool:
        return (
            self.failure_count == 0
            and self.timed_out is None
            and not self.cancelled
        )


class MetricsAggregator:
    """
    Accumulates counters across batches.

    record_* methods may be called concurrently from any worker thread; every
    update happens under a single lock. snapshot() is meant to be called once
    all workers have finished. Outcomes that arrive after it are ignored.

    The elapsed time comes from a single monotonic timer started before the
    first batch is submitted, not from per-worker durations.
    """

    def __init__(self, clock: Callable[[], int] = time.monotonic_ns):
        self._clock = clock
        self._lock = threading.Lock()
        self._rows = 0
        self._cells = 0
        self._outcomes: dict[int, "BatchOutcome"] = {}
        # row keys of successful batches, i.e. the rows behind self._rows
        self._counted_keys: set[bytes] = set()
        self._errors: list[BatchFailure] = []
        self._batches_total = 0
        self._partial_failure: PartialBatchFailure | None = None
        self._timeout: CoordinatorTimeout | None = None
        self._cancelled = False
        self._start_ns: int | None = None
        self._end_ns: int | None = None
        self._frozen: AggregateResult | None = None

    def start(self) -> None:
        """Start the operation timer. Later calls are ignored"""
        with self._lock:
            if self._start_ns is None:
                self._start_ns = self._clock()

    def stop(self) -> None:
        """
        Record the end of the operation. May be called again to extend the
        measured span (e.g. after a final flush) until snapshot() is taken.
        """
        with self._lock:
            if self._frozen is None:
                self._end_ns = self._clock()

    def add_batches(self, count: int) -> None:
        with self._lock:
            self._batches_total += count

    def record_batch(self, outcome: "BatchOutcome") -> None:
        """
        Fold a single batch outcome into the totals. Failed batches add an
        entry to the error list and nothing to the row and cell counters.
        """
        with self._lock:
            if self._frozen is not None:
                LOGGER.debug(
                    "batch %d finished after the result was taken; ignoring it",
                    outcome.batch_index,
                )
                return
            if outcome.batch_index in self._outcomes:
                LOGGER.warning(
                    "batch %d was recorded twice; ignoring the second outcome",
                    outcome.batch_index,
                )
                return
            self._outcomes[outcome.batch_index] = outcome
            if outcome.error is not None:
                self._errors.append(outcome.error)
            else:
                self._rows += outcome.row_count
                self._cells += outcome.cell_count
                self._counted_keys.update(outcome.succeeded_keys)

    def record_partial_failure(self, failure: PartialBatchFailure) -> None:
        """
        Remove entries the sink could not confirm from the counters, so the
        result never reports writes that were not acknowledged.

        Only entries belonging to a counted batch are subtracted. Entries of
        a batch that failed while appending were never counted.
        """
        with self._lock:
            self._partial_failure = failure
            counted = [
                entry
                for entry in failure.failed_entries
                if entry.row_key in self._counted_keys
            ]
            self._cells -= sum(len(entry.mutations) for entry in counted)
            self._rows -= len({entry.row_key for entry in counted})

    def record_timeout(self, timeout: CoordinatorTimeout) -> None:
        with self._lock:
            self._timeout = timeout

    def mark_cancelled(self) -> None:
        with self._lock:
            self._cancelled = True

    @property
    def rows_processed(self) -> int:
        with self._lock:
            return self._rows

    @property
    def cells_processed(self) -> int:
        with self._lock:
            return self._cells

    def snapshot(self) -> AggregateResult:
        """
        Build the AggregateResult. The first call freezes the result; later
        calls return the same values.
        """
        with self._lock:
            if self._frozen is not None:
                return self._frozen
            now = self._clock()
            start = self._start_ns if self._start_ns is not None else now
            end = self._end_ns if self._end_ns is not None else now
            failed_keys: set[bytes] = set()
            if self._partial_failure is not None:
                failed_keys = {e.row_key for e in self._partial_failure.failed_entries}
            row_keys: list[bytes] = []
            for idx in sorted(self._outcomes):
                outcome = self._outcomes[idx]
                if outcome.error is None:
                    row_keys.extend(
                        k for k in outcome.succeeded_keys if k not in failed_keys
                    )
            self._frozen = AggregateResult(
                rows_processed=self._rows,
                cells_processed=self._cells,
                elapsed_millis=max(0, end - start) // 1_000_000,
                per_batch_errors=tuple(
                    sorted(self._errors, key=lambda e: e.batch_index)
                ),
                row_keys=tuple(row_keys),
                batches_total=self._batches_total,
                batches_completed=len(self._outcomes),
                partial_failure=self._partial_failure,
                timed_out=self._timeout,
                cancelled=self._cancelled,
            )
            return self._frozen
