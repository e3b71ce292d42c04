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

from enum import Enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

import logging

from google.cloud.bigtable.data import ReadRowsQuery

from google.cloud.bigtable_batch.exceptions import BatchFailure
from google.cloud.bigtable_batch.exceptions import InvalidConfiguration

if TYPE_CHECKING:
    from google.cloud.bigtable.data.row_filters import RowFilter
    from google.cloud.bigtable_batch.client import MutationSink
    from google.cloud.bigtable_batch.client import RowStoreClient
    from google.cloud.bigtable_batch.mutation_builder import MutationBatchBuilder
    from google.cloud.bigtable_batch.partitioner import Batch


LOGGER = logging.getLogger(__name__)


class BatchMode(Enum):
    """Whether a batch reads its rows or writes them"""

    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class BatchOutcome:
    """
    Result of executing one batch. Exactly one of two shapes:
      - success: error is None and the counters describe the work done
      - failure: error holds the BatchFailure and the counters are zero
    """

    batch_index: int
    succeeded_keys: tuple[bytes, ...] = ()
    row_count: int = 0
    cell_count: int = 0
    error: BatchFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, batch: "Batch", cause: Exception) -> BatchOutcome:
        return cls(
            batch_index=batch.index,
            error=BatchFailure(batch.index, cause, batch.keys),
        )


class BatchExecutor:
    """
    Runs a single batch against a RowStoreClient.

    Errors raised by the store are caught here and returned inside the
    BatchOutcome. execute() does not raise for store errors, and never retries.
    """

    def __init__(
        self,
        client: "RowStoreClient",
        mode: BatchMode,
        *,
        row_filter: "RowFilter" | None = None,
        sink: "MutationSink" | None = None,
        builder: "MutationBatchBuilder" | None = None,
    ):
        if mode is BatchMode.WRITE and (sink is None or builder is None):
            raise InvalidConfiguration("write mode requires a sink and a builder")
        self._client = client
        self._mode = mode
        self._row_filter = row_filter
        self._sink = sink
        self._builder = builder

    @property
    def mode(self) -> BatchMode:
        return self._mode

    def execute(self, batch: "Batch") -> BatchOutcome:
        try:
            if self._mode is BatchMode.READ:
                return self._read_batch(batch)
            return self._write_batch(batch)
        except Exception as e:
            LOGGER.warning("batch %d failed: %r", batch.index, e)
            return BatchOutcome.failed(batch, e)

    __call__ = execute

    def _read_batch(self, batch: "Batch") -> BatchOutcome:
        """
        Issue one multi-key query for the whole batch and drain the stream
        """
        query = ReadRowsQuery(row_keys=list(batch.keys), row_filter=self._row_filter)
        read_keys: list[bytes] = []
        cell_count = 0
        for row in self._client.read_rows(query):
            read_keys.append(row.row_key)
            cell_count += len(row)
        return BatchOutcome(
            batch_index=batch.index,
            succeeded_keys=tuple(read_keys),
            row_count=len(read_keys),
            cell_count=cell_count,
        )

    def _write_batch(self, batch: "Batch") -> BatchOutcome:
        """
        Hand every entry for the batch's rows to the shared sink. Entries are
        buffered; delivery failures surface when the sink is closed.

        If append raises partway through, entries already handed over are
        still sent, but the batch is recorded as failed and counts nothing.
        """
        assert self._sink is not None and self._builder is not None
        cell_count = 0
        for row_key in batch.keys:
            for entry in self._builder.build(row_key):
                self._sink.append(entry)
                cell_count += len(entry.mutations)
        return BatchOutcome(
            batch_index=batch.index,
            succeeded_keys=batch.keys,
            row_count=len(batch.keys),
            cell_count=cell_count,
        )
