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

from typing import Sequence, TYPE_CHECKING

import logging
import random
import re
import threading

from google.cloud.bigtable.data import ReadRowsQuery
from google.cloud.bigtable.data import RowRange
from google.cloud.bigtable.data import row_filters
from google.cloud.bigtable.data.exceptions import MutationsExceptionGroup

from google.cloud.bigtable_batch._helpers import _prefix_end_key
from google.cloud.bigtable_batch._helpers import _to_bytes
from google.cloud.bigtable_batch._helpers import _validate_positive_int
from google.cloud.bigtable_batch.batch_executor import BatchExecutor
from google.cloud.bigtable_batch.batch_executor import BatchMode
from google.cloud.bigtable_batch.client import SerializedMutationSink
from google.cloud.bigtable_batch.coordinator import BatchStartCallback
from google.cloud.bigtable_batch.coordinator import ConcurrencyCoordinator
from google.cloud.bigtable_batch.exceptions import InvalidConfiguration
from google.cloud.bigtable_batch.exceptions import PartialBatchFailure
from google.cloud.bigtable_batch.metrics import AggregateResult
from google.cloud.bigtable_batch.metrics import MetricsAggregator
from google.cloud.bigtable_batch.mutation_builder import MutationBatchBuilder
from google.cloud.bigtable_batch.mutation_builder import column_qualifiers
from google.cloud.bigtable_batch.partitioner import partition

if TYPE_CHECKING:
    from google.cloud.bigtable.data import Row
    from google.cloud.bigtable_batch.client import RowStoreClient
    from google.cloud.bigtable_batch.config import ReadConfig
    from google.cloud.bigtable_batch.config import WriteConfig

LOGGER = logging.getLogger(__name__)

# size of the fixed key set used when no keys are supplied
DEFAULT_ROW_KEY_COUNT = 100


def default_row_keys(
    count: int = DEFAULT_ROW_KEY_COUNT, prefix: str = "rowkey-"
) -> list[bytes]:
    """
    Deterministic keys rowkey-00, rowkey-01, ... Zero padded so that the
    list is already in store order.
    """
    count = _validate_positive_int(count, "count")
    width = len(str(count - 1))
    return [f"{prefix}{i:0{width}d}".encode() for i in range(count)]


def read_rows_batched(
    client: "RowStoreClient",
    row_keys: Sequence[str | bytes],
    config: "ReadConfig",
    *,
    cancel_event: threading.Event | None = None,
    on_batch_start: BatchStartCallback | None = None,
) -> AggregateResult:
    """
    Read row_keys in batches of config.batch_size, one multi-key query per
    batch, sequentially or in parallel according to config.mode.

    Failed batches are reported in AggregateResult.per_batch_errors; they
    never abort the other batches.
    """
    batches = partition(row_keys, config.batch_size)
    executor = BatchExecutor(client, BatchMode.READ, row_filter=config.row_filter)
    coordinator = ConcurrencyCoordinator(
        config.mode, termination_timeout=config.termination_timeout
    )
    return coordinator.run(
        batches,
        executor.execute,
        cancel_event=cancel_event,
        on_batch_start=on_batch_start,
    )


def write_rows(
    client: "RowStoreClient",
    row_keys: Sequence[str | bytes],
    config: "WriteConfig",
    *,
    builder: MutationBatchBuilder | None = None,
    rng: random.Random | None = None,
    cancel_event: threading.Event | None = None,
    on_batch_start: BatchStartCallback | None = None,
) -> AggregateResult:
    """
    Write config.num_columns cells to every row in row_keys through a single
    shared bulk-mutation sink.

    The sink is closed before the result is built, so every entry handed to
    it has been attempted. Entries the store did not acknowledge are reported
    as AggregateResult.partial_failure and are not counted as written. A
    batch still running after a coordinator timeout finds the sink closed
    and fails instead of staging entries that would never be sent.
    """
    if builder is None:
        builder = MutationBatchBuilder(
            config.column_family,
            column_qualifiers(config.num_columns),
            config.payload,
            rng=rng,
        )
    batches = partition(row_keys, config.batch_size)
    coordinator = ConcurrencyCoordinator(
        config.mode, termination_timeout=config.termination_timeout
    )
    metrics = MetricsAggregator()
    metrics.start()
    sink = SerializedMutationSink(client.mutations_batcher(**config.batcher_kwargs()))
    try:
        executor = BatchExecutor(client, BatchMode.WRITE, sink=sink, builder=builder)
        coordinator.dispatch(
            batches,
            executor.execute,
            metrics=metrics,
            cancel_event=cancel_event,
            on_batch_start=on_batch_start,
        )
    finally:
        try:
            # flushes every remaining entry before releasing the sink
            sink.close()
        except MutationsExceptionGroup as e:
            failure = PartialBatchFailure.from_exception_group(e)
            LOGGER.warning("At least one entry failed to apply: %s", failure)
            metrics.record_partial_failure(failure)
        metrics.stop()
    return metrics.snapshot()


def _row_size(row: "Row") -> int:
    return sum(
        len(cell.row_key) + len(cell.family) + len(cell.qualifier) + len(cell.value)
        for cell in row
    )


def get_row_size(client: "RowStoreClient", row_key: str | bytes) -> int | None:
    """
    Total size of a row in bytes: for every cell, the row key, family,
    qualifier and value lengths. Returns None if the row does not exist.
    """
    row = client.read_row(_to_bytes(row_key, "row_key"))
    if row is None:
        return None
    return _row_size(row)


def qualifier_filter(family: str, qualifier_regex: str = ".*") -> row_filters.RowFilter:
    """
    Filter keeping the cells of family whose whole qualifier matches
    qualifier_regex.

    Raises:
      - InvalidConfiguration if qualifier_regex is not a valid pattern
    """
    try:
        re.compile(qualifier_regex)
    except re.error as e:
        raise InvalidConfiguration(
            f"invalid qualifier_regex {qualifier_regex!r}: {e}"
        ) from e
    return row_filters.RowFilterChain(
        filters=[
            row_filters.FamilyNameRegexFilter(re.escape(family)),
            row_filters.ColumnQualifierRegexFilter(qualifier_regex.encode()),
        ]
    )


def prefix_range(prefix: str | bytes) -> RowRange:
    """Every row key that starts with prefix"""
    prefix = _to_bytes(prefix, "prefix")
    return RowRange(start_key=prefix, end_key=_prefix_end_key(prefix))


def list_column_qualifiers(
    client: "RowStoreClient",
    family: str,
    qualifier_regex: str = ".*",
    row_key_prefix: str | bytes | None = None,
) -> dict[bytes, list[bytes]]:
    """
    Scan the table and return the unique column qualifiers in family for
    each row, in first-seen order. Rows with no matching cells are omitted
    by the store.

    Args:
      - family: column family to list
      - qualifier_regex: only qualifiers fully matching this pattern are listed
      - row_key_prefix: if given, only rows whose key starts with it are scanned
    """
    query = ReadRowsQuery(
        row_ranges=prefix_range(row_key_prefix) if row_key_prefix else None,
        row_filter=qualifier_filter(family, qualifier_regex),
    )
    qualifiers: dict[bytes, list[bytes]] = {}
    for row in client.read_rows(query):
        qualifiers[row.row_key] = list(
            dict.fromkeys(cell.qualifier for cell in row if cell.family == family)
        )
    return qualifiers
