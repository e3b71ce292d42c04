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

import random
import threading

import pytest

from unittest import mock

from google.cloud.bigtable_batch import operations
from google.cloud.bigtable_batch.config import ReadConfig
from google.cloud.bigtable_batch.config import WriteConfig
from google.cloud.bigtable_batch.coordinator import ExecutionMode
from google.cloud.bigtable_batch.exceptions import InvalidConfiguration
from google.cloud.bigtable_batch.exceptions import PartialBatchFailure
from google.cloud.bigtable_batch.mutation_builder import MutationBatchBuilder
from google.cloud.bigtable_batch.mutation_builder import PayloadSpec


class TestDefaultRowKeys:
    def test_defaults(self):
        keys = operations.default_row_keys()
        assert len(keys) == 100
        assert keys[0] == b"rowkey-00"
        assert keys[-1] == b"rowkey-99"
        assert keys == sorted(keys)

    def test_custom(self):
        assert operations.default_row_keys(3, prefix="k") == [b"k0", b"k1", b"k2"]

    def test_invalid(self):
        with pytest.raises(InvalidConfiguration):
            operations.default_row_keys(0)


class TestReadRowsBatched:
    def test_sequential_scenario(self, populated_store):
        """100 keys in batches of 20, three cells per row"""
        keys = operations.default_row_keys()
        started = []
        result = operations.read_rows_batched(
            populated_store,
            keys,
            ReadConfig(batch_size=20),
            on_batch_start=lambda batch, total: started.append((batch.index, total)),
        )
        assert started == [(i, 5) for i in range(1, 6)]
        assert len(populated_store.read_queries) == 5
        assert all(len(q.row_keys) == 20 for q in populated_store.read_queries)
        assert result.rows_processed == 100
        assert result.cells_processed == 300
        assert result.row_keys == tuple(keys)
        assert result.per_batch_errors == ()
        assert result.elapsed_millis >= 0
        assert result.succeeded

    def test_parallel_scenario(self, populated_store):
        """100 keys in batches of 10 over 8 workers keep their original order"""
        keys = operations.default_row_keys()
        # make early batches finish last
        for i, key in enumerate(keys[:30]):
            populated_store.read_delays[key] = 0.03 - i * 0.001
        config = ReadConfig(batch_size=10, mode=ExecutionMode.parallel(8))
        result = operations.read_rows_batched(populated_store, keys, config)
        assert len(populated_store.read_queries) == 10
        assert result.batches_total == 10
        assert result.row_keys == tuple(keys)
        assert result.rows_processed == 100
        assert result.cells_processed == 300

    @pytest.mark.parametrize(
        "mode", [ExecutionMode.sequential(), ExecutionMode.parallel(4)]
    )
    def test_failed_batch_isolated(self, populated_store, mode):
        keys = operations.default_row_keys()
        populated_store.fail_read_keys.add(b"rowkey-45")
        result = operations.read_rows_batched(
            populated_store, keys, ReadConfig(batch_size=20, mode=mode)
        )
        assert [e.batch_index for e in result.per_batch_errors] == [3]
        assert result.per_batch_errors[0].row_keys == tuple(keys[40:60])
        assert result.rows_processed == 80
        assert result.cells_processed == 240
        assert result.row_keys == tuple(keys[:40] + keys[60:])
        assert result.failure_count == 1

    def test_missing_rows(self, store):
        store.populate([b"a", b"c"])
        result = operations.read_rows_batched(
            store, ["a", "b", "c"], ReadConfig(batch_size=2)
        )
        assert result.rows_processed == 2
        assert result.row_keys == (b"a", b"c")
        assert result.succeeded

    def test_row_filter(self, populated_store):
        config = ReadConfig(
            batch_size=50, row_filter=operations.qualifier_filter("cf", "column-0")
        )
        result = operations.read_rows_batched(
            populated_store, operations.default_row_keys(), config
        )
        assert result.rows_processed == 100
        assert result.cells_processed == 100

    def test_empty_keys(self, store):
        result = operations.read_rows_batched(store, [], ReadConfig(batch_size=5))
        assert result.rows_processed == 0
        assert store.read_queries == []

    def test_cancel(self, populated_store):
        cancel = threading.Event()

        def on_start(batch, total):
            if batch.index == 2:
                cancel.set()

        result = operations.read_rows_batched(
            populated_store,
            operations.default_row_keys(),
            ReadConfig(batch_size=10),
            cancel_event=cancel,
            on_batch_start=on_start,
        )
        assert result.cancelled
        assert result.rows_processed == 20


class TestWriteRows:
    def _config(self, **kwargs):
        kwargs.setdefault("column_family", "cf")
        kwargs.setdefault("num_columns", 3)
        kwargs.setdefault("flush_interval", None)
        return WriteConfig(**kwargs)

    def test_write_scenario(self, store):
        """5 rows x 3 columns with values of exactly 100 bytes"""
        config = self._config(payload=PayloadSpec.fixed(100))
        keys = [f"row-{i}" for i in range(5)]
        result = operations.write_rows(store, keys, config, rng=random.Random(1))
        entries = store.mutated_entries
        assert len(entries) == 15
        assert all(len(e.mutations) == 1 for e in entries)
        assert all(len(e.mutations[0].new_value) == 100 for e in entries)
        assert result.cells_processed == 15
        assert result.rows_processed == 5
        assert result.row_keys == tuple(k.encode() for k in keys)
        assert result.partial_failure is None
        assert result.succeeded
        for key in keys:
            row = store.read_row(key)
            assert [c.qualifier for c in row.get_cells("cf")] == [
                b"column-0",
                b"column-1",
                b"column-2",
            ]

    @pytest.mark.parametrize(
        "mode", [ExecutionMode.sequential(), ExecutionMode.parallel(3)]
    )
    def test_write_many_batches(self, store, mode):
        config = self._config(
            num_columns=2,
            payload=PayloadSpec(1, 10),
            batch_size=7,
            mode=mode,
            flush_limit_mutation_count=5,
        )
        keys = [f"row-{i:03d}" for i in range(50)]
        result = operations.write_rows(store, keys, config)
        assert result.batches_total == 8
        assert result.cells_processed == 100
        assert sorted(store.rows) == [k.encode() for k in keys]
        assert result.row_keys == tuple(k.encode() for k in keys)

    def test_partial_failure(self, store):
        store.fail_write_keys.add(b"row-2")
        keys = [f"row-{i}" for i in range(5)]
        result = operations.write_rows(store, keys, self._config(batch_size=2))
        assert isinstance(result.partial_failure, PartialBatchFailure)
        assert len(result.partial_failure.failed_entries) == 3
        assert result.partial_failure.total_entries_attempted == 15
        # unacknowledged writes are not reported as written
        assert result.cells_processed == 12
        assert result.rows_processed == 4
        assert b"row-2" not in result.row_keys
        assert result.failure_count == 3
        assert not result.succeeded
        assert b"row-2" not in store.rows

    def test_sink_always_closed(self, store):
        sink = mock.Mock()
        with mock.patch.object(store, "mutations_batcher", return_value=sink):
            with mock.patch(
                "google.cloud.bigtable_batch.operations.ConcurrencyCoordinator.dispatch",
                side_effect=KeyboardInterrupt,
            ):
                with pytest.raises(KeyboardInterrupt):
                    operations.write_rows(store, ["a"], self._config())
        sink.close.assert_called_once_with()

    def test_batcher_kwargs(self, store):
        config = self._config(flush_limit_mutation_count=7, flush_limit_bytes=1024)
        with mock.patch.object(
            store, "mutations_batcher", wraps=store.mutations_batcher
        ) as batcher:
            operations.write_rows(store, ["a"], config)
        batcher.assert_called_once_with(
            flush_interval=None,
            flush_limit_mutation_count=7,
            flush_limit_bytes=1024,
            flow_control_max_mutation_count=100_000,
            flow_control_max_bytes=100 * 1024 * 1024,
        )
        assert store.batchers[0].closed

    def test_custom_builder(self, store):
        builder = MutationBatchBuilder("other", ["x"], PayloadSpec.fixed(4))
        result = operations.write_rows(store, ["a", "b"], self._config(), builder=builder)
        assert result.cells_processed == 2
        assert {c.family for c in store.read_row("a")} == {"other"}

    def test_batch_running_past_timeout_is_rejected(self, store):
        """
        a batch still building entries when the coordinator gives up must not
        stage them behind the final flush
        """
        from google.cloud.bigtable_batch.client import SerializedMutationSink

        release = threading.Event()
        rejected = threading.Event()

        class _ObservedSink(SerializedMutationSink):
            def append(self, mutation_entry):
                try:
                    super().append(mutation_entry)
                except RuntimeError:
                    rejected.set()
                    raise

        real = MutationBatchBuilder("cf", ["q"], PayloadSpec.fixed(1))

        def build(row_key):
            if row_key == b"slow":
                release.wait(5)
            return real.build(row_key)

        builder = mock.Mock()
        builder.build.side_effect = build
        config = self._config(
            batch_size=1, mode=ExecutionMode.parallel(2), termination_timeout=0.2
        )
        try:
            with mock.patch.object(operations, "SerializedMutationSink", _ObservedSink):
                result = operations.write_rows(store, ["a", "slow"], config, builder=builder)
        finally:
            release.set()
        assert rejected.wait(5)
        assert result.timed_out.pending_batches == 1
        assert result.row_keys == (b"a",)
        assert result.rows_processed == 1
        assert [e.row_key for e in store.batchers[0].appended] == [b"a"]
        assert b"slow" not in store.rows


class TestGetRowSize:
    def test_size(self, store):
        store.put("row-1", "cf", "column-0", b"x" * 100)
        store.put("row-1", "cf", "column-1", b"x" * 50)
        expected = (5 + 2 + 8 + 100) + (5 + 2 + 8 + 50)
        assert operations.get_row_size(store, "row-1") == expected
        assert operations.get_row_size(store, b"row-1") == expected

    def test_missing(self, store):
        assert operations.get_row_size(store, "nope") is None


class TestListColumnQualifiers:
    @pytest.fixture
    def table(self, store):
        store.put("user#1", "cf", "name", b"a")
        store.put("user#1", "cf", "email", b"a")
        store.put("user#1", "cf", "name", b"b", timestamp_micros=5)
        store.put("user#1", "other", "zzz", b"a")
        store.put("user#2", "cf", "name", b"a")
        store.put("item#1", "cf", "price", b"1")
        store.put("item#2", "other", "zzz", b"1")
        return store

    def test_all(self, table):
        result = operations.list_column_qualifiers(table, "cf")
        assert result == {
            b"item#1": [b"price"],
            b"user#1": [b"email", b"name"],
            b"user#2": [b"name"],
        }

    def test_regex(self, table):
        result = operations.list_column_qualifiers(table, "cf", "na.*")
        assert result == {b"user#1": [b"name"], b"user#2": [b"name"]}

    def test_prefix(self, table):
        result = operations.list_column_qualifiers(table, "cf", ".*", "item#")
        assert result == {b"item#1": [b"price"]}
        query = table.read_queries[-1]
        assert query.row_ranges[0].start_key == b"item#"
        assert query.row_ranges[0].end_key == b"item$"

    def test_no_match(self, table):
        assert operations.list_column_qualifiers(table, "missing") == {}

    def test_invalid_regex(self, table):
        with pytest.raises(InvalidConfiguration):
            operations.list_column_qualifiers(table, "cf", "(")


class TestQualifierFilter:
    def test_chain(self):
        from google.cloud.bigtable.data import row_filters

        result = operations.qualifier_filter("cf.v2", "col.*")
        assert isinstance(result, row_filters.RowFilterChain)
        family_filter, column_filter = result.filters
        assert isinstance(family_filter, row_filters.FamilyNameRegexFilter)
        assert family_filter.regex == b"cf\\.v2"
        assert isinstance(column_filter, row_filters.ColumnQualifierRegexFilter)
        assert column_filter.regex == b"col.*"

    def test_invalid(self):
        with pytest.raises(InvalidConfiguration):
            operations.qualifier_filter("cf", "[")


class TestPrefixRange:
    def test_range(self):
        result = operations.prefix_range("abc")
        assert result.start_key == b"abc"
        assert result.start_is_inclusive
        assert result.end_key == b"abd"
        assert not result.end_is_inclusive

    def test_trailing_max_byte(self):
        result = operations.prefix_range(b"a\xff")
        assert result.end_key == b"b"
