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
"""
Command line entry points for batch reads and writes against a Bigtable table.

    bigtable-batch read-batch <project> <instance> <table> <batch_size> <use_threads> [thread_count]
    bigtable-batch write <project> <instance> <table> <family> <num_rows> <num_columns>
    bigtable-batch row-size <project> <instance> <table> <row_key>
    bigtable-batch list-qualifiers <project> <instance> <table> <family> [regex] [row_key_prefix]
"""
from __future__ import annotations

from typing import Callable, TypeVar

import logging
import os

import click

from google.cloud.bigtable_batch._helpers import _row_key_str
from google.cloud.bigtable_batch.client import RowStoreClient
from google.cloud.bigtable_batch.client import open_row_store
from google.cloud.bigtable_batch.config import EMULATOR_ENV_VAR
from google.cloud.bigtable_batch.config import ReadConfig
from google.cloud.bigtable_batch.config import StoreConfig
from google.cloud.bigtable_batch.config import WriteConfig
from google.cloud.bigtable_batch.coordinator import DEFAULT_TERMINATION_TIMEOUT
from google.cloud.bigtable_batch.coordinator import DEFAULT_WORKER_COUNT
from google.cloud.bigtable_batch.coordinator import ExecutionMode
from google.cloud.bigtable_batch.exceptions import ConnectionFailure
from google.cloud.bigtable_batch.exceptions import InvalidConfiguration
from google.cloud.bigtable_batch.metrics import AggregateResult
from google.cloud.bigtable_batch.mutation_builder import DEFAULT_MAX_PAYLOAD_BYTES
from google.cloud.bigtable_batch.mutation_builder import DEFAULT_MIN_PAYLOAD_BYTES
from google.cloud.bigtable_batch.mutation_builder import PayloadSpec
from google.cloud.bigtable_batch.mutation_builder import generate_row_keys
from google.cloud.bigtable_batch import operations

T = TypeVar("T")

SEPARATOR = "-" * 40
BANNER = "=" * 50


def _with_store(store_config: StoreConfig, fn: Callable[[RowStoreClient], T]) -> T:
    """
    Open the table, run fn against it and close it again. Connection
    problems are reported as a fatal command error.
    """
    if store_config.uses_emulator:
        click.echo(f"Using Bigtable emulator at {os.environ[EMULATOR_ENV_VAR]}")
    try:
        with open_row_store(
            store_config.project,
            store_config.instance_id,
            store_config.table_id,
            app_profile_id=store_config.app_profile_id,
        ) as store:
            return fn(store)
    except ConnectionFailure as e:
        raise click.ClickException(str(e)) from e


def _store_config(project: str, instance: str, table: str) -> StoreConfig:
    try:
        return StoreConfig(project=project, instance_id=instance, table_id=table)
    except InvalidConfiguration as e:
        raise click.UsageError(str(e)) from e


def _print_header(title: str, settings: list[tuple[str, object]]) -> None:
    click.echo(title)
    for name, value in settings:
        click.echo(f"  {name}: {value}")
    click.echo(SEPARATOR)


def _print_summary(result: AggregateResult, verb: str, total: int) -> None:
    click.echo("\n" + BANNER)
    click.echo(f"{verb} Complete!")
    click.echo(f"Total Rows {verb}: {result.rows_processed}/{total}")
    click.echo(f"Total Cells {verb}: {result.cells_processed}")
    click.echo(f"Overall Time: {result.elapsed_millis} ms")
    click.echo(
        f"Batches Completed: {result.batches_completed}/{result.batches_total}"
    )
    click.echo(f"Failures: {result.failure_count}")
    for failure in result.per_batch_errors:
        click.echo(f"  batch {failure.batch_index}: {failure.cause!r}")
    if result.partial_failure is not None:
        click.echo(f"  unconfirmed writes: {result.partial_failure}")
    if result.timed_out is not None:
        click.echo(f"  warning: {result.timed_out.message}")
    if result.cancelled:
        click.echo("  warning: run was cancelled before all batches started")
    click.echo(BANNER)


def _load_row_keys(keys_file) -> list[bytes]:
    if keys_file is None:
        return operations.default_row_keys()
    keys = [line.strip() for line in keys_file]
    return [k.encode() for k in keys if k]


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output.")
def cli(verbose: bool):
    """Batch row access for Cloud Bigtable tables."""
    logging.basicConfig(
        format="%(levelname)s:%(threadName)s:%(message)s",
        level=logging.DEBUG if verbose else logging.INFO,
    )


@cli.command("read-batch")
@click.argument("project")
@click.argument("instance")
@click.argument("table")
@click.argument("batch_size", type=int)
@click.argument("use_threads", type=bool)
@click.argument("thread_count", type=int, required=False, default=DEFAULT_WORKER_COUNT)
@click.option(
    "--keys-file",
    type=click.File("r"),
    default=None,
    help=(
        "File with one row key per line. Defaults to rowkey-00 .. rowkey-99. "
        "Batches are taken in file order, but rows within a batch are "
        "reported in row key order, so an unsorted file is not echoed back "
        "in file order."
    ),
)
@click.option(
    "--timeout",
    type=float,
    default=DEFAULT_TERMINATION_TIMEOUT,
    show_default=True,
    help="Seconds to wait for worker threads to finish.",
)
def read_batch(
    project, instance, table, batch_size, use_threads, thread_count, keys_file, timeout
):
    """Read a list of rows in batches, sequentially or on a thread pool."""
    store_config = _store_config(project, instance, table)
    try:
        mode = (
            ExecutionMode.parallel(thread_count)
            if use_threads
            else ExecutionMode.sequential()
        )
        config = ReadConfig(
            batch_size=batch_size, mode=mode, termination_timeout=timeout
        )
    except InvalidConfiguration as e:
        raise click.UsageError(str(e)) from e
    row_keys = _load_row_keys(keys_file)
    _print_header(
        "Starting Bigtable Batch Row Read:",
        [
            ("Project ID", project),
            ("Table Name", table),
            ("Total Rows to Read", len(row_keys)),
            ("Batch Size", batch_size),
            ("Mode", mode),
        ],
    )
    result = _with_store(
        store_config,
        lambda store: operations.read_rows_batched(store, row_keys, config),
    )
    _print_summary(result, "Read", len(row_keys))
    read_keys = [_row_key_str(k) for k in result.row_keys]
    click.echo(f"Successfully Read Row Keys ({len(read_keys)}):\n{read_keys}")


@cli.command("write")
@click.argument("project")
@click.argument("instance")
@click.argument("table")
@click.argument("family")
@click.argument("num_rows", type=int)
@click.argument("num_columns", type=int)
@click.option("--min-bytes", type=int, default=DEFAULT_MIN_PAYLOAD_BYTES, show_default=True)
@click.option("--max-bytes", type=int, default=DEFAULT_MAX_PAYLOAD_BYTES, show_default=True)
@click.option(
    "--batch-size",
    type=int,
    default=100,
    show_default=True,
    help="Rows handed to the sink per unit of work.",
)
@click.option(
    "--threads",
    type=int,
    default=None,
    help="Generate batches on this many threads. Sequential if not set.",
)
def write(
    project,
    instance,
    table,
    family,
    num_rows,
    num_columns,
    min_bytes,
    max_bytes,
    batch_size,
    threads,
):
    """Write NUM_ROWS random rows with NUM_COLUMNS cells each."""
    store_config = _store_config(project, instance, table)
    try:
        mode = (
            ExecutionMode.parallel(threads)
            if threads is not None
            else ExecutionMode.sequential()
        )
        config = WriteConfig(
            column_family=family,
            num_columns=num_columns,
            payload=PayloadSpec(min_bytes=min_bytes, max_bytes=max_bytes),
            batch_size=batch_size,
            mode=mode,
        )
        row_keys = generate_row_keys(num_rows)
    except InvalidConfiguration as e:
        raise click.UsageError(str(e)) from e
    _print_header(
        "Starting data write operation to Bigtable:",
        [
            ("Project ID", project),
            ("Instance ID", instance),
            ("Table Name", table),
            ("Column Family", family),
            ("Number of rowkeys to write", num_rows),
            ("Number of columns per row", num_columns),
            ("Value size", f"{min_bytes}..{max_bytes} bytes"),
            ("Mode", mode),
        ],
    )
    result = _with_store(
        store_config,
        lambda store: operations.write_rows(store, row_keys, config),
    )
    _print_summary(result, "Written", num_rows)


@cli.command("row-size")
@click.argument("project")
@click.argument("instance")
@click.argument("table")
@click.argument("row_key")
def row_size(project, instance, table, row_key):
    """Print the total size of a single row in bytes."""
    store_config = _store_config(project, instance, table)
    _print_header(
        "Starting row size calculation for Bigtable:",
        [
            ("Project ID", project),
            ("Instance ID", instance),
            ("Table Name", table),
            ("Row Key", row_key),
        ],
    )
    size = _with_store(
        store_config, lambda store: operations.get_row_size(store, row_key)
    )
    if size is None:
        raise click.ClickException(f"Row '{row_key}' not found")
    click.echo(f"Total size of row '{row_key}' is {size} bytes")


@cli.command("list-qualifiers")
@click.argument("project")
@click.argument("instance")
@click.argument("table")
@click.argument("family")
@click.argument("regex", required=False, default=".*")
@click.argument("row_key_prefix", required=False, default=None)
def list_qualifiers(project, instance, table, family, regex, row_key_prefix):
    """List the unique column qualifiers of FAMILY for each row."""
    store_config = _store_config(project, instance, table)
    settings = [
        ("Project ID", project),
        ("Instance ID", instance),
        ("Table Name", table),
        ("Column Family", family),
        ("Regex Pattern", regex),
    ]
    if row_key_prefix:
        settings.append(("Row Key Prefix", row_key_prefix))
    try:
        operations.qualifier_filter(family, regex)
    except InvalidConfiguration as e:
        raise click.UsageError(str(e)) from e
    _print_header("Reading from Bigtable with the following parameters:", settings)
    qualifiers = _with_store(
        store_config,
        lambda store: operations.list_column_qualifiers(
            store, family, regex, row_key_prefix
        ),
    )
    for key, row_qualifiers in qualifiers.items():
        click.echo(f"Row Key: {_row_key_str(key)}")
        click.echo("  Qualifiers:")
        for qualifier in row_qualifiers:
            click.echo(f"    - {_row_key_str(qualifier)}")
        click.echo()
    click.echo(SEPARATOR)
    click.echo("Read operation complete.")


def main():
    cli()
