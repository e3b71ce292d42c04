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

from typing import Any, Iterable, Iterator, Protocol, TYPE_CHECKING

import abc
import contextlib
import logging
import threading

from google.api_core import exceptions as core_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud.bigtable import data as bigtable_data

from google.cloud.bigtable_batch.exceptions import ConnectionFailure

if TYPE_CHECKING:
    from google.cloud.bigtable.data import ReadRowsQuery
    from google.cloud.bigtable.data import Row
    from google.cloud.bigtable.data import RowMutationEntry
    from google.cloud.bigtable.data.row_filters import RowFilter

LOGGER = logging.getLogger(__name__)


class MutationSink(Protocol):
    """
    Buffering write channel for one table, shaped like
    google.cloud.bigtable.data.MutationsBatcher
    """

    def append(self, mutation_entry: "RowMutationEntry") -> None:
        """Stage an entry. It is sent with a later automatic flush or on close"""

    def close(self) -> None:
        """
        Flush every staged entry and release the sink.

        Raises:
          - MutationsExceptionGroup if any entry could not be applied
        """


class RowStoreClient(abc.ABC):
    """
    Handle to a single logical table in a wide-column row store.

    Implementations must be safe to share between worker threads.
    """

    @property
    @abc.abstractmethod
    def table_name(self) -> str:
        raise NotImplementedError

    @abc.abstractmethod
    def read_row(
        self, row_key: str | bytes, *, row_filter: "RowFilter" | None = None
    ) -> "Row" | None:
        """
        Read a single row. Returns None if the row does not exist
        """
        raise NotImplementedError

    @abc.abstractmethod
    def read_rows(self, query: "ReadRowsQuery") -> Iterable["Row"]:
        """
        Return a lazy, finite, non-restartable stream of the rows selected by
        query, in row key order
        """
        raise NotImplementedError

    @abc.abstractmethod
    def mutations_batcher(self, **kwargs) -> MutationSink:
        """
        Open a bulk-mutation sink for this table. Keyword arguments follow
        Table.mutations_batcher.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release resources held by the client"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class SerializedMutationSink:
    """
    Lets several worker threads share one MutationSink.

    append() and close() hold the same lock. An entry is therefore either
    staged before close() starts its final flush, or rejected with
    RuntimeError. It is never staged behind the final flush and left unsent.
    """

    def __init__(self, sink: MutationSink):
        self._sink = sink
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, mutation_entry: "RowMutationEntry") -> None:
        """
        Raises:
          - RuntimeError if the sink was already closed
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot append to closed MutationsBatcher")
            self._sink.append(mutation_entry)

    def close(self) -> None:
        """
        Flush and release the wrapped sink. Only the first call has any
        effect.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._sink.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class BigtableRowStore(RowStoreClient):
    """
    RowStoreClient backed by a Cloud Bigtable table.

    Credentials and endpoint come from the environment, as resolved by the
    Bigtable data client (including BIGTABLE_EMULATOR_HOST).
    """

    def __init__(
        self,
        project: str | None,
        instance_id: str,
        table_id: str,
        *,
        app_profile_id: str | None = None,
        client: bigtable_data.BigtableDataClient | None = None,
        **client_kwargs: Any,
    ):
        """
        Args:
          - project: the project which the instance belongs to. If None,
              it is inferred from the environment.
          - instance_id: the Bigtable instance id
          - table_id: the table to read from and write to
          - app_profile_id: the app profile used for requests
          - client: an existing BigtableDataClient. If given, it is not
              closed by this object.
          - client_kwargs: passed to BigtableDataClient when one is created
        """
        self._owns_client = client is None
        if client is None:
            client = bigtable_data.BigtableDataClient(project=project, **client_kwargs)
        self._client = client
        try:
            self._table = client.get_table(
                instance_id, table_id, app_profile_id=app_profile_id
            )
        except Exception:
            if self._owns_client:
                client.close()
            raise

    @property
    def table_name(self) -> str:
        return self._table.table_name

    def read_row(
        self, row_key: str | bytes, *, row_filter: "RowFilter" | None = None
    ) -> "Row" | None:
        return self._table.read_row(row_key, row_filter=row_filter)

    def read_rows(self, query: "ReadRowsQuery") -> Iterable["Row"]:
        return self._table.read_rows_stream(query)

    def mutations_batcher(self, **kwargs) -> bigtable_data.MutationsBatcher:
        return self._table.mutations_batcher(**kwargs)

    def close(self) -> None:
        self._table.close()
        if self._owns_client:
            self._client.close()


@contextlib.contextmanager
def open_row_store(
    project: str | None,
    instance_id: str,
    table_id: str,
    **kwargs: Any,
) -> Iterator[BigtableRowStore]:
    """
    Acquire a BigtableRowStore for the duration of a with block. The handle
    is closed on every exit path, including exceptions.

    Raises:
      - ConnectionFailure if the client cannot be created
    """
    try:
        store = BigtableRowStore(project, instance_id, table_id, **kwargs)
    except (
        auth_exceptions.GoogleAuthError,
        core_exceptions.GoogleAPIError,
        OSError,
        ValueError,
    ) as e:
        raise ConnectionFailure(f"Failed to create BigtableDataClient: {e}", e) from e
    LOGGER.debug("opened row store for %s", store.table_name)
    try:
        yield store
    finally:
        store.close()
