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

from google.api_core import exceptions as core_exceptions
from google.cloud.bigtable.data.exceptions import FailedMutationEntryError

if TYPE_CHECKING:
    from google.cloud.bigtable.data import RowMutationEntry
    from google.cloud.bigtable.data.exceptions import MutationsExceptionGroup


class BigtableBatchError(Exception):
    """Base class for errors raised by the batch row-access engine"""


class InvalidConfiguration(BigtableBatchError, ValueError):
    """
    Raised when a batch size, worker count, payload range or other argument
    is malformed. Always raised before any store I/O is attempted.
    """


class ConnectionFailure(BigtableBatchError):
    """
    Raised when a RowStoreClient handle cannot be established
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.__cause__ = cause


class BatchFailure(BigtableBatchError):
    """
    Represents a single batch whose I/O failed.

    BatchFailures are never raised across the coordinator boundary. They are
    returned inside a BatchOutcome and collected in
    AggregateResult.per_batch_errors.
    """

    def __init__(
        self,
        batch_index: int,
        cause: Exception,
        row_keys: Sequence[bytes] = (),
    ):
        message = f"Failed batch at index {batch_index} with cause: {cause!r}"
        super().__init__(message)
        self.batch_index = batch_index
        self.row_keys = tuple(row_keys)
        self.__cause__ = cause

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__


def _entries_message(failed: int, attempted: int) -> str:
    noun = "entry" if failed == 1 else "entries"
    return f"{failed} failed {noun} from {attempted} attempted."


class PartialBatchFailure(BigtableBatchError):
    """
    Attached to an AggregateResult when the bulk-mutation sink reports that
    one or more entries could not be applied.

    failed_entries holds the entries known to have failed. Failures that could
    not be attributed to a specific entry are counted in unattributed_errors.
    """

    def __init__(
        self,
        failed_entries: Sequence["RowMutationEntry"],
        total_entries: int,
        unattributed_errors: Sequence[Exception] = (),
    ):
        self.failed_entries = list(failed_entries)
        self.unattributed_errors = list(unattributed_errors)
        self.total_entries_attempted = total_entries
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        message = _entries_message(
            len(self.failed_entries), self.total_entries_attempted
        )
        if self.unattributed_errors:
            message += f" ({len(self.unattributed_errors)} unattributed errors)"
        return message

    @property
    def failed_cell_count(self) -> int:
        return sum(len(entry.mutations) for entry in self.failed_entries)

    @classmethod
    def from_exception_group(
        cls, group: "MutationsExceptionGroup"
    ) -> PartialBatchFailure:
        """
        Build a PartialBatchFailure from the MutationsExceptionGroup raised
        when a MutationsBatcher is closed
        """
        failed_entries = []
        unattributed = []
        for exc in group.exceptions:
            if isinstance(exc, FailedMutationEntryError):
                failed_entries.append(exc.entry)
            else:
                unattributed.append(exc)
        return cls(failed_entries, group.total_entries_attempted, unattributed)


class CoordinatorTimeout(BigtableBatchError, core_exceptions.DeadlineExceeded):
    """
    Reported when the worker pool does not quiesce within the termination
    timeout. Not fatal: completed batch outcomes are still returned.
    """

    def __init__(self, pending_batches: int, timeout: float):
        super().__init__(
            f"{pending_batches} batches still running after waiting {timeout}s "
            "for the worker pool to terminate"
        )
        self.pending_batches = pending_batches
        self.timeout = timeout
