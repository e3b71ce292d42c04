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
from google.cloud.bigtable_batch import version as package_version

from google.cloud.bigtable_batch.batch_executor import BatchExecutor
from google.cloud.bigtable_batch.batch_executor import BatchMode
from google.cloud.bigtable_batch.batch_executor import BatchOutcome
from google.cloud.bigtable_batch.client import BigtableRowStore
from google.cloud.bigtable_batch.client import MutationSink
from google.cloud.bigtable_batch.client import RowStoreClient
from google.cloud.bigtable_batch.client import SerializedMutationSink
from google.cloud.bigtable_batch.client import open_row_store
from google.cloud.bigtable_batch.config import ReadConfig
from google.cloud.bigtable_batch.config import StoreConfig
from google.cloud.bigtable_batch.config import WriteConfig
from google.cloud.bigtable_batch.coordinator import ConcurrencyCoordinator
from google.cloud.bigtable_batch.coordinator import ExecutionMode
from google.cloud.bigtable_batch.exceptions import BatchFailure
from google.cloud.bigtable_batch.exceptions import BigtableBatchError
from google.cloud.bigtable_batch.exceptions import ConnectionFailure
from google.cloud.bigtable_batch.exceptions import CoordinatorTimeout
from google.cloud.bigtable_batch.exceptions import InvalidConfiguration
from google.cloud.bigtable_batch.exceptions import PartialBatchFailure
from google.cloud.bigtable_batch.metrics import AggregateResult
from google.cloud.bigtable_batch.metrics import MetricsAggregator
from google.cloud.bigtable_batch.mutation_builder import MutationBatchBuilder
from google.cloud.bigtable_batch.mutation_builder import PayloadSpec
from google.cloud.bigtable_batch.operations import default_row_keys
from google.cloud.bigtable_batch.operations import get_row_size
from google.cloud.bigtable_batch.operations import list_column_qualifiers
from google.cloud.bigtable_batch.operations import prefix_range
from google.cloud.bigtable_batch.operations import qualifier_filter
from google.cloud.bigtable_batch.operations import read_rows_batched
from google.cloud.bigtable_batch.operations import write_rows
from google.cloud.bigtable_batch.partitioner import Batch
from google.cloud.bigtable_batch.partitioner import partition

__version__: str = package_version.__version__

__all__ = (
    "AggregateResult",
    "Batch",
    "BatchExecutor",
    "BatchFailure",
    "BatchMode",
    "BatchOutcome",
    "BigtableBatchError",
    "BigtableRowStore",
    "ConcurrencyCoordinator",
    "ConnectionFailure",
    "CoordinatorTimeout",
    "ExecutionMode",
    "InvalidConfiguration",
    "MetricsAggregator",
    "MutationBatchBuilder",
    "MutationSink",
    "PartialBatchFailure",
    "PayloadSpec",
    "ReadConfig",
    "RowStoreClient",
    "SerializedMutationSink",
    "StoreConfig",
    "WriteConfig",
    "default_row_keys",
    "get_row_size",
    "list_column_qualifiers",
    "open_row_store",
    "partition",
    "prefix_range",
    "qualifier_filter",
    "read_rows_batched",
    "write_rows",
)
