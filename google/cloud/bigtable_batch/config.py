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
Configuration objects for batch operations. All values are validated on
construction, so a bad configuration fails before any store I/O.
"""
from __future__ import annotations

import os

from dataclasses import dataclass, field
from typing import Mapping, Optional

from google.cloud.bigtable.data.row_filters import RowFilter

from google.cloud.bigtable_batch._helpers import _validate_positive_int
from google.cloud.bigtable_batch._helpers import _validate_timeout
from google.cloud.bigtable_batch.coordinator import DEFAULT_TERMINATION_TIMEOUT
from google.cloud.bigtable_batch.coordinator import ExecutionMode
from google.cloud.bigtable_batch.exceptions import InvalidConfiguration
from google.cloud.bigtable_batch.mutation_builder import PayloadSpec

PROJECT_ENV_VARS = ("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT")
INSTANCE_ENV_VAR = "BIGTABLE_INSTANCE"
EMULATOR_ENV_VAR = "BIGTABLE_EMULATOR_HOST"

_MB_SIZE = 1024 * 1024


@dataclass(frozen=True)
class StoreConfig:
    """Coordinates of the table a run operates on"""

    project: Optional[str]
    instance_id: str
    table_id: str
    app_profile_id: Optional[str] = None

    def __post_init__(self):
        for name in ("instance_id", "table_id"):
            if not getattr(self, name):
                raise InvalidConfiguration(f"{name} must not be empty")

    @classmethod
    def from_env(
        cls,
        table_id: str,
        *,
        project: str | None = None,
        instance_id: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> StoreConfig:
        """
        Fill in project and instance from the environment when not given
        """
        environ = os.environ if environ is None else environ
        if project is None:
            project = next(
                (environ[name] for name in PROJECT_ENV_VARS if environ.get(name)), None
            )
        if instance_id is None:
            instance_id = environ.get(INSTANCE_ENV_VAR, "")
        return cls(project=project, instance_id=instance_id, table_id=table_id)

    @property
    def uses_emulator(self) -> bool:
        return bool(os.environ.get(EMULATOR_ENV_VAR))


@dataclass(frozen=True)
class ReadConfig:
    """Settings for a batched multi-row read"""

    batch_size: int
    mode: ExecutionMode = field(default_factory=ExecutionMode.sequential)
    termination_timeout: Optional[float] = DEFAULT_TERMINATION_TIMEOUT
    row_filter: Optional[RowFilter] = None

    def __post_init__(self):
        _validate_positive_int(self.batch_size, "batch_size")
        _validate_timeout(self.termination_timeout, "termination_timeout")


@dataclass(frozen=True)
class WriteConfig:
    """
    Settings for a bulk write. Rows are split into batches of batch_size
    keys; each row gets num_columns cells in column_family.
    """

    column_family: str
    num_columns: int
    payload: PayloadSpec = field(default_factory=PayloadSpec)
    batch_size: int = 100
    mode: ExecutionMode = field(default_factory=ExecutionMode.sequential)
    termination_timeout: Optional[float] = DEFAULT_TERMINATION_TIMEOUT
    flush_interval: Optional[float] = 5
    flush_limit_mutation_count: Optional[int] = 1000
    flush_limit_bytes: int = 20 * _MB_SIZE
    flow_control_max_mutation_count: int = 100_000
    flow_control_max_bytes: int = 100 * _MB_SIZE

    def __post_init__(self):
        if not isinstance(self.column_family, str) or not self.column_family:
            raise InvalidConfiguration("column_family must be a non-empty string")
        _validate_positive_int(self.num_columns, "num_columns")
        _validate_positive_int(self.batch_size, "batch_size")
        _validate_positive_int(self.flush_limit_bytes, "flush_limit_bytes")
        _validate_positive_int(
            self.flow_control_max_mutation_count, "flow_control_max_mutation_count"
        )
        _validate_positive_int(self.flow_control_max_bytes, "flow_control_max_bytes")
        if self.flush_limit_mutation_count is not None:
            _validate_positive_int(
                self.flush_limit_mutation_count, "flush_limit_mutation_count"
            )
        _validate_timeout(self.termination_timeout, "termination_timeout")
        _validate_timeout(self.flush_interval, "flush_interval")

    def batcher_kwargs(self) -> dict:
        """Keyword arguments for Table.mutations_batcher"""
        return {
            "flush_interval": self.flush_interval,
            "flush_limit_mutation_count": self.flush_limit_mutation_count,
            "flush_limit_bytes": self.flush_limit_bytes,
            "flow_control_max_mutation_count": self.flow_control_max_mutation_count,
            "flow_control_max_bytes": self.flow_control_max_bytes,
        }
