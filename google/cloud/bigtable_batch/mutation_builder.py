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

import random
import uuid

from dataclasses import dataclass
from typing import Sequence

from google.cloud.bigtable.data import RowMutationEntry
from google.cloud.bigtable.data import SetCell

from google.cloud.bigtable_batch._helpers import _to_bytes
from google.cloud.bigtable_batch._helpers import _validate_positive_int
from google.cloud.bigtable_batch.exceptions import InvalidConfiguration

DEFAULT_MIN_PAYLOAD_BYTES = 200
DEFAULT_MAX_PAYLOAD_BYTES = 500


@dataclass(frozen=True)
class PayloadSpec:
    """
    Describes the values written by the write path. Each cell gets a value
    whose length is drawn uniformly from [min_bytes, max_bytes]. The content
    is filler repeated to that length.
    """

    min_bytes: int = DEFAULT_MIN_PAYLOAD_BYTES
    max_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
    filler: bytes = b"x"

    def __post_init__(self):
        for name in ("min_bytes", "max_bytes"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
        if self.min_bytes < 0:
            raise InvalidConfiguration("min_bytes must be >= 0")
        if self.max_bytes < self.min_bytes:
            raise InvalidConfiguration(
                f"max_bytes ({self.max_bytes}) must be >= min_bytes ({self.min_bytes})"
            )
        if not self.filler:
            raise InvalidConfiguration("filler must not be empty")

    @classmethod
    def fixed(cls, size: int) -> PayloadSpec:
        return cls(min_bytes=size, max_bytes=size)

    def generate(self, rng: random.Random) -> bytes:
        length = rng.randint(self.min_bytes, self.max_bytes)
        repeats = length // len(self.filler) + 1
        return (self.filler * repeats)[:length]


def column_qualifiers(count: int, prefix: str = "column-") -> list[str]:
    """Qualifiers column-0 .. column-{count-1}"""
    count = _validate_positive_int(count, "num_columns")
    return [f"{prefix}{i}" for i in range(count)]


def generate_row_keys(count: int, prefix: str = "rowkey-") -> list[bytes]:
    """count unique, randomly distributed row keys"""
    count = _validate_positive_int(count, "num_rows")
    return [f"{prefix}{uuid.uuid4()}".encode() for _ in range(count)]


class MutationBatchBuilder:
    """
    Builds the RowMutationEntry objects written for a row: one SetCell per
    qualifier, each in its own entry.
    """

    def __init__(
        self,
        column_family: str,
        qualifiers: Sequence[str | bytes],
        payload: PayloadSpec | None = None,
        *,
        rng: random.Random | None = None,
    ):
        if not isinstance(column_family, str) or not column_family:
            raise InvalidConfiguration("column_family must be a non-empty string")
        if not qualifiers:
            raise InvalidConfiguration("at least one column qualifier is required")
        self.column_family = column_family
        self.qualifiers = [_to_bytes(q, "qualifier") for q in qualifiers]
        self.payload = payload if payload is not None else PayloadSpec()
        self._rng = rng if rng is not None else random.Random()

    @property
    def cells_per_row(self) -> int:
        return len(self.qualifiers)

    def build(self, row_key: str | bytes) -> list[RowMutationEntry]:
        row_key = _to_bytes(row_key, "row_key")
        return [
            RowMutationEntry(
                row_key,
                SetCell(self.column_family, qualifier, self.payload.generate(self._rng)),
            )
            for qualifier in self.qualifiers
        ]
