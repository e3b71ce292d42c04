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

from dataclasses import dataclass
from typing import Sequence

from google.cloud.bigtable_batch._helpers import _to_bytes
from google.cloud.bigtable_batch._helpers import _validate_positive_int


@dataclass(frozen=True)
class Batch:
    """
    A contiguous slice of the input row keys, processed as one unit of work.
    index is 1-based and follows the position of the slice in the input.
    """

    index: int
    keys: tuple[bytes, ...]

    def __len__(self) -> int:
        return len(self.keys)


def partition(keys: Sequence[str | bytes], batch_size: int) -> list[Batch]:
    """
    Split an ordered list of row keys into contiguous batches.

    Every batch holds batch_size keys, except the last, which holds the
    remainder. An empty key list produces no batches.

    Raises:
      - InvalidConfiguration if batch_size is not a positive integer
    """
    batch_size = _validate_positive_int(batch_size, "batch_size")
    encoded = [_to_bytes(k, "row_key") for k in keys]
    return [
        Batch(index=n + 1, keys=tuple(encoded[i : i + batch_size]))
        for n, i in enumerate(range(0, len(encoded), batch_size))
    ]
