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
Helper functions used in various places in the library.
"""
from __future__ import annotations

from typing import Any

from google.cloud.bigtable_batch.exceptions import InvalidConfiguration


def _to_bytes(value: str | bytes, field_name: str = "value") -> bytes:
    """
    Encode str values as utf-8. bytes values are passed through unchanged.
    """
    if isinstance(value, str):
        return value.encode("utf-8")
    elif isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise TypeError(f"{field_name} must be str or bytes, got {type(value).__name__}")


def _row_key_str(row_key: bytes) -> str:
    """Human readable form of a row key, for logs and console output"""
    return row_key.decode("utf-8", errors="backslashreplace")


def _prefix_end_key(prefix: bytes) -> bytes | None:
    """
    Returns the smallest key that is greater than every key starting with
    prefix, or None if the prefix has no upper bound (empty, or all 0xff)
    """
    end = bytearray(prefix)
    while end:
        if end[-1] < 0xFF:
            end[-1] += 1
            return bytes(end)
        end.pop()
    return None


def _validate_positive_int(value: Any, name: str) -> int:
    """
    Raises InvalidConfiguration unless value is an int greater than 0.
    bool is rejected, even though it subclasses int.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidConfiguration(f"{name} must be greater than 0, got {value}")
    return value


def _validate_timeout(value: Any, name: str) -> float | None:
    """
    Timeouts may be None (wait forever) or a positive number of seconds
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfiguration(f"{name} must be a number, got {value!r}")
    if value <= 0:
        raise InvalidConfiguration(f"{name} must be greater than 0, got {value}")
    return float(value)
