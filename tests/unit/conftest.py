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
import pytest

from _fakes import FakeRowStore


@pytest.fixture
def store():
    return FakeRowStore()


@pytest.fixture
def populated_store():
    """100 rows rowkey-00 .. rowkey-99, three cells each"""
    from google.cloud.bigtable_batch.operations import default_row_keys

    fake = FakeRowStore()
    fake.populate(default_row_keys())
    return fake
