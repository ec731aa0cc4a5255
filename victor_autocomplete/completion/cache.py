# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
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

"""In-memory LRU cache of completions keyed by rendered prompt."""

import logging
import threading
from collections import OrderedDict
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CACHE_CAPACITY = 1000


class CompletionCache:
    """Bounded LRU map from rendered prompt to completion text.

    Keys match exactly (case and whitespace sensitive). ``get`` bumps the
    entry to most-recently-used; ``put`` beyond capacity evicts the
    least-recently-used entry. There is no other invalidation.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY):
        """Initialize the cache.

        Args:
            capacity: Maximum number of entries (must be positive)
        """
        if capacity <= 0:
            raise ValueError(f"Cache capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: OrderedDict[str, str] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: str) -> Optional[str]:
        """Look up a completion and mark it most recently used."""
        with self._lock:
            value = self._entries.get(key)
            if value is not None:
                self._entries.move_to_end(key)
            return value

    def put(self, key: str, value: str) -> None:
        """Store a completion, evicting the least recently used entry if full."""
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cached completion ({len(evicted)} char prompt)")

    def clear(self) -> None:
        """Drop all entries."""
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
