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

"""Tests for the completion LRU cache."""

import pytest

from victor_autocomplete.completion.cache import CompletionCache


class TestCompletionCache:
    """Tests for CompletionCache."""

    def test_get_missing_returns_none(self):
        cache = CompletionCache(capacity=2)
        assert cache.get("nothing") is None

    def test_put_then_get(self):
        cache = CompletionCache(capacity=2)
        cache.put("prompt", "completion")
        assert cache.get("prompt") == "completion"

    def test_keys_are_exact(self):
        """Keys are case and whitespace sensitive."""
        cache = CompletionCache(capacity=4)
        cache.put("def f():", "pass")
        assert cache.get("def f(): ") is None
        assert cache.get("DEF F():") is None

    def test_evicts_least_recently_used(self):
        """Inserting N+1 entries evicts exactly the oldest one."""
        cache = CompletionCache(capacity=3)
        for key in ("a", "b", "c", "d"):
            cache.put(key, key.upper())

        assert len(cache) == 3
        assert "a" not in cache
        assert all(key in cache for key in ("b", "c", "d"))

    def test_get_protects_from_eviction(self):
        cache = CompletionCache(capacity=3)
        cache.put("a", "A")
        cache.put("b", "B")
        cache.put("c", "C")

        assert cache.get("a") == "A"
        cache.put("d", "D")

        assert "a" in cache
        assert "b" not in cache
        assert cache.keys() == ["c", "a", "d"]

    def test_overwrite_refreshes_recency(self):
        cache = CompletionCache(capacity=2)
        cache.put("a", "A")
        cache.put("b", "B")
        cache.put("a", "A2")
        cache.put("c", "C")

        assert cache.get("a") == "A2"
        assert "b" not in cache

    def test_contains_does_not_bump_recency(self):
        cache = CompletionCache(capacity=2)
        cache.put("a", "A")
        cache.put("b", "B")
        assert "a" in cache
        cache.put("c", "C")
        assert "a" not in cache

    def test_clear(self):
        cache = CompletionCache(capacity=2)
        cache.put("a", "A")
        cache.clear()
        assert len(cache) == 0

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            CompletionCache(capacity=0)
