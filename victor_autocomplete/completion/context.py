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

"""Context sources for completion prompts.

Symbol definitions come from the host (usually an LSP server) and are
raced against a short timeout so a slow server never delays typing.
Recently edited ranges are tracked locally.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Protocol, TypeVar, runtime_checkable

from victor_autocomplete.completion.protocol import AutocompleteSnippet
from victor_autocomplete.errors import ContextTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ClipboardProvider = Callable[[], Awaitable[str]]


@runtime_checkable
class DefinitionProvider(Protocol):
    """Looks up definitions of symbols near the cursor."""

    async def get_definitions(
        self, file_path: str, full_text: str, cursor_offset: int
    ) -> List[AutocompleteSnippet]: ...


async def bounded_wait(
    awaitable: Awaitable[T],
    timeout_s: float,
    default: T,
    raise_on_timeout: bool = False,
) -> T:
    """Return the awaitable's result, or ``default`` if it takes longer than ``timeout_s``.

    The pending work is cancelled on timeout.

    Raises:
        ContextTimeoutError: On timeout, only if ``raise_on_timeout`` is set
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError as e:
        if raise_on_timeout:
            raise ContextTimeoutError(f"Context lookup exceeded {timeout_s * 1000:.0f}ms") from e
        logger.debug(f"Context lookup exceeded {timeout_s * 1000:.0f}ms, using fallback")
        return default


@dataclass
class _EditedRange:
    file_path: str
    start_line: int
    end_line: int
    lines: List[str]
    timestamp: float


class RecentlyEditedTracker:
    """Remembers the ranges and documents the user edited recently."""

    def __init__(
        self,
        max_ranges: int = 3,
        max_documents: int = 3,
        stale_after_s: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the tracker.

        Args:
            max_ranges: Maximum edited ranges kept
            max_documents: Maximum edited documents kept
            stale_after_s: Age after which an edit is forgotten
            clock: Time source (monotonic seconds)
        """
        self._max_ranges = max_ranges
        self._max_documents = max_documents
        self._stale_after_s = stale_after_s
        self._clock = clock
        self._ranges: List[_EditedRange] = []
        self._documents: OrderedDict[str, tuple[float, str]] = OrderedDict()

    def record_edit(
        self, file_path: str, start_line: int, end_line: int, document_text: str
    ) -> None:
        """Record an edit spanning ``start_line``..``end_line`` (inclusive)."""
        now = self._clock()
        lines = document_text.split("\n")[start_line : end_line + 1]

        # Merge with an overlapping range in the same file
        for edited in self._ranges:
            if (
                edited.file_path == file_path
                and start_line <= edited.end_line + 1
                and end_line >= edited.start_line - 1
            ):
                self._ranges.remove(edited)
                start_line = min(start_line, edited.start_line)
                end_line = max(end_line, edited.end_line)
                lines = document_text.split("\n")[start_line : end_line + 1]
                break

        self._ranges.insert(0, _EditedRange(file_path, start_line, end_line, lines, now))
        del self._ranges[self._max_ranges :]

        self._documents[file_path] = (now, document_text)
        self._documents.move_to_end(file_path, last=False)
        while len(self._documents) > self._max_documents:
            self._documents.popitem()

    def get_recently_edited_ranges(self) -> List[AutocompleteSnippet]:
        """Recently edited ranges as snippets, newest first."""
        self._remove_stale()
        return [
            AutocompleteSnippet(file_path=edited.file_path, contents="\n".join(edited.lines))
            for edited in self._ranges
        ]

    def get_recently_edited_documents(self) -> List[AutocompleteSnippet]:
        """Latest text of recently edited documents, newest first."""
        self._remove_stale()
        return [
            AutocompleteSnippet(file_path=path, contents=text)
            for path, (_, text) in self._documents.items()
        ]

    def clear(self) -> None:
        self._ranges.clear()
        self._documents.clear()

    def _remove_stale(self) -> None:
        cutoff = self._clock() - self._stale_after_s
        self._ranges = [edited for edited in self._ranges if edited.timestamp >= cutoff]
        for path in [p for p, (ts, _) in self._documents.items() if ts < cutoff]:
            del self._documents[path]


async def read_clipboard(clipboard: Optional[ClipboardProvider]) -> str:
    """Read the clipboard, treating a missing or failing accessor as empty."""
    if clipboard is None:
        return ""
    try:
        return await clipboard() or ""
    except Exception as e:
        logger.debug(f"Clipboard unavailable: {e}")
        return ""
