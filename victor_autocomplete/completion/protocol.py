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

"""Tab-autocomplete protocol types.

Data types exchanged between the host editor, the completion pipeline
and its collaborators. Positions are zero-based like LSP positions.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, Union, runtime_checkable


@dataclass(frozen=True)
class Position:
    """Position in a text document (zero-based)."""

    line: int
    character: int


@dataclass
class TextDocument:
    """Snapshot of the document being edited."""

    file_path: Union[str, Path]
    text: str

    def __post_init__(self) -> None:
        self._lines = self.text.split("\n")

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def line_at(self, line: int) -> str:
        """Text of a line without its newline ("" if out of range)."""
        if 0 <= line < len(self._lines):
            return self._lines[line]
        return ""

    def offset_at(self, position: Position) -> int:
        """Convert a position to a character offset into the text."""
        line = max(0, min(position.line, len(self._lines) - 1))
        offset = sum(len(text) + 1 for text in self._lines[:line])
        return offset + max(0, min(position.character, len(self._lines[line])))

    def text_before(self, position: Position) -> str:
        return self.text[: self.offset_at(position)]

    def text_after(self, position: Position) -> str:
        return self.text[self.offset_at(position) :]


@dataclass
class AutocompleteSnippet:
    """A piece of context included in the prompt."""

    file_path: str
    contents: str
    score: float = 0.0


@dataclass(frozen=True)
class CompletionRequest:
    """Everything the generation step needs for one call."""

    rendered_prompt: str
    prefix_text: str
    stop_sequences: tuple[str, ...] = ()
    allow_multiline: bool = False
    line_below_cursor: str = ""


@dataclass(frozen=True)
class CompletionOutcome:
    """Result of a served completion."""

    completion_text: str
    elapsed_ms: float
    cache_hit: bool
    prompt: str
    provider_name: str
    model_name: str
    completion_options: Mapping[str, Any] = field(default_factory=dict)


class CompletionStatus(Enum):
    """Terminal state of a completion call."""

    SERVED = "served"
    CANCELLED = "cancelled"
    FAILED = "failed"
    EMPTY = "empty"


@dataclass(frozen=True)
class CompletionResult:
    """Terminal state plus the outcome (only set when served)."""

    status: CompletionStatus
    outcome: Optional[CompletionOutcome] = None


@dataclass
class CompletionMetrics:
    """Metrics for completion operations."""

    total_requests: int = 0
    served: int = 0
    cancelled: int = 0
    failed: int = 0
    empty: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    model_calls: int = 0
    total_latency_ms: float = 0.0

    @property
    def average_latency_ms(self) -> float:
        """Average latency of served completions."""
        if self.served == 0:
            return 0.0
        return self.total_latency_ms / self.served

    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        if lookups == 0:
            return 0.0
        return self.cache_hits / lookups


@runtime_checkable
class CancellationSignal(Protocol):
    """Anything the pipeline can poll for cancellation."""

    @property
    def is_cancelled(self) -> bool: ...


class CancellationToken:
    """Cooperative cancellation token for a completion call.

    Once cancelled it stays cancelled until ``reset()``. The pipeline
    polls ``is_cancelled`` once per received delta.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._cancel_reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        """Signal cancellation.

        Args:
            reason: Optional reason (e.g., "superseded", "user_cancelled")
        """
        self._cancel_reason = reason or "cancelled"
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def cancel_reason(self) -> Optional[str]:
        return self._cancel_reason

    async def wait_for_cancellation(self) -> None:
        await self._event.wait()

    def reset(self) -> None:
        self._event.clear()
        self._cancel_reason = None
