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

"""Shared fixtures for autocomplete tests."""

import asyncio
from typing import Any, AsyncIterator, List, Optional

import pytest

from victor_autocomplete.completion import CompletionOrchestrator
from victor_autocomplete.config import AutocompleteOptions
from victor_autocomplete.errors import ErrorReporter
from victor_autocomplete.models.base import BaseCompletionModel


class ScriptedModel(BaseCompletionModel):
    """Model that streams a fixed list of deltas.

    If ``gate`` is set, the model waits on it before each delta after the
    first ``release_first`` deltas, which lets tests interleave requests
    with an in-flight stream.
    """

    provider_name = "scripted"

    def __init__(
        self,
        deltas: List[str],
        model: str = "starcoder2:3b",
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
        release_first: int = 0,
    ):
        super().__init__(model)
        self.deltas = deltas
        self.error = error
        self.gate = gate
        self.release_first = release_first
        self.calls: List[dict] = []
        self.closed = 0

    async def stream_complete(self, prompt: str, **options: Any) -> AsyncIterator[str]:
        self.calls.append({"prompt": prompt, **options})
        try:
            for index, delta in enumerate(self.deltas):
                if self.gate is not None and index >= self.release_first:
                    await self.gate.wait()
                await asyncio.sleep(0)
                yield delta
            if self.error is not None:
                raise self.error
        finally:
            self.closed += 1


class RecordingNotifier:
    def __init__(self):
        self.messages: List[str] = []

    def __call__(self, message: str) -> None:
        self.messages.append(message)


class StaticDefinitions:
    def __init__(self, snippets, delay: float = 0.0):
        self.snippets = snippets
        self.delay = delay
        self.calls = []

    async def get_definitions(self, file_path, full_text, cursor_offset):
        self.calls.append((file_path, cursor_offset))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.snippets


async def collect(stream: AsyncIterator[str]) -> List[str]:
    return [chunk async for chunk in stream]


async def from_list(chunks: List[str]) -> AsyncIterator[str]:
    for chunk in chunks:
        await asyncio.sleep(0)
        yield chunk


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def options():
    """Options with context sources that depend on the host turned off."""
    return AutocompleteOptions(use_copy_buffer=False, use_recently_edited=False)


@pytest.fixture
def orchestrator(notifier, options):
    return CompletionOrchestrator(error_reporter=ErrorReporter(notifier=notifier), options=options)
