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

"""Tab-completion request pipeline.

- ``CompletionCache``: LRU of completions keyed by rendered prompt
- ``GeneratorCoalescer``: one live model stream per prefix family
- ``StreamStopPipeline``: stop heuristics over the token stream
- ``CompletionOrchestrator``: ties them together for the host editor
"""

from victor_autocomplete.completion.cache import CompletionCache
from victor_autocomplete.completion.context import (
    DefinitionProvider,
    RecentlyEditedTracker,
    bounded_wait,
)
from victor_autocomplete.completion.orchestrator import CompletionOrchestrator
from victor_autocomplete.completion.protocol import (
    AutocompleteSnippet,
    CancellationSignal,
    CancellationToken,
    CompletionMetrics,
    CompletionOutcome,
    CompletionRequest,
    CompletionResult,
    CompletionStatus,
    Position,
    TextDocument,
)
from victor_autocomplete.completion.reuse import GeneratorCoalescer, PendingStream
from victor_autocomplete.completion.streams import (
    StreamStopPipeline,
    only_whitespace_after_end_of_line,
    stop_at_similar_line,
    stream_with_newlines,
)

__all__ = [
    # Protocol types
    "AutocompleteSnippet",
    "CancellationSignal",
    "CancellationToken",
    "CompletionMetrics",
    "CompletionOutcome",
    "CompletionRequest",
    "CompletionResult",
    "CompletionStatus",
    "Position",
    "TextDocument",
    # Pipeline
    "CompletionCache",
    "CompletionOrchestrator",
    "GeneratorCoalescer",
    "PendingStream",
    "StreamStopPipeline",
    "only_whitespace_after_end_of_line",
    "stop_at_similar_line",
    "stream_with_newlines",
    # Context
    "DefinitionProvider",
    "RecentlyEditedTracker",
    "bounded_wait",
]
