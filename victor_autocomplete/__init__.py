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

"""Inline tab-autocomplete engine for IDE integration.

Given a cursor position, builds a bounded prompt, streams a completion
from a language model and decides where the stream should stop, while
reusing cached completions and in-flight model streams across
keystrokes.

Example usage:
    from victor_autocomplete import (
        CancellationToken,
        CompletionOrchestrator,
        Position,
        TextDocument,
        load_config,
        model_from_description,
    )

    config = load_config("autocomplete.yaml")
    model = model_from_description(config.tab_autocomplete_model)
    orchestrator = CompletionOrchestrator(options=config.tab_autocomplete_options)

    outcome = await orchestrator.complete(
        TextDocument("main.py", "def add(a, b):\n    "),
        Position(line=1, character=4),
        CancellationToken(),
        model=model,
    )
    if outcome:
        print(outcome.completion_text)
"""

from victor_autocomplete.completion import (
    AutocompleteSnippet,
    CancellationToken,
    CompletionCache,
    CompletionOrchestrator,
    CompletionOutcome,
    CompletionResult,
    CompletionStatus,
    GeneratorCoalescer,
    Position,
    StreamStopPipeline,
    TextDocument,
)
from victor_autocomplete.config import (
    AutocompleteConfig,
    AutocompleteOptions,
    ModelDescription,
    load_config,
)
from victor_autocomplete.errors import (
    AutocompleteError,
    ConfigurationError,
    ContextTimeoutError,
    ErrorReporter,
    ModelStreamError,
    ModelUnavailableError,
    StreamCancelledError,
)
from victor_autocomplete.models import BaseCompletionModel, model_from_description

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "AutocompleteSnippet",
    "CancellationToken",
    "CompletionCache",
    "CompletionOrchestrator",
    "CompletionOutcome",
    "CompletionResult",
    "CompletionStatus",
    "GeneratorCoalescer",
    "Position",
    "StreamStopPipeline",
    "TextDocument",
    # Configuration
    "AutocompleteConfig",
    "AutocompleteOptions",
    "ModelDescription",
    "load_config",
    # Errors
    "AutocompleteError",
    "ConfigurationError",
    "ContextTimeoutError",
    "ErrorReporter",
    "ModelStreamError",
    "ModelUnavailableError",
    "StreamCancelledError",
    # Models
    "BaseCompletionModel",
    "model_from_description",
]
