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

"""Completion orchestrator: the entry point for tab completions.

Provides a high-level API for IDE integration following the Facade
pattern. Each call runs a small state machine that ends in exactly one
of Served, Cancelled, Failed or Empty:

    filter -> resolve model -> build context -> cache lookup
        -> [miss] generate (shared stream + stop pipeline) -> finalize
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from victor_autocomplete.completion.cache import CompletionCache
from victor_autocomplete.completion.context import (
    ClipboardProvider,
    DefinitionProvider,
    RecentlyEditedTracker,
    bounded_wait,
    read_clipboard,
)
from victor_autocomplete.completion.prompt import construct_autocomplete_prompt
from victor_autocomplete.completion.protocol import (
    AutocompleteSnippet,
    CancellationSignal,
    CompletionMetrics,
    CompletionOutcome,
    CompletionRequest,
    CompletionResult,
    CompletionStatus,
    Position,
    TextDocument,
)
from victor_autocomplete.completion.reuse import GeneratorCoalescer
from victor_autocomplete.completion.streams import StreamStopPipeline
from victor_autocomplete.completion.templates import get_template_for_model, render_prompt
from victor_autocomplete.config import AutocompleteOptions
from victor_autocomplete.errors import (
    ErrorReporter,
    ModelUnavailableError,
    StreamCancelledError,
)
from victor_autocomplete.languages import AutocompleteLanguageInfo, language_for_filepath
from victor_autocomplete.models.base import BaseCompletionModel

logger = logging.getLogger(__name__)

# Separators that end a completion regardless of model or language
COMMON_STOP_SEQUENCES = ["\n\n", "```"]


class CompletionOrchestrator:
    """Runs tab-completion requests against a model.

    The cache and the stream coalescer are shared, process-scoped state:
    pass the same instances to every orchestrator that should share them.
    """

    def __init__(
        self,
        cache: Optional[CompletionCache] = None,
        coalescer: Optional[GeneratorCoalescer] = None,
        error_reporter: Optional[ErrorReporter] = None,
        definitions: Optional[DefinitionProvider] = None,
        recently_edited: Optional[RecentlyEditedTracker] = None,
        clipboard: Optional[ClipboardProvider] = None,
        options: Optional[AutocompleteOptions] = None,
    ):
        """Initialize the orchestrator.

        Args:
            cache: Completion cache (new cache sized from options if not provided)
            coalescer: Model stream coalescer (new if not provided)
            error_reporter: Surfaces model errors to the host once per message
            definitions: Symbol definition lookup (usually backed by LSP)
            recently_edited: Tracker of recent edits (new if not provided)
            clipboard: Async accessor for the clipboard text
            options: Default options for calls that do not pass their own
        """
        self._options = options or AutocompleteOptions()
        self._cache = cache or CompletionCache(self._options.cache_capacity)
        self._coalescer = coalescer or GeneratorCoalescer()
        self._error_reporter = error_reporter or ErrorReporter()
        self._definitions = definitions
        self._recently_edited = recently_edited or RecentlyEditedTracker()
        self._clipboard = clipboard
        self._metrics = CompletionMetrics()

    @property
    def cache(self) -> CompletionCache:
        return self._cache

    @property
    def coalescer(self) -> GeneratorCoalescer:
        return self._coalescer

    @property
    def recently_edited(self) -> RecentlyEditedTracker:
        return self._recently_edited

    @property
    def metrics(self) -> CompletionMetrics:
        """Get completion metrics."""
        return self._metrics

    def reset_metrics(self) -> None:
        """Reset all metrics."""
        self._metrics = CompletionMetrics()

    async def complete(
        self,
        document: TextDocument,
        position: Position,
        token: CancellationSignal,
        options: Optional[AutocompleteOptions] = None,
        model: Any = None,
    ) -> Optional[CompletionOutcome]:
        """Get a tab completion at a position.

        Args:
            document: Document being edited
            position: Cursor position
            token: Cancellation signal polled while streaming
            options: Request options (orchestrator defaults if not provided)
            model: A BaseCompletionModel, a handle with async ``get()``, or None

        Returns:
            The outcome if a completion was served, None otherwise
        """
        result = await self.complete_with_status(document, position, token, options, model)
        return result.outcome

    async def complete_with_status(
        self,
        document: TextDocument,
        position: Position,
        token: CancellationSignal,
        options: Optional[AutocompleteOptions] = None,
        model: Any = None,
    ) -> CompletionResult:
        """Like ``complete`` but also reports the terminal state."""
        start_time = time.time()
        options = options or self._options
        self._metrics.total_requests += 1

        result = await self._run(document, position, token, options, model, start_time)

        if result.status is CompletionStatus.SERVED:
            self._metrics.served += 1
            self._metrics.total_latency_ms += result.outcome.elapsed_ms
        elif result.status is CompletionStatus.CANCELLED:
            self._metrics.cancelled += 1
        elif result.status is CompletionStatus.FAILED:
            self._metrics.failed += 1
        else:
            self._metrics.empty += 1
        return result

    async def _run(
        self,
        document: TextDocument,
        position: Position,
        token: CancellationSignal,
        options: AutocompleteOptions,
        model_handle: Any,
        start_time: float,
    ) -> CompletionResult:
        # Filter
        language = language_for_filepath(document.file_path)
        line = document.line_at(position.line)
        if position.character >= len(line) and any(
            line.endswith(marker) for marker in language.end_of_line
        ):
            return CompletionResult(CompletionStatus.EMPTY)

        try:
            # Model
            model = await self._resolve_model(model_handle)

            # Prompt
            prompt, completion_options, parts = await self._build_prompt(
                document, position, options, language, model
            )
            line_below_cursor = document.line_at(min(position.line + 1, document.line_count - 1))

            # Cache
            cached = self._cache.get(prompt)
            if cached is not None:
                self._metrics.cache_hits += 1
                logger.debug("Autocomplete cache hit")
                return self._served(cached, True, prompt, model, completion_options, start_time)
            self._metrics.cache_misses += 1

            if token.is_cancelled:
                return CompletionResult(CompletionStatus.CANCELLED)

            request = CompletionRequest(
                rendered_prompt=prompt,
                prefix_text=parts.prefix,
                stop_sequences=tuple(
                    self._stop_sequences(completion_options, language, options, parts.complete_multiline)
                ),
                allow_multiline=self._allow_multiline(options, parts.complete_multiline),
                line_below_cursor=line_below_cursor,
            )
            completion, cancelled = await self._generate(
                request, model, completion_options, language, options, token
            )
        except ModelUnavailableError as e:
            logger.debug(f"Autocomplete skipped: {e}")
            return CompletionResult(CompletionStatus.EMPTY)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error generating autocompletion: {e}")
            self._error_reporter.report(e)
            return CompletionResult(CompletionStatus.FAILED)

        if cancelled:
            return CompletionResult(CompletionStatus.CANCELLED)

        # Don't return empty
        if not completion.strip():
            return CompletionResult(CompletionStatus.EMPTY)

        completion = completion.rstrip()
        self._cache.put(prompt, completion)
        return self._served(completion, False, prompt, model, completion_options, start_time)

    async def _resolve_model(self, handle: Any) -> BaseCompletionModel:
        model = handle
        if model is not None and not isinstance(model, BaseCompletionModel):
            getter = getattr(model, "get", None)
            if getter is None:
                raise ModelUnavailableError(f"Unsupported model handle: {type(handle).__name__}")
            model = await getter()
        if model is None:
            raise ModelUnavailableError("No autocomplete model configured")
        return model

    async def _build_prompt(
        self,
        document: TextDocument,
        position: Position,
        options: AutocompleteOptions,
        language: AutocompleteLanguageInfo,
        model: BaseCompletionModel,
    ):
        file_path = str(document.file_path)
        full_prefix = document.text_before(position)
        full_suffix = document.text_after(position)

        clipboard_text = ""
        if options.use_copy_buffer:
            clipboard_text = await read_clipboard(self._clipboard)

        definitions: List[AutocompleteSnippet] = []
        if options.use_definitions and self._definitions is not None:
            definitions = await bounded_wait(
                self._definitions.get_definitions(
                    file_path, document.text, document.offset_at(position)
                ),
                options.context_timeout_ms / 1000,
                [],
            )

        recently_edited: List[AutocompleteSnippet] = []
        edited_documents: List[AutocompleteSnippet] = []
        if options.use_recently_edited:
            recently_edited = self._recently_edited.get_recently_edited_ranges()
            edited_documents = [
                snippet
                for snippet in self._recently_edited.get_recently_edited_documents()
                if snippet.file_path != file_path
            ]

        parts = construct_autocomplete_prompt(
            full_prefix,
            full_suffix,
            language,
            options,
            clipboard_text=clipboard_text,
            recently_edited_ranges=recently_edited,
            recently_edited_documents=edited_documents,
            definitions=definitions,
        )

        if options.template:
            template, completion_options = options.template, {}
        else:
            template, completion_options = get_template_for_model(model.model)
        completion_options = {**completion_options, **options.completion_options}
        return render_prompt(template, parts.prefix, parts.suffix), completion_options, parts

    @staticmethod
    def _allow_multiline(options: AutocompleteOptions, complete_multiline: bool) -> bool:
        if options.multiline_completions == "always":
            return True
        if options.multiline_completions == "never":
            return False
        return complete_multiline

    def _stop_sequences(
        self,
        completion_options: Dict[str, Any],
        language: AutocompleteLanguageInfo,
        options: AutocompleteOptions,
        complete_multiline: bool,
    ) -> List[str]:
        stop = [
            *(completion_options.get("stop") or []),
            *COMMON_STOP_SEQUENCES,
            *language.stop_words,
        ]
        if not self._allow_multiline(options, complete_multiline):
            stop.insert(0, "\n")
        return stop

    async def _generate(
        self,
        request: CompletionRequest,
        model: BaseCompletionModel,
        completion_options: Dict[str, Any],
        language: AutocompleteLanguageInfo,
        options: AutocompleteOptions,
        token: CancellationSignal,
    ) -> tuple[str, bool]:
        """Stream the completion; returns (text, cancelled)."""
        request_options = {
            **completion_options,
            "temperature": 0,
            "raw": True,
            "stop": list(request.stop_sequences),
        }

        def start():
            self._metrics.model_calls += 1
            return model.stream_complete(request.rendered_prompt, **request_options)

        state = {"cancelled": False}
        generator = self._coalescer.acquire_or_share(request.prefix_text, start)
        pipeline = StreamStopPipeline(
            language.end_of_line,
            request.line_below_cursor,
            options.similarity_threshold,
            options.similarity_min_length,
        )
        final = pipeline.apply(_with_cancellation(generator, token, state))

        completion = ""
        try:
            async for chunk in final:
                completion += chunk
        except StreamCancelledError as e:
            logger.debug(f"Autocomplete superseded: {e}")
            state["cancelled"] = True
        finally:
            await final.aclose()
        return completion, state["cancelled"]

    def _served(
        self,
        completion: str,
        cache_hit: bool,
        prompt: str,
        model: BaseCompletionModel,
        completion_options: Dict[str, Any],
        start_time: float,
    ) -> CompletionResult:
        outcome = CompletionOutcome(
            completion_text=completion,
            elapsed_ms=(time.time() - start_time) * 1000,
            cache_hit=cache_hit,
            prompt=prompt,
            provider_name=model.provider_name,
            model_name=model.model,
            completion_options=dict(completion_options),
        )
        return CompletionResult(CompletionStatus.SERVED, outcome)

    def record_edit(
        self, file_path: Union[str, Path], start_line: int, end_line: int, document_text: str
    ) -> None:
        """Tell the orchestrator about an edit (feeds recently-edited context)."""
        self._recently_edited.record_edit(str(file_path), start_line, end_line, document_text)

    async def aclose(self) -> None:
        """Cancel any in-flight model stream."""
        await self._coalescer.aclose()


async def _with_cancellation(
    stream: AsyncIterator[str], token: CancellationSignal, state: Dict[str, bool]
) -> AsyncIterator[str]:
    """Forward deltas until the token is cancelled (checked once per delta)."""
    try:
        async for chunk in stream:
            if token.is_cancelled:
                state["cancelled"] = True
                return
            yield chunk
    finally:
        await stream.aclose()
