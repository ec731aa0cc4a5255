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

"""Prompt window construction.

Fits the text around the cursor into the prompt token budget and packs
the best-ranked context snippets into whatever budget is left, rendered
as comments above the prefix.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

from victor_autocomplete.completion.protocol import AutocompleteSnippet
from victor_autocomplete.config import AutocompleteOptions
from victor_autocomplete.languages import AutocompleteLanguageInfo

logger = logging.getLogger(__name__)

# Rough token estimate; no tokenizer is shipped with the engine
CHARS_PER_TOKEN = 4

# Lines around the cursor compared against snippets when ranking
RANKING_WINDOW_LINES = 20

_WORD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass
class PromptParts:
    """Prefix and suffix to render into the prompt template."""

    prefix: str
    suffix: str
    complete_multiline: bool


def count_tokens(text: str) -> int:
    """Approximate token count of a text."""
    return (len(text) + CHARS_PER_TOKEN - 1) // CHARS_PER_TOKEN


def prune_lines_from_top(text: str, max_tokens: float) -> str:
    """Drop leading lines until the text fits (the last line is always kept)."""
    lines = text.split("\n")
    while len(lines) > 1 and count_tokens("\n".join(lines)) > max_tokens:
        lines.pop(0)
    return "\n".join(lines)


def prune_lines_from_bottom(text: str, max_tokens: float) -> str:
    """Drop trailing lines until the text fits."""
    lines = text.split("\n")
    while lines and count_tokens("\n".join(lines)) > max_tokens:
        lines.pop()
    return "\n".join(lines)


def should_complete_multiline(
    full_prefix: str, full_suffix: str, language: AutocompleteLanguageInfo
) -> bool:
    """Whether the cursor position allows a multi-line completion.

    Mid-line positions and single-line comments get single-line completions.
    """
    if full_suffix.split("\n", 1)[0].strip():
        return False
    current_line = full_prefix.rsplit("\n", 1)[-1]
    if language.comment and current_line.lstrip().startswith(language.comment):
        return False
    return True


def _words(text: str) -> set[str]:
    return set(_WORD_RE.findall(text))


def jaccard_similarity(a: str, b: str) -> float:
    words_a = _words(a)
    words_b = _words(b)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def rank_snippets(
    snippets: Iterable[AutocompleteSnippet], window: str
) -> List[AutocompleteSnippet]:
    """Score snippets against the cursor window, best first.

    Empty snippets and snippets already contained in the window are dropped.
    Returns scored copies; the input snippets are left unchanged.
    """
    ranked = []
    seen: set[str] = set()
    for snippet in snippets:
        contents = snippet.contents.strip()
        if not contents or contents in seen or contents in window:
            continue
        seen.add(contents)
        ranked.append(replace(snippet, score=jaccard_similarity(contents, window)))
    ranked.sort(key=lambda s: s.score, reverse=True)
    return ranked


def format_snippet(snippet: AutocompleteSnippet, comment: str) -> str:
    """Render a snippet as a comment block."""
    lines = [f"{comment} Path: {snippet.file_path}"]
    lines.extend(f"{comment} {line}" for line in snippet.contents.strip().split("\n"))
    return "\n".join(lines) + "\n"


def construct_autocomplete_prompt(
    full_prefix: str,
    full_suffix: str,
    language: AutocompleteLanguageInfo,
    options: AutocompleteOptions,
    clipboard_text: str = "",
    recently_edited_ranges: Optional[List[AutocompleteSnippet]] = None,
    recently_edited_documents: Optional[List[AutocompleteSnippet]] = None,
    definitions: Optional[List[AutocompleteSnippet]] = None,
) -> PromptParts:
    """Build the prefix and suffix for the prompt template.

    Args:
        full_prefix: All text before the cursor
        full_suffix: All text after the cursor
        language: Language settings of the document
        options: Prompt budget and context source options
        clipboard_text: Current clipboard contents
        recently_edited_ranges: Snippets of recently edited code
        recently_edited_documents: Full text of other recently edited files
        definitions: Snippets of symbol definitions near the cursor

    Returns:
        PromptParts with the windowed prefix/suffix
    """
    max_prompt_tokens = options.max_prompt_tokens
    prefix = prune_lines_from_top(full_prefix, max_prompt_tokens * options.prefix_percentage)

    suffix = ""
    if options.use_suffix:
        max_suffix_tokens = min(
            max_prompt_tokens - count_tokens(prefix),
            max_prompt_tokens * options.max_suffix_percentage,
        )
        suffix = prune_lines_from_bottom(full_suffix, max(0, max_suffix_tokens))

    candidates: List[AutocompleteSnippet] = []
    if options.use_definitions and definitions:
        candidates.extend(definitions)
    if options.use_copy_buffer and clipboard_text.strip():
        candidates.append(AutocompleteSnippet(file_path="clipboard", contents=clipboard_text))
    if options.use_recently_edited:
        candidates.extend(recently_edited_ranges or [])
        candidates.extend(recently_edited_documents or [])

    remaining = max_prompt_tokens - count_tokens(prefix) - count_tokens(suffix)
    if candidates and remaining > 0:
        window = "\n".join(prefix.split("\n")[-RANKING_WINDOW_LINES:])
        header = ""
        for snippet in rank_snippets(candidates, window):
            rendered = format_snippet(snippet, language.comment)
            cost = count_tokens(rendered)
            if cost > remaining:
                continue
            header += rendered
            remaining -= cost
        if header:
            logger.debug(f"Added {count_tokens(header)} tokens of context snippets")
            prefix = header + prefix

    return PromptParts(
        prefix=prefix,
        suffix=suffix,
        complete_multiline=should_complete_multiline(full_prefix, full_suffix, language),
    )
