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

"""Stream transforms that decide where a completion should stop.

Each stage maps an async iterator of strings to another, preserves
order, and closes its input when it stops early. ``StreamStopPipeline``
chains them in a fixed order:

1. ``only_whitespace_after_end_of_line`` - hold back whitespace after a
   line that is just a statement terminator
2. ``stream_with_newlines`` - regroup deltas into whole lines
3. ``stop_at_similar_line`` - stop when the model reproduces the line
   already below the cursor
"""

import logging
from typing import AsyncIterator, Sequence

from rapidfuzz.distance import Levenshtein

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.1
DEFAULT_SIMILARITY_MIN_LENGTH = 4


async def _close(stream: AsyncIterator[str]) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


async def only_whitespace_after_end_of_line(
    stream: AsyncIterator[str], end_of_line: Sequence[str]
) -> AsyncIterator[str]:
    """Suppress trailing whitespace after a line that only holds an end-of-line marker.

    Once the last produced line is just a marker (e.g. ``;``), whitespace-only
    deltas are held back. They are released if non-whitespace follows and
    dropped if the stream ends first.

    Args:
        stream: Raw deltas
        end_of_line: The language's end-of-line markers
    """
    markers = {marker.strip() for marker in end_of_line if marker.strip()}
    held = ""
    tail = ""  # Partial line after the last newline
    last_content = ""  # Last line holding non-whitespace
    try:
        async for chunk in stream:
            if not markers:
                yield chunk
                continue
            if chunk and not chunk.strip() and (held or last_content.strip() in markers):
                held += chunk
                continue
            chunk = held + chunk
            held = ""
            text = tail + chunk
            tail = text.rsplit("\n", 1)[-1]
            for segment in reversed(text.split("\n")):
                if segment.strip():
                    last_content = segment
                    break
            yield chunk
    finally:
        await _close(stream)
    if held:
        logger.debug(f"Dropped {len(held)} trailing whitespace chars after end of line")


async def stream_with_newlines(stream: AsyncIterator[str]) -> AsyncIterator[str]:
    """Regroup deltas into line chunks.

    Yields each complete line with its ``"\\n"``, then any trailing partial
    line. The concatenated output always equals the concatenated input.
    """
    buffer = ""
    try:
        async for chunk in stream:
            buffer += chunk
            while "\n" in buffer:
                line, buffer = buffer.split("\n", 1)
                yield line + "\n"
    finally:
        await _close(stream)
    if buffer:
        yield buffer


def is_similar_line(
    line: str,
    target: str,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    min_length: int = DEFAULT_SIMILARITY_MIN_LENGTH,
) -> bool:
    """Whether a generated line resembles the target line.

    Lines match when their stripped forms are equal, or when both are longer
    than ``min_length`` and their edit distance relative to the target's
    length is below ``threshold``. A blank target never matches.
    """
    line = line.strip()
    target = target.strip()
    if not target or not line:
        return False
    if line == target:
        return True
    if len(line) <= min_length or len(target) <= min_length:
        return False
    return Levenshtein.distance(line, target) / len(target) < threshold


async def stop_at_similar_line(
    stream: AsyncIterator[str],
    line_below_cursor: str,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    min_length: int = DEFAULT_SIMILARITY_MIN_LENGTH,
) -> AsyncIterator[str]:
    """Stop before the first line that resembles the line below the cursor.

    Expects line-granular input (see ``stream_with_newlines``). The matching
    line and everything after it are dropped.
    """
    try:
        async for line in stream:
            if is_similar_line(line, line_below_cursor, threshold, min_length):
                logger.debug("Completion reached the line below the cursor, stopping")
                return
            yield line
    finally:
        await _close(stream)


class StreamStopPipeline:
    """Composes the stop transforms in their fixed order."""

    def __init__(
        self,
        end_of_line: Sequence[str],
        line_below_cursor: str,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        similarity_min_length: int = DEFAULT_SIMILARITY_MIN_LENGTH,
    ):
        """Initialize the pipeline.

        Args:
            end_of_line: The language's end-of-line markers
            line_below_cursor: Line below the cursor before insertion
            similarity_threshold: Relative edit distance for a fuzzy match
            similarity_min_length: Minimum length for fuzzy matching
        """
        self.end_of_line = list(end_of_line)
        self.line_below_cursor = line_below_cursor
        self.similarity_threshold = similarity_threshold
        self.similarity_min_length = similarity_min_length

    def apply(self, stream: AsyncIterator[str]) -> AsyncIterator[str]:
        """Shape a raw delta stream into completion chunks."""
        stream = only_whitespace_after_end_of_line(stream, self.end_of_line)
        stream = stream_with_newlines(stream)
        return stop_at_similar_line(
            stream,
            self.line_below_cursor,
            self.similarity_threshold,
            self.similarity_min_length,
        )
