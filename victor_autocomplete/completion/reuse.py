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

"""Model stream reuse across overlapping completion requests.

While the user types, every keystroke issues a new completion request
whose prefix extends the previous one. If the model is already
generating for an earlier prefix and the newly typed characters agree
with what it has produced, the new request attaches to that stream
instead of starting another model call.

A ``PendingStream`` runs the model source in one background task and
buffers every delta; any number of views replay the buffer and then
follow live output, so all subscribers observe the same order.
"""

import asyncio
import inspect
import logging
import threading
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

from victor_autocomplete.errors import StreamCancelledError

logger = logging.getLogger(__name__)

StreamSource = Union[AsyncIterator[str], Awaitable[AsyncIterator[str]]]
StartFn = Callable[[], StreamSource]


class PendingStream:
    """One in-flight model call shared by a prefix family."""

    def __init__(
        self,
        key_prefix: str,
        start_fn: StartFn,
        on_done: Optional[Callable[["PendingStream"], None]] = None,
    ):
        """Initialize the stream (call ``start()`` to begin generating).

        Args:
            key_prefix: Prefix text the model call was made for
            start_fn: Creates the model token source
            on_done: Called once when the stream ends for any reason
        """
        self.key_prefix = key_prefix
        self.subscribers = 0
        self._start_fn = start_fn
        self._on_done = on_done
        self._buffer: list[str] = []
        self._ended = False
        self._cancelled = False
        self._error: Optional[BaseException] = None
        self._waiter = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def text(self) -> str:
        """Everything generated so far."""
        return "".join(self._buffer)

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def start(self) -> None:
        """Start pumping the model source in a background task."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._pump())

    def cancel(self) -> None:
        """Abandon the stream; views raise StreamCancelledError after the buffered output."""
        if self._ended:
            return
        self._cancelled = True
        self._finish()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait for the background task to finish cleaning up."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def subscribe(self) -> AsyncIterator[str]:
        """Replay buffered deltas, then follow the stream until it ends.

        Raises:
            StreamCancelledError: If the stream was cancelled, after the
                buffered deltas have been delivered
            Exception: Whatever the model source raised, after the buffered
                deltas have been delivered
        """
        self.subscribers += 1
        index = 0
        try:
            while True:
                if index < len(self._buffer):
                    chunk = self._buffer[index]
                    index += 1
                    yield chunk
                    continue
                if self._ended:
                    break
                await self._waiter.wait()
            if self._cancelled:
                raise StreamCancelledError(
                    f"Model stream for prefix of {len(self.key_prefix)} chars was cancelled"
                )
            if self._error is not None:
                raise self._error
        finally:
            self.subscribers -= 1

    async def _pump(self) -> None:
        source = None
        try:
            source = self._start_fn()
            if inspect.isawaitable(source):
                source = await source
            async for chunk in source:
                if self._ended:
                    break
                self._buffer.append(chunk)
                self._notify()
        except asyncio.CancelledError:
            logger.debug(f"Model stream for prefix of {len(self.key_prefix)} chars cancelled")
            raise
        except Exception as e:
            logger.warning(f"Model stream failed: {e}")
            self._error = e
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as e:
                    logger.debug(f"Error closing model stream: {e}")
            if not self._ended:
                self._finish()

    def _notify(self) -> None:
        waiter, self._waiter = self._waiter, asyncio.Event()
        waiter.set()

    def _finish(self) -> None:
        self._ended = True
        self._notify()
        if self._on_done is not None:
            on_done, self._on_done = self._on_done, None
            on_done(self)

    def __repr__(self) -> str:
        return (
            f"PendingStream(prefix_len={len(self.key_prefix)}, "
            f"buffered={len(self._buffer)}, ended={self._ended})"
        )


class GeneratorCoalescer:
    """Keeps at most one live model stream per prefix family.

    A request attaches to the current stream when its prefix extends the
    stream's prefix and the extra characters agree with the generated
    text so far. Otherwise the current stream is cancelled and replaced.
    """

    def __init__(self) -> None:
        self._current: Optional[PendingStream] = None
        self._lock = threading.RLock()
        self._streams_started = 0

    @property
    def current(self) -> Optional[PendingStream]:
        return self._current

    @property
    def streams_started(self) -> int:
        """Number of model calls started."""
        return self._streams_started

    def acquire_or_share(self, prefix_text: str, start_fn: StartFn) -> AsyncIterator[str]:
        """Get a delta stream for ``prefix_text``, reusing a compatible model call.

        Must be called from a running event loop. The compatibility check and
        the replacement of an incompatible stream happen as one step.

        Args:
            prefix_text: Text before the cursor
            start_fn: Starts a new model call if none can be reused

        Returns:
            Async iterator of deltas continuing ``prefix_text``
        """
        with self._lock:
            stream = self._current
            if stream is not None and self.is_compatible(stream, prefix_text):
                logger.debug(f"Reusing model stream ({len(stream.text)} chars buffered)")
            else:
                if stream is not None:
                    logger.debug("Cancelling incompatible model stream")
                    stream.cancel()
                stream = PendingStream(prefix_text, start_fn, on_done=self._retire)
                self._current = stream
                self._streams_started += 1
                stream.start()
            already_typed = prefix_text[len(stream.key_prefix) :]
            return _skip_typed(stream.subscribe(), already_typed)

    @staticmethod
    def is_compatible(stream: PendingStream, prefix_text: str) -> bool:
        """Whether a request for ``prefix_text`` can attach to ``stream``."""
        if stream.ended or not prefix_text.startswith(stream.key_prefix):
            return False
        typed = prefix_text[len(stream.key_prefix) :]
        generated = stream.text
        return generated.startswith(typed) or typed.startswith(generated)

    def cancel(self) -> None:
        """Cancel and retire the current stream, if any."""
        with self._lock:
            if self._current is not None:
                self._current.cancel()
            self._current = None

    async def aclose(self) -> None:
        """Cancel the current stream and wait for it to shut down."""
        stream = self._current
        self.cancel()
        if stream is not None:
            await stream.wait_closed()

    def _retire(self, stream: PendingStream) -> None:
        with self._lock:
            if self._current is stream:
                self._current = None


async def _skip_typed(source: AsyncIterator[str], already_typed: str) -> AsyncIterator[str]:
    """Drop the characters the user has already typed from the front of a stream."""
    try:
        async for chunk in source:
            if already_typed:
                matched = 0
                limit = min(len(chunk), len(already_typed))
                while matched < limit and chunk[matched] == already_typed[matched]:
                    matched += 1
                if matched < limit:
                    # Diverged from what was typed
                    already_typed = ""
                else:
                    already_typed = already_typed[matched:]
                chunk = chunk[matched:]
                if not chunk:
                    continue
            yield chunk
    finally:
        await source.aclose()
