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

"""Tests for model stream reuse across overlapping requests."""

import asyncio

import pytest

from tests.conftest import ScriptedModel, collect
from victor_autocomplete.completion.reuse import GeneratorCoalescer, PendingStream
from victor_autocomplete.errors import ModelStreamError, StreamCancelledError


class TestGeneratorCoalescer:
    """Tests for GeneratorCoalescer."""

    def test_extended_prefix_shares_model_call(self):
        """Typing characters the model already produced reuses the stream."""

        async def scenario():
            gate = asyncio.Event()
            model = ScriptedModel(["bar", "()", "\n"], gate=gate, release_first=1)
            coalescer = GeneratorCoalescer()

            first = coalescer.acquire_or_share("foo", lambda: model.stream_complete("p"))
            assert await first.__anext__() == "bar"

            second = coalescer.acquire_or_share("foobar", lambda: model.stream_complete("p"))
            gate.set()
            rest = await collect(second)
            await first.aclose()
            return model, coalescer, rest

        model, coalescer, rest = asyncio.run(scenario())

        assert rest == ["()", "\n"]
        assert len(model.calls) == 1
        assert coalescer.streams_started == 1

    def test_incompatible_prefix_cancels_and_restarts(self):
        async def scenario():
            gate = asyncio.Event()
            model = ScriptedModel(["bar", "()"], gate=gate, release_first=1)
            other = ScriptedModel(["qux"])
            coalescer = GeneratorCoalescer()

            first = coalescer.acquire_or_share("foo", lambda: model.stream_complete("p"))
            assert await first.__anext__() == "bar"
            old = coalescer.current

            second = coalescer.acquire_or_share("baz", lambda: other.stream_complete("q"))
            await old.wait_closed()

            # The superseded view reports the cancellation after its buffered output
            with pytest.raises(StreamCancelledError):
                await collect(first)
            fresh = await collect(second)
            return model, coalescer, old, fresh

        model, coalescer, old, fresh = asyncio.run(scenario())

        assert old.cancelled
        assert model.closed == 1
        assert fresh == ["qux"]
        assert coalescer.streams_started == 2

    def test_diverging_keystroke_is_incompatible(self):
        async def scenario():
            gate = asyncio.Event()
            model = ScriptedModel(["bar", "()"], gate=gate, release_first=1)
            coalescer = GeneratorCoalescer()

            view = coalescer.acquire_or_share("foo", lambda: model.stream_complete("p"))
            await view.__anext__()
            stream = coalescer.current
            checks = {
                "fooba": GeneratorCoalescer.is_compatible(stream, "fooba"),
                "foobarx": GeneratorCoalescer.is_compatible(stream, "foobarx"),
                "foobx": GeneratorCoalescer.is_compatible(stream, "foobx"),
                "fo": GeneratorCoalescer.is_compatible(stream, "fo"),
            }
            await view.aclose()
            await coalescer.aclose()
            return checks

        checks = asyncio.run(scenario())

        assert checks == {"fooba": True, "foobarx": True, "foobx": False, "fo": False}

    def test_identical_requests_share_one_call(self):
        async def scenario():
            model = ScriptedModel(["x = ", "1"])
            coalescer = GeneratorCoalescer()

            a = coalescer.acquire_or_share("foo", lambda: model.stream_complete("p"))
            b = coalescer.acquire_or_share("foo", lambda: model.stream_complete("p"))
            return model, await asyncio.gather(collect(a), collect(b))

        model, (a, b) = asyncio.run(scenario())

        assert a == b == ["x = ", "1"]
        assert len(model.calls) == 1

    def test_late_subscriber_replays_buffer(self):
        async def scenario():
            model = ScriptedModel(["a", "b", "c"])
            coalescer = GeneratorCoalescer()

            early = coalescer.acquire_or_share("foo", lambda: model.stream_complete("p"))
            assert await early.__anext__() == "a"
            late = coalescer.acquire_or_share("foo", lambda: model.stream_complete("p"))
            return await collect(late), await collect(early)

        late, early = asyncio.run(scenario())

        assert late == ["a", "b", "c"]
        assert early == ["b", "c"]

    def test_error_reaches_subscribers(self):
        async def scenario():
            model = ScriptedModel(["a"], error=ModelStreamError("connection refused"))
            coalescer = GeneratorCoalescer()
            view = coalescer.acquire_or_share("foo", lambda: model.stream_complete("p"))

            received = []
            with pytest.raises(ModelStreamError, match="connection refused"):
                async for chunk in view:
                    received.append(chunk)
            return coalescer, received

        coalescer, received = asyncio.run(scenario())

        assert received == ["a"]
        assert coalescer.current is None

    def test_exhausted_stream_is_retired(self):
        async def scenario():
            model = ScriptedModel(["bar"])
            coalescer = GeneratorCoalescer()

            await collect(coalescer.acquire_or_share("foo", lambda: model.stream_complete("p")))
            retired = coalescer.current is None
            await collect(coalescer.acquire_or_share("foobar", lambda: model.stream_complete("p")))
            return model, coalescer, retired

        model, coalescer, retired = asyncio.run(scenario())

        assert retired
        assert len(model.calls) == 2
        assert coalescer.streams_started == 2

    def test_awaitable_start_fn(self):
        async def scenario():
            model = ScriptedModel(["ok"])

            async def start():
                return model.stream_complete("p")

            coalescer = GeneratorCoalescer()
            return await collect(coalescer.acquire_or_share("foo", start))

        assert asyncio.run(scenario()) == ["ok"]


class TestPendingStream:
    """Tests for PendingStream."""

    def test_subscriber_count(self):
        async def scenario():
            gate = asyncio.Event()
            model = ScriptedModel(["a", "b"], gate=gate, release_first=1)
            stream = PendingStream("foo", lambda: model.stream_complete("p"))
            stream.start()

            view = stream.subscribe()
            await view.__anext__()
            during = stream.subscribers
            await view.aclose()
            after = stream.subscribers
            stream.cancel()
            await stream.wait_closed()
            return during, after

        assert asyncio.run(scenario()) == (1, 0)

    def test_on_done_called_once(self):
        async def scenario():
            done = []
            model = ScriptedModel(["a"])
            stream = PendingStream("foo", lambda: model.stream_complete("p"), on_done=done.append)
            stream.start()
            await collect(stream.subscribe())
            stream.cancel()
            await stream.wait_closed()
            return stream, done

        stream, done = asyncio.run(scenario())

        assert done == [stream]
        assert stream.text == "a"
        assert not stream.cancelled
