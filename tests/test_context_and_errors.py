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

"""Tests for context sources, cancellation tokens and error reporting."""

import asyncio
import io

import pytest
from rich.console import Console

from tests.conftest import RecordingNotifier
from victor_autocomplete.completion.context import (
    RecentlyEditedTracker,
    bounded_wait,
    read_clipboard,
)
from victor_autocomplete.completion.protocol import CancellationToken, Position, TextDocument
from victor_autocomplete.errors import (
    ConsoleErrorNotifier,
    ContextTimeoutError,
    ErrorReporter,
    ModelStreamError,
    kind_key,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestBoundedWait:
    """Tests for bounded_wait."""

    def test_returns_result(self):
        async def fast():
            return ["snippet"]

        assert asyncio.run(bounded_wait(fast(), 1.0, [])) == ["snippet"]

    def test_timeout_returns_default(self):
        async def slow():
            await asyncio.sleep(1.0)
            return ["late"]

        assert asyncio.run(bounded_wait(slow(), 0.01, [])) == []

    def test_timeout_can_raise(self):
        async def slow():
            await asyncio.sleep(1.0)

        with pytest.raises(ContextTimeoutError):
            asyncio.run(bounded_wait(slow(), 0.01, None, raise_on_timeout=True))


class TestRecentlyEditedTracker:
    """Tests for RecentlyEditedTracker."""

    TEXT = "line0\nline1\nline2\nline3\nline4\nline5"

    def test_newest_first(self):
        tracker = RecentlyEditedTracker()
        tracker.record_edit("a.py", 0, 0, self.TEXT)
        tracker.record_edit("b.py", 4, 5, self.TEXT)

        ranges = tracker.get_recently_edited_ranges()

        assert [(r.file_path, r.contents) for r in ranges] == [
            ("b.py", "line4\nline5"),
            ("a.py", "line0"),
        ]

    def test_overlapping_edits_merge(self):
        tracker = RecentlyEditedTracker()
        tracker.record_edit("a.py", 1, 2, self.TEXT)
        tracker.record_edit("a.py", 3, 3, self.TEXT)

        ranges = tracker.get_recently_edited_ranges()

        assert len(ranges) == 1
        assert ranges[0].contents == "line1\nline2\nline3"

    def test_bounded(self):
        tracker = RecentlyEditedTracker(max_ranges=2, max_documents=1)
        tracker.record_edit("a.py", 0, 0, self.TEXT)
        tracker.record_edit("b.py", 0, 0, self.TEXT)
        tracker.record_edit("c.py", 0, 0, self.TEXT)

        assert [r.file_path for r in tracker.get_recently_edited_ranges()] == ["c.py", "b.py"]
        assert [d.file_path for d in tracker.get_recently_edited_documents()] == ["c.py"]

    def test_stale_edits_forgotten(self):
        clock = FakeClock()
        tracker = RecentlyEditedTracker(stale_after_s=60, clock=clock)
        tracker.record_edit("a.py", 0, 0, self.TEXT)
        clock.now += 61
        tracker.record_edit("b.py", 0, 0, self.TEXT)

        assert [r.file_path for r in tracker.get_recently_edited_ranges()] == ["b.py"]
        assert [d.file_path for d in tracker.get_recently_edited_documents()] == ["b.py"]

    def test_clear(self):
        tracker = RecentlyEditedTracker()
        tracker.record_edit("a.py", 0, 0, self.TEXT)
        tracker.clear()
        assert tracker.get_recently_edited_ranges() == []


class TestReadClipboard:
    """Tests for read_clipboard."""

    def test_no_clipboard(self):
        assert asyncio.run(read_clipboard(None)) == ""

    def test_failing_clipboard(self):
        async def broken():
            raise OSError("no display")

        assert asyncio.run(read_clipboard(broken)) == ""


class TestTextDocument:
    """Tests for TextDocument."""

    def test_split_at_position(self):
        document = TextDocument("a.py", "ab\ncd\nef")
        position = Position(line=1, character=1)

        assert document.offset_at(position) == 4
        assert document.text_before(position) == "ab\nc"
        assert document.text_after(position) == "d\nef"
        assert document.line_at(5) == ""

    def test_position_clamped(self):
        document = TextDocument("a.py", "ab\ncd")
        assert document.offset_at(Position(line=9, character=9)) == 5


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_cancel_and_reset(self):
        token = CancellationToken()
        assert not token.is_cancelled

        token.cancel("superseded")
        assert token.is_cancelled
        assert token.cancel_reason == "superseded"

        token.reset()
        assert not token.is_cancelled
        assert token.cancel_reason is None

    def test_wait_for_cancellation(self):
        async def scenario():
            token = CancellationToken()
            waiter = asyncio.ensure_future(token.wait_for_cancellation())
            await asyncio.sleep(0)
            token.cancel()
            await asyncio.wait_for(waiter, 1.0)
            return token.cancel_reason

        assert asyncio.run(scenario()) == "cancelled"


class TestErrorReporter:
    """Tests for ErrorReporter."""

    def test_reports_each_message_once(self):
        notifier = RecordingNotifier()
        reporter = ErrorReporter(notifier=notifier)

        assert reporter.report(ModelStreamError("connection refused"))
        assert not reporter.report(ModelStreamError("connection refused"))
        assert reporter.report(ModelStreamError("model not found"))

        assert notifier.messages == ["connection refused", "model not found"]

    def test_reset(self):
        notifier = RecordingNotifier()
        reporter = ErrorReporter(notifier=notifier)
        error = RuntimeError("boom")

        reporter.report(error)
        assert reporter.was_shown(error)
        reporter.reset()
        assert not reporter.was_shown(error)
        assert reporter.report(error)

    def test_kind_key_groups_by_status(self):
        notifier = RecordingNotifier()
        reporter = ErrorReporter(notifier=notifier, key_func=kind_key)

        reporter.report(ModelStreamError("timeout after 1s", provider="ollama", status_code=504))
        reporter.report(ModelStreamError("timeout after 2s", provider="ollama", status_code=504))
        reporter.report(ModelStreamError("bad key", provider="openai", status_code=401))

        assert notifier.messages == ["timeout after 1s", "bad key"]
        assert kind_key(ModelStreamError("x", provider="ollama", status_code=504)) == (
            "ModelStreamError:ollama:504"
        )

    def test_console_notifier(self):
        buffer = io.StringIO()
        notifier = ConsoleErrorNotifier(Console(file=buffer, width=80))

        notifier("connection refused")

        output = buffer.getvalue()
        assert "connection refused" in output
        assert "Autocomplete error" in output
