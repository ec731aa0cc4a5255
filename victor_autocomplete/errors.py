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

"""Autocomplete errors and host error reporting.

Only model stream failures are meant to reach the user. Everything else
(missing model, context timeouts, cancellation) resolves silently to an
empty completion.
"""

import logging
import sys
from typing import Callable, Optional

from rich.console import Console
from rich.panel import Panel

logger = logging.getLogger(__name__)


class AutocompleteError(Exception):
    """Base class for autocomplete errors."""


class ConfigurationError(AutocompleteError):
    """Invalid autocomplete configuration."""


class ModelUnavailableError(AutocompleteError):
    """No autocomplete model is configured or it could not be created."""


class ContextTimeoutError(AutocompleteError):
    """A context lookup exceeded its time bound."""


class StreamCancelledError(AutocompleteError):
    """The shared model stream was cancelled, usually by an incompatible newer request."""


class ModelStreamError(AutocompleteError):
    """The model provider failed or returned malformed data."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


ErrorNotifier = Callable[[str], None]


class ConsoleErrorNotifier:
    """Default notifier that prints errors to stderr."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console(file=sys.stderr)

    def __call__(self, message: str) -> None:
        self._console.print(
            Panel(message, title="[bold red]Autocomplete error[/]", border_style="red")
        )


def message_key(error: BaseException) -> str:
    """Deduplication key: the raw error message."""
    return str(error)


def kind_key(error: BaseException) -> str:
    """Deduplication key: error type plus provider/status when available."""
    parts = [type(error).__name__]
    provider = getattr(error, "provider", None)
    if provider:
        parts.append(str(provider))
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        parts.append(str(status_code))
    return ":".join(parts)


class ErrorReporter:
    """Surfaces errors to the host at most once per distinct key.

    A persistent misconfiguration fails every keystroke; without
    deduplication each failure would pop another notification.
    """

    def __init__(
        self,
        notifier: Optional[ErrorNotifier] = None,
        key_func: Callable[[BaseException], str] = message_key,
    ):
        """Initialize the reporter.

        Args:
            notifier: Host callback receiving the message (rich console if not provided)
            key_func: Maps an error to its deduplication key
        """
        self._notifier = notifier or ConsoleErrorNotifier()
        self._key_func = key_func
        self._shown: set[str] = set()

    def report(self, error: BaseException) -> bool:
        """Report an error.

        Returns:
            True if the host was notified, False if already shown
        """
        key = self._key_func(error)
        if key in self._shown:
            logger.debug(f"Suppressing repeated autocomplete error: {key}")
            return False
        self._shown.add(key)
        self._notifier(str(error) or type(error).__name__)
        return True

    def was_shown(self, error: BaseException) -> bool:
        return self._key_func(error) in self._shown

    def reset(self) -> None:
        """Forget all shown errors."""
        self._shown.clear()
