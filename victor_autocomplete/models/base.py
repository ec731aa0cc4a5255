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

"""Base interface for autocomplete models.

A model turns a rendered prompt into an async stream of text deltas.
Provider adapters subclass ``BaseCompletionModel`` and implement
``stream_complete``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, ClassVar, Dict, Optional

logger = logging.getLogger(__name__)


class BaseCompletionModel(ABC):
    """Abstract base class for completion models."""

    provider_name: ClassVar[str] = ""
    default_model: ClassVar[Optional[str]] = None
    default_max_tokens: ClassVar[Optional[int]] = None

    def __init__(
        self,
        model: str,
        completion_options: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
    ):
        """Initialize the model.

        Args:
            model: Model name
            completion_options: Defaults merged into every request
            title: Display title
        """
        self.model = model
        self.completion_options: Dict[str, Any] = dict(completion_options or {})
        self.title = title or model

    @abstractmethod
    def stream_complete(self, prompt: str, **options: Any) -> AsyncIterator[str]:
        """Stream a raw completion for a prompt.

        Args:
            prompt: Rendered prompt
            **options: Completion options (stop, temperature, raw, max_tokens, ...)

        Yields:
            Text deltas as they are generated

        Raises:
            ModelStreamError: If the provider fails or returns malformed data
        """
        ...

    def merged_options(self, options: Dict[str, Any]) -> Dict[str, Any]:
        """Request options layered over the model defaults."""
        merged = dict(self.completion_options)
        merged.update({k: v for k, v in options.items() if v is not None})
        return merged

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider={self.provider_name!r}, model={self.model!r})"
