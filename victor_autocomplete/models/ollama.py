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

"""Ollama completion model (``/api/generate`` streaming)."""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from victor_autocomplete.errors import ModelStreamError
from victor_autocomplete.models.base import BaseCompletionModel

logger = logging.getLogger(__name__)


class OllamaCompletionModel(BaseCompletionModel):
    """Streams raw completions from a local Ollama server."""

    provider_name = "ollama"
    default_model = "codellama-7b"

    def __init__(
        self,
        model: str,
        completion_options: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Ollama model.

        Args:
            model: Model name (e.g., "starcoder2:3b")
            completion_options: Default completion options
            title: Display title
            api_base: Server URL (default http://localhost:11434)
            api_key: Bearer token for servers behind an authenticating proxy
            timeout: HTTP timeout in seconds
            transport: Custom httpx transport (testing)
        """
        super().__init__(model, completion_options, title)
        self.api_base = (api_base or "http://localhost:11434").rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _build_body(self, prompt: str, options: Dict[str, Any]) -> Dict[str, Any]:
        ollama_options: Dict[str, Any] = {}
        if "temperature" in options:
            ollama_options["temperature"] = options["temperature"]
        if options.get("max_tokens"):
            ollama_options["num_predict"] = options["max_tokens"]
        if options.get("stop"):
            ollama_options["stop"] = list(options["stop"])
        for key in ("top_p", "top_k", "num_ctx"):
            if key in options:
                ollama_options[key] = options[key]
        return {
            "model": self.model,
            "prompt": prompt,
            "raw": bool(options.get("raw", False)),
            "stream": True,
            "options": ollama_options,
        }

    def _headers(self) -> Dict[str, str]:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    async def stream_complete(self, prompt: str, **options: Any) -> AsyncIterator[str]:
        body = self._build_body(prompt, self.merged_options(options))
        try:
            async with httpx.AsyncClient(
                base_url=self.api_base, timeout=self._timeout, transport=self._transport
            ) as client:
                async with client.stream(
                    "POST", "/api/generate", json=body, headers=self._headers()
                ) as response:
                    if response.status_code >= 400:
                        detail = (await response.aread()).decode(errors="replace")
                        raise ModelStreamError(
                            f"Ollama request failed ({response.status_code}): {detail}",
                            provider=self.provider_name,
                            status_code=response.status_code,
                        )
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError as e:
                            raise ModelStreamError(
                                f"Malformed Ollama response: {line[:100]}",
                                provider=self.provider_name,
                            ) from e
                        if data.get("error"):
                            raise ModelStreamError(
                                f"Ollama error: {data['error']}", provider=self.provider_name
                            )
                        if data.get("response"):
                            yield data["response"]
                        if data.get("done"):
                            return
        except httpx.HTTPError as e:
            raise ModelStreamError(
                f"Failed to reach Ollama at {self.api_base}: {e}", provider=self.provider_name
            ) from e
