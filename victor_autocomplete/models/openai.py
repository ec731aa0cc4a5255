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

"""OpenAI-compatible completion model.

Uses the legacy ``/v1/completions`` endpoint, which takes a raw prompt
and is what FIM-capable servers (LM Studio, llama.cpp, vLLM) expose.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from victor_autocomplete.errors import ModelStreamError
from victor_autocomplete.models.base import BaseCompletionModel

logger = logging.getLogger(__name__)

# Options forwarded to the completions endpoint as-is
_PASSTHROUGH_OPTIONS = ("temperature", "top_p", "presence_penalty", "frequency_penalty", "seed")

# OpenAI rejects more stop sequences than this
OPENAI_MAX_STOP_SEQUENCES = 4


class OpenAICompletionModel(BaseCompletionModel):
    """Streams completions from an OpenAI-compatible server."""

    provider_name = "openai"
    default_model = "gpt-3.5-turbo-instruct"
    max_stop_sequences: Optional[int] = OPENAI_MAX_STOP_SEQUENCES

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
        super().__init__(model, completion_options, title)
        self.api_base = (api_base or "https://api.openai.com/v1").rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _build_body(self, prompt: str, options: Dict[str, Any]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"model": self.model, "prompt": prompt, "stream": True}
        if options.get("max_tokens"):
            body["max_tokens"] = options["max_tokens"]
        if options.get("stop"):
            body["stop"] = list(options["stop"])[: self.max_stop_sequences]
        for key in _PASSTHROUGH_OPTIONS:
            if key in options:
                body[key] = options[key]
        return body

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def stream_complete(self, prompt: str, **options: Any) -> AsyncIterator[str]:
        body = self._build_body(prompt, self.merged_options(options))
        try:
            async with httpx.AsyncClient(
                base_url=self.api_base, timeout=self._timeout, transport=self._transport
            ) as client:
                async with client.stream(
                    "POST", "/completions", json=body, headers=self._headers()
                ) as response:
                    if response.status_code >= 400:
                        detail = (await response.aread()).decode(errors="replace")
                        raise ModelStreamError(
                            f"{self.provider_name} request failed ({response.status_code}): {detail}",
                            provider=self.provider_name,
                            status_code=response.status_code,
                        )
                    async for line in response.aiter_lines():
                        line = line.strip()
                        if not line.startswith("data:"):
                            continue
                        payload = line[len("data:") :].strip()
                        if payload == "[DONE]":
                            return
                        try:
                            data = json.loads(payload)
                            choices = data.get("choices") or []
                            text = choices[0].get("text", "") if choices else ""
                        except (json.JSONDecodeError, AttributeError) as e:
                            raise ModelStreamError(
                                f"Malformed {self.provider_name} response: {payload[:100]}",
                                provider=self.provider_name,
                            ) from e
                        if text:
                            yield text
        except httpx.HTTPError as e:
            raise ModelStreamError(
                f"Failed to reach {self.api_base}: {e}", provider=self.provider_name
            ) from e


class LMStudioCompletionModel(OpenAICompletionModel):
    """LM Studio's local OpenAI-compatible server."""

    provider_name = "lmstudio"
    default_model = "codellama-7b"
    max_stop_sequences = None

    def __init__(self, model: str, api_base: Optional[str] = None, **kwargs: Any):
        super().__init__(model, api_base=api_base or "http://localhost:1234/v1", **kwargs)
