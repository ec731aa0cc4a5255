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

"""Tab-autocomplete configuration.

Configures both the autocomplete model (which provider/model serves
completions) and the request pipeline (prompt budget, multiline policy,
context sources, cache size and stop heuristics).

Example ``autocomplete.yaml``:

```yaml
tab_autocomplete_model:
  provider: ollama
  model: starcoder2:3b
  api_base: http://localhost:11434

tab_autocomplete_options:
  multiline_completions: auto
  max_prompt_tokens: 1024
  context_timeout_ms: 100
  cache_capacity: 1000
```
"""

import logging
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from victor_autocomplete.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ModelDescription(BaseModel):
    """Description of the model serving tab completions."""

    provider: str = Field(description="Provider name (ollama, openai, lmstudio, ...)")
    model: str = Field(default="", description="Model name (provider default if empty)")
    title: Optional[str] = Field(default=None, description="Display title")
    api_base: Optional[str] = Field(default=None, description="Base URL of the provider API")
    api_key: Optional[str] = Field(default=None, description="API key for hosted providers")
    completion_options: Dict[str, Any] = Field(
        default_factory=dict, description="Provider completion options (max_tokens, stop, ...)"
    )


class AutocompleteOptions(BaseModel):
    """Options for the completion request pipeline."""

    # Generation policy
    multiline_completions: Literal["always", "never", "auto"] = Field(
        default="auto", description="Whether completions may span multiple lines"
    )
    template: Optional[str] = Field(
        default=None,
        description="Prompt template override with {prefix} and {suffix} placeholders",
    )
    completion_options: Dict[str, Any] = Field(
        default_factory=dict, description="Provider-specific completion parameters"
    )

    # Prompt budget
    max_prompt_tokens: int = Field(default=1024, description="Token budget for the prompt")
    prefix_percentage: float = Field(
        default=0.85, description="Share of the remaining budget given to the prefix"
    )
    max_suffix_percentage: float = Field(
        default=0.25, description="Maximum share of the budget given to the suffix"
    )

    # Context sources
    use_copy_buffer: bool = Field(default=True, description="Include clipboard text as a snippet")
    use_suffix: bool = Field(default=True, description="Send text after the cursor")
    use_recently_edited: bool = Field(default=True, description="Include recently edited ranges")
    use_definitions: bool = Field(default=True, description="Include LSP symbol definitions")
    context_timeout_ms: int = Field(
        default=100, description="Upper bound on the symbol definition lookup"
    )

    # Cache and stop heuristics
    cache_capacity: int = Field(default=1000, description="Maximum cached completions")
    similarity_threshold: float = Field(
        default=0.1,
        description="Normalized edit distance below which a line matches the line below the cursor",
    )
    similarity_min_length: int = Field(
        default=4, description="Minimum line length for fuzzy similar-line matching"
    )

    @field_validator("prefix_percentage", "max_suffix_percentage", "similarity_threshold")
    @classmethod
    def _check_ratio(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("must be between 0 and 1")
        return value

    @field_validator("max_prompt_tokens", "context_timeout_ms", "cache_capacity")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value


class AutocompleteConfig(BaseModel):
    """Top-level autocomplete configuration."""

    tab_autocomplete_model: Optional[ModelDescription] = Field(
        default=None, description="Model serving tab completions (disabled if unset)"
    )
    tab_autocomplete_options: AutocompleteOptions = Field(
        default_factory=AutocompleteOptions, description="Request pipeline options"
    )


def load_config(path: Union[str, Path]) -> AutocompleteConfig:
    """Load autocomplete configuration from a YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Parsed configuration (defaults if the file is missing or empty)

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No autocomplete config at {path}, using defaults")
        return AutocompleteConfig()

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    if data is None:
        return AutocompleteConfig()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")

    try:
        return AutocompleteConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid autocomplete config in {path}: {e}") from e
