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

"""Autocomplete model providers."""

from victor_autocomplete.models.base import BaseCompletionModel
from victor_autocomplete.models.ollama import OllamaCompletionModel
from victor_autocomplete.models.openai import LMStudioCompletionModel, OpenAICompletionModel
from victor_autocomplete.models.registry import (
    ModelRegistry,
    get_model_registry,
    model_from_description,
    reset_model_registry,
)

__all__ = [
    "BaseCompletionModel",
    "LMStudioCompletionModel",
    "ModelRegistry",
    "OllamaCompletionModel",
    "OpenAICompletionModel",
    "get_model_registry",
    "model_from_description",
    "reset_model_registry",
]
