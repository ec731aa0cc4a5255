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

"""Registry of autocomplete model providers.

Maps provider names from the configuration (``ollama``, ``openai``, ...)
to model classes and builds model instances from a ``ModelDescription``.
"""

import logging
from typing import Any, Callable, Dict, Optional, Type

from victor_autocomplete.config import ModelDescription
from victor_autocomplete.errors import ConfigurationError
from victor_autocomplete.models.base import BaseCompletionModel
from victor_autocomplete.models.ollama import OllamaCompletionModel
from victor_autocomplete.models.openai import LMStudioCompletionModel, OpenAICompletionModel

logger = logging.getLogger(__name__)

FALLBACK_MODEL = "codellama-7b"
FALLBACK_MAX_TOKENS = 1024

ModelFactory = Callable[..., BaseCompletionModel]


class ModelRegistry:
    """Registry for completion model providers.

    Supports:
    - Registration of model classes by provider name
    - Factory-based construction for custom providers
    """

    def __init__(self):
        """Initialize the registry."""
        self._model_classes: Dict[str, Type[BaseCompletionModel]] = {}
        self._factories: Dict[str, ModelFactory] = {}

    def register(self, model_class: Type[BaseCompletionModel], name: Optional[str] = None) -> None:
        """Register a model class.

        Args:
            model_class: The model class
            name: Provider name (defaults to the class's provider_name)
        """
        name = name or model_class.provider_name
        if not name:
            raise ConfigurationError(f"{model_class.__name__} has no provider name")
        if name in self._model_classes:
            logger.warning(f"Overwriting existing model provider: {name}")
        self._model_classes[name] = model_class
        logger.debug(f"Registered model provider: {name}")

    def register_factory(self, name: str, factory: ModelFactory) -> None:
        """Register a factory called with the same keyword arguments as a model class.

        Args:
            name: Provider name
            factory: Factory function that creates the model
        """
        self._factories[name] = factory
        logger.debug(f"Registered model factory: {name}")

    def get(self, name: str) -> Optional[Type[BaseCompletionModel]]:
        """Get a model class by provider name."""
        return self._model_classes.get(name)

    def unregister(self, name: str) -> bool:
        """Unregister a provider.

        Returns:
            True if the provider was found and removed
        """
        found = False
        if name in self._model_classes:
            del self._model_classes[name]
            found = True
        if name in self._factories:
            del self._factories[name]
            found = True
        return found

    def list_providers(self) -> list[str]:
        """List all registered provider names."""
        return sorted(set(self._model_classes) | set(self._factories))

    def model_from_description(
        self,
        desc: Optional[ModelDescription],
        completion_options: Optional[Dict[str, Any]] = None,
    ) -> Optional[BaseCompletionModel]:
        """Build a model from its description.

        The description's completion options override ``completion_options``.
        The model name and ``max_tokens`` fall back to the provider defaults.

        Args:
            desc: Model description from the configuration
            completion_options: Base completion options

        Returns:
            The model, or None if no description is given or the provider is unknown
        """
        if desc is None:
            logger.debug("No autocomplete model configured")
            return None

        model_class = self._model_classes.get(desc.provider)
        factory = self._factories.get(desc.provider)
        if model_class is None and factory is None:
            logger.warning(f"Unknown autocomplete provider: {desc.provider}")
            return None

        options = {**(completion_options or {}), **desc.completion_options}
        default_model = getattr(model_class, "default_model", None)
        default_max_tokens = getattr(model_class, "default_max_tokens", None)
        options["max_tokens"] = options.get("max_tokens") or default_max_tokens or FALLBACK_MAX_TOKENS

        kwargs: Dict[str, Any] = {
            "model": desc.model or default_model or FALLBACK_MODEL,
            "completion_options": options,
            "title": desc.title,
        }
        if desc.api_base:
            kwargs["api_base"] = desc.api_base
        if desc.api_key:
            kwargs["api_key"] = desc.api_key

        build = factory or model_class
        try:
            return build(**kwargs)
        except TypeError as e:
            raise ConfigurationError(f"Invalid settings for provider {desc.provider}: {e}") from e

    def clear(self) -> None:
        """Clear all registered providers."""
        self._model_classes.clear()
        self._factories.clear()


def _builtin_registry() -> ModelRegistry:
    registry = ModelRegistry()
    for model_class in (OllamaCompletionModel, OpenAICompletionModel, LMStudioCompletionModel):
        registry.register(model_class)
    return registry


# Global registry singleton
_model_registry: Optional[ModelRegistry] = None


def get_model_registry() -> ModelRegistry:
    """Get the global model registry with the built-in providers."""
    global _model_registry
    if _model_registry is None:
        _model_registry = _builtin_registry()
    return _model_registry


def reset_model_registry() -> None:
    """Reset the global model registry.

    Useful for testing.
    """
    global _model_registry
    _model_registry = None


def model_from_description(
    desc: Optional[ModelDescription], completion_options: Optional[Dict[str, Any]] = None
) -> Optional[BaseCompletionModel]:
    """Build a model from its description using the global registry."""
    return get_model_registry().model_from_description(desc, completion_options)
