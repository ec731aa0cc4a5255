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

"""Fill-in-the-middle prompt templates per model family."""

from typing import Any, Dict, Tuple

# FIM (Fill-In-the-Middle) prompt templates. Templates use str.format
# placeholders {prefix} and {suffix}; stop tokens end generation at the
# model's own end-of-middle markers.
FIM_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "default": {
        "template": "<PRE>{prefix}<SUF>{suffix}<MID>",
        "stop": ["<PRE>", "<SUF>", "<MID>", "<EOT>"],
    },
    "codellama": {
        "template": "<PRE> {prefix} <SUF>{suffix} <MID>",
        "stop": ["<PRE>", "<SUF>", "<MID>", "<EOT>"],
    },
    "starcoder": {
        "template": "<fim_prefix>{prefix}<fim_suffix>{suffix}<fim_middle>",
        "stop": ["<fim_prefix>", "<fim_suffix>", "<fim_middle>", "<|endoftext|>", "<file_sep>"],
    },
    "deepseek": {
        "template": "<｜fim▁begin｜>{prefix}<｜fim▁hole｜>{suffix}<｜fim▁end｜>",
        "stop": ["<｜fim▁begin｜>", "<｜fim▁hole｜>", "<｜fim▁end｜>", "<｜end▁of▁sentence｜>"],
    },
    "qwen": {
        "template": "<|fim_prefix|>{prefix}<|fim_suffix|>{suffix}<|fim_middle|>",
        "stop": ["<|fim_prefix|>", "<|fim_suffix|>", "<|fim_middle|>", "<|endoftext|>"],
    },
}

# Substrings of model names that select a template family
_MODEL_FAMILIES = [
    ("codellama", "codellama"),
    ("starcoder", "starcoder"),
    ("stable-code", "starcoder"),
    ("deepseek", "deepseek"),
    ("qwen", "qwen"),
]


def template_family_for_model(model: str) -> str:
    """Pick the template family from a model name."""
    model_lower = (model or "").lower()
    for needle, family in _MODEL_FAMILIES:
        if needle in model_lower:
            return family
    return "default"


def get_template_for_model(model: str) -> Tuple[str, Dict[str, Any]]:
    """Get the prompt template and default completion options for a model.

    Args:
        model: Model name

    Returns:
        Tuple of (template, completion_options)
    """
    entry = FIM_TEMPLATES[template_family_for_model(model)]
    return entry["template"], {"stop": list(entry["stop"])}


def render_prompt(template: str, prefix: str, suffix: str) -> str:
    """Substitute prefix and suffix into a template."""
    return template.format(prefix=prefix, suffix=suffix)
