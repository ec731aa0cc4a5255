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

"""Per-language autocomplete settings.

Each language declares its single-line comment token (used to render
context snippets), its end-of-line markers (a cursor after one of these
means the statement is closed and there is nothing to complete) and the
stop words that end a completion at the next top-level definition.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Union


@dataclass(frozen=True)
class AutocompleteLanguageInfo:
    """Autocomplete settings for a language."""

    name: str
    comment: str  # Single-line comment token
    end_of_line: List[str] = field(default_factory=list)  # Statement terminators
    stop_words: List[str] = field(default_factory=list)  # Extra stop sequences


PYTHON = AutocompleteLanguageInfo(
    name="python",
    comment="#",
    stop_words=["\ndef", "\nclass", "\n@", "\nif __name__"],
)

TYPESCRIPT = AutocompleteLanguageInfo(
    name="typescript",
    comment="//",
    end_of_line=[";"],
    stop_words=["\nfunction", "\nclass", "\nmodule", "\nexport "],
)

JAVASCRIPT = AutocompleteLanguageInfo(
    name="javascript",
    comment="//",
    end_of_line=[";"],
    stop_words=["\nfunction", "\nclass", "\nmodule", "\nexport "],
)

JAVA = AutocompleteLanguageInfo(
    name="java",
    comment="//",
    end_of_line=[";"],
    stop_words=["\nclass", "\npublic class", "\ninterface"],
)

C = AutocompleteLanguageInfo(
    name="c",
    comment="//",
    end_of_line=[";"],
    stop_words=["\n#include", "\nstruct"],
)

CPP = AutocompleteLanguageInfo(
    name="cpp",
    comment="//",
    end_of_line=[";"],
    stop_words=["\n#include", "\nclass", "\nnamespace", "\ntemplate"],
)

CSHARP = AutocompleteLanguageInfo(
    name="csharp",
    comment="//",
    end_of_line=[";"],
    stop_words=["\nusing", "\nclass", "\nnamespace"],
)

GO = AutocompleteLanguageInfo(
    name="go",
    comment="//",
    stop_words=["\nfunc", "\ntype"],
)

RUST = AutocompleteLanguageInfo(
    name="rust",
    comment="//",
    end_of_line=[";"],
    stop_words=["\nfn", "\nimpl", "\ntrait", "\nstruct", "\nmod"],
)

RUBY = AutocompleteLanguageInfo(
    name="ruby",
    comment="#",
    stop_words=["\ndef", "\nclass", "\nmodule"],
)

PHP = AutocompleteLanguageInfo(
    name="php",
    comment="//",
    end_of_line=[";"],
    stop_words=["\nfunction", "\nclass"],
)

GENERIC = AutocompleteLanguageInfo(name="text", comment="//")


LANGUAGES_BY_EXTENSION: Dict[str, AutocompleteLanguageInfo] = {
    ".py": PYTHON,
    ".pyi": PYTHON,
    ".ts": TYPESCRIPT,
    ".tsx": TYPESCRIPT,
    ".mts": TYPESCRIPT,
    ".js": JAVASCRIPT,
    ".jsx": JAVASCRIPT,
    ".mjs": JAVASCRIPT,
    ".cjs": JAVASCRIPT,
    ".java": JAVA,
    ".c": C,
    ".h": C,
    ".cpp": CPP,
    ".cc": CPP,
    ".cxx": CPP,
    ".hpp": CPP,
    ".cs": CSHARP,
    ".go": GO,
    ".rs": RUST,
    ".rb": RUBY,
    ".php": PHP,
}


def language_for_filepath(file_path: Union[str, Path]) -> AutocompleteLanguageInfo:
    """Detect the autocomplete language from a file path.

    Args:
        file_path: Path to the file

    Returns:
        Language settings (generic settings for unknown extensions)
    """
    ext = Path(file_path).suffix.lower()
    return LANGUAGES_BY_EXTENSION.get(ext, GENERIC)
