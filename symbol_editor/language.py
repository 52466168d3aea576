"""
Language detection — maps file extensions to the tree-sitter grammar names
understood by the symbol extractors.
"""

from __future__ import annotations

import os
from typing import Optional


# ── Extension → Language mapping ──

EXTENSION_TO_LANGUAGE: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".hxx": "cpp",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "c_sharp",
}

SUPPORTED_LANGUAGES: set[str] = set(EXTENSION_TO_LANGUAGE.values())

# Names people actually type on the command line
_LANGUAGE_ALIASES = {
    "py": "python",
    "js": "javascript",
    "ts": "typescript",
    "golang": "go",
    "c++": "cpp",
    "csharp": "c_sharp",
    "c#": "c_sharp",
    "rs": "rust",
    "rb": "ruby",
}


def normalize_language(name: str) -> str:
    """Return the canonical grammar name for *name* (case-insensitive)."""
    key = name.strip().lower()
    return _LANGUAGE_ALIASES.get(key, key)


def detect_language(
    file_path: str,
    overrides: Optional[dict[str, str]] = None,
) -> Optional[str]:
    """
    Return the grammar name for *file_path*, or None if unsupported.

    Parameters
    ----------
    file_path:
        Any file path; only the extension is examined.
    overrides:
        Optional extension → language map that takes precedence over the
        built-in table (extensions may be given with or without the dot).
    """
    ext = os.path.splitext(file_path)[1].lower()
    if not ext:
        return None
    if overrides:
        for key, lang in overrides.items():
            if ext == ("." + key.lstrip(".")).lower():
                return normalize_language(lang)
    return EXTENSION_TO_LANGUAGE.get(ext)
