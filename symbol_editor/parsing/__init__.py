"""
Symbol extraction backends.

:func:`get_extractor` is the only place that chooses a backend; everything
downstream works on :class:`~symbol_editor.parsing.symbols.Symbol` trees
and never branches on language.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..errors import ValidationError
from ..language import SUPPORTED_LANGUAGES, detect_language, normalize_language
from .base import SymbolExtractor
from .extractor import TreeSitterExtractor
from .go_extractor import GoExtractor
from .symbols import ParsedSource, Symbol, SymbolKind, format_symbols

logger = logging.getLogger(__name__)

__all__ = [
    "ParsedSource",
    "Symbol",
    "SymbolExtractor",
    "SymbolKind",
    "format_symbols",
    "get_extractor",
    "parse_file",
    "parse_source",
]


def get_extractor(language: Optional[str], attach_docs: bool = True) -> SymbolExtractor:
    """Return the extraction backend for *language*.

    Raises
    ------
    ValidationError
        If the language is unknown.
    """
    lang = normalize_language(language) if language else None
    if lang not in SUPPORTED_LANGUAGES:
        raise ValidationError(f"Unsupported language: {language}")
    if lang == "go":
        return GoExtractor(attach_docs=attach_docs)
    return TreeSitterExtractor(lang, attach_docs=attach_docs)


def parse_source(source_text: str, language: str, attach_docs: bool = True) -> ParsedSource:
    """Extract the symbol tree of *source_text* written in *language*."""
    return get_extractor(language, attach_docs).extract(source_text)


def parse_file(
    path: str | Path,
    language: Optional[str] = None,
    attach_docs: bool = True,
    overrides: Optional[dict] = None,
) -> ParsedSource:
    """Read *path* and extract its symbols, detecting the language by extension."""
    path = Path(path)
    lang = language or detect_language(str(path), overrides)
    if lang is None:
        raise ValidationError(f"Unsupported language: {path.suffix or path.name}")
    with open(path, "r", encoding="utf-8", errors="replace", newline="") as fh:
        text = fh.read()
    logger.debug("[SymbolEdit] parsing %s as %s", path, lang)
    return parse_source(text, lang, attach_docs)
