"""
symbol_editor — structural, symbol-aware source editing.

Public API for library usage::

    from symbol_editor import EditRequest, edit

    result = edit(source, EditRequest(symbol="B", edit_type="delete"), language="go")
"""

from .config import Config
from .errors import EditError, InternalError, NotFoundError, ParseError, ValidationError
from .editing import (
    EditOrchestrator, EditRequest, EditResult, EditType, InsertAnchor, InsertPosition,
    edit, edit_file, edit_file_async, edit_many,
)
from .parsing import ParsedSource, Symbol, SymbolKind, get_extractor, parse_file, parse_source

__all__ = [
    "Config",
    "EditError", "InternalError", "NotFoundError", "ParseError", "ValidationError",
    "EditOrchestrator", "EditRequest", "EditResult", "EditType", "InsertAnchor", "InsertPosition",
    "edit", "edit_file", "edit_file_async", "edit_many",
    "ParsedSource", "Symbol", "SymbolKind", "get_extractor", "parse_file", "parse_source",
]
