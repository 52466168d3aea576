"""
Tree-sitter runtime shared by the extraction backends.

Grammar objects are immutable and cached per language; a fresh ``Parser`` is
built for every parse so that concurrent callers never share parser state.

Uses tree-sitter >= 0.22 API with individual language packages.
"""

from __future__ import annotations

import importlib
import logging
import re
from bisect import bisect_right
from typing import Optional

import tree_sitter as ts

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Grammar lookup
# ---------------------------------------------------------------------------

# language → (module, attribute returning the raw language pointer)
_GRAMMARS: dict[str, tuple[str, str]] = {
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
    "java": ("tree_sitter_java", "language"),
    "c": ("tree_sitter_c", "language"),
    "cpp": ("tree_sitter_cpp", "language"),
    "go": ("tree_sitter_go", "language"),
    "rust": ("tree_sitter_rust", "language"),
    "ruby": ("tree_sitter_ruby", "language"),
    "php": ("tree_sitter_php", "language_php"),
    "c_sharp": ("tree_sitter_c_sharp", "language"),
}

# Cache Language objects to avoid repeated construction
_LANG_CACHE: dict[str, ts.Language] = {}


class GrammarUnavailable(Exception):
    """Raised when the tree-sitter grammar package for a language is missing."""


def get_language(language: str) -> ts.Language:
    """
    Return the tree_sitter.Language object for *language*.

    Raises
    ------
    GrammarUnavailable
        If the language is unknown or its grammar package is not installed.
    """
    cached = _LANG_CACHE.get(language)
    if cached is not None:
        return cached
    entry = _GRAMMARS.get(language)
    if entry is None:
        raise GrammarUnavailable(f"no tree-sitter grammar registered for {language}")
    module_name, attr = entry
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise GrammarUnavailable(
            f"tree-sitter grammar '{module_name}' is not installed"
        ) from exc
    lang_obj = ts.Language(getattr(module, attr)())
    _LANG_CACHE[language] = lang_obj
    return lang_obj


def parse_tree(source_bytes: bytes, language: str) -> ts.Tree:
    """Parse *source_bytes* with a parser created for this call only."""
    parser = ts.Parser(get_language(language))
    return parser.parse(source_bytes)


# ---------------------------------------------------------------------------
# Source text helpers
# ---------------------------------------------------------------------------

class SourceText:
    """A parsed text with byte ↔ character offset conversion.

    Tree-sitter reports UTF-8 byte offsets; edits operate on ``str`` indices.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.data = text.encode("utf-8")
        self._byte_starts: Optional[list[int]] = None
        if len(self.data) != len(text):
            starts: list[int] = []
            pos = 0
            for ch in text:
                starts.append(pos)
                pos += len(ch.encode("utf-8"))
            self._byte_starts = starts

    def char_offset(self, byte_offset: int) -> int:
        """Convert a byte offset from tree-sitter into a ``str`` index."""
        if self._byte_starts is None:
            return byte_offset
        if byte_offset >= len(self.data):
            return len(self.text)
        return bisect_right(self._byte_starts, byte_offset) - 1

    def node_text(self, node) -> str:
        if node is None:
            return ""
        return self.data[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def line_prefix(self, node) -> bytes:
        """Bytes between the start of *node*'s line and the node itself."""
        line_start = self.data.rfind(b"\n", 0, node.start_byte) + 1
        return self.data[line_start:node.start_byte]


# ---------------------------------------------------------------------------
# Syntax errors
# ---------------------------------------------------------------------------

def first_syntax_error(node) -> Optional[str]:
    """
    Describe the first ERROR or MISSING node under *node*, or None.

    The description has the form ``"line L, column C: <detail>"``.
    """
    if node is None or not node.has_error:
        return None
    stack = [node]
    while stack:
        current = stack.pop()
        if current.is_missing:
            row, col = current.start_point
            return f"line {row + 1}, column {col + 1}: missing '{current.type}'"
        if current.type == "ERROR":
            row, col = current.start_point
            snippet = (current.text or b"").decode("utf-8", errors="replace")
            snippet = " ".join(snippet.split())
            if len(snippet) > 40:
                snippet = snippet[:37] + "..."
            return f"line {row + 1}, column {col + 1}: unexpected '{snippet}'"
        # Depth-first, leftmost child first
        for child in reversed(current.children):
            if child.has_error or child.is_missing:
                stack.append(child)
    row, col = node.start_point
    return f"line {row + 1}, column {col + 1}: syntax error"


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

COMMENT_TYPES = frozenset({"comment", "line_comment", "block_comment"})

_COMMENT_MARKERS = re.compile(r"^\s*(?:///?|#|/\*+|\*+/?|--)\s?")


def clean_comment(raw: str) -> str:
    """Strip comment markers and join the remaining text into one line."""
    parts: list[str] = []
    for line in raw.splitlines():
        line = line.strip()
        if line.endswith("*/"):
            line = line[:-2]
        line = _COMMENT_MARKERS.sub("", line).strip()
        if line:
            parts.append(line)
    return " ".join(parts)


def leading_comments(node, source: SourceText, extra_types=frozenset()) -> list:
    """
    Return the run of comment nodes attached to the front of *node*.

    A comment is attached when it sits alone on its line(s) and ends on the
    line directly above the node (or above the previously attached comment).
    Nodes whose type is in *extra_types* (e.g. Rust attributes) are attached
    by the same rule.  Result is in source order.
    """
    attached: list = []
    current = node
    prev = _prev_significant(node, source)
    while prev is not None and (prev.type in COMMENT_TYPES or prev.type in extra_types):
        end_row, end_col = prev.end_point
        if end_col == 0 and end_row > prev.start_point[0]:
            end_row -= 1  # token swallowed its newline
        if end_row != current.start_point[0] - 1:
            break
        if source.line_prefix(prev).strip():
            break
        attached.append(prev)
        current = prev
        prev = _prev_significant(prev, source)
    attached.reverse()
    return attached


def _prev_significant(node, source: SourceText):
    """Previous sibling, skipping anonymous line terminators (Go ``\\n``)."""
    prev = node.prev_sibling
    while prev is not None and not prev.is_named and not source.node_text(prev).strip():
        prev = prev.prev_sibling
    return prev
