"""
Extractor base class — the single capability every parsing backend offers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .symbols import ParsedSource, Symbol, SymbolKind
from .treesitter import (
    GrammarUnavailable,
    SourceText,
    clean_comment,
    first_syntax_error,
    leading_comments,
    parse_tree,
)

logger = logging.getLogger(__name__)


class SymbolExtractor(ABC):
    """Parse source text into an ordered symbol tree.

    Subclasses implement :meth:`_collect`; parsing, syntax-error detection
    and doc-comment attachment are shared here.
    """

    # Node types attached to a declaration's front like comments
    leading_types: frozenset = frozenset()

    def __init__(self, language: str, attach_docs: bool = True) -> None:
        self.language = language
        self.attach_docs = attach_docs

    def extract(self, source_text: str) -> ParsedSource:
        """Return the symbols of *source_text*, or a ``parse_error``.

        Extraction never partially succeeds: on a syntax error the symbol
        list is empty.
        """
        if not source_text:
            return ParsedSource(language=self.language)

        source = SourceText(source_text)
        try:
            tree = parse_tree(source.data, self.language)
        except GrammarUnavailable as exc:
            logger.warning("[SymbolEdit] %s", exc)
            return ParsedSource(language=self.language, parse_error=str(exc))

        error = first_syntax_error(tree.root_node)
        if error:
            logger.debug("[SymbolEdit] %s syntax error at %s", self.language, error)
            return ParsedSource(language=self.language, parse_error=error)

        return ParsedSource(
            language=self.language,
            symbols=self._collect(tree.root_node, source),
        )

    @abstractmethod
    def _collect(self, root, source: SourceText) -> list[Symbol]:
        """Build the top-level symbol list from the syntax tree."""

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _make_symbol(
        self,
        node,
        source: SourceText,
        name: str,
        kind: SymbolKind,
        qualifier: Optional[str] = None,
        children: list[Symbol] | None = None,
        doc: str = "",
        siblings: tuple[str, ...] = (),
        in_list: bool = False,
    ) -> Symbol:
        """Create a Symbol spanning *node* plus any attached leading comments."""
        first = node
        if self.attach_docs:
            comments = leading_comments(node, source, self.leading_types)
            if comments:
                first = comments[0]
                text = "\n".join(
                    source.node_text(c) for c in comments if c.type not in self.leading_types
                )
                doc = clean_comment(text) or doc

        end_row, end_col = node.end_point
        if end_col == 0 and end_row > node.start_point[0]:
            end_row -= 1

        return Symbol(
            name=name,
            kind=kind,
            start=source.char_offset(first.start_byte),
            end=source.char_offset(node.end_byte),
            line_start=first.start_point[0] + 1,
            line_end=end_row + 1,
            qualifier=qualifier,
            doc=doc,
            children=tuple(children or ()),
            siblings=siblings,
            in_list=in_list,
        )

    @staticmethod
    def _label(node, source: SourceText) -> str:
        """Text of *node* up to its first ``:`` token (``case 'x'``, ``default``)."""
        for child in node.children:
            if child.type == ":":
                raw = source.data[node.start_byte:child.start_byte]
                return " ".join(raw.decode("utf-8", errors="replace").split())
        return " ".join(source.node_text(node).split()[:2]).rstrip(":")
