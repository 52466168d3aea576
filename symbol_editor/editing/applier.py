"""
Edit applier — produces the new full text from a span and new content.

Pure string manipulation: no parsing, no I/O.  Text outside the span is
copied through untouched, including its line endings.
"""

from __future__ import annotations

import logging
import textwrap
from typing import Optional

from ..errors import InternalError
from .models import EditType, InsertPosition, ResolvedSpan

logger = logging.getLogger(__name__)

# Lines that close a block and sit at the declaration's own indentation
_CLOSERS = ("}", ")", "]", "end")


def detect_line_ending(text: str) -> str:
    """Return the dominant line ending of *text* (``"\\r\\n"`` or ``"\\n"``)."""
    crlf = text.count("\r\n")
    lf = text.count("\n") - crlf
    return "\r\n" if crlf > lf else "\n"


def normalize_newlines(content: str, eol: str) -> str:
    """Rewrite every line break in *content* as *eol*."""
    unified = content.replace("\r\n", "\n").replace("\r", "\n")
    return unified if eol == "\n" else unified.replace("\n", eol)


def _leading_ws(line: str) -> str:
    return line[:len(line) - len(line.lstrip(" \t"))]


def _looks_absolute(rest: list[str], indent: str) -> bool:
    """Guess whether continuation lines are already indented for *indent*.

    Block-closing last lines (``}``, ``end``) sit at the declaration's level
    when the content is absolute; otherwise every body line sits deeper
    than the declaration.
    """
    body = [line for line in rest if line.strip()]
    if not body:
        return True
    if not all(line.startswith(indent) for line in body):
        return False
    last = body[-1].strip()
    if last.startswith(_CLOSERS):
        return True
    return min(len(_leading_ws(line)) for line in body) > len(indent)


def reindent(content: str, indent: str, eol: str, first_line: bool) -> str:
    """Place *content* at *indent*.

    Parameters
    ----------
    content:
        Code block with *eol* line breaks.
    indent:
        Target indentation of the block's first line.
    first_line:
        Whether to prefix the first line too (False when the existing
        indentation in the file already precedes it).
    """
    if not indent:
        return content
    lines = content.split(eol)
    head_ws = _leading_ws(lines[0])

    if head_ws and head_ws != indent:
        lines = textwrap.dedent(eol.join(lines).replace(eol, "\n")).split("\n")
        rest = [indent + line if line.strip() else line for line in lines[1:]]
    elif head_ws:
        rest = lines[1:]
    elif _looks_absolute(lines[1:], indent):
        rest = lines[1:]
    else:
        rest = [indent + line if line.strip() else line for line in lines[1:]]

    head = lines[0].lstrip(" \t")
    if first_line and head:
        head = indent + head
    return eol.join([head] + rest)


class EditApplier:
    """Splice new content into source text.

    Parameters
    ----------
    normalize_line_endings:
        Rewrite line breaks inside the new content to the file's dominant
        line ending.
    """

    def __init__(self, normalize_line_endings: bool = True) -> None:
        self._normalize = normalize_line_endings

    def apply(
        self,
        text: str,
        span: ResolvedSpan,
        edit_type: EditType,
        content: Optional[str] = None,
        position: Optional[InsertPosition] = None,
    ) -> str:
        span.check(text)

        if edit_type == EditType.DELETE:
            return text[:span.start] + text[span.end:]

        if content is None:
            raise InternalError(f"{edit_type.value} without content")

        eol = detect_line_ending(text)
        if self._normalize:
            content = normalize_newlines(content, eol)

        if edit_type == EditType.REPLACE:
            return self._replace(text, span, content, eol)
        if edit_type == EditType.INSERT:
            if position == InsertPosition.BEFORE:
                return self._insert_before(text, span, content, eol)
            if position == InsertPosition.AFTER:
                return self._insert_after(text, span, content, eol)
            raise InternalError(f"insert without a position: {position!r}")
        raise InternalError(f"unknown edit type: {edit_type!r}")

    # ------------------------------------------------------------------

    @staticmethod
    def _replace(text: str, span: ResolvedSpan, content: str, eol: str) -> str:
        if span.indent is not None:
            content = reindent(content, span.indent, eol, first_line=False)
        return text[:span.start] + content + text[span.end:]

    @staticmethod
    def _insert_before(text: str, span: ResolvedSpan, content: str, eol: str) -> str:
        point = span.point
        block = _strip_final_eol(content, eol)
        if span.indent is not None:
            # Insert at the line start so the anchor keeps its indentation
            point -= len(span.indent)
            block = reindent(block, span.indent, eol, first_line=True)
        return text[:point] + block + eol + text[point:]

    @staticmethod
    def _insert_after(text: str, span: ResolvedSpan, content: str, eol: str) -> str:
        point = span.point
        block = _strip_final_eol(content, eol)
        if span.indent is not None:
            block = reindent(block, span.indent, eol, first_line=True)

        before = text[:point]
        after = text[point:]
        lead = "" if not before or before.endswith(("\n", "\r")) else eol
        trail = "" if not after or after.startswith(("\n", "\r")) else eol
        return before + lead + block + trail + after


def _strip_final_eol(content: str, eol: str) -> str:
    if content.endswith(eol):
        return content[:-len(eol)]
    return content
