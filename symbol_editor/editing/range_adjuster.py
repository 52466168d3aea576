"""
Range adjuster — turns a resolved symbol into the exact span an edit touches.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import InternalError
from ..parsing.symbols import Symbol
from .models import EditType, InsertPosition, ResolvedSpan

logger = logging.getLogger(__name__)

_HSPACE = " \t"
_EOL = "\r\n"
_LINE_COMMENTS = ("//", "#")


def _skip_newline(text: str, pos: int) -> int:
    """Return the index after the line break at *pos* (``\\r\\n``, ``\\n`` or ``\\r``)."""
    if text.startswith("\r\n", pos):
        return pos + 2
    return pos + 1


def _skip_hspace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in _HSPACE:
        pos += 1
    return pos


def line_indent(text: str, pos: int) -> Optional[str]:
    """Whitespace between the start of *pos*'s line and *pos*, or None if
    anything else precedes *pos* on that line."""
    line_start = max(text.rfind("\n", 0, pos), text.rfind("\r", 0, pos)) + 1
    prefix = text[line_start:pos]
    if prefix.strip(_HSPACE):
        return None
    return prefix


def line_tail(text: str, pos: int) -> int:
    """End of *pos*'s line when only whitespace or a trailing comment follows.

    Returns *pos* unchanged when more code follows on the same line.
    """
    probe = _skip_hspace(text, pos)
    n = len(text)
    if probe >= n or text[probe] in _EOL:
        return probe
    if text.startswith(_LINE_COMMENTS, probe):
        while probe < n and text[probe] not in _EOL:
            probe += 1
        return probe
    if text.startswith("/*", probe):
        close = text.find("*/", probe + 2)
        if close == -1:
            return pos
        after = _skip_hspace(text, close + 2)
        if after >= n or text[after] in _EOL:
            return after
    return pos


class RangeAdjuster:
    """Compute the span for replace / insert / delete."""

    def adjust(
        self,
        text: str,
        symbol: Symbol,
        edit_type: EditType,
        position: Optional[InsertPosition] = None,
    ) -> ResolvedSpan:
        if not 0 <= symbol.start <= symbol.end <= len(text):
            raise InternalError(
                f"symbol '{symbol.name}' range [{symbol.start}, {symbol.end}) "
                f"outside text of length {len(text)}"
            )

        indent = line_indent(text, symbol.start)

        if edit_type == EditType.REPLACE:
            return ResolvedSpan(symbol.start, symbol.end, indent)

        if edit_type == EditType.INSERT:
            if position == InsertPosition.BEFORE:
                return ResolvedSpan(symbol.start, symbol.start, indent)
            if position == InsertPosition.AFTER:
                # A trailing comment stays on the anchor's line
                point = line_tail(text, symbol.end)
                return ResolvedSpan(point, point, indent)
            raise InternalError(f"insert without a position: {position!r}")

        if edit_type == EditType.DELETE:
            return self._delete_span(text, symbol)

        raise InternalError(f"unknown edit type: {edit_type!r}")

    # ------------------------------------------------------------------

    @staticmethod
    def _delete_span(text: str, symbol: Symbol) -> ResolvedSpan:
        """Widen the symbol range so that removing it leaves no gap.

        A list member (``a = 1`` in ``const a = 1, b = 2``) takes its
        separating comma: the one after it, or the one before it when it is
        the last member.  Otherwise the trailing side covers horizontal
        whitespace, the line break, then any blank lines up to the next line
        with content (whose indentation is kept), and the leading side covers
        the symbol's own indentation.  When the symbol ends the file without
        a line break, the preceding line break goes too.
        """
        n = len(text)
        start = symbol.start
        end = symbol.end

        if symbol.in_list:
            probe = _skip_hspace(text, end)
            if probe < n and text[probe] == ",":
                end = _skip_hspace(text, probe + 1)
                if end < n and text[end] in _EOL and line_indent(text, start) is None:
                    # "const a = 1,\n  b = 2": pull the next member up
                    while end < n and text[end] in _HSPACE + _EOL:
                        end += 1
                    return ResolvedSpan(start, end)
            else:
                before = start
                while before > 0 and text[before - 1] in _HSPACE + _EOL:
                    before -= 1
                if before > 0 and text[before - 1] == ",":
                    start = before - 1
                    if probe < n and text[probe] not in _EOL:
                        # "a, b int": keep the space before the code that follows
                        return ResolvedSpan(start, end)

        end = _skip_hspace(text, end)
        ended_line = False
        eol_pos = end
        if end < n and text[end] in _EOL:
            end = _skip_newline(text, end)
            ended_line = True
            while True:
                probe = _skip_hspace(text, end)
                if probe < n and text[probe] in _EOL:
                    end = _skip_newline(text, probe)
                elif probe == n:
                    end = n
                    break
                else:
                    break

        line_start = start
        while line_start > 0 and text[line_start - 1] in _HSPACE:
            line_start -= 1
        own_line = line_start == 0 or text[line_start - 1] in _EOL

        if not own_line:
            # Code precedes the symbol on its line: keep the line break
            return ResolvedSpan(start, eol_pos)

        if ended_line or end == n:
            start = line_start
            if not ended_line and start > 0:
                # Last thing in the file: drop the line break that led to it
                start -= 1
                if start > 0 and text[start - 1:start + 1] == "\r\n":
                    start -= 1

        return ResolvedSpan(start, end)
