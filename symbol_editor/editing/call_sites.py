"""
Best-effort call-site cleanup after deleting a method.

Only the simplest pattern is handled: a no-argument call on the receiver
(``this.name();`` or ``self.name()``) standing alone on its line.  Calls
with arguments, chained calls and calls through other objects are left
alone.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

_RECEIVERS = {
    "javascript": "this",
    "typescript": "this",
    "tsx": "this",
    "python": "self",
}


def _call_pattern(receiver: str, name: str) -> re.Pattern:
    return re.compile(
        rf"^[ \t]*(?:await[ \t]+)?{receiver}\.{re.escape(name)}\(\)[ \t]*;?[ \t]*(?:\r\n|\n|\r|$)",
        re.MULTILINE,
    )


def remove_call_sites(text: str, method_name: str, language: str) -> tuple[str, int]:
    """Remove standalone receiver calls to *method_name*.

    Returns
    -------
    tuple[str, int]
        The cleaned text and the number of lines removed.
    """
    receiver = _RECEIVERS.get(language)
    if receiver is None or not method_name:
        return text, 0
    cleaned, count = _call_pattern(receiver, method_name).subn("", text)
    if count:
        logger.info(
            "[SymbolEdit] Removed %d call site(s) of %s.%s()",
            count, receiver, method_name,
        )
    return cleaned, count
