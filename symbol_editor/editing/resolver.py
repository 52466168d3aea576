"""
Symbol resolver — picks exactly one symbol for a requested name.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..errors import NotFoundError
from ..parsing.symbols import Symbol, SymbolKind

logger = logging.getLogger(__name__)


class SymbolResolver:
    """Resolve a name (plus optional kind / qualifier hints) to one Symbol.

    The result depends only on the inputs: the first candidate in source
    order wins any tie that the hints do not break.
    """

    def resolve(
        self,
        symbols: Iterable[Symbol],
        name: str,
        kind: Optional[SymbolKind] = None,
        qualifier: Optional[str] = None,
    ) -> Symbol:
        """Return the symbol named *name*.

        Parameters
        ----------
        symbols:
            Flat list of every symbol in the file, in source order.
        name:
            Requested name.  ``Owner.name`` is accepted when no symbol is
            literally called that.
        kind, qualifier:
            Optional disambiguation hints.

        Raises
        ------
        NotFoundError
            If no symbol has the name.
        """
        pool = list(symbols)
        candidates = [s for s in pool if s.name == name]

        if not candidates and "." in name:
            owner, _, short = name.rpartition(".")
            candidates = [s for s in pool if s.name == short]
            if qualifier is None:
                qualifier = owner

        if not candidates:
            raise NotFoundError(name)
        if len(candidates) == 1:
            return candidates[0]

        if kind is not None:
            narrowed = [s for s in candidates if s.kind == kind]
            if narrowed:
                candidates = narrowed
        if qualifier is not None:
            narrowed = [s for s in candidates if s.qualifier == qualifier]
            if narrowed:
                candidates = narrowed

        if len(candidates) > 1:
            logger.debug(
                "[SymbolEdit] %d candidates for '%s' (%s); using first at line %d",
                len(candidates), name,
                ", ".join(f"{s.kind.value}/{s.qualifier or '-'}" for s in candidates),
                candidates[0].line_start,
            )
        return candidates[0]
