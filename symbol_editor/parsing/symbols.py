"""
Symbol data model shared by every extraction backend.

A parse produces a fresh, immutable tree of :class:`Symbol` objects.  Offsets
are character offsets into the Python ``str`` that was parsed (half-open),
lines are 1-indexed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

from ..errors import ValidationError


class SymbolKind(str, Enum):
    """Structural kind of a declaration, set once at extraction time."""

    FUNCTION = "function"
    METHOD = "method"
    TYPE = "type"
    INTERFACE = "interface"
    FIELD = "field"
    VARIABLE = "variable"
    CONSTANT = "constant"
    CASE = "case"
    OTHER = "other"

    @classmethod
    def parse(cls, value: "str | SymbolKind") -> "SymbolKind":
        """Return the kind named by *value*, accepting common aliases.

        Raises :class:`~symbol_editor.errors.ValidationError` for
        anything that is not a known kind.
        """
        if isinstance(value, SymbolKind):
            return value
        key = str(value).strip().lower()
        key = _KIND_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(f"Invalid symbol kind: {value}") from None


_KIND_ALIASES = {
    "class": "type",
    "struct": "type",
    "enum": "type",
    "property": "field",
    "const": "constant",
    "var": "variable",
    "func": "function",
}


@dataclass(frozen=True)
class Symbol:
    """A named, structurally delimited declaration."""
    name: str
    kind: SymbolKind
    start: int           # char offset, includes attached doc comments
    end: int             # char offset, exclusive
    line_start: int      # 1-indexed
    line_end: int
    qualifier: Optional[str] = None  # receiver / enclosing declaration
    doc: str = ""
    children: tuple["Symbol", ...] = ()
    # Names declared by the same span (`a = b = 1`, `x, y := f()`)
    siblings: tuple[str, ...] = ()
    # Own span inside a comma-separated declarator list
    in_list: bool = False

    def walk(self) -> Iterator["Symbol"]:
        """Yield this symbol and all descendants in source order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict:
        """JSON-friendly representation used by the CLI protocol."""
        data = {
            "name": self.name,
            "kind": self.kind.value,
            "start": self.start,
            "end": self.end,
            "line_start": self.line_start,
            "line_end": self.line_end,
        }
        if self.qualifier:
            data["qualifier"] = self.qualifier
        if self.doc:
            data["doc"] = self.doc
        if self.siblings:
            data["siblings"] = list(self.siblings)
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data


@dataclass
class ParsedSource:
    """Result of one extraction call."""
    language: str
    symbols: list[Symbol] = field(default_factory=list)
    parse_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.parse_error is None

    def flat(self) -> list[Symbol]:
        """Every symbol, nested or not, in source (pre-)order."""
        out: list[Symbol] = []
        for sym in self.symbols:
            out.extend(sym.walk())
        return out


def format_symbols(symbols: list[Symbol], indent: str = "") -> str:
    """Render a symbol tree as an indented outline."""
    lines: list[str] = []
    for sym in symbols:
        label = f"{indent}{sym.kind.value}: {sym.name}"
        if sym.qualifier:
            label += f" ({sym.qualifier})"
        label += f"  [lines {sym.line_start}-{sym.line_end}]"
        lines.append(label)
        if sym.doc:
            lines.append(f"{indent}  Doc: {sym.doc}")
        if sym.children:
            lines.append(format_symbols(list(sym.children), indent + "  "))
    return "\n".join(lines)
