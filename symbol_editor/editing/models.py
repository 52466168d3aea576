"""
Edit request / result data model.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..errors import InternalError, ValidationError
from ..parsing.symbols import SymbolKind

_INVALID_EDIT_TYPE = "Invalid EditType: must be 'replace', 'insert', or 'delete'"
_INVALID_POSITION = "Invalid Position in Insert config: must be 'before' or 'after'"


class EditType(str, Enum):
    REPLACE = "replace"
    INSERT = "insert"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: "str | EditType") -> "EditType":
        if isinstance(value, EditType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(_INVALID_EDIT_TYPE) from None


class InsertPosition(str, Enum):
    BEFORE = "before"
    AFTER = "after"

    @classmethod
    def parse(cls, value: "str | InsertPosition") -> "InsertPosition":
        if isinstance(value, InsertPosition):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(_INVALID_POSITION) from None


@dataclass
class InsertAnchor:
    """Where an insert goes: before or after an existing symbol."""
    position: "InsertPosition | str"
    relative_to_symbol: str


@dataclass
class EditRequest:
    """One symbol-level edit.

    ``edit_type``, ``insert.position`` and ``symbol_kind`` may be given as
    plain strings; the orchestrator validates them.  For inserts ``symbol``
    names the new symbol and only ``insert.relative_to_symbol`` must exist.
    """
    symbol: str
    edit_type: "EditType | str"
    content: Optional[str] = None
    insert: Optional[InsertAnchor] = None
    file_path: str = ""
    symbol_kind: "SymbolKind | str | None" = None
    qualifier: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EditRequest":
        """Build a request from JSON.

        Accepts snake_case keys as well as the ``Path / EditType / Symbol /
        Content / Insert{Position, RelativeToSymbol}`` wire keys, in any case.
        """
        if not isinstance(data, dict):
            raise ValidationError("Edit request must be a JSON object")
        fields = _fold_keys(data)

        insert = None
        raw_insert = fields.get("insert")
        if isinstance(raw_insert, dict):
            anchor = _fold_keys(raw_insert)
            insert = InsertAnchor(
                position=anchor.get("position") or "",
                relative_to_symbol=anchor.get("relativetosymbol") or "",
            )
        elif raw_insert is not None:
            raise ValidationError("Insert configuration must be an object")

        return cls(
            symbol=fields.get("symbol") or "",
            edit_type=fields.get("edittype") or "",
            content=fields.get("content"),
            insert=insert,
            file_path=fields.get("path") or fields.get("file") or "",
            symbol_kind=fields.get("symbolkind") or fields.get("kind"),
            qualifier=fields.get("qualifier"),
        )


def _fold_keys(data: dict[str, Any]) -> dict[str, Any]:
    """``Relative_To_Symbol`` / ``relativeToSymbol`` → ``relativetosymbol``."""
    return {str(k).replace("_", "").lower(): v for k, v in data.items()}


@dataclass(frozen=True)
class ResolvedSpan:
    """A half-open character range in the text being edited.

    ``indent`` is the whitespace in front of the target symbol when the
    symbol starts its own line, None when code precedes it on that line.
    """
    start: int
    end: int
    indent: Optional[str] = None

    @property
    def point(self) -> int:
        return self.start

    @property
    def is_point(self) -> bool:
        return self.start == self.end

    def check(self, text: str) -> None:
        """Raise InternalError unless ``0 <= start <= end <= len(text)``."""
        if not 0 <= self.start <= self.end <= len(text):
            raise InternalError(
                f"span [{self.start}, {self.end}) out of range for text of length {len(text)}"
            )


@dataclass
class EditResult:
    """Outcome of one request: exactly one of content / error is set."""
    success: bool
    content: Optional[str] = None
    error: Optional[str] = None
    stage: str = ""

    @classmethod
    def ok(cls, content: str) -> "EditResult":
        return cls(success=True, content=content, stage="succeeded")

    @classmethod
    def failed(cls, error: str, stage: str) -> "EditResult":
        return cls(success=False, error=error, stage=stage)

    def to_wire(self) -> dict:
        """``{Success, Content, Error}`` as emitted by the CLI protocol."""
        return {
            "Success": self.success,
            "Content": self.content if self.success else "",
            "Error": self.error or "",
        }
