"""Error taxonomy for symbol edits."""


class EditError(Exception):
    """Base class for every failure the edit pipeline reports."""


class ValidationError(EditError):
    """The edit request is malformed (missing field, bad enum value)."""


class ParseError(EditError):
    """Source text, original or edited, is not syntactically valid."""


class NotFoundError(EditError):
    """The named symbol or insert anchor does not exist in the file."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Symbol '{symbol}' not found in file")
        self.symbol = symbol


class InternalError(EditError):
    """A contract violation inside the pipeline; always a bug."""
