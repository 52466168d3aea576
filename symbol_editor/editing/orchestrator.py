"""
Edit orchestrator — drives one request through

    validating → parsing → resolving → adjusting → applying → verifying

and reports the outcome as an :class:`EditResult`.  This is the only place
where pipeline exceptions are turned into result errors.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import shutil
import time
from enum import Enum
from typing import Iterable, Optional, Union

from ..config import Config
from ..errors import EditError, InternalError, ParseError, ValidationError
from ..language import detect_language
from ..parsing import get_extractor
from ..parsing.symbols import SymbolKind
from .applier import EditApplier
from .call_sites import remove_call_sites
from .metrics import log_edit_metric
from .models import EditRequest, EditResult, EditType, InsertPosition
from .range_adjuster import RangeAdjuster
from .resolver import SymbolResolver

logger = logging.getLogger(__name__)

RequestLike = Union[EditRequest, dict]


class EditState(str, Enum):
    VALIDATING = "validating"
    PARSING = "parsing"
    RESOLVING = "resolving"
    ADJUSTING = "adjusting"
    APPLYING = "applying"
    VERIFYING = "verifying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Multi-edit order: removals first so later anchors still resolve
_BATCH_ORDER = {EditType.DELETE: 0, EditType.REPLACE: 1, EditType.INSERT: 2}


@dataclasses.dataclass
class _Checked:
    """A request after validation."""
    edit_type: EditType
    target: str
    position: Optional[InsertPosition] = None
    kind: Optional[SymbolKind] = None
    qualifier: Optional[str] = None


def _validate(request: EditRequest) -> _Checked:
    """Reject malformed requests with a stable, specific message."""
    edit_type = EditType.parse(request.edit_type)

    if not (request.symbol or "").strip():
        raise ValidationError("Symbol name is required")

    if edit_type in (EditType.REPLACE, EditType.INSERT) and not request.content:
        raise ValidationError(f"Content is required for {edit_type.value} operations")

    kind = SymbolKind.parse(request.symbol_kind) if request.symbol_kind else None
    qualifier = request.qualifier or None
    if edit_type != EditType.INSERT:
        return _Checked(edit_type, request.symbol.strip(), kind=kind, qualifier=qualifier)

    if request.insert is None:
        raise ValidationError("Insert configuration is required for insert operations")
    position = InsertPosition.parse(request.insert.position)
    anchor = (request.insert.relative_to_symbol or "").strip()
    if not anchor:
        raise ValidationError("RelativeToSymbol is required in Insert config")
    # Kind and qualifier narrow the anchor
    return _Checked(edit_type, anchor, position=position, kind=kind, qualifier=qualifier)


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------

def _read_text(path: str) -> str:
    # newline="" keeps \r\n intact so line endings survive the round trip
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def _safe_write(file_path: str, content: str) -> None:
    """Write content to file atomically via temp file + rename."""
    abs_path = os.path.abspath(file_path)
    tmp_path = abs_path + ".symboledit_tmp"

    try:
        with open(tmp_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)

        # On Windows, os.rename fails if destination exists
        if os.path.exists(abs_path):
            shutil.move(tmp_path, abs_path)
        else:
            os.rename(tmp_path, abs_path)
    except Exception:
        # Clean up temp file on failure
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class EditOrchestrator:
    """Run symbol edits against source text or files.

    Parameters
    ----------
    config:
        Behaviour switches (verification, doc attachment, call-site
        cleanup, metrics).  Defaults to ``Config()``, i.e. env vars and
        built-in defaults.
    """

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or Config()
        self._resolver = SymbolResolver()
        self._adjuster = RangeAdjuster()
        self._applier = EditApplier(
            normalize_line_endings=self.config.NORMALIZE_LINE_ENDINGS,
        )

    # ------------------------------------------------------------------
    # Single edit
    # ------------------------------------------------------------------

    def run(
        self,
        source_text: str,
        request: RequestLike,
        language: Optional[str] = None,
    ) -> EditResult:
        """Apply one edit to *source_text* and return the full new text.

        Never raises for bad input: every failure is reported in the
        result's ``error`` with ``stage`` naming the step that failed.
        """
        t0 = time.perf_counter()
        state = EditState.VALIDATING
        lang = language
        label = "edit"
        try:
            if isinstance(request, dict):
                request = EditRequest.from_dict(request)
            label = f"{_type_name(request.edit_type)} '{request.symbol}'"
            checked = _validate(request)

            state = EditState.PARSING
            lang = language or detect_language(
                request.file_path, self.config.LANGUAGE_OVERRIDES,
            )
            if not lang:
                ext = os.path.splitext(request.file_path)[1]
                raise ValidationError(
                    f"Unsupported language: {ext or request.file_path or 'unknown'}"
                )
            extractor = get_extractor(lang, attach_docs=self.config.ATTACH_DOC_COMMENTS)
            parsed = extractor.extract(source_text)
            if not parsed.ok:
                raise ParseError(f"Failed to parse file: {parsed.parse_error}")

            state = EditState.RESOLVING
            symbol = self._resolver.resolve(
                parsed.flat(), checked.target, checked.kind, checked.qualifier,
            )
            if symbol.siblings and checked.edit_type != EditType.INSERT:
                others = ", ".join(f"'{s}'" for s in symbol.siblings)
                raise ValidationError(
                    f"Symbol '{symbol.name}' is declared together with {others}; "
                    f"cannot {checked.edit_type.value} it separately"
                )

            state = EditState.ADJUSTING
            span = self._adjuster.adjust(
                source_text, symbol, checked.edit_type, checked.position,
            )

            state = EditState.APPLYING
            new_text = self._applier.apply(
                source_text, span, checked.edit_type, request.content, checked.position,
            )
            if (
                self.config.REMOVE_CALL_SITES
                and checked.edit_type == EditType.DELETE
                and symbol.kind == SymbolKind.METHOD
            ):
                new_text, _ = remove_call_sites(new_text, symbol.name, lang)

            state = EditState.VERIFYING
            if self.config.VERIFY_EDITS:
                check = extractor.extract(new_text)
                if not check.ok:
                    if checked.edit_type == EditType.DELETE:
                        raise ParseError(f"Edit leaves file unparsable: {check.parse_error}")
                    raise ParseError(f"Failed to parse new content: {check.parse_error}")
                if checked.edit_type == EditType.INSERT and not any(
                    s.name == request.symbol for s in check.flat()
                ):
                    logger.warning(
                        "[SymbolEdit] Inserted symbol '%s' not found after edit",
                        request.symbol,
                    )

            result = EditResult.ok(new_text)
        except InternalError as exc:
            logger.error("[SymbolEdit] Internal error during %s: %s", state.value, exc,
                         exc_info=True)
            result = EditResult.failed(f"Internal error: {exc}", state.value)
        except EditError as exc:
            result = EditResult.failed(str(exc), state.value)

        elapsed_ms = (time.perf_counter() - t0) * 1000
        if result.success:
            logger.info("[SymbolEdit] %s succeeded (%.1f ms)", label, elapsed_ms)
        else:
            logger.warning("[SymbolEdit] %s failed at %s: %s", label, result.stage, result.error)
        self._record(request, lang, result, elapsed_ms)
        return result

    # ------------------------------------------------------------------
    # Several edits on one text
    # ------------------------------------------------------------------

    def run_many(
        self,
        source_text: str,
        requests: Iterable[RequestLike],
        language: Optional[str] = None,
    ) -> EditResult:
        """Apply several edits in delete → replace → insert order.

        Stops at the first failure; nothing is returned from a partial run.
        """
        items = [_coerce(r) for r in requests]
        total = len(items)
        ordered = sorted(enumerate(items), key=lambda pair: _batch_rank(pair[1]))

        text = source_text
        for index, request in ordered:
            result = self.run(text, request, language)
            if not result.success:
                return EditResult.failed(
                    f"Edit {index + 1} of {total} "
                    f"({_describe(request)}): {result.error}",
                    result.stage,
                )
            text = result.content
        return EditResult.ok(text)

    # ------------------------------------------------------------------
    # File boundary
    # ------------------------------------------------------------------

    def run_file(
        self,
        path: str,
        request: RequestLike,
        write: bool = False,
        language: Optional[str] = None,
    ) -> EditResult:
        """Edit the file at *path*; write it back only on success and if asked."""
        try:
            text = _read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            return EditResult.failed(f"Cannot read file: {exc}", EditState.PARSING.value)

        result = self.run(text, _with_path(request, path), language)
        if result.success and write and result.content != text:
            try:
                _safe_write(path, result.content)
            except OSError as exc:
                logger.error("[SymbolEdit] Write failed for %s: %s", path, exc)
                return EditResult.failed(f"Write failed: {exc}", EditState.FAILED.value)
            logger.info("[SymbolEdit] Wrote %s", path)
        return result

    def run_file_many(
        self,
        path: str,
        requests: Iterable[RequestLike],
        write: bool = False,
        language: Optional[str] = None,
    ) -> EditResult:
        """Apply several edits to one file; all of them or none are written."""
        try:
            text = _read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            return EditResult.failed(f"Cannot read file: {exc}", EditState.PARSING.value)

        result = self.run_many(text, [_with_path(r, path) for r in requests], language)
        if result.success and write and result.content != text:
            try:
                _safe_write(path, result.content)
            except OSError as exc:
                logger.error("[SymbolEdit] Write failed for %s: %s", path, exc)
                return EditResult.failed(f"Write failed: {exc}", EditState.FAILED.value)
            logger.info("[SymbolEdit] Wrote %s", path)
        return result

    async def run_file_async(
        self,
        path: str,
        request: RequestLike,
        write: bool = False,
        language: Optional[str] = None,
    ) -> EditResult:
        """Like :meth:`run_file`, with file I/O awaited in a worker thread."""
        try:
            text = await asyncio.to_thread(_read_text, path)
        except (OSError, UnicodeDecodeError) as exc:
            return EditResult.failed(f"Cannot read file: {exc}", EditState.PARSING.value)

        result = self.run(text, _with_path(request, path), language)
        if result.success and write and result.content != text:
            try:
                await asyncio.to_thread(_safe_write, path, result.content)
            except OSError as exc:
                logger.error("[SymbolEdit] Write failed for %s: %s", path, exc)
                return EditResult.failed(f"Write failed: {exc}", EditState.FAILED.value)
        return result

    # ------------------------------------------------------------------

    def _record(self, request, language, result: EditResult, elapsed_ms: float) -> None:
        if not self.config.METRICS_ENABLED:
            return
        log_edit_metric(
            {
                "file": getattr(request, "file_path", ""),
                "language": language or "",
                "edit_type": _type_name(getattr(request, "edit_type", "unknown")),
                "symbol": getattr(request, "symbol", ""),
                "success": result.success,
                "stage": result.stage,
                "error": result.error or "",
                "duration_ms": round(elapsed_ms, 2),
            },
            metrics_dir=self.config.METRICS_DIR,
        )


def _type_name(edit_type) -> str:
    if isinstance(edit_type, EditType):
        return edit_type.value
    return str(edit_type).strip().lower() or "unknown"


def _describe(request: RequestLike) -> str:
    if isinstance(request, EditRequest):
        return f"{_type_name(request.edit_type)} '{request.symbol}'"
    return "invalid request"


def _coerce(request: RequestLike) -> RequestLike:
    """Convert a JSON request; malformed ones are left for run() to report."""
    if isinstance(request, dict):
        try:
            return EditRequest.from_dict(request)
        except ValidationError:
            return request
    return request


def _batch_rank(request: RequestLike) -> int:
    if not isinstance(request, EditRequest):
        return -1
    try:
        return _BATCH_ORDER[EditType.parse(request.edit_type)]
    except ValidationError:
        # Invalid requests run first and fail fast
        return -1


def _with_path(request: RequestLike, path: str) -> RequestLike:
    request = _coerce(request)
    if not isinstance(request, EditRequest) or request.file_path:
        return request
    return dataclasses.replace(request, file_path=path)


# ---------------------------------------------------------------------------
# Module-level entry points
# ---------------------------------------------------------------------------

def edit(
    source_text: str,
    request: RequestLike,
    language: Optional[str] = None,
    config: Optional[Config] = None,
) -> EditResult:
    """Apply one symbol edit to *source_text*."""
    return EditOrchestrator(config).run(source_text, request, language)


def edit_many(
    source_text: str,
    requests: Iterable[RequestLike],
    language: Optional[str] = None,
    config: Optional[Config] = None,
) -> EditResult:
    """Apply several symbol edits to *source_text* (delete → replace → insert)."""
    return EditOrchestrator(config).run_many(source_text, requests, language)


def edit_file(
    path: str,
    request: RequestLike,
    write: bool = False,
    config: Optional[Config] = None,
) -> EditResult:
    """Apply one symbol edit to the file at *path*."""
    return EditOrchestrator(config).run_file(path, request, write=write)


async def edit_file_async(
    path: str,
    request: RequestLike,
    write: bool = False,
    config: Optional[Config] = None,
) -> EditResult:
    """Async variant of :func:`edit_file`."""
    return await EditOrchestrator(config).run_file_async(path, request, write=write)
