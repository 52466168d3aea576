"""Symbol-level editing — resolve, adjust, apply and verify structural edits."""

from .models import EditRequest, EditResult, EditType, InsertAnchor, InsertPosition, ResolvedSpan
from .resolver import SymbolResolver
from .range_adjuster import RangeAdjuster
from .applier import EditApplier, detect_line_ending
from .call_sites import remove_call_sites
from .orchestrator import (
    EditOrchestrator, EditState, edit, edit_many, edit_file, edit_file_async,
)
from .metrics import log_edit_metric, read_edit_stats

__all__ = [
    "EditRequest", "EditResult", "EditType", "InsertAnchor", "InsertPosition", "ResolvedSpan",
    "SymbolResolver", "RangeAdjuster", "EditApplier", "detect_line_ending",
    "remove_call_sites",
    "EditOrchestrator", "EditState", "edit", "edit_many", "edit_file", "edit_file_async",
    "log_edit_metric", "read_edit_stats",
]
