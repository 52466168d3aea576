"""
Edit metrics — records every symbol edit in a JSONL log file.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_METRICS_DIR = ".symboledit"
_METRICS_FILE = "edit_metrics.jsonl"


def _metrics_path(metrics_dir: str | None = None) -> str:
    """Return the absolute path to the metrics file."""
    base = metrics_dir or os.path.join(os.getcwd(), _METRICS_DIR)
    return os.path.abspath(os.path.join(base, _METRICS_FILE))


def log_edit_metric(data: dict, metrics_dir: str | None = None) -> None:
    """Append a single edit metric entry to the JSONL log.

    Parameters
    ----------
    data:
        Metric fields to log (file, edit_type, success, stage, duration_ms...).
    metrics_dir:
        Directory holding the log. Defaults to ``.symboledit`` under CWD.
    """
    path = _metrics_path(metrics_dir)
    entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(data)

    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[SymbolEdit] Failed to write metrics: %s", exc)


def read_edit_stats(
    last_n: int = 50,
    metrics_dir: str | None = None,
) -> dict:
    """Compute rolling statistics from the metrics log.

    Parameters
    ----------
    last_n:
        Number of most-recent entries to include.
    metrics_dir:
        Directory holding the log.

    Returns
    -------
    dict
        ``total_edits``, ``success_rate`` (percent), ``by_edit_type``,
        ``failure_stages`` and ``avg_duration_ms``.
    """
    path = _metrics_path(metrics_dir)

    entries: list[dict] = []
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            entries.append(json.loads(line))
                        except json.JSONDecodeError:
                            continue
        except OSError as exc:
            logger.warning("[SymbolEdit] Failed to read metrics: %s", exc)

    # Take last N entries
    entries = entries[-last_n:]

    if not entries:
        return {
            "total_edits": 0,
            "success_rate": 0.0,
            "by_edit_type": {},
            "failure_stages": {},
            "avg_duration_ms": 0.0,
        }

    total = len(entries)
    successes = sum(1 for e in entries if e.get("success", False))
    durations = [
        e["duration_ms"] for e in entries
        if isinstance(e.get("duration_ms"), (int, float))
    ]
    edit_types = Counter(e.get("edit_type", "unknown") for e in entries)
    stages = Counter(
        e.get("stage", "unknown") for e in entries if not e.get("success", False)
    )

    return {
        "total_edits": total,
        "success_rate": successes / total * 100,
        "by_edit_type": dict(edit_types.most_common()),
        "failure_stages": dict(stages.most_common()),
        "avg_duration_ms": sum(durations) / len(durations) if durations else 0.0,
    }
