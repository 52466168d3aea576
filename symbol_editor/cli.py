"""
`symbol-edit` command line interface.

Commands
--------
symbol-edit parse FILE [--json]                 -- list the symbols of FILE
symbol-edit edit FILE --symbol NAME --type T    -- replace / insert / delete a symbol
          [--content TEXT | --content-file PATH]
          [--position before|after --relative-to ANCHOR]
          [--kind KIND] [--qualifier NAME] [--write]
symbol-edit batch REQUESTS.jsonl [--jobs N] [--write]
symbol-edit stats [--last-n N]                  -- rolling edit metrics
symbol-edit --input -                           -- one JSON command on stdin
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional

from tqdm import tqdm

from .config import Config
from .editing import EditOrchestrator, EditRequest, InsertAnchor, read_edit_stats
from .errors import EditError
from .parsing import format_symbols, parse_file
from .protocol import serve_stdin

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _setup_logging(verbose: bool, log_file: str) -> None:
    """Configure console logging once; optionally mirror to a log file."""
    if not logging.root.handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.WARNING,
            format="%(levelname)s  %(name)s  %(message)s",
        )
    elif verbose:
        logging.root.setLevel(logging.DEBUG)

    if not log_file:
        return
    pkg_logger = logging.getLogger("symbol_editor")
    target = os.path.abspath(log_file)
    for handler in pkg_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return
    pkg_logger.setLevel(logging.DEBUG)
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"
    ))
    pkg_logger.addHandler(fh)


def _load_config(args: argparse.Namespace) -> Config:
    return Config.load(getattr(args, "config", None))


# ---------------------------------------------------------------------------
# Sub-command handlers
# ---------------------------------------------------------------------------

def _cmd_parse(args: argparse.Namespace) -> int:
    """Print the symbol tree of a file."""
    cfg = _load_config(args)
    try:
        parsed = parse_file(
            args.file,
            language=args.language,
            attach_docs=cfg.ATTACH_DOC_COMMENTS,
            overrides=cfg.LANGUAGE_OVERRIDES,
        )
    except (OSError, EditError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not parsed.ok:
        print(f"Parse failed: {parsed.parse_error}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([s.to_dict() for s in parsed.symbols], indent=2))
    elif parsed.symbols:
        print(format_symbols(parsed.symbols))
    else:
        print("  (no symbols)")
    return 0


def _cmd_edit(args: argparse.Namespace) -> int:
    """Apply one edit to a file and print or write the result."""
    cfg = _load_config(args)

    content = args.content
    if args.content_file:
        try:
            with open(args.content_file, "r", encoding="utf-8", newline="") as f:
                content = f.read()
        except OSError as exc:
            print(f"Error: cannot read {args.content_file}: {exc}", file=sys.stderr)
            return 1

    insert = None
    if args.position or args.relative_to:
        insert = InsertAnchor(position=args.position or "", relative_to_symbol=args.relative_to or "")

    request = EditRequest(
        symbol=args.symbol,
        edit_type=args.type,
        content=content,
        insert=insert,
        file_path=args.file,
        symbol_kind=args.kind,
        qualifier=args.qualifier,
    )
    result = EditOrchestrator(cfg).run_file(
        args.file, request, write=args.write, language=args.language,
    )
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    if args.write:
        print(f"Edited {args.file}")
    else:
        sys.stdout.write(result.content)
    return 0


def _read_batch(path: str) -> "OrderedDict[str, list[dict]]":
    """Group JSONL requests by target file, preserving first-seen order."""
    grouped: OrderedDict[str, list[dict]] = OrderedDict()
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{lineno}: invalid JSON: {exc}") from exc
            if not isinstance(data, dict):
                raise ValueError(f"{path}:{lineno}: expected a JSON object")
            target = data.get("path") or data.get("Path") or data.get("file") or ""
            if not target:
                raise ValueError(f"{path}:{lineno}: request has no file path")
            grouped.setdefault(target, []).append(data)
    return grouped


def _cmd_batch(args: argparse.Namespace) -> int:
    """Apply a JSONL file of edits; files run in parallel, edits per file in order."""
    cfg = _load_config(args)
    try:
        grouped = _read_batch(args.requests)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if not grouped:
        print("No requests.")
        return 0

    orchestrator = EditOrchestrator(cfg)
    jobs = max(1, args.jobs or cfg.BATCH_JOBS)
    failures: list[tuple[str, str]] = []

    with ThreadPoolExecutor(max_workers=min(len(grouped), jobs)) as pool:
        futures = {
            pool.submit(orchestrator.run_file_many, path, requests, args.write): path
            for path, requests in grouped.items()
        }
        with tqdm(total=len(futures), unit="file", desc="Editing") as pbar:
            for future in as_completed(futures):
                path = futures[future]
                result = future.result()
                if not result.success:
                    failures.append((path, result.error or ""))
                pbar.update(1)

    done = len(grouped) - len(failures)
    print(f"{done}/{len(grouped)} file(s) edited{'' if args.write else ' (dry run)'}")
    for path, error in sorted(failures):
        print(f"  FAILED {path}: {error}", file=sys.stderr)
    return 1 if failures else 0


def _cmd_stats(args: argparse.Namespace) -> int:
    """Show rolling edit statistics from the metrics log."""
    cfg = _load_config(args)
    stats = read_edit_stats(last_n=args.last_n, metrics_dir=cfg.METRICS_DIR)
    if args.json:
        print(json.dumps(stats, indent=2))
        return 0

    print(f"\nEdit statistics (last {args.last_n})")
    print("-" * 40)
    print(f"  Total edits     : {stats['total_edits']}")
    print(f"  Success rate    : {stats['success_rate']:.1f}%")
    print(f"  Avg duration    : {stats['avg_duration_ms']:.1f} ms")
    for edit_type, count in stats["by_edit_type"].items():
        print(f"  {edit_type:<16}: {count}")
    if stats["failure_stages"]:
        print("  Failures by stage:")
        for stage, count in stats["failure_stages"].items():
            print(f"    {stage:<14}: {count}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Build and return the `symbol-edit` argument parser."""
    parser = argparse.ArgumentParser(
        prog="symbol-edit",
        description="Structural, symbol-aware source editing",
    )
    parser.add_argument("--config", help="Path to a .symboledit.yaml file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", default=None, help="Also log to this file")
    parser.add_argument(
        "--input", metavar="-",
        help="Read one JSON command from stdin ('-') and print one JSON reply",
    )
    subparsers = parser.add_subparsers(dest="cmd", metavar="COMMAND")

    # --- parse ---
    parse_p = subparsers.add_parser("parse", help="List the symbols of a file")
    parse_p.add_argument("file")
    parse_p.add_argument("--language", help="Override language detection")
    parse_p.add_argument("--json", action="store_true", help="Print JSON")
    parse_p.set_defaults(func=_cmd_parse)

    # --- edit ---
    edit_p = subparsers.add_parser("edit", help="Replace, insert or delete a symbol")
    edit_p.add_argument("file")
    edit_p.add_argument("--symbol", required=True, help="Target (or new, for insert) symbol")
    edit_p.add_argument("--type", required=True, help="replace | insert | delete")
    edit_p.add_argument("--content", help="New content")
    edit_p.add_argument("--content-file", help="Read new content from this file")
    edit_p.add_argument("--position", help="before | after (insert only)")
    edit_p.add_argument("--relative-to", help="Anchor symbol (insert only)")
    edit_p.add_argument("--kind", help="Disambiguate by symbol kind")
    edit_p.add_argument("--qualifier", help="Disambiguate by receiver / enclosing type")
    edit_p.add_argument("--language", help="Override language detection")
    edit_p.add_argument("--write", action="store_true", help="Write the file in place")
    edit_p.set_defaults(func=_cmd_edit)

    # --- batch ---
    batch_p = subparsers.add_parser("batch", help="Apply a JSONL file of edit requests")
    batch_p.add_argument("requests", help="JSONL file, one edit request per line")
    batch_p.add_argument("--jobs", type=int, default=None, help="Files edited in parallel")
    batch_p.add_argument("--write", action="store_true", help="Write edited files")
    batch_p.set_defaults(func=_cmd_batch)

    # --- stats ---
    stats_p = subparsers.add_parser("stats", help="Show edit metrics")
    stats_p.add_argument("--last-n", type=int, default=50)
    stats_p.add_argument("--json", action="store_true", help="Print JSON")
    stats_p.set_defaults(func=_cmd_stats)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for `symbol-edit`.

    Parameters
    ----------
    argv:
        Argument list. Defaults to sys.argv if None.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    cfg = _load_config(args)
    _setup_logging(args.verbose, args.log_file or cfg.LOG_FILE)

    if args.input is not None:
        if args.input != "-":
            parser.error("--input only supports '-' (stdin)")
        return serve_stdin(config=cfg)

    if hasattr(args, "func"):
        return args.func(args)
    parser.print_help()
    return 1
