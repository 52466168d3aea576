"""
Subprocess JSON protocol.

Server side (``symbol-edit --input -``): read one command from stdin::

    {"operation": "parse" | "edit", "file": "...", "edit": {...}, "write": false}

and print exactly one JSON object to stdout: ``{success, symbols}`` or
``{success: false, error}`` for parse, ``{Success, Content, Error}`` for
edit.  The exit status is 0 on success and 1 otherwise.

Client side: :class:`SymbolEditProcess` runs that command in a child
process and decodes the reply, tolerating log noise around the JSON.
"""

from __future__ import annotations

import json
import logging
import subprocess
import sys
from typing import Any, Optional, TextIO

from .config import Config
from .editing.orchestrator import EditOrchestrator
from .errors import EditError
from .parsing import parse_file

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    """The child process could not be run or its reply could not be decoded."""


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

def _error(message: str) -> dict:
    return {"success": False, "error": message}


def handle_command(command: Any, config: Optional[Config] = None) -> tuple[dict, int]:
    """Execute one decoded command. Returns ``(reply, exit_status)``."""
    config = config or Config()
    if not isinstance(command, dict):
        return _error("Command must be a JSON object"), 1

    operation = str(command.get("operation", "")).lower()
    file_path = command.get("file") or ""

    if operation == "parse":
        if not file_path:
            return _error("File path is required"), 1
        try:
            parsed = parse_file(
                file_path,
                attach_docs=config.ATTACH_DOC_COMMENTS,
                overrides=config.LANGUAGE_OVERRIDES,
            )
        except (OSError, EditError) as exc:
            return _error(f"Parse failed: {exc}"), 1
        if not parsed.ok:
            return _error(f"Parse failed: {parsed.parse_error}"), 1
        return {"success": True, "symbols": [s.to_dict() for s in parsed.symbols]}, 0

    if operation == "edit":
        edit = command.get("edit")
        if not isinstance(edit, dict):
            return _error("Edit request is required for edit operation"), 1
        path = file_path or edit.get("Path") or edit.get("path") or ""
        if not path:
            return _error("File path is required"), 1
        result = EditOrchestrator(config).run_file(
            path, edit, write=bool(command.get("write", False)),
        )
        return result.to_wire(), 0 if result.success else 1

    return _error(f"Unknown operation: {command.get('operation', '')}"), 1


def serve_stdin(
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    config: Optional[Config] = None,
) -> int:
    """Read one command from *stdin*, write one reply to *stdout*."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    raw = stdin.read()
    try:
        command = json.loads(raw)
    except json.JSONDecodeError as exc:
        reply, status = _error(f"Failed to parse input: {exc}"), 1
    else:
        reply, status = handle_command(command, config)
    stdout.write(json.dumps(reply) + "\n")
    stdout.flush()
    return status


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

def extract_json(output: str) -> dict:
    """Return the first balanced JSON object embedded in *output*.

    Braces inside string literals (and escaped quotes) are ignored while
    matching.

    Raises
    ------
    ProtocolError
        If no complete object can be found or it does not decode.
    """
    start = output.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(output)):
            ch = output[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    candidate = output[start:i + 1]
                    try:
                        value = json.loads(candidate)
                    except json.JSONDecodeError:
                        break
                    if isinstance(value, dict):
                        return value
                    break
        start = output.find("{", start + 1)
    raise ProtocolError("No JSON object found in output")


class SymbolEditProcess:
    """Run the symbol editor as a child process.

    Parameters
    ----------
    command:
        Argv prefix that starts the server; defaults to running this
        package with the current interpreter.
    timeout:
        Seconds to wait for one reply.
    """

    def __init__(self, command: Optional[list[str]] = None, timeout: float = 30.0) -> None:
        self.command = command or [sys.executable, "-m", "symbol_editor"]
        self.timeout = timeout

    def parse_file(self, file_path: str) -> dict:
        return self._run({"operation": "parse", "file": file_path})

    def edit_symbol(self, file_path: str, edit: dict, write: bool = False) -> dict:
        return self._run({
            "operation": "edit",
            "file": file_path,
            "edit": edit,
            "write": write,
        })

    def _run(self, command: dict) -> dict:
        argv = [*self.command, "--input", "-"]
        try:
            proc = subprocess.run(
                argv,
                input=json.dumps(command),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise ProtocolError(f"Failed to run symbol editor: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ProtocolError(
                f"Symbol editor timed out after {self.timeout:g}s"
            ) from exc

        if proc.stderr.strip():
            logger.debug("[SymbolEdit] child stderr: %s", proc.stderr.strip())
        try:
            return extract_json(proc.stdout)
        except ProtocolError as exc:
            raise ProtocolError(
                f"Symbol editor exited with code {proc.returncode}: "
                f"{proc.stderr.strip() or 'no output'}"
            ) from exc
