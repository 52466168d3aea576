"""Tests for the subprocess JSON protocol (server and client sides)."""

import io
import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from symbol_editor.config import Config
from symbol_editor.protocol import (
    ProtocolError,
    SymbolEditProcess,
    extract_json,
    handle_command,
    serve_stdin,
)

GO_SOURCE = "package main\n\nfunc A() {}\n\nfunc B() {}\n"


@pytest.fixture
def go_file(tmp_path):
    path = tmp_path / "main.go"
    path.write_text(GO_SOURCE, encoding="utf-8")
    return path


@pytest.fixture
def cfg():
    return Config({"metrics_enabled": False})


class TestExtractJson:
    def test_surrounded_by_noise(self):
        output = 'INFO starting\n{"Success": true, "Content": "}{", "Error": ""}\nbye'
        assert extract_json(output) == {"Success": True, "Content": "}{", "Error": ""}

    def test_escaped_quotes(self):
        output = '{"Content": "say \\"hi\\" {", "Success": true}'
        assert extract_json(output)["Content"] == 'say "hi" {'

    def test_skips_invalid_candidates(self):
        assert extract_json("{not json} {\"ok\": 1}") == {"ok": 1}

    def test_nested(self):
        assert extract_json('x {"a": {"b": 1}} y') == {"a": {"b": 1}}

    def test_no_object(self):
        with pytest.raises(ProtocolError, match="No JSON object"):
            extract_json("nothing here")


class TestHandleCommand:
    def test_not_an_object(self, cfg):
        reply, status = handle_command(["parse"], cfg)
        assert status == 1
        assert reply == {"success": False, "error": "Command must be a JSON object"}

    def test_unknown_operation(self, cfg):
        reply, status = handle_command({"operation": "rename"}, cfg)
        assert status == 1
        assert reply["error"] == "Unknown operation: rename"

    def test_parse_requires_file(self, cfg):
        reply, status = handle_command({"operation": "parse"}, cfg)
        assert (reply["error"], status) == ("File path is required", 1)

    def test_parse_missing_file(self, cfg, tmp_path):
        reply, status = handle_command(
            {"operation": "parse", "file": str(tmp_path / "absent.go")}, cfg,
        )
        assert status == 1
        assert reply["error"].startswith("Parse failed:")

    def test_parse(self, cfg, go_file):
        pytest.importorskip("tree_sitter_go")
        reply, status = handle_command({"operation": "parse", "file": str(go_file)}, cfg)
        assert status == 0
        assert reply["success"] is True
        assert [s["name"] for s in reply["symbols"]] == ["A", "B"]
        assert reply["symbols"][0]["kind"] == "function"

    def test_edit_requires_request(self, cfg, go_file):
        reply, status = handle_command({"operation": "edit", "file": str(go_file)}, cfg)
        assert status == 1
        assert reply["error"] == "Edit request is required for edit operation"

    def test_edit_requires_path(self, cfg):
        reply, status = handle_command(
            {"operation": "edit", "edit": {"EditType": "delete", "Symbol": "A"}}, cfg,
        )
        assert (reply["error"], status) == ("File path is required", 1)

    def test_edit_dry_run(self, cfg, go_file):
        pytest.importorskip("tree_sitter_go")
        reply, status = handle_command({
            "operation": "edit",
            "file": str(go_file),
            "edit": {"EditType": "delete", "Symbol": "B"},
        }, cfg)
        assert status == 0
        assert reply == {"Success": True, "Content": "package main\n\nfunc A() {}\n\n", "Error": ""}
        assert go_file.read_text(encoding="utf-8") == GO_SOURCE

    def test_edit_write(self, cfg, go_file):
        pytest.importorskip("tree_sitter_go")
        reply, status = handle_command({
            "operation": "edit",
            "file": str(go_file),
            "edit": {"EditType": "delete", "Symbol": "A"},
            "write": True,
        }, cfg)
        assert status == 0
        assert go_file.read_text(encoding="utf-8") == "package main\n\nfunc B() {}\n"

    def test_edit_failure_uses_wire_shape(self, cfg, go_file):
        pytest.importorskip("tree_sitter_go")
        reply, status = handle_command({
            "operation": "edit",
            "file": str(go_file),
            "edit": {"EditType": "delete", "Symbol": "X"},
        }, cfg)
        assert status == 1
        assert reply == {"Success": False, "Content": "", "Error": "Symbol 'X' not found in file"}


class TestServeStdin:
    def test_bad_json(self, cfg):
        out = io.StringIO()
        status = serve_stdin(io.StringIO("{oops"), out, cfg)
        assert status == 1
        reply = json.loads(out.getvalue())
        assert reply["success"] is False
        assert reply["error"].startswith("Failed to parse input:")

    def test_one_reply_line(self, cfg, go_file):
        pytest.importorskip("tree_sitter_go")
        out = io.StringIO()
        command = json.dumps({"operation": "parse", "file": str(go_file)})
        status = serve_stdin(io.StringIO(command), out, cfg)
        assert status == 0
        assert out.getvalue().count("\n") == 1
        assert json.loads(out.getvalue())["success"] is True


class TestSymbolEditProcess:
    def _completed(self, stdout, stderr="", returncode=0):
        proc = MagicMock()
        proc.stdout = stdout
        proc.stderr = stderr
        proc.returncode = returncode
        return proc

    def test_edit_symbol_sends_command(self):
        client = SymbolEditProcess(command=["symbol-edit"], timeout=5)
        reply = '{"Success": true, "Content": "x", "Error": ""}\n'
        with patch("symbol_editor.protocol.subprocess.run",
                   return_value=self._completed("DEBUG noise\n" + reply)) as run:
            result = client.edit_symbol("main.go", {"EditType": "delete", "Symbol": "A"})

        assert result == {"Success": True, "Content": "x", "Error": ""}
        argv = run.call_args.args[0]
        assert argv == ["symbol-edit", "--input", "-"]
        sent = json.loads(run.call_args.kwargs["input"])
        assert sent == {
            "operation": "edit",
            "file": "main.go",
            "edit": {"EditType": "delete", "Symbol": "A"},
            "write": False,
        }
        assert run.call_args.kwargs["timeout"] == 5

    def test_parse_file(self):
        client = SymbolEditProcess(command=["symbol-edit"])
        with patch("symbol_editor.protocol.subprocess.run",
                   return_value=self._completed('{"success": true, "symbols": []}')) as run:
            assert client.parse_file("a.py") == {"success": True, "symbols": []}
        assert json.loads(run.call_args.kwargs["input"]) == {"operation": "parse", "file": "a.py"}

    def test_default_command_runs_package(self):
        client = SymbolEditProcess()
        assert client.command[-2:] == ["-m", "symbol_editor"]

    def test_missing_executable(self):
        client = SymbolEditProcess(command=["no-such-binary"])
        with patch("symbol_editor.protocol.subprocess.run", side_effect=FileNotFoundError("x")):
            with pytest.raises(ProtocolError, match="Failed to run symbol editor"):
                client.parse_file("a.py")

    def test_timeout(self):
        client = SymbolEditProcess(command=["symbol-edit"], timeout=1.5)
        with patch("symbol_editor.protocol.subprocess.run",
                   side_effect=subprocess.TimeoutExpired("symbol-edit", 1.5)):
            with pytest.raises(ProtocolError, match="timed out after 1.5s"):
                client.parse_file("a.py")

    def test_garbage_output(self):
        client = SymbolEditProcess(command=["symbol-edit"])
        with patch("symbol_editor.protocol.subprocess.run",
                   return_value=self._completed("", stderr="Traceback...", returncode=2)):
            with pytest.raises(ProtocolError, match="exited with code 2: Traceback"):
                client.parse_file("a.py")
