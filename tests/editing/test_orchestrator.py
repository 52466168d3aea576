"""End-to-end tests for the EditOrchestrator pipeline (real tree-sitter parses)."""

import asyncio
import json
import logging
import textwrap

import pytest

from symbol_editor.config import Config
from symbol_editor.editing import (
    EditOrchestrator,
    EditRequest,
    InsertAnchor,
    edit,
    edit_file,
    edit_file_async,
    edit_many,
)
from symbol_editor.parsing import parse_source

pytest.importorskip("tree_sitter_go")


def _config(**values) -> Config:
    return Config(values)


def _replace(symbol, content, **kw):
    return EditRequest(symbol=symbol, edit_type="replace", content=content, **kw)


def _delete(symbol, **kw):
    return EditRequest(symbol=symbol, edit_type="delete", **kw)


def _insert(symbol, content, position, anchor, **kw):
    return EditRequest(
        symbol=symbol, edit_type="insert", content=content,
        insert=InsertAnchor(position=position, relative_to_symbol=anchor), **kw,
    )


# ---------------------------------------------------------------------------
# Core scenarios
# ---------------------------------------------------------------------------

class TestScenarios:
    def test_replace(self):
        result = edit("func A(){}\nfunc B(){}\n", _replace("B", "func B(){return 1}"),
                      language="go")
        assert result.success
        assert result.error is None
        assert result.content == "func A(){}\nfunc B(){return 1}\n"

    def test_delete_takes_doc_comment(self):
        result = edit("// doc\nfunc A(){}\n", _delete("A"), language="go")
        assert result.success
        assert result.content == ""

    def test_insert_after(self):
        result = edit("func A(){}\nfunc C(){}\n",
                      _insert("B", "func B(){}", "after", "A"), language="go")
        assert result.success
        assert result.content == "func A(){}\nfunc B(){}\nfunc C(){}\n"

    def test_insert_before(self):
        result = edit("func A(){}\nfunc C(){}\n",
                      _insert("B", "func B(){}", "before", "C"), language="go")
        assert result.success
        assert result.content == "func A(){}\nfunc B(){}\nfunc C(){}\n"

    def test_symbol_not_found(self):
        result = edit("func A(){}\n", _delete("X"), language="go")
        assert not result.success
        assert result.content is None
        assert result.error == "Symbol 'X' not found in file"
        assert result.stage == "resolving"

    def test_insert_without_anchor(self):
        request = EditRequest(symbol="B", edit_type="insert", content="func B(){}")
        result = edit("func A(){}\n", request, language="go")
        assert not result.success
        assert result.error == "Insert configuration is required for insert operations"
        assert result.stage == "validating"

    def test_invalid_new_content(self):
        result = edit("func A(){}\nfunc B(){}\n", _replace("B", "func B({"), language="go")
        assert not result.success
        assert result.error.startswith("Failed to parse new content:")
        assert result.stage == "verifying"

    def test_insert_anchor_narrowed_by_qualifier(self):
        source = (
            "package main\n\n"
            "type A struct{}\n\ntype B struct{}\n\n"
            "func (a A) Process() {}\n\n"
            "func (b B) Process() {}\n\n"
            "func Tail() {}\n"
        )
        result = edit(source, _insert("Extra", "func Extra() {}", "after", "Process",
                                      qualifier="B"), language="go")
        assert result.success, result.error
        assert result.content == source.replace(
            "func (b B) Process() {}\n",
            "func (b B) Process() {}\nfunc Extra() {}\n",
        )

    def test_insert_anchor_narrowed_by_kind(self):
        source = "package main\n\ntype Process struct{}\n\nfunc (p Process) Process() {}\n"
        result = edit(source, _insert("Run", "func Run() {}", "before", "Process",
                                      symbol_kind="method"), language="go")
        assert result.success, result.error
        assert "type Process struct{}\n\nfunc Run() {}\nfunc (p Process)" in result.content

    def test_insert_after_field_with_trailing_comment(self):
        source = "package main\n\ntype S struct {\n\tX int // x coord\n\tZ int\n}\n"
        result = edit(source, _insert("Y", "Y int", "after", "X"), language="go")
        assert result.success, result.error
        assert result.content == (
            "package main\n\ntype S struct {\n\tX int // x coord\n\tY int\n\tZ int\n}\n"
        )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidation:
    SOURCE = "func A(){}\n"

    @pytest.mark.parametrize("request_, message", [
        (EditRequest(symbol="A", edit_type="rename"),
         "Invalid EditType: must be 'replace', 'insert', or 'delete'"),
        (EditRequest(symbol="", edit_type="delete"), "Symbol name is required"),
        (EditRequest(symbol="A", edit_type="replace"),
         "Content is required for replace operations"),
        (EditRequest(symbol="A", edit_type="replace", content=""),
         "Content is required for replace operations"),
        (EditRequest(symbol="B", edit_type="insert",
                     insert=InsertAnchor("after", "A")),
         "Content is required for insert operations"),
        (EditRequest(symbol="B", edit_type="insert", content="func B(){}",
                     insert=InsertAnchor("middle", "A")),
         "Invalid Position in Insert config: must be 'before' or 'after'"),
        (EditRequest(symbol="B", edit_type="insert", content="func B(){}",
                     insert=InsertAnchor("after", "")),
         "RelativeToSymbol is required in Insert config"),
        (EditRequest(symbol="A", edit_type="delete", symbol_kind="widget"),
         "Invalid symbol kind: widget"),
    ])
    def test_rejected(self, request_, message):
        result = edit(self.SOURCE, request_, language="go")
        assert not result.success
        assert result.error == message
        assert result.stage == "validating"

    def test_delete_needs_no_content(self):
        assert edit(self.SOURCE, _delete("A"), language="go").success

    def test_unsupported_extension(self):
        result = edit("hello\n", _delete("A", file_path="notes.txt"))
        assert not result.success
        assert result.error == "Unsupported language: .txt"
        assert result.stage == "parsing"

    def test_unparsable_original(self):
        result = edit("func A({\n", _delete("A"), language="go")
        assert not result.success
        assert result.error.startswith("Failed to parse file:")
        assert result.stage == "parsing"

    def test_language_from_path(self):
        result = edit(self.SOURCE, _delete("A", file_path="pkg/main.go"))
        assert result.success
        assert result.content == ""

    def test_wire_dict_request(self):
        result = edit("func A(){}\nfunc C(){}\n", {
            "Path": "main.go",
            "EditType": "insert",
            "Symbol": "B",
            "Content": "func B(){}",
            "Insert": {"Position": "after", "RelativeToSymbol": "A"},
        })
        assert result.success
        assert result.to_wire() == {
            "Success": True,
            "Content": "func A(){}\nfunc B(){}\nfunc C(){}\n",
            "Error": "",
        }


# ---------------------------------------------------------------------------
# Indentation-sensitive edits
# ---------------------------------------------------------------------------

class TestPythonEdits:
    SOURCE = textwrap.dedent("""\
        class Service:
            def process(self):
                return 1

            def stop(self):
                pass
        """)

    @pytest.fixture(autouse=True)
    def _grammar(self):
        pytest.importorskip("tree_sitter_python")

    def test_replace_method_with_relative_content(self):
        result = edit(self.SOURCE,
                      _replace("process", "def process(self):\n    return 2"),
                      language="python")
        assert result.success, result.error
        assert result.content == self.SOURCE.replace("return 1", "return 2")

    def test_replace_method_with_absolute_content(self):
        result = edit(self.SOURCE,
                      _replace("process", "    def process(self):\n        return 2\n"),
                      language="python")
        assert result.success, result.error
        assert "    def process(self):\n        return 2\n" in result.content
        assert "return 1" not in result.content

    def test_delete_first_method(self):
        result = edit(self.SOURCE, _delete("process"), language="python")
        assert result.success, result.error
        assert result.content == "class Service:\n    def stop(self):\n        pass\n"

    def test_delete_last_method(self):
        result = edit(self.SOURCE, _delete("stop"), language="python")
        assert result.success, result.error
        assert result.content == "class Service:\n    def process(self):\n        return 1\n\n"

    def test_insert_before_method(self):
        result = edit(self.SOURCE,
                      _insert("pause", "def pause(self):\n    pass", "before", "stop"),
                      language="python")
        assert result.success, result.error
        assert ("    def pause(self):\n        pass\n    def stop(self):"
                in result.content)

    def test_dotted_name(self):
        source = self.SOURCE + "\n\ndef process():\n    return 0\n"
        result = edit(source, _replace("Service.process", "def process(self):\n    return 2"),
                      language="python")
        assert result.success, result.error
        assert "return 2" in result.content
        assert "def process():\n    return 0" in result.content

    def test_kind_hint(self):
        source = self.SOURCE + "\n\ndef process():\n    return 0\n"
        result = edit(source, _delete("process", symbol_kind="function"), language="python")
        assert result.success, result.error
        assert "return 0" not in result.content
        assert "return 1" in result.content

    def test_delete_leaving_unparsable_file(self):
        result = edit("class K:\n    def m(self):\n        pass\n", _delete("m"),
                      language="python")
        assert not result.success
        assert result.error.startswith("Edit leaves file unparsable:")
        assert result.stage == "verifying"


# ---------------------------------------------------------------------------
# Comma-separated declarations
# ---------------------------------------------------------------------------

class TestDeclaratorLists:
    def test_javascript_first_member(self):
        pytest.importorskip("tree_sitter_javascript")
        source = "const a = 1, b = 2;\nfunction f() { return b; }\n"
        result = edit(source, _delete("a"), language="javascript")
        assert result.success, result.error
        assert result.content == "const b = 2;\nfunction f() { return b; }\n"

    def test_javascript_last_member(self):
        pytest.importorskip("tree_sitter_javascript")
        source = "const a = 1, b = 2;\nfunction f() { return b; }\n"
        result = edit(source, _delete("b"), language="javascript")
        assert result.success, result.error
        assert result.content == "const a = 1;\nfunction f() { return b; }\n"

    def test_go_names(self):
        source = "package main\n\nvar a, b int\n"
        first = edit(source, _delete("a"), language="go")
        assert first.success, first.error
        assert first.content == "package main\n\nvar b int\n"
        last = edit(source, _delete("b"), language="go")
        assert last.success, last.error
        assert last.content == "package main\n\nvar a int\n"

    def test_go_struct_field_names(self):
        source = "package main\n\ntype S struct {\n\tport, backlog int\n}\n"
        result = edit(source, _delete("port"), language="go")
        assert result.success, result.error
        assert result.content == "package main\n\ntype S struct {\n\tbacklog int\n}\n"

    def test_java_fields(self):
        pytest.importorskip("tree_sitter_java")
        source = "class K {\n    int a, b;\n    int g() { return b; }\n}\n"
        result = edit(source, _delete("a"), language="java")
        assert result.success, result.error
        assert result.content == "class K {\n    int b;\n    int g() { return b; }\n}\n"

    def test_shared_go_spec_rejected(self):
        source = "package main\n\nvar x, y = 1, 2\n"
        result = edit(source, _delete("x"), language="go")
        assert not result.success
        assert result.content is None
        assert result.error == (
            "Symbol 'x' is declared together with 'y'; cannot delete it separately"
        )
        assert result.stage == "resolving"

    def test_chained_python_assignment_rejected(self):
        pytest.importorskip("tree_sitter_python")
        source = "class K:\n    a = b = 1\n"
        result = edit(source, _replace("b", "b = 2"), language="python")
        assert not result.success
        assert result.error == (
            "Symbol 'b' is declared together with 'a'; cannot replace it separately"
        )

    def test_shared_declaration_still_an_insert_anchor(self):
        source = "package main\n\nvar x, y = 1, 2\n"
        result = edit(source, _insert("z", "var z = 3", "after", "x"), language="go")
        assert result.success, result.error
        assert result.content == "package main\n\nvar x, y = 1, 2\nvar z = 3\n"


# ---------------------------------------------------------------------------
# Round trips
# ---------------------------------------------------------------------------

_ROUND_TRIP_CASES = [
    ("python", "tree_sitter_python",
     "def f():\n    return 1\n", "f", "def f():\n    return 2"),
    ("javascript", "tree_sitter_javascript",
     "function f() {\n  return 1;\n}\n", "f", "function f() {\n  return 2;\n}"),
    ("typescript", "tree_sitter_typescript",
     "function f(): number {\n  return 1;\n}\n", "f",
     "function f(): number {\n  return 2;\n}"),
    ("tsx", "tree_sitter_typescript",
     "function f() {\n  return <div>{1}</div>;\n}\n", "f",
     "function f() {\n  return <div>{2}</div>;\n}"),
    ("java", "tree_sitter_java",
     "class K {\n    int f() {\n        return 1;\n    }\n}\n", "f",
     "int f() {\n    return 2;\n}"),
    ("c", "tree_sitter_c",
     "int f(void) {\n    return 1;\n}\n", "f", "int f(void) {\n    return 2;\n}"),
    ("cpp", "tree_sitter_cpp",
     "int f() {\n    return 1;\n}\n", "f", "int f() {\n    return 2;\n}"),
    ("go", "tree_sitter_go",
     "func f() int {\n\treturn 1\n}\n", "f", "func f() int {\n\treturn 2\n}"),
    ("rust", "tree_sitter_rust",
     "fn f() -> i32 {\n    1\n}\n", "f", "fn f() -> i32 {\n    2\n}"),
    ("ruby", "tree_sitter_ruby",
     "def f\n  1\nend\n", "f", "def f\n  2\nend"),
    ("php", "tree_sitter_php",
     "<?php\nfunction f() {\n    return 1;\n}\n", "f",
     "function f() {\n    return 2;\n}"),
    ("c_sharp", "tree_sitter_c_sharp",
     "class K {\n    int F() {\n        return 1;\n    }\n}\n", "F",
     "int F() {\n    return 2;\n}"),
]


class TestRoundTrips:
    def test_delete_then_reinsert_restores_text(self):
        source = "func A() {}\nfunc B() {}\nfunc C() {}\n"
        deleted = edit(source, _delete("B"), language="go")
        assert deleted.success, deleted.error
        assert deleted.content.count("\n") == source.count("\n") - 1

        restored = edit(deleted.content, _insert("B", "func B() {}", "after", "A"),
                        language="go")
        assert restored.success, restored.error
        assert restored.content.count("\n") == deleted.content.count("\n") + 1
        assert restored.content == source

    def test_delete_then_reinsert_with_blank_lines(self):
        source = "func A() {}\n\nfunc B() {}\n\nfunc C() {}\n"
        deleted = edit(source, _delete("B"), language="go")
        assert deleted.success, deleted.error
        assert deleted.content == "func A() {}\n\nfunc C() {}\n"
        assert deleted.content.count("\n") == source.count("\n") - 2

        restored = edit(deleted.content, _insert("B", "func B() {}", "after", "A"),
                        language="go")
        assert restored.success, restored.error
        assert restored.content == "func A() {}\nfunc B() {}\n\nfunc C() {}\n"
        assert restored.content.count("\n") == deleted.content.count("\n") + 1

    def test_delete_then_reinsert_python_method(self):
        pytest.importorskip("tree_sitter_python")
        source = TestPythonEdits.SOURCE
        deleted = edit(source, _delete("process"), language="python")
        assert deleted.success, deleted.error
        assert deleted.content.count("\n") == source.count("\n") - 3

        restored = edit(deleted.content,
                        _insert("process", "def process(self):\n    return 1\n\n",
                                "before", "stop"),
                        language="python")
        assert restored.success, restored.error
        assert restored.content == source

    @pytest.mark.parametrize("language, module, source, name, replacement",
                             _ROUND_TRIP_CASES, ids=[c[0] for c in _ROUND_TRIP_CASES])
    def test_replace_reparses_on_every_backend(self, language, module, source, name,
                                               replacement):
        pytest.importorskip(module)
        before = parse_source(source, language)
        assert before.ok, before.parse_error

        result = edit(source, _replace(name, replacement), language=language)
        assert result.success, result.error
        assert "2" in result.content and "1" not in result.content

        after = parse_source(result.content, language)
        assert after.ok, after.parse_error
        assert ([(s.name, s.kind) for s in after.flat()]
                == [(s.name, s.kind) for s in before.flat()])


# ---------------------------------------------------------------------------
# Text handling
# ---------------------------------------------------------------------------

class TestTextHandling:
    def test_crlf_preserved(self):
        result = edit("func A(){}\r\nfunc B(){}\r\n", _replace("B", "func B(){\n}"),
                      language="go")
        assert result.success
        assert result.content == "func A(){}\r\nfunc B(){\r\n}\r\n"

    def test_non_ascii_offsets(self):
        source = "// héllo wörld\nfunc A(){}\nfunc B(){}\n"
        result = edit(source, _replace("B", "func B(){return 1}"), language="go")
        assert result.success
        assert result.content == "// héllo wörld\nfunc A(){}\nfunc B(){return 1}\n"

    def test_verification_can_be_disabled(self):
        result = EditOrchestrator(_config(verify_edits=False)).run(
            "func A(){}\n", _replace("A", "func A({"), language="go",
        )
        assert result.success
        assert result.content == "func A({\n"

    def test_missing_inserted_symbol_only_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="symbol_editor.editing.orchestrator"):
            result = edit("func A(){}\n", _insert("Z", "func B(){}", "after", "A"),
                          language="go")
        assert result.success
        assert "Inserted symbol 'Z' not found" in caplog.text


# ---------------------------------------------------------------------------
# Multiple edits
# ---------------------------------------------------------------------------

class TestEditMany:
    def test_deletes_run_before_inserts(self):
        result = edit_many("func A(){}\nfunc C(){}\n", [
            _insert("B", "func B(){}", "after", "A"),
            _delete("C"),
        ], language="go")
        assert result.success
        assert result.content == "func A(){}\nfunc B(){}\n"

    def test_failure_names_the_edit(self):
        result = edit_many("func A(){}\n", [
            _replace("A", "func A(){return 1}"),
            _delete("X"),
        ], language="go")
        assert not result.success
        assert result.error == "Edit 2 of 2 (delete 'X'): Symbol 'X' not found in file"
        assert result.stage == "resolving"

    def test_empty_list_returns_input(self):
        result = edit_many("func A(){}\n", [], language="go")
        assert result.success
        assert result.content == "func A(){}\n"


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class TestFiles:
    SOURCE = "package main\n\nfunc A() {}\n\nfunc B() {}\n"

    def _write(self, tmp_path):
        path = tmp_path / "main.go"
        path.write_text(self.SOURCE, encoding="utf-8")
        return path

    def test_dry_run_leaves_file(self, tmp_path):
        path = self._write(tmp_path)
        result = edit_file(str(path), _delete("B"))
        assert result.success
        assert result.content == "package main\n\nfunc A() {}\n\n"
        assert path.read_text(encoding="utf-8") == self.SOURCE

    def test_write(self, tmp_path):
        path = self._write(tmp_path)
        result = edit_file(str(path), _replace("A", "func A() { println(1) }"), write=True)
        assert result.success
        assert path.read_text(encoding="utf-8") == self.SOURCE.replace(
            "func A() {}", "func A() { println(1) }"
        )
        assert not (tmp_path / "main.go.symboledit_tmp").exists()

    def test_failed_edit_does_not_write(self, tmp_path):
        path = self._write(tmp_path)
        result = edit_file(str(path), _replace("A", "func A( {"), write=True)
        assert not result.success
        assert path.read_text(encoding="utf-8") == self.SOURCE

    def test_missing_file(self, tmp_path):
        result = edit_file(str(tmp_path / "absent.go"), _delete("A"))
        assert not result.success
        assert result.error.startswith("Cannot read file:")
        assert result.stage == "parsing"

    def test_run_file_many_writes_once(self, tmp_path):
        path = self._write(tmp_path)
        result = EditOrchestrator(_config()).run_file_many(
            str(path), [_delete("A"), _delete("B")], write=True,
        )
        assert result.success
        assert path.read_text(encoding="utf-8") == "package main\n\n"

    def test_async(self, tmp_path):
        path = self._write(tmp_path)
        result = asyncio.run(edit_file_async(str(path), _delete("A"), write=True))
        assert result.success
        assert "func A" not in path.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Optional behaviour
# ---------------------------------------------------------------------------

class TestOptionalBehaviour:
    JS = textwrap.dedent("""\
        class Setup {
          init() {
            this.load();
            this.start();
          }
          load() {
            return 1;
          }
          start() {}
        }
        """)

    @pytest.fixture(autouse=True)
    def _grammar(self):
        pytest.importorskip("tree_sitter_javascript")

    def test_call_sites_kept_by_default(self):
        result = EditOrchestrator(_config()).run(self.JS, _delete("load"),
                                                 language="javascript")
        assert result.success, result.error
        assert "this.load();" in result.content
        assert "return 1" not in result.content

    def test_call_sites_removed_when_enabled(self):
        result = EditOrchestrator(_config(remove_call_sites=True)).run(
            self.JS, _delete("load"), language="javascript",
        )
        assert result.success, result.error
        assert result.content == textwrap.dedent("""\
            class Setup {
              init() {
                this.start();
              }
              start() {}
            }
            """)

    def test_metrics_recorded(self, tmp_path):
        metrics_dir = tmp_path / "metrics"
        orchestrator = EditOrchestrator(
            _config(metrics_enabled=True, metrics_dir=str(metrics_dir))
        )
        orchestrator.run(self.JS, _delete("load"), language="javascript")
        orchestrator.run(self.JS, _delete("missing"), language="javascript")

        lines = (metrics_dir / "edit_metrics.jsonl").read_text().splitlines()
        entries = [json.loads(line) for line in lines]
        assert [e["success"] for e in entries] == [True, False]
        assert entries[0]["edit_type"] == "delete"
        assert entries[0]["language"] == "javascript"
        assert entries[1]["stage"] == "resolving"
