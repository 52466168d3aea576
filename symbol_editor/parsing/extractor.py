"""
Table-driven tree-sitter extractor for every supported language except Go.

Each language is described by a :class:`_LanguageRules` table mapping node
types to a symbol kind and the field that holds the symbol's name.  The
walker is the same for all of them:

* nodes with a rule become symbols, their subtrees become children;
* nodes without a rule are transparent (their children are visited);
* wrapper nodes (``export_statement``, ``decorated_definition``, ...)
  widen a symbol's range to the whole statement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .base import SymbolExtractor
from .symbols import Symbol, SymbolKind
from .treesitter import SourceText

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Rule:
    kind: SymbolKind
    name_field: str = "name"        # "" → the node itself is the name
    emit: bool = True               # False → container that only scopes members
    module_scope: bool = False      # skipped inside function bodies
    requires_body: bool = False     # skip forward references (C ``struct X *p``)
    parents: frozenset = frozenset()
    label: bool = False             # named by its text up to ':'
    chain: bool = False             # `a = b = 1` declares every target


@dataclass(frozen=True)
class _LanguageRules:
    rules: dict
    wrappers: frozenset = frozenset()
    leading: frozenset = frozenset()
    function_values: frozenset = frozenset()
    docstrings: bool = False


@dataclass(frozen=True)
class _Scope:
    name: Optional[str] = None
    kind: Optional[SymbolKind] = None
    in_function: bool = False

    def enter(self, name: str, kind: SymbolKind) -> "_Scope":
        return _Scope(
            name=name,
            kind=kind,
            in_function=self.in_function or kind in (SymbolKind.FUNCTION, SymbolKind.METHOD),
        )


# Node types that can carry a symbol name
_NAME_TYPES = frozenset({
    "identifier", "type_identifier", "property_identifier", "field_identifier",
    "private_property_identifier", "shorthand_property_identifier",
    "constant", "name", "scope_resolution", "qualified_name",
    "scoped_identifier", "scoped_type_identifier", "destructor_name",
    "operator_name", "namespace_identifier", "variable_name",
})

# C / C++ declarators wrap the actual name
_DECLARATOR_TYPES = frozenset({
    "function_declarator", "pointer_declarator", "reference_declarator",
    "array_declarator", "parenthesized_declarator", "init_declarator",
})

_TYPE_WRAPPERS = frozenset({"generic_type"})

_TYPE_SCOPES = (SymbolKind.TYPE, SymbolKind.INTERFACE)

_DECLARED_KINDS = (SymbolKind.FIELD, SymbolKind.VARIABLE, SymbolKind.CONSTANT)

K = SymbolKind

# ---------------------------------------------------------------------------
# Language tables
# ---------------------------------------------------------------------------

_PYTHON = _LanguageRules(
    rules={
        "class_definition": _Rule(K.TYPE),
        "function_definition": _Rule(K.FUNCTION),
        "assignment": _Rule(K.VARIABLE, name_field="left", module_scope=True, chain=True),
        "case_clause": _Rule(K.CASE, label=True),
    },
    wrappers=frozenset({"decorated_definition", "expression_statement"}),
    function_values=frozenset({"lambda"}),
    docstrings=True,
)

_JS_RULES = {
    "function_declaration": _Rule(K.FUNCTION),
    "generator_function_declaration": _Rule(K.FUNCTION),
    "class_declaration": _Rule(K.TYPE),
    "method_definition": _Rule(K.FUNCTION),
    "field_definition": _Rule(K.VARIABLE, name_field="property"),
    "variable_declarator": _Rule(K.VARIABLE, module_scope=True),
    "switch_case": _Rule(K.CASE, label=True),
    "switch_default": _Rule(K.CASE, label=True),
}

_JS_WRAPPERS = frozenset({"export_statement", "lexical_declaration", "variable_declaration"})

_JS_FUNCTION_VALUES = frozenset({
    "arrow_function", "function_expression", "function", "generator_function",
})

_JAVASCRIPT = _LanguageRules(
    rules=_JS_RULES,
    wrappers=_JS_WRAPPERS,
    function_values=_JS_FUNCTION_VALUES,
)

_TYPESCRIPT = _LanguageRules(
    rules={
        **_JS_RULES,
        "abstract_class_declaration": _Rule(K.TYPE),
        "interface_declaration": _Rule(K.INTERFACE),
        "type_alias_declaration": _Rule(K.TYPE),
        "enum_declaration": _Rule(K.TYPE),
        "internal_module": _Rule(K.OTHER),
        "public_field_definition": _Rule(K.VARIABLE),
        "property_signature": _Rule(K.VARIABLE),
        "method_signature": _Rule(K.FUNCTION),
        "abstract_method_signature": _Rule(K.FUNCTION),
        "function_signature": _Rule(K.FUNCTION),
        "enum_assignment": _Rule(K.CONSTANT),
        "property_identifier": _Rule(
            K.CONSTANT, name_field="", parents=frozenset({"enum_body"}),
        ),
    },
    wrappers=_JS_WRAPPERS | {"ambient_declaration"},
    function_values=_JS_FUNCTION_VALUES,
)

_JAVA = _LanguageRules(
    rules={
        "class_declaration": _Rule(K.TYPE),
        "record_declaration": _Rule(K.TYPE),
        "enum_declaration": _Rule(K.TYPE),
        "interface_declaration": _Rule(K.INTERFACE),
        "method_declaration": _Rule(K.FUNCTION),
        "constructor_declaration": _Rule(K.FUNCTION),
        "enum_constant": _Rule(K.CONSTANT),
        "variable_declarator": _Rule(K.VARIABLE, module_scope=True),
        "switch_block_statement_group": _Rule(K.CASE, label=True),
        "switch_rule": _Rule(K.CASE, label=True),
    },
    wrappers=frozenset({"field_declaration", "constant_declaration"}),
)

_C_SHARP = _LanguageRules(
    rules={
        "class_declaration": _Rule(K.TYPE),
        "struct_declaration": _Rule(K.TYPE),
        "record_declaration": _Rule(K.TYPE),
        "enum_declaration": _Rule(K.TYPE),
        "interface_declaration": _Rule(K.INTERFACE),
        "namespace_declaration": _Rule(K.OTHER),
        "method_declaration": _Rule(K.FUNCTION),
        "constructor_declaration": _Rule(K.FUNCTION),
        "local_function_statement": _Rule(K.FUNCTION),
        "property_declaration": _Rule(K.FIELD),
        "enum_member_declaration": _Rule(K.CONSTANT),
        "variable_declarator": _Rule(K.VARIABLE, module_scope=True),
        "switch_section": _Rule(K.CASE, label=True),
    },
    wrappers=frozenset({"field_declaration", "variable_declaration"}),
    leading=frozenset({"attribute_list"}),
)

_RUST = _LanguageRules(
    rules={
        "function_item": _Rule(K.FUNCTION),
        "function_signature_item": _Rule(K.FUNCTION),
        "struct_item": _Rule(K.TYPE),
        "enum_item": _Rule(K.TYPE),
        "union_item": _Rule(K.TYPE),
        "type_item": _Rule(K.TYPE),
        "trait_item": _Rule(K.INTERFACE),
        "impl_item": _Rule(K.TYPE, name_field="type", emit=False),
        "mod_item": _Rule(K.OTHER),
        "field_declaration": _Rule(K.FIELD),
        "enum_variant": _Rule(K.CONSTANT),
        "const_item": _Rule(K.CONSTANT, module_scope=True),
        "static_item": _Rule(K.VARIABLE, module_scope=True),
        "match_arm": _Rule(K.CASE, name_field="pattern"),
    },
    leading=frozenset({"attribute_item"}),
)

_C_RULES = {
    "function_definition": _Rule(K.FUNCTION, name_field="declarator"),
    "struct_specifier": _Rule(K.TYPE, requires_body=True),
    "union_specifier": _Rule(K.TYPE, requires_body=True),
    "enum_specifier": _Rule(K.TYPE, requires_body=True),
    "type_definition": _Rule(K.TYPE, name_field="declarator"),
    "field_declaration": _Rule(
        K.FIELD, name_field="declarator", parents=frozenset({"field_declaration_list"}),
    ),
    "enumerator": _Rule(K.CONSTANT),
    "case_statement": _Rule(K.CASE, label=True),
}

_C = _LanguageRules(rules=_C_RULES)

_CPP = _LanguageRules(
    rules={
        **_C_RULES,
        "class_specifier": _Rule(K.TYPE, requires_body=True),
        "namespace_definition": _Rule(K.OTHER),
    },
    wrappers=frozenset({"template_declaration"}),
)

_RUBY = _LanguageRules(
    rules={
        "class": _Rule(K.TYPE),
        "module": _Rule(K.TYPE),
        "method": _Rule(K.FUNCTION),
        "singleton_method": _Rule(K.FUNCTION),
    },
)

_PHP = _LanguageRules(
    rules={
        "class_declaration": _Rule(K.TYPE),
        "trait_declaration": _Rule(K.TYPE),
        "enum_declaration": _Rule(K.TYPE),
        "interface_declaration": _Rule(K.INTERFACE),
        "function_definition": _Rule(K.FUNCTION),
        "method_declaration": _Rule(K.FUNCTION),
        "property_element": _Rule(K.FIELD, name_field=""),
        "const_element": _Rule(K.CONSTANT, name_field=""),
        "case_statement": _Rule(K.CASE, label=True),
        "default_statement": _Rule(K.CASE, label=True),
    },
    wrappers=frozenset({"property_declaration", "const_declaration"}),
)

LANGUAGE_RULES: dict[str, _LanguageRules] = {
    "python": _PYTHON,
    "javascript": _JAVASCRIPT,
    "typescript": _TYPESCRIPT,
    "tsx": _TYPESCRIPT,
    "java": _JAVA,
    "c_sharp": _C_SHARP,
    "rust": _RUST,
    "c": _C,
    "cpp": _CPP,
    "ruby": _RUBY,
    "php": _PHP,
}


# ---------------------------------------------------------------------------
# Docstrings
# ---------------------------------------------------------------------------

def _extract_docstring(def_node, source: SourceText) -> str:
    """
    Try to extract the first docstring from the body of a function/class node.
    Works for Python (expression_statement wrapping a string literal).
    Returns empty string if not found.
    """
    body = def_node.child_by_field_name("body")
    if body is None:
        return ""
    for stmt in body.named_children:
        if stmt.type != "expression_statement":
            break
        for sub in stmt.named_children:
            if sub.type in ("string", "concatenated_string"):
                raw = source.node_text(sub)
                for q in ('"""', "'''", '"', "'"):
                    if raw.startswith(q) and raw.endswith(q) and len(raw) > 2 * len(q):
                        raw = raw[len(q):-len(q)]
                        break
                return " ".join(raw.split())
        break  # only check first stmt
    return ""


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class TreeSitterExtractor(SymbolExtractor):
    """General-purpose backend driven by :data:`LANGUAGE_RULES`."""

    def __init__(self, language: str, attach_docs: bool = True) -> None:
        super().__init__(language, attach_docs)
        try:
            self.table = LANGUAGE_RULES[language]
        except KeyError:
            raise ValueError(f"no extraction rules for {language}") from None
        self.leading_types = self.table.leading

    def _collect(self, root, source: SourceText) -> list[Symbol]:
        return self._walk(root, source, _Scope())

    def _walk(self, node, source: SourceText, scope: _Scope) -> list[Symbol]:
        out: list[Symbol] = []
        for child in node.named_children:
            out.extend(self._visit(child, source, scope))
        return out

    def _visit(self, node, source: SourceText, scope: _Scope) -> list[Symbol]:
        rule = self.table.rules.get(node.type)
        if rule is None or not self._applies(rule, node, scope):
            return self._walk(node, source, scope)

        if rule.chain:
            links = self._chain(node)
            if len(links) > 1:
                return self._chained(links, rule, source, scope)
        if (
            rule.name_field and rule.kind in _DECLARED_KINDS
            and len(node.children_by_field_name(rule.name_field)) > 1
        ):
            return self._declarators(node, rule, source, scope)

        if rule.label:
            name, qualifier = self._label(node, source), None
        else:
            name, qualifier = self._name_of(node, rule, source)
        if not name:
            return self._walk(node, source, scope)

        if not rule.emit:
            return self._walk(node, source, scope.enter(name, rule.kind))

        kind = self._refine_kind(node, rule.kind, scope)
        children = self._walk(node, source, scope.enter(name, kind))
        outer, in_list = self._outer(node)

        doc = ""
        if self.table.docstrings and kind in (K.FUNCTION, K.METHOD, K.TYPE):
            doc = _extract_docstring(node, source)

        return [self._make_symbol(
            outer, source, name, kind,
            qualifier=qualifier or scope.name,
            children=children,
            doc=doc,
            in_list=in_list,
        )]

    def _chained(self, links, rule: _Rule, source: SourceText, scope: _Scope) -> list[Symbol]:
        """``a = b = 1``: one peer symbol per target, all spanning the statement."""
        last = links[-1]
        kind = self._refine_kind(last, rule.kind, scope)
        names = [self._name_of(link, rule, source)[0] for link in links]
        names = [name for name in names if name]
        if not names:
            return self._walk(last, source, scope)

        outer, _ = self._outer(links[0])
        return [
            self._make_symbol(
                outer, source, name, kind,
                qualifier=scope.name,
                siblings=tuple(other for other in names if other != name),
            )
            for name in names
        ]

    def _declarators(self, node, rule: _Rule, source: SourceText, scope: _Scope) -> list[Symbol]:
        """``int a, b;`` as one symbol per declarator, each spanning only its own name."""
        kind = self._refine_kind(node, rule.kind, scope)
        out: list[Symbol] = []
        for declarator in node.children_by_field_name(rule.name_field):
            name, qualifier = self._name_at(declarator, rule, source)
            if name:
                out.append(self._make_symbol(
                    declarator, source, name, kind,
                    qualifier=qualifier or scope.name,
                    in_list=True,
                ))
        return out

    # ------------------------------------------------------------------

    @staticmethod
    def _applies(rule: _Rule, node, scope: _Scope) -> bool:
        if rule.module_scope and scope.in_function:
            return False
        if rule.parents and (node.parent is None or node.parent.type not in rule.parents):
            return False
        if rule.requires_body and node.child_by_field_name("body") is None:
            return False
        return True

    @staticmethod
    def _chain(node) -> list:
        links = [node]
        while True:
            value = links[-1].child_by_field_name("right")
            if value is None or value.type != node.type:
                return links
            links.append(value)

    def _name_of(self, node, rule: _Rule, source: SourceText) -> tuple[str, Optional[str]]:
        """Return ``(name, qualifier)``; name is empty when the node is anonymous."""
        if rule.name_field:
            target = node.child_by_field_name(rule.name_field)
        elif node.type in _NAME_TYPES:
            target = node
        else:
            target = None
        if target is None:
            target = next((c for c in node.named_children if c.type in _NAME_TYPES), None)
        return self._name_at(target, rule, source)

    @staticmethod
    def _name_at(target, rule: _Rule, source: SourceText) -> tuple[str, Optional[str]]:
        # Unwrap declarators and generic types down to the name token
        while target is not None and (
            target.type in _DECLARATOR_TYPES or target.type in _TYPE_WRAPPERS
        ):
            inner_field = "type" if target.type in _TYPE_WRAPPERS else "declarator"
            target = target.child_by_field_name(inner_field)

        if target is None:
            return "", None
        if target.type == "qualified_identifier":
            scope_node = target.child_by_field_name("scope")
            name_node = target.child_by_field_name("name")
            return source.node_text(name_node), source.node_text(scope_node) or None
        if rule.kind == K.CASE:
            return " ".join(source.node_text(target).split()), None
        if target.type not in _NAME_TYPES:
            return "", None
        return source.node_text(target), None

    def _refine_kind(self, node, kind: SymbolKind, scope: _Scope) -> SymbolKind:
        if kind == K.VARIABLE:
            value = node.child_by_field_name("value") or node.child_by_field_name("right")
            if value is not None and value.type in self.table.function_values:
                kind = K.FUNCTION
            elif scope.kind in _TYPE_SCOPES:
                return K.FIELD
            elif self._is_const(node):
                return K.CONSTANT
        if kind == K.FUNCTION and scope.kind in _TYPE_SCOPES:
            return K.METHOD
        return kind

    @staticmethod
    def _is_const(node) -> bool:
        parent = node.parent
        if parent is None or parent.type != "lexical_declaration":
            return False
        first = parent.child(0)
        return first is not None and first.type == "const"

    def _outer(self, node):
        """Climb through wrapper statements that belong to this declaration.

        Returns ``(outer, in_list)``.  A declarator that shares its wrapper
        with others of its type (``const a = 1, b = 2``) keeps its own span.
        """
        outer = node
        while outer.parent is not None and outer.parent.type in self.table.wrappers:
            peers = sum(1 for c in outer.parent.named_children if c.type == outer.type)
            if peers > 1:
                return outer, True
            outer = outer.parent
        return outer, False
