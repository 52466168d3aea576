"""
Dedicated Go backend.

Go declarations do not map cleanly onto a node-type table: receivers carry
the qualifier, ``type``/``var``/``const`` blocks group several specs, and an
embedded struct field has no name of its own.  This walker handles those
shapes explicitly.
"""

from __future__ import annotations

import logging
from typing import Optional

from .base import SymbolExtractor
from .symbols import Symbol, SymbolKind
from .treesitter import SourceText

logger = logging.getLogger(__name__)

_CASE_TYPES = frozenset({
    "expression_case", "type_case", "default_case", "communication_case",
})

_FIELD_LISTS = frozenset({"field_declaration_list"})
_METHOD_SPECS = frozenset({"method_spec", "method_elem"})


def _receiver_type(receiver, source: SourceText) -> Optional[str]:
    """``(s *Server[T])`` → ``Server``."""
    if receiver is None:
        return None
    for param in receiver.named_children:
        if param.type != "parameter_declaration":
            continue
        type_node = param.child_by_field_name("type")
        while type_node is not None and type_node.type in ("pointer_type", "generic_type"):
            if type_node.type == "pointer_type":
                type_node = next(iter(type_node.named_children), None)
            else:
                type_node = type_node.child_by_field_name("type")
        if type_node is not None:
            return source.node_text(type_node)
    return None


class GoExtractor(SymbolExtractor):
    """Walk a Go syntax tree into the shared Symbol model."""

    def __init__(self, language: str = "go", attach_docs: bool = True) -> None:
        super().__init__(language, attach_docs)

    def _collect(self, root, source: SourceText) -> list[Symbol]:
        symbols: list[Symbol] = []
        for node in root.named_children:
            if node.type == "function_declaration":
                symbols.append(self._function(node, source))
            elif node.type == "method_declaration":
                symbols.append(self._method(node, source))
            elif node.type == "type_declaration":
                symbols.extend(self._type_declaration(node, source))
            elif node.type in ("var_declaration", "const_declaration"):
                symbols.extend(self._value_declaration(node, source))
        return symbols

    # ------------------------------------------------------------------
    # Functions and methods
    # ------------------------------------------------------------------

    def _function(self, node, source: SourceText) -> Symbol:
        name = source.node_text(node.child_by_field_name("name"))
        children = self._cases(node.child_by_field_name("body"), source, name)
        return self._make_symbol(node, source, name, SymbolKind.FUNCTION, children=children)

    def _method(self, node, source: SourceText) -> Symbol:
        name = source.node_text(node.child_by_field_name("name"))
        receiver = _receiver_type(node.child_by_field_name("receiver"), source)
        children = self._cases(node.child_by_field_name("body"), source, name)
        return self._make_symbol(
            node, source, name, SymbolKind.METHOD,
            qualifier=receiver, children=children,
        )

    def _cases(self, node, source: SourceText, owner: str) -> list[Symbol]:
        """Collect switch/select cases below *node*, nesting inner switches."""
        if node is None:
            return []
        out: list[Symbol] = []
        for child in node.named_children:
            if child.type in _CASE_TYPES:
                label = self._label(child, source)
                inner = self._cases(child, source, label)
                out.append(self._make_symbol(
                    child, source, label, SymbolKind.CASE,
                    qualifier=owner, children=inner,
                ))
            elif child.type != "func_literal":
                out.extend(self._cases(child, source, owner))
        return out

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def _type_declaration(self, node, source: SourceText) -> list[Symbol]:
        specs = [c for c in node.named_children if c.type in ("type_spec", "type_alias")]
        grouped = len(specs) != 1 or self._is_grouped(node)
        out: list[Symbol] = []
        for spec in specs:
            name = source.node_text(spec.child_by_field_name("name"))
            type_node = spec.child_by_field_name("type")
            kind = SymbolKind.TYPE
            children: list[Symbol] = []
            if type_node is not None and type_node.type == "interface_type":
                kind = SymbolKind.INTERFACE
                children = self._interface_methods(type_node, source, name)
            elif type_node is not None and type_node.type == "struct_type":
                children = self._struct_fields(type_node, source, name)
            out.append(self._make_symbol(
                spec if grouped else node, source, name, kind, children=children,
            ))
        return out

    def _struct_fields(self, struct_node, source: SourceText, owner: str) -> list[Symbol]:
        out: list[Symbol] = []
        for field_list in struct_node.named_children:
            if field_list.type not in _FIELD_LISTS:
                continue
            for decl in field_list.named_children:
                if decl.type != "field_declaration":
                    continue
                names = decl.children_by_field_name("name")
                if not names:
                    # Embedded field: named by its type, without pointer/package
                    type_node = decl.child_by_field_name("type")
                    text = source.node_text(type_node).lstrip("*")
                    names_text = [text.rsplit(".", 1)[-1]] if text else []
                    for name in names_text:
                        out.append(self._make_symbol(
                            decl, source, name, SymbolKind.FIELD, qualifier=owner,
                        ))
                elif len(names) == 1:
                    out.append(self._make_symbol(
                        decl, source, source.node_text(names[0]), SymbolKind.FIELD,
                        qualifier=owner,
                    ))
                else:
                    # "port, backlog int": each name spans only itself
                    for name_node in names:
                        out.append(self._make_symbol(
                            name_node, source, source.node_text(name_node),
                            SymbolKind.FIELD, qualifier=owner, in_list=True,
                        ))
        return out

    def _interface_methods(self, iface, source: SourceText, owner: str) -> list[Symbol]:
        out: list[Symbol] = []
        stack = list(reversed(iface.named_children))
        while stack:
            node = stack.pop()
            if node.type in _METHOD_SPECS:
                name = source.node_text(node.child_by_field_name("name"))
                if name:
                    out.append(self._make_symbol(
                        node, source, name, SymbolKind.METHOD, qualifier=owner,
                    ))
            elif node.type == "method_spec_list":
                stack.extend(reversed(node.named_children))
        return out

    # ------------------------------------------------------------------
    # var / const
    # ------------------------------------------------------------------

    def _value_declaration(self, node, source: SourceText) -> list[Symbol]:
        kind = SymbolKind.CONSTANT if node.type == "const_declaration" else SymbolKind.VARIABLE
        spec_type = "const_spec" if kind == SymbolKind.CONSTANT else "var_spec"
        specs: list = []
        stack = list(reversed(node.named_children))
        while stack:
            current = stack.pop()
            if current.type == spec_type:
                specs.append(current)
            else:
                stack.extend(reversed(current.named_children))

        grouped = len(specs) != 1 or self._is_grouped(node)
        out: list[Symbol] = []
        for spec in specs:
            name_nodes = spec.children_by_field_name("name")
            names = [source.node_text(n) for n in name_nodes]
            if len(names) > 1 and spec.child_by_field_name("value") is None:
                # "var a, b int": each name spans only itself
                for name_node, name in zip(name_nodes, names):
                    out.append(self._make_symbol(name_node, source, name, kind, in_list=True))
                continue
            for name in names:
                out.append(self._make_symbol(
                    spec if grouped else node, source, name, kind,
                    siblings=tuple(other for other in names if other != name),
                ))
        return out

    @staticmethod
    def _is_grouped(node) -> bool:
        """True for ``type (...)`` / ``var (...)`` blocks."""
        for child in node.children:
            if child.type == "(":
                return True
            if child.type.endswith("_spec_list"):
                return True
        return False
