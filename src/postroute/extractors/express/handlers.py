from __future__ import annotations

import logging
from typing import Callable, Optional

from tree_sitter import Node, Tree

from postroute.domain.models import ImportBinding
from postroute.extractors.express.imports import SourceReader, resolve_module_path
from postroute.extractors.express.syntax import (
    FUNCTION_LITERAL_TYPES,
    SourceParseError,
    identifier_name,
    member_parts,
    node_text,
    parse_source,
    property_key,
    unwrap_expression,
    walk,
)

logger = logging.getLogger(__name__)

_MISSING = object()

Finder = Callable[[Tree], Optional[Node]]


class HandlerResolver:
    """
    Resolve a route handler argument to the function node we can analyze.

    Lookups are memoized per (file, symbol) / (file, object, method); a miss is
    cached as None. Parsed modules are memoized per absolute path. Both caches
    are filled lazily and never invalidated: files are assumed not to change
    during a run. Not safe for concurrent use.
    """

    def __init__(self, reader: Optional[SourceReader] = None) -> None:
        self.reader = reader or SourceReader()
        self._trees: dict[str, Optional[Tree]] = {}
        self._functions: dict[tuple[str, ...], Optional[Node]] = {}

    def clear(self) -> None:
        self._trees.clear()
        self._functions.clear()

    def remember_tree(self, path: str, tree: Tree) -> None:
        """Register an already-parsed file so local lookups need not re-read it."""
        self._trees[path] = tree

    def resolve(
        self,
        node: Optional[Node],
        current_file: str,
        imports: dict[str, ImportBinding],
    ) -> Optional[Node]:
        node = unwrap_expression(node)
        if node is None:
            return None

        if node.type in FUNCTION_LITERAL_TYPES:
            return node

        if node.type == "identifier":
            return self.resolve_identifier(node_text(node), current_file, imports)

        if node.type == "member_expression":
            parts = member_parts(node)
            if parts is None or parts[0].type != "identifier":
                return None
            return self.resolve_member(node_text(parts[0]), parts[1], current_file, imports)

        return None

    def resolve_identifier(
        self,
        name: str,
        current_file: str,
        imports: dict[str, ImportBinding],
    ) -> Optional[Node]:
        binding = imports.get(name)
        if binding is None:
            # declared in the route file itself
            return self._lookup((current_file, name), lambda tree: find_function(tree, name))

        target = resolve_module_path(binding.origin_module, current_file, self.reader)
        if target is None:
            logger.debug("Unresolved module %r for handler %s in %s", binding.origin_module, name, current_file)
            return None

        if binding.exported_name == "default":
            return self._lookup((target, "default"), find_default_export)

        exported = binding.exported_name
        return self._lookup((target, exported), lambda tree: find_function(tree, exported))

    def resolve_member(
        self,
        obj: str,
        method: str,
        current_file: str,
        imports: dict[str, ImportBinding],
    ) -> Optional[Node]:
        binding = imports.get(obj)
        if binding is None:
            target: Optional[str] = current_file
        else:
            target = resolve_module_path(binding.origin_module, current_file, self.reader)
        if target is None:
            logger.debug("Unresolved module %r for handler %s.%s in %s", binding.origin_module, obj, method, current_file)
            return None

        return self._lookup(
            (target, obj, method),
            lambda tree: find_function(tree, method, object_props=True),
        )

    def _lookup(self, key: tuple[str, ...], finder: Finder) -> Optional[Node]:
        cached = self._functions.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        tree = self._tree_for(key[0])
        found = finder(tree) if tree is not None else None
        if found is None:
            logger.debug("No handler %s in %s", ".".join(key[1:]), key[0])
        self._functions[key] = found
        return found

    def _tree_for(self, path: str) -> Optional[Tree]:
        if path in self._trees:
            return self._trees[path]

        tree: Optional[Tree]
        try:
            tree = parse_source(self.reader.read_text(path), path)
        except (OSError, UnicodeDecodeError, SourceParseError) as e:
            logger.warning("Could not parse handler module %s: %s", path, e)
            tree = None

        self._trees[path] = tree
        return tree


def _is_function_literal(node: Optional[Node]) -> bool:
    return node is not None and node.type in FUNCTION_LITERAL_TYPES


def find_function(tree: Tree, name: str, object_props: bool = False) -> Optional[Node]:
    """
    First function named `name` in document order. Matches:

      function name(req, res) {}
      const name = (req, res) => {}
      exports.name = function (req, res) {}

    and with object_props also `{ name: (req, res) => {} }` / `{ name(req, res) {} }`.
    A property whose value is another identifier (`{ name: other }`) is an
    alias and is not followed.
    """
    for node in walk(tree.root_node):
        t = node.type
        if t in ("function_declaration", "generator_function_declaration"):
            if identifier_name(node.child_by_field_name("name")) == name:
                return node
        elif t == "variable_declarator":
            if identifier_name(node.child_by_field_name("name")) != name:
                continue
            value = unwrap_expression(node.child_by_field_name("value"))
            if _is_function_literal(value):
                return value
        elif t == "assignment_expression":
            parts = member_parts(node.child_by_field_name("left"))
            if parts is None or parts[1] != name:
                continue
            right = unwrap_expression(node.child_by_field_name("right"))
            if _is_function_literal(right):
                return right
        elif object_props and t == "pair":
            if property_key(node.child_by_field_name("key")) != name:
                continue
            value = unwrap_expression(node.child_by_field_name("value"))
            if _is_function_literal(value):
                return value
        elif object_props and t == "method_definition":
            if property_key(node.child_by_field_name("name")) == name:
                return node
    return None


def find_default_export(tree: Tree) -> Optional[Node]:
    """
    The function a default-style binding refers to:

      module.exports = (req, res) => {}
      export default function (req, res) {}
      module.exports = handler / export default handler   (looked up by name)
    """
    for node in walk(tree.root_node):
        if node.type == "assignment_expression":
            if node_text(node.child_by_field_name("left")).replace(" ", "") != "module.exports":
                continue
            found = _exported_value(tree, node.child_by_field_name("right"))
            if found is not None:
                return found
        elif node.type == "export_statement":
            if not any(c.type == "default" for c in node.children):
                continue
            declaration = node.child_by_field_name("declaration")
            if declaration is not None and declaration.type in (
                "function_declaration",
                "generator_function_declaration",
            ):
                return declaration
            found = _exported_value(tree, node.child_by_field_name("value"))
            if found is not None:
                return found
    return None


def _exported_value(tree: Tree, value: Optional[Node]) -> Optional[Node]:
    value = unwrap_expression(value)
    if _is_function_literal(value):
        return value
    name = identifier_name(value)
    if name is not None:
        return find_function(tree, name)
    return None
