from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from tree_sitter import Node, Tree

from postroute.domain.models import ImportBinding
from postroute.extractors.express.syntax import (
    call_arguments,
    identifier_name,
    node_text,
    property_key,
    string_value,
    walk,
)

IMPLICIT_EXTENSION = ".js"


class SourceReader:
    """File-system access used while resolving modules. Swap out in tests if needed."""

    def exists(self, path: str) -> bool:
        return Path(path).is_file()

    def read_text(self, path: str) -> str:
        return Path(path).read_text(encoding="utf-8")


def extract_imports(tree: Tree) -> dict[str, ImportBinding]:
    """
    Map every name bound by require()/import in the tree to where it came from.

    Recognized:
      const { a, b: c } = require('./x')   -> destructured
      const x = require('./x')              -> default
      import x from './x'                   -> default
      import { a, b as c } from './x'       -> named
    Everything else (namespace imports, dynamic import(), re-exports) is ignored.
    """
    imports: dict[str, ImportBinding] = {}

    for node in walk(tree.root_node):
        if node.type == "variable_declarator":
            for binding in _require_bindings(node):
                imports[binding.local_name] = binding
        elif node.type == "import_statement":
            for binding in _import_bindings(node):
                imports[binding.local_name] = binding

    return imports


def _require_source(value: Optional[Node]) -> Optional[str]:
    if value is None or value.type != "call_expression":
        return None
    if node_text(value.child_by_field_name("function")) != "require":
        return None
    args = call_arguments(value)
    if not args:
        return None
    return string_value(args[0])


def _require_bindings(declarator: Node) -> list[ImportBinding]:
    source = _require_source(declarator.child_by_field_name("value"))
    if source is None:
        return []

    target = declarator.child_by_field_name("name")
    if target is None:
        return []

    if target.type == "identifier":
        return [
            ImportBinding(
                local_name=node_text(target),
                origin_module=source,
                exported_name="default",
                style="default",
            )
        ]

    if target.type != "object_pattern":
        return []

    out: list[ImportBinding] = []
    for exported, local in pattern_bindings(target):
        out.append(
            ImportBinding(
                local_name=local,
                origin_module=source,
                exported_name=exported,
                style="destructured",
            )
        )
    return out


def pattern_bindings(pattern: Node) -> list[tuple[str, str]]:
    """
    (property key, bound local name) pairs of an object destructuring pattern.

    `{ a, b: c, d = 1 }` -> [("a", "a"), ("b", "c"), ("d", "d")]. Nested
    patterns bind no single local name and fall back to the key; rest elements
    are skipped.
    """
    out: list[tuple[str, str]] = []
    for prop in pattern.named_children:
        if prop.type == "shorthand_property_identifier_pattern":
            name = node_text(prop)
            out.append((name, name))
        elif prop.type == "object_assignment_pattern":
            name = identifier_name(prop.child_by_field_name("left"))
            if name is not None:
                out.append((name, name))
        elif prop.type == "pair_pattern":
            key = property_key(prop.child_by_field_name("key"))
            if key is None:
                continue
            value = prop.child_by_field_name("value")
            if value is not None and value.type == "assignment_pattern":
                value = value.child_by_field_name("left")
            local = identifier_name(value) or key
            out.append((key, local))
    return out


def _import_bindings(statement: Node) -> list[ImportBinding]:
    source = string_value(statement.child_by_field_name("source"))
    if source is None:
        return []

    out: list[ImportBinding] = []
    for clause in statement.named_children:
        if clause.type != "import_clause":
            continue
        for part in clause.named_children:
            if part.type == "identifier":
                out.append(
                    ImportBinding(
                        local_name=node_text(part),
                        origin_module=source,
                        exported_name="default",
                        style="default",
                    )
                )
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name_node = spec.child_by_field_name("name")
                    imported = identifier_name(name_node) or string_value(name_node)
                    if imported is None:
                        continue
                    alias = spec.child_by_field_name("alias")
                    local = identifier_name(alias) if alias is not None else imported
                    if local is None:
                        continue
                    out.append(
                        ImportBinding(
                            local_name=local,
                            origin_module=source,
                            exported_name=imported,
                            style="named",
                        )
                    )
    return out


def resolve_module_path(
    specifier: str,
    importing_file: str,
    reader: Optional[SourceReader] = None,
) -> Optional[str]:
    """
    Turn a relative require/import specifier into an existing file path.

    Package specifiers ("express", "@scope/pkg") are never resolved: we do not
    reach into node_modules. Tries the literal path, then the path + ".js".
    """
    if not specifier.startswith("."):
        return None

    reader = reader or SourceReader()
    base_dir = os.path.dirname(os.path.abspath(importing_file))
    candidate = os.path.normpath(os.path.join(base_dir, specifier))

    if reader.exists(candidate):
        return candidate

    if not candidate.endswith(IMPLICIT_EXTENSION):
        with_ext = candidate + IMPLICIT_EXTENSION
        if reader.exists(with_ext):
            return with_ext

    return None
