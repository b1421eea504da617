from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Iterator, Optional

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

# tree-sitter-javascript renamed "function" to "function_expression"; accept both.
FUNCTION_TYPES = frozenset(
    {
        "function",
        "function_expression",
        "arrow_function",
        "function_declaration",
        "generator_function",
        "generator_function_declaration",
        "method_definition",
    }
)

FUNCTION_LITERAL_TYPES = frozenset(
    {"function", "function_expression", "arrow_function", "generator_function"}
)


class SourceParseError(Exception):
    """Source text did not produce an error-free syntax tree."""

    def __init__(self, path: str, line: int) -> None:
        super().__init__(f"syntax error near line {line}")
        self.path = path
        self.line = line


@lru_cache(maxsize=None)
def _parser_for(grammar: str) -> Parser:
    if grammar == "typescript":
        language = Language(tree_sitter_typescript.language_typescript())
    elif grammar == "tsx":
        language = Language(tree_sitter_typescript.language_tsx())
    else:
        language = Language(tree_sitter_javascript.language())
    return Parser(language)


def grammar_for_path(path: str) -> str:
    suffix = Path(path).suffix.lower()
    if suffix in (".ts", ".mts", ".cts"):
        return "typescript"
    if suffix == ".tsx":
        return "tsx"
    # .js, .jsx, .mjs, .cjs and anything without an extension
    return "javascript"


def parse_source(source: str, path: str = "") -> Tree:
    """
    Parse JS/TS source text into a tree-sitter tree.

    tree-sitter always returns a tree, recovering around bad input with ERROR
    nodes. We treat any such recovery as an unparsable file.
    """
    tree = _parser_for(grammar_for_path(path)).parse(source.encode("utf-8"))
    if tree.root_node.has_error:
        raise SourceParseError(path, _first_error_line(tree.root_node))
    return tree


def _first_error_line(root: Node) -> int:
    for node in walk(root):
        if node.is_error or node.is_missing:
            return node.start_point[0] + 1
    return root.start_point[0] + 1


def walk(root: Node) -> Iterator[Node]:
    """Pre-order (document order) traversal of every descendant, root included."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def node_text(node: Optional[Node]) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def string_value(node: Optional[Node]) -> Optional[str]:
    # Only plain string literals count. Template strings may carry substitutions
    # and are treated as dynamic.
    if node is None or node.type != "string":
        return None
    text = node_text(node)
    if len(text) < 2:
        return None
    return text[1:-1]


def identifier_name(node: Optional[Node]) -> Optional[str]:
    if node is None:
        return None
    if node.type in (
        "identifier",
        "property_identifier",
        "shorthand_property_identifier",
        "shorthand_property_identifier_pattern",
    ):
        return node_text(node)
    return None


def property_key(node: Optional[Node]) -> Optional[str]:
    """Name of an object key: `a`, `'a'` or `"a"`; computed keys give None."""
    if node is None:
        return None
    name = identifier_name(node)
    if name is not None:
        return name
    return string_value(node)


def member_parts(node: Optional[Node]) -> Optional[tuple[Node, str]]:
    """
    Split `obj.prop` / `obj['prop']` into (object node, property name).

    Returns None for other nodes and for computed subscripts.
    """
    if node is None:
        return None
    if node.type == "member_expression":
        obj = node.child_by_field_name("object")
        prop = identifier_name(node.child_by_field_name("property"))
        if obj is None or prop is None:
            return None
        return obj, prop
    if node.type == "subscript_expression":
        obj = node.child_by_field_name("object")
        prop = string_value(node.child_by_field_name("index"))
        if obj is None or prop is None:
            return None
        return obj, prop
    return None


def call_arguments(call: Node) -> list[Node]:
    args = call.child_by_field_name("arguments")
    if args is None:
        return []
    return [a for a in args.named_children if a.type != "comment"]


_WRAPPER_TYPES = frozenset(
    {
        "parenthesized_expression",
        # TypeScript: `req.body as Payload`, `req.file!`, `x satisfies T`
        "as_expression",
        "non_null_expression",
        "satisfies_expression",
    }
)


def unwrap_expression(node: Optional[Node]) -> Optional[Node]:
    """Strip parentheses and TS type wrappers around an expression."""
    while node is not None and node.type in _WRAPPER_TYPES:
        inner = [c for c in node.named_children if c.type != "comment"]
        node = inner[0] if inner else None
    return node
