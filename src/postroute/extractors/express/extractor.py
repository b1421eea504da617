from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterable, Optional

from tree_sitter import Node

from postroute.domain.models import ImportBinding, RouteRecord
from postroute.extractors.express.fields import (
    DEFAULT_REQUEST_NAMES,
    FieldUsageAnalyzer,
    RouteDraft,
)
from postroute.extractors.express.handlers import HandlerResolver
from postroute.extractors.express.imports import SourceReader, extract_imports
from postroute.extractors.express.paths import (
    extract_path_params,
    infer_base_path,
    normalize_path,
)
from postroute.extractors.express.syntax import (
    SourceParseError,
    call_arguments,
    identifier_name,
    member_parts,
    node_text,
    parse_source,
    string_value,
    unwrap_expression,
    walk,
)

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class SkippedFile:
    path: str
    reason: str


class RouteExtractor:
    """
    Find Express route registrations and describe each one as a RouteRecord.

    Recognizes `<obj>.<method>('/path', ...handlers)` for the seven HTTP
    methods and `<obj>.use('/prefix', ...)` mounts. A mount replaces the base
    path for every call visited after it in the same file, regardless of
    nesting. That is an approximation of Express's hierarchical mounting, not
    its real semantics.

    Routes accumulate across files in `routes` (in extraction order, never
    deduplicated) until clear() is called.
    """

    def __init__(
        self,
        reader: Optional[SourceReader] = None,
        request_names: Iterable[str] = DEFAULT_REQUEST_NAMES,
    ) -> None:
        self.reader = reader or SourceReader()
        self.resolver = HandlerResolver(self.reader)
        self.fields = FieldUsageAnalyzer(request_names)
        self.routes: list[RouteRecord] = []
        self.skipped: list[SkippedFile] = []
        self._imports: dict[str, dict[str, ImportBinding]] = {}

    def clear(self) -> None:
        self.routes = []
        self.skipped = []
        self._imports.clear()
        self.resolver.clear()

    def imports_for(self, path: str) -> dict[str, ImportBinding]:
        return dict(self._imports.get(os.path.abspath(path), {}))

    def extract_file(self, path: str, base_path: Optional[str] = None) -> list[RouteRecord]:
        path = os.path.abspath(path)
        try:
            source = self.reader.read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            self._skip(path, e)
            return []
        return self.extract_source(path, source, base_path)

    def extract_source(
        self,
        path: str,
        source: str,
        base_path: Optional[str] = None,
    ) -> list[RouteRecord]:
        """
        Extract routes from one file's source text.

        base_path=None infers the mount prefix from the file location
        (routes/users.js -> /users); pass "" to start without one.
        """
        path = os.path.abspath(path)
        try:
            tree = parse_source(source, path)
        except SourceParseError as e:
            self._skip(path, e)
            return []

        self.resolver.remember_tree(path, tree)
        imports = extract_imports(tree)
        self._imports[path] = imports

        current_base = infer_base_path(path) if base_path is None else base_path
        found: list[RouteRecord] = []

        for node in walk(tree.root_node):
            if node.type == "call_expression":
                current_base = self._visit_call(node, path, imports, current_base, found)

        self.routes.extend(found)
        return found

    def _skip(self, path: str, error: Exception) -> None:
        logger.warning("Could not parse %s: %s", path, error)
        self.skipped.append(SkippedFile(path=path, reason=str(error)))

    def _visit_call(
        self,
        call: Node,
        path: str,
        imports: dict[str, ImportBinding],
        base_path: str,
        found: list[RouteRecord],
    ) -> str:
        """Handle one call expression; returns the base path for the calls after it."""
        callee = call.child_by_field_name("function")
        if callee is None or callee.type != "member_expression":
            return base_path

        prop = identifier_name(callee.child_by_field_name("property"))
        if prop is None:
            return base_path

        args = call_arguments(call)

        if prop == "use":
            mount = string_value(args[0]) if args else None
            if mount is not None and mount.startswith("/"):
                return mount
            return base_path

        method = prop.upper()
        if method in HTTP_METHODS and args:
            route = self._build_route(call, method, args, path, imports, base_path)
            if route is not None:
                found.append(route)

        return base_path

    def _build_route(
        self,
        call: Node,
        method: str,
        args: list[Node],
        path: str,
        imports: dict[str, ImportBinding],
        base_path: str,
    ) -> Optional[RouteRecord]:
        route_path = string_value(args[0])
        if route_path is None:
            # app.get(prefix + '/x') and friends: dynamic, skipped
            return None

        full_path = normalize_path(base_path, route_path)
        draft = RouteDraft(
            method=method,
            path=full_path,
            source_file=path,
            line=call.start_point[0] + 1,
            description=leading_doc_comment(call),
            path_params=extract_path_params(full_path),
        )

        for arg in args[1:]:
            arg = unwrap_expression(arg)
            if arg is None:
                continue
            if arg.type == "call_expression":
                self.fields.analyze_middleware(arg, draft)
                continue

            ref = handler_ref(arg)
            if ref is not None:
                draft.handler_refs.append(ref)

            func = self.resolver.resolve(arg, path, imports)
            if func is not None:
                self.fields.analyze(func, draft)

        if method in BODY_METHODS and draft.body_kind is None and draft.body_params:
            draft.body_kind = "json"

        return draft.freeze()


def handler_ref(node: Node) -> Optional[str]:
    """Symbolic name of a handler argument: `login` or `authController.login`."""
    if node.type == "identifier":
        return node_text(node)
    if node.type == "member_expression":
        parts = member_parts(node)
        if parts is not None and parts[0].type == "identifier":
            return f"{node_text(parts[0])}.{parts[1]}"
    return None


def leading_doc_comment(call: Node) -> str:
    """
    Text of the comment block directly above a statement-level call:

        /**
         * User login
         */
        router.post('/login', loginHandler);   -> "User login"
    """
    stmt = call.parent
    if stmt is None or stmt.type != "expression_statement":
        return ""

    comment = stmt.prev_named_sibling
    if comment is None or comment.type != "comment":
        return ""
    if comment.end_point[0] < stmt.start_point[0] - 1:
        return ""

    # a trailing comment of the previous statement is not documentation
    before = comment.prev_sibling
    if before is not None and before.end_point[0] == comment.start_point[0]:
        return ""

    return _comment_body(node_text(comment))


def _comment_body(text: str) -> str:
    text = text.strip()
    if text.startswith("//"):
        text = text[2:]
    else:
        if text.startswith("/*"):
            text = text[2:]
        if text.endswith("*/"):
            text = text[:-2]

    lines = []
    for line in text.splitlines():
        line = line.strip().lstrip("*").strip()
        if line:
            lines.append(line)
    return " ".join(lines)
