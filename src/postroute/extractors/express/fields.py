from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from tree_sitter import Node

from postroute.domain.models import (
    FieldDescriptor,
    HeaderDescriptor,
    ParamDescriptor,
    RouteRecord,
)
from postroute.extractors.express.imports import pattern_bindings
from postroute.extractors.express.syntax import (
    call_arguments,
    identifier_name,
    member_parts,
    property_key,
    string_value,
    unwrap_expression,
    walk,
)

DEFAULT_REQUEST_NAMES = ("req",)
FILE_FIELD_DESCRIPTION = "File upload field"

_UPLOAD_PROPS = ("file", "files")
_HEADER_GETTERS = ("get", "header")


@dataclass
class RouteDraft:
    """
    Mutable route under construction. Field lists keep the first discovery of
    each key; later discoveries of the same key are no-ops.
    """

    method: str
    path: str
    source_file: str
    line: int = 0
    description: str = ""
    path_params: list[ParamDescriptor] = field(default_factory=list)
    query_params: list[FieldDescriptor] = field(default_factory=list)
    body_params: list[FieldDescriptor] = field(default_factory=list)
    headers: list[HeaderDescriptor] = field(default_factory=list)
    body_kind: Optional[str] = None
    handler_refs: list[str] = field(default_factory=list)

    def add_query(self, key: str) -> None:
        if any(p.key == key for p in self.query_params):
            return
        self.query_params.append(FieldDescriptor(key=key, kind="text"))

    def add_body(self, key: str, kind: str = "text") -> None:
        if any(p.key == key for p in self.body_params):
            return
        description = FILE_FIELD_DESCRIPTION if kind == "file" else ""
        self.body_params.append(FieldDescriptor(key=key, kind=kind, description=description))

    def add_header(self, key: str) -> None:
        lowered = key.lower()
        if any(h.key.lower() == lowered for h in self.headers):
            return
        self.headers.append(HeaderDescriptor(key=key))

    def mark_json(self) -> None:
        if self.body_kind != "formdata":
            self.body_kind = "json"

    def mark_formdata(self) -> None:
        self.body_kind = "formdata"

    def freeze(self) -> RouteRecord:
        return RouteRecord(
            method=self.method,
            path=self.path,
            source_file=self.source_file,
            line=self.line,
            description=self.description,
            path_params=tuple(self.path_params),
            query_params=tuple(self.query_params),
            body_params=tuple(self.body_params),
            body_kind=self.body_kind,
            headers=tuple(self.headers),
            handler_refs=tuple(self.handler_refs),
        )


class FieldUsageAnalyzer:
    """
    Infer request inputs from how a handler body touches the request object.

    Purely syntactic: only the conventional request parameter names count, and
    nothing is traced past the handler body (values handed to helpers, stored
    in outer variables or rebuilt into object literals are lost).
    """

    def __init__(self, request_names: Iterable[str] = DEFAULT_REQUEST_NAMES) -> None:
        self.request_names = frozenset(request_names)

    def analyze(self, func: Node, draft: RouteDraft) -> None:
        body = func.child_by_field_name("body")
        if body is None:
            return

        for node in walk(body):
            if node.type == "variable_declarator":
                self._check_binding(
                    node.child_by_field_name("name"),
                    unwrap_expression(node.child_by_field_name("value")),
                    draft,
                )
            elif node.type == "assignment_expression":
                left = node.child_by_field_name("left")
                if left is not None and left.type == "object_pattern":
                    self._check_binding(
                        left,
                        unwrap_expression(node.child_by_field_name("right")),
                        draft,
                    )
            elif node.type in ("member_expression", "subscript_expression"):
                self._check_member(node, draft)
            elif node.type == "call_expression":
                self._check_header_call(node, draft)

    def analyze_middleware(self, call: Node, draft: RouteDraft) -> None:
        """
        Upload middleware passed inline to a route, e.g. multer's
        upload.single('avatar'), upload.array('photos'), upload.fields([...]).
        """
        parts = member_parts(call.child_by_field_name("function"))
        if parts is None:
            return
        _, method = parts
        args = call_arguments(call)

        if method in ("single", "array"):
            name = string_value(args[0]) if args else None
            if name is None:
                return
            draft.mark_formdata()
            draft.add_body(name, "file")
        elif method == "fields":
            if not args or args[0].type != "array":
                return
            names = [n for n in (_field_spec_name(e) for e in args[0].named_children) if n]
            if not names:
                return
            draft.mark_formdata()
            for name in names:
                draft.add_body(name, "file")

    # --- patterns -----------------------------------------------------------

    def _is_request(self, node: Optional[Node]) -> bool:
        node = unwrap_expression(node)
        return node is not None and node.type == "identifier" and identifier_name(node) in self.request_names

    def _request_prop(self, node: Optional[Node]) -> Optional[str]:
        """`req.body` -> "body"; anything else -> None."""
        parts = member_parts(unwrap_expression(node))
        if parts is None or not self._is_request(parts[0]):
            return None
        return parts[1]

    def _check_binding(self, target: Optional[Node], value: Optional[Node], draft: RouteDraft) -> None:
        if target is None or value is None:
            return

        if target.type == "identifier":
            # const file = req.file
            if self._request_prop(value) in _UPLOAD_PROPS:
                draft.mark_formdata()
                draft.add_body(identifier_name(target) or "file", "file")
            return

        if target.type != "object_pattern":
            return

        bindings = pattern_bindings(target)

        # const { file } = req
        if self._is_request(value):
            for key, local in bindings:
                if key in _UPLOAD_PROPS:
                    draft.mark_formdata()
                    draft.add_body(local, "file")
            return

        source = self._request_prop(value)
        if source == "query":
            for key, _ in bindings:
                draft.add_query(key)
        elif source == "body":
            for key, _ in bindings:
                draft.add_body(key)
            draft.mark_json()
        elif source == "files":
            draft.mark_formdata()
            for key, _ in bindings:
                draft.add_body(key, "file")
        elif source == "headers":
            for key, _ in bindings:
                draft.add_header(key)

    def _check_member(self, node: Node, draft: RouteDraft) -> None:
        parts = member_parts(node)
        if parts is None:
            return
        obj, prop = parts

        if self._is_request(obj):
            if prop in _UPLOAD_PROPS:
                draft.mark_formdata()
            return

        source = self._request_prop(obj)
        if source is None:
            return

        # req.query.toString() reads no field
        parent = node.parent
        if parent is not None and parent.type == "call_expression" and parent.child_by_field_name("function") == node:
            return

        if source == "body":
            draft.add_body(prop)
            draft.mark_json()
        elif source == "query":
            draft.add_query(prop)
        elif source == "files":
            draft.mark_formdata()
            draft.add_body(prop, "file")
        elif source == "headers":
            draft.add_header(prop)

    def _check_header_call(self, call: Node, draft: RouteDraft) -> None:
        # req.get('Authorization') / req.header('X-Api-Key')
        parts = member_parts(call.child_by_field_name("function"))
        if parts is None or parts[1] not in _HEADER_GETTERS or not self._is_request(parts[0]):
            return
        args = call_arguments(call)
        name = string_value(args[0]) if args else None
        if name:
            draft.add_header(name)


def _field_spec_name(node: Node) -> Optional[str]:
    # { name: 'avatar', maxCount: 1 }
    if node.type != "object":
        return None
    for pair in node.named_children:
        if pair.type != "pair":
            continue
        if property_key(pair.child_by_field_name("key")) == "name":
            return string_value(pair.child_by_field_name("value"))
    return None
