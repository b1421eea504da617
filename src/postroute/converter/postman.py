from __future__ import annotations

import json
import re
from typing import Any, Iterable

from postroute.domain.models import RouteRecord

SCHEMA_URL = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"

DEFAULT_COLLECTION_NAME = "Express API Collection"
DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_DESCRIPTION = "Generated from Express.js routes"

_BODY_METHODS = ("POST", "PUT", "PATCH", "DELETE")
_NAME_SEPARATORS = re.compile(r"[_-]")


class PostmanConverter:
    """
    RouteRecord list -> Postman Collection v2.1 dict.

    Stateless; folder and request order follow the order routes come in.
    """

    def __init__(
        self,
        name: str = DEFAULT_COLLECTION_NAME,
        base_url: str = DEFAULT_BASE_URL,
        description: str = DEFAULT_DESCRIPTION,
    ) -> None:
        self.name = name
        self.base_url = base_url
        self.description = description

    def convert(self, routes: Iterable[RouteRecord]) -> dict[str, Any]:
        return {
            "info": {
                "name": self.name,
                "description": self.description,
                "schema": SCHEMA_URL,
            },
            "item": self.group_by_path(routes),
            "variable": [
                {"key": "baseUrl", "value": self.base_url, "type": "string"},
            ],
        }

    def group_by_path(self, routes: Iterable[RouteRecord]) -> list[dict[str, Any]]:
        # one folder per first path segment, "root" for "/"
        groups: dict[str, list[dict[str, Any]]] = {}
        for route in routes:
            segments = [s for s in route.path.split("/") if s]
            group = segments[0] if segments else "root"
            groups.setdefault(group, []).append(self.convert_route(route))

        return [
            {"name": group[:1].upper() + group[1:], "item": items}
            for group, items in groups.items()
        ]

    def convert_route(self, route: RouteRecord) -> dict[str, Any]:
        request: dict[str, Any] = {
            "method": route.method,
            "header": build_headers(route),
            "url": build_url(route),
            "description": route.description or f"{route.method} {route.path}",
        }
        if _has_body(route):
            request["body"] = build_body(route)

        return {"name": request_name(route), "request": request}


def _has_body(route: RouteRecord) -> bool:
    return route.method in _BODY_METHODS and route.body_kind is not None


def request_name(route: RouteRecord) -> str:
    # GET /users/:id/avatar -> "GET users avatar"
    words = [s for s in route.path.split("/") if s and not s.startswith(":")]
    name = _NAME_SEPARATORS.sub(" ", " ".join(words))
    return f"{route.method} {name or route.path}"


def build_url(route: RouteRecord) -> dict[str, Any]:
    url: dict[str, Any] = {
        "raw": "{{baseUrl}}" + route.path,
        "host": ["{{baseUrl}}"],
        "path": [s for s in route.path.split("/") if s],
    }

    if route.query_params:
        url["query"] = [
            {"key": p.key, "value": "", "description": p.description, "disabled": False}
            for p in route.query_params
        ]

    if route.path_params:
        url["variable"] = [
            {"key": p.key, "value": p.value, "description": p.description}
            for p in route.path_params
        ]

    return url


def build_headers(route: RouteRecord) -> list[dict[str, str]]:
    headers: list[dict[str, str]] = []

    # Postman sets the multipart content type itself for formdata bodies
    if _has_body(route) and route.body_kind == "json":
        headers.append({"key": "Content-Type", "value": "application/json"})

    for h in route.headers:
        entry = {"key": h.key, "value": h.value}
        if h.description:
            entry["description"] = h.description
        headers.append(entry)

    return headers


def build_body(route: RouteRecord) -> dict[str, Any]:
    if route.body_kind == "formdata":
        return {
            "mode": "formdata",
            "formdata": [
                {"key": p.key, "value": "", "type": p.kind, "description": p.description}
                for p in route.body_params
            ],
        }

    raw = {p.key: "" for p in route.body_params}
    return {
        "mode": "raw",
        "raw": json.dumps(raw, indent=2),
        "options": {"raw": {"language": "json"}},
    }
