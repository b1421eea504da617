from __future__ import annotations

import re
from pathlib import PurePath

from postroute.domain.models import ParamDescriptor

_PARAM_COLON = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")
_MULTI_SLASH = re.compile(r"/{2,}")


def normalize_path(base_path: str, route_path: str) -> str:
    """
    Join a mount base path and a route-local path with exactly one slash.

      normalize_path("/orders", "/")       -> "/orders"
      normalize_path("/api/", "users/:id") -> "/api/users/:id"
      normalize_path("", "")               -> "/"
    """
    base = (base_path or "").strip().rstrip("/")
    route = (route_path or "").strip()
    if not route.startswith("/"):
        route = "/" + route

    p = _MULTI_SLASH.sub("/", base + route)
    if not p.startswith("/"):
        p = "/" + p

    # "/orders/" and "/orders" are the same route for Express (non-strict routing)
    if p != "/" and p.endswith("/"):
        p = p[:-1]
    return p


def extract_path_params(path: str) -> list[ParamDescriptor]:
    params: list[ParamDescriptor] = []
    seen: set[str] = set()
    for m in _PARAM_COLON.finditer(path):
        key = m.group(1)
        if key in seen:
            continue
        seen.add(key)
        params.append(ParamDescriptor(key=key))
    return params


_ROUTE_DIRS = ("routes", "api")


def infer_base_path(file_path: str) -> str:
    """
    Base path implied by where a route module lives: routes/users.js -> /users.

    Only files directly inside a `routes` or `api` directory contribute; an
    index module contributes nothing.
    """
    p = PurePath(file_path)
    if p.parent.name not in _ROUTE_DIRS:
        return ""
    stem = p.name.split(".", 1)[0]
    if not stem or stem == "index":
        return ""
    return f"/{stem}"
