import pytest

from postroute.extractors.express.paths import (
    extract_path_params,
    infer_base_path,
    normalize_path,
)


@pytest.mark.parametrize(
    "base, route, expected",
    [
        ("", "/users", "/users"),
        ("", "users", "/users"),
        ("", "", "/"),
        ("", "/", "/"),
        ("/api", "/users", "/api/users"),
        ("/api/", "/users", "/api/users"),
        ("/api/", "users", "/api/users"),
        ("/api//", "//users", "/api/users"),
        ("/orders", "/", "/orders"),
        ("/", "/", "/"),
        ("api", "/x", "/api/x"),
    ],
)
def test_normalize_path_joins_with_single_slash(base, route, expected):
    assert normalize_path(base, route) == expected


def test_normalize_path_never_doubles_slashes():
    for base in ("", "/", "/a", "/a/", "/a//"):
        for route in ("", "/", "b", "/b", "//b/", "b/:id"):
            p = normalize_path(base, route)
            assert p.startswith("/")
            assert "//" not in p


def test_normalize_path_keeps_param_segments_verbatim():
    assert normalize_path("/shops/:shopId", "/items/:itemId") == "/shops/:shopId/items/:itemId"


def test_extract_path_params_single():
    params = extract_path_params("/api/users/:id")
    assert [p.key for p in params] == ["id"]
    assert params[0].value == ""
    assert params[0].description == ""


def test_extract_path_params_left_to_right_and_unique():
    assert [p.key for p in extract_path_params("/a/:x/b/:y")] == ["x", "y"]
    assert [p.key for p in extract_path_params("/a/:x/b/:x")] == ["x"]
    assert extract_path_params("/plain/path") == []


def test_infer_base_path_from_routes_directory():
    assert infer_base_path("/proj/routes/users.js") == "/users"
    assert infer_base_path("/proj/src/api/orders.ts") == "/orders"
    assert infer_base_path("/proj/routes/index.js") == ""
    assert infer_base_path("/proj/controllers/users.js") == ""
    assert infer_base_path("app.js") == ""
