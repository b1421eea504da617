from pathlib import Path
import json
import textwrap

from postroute.config import GeneratorConfig
from postroute.orchestrator.pipeline import extract_project_routes, run_generate


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def make_project(root: Path) -> None:
    write(
        root / "app.js",
        """
        const express = require('express');
        const app = express();

        app.get('/health', (req, res) => res.json({ ok: true }));
        """,
    )
    write(
        root / "routes" / "users.js",
        """
        const router = require('express').Router();
        const { createUser } = require('../controllers/userController');

        router.get('/', (req, res) => {
          const { page, limit } = req.query;
        });
        router.post('/', createUser);

        module.exports = router;
        """,
    )
    write(
        root / "controllers" / "userController.js",
        """
        exports.createUser = (req, res) => {
          const { name, email } = req.body;
          res.status(201).json({ name, email });
        };
        """,
    )
    # excluded by default patterns
    write(root / "node_modules" / "express" / "index.js", "app.get('/nope', () => {});\n")
    write(root / "tests" / "users.test.js", "app.get('/nope', () => {});\n")


def test_run_generate_writes_collection(tmp_path: Path):
    make_project(tmp_path)
    cfg = GeneratorConfig(project_path=str(tmp_path), collection_name="My Shop API")

    result = run_generate(cfg)

    assert result.files_scanned == 3
    assert result.skipped_files == []
    assert sorted((r.method, r.path) for r in result.routes) == [
        ("GET", "/health"),
        ("GET", "/users"),
        ("POST", "/users"),
    ]

    out = Path(result.output_path)
    assert out == tmp_path.resolve() / "my-shop-api.postman_collection.json"
    collection = json.loads(out.read_text(encoding="utf-8"))
    assert collection["info"]["name"] == "My Shop API"

    folders = {f["name"]: f["item"] for f in collection["item"]}
    assert set(folders) == {"Health", "Users"}
    post = next(i for i in folders["Users"] if i["request"]["method"] == "POST")
    assert json.loads(post["request"]["body"]["raw"]) == {"name": "", "email": ""}


def test_run_generate_without_routes_writes_nothing(tmp_path: Path):
    write(tmp_path / "util.js", "module.exports = (a, b) => a + b;\n")
    cfg = GeneratorConfig(project_path=str(tmp_path))

    result = run_generate(cfg)

    assert result.routes == []
    assert result.output_path is None
    assert list(tmp_path.glob("*.postman_collection.json")) == []


def test_unparsable_files_are_reported_not_fatal(tmp_path: Path):
    make_project(tmp_path)
    write(tmp_path / "broken.js", "app.get('/x', (req, res) => {\n")
    cfg = GeneratorConfig(project_path=str(tmp_path), output_path="out/c.json")

    result = run_generate(cfg)

    assert [Path(s.path).name for s in result.skipped_files] == ["broken.js"]
    assert len(result.routes) == 3
    assert result.output_path == str(tmp_path.resolve() / "out" / "c.json")


def test_extract_project_routes_honours_patterns(tmp_path: Path):
    make_project(tmp_path)
    cfg = GeneratorConfig(project_path=str(tmp_path), include_patterns=["routes/*.js"])

    files, extractor = extract_project_routes(cfg)

    assert [Path(f).name for f in files] == ["users.js"]
    assert [r.path for r in extractor.routes] == ["/users", "/users"]
