from pathlib import Path
import textwrap

from postroute.extractors.express.imports import extract_imports, resolve_module_path
from postroute.extractors.express.syntax import parse_source


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def imports_of(src: str, path: str = "routes.js"):
    return extract_imports(parse_source(textwrap.dedent(src), path))


def test_destructured_require_binds_each_name():
    imports = imports_of(
        """
        const { loginHandler, registerHandler: register } = require('../controller/authController');
        """
    )
    assert set(imports) == {"loginHandler", "register"}

    login = imports["loginHandler"]
    assert login.origin_module == "../controller/authController"
    assert login.exported_name == "loginHandler"
    assert login.style == "destructured"

    reg = imports["register"]
    assert reg.exported_name == "registerHandler"
    assert reg.local_name == "register"


def test_plain_require_is_default_style():
    imports = imports_of(
        """
        const express = require('express');
        const orderController = require('../controller/orderController');
        """
    )
    b = imports["orderController"]
    assert b.style == "default"
    assert b.exported_name == "default"
    assert b.origin_module == "../controller/orderController"
    assert imports["express"].origin_module == "express"


def test_es_imports_default_and_named():
    imports = imports_of(
        """
        import express from 'express';
        import { listItems, createItem as create } from './items';
        """,
        path="routes.mjs",
    )
    assert imports["express"].style == "default"
    assert imports["listItems"].style == "named"
    assert imports["listItems"].exported_name == "listItems"
    assert imports["create"].exported_name == "createItem"
    assert imports["create"].origin_module == "./items"


def test_other_binding_forms_are_ignored():
    imports = imports_of(
        """
        import * as everything from './all';
        const dyn = require(modulePath);
        const field = require('./cfg').field;
        let later;
        later = require('./later');
        """
    )
    assert imports == {}


def test_resolve_module_path_tries_literal_then_js(tmp_path: Path):
    write(tmp_path / "controller" / "auth.js", "module.exports = {};\n")
    write(tmp_path / "data.json", "{}\n")
    importing = str(tmp_path / "routes" / "auth.js")

    assert resolve_module_path("../controller/auth", importing) == str(tmp_path / "controller" / "auth.js")
    assert resolve_module_path("../controller/auth.js", importing) == str(tmp_path / "controller" / "auth.js")
    assert resolve_module_path("../data.json", importing) == str(tmp_path / "data.json")


def test_resolve_module_path_not_found(tmp_path: Path):
    importing = str(tmp_path / "routes" / "auth.js")
    assert resolve_module_path("../missing", importing) is None
    # packages are never resolved, even if something with that name exists
    write(tmp_path / "routes" / "express.js", "\n")
    assert resolve_module_path("express", importing) is None
