from __future__ import annotations

from pathlib import Path

DEFAULT_IGNORES = {
    ".git",
    "node_modules",
    "bower_components",
    "dist",
    "build",
    "coverage",
    ".next",
    ".nuxt",
    ".cache",
    ".venv",
    "__pycache__",
}


def should_ignore_dir(dir_path: Path) -> bool:
    return dir_path.name in DEFAULT_IGNORES
