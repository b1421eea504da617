from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Sequence

from postroute.repo.ignore import should_ignore_dir


def scan_source_files(
    project_path: Path,
    include: Sequence[str] = ("**/*.js",),
    exclude: Sequence[str] = (),
    max_files: int | None = None,
) -> list[str]:
    """
    Return absolute paths (as strings, sorted) of files under project_path whose
    project-relative POSIX path matches an include glob and no exclude glob.

    Include patterns starting with "!" act as excludes, so
    ["**/*.js", "!node_modules/**"] works as expected.
    """
    project_path = project_path.resolve()
    includes = [p for p in include if not p.startswith("!")]
    excludes = list(exclude) + [p[1:] for p in include if p.startswith("!")]

    out: list[str] = []
    for root, dirs, files in _walk(project_path):
        root_p = Path(root)

        # prune ignored dirs
        dirs[:] = sorted(d for d in dirs if not should_ignore_dir(root_p / d))

        for f in sorted(files):
            full = root_p / f
            rel = full.relative_to(project_path).as_posix()
            if not match_globs(rel, includes) or match_globs(rel, excludes):
                continue
            out.append(str(full))
            if max_files is not None and len(out) >= max_files:
                return sorted(out)
    return sorted(out)


def _walk(project_path: Path):
    # Separate helper to make unit testing easier (can be mocked)
    return os.walk(project_path)


def match_globs(rel_path: str, patterns: Sequence[str]) -> bool:
    """
    fnmatch-based glob test. "*" also crosses "/" here, and a leading "**/"
    may match nothing, so "**/*.js" matches both "app.js" and "src/app.js".
    """
    for pattern in patterns:
        if fnmatch.fnmatchcase(rel_path, pattern):
            return True
        if pattern.startswith("**/") and fnmatch.fnmatchcase(rel_path, pattern[3:]):
            return True
    return False
