from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Iterable

from routescribe.config import ScanConfig

DEFAULT_IGNORES = {
    # dependency caches
    "node_modules",
    "bower_components",
    "jspm_packages",
    ".yarn",
    ".pnpm-store",
    # build output
    "dist",
    "build",
    # vcs
    ".git",
    ".svn",
    ".hg",
    # coverage
    "coverage",
    ".nyc_output",
    # ide
    ".idea",
    ".vscode",
    # generated assets
    ".next",
    ".nuxt",
    ".svelte-kit",
    ".cache",
    "storybook-static",
}

TEST_FILE_PATTERNS = ("*.test.*", "*.spec.*", "test.*", "spec.*", "*.d.ts")

TOOLING_FILE_PATTERNS = (
    "*.config.*",
    ".eslintrc*",
    ".prettierrc*",
    ".babelrc*",
    "gulpfile.*",
    "gruntfile.*",
    "karma.conf.*",
    "protractor.conf.*",
    "package.json",
    "package-lock.json",
    "tsconfig*.json",
)


def should_ignore_dir(dir_path: Path | str, extra: Iterable[str] = ()) -> bool:
    name = Path(dir_path).name.lower()
    for ignored in (*DEFAULT_IGNORES, *extra):
        ignored = ignored.lower()
        if name == ignored or ignored in name:
            return True
    return False


def _matches_any(name: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch.fnmatch(name, p.lower()) for p in patterns)


def is_test_filename(name: str) -> bool:
    return _matches_any(name.lower(), TEST_FILE_PATTERNS)


def is_tooling_filename(name: str) -> bool:
    return _matches_any(name.lower(), TOOLING_FILE_PATTERNS)


def _relative_posix(p: Path, root: Path | str | None) -> str:
    if root is not None:
        try:
            return p.relative_to(root).as_posix()
        except ValueError:
            pass
    return str(p).replace(os.sep, "/")


def matches_exclude_pattern(rel: str, pattern: str) -> bool:
    """Glob match against a root-relative posix path; a leading **/ also matches at the root."""
    if fnmatch.fnmatch(rel, pattern):
        return True
    return pattern.startswith("**/") and fnmatch.fnmatch(rel, pattern[3:])


def should_accept_file(path: Path | str, config: ScanConfig, root: Path | str | None = None) -> bool:
    """
    True when a file is worth classifying. Pure apart from one stat call;
    a failing stat rejects the file. Exclude patterns are matched against the
    file name and against the path relative to root.
    """
    p = Path(path)
    name = p.name
    lowered = name.lower()

    if p.suffix.lower() not in config.extensions:
        return False
    if is_test_filename(lowered) or is_tooling_filename(lowered):
        return False
    if config.exclude_patterns:
        rel = _relative_posix(p, root)
        if any(
            fnmatch.fnmatch(lowered, pat.lower()) or matches_exclude_pattern(rel, pat)
            for pat in config.exclude_patterns
        ):
            return False

    try:
        size = p.stat().st_size
    except OSError:
        return False
    return 0 < size <= config.effective_max_file_size()
