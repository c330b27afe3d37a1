from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from routescribe.config import ScanConfig
from routescribe.domain.models import CandidateFile, Diagnostic
from routescribe.repo.ignore import should_accept_file, should_ignore_dir

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalkResult:
    files: list[CandidateFile] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    truncated: bool = False

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]


def scan_source_files(repo_path: Path, config: ScanConfig | None = None) -> WalkResult:
    """
    Return candidate source files under repo_path, with absolute paths.

    Depth-first, directories before files, names in sorted order so that the
    max_files cut-off always keeps the same files. The result is sorted by path.
    """
    config = config or ScanConfig()
    root = Path(repo_path).resolve()
    out: list[CandidateFile] = []
    diagnostics: list[Diagnostic] = []
    truncated = _walk_dir(root, root, config, out, diagnostics)

    if truncated:
        diagnostics.append(
            Diagnostic(
                stage="walk",
                code="max-files",
                message=f"stopped after {config.max_files} files",
                path=str(root),
            )
        )
        logger.warning("File limit reached (%d), remaining files skipped", config.max_files)

    return WalkResult(files=sorted(out, key=lambda c: c.path), diagnostics=diagnostics, truncated=truncated)


def _walk_dir(
    root: Path, directory: Path, config: ScanConfig, out: list[CandidateFile], diagnostics: list[Diagnostic]
) -> bool:
    # returns True once the file cap is hit
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        diagnostics.append(
            Diagnostic(stage="walk", code="unreadable-dir", message=str(e), path=str(directory))
        )
        logger.warning("Skipping unreadable directory %s: %s", directory, e)
        return False

    dirs = []
    files = []
    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                dirs.append(entry)
            elif entry.is_file():
                files.append(entry)
        except OSError:
            continue

    for d in dirs:
        if should_ignore_dir(d.name, config.exclude_dirs):
            continue
        if _walk_dir(root, Path(d.path), config, out, diagnostics):
            return True

    for f in files:
        if not should_accept_file(f.path, config, root=root):
            continue
        candidate = candidate_file(str(Path(f.path).resolve()))
        if candidate is None:
            continue
        out.append(candidate)
        if len(out) >= config.max_files:
            return True
    return False


def candidate_file(path: str) -> CandidateFile | None:
    p = Path(path)
    try:
        size = p.stat().st_size
    except OSError:
        return None
    return CandidateFile(path=str(p), size=size, extension=p.suffix.lower())


def read_source(path: str, max_bytes: int) -> str | None:
    """Read a source file as text, None when unreadable or over max_bytes."""
    try:
        with open(path, "rb") as f:
            data = f.read(max_bytes + 1)
    except OSError as e:
        logger.warning("Could not read %s: %s", path, e)
        return None
    if len(data) > max_bytes:
        return None
    return data.decode("utf-8", errors="ignore")
