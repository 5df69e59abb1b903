"""Checks over the checked-in tree rather than the running service."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator

REPO_ROOT = Path(__file__).resolve().parents[1]
SKIPPED_DIRS = {".git", "__pycache__", ".mypy_cache", ".pytest_cache", ".venv"}
MERGE_MARKER = re.compile(r"^(<{7}|={7}|>{7})( |$)", re.MULTILINE)


def _tracked_text_files(suffixes: tuple[str, ...]) -> Iterator[Path]:
    for path in sorted(REPO_ROOT.rglob("*")):
        if path.is_file() and path.suffix in suffixes:
            if not SKIPPED_DIRS.intersection(path.parts):
                yield path


def test_no_unresolved_merges() -> None:
    leftovers = [
        str(path.relative_to(REPO_ROOT))
        for path in _tracked_text_files((".py", ".toml", ".md", ".cfg", ".txt"))
        if MERGE_MARKER.search(path.read_text(encoding="utf-8", errors="replace"))
    ]

    assert leftovers == [], f"unresolved merge markers in: {', '.join(leftovers)}"


def test_every_service_module_logs_through_its_own_logger() -> None:
    missing = [
        path.name
        for path in _tracked_text_files((".py",))
        if path.parent.name == "services"
        and "logging.getLogger(__name__)" not in path.read_text(encoding="utf-8")
        and "logger." in path.read_text(encoding="utf-8")
    ]

    assert missing == []
