"""Utility helpers for working with note paths."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator


def normalize_folder(path: str) -> str:
    return path.replace("\\", "/").rstrip("/")


def is_under(path: str, folder: str) -> bool:
    folder = normalize_folder(folder)
    return bool(folder) and (path == folder or path.startswith(folder + "/"))


def is_in_folders(path: str, allow: Iterable[str], exclude: Iterable[str]) -> bool:
    """Check a vault-relative path against allow and exclude folder lists.

    Exclusions win. An empty allow list admits every path.
    """
    norm = path.replace("\\", "/")
    if any(is_under(norm, ex) for ex in exclude):
        return False
    allow = list(allow)
    if not allow:
        return True
    return any(is_under(norm, a) for a in allow)


def iter_markdown_paths(root: Path) -> Iterator[Path]:
    """Yield markdown files under ``root`` in a stable order."""
    if root.is_file():
        if root.suffix.lower() == ".md":
            yield root
        return
    for child in sorted(root.rglob("*")):
        if child.is_file() and child.suffix.lower() == ".md":
            yield child
