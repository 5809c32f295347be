"""Staging tree helpers — walk and describe ``incoming/``."""

from __future__ import annotations

from pathlib import Path


def scan_tree(root: Path) -> list[Path]:
    """Return every directory and file beneath *root*, parents first.

    Paths are sorted by their parts so the walk order (and therefore the
    archive member order) does not depend on the filesystem.
    """
    return sorted(root.rglob("*"), key=lambda p: p.relative_to(root).parts)


def is_safe_component(name: str) -> bool:
    """True if *name* is a single path component that stays inside its parent."""
    if not name or name in (".", ".."):
        return False
    return "/" not in name and "\\" not in name and "\x00" not in name
