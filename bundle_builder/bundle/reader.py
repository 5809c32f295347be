"""Read a published bundle back — used by ``inspect`` and the tests."""

from __future__ import annotations

import hashlib
import tarfile
from dataclasses import dataclass
from pathlib import Path


@dataclass
class BundleMember:
    """One regular file inside a bundle archive."""

    name: str
    size: int
    sha256: str


def read_bundle(archive_path: str | Path) -> dict[str, bytes]:
    """Return the content of every regular file in the archive, keyed by member name."""
    contents: dict[str, bytes] = {}
    with tarfile.open(archive_path, mode="r:gz") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            extracted = tar.extractfile(member)
            if extracted is None:
                continue
            with extracted:
                contents[member.name] = extracted.read()
    return contents


def list_bundle(archive_path: str | Path) -> list[BundleMember]:
    """Describe the regular files in the archive, sorted by name."""
    return [
        BundleMember(
            name=name,
            size=len(data),
            sha256=hashlib.sha256(data).hexdigest(),
        )
        for name, data in sorted(read_bundle(Path(archive_path)).items())
    ]
