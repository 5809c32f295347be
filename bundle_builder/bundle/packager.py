"""Bundle Packager — compress the entire staging tree into one tar.gz.

The archive's single top-level directory is the archive root (``bundles``),
and everything under ``incoming/`` appears beneath it. Readers download the
whole bundle each time, so the gzip stream uses the highest compression
level.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tarfile
from pathlib import Path

from bundle_builder.errors import BuilderError, ErrorKind
from bundle_builder.utils.tree import scan_tree

logger = logging.getLogger(__name__)

COMPRESS_LEVEL = 9


def package(
    source_dir: str | Path,
    archive_path: str | Path,
    root_name: str = "bundles",
) -> Path:
    """Write a gzip tar of *source_dir* to *archive_path*.

    The archive is closed, flushed and fsynced before this returns, so a
    rename of *archive_path* afterwards always exposes a complete file.

    Raises:
        BuilderError: ``PackageError`` on any walk, compression or write
            failure. The partial archive is removed.
    """
    source = Path(source_dir)
    target = Path(archive_path)

    try:
        with open(target, "wb") as raw:
            with tarfile.open(
                fileobj=raw, mode="w:gz", compresslevel=COMPRESS_LEVEL
            ) as tar:
                tar.add(source, arcname=root_name, recursive=False)
                for path in scan_tree(source):
                    arcname = f"{root_name}/{path.relative_to(source).as_posix()}"
                    tar.add(path, arcname=arcname, recursive=False)
            raw.flush()
            os.fsync(raw.fileno())
    except (OSError, tarfile.TarError) as exc:
        with contextlib.suppress(OSError):
            target.unlink()
        raise BuilderError(
            ErrorKind.PACKAGE,
            f"could not create {target}",
            path=target,
        ) from exc

    logger.debug("packaged %s into %s (%d bytes)", source, target, target.stat().st_size)
    return target
