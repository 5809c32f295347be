"""Atomic Publisher — expose a finished archive to readers in one rename.

``os.replace`` on the same filesystem swaps the directory entry atomically:
a reader opening the serving path gets either the previous archive or the
new one. Copying would expose a half-written file, so a cross-device move
fails instead of falling back.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from bundle_builder.errors import BuilderError, ErrorKind

logger = logging.getLogger(__name__)


def publish(staging_archive: str | Path, serving_archive: str | Path) -> Path:
    """Replace *serving_archive* with *staging_archive*.

    Raises:
        BuilderError: ``PublishError`` if the rename fails. The previous
            serving archive, if any, is left untouched.
    """
    source = Path(staging_archive)
    target = Path(serving_archive)

    try:
        os.replace(source, target)
    except OSError as exc:
        raise BuilderError(
            ErrorKind.PUBLISH,
            f"could not move {source} into place",
            path=target,
        ) from exc

    logger.info("published %s", target)
    return target
