"""Resource Materializer — write a resource's entries under ``incoming/<name>/``."""

from __future__ import annotations

import logging
from pathlib import Path

from bundle_builder.errors import BuilderError, ErrorKind
from bundle_builder.models.resource import PolicyResource
from bundle_builder.utils.tree import is_safe_component

logger = logging.getLogger(__name__)


def materialize(resource: PolicyResource, incoming_dir: str | Path) -> Path:
    """Write every entry of *resource* into its subdirectory of the staging tree.

    Existing files for the same entry key are overwritten; files for keys the
    resource no longer carries are left in place.

    Returns:
        The resource subdirectory.

    Raises:
        BuilderError: ``NoName`` if the resource has no name (nothing is
            written), ``DirectoryError`` if a name would escape the staging
            tree or the filesystem refuses a write.
    """
    if not resource.name:
        raise BuilderError(ErrorKind.NO_NAME, "opa bundle has no name")

    resource_dir = Path(incoming_dir) / resource.name
    entries = resource.entries or {}

    unsafe = [key for key in (resource.name, *entries) if not is_safe_component(key)]
    if unsafe:
        raise BuilderError(
            ErrorKind.DIRECTORY,
            f"refusing to write outside the staging tree: {unsafe[0]!r}",
            resource=resource.name,
            path=resource_dir,
        )

    try:
        resource_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BuilderError(
            ErrorKind.DIRECTORY,
            "opa bundle dir error",
            resource=resource.name,
            path=resource_dir,
        ) from exc

    for key, content in entries.items():
        entry_path = resource_dir / key
        try:
            entry_path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise BuilderError(
                ErrorKind.DIRECTORY,
                f"could not write entry {key!r}",
                resource=resource.name,
                path=entry_path,
            ) from exc

    logger.debug("materialized %d entries for %s", len(entries), resource.display_name)
    return resource_dir
