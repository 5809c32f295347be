"""PolicyResource — one named set of policy files from the change feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class PolicyResource:
    """A policy ConfigMap reduced to what the bundle needs.

    ``name`` is the resource identity and becomes the subdirectory under the
    bundle root. ``entries`` maps entry filename to text content; ``None``
    means the resource carried no data at all.
    """

    name: str | None
    entries: Mapping[str, str] | None = field(default=None, hash=False)
    namespace: str | None = None
    resource_version: str | None = field(default=None, compare=False)

    @property
    def has_entries(self) -> bool:
        return bool(self.entries)

    @property
    def display_name(self) -> str:
        if not self.name:
            return "<unnamed>"
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    @classmethod
    def from_config_map(cls, config_map: Any) -> PolicyResource:
        """Build a resource from a ``V1ConfigMap`` (or its dict form)."""
        if isinstance(config_map, Mapping):
            metadata = config_map.get("metadata") or {}
            return cls(
                name=metadata.get("name"),
                entries=_copy_entries(config_map.get("data")),
                namespace=metadata.get("namespace"),
                resource_version=metadata.get("resourceVersion"),
            )

        metadata = config_map.metadata
        return cls(
            name=getattr(metadata, "name", None),
            entries=_copy_entries(config_map.data),
            namespace=getattr(metadata, "namespace", None),
            resource_version=getattr(metadata, "resource_version", None),
        )


def _copy_entries(data: Mapping[str, str] | None) -> dict[str, str] | None:
    if data is None:
        return None
    return {str(key): "" if value is None else str(value) for key, value in data.items()}
