"""Manifest feed — read ConfigMap manifests from YAML files.

Lets the build pipeline run without a cluster: ``opa-bundle-builder build``
feeds these resources through the same reconcile path the watch uses.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from bundle_builder.models.resource import PolicyResource

logger = logging.getLogger(__name__)


class ManifestMetadata(BaseModel):
    """The subset of ``ObjectMeta`` the builder reads."""

    name: Optional[str] = None
    namespace: Optional[str] = None
    labels: dict[str, str] = Field(default_factory=dict)


class ConfigMapManifest(BaseModel):
    """A ``v1/ConfigMap`` document. ``binaryData`` is not carried into bundles."""

    api_version: str = Field(default="v1", alias="apiVersion")
    kind: str = "ConfigMap"
    metadata: ManifestMetadata = Field(default_factory=ManifestMetadata)
    data: Optional[dict[str, str]] = None

    model_config = {"populate_by_name": True}

    def to_resource(self) -> PolicyResource:
        return PolicyResource(
            name=self.metadata.name,
            entries=dict(self.data) if self.data is not None else None,
            namespace=self.metadata.namespace,
        )


def load_manifests(path: str | Path) -> list[PolicyResource]:
    """Load every ConfigMap in a (possibly multi-document) YAML file.

    ``kind: List`` documents are expanded; documents of any other kind are
    skipped with a warning.

    Raises:
        ValueError: If the file is not valid YAML or a ConfigMap document
            does not match the expected shape.
    """
    path = Path(path)
    with open(path) as f:
        try:
            documents = list(yaml.safe_load_all(f))
        except yaml.YAMLError as exc:
            raise ValueError(f"{path}: invalid YAML: {exc}") from exc

    resources: list[PolicyResource] = []
    for index, document in enumerate(documents):
        for manifest in _config_maps(document, path, index):
            resources.append(manifest.to_resource())
    return resources


def _config_maps(document: Any, path: Path, index: int) -> Iterator[ConfigMapManifest]:
    if document is None:
        return
    if not isinstance(document, dict):
        raise ValueError(f"{path}: document {index} is not a mapping")

    kind = document.get("kind", "ConfigMap")
    if kind == "List":
        for item in document.get("items") or []:
            yield from _config_maps(item, path, index)
        return
    if kind != "ConfigMap":
        logger.warning("%s: skipping document %d of kind %s", path, index, kind)
        return

    try:
        yield ConfigMapManifest.model_validate(document)
    except ValidationError as exc:
        raise ValueError(f"{path}: document {index} is not a valid ConfigMap: {exc}") from exc
