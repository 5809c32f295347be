"""Process configuration — filesystem layout, network binding, watch scope.

The three bundle directories are fixed for a deployed builder; ``under()``
exists so the offline CLI and the tests can build the same layout somewhere
else.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

OPERATOR_NAME = "opa.stackable.tech"
CONTROLLER_NAME = f"bundlebuilder.{OPERATOR_NAME}"
BUNDLE_LABEL = f"{OPERATOR_NAME}/bundle"

WATCH_NAMESPACE_ENV = "WATCH_NAMESPACE"
LOG_LEVEL_ENV = "OPA_BUNDLE_BUILDER_LOG"
METRICS_PORT_ENV = "OPA_BUNDLE_BUILDER_METRICS_PORT"

BUNDLES_ROOT = Path("/bundles")
BUNDLE_NAME = "bundle.tar.gz"
ARCHIVE_ROOT = "bundles"
BUNDLE_URL_PREFIX = "/opa/v1/opa"

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3030
DEFAULT_RETRY_DELAY = 5.0


@dataclass(frozen=True)
class BuilderConfig:
    """Everything the driver and the server need to agree on."""

    incoming_dir: Path = BUNDLES_ROOT / "incoming"
    tmp_dir: Path = BUNDLES_ROOT / "tmp"
    active_dir: Path = BUNDLES_ROOT / "active"
    archive_root: str = ARCHIVE_ROOT
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    retry_delay: float = DEFAULT_RETRY_DELAY
    watch_namespace: str | None = None
    metrics_port: int | None = None

    @property
    def staging_archive(self) -> Path:
        """Where the packager writes; never read by the server."""
        return self.tmp_dir / BUNDLE_NAME

    @property
    def serving_archive(self) -> Path:
        """The only archive path readers ever observe."""
        return self.active_dir / BUNDLE_NAME

    @classmethod
    def under(cls, root: str | Path, **overrides) -> BuilderConfig:
        """Lay out ``incoming/``, ``tmp/`` and ``active/`` beneath *root*."""
        root = Path(root)
        return cls(
            incoming_dir=root / "incoming",
            tmp_dir=root / "tmp",
            active_dir=root / "active",
            **overrides,
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BuilderConfig:
        """Read the watch scope and optional metrics port from the environment."""
        env = os.environ if environ is None else environ
        namespace = env.get(WATCH_NAMESPACE_ENV) or None
        return cls(
            watch_namespace=namespace,
            metrics_port=_parse_port(env.get(METRICS_PORT_ENV)),
        )

    def ensure_dirs(self) -> None:
        """Create the incoming, tmp and active directories if missing."""
        for directory in (self.incoming_dir, self.tmp_dir, self.active_dir):
            directory.mkdir(parents=True, exist_ok=True)


def _parse_port(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        port = int(raw)
    except ValueError:
        logger.warning("ignoring %s=%r: not a port number", METRICS_PORT_ENV, raw)
        return None
    if not 0 < port < 65536:
        logger.warning("ignoring %s=%r: out of range", METRICS_PORT_ENV, raw)
        return None
    return port
