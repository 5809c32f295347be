"""Error kinds for the bundle builder.

Every failure is a ``BuilderError`` tagged with one ``ErrorKind``. Retry
policy and metrics dispatch on ``error.kind``; the string value doubles as the
observability label.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorKind(str, Enum):
    """The closed set of things that can go wrong."""

    NO_NAME = "NoName"  # Resource lacks identity
    DIRECTORY = "DirectoryError"  # Staging tree write/create failure
    PACKAGE = "PackageError"  # Archive creation/compression/finalization
    PUBLISH = "PublishError"  # Atomic replace failure
    CLIENT_SETUP = "ClientSetupError"  # Control-plane connection, fatal
    MISSING_SCOPE = "MissingScopeConfig"  # No namespace to watch


class BuilderError(Exception):
    """A classified failure carrying the resource and path it concerns."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        resource: str | None = None,
        path: str | Path | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.resource = resource
        self.path = str(path) if path is not None else None

    @property
    def category(self) -> str:
        return self.kind.value

    def __str__(self) -> str:
        parts = [f"[{self.kind.value}] {self.message}"]
        if self.resource:
            parts.append(f"resource={self.resource}")
        if self.path:
            parts.append(f"path={self.path}")
        if self.__cause__ is not None:
            parts.append(f"cause={self.__cause__}")
        return " ".join(parts)
