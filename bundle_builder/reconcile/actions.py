"""Reconcile outcomes — states, follow-up actions and per-event results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from bundle_builder.errors import BuilderError


class ReconcileState(str, Enum):
    """Where an event is in the pipeline."""

    RECEIVED = "received"
    MATERIALIZING = "materializing"
    PACKAGING = "packaging"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Action:
    """What to do with a resource once its reconcile has finished."""

    requeue_after: float | None = None

    @classmethod
    def await_change(cls) -> Action:
        """Nothing to do until the feed delivers another change."""
        return cls()

    @classmethod
    def requeue(cls, delay: float) -> Action:
        """Process the same resource again after *delay* seconds."""
        return cls(requeue_after=delay)

    @property
    def is_requeue(self) -> bool:
        return self.requeue_after is not None


@dataclass
class ReconcileResult:
    """Result of processing a single change event end to end."""

    resource: str
    state: ReconcileState
    action: Action
    published: bool = False
    error: BuilderError | None = None
    duration_ms: int = 0

    @property
    def failed(self) -> bool:
        return self.state == ReconcileState.FAILED

    @property
    def category(self) -> str:
        """Error label for logs and metrics, ``none`` on success."""
        return self.error.category if self.error else "none"
