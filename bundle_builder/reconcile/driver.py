"""Reconciliation Driver — one change event through materialize, package, publish.

Per event the driver walks ``received → materializing → packaging →
publishing → done``. Any ``BuilderError`` on the way ends the event in
``failed`` and the resource is handed back to the queue after the fixed retry
delay. The only state carried between events is the staging tree on disk.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Iterable

from bundle_builder.bundle.materializer import materialize
from bundle_builder.bundle.packager import package
from bundle_builder.bundle.publisher import publish
from bundle_builder.config import BuilderConfig
from bundle_builder.errors import BuilderError, ErrorKind
from bundle_builder.models.resource import PolicyResource
from bundle_builder.reconcile.actions import Action, ReconcileResult, ReconcileState
from bundle_builder.reconcile.metrics import report_reconciled
from bundle_builder.reconcile.workqueue import WorkQueue

logger = logging.getLogger(__name__)


def update_bundle(resource: PolicyResource, config: BuilderConfig) -> bool:
    """Rebuild and publish the bundle for one changed resource.

    Returns:
        ``True`` if a new bundle was published, ``False`` if the resource
        carried no entries and nothing was touched.

    Raises:
        BuilderError: whichever step failed.
    """
    _enter(resource, ReconcileState.RECEIVED)
    if not resource.name:
        raise BuilderError(ErrorKind.NO_NAME, "opa bundle has no name")

    _enter(resource, ReconcileState.MATERIALIZING)
    if not resource.has_entries:
        logger.error("empty config map %s", resource.display_name)
        return False
    materialize(resource, config.incoming_dir)

    _enter(resource, ReconcileState.PACKAGING)
    package(config.incoming_dir, config.staging_archive, root_name=config.archive_root)

    _enter(resource, ReconcileState.PUBLISHING)
    publish(config.staging_archive, config.serving_archive)
    return True


def error_policy(
    resource: PolicyResource, error: BuilderError, config: BuilderConfig
) -> Action:
    """Every failure waits the same fixed delay before the resource is retried."""
    return Action.requeue(config.retry_delay)


class ReconcileDriver:
    """Consumes a change feed and reconciles one resource at a time."""

    def __init__(self, config: BuilderConfig, queue: WorkQueue | None = None):
        self.config = config
        self.queue = queue or WorkQueue()
        self._feed_error: BaseException | None = None

    def reconcile(self, resource: PolicyResource) -> ReconcileResult:
        """Process one event and classify its outcome. Never raises ``BuilderError``."""
        start = time.monotonic()
        try:
            published = update_bundle(resource, self.config)
        except BuilderError as err:
            result = ReconcileResult(
                resource=resource.display_name,
                state=ReconcileState.FAILED,
                action=error_policy(resource, err, self.config),
                error=err,
            )
            logger.warning(
                "reconcile of %s failed [%s], retrying in %ss: %s",
                resource.display_name,
                err.category,
                self.config.retry_delay,
                err,
            )
        else:
            result = ReconcileResult(
                resource=resource.display_name,
                state=ReconcileState.DONE,
                action=Action.await_change(),
                published=published,
            )
            if published:
                logger.info("reconciled %s", resource.display_name)

        result.duration_ms = int((time.monotonic() - start) * 1000)
        report_reconciled(result)
        return result

    def process(self, resource: PolicyResource) -> ReconcileResult:
        """Reconcile *resource* and schedule its retry if it failed."""
        result = self.reconcile(resource)
        if result.action.is_requeue:
            self.queue.requeue(resource, result.action.requeue_after)
        return result

    def run(self, feed: Iterable[PolicyResource]) -> None:
        """Pump *feed* into the queue and reconcile until stopped or drained.

        The feed is read on its own thread so pending retries come due while
        the feed blocks waiting for the next change.
        """
        pump = threading.Thread(
            target=self._pump, args=(feed,), name="bundle-feed", daemon=True
        )
        pump.start()

        while True:
            resource = self.queue.get()
            if resource is None:
                break
            self.process(resource)

        if self._feed_error is not None:
            raise self._feed_error

    def stop(self) -> None:
        """Stop the loop; anything still queued is dropped."""
        self.queue.shut_down()

    def _pump(self, feed: Iterable[PolicyResource]) -> None:
        try:
            for resource in feed:
                logger.debug("change received for %s", resource.display_name)
                self.queue.add(resource)
        except Exception as exc:
            logger.exception("change feed failed")
            self._feed_error = exc
            self.queue.shut_down()
        else:
            self.queue.close()


def _enter(resource: PolicyResource, state: ReconcileState) -> None:
    logger.debug("%s: %s", resource.display_name, state.value)
