"""Kubernetes change feed — watch policy ConfigMaps in one namespace.

Only ConfigMaps carrying the ``opa.stackable.tech/bundle`` label are watched.
ADDED and MODIFIED events become ``PolicyResource``s; deletions are logged
and otherwise ignored, so a deleted ConfigMap stays in the bundle.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterator

import urllib3
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes import watch
from kubernetes.client.rest import ApiException

from bundle_builder.config import BUNDLE_LABEL, DEFAULT_RETRY_DELAY
from bundle_builder.errors import BuilderError, ErrorKind
from bundle_builder.models.resource import PolicyResource

logger = logging.getLogger(__name__)

HTTP_GONE = 410


def create_core_api() -> k8s_client.CoreV1Api:
    """Connect to the control plane, preferring in-cluster credentials.

    Raises:
        BuilderError: ``ClientSetupError`` if neither in-cluster config nor a
            kubeconfig can be loaded.
    """
    try:
        try:
            k8s_config.load_incluster_config()
        except k8s_config.ConfigException:
            k8s_config.load_kube_config()
    except (k8s_config.ConfigException, OSError) as exc:
        raise BuilderError(
            ErrorKind.CLIENT_SETUP,
            "unable to create kubernetes client",
        ) from exc
    return k8s_client.CoreV1Api()


class ConfigMapFeed:
    """Iterable over changes to labelled ConfigMaps in *namespace*.

    The watch resumes from the last seen ``resourceVersion``. When the server
    answers 410 Gone, or the connection breaks, the feed waits
    *reconnect_delay* seconds and relists from scratch; relisting redelivers
    every ConfigMap, which the driver tolerates.
    """

    def __init__(
        self,
        api: k8s_client.CoreV1Api,
        namespace: str,
        label_selector: str = BUNDLE_LABEL,
        timeout_seconds: int = 300,
        reconnect_delay: float = DEFAULT_RETRY_DELAY,
    ):
        self.api = api
        self.namespace = namespace
        self.label_selector = label_selector
        self.timeout_seconds = timeout_seconds
        self.reconnect_delay = reconnect_delay
        self.resource_version: str | None = None
        self._stopped = threading.Event()
        self._watch: watch.Watch | None = None

    def __iter__(self) -> Iterator[PolicyResource]:
        while not self._stopped.is_set():
            self._watch = watch.Watch()
            try:
                yield from self._stream(self._watch)
            except ApiException as exc:
                if exc.status == HTTP_GONE:
                    logger.info("watch expired, relisting config maps")
                    self.resource_version = None
                    continue
                logger.warning("watch failed with HTTP %s: %s", exc.status, exc.reason)
                self._pause()
            except urllib3.exceptions.HTTPError as exc:
                logger.warning("watch connection lost: %s", exc)
                self._pause()
            finally:
                self._watch.stop()

    def stop(self) -> None:
        self._stopped.set()
        if self._watch is not None:
            self._watch.stop()

    def _stream(self, watcher: watch.Watch) -> Iterator[PolicyResource]:
        kwargs = {
            "namespace": self.namespace,
            "label_selector": self.label_selector,
            "timeout_seconds": self.timeout_seconds,
        }
        if self.resource_version:
            kwargs["resource_version"] = self.resource_version

        for event in watcher.stream(self.api.list_namespaced_config_map, **kwargs):
            event_type = event.get("type")
            obj = event.get("object")

            if event_type == "ERROR":
                status = obj if isinstance(obj, dict) else {}
                if status.get("code") == HTTP_GONE:
                    logger.info("watch expired, relisting config maps")
                    self.resource_version = None
                    return
                logger.warning("watch error event: %s", status.get("message", obj))
                continue

            resource = PolicyResource.from_config_map(obj)
            if resource.resource_version:
                self.resource_version = resource.resource_version

            if event_type in ("ADDED", "MODIFIED"):
                yield resource
            elif event_type == "DELETED":
                logger.info(
                    "config map %s deleted; its entries stay in the bundle",
                    resource.display_name,
                )

    def _pause(self) -> None:
        self._stopped.wait(self.reconnect_delay)
