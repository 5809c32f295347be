"""Logging setup for the builder process.

Container runtimes stamp their own timestamps, so ``asctime`` is left out of
the format when running inside Kubernetes.
"""

from __future__ import annotations

import logging
import os
import sys

LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

NOISY_LOGGERS = ("kubernetes", "urllib3", "uvicorn.access")


def parse_level(value: str | None, default: int = logging.INFO) -> int:
    """Map an ``OPA_BUNDLE_BUILDER_LOG`` value to a logging level."""
    if not value:
        return default
    return LEVELS.get(value.strip().lower(), default)


def log_format(environ=None) -> str:
    env = os.environ if environ is None else environ
    if env.get("KUBERNETES_SERVICE_HOST"):
        return "%(levelname)s %(name)s: %(message)s"
    return "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Send builder logs to stdout at *level*."""
    logging.basicConfig(level=level, format=log_format(), stream=sys.stdout)

    # Request lines come from our own middleware
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
