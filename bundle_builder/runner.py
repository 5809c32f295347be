"""Process runner — start the reconciliation driver and the bundle server together.

The driver runs on a worker thread (the watch and the filesystem calls
block); uvicorn serves on the event loop. The two share nothing but the
bundle directories. If either one stops, the other is stopped too.
"""

from __future__ import annotations

import asyncio
import logging
import os

import uvicorn
from prometheus_client import start_http_server

from bundle_builder.config import LOG_LEVEL_ENV, WATCH_NAMESPACE_ENV, BuilderConfig
from bundle_builder.errors import BuilderError, ErrorKind
from bundle_builder.feed.configmaps import ConfigMapFeed, create_core_api
from bundle_builder.reconcile.driver import ReconcileDriver
from bundle_builder.utils.logging_config import configure_logging, parse_level

logger = logging.getLogger(__name__)


def run(config: BuilderConfig | None = None) -> int:
    """Run the builder until the server or the driver stops.

    Returns:
        Process exit status: 1 when the control-plane client cannot be
        created, 0 otherwise (including a missing watch namespace, which is
        logged and does nothing).
    """
    configure_logging(parse_level(os.environ.get(LOG_LEVEL_ENV)))
    config = config or BuilderConfig.from_env()

    try:
        api = create_core_api()
    except BuilderError as err:
        logger.error("%s", err)
        return 1

    try:
        namespace = _require_namespace(config)
    except BuilderError as err:
        logger.error("%s", err)
        return 0

    config.ensure_dirs()
    if config.metrics_port:
        start_http_server(config.metrics_port)
        logger.info("metrics on port %d", config.metrics_port)

    feed = ConfigMapFeed(api, namespace, reconnect_delay=config.retry_delay)
    driver = ReconcileDriver(config)
    logger.info("watching config maps in namespace %s", namespace)
    asyncio.run(serve_and_reconcile(config, driver, feed))
    return 0


async def serve_and_reconcile(
    config: BuilderConfig, driver: ReconcileDriver, feed: ConfigMapFeed
) -> None:
    """Run the server and the driver concurrently until one of them ends."""
    from web.backend.app.main import create_app

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(config),
            host=config.host,
            port=config.port,
            log_config=None,
        )
    )

    serve_task = asyncio.create_task(server.serve(), name="bundle-server")
    driver_task = asyncio.create_task(
        asyncio.to_thread(driver.run, feed), name="reconcile-driver"
    )

    done, _ = await asyncio.wait(
        {serve_task, driver_task}, return_when=asyncio.FIRST_COMPLETED
    )

    if driver_task in done:
        server.should_exit = True
    if serve_task in done:
        feed.stop()
        driver.stop()

    await asyncio.gather(serve_task, driver_task)


def _require_namespace(config: BuilderConfig) -> str:
    if not config.watch_namespace:
        raise BuilderError(
            ErrorKind.MISSING_SCOPE,
            f'missing namespace to watch. Env var "{WATCH_NAMESPACE_ENV}" '
            "is probably not defined",
        )
    return config.watch_namespace
