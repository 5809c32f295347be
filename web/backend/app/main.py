"""FastAPI application for the OPA bundle server.

Provides two read-only endpoints:
- ``GET /opa/v1/opa/bundle.tar.gz`` -- the published policy bundle
- ``GET /status`` -- liveness probe

The server never talks to the reconciliation driver; the published archive on
disk is the only thing they share.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the bundle_builder package is importable when run from a checkout.
_project_root = str(Path(__file__).resolve().parents[3])
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import FastAPI

from bundle_builder import __version__
from bundle_builder.config import BuilderConfig
from web.backend.app.middleware.request_log import log_requests
from web.backend.app.routers import bundle, status


def create_app(config: BuilderConfig | None = None) -> FastAPI:
    """Build the bundle server for *config* (defaults to the process environment)."""
    app = FastAPI(
        title="OPA Bundle Builder",
        description="Serves the policy bundle assembled from labelled ConfigMaps.",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config or BuilderConfig.from_env()

    # -----------------------------------------------------------------------
    # Request logging
    # -----------------------------------------------------------------------
    app.middleware("http")(log_requests)

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    app.include_router(bundle.router)
    app.include_router(status.router)

    return app


app = create_app()
