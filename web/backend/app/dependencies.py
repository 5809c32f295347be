"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Request

from bundle_builder.config import BuilderConfig


def get_config(request: Request) -> BuilderConfig:
    """Return the ``BuilderConfig`` the application was created with."""
    return request.app.state.config
