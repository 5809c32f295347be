"""Bundle router -- serves the currently published policy bundle.

The serving archive is opened once and the response is read from that open
file, so a publish that renames a new archive into place mid-request cannot
mix two bundles in one download.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from bundle_builder.config import BUNDLE_NAME, BUNDLE_URL_PREFIX, BuilderConfig
from web.backend.app.dependencies import get_config

router = APIRouter(tags=["bundle"])


@router.get(
    f"{BUNDLE_URL_PREFIX}/{BUNDLE_NAME}",
    summary="Download the current policy bundle",
    response_class=Response,
    responses={404: {"description": "No bundle has been published yet"}},
)
def get_bundle(config: BuilderConfig = Depends(get_config)):
    """Return the bytes of the published ``bundle.tar.gz``.

    Answers 404 until the first successful publish.
    """
    try:
        with open(config.serving_archive, "rb") as f:
            data = f.read()
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="no bundle has been published yet")

    return Response(
        content=data,
        media_type="application/gzip",
        headers={"Content-Disposition": f'attachment; filename="{BUNDLE_NAME}"'},
    )
