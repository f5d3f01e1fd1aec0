"""FastAPI application serving a built site for local preview.

Only static artifacts are served; searching happens in the client against the
downloaded index.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

from docpress.build import SITE_DATA
from docpress.records import normalize_route
from docpress.store.chunks import ASSETS_DIR

LOGGER = logging.getLogger(__name__)

IMMUTABLE = "public, max-age=31536000, immutable"
NO_CACHE = "no-cache"
_ASSET_NAME = re.compile(r"^[A-Za-z0-9_.-]+\.json$")


def _read_site(out_dir: Path) -> dict[str, Any]:
    path = out_dir / SITE_DATA
    if not path.exists():
        raise HTTPException(status_code=404, detail=f"Site data not found at {path}. Run a build first.")
    return json.loads(path.read_text(encoding="utf-8"))


def _asset_response(out_dir: Path, name: str) -> Response:
    if not _ASSET_NAME.match(name) or name.startswith("."):
        raise HTTPException(status_code=404, detail="Asset not found")
    path = out_dir / ASSETS_DIR / name
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"Asset not found: {name}")
    return Response(
        content=path.read_bytes(),
        media_type="application/json",
        headers={"Cache-Control": IMMUTABLE},
    )


def create_app(out_dir: Path) -> FastAPI:
    """Application serving ``out_dir`` as produced by :class:`docpress.build.SiteBuilder`."""
    out_dir = Path(out_dir)
    app = FastAPI(title="docpress preview", version="0.1.0")
    app.state.out_dir = out_dir

    @app.get("/site.json")
    async def site_data() -> Response:
        site = _read_site(out_dir)
        return Response(
            content=json.dumps(site, sort_keys=True),
            media_type="application/json",
            headers={"Cache-Control": NO_CACHE},
        )

    @app.get("/assets/{name}")
    async def asset(name: str) -> Response:
        return _asset_response(out_dir, name)

    @app.get("/pages/{route:path}")
    async def page(route: str) -> Response:
        site = _read_site(out_dir)
        entry = site.get("routes", {}).get(normalize_route(route))
        if entry is None:
            raise HTTPException(status_code=404, detail=f"No page for route /{route}")
        response = _asset_response(out_dir, entry["page"].rsplit("/", 1)[-1])
        response.headers["Cache-Control"] = NO_CACHE
        return response

    return app
