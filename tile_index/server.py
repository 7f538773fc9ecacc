from __future__ import annotations

"""
HTTP API over the index loader.

    GET /health
    GET /index?tile=<tile url>&mode=<mode>              -> {"tile", "mode", "index": {width, height, num_nonzero}}
    GET /index/pixel?tile=...&mode=...&row=<r>&col=<c>  -> {"row", "col", "values": [id, row, col]}

Run:
    uvicorn tile_index.server:app --port 8000
"""

import os
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.logging_setup import setup_logging
from tile_index.config import load_config, mode_from_config, transport_kwargs
from tile_index.errors import IndexLoadError
from tile_index.index_map import BANDS, IndexMap
from tile_index.loader import IndexLoader
from tile_index.modes import IndexMode


P = load_config(os.environ.get("TILE_INDEX_CONFIG"))
setup_logging(P.get("logging", {}).get("level", "INFO"))

loader = IndexLoader(transport=transport_kwargs(P))

app = FastAPI(title="Tile Index API", version="1.0.0")

# (Optional) CORS for local viewers
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _mode(mode: str) -> IndexMode:
    try:
        return mode_from_config(mode, P)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


async def _load(tile: str, mode: IndexMode) -> Optional[IndexMap]:
    return await loader.fetch_index(mode, tile)


def _load_failed(e: IndexLoadError) -> JSONResponse:
    return JSONResponse({"error": "index_load_failed", "detail": str(e)}, status_code=404)


@app.get("/health")
def health() -> Dict[str, Any]:
    idx = P.get("index", {})
    return {
        "status": "ok",
        "modes": [m.value for m in IndexMode],
        "scene_mode": idx.get("scene_mode"),
        "tileset_mode": idx.get("tileset_mode"),
    }


@app.get("/index")
async def index_meta(tile: str = Query(...), mode: str = Query("default")):
    """Load the index for `tile` and return its metadata (no sample data)."""
    m = _mode(mode)
    try:
        index = await _load(tile, m)
    except IndexLoadError as e:
        return _load_failed(e)
    return {
        "tile": tile,
        "mode": m.value,
        "index": index.to_meta() if index is not None else None,
    }


@app.get("/index/pixel")
async def index_pixel(
    tile: str = Query(...),
    row: int = Query(..., ge=0),
    col: int = Query(..., ge=0),
    mode: str = Query("default"),
):
    """Return the three band values of one pixel: [image id, source row, source col]."""
    m = _mode(mode)
    try:
        index = await _load(tile, m)
    except IndexLoadError as e:
        return _load_failed(e)
    if index is None:
        raise HTTPException(status_code=404, detail=f"mode {m.value} loads no index")
    if row >= index.height or col >= index.width:
        raise HTTPException(status_code=400, detail=f"pixel ({row}, {col}) outside {index.width}x{index.height}")
    return {"row": row, "col": col, "values": [index[b, row, col] for b in range(BANDS)]}


# -------- local dev entrypoint --------
if __name__ == "__main__":
    srv = P.get("server", {})
    uvicorn.run(app, host=srv.get("host", "0.0.0.0"), port=int(srv.get("port", 8000)))
