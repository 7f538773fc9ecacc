#!/usr/bin/env python3
"""
Load the index map for one tile and print its metadata as JSON.

Examples:
  python scripts/inspect_index.py data/tiles/foo.b3dm --mode embedded_ppm
  python scripts/inspect_index.py https://host/tiles/foo.b3dm --mode external_ppmz --pixel 10 20
  python scripts/inspect_index.py data/tiles/foo.glb            # mode from config/params.yaml
"""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Optional, Sequence

# Allow running from a checkout without installing
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.logging_setup import get_logger, setup_logging
from tile_index.config import load_config, mode_from_config, transport_kwargs
from tile_index.errors import IndexLoadError
from tile_index.index_map import BANDS
from tile_index.loader import IndexLoader


log = get_logger("tile_index.cli")


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Inspect a tile index map")
    ap.add_argument("tile", help="Tile URL or path (e.g. tiles/foo.b3dm)")
    ap.add_argument("--mode", default="default", help="Index mode (external_ppm, external_ppmz, embedded_ppm, ...)")
    ap.add_argument("--config", default="config/params.yaml")
    ap.add_argument("--pixel", nargs=2, type=int, metavar=("ROW", "COL"), help="Also print one pixel's band values")
    ap.add_argument("--log-level", default=None, help="Override logging level from config")
    args = ap.parse_args(argv)

    P = load_config(args.config)
    setup_logging(args.log_level or P.get("logging", {}).get("level", "INFO"), stream=sys.stderr, force=True)

    try:
        mode = mode_from_config(args.mode, P)
    except ValueError as e:
        ap.error(str(e))

    loader = IndexLoader(transport=transport_kwargs(P))
    try:
        index = asyncio.run(loader.fetch_index(mode, args.tile))
    except IndexLoadError as e:
        log.error("Index load failed", extra={"extra": {"tile": args.tile, "mode": mode.value}})
        print(f"error: {e}", file=sys.stderr)
        return 1

    out = {"tile": args.tile, "mode": mode.value, "index": index.to_meta() if index is not None else None}
    if args.pixel and index is not None:
        r, c = args.pixel
        if not (0 <= r < index.height and 0 <= c < index.width):
            print(f"error: pixel ({r}, {c}) outside {index.width}x{index.height}", file=sys.stderr)
            return 1
        out["pixel"] = {"row": r, "col": c, "values": [index[b, r, c] for b in range(BANDS)]}
    print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
