"""
Tile Index — locate and decode per-tile index maps

An index map is a 3-band raster that maps each pixel of a tile texture to a pixel in some other
image (band 0: image id, band 1: row, band 2: column). It is stored either beside the tile
(foo.ppm / foo_index.ppm, or gzipped .ppmz) or as image 1 inside the tile's b3dm/glb/gltf.

This package provides:
- IndexLoader: candidate fallback over a transport, dispatch by file type, callback reporting
- decoders for PPM (P6), GLB, b3dm and glTF containers
- IndexMap, the decoded raster
- a small FastAPI service (tile_index.server) and a CLI (scripts/inspect_index.py)

Usage:
    loader = IndexLoader()
    index = asyncio.run(loader.fetch_index("external_ppmz", "https://host/tiles/foo.b3dm"))
"""
from .index_map import IndexMap
from .loader import IndexLoader
from .modes import ContainerKind, IndexMode

__all__ = ["IndexMap", "IndexLoader", "IndexMode", "ContainerKind"]
