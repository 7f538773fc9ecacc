from __future__ import annotations

from typing import List

from common.utils import base_uri, change_url_extension, last_path_segment, split_query, strip_url_extension
from tile_index.modes import IndexMode


def tile_base(tile_url: str) -> str:
    """Directory that candidate names are relative to: 'tiles/foo.b3dm' -> 'tiles/'."""
    return base_uri(tile_url)


def candidate_names(mode: IndexMode, tile_url: str) -> List[str]:
    """
    Resource names to try, in order, for the index of `tile_url`.

        external_ppm   tiles/foo.b3dm -> ['foo.ppm', 'foo_index.ppm']
        external_ppmz  tiles/foo.b3dm -> ['foo.ppmz', 'foo_index.ppmz']
        embedded_*     tiles/foo.b3dm -> ['foo.b3dm']
        none/default                  -> []

    A query string on the tile URL is kept on every candidate.
    """
    mode = IndexMode.parse(mode)
    if mode.skips_loading:
        return []

    _, query = split_query(tile_url)
    file = last_path_segment(tile_url) + query

    if mode.embedded:
        return [file]

    ext = ".ppmz" if mode.compressed else ".ppm"
    stem, query = split_query(strip_url_extension(file))
    return [
        change_url_extension(file, ext),
        stem + "_index" + ext + query,
    ]
