from __future__ import annotations

import io
from typing import Any, BinaryIO, Callable, Dict, Optional, Union

from common.logging_setup import get_logger
from common.utils import url_extension
from tile_index.candidates import candidate_names, tile_base
from tile_index.errors import FetchError, IndexLoadError
from tile_index.fetch import Fetcher, default_fetcher
from tile_index.glb import decode_b3dm, decode_glb, decode_gltf
from tile_index.index_map import IndexMap
from tile_index.modes import ContainerKind, IndexMode
from tile_index.ppm import decode_ppm


log = get_logger("tile_index.loader")

SuccessCallback = Callable[[Optional[IndexMap]], None]
FailCallback = Callable[[Union[IndexMode, str], str, str], None]


def _stream_size(stream: BinaryIO) -> int:
    pos = stream.tell()
    size = stream.seek(0, io.SEEK_END)
    stream.seek(pos)
    return size - pos


def _ensure_seekable(stream: BinaryIO) -> BinaryIO:
    if stream.seekable():
        return stream
    data = stream.read()
    stream.close()
    return io.BytesIO(data)


def decode_index(kind: ContainerKind, stream: BinaryIO, compressed: bool, name: Optional[str] = None) -> IndexMap:
    """Run the decoder for `kind`; `compressed` comes from the mode, image mime types may add to it."""
    if kind is ContainerKind.B3DM:
        return decode_b3dm(stream, compressed=compressed, name=name)
    if kind is ContainerKind.GLB:
        return decode_glb(stream, compressed=compressed, name=name)
    if kind is ContainerKind.GLTF:
        return decode_gltf(stream, compressed=compressed, name=name)
    if kind in (ContainerKind.PPM, ContainerKind.PPMZ):
        return decode_ppm(stream, compressed=compressed, name=name)
    raise ValueError(f"unhandled container kind: {kind}")


class IndexLoader:
    """
    Locates and decodes the index map for a tile.

    Candidates are tried strictly in order; the first non-empty fetch wins and is decoded.
    Each load() reports exactly one outcome: success(index_or_None) or fail(mode, tile_url, msg).
    An unrecognised mode is reported through fail() with the mode as given.
    Decode errors never propagate to the caller.

    Params:
        fetcher: transport to use; if omitted one is chosen per request from the tile URL scheme
        transport: kwargs for default_fetcher() (timeout, user_agent, root)
    """

    def __init__(self, fetcher: Optional[Fetcher] = None, transport: Optional[Dict[str, Any]] = None):
        self._fetcher = fetcher
        self._transport = dict(transport or {})

    async def load(
        self,
        mode: Union[str, IndexMode],
        tile_url: str,
        success: SuccessCallback,
        fail: FailCallback,
    ) -> None:
        try:
            mode = IndexMode.parse(mode)
        except ValueError as e:
            log.warning("Index load failed", extra={"extra": {"mode": mode, "tile": tile_url, "reason": str(e)}})
            fail(mode, tile_url, str(e))
            return
        if mode.skips_loading:
            success(None)
            return

        base = tile_base(tile_url)
        fetcher = self._fetcher or default_fetcher(base, **self._transport)

        stream: Optional[BinaryIO] = None
        name: Optional[str] = None
        error: Optional[Exception] = None
        for candidate in candidate_names(mode, tile_url):
            log.debug("Trying index candidate", extra={"extra": {"tile": tile_url, "candidate": candidate}})
            try:
                s = await fetcher.fetch(base, candidate)
            except Exception as e:
                log.debug("Candidate fetch failed", extra={"extra": {"candidate": candidate, "error": str(e)}})
                error = e
                continue
            try:
                s = _ensure_seekable(s)
                empty = _stream_size(s) == 0
            except Exception as e:
                s.close()
                error = e
                continue
            if empty:
                s.close()
                error = FetchError(f"empty response for {candidate}")
                continue
            stream, name, error = s, candidate, None
            break

        if stream is None:
            msg = "download failed" + (f" {error}" if error is not None else "")
            log.warning("Index load failed", extra={"extra": {"mode": mode.value, "tile": tile_url, "reason": msg}})
            fail(mode, tile_url, msg)
            return

        with stream:
            kind = ContainerKind.from_name(name)
            if kind is None:
                msg = f"unhandled file type: {url_extension(name)}"
                log.warning("Index load failed", extra={"extra": {"mode": mode.value, "tile": tile_url, "reason": msg}})
                fail(mode, tile_url, msg)
                return
            try:
                index = decode_index(kind, stream, compressed=mode.compressed, name=name)
            except Exception as e:
                msg = f"failed to parse {name}: {e}"
                log.warning(
                    "Index decode failed",
                    extra={"extra": {"mode": mode.value, "tile": tile_url, "candidate": name, "reason": str(e)}},
                )
                fail(mode, tile_url, msg)
                return

        log.info(
            "Index loaded",
            extra={"extra": {"tile": tile_url, "source": name, "width": index.width, "height": index.height}},
        )
        success(index)

    async def fetch_index(self, mode: Union[str, IndexMode], tile_url: str) -> Optional[IndexMap]:
        """
        Exception-style wrapper around load(): returns the IndexMap (None when the mode skips
        loading) or raises IndexLoadError with the failure message.
        """
        result: Dict[str, Any] = {}

        def _ok(index: Optional[IndexMap]) -> None:
            result["index"] = index

        def _fail(m: Union[IndexMode, str], url: str, msg: str) -> None:
            result["error"] = IndexLoadError(msg, mode=m, tile_url=url)

        await self.load(mode, tile_url, _ok, _fail)
        if "error" in result:
            raise result["error"]
        return result.get("index")
