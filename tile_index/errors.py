"""
Exceptions raised while locating and decoding tile index maps.

Decode errors are fatal for one candidate only; the loader catches them at its boundary and
reports them through the failure callback.
"""
from __future__ import annotations

from typing import Optional


class IndexLoadError(RuntimeError):
    """Terminal failure of a whole load request (every candidate tried, or the decode failed)."""

    def __init__(self, message: str, mode: Optional[object] = None, tile_url: Optional[str] = None):
        super().__init__(message)
        self.mode = mode
        self.tile_url = tile_url


class FetchError(IOError):
    """Transport could not deliver a candidate resource."""
    pass


class IndexDecodeError(ValueError):
    """Base class for format errors in fetched bytes."""
    pass


class ContainerFormatError(IndexDecodeError):
    """Bad GLB/b3dm envelope: magic, version, length, chunk layout."""
    pass


class DocumentError(IndexDecodeError):
    """glTF JSON is unusable: bad references, unsupported buffers or URIs."""
    pass


class MimeTypeError(IndexDecodeError):
    """Index image has a media type that is not a (gzipped) PPM."""
    pass


class RasterFormatError(IndexDecodeError):
    """PPM header or sample data is invalid or truncated."""
    pass
