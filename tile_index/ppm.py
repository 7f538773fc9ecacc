from __future__ import annotations

"""
PPM (netpbm P6) reader for index maps.

Format (http://netpbm.sourceforge.net/doc/ppm.html):
    P6 <width> <height> <maxval><single whitespace byte><binary samples>

Header tokens are separated by whitespace and '#' comments (to end of line). Samples are 1 byte
when maxval < 256, otherwise 2 bytes big-endian, stored row-major with the 3 bands interleaved per
pixel. Index files may additionally be wrapped in gzip (.ppmz, image/x-portable-pixmap+gzip).
"""

import gzip
import io
import zlib
from typing import BinaryIO, Optional, Union

import numpy as np

from common.logging_setup import get_logger
from tile_index.errors import RasterFormatError
from tile_index.index_map import BANDS, IndexMap


log = get_logger("tile_index.ppm")

PPM_MAGIC = "P6"
MAX_MAXVAL = 65535
# Header tokens longer than this are not numbers we could use
_MAX_TOKEN_LEN = 1000
_WHITESPACE = b" \t\r\n\x0b\x0c"
# Sample data is read in pieces of at most this many bytes
_READ_CHUNK = 1 << 20


def _parse_uint(tok: str) -> Optional[int]:
    """Plain ASCII decimal digits only; int() alone would also take "+5" or "1_000"."""
    if not tok or not (tok.isascii() and tok.isdigit()):
        return None
    return int(tok)


class _HeaderReader:
    """Byte-at-a-time tokenizer over the ASCII header; leaves the stream at the sample data."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def _read_byte(self) -> bytes:
        b = self._stream.read(1)
        if not b:
            raise RasterFormatError("unexpected EOF parsing PPM header")
        return b

    def _skip_comment(self) -> None:
        while self._read_byte() not in (b"\n", b"\r"):
            pass

    def token(self) -> str:
        """
        Next token. Consumes exactly one terminator byte after it (whitespace, or a whole comment
        line), so after the maxval token the stream is positioned at the first sample.
        """
        ch = self._read_byte()
        while ch in _WHITESPACE or ch == b"#":
            if ch == b"#":
                self._skip_comment()
            ch = self._read_byte()

        buf = bytearray()
        while ch not in _WHITESPACE:
            if ch == b"#":
                self._skip_comment()
                break
            buf += ch
            if len(buf) > _MAX_TOKEN_LEN:
                raise RasterFormatError("PPM header token too long")
            ch = self._read_byte()
        return buf.decode("ascii", errors="replace")

    def positive_int(self, what: str) -> int:
        tok = self.token()
        value = _parse_uint(tok)
        if value is None:
            raise RasterFormatError(f"error parsing PPM {what}: {tok}")
        if value <= 0:
            raise RasterFormatError(f"PPM {what} must be positive, got: {value}")
        return value


def _open(source: Union[bytes, bytearray, memoryview, BinaryIO], compressed: bool) -> BinaryIO:
    stream = io.BytesIO(bytes(source)) if isinstance(source, (bytes, bytearray, memoryview)) else source
    if compressed:
        stream = gzip.GzipFile(fileobj=stream, mode="rb")
    return stream


def _read_exact(stream: BinaryIO, n: int) -> bytes:
    chunks = []
    remaining = n
    while remaining > 0:
        chunk = stream.read(min(remaining, _READ_CHUNK))
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def decode_ppm(
    source: Union[bytes, bytearray, memoryview, BinaryIO],
    compressed: bool = False,
    name: Optional[str] = None,
) -> IndexMap:
    """
    Decode a P6 PPM (optionally gzip wrapped) into an IndexMap.

    Params:
        source: raw bytes or a readable binary stream positioned at the PPM header
        compressed: gunzip the input before parsing
        name: used only for log context

    Raises:
        RasterFormatError on any header/data problem, including corrupt or truncated gzip.
    """
    stream = _open(source, compressed)
    try:
        return _decode(stream, name)
    except (EOFError, OSError, zlib.error) as e:
        if not compressed:
            raise
        # gzip.BadGzipFile is an OSError; a cut-off gzip member raises EOFError
        raise RasterFormatError(f"error decompressing PPM: {e}") from e
    finally:
        if compressed:
            stream.close()


def _decode(stream: BinaryIO, name: Optional[str]) -> IndexMap:
    header = _HeaderReader(stream)

    magic = header.token()
    if magic != PPM_MAGIC:
        raise RasterFormatError(f"unexpected PPM magic: {magic}")

    width = header.positive_int("width")
    height = header.positive_int("height")

    tok = header.token()
    maxval = _parse_uint(tok)
    if maxval is None:
        raise RasterFormatError(f"unexpected PPM max val: {tok}")
    if maxval <= 0 or maxval > MAX_MAXVAL:
        raise RasterFormatError(f"max value must be in range 1-{MAX_MAXVAL}, got: {maxval}")

    bytes_per_sample = 1 if maxval < 256 else 2
    expected = height * width * BANDS * bytes_per_sample
    raw = _read_exact(stream, expected)
    if len(raw) < expected:
        pixel = len(raw) // (BANDS * bytes_per_sample)
        row, col = divmod(pixel, width)
        raise RasterFormatError(
            f"unexpected EOF at PPM row={row} of {height}, col={col} of {width}"
        )

    dtype = np.uint8 if bytes_per_sample == 1 else np.dtype(">u2")
    samples = np.frombuffer(raw, dtype=dtype).reshape(height, width, BANDS)
    index = IndexMap.from_samples(width, height, samples)
    log.debug(
        "Decoded PPM index",
        extra={"extra": {"name": name, "width": width, "height": height, "maxval": maxval}},
    )
    return index
