from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from common.utils import abbreviate
from tile_index.errors import DocumentError, MimeTypeError


JPG_MIME = "image/jpeg"
PNG_MIME = "image/png"
PPMZ_MIME = "image/x-portable-pixmap+gzip"
PPM_MIME = "image/x-portable-pixmap"
BIN_MIME = "application/octet-stream"

# Longest first so "+gzip" wins over its plain prefix
DATA_URI_MIMES = (PPMZ_MIME, PPM_MIME, BIN_MIME, JPG_MIME, PNG_MIME)

# images[0] is the tile texture, images[1] the index map
INDEX_IMAGE = 1


def _opt_int(d: Dict[str, Any], key: str, where: str) -> Optional[int]:
    v = d.get(key)
    if v is None:
        return None
    if isinstance(v, bool) or not isinstance(v, int) or v < 0:
        raise DocumentError(f"invalid glTF {where}.{key}: {v!r}")
    return v


def _opt_str(d: Dict[str, Any], key: str, where: str) -> Optional[str]:
    v = d.get(key)
    if v is None:
        return None
    if not isinstance(v, str):
        raise DocumentError(f"invalid glTF {where}.{key}: {abbreviate(repr(v))}")
    return v


def _entries(root: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    items = root.get(key)
    if items is None:
        return []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise DocumentError(f"invalid glTF {key}: expected a list of objects")
    return items


def decode_data_uri(uri: str) -> Tuple[bytes, str]:
    """
    Decode 'data:<mime>;base64,<payload>' for the media types an index container may carry.
    Whitespace and line breaks inside the payload are ignored. Returns (bytes, mime_type).
    """
    for mime in DATA_URI_MIMES:
        prefix = f"data:{mime};base64,"
        if uri[: len(prefix)].lower() == prefix:
            try:
                payload = "".join(uri[len(prefix):].split())
                return base64.b64decode(payload, validate=True), mime
            except (binascii.Error, ValueError) as e:
                raise DocumentError(f"invalid base64 in glTF data URI: {e}") from e
    raise DocumentError(f"unsupported data URI for glTF: {abbreviate(uri)}")


@dataclass
class GltfBuffer:
    byte_length: int
    uri: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any], i: int) -> "GltfBuffer":
        return cls(
            byte_length=_opt_int(d, "byteLength", f"buffers[{i}]") or 0,
            uri=_opt_str(d, "uri", f"buffers[{i}]"),
        )


@dataclass
class GltfBufferView:
    buffer: int
    byte_length: int
    byte_offset: int = 0
    byte_stride: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any], i: int) -> "GltfBufferView":
        where = f"bufferViews[{i}]"
        buffer = _opt_int(d, "buffer", where)
        byte_length = _opt_int(d, "byteLength", where)
        if buffer is None or byte_length is None:
            raise DocumentError(f"glTF {where} requires buffer and byteLength")
        return cls(
            buffer=buffer,
            byte_length=byte_length,
            byte_offset=_opt_int(d, "byteOffset", where) or 0,
            byte_stride=_opt_int(d, "byteStride", where),
        )


@dataclass
class GltfImage:
    uri: Optional[str] = None
    mime_type: Optional[str] = None
    buffer_view: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any], i: int) -> "GltfImage":
        where = f"images[{i}]"
        return cls(
            uri=_opt_str(d, "uri", where),
            mime_type=_opt_str(d, "mimeType", where),
            buffer_view=_opt_int(d, "bufferView", where),
        )


@dataclass
class GltfDocument:
    """
    The part of a glTF 2.0 document needed to find an embedded index image.
    Unknown members (meshes, materials, ...) are ignored.

    `data` is the binary payload for buffer 0: the GLB BIN chunk, or a base64
    application/octet-stream data URI in buffers[0].uri.
    """
    buffers: List[GltfBuffer] = field(default_factory=list)
    buffer_views: List[GltfBufferView] = field(default_factory=list)
    images: List[GltfImage] = field(default_factory=list)
    data: Optional[bytes] = field(default=None, repr=False)

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "GltfDocument":
        try:
            root = json.loads(text)
        except (UnicodeDecodeError, ValueError) as e:
            raise DocumentError(f"invalid glTF JSON: {e}") from e
        if not isinstance(root, dict):
            raise DocumentError("invalid glTF JSON: root is not an object")

        doc = cls(
            buffers=[GltfBuffer.from_dict(d, i) for i, d in enumerate(_entries(root, "buffers"))],
            buffer_views=[GltfBufferView.from_dict(d, i) for i, d in enumerate(_entries(root, "bufferViews"))],
            images=[GltfImage.from_dict(d, i) for i, d in enumerate(_entries(root, "images"))],
        )
        if doc.buffers and doc.buffers[0].uri and doc.buffers[0].uri.startswith("data:" + BIN_MIME):
            doc.data, _ = decode_data_uri(doc.buffers[0].uri)
            doc.buffers[0].uri = None
        return doc

    # -------- public API --------

    def extract_index(self) -> Tuple[bytes, bool]:
        """
        Return (raw PPM bytes, compressed) for the index image.
        `compressed` is True when the image itself is declared as gzipped PPM.
        """
        if INDEX_IMAGE >= len(self.images):
            raise DocumentError(f"no glTF image at index {INDEX_IMAGE}")
        image = self.images[INDEX_IMAGE]

        if image.buffer_view is not None and image.mime_type:
            mime_type = image.mime_type
            raw = self._slice(image.buffer_view)
        elif image.uri and image.uri.startswith("data:"):
            raw, mime_type = decode_data_uri(image.uri)
        else:
            raise DocumentError(f"unhandled glTF image URI: {abbreviate(image.uri)}")

        mt = mime_type.lower()
        if mt == PPMZ_MIME:
            return raw, True
        if mt == PPM_MIME:
            return raw, False
        raise MimeTypeError(f"unhandled glTF mime type: {mime_type}")

    # -------- internals --------

    def _buffer_view(self, index: int) -> GltfBufferView:
        if index >= len(self.buffer_views):
            raise DocumentError(f"no glTF buffer view at index {index}")
        view = self.buffer_views[index]
        if view.buffer >= len(self.buffers):
            raise DocumentError(f"no glTF buffer at index {view.buffer}")
        uri = self.buffers[view.buffer].uri
        if uri:
            raise DocumentError(f"glTF buffer uri not supported {abbreviate(uri)}")
        if view.buffer > 0:
            raise DocumentError(f"glTF buffer index not supported {view.buffer}")
        if self.data is None or len(self.data) < view.byte_offset + view.byte_length:
            raise DocumentError("glTF buffer view exceeds available data")
        if view.byte_stride is not None and view.byte_stride > 1:
            raise DocumentError(f"glTF byte stride not supported: {view.byte_stride}")
        return view

    def _slice(self, index: int) -> bytes:
        view = self._buffer_view(index)
        return bytes(self.data[view.byte_offset: view.byte_offset + view.byte_length])
