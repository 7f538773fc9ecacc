"""
Binary glTF (GLB) and Batched 3D Model (b3dm) envelopes.

GLB:   magic 'glTF' | uint32 version (2) | uint32 total length (incl. this 12 byte header)
       then chunks: uint32 length | 4 byte type ('JSON' or 'BIN\\0') | payload
b3dm:  magic 'b3dm' | uint32 version (1) | uint32 byteLength |
       uint32 featureTableJSON | featureTableBinary | batchTableJSON | batchTableBinary lengths
       then those four tables, then a GLB.

All integers are little-endian.
"""

from __future__ import annotations

import struct
from typing import BinaryIO, Optional, Tuple, Union

from common.logging_setup import get_logger
from tile_index.errors import ContainerFormatError
from tile_index.gltf import GltfDocument
from tile_index.index_map import IndexMap
from tile_index.ppm import decode_ppm


log = get_logger("tile_index.glb")

GLB_MAGIC = b"glTF"
GLB_VERSION = 2
GLB_HEADER = struct.Struct("<4sII")
CHUNK_HEADER = struct.Struct("<I4s")
CHUNK_JSON = b"JSON"
CHUNK_BIN = b"BIN\x00"

B3DM_MAGIC = b"b3dm"
B3DM_VERSION = 1
B3DM_HEADER = struct.Struct("<4s6I")

Source = Union[bytes, bytearray, memoryview, BinaryIO]


def _as_bytes(source: Source) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    return source.read()


def read_glb(data: bytes) -> Tuple[bytes, Optional[bytes]]:
    """
    Split a GLB into its JSON chunk and optional BIN chunk.

    Raises:
        ContainerFormatError for bad magic/version, length overruns, truncation,
        unknown or duplicate chunks, or a missing JSON chunk.
    """
    if len(data) < GLB_HEADER.size:
        raise ContainerFormatError("truncated glb: missing header")
    magic, version, total_length = GLB_HEADER.unpack_from(data, 0)
    if magic != GLB_MAGIC:
        raise ContainerFormatError(f"invalid glb magic: {magic!r}")
    if version != GLB_VERSION:
        raise ContainerFormatError(f"invalid glb version: {version}")
    if total_length < GLB_HEADER.size:
        raise ContainerFormatError(f"invalid glb length: {total_length}")
    if total_length > len(data):
        raise ContainerFormatError(f"truncated glb: length {total_length} but only {len(data)} bytes")

    json_chunk: Optional[bytes] = None
    bin_chunk: Optional[bytes] = None
    offset = GLB_HEADER.size
    while offset < total_length:
        if offset + CHUNK_HEADER.size > total_length:
            raise ContainerFormatError(f"glb chunk header overruns length at offset {offset}")
        chunk_length, chunk_type = CHUNK_HEADER.unpack_from(data, offset)
        offset += CHUNK_HEADER.size
        if offset + chunk_length > total_length:
            raise ContainerFormatError(f"glb chunk of {chunk_length} bytes overruns length at offset {offset}")
        payload = data[offset: offset + chunk_length]
        offset += chunk_length

        if chunk_type == CHUNK_JSON:
            if json_chunk is not None:
                raise ContainerFormatError("more than one JSON chunk in glb")
            json_chunk = payload
        elif chunk_type == CHUNK_BIN:
            if bin_chunk is not None:
                raise ContainerFormatError("more than one BIN chunk in glb")
            bin_chunk = payload
        else:
            raise ContainerFormatError(f"invalid glb chunk type: {chunk_type!r}")

    if json_chunk is None:
        raise ContainerFormatError("glb has no JSON chunk")
    return json_chunk, bin_chunk


def _decode_document(doc: GltfDocument, compressed: bool, name: Optional[str]) -> IndexMap:
    raw, image_compressed = doc.extract_index()
    log.debug(
        "Extracted index image",
        extra={"extra": {"name": name, "bytes": len(raw), "image_compressed": image_compressed}},
    )
    return decode_ppm(raw, compressed=compressed or image_compressed, name=name)


def decode_glb(source: Source, compressed: bool = False, name: Optional[str] = None) -> IndexMap:
    """Decode the index image embedded in a GLB."""
    json_chunk, bin_chunk = read_glb(_as_bytes(source))
    doc = GltfDocument.from_json(json_chunk)
    if bin_chunk is not None:
        doc.data = bin_chunk
    return _decode_document(doc, compressed, name)


def decode_gltf(source: Union[str, Source], compressed: bool = False, name: Optional[str] = None) -> IndexMap:
    """Decode the index image embedded (as data URIs) in a JSON .gltf."""
    text = source if isinstance(source, str) else _as_bytes(source)
    return _decode_document(GltfDocument.from_json(text), compressed, name)


def strip_b3dm(data: bytes) -> bytes:
    """Return the GLB carried by a b3dm, skipping its header and feature/batch tables."""
    if len(data) < B3DM_HEADER.size:
        raise ContainerFormatError("truncated b3dm: missing header")
    magic, version, byte_length, ft_json, ft_bin, bt_json, bt_bin = B3DM_HEADER.unpack_from(data, 0)
    if magic != B3DM_MAGIC:
        raise ContainerFormatError(f"invalid b3dm magic: {magic!r}")
    if version != B3DM_VERSION:
        raise ContainerFormatError(f"invalid b3dm version: {version}")
    if byte_length > len(data):
        raise ContainerFormatError(f"truncated b3dm: length {byte_length} but only {len(data)} bytes")
    start = B3DM_HEADER.size + ft_json + ft_bin + bt_json + bt_bin
    if start > byte_length:
        raise ContainerFormatError("b3dm feature/batch tables overrun length")
    return data[start:byte_length]


def decode_b3dm(source: Source, compressed: bool = False, name: Optional[str] = None) -> IndexMap:
    """Decode the index image embedded in the GLB of a b3dm tile."""
    return decode_glb(strip_b3dm(_as_bytes(source)), compressed=compressed, name=name)
