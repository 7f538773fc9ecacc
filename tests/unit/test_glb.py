"""
Unit tests for GLB / b3dm / glTF container decoding
"""

import gzip
import io
import json
import struct
import pytest
import numpy as np
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from tile_index.errors import ContainerFormatError, DocumentError
from tile_index.glb import decode_b3dm, decode_glb, decode_gltf, read_glb, strip_b3dm
from tests.fixtures import build_b3dm, build_glb, encode_ppm, gzip_bytes, index_gltf, random_samples

SAMPLES = random_samples(4, 3, seed=5)
PPM = encode_ppm(SAMPLES)


def _assert_index(index):
    assert (index.width, index.height) == (4, 3)
    for b in range(3):
        np.testing.assert_array_equal(index.band(b), SAMPLES[..., b])


def _glb(ppm=PPM, mime="image/x-portable-pixmap", **kw):
    doc, payload = index_gltf(ppm, mime_type=mime)
    return build_glb(doc, payload, **kw)


class TestReadGlb:
    """Test cases for the GLB envelope"""

    def test_json_and_bin_chunks(self):
        glb = build_glb({"asset": {"version": "2.0"}}, b"\x01\x02\x03\x04")
        json_chunk, bin_chunk = read_glb(glb)
        assert json.loads(json_chunk) == {"asset": {"version": "2.0"}}
        assert bin_chunk == b"\x01\x02\x03\x04"

    def test_bin_chunk_optional(self):
        _, bin_chunk = read_glb(build_glb({}))
        assert bin_chunk is None

    def test_bad_magic(self):
        with pytest.raises(ContainerFormatError, match="invalid glb magic"):
            read_glb(build_glb({}, magic=b"gltf"))

    def test_bad_version(self):
        with pytest.raises(ContainerFormatError, match="invalid glb version: 1"):
            read_glb(build_glb({}, version=1))

    def test_truncated_header(self):
        with pytest.raises(ContainerFormatError, match="truncated glb"):
            read_glb(b"glTF\x02\x00")

    def test_length_beyond_data(self):
        with pytest.raises(ContainerFormatError, match="truncated glb"):
            read_glb(build_glb({}, length_delta=8))

    def test_chunk_overruns_length(self):
        glb = build_glb({}, b"\x00" * 8)
        # shrink the declared total so the BIN chunk no longer fits
        glb = glb[:8] + struct.pack("<I", len(glb) - 4) + glb[12:]
        with pytest.raises(ContainerFormatError, match="overruns length"):
            read_glb(glb)

    def test_length_smaller_than_header(self):
        glb = build_glb({})
        glb = glb[:8] + struct.pack("<I", 4) + glb[12:]
        with pytest.raises(ContainerFormatError, match="invalid glb length"):
            read_glb(glb)

    def test_unknown_chunk_type(self):
        glb = build_glb({}, extra_chunks=[(b"XTRA", b"\x00" * 4)])
        with pytest.raises(ContainerFormatError, match="invalid glb chunk type"):
            read_glb(glb)

    def test_bin_tag_needs_null_byte(self):
        glb = build_glb({}, extra_chunks=[(b"BIN ", b"\x00" * 4)])
        with pytest.raises(ContainerFormatError, match="invalid glb chunk type"):
            read_glb(glb)

    def test_duplicate_json_chunk(self):
        glb = build_glb({}, extra_chunks=[(b"JSON", b"{}  ")])
        with pytest.raises(ContainerFormatError, match="more than one JSON chunk"):
            read_glb(glb)

    def test_duplicate_bin_chunk(self):
        glb = build_glb({}, b"\x00" * 4, extra_chunks=[(b"BIN\x00", b"\x00" * 4)])
        with pytest.raises(ContainerFormatError, match="more than one BIN chunk"):
            read_glb(glb)

    def test_missing_json_chunk(self):
        body = struct.pack("<I4s", 4, b"BIN\x00") + b"\x00" * 4
        glb = struct.pack("<4sII", b"glTF", 2, 12 + len(body)) + body
        with pytest.raises(ContainerFormatError, match="no JSON chunk"):
            read_glb(glb)


class TestDecodeContainers:
    """Test cases for decode_glb / decode_b3dm / decode_gltf"""

    def test_decode_glb(self):
        _assert_index(decode_glb(_glb()))

    def test_decode_glb_from_stream(self):
        _assert_index(decode_glb(io.BytesIO(_glb())))

    def test_mode_compression_flag(self):
        _assert_index(decode_glb(_glb(ppm=gzip_bytes(PPM)), compressed=True))

    def test_image_mime_overrides_mode_flag(self):
        """A +gzip image decompresses even though the caller did not ask for it"""
        glb = _glb(ppm=gzip_bytes(PPM), mime="image/x-portable-pixmap+gzip")
        _assert_index(decode_glb(glb, compressed=False))

    def test_wrong_magic_never_decodes(self):
        with pytest.raises(ContainerFormatError):
            decode_glb(_glb(magic=b"xxxx"))

    def test_document_errors_propagate(self):
        doc, payload = index_gltf(PPM)
        doc["bufferViews"][1]["byteStride"] = 8
        with pytest.raises(DocumentError):
            decode_glb(build_glb(doc, payload))

    def test_decode_b3dm(self):
        _assert_index(decode_b3dm(build_b3dm(_glb(), batch_table_json=b'{"id":[]}')))

    def test_strip_b3dm_returns_glb(self):
        glb = _glb()
        assert strip_b3dm(build_b3dm(glb)) == glb

    def test_b3dm_bad_magic(self):
        data = b"i3dm" + build_b3dm(_glb())[4:]
        with pytest.raises(ContainerFormatError, match="invalid b3dm magic"):
            decode_b3dm(data)

    def test_b3dm_bad_version(self):
        data = build_b3dm(_glb())
        data = data[:4] + struct.pack("<I", 2) + data[8:]
        with pytest.raises(ContainerFormatError, match="invalid b3dm version: 2"):
            decode_b3dm(data)

    def test_b3dm_truncated(self):
        data = build_b3dm(_glb())
        with pytest.raises(ContainerFormatError, match="truncated b3dm"):
            decode_b3dm(data[:-10])

    def test_b3dm_tables_overrun(self):
        data = build_b3dm(_glb())
        data = data[:12] + struct.pack("<I", 10 ** 6) + data[16:]
        with pytest.raises(ContainerFormatError, match="overrun"):
            decode_b3dm(data)

    def test_decode_gltf_text(self):
        doc, _ = index_gltf(PPM, embed="uri")
        _assert_index(decode_gltf(json.dumps(doc)))

    def test_decode_gltf_stream(self):
        doc, _ = index_gltf(gzip.compress(PPM), mime_type="image/x-portable-pixmap+gzip", embed="uri")
        _assert_index(decode_gltf(io.BytesIO(json.dumps(doc).encode("utf-8"))))
