"""
Unit tests for the PPM index decoder
"""

import io
import pytest
import tracemalloc
import numpy as np
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from tile_index.errors import RasterFormatError
from tile_index.ppm import decode_ppm
from tests.fixtures import encode_ppm, gzip_bytes, random_samples


def _assert_same(index, samples):
    height, width, _ = samples.shape
    assert index.width == width
    assert index.height == height
    for b in range(3):
        np.testing.assert_array_equal(index.band(b), samples[..., b])


class RecordingStream(io.BytesIO):
    """BytesIO that remembers the largest read size requested."""

    def __init__(self, data):
        super().__init__(data)
        self.largest_read = 0

    def read(self, size=-1):
        self.largest_read = max(self.largest_read, size)
        return super().read(size)


class TestDecodePPM:
    """Test cases for decode_ppm"""

    def test_8bit(self):
        samples = random_samples(5, 4, maxval=255)
        _assert_same(decode_ppm(encode_ppm(samples, 255)), samples)

    def test_16bit_big_endian(self):
        samples = random_samples(3, 2, maxval=65535, seed=3)
        _assert_same(decode_ppm(encode_ppm(samples, 65535)), samples)

    def test_16bit_byte_order(self):
        data = b"P6 1 1 65535\n" + bytes([0x01, 0x02, 0x00, 0x00, 0xFF, 0xFE])
        index = decode_ppm(data)
        assert index[0, 0, 0] == 0x0102
        assert index[1, 0, 0] == 0
        assert index[2, 0, 0] == 0xFFFE

    def test_maxval_256_uses_two_bytes(self):
        samples = np.full((1, 2, 3), 256)
        _assert_same(decode_ppm(encode_ppm(samples, 256)), samples)

    def test_gzip_compressed(self):
        samples = random_samples(6, 6, seed=11)
        _assert_same(decode_ppm(gzip_bytes(encode_ppm(samples)), compressed=True), samples)

    def test_accepts_stream(self):
        samples = random_samples(2, 2)
        _assert_same(decode_ppm(io.BytesIO(encode_ppm(samples))), samples)

    def test_comments_in_header(self):
        samples = random_samples(2, 3)
        data = encode_ppm(samples, comment="generated index")
        _assert_same(decode_ppm(data), samples)

    def test_comment_between_tokens(self):
        data = b"P6\n2 # width\n1\n255\n" + bytes(range(6))
        index = decode_ppm(data)
        assert (index.width, index.height) == (2, 1)
        assert index[2, 0, 1] == 5

    def test_single_whitespace_after_maxval(self):
        """A sample byte that looks like whitespace must not be eaten"""
        data = b"P6 1 1 255\n" + b"\n\x20\x09"
        index = decode_ppm(data)
        assert [index[b, 0, 0] for b in range(3)] == [0x0A, 0x20, 0x09]

    def test_bad_magic(self):
        with pytest.raises(RasterFormatError, match="unexpected PPM magic: P3"):
            decode_ppm(b"P3 1 1 255\n\x00\x00\x00")

    def test_bad_width(self):
        with pytest.raises(RasterFormatError, match="error parsing PPM width: abc"):
            decode_ppm(b"P6 abc 1 255\n\x00\x00\x00")

    def test_zero_height(self):
        with pytest.raises(RasterFormatError, match="height must be positive"):
            decode_ppm(b"P6 1 0 255\n")

    @pytest.mark.parametrize("maxval", [0, 65536])
    def test_maxval_out_of_range(self, maxval):
        with pytest.raises(RasterFormatError, match="max value must be in range 1-65535"):
            decode_ppm(f"P6 1 1 {maxval}\n".encode("ascii") + b"\x00" * 6)

    def test_unparsable_maxval(self):
        with pytest.raises(RasterFormatError, match="unexpected PPM max val"):
            decode_ppm(b"P6 1 1 x\n\x00\x00\x00")

    def test_header_eof(self):
        with pytest.raises(RasterFormatError, match="unexpected EOF parsing PPM header"):
            decode_ppm(b"P6 4 4")

    def test_truncated_samples_report_row_and_col(self):
        samples = random_samples(4, 3)
        data = encode_ppm(samples)
        # header + 1 full row (4 px) + 2 px of the second row + 1 stray byte
        cut = len(data) - (3 * 4 * 3) + (4 * 3) + (2 * 3) + 1
        with pytest.raises(RasterFormatError, match=r"row=1 of 3, col=2 of 4"):
            decode_ppm(data[:cut])

    def test_corrupt_gzip(self):
        with pytest.raises(RasterFormatError, match="error decompressing PPM"):
            decode_ppm(b"not gzip at all", compressed=True)

    def test_truncated_gzip(self):
        packed = gzip_bytes(encode_ppm(random_samples(8, 8)))
        with pytest.raises(RasterFormatError):
            decode_ppm(packed[: len(packed) // 2], compressed=True)


    @pytest.mark.parametrize("header", [
        b"P6 +4 1 255\n",
        b"P6 1_000 1 255\n",
        b"P6 -1 1 255\n",
        b"P6 \xd9\xa3 1 255\n",
    ])
    def test_width_must_be_plain_decimal(self, header):
        with pytest.raises(RasterFormatError, match="error parsing PPM width"):
            decode_ppm(header + b"\x00" * 12)

    @pytest.mark.parametrize("maxval", [b"+255", b"2_55", b"0x10"])
    def test_maxval_must_be_plain_decimal(self, maxval):
        with pytest.raises(RasterFormatError, match="unexpected PPM max val"):
            decode_ppm(b"P6 1 1 " + maxval + b"\n\x00\x00\x00")


class TestHugeDeclaredDimensions:
    """A tiny input claiming a huge raster must fail without buffering the claimed size"""

    HEADER = b"P6 10000 10000 255\n"

    def test_reads_are_bounded(self):
        stream = RecordingStream(self.HEADER + b"\x01\x02\x03\x04\x05\x06")
        with pytest.raises(RasterFormatError, match=r"row=0 of 10000, col=2 of 10000"):
            decode_ppm(stream)
        assert stream.largest_read <= 1 << 20

    def test_truncated_file_fails_fast(self, tmp_path):
        path = tmp_path / "huge.ppm"
        path.write_bytes(self.HEADER + b"\x00" * 6)
        tracemalloc.start()
        try:
            with path.open("rb") as f:
                with pytest.raises(RasterFormatError, match="unexpected EOF at PPM"):
                    decode_ppm(f)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()
        assert peak < 32 * 1024 * 1024

    def test_truncated_gzip_fails_fast(self):
        packed = gzip_bytes(self.HEADER + b"\x00" * 6)
        tracemalloc.start()
        try:
            with pytest.raises(RasterFormatError, match="unexpected EOF at PPM"):
                decode_ppm(packed, compressed=True)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()
        assert peak < 32 * 1024 * 1024
