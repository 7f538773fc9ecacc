"""
Synthetic index inputs for tests.

The library itself is read-only; these encoders exist so tests can build PPM, gzipped PPM,
GLB, b3dm and glTF inputs in memory.
"""
from .index_factory import (
    build_b3dm,
    build_glb,
    encode_ppm,
    gzip_bytes,
    index_gltf,
    random_samples,
)

__all__ = ["build_b3dm", "build_glb", "encode_ppm", "gzip_bytes", "index_gltf", "random_samples"]
