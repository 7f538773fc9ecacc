from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from common.utils import url_extension


class IndexMode(str, Enum):
    """Where (and in what encoding) a tile's index map is expected."""

    NONE = "none"                    # don't load indices
    DEFAULT = "default"              # defer to scene/tileset policy, see resolve_mode()
    EXTERNAL_PPM = "external_ppm"    # foo.{b3dm,glb,gltf} -> sibling foo.ppm or foo_index.ppm
    EXTERNAL_PPMZ = "external_ppmz"  # same, gzip compressed .ppmz
    EMBEDDED_PPM = "embedded_ppm"    # image 1 inside foo.{b3dm,glb,gltf}
    EMBEDDED_PPMZ = "embedded_ppmz"  # same, gzip compressed

    @property
    def skips_loading(self) -> bool:
        return self in (IndexMode.NONE, IndexMode.DEFAULT)

    @property
    def compressed(self) -> bool:
        return self in (IndexMode.EXTERNAL_PPMZ, IndexMode.EMBEDDED_PPMZ)

    @property
    def external(self) -> bool:
        return self in (IndexMode.EXTERNAL_PPM, IndexMode.EXTERNAL_PPMZ)

    @property
    def embedded(self) -> bool:
        return self in (IndexMode.EMBEDDED_PPM, IndexMode.EMBEDDED_PPMZ)

    @classmethod
    def parse(cls, value: Union[str, "IndexMode", None]) -> "IndexMode":
        """
        Accepts enum values ('external_ppmz'), member names in any case ('ExternalPPMZ',
        'EXTERNAL_PPMZ') and the descriptive aliases ('ExternalRasterCompressed').
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.DEFAULT
        key = str(value).strip().lower().replace("_", "").replace("-", "")
        mode = _ALIASES.get(key)
        if mode is None:
            raise ValueError(f"unknown index mode: {value!r}")
        return mode


_ALIASES = {m.value.replace("_", ""): m for m in IndexMode}
_ALIASES.update({
    "externalraster": IndexMode.EXTERNAL_PPM,
    "externalrastercompressed": IndexMode.EXTERNAL_PPMZ,
    "embeddedraster": IndexMode.EMBEDDED_PPM,
    "embeddedrastercompressed": IndexMode.EMBEDDED_PPMZ,
})


def resolve_mode(
    mode: Union[str, IndexMode, None],
    scene_mode: Union[str, IndexMode, None] = None,
    tileset_mode: Union[str, IndexMode, None] = None,
) -> IndexMode:
    """
    Resolve DEFAULT against caller policy: a scene-level mode overrides the tileset-level one.
    If neither is set (or both are DEFAULT) the result stays DEFAULT, i.e. no index is loaded.
    """
    m = IndexMode.parse(mode)
    if m is not IndexMode.DEFAULT:
        return m
    for candidate in (scene_mode, tileset_mode):
        if candidate is None:
            continue
        c = IndexMode.parse(candidate)
        if c is not IndexMode.DEFAULT:
            return c
    return IndexMode.DEFAULT


class ContainerKind(Enum):
    """Decode path for a fetched resource, chosen once from its file name."""

    B3DM = ".b3dm"
    GLB = ".glb"
    GLTF = ".gltf"
    PPM = ".ppm"
    PPMZ = ".ppmz"

    @classmethod
    def from_name(cls, name: str) -> Optional["ContainerKind"]:
        ext = url_extension(name)
        for kind in cls:
            if kind.value == ext:
                return kind
        return None

    @property
    def is_raster(self) -> bool:
        return self in (ContainerKind.PPM, ContainerKind.PPMZ)
