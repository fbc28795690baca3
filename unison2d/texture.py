"""Texture handles, pixel formats, sampling modes and texture descriptors."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from typing import ClassVar

__all__ = [
    "TextureDescriptor",
    "TextureFilter",
    "TextureFormat",
    "TextureId",
    "TextureWrap",
]

_U32_MAX = 0xFFFFFFFF


@dataclass(frozen=True)
class TextureId:
    """Opaque handle to a texture resource."""

    value: int

    NONE: ClassVar["TextureId"]

    def is_valid(self) -> bool:
        """Whether this handle refers to a texture rather than being ``NONE``."""
        return self.value != _U32_MAX


TextureId.NONE = TextureId(_U32_MAX)


class TextureFormat(enum.Enum):
    """Texture pixel format."""

    R8 = "r8"
    RG8 = "rg8"
    RGB8 = "rgb8"
    RGBA8 = "rgba8"

    def bytes_per_pixel(self) -> int:
        return _BYTES_PER_PIXEL[self]


_BYTES_PER_PIXEL = {
    TextureFormat.R8: 1,
    TextureFormat.RG8: 2,
    TextureFormat.RGB8: 3,
    TextureFormat.RGBA8: 4,
}


class TextureFilter(enum.Enum):
    """Texture filtering mode."""

    NEAREST = "nearest"
    LINEAR = "linear"
    LINEAR_MIPMAP = "linear_mipmap"


class TextureWrap(enum.Enum):
    """Texture wrapping mode."""

    REPEAT = "repeat"
    CLAMP_TO_EDGE = "clamp_to_edge"
    MIRRORED_REPEAT = "mirrored_repeat"


@dataclass
class TextureDescriptor:
    """Everything needed to create a texture: size, format, pixels and sampling."""

    width: int
    height: int
    format: TextureFormat = TextureFormat.RGBA8
    data: bytes = b""
    min_filter: TextureFilter = TextureFilter.LINEAR
    mag_filter: TextureFilter = TextureFilter.LINEAR
    wrap_u: TextureWrap = TextureWrap.CLAMP_TO_EDGE
    wrap_v: TextureWrap = TextureWrap.CLAMP_TO_EDGE

    def with_filter(self, filter: TextureFilter) -> "TextureDescriptor":
        """A copy using ``filter`` for both minification and magnification."""
        return dataclasses.replace(self, min_filter=filter, mag_filter=filter)

    def with_wrap(self, wrap: TextureWrap) -> "TextureDescriptor":
        """A copy using ``wrap`` on both axes."""
        return dataclasses.replace(self, wrap_u=wrap, wrap_v=wrap)

    def is_power_of_two(self) -> bool:
        """Whether both dimensions are powers of two."""
        return _is_pow2(self.width) and _is_pow2(self.height)


def _is_pow2(n: int) -> bool:
    return n > 0 and n & (n - 1) == 0