"""Sprites, sprite sheets and the RGBA colour values they carry."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Tuple

from unison2d.texture import TextureId

__all__ = ["Color", "Sprite", "SpriteSheet", "WHITE"]

Color = Tuple[float, float, float, float]
"""An RGBA colour with components in 0..1."""

WHITE: Color = (1.0, 1.0, 1.0, 1.0)

UV = Tuple[float, float, float, float]


@dataclass
class Sprite:
    """A textured quad with UV rectangle, tint and pivot."""

    texture: TextureId = TextureId.NONE
    uv: UV = (0.0, 0.0, 1.0, 1.0)
    color: Color = WHITE
    pivot: Tuple[float, float] = (0.5, 0.5)

    @classmethod
    def from_texture(cls, texture: TextureId) -> "Sprite":
        """A sprite covering the whole of ``texture``."""
        return cls(texture=texture)

    def with_uv(self, min_u: float, min_v: float, max_u: float, max_v: float) -> "Sprite":
        return dataclasses.replace(self, uv=(min_u, min_v, max_u, max_v))

    def with_color(self, color: Color) -> "Sprite":
        return dataclasses.replace(self, color=color)

    def with_pivot(self, x: float, y: float) -> "Sprite":
        return dataclasses.replace(self, pivot=(x, y))


class SpriteSheet:
    """A texture divided into a grid of equally sized frames."""

    def __init__(
        self,
        texture: TextureId,
        texture_width: int,
        texture_height: int,
        frame_width: int,
        frame_height: int,
    ) -> None:
        self.texture = texture
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.columns = texture_width // frame_width
        self.rows = texture_height // frame_height
        self.frame_count = self.columns * self.rows

    def __repr__(self) -> str:
        return (
            f"SpriteSheet(texture={self.texture!r}, frame_width={self.frame_width}, "
            f"frame_height={self.frame_height}, columns={self.columns}, rows={self.rows}, "
            f"frame_count={self.frame_count})"
        )

    def frame_uv(self, index: int) -> UV:
        """UV rectangle of frame ``index``; indices wrap around the frame count."""
        index %= self.frame_count
        row, col = divmod(index, self.columns)
        u_size = 1.0 / self.columns
        v_size = 1.0 / self.rows
        min_u = col * u_size
        min_v = row * v_size
        return (min_u, min_v, min_u + u_size, min_v + v_size)

    def sprite(self, frame: int) -> Sprite:
        """A centred, untinted sprite showing ``frame``."""
        return Sprite(texture=self.texture, uv=self.frame_uv(frame), color=WHITE, pivot=(0.5, 0.5))