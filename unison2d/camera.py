"""Two-dimensional orthographic camera."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["Camera"]


@dataclass
class Camera:
    """Orthographic camera centred on (x, y) with a viewport in world units."""

    width: float = 20.0
    height: float = 15.0
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0
    rotation: float = 0.0

    def set_position(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def translate(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy

    def move_toward(self, target_x: float, target_y: float, smoothing: float) -> None:
        """Move a fraction ``smoothing`` of the way toward the target."""
        self.x += (target_x - self.x) * smoothing
        self.y += (target_y - self.y) * smoothing

    def _half_extents(self) -> tuple[float, float]:
        return self.width / (2.0 * self.zoom), self.height / (2.0 * self.zoom)

    def bounds(self) -> tuple[float, float, float, float]:
        """Visible region as (min_x, min_y, max_x, max_y)."""
        half_w, half_h = self._half_extents()
        return (self.x - half_w, self.y - half_h, self.x + half_w, self.y + half_h)

    def is_visible(self, x: float, y: float) -> bool:
        min_x, min_y, max_x, max_y = self.bounds()
        return min_x <= x <= max_x and min_y <= y <= max_y

    def screen_to_world(
        self, screen_x: float, screen_y: float, screen_width: float, screen_height: float
    ) -> tuple[float, float]:
        """Map a screen pixel (origin top-left) to world coordinates."""
        nx = (screen_x / screen_width) * 2.0 - 1.0
        ny = 1.0 - (screen_y / screen_height) * 2.0
        half_w, half_h = self._half_extents()
        return self.x + nx * half_w, self.y + ny * half_h

    def world_to_screen(
        self, world_x: float, world_y: float, screen_width: float, screen_height: float
    ) -> tuple[float, float]:
        """Map world coordinates to a screen pixel (origin top-left)."""
        half_w, half_h = self._half_extents()
        nx = (world_x - self.x) / half_w
        ny = (world_y - self.y) / half_h
        return (nx + 1.0) * 0.5 * screen_width, (1.0 - ny) * 0.5 * screen_height