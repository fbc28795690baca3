"""Uniform-grid spatial hash for neighbourhood queries over mesh edges."""

from __future__ import annotations

import math
from collections import defaultdict

__all__ = ["SpatialHash"]

Entry = tuple[int, int]
"""A staged item: (body index, edge index)."""

_NEIGHBOUR_OFFSETS = tuple((dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1))


class SpatialHash:
    """Buckets (body, edge) entries by grid cell for 3x3 neighbourhood lookups.

    Entries are staged with :meth:`insert` and become visible to
    :meth:`query_neighbors` only after :meth:`build`.
    """

    def __init__(self, cell_size: float) -> None:
        self.cell_size = cell_size
        self._inv_cell_size = 1.0 / cell_size
        self._staged: list[tuple[int, int, Entry]] = []
        self._cells: dict[tuple[int, int], list[Entry]] = {}

    def __repr__(self) -> str:
        return (
            f"SpatialHash(cell_size={self.cell_size}, staged={len(self._staged)}, "
            f"cells={len(self._cells)})"
        )

    def _cell(self, x: float, y: float) -> tuple[int, int]:
        return (
            math.floor(x * self._inv_cell_size),
            math.floor(y * self._inv_cell_size),
        )

    def clear(self) -> None:
        """Drop all staged and built entries."""
        self._staged.clear()
        self._cells = {}

    def insert(self, body_idx: int, edge_idx: int, x: float, y: float) -> None:
        """Stage an entry at point (x, y); call :meth:`build` after all inserts."""
        cx, cy = self._cell(x, y)
        self._staged.append((cx, cy, (body_idx, edge_idx)))

    def build(self) -> None:
        """Make the staged entries queryable, keeping insertion order within each cell."""
        cells: dict[tuple[int, int], list[Entry]] = defaultdict(list)
        for cx, cy, entry in self._staged:
            cells[(cx, cy)].append(entry)
        self._cells = dict(cells)

    def query_neighbors(self, x: float, y: float) -> list[Entry]:
        """All entries in the cell holding (x, y) and its eight neighbours.

        Cells are visited row by row from the lowest y, left to right.
        """
        cx, cy = self._cell(x, y)
        result: list[Entry] = []
        for dx, dy in _NEIGHBOUR_OFFSETS:
            bucket = self._cells.get((cx + dx, cy + dy))
            if bucket:
                result.extend(bucket)
        return result