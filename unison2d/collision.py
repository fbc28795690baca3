"""Vertex-against-edge collision handling between many soft bodies."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Sequence

from unison2d.softbody import XPBDSoftBody
from unison2d.spatial_hash import SpatialHash

__all__ = ["CollisionSystem"]

_EPS = 1e-10
_CELL_SIZE = 0.8  # large enough that long edges are found from any nearby vertex
_DEFAULT_ITERATIONS = 3

AABB = tuple[float, float, float, float]


@dataclass(frozen=True)
class _CachedEdge:
    body_idx: int
    v0: int
    v1: int
    w0: float
    w1: float


class _Candidate(NamedTuple):
    body_a: int
    vert: int
    body_b: int
    edge_v0: int
    edge_v1: int
    w0: float
    w1: float


def _aabbs_overlap(a: AABB, b: AABB, margin: float) -> bool:
    return (
        a[2] + margin >= b[0]
        and b[2] + margin >= a[0]
        and a[3] + margin >= b[1]
        and b[3] + margin >= a[1]
    )


def _closest_on_segment(
    px: float, py: float, e0x: float, e0y: float, e1x: float, e1y: float
) -> tuple[float, float, float, float] | None:
    """Return (t, dx, dy, dist_sq) from the segment to the point, or None if degenerate."""
    edx = e1x - e0x
    edy = e1y - e0y
    len_sq = edx * edx + edy * edy
    if len_sq < _EPS:
        return None
    t = ((px - e0x) * edx + (py - e0y) * edy) / len_sq
    t = min(max(t, 0.0), 1.0)
    dx = px - (e0x + t * edx)
    dy = py - (e0y + t * edy)
    return t, dx, dy, dx * dx + dy * dy


class CollisionSystem:
    """Keeps vertices of one body at least ``min_dist`` away from edges of others.

    Call :meth:`prepare` once per frame, then :meth:`resolve_collisions` once
    per substep; candidate pairs found on the first resolve are reused with
    fresh positions until the next prepare.
    """

    def __init__(self, min_dist: float) -> None:
        self.min_dist = min_dist
        self._edge_hash = SpatialHash(_CELL_SIZE)
        self._aabbs: list[AABB] = []
        self._overlapping_pairs: list[tuple[int, int]] = []
        self._cached_edges: list[_CachedEdge] = []
        self._body_needs_collision: list[bool] = []
        self._danger_zones: list[AABB] = []
        self._candidates: list[_Candidate] = []
        self._candidates_valid = False
        self._num_bodies_prepared = 0
        self.stats_candidates = 0
        self.stats_cached_edges = 0
        self.stats_overlapping_pairs = 0
        self.stats_collisions_found = 0
        self.stats_iterations_run = 0

    def __repr__(self) -> str:
        return (
            f"CollisionSystem(min_dist={self.min_dist}, "
            f"pairs={len(self._overlapping_pairs)}, candidates={len(self._candidates)})"
        )

    def prepare(self, bodies: Sequence[XPBDSoftBody]) -> None:
        """Run the broad phase and build the edge cache and spatial hash."""
        self._num_bodies_prepared = len(bodies)
        self._candidates_valid = False
        self._aabbs = [body.aabb() for body in bodies]

        n = len(bodies)
        self._overlapping_pairs = [
            (i, j)
            for i in range(n)
            for j in range(i + 1, n)
            if _aabbs_overlap(self._aabbs[i], self._aabbs[j], self.min_dist)
        ]
        if not self._overlapping_pairs:
            return

        self._full_rebuild(bodies)
        self.stats_cached_edges = len(self._cached_edges)
        self.stats_overlapping_pairs = len(self._overlapping_pairs)

    def _full_rebuild(self, bodies: Sequence[XPBDSoftBody]) -> None:
        n = self._num_bodies_prepared
        self._cached_edges = []
        self._edge_hash.clear()
        self._body_needs_collision = [False] * n
        zones = [[math.inf, math.inf, -math.inf, -math.inf] for _ in range(n)]
        margin = self.min_dist

        def grow(zone: list[float], box: AABB) -> None:
            zone[0] = min(zone[0], box[0] - margin)
            zone[1] = min(zone[1], box[1] - margin)
            zone[2] = max(zone[2], box[2] + margin)
            zone[3] = max(zone[3], box[3] + margin)

        for i, j in self._overlapping_pairs:
            self._body_needs_collision[i] = True
            self._body_needs_collision[j] = True
            grow(zones[i], self._aabbs[j])
            grow(zones[j], self._aabbs[i])
        # Vertices outside a body's danger zone cannot touch any other body.
        self._danger_zones = [tuple(z) for z in zones]

        for body_idx, body in enumerate(bodies[:n]):
            if not self._body_needs_collision[body_idx]:
                continue
            dz = self._danger_zones[body_idx]
            pos = body.pos
            for edge in body.edge_constraints:
                w0 = body.inv_mass[edge.v0]
                w1 = body.inv_mass[edge.v1]
                if w0 == 0.0 and w1 == 0.0:
                    continue
                e0x, e0y = pos[2 * edge.v0], pos[2 * edge.v0 + 1]
                e1x, e1y = pos[2 * edge.v1], pos[2 * edge.v1 + 1]
                if (
                    max(e0x, e1x) < dz[0]
                    or min(e0x, e1x) > dz[2]
                    or max(e0y, e1y) < dz[1]
                    or min(e0y, e1y) > dz[3]
                ):
                    continue
                dx, dy = e1x - e0x, e1y - e0y
                if dx * dx + dy * dy < _EPS:
                    continue
                edge_idx = len(self._cached_edges)
                self._cached_edges.append(_CachedEdge(body_idx, edge.v0, edge.v1, w0, w1))
                self._edge_hash.insert(body_idx, edge_idx, e0x, e0y)
                self._edge_hash.insert(body_idx, edge_idx, e1x, e1y)

        self._edge_hash.build()

    def solve_collisions(self, bodies: Sequence[XPBDSoftBody]) -> int:
        """Prepare and resolve in one call; return the number of corrections."""
        self.prepare(bodies)
        return self.resolve_collisions(bodies)

    def resolve_collisions(
        self,
        bodies: Sequence[XPBDSoftBody],
        is_kinematic: Sequence[bool] = (),
        iterations: int = _DEFAULT_ITERATIONS,
    ) -> int:
        """Push colliding vertices and edges apart; return the corrections applied.

        Bodies flagged in ``is_kinematic`` take part but are never moved; missing
        flags count as not kinematic. Iteration stops early once a pass finds
        nothing.
        """
        if not self._overlapping_pairs:
            return 0
        if not self._candidates_valid:
            self._build_candidates(bodies)
            self._candidates_valid = True

        total = 0
        iters = 0
        for _ in range(iterations):
            iters += 1
            found = sum(self._resolve_candidate(bodies, c, is_kinematic) for c in self._candidates)
            total += found
            if found == 0:
                break
        self.stats_candidates = len(self._candidates)
        self.stats_collisions_found = total
        self.stats_iterations_run = iters
        return total

    def _build_candidates(self, bodies: Sequence[XPBDSoftBody]) -> None:
        # A generous radius leaves room for movement between substeps.
        radius = self.min_dist * 4.0
        radius_sq = radius * radius
        candidates: list[_Candidate] = []

        for body_a_idx in range(self._num_bodies_prepared):
            if not self._body_needs_collision[body_a_idx]:
                continue
            dz = self._danger_zones[body_a_idx]
            body_a = bodies[body_a_idx]
            for vert, w in enumerate(body_a.inv_mass[: body_a.num_verts]):
                if w == 0.0:
                    continue
                vx, vy = body_a.pos[2 * vert], body_a.pos[2 * vert + 1]
                if vx < dz[0] or vx > dz[2] or vy < dz[1] or vy > dz[3]:
                    continue
                for body_b_idx, edge_idx in self._edge_hash.query_neighbors(vx, vy):
                    if body_b_idx == body_a_idx:
                        continue
                    edge = self._cached_edges[edge_idx]
                    pos_b = bodies[body_b_idx].pos
                    hit = _closest_on_segment(
                        vx, vy,
                        pos_b[2 * edge.v0], pos_b[2 * edge.v0 + 1],
                        pos_b[2 * edge.v1], pos_b[2 * edge.v1 + 1],
                    )
                    if hit is None or hit[3] > radius_sq:
                        continue
                    candidates.append(
                        _Candidate(body_a_idx, vert, body_b_idx, edge.v0, edge.v1, edge.w0, edge.w1)
                    )
        self._candidates = candidates

    def _resolve_candidate(
        self,
        bodies: Sequence[XPBDSoftBody],
        c: _Candidate,
        is_kinematic: Sequence[bool],
    ) -> int:
        a_kinematic = c.body_a < len(is_kinematic) and bool(is_kinematic[c.body_a])
        b_kinematic = c.body_b < len(is_kinematic) and bool(is_kinematic[c.body_b])
        if a_kinematic and b_kinematic:
            return 0

        body_a = bodies[c.body_a]
        body_b = bodies[c.body_b]
        pa, pb = body_a.pos, body_b.pos
        vi, v0, v1 = c.vert, c.edge_v0, c.edge_v1
        hit = _closest_on_segment(
            pa[2 * vi], pa[2 * vi + 1],
            pb[2 * v0], pb[2 * v0 + 1],
            pb[2 * v1], pb[2 * v1 + 1],
        )
        if hit is None:
            return 0
        t, dx, dy, dist_sq = hit
        min_dist = self.min_dist
        if not (_EPS < dist_sq < min_dist * min_dist):
            return 0

        dist = math.sqrt(dist_sq)
        overlap = min_dist - dist
        nx, ny = dx / dist, dy / dist

        if b_kinematic:
            pa[2 * vi] += nx * overlap
            pa[2 * vi + 1] += ny * overlap
            return 1

        w_edge = (1.0 - t) * c.w0 + t * c.w1
        if a_kinematic:
            if w_edge < _EPS:
                return 0
            edge_corr = overlap
            vert_corr = 0.0
            denom = w_edge
        else:
            w_total = body_a.inv_mass[vi] + w_edge
            if w_total < _EPS:
                return 0
            vert_corr = overlap * (body_a.inv_mass[vi] / w_total)
            edge_corr = overlap * (w_edge / w_total)
            denom = max(w_edge, _EPS)

        pa[2 * vi] += nx * vert_corr
        pa[2 * vi + 1] += ny * vert_corr
        e0_factor = (1.0 - t) * c.w0 / denom
        e1_factor = t * c.w1 / denom
        pb[2 * v0] -= nx * edge_corr * e0_factor
        pb[2 * v0 + 1] -= ny * edge_corr * e0_factor
        pb[2 * v1] -= nx * edge_corr * e1_factor
        pb[2 * v1 + 1] -= ny * edge_corr * e1_factor
        return 1