"""Soft bodies simulated with extended position-based dynamics (XPBD)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

__all__ = ["AreaConstraint", "EdgeConstraint", "XPBDSoftBody"]

_EPS = 1e-10
_MAX_VELOCITY = 25.0  # units per second; keeps a vertex from tunnelling in one substep


@dataclass(frozen=True)
class EdgeConstraint:
    """Keeps two vertices at their rest distance."""

    v0: int
    v1: int
    rest_length: float


@dataclass(frozen=True)
class AreaConstraint:
    """Keeps a triangle at its rest area."""

    v0: int
    v1: int
    v2: int
    rest_area: float


def _triples(values: Sequence[int]):
    count = len(values) // 3
    it = iter(values[: count * 3])
    return zip(it, it, it)


class XPBDSoftBody:
    """A triangle mesh held together by compliant edge and area constraints.

    Positions, previous positions, velocities and forces are flat lists
    ``[x0, y0, x1, y1, ...]``. An inverse mass of zero marks a fixed vertex.
    Compliance is the inverse of stiffness: zero is infinitely stiff.
    """

    def __init__(
        self,
        vertices: Sequence[float],
        triangles: Sequence[int],
        density: float,
        edge_compliance: float,
        area_compliance: float,
    ) -> None:
        self.num_verts = len(vertices) // 2
        self.pos = [float(v) for v in vertices]
        self.prev_pos = list(self.pos)
        self.vel = [0.0] * len(self.pos)
        self.force_accum = [0.0] * len(self.pos)
        self.torque_accum = 0.0
        self.edge_compliance = edge_compliance
        self.area_compliance = area_compliance
        self.triangles = [int(t) for t in triangles]

        mass = [0.0] * self.num_verts
        self.area_constraints: list[AreaConstraint] = []
        for i0, i1, i2 in _triples(self.triangles):
            x0, y0 = self.pos[2 * i0], self.pos[2 * i0 + 1]
            x1, y1 = self.pos[2 * i1], self.pos[2 * i1 + 1]
            x2, y2 = self.pos[2 * i2], self.pos[2 * i2 + 1]
            tri_area = abs(0.5 * ((x1 - x0) * (y2 - y0) - (x2 - x0) * (y1 - y0)))
            share = tri_area * density / 3.0
            for idx in (i0, i1, i2):
                mass[idx] += share
            self.area_constraints.append(AreaConstraint(i0, i1, i2, tri_area))

        self.inv_mass = [1.0 / m if m > _EPS else 0.0 for m in mass]

        seen: set[tuple[int, int]] = set()
        self.edge_constraints: list[EdgeConstraint] = []
        for i0, i1, i2 in _triples(self.triangles):
            for a, b in ((i0, i1), (i1, i2), (i2, i0)):
                key = (a, b) if a < b else (b, a)
                if key in seen:
                    continue
                seen.add(key)
                dx = self.pos[2 * b] - self.pos[2 * a]
                dy = self.pos[2 * b + 1] - self.pos[2 * a + 1]
                self.edge_constraints.append(EdgeConstraint(a, b, math.sqrt(dx * dx + dy * dy)))

    @classmethod
    def from_material(
        cls,
        vertices: Sequence[float],
        triangles: Sequence[int],
        young_modulus: float,
        density: float,
    ) -> "XPBDSoftBody":
        """Build a body whose compliances derive from a Young's modulus.

        The scaling is tuned for eight substeps at 60 Hz.
        """
        base_compliance = 1.0 / young_modulus
        return cls(vertices, triangles, density, base_compliance * 10.0, base_compliance * 100.0)

    def __repr__(self) -> str:
        return (
            f"XPBDSoftBody(num_verts={self.num_verts}, edges={len(self.edge_constraints)}, "
            f"triangles={len(self.area_constraints)})"
        )

    # -- integration -------------------------------------------------------

    def pre_solve(self, dt: float, gravity: float) -> None:
        """Apply forces, torque and gravity, clamp speed and predict positions.

        The accumulators are left untouched so they act on every substep of a frame.
        """
        pos, vel, force = self.pos, self.vel, self.force_accum
        n = self.num_verts
        if self.torque_accum != 0.0 and n > 0:
            cx = sum(pos[0::2]) / n
            cy = sum(pos[1::2]) / n
        else:
            cx = cy = 0.0
        omega = self.torque_accum * dt
        max_sq = _MAX_VELOCITY * _MAX_VELOCITY

        for i, w in enumerate(self.inv_mass):
            if w == 0.0:
                continue
            ix, iy = 2 * i, 2 * i + 1
            self.prev_pos[ix] = pos[ix]
            self.prev_pos[iy] = pos[iy]

            vx = vel[ix] + force[ix] * w * dt
            vy = vel[iy] + force[iy] * w * dt
            if omega != 0.0:
                vx += -(pos[iy] - cy) * omega
                vy += (pos[ix] - cx) * omega
            vy += gravity * dt

            speed_sq = vx * vx + vy * vy
            if speed_sq > max_sq:
                scale = _MAX_VELOCITY / math.sqrt(speed_sq)
                vx *= scale
                vy *= scale

            vel[ix], vel[iy] = vx, vy
            pos[ix] += vx * dt
            pos[iy] += vy * dt

    def clear_accumulators(self) -> None:
        """Reset the force and torque accumulators."""
        self.force_accum = [0.0] * len(self.force_accum)
        self.torque_accum = 0.0

    def post_solve(self, dt: float) -> None:
        """Derive velocities from the position change over ``dt``."""
        inv_dt = 1.0 / dt
        self.vel = [(p - q) * inv_dt for p, q in zip(self.pos, self.prev_pos)]

    # -- constraints -------------------------------------------------------

    def _solve_edge(self, edge: EdgeConstraint, alpha: float) -> float:
        i0, i1 = edge.v0, edge.v1
        w0, w1 = self.inv_mass[i0], self.inv_mass[i1]
        w_sum = w0 + w1
        if w_sum < _EPS:
            return 0.0
        pos = self.pos
        dx = pos[2 * i1] - pos[2 * i0]
        dy = pos[2 * i1 + 1] - pos[2 * i0 + 1]
        length = math.sqrt(dx * dx + dy * dy)
        if length < _EPS:
            return 0.0

        c = length - edge.rest_length
        ratio = length / edge.rest_length if edge.rest_length != 0.0 else math.inf
        # Severely deformed edges are corrected aggressively.
        effective_alpha = min(alpha, 0.1) if ratio < 0.4 or ratio > 2.5 else alpha
        lam = -c / (w_sum + effective_alpha)

        nx, ny = dx / length, dy / length
        corr0 = -lam * w0
        corr1 = lam * w1
        pos[2 * i0] += corr0 * nx
        pos[2 * i0 + 1] += corr0 * ny
        pos[2 * i1] += corr1 * nx
        pos[2 * i1 + 1] += corr1 * ny
        return abs(c)

    def _solve_area(self, area: AreaConstraint, alpha: float) -> float:
        i0, i1, i2 = area.v0, area.v1, area.v2
        w0, w1, w2 = self.inv_mass[i0], self.inv_mass[i1], self.inv_mass[i2]
        pos = self.pos
        x0, y0 = pos[2 * i0], pos[2 * i0 + 1]
        x1, y1 = pos[2 * i1], pos[2 * i1 + 1]
        x2, y2 = pos[2 * i2], pos[2 * i2 + 1]

        current_area = 0.5 * ((x1 - x0) * (y2 - y0) - (x2 - x0) * (y1 - y0))
        c = current_area - area.rest_area

        inverted = (current_area < 0.0 < area.rest_area) or (area.rest_area < 0.0 < current_area)
        if inverted:
            effective_alpha = 0.0 if alpha < 1.0 else alpha * 0.01
        else:
            effective_alpha = alpha

        g0x, g0y = 0.5 * (y1 - y2), 0.5 * (x2 - x1)
        g1x, g1y = 0.5 * (y2 - y0), 0.5 * (x0 - x2)
        g2x, g2y = 0.5 * (y0 - y1), 0.5 * (x1 - x0)

        w_grad_sum = (
            w0 * (g0x * g0x + g0y * g0y)
            + w1 * (g1x * g1x + g1y * g1y)
            + w2 * (g2x * g2x + g2y * g2y)
        )
        if w_grad_sum < _EPS:
            return abs(c)

        lam = -c / (w_grad_sum + effective_alpha)
        pos[2 * i0] += lam * w0 * g0x
        pos[2 * i0 + 1] += lam * w0 * g0y
        pos[2 * i1] += lam * w1 * g1x
        pos[2 * i1 + 1] += lam * w1 * g1y
        pos[2 * i2] += lam * w2 * g2x
        pos[2 * i2 + 1] += lam * w2 * g2y
        return abs(c)

    def solve_constraints(self, dt: float) -> float:
        """Run one pass over all constraints; return the largest violation seen."""
        dt_sq = dt * dt
        edge_alpha = self.edge_compliance / dt_sq
        area_alpha = self.area_compliance / dt_sq
        max_violation = 0.0
        for edge in self.edge_constraints:
            max_violation = max(max_violation, self._solve_edge(edge, edge_alpha))
        for area in self.area_constraints:
            max_violation = max(max_violation, self._solve_area(area, area_alpha))
        return max_violation

    # -- damping -----------------------------------------------------------

    def apply_damping(self, damping: float) -> None:
        """Scale every velocity by ``1 - damping``."""
        factor = 1.0 - damping
        self.vel = [v * factor for v in self.vel]

    def apply_internal_damping(self, damping: float) -> None:
        """Damp deformation velocity only, keeping linear and angular rigid motion."""
        pos, vel = self.pos, self.vel
        movable = [(i, 1.0 / w) for i, w in enumerate(self.inv_mass) if w > 0.0]

        total_mass = sum(m for _, m in movable)
        if total_mass < _EPS:
            return
        cx = sum(pos[2 * i] * m for i, m in movable) / total_mass
        cy = sum(pos[2 * i + 1] * m for i, m in movable) / total_mass
        avg_vx = sum(vel[2 * i] * m for i, m in movable) / total_mass
        avg_vy = sum(vel[2 * i + 1] * m for i, m in movable) / total_mass

        omega_num = 0.0
        omega_den = 0.0
        for i, m in movable:
            rx, ry = pos[2 * i] - cx, pos[2 * i + 1] - cy
            rel_vx, rel_vy = vel[2 * i] - avg_vx, vel[2 * i + 1] - avg_vy
            omega_num += m * (rx * rel_vy - ry * rel_vx)
            omega_den += m * (rx * rx + ry * ry)
        omega = omega_num / omega_den if omega_den > _EPS else 0.0

        factor = 1.0 - damping
        for i, _ in movable:
            rx, ry = pos[2 * i] - cx, pos[2 * i + 1] - cy
            rigid_vx = avg_vx - ry * omega
            rigid_vy = avg_vy + rx * omega
            vel[2 * i] = rigid_vx + (vel[2 * i] - rigid_vx) * factor
            vel[2 * i + 1] = rigid_vy + (vel[2 * i + 1] - rigid_vy) * factor

    # -- queries -----------------------------------------------------------

    def kinetic_energy(self) -> float:
        """Sum of ½mv² over movable vertices."""
        return sum(
            0.5 / w * (self.vel[2 * i] ** 2 + self.vel[2 * i + 1] ** 2)
            for i, w in enumerate(self.inv_mass)
            if w > 0.0
        )

    def lowest_y(self) -> float:
        return min(self.pos[1::2], default=math.inf)

    def aabb(self) -> tuple[float, float, float, float]:
        """Bounding box as (min_x, min_y, max_x, max_y)."""
        xs = self.pos[0::2]
        ys = self.pos[1::2]
        if not xs:
            return (math.inf, math.inf, -math.inf, -math.inf)
        return (min(xs), min(ys), max(xs), max(ys))

    def center(self) -> tuple[float, float]:
        """Average vertex position."""
        n = self.num_verts
        if n == 0:
            return (math.nan, math.nan)
        return (sum(self.pos[0::2]) / n, sum(self.pos[1::2]) / n)

    def max_velocity(self) -> float:
        speeds = (vx * vx + vy * vy for vx, vy in zip(self.vel[0::2], self.vel[1::2]))
        return math.sqrt(max(speeds, default=0.0))

    def aspect_ratio(self) -> float:
        """Width over height of the bounding box; infinite for a flat body."""
        min_x, min_y, max_x, max_y = self.aabb()
        height = max_y - min_y
        if height < 1e-6:
            return math.inf
        return (max_x - min_x) / height

    # -- interaction -------------------------------------------------------

    def collide_with_body(self, other: "XPBDSoftBody", min_dist: float) -> int:
        """Push apart vertex pairs of two bodies closer than ``min_dist``.

        Only positions change; call before :meth:`post_solve`. Returns the number
        of pairs corrected.
        """
        a = self.aabb()
        b = other.aabb()
        if (
            a[2] + min_dist < b[0]
            or b[2] + min_dist < a[0]
            or a[3] + min_dist < b[1]
            or b[3] + min_dist < a[1]
        ):
            return 0

        min_dist_sq = min_dist * min_dist
        collisions = 0
        for i, w1 in enumerate(self.inv_mass):
            if w1 == 0.0:
                continue
            for j, w2 in enumerate(other.inv_mass):
                if w2 == 0.0:
                    continue
                dx = other.pos[2 * j] - self.pos[2 * i]
                dy = other.pos[2 * j + 1] - self.pos[2 * i + 1]
                dist_sq = dx * dx + dy * dy
                if not (_EPS < dist_sq < min_dist_sq):
                    continue
                collisions += 1
                dist = math.sqrt(dist_sq)
                overlap = min_dist - dist
                nx, ny = dx / dist, dy / dist
                w_sum = w1 + w2
                corr1 = overlap * (w1 / w_sum)
                corr2 = overlap * (w2 / w_sum)
                self.pos[2 * i] -= nx * corr1
                self.pos[2 * i + 1] -= ny * corr1
                other.pos[2 * j] += nx * corr2
                other.pos[2 * j + 1] += ny * corr2
        return collisions

    def sleep_if_resting(self, ke_threshold: float) -> bool:
        """Zero all velocities if kinetic energy is below the threshold."""
        if self.kinetic_energy() < ke_threshold:
            self.vel = [0.0] * len(self.vel)
            return True
        return False