"""Ground and terrain contact for soft bodies, and the per-substep driver."""

from __future__ import annotations

from typing import Callable, Optional, Tuple

from unison2d.softbody import XPBDSoftBody

__all__ = [
    "solve_ground_collision",
    "solve_terrain_collision",
    "substep",
    "substep_post",
    "substep_pre",
    "substep_pre_with_terrain",
]

HeightFn = Callable[[float], float]
NormalFn = Callable[[float], Tuple[float, float]]

DEFAULT_FRICTION = 0.8
DEFAULT_RESTITUTION = 0.3
DEFAULT_PRE_ITERS = 3
DEFAULT_POST_ITERS = 2

# Vertices this close above a surface count as touching it.
_CONTACT_THRESHOLD = 0.05
# Share of the friction coefficient applied to vertices just above a surface.
_NEAR_FRICTION_SCALE = 0.3


def solve_ground_collision(
    body: XPBDSoftBody,
    ground_y: float,
    friction: float = DEFAULT_FRICTION,
    restitution: float = DEFAULT_RESTITUTION,
) -> None:
    """Keep movable vertices above a flat ground, with Coulomb-style friction.

    ``friction`` runs from 0 (ice) to 1 (contact point sticks, so bodies roll);
    ``restitution`` from 0 (no bounce) to 1 (perfect bounce).
    """
    pos, prev = body.pos, body.prev_pos
    for i, w in enumerate(body.inv_mass):
        if w == 0.0:
            continue
        ix, iy = 2 * i, 2 * i + 1
        y = pos[iy]
        if y < ground_y:
            prev_x, prev_y = prev[ix], prev[iy]
            penetration = ground_y - y
            dx = pos[ix] - prev_x
            dy = y - prev_y
            pos[iy] = ground_y + penetration * restitution if dy < 0.0 else ground_y
            # Shrinking the tangent displacement only ever removes energy.
            pos[ix] = prev_x + dx * (1.0 - friction)
        elif y < ground_y + _CONTACT_THRESHOLD:
            prev_x = prev[ix]
            dx = pos[ix] - prev_x
            pos[ix] = prev_x + dx * (1.0 - friction * _NEAR_FRICTION_SCALE)


def solve_terrain_collision(
    body: XPBDSoftBody,
    height_at: HeightFn,
    normal_at: NormalFn,
    friction: float = DEFAULT_FRICTION,
    restitution: float = DEFAULT_RESTITUTION,
) -> None:
    """Keep movable vertices above a terrain given by height and normal functions of x."""
    pos, prev = body.pos, body.prev_pos
    for i, w in enumerate(body.inv_mass):
        if w == 0.0:
            continue
        ix, iy = 2 * i, 2 * i + 1
        x, y = pos[ix], pos[iy]
        terrain_y = height_at(x)
        if y < terrain_y:
            prev_x, prev_y = prev[ix], prev[iy]
            nx, ny = normal_at(x)
            penetration = terrain_y - y
            dx = x - prev_x
            dy = y - prev_y
            vel_normal = dx * nx + dy * ny
            tangent_x = dx - vel_normal * nx
            tangent_y = dy - vel_normal * ny
            factor = 1.0 - friction
            # Friction on the tangent motion decides the final position; the
            # restitution push along the normal is superseded by it.
            pos[ix] = prev_x + tangent_x * factor + nx * penetration
            pos[iy] = prev_y + tangent_y * factor + ny * penetration
        elif y < terrain_y + _CONTACT_THRESHOLD:
            prev_x, prev_y = prev[ix], prev[iy]
            nx, ny = normal_at(x)
            dx = x - prev_x
            dy = y - prev_y
            normal = dx * nx + dy * ny
            tangent_x = dx - normal * nx
            tangent_y = dy - normal * ny
            factor = 1.0 - friction * _NEAR_FRICTION_SCALE
            pos[ix] = prev_x + (dx - tangent_x) + tangent_x * factor
            pos[iy] = prev_y + (dy - tangent_y) + tangent_y * factor


def substep_pre(
    body: XPBDSoftBody,
    dt: float,
    gravity: float,
    ground_y: Optional[float] = None,
    friction: float = DEFAULT_FRICTION,
    restitution: float = DEFAULT_RESTITUTION,
    pre_iters: int = DEFAULT_PRE_ITERS,
    post_iters: int = DEFAULT_POST_ITERS,
) -> None:
    """Integrate, solve constraints and, if there is a ground, resolve it and re-solve.

    Inter-body collisions belong between this and :func:`substep_post`.
    """
    body.pre_solve(dt, gravity)
    for _ in range(pre_iters):
        body.solve_constraints(dt)
    if ground_y is not None:
        solve_ground_collision(body, ground_y, friction, restitution)
        for _ in range(post_iters):
            body.solve_constraints(dt)


def substep_pre_with_terrain(
    body: XPBDSoftBody,
    dt: float,
    gravity: float,
    height_at: HeightFn,
    normal_at: NormalFn,
    friction: float = DEFAULT_FRICTION,
    restitution: float = DEFAULT_RESTITUTION,
    pre_iters: int = DEFAULT_PRE_ITERS,
    post_iters: int = DEFAULT_POST_ITERS,
) -> None:
    """Like :func:`substep_pre` but against a terrain of variable height."""
    body.pre_solve(dt, gravity)
    for _ in range(pre_iters):
        body.solve_constraints(dt)
    solve_terrain_collision(body, height_at, normal_at, friction, restitution)
    for _ in range(post_iters):
        body.solve_constraints(dt)


def substep_post(body: XPBDSoftBody, dt: float) -> None:
    """Finish a substep by deriving velocities from the position change."""
    body.post_solve(dt)


def substep(
    body: XPBDSoftBody, dt: float, gravity: float, ground_y: Optional[float] = None
) -> None:
    """One complete substep without inter-body collision."""
    substep_pre(body, dt, gravity, ground_y)
    substep_post(body, dt)