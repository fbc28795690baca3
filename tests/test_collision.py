import math

import pytest

from unison2d.collision import CollisionSystem
from unison2d.softbody import XPBDSoftBody

MIN_DIST = 0.1


def _upper(density=1000.0, y_tip=0.05):
    # Triangle pointing down with its tip just above y = 0.
    return XPBDSoftBody([0.0, y_tip, -1.0, 1.0, 1.0, 1.0], [0, 1, 2], density, 1e-6, 1e-5)


def _lower(density=1000.0, dx=0.0):
    # Triangle with its top edge lying along y = 0.
    return XPBDSoftBody(
        [-1.0 + dx, 0.0, 1.0 + dx, 0.0, dx, -1.0], [0, 1, 2], density, 1e-6, 1e-5
    )


def _tip_to_edge_distance(upper, lower):
    px, py = upper.pos[0], upper.pos[1]
    e0x, e0y, e1x, e1y = lower.pos[0], lower.pos[1], lower.pos[2], lower.pos[3]
    edx, edy = e1x - e0x, e1y - e0y
    t = max(0.0, min(1.0, ((px - e0x) * edx + (py - e0y) * edy) / (edx * edx + edy * edy)))
    return math.hypot(px - (e0x + t * edx), py - (e0y + t * edy))


def test_separated_bodies_report_no_collisions():
    upper = _upper()
    lower = _lower(dx=10.0)
    before = (list(upper.pos), list(lower.pos))
    system = CollisionSystem(MIN_DIST)
    assert system.solve_collisions([upper, lower]) == 0
    assert system.stats_overlapping_pairs == 0
    assert (upper.pos, lower.pos) == before


def test_close_vertex_is_pushed_away_from_edge():
    upper, lower = _upper(), _lower()
    before = _tip_to_edge_distance(upper, lower)
    system = CollisionSystem(MIN_DIST)
    found = system.solve_collisions([upper, lower])
    assert found >= 1
    assert _tip_to_edge_distance(upper, lower) > before
    assert upper.pos[1] > 0.05
    assert lower.pos[1] < 0.0 and lower.pos[3] < 0.0


def test_stats_after_resolution():
    upper, lower = _upper(), _lower()
    system = CollisionSystem(MIN_DIST)
    found = system.solve_collisions([upper, lower])
    assert system.stats_overlapping_pairs == 1
    assert system.stats_candidates >= 1
    assert system.stats_cached_edges >= 1
    assert system.stats_collisions_found == found
    assert 1 <= system.stats_iterations_run <= 3


def test_iteration_count_is_respected():
    upper, lower = _upper(), _lower()
    system = CollisionSystem(MIN_DIST)
    system.prepare([upper, lower])
    found = system.resolve_collisions([upper, lower], iterations=1)
    assert found == 1
    assert system.stats_iterations_run == 1


def test_kinematic_edge_body_is_not_moved():
    upper, lower = _upper(), _lower()
    lower_before = list(lower.pos)
    system = CollisionSystem(MIN_DIST)
    system.prepare([upper, lower])
    found = system.resolve_collisions([upper, lower], [False, True])
    assert found >= 1
    assert lower.pos == lower_before
    assert upper.pos[1] == pytest.approx(MIN_DIST)
    assert upper.pos[0] == pytest.approx(0.0)


def test_kinematic_vertex_body_is_not_moved():
    upper, lower = _upper(), _lower()
    upper_before = list(upper.pos)
    system = CollisionSystem(MIN_DIST)
    system.prepare([upper, lower])
    found = system.resolve_collisions([upper, lower], [True, False])
    assert found >= 1
    assert upper.pos == upper_before
    assert lower.pos[1] < 0.0 and lower.pos[3] < 0.0


def test_both_kinematic_do_nothing():
    upper, lower = _upper(), _lower()
    before = (list(upper.pos), list(lower.pos))
    system = CollisionSystem(MIN_DIST)
    system.prepare([upper, lower])
    assert system.resolve_collisions([upper, lower], [True, True]) == 0
    assert (upper.pos, lower.pos) == before


def test_fixed_bodies_are_ignored():
    upper, lower = _upper(density=0.0), _lower(density=0.0)
    before = (list(upper.pos), list(lower.pos))
    system = CollisionSystem(MIN_DIST)
    assert system.solve_collisions([upper, lower]) == 0
    assert (upper.pos, lower.pos) == before


def test_candidates_are_reused_across_substeps():
    upper, lower = _upper(), _lower()
    system = CollisionSystem(MIN_DIST)
    system.prepare([upper, lower])
    system.resolve_collisions([upper, lower], iterations=1)
    first = _tip_to_edge_distance(upper, lower)
    system.resolve_collisions([upper, lower], iterations=1)
    second = _tip_to_edge_distance(upper, lower)
    assert second >= first
    assert system.stats_candidates >= 1


def test_resolution_converges_toward_min_dist():
    upper, lower = _upper(), _lower()
    system = CollisionSystem(MIN_DIST)
    system.prepare([upper, lower])
    for _ in range(20):
        system.resolve_collisions([upper, lower])
    assert _tip_to_edge_distance(upper, lower) == pytest.approx(MIN_DIST, abs=1e-3)


def test_single_body_has_no_pairs():
    system = CollisionSystem(MIN_DIST)
    body = _upper()
    before = list(body.pos)
    assert system.solve_collisions([body]) == 0
    assert body.pos == before