import pytest

from unison2d.profiler import (
    Profiler,
    current,
    now,
    profile_scope,
    set_time_fn,
)


@pytest.fixture(autouse=True)
def _reset_clock():
    set_time_fn(None)
    yield
    set_time_fn(None)


def _clock(values):
    it = iter(values)
    return lambda: next(it)


def test_basic_profiling():
    p = Profiler()
    p.init()
    p.set_enabled(True)
    p.begin_scope("test", 0.0)
    p.end_scope(10.0)
    p.begin_scope("test", 0.0)
    p.end_scope(20.0)
    p.end_frame()

    stats = p.get_stats()
    assert len(stats) == 1
    assert stats[0][0] == "test"
    assert stats[0][2] == 30.0
    assert stats[0][3] == 1
    assert stats[0].avg_ms == 30.0


def test_nested_scopes():
    p = Profiler()
    p.init()
    p.set_enabled(True)
    p.begin_scope("outer", 0.0)
    p.begin_scope("inner", 5.0)
    p.end_scope(15.0)
    p.end_scope(20.0)
    p.end_frame()

    stats = p.get_stats()
    assert len(stats) == 2
    paths = [s.path for s in stats]
    assert "outer" in paths
    assert "outer/inner" in paths
    by_path = {s.path: s for s in stats}
    assert by_path["outer"].total_ms == 20.0
    assert by_path["outer/inner"].total_ms == 10.0
    assert by_path["outer/inner"].depth == 1


def test_now_defaults_to_zero_and_uses_registered_clock():
    assert now() == 0.0
    set_time_fn(lambda: 42.5)
    assert now() == 42.5


def test_frame_timing_and_average():
    p = Profiler()
    set_time_fn(_clock([0.0, 10.0, 10.0, 30.0]))
    p.begin_frame()
    p.end_frame()
    p.begin_frame()
    p.end_frame()
    assert p.frame_count() == 2
    assert p.total_frame_time() == 30.0
    assert p.avg_frame_time() == 15.0


def test_avg_frame_time_without_frames():
    assert Profiler().avg_frame_time() == 0.0


def test_disabled_profiler_records_no_scopes_but_counts_frames():
    p = Profiler()
    p.set_enabled(False)
    assert p.is_enabled() is False
    p.begin_scope("x", 0.0)
    p.end_scope(5.0)
    p.end_frame()
    assert p.get_stats() == []
    assert p.frame_count() == 1


def test_target_fps():
    p = Profiler()
    assert p.target_frame_time() == pytest.approx(1000.0 / 60.0)
    p.set_target_fps(100.0)
    assert p.target_frame_time() == 10.0


def test_stats_sorted_hierarchically_by_total():
    p = Profiler()
    p.begin_scope("a", 0.0)
    p.end_scope(10.0)
    p.begin_scope("b", 0.0)
    p.begin_scope("c", 0.0)
    p.end_scope(5.0)
    p.end_scope(30.0)
    p.end_frame()
    assert [s.path for s in p.get_stats()] == ["b", "b/c", "a"]


def test_count_is_frames_where_scope_appeared():
    p = Profiler()
    for _ in range(3):
        p.begin_scope("s", 0.0)
        p.end_scope(2.0)
        p.end_frame()
    (stats,) = p.get_stats()
    assert stats.calls == 3
    assert stats.total_ms == 6.0
    assert stats.avg_ms == 2.0


def test_reset_clears_history_and_frames():
    p = Profiler()
    p.begin_scope("s", 0.0)
    p.end_scope(1.0)
    p.end_frame()
    p.reset()
    assert p.get_stats() == []
    assert p.frame_count() == 0
    assert p.total_frame_time() == 0.0


def test_format_stats_empty():
    assert Profiler().format_stats() == "=== FPS (0 frames) === 0 FPS (0.00ms/frame)"


def test_format_stats_report():
    p = Profiler()
    p.set_target_fps(100.0)
    p.begin_scope("outer", 0.0)
    p.begin_scope("inner", 2.0)
    p.end_scope(6.0)
    p.end_scope(8.0)
    p.end_frame()

    lines = p.format_stats().splitlines()
    assert lines[0] == "=== Profiler Stats (1 frames) ==="
    assert lines[1] == "Target: 100 FPS (10.00ms) | Actual: 0 FPS (0.00ms)"
    assert lines[2] == "Budget: 8.00ms/frame used (80.0%) | Headroom: 2.00ms (20.0%)"
    assert lines[3] == "-" * 75
    assert lines[4] == "Scope                                   self%    total%   Calls"
    assert lines[5] == "-" * 75
    assert lines[6].startswith("outer ")
    assert "40.0%" in lines[6] and "80.0%" in lines[6]
    assert lines[6].endswith("    1")
    assert lines[7].startswith("  inner ")
    assert "40.0%" in lines[7]
    assert len(lines) == 8


def test_format_stats_skips_negligible_children_and_truncates():
    p = Profiler()
    p.set_target_fps(100.0)
    long_name = "x" * 40
    p.begin_scope(long_name, 0.0)
    p.begin_scope("tiny", 0.0)
    p.end_scope(0.001)
    p.end_scope(5.0)
    p.end_frame()

    lines = p.format_stats().splitlines()
    scope_lines = lines[6:]
    assert len(scope_lines) == 1
    assert scope_lines[0].startswith("x" * 33 + "...")
    assert "tiny" not in p.format_stats()


def test_profile_scope_records_on_current_profiler():
    p = current()
    assert current() is p
    p.init()
    p.set_enabled(True)
    set_time_fn(_clock([1.0, 2.0, 4.0, 7.0]))
    with profile_scope("outer"):
        with profile_scope("inner"):
            pass
    p.end_frame()
    by_path = {s.path: s for s in p.get_stats()}
    assert by_path["outer"].total_ms == 6.0
    assert by_path["outer/inner"].total_ms == 2.0
    p.init()


def test_profile_scope_closes_on_exception():
    p = current()
    p.init()
    p.set_enabled(True)
    with pytest.raises(ValueError):
        with profile_scope("failing"):
            raise ValueError("boom")
    p.end_frame()
    assert [s.path for s in p.get_stats()] == ["failing"]
    p.init()