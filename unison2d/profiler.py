"""Lightweight hierarchical scope profiler for frame-based applications."""

from __future__ import annotations

import contextlib
import functools
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterator, NamedTuple, Optional

__all__ = [
    "Profiler",
    "ScopeStats",
    "current",
    "now",
    "profile_scope",
    "set_time_fn",
]

_local = threading.local()


def set_time_fn(f: Optional[Callable[[], float]]) -> None:
    """Register the clock used for profiling (milliseconds). ``None`` removes it."""
    _local.time_fn = f


def now() -> float:
    """Current time from the registered clock, or 0.0 when none is set."""
    time_fn = getattr(_local, "time_fn", None)
    return float(time_fn()) if time_fn is not None else 0.0


def current() -> "Profiler":
    """The profiler belonging to the calling thread."""
    profiler = getattr(_local, "profiler", None)
    if profiler is None:
        profiler = Profiler()
        _local.profiler = profiler
    return profiler


@contextlib.contextmanager
def profile_scope(name: str) -> Iterator[None]:
    """Time the enclosed block as a named scope on the thread's profiler."""
    profiler = current()
    profiler.begin_scope(name, now())
    try:
        yield
    finally:
        profiler.end_scope(now())


class ScopeStats(NamedTuple):
    """Accumulated statistics for one scope path."""

    path: str
    avg_ms: float
    total_ms: float
    calls: int
    depth: int


@dataclass
class _History:
    total: float
    count: int
    depth: int


_RULE = "-" * 75 + "\n"


@dataclass
class Profiler:
    """Collects nested scope timings per frame and reports them."""

    enabled: bool = True
    _current_frame: dict[str, float] = field(default_factory=dict, repr=False)
    _history: dict[str, _History] = field(default_factory=dict, repr=False)
    _scope_stack: list[tuple[str, float]] = field(default_factory=list, repr=False)
    _frame_count: int = 0
    _total_frame_time: float = 0.0
    _frame_start_time: float = 0.0
    _target_frame_time: float = 1000.0 / 60.0

    def init(self) -> None:
        """Clear scope data, history and the frame counter."""
        self._current_frame.clear()
        self._history.clear()
        self._scope_stack.clear()
        self._frame_count = 0

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    def is_enabled(self) -> bool:
        return self.enabled

    def set_target_fps(self, fps: float) -> None:
        self._target_frame_time = 1000.0 / fps

    def target_frame_time(self) -> float:
        return self._target_frame_time

    def begin_scope(self, name: str, start_time: float) -> None:
        if self.enabled:
            self._scope_stack.append((name, start_time))

    def end_scope(self, end_time: float) -> None:
        if not self.enabled or not self._scope_stack:
            return
        name, start_time = self._scope_stack.pop()
        duration = end_time - start_time
        depth = len(self._scope_stack)
        full_path = "/".join([n for n, _ in self._scope_stack] + [name])
        self._current_frame[full_path] = self._current_frame.get(full_path, 0.0) + duration
        self._history.setdefault(full_path, _History(0.0, 0, depth))

    def begin_frame(self) -> None:
        self._frame_start_time = now()

    def end_frame(self) -> None:
        """Record frame time and fold this frame's scopes into the history."""
        self._total_frame_time += now() - self._frame_start_time
        self._frame_count += 1
        if not self.enabled:
            return
        current_frame, self._current_frame = self._current_frame, {}
        for path, duration in current_frame.items():
            entry = self._history.setdefault(path, _History(0.0, 0, path.count("/")))
            entry.total += duration
            entry.count += 1

    def total_frame_time(self) -> float:
        return self._total_frame_time

    def avg_frame_time(self) -> float:
        if self._frame_count > 0:
            return self._total_frame_time / self._frame_count
        return 0.0

    def frame_count(self) -> int:
        return self._frame_count

    def get_stats(self) -> list[ScopeStats]:
        """Scope statistics, parents before children, siblings by total descending."""
        stats = [
            ScopeStats(
                path,
                h.total / h.count if h.count > 0 else 0.0,
                h.total,
                h.count,
                h.depth,
            )
            for path, h in self._history.items()
        ]
        totals = {s.path: s.total_ms for s in stats}

        def by_total_then_name(total_a: float, total_b: float, name_a: str, name_b: str) -> int:
            if total_b > total_a:
                return 1
            if total_b < total_a:
                return -1
            return (name_a > name_b) - (name_a < name_b)

        def compare(a: ScopeStats, b: ScopeStats) -> int:
            path_a, path_b = a.path, b.path
            if path_b.startswith(path_a) and len(path_b) > len(path_a):
                return -1
            if path_a.startswith(path_b) and len(path_a) > len(path_b):
                return 1
            parts_a = path_a.split("/")
            parts_b = path_b.split("/")
            common = 0
            for part_a, part_b in zip(parts_a, parts_b):
                if part_a != part_b:
                    break
                common += 1
            if common < len(parts_a) and common < len(parts_b):
                prefix_a = "/".join(parts_a[: common + 1])
                prefix_b = "/".join(parts_b[: common + 1])
                return by_total_then_name(
                    totals.get(prefix_a, 0.0), totals.get(prefix_b, 0.0), prefix_a, prefix_b
                )
            return by_total_then_name(a.total_ms, b.total_ms, path_a, path_b)

        return sorted(stats, key=functools.cmp_to_key(compare))

    def reset(self) -> None:
        """Clear history, frame count and accumulated frame time."""
        self._history.clear()
        self._frame_count = 0
        self._total_frame_time = 0.0

    def format_stats(self) -> str:
        """Render statistics as a text report relative to the target frame budget."""
        stats = self.get_stats()
        frame_count = self._frame_count
        avg_frame_time = self.avg_frame_time()
        target_frame_time = self._target_frame_time
        target_fps = 1000.0 / target_frame_time
        actual_fps = 1000.0 / avg_frame_time if avg_frame_time > 0.0 else 0.0

        if not stats:
            return (
                f"=== FPS ({frame_count} frames) === "
                f"{actual_fps:.0f} FPS ({avg_frame_time:.2f}ms/frame)"
            )

        total_budget = frame_count * target_frame_time
        root_time = sum(s.total_ms for s in stats if s.depth == 0)
        avg_active_time = root_time / frame_count if frame_count > 0 else 0.0
        budget_used = (root_time / total_budget) * 100.0 if total_budget > 0.0 else 0.0

        self_times: dict[str, float] = {}
        for s in stats:
            children_time = 0.0
            for child in stats:
                if child.path.startswith(s.path):
                    rest = child.path[len(s.path):]
                    if rest.startswith("/") and "/" not in rest[1:]:
                        children_time += child.total_ms
            self_times[s.path] = s.total_ms - children_time

        lines = [
            f"=== Profiler Stats ({frame_count} frames) ===\n",
            f"Target: {target_fps:.0f} FPS ({target_frame_time:.2f}ms) | "
            f"Actual: {actual_fps:.0f} FPS ({avg_frame_time:.2f}ms)\n",
            f"Budget: {avg_active_time:.2f}ms/frame used ({budget_used:.1f}%) | "
            f"Headroom: {target_frame_time - avg_active_time:.2f}ms ({100.0 - budget_used:.1f}%)\n",
            _RULE,
            "Scope                                   self%    total%   Calls\n",
            _RULE,
        ]

        for s in stats:
            self_time = self_times.get(s.path, s.total_ms)
            self_pct = (self_time / total_budget) * 100.0 if total_budget > 0.0 else 0.0
            total_pct = (s.total_ms / total_budget) * 100.0 if total_budget > 0.0 else 0.0
            if self_pct < 0.1 and s.depth > 0:
                continue
            if s.depth == 0:
                display_name = s.path
            else:
                display_name = "  " * s.depth + s.path.rsplit("/", 1)[-1]
            if len(display_name) > 36:
                display_name = display_name[:33] + "..."
            lines.append(
                f"{display_name:<36} {self_pct:>6.1f}%   {total_pct:>6.1f}%   {s.calls:>5}\n"
            )

        return "".join(lines)