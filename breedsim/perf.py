"""Timing instrumentation for breeding runs.

Tracks wall-clock time per engine call and how many gametes each
component produced, so reports show gametes per second alongside the
time breakdown. Disabled monitors do nothing.

Usage:
    from breedsim.perf import PerfMonitor

    perf = PerfMonitor(enabled=True)

    with perf.track("cross", gametes=2 * n_offspring * n_chr):
        offspring = cross(...)

    print(perf.report())
"""

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class ComponentStats:
    """Accumulated timing for one component."""
    total_time: float = 0.0
    call_count: int = 0
    gametes: int = 0
    max_time: float = 0.0

    @property
    def mean_time(self) -> float:
        return self.total_time / self.call_count if self.call_count > 0 else 0.0

    @property
    def gametes_per_s(self) -> float:
        return self.gametes / self.total_time if self.total_time > 0 else 0.0


class PerfMonitor:
    """Component-level timer with gamete counts."""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._stats: Dict[str, ComponentStats] = defaultdict(ComponentStats)
        self._start_time: Optional[float] = None
        self._total_time: float = 0.0

    def start(self) -> None:
        if self.enabled:
            self._start_time = time.perf_counter()

    def stop(self) -> None:
        if self.enabled and self._start_time is not None:
            self._total_time = time.perf_counter() - self._start_time

    @contextmanager
    def track(self, component: str, gametes: int = 0):
        """Time the enclosed block under ``component``."""
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        yield
        self.record(component, time.perf_counter() - t0, gametes)

    def record(self, component: str, elapsed: float, gametes: int = 0) -> None:
        if not self.enabled:
            return
        stats = self._stats[component]
        stats.total_time += elapsed
        stats.call_count += 1
        stats.gametes += gametes
        stats.max_time = max(stats.max_time, elapsed)

    def get_stats(self) -> Dict[str, ComponentStats]:
        return dict(self._stats)

    def _total(self) -> float:
        return self._total_time or sum(s.total_time for s in self._stats.values())

    def summary(self) -> dict:
        """Summary dict suitable for JSON serialization."""
        total = self._total()
        result = {}
        for name, stats in sorted(self._stats.items(), key=lambda x: -x[1].total_time):
            result[name] = {
                'total_s': round(stats.total_time, 4),
                'calls': stats.call_count,
                'gametes': stats.gametes,
                'gametes_per_s': round(stats.gametes_per_s, 1),
                'pct': round(stats.total_time / total * 100, 1) if total > 0 else 0.0,
            }
        result['_total_s'] = round(total, 4)
        return result

    def report(self, title: str = "Meiosis Performance") -> str:
        """Human-readable breakdown."""
        total = self._total()
        lines = [
            f"\n{'='*64}",
            f" {title}",
            f"{'='*64}",
            f"{'Component':<20} {'Total (s)':>10} {'Calls':>7} {'Gametes':>10} {'Gam/s':>9} {'%':>5}",
            f"{'-'*20} {'-'*10} {'-'*7} {'-'*10} {'-'*9} {'-'*5}",
        ]
        for name, stats in sorted(self._stats.items(), key=lambda x: -x[1].total_time):
            pct = (stats.total_time / total * 100) if total > 0 else 0
            lines.append(
                f"{name:<20} {stats.total_time:>10.4f} {stats.call_count:>7} "
                f"{stats.gametes:>10} {stats.gametes_per_s:>9.0f} {pct:>4.1f}%"
            )
        lines.append(f"{'-'*20} {'-'*10} {'-'*7} {'-'*10} {'-'*9} {'-'*5}")
        lines.append(f"{'TOTAL':<20} {total:>10.4f}")
        lines.append(f"{'='*64}\n")
        return '\n'.join(lines)

    def reset(self) -> None:
        self._stats.clear()
        self._start_time = None
        self._total_time = 0.0
