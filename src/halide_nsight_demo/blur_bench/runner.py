from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Literal

import attrs
import numpy as np

from .config import DEFAULT_NUM_RUNS

if TYPE_CHECKING:
    from .lowering import HalideBlur

VerificationStatus = Literal["pass", "fail"]


@attrs.define(frozen=True, slots=True)
class TimingStats:
    num_runs: int
    average_ms: float
    best_ms: float
    total_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "num_runs": self.num_runs,
            "average_ms": self.average_ms,
            "best_ms": self.best_ms,
            "total_ms": self.total_ms,
        }


@attrs.define(frozen=True, slots=True)
class Verification:
    status: VerificationStatus
    max_abs_error: float
    max_rel_error: float
    tolerance: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "max_abs_error": self.max_abs_error,
            "max_rel_error": self.max_rel_error,
            "tolerance": self.tolerance,
        }


def time_runs(
    invoke: Callable[[], object],
    sync: Callable[[], object],
    *,
    num_runs: int = DEFAULT_NUM_RUNS,
    clock: Callable[[], float] = time.perf_counter,
) -> TimingStats:
    """Best-of-N wall-clock timing.

    One untimed warm-up call absorbs JIT and device initialization. Each timed
    run stops the clock only after `sync()` so asynchronous GPU dispatch is not
    mistaken for completion.
    """
    if num_runs < 1:
        raise ValueError(f"num_runs must be >= 1, got {num_runs}")

    invoke()

    total_ms = 0.0
    best_ms = 0.0
    for i in range(num_runs):
        t1 = clock()
        invoke()
        sync()
        t2 = clock()

        elapsed_ms = (t2 - t1) * 1e3
        if i == 0 or elapsed_ms < best_ms:
            best_ms = elapsed_ms
        total_ms += elapsed_ms

    return TimingStats(num_runs=num_runs, average_ms=total_ms / num_runs, best_ms=best_ms, total_ms=total_ms)


def format_timing(stats: TimingStats) -> str:
    return "\n".join(
        [
            f"{stats.num_runs} runs in total",
            f"Average: {stats.average_ms:1.4f} milliseconds",
            f"Best: {stats.best_ms:1.4f} milliseconds",
        ]
    )


def measure_performance(blur: HalideBlur, output: np.ndarray, *, num_runs: int = DEFAULT_NUM_RUNS) -> TimingStats:
    """Time `blur` writing into the host array `output`; results are copied back into it."""
    buf = blur.output_buffer(output)
    stats = time_runs(lambda: blur.realize(buf), buf.device_sync, num_runs=num_runs)
    buf.copy_to_host()
    print(format_timing(stats))
    return stats


def verify_output(actual: np.ndarray, expected: np.ndarray, *, tolerance: float = 1e-5) -> Verification:
    """Compare a realized output against the reference within a relative tolerance."""
    if actual.shape != expected.shape:
        raise ValueError(f"Shape mismatch: {actual.shape} vs {expected.shape}")
    diff = np.abs(actual.astype(np.float64) - expected.astype(np.float64))
    max_abs = float(diff.max()) if diff.size else 0.0
    scale = np.maximum(np.abs(expected.astype(np.float64)), 1.0)
    max_rel = float((diff / scale).max()) if diff.size else 0.0
    status: VerificationStatus = "pass" if max_rel <= tolerance else "fail"
    return Verification(status=status, max_abs_error=max_abs, max_rel_error=max_rel, tolerance=tolerance)
