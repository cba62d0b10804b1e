from __future__ import annotations

import numpy as np
import pytest

from halide_nsight_demo.blur_bench.runner import TimingStats, format_timing, time_runs, verify_output


def _fake_clock(times: list[float]):
    it = iter(times)
    return lambda: next(it)


def test_time_runs_reports_average_and_best() -> None:
    calls = {"invoke": 0, "sync": 0}

    def invoke() -> None:
        calls["invoke"] += 1

    def sync() -> None:
        calls["sync"] += 1

    # Run durations: 2 ms, 1 ms, 3 ms.
    clock = _fake_clock([0.0, 0.002, 1.0, 1.001, 2.0, 2.003])
    stats = time_runs(invoke, sync, num_runs=3, clock=clock)

    assert calls == {"invoke": 4, "sync": 3}
    assert stats.num_runs == 3
    assert stats.best_ms == pytest.approx(1.0, rel=1e-6)
    assert stats.average_ms == pytest.approx(2.0, rel=1e-6)
    assert stats.total_ms == pytest.approx(6.0, rel=1e-6)
    assert stats.best_ms <= stats.average_ms


def test_time_runs_single_run_best_equals_average() -> None:
    stats = time_runs(lambda: None, lambda: None, num_runs=1, clock=_fake_clock([5.0, 5.004]))
    assert stats.best_ms == pytest.approx(stats.average_ms)
    assert stats.best_ms == pytest.approx(4.0, rel=1e-6)


def test_time_runs_rejects_non_positive_runs() -> None:
    with pytest.raises(ValueError):
        time_runs(lambda: None, lambda: None, num_runs=0)


def test_format_timing_lines() -> None:
    text = format_timing(TimingStats(num_runs=100, average_ms=0.123456, best_ms=0.1, total_ms=12.3456))
    assert text.splitlines() == [
        "100 runs in total",
        "Average: 0.1235 milliseconds",
        "Best: 0.1000 milliseconds",
    ]


def test_verify_output_pass_and_fail() -> None:
    expected = np.full((1, 1, 2, 2), 4.0, dtype=np.float32)

    ok = verify_output(expected.copy(), expected)
    assert ok.status == "pass"
    assert ok.max_abs_error == 0.0

    off = expected.copy()
    off[0, 0, 1, 1] = 4.4
    bad = verify_output(off, expected, tolerance=1e-3)
    assert bad.status == "fail"
    assert bad.max_abs_error == pytest.approx(0.4, rel=1e-5)
    assert bad.max_rel_error == pytest.approx(0.1, rel=1e-5)
    assert bad.to_dict()["tolerance"] == 1e-3


def test_verify_output_shape_mismatch() -> None:
    with pytest.raises(ValueError):
        verify_output(np.zeros((1, 1, 2, 2), dtype=np.float32), np.zeros((1, 1, 3, 3), dtype=np.float32))
