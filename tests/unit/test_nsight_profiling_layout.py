from __future__ import annotations

from pathlib import Path

import pytest

from halide_nsight_demo.profiling import nsight
from halide_nsight_demo.profiling.nsight import (
    benchmark_command,
    build_ncu_command,
    profiles_case_dir,
    validate_case_id,
)


def test_validate_case_id_accepts_common_ids() -> None:
    validate_case_id("manual_258x258")
    validate_case_id("a")
    validate_case_id("Li2018-1._b")


def test_validate_case_id_rejects_bad_ids() -> None:
    with pytest.raises(ValueError):
        validate_case_id("")
    with pytest.raises(ValueError):
        validate_case_id("../escape")
    with pytest.raises(ValueError):
        validate_case_id("has space")


def test_profiles_case_dir_builds_expected_path(tmp_path: Path) -> None:
    assert profiles_case_dir(tmp_path, "case-1") == tmp_path / "profiles" / "case-1"


def test_benchmark_command_puts_scheduler_last() -> None:
    cmd = benchmark_command(scheduler="Li2018", num_runs=3, extra_args=["--height", "66"], python="py")
    assert cmd == ["py", "-m", "halide_nsight_demo.blur_bench", "--num-runs", "3", "--height", "66", "Li2018"]

    manual = benchmark_command(python="py")
    assert manual == ["py", "-m", "halide_nsight_demo.blur_bench", "--num-runs", "10"]

    with pytest.raises(ValueError):
        benchmark_command(num_runs=0)


def test_benchmark_command_rejects_positional_extras() -> None:
    with pytest.raises(ValueError):
        benchmark_command(scheduler="Li2018", extra_args=["Adams2019"])
    with pytest.raises(ValueError):
        benchmark_command(extra_args=["--height", "66", "Li2018"])


def test_build_ncu_command_scopes_kernels(tmp_path: Path) -> None:
    cmd = build_ncu_command(
        ncu="ncu",
        export_base=tmp_path / "profile",
        log_file=tmp_path / "ncu.log",
        bench_cmd=["py", "-m", "halide_nsight_demo.blur_bench"],
        set_name="basic",
        kernel_regex="consumer",
        launch_count=2,
        launch_skip=1,
    )
    assert cmd[0] == "ncu"
    assert cmd[cmd.index("--set") + 1] == "basic"
    assert cmd[cmd.index("-k") + 1] == "regex:consumer"
    assert cmd[cmd.index("-c") + 1] == "2"
    assert cmd[cmd.index("-s") + 1] == "1"
    assert cmd[-3:] == ["py", "-m", "halide_nsight_demo.blur_bench"]

    unscoped = build_ncu_command(
        ncu="ncu", export_base=tmp_path / "profile", log_file=tmp_path / "ncu.log", bench_cmd=["py"]
    )
    assert "-k" not in unscoped


def test_missing_profiler_raises(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(nsight.shutil, "which", lambda name: None)
    with pytest.raises(RuntimeError, match="ncu not found"):
        nsight.run_ncu_profile(out_dir=tmp_path, case_id="c1", bench_cmd=["py"])
    with pytest.raises(RuntimeError, match="nsys not found"):
        nsight.run_nsys_profile(out_dir=tmp_path, case_id="c1", bench_cmd=["py"])
