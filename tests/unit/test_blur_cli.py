from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from halide_nsight_demo.blur_bench import __main__ as cli


@pytest.fixture()
def bench_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def _fake_bench_run(**kwargs: Any) -> int:
        calls.append(kwargs)
        return 0

    monkeypatch.setattr(cli, "bench_run", _fake_bench_run)
    monkeypatch.delenv("HALIDE_NSIGHT_DEMO_NUM_RUNS", raising=False)
    return calls


@pytest.mark.parametrize("argv", [["Li2018", "Adams2019"], ["Li2018", "--num-runs", "5", "Adams2019"]])
def test_two_positional_args_print_usage(
    argv: list[str], bench_calls: list[dict[str, Any]], capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main(argv) == 1
    captured = capsys.readouterr()
    assert cli.USAGE in captured.err
    assert captured.out == ""
    assert bench_calls == []


def test_no_args_selects_manual_schedule(bench_calls: list[dict[str, Any]], capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main([]) == 0
    assert "Running performance test for Blur with manual schedule." in capsys.readouterr().out
    (call,) = bench_calls
    assert call["scheduler"] == ""
    assert call["extents"].shape == (32, 8, 258, 258)
    assert call["num_runs"] == 100
    assert call["allow_cpu"] is False


def test_one_arg_selects_autoscheduler(bench_calls: list[dict[str, Any]], capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["li2018", "--num-runs", "5"]) == 0
    assert "Running performance test for Blur with autoscheduler: Li2018." in capsys.readouterr().out
    (call,) = bench_calls
    assert call["scheduler"] == "Li2018"
    assert call["num_runs"] == 5


def test_num_runs_from_environment(bench_calls: list[dict[str, Any]], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HALIDE_NSIGHT_DEMO_NUM_RUNS", "3")
    assert cli.main([]) == 0
    assert bench_calls[0]["num_runs"] == 3


@pytest.mark.parametrize(
    "argv",
    [
        ["Foo"],
        ["--height", "2"],
        ["--batch", "0"],
        ["--num-runs", "0"],
        ["--run-id", "///"],
    ],
)
def test_configuration_errors_exit_2(
    argv: list[str], bench_calls: list[dict[str, Any]], capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main(argv) == 2
    assert capsys.readouterr().err.strip()
    assert bench_calls == []


def test_report_only_requires_out_dir(bench_calls: list[dict[str, Any]]) -> None:
    assert cli.main(["--report-only"]) == 2
    assert bench_calls == []


def test_report_only_rewrites_report(tmp_path: Path, bench_calls: list[dict[str, Any]]) -> None:
    results = {
        "schema_version": "0.1.0",
        "run": {"run_id": "r1", "status": "skipped", "failure_reason": "no GPU target available", "git": {}},
        "config": {"mode": "manual", "scheduler": "", "num_runs": 1},
        "timing": None,
        "verification": None,
    }
    (tmp_path / "results.json").write_text(json.dumps(results))

    assert cli.main(["--report-only", "--out-dir", str(tmp_path)]) == 0
    assert (tmp_path / "report.md").exists()
    assert bench_calls == []
