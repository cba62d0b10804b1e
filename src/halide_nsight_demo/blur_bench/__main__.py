from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .bench import DEFAULT_TOLERANCE, bench_run
from .config import DEFAULT_EXTENTS, Extents, default_num_runs
from .paths import sanitize_run_id
from .report import report_run
from .schedules import UnknownSchedulerError, resolve_autoscheduler

USAGE = "Usage: halide-blur-bench [autoscheduler]"


def _abs_path(p: str) -> Path:
    return Path(p).expanduser().resolve()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="halide_nsight_demo.blur_bench",
        description="Time a two-stage Halide blur on the GPU (manual schedule or autoscheduler).",
    )
    parser.add_argument(
        "scheduler",
        nargs="*",
        help="Autoscheduler name (e.g. Li2018, Anderson2021). Omit for the hand-written schedule.",
    )
    parser.add_argument("--batch", type=int, default=DEFAULT_EXTENTS.batch)
    parser.add_argument("--channels", type=int, default=DEFAULT_EXTENTS.channels)
    parser.add_argument("--height", type=int, default=DEFAULT_EXTENTS.height)
    parser.add_argument("--width", type=int, default=DEFAULT_EXTENTS.width)
    parser.add_argument("--num-runs", type=int, default=None, help="Timed runs (default: 100 or $HALIDE_NSIGHT_DEMO_NUM_RUNS).")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the random input (default: nondeterministic).")
    parser.add_argument("--allow-cpu", action="store_true", help="Benchmark on the host CPU when no GPU target is found.")
    parser.add_argument("--verify", action="store_true", help="Compare the output against the numpy reference.")
    parser.add_argument("--tolerance", type=float, default=DEFAULT_TOLERANCE, help="Max relative error for --verify.")
    parser.add_argument("--out-dir", type=_abs_path, default=None, help="Write results.json and report.md here.")
    parser.add_argument("--run-id", default=None, help="Run id recorded in results.json (default: timestamp).")
    parser.add_argument(
        "--report-only",
        action="store_true",
        help="Regenerate report.md from <out-dir>/results.json without running the benchmark.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_intermixed_args(argv)

    if len(ns.scheduler) > 1:
        print(USAGE, file=sys.stderr)
        return 1

    if ns.report_only:
        if ns.out_dir is None:
            print("--report-only requires --out-dir", file=sys.stderr)
            return 2
        return report_run(out_dir=ns.out_dir)

    scheduler = ""
    try:
        if ns.scheduler:
            scheduler = resolve_autoscheduler(ns.scheduler[0])
        extents = Extents(batch=ns.batch, channels=ns.channels, height=ns.height, width=ns.width)
        extents.output()
        num_runs = default_num_runs() if ns.num_runs is None else ns.num_runs
        if num_runs < 1:
            raise ValueError(f"--num-runs must be >= 1, got {num_runs}")
        run_id = None if ns.run_id is None else sanitize_run_id(ns.run_id)
    except (UnknownSchedulerError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 2

    if scheduler:
        print(f"Running performance test for Blur with autoscheduler: {scheduler}.")
    else:
        print("Running performance test for Blur with manual schedule.")

    return bench_run(
        scheduler=scheduler,
        extents=extents,
        num_runs=num_runs,
        seed=ns.seed,
        allow_cpu=ns.allow_cpu,
        verify=ns.verify,
        tolerance=ns.tolerance,
        out_dir=ns.out_dir,
        run_id=run_id,
    )


if __name__ == "__main__":
    raise SystemExit(main())
