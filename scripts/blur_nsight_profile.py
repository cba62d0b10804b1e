"""
CLI: Nsight profiling of the Halide blur benchmark.

Runs `python -m halide_nsight_demo.blur_bench` under `ncu` (kernel metrics) or
`nsys` (timeline), exporting reports and CSV summaries under
`<out-dir>/profiles/<case-id>/`.

Examples:
    python scripts/blur_nsight_profile.py --out-dir tmp/prof --case-id manual --tool ncu --kernel-regex consumer --launch-skip 1
    python scripts/blur_nsight_profile.py --out-dir tmp/prof --case-id li2018 --tool nsys --scheduler Li2018
"""

from __future__ import annotations

import argparse
from pathlib import Path

from halide_nsight_demo.profiling.nsight import benchmark_command, run_ncu_profile, run_nsys_profile


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Profile the Halide blur benchmark with Nsight Compute or Nsight Systems.")
    parser.add_argument("--out-dir", type=Path, required=True, help="Output directory root (artifacts under out_dir/profiles/...).")
    parser.add_argument("--case-id", type=str, required=True, help="Case identifier (used under out_dir/profiles/<case_id>/).")
    parser.add_argument("--tool", choices=["ncu", "nsys"], default="ncu", help="Profiler to run (default: ncu).")
    parser.add_argument("--scheduler", type=str, default="", help="Autoscheduler name; omit for the hand-written schedule.")
    parser.add_argument("--num-runs", type=int, default=10, help="Timed benchmark iterations (default: 10).")
    parser.add_argument("--set", dest="set_name", type=str, default="full", help="Nsight Compute section set (default: full).")
    parser.add_argument("--kernel-regex", type=str, default=None, help="Kernel name regex (ncu only).")
    parser.add_argument("--launch-count", type=int, default=1, help="Number of matching launches to profile (ncu only).")
    parser.add_argument("--launch-skip", type=int, default=0, help="Matching launches to skip before profiling (ncu only).")
    parser.add_argument("bench_args", nargs=argparse.REMAINDER, help="Extra benchmark args. Use `--` before them.")
    return parser.parse_args()


def main() -> int:
    """Entry point."""
    args = _parse_args()
    if args.num_runs < 1:
        raise SystemExit("--num-runs must be >= 1.")
    if args.tool == "nsys" and (args.kernel_regex or args.launch_skip or args.launch_count != 1):
        raise SystemExit("--kernel-regex/--launch-count/--launch-skip only apply to --tool ncu.")

    try:
        bench_cmd = benchmark_command(
            scheduler=args.scheduler,
            num_runs=args.num_runs,
            extra_args=[a for a in args.bench_args if a != "--"],
        )
    except ValueError as e:
        raise SystemExit(f"{e}. Pass the autoscheduler with --scheduler.") from e

    if args.tool == "ncu":
        result = run_ncu_profile(
            out_dir=args.out_dir,
            case_id=args.case_id,
            bench_cmd=bench_cmd,
            set_name=args.set_name,
            kernel_regex=args.kernel_regex,
            launch_count=max(1, args.launch_count),
            launch_skip=max(0, args.launch_skip),
        )
        print(f"ncu report: {result.report}")
    else:
        nsys_result = run_nsys_profile(out_dir=args.out_dir, case_id=args.case_id, bench_cmd=bench_cmd)
        print(f"nsys capture: {nsys_result.nsys_rep}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
