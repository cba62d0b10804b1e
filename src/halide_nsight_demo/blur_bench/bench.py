from __future__ import annotations

from pathlib import Path

from . import paths
from .config import DEFAULT_NUM_RUNS, Extents
from .export import build_results, git_info, write_results
from .inputs import generate_input
from .lowering import HalideBlur
from .pipeline import BlurPipeline
from .report import write_report
from .runner import TimingStats, Verification, measure_performance, verify_output
from .schedules import schedule_for_gpu
from .targets import find_gpu_target

DEFAULT_TOLERANCE = 1e-5


def bench_run(
    *,
    scheduler: str,
    extents: Extents,
    num_runs: int = DEFAULT_NUM_RUNS,
    seed: int | None = None,
    allow_cpu: bool = False,
    verify: bool = False,
    tolerance: float = DEFAULT_TOLERANCE,
    out_dir: Path | None = None,
    run_id: str | None = None,
) -> int:
    """Generate input, schedule the blur, time it, and optionally verify/export.

    Returns 0 when the run completes or is skipped for lack of a GPU, 1 when
    verification fails.
    """
    started_at = paths.now_rfc3339()
    chosen_run_id = paths.sanitize_run_id(run_id or paths.default_run_id())

    pipeline = BlurPipeline(generate_input(extents, seed=seed))
    print("Running pipeline on GPU:")
    blur = HalideBlur(pipeline)
    target = find_gpu_target()

    timing: TimingStats | None = None
    verification: Verification | None = None
    if schedule_for_gpu(blur, scheduler, target, allow_cpu=allow_cpu):
        print("Testing performance on GPU:" if target.has_gpu else "Testing performance on host CPU:")
        output = pipeline.new_output()
        timing = measure_performance(blur, output, num_runs=num_runs)
        if verify:
            verification = verify_output(output, pipeline.reference(), tolerance=tolerance)
            print(
                f"Verification: {verification.status} "
                f"(max abs error {verification.max_abs_error:.3g}, max rel error {verification.max_rel_error:.3g})"
            )
    else:
        print("Skipping performance test: no GPU target available.")

    if out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)
        results = build_results(
            run_id=chosen_run_id,
            started_at=started_at,
            finished_at=paths.now_rfc3339(),
            scheduler=scheduler,
            extents=extents,
            num_runs=num_runs,
            seed=seed,
            target=target,
            timing=timing,
            verification=verification,
            git=git_info(paths.find_repo_root()),
            artifacts_dir=out_dir,
        )
        results_path = out_dir / "results.json"
        write_results(results_path, results)
        write_report(results, out_path=out_dir / "report.md")
        print(f"Results: {results_path}")

    if verification is not None and verification.status == "fail":
        return 1
    return 0
