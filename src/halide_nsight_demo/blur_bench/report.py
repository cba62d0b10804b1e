from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mdutils.mdutils import MdUtils  # type: ignore[import-untyped]

REPORT_TITLE = "Halide Blur Benchmark Report"


def _load_results(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text())


def _format_float(v: float | None) -> str:
    if v is None:
        return "NA"
    return f"{v:.4f}"


def _format_extents(e: dict[str, Any] | None) -> str:
    if not e:
        return "NA"
    return f"{e['batch']}x{e['channels']}x{e['height']}x{e['width']}"


def write_report(results: dict[str, Any], *, out_path: Path) -> Path:
    """Render `results` as Markdown at `out_path` (the `.md` suffix is added by mdutils)."""
    run = results.get("run", {})
    cfg = results.get("config", {})
    timing = results.get("timing") or {}
    verification = results.get("verification") or {}
    target = run.get("environment", {}).get("target", {})

    md = MdUtils(file_name=str(out_path.with_suffix("")), title=REPORT_TITLE)
    md.new_list(
        [
            f"Run: `{run.get('run_id', '')}`",
            f"Branch: `{run.get('git', {}).get('branch', '')}`",
            f"Commit: `{run.get('git', {}).get('commit', '')}`",
            f"Status: `{run.get('status', '')}`",
            f"Target: `{target.get('name', 'unknown')}` (backend: {target.get('backend', 'unknown')})",
        ]
    )
    if run.get("failure_reason"):
        md.new_paragraph(f"Failure reason: {run['failure_reason']}")

    md.new_header(level=1, title="Configuration")
    cells = [
        "mode",
        "scheduler",
        "input (NxCxHxW)",
        "output (NxCxHxW)",
        "runs",
        str(cfg.get("mode", "")),
        str(cfg.get("scheduler") or "-"),
        _format_extents(cfg.get("extents")),
        _format_extents(cfg.get("output_extents")),
        str(cfg.get("num_runs", "")),
    ]
    md.new_table(columns=5, rows=2, text=cells, text_align="left")

    md.new_header(level=1, title="Timing")
    if timing:
        cells = [
            "runs",
            "average_ms",
            "best_ms",
            str(timing.get("num_runs", "")),
            _format_float(timing.get("average_ms")),
            _format_float(timing.get("best_ms")),
        ]
        md.new_table(columns=3, rows=2, text=cells, text_align="left")
    else:
        md.new_paragraph("Not measured.")

    md.new_header(level=1, title="Verification")
    if verification:
        md.new_paragraph(
            f"`{verification.get('status')}`: max abs error {verification.get('max_abs_error'):.3g}, "
            f"max rel error {verification.get('max_rel_error'):.3g} (tolerance {verification.get('tolerance'):.3g})"
        )
    else:
        md.new_paragraph("Not requested.")

    md.create_md_file()
    return out_path.with_suffix(".md")


def report_run(*, out_dir: Path) -> int:
    """Write `report.md` from an existing `results.json` (no benchmark run)."""
    results_path = out_dir / "results.json"
    if not results_path.exists():
        raise FileNotFoundError(f"Missing results.json at {results_path}")
    write_report(_load_results(results_path), out_path=out_dir / "report.md")
    return 0
