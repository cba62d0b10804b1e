"""
Nsight profiling orchestration for the Halide blur benchmark.

The benchmark process is run under an external profiler and the capture plus
lightweight CSV exports are written under:

`<out_dir>/profiles/<case_id>/{ncu,nsys}/...`

- Nsight Systems (`nsys`): timeline capture and a per-kernel summary table
- Nsight Compute (`ncu`): `.ncu-rep` report with raw/session/details exports

Profilers need access to GPU performance counters; on Linux this usually
means running as root or with `NVreg_RestrictProfilingToAdminUsers=0`.
"""

from __future__ import annotations

import json
import platform
import re
import shlex
import shutil
import subprocess
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from mdutils.mdutils import MdUtils  # type: ignore[import-untyped]

from halide_nsight_demo.blur_bench.__main__ import build_parser
from halide_nsight_demo.blur_bench.export import git_info
from halide_nsight_demo.blur_bench.paths import find_repo_root


def _utc_now_iso() -> str:
    """Return the current UTC time in ISO-8601 format."""
    return datetime.now(timezone.utc).isoformat()


def _run_capture(cmd: list[str], *, cwd: Path | None = None) -> str | None:
    """Run a command and capture combined stdout/stderr as text."""
    try:
        out = subprocess.check_output(cmd, stderr=subprocess.STDOUT, cwd=cwd)
    except (OSError, subprocess.CalledProcessError):
        return None
    return out.decode(errors="replace").strip()


def _run_checked(cmd: list[str], *, cwd: Path | None = None) -> None:
    """Run a command and raise if it fails."""
    subprocess.run(cmd, cwd=cwd, check=True)


def _require_tool(name: str) -> str:
    path = shutil.which(name)
    if path is None:
        raise RuntimeError(f"{name} not found on PATH")
    return path


def _tool_version(cmd: list[str]) -> str | None:
    """Return the first line of a tool version command, if available."""
    out = _run_capture(cmd)
    if not out:
        return None
    return out.splitlines()[0].strip()


_CASE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def validate_case_id(case_id: str) -> None:
    """
    Validate a case identifier used in on-disk artifact layout.

    Allowed characters are `[A-Za-z0-9._-]` and it must start with an
    alphanumeric character.
    """
    if not _CASE_ID_RE.fullmatch(case_id):
        raise ValueError(
            f"Invalid case_id '{case_id}'. Expected /^[A-Za-z0-9][A-Za-z0-9._-]{{0,127}}$/."
        )


def profiles_case_dir(out_dir: Path, case_id: str) -> Path:
    validate_case_id(case_id)
    return out_dir / "profiles" / case_id


def _write_json(path: Path, obj: Any) -> None:
    path.write_text(json.dumps(obj, indent=2, sort_keys=True) + "\n")


def benchmark_command(
    *,
    scheduler: str = "",
    num_runs: int = 10,
    extra_args: list[str] | None = None,
    python: str | None = None,
) -> list[str]:
    """Argv that re-runs the blur benchmark in a fresh interpreter.

    Profiling runs default to fewer timed iterations than a timing run; every
    iteration launches the same kernels. The autoscheduler is named through
    `scheduler` only; `extra_args` may carry options but no positional.
    """
    if num_runs < 1:
        raise ValueError(f"num_runs must be >= 1, got {num_runs}")
    extra = list(extra_args or [])
    positionals = build_parser().parse_intermixed_args(extra).scheduler
    if positionals:
        raise ValueError(f"extra_args must not contain positional arguments, got {positionals}; use scheduler=")
    cmd = [python or sys.executable, "-m", "halide_nsight_demo.blur_bench", "--num-runs", str(num_runs)]
    cmd += extra
    if scheduler:
        cmd.append(scheduler)
    return cmd


def _write_readme(directory: Path, *, title: str, intro: str, cmd: list[str], outputs: list[str]) -> None:
    md = MdUtils(file_name=str(directory / "README"), title=title)
    md.new_paragraph(intro)
    md.new_header(level=1, title="Command")
    md.new_paragraph(f"`{shlex.join(cmd)}`")
    md.new_header(level=1, title="Outputs")
    md.new_list(outputs)
    md.create_md_file()


def _meta(*, tool: str, tool_path: str, case_id: str, out_dir: Path, cmd: list[str], outputs: dict[str, str]) -> dict[str, Any]:
    return {
        "tool": tool,
        "timestamp_utc": _utc_now_iso(),
        "case_id": case_id,
        "out_dir": str(out_dir),
        "command": cmd,
        "host": {"platform": platform.platform(), "machine": platform.machine()},
        "tool_versions": {tool: _tool_version([tool_path, "--version"])},
        "git": git_info(find_repo_root()),
        "outputs": outputs,
    }


@dataclass(frozen=True, slots=True)
class NsysProfileResult:
    case_dir: Path
    nsys_rep: Path
    kern_sum_csv: Path


def run_nsys_profile(*, out_dir: Path, case_id: str, bench_cmd: list[str]) -> NsysProfileResult:
    """
    Capture an Nsight Systems timeline of the benchmark and export a kernel summary.

    Parameters
    ----------
    out_dir:
        Output root directory. Artifacts are written under `<out_dir>/profiles/<case_id>/nsys/`.
    case_id:
        Case identifier used for the output directory name.
    bench_cmd:
        Benchmark command to profile (argv list), usually from `benchmark_command`.
    """
    case_dir = profiles_case_dir(out_dir, case_id)
    nsys_dir = case_dir / "nsys"
    nsys_dir.mkdir(parents=True, exist_ok=True)
    nsys = _require_tool("nsys")

    capture_prefix = nsys_dir / "capture"
    cmd = [nsys, "profile", "--force-overwrite=true", "-t", "cuda,nvtx", "-o", str(capture_prefix), *bench_cmd]
    _run_checked(cmd)

    nsys_rep = capture_prefix.with_suffix(".nsys-rep")
    if not nsys_rep.exists():
        raise RuntimeError(f"Expected nsys output not found: {nsys_rep}")

    # nsys stats names its CSV <output>_<report>.csv.
    stats_prefix = nsys_dir / "stats"
    _run_checked(
        [
            nsys,
            "stats",
            "--force-export=true",
            "--report",
            "cuda_gpu_kern_sum",
            "--format",
            "csv",
            "--output",
            str(stats_prefix),
            str(nsys_rep),
        ]
    )
    produced = nsys_dir / "stats_cuda_gpu_kern_sum.csv"
    if not produced.exists():
        raise RuntimeError(f"nsys stats produced no CSV output at {produced}")
    kern_sum_csv = nsys_dir / "cuda_gpu_kern_sum.csv"
    produced.replace(kern_sum_csv)

    _write_json(
        nsys_dir / "meta.json",
        _meta(
            tool="nsys",
            tool_path=nsys,
            case_id=case_id,
            out_dir=out_dir,
            cmd=cmd,
            outputs={"nsys_rep": str(nsys_rep), "cuda_gpu_kern_sum_csv": str(kern_sum_csv)},
        ),
    )
    _write_readme(
        nsys_dir,
        title="Timeline Capture (nsys)",
        intro="This directory contains an Nsight Systems capture of a Halide blur benchmark run.",
        cmd=cmd,
        outputs=[
            f"`{nsys_rep.name}`: raw capture (nsys-rep)",
            f"`{kern_sum_csv.name}`: per-kernel time summary (CSV)",
            "`meta.json`: capture metadata",
        ],
    )
    return NsysProfileResult(case_dir=case_dir, nsys_rep=nsys_rep, kern_sum_csv=kern_sum_csv)


@dataclass(frozen=True, slots=True)
class NcuProfileResult:
    case_dir: Path
    report: Path
    raw_csv: Path
    session_csv: Path
    details_csv: Path


def build_ncu_command(
    *,
    ncu: str,
    export_base: Path,
    log_file: Path,
    bench_cmd: list[str],
    set_name: str = "full",
    kernel_regex: str | None = None,
    launch_count: int = 1,
    launch_skip: int = 0,
) -> list[str]:
    cmd: list[str] = [
        ncu,
        "--force-overwrite",
        "--log-file",
        str(log_file),
        "--set",
        set_name,
        "--export",
        str(export_base),
        "--clock-control",
        "base",
    ]
    if kernel_regex:
        cmd += ["-k", f"regex:{kernel_regex}"]
    cmd += ["-c", str(launch_count), "-s", str(launch_skip)]
    return [*cmd, *bench_cmd]


def run_ncu_profile(
    *,
    out_dir: Path,
    case_id: str,
    bench_cmd: list[str],
    set_name: str = "full",
    kernel_regex: str | None = None,
    launch_count: int = 1,
    launch_skip: int = 0,
) -> NcuProfileResult:
    """
    Run Nsight Compute (`ncu`) on the benchmark and export CSV summaries.

    Parameters
    ----------
    out_dir:
        Output root directory. Artifacts are written under `<out_dir>/profiles/<case_id>/ncu/`.
    case_id:
        Case identifier used for the output directory name.
    bench_cmd:
        Benchmark command to profile (argv list), usually from `benchmark_command`.
    set_name:
        Nsight Compute section set identifier (e.g., `basic`, `full`).
    kernel_regex:
        Kernel name regex; Halide names CUDA kernels after the scheduled Func (e.g. `consumer`).
    launch_count:
        Number of matching kernel launches to profile.
    launch_skip:
        Number of matching launches to skip first; skipping the warm-up launch
        profiles a steady-state run.
    """
    case_dir = profiles_case_dir(out_dir, case_id)
    ncu_dir = case_dir / "ncu"
    ncu_dir.mkdir(parents=True, exist_ok=True)
    ncu = _require_tool("ncu")

    export_base = ncu_dir / "profile"
    rep_path = export_base.with_suffix(".ncu-rep")
    log_file = ncu_dir / "ncu.log"
    cmd = build_ncu_command(
        ncu=ncu,
        export_base=export_base,
        log_file=log_file,
        bench_cmd=bench_cmd,
        set_name=set_name,
        kernel_regex=kernel_regex,
        launch_count=launch_count,
        launch_skip=launch_skip,
    )
    _run_checked(cmd)

    if not rep_path.exists():
        raise RuntimeError(f"Expected ncu output not found: {rep_path}")

    raw_csv = ncu_dir / "raw.csv"
    session_csv = ncu_dir / "session.csv"
    details_csv = ncu_dir / "details.csv"
    raw_csv.write_text(_run_capture([ncu, "--import", str(rep_path), "--page", "raw", "--csv"]) or "")
    session_csv.write_text(_run_capture([ncu, "--import", str(rep_path), "--page", "session", "--csv"]) or "")
    details_csv.write_text(_run_capture([ncu, "--import", str(rep_path), "--page", "details", "--csv"]) or "")

    meta = _meta(
        tool="ncu",
        tool_path=ncu,
        case_id=case_id,
        out_dir=out_dir,
        cmd=cmd,
        outputs={
            "ncu_rep": str(rep_path),
            "raw_csv": str(raw_csv),
            "session_csv": str(session_csv),
            "details_csv": str(details_csv),
            "ncu_log": str(log_file),
        },
    )
    meta["scope"] = {"set": set_name, "kernel_regex": kernel_regex, "launch_count": launch_count, "launch_skip": launch_skip}
    _write_json(ncu_dir / "meta.json", meta)
    _write_readme(
        ncu_dir,
        title="Kernel Profiling (ncu)",
        intro="This directory contains Nsight Compute profiling artifacts for a Halide blur benchmark run.",
        cmd=cmd,
        outputs=[
            f"`{rep_path.name}`: raw ncu report",
            f"`{raw_csv.name}`: exported raw metrics (CSV text)",
            f"`{session_csv.name}`: exported session/device info (CSV text)",
            f"`{details_csv.name}`: exported section/rule details (CSV text)",
            "`meta.json`: run metadata",
        ],
    )
    return NcuProfileResult(
        case_dir=case_dir,
        report=rep_path,
        raw_csv=raw_csv,
        session_csv=session_csv,
        details_csv=details_csv,
    )
