from __future__ import annotations

import importlib.metadata
import json
import platform
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jsonschema import Draft202012Validator

from .config import Extents, schedule_mode
from .runner import TimingStats, Verification

if TYPE_CHECKING:
    from .targets import TargetInfo

SCHEMA_VERSION = "0.1.0"


def default_results_schema_path() -> Path:
    return Path(__file__).with_name("results.schema.json")


def validate_results_schema(results: dict[str, Any], *, schema_path: Path | None = None) -> None:
    schema_path = default_results_schema_path() if schema_path is None else schema_path
    schema = json.loads(schema_path.read_text())
    Draft202012Validator(schema).validate(results)


def git_info(repo_root: Path) -> dict[str, Any]:
    try:
        branch = (
            subprocess.check_output(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=repo_root, stderr=subprocess.DEVNULL)
            .decode()
            .strip()
        )
        commit = (
            subprocess.check_output(["git", "rev-parse", "HEAD"], cwd=repo_root, stderr=subprocess.DEVNULL)
            .decode()
            .strip()
        )
        dirty = bool(
            subprocess.check_output(["git", "status", "--porcelain"], cwd=repo_root, stderr=subprocess.DEVNULL)
            .decode()
            .strip()
        )
        return {"branch": branch, "commit": commit, "dirty": dirty}
    except (OSError, subprocess.CalledProcessError):
        return {"branch": "unknown", "commit": "unknown", "dirty": False}


def halide_version() -> str:
    try:
        return importlib.metadata.version("halide")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _extents_dict(e: Extents) -> dict[str, int]:
    return {"batch": e.batch, "channels": e.channels, "height": e.height, "width": e.width}


def _target_dict(target: TargetInfo | None) -> dict[str, Any]:
    if target is None:
        return {"name": "unknown", "backend": "unknown", "has_gpu": False}
    return {"name": target.name, "backend": target.backend, "has_gpu": target.has_gpu}


def build_results(
    *,
    run_id: str,
    started_at: str,
    finished_at: str,
    scheduler: str,
    extents: Extents,
    num_runs: int,
    seed: int | None,
    target: TargetInfo | None,
    timing: TimingStats | None,
    verification: Verification | None,
    git: dict[str, Any],
    artifacts_dir: Path,
) -> dict[str, Any]:
    """Assemble and validate a results document.

    The run is `skipped` when nothing was timed (no GPU target) and `fail` when
    verification failed.
    """
    status = "pass"
    failure_reason = ""
    if timing is None:
        status = "skipped"
        failure_reason = "no GPU target available"
    elif verification is not None and verification.status == "fail":
        status = "fail"
        failure_reason = (
            f"max relative error {verification.max_rel_error:.3g} exceeds tolerance {verification.tolerance:.3g}"
        )

    out = {
        "schema_version": SCHEMA_VERSION,
        "run": {
            "run_id": run_id,
            "started_at": started_at,
            "finished_at": finished_at,
            "status": status,
            "failure_reason": failure_reason,
            "git": git,
            "environment": {
                "platform": {"os": platform.system().lower(), "arch": platform.machine().lower()},
                "halide": {"version": halide_version()},
                "target": _target_dict(target),
            },
            "artifacts_dir": str(artifacts_dir),
        },
        "config": {
            "mode": schedule_mode(scheduler),
            "scheduler": scheduler,
            "extents": _extents_dict(extents),
            "output_extents": _extents_dict(extents.output()),
            "num_runs": num_runs,
            "seed": seed,
        },
        "timing": None if timing is None else timing.to_dict(),
        "verification": None if verification is None else verification.to_dict(),
    }
    validate_results_schema(out)
    return out


def write_results(path: Path, results: dict[str, Any]) -> None:
    path.write_text(json.dumps(results, indent=2, sort_keys=True) + "\n")
