from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path


def find_repo_root() -> Path:
    """Return the repository root directory.

    Searches upwards from this file for `pyproject.toml`; falls back to the
    current working directory for installed (non-editable) copies.
    """
    start = Path(__file__).resolve()
    for parent in start.parents:
        if (parent / "pyproject.toml").is_file():
            return parent
    return Path.cwd().resolve()


def sanitize_run_id(run_id: str) -> str:
    """Make run_id filesystem-safe and non-empty."""
    s = run_id.strip()
    if not s:
        raise ValueError("run_id must be non-empty")
    s = re.sub(r"[^A-Za-z0-9_.-]+", "-", s)
    s = s.strip("-")
    if not s:
        raise ValueError("run_id must contain at least one alphanumeric character after sanitization")
    return s


def default_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")


def now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
