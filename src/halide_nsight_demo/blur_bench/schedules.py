from __future__ import annotations

import sys
from pathlib import Path

import halide as hl

from .config import GPU_TILE, schedule_mode
from .lowering import HalideBlur
from .targets import TargetInfo

# Autoscheduler name -> plugin library name (see plugin_library for lookup).
AUTOSCHEDULERS: dict[str, str] = {
    "Adams2019": "autoschedule_adams2019",
    "Anderson2021": "autoschedule_anderson2021",
    "Li2018": "autoschedule_li2018",
    "Mullapudi2016": "autoschedule_mullapudi2016",
}

_loaded_plugins: set[str] = set()


class UnknownSchedulerError(ValueError):
    pass


def resolve_autoscheduler(name: str) -> str:
    """Return the canonical autoscheduler name (lookup is case-insensitive)."""
    by_lower = {k.lower(): k for k in AUTOSCHEDULERS}
    canonical = by_lower.get(name.strip().lower())
    if canonical is None:
        raise UnknownSchedulerError(f"Unknown autoscheduler {name!r}. Known: {sorted(AUTOSCHEDULERS)}")
    return canonical


def plugin_filename(plugin: str) -> str:
    if sys.platform == "win32":
        return f"{plugin}.dll"
    if sys.platform == "darwin":
        return f"lib{plugin}.dylib"
    return f"lib{plugin}.so"


def plugin_library(plugin: str) -> str:
    """Path of `plugin` inside the Halide install, else the bare name for the dynamic loader.

    The pip wheel keeps its plugins next to libHalide, which is not on the
    loader search path.
    """
    root = Path(hl.install_dir())
    for subdir in ("lib64", "lib", "bin"):
        candidate = root / subdir / plugin_filename(plugin)
        if candidate.is_file():
            return str(candidate)
    return plugin


def load_autoscheduler(name: str) -> str:
    canonical = resolve_autoscheduler(name)
    plugin = AUTOSCHEDULERS[canonical]
    if plugin not in _loaded_plugins:
        hl.load_plugin(plugin_library(plugin))
        _loaded_plugins.add(plugin)
    return canonical


def apply_manual_cuda_schedule(blur: HalideBlur, *, tile: int = GPU_TILE) -> None:
    """Hand-written CUDA schedule.

    Batch and channel are fused into `nc`; `(x, nc)` is tiled `tile x tile`, the
    tile grid plus every row `y` become GPU blocks and the tile interior becomes
    GPU threads. The vertical pass is computed per thread, right where the
    horizontal pass needs it.
    """
    nc, xo, xi, nco, nci = hl.Var("nc"), hl.Var("xo"), hl.Var("xi"), hl.Var("nco"), hl.Var("nci")
    (
        blur.consumer.fuse(blur.c, blur.n, nc)
        .tile(blur.x, nc, xo, nco, xi, nci, tile, tile, hl.TailStrategy.GuardWithIf)
        .reorder(xi, nci, xo, nco, blur.y)
        .gpu_blocks(xo, nco, blur.y)
        .gpu_threads(xi, nci)
    )
    blur.producer.compute_at(blur.consumer, xi).store_in(hl.MemoryType.Auto)


def schedule_for_gpu(blur: HalideBlur, scheduler: str, target: TargetInfo, *, allow_cpu: bool = False) -> bool:
    """Schedule and JIT-compile `blur` for `target`.

    `scheduler == ""` selects the hand-written schedule, anything else names an
    autoscheduler from `AUTOSCHEDULERS`. Returns False, compiling nothing, when
    `target` has no GPU feature (unless `allow_cpu`).
    """
    if not target.has_gpu and not allow_cpu:
        return False

    if schedule_mode(scheduler) == "manual":
        if target.backend == "cuda":
            apply_manual_cuda_schedule(blur)
        # Other backends run unscheduled (everything inlined into one loop nest).

        print(f"Target: {target.name}")
        blur.consumer.compile_jit(target.target)
        blur.compiled = blur.consumer
    else:
        name = load_autoscheduler(scheduler)
        # Estimates are a cost-model hint; the input extents are used as-is.
        extents = blur.pipeline.extents.shape
        blur.consumer.set_estimates([hl.Range(0, e) for e in reversed(extents)])

        print(f"Target: {target.name}")
        blur.auto_blur.apply_autoscheduler(target.target, hl.AutoschedulerParams(name))
        blur.auto_blur.compile_jit(target.target)
        blur.compiled = blur.auto_blur

    blur.target = target.target
    return True
