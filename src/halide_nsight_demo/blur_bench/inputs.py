from __future__ import annotations

import numpy as np

from .config import Extents


def _freeze(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


def generate_input(extents: Extents, *, seed: int | None = None) -> np.ndarray:
    """Allocate a (batch, channels, height, width) float32 tensor of random values.

    With `seed=None` the values differ on every call. The returned array is
    read-only.
    """
    print(
        f"Generating input with dimensions: batch_size: {extents.batch}, height: {extents.height}, "
        f"width: {extents.width}, channels: {extents.channels}"
    )
    rng = np.random.default_rng(seed)
    return _freeze(rng.random(extents.shape, dtype=np.float32))


def constant_input(extents: Extents, value: float) -> np.ndarray:
    return _freeze(np.full(extents.shape, value, dtype=np.float32))
