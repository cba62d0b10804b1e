from __future__ import annotations

import os
from typing import Literal

import attrs

# Taps per blur pass; each pass shrinks its axis by TAPS - 1.
TAPS = 3

DEFAULT_NUM_RUNS = 100
NUM_RUNS_ENV = "HALIDE_NSIGHT_DEMO_NUM_RUNS"

# Manual CUDA schedule tile edge (threads per block = GPU_TILE * GPU_TILE).
GPU_TILE = 32


@attrs.define(frozen=True, slots=True)
class Extents:
    batch: int
    channels: int
    height: int
    width: int

    def __attrs_post_init__(self) -> None:
        if min(self.shape) < 1:
            raise ValueError(f"All extents must be >= 1, got {self.to_axis_value()}")

    @property
    def shape(self) -> tuple[int, int, int, int]:
        return (self.batch, self.channels, self.height, self.width)

    def to_axis_value(self) -> str:
        return f"{self.batch}x{self.channels}x{self.height}x{self.width}"

    @staticmethod
    def from_shape(shape: tuple[int, ...]) -> "Extents":
        if len(shape) != 4:
            raise ValueError(f"Expected a 4-D (batch, channels, height, width) shape, got {shape!r}")
        b, c, h, w = (int(v) for v in shape)
        return Extents(batch=b, channels=c, height=h, width=w)

    def output(self) -> "Extents":
        """Extents of the blurred tensor (height and width shrink by TAPS - 1)."""
        if self.height < TAPS or self.width < TAPS:
            raise ValueError(f"height and width must be >= {TAPS} to blur, got {self.height}x{self.width}")
        return Extents(
            batch=self.batch,
            channels=self.channels,
            height=self.height - (TAPS - 1),
            width=self.width - (TAPS - 1),
        )


# 32 images of 8 channels, 258x258 so that the blurred output is 256x256.
DEFAULT_EXTENTS = Extents(batch=32, channels=8, height=258, width=258)


def default_num_runs() -> int:
    env = os.environ.get(NUM_RUNS_ENV)
    if not env:
        return DEFAULT_NUM_RUNS
    try:
        value = int(env)
    except ValueError as e:
        raise ValueError(f"{NUM_RUNS_ENV} must be an integer, got {env!r}") from e
    if value < 1:
        raise ValueError(f"{NUM_RUNS_ENV} must be >= 1, got {value}")
    return value


ScheduleMode = Literal["manual", "auto"]


def schedule_mode(scheduler: str) -> ScheduleMode:
    """An empty scheduler name selects the hand-written schedule."""
    return "auto" if scheduler else "manual"
