"""
Lowering of the blur expression tree to Halide.

`hl.Buffer(ndarray)` reverses axes, so a numpy array indexed `(n, c, y, x)`
is a Halide buffer indexed `(x, y, c, n)`; every access built here is emitted
in that reversed order. Dimension 0 (`x`) is the dense, unit-stride one.
"""

from __future__ import annotations

from typing import Union

import halide as hl
import numpy as np

from . import expr
from .pipeline import CONSUMER, INPUT, PRODUCER, BlurPipeline

Compiled = Union[hl.Func, hl.Pipeline]


class HalideBlur:
    def __init__(self, pipeline: BlurPipeline) -> None:
        self.pipeline = pipeline
        self.n, self.c, self.y, self.x = (hl.Var(a) for a in expr.AXES)

        # Halide only reads the buffer; a read-only numpy view cannot be wrapped.
        arr = pipeline.input
        self._host_input = arr if arr.flags.writeable else arr.copy()
        self.input = hl.Buffer(self._host_input, name=INPUT)

        self.funcs: dict[str, hl.Func] = {f.name: hl.Func(f.name) for f in pipeline.funcs}
        lhs = (self.x, self.y, self.c, self.n)
        for f in pipeline.funcs:
            self.funcs[f.name][lhs] = self._lower(f.body)

        self.producer = self.funcs[PRODUCER]
        self.consumer = self.funcs[CONSUMER]
        self.auto_blur = hl.Pipeline(self.consumer)

        # Set by schedules.schedule_for_gpu once something has been JIT-compiled.
        self.compiled: Compiled | None = None
        self.target: hl.Target | None = None

    def _coords(self, offsets: tuple[int, ...]) -> list[hl.Expr]:
        axis_vars = (self.n, self.c, self.y, self.x)
        coords = [hl.Expr(v) + o if o else hl.Expr(v) for v, o in zip(axis_vars, offsets)]
        coords.reverse()
        return coords

    def _lower(self, e: expr.Expr) -> hl.Expr:
        if isinstance(e, expr.Const):
            return hl.f32(e.value)
        if isinstance(e, expr.Load):
            coords = self._coords(e.offsets)
            if e.source == INPUT:
                return self.input[coords]
            return hl.Expr(self.funcs[e.source][coords])
        lhs = self._lower(e.lhs)
        rhs = self._lower(e.rhs)
        if e.op == "+":
            return lhs + rhs
        return lhs / rhs

    def output_buffer(self, host: np.ndarray) -> hl.Buffer:
        expected = self.pipeline.output_extents().shape
        if host.shape != expected or host.dtype != np.float32:
            raise ValueError(f"Output must be float32 of shape {expected}, got {host.dtype} {host.shape}")
        return hl.Buffer(host, name=CONSUMER)

    def realize(self, output: hl.Buffer) -> None:
        if self.compiled is None or self.target is None:
            raise RuntimeError("Pipeline has not been compiled; call schedules.schedule_for_gpu first")
        self.compiled.realize(output, self.target)
