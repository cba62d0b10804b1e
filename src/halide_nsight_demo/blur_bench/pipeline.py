from __future__ import annotations

import numpy as np

from . import expr
from .config import Extents

INPUT = "input"
PRODUCER = "producer"
CONSUMER = "consumer"


def blur_funcs() -> tuple[expr.FuncDef, expr.FuncDef]:
    """Two chained 3-tap box blurs: vertical (producer) then horizontal (consumer)."""
    producer = expr.FuncDef(
        PRODUCER,
        expr.div(
            expr.add(
                expr.load(INPUT),
                expr.load(INPUT, y=1),
                expr.load(INPUT, y=2),
            ),
            3,
        ),
    )
    consumer = expr.FuncDef(
        CONSUMER,
        expr.div(
            expr.add(
                expr.load(PRODUCER),
                expr.load(PRODUCER, x=1),
                expr.load(PRODUCER, x=2),
            ),
            3,
        ),
    )
    return producer, consumer


class BlurPipeline:
    """Declarative two-stage blur over a (batch, channels, height, width) float32 tensor.

    Nothing is computed at construction; the definition is later lowered to
    Halide (see `lowering.HalideBlur`) or evaluated with numpy (`reference`).
    """

    def __init__(self, input: np.ndarray) -> None:
        if input.dtype != np.float32:
            raise TypeError(f"Expected a float32 input, got {input.dtype}")
        self.extents = Extents.from_shape(input.shape)
        self._output_extents = self.extents.output()
        self.input = input
        self.funcs = blur_funcs()

    @property
    def output_name(self) -> str:
        return CONSUMER

    def output_extents(self) -> Extents:
        return self._output_extents

    def new_output(self) -> np.ndarray:
        """Zeroed host array with the output shape (batch, channels, height - 2, width - 2)."""
        return np.zeros(self._output_extents.shape, dtype=np.float32)

    def reference(self) -> np.ndarray:
        return expr.evaluate(self.funcs, CONSUMER, {INPUT: self.input}, self._output_extents.shape)
