"""
Explicit expression trees for elementwise stencil pipelines.

A pipeline is a set of named `FuncDef`s over the four coordinates
`(n, c, y, x)` (numpy axis order). Bodies are built from three node types:

- `Const`: a float32 literal
- `Load`: the value of a named function (or input) at the current coordinate
  plus a static, non-negative per-axis offset
- `BinOp`: `+` or `/` of two sub-expressions

All access offsets are known statically, so the region each function must be
computed over can be derived from its consumers without running anything.
`evaluate` is the numpy reference backend; `lowering.py` builds the same tree
as Halide `Func`s.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Literal, Union

import attrs
import numpy as np

AXES: tuple[str, ...] = ("n", "c", "y", "x")
NDIM = len(AXES)

BinaryOp = Literal["+", "/"]


@attrs.define(frozen=True, slots=True)
class Const:
    value: float


@attrs.define(frozen=True, slots=True)
class Load:
    source: str
    offsets: tuple[int, ...] = attrs.field(converter=tuple)

    def __attrs_post_init__(self) -> None:
        if len(self.offsets) != NDIM:
            raise ValueError(f"Load of {self.source!r} needs {NDIM} offsets, got {self.offsets!r}")
        if any(o < 0 for o in self.offsets):
            raise ValueError(f"Load of {self.source!r} has negative offsets {self.offsets!r}")


@attrs.define(frozen=True, slots=True)
class BinOp:
    op: BinaryOp
    lhs: "Expr"
    rhs: "Expr"

    def __attrs_post_init__(self) -> None:
        if self.op not in ("+", "/"):
            raise ValueError(f"Unsupported operator: {self.op!r}")


Expr = Union[Const, Load, BinOp]


@attrs.define(frozen=True, slots=True)
class FuncDef:
    name: str
    body: Expr


def const(value: float) -> Const:
    return Const(float(value))


def load(source: str, *, n: int = 0, c: int = 0, y: int = 0, x: int = 0) -> Load:
    return Load(source, (n, c, y, x))


def add(*terms: Expr) -> Expr:
    """Left-folded sum of one or more terms."""
    if not terms:
        raise ValueError("add() needs at least one term")
    out = terms[0]
    for t in terms[1:]:
        out = BinOp("+", out, t)
    return out


def div(lhs: Expr, rhs: Expr | float) -> BinOp:
    if not isinstance(rhs, (Const, Load, BinOp)):
        rhs = const(rhs)
    return BinOp("/", lhs, rhs)


def loads(expr: Expr) -> Iterator[Load]:
    if isinstance(expr, Load):
        yield expr
    elif isinstance(expr, BinOp):
        yield from loads(expr.lhs)
        yield from loads(expr.rhs)


def footprint(funcs: Sequence[FuncDef], source: str) -> tuple[int, ...]:
    """Largest offset per axis with which any function in `funcs` reads `source`."""
    out = [0] * NDIM
    for f in funcs:
        for ld in loads(f.body):
            if ld.source != source:
                continue
            out = [max(a, b) for a, b in zip(out, ld.offsets)]
    return tuple(out)


def _by_name(funcs: Sequence[FuncDef]) -> dict[str, FuncDef]:
    out: dict[str, FuncDef] = {}
    for f in funcs:
        if f.name in out:
            raise ValueError(f"Duplicate function name: {f.name!r}")
        out[f.name] = f
    return out


def required_regions(
    funcs: Sequence[FuncDef], output: str, shape: tuple[int, ...]
) -> dict[str, tuple[int, ...]]:
    """Shape of the region every function and input must cover to produce `output` over `shape`.

    Regions all start at the origin; a consumer evaluated over extent `e` reading
    its producer at offsets up to `k` needs the producer over `e + k`.
    """
    defs = _by_name(funcs)
    if output not in defs:
        raise KeyError(f"Unknown output function: {output!r}")

    regions: dict[str, tuple[int, ...]] = {output: tuple(shape)}
    pending = [output]
    while pending:
        name = pending.pop()
        region = regions[name]
        for ld in loads(defs[name].body):
            need = tuple(e + o for e, o in zip(region, ld.offsets))
            prev = regions.get(ld.source)
            merged = need if prev is None else tuple(max(a, b) for a, b in zip(prev, need))
            if merged != prev:
                regions[ld.source] = merged
                if ld.source in defs:
                    pending.append(ld.source)
    return regions


def evaluate(
    funcs: Sequence[FuncDef],
    output: str,
    inputs: Mapping[str, np.ndarray],
    shape: tuple[int, ...],
) -> np.ndarray:
    """Evaluate `output` over `shape` with numpy, computing each function once over its region."""
    defs = _by_name(funcs)
    regions = required_regions(funcs, output, shape)

    for name, region in regions.items():
        if name in defs:
            continue
        if name not in inputs:
            raise KeyError(f"Missing input: {name!r}")
        have = inputs[name].shape
        if len(have) != NDIM or any(r > h for r, h in zip(region, have)):
            raise ValueError(f"Input {name!r} of shape {have} does not cover required region {region}")

    realized: dict[str, np.ndarray] = {}

    def _value(name: str) -> np.ndarray:
        if name in inputs:
            return inputs[name]
        if name not in realized:
            realized[name] = _eval(defs[name].body, regions[name])
        return realized[name]

    def _eval(expr: Expr, region: tuple[int, ...]) -> np.ndarray:
        if isinstance(expr, Const):
            return np.full(region, expr.value, dtype=np.float32)
        if isinstance(expr, Load):
            src = _value(expr.source)
            window = tuple(slice(o, o + e) for o, e in zip(expr.offsets, region))
            return src[window]
        lhs = _eval(expr.lhs, region)
        rhs = _eval(expr.rhs, region)
        if expr.op == "+":
            return np.add(lhs, rhs, dtype=np.float32)
        return np.divide(lhs, rhs, dtype=np.float32)

    return np.ascontiguousarray(_value(output))
