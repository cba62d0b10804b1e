from __future__ import annotations

import numpy as np
import pytest

from halide_nsight_demo.blur_bench.config import DEFAULT_EXTENTS, Extents, default_num_runs
from halide_nsight_demo.blur_bench.inputs import constant_input, generate_input
from halide_nsight_demo.blur_bench.pipeline import BlurPipeline


@pytest.mark.parametrize(
    "shape",
    [(1, 1, 3, 3), (1, 1, 5, 5), (2, 3, 4, 9), (32, 8, 258, 258)],
)
def test_output_extents_shrink_height_and_width_by_two(shape: tuple[int, int, int, int]) -> None:
    b, c, h, w = shape
    assert Extents.from_shape(shape).output() == Extents(batch=b, channels=c, height=h - 2, width=w - 2)


def test_pipeline_reports_output_extents_without_computing() -> None:
    pipeline = BlurPipeline(np.zeros((2, 3, 7, 6), dtype=np.float32))
    assert pipeline.output_extents().shape == (2, 3, 5, 4)
    out = pipeline.new_output()
    assert out.shape == (2, 3, 5, 4)
    assert out.dtype == np.float32


def test_uniform_input_scenario() -> None:
    extents = Extents(batch=1, channels=1, height=5, width=5)
    pipeline = BlurPipeline(constant_input(extents, 2.0))
    np.testing.assert_allclose(pipeline.reference(), np.full((1, 1, 3, 3), 2.0), rtol=1e-6)


def test_pipeline_rejects_bad_inputs() -> None:
    with pytest.raises(TypeError):
        BlurPipeline(np.zeros((1, 1, 3, 3), dtype=np.float64))
    with pytest.raises(ValueError):
        BlurPipeline(np.zeros((1, 1, 2, 5), dtype=np.float32))
    with pytest.raises(ValueError):
        BlurPipeline(np.zeros((1, 3, 3), dtype=np.float32))


def test_extents_validation() -> None:
    with pytest.raises(ValueError):
        Extents(batch=0, channels=1, height=3, width=3)
    with pytest.raises(ValueError):
        Extents(batch=1, channels=1, height=2, width=3).output()
    assert DEFAULT_EXTENTS.output().to_axis_value() == "32x8x256x256"


def test_generate_input_is_read_only_and_echoes_extents(capsys: pytest.CaptureFixture[str]) -> None:
    extents = Extents(batch=1, channels=2, height=4, width=5)
    arr = generate_input(extents, seed=0)
    assert arr.shape == (1, 2, 4, 5)
    assert arr.dtype == np.float32
    assert not arr.flags.writeable
    np.testing.assert_array_equal(arr, generate_input(extents, seed=0))
    out = capsys.readouterr().out
    assert "batch_size: 1, height: 4, width: 5, channels: 2" in out


def test_default_num_runs_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HALIDE_NSIGHT_DEMO_NUM_RUNS", raising=False)
    assert default_num_runs() == 100
    monkeypatch.setenv("HALIDE_NSIGHT_DEMO_NUM_RUNS", "7")
    assert default_num_runs() == 7
    monkeypatch.setenv("HALIDE_NSIGHT_DEMO_NUM_RUNS", "0")
    with pytest.raises(ValueError):
        default_num_runs()
    monkeypatch.setenv("HALIDE_NSIGHT_DEMO_NUM_RUNS", "many")
    with pytest.raises(ValueError):
        default_num_runs()
