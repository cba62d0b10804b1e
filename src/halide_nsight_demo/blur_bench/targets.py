from __future__ import annotations

import attrs
import halide as hl

_BACKENDS: dict[str, hl.TargetFeature] = {
    "cuda": hl.TargetFeature.CUDA,
    "metal": hl.TargetFeature.Metal,
    "opencl": hl.TargetFeature.OpenCL,
    "d3d12": hl.TargetFeature.D3D12Compute,
    "vulkan": hl.TargetFeature.Vulkan,
}


@attrs.define(frozen=True, slots=True)
class TargetInfo:
    target: hl.Target
    name: str
    has_gpu: bool
    backend: str

    @staticmethod
    def from_target(target: hl.Target) -> "TargetInfo":
        backend = "host"
        for key, feature in _BACKENDS.items():
            if target.has_feature(feature):
                backend = key
                break
        return TargetInfo(target=target, name=target.to_string(), has_gpu=target.has_gpu_feature(), backend=backend)


def gpu_feature_candidates(os_name: hl.TargetOS) -> list[hl.TargetFeature]:
    """GPU features to try, in preference order, for a host OS."""
    if os_name == hl.TargetOS.OSX:
        # macOS OpenCL drivers are not maintained; Metal is the only reliable choice.
        return [hl.TargetFeature.Metal]
    return [hl.TargetFeature.CUDA]


def find_gpu_target() -> TargetInfo:
    """Return the host target with the first GPU feature the host supports.

    Falls back to the plain host target (and says so) when none is supported.
    """
    target = hl.get_host_target()
    for feature in gpu_feature_candidates(target.os):
        candidate = target.with_feature(feature)
        if hl.host_supports_target_device(candidate):
            return TargetInfo.from_target(candidate)

    print("Requested GPU(s) are not supported. (Do you have the proper hardware and/or driver installed?)")
    return TargetInfo.from_target(target)
