"""
Profiling utilities for the Halide blur benchmark.

Small helpers that run the benchmark under external profiling tools (Nsight
Systems and Nsight Compute) and write outputs into a deterministic on-disk
layout for later manual analysis.
"""
