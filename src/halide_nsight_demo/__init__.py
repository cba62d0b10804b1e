"""Halide two-stage blur benchmark and Nsight profiling helpers."""
