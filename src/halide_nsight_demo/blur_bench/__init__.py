"""Halide blur benchmark (Python harness layer).

This package builds a two-stage box blur as an explicit expression tree, lowers
it to Halide, schedules it for a GPU (hand-written or autoscheduled), and times
the JIT-compiled pipeline. Results can be exported as JSON and rendered into a
Markdown report for later comparison against Nsight captures.
"""

from __future__ import annotations
