"""Benchmarking core for procbench.

Times external commands over warmup and measured runs, aggregates the
samples into mean ± σ with human-scale units, and compares commands by
relative speed.
"""
