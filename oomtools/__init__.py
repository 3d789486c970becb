"""Helpers for cgroup v2 control files, PSI parsing, plugin arguments and test fixtures."""

__version__ = "0.1.0"

__all__ = ["argparser", "cgroupfs", "errors", "fixture", "fs", "scope", "util"]