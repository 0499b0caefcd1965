"""Data-driven test harness, test partitioning and test-runner tooling."""

__version__ = "0.1.0"

__all__ = [
    "cargo_cli",
    "datatest",
    "errors",
    "expected",
    "helpers",
    "metadata",
    "output",
    "partition",
]