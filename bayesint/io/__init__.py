"""
Input/Output
============
Series files and logging setup for the command line.
"""

from bayesint.io.logging import setup_logging

from bayesint.io.series import (
    load_series,
    save_series,
)

__all__ = [
    "setup_logging",
    "load_series",
    "save_series",
]
