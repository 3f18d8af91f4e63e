"""Utility functions for CellType-Integrator.

Provides range-partitioned parallel execution shared by training and
classification.
"""

from .parallel import (
    parallelize,
    partition_ranges,
)

__all__ = [
    "parallelize",
    "partition_ranges",
]
