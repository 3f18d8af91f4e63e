"""I/O utilities for CellType-Integrator.

Provides run logging and structured summary records.
"""

from .logging import get_logger, get_timestamped_log_path, log_json, log_yaml

__all__ = [
    "get_logger",
    "get_timestamped_log_path",
    "log_json",
    "log_yaml",
]
