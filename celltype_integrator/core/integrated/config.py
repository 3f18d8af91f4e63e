"""Configuration classes for integrated classification."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

from .validation import InvalidConfigError, ValidationResult


@dataclass
class IntegratedConfig:
    """Configuration for integrated training and classification.

    Attributes
    ----------
    quantile : float
        Quantile of the per-profile correlations used as the label score.
        Must lie in (0, 1].
    num_threads : int
        Number of worker threads; 1 disables parallelism.
    top : int
        Number of markers kept per label pair when preparing references.
    block_size : int
        Number of test cells extracted from the matrix per block.
    """

    quantile: float = 0.8
    num_threads: int = 1
    top: int = 20
    block_size: int = 256

    @classmethod
    def from_yaml(cls, path: Path) -> "IntegratedConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Handle nested integrated section
        if "integrated" in data:
            data = data["integrated"]

        return cls(**data)

    @classmethod
    def default(cls) -> "IntegratedConfig":
        """Create default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "quantile": self.quantile,
            "num_threads": self.num_threads,
            "top": self.top,
            "block_size": self.block_size,
        }

    def validate(self) -> ValidationResult:
        """Check value ranges; returns errors instead of raising."""
        errors = []
        if not 0 < self.quantile <= 1:
            errors.append(InvalidConfigError(
                message="Quantile must lie in (0, 1]",
                expected="0 < quantile <= 1",
                found=self.quantile,
                parameter="quantile",
            ))
        if self.num_threads < 1:
            errors.append(InvalidConfigError(
                message="Number of threads must be positive",
                expected="num_threads >= 1",
                found=self.num_threads,
                parameter="num_threads",
            ))
        if self.block_size < 1:
            errors.append(InvalidConfigError(
                message="Block size must be positive",
                expected="block_size >= 1",
                found=self.block_size,
                parameter="block_size",
            ))
        return ValidationResult(is_valid=not errors, errors=errors)
