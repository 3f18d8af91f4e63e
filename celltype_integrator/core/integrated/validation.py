"""
Validation errors with actionable diagnostics for integrated classification.

The scoring loop itself never raises; malformed inputs are rejected here,
before any worker starts. Error codes enable programmatic handling.

Error Codes:
    E001_REFERENCE_COUNT: Number of assigned-label arrays differs from references
    E002_LABEL_OUT_OF_RANGE: Assigned label exceeds a reference's label count
    E003_CELL_COUNT: Assigned-label array length differs from test cell count
    E004_UNIVERSE_RANGE: Universe row index beyond the test matrix rows
    E005_INVALID_CONFIG: Configuration value outside its valid range
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np


@dataclass
class ValidationError:
    """Base class for validation errors with actionable diagnostics.

    Attributes
    ----------
    message : str
        Human-readable error description
    error_code : str
        Machine-readable error code for programmatic handling
    expected : Any
        What the validator expected to find
    found : Any
        What was actually found
    suggestion : str
        Actionable suggestion for fixing the error
    context : Dict[str, Any]
        Additional context for debugging
    """

    message: str
    error_code: str = "E000_UNKNOWN"
    expected: Any = None
    found: Any = None
    suggestion: str = ""
    context: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error as human-readable multi-line string."""
        parts = [f"[{self.error_code}] {self.message}"]
        if self.expected is not None:
            parts.append(f"  Expected: {self.expected}")
        if self.found is not None:
            parts.append(f"  Found: {self.found}")
        if self.suggestion:
            parts.append(f"  Suggestion: {self.suggestion}")
        return "\n".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "expected": str(self.expected) if self.expected is not None else None,
            "found": str(self.found) if self.found is not None else None,
            "suggestion": self.suggestion,
            "context": self.context,
        }


@dataclass
class ReferenceCountError(ValidationError):
    """Error when the assigned labels do not cover every trained reference."""

    error_code: str = "E001_REFERENCE_COUNT"

    def __post_init__(self):
        if not self.suggestion:
            self.suggestion = (
                "Pass one assigned-label array per reference, in the order "
                "the references were given to train_integrated()."
            )


@dataclass
class LabelOutOfRangeError(ValidationError):
    """Error for assigned labels that do not exist in a reference."""

    error_code: str = "E002_LABEL_OUT_OF_RANGE"
    reference: int = 0
    n_labels: int = 0
    invalid_labels: List[int] = field(default_factory=list)

    def __post_init__(self):
        if not self.suggestion:
            sample = ", ".join(str(x) for x in self.invalid_labels[:5])
            self.suggestion = (
                f"Reference {self.reference} has labels 0..{self.n_labels - 1}; "
                f"offending values include: {sample}. Check that labels were "
                "encoded with the same categories used for training."
            )


@dataclass
class CellCountError(ValidationError):
    """Error when an assigned-label array does not match the test cells."""

    error_code: str = "E003_CELL_COUNT"
    reference: int = 0


@dataclass
class UniverseRangeError(ValidationError):
    """Error when the trained universe refers to rows absent from the test matrix."""

    error_code: str = "E004_UNIVERSE_RANGE"

    def __post_init__(self):
        if not self.suggestion:
            self.suggestion = (
                "Train with the same test feature identifiers (or the same "
                "feature space) as the matrix being classified."
            )


@dataclass
class InvalidConfigError(ValidationError):
    """Error for configuration values outside their valid range."""

    error_code: str = "E005_INVALID_CONFIG"
    parameter: str = ""

    def __post_init__(self):
        if not self.suggestion and self.parameter:
            self.suggestion = f"Set '{self.parameter}' to {self.expected}."


@dataclass
class ValidationResult:
    """Result of validation with errors and warnings.

    Attributes
    ----------
    is_valid : bool
        True if validation passed (no errors)
    errors : List[ValidationError]
        List of validation errors (empty if valid)
    warnings : List[str]
        Non-fatal warnings (e.g., labels without reference profiles)

    Example
    -------
    >>> result = validate_assigned(assigned, trained, n_cells)
    >>> result.log_warnings(logger)
    >>> result.raise_if_invalid("assigned labels")
    """

    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def raise_if_invalid(self, context: str = "") -> None:
        """Raise ValueError if validation failed.

        Parameters
        ----------
        context : str
            Additional context for the error message

        Raises
        ------
        ValueError
            If validation failed, with formatted error details
        """
        if not self.is_valid:
            error_msgs = [str(e) for e in self.errors]
            context_str = f" for {context}" if context else ""
            msg = f"Validation failed{context_str}:\n\n" + "\n\n".join(error_msgs)
            raise ValueError(msg)

    def log_warnings(self, logger: logging.Logger) -> None:
        """Log all warnings using the provided logger."""
        for warning in self.warnings:
            logger.warning(warning)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Merge another ValidationResult into this one."""
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": self.warnings,
        }


def validate_assigned(
    assigned: Sequence[Any],
    trained: Any,
    n_cells: int,
) -> ValidationResult:
    """Check the per-reference assigned labels against a trained structure.

    Parameters
    ----------
    assigned : Sequence[array-like]
        One array of label codes per reference.
    trained : TrainedIntegrated
        Trained integrated structure.
    n_cells : int
        Number of cells (columns) in the test matrix.

    Returns
    -------
    ValidationResult
        Errors for count mismatches and out-of-range labels; warnings for
        assigned labels without any reference profile.
    """
    errors: List[ValidationError] = []
    warnings: List[str] = []

    nref = trained.num_references()
    if len(assigned) != nref:
        errors.append(ReferenceCountError(
            message="Assigned labels do not match the number of references",
            expected=nref,
            found=len(assigned),
        ))
        return ValidationResult(is_valid=False, errors=errors)

    for r, labels in enumerate(assigned):
        labels = np.asarray(labels)
        if labels.shape[0] != n_cells:
            errors.append(CellCountError(
                message=f"Assigned labels for reference {r} do not match the test cells",
                expected=n_cells,
                found=labels.shape[0],
                reference=r,
            ))
            continue

        n_labels = trained.num_labels(r)
        bad = labels[(labels < 0) | (labels >= n_labels)]
        if bad.size:
            errors.append(LabelOutOfRangeError(
                message=f"Assigned labels out of range for reference {r}",
                expected=f"0 <= label < {n_labels}",
                found=f"{bad.size} invalid value(s)",
                reference=r,
                n_labels=n_labels,
                invalid_labels=sorted({int(x) for x in bad})[:20],
            ))
            continue

        profiles = trained.num_profiles(r)
        used = np.unique(labels)
        empty = [int(l) for l in used if profiles[int(l)] == 0]
        if empty:
            warnings.append(
                f"Reference {r}: label(s) {empty} have no reference profiles; "
                "their scores will be NaN and excluded from the comparison"
            )

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_test_matrix(n_rows: int, trained: Any) -> ValidationResult:
    """Check that every universe row exists in the test matrix."""
    universe = np.asarray(trained.universe)
    if universe.size and int(universe.max()) >= n_rows:
        return ValidationResult(
            is_valid=False,
            errors=[UniverseRangeError(
                message="Trained universe refers to rows beyond the test matrix",
                expected=f"row index < {n_rows}",
                found=int(universe.max()),
            )],
        )
    return ValidationResult(is_valid=True)
