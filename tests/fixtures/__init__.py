"""Test fixtures for CellType-Integrator.

Provides mock reference/test generators and test utilities.
"""

from .mock_references import (
    create_block_markers,
    create_labeled_matrix,
    create_reference,
    create_test_dataset,
    gene_names,
    permute_reference,
)

__all__ = [
    "create_block_markers",
    "create_labeled_matrix",
    "create_reference",
    "create_test_dataset",
    "gene_names",
    "permute_reference",
]
