"""Integrated classification across multiple references.

Combines per-reference label assignments into a single choice of reference
for every test cell, using rank correlations over a per-cell set of marker
genes pooled from all references.

Example Usage
-------------
>>> from celltype_integrator.core.integrated import (
...     IntegratedClassifier, IntegratedConfig,
... )
>>> engine = IntegratedClassifier(IntegratedConfig(quantile=0.8, num_threads=4))
>>> refs = [
...     engine.prepare(ref, labels, markers, test_ids=test_genes, ref_ids=ref_genes)
...     for ref, labels, markers, ref_genes in references
... ]
>>> engine.train(refs)
>>> results = engine.classify(test, assigned)
>>> df = results.to_dataframe(reference_names=["atlas", "pbmc"])
"""

# Configuration
from .config import IntegratedConfig

# Matrix access
from .matrix import (
    ConsecutiveExtractor,
    as_feature_matrix,
    as_indexable,
    num_columns,
    num_rows,
)

# Training
from .training import (
    IntegratedReference,
    TrainedIntegrated,
    prepare_integrated_input,
    prepare_integrated_input_intersect,
    train_integrated,
)

# Classification
from .classify import (
    ClassifyIntegratedBuffers,
    ClassifyIntegratedResults,
    classify_integrated,
    classify_integrated_into,
    fill_mapping,
)

# Engine
from .engine import IntegratedClassifier

# Validation
from .validation import (
    CellCountError,
    InvalidConfigError,
    LabelOutOfRangeError,
    ReferenceCountError,
    UniverseRangeError,
    ValidationError,
    ValidationResult,
    validate_assigned,
    validate_test_matrix,
)

__all__ = [
    # Config
    "IntegratedConfig",
    # Matrix
    "ConsecutiveExtractor",
    "as_feature_matrix",
    "as_indexable",
    "num_rows",
    "num_columns",
    # Training
    "IntegratedReference",
    "TrainedIntegrated",
    "prepare_integrated_input",
    "prepare_integrated_input_intersect",
    "train_integrated",
    # Classification
    "ClassifyIntegratedBuffers",
    "ClassifyIntegratedResults",
    "classify_integrated",
    "classify_integrated_into",
    "fill_mapping",
    # Engine
    "IntegratedClassifier",
    # Validation
    "ValidationError",
    "ValidationResult",
    "ReferenceCountError",
    "LabelOutOfRangeError",
    "CellCountError",
    "UniverseRangeError",
    "InvalidConfigError",
    "validate_assigned",
    "validate_test_matrix",
]
