"""CellType-Integrator: multi-reference cell-type assignment by rank correlation.

This package provides tools for:
- Matching feature identifiers between test and reference datasets
- Restricting per-label-pair marker lists to a shared feature universe
- Training integrated structures from several labeled references
- Choosing, per test cell, the reference whose assigned label scores best

Example usage:
    >>> from celltype_integrator.core.integrated import (
    ...     IntegratedClassifier,
    ...     prepare_integrated_input_intersect,
    ... )
    >>>
    >>> refs = [
    ...     prepare_integrated_input_intersect(test_ids, ref, ref_ids, labels, markers, top=20)
    ...     for ref, ref_ids, labels, markers in references
    ... ]
    >>> engine = IntegratedClassifier()
    >>> trained = engine.train(refs)
    >>> results = engine.classify(test, assigned)
"""

__version__ = "0.1.0"
