"""Integrated classification engine.

Wraps preparation, training and classification with configuration,
input validation and logging. The functional API in :mod:`.training` and
:mod:`.classify` assumes validated inputs; this engine is the boundary that
checks them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Hashable, Optional, Sequence, Union

import anndata as ad
import numpy as np

from ..features import Markers
from ...io import get_logger, log_json, log_yaml
from .classify import ClassifyIntegratedResults, classify_integrated
from .config import IntegratedConfig
from .matrix import as_feature_matrix, num_columns, num_rows
from .training import (
    IntegratedReference,
    TrainedIntegrated,
    prepare_integrated_input,
    prepare_integrated_input_intersect,
    train_integrated,
)
from .validation import validate_assigned, validate_test_matrix


class IntegratedClassifier:
    """Choose, per test cell, the reference whose assigned label fits best.

    Parameters
    ----------
    config : IntegratedConfig, optional
        Configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.

    Attributes
    ----------
    trained : TrainedIntegrated or None
        Result of the last :meth:`train` call.
    log_path : Path or None
        Run log written by an engine from :meth:`with_run_log`.

    Example
    -------
    >>> engine = IntegratedClassifier(IntegratedConfig(quantile=0.8, num_threads=4))
    >>> refs = [engine.prepare(ref, labels, markers, test_ids=genes, ref_ids=ref_genes)]
    >>> engine.train(refs)
    >>> results = engine.classify(test, [assigned_labels])
    """

    def __init__(
        self,
        config: Optional[IntegratedConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or IntegratedConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.trained: Optional[TrainedIntegrated] = None
        self.log_path: Optional[Path] = None
        self.config.validate().raise_if_invalid("integrated configuration")

    @classmethod
    def with_run_log(
        cls,
        log_path: Union[str, Path],
        config: Optional[IntegratedConfig] = None,
        timestamped: bool = True,
        console: bool = False,
    ) -> "IntegratedClassifier":
        """Create an engine that logs the run to a file.

        Parameters
        ----------
        log_path : str or Path
            Base path of the run log.
        config : IntegratedConfig, optional
            Configuration. If None, uses defaults.
        timestamped : bool
            If True, add a timestamp to the filename to keep earlier logs.
        console : bool
            Also echo records to stderr.

        Returns
        -------
        IntegratedClassifier
            Engine whose ``log_path`` is the file actually written.
        """
        logger, actual_log_path = get_logger(
            "celltype_integrator", log_path, timestamped=timestamped, console=console
        )
        engine = cls(config=config, logger=logger)
        engine.log_path = actual_log_path
        logger.info("Run log: %s", actual_log_path)
        logger.info("Configuration: %s", engine.config.to_dict())
        return engine

    def prepare(
        self,
        ref: Any,
        labels: Sequence[int],
        markers: Markers,
        test_ids: Optional[Sequence[Hashable]] = None,
        ref_ids: Optional[Sequence[Hashable]] = None,
    ) -> IntegratedReference:
        """Prepare one reference, matching features by identifier if given.

        When both ``test_ids`` and ``ref_ids`` are provided, features are
        intersected by identifier; otherwise the reference is assumed to share
        the test feature space.
        """
        if (test_ids is None) != (ref_ids is None):
            raise ValueError("test_ids and ref_ids must be given together")

        if test_ids is None:
            prepared = prepare_integrated_input(ref, labels, markers, self.config.top)
        else:
            prepared = prepare_integrated_input_intersect(
                test_ids, ref, ref_ids, labels, markers, self.config.top
            )

        n_marker_genes = len(np.unique(np.concatenate(prepared.markers))) if prepared.markers else 0
        self.logger.info(
            "Prepared reference: %d cells, %d labels, %d marker genes (top=%d, intersect=%s)",
            num_columns(ref),
            prepared.n_labels,
            n_marker_genes,
            self.config.top,
            prepared.check_availability,
        )
        if n_marker_genes == 0:
            self.logger.warning(
                "Reference has no usable markers; all of its scores will be degenerate"
            )
        return prepared

    def train(self, references: Sequence[IntegratedReference]) -> TrainedIntegrated:
        """Train integrated structures and keep them on the engine."""
        if not references:
            raise ValueError("At least one reference is required for integrated training")
        self.trained = train_integrated(
            references,
            num_threads=self.config.num_threads,
            block_size=self.config.block_size,
            logger=self.logger,
        )
        return self.trained

    def classify(
        self,
        test: Any,
        assigned: Sequence[Sequence[int]],
        layer: Optional[str] = None,
        trained: Optional[TrainedIntegrated] = None,
    ) -> ClassifyIntegratedResults:
        """Validate inputs and run integrated classification.

        Parameters
        ----------
        test : np.ndarray, scipy.sparse matrix or AnnData
            Test expression data; arrays are features x cells, AnnData is
            cells x genes and converted.
        assigned : Sequence[array-like]
            Per reference, the label assigned to each test cell.
        layer : str, optional
            AnnData layer to use.
        trained : TrainedIntegrated, optional
            Trained structures; defaults to the last :meth:`train` result.

        Returns
        -------
        ClassifyIntegratedResults
            Best reference, per-reference scores and delta for each cell.

        Raises
        ------
        ValueError
            If no trained structures are available or inputs fail validation,
            or if ``layer`` is given for non-AnnData input.
        """
        trained = trained or self.trained
        if trained is None:
            raise ValueError("No trained structures; call train() first")

        if isinstance(test, ad.AnnData):
            test = as_feature_matrix(test, layer=layer)
        elif layer is not None:
            raise ValueError(
                f"layer='{layer}' only applies to AnnData input, got {type(test).__name__}"
            )

        matrix_check = validate_test_matrix(num_rows(test), trained)
        matrix_check.raise_if_invalid("test matrix")

        assigned_check = validate_assigned(assigned, trained, num_columns(test))
        assigned_check.log_warnings(self.logger)
        assigned_check.raise_if_invalid("assigned labels")

        return classify_integrated(test, assigned, trained, self.config, self.logger)

    def summarize(
        self,
        results: ClassifyIntegratedResults,
        reference_names: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Summarise wins per reference and delta statistics."""
        n_refs = len(results.scores)
        if reference_names is None:
            reference_names = [str(r) for r in range(n_refs)]
        wins = np.bincount(results.best, minlength=n_refs) if results.best.size else np.zeros(n_refs)
        finite = results.delta[np.isfinite(results.delta)]

        summary: Dict[str, Any] = {
            "n_cells": int(results.best.shape[0]),
            "n_references": n_refs,
            "config": self.config.to_dict(),
            "wins": {name: int(w) for name, w in zip(reference_names, wins)},
            "delta_median": float(np.median(finite)) if finite.size else None,
            "delta_nan": int(results.delta.shape[0] - finite.shape[0]),
        }
        for name, win in summary["wins"].items():
            self.logger.info("  Reference %s: best for %d cells", name, win)
        return summary

    def write_summary(
        self,
        results: ClassifyIntegratedResults,
        log_path: Union[str, Path],
        reference_names: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Append the run summary to ``log_path``.

        Files ending in ``.yaml``/``.yml`` receive a YAML document; anything
        else receives a JSON line.
        """
        summary = self.summarize(results, reference_names)
        if Path(log_path).suffix in (".yaml", ".yml"):
            log_yaml(log_path, summary)
        else:
            log_json(log_path, summary)
        self.logger.info("Wrote integrated classification summary to %s", log_path)
        return summary
