"""Integrate classifications from multiple references.

Each test cell has already been classified within every reference on its
own. For each cell, the markers of its assigned label in every reference are
pooled into a per-cell "miniverse". The cell is then scored against each
reference's assigned label using rank correlations over that common gene
set, and the reference with the highest score wins.

Genes missing from a reference are ignored when scoring against that
reference, rather than shrinking every comparison to the intersection.
Expression profiles of different references are never compared directly,
and label vocabularies are passed through untouched.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..scoring import (
    RankRemapper,
    RankedVector,
    correlations_to_scores,
    distance_to_correlation,
    rank_vector,
    scaled_ranks,
)
from ...utils import parallelize
from .config import IntegratedConfig
from .matrix import ConsecutiveExtractor, as_indexable, num_columns
from .training import TrainedIntegrated


@dataclass
class ClassifyIntegratedBuffers:
    """Caller-owned output arrays; any entry may be ``None`` to skip it.

    Attributes
    ----------
    best : np.ndarray, optional
        Index of the winning reference for each test cell.
    scores : List[Optional[np.ndarray]]
        Per reference, the score of its assigned label for each test cell.
        Empty, or ``None`` entries, skip reporting for that reference.
    delta : np.ndarray, optional
        Difference between the best and second-best scores for each cell.
    """

    best: Optional[np.ndarray] = None
    scores: List[Optional[np.ndarray]] = field(default_factory=list)
    delta: Optional[np.ndarray] = None


@dataclass
class ClassifyIntegratedResults:
    """Results of integrated classification.

    Attributes
    ----------
    best : np.ndarray
        Index of the reference with the top-scoring label for each cell.
    scores : List[np.ndarray]
        Per reference, the score of its assigned label for each cell.
    delta : np.ndarray
        Best minus second-best score for each cell; NaN when fewer than two
        references produced a score.
    """

    best: np.ndarray
    scores: List[np.ndarray]
    delta: np.ndarray

    @classmethod
    def allocate(cls, n_cells: int, n_references: int) -> "ClassifyIntegratedResults":
        return cls(
            best=np.zeros(n_cells, dtype=np.int64),
            scores=[np.full(n_cells, np.nan) for _ in range(n_references)],
            delta=np.full(n_cells, np.nan),
        )

    def buffers(self) -> ClassifyIntegratedBuffers:
        return ClassifyIntegratedBuffers(
            best=self.best,
            scores=list(self.scores),
            delta=self.delta,
        )

    def to_dataframe(
        self,
        cell_names: Optional[Sequence[str]] = None,
        reference_names: Optional[Sequence[str]] = None,
    ) -> pd.DataFrame:
        """Export results as one row per cell.

        Parameters
        ----------
        cell_names : Sequence[str], optional
            Row index; defaults to a range index.
        reference_names : Sequence[str], optional
            Names used for ``best_reference`` values and ``score_<name>``
            columns; defaults to reference indices.

        Returns
        -------
        pd.DataFrame
            Columns ``best_reference``, ``delta`` and one ``score_*`` column
            per reference.
        """
        if reference_names is None:
            reference_names = [str(r) for r in range(len(self.scores))]
        names = np.asarray(list(reference_names), dtype=object)

        df = pd.DataFrame(
            {"best_reference": names[self.best] if len(names) else self.best},
            index=pd.Index(cell_names) if cell_names is not None else None,
        )
        df["delta"] = self.delta
        for name, score in zip(reference_names, self.scores):
            df[f"score_{name}"] = score
        return df


def fill_mapping(
    mapping: RankRemapper,
    miniverse: np.ndarray,
    available: Optional[np.ndarray] = None,
) -> RankRemapper:
    """Rebuild ``mapping`` over the miniverse genes present in a reference.

    ``available`` is a boolean mask over the universe; ``None`` keeps the
    whole miniverse.
    """
    mapping.clear()
    if available is None:
        mapping.add_all(miniverse)
    else:
        mapping.add_all(miniverse[available[miniverse]])
    return mapping


class _Workspace:
    """Scratch buffers owned by one worker and reused across its cells."""

    def __init__(self, universe_size: int, max_profiles: int):
        self.intersect_mapping = RankRemapper(universe_size)
        self.direct_mapping = RankRemapper(universe_size)
        self.test_scaled = np.zeros(universe_size, dtype=np.float64)
        self.ref_scaled = np.zeros(universe_size, dtype=np.float64)
        self.correlations = np.zeros(max_profiles, dtype=np.float64)
        self.members = np.zeros(universe_size, dtype=bool)
        self.test_remapped = RankedVector(
            np.zeros(universe_size, dtype=np.float64), np.zeros(universe_size, dtype=np.int64)
        )
        self.ref_remapped = RankedVector(
            np.zeros(universe_size, dtype=np.int64), np.zeros(universe_size, dtype=np.int64)
        )


def _build_miniverse(
    trained: TrainedIntegrated,
    assigned: Sequence[np.ndarray],
    cell: int,
    members: np.ndarray,
) -> np.ndarray:
    """Sorted union of the assigned labels' markers, in universe positions.

    ``members`` is a boolean scratch mask over the universe; it is left
    all-False on return.
    """
    for r in range(trained.num_references()):
        members[trained.markers[r][int(assigned[r][cell])]] = True
    miniverse = np.flatnonzero(members)
    members[miniverse] = False
    return miniverse


def classify_integrated_into(
    test: Any,
    assigned: Sequence[Sequence[int]],
    trained: TrainedIntegrated,
    buffers: ClassifyIntegratedBuffers,
    config: Optional[IntegratedConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Score every test cell against each reference's assigned label.

    Inputs are assumed valid (see :mod:`.validation`); nothing is raised
    for degenerate data. Labels without reference profiles score NaN and
    never win unless every reference scores NaN, in which case reference 0
    is reported.

    Parameters
    ----------
    test : np.ndarray or scipy.sparse matrix
        Test expression matrix (features x cells) in the feature space used
        for training.
    assigned : Sequence[array-like]
        Per reference, the label assigned to each test cell.
    trained : TrainedIntegrated
        Output of :func:`train_integrated`.
    buffers : ClassifyIntegratedBuffers
        Output arrays of length equal to the number of test cells.
    config : IntegratedConfig, optional
        Quantile, thread count and extraction block size.
    logger : logging.Logger, optional
        Logger for progress tracking.
    """
    cfg = config or IntegratedConfig()
    _logger = logger or logging.getLogger(__name__)

    test = as_indexable(test)
    ncells = num_columns(test)
    nref = trained.num_references()
    assigned = [np.asarray(a) for a in assigned]
    score_buffers = list(buffers.scores) + [None] * (nref - len(buffers.scores))

    universe_size = int(trained.universe.shape[0])
    max_profiles = max(
        (n for r in range(nref) for n in trained.num_profiles(r)),
        default=0,
    )

    def _classify_range(_worker: int, start: int, length: int) -> None:
        ws = _Workspace(universe_size, max_profiles)
        extractor = ConsecutiveExtractor(
            test, trained.universe, start, length, cfg.block_size
        )

        for i in range(start, start + length):
            # Indices below refer to positions in the universe, not test rows.
            values = extractor.fetch()
            miniverse = _build_miniverse(trained, assigned, i, ws.members)
            test_ranked_full = rank_vector(values[miniverse], miniverse)

            best_score = -np.inf
            next_best = -np.inf
            best_ref = 0
            direct_mapping_filled = False

            for r in range(nref):
                if trained.check_availability[r]:
                    mapping = fill_mapping(
                        ws.intersect_mapping, miniverse, trained.available[r]
                    )
                else:
                    if not direct_mapping_filled:
                        fill_mapping(ws.direct_mapping, miniverse)
                        direct_mapping_filled = True
                    mapping = ws.direct_mapping

                test_scaled = scaled_ranks(
                    mapping.remap(test_ranked_full, ws.test_remapped), ws.test_scaled
                )

                profiles = trained.ranked[r][int(assigned[r][i])]
                for s, profile in enumerate(profiles):
                    ref_scaled = scaled_ranks(
                        mapping.remap(profile, ws.ref_remapped), ws.ref_scaled
                    )
                    ws.correlations[s] = distance_to_correlation(test_scaled, ref_scaled)

                score = correlations_to_scores(ws.correlations[: len(profiles)], cfg.quantile)
                if score_buffers[r] is not None:
                    score_buffers[r][i] = score

                # Strict comparisons: ties keep the lowest reference index, NaN never wins.
                if score > best_score:
                    next_best = best_score
                    best_score = score
                    best_ref = r
                elif score > next_best:
                    next_best = score

            if buffers.best is not None:
                buffers.best[i] = best_ref
            if buffers.delta is not None:
                if nref > 1 and np.isfinite(next_best):
                    buffers.delta[i] = best_score - next_best
                else:
                    buffers.delta[i] = np.nan

    start_time = time.time()
    parallelize(_classify_range, ncells, cfg.num_threads, logger=_logger)
    _logger.info(
        "Integrated classification of %d cells across %d references in %.2f seconds",
        ncells,
        nref,
        time.time() - start_time,
    )


def classify_integrated(
    test: Any,
    assigned: Sequence[Sequence[int]],
    trained: TrainedIntegrated,
    config: Optional[IntegratedConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> ClassifyIntegratedResults:
    """Allocating form of :func:`classify_integrated_into`.

    Returns
    -------
    ClassifyIntegratedResults
        Best reference, per-reference scores and delta for each cell.
    """
    results = ClassifyIntegratedResults.allocate(num_columns(test), trained.num_references())
    classify_integrated_into(test, assigned, trained, results.buffers(), config, logger)
    return results
