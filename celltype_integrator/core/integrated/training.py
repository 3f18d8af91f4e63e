"""Integrated training across multiple labeled references.

Each reference is first prepared against the test feature space, which gives
per-label marker unions in test-row coordinates. :func:`train_integrated`
then pools all markers into a shared universe, re-expresses every reference's
markers in universe positions and ranks every reference cell on the universe
genes available in its reference.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Hashable, List, Optional, Sequence

import numpy as np

from ..features import (
    Markers,
    copy_markers,
    intersect_genes,
    label_marker_union,
    max_marker_index,
    subset_markers,
    subset_markers_to_intersection,
    unzip,
)
from ..scoring import RankedVector, rank_vector, simplify_ranks
from ...utils import parallelize
from .matrix import ConsecutiveExtractor, as_indexable, num_columns, num_rows


@dataclass
class IntegratedReference:
    """One reference prepared for integrated training.

    Attributes
    ----------
    matrix : np.ndarray or scipy.sparse matrix
        Reference expression matrix (features x cells).
    labels : np.ndarray
        Label code of each reference cell.
    markers : List[np.ndarray]
        Per label, sorted test rows of its markers against all other labels.
    check_availability : bool
        Whether the reference covers only part of the test feature space.
    test_rows : np.ndarray, optional
        Sorted test rows present in the reference (availability only).
    ref_rows : np.ndarray, optional
        Reference row matching each entry of ``test_rows``.
    """

    matrix: Any
    labels: np.ndarray
    markers: List[np.ndarray]
    check_availability: bool = False
    test_rows: Optional[np.ndarray] = None
    ref_rows: Optional[np.ndarray] = None

    @property
    def n_labels(self) -> int:
        return len(self.markers)


@dataclass
class TrainedIntegrated:
    """Trained structures consumed by integrated classification.

    Attributes
    ----------
    universe : np.ndarray
        Sorted test rows used by any reference's markers.
    markers : List[List[np.ndarray]]
        ``markers[r][l]``: sorted universe positions of label ``l``'s markers
        in reference ``r``.
    ranked : List[List[List[RankedVector]]]
        ``ranked[r][l]``: one ranked profile per reference cell of label
        ``l``, with integer ranks and universe-position indices.
    check_availability : List[bool]
        Whether reference ``r`` lacks some universe genes.
    available : List[Optional[np.ndarray]]
        Boolean mask over the universe of genes present in reference ``r``;
        ``None`` when availability is not checked.
    """

    universe: np.ndarray
    markers: List[List[np.ndarray]] = field(default_factory=list)
    ranked: List[List[List[RankedVector]]] = field(default_factory=list)
    check_availability: List[bool] = field(default_factory=list)
    available: List[Optional[np.ndarray]] = field(default_factory=list)

    def num_references(self) -> int:
        return len(self.markers)

    def num_labels(self, reference: int) -> int:
        return len(self.markers[reference])

    def num_profiles(self, reference: int) -> List[int]:
        return [len(profiles) for profiles in self.ranked[reference]]


def _check_labels(labels: Sequence[int], n_cells: int, n_labels: int) -> np.ndarray:
    labels = np.asarray(labels, dtype=np.int64)
    if labels.shape[0] != n_cells:
        raise ValueError(
            f"Reference has {n_cells} cells but {labels.shape[0]} labels were given"
        )
    if labels.size and (labels.min() < 0 or labels.max() >= n_labels):
        raise ValueError(
            f"Reference labels must lie in [0, {n_labels}) to match the markers table"
        )
    return labels


def prepare_integrated_input(
    ref: Any,
    labels: Sequence[int],
    markers: Markers,
    top: int,
) -> IntegratedReference:
    """Prepare a reference that shares the test dataset's feature space.

    Parameters
    ----------
    ref : np.ndarray or scipy.sparse matrix
        Reference expression matrix (features x cells), with the same rows
        as the test matrix.
    labels : Sequence[int]
        Label code of each reference cell.
    markers : Markers
        Markers table in feature-row coordinates; not modified.
    top : int
        Markers kept per label pair.

    Returns
    -------
    IntegratedReference
        Prepared reference without availability checking.
    """
    labels = _check_labels(labels, num_columns(ref), len(markers))
    highest = max_marker_index(markers)
    if highest is not None and highest >= num_rows(ref):
        raise ValueError(
            f"Marker index {highest} exceeds the {num_rows(ref)} reference rows"
        )

    working = copy_markers(markers)
    subset = np.asarray(subset_markers(working, top), dtype=np.int64)
    label_markers = [
        subset[np.asarray(label_marker_union(working, l), dtype=np.int64)]
        for l in range(len(working))
    ]
    return IntegratedReference(matrix=ref, labels=labels, markers=label_markers)


def prepare_integrated_input_intersect(
    test_ids: Sequence[Hashable],
    ref: Any,
    ref_ids: Sequence[Hashable],
    labels: Sequence[int],
    markers: Markers,
    top: int,
) -> IntegratedReference:
    """Prepare a reference whose features are matched to the test by identifier.

    Parameters
    ----------
    test_ids : Sequence[Hashable]
        Identifier of each test row.
    ref : np.ndarray or scipy.sparse matrix
        Reference expression matrix (features x cells).
    ref_ids : Sequence[Hashable]
        Identifier of each reference row.
    labels : Sequence[int]
        Label code of each reference cell.
    markers : Markers
        Markers table in reference-row coordinates; not modified.
    top : int
        Markers kept per label pair, among those present in the test data.

    Returns
    -------
    IntegratedReference
        Prepared reference with availability checking.
    """
    if len(ref_ids) != num_rows(ref):
        raise ValueError(
            f"Reference has {num_rows(ref)} rows but {len(ref_ids)} identifiers were given"
        )
    labels = _check_labels(labels, num_columns(ref), len(markers))

    intersection = intersect_genes(test_ids, ref_ids)
    test_rows, ref_rows = unzip(intersection)
    order = np.argsort(test_rows, kind="stable")

    working = copy_markers(markers)
    subset_markers_to_intersection(intersection, working, top)
    compact_test, _ = unzip(intersection)
    label_markers = [
        np.sort(compact_test[np.asarray(label_marker_union(working, l), dtype=np.int64)])
        for l in range(len(working))
    ]
    return IntegratedReference(
        matrix=ref,
        labels=labels,
        markers=label_markers,
        check_availability=True,
        test_rows=test_rows[order],
        ref_rows=ref_rows[order],
    )


def _available_rows(ref: IntegratedReference, universe: np.ndarray):
    """Universe positions present in ``ref`` and the reference rows holding them."""
    if not ref.check_availability:
        return None, np.arange(universe.shape[0], dtype=np.int64), universe

    pos = np.searchsorted(ref.test_rows, universe)
    clipped = np.minimum(pos, max(ref.test_rows.shape[0] - 1, 0))
    if ref.test_rows.shape[0]:
        found = ref.test_rows[clipped] == universe
    else:
        found = np.zeros(universe.shape[0], dtype=bool)
    return found, np.flatnonzero(found), ref.ref_rows[clipped[found]]


def train_integrated(
    inputs: Sequence[IntegratedReference],
    num_threads: int = 1,
    block_size: int = 256,
    logger: Optional[logging.Logger] = None,
) -> TrainedIntegrated:
    """Build the integrated structures from prepared references.

    Parameters
    ----------
    inputs : Sequence[IntegratedReference]
        Prepared references, in the order used for classification.
    num_threads : int
        Number of threads used to rank reference profiles.
    block_size : int
        Number of reference cells extracted per block.
    logger : logging.Logger, optional
        Logger for progress tracking.

    Returns
    -------
    TrainedIntegrated
        Universe, per-reference markers, ranked profiles and availability.
    """
    _logger = logger or logging.getLogger(__name__)
    start_time = time.time()

    all_markers = [m for ref in inputs for m in ref.markers]
    if all_markers:
        universe = np.unique(np.concatenate(all_markers)).astype(np.int64)
    else:
        universe = np.zeros(0, dtype=np.int64)
    _logger.info(
        "Integrated universe: %d genes from %d reference(s)",
        universe.shape[0],
        len(inputs),
    )

    trained = TrainedIntegrated(universe=universe)
    for r, ref in enumerate(inputs):
        trained.markers.append([np.searchsorted(universe, m) for m in ref.markers])

        available, positions, rows = _available_rows(ref, universe)
        trained.check_availability.append(ref.check_availability)
        trained.available.append(available)

        matrix = as_indexable(ref.matrix)
        ncells = num_columns(ref.matrix)
        profiles: List[Optional[RankedVector]] = [None] * ncells

        def _rank_range(_worker: int, start: int, length: int) -> None:
            extractor = ConsecutiveExtractor(matrix, rows, start, length, block_size)
            for c in range(start, start + length):
                values = extractor.fetch()
                profiles[c] = simplify_ranks(rank_vector(values, positions))

        parallelize(_rank_range, ncells, num_threads, logger=_logger)

        ranked: List[List[RankedVector]] = [[] for _ in range(ref.n_labels)]
        for c, label in enumerate(ref.labels):
            ranked[int(label)].append(profiles[c])
        trained.ranked.append(ranked)

        _logger.debug(
            "Reference %d: %d labels, %d profiles, %d/%d universe genes available",
            r,
            ref.n_labels,
            ncells,
            positions.shape[0],
            universe.shape[0],
        )

    _logger.info("Integrated training completed in %.2f seconds", time.time() - start_time)
    return trained
