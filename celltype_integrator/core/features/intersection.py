"""Intersection of feature identifiers between two datasets.

Each element of an intersection is a ``(test_row, reference_row)`` pair for
one identifier present in both datasets. Identifiers may be any hashable,
equality-comparable key (gene symbols, Ensembl IDs, integer codes).
Duplicated identifiers are collapsed to their first occurrence.
"""

from __future__ import annotations

from typing import Dict, Hashable, Iterable, List, Tuple

import numpy as np

Intersection = List[Tuple[int, int]]


def intersect_genes(
    test_ids: Iterable[Hashable],
    ref_ids: Iterable[Hashable],
) -> Intersection:
    """Compute the intersection of genes in the test and reference datasets.

    The reference identifiers are scanned once to record the first row of
    each identifier; the test identifiers are then scanned in order and each
    match is emitted and removed from the lookup, so later test duplicates
    cannot match again.

    Parameters
    ----------
    test_ids : Iterable[Hashable]
        Identifier of each row in the test dataset.
    ref_ids : Iterable[Hashable]
        Identifier of each row in the reference dataset.

    Returns
    -------
    Intersection
        Pairs of ``(test_row, reference_row)`` in test-row order.
    """
    ref_found: Dict[Hashable, int] = {}
    for i, current in enumerate(ref_ids):
        if current not in ref_found:
            ref_found[current] = i

    output: Intersection = []
    for i, current in enumerate(test_ids):
        ref_row = ref_found.pop(current, None)
        if ref_row is not None:
            output.append((i, ref_row))

    return output


def intersect_features(
    test_ids: Iterable[Hashable],
    ref_ids: Iterable[Hashable],
) -> Intersection:
    """Two-pass intersection sorted by ``(test_row, reference_row)``.

    Placeholders ``(test_row, -1)`` are created for the first occurrence of
    every test identifier, the reference slot is back-filled with the first
    matching reference row, and unmatched placeholders are dropped.

    Parameters
    ----------
    test_ids : Iterable[Hashable]
        Identifier of each row in the test dataset.
    ref_ids : Iterable[Hashable]
        Identifier of each row in the reference dataset.

    Returns
    -------
    Intersection
        Pairs sorted by test row, then reference row.
    """
    placeholders: Dict[Hashable, List[int]] = {}
    for i, current in enumerate(test_ids):
        if current not in placeholders:
            placeholders[current] = [i, -1]

    for i, current in enumerate(ref_ids):
        slot = placeholders.get(current)
        if slot is not None and slot[1] < 0:
            slot[1] = i

    pairings = [(t, r) for t, r in placeholders.values() if r >= 0]
    pairings.sort()
    return pairings


def unzip(intersection: Intersection) -> Tuple[np.ndarray, np.ndarray]:
    """Split an intersection into test-row and reference-row index arrays."""
    if not intersection:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty.copy()
    arr = np.asarray(intersection, dtype=np.int64)
    return arr[:, 0].copy(), arr[:, 1].copy()
