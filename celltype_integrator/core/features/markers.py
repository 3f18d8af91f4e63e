"""Marker subsetting and reindexing onto a compact feature universe.

A markers table is a square nested list indexed by label: ``markers[i][j]``
holds reference-row indices of genes that distinguish label ``i`` from label
``j``, most relevant first. Diagonal entries are ignored throughout.

Both subsetting functions mutate the table in place. After they run, every
off-diagonal list holds at most ``top`` entries and all indices refer to the
compacted coordinate space (positions in the compacted intersection, or in
the returned subset).
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from .intersection import Intersection

Markers = List[List[List[int]]]

logger = logging.getLogger(__name__)


def _off_diagonal(markers: Markers) -> Iterator[Tuple[int, int]]:
    for i in range(len(markers)):
        for j in range(len(markers[i])):
            if i != j:
                yield i, j


def copy_markers(markers: Markers) -> Markers:
    """Deep-copy a markers table into plain Python lists."""
    return [[[int(k) for k in current] for current in row] for row in markers]


def subset_markers_to_intersection(
    intersection: Intersection,
    markers: Markers,
    top: int,
) -> Dict[int, int]:
    """Restrict markers to the intersection and reindex them, in place.

    Each marker list keeps its first ``top`` entries that are present on the
    reference side of ``intersection``, in their original order (duplicates
    within a list are not collapsed). The intersection is then compacted to
    the pairs whose reference row is used by at least one retained marker,
    and every marker is rewritten as a position in the compacted
    intersection.

    Parameters
    ----------
    intersection : Intersection
        ``(test_row, reference_row)`` pairs; compacted in place.
    markers : Markers
        Markers table in reference-row coordinates; rewritten in place.
    top : int
        Maximum number of markers to keep per label pair. Values ``<= 0``
        empty every list and the intersection.

    Returns
    -------
    Dict[int, int]
        Mapping from original reference row to compacted position.
    """
    available = {ref_row for _, ref_row in intersection}
    cap = max(int(top), 0)

    all_markers = set()
    for i, j in _off_diagonal(markers):
        replacement: List[int] = []
        if cap > 0:
            for k in markers[i][j]:
                k = int(k)
                if k in available:
                    all_markers.add(k)
                    replacement.append(k)
                    if len(replacement) >= cap:
                        break
        markers[i][j] = replacement

    mapping: Dict[int, int] = {}
    counter = 0
    for pair in intersection:
        if pair[1] in all_markers:
            intersection[counter] = pair
            mapping[pair[1]] = counter
            counter += 1
    del intersection[counter:]

    for i, j in _off_diagonal(markers):
        markers[i][j] = [mapping[k] for k in markers[i][j]]

    logger.debug(
        "Subset markers to intersection: top=%d, %d genes retained",
        cap,
        counter,
    )
    return mapping


def subset_markers(markers: Markers, top: int) -> List[int]:
    """Truncate markers to ``top`` and reindex against their union, in place.

    Use this when the test and reference feature spaces are identical, so no
    intersection is needed.

    Parameters
    ----------
    markers : Markers
        Markers table in feature-row coordinates; rewritten in place.
    top : int
        Maximum number of markers to keep per label pair.

    Returns
    -------
    List[int]
        Sorted feature rows used by any retained marker. Every marker is
        rewritten as a position in this list.
    """
    cap = max(int(top), 0)

    available = set()
    for i, j in _off_diagonal(markers):
        current = [int(k) for k in markers[i][j][:cap]]
        markers[i][j] = current
        available.update(current)

    subset = sorted(available)
    mapping = {k: pos for pos, k in enumerate(subset)}

    for i, j in _off_diagonal(markers):
        markers[i][j] = [mapping[k] for k in markers[i][j]]

    return subset


def label_marker_union(markers: Markers, label: int) -> List[int]:
    """Sorted union of the markers of ``label`` against every other label."""
    union = set()
    for j, current in enumerate(markers[label]):
        if j != label:
            union.update(int(k) for k in current)
    return sorted(union)


def max_marker_index(markers: Markers) -> Optional[int]:
    """Largest index in any off-diagonal list, or ``None`` if all are empty."""
    best: Optional[int] = None
    for i, j in _off_diagonal(markers):
        for k in markers[i][j]:
            if best is None or k > best:
                best = int(k)
    return best
