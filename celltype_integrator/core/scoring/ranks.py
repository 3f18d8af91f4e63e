"""Ranked vectors, index remapping and scaled ranks.

A ranked vector is a pair of aligned arrays ``(values, indices)`` sorted by
value, with ties broken by index. Test cells are ranked on their raw
expression values; reference profiles are stored with values replaced by
integer dense ranks, which keeps ties intact so both sides produce the same
scaled ranks.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

import numpy as np
from scipy.stats import rankdata


class RankedVector(NamedTuple):
    """Values sorted ascending, paired with the feature index of each value."""

    values: np.ndarray
    indices: np.ndarray

    def __len__(self) -> int:
        return int(self.indices.shape[0])


def rank_vector(values: np.ndarray, indices: np.ndarray) -> RankedVector:
    """Pair ``values`` with ``indices`` and sort by value, then by index."""
    values = np.asarray(values)
    indices = np.asarray(indices, dtype=np.int64)
    order = np.lexsort((indices, values))
    return RankedVector(values[order], indices[order])


def simplify_ranks(ranked: RankedVector) -> RankedVector:
    """Replace the sorted values with dense integer ranks (ties share a rank)."""
    n = len(ranked)
    if n == 0:
        return RankedVector(np.zeros(0, dtype=np.int64), ranked.indices.copy())
    ranks = np.zeros(n, dtype=np.int64)
    ranks[1:] = np.cumsum(ranked.values[1:] != ranked.values[:-1], dtype=np.int64)
    return RankedVector(ranks, ranked.indices.copy())


class RankRemapper:
    """Reusable map from full-space feature indices to a compact 0-based space.

    Indices are numbered in the order they are added. ``clear`` only resets
    the slots that were used, so one instance can be rebuilt for every cell
    without reallocating.

    Parameters
    ----------
    capacity : int
        Size of the full index space to preallocate for.

    Example
    -------
    >>> mapper = RankRemapper(10)
    >>> mapper.add_all(np.array([2, 5, 7]))
    >>> mapper.remap(rank_vector(np.array([0.3, 0.1, 0.2]), np.array([7, 1, 5])))
    RankedVector(values=array([0.2, 0.3]), indices=array([1, 2]))
    """

    def __init__(self, capacity: int = 0):
        self._mapping = np.full(max(int(capacity), 0), -1, dtype=np.int64)
        self._added = np.zeros(max(int(capacity), 0), dtype=np.int64)
        self._count = 0

    def __len__(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return int(self._mapping.shape[0])

    def reserve(self, capacity: int) -> None:
        """Grow the index space so that indices below ``capacity`` fit."""
        if capacity > self._mapping.shape[0]:
            grown = np.full(capacity, -1, dtype=np.int64)
            grown[: self._mapping.shape[0]] = self._mapping
            self._mapping = grown

    def _reserve_added(self, count: int) -> None:
        if count > self._added.shape[0]:
            grown = np.zeros(max(count, 2 * self._added.shape[0]), dtype=np.int64)
            grown[: self._count] = self._added[: self._count]
            self._added = grown

    def clear(self) -> None:
        self._mapping[self._added[: self._count]] = -1
        self._count = 0

    def add(self, index: int) -> None:
        """Assign the next compact position to ``index``."""
        index = int(index)
        if index >= self._mapping.shape[0]:
            self.reserve(max(index + 1, 2 * self._mapping.shape[0]))
        self._reserve_added(self._count + 1)
        self._mapping[index] = self._count
        self._added[self._count] = index
        self._count += 1

    def add_all(self, indices: np.ndarray) -> None:
        """Add several distinct indices, in order."""
        indices = np.asarray(indices, dtype=np.int64)
        n = indices.shape[0]
        if n == 0:
            return
        self.reserve(int(indices.max()) + 1)
        self._reserve_added(self._count + n)
        self._mapping[indices] = np.arange(self._count, self._count + n, dtype=np.int64)
        self._added[self._count : self._count + n] = indices
        self._count += n

    def remap(self, ranked: RankedVector, out: Optional[RankedVector] = None) -> RankedVector:
        """Keep the entries of ``ranked`` whose index was added, renumbered.

        The relative order of ``ranked`` is preserved.

        Parameters
        ----------
        ranked : RankedVector
            Ranked vector in the full index space.
        out : RankedVector, optional
            Scratch arrays, each at least as long as the result and with the
            dtypes of ``ranked.values`` and int64; the result is written into
            their leading entries and returned as views.
        """
        idx = ranked.indices
        local = np.full(idx.shape[0], -1, dtype=np.int64)
        inside = idx < self._mapping.shape[0]
        local[inside] = self._mapping[idx[inside]]
        keep = local >= 0
        if out is None:
            return RankedVector(ranked.values[keep], local[keep])

        n = int(np.count_nonzero(keep))
        values = out.values[:n]
        indices = out.indices[:n]
        np.compress(keep, ranked.values, out=values)
        np.compress(keep, local, out=indices)
        return RankedVector(values, indices)


def scaled_ranks(ranked: RankedVector, out: Optional[np.ndarray] = None) -> np.ndarray:
    """Convert a ranked vector into centred, scaled ranks.

    Tied values receive their average 0-based rank. Ranks are written at each
    entry's index, centred on ``(N - 1) / 2`` and divided by twice their
    Euclidean norm, so the result has norm 0.5 unless all values are tied,
    in which case it stays all-zero.

    Parameters
    ----------
    ranked : RankedVector
        Ranked vector whose indices are a permutation of ``0..N-1``.
    out : np.ndarray, optional
        Scratch buffer of length at least ``N``; the first ``N`` entries are
        overwritten and returned as a view.

    Returns
    -------
    np.ndarray
        Scaled ranks of length ``N``.
    """
    n = len(ranked)
    if out is None:
        out = np.empty(n, dtype=np.float64)
    else:
        out = out[:n]
    if n == 0:
        return out

    out[ranked.indices] = rankdata(ranked.values, method="average") - 1.0
    out -= (n - 1) / 2.0

    sum_squares = max(float(np.dot(out, out)), 1e-8)
    out /= np.sqrt(sum_squares) * 2.0
    return out
