"""Column extraction from features-by-cells expression matrices.

Matrices are oriented with features (genes) in rows and cells in columns.
Dense ``numpy`` arrays and any ``scipy.sparse`` matrix are accepted; AnnData
objects (cells x genes) can be converted with :func:`as_feature_matrix`.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np
from scipy import sparse


def num_rows(matrix: Any) -> int:
    return int(matrix.shape[0])


def num_columns(matrix: Any) -> int:
    return int(matrix.shape[1])


def as_feature_matrix(adata: Any, layer: Optional[str] = None) -> Any:
    """Return the genes-by-cells view of an AnnData expression matrix.

    Parameters
    ----------
    adata : AnnData
        Input AnnData object (cells x genes).
    layer : str, optional
        Layer to use; ``None`` uses ``adata.X``.

    Returns
    -------
    np.ndarray or scipy.sparse matrix
        Transposed expression matrix.
    """
    if layer is not None:
        if layer not in adata.layers:
            raise KeyError(f"Layer '{layer}' not found in AnnData.layers")
        X = adata.layers[layer]
    else:
        X = adata.X
    if sparse.issparse(X):
        return X.T.tocsc()
    return np.asarray(X).T


def as_indexable(matrix: Any) -> Any:
    """Return ``matrix`` in a form that supports row and column slicing.

    Dense arrays and CSR/CSC matrices are returned unchanged; other sparse
    formats (COO, DIA, ...) are converted to CSC.
    """
    if sparse.issparse(matrix) and matrix.format not in ("csc", "csr"):
        return matrix.tocsc()
    return matrix


class ConsecutiveExtractor:
    """Sequential extraction of a fixed row subset over a run of columns.

    Columns ``[start, start + length)`` are visited in order. They are
    materialised ``block_size`` at a time into one dense buffer that is
    allocated once and reused for every block.

    Parameters
    ----------
    matrix : np.ndarray or scipy.sparse matrix
        Features-by-cells matrix.
    rows : np.ndarray
        Row indices to extract, in output order.
    start : int
        First column to extract.
    length : int
        Number of columns to extract.
    block_size : int
        Number of columns materialised per block.
    """

    def __init__(
        self,
        matrix: Any,
        rows: np.ndarray,
        start: int,
        length: int,
        block_size: int = 256,
    ):
        self.matrix = matrix
        self.rows = np.asarray(rows, dtype=np.int64)
        self.start = int(start)
        self.end = int(start) + int(length)
        self.block_size = max(1, min(int(block_size), max(int(length), 1)))
        matrix = as_indexable(matrix)
        if sparse.issparse(matrix):
            # Only this run of columns is kept, re-based to start at 0.
            columns = matrix[:, self.start : self.end]
            self._source = sparse.csc_matrix(columns[self.rows, :])
            self._column_offset = self.start
        else:
            self._source = matrix
            self._column_offset = 0
        self._buffer = np.zeros((self.rows.shape[0], self.block_size), dtype=np.float64)
        self._block_start = self.start
        self._block_len = 0
        self._offset = 0

    def _load_block(self) -> None:
        self._block_start += self._block_len
        self._block_len = min(self.block_size, self.end - self._block_start)
        first = self._block_start - self._column_offset
        cols = slice(first, first + self._block_len)
        if sparse.issparse(self._source):
            block = self._source[:, cols].toarray()
        else:
            block = np.asarray(self._source[self.rows, cols])
        self._buffer[:, : self._block_len] = block
        self._offset = 0

    def fetch(self) -> np.ndarray:
        """Values of ``rows`` for the next column.

        The returned view is only valid until the next call.
        """
        if self._offset >= self._block_len:
            if self._block_start + self._block_len >= self.end:
                raise IndexError("No more columns to extract")
            self._load_block()
        values = self._buffer[:, self._offset]
        self._offset += 1
        return values
