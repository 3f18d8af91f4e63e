"""Rank-based scoring kernels.

Provides ranked vectors, the per-cell rank remapper, scaled ranks and the
correlation/quantile reduction used to score a test cell against a label.
"""

from .correlation import (
    correlations_to_scores,
    distance_to_correlation,
)
from .ranks import (
    RankRemapper,
    RankedVector,
    rank_vector,
    scaled_ranks,
    simplify_ranks,
)

__all__ = [
    # Ranks
    "RankedVector",
    "RankRemapper",
    "rank_vector",
    "simplify_ranks",
    "scaled_ranks",
    # Correlation
    "distance_to_correlation",
    "correlations_to_scores",
]
