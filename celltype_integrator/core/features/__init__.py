"""Feature alignment between test and reference datasets.

Provides identifier intersection and marker subsetting/reindexing onto the
compacted feature universe used by integrated scoring.
"""

from .intersection import (
    Intersection,
    intersect_features,
    intersect_genes,
    unzip,
)
from .markers import (
    Markers,
    copy_markers,
    label_marker_union,
    max_marker_index,
    subset_markers,
    subset_markers_to_intersection,
)

__all__ = [
    # Intersection
    "Intersection",
    "intersect_genes",
    "intersect_features",
    "unzip",
    # Markers
    "Markers",
    "copy_markers",
    "label_marker_union",
    "max_marker_index",
    "subset_markers",
    "subset_markers_to_intersection",
]
