"""Layout reconstruction of statement tables from positioned text."""

from .domain import HeaderMatch, ReconstructedRow, TableReconstruction
from .engine import TableReconstructor
from .header_detector import assign_anchors, find_header
from .segmentation import cluster_rows, rows_to_lines

__all__ = [
    "HeaderMatch",
    "ReconstructedRow",
    "TableReconstruction",
    "TableReconstructor",
    "assign_anchors",
    "cluster_rows",
    "find_header",
    "rows_to_lines",
]
