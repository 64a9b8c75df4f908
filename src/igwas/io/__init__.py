"""I/O for labeled matrices, summary-statistic files and results."""

from igwas.io.matrix import LabeledMatrix, read_labeled_matrix, write_labeled_matrix
from igwas.io.output import IncrementalResultWriter
from igwas.io.sumstats import SumstatsFile, phenotype_name_from_path

__all__ = [
    "LabeledMatrix",
    "read_labeled_matrix",
    "write_labeled_matrix",
    "IncrementalResultWriter",
    "SumstatsFile",
    "phenotype_name_from_path",
]
