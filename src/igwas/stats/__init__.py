"""Sufficient-statistics aggregation and p-values."""

from igwas.stats.pvalue import neg_log10_pvalue, t_two_sided_pvalue
from igwas.stats.running import (
    FinalizedChunk,
    PhenotypeChunk,
    ProcessingStats,
    RunningSufficientStats,
)

__all__ = [
    "FinalizedChunk",
    "PhenotypeChunk",
    "ProcessingStats",
    "RunningSufficientStats",
    "neg_log10_pvalue",
    "t_two_sided_pvalue",
]
