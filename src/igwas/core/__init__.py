"""Core infrastructure for IGWAS.

This package contains the pieces every run shares:
- config: Output and column-mapping dataclasses
- errors: Exception hierarchy
- jax_config: JAX precision setup
- memory: Window memory estimates and snapshots
- progress: Window iteration and progress bars
- threading: Worker and BLAS thread counts
"""

from igwas.core.config import OutputConfig, SumstatsColumns
from igwas.core.errors import (
    DuplicatePhenotypeSource,
    IGWASError,
    IncompleteAggregation,
    LabelMismatch,
    MismatchedVariantIds,
    MissingPhenotypeSource,
    PhenotypeReadError,
    RowCountMismatch,
    ShapeMismatch,
)
from igwas.core.jax_config import configure_jax, get_jax_info
from igwas.core.memory import (
    MemorySnapshot,
    WindowMemoryBreakdown,
    estimate_window_memory,
    get_memory_snapshot,
    log_memory_snapshot,
)

__all__ = [
    "SumstatsColumns",
    "OutputConfig",
    "IGWASError",
    "ShapeMismatch",
    "LabelMismatch",
    "MissingPhenotypeSource",
    "DuplicatePhenotypeSource",
    "MismatchedVariantIds",
    "IncompleteAggregation",
    "RowCountMismatch",
    "PhenotypeReadError",
    "configure_jax",
    "get_jax_info",
    "MemorySnapshot",
    "WindowMemoryBreakdown",
    "estimate_window_memory",
    "get_memory_snapshot",
    "log_memory_snapshot",
]
