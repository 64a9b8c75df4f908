"""IGWAS: indirect GWAS of projected phenotypes.

IGWAS computes GWAS summary statistics for linear combinations of measured
phenotypes (projections) using only each phenotype's own GWAS summary
statistics and the phenotype covariance matrix, without individual-level
data.

Key features:
- Streams variants in fixed-size windows, so memory does not grow with the
  number of variants
- Applies phenotype contributions concurrently on a worker pool
- 64-bit Student-t p-values via JAX

Example:
    >>> from igwas import indirect_gwas
    >>> result = indirect_gwas("proj.tsv", "cov.tsv", gwas_files, n_covar=4)
    >>> print(f"{result.n_rows_written} rows in {result.timing['total_s']:.1f}s")
"""

import sys
from importlib.metadata import version

from loguru import logger

__version__ = version("igwas")

# Users can override by calling logger.remove()/add()
logger.remove()
logger.add(
    sys.stdout,
    level="INFO",
    format="{time:HH:mm:ss} | <level>{level: <8}</level> | {message}",
    colorize=True,
)

from igwas.api import indirect_gwas  # noqa: E402
from igwas.pipeline import PipelineResult  # noqa: E402
from igwas.stats.running import RunningSufficientStats  # noqa: E402

__all__ = ["indirect_gwas", "PipelineResult", "RunningSufficientStats", "__version__"]
