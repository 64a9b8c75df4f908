"""Top-level API for IGWAS.

Provides a single-call entry point for a complete indirect GWAS run: load
the projection and covariance matrices, stream every phenotype's summary
statistics through the aggregator, and write the projected results.

Example:
    >>> from igwas import indirect_gwas
    >>> result = indirect_gwas(
    ...     "proj.tsv", "cov.tsv", ["gwas/height.tsv", "gwas/weight.tsv"], n_covar=4
    ... )
    >>> print(f"{result.n_rows_written} rows in {result.timing['total_s']:.1f}s")
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from igwas.core.config import SumstatsColumns
from igwas.pipeline import PipelineConfig, PipelineResult, PipelineRunner


def indirect_gwas(
    projection_file: str | Path,
    covariance_file: str | Path,
    gwas_files: Sequence[str | Path],
    *,
    n_covar: int,
    columns: SumstatsColumns | None = None,
    window_size: int = 50_000,
    worker_count: int | None = None,
    output_dir: str | Path = "output",
    output_prefix: str = "result",
    check_memory: bool = True,
    mem_budget: float | None = None,
    show_progress: bool = True,
) -> PipelineResult:
    """Run an indirect GWAS in a single call.

    Equivalent to the CLI ``igwas run`` command but as a Python function.

    Args:
        projection_file: Labeled projection matrix, phenotypes as rows and
            projected phenotypes as columns.
        covariance_file: Labeled phenotype covariance matrix.
        gwas_files: One summary-statistic file per phenotype, named
            ``<phenotype>.<suffix>``.
        n_covar: Number of covariates in the per-phenotype GWAS models.
        columns: Column names in the GWAS files. Defaults to PLINK2 names.
        window_size: Variants per window.
        worker_count: Update worker threads. None uses the physical core
            count (IGWAS_NUM_THREADS overrides).
        output_dir: Directory for output files (created if needed).
        output_prefix: Prefix for output filenames.
        check_memory: If True, check available memory before computation.
        mem_budget: Hard memory budget in GB.
        show_progress: If True, show a progress bar.

    Returns:
        PipelineResult with counts, results path and timing.

    Raises:
        FileNotFoundError: If an input file does not exist.
        IGWASError: If the inputs are inconsistent (labels, shapes, missing
            or duplicate phenotype files, variant order).
        MemoryError: If check_memory=True and the estimate does not fit.
    """
    config = PipelineConfig(
        projection_file=Path(projection_file),
        covariance_file=Path(covariance_file),
        gwas_files=[Path(p) for p in gwas_files],
        n_covar=n_covar,
        columns=columns or SumstatsColumns(),
        window_size=window_size,
        worker_count=worker_count,
        output_dir=Path(output_dir),
        output_prefix=output_prefix,
        check_memory=check_memory,
        mem_budget=mem_budget,
        show_progress=show_progress,
    )
    return PipelineRunner(config).run()
