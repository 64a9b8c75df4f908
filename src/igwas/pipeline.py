"""Pipeline orchestration for IGWAS runs.

Two layers:

- ChunkPipeline drives a RunningSufficientStats across all variants one
  window at a time. Per window, one reader thread visits every phenotype
  source in turn and hands each PhenotypeChunk to a bounded queue; a pool of
  worker threads drains the queue and applies the updates under a lock, in
  source order. The reader and all workers are joined before the window is
  finalized, and the window is finalized before the next one is cleared.
- PipelineRunner is the service class shared by the CLI (cli.py) and Python
  API (api.py): validate inputs, load matrices, reconcile phenotype files,
  check memory, then run the ChunkPipeline into an IncrementalResultWriter.

Example:
    >>> from igwas.pipeline import PipelineConfig, PipelineRunner
    >>> config = PipelineConfig(
    ...     projection_file=Path("proj.tsv"),
    ...     covariance_file=Path("cov.tsv"),
    ...     gwas_files=[Path("gwas/height.tsv"), Path("gwas/weight.tsv")],
    ...     n_covar=4,
    ... )
    >>> result = PipelineRunner(config).run()
    >>> print(f"Wrote {result.n_rows_written} rows to {result.results_path}")
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Sequence
from concurrent.futures import Executor, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from loguru import logger

from igwas.core.config import OutputConfig, SumstatsColumns
from igwas.core.errors import (
    DuplicatePhenotypeSource,
    LabelMismatch,
    MissingPhenotypeSource,
    PhenotypeReadError,
    RowCountMismatch,
)
from igwas.core.jax_config import configure_jax
from igwas.core.memory import (
    WindowMemoryBreakdown,
    estimate_window_memory,
    log_memory_snapshot,
)
from igwas.core.progress import iter_windows, progress_windows
from igwas.core.threading import blas_threads, get_worker_count
from igwas.io.matrix import LabeledMatrix, read_labeled_matrix
from igwas.io.output import IncrementalResultWriter
from igwas.io.sumstats import SumstatsFile, phenotype_name_from_path
from igwas.stats.running import (
    FinalizedChunk,
    PhenotypeChunk,
    ProcessingStats,
    RunningSufficientStats,
)
from igwas.utils.logging import log_rss_memory

# Queue item closing the hand-off queue; one per worker
_CLOSED = (None, None)


class PhenotypeSource(Protocol):
    """A per-phenotype input the pipeline can read window by window."""

    phenotype_id: str
    path: Path

    def count_rows(self) -> int: ...

    def read_chunk(
        self, start: int, end: int, processing: ProcessingStats
    ) -> PhenotypeChunk: ...


class ResultSink(Protocol):
    def write_chunk(self, chunk: FinalizedChunk) -> None: ...


def reconcile_phenotype_sources(
    projection: LabeledMatrix,
    covariance: LabeledMatrix,
    gwas_files: Sequence[Path],
) -> list[Path]:
    """Match summary-statistic files one-to-one with the matrix phenotypes.

    Args:
        projection: Projection matrix; its row labels are the phenotypes.
        covariance: Covariance matrix; both label axes must equal the
            projection row labels, in order.
        gwas_files: Candidate files. The phenotype of each file is its name
            without the final suffix.

    Returns:
        One path per projection row, in projection row order. Files for
        phenotypes not in the matrices are dropped with a warning.

    Raises:
        LabelMismatch: If projection and covariance labels differ.
        DuplicatePhenotypeSource: If two files map to the same phenotype.
        MissingPhenotypeSource: If a matrix phenotype has no file.
    """
    phenotypes = list(projection.row_labels)
    if (
        list(covariance.row_labels) != phenotypes
        or list(covariance.col_labels) != phenotypes
    ):
        raise LabelMismatch(
            "Projection and covariance matrices have different labels"
        )

    by_phenotype: dict[str, Path] = {}
    for path in gwas_files:
        phenotype = phenotype_name_from_path(path)
        if phenotype in by_phenotype:
            raise DuplicatePhenotypeSource(
                f"Multiple GWAS files provided for phenotype {phenotype}: "
                f"{by_phenotype[phenotype]} and {path}"
            )
        by_phenotype[phenotype] = Path(path)

    missing = [p for p in phenotypes if p not in by_phenotype]
    if missing:
        raise MissingPhenotypeSource(
            f"No GWAS result file provided for phenotype(s) {', '.join(missing)}"
        )

    unused = sorted(set(by_phenotype) - set(phenotypes))
    if unused:
        logger.warning(
            f"Ignoring {len(unused)} GWAS file(s) for phenotypes not in the "
            f"projection matrix: {', '.join(unused)}"
        )

    return [by_phenotype[p] for p in phenotypes]


def count_common_rows(sources: Sequence[PhenotypeSource]) -> int:
    """Count variants in every source and require the counts to agree.

    Raises:
        RowCountMismatch: If sources disagree on the number of variants.
    """
    counts = {source.phenotype_id: source.count_rows() for source in sources}
    distinct = set(counts.values())
    if len(distinct) > 1:
        detail = ", ".join(f"{name}={n}" for name, n in counts.items())
        raise RowCountMismatch(
            f"GWAS files have different numbers of variants: {detail}"
        )
    return distinct.pop() if distinct else 0


class ChunkPipeline:
    """Apply every phenotype source to a shared aggregator, window by window.

    Memory is bounded by the aggregator's buffers plus at most
    ``queue_size + worker_count + 1`` PhenotypeChunks of the current window:
    the queue's contents, one per worker and one being read. Any failure
    aborts the run; windows written before the failure stay in the sink.

    Args:
        stats: Aggregator shared by all workers. Accessed only under the
            pipeline's lock.
        sources: One source per phenotype of the aggregator.
        window_size: Maximum variants per window.
        worker_count: Threads applying updates.
        queue_size: Capacity of the reader-to-worker queue. Defaults to
            worker_count.
        show_progress: Show a progress bar counted in variants.
    """

    def __init__(
        self,
        stats: RunningSufficientStats,
        sources: Sequence[PhenotypeSource],
        window_size: int,
        worker_count: int = 1,
        queue_size: int | None = None,
        show_progress: bool = False,
    ) -> None:
        if window_size < 1:
            raise ValueError(f"window_size must be at least 1, got {window_size}")
        if worker_count < 1:
            raise ValueError(f"worker_count must be at least 1, got {worker_count}")
        self.stats = stats
        self.sources = list(sources)
        self.window_size = window_size
        self.worker_count = worker_count
        self.queue_size = queue_size or worker_count
        self.show_progress = show_progress
        self._lock = threading.Lock()

    def run(self, sink: ResultSink, n_rows: int | None = None) -> int:
        """Process every window and write each finalized window to ``sink``.

        Args:
            sink: Receives one FinalizedChunk per window, in window order.
            n_rows: Variants per source, if already known from
                count_common_rows.

        Returns:
            Number of result rows written.

        Raises:
            RowCountMismatch: If sources disagree on the number of variants.
            PhenotypeReadError: If a source fails to read a window.
            MismatchedVariantIds: If a phenotype's variants differ from the
                window's.
        """
        if n_rows is None:
            n_rows = count_common_rows(self.sources)
        if n_rows == 0:
            logger.warning("GWAS files contain no variants; nothing to write")
            return 0

        processing = self.stats.build_processing_stats()
        windows = iter_windows(n_rows, self.window_size)
        if self.show_progress:
            windows = progress_windows(windows, n_rows, desc="Variants")

        n_written = 0
        with ThreadPoolExecutor(
            max_workers=self.worker_count + 1, thread_name_prefix="igwas"
        ) as executor:
            for start, end in windows:
                with self._lock:
                    self.stats.clear_window(end - start)

                self._apply_window(executor, processing, start, end, n_rows)

                logger.debug(
                    f"Finished reading lines {start} to {end}, computing statistics"
                )
                with self._lock:
                    finalized = self.stats.finalize()
                sink.write_chunk(finalized)
                n_written += len(finalized)
                log_memory_snapshot(f"window {start}-{end}", level="DEBUG")

        return n_written

    def _apply_window(
        self,
        executor: Executor,
        processing: ProcessingStats,
        start: int,
        end: int,
        n_rows: int,
    ) -> None:
        """Read one window from every source and apply it to the aggregator.

        Returns only after the reader and all workers have finished.
        """
        handoff: queue.Queue = queue.Queue(maxsize=self.queue_size)
        abort = threading.Event()
        failures: list[Exception] = []
        # Updates are applied in source order so float sums do not depend on
        # thread scheduling
        turn = threading.Condition(self._lock)
        next_seq = 0

        def read_window() -> None:
            try:
                for seq, source in enumerate(self.sources):
                    if abort.is_set():
                        break
                    logger.debug(
                        f"Reading lines {start} to {end} of {n_rows} in "
                        f"{source.path} (phenotype {source.phenotype_id})"
                    )
                    try:
                        chunk = source.read_chunk(start, end, processing)
                    except Exception as e:
                        raise PhenotypeReadError(
                            f"Error reading GWAS results from file: {source.path}: {e}",
                            path=source.path,
                        ) from e
                    handoff.put((seq, chunk))
                    del chunk
            finally:
                for _ in range(self.worker_count):
                    handoff.put(_CLOSED)

        def apply_updates() -> None:
            nonlocal next_seq
            # Keep draining after a failure so the reader never blocks on a full queue
            while True:
                seq, chunk = handoff.get()
                if seq is None:
                    return
                if not abort.is_set():
                    with turn:
                        turn.wait_for(lambda s=seq: next_seq == s or abort.is_set())
                        if not abort.is_set():
                            try:
                                self.stats.update(chunk)
                            except Exception as e:
                                failures.append(e)
                                abort.set()
                        next_seq += 1
                        turn.notify_all()
                # Release before blocking on the queue again
                del chunk

        reader = executor.submit(read_window)
        workers = [executor.submit(apply_updates) for _ in range(self.worker_count)]
        wait([reader, *workers])

        if failures:
            raise failures[0]
        reader.result()


@dataclass
class PipelineConfig:
    """Configuration for an IGWAS run.

    Attributes:
        projection_file: Labeled projection matrix (phenotypes x projections).
        covariance_file: Labeled phenotype covariance matrix.
        gwas_files: One summary-statistic file per phenotype.
        n_covar: Number of covariates used in the per-phenotype GWAS.
        columns: Column names in the summary-statistic files.
        window_size: Variants per window; bounds memory use.
        worker_count: Update worker threads, or None for the physical core
            count (IGWAS_NUM_THREADS overrides).
        queue_size: Reader-to-worker queue capacity, or None for worker_count.
        output_dir: Directory for output files.
        output_prefix: Prefix for output filenames.
        check_memory: If True, check available memory before computation.
        mem_budget: Hard memory budget in GB, or None for no budget.
        show_progress: If True, show a progress bar.
    """

    projection_file: Path
    covariance_file: Path
    gwas_files: list[Path]
    n_covar: int
    columns: SumstatsColumns = field(default_factory=SumstatsColumns)
    window_size: int = 50_000
    worker_count: int | None = None
    queue_size: int | None = None
    output_dir: Path = field(default_factory=lambda: Path("output"))
    output_prefix: str = "result"
    check_memory: bool = True
    mem_budget: float | None = None
    show_progress: bool = True

    @property
    def output(self) -> OutputConfig:
        return OutputConfig(outdir=self.output_dir, prefix=self.output_prefix)


@dataclass
class PipelineResult:
    """Result of a pipeline run.

    Attributes:
        n_phenotypes: Number of measured phenotypes combined.
        n_projections: Number of projected phenotypes computed.
        n_variants: Number of variants per phenotype file.
        n_rows_written: Result rows written (n_variants * n_projections).
        results_path: Path to the written results file.
        timing: Timing breakdown by pipeline phase.
    """

    n_phenotypes: int
    n_projections: int
    n_variants: int
    n_rows_written: int
    results_path: Path
    timing: dict[str, float] = field(default_factory=dict)


class PipelineRunner:
    """Orchestrates a complete IGWAS run.

    Raises exceptions (IGWASError subclasses, FileNotFoundError,
    MemoryError) rather than calling sys.exit or typer.Exit. The CLI wrapper
    catches these and converts them to user-friendly error messages.

    All structural checks (files, labels, reconciliation, row counts,
    memory) complete before the first window is read.

    Args:
        config: Pipeline configuration.
    """

    def __init__(self, config: PipelineConfig) -> None:
        self.config = config

    def validate_inputs(self) -> None:
        """Validate that input files exist and parameters are in range.

        Raises:
            FileNotFoundError: If a matrix or GWAS file is missing.
            ValueError: If no GWAS files are given or a numeric option is out
                of range.
        """
        for label, path in (
            ("Projection matrix", self.config.projection_file),
            ("Covariance matrix", self.config.covariance_file),
        ):
            if not Path(path).exists():
                raise FileNotFoundError(f"{label} file not found: {path}")

        if not self.config.gwas_files:
            raise ValueError("At least one GWAS result file is required")
        for path in self.config.gwas_files:
            if not Path(path).exists():
                raise FileNotFoundError(f"GWAS result file not found: {path}")

        if self.config.n_covar < 0:
            raise ValueError(f"n_covar must be non-negative, got {self.config.n_covar}")
        if self.config.window_size < 1:
            raise ValueError(
                f"window_size must be at least 1, got {self.config.window_size}"
            )
        if self.config.worker_count is not None and self.config.worker_count < 1:
            raise ValueError(
                f"worker_count must be at least 1, got {self.config.worker_count}"
            )

    def load_matrices(self) -> tuple[LabeledMatrix, LabeledMatrix]:
        """Read the projection and covariance matrices.

        Returns:
            Tuple of (projection, covariance).
        """
        projection = read_labeled_matrix(self.config.projection_file)
        covariance = read_labeled_matrix(self.config.covariance_file)

        logger.info(f"Projection shape {projection.shape}")
        logger.info(f"Covariance shape {covariance.shape}")
        logger.debug(f"Projection labels {projection.row_labels}")
        logger.debug(f"Covariance labels {covariance.col_labels}")
        return projection, covariance

    def build_sources(
        self, projection: LabeledMatrix, covariance: LabeledMatrix
    ) -> list[SumstatsFile]:
        """Reconcile GWAS files with the matrices and open them as sources."""
        paths = reconcile_phenotype_sources(
            projection, covariance, self.config.gwas_files
        )
        return [SumstatsFile(path, columns=self.config.columns) for path in paths]

    def build_aggregator(
        self, projection: LabeledMatrix, covariance: LabeledMatrix, n_rows: int
    ) -> RunningSufficientStats:
        """Create the aggregator sized to the first window.

        A window larger than the data is shrunk here, so only a short final
        window ever resizes the buffers.
        """
        window = max(1, min(self.config.window_size, n_rows))
        return RunningSufficientStats(
            projection, covariance, self.config.n_covar, window
        )

    def check_memory_requirements(
        self,
        n_phenotypes: int,
        n_projections: int,
        n_rows: int,
        queue_size: int,
        worker_count: int = 1,
    ) -> WindowMemoryBreakdown | None:
        """Check memory requirements if memory checking is enabled.

        Returns:
            WindowMemoryBreakdown if check_memory is True, None otherwise.

        Raises:
            MemoryError: If estimated memory exceeds budget or available memory.
        """
        if not self.config.check_memory:
            return None

        window = max(1, min(self.config.window_size, n_rows))
        est = estimate_window_memory(
            window,
            n_projections,
            n_phenotypes,
            queue_size=queue_size,
            worker_count=worker_count,
        )

        logger.info(
            f"Memory estimate: {est.total_peak_gb:.2f}GB required, "
            f"{est.available_gb:.1f}GB available"
        )

        if (
            self.config.mem_budget is not None
            and est.total_peak_gb > self.config.mem_budget
        ):
            raise MemoryError(
                f"Estimated memory ({est.total_peak_gb:.2f}GB) exceeds "
                f"budget ({self.config.mem_budget}GB). "
                f"Reduce the window size or use --no-check-memory to override."
            )

        if not est.sufficient:
            raise MemoryError(
                f"Insufficient memory: need {est.total_peak_gb:.2f}GB "
                f"(with 10% margin), have {est.available_gb:.1f}GB. "
                f"Reduce the window size or use --no-check-memory to override."
            )

        return est

    def run(self) -> PipelineResult:
        """Execute the full IGWAS pipeline.

        Pipeline steps:
        1. Validate inputs
        2. Load projection and covariance matrices
        3. Reconcile GWAS files with the matrix phenotypes
        4. Count and cross-check variants per file
        5. Check memory requirements
        6. Stream windows through the aggregator into the results file

        Returns:
            PipelineResult with counts, output path, and timing.
        """
        t_start = time.perf_counter()

        # 1. Validate
        self.validate_inputs()
        configure_jax(enable_x64=True)

        # 2. Matrices
        projection, covariance = self.load_matrices()

        # 3. Reconcile
        sources = self.build_sources(projection, covariance)

        # 4. Row counts
        n_rows = count_common_rows(sources)
        n_phenotypes, n_projections = projection.shape
        logger.info(
            f"Combining {n_phenotypes} phenotypes into {n_projections} projections "
            f"over {n_rows} variants"
        )

        # 5. Memory
        worker_count = self.config.worker_count or get_worker_count()
        queue_size = self.config.queue_size or worker_count
        self.check_memory_requirements(
            n_phenotypes, n_projections, n_rows, queue_size, worker_count
        )

        stats = self.build_aggregator(projection, covariance, n_rows)
        load_s = time.perf_counter() - t_start

        # 6. Windows
        output = self.config.output
        output.ensure_outdir()
        results_path = output.results_path
        pipeline = ChunkPipeline(
            stats,
            sources,
            window_size=self.config.window_size,
            worker_count=worker_count,
            queue_size=queue_size,
            show_progress=self.config.show_progress,
        )

        t_windows = time.perf_counter()
        with blas_threads(), IncrementalResultWriter(results_path) as writer:
            n_written = pipeline.run(writer, n_rows=n_rows)
        windows_s = time.perf_counter() - t_windows
        log_rss_memory("windows", "end")

        total_s = time.perf_counter() - t_start
        logger.info(
            f"IGWAS complete: {n_written} rows for {n_rows} variants in {total_s:.1f}s"
        )

        return PipelineResult(
            n_phenotypes=n_phenotypes,
            n_projections=n_projections,
            n_variants=n_rows,
            n_rows_written=n_written,
            results_path=results_path,
            timing={
                "load_s": load_s,
                "windows_s": windows_s,
                "total_s": total_s,
            },
        )
