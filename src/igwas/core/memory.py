"""Memory estimation and checking for windowed IGWAS runs.

The chunk pipeline holds one window at a time, so peak memory depends on the
window size and the number of projections, never on the total variant count.
These helpers make that bound explicit before a run starts.
"""

from typing import NamedTuple

import psutil
from loguru import logger

# Rough per-variant cost of a Python str variant ID plus its list slot
_VARIANT_ID_BYTES = 72
# Transient parse buffers per variant while a reader slices a window
_PARSE_BYTES_PER_VARIANT = 256


class WindowMemoryBreakdown(NamedTuple):
    """Detailed memory breakdown for one window of the chunk pipeline.

    All values in GB. The peak is reached while the aggregator buffers, the
    queued phenotype chunks and the finalized results coexist.
    """

    aggregator_gb: float  # window * (n_projections + 2) * 8 bytes + IDs
    chunks_in_flight_gb: float  # (queue_size + worker_count + 1) phenotype chunks
    finalized_gb: float  # window * n_projections result rows
    projection_gb: float  # projection + covariance matrices
    total_peak_gb: float
    available_gb: float  # Current available system memory
    sufficient: bool  # Whether available >= total * 1.1


def estimate_window_memory(
    window_size: int,
    n_projections: int,
    n_phenotypes: int,
    queue_size: int = 1,
    worker_count: int = 1,
) -> WindowMemoryBreakdown:
    """Estimate peak memory for a windowed run.

    Args:
        window_size: Variants per window.
        n_projections: Number of projected phenotypes (projection columns).
        n_phenotypes: Number of measured phenotypes (projection rows).
        queue_size: Capacity of the reader-to-worker hand-off queue.
        worker_count: Update workers. Each holds at most one dequeued chunk
            while it waits for its turn, and the reader holds one more.

    Returns:
        WindowMemoryBreakdown with component estimates.

    Example:
        >>> est = estimate_window_memory(50_000, 100, 20, queue_size=8, worker_count=8)
        >>> print(f"Peak: {est.total_peak_gb:.2f}GB")
    """
    per_variant_numeric = (n_projections + 2) * 8

    aggregator_gb = window_size * (per_variant_numeric + _VARIANT_ID_BYTES) / 1e9
    chunk_gb = (
        window_size
        * (per_variant_numeric + _VARIANT_ID_BYTES + _PARSE_BYTES_PER_VARIANT)
        / 1e9
    )
    chunks_in_flight_gb = (queue_size + worker_count + 1) * chunk_gb
    # beta, se, t, p, n plus two repeated label arrays of object pointers
    finalized_gb = window_size * n_projections * (5 * 8 + 2 * 8) / 1e9
    projection_gb = (n_phenotypes * n_projections + n_phenotypes**2) * 8 / 1e9

    total_peak_gb = aggregator_gb + chunks_in_flight_gb + finalized_gb + projection_gb

    available_gb = psutil.virtual_memory().available / 1e9
    sufficient = total_peak_gb * 1.1 < available_gb  # 10% safety margin

    return WindowMemoryBreakdown(
        aggregator_gb=aggregator_gb,
        chunks_in_flight_gb=chunks_in_flight_gb,
        finalized_gb=finalized_gb,
        projection_gb=projection_gb,
        total_peak_gb=total_peak_gb,
        available_gb=available_gb,
        sufficient=sufficient,
    )


class MemorySnapshot(NamedTuple):
    """Snapshot of current memory state. All values in GB."""

    rss_gb: float  # Resident Set Size (actual RAM used by process)
    available_gb: float  # Available system memory
    total_gb: float  # Total system memory
    percent_used: float  # Percentage of total system memory in use


def get_memory_snapshot() -> MemorySnapshot:
    """Get current memory usage snapshot."""
    mem_info = psutil.Process().memory_info()
    vm = psutil.virtual_memory()

    return MemorySnapshot(
        rss_gb=mem_info.rss / 1e9,
        available_gb=vm.available / 1e9,
        total_gb=vm.total / 1e9,
        percent_used=((vm.total - vm.available) / vm.total) * 100,
    )


def log_memory_snapshot(label: str = "", level: str = "INFO") -> MemorySnapshot:
    """Log current memory state with optional label.

    Args:
        label: Optional label for this snapshot (e.g., "after_run").
        level: Log level ("DEBUG", "INFO", "WARNING").

    Returns:
        MemorySnapshot for chaining/assertions.
    """
    snap = get_memory_snapshot()
    label_str = f" [{label}]" if label else ""
    logger.log(
        level,
        f"Memory{label_str}: RSS={snap.rss_gb:.1f}GB, "
        f"Available={snap.available_gb:.1f}GB/{snap.total_gb:.1f}GB "
        f"({snap.percent_used:.1f}% used)",
    )
    return snap
