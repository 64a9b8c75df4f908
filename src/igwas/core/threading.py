"""Thread count management for the chunk pipeline.

IGWAS runs one reader thread and a pool of update workers per window. The
worker pool size defaults to the physical core count; numpy's BLAS pool is
capped separately with threadpool_limits so the two do not oversubscribe.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import contextmanager

import psutil
from loguru import logger
from threadpoolctl import threadpool_limits


def _env_thread_count(var: str, max_threads: int) -> int | None:
    value = os.environ.get(var)
    if value is None:
        return None
    try:
        n = int(value)
    except ValueError:
        logger.warning(
            f"{var}={value!r} is not a valid integer, "
            "falling back to physical core count"
        )
        return None
    return max(1, min(n, max_threads))


def get_worker_count() -> int:
    """Determine the number of update workers for the chunk pipeline.

    Priority:
    1. IGWAS_NUM_THREADS env var
    2. Physical core count via psutil (avoids hyperthreading oversubscription)

    Returns:
        Positive integer thread count, capped at os.cpu_count().
    """
    max_threads = os.cpu_count() or 64

    n = _env_thread_count("IGWAS_NUM_THREADS", max_threads)
    if n is not None:
        logger.debug(f"Worker threads from IGWAS_NUM_THREADS: {n}")
        return n

    n = psutil.cpu_count(logical=False) or max_threads
    n = max(1, min(n, max_threads))
    logger.debug(f"Worker threads from physical core count: {n}")
    return n


def get_blas_thread_count() -> int:
    """Number of BLAS threads for numpy, from IGWAS_BLAS_THREADS or 1.

    Parallelism comes from the worker pool, so numpy defaults to a single
    BLAS thread per call.
    """
    max_threads = os.cpu_count() or 64
    n = _env_thread_count("IGWAS_BLAS_THREADS", max_threads)
    return 1 if n is None else n


@contextmanager
def blas_threads(n_threads: int | None = None) -> Generator[None, None, None]:
    """Context manager for scoped BLAS thread control.

    Args:
        n_threads: Number of BLAS threads. None uses get_blas_thread_count().

    Example:
        >>> with blas_threads(1):
        ...     ppv = np.diag(P.T @ C @ P)
    """
    if n_threads is None:
        n_threads = get_blas_thread_count()

    with threadpool_limits(limits=n_threads, user_api="blas"):
        yield
