"""Progress display for windowed runs.

Uses progressbar2 rather than tqdm so the bar renders in both interactive
terminals and captured stdout (notebook workflows, batch logs).
"""

import sys
from collections.abc import Iterator

import progressbar


def iter_windows(n_rows: int, window_size: int) -> Iterator[tuple[int, int]]:
    """Yield half-open ``(start, end)`` row bounds covering ``n_rows``.

    Every window holds ``window_size`` rows except possibly the last.

    Raises:
        ValueError: If window_size is not positive.
    """
    if window_size <= 0:
        raise ValueError(f"window_size must be positive, got {window_size}")
    start = 0
    while start < n_rows:
        end = min(n_rows, start + window_size)
        yield start, end
        start = end


def progress_windows(
    windows: Iterator[tuple[int, int]], n_rows: int, desc: str = ""
) -> Iterator[tuple[int, int]]:
    """Wrap a window iterator with a progress bar counted in variants.

    The bar advances to each window's end row after the caller has finished
    with it, and is finalized in a try/finally block so that an aborted run
    doesn't leave terminal output corrupted.

    Args:
        windows: Iterator of ``(start, end)`` bounds.
        n_rows: Total number of variants.
        desc: Optional description prefix.

    Yields:
        The ``(start, end)`` bounds from ``windows``.
    """
    widgets = [
        f"{desc}: " if desc else "",
        progressbar.Counter(),
        f"/{n_rows} variants ",
        progressbar.Percentage(),
        " ",
        progressbar.Bar(),
        " ",
        progressbar.Timer(),
        " ",
        progressbar.ETA(),
    ]
    bar = progressbar.ProgressBar(max_value=n_rows, widgets=widgets, fd=sys.stdout)
    bar.start()
    try:
        for start, end in windows:
            yield start, end
            bar.update(end)
    finally:
        bar.finish()
