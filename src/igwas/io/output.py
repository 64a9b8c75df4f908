"""I/O module for projected association results.

Results are tab-separated, one line per (projection, variant) pair:

```
projection_id  variant_id  beta  std_error  t_stat  neg_log10_p  sample_size
```

Floats use ``.6e`` so output is byte-identical across runs with the same
inputs and window size.
"""

from pathlib import Path

from igwas.stats.running import FinalizedChunk

HEADER = "\t".join(
    [
        "projection_id",
        "variant_id",
        "beta",
        "std_error",
        "t_stat",
        "neg_log10_p",
        "sample_size",
    ]
)


def format_result_lines(chunk: FinalizedChunk) -> list[str]:
    """Format a finalized window as tab-separated lines (no newlines)."""
    return [
        f"{proj}\t{variant}\t{beta:.6e}\t{se:.6e}\t{t:.6e}\t{p:.6e}\t{n}"
        for proj, variant, beta, se, t, p, n in zip(
            chunk.projection_ids,
            chunk.variant_ids,
            chunk.beta.tolist(),
            chunk.se.tolist(),
            chunk.t_stat.tolist(),
            chunk.neg_log10_p.tolist(),
            chunk.sample_size.tolist(),
        )
    ]


class IncrementalResultWriter:
    """Write finalized windows to disk as they are produced.

    Context manager that truncates the output on open and writes the header
    together with the first window, so a run that fails before its first
    window leaves an empty file. Rows from windows written before a failure
    stay on disk.

    Example:
        with IncrementalResultWriter(Path("out/result.igwas.txt")) as writer:
            for chunk in finalized_windows:
                writer.write_chunk(chunk)
        print(f"Wrote {writer.count} rows")
    """

    def __init__(self, path: Path):
        """Initialize writer with output path.

        Args:
            path: Output file path. Parent directories created if needed.
        """
        self.path = Path(path)
        self._file = None
        self._count = 0
        self._header_written = False

    def __enter__(self) -> "IncrementalResultWriter":
        """Open (and truncate) the output file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w")
        return self

    def write_chunk(self, chunk: FinalizedChunk) -> None:
        """Append one finalized window, preceded by the header the first time.

        Args:
            chunk: Finalized window to write.
        """
        if self._file is None:
            raise RuntimeError("Writer not opened. Use as context manager.")
        if not self._header_written:
            self._file.write(HEADER + "\n")
            self._header_written = True
        lines = format_result_lines(chunk)
        if lines:
            self._file.write("\n".join(lines) + "\n")
        self._file.flush()
        self._count += len(lines)

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close file."""
        if self._file:
            self._file.close()
            self._file = None

    @property
    def count(self) -> int:
        """Number of result rows written."""
        return self._count
