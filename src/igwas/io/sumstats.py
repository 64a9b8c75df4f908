"""Per-phenotype GWAS summary-statistic files.

Each file holds one phenotype's GWAS results, one variant per line, with a
tab-delimited header line (PLINK2 ``--glm`` output is the reference layout).
The phenotype name is the file name with its final suffix removed, so
``height.glm.linear`` is phenotype ``height.glm`` and ``height.tsv`` is
``height``.

Files are read one window of lines at a time; all phenotype files of a run
must list the same variants in the same order.
"""

from __future__ import annotations

from itertools import islice
from pathlib import Path

import numpy as np

from igwas.core.config import SumstatsColumns
from igwas.stats.running import PhenotypeChunk, ProcessingStats

_MISSING = {"NA", "NaN", "nan", "."}


def phenotype_name_from_path(path: str | Path) -> str:
    """Phenotype name implied by a summary-statistic file path."""
    return Path(path).stem


def _parse_float(value: str) -> float:
    return float("nan") if value in _MISSING else float(value)


class SumstatsFile:
    """One phenotype's summary-statistic file, read window by window.

    Remembers the byte offset where the previous window ended so sequential
    windows do not rescan the file from the top.

    Args:
        path: Path to the tab-delimited file.
        columns: Column names for variant ID, beta, standard error and
            sample size.
        phenotype_id: Phenotype name. Defaults to phenotype_name_from_path.

    Example:
        >>> source = SumstatsFile(Path("gwas/height.tsv"))
        >>> source.count_rows()
        120000
        >>> chunk = source.read_chunk(0, 50_000, stats.build_processing_stats())
    """

    def __init__(
        self,
        path: Path,
        columns: SumstatsColumns | None = None,
        phenotype_id: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.columns = columns or SumstatsColumns()
        self.phenotype_id = phenotype_id or phenotype_name_from_path(self.path)
        self._column_index: tuple[int, int, int, int] | None = None
        self._resume_line = 0
        self._resume_offset: int | None = None

    def __repr__(self) -> str:
        return f"SumstatsFile({str(self.path)!r}, phenotype_id={self.phenotype_id!r})"

    def _parse_header(self, header: str) -> tuple[int, int, int, int]:
        names = header.rstrip("\r\n").split("\t")
        lookup = {name.strip(): i for i, name in enumerate(names)}
        missing = [col for col in self.columns.required() if col not in lookup]
        if missing:
            raise ValueError(
                f"Summary statistics file {self.path} is missing column(s) "
                f"{missing}; available columns: {list(lookup)}"
            )
        return tuple(lookup[col] for col in self.columns.required())

    def count_rows(self) -> int:
        """Number of variant lines (the header is not counted)."""
        if not self.path.exists():
            raise FileNotFoundError(f"Summary statistics file not found: {self.path}")
        with open(self.path, "rb") as f:
            n_lines = sum(1 for line in f if line.strip())
        return max(0, n_lines - 1)

    def read_rows(
        self, start: int, end: int
    ) -> tuple[list[str], np.ndarray, np.ndarray, np.ndarray]:
        """Read variant lines ``[start, end)``.

        Args:
            start: First variant line, 0-based, header excluded.
            end: One past the last variant line.

        Returns:
            Tuple of (variant_ids, beta, std_error, sample_sizes). Missing
            numeric values (``NA``) become NaN.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If required columns are absent, a line is malformed,
                or the file ends before ``end``.
        """
        if not self.path.exists():
            raise FileNotFoundError(f"Summary statistics file not found: {self.path}")
        n = end - start
        variant_ids: list[str] = []
        beta = np.empty(n, dtype=np.float64)
        std_error = np.empty(n, dtype=np.float64)
        sample_sizes = np.empty(n, dtype=np.int64)

        with open(self.path, "rb") as f:
            header = f.readline().decode()
            if self._column_index is None:
                self._column_index = self._parse_header(header)
            i_id, i_beta, i_se, i_n = self._column_index

            if self._resume_offset is not None and self._resume_line == start:
                f.seek(self._resume_offset)
                skip = 0
            else:
                skip = start

            lines = (line for line in iter(f.readline, b"") if line.strip())
            for _ in islice(lines, skip):
                pass

            for row in range(n):
                raw = f.readline()
                while raw and not raw.strip():
                    raw = f.readline()
                if not raw:
                    raise ValueError(
                        f"Summary statistics file {self.path} ended after "
                        f"{start + row} variants; expected at least {end}"
                    )
                fields = raw.decode().rstrip("\r\n").split("\t")
                try:
                    variant_ids.append(fields[i_id])
                    beta[row] = _parse_float(fields[i_beta])
                    std_error[row] = _parse_float(fields[i_se])
                    sample_sizes[row] = int(float(fields[i_n]))
                except (IndexError, ValueError) as e:
                    raise ValueError(
                        f"Summary statistics file {self.path}, variant line "
                        f"{start + row + 1}: {e}"
                    ) from e

            self._resume_line = end
            self._resume_offset = f.tell()

        return variant_ids, beta, std_error, sample_sizes

    def read_chunk(
        self, start: int, end: int, processing: ProcessingStats
    ) -> PhenotypeChunk:
        """Read variant lines ``[start, end)`` as this phenotype's contribution."""
        variant_ids, beta, std_error, sample_sizes = self.read_rows(start, end)
        return processing.phenotype_chunk(
            self.phenotype_id, variant_ids, beta, std_error, sample_sizes
        )
