"""Labeled matrix I/O.

Projection and covariance matrices are stored as delimited text with a header
line. The first header cell names the row-label column and is ignored; the
remaining header cells are the column labels. Each following line holds a row
label and that row's numeric values:

```
phenotype   proj_1  proj_2
height      0.5     1.0
weight      0.5     -1.0
```

Files ending in ``.csv`` are comma-delimited; everything else is tab-delimited.
"""

from dataclasses import dataclass
from pathlib import Path

import numpy as np


def _check_unique(labels: list[str], axis: str) -> None:
    seen: set[str] = set()
    for label in labels:
        if label in seen:
            raise ValueError(f"Duplicate {axis} label: {label!r}")
        seen.add(label)


@dataclass(frozen=True)
class LabeledMatrix:
    """A float matrix with unique string labels on both axes.

    Attributes:
        matrix: (n_rows, n_cols) float64 array.
        row_labels: One label per row, unique.
        col_labels: One label per column, unique.

    Raises:
        ValueError: If label counts disagree with the matrix shape or labels
            repeat within an axis.
    """

    matrix: np.ndarray
    row_labels: list[str]
    col_labels: list[str]

    def __post_init__(self) -> None:
        if self.matrix.ndim != 2:
            raise ValueError(f"Expected a 2-D matrix, got {self.matrix.ndim}-D")
        n_rows, n_cols = self.matrix.shape
        if len(self.row_labels) != n_rows:
            raise ValueError(
                f"Matrix has {n_rows} rows but {len(self.row_labels)} row labels"
            )
        if len(self.col_labels) != n_cols:
            raise ValueError(
                f"Matrix has {n_cols} columns but {len(self.col_labels)} column labels"
            )
        _check_unique(self.row_labels, "row")
        _check_unique(self.col_labels, "column")

    @property
    def shape(self) -> tuple[int, int]:
        return self.matrix.shape


def _delimiter_for(path: Path) -> str:
    return "," if path.suffix.lower() == ".csv" else "\t"


def read_labeled_matrix(path: Path) -> LabeledMatrix:
    """Read a labeled matrix from delimited text.

    Args:
        path: Path to the matrix file.

    Returns:
        LabeledMatrix with float64 values.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is empty, a row has the wrong number of
            fields, a value is not numeric, or labels are not unique.

    Example:
        >>> proj = read_labeled_matrix(Path("projection.tsv"))
        >>> proj.shape
        (2, 2)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Matrix file not found: {path}")

    delimiter = _delimiter_for(path)
    with open(path) as f:
        lines = [line.rstrip("\r\n") for line in f if line.strip()]

    if not lines:
        raise ValueError(f"Matrix file is empty: {path}")

    header = [cell.strip() for cell in lines[0].split(delimiter)]
    col_labels = header[1:]
    n_cols = len(col_labels)

    row_labels: list[str] = []
    matrix = np.zeros((len(lines) - 1, n_cols), dtype=np.float64)
    for i, line in enumerate(lines[1:]):
        fields = [cell.strip() for cell in line.split(delimiter)]
        if len(fields) != n_cols + 1:
            raise ValueError(
                f"Matrix file {path} line {i + 2} has {len(fields)} fields "
                f"but expected {n_cols + 1} (row label + {n_cols} values)"
            )
        row_labels.append(fields[0])
        for j, value in enumerate(fields[1:]):
            try:
                matrix[i, j] = float(value)
            except ValueError as e:
                raise ValueError(
                    f"Matrix file {path} line {i + 2}, column {j + 2}: "
                    f"cannot parse {value!r} as numeric"
                ) from e

    return LabeledMatrix(matrix=matrix, row_labels=row_labels, col_labels=col_labels)


def write_labeled_matrix(
    matrix: LabeledMatrix, path: Path, index_name: str = ""
) -> None:
    """Write a labeled matrix in the format read by read_labeled_matrix.

    Values are written with ``repr``-precision (``.17g``) so a write/read cycle
    is lossless.

    Args:
        matrix: Matrix to write.
        path: Output path. Parent directories created if needed.
        index_name: Header cell for the row-label column.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    delimiter = _delimiter_for(path)

    with open(path, "w") as f:
        f.write(delimiter.join([index_name, *matrix.col_labels]) + "\n")
        for label, row in zip(matrix.row_labels, matrix.matrix):
            f.write(delimiter.join([label, *(f"{v:.17g}" for v in row)]) + "\n")
