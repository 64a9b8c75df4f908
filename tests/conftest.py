"""Pytest fixtures for the IGWAS test suite."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pytest

from igwas.core import configure_jax
from igwas.io.matrix import LabeledMatrix, write_labeled_matrix

# =============================================================================
# Test Tier System
# =============================================================================
#
# tier0 - Fast unit tests, no file I/O beyond tmp_path scratch files
#   Run: pytest -m tier0
#
# tier1 - End-to-end runs over small matrix and GWAS files on disk
#   (pipeline, API, CLI)
#   Run: pytest -m tier1
#
# tier2 - Larger synthetic runs (marked slow)
#   Run: pytest -m tier2
#
#   pytest -m "not tier2"     # Everything except the slow runs
# =============================================================================


@pytest.fixture(autouse=True)
def setup_jax():
    """Configure JAX with 64-bit precision before each test."""
    configure_jax(enable_x64=True)


def write_sumstats(
    path: Path,
    variant_ids: Sequence[str],
    beta: Sequence[float],
    std_error: Sequence[float],
    sample_sizes: Sequence[int],
    columns: tuple[str, str, str, str] = ("ID", "BETA", "SE", "OBS_CT"),
) -> Path:
    """Write a minimal PLINK2-style summary-statistic file.

    Includes a leading CHROM column so the reader has to look columns up by
    name rather than position.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    id_col, beta_col, se_col, n_col = columns
    with open(path, "w") as f:
        f.write(f"#CHROM\t{id_col}\t{n_col}\t{beta_col}\t{se_col}\n")
        for vid, b, s, n in zip(variant_ids, beta, std_error, sample_sizes):
            f.write(f"1\t{vid}\t{int(n)}\t{float(b)!r}\t{float(s)!r}\n")
    return path


def golden_inputs() -> SimpleNamespace:
    """Two phenotypes, three variants, one projection P = 0.5*A + 0.5*B.

    Raw beta/se/n are chosen so each phenotype's partial contributions are
    round numbers:

        beta_update A = [0.05, 0.10, 0.00]    gpv_update A = [0.5, 0.4, 0.25]
        beta_update B = [0.05, 0.00, -0.10]   gpv_update B = [0.5, 0.6, 0.25]

    With n_covar=1, ppv = 0.25 * (1 + 0.2 + 0.2 + 1) = 0.6 and the window
    minimum sample sizes are [103, 50, 28], so dof = [100, 47, 25].
    """
    projection = LabeledMatrix(
        matrix=np.array([[0.5], [0.5]]), row_labels=["A", "B"], col_labels=["P"]
    )
    covariance = LabeledMatrix(
        matrix=np.array([[1.0, 0.2], [0.2, 1.0]]),
        row_labels=["A", "B"],
        col_labels=["A", "B"],
    )
    variant_ids = ["rs1", "rs2", "rs3"]

    beta_a = np.array([0.1, 0.2, 0.0])
    n_a = np.array([103, 53, 28])
    dof_a = n_a - 3
    # se^2 * dof + beta^2 = fpv / gpv_update
    se_a = np.sqrt((np.array([2.0, 2.5, 4.0]) - beta_a**2) / dof_a)

    beta_b = np.array([0.1, 0.0, -0.2])
    n_b = np.array([105, 50, 30])
    dof_b = n_b - 3
    se_b = np.sqrt((np.array([2.0, 1.0 / 0.6, 4.0]) - beta_b**2) / dof_b)

    dof = np.array([100, 47, 25])
    expected_beta = np.array([0.1, 0.1, -0.1])
    expected_se = np.sqrt(
        (np.array([0.6 / 0.5, 0.6 / 0.5, 0.6 / 0.25]) - expected_beta**2) / dof
    )

    return SimpleNamespace(
        projection=projection,
        covariance=covariance,
        n_covar=1,
        variant_ids=variant_ids,
        phenotypes={
            "A": (beta_a, se_a, n_a),
            "B": (beta_b, se_b, n_b),
        },
        expected_beta=expected_beta,
        expected_se=expected_se,
        expected_t=expected_beta / expected_se,
        expected_n=np.array([103, 50, 28]),
        dof=dof,
    )


@pytest.fixture
def golden() -> SimpleNamespace:
    return golden_inputs()


@pytest.fixture
def golden_files(tmp_path: Path, golden: SimpleNamespace) -> SimpleNamespace:
    """The golden scenario written to disk as matrix and GWAS files."""
    projection_file = tmp_path / "proj.tsv"
    covariance_file = tmp_path / "cov.tsv"
    write_labeled_matrix(golden.projection, projection_file, index_name="phenotype")
    write_labeled_matrix(golden.covariance, covariance_file, index_name="phenotype")

    gwas_files = [
        write_sumstats(tmp_path / "gwas" / f"{name}.glm", golden.variant_ids, *cols)
        for name, cols in golden.phenotypes.items()
    ]
    return SimpleNamespace(
        projection=projection_file,
        covariance=covariance_file,
        gwas=gwas_files,
        outdir=tmp_path / "output",
    )


def random_study(
    tmp_path: Path,
    n_phenotypes: int = 3,
    n_projections: int = 2,
    n_variants: int = 10,
    seed: int = 0,
) -> SimpleNamespace:
    """Write a random but well-conditioned study to disk."""
    rng = np.random.default_rng(seed)
    phenotypes = [f"pheno{i}" for i in range(n_phenotypes)]
    projections = [f"proj{j}" for j in range(n_projections)]

    a = rng.normal(size=(n_phenotypes, n_phenotypes))
    cov = a @ a.T + n_phenotypes * np.eye(n_phenotypes)
    projection = LabeledMatrix(
        matrix=rng.normal(size=(n_phenotypes, n_projections)),
        row_labels=phenotypes,
        col_labels=projections,
    )
    covariance = LabeledMatrix(matrix=cov, row_labels=phenotypes, col_labels=phenotypes)

    projection_file = write_labeled_matrix_to(tmp_path / "proj.tsv", projection)
    covariance_file = write_labeled_matrix_to(tmp_path / "cov.tsv", covariance)

    variant_ids = [f"rs{i}" for i in range(n_variants)]
    gwas_files = []
    for name in phenotypes:
        beta = rng.normal(scale=0.05, size=n_variants)
        se = rng.uniform(0.01, 0.05, size=n_variants)
        n = rng.integers(900, 1000, size=n_variants)
        gwas_files.append(
            write_sumstats(tmp_path / "gwas" / f"{name}.tsv", variant_ids, beta, se, n)
        )

    return SimpleNamespace(
        projection=projection_file,
        covariance=covariance_file,
        gwas=gwas_files,
        phenotypes=phenotypes,
        projections=projections,
        variant_ids=variant_ids,
        outdir=tmp_path / "output",
    )


def write_labeled_matrix_to(path: Path, matrix: LabeledMatrix) -> Path:
    write_labeled_matrix(matrix, path, index_name="phenotype")
    return path


def read_results(path: Path) -> list[list[str]]:
    """Read a results file as rows of fields, header first."""
    with open(path) as f:
        return [line.rstrip("\n").split("\t") for line in f]
