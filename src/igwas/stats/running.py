"""Running sufficient statistics for projected GWAS.

For a projected phenotype z_j = sum_k P[k, j] * y_k, ordinary least squares
gives, per variant,

    beta_z = sum_k P[k, j] * beta_k
    se_z^2 = (var(z_j) / var(g) - beta_z^2) / dof

where var(z_j) is the j-th diagonal entry of P' C P and var(g) is the genotype
variance. Each phenotype's own summary statistics imply an estimate of
var(g) / var(y_k); averaging the per-phenotype estimates of var(g) and summing
the projected betas are both plain additions, so phenotypes can be folded in
one at a time, in any order, and the final statistics computed once all have
arrived.

RunningSufficientStats holds the buffers for one window of variants at a time.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np
from loguru import logger

from igwas.core.errors import (
    DuplicatePhenotypeSource,
    IncompleteAggregation,
    LabelMismatch,
    MismatchedVariantIds,
    ShapeMismatch,
)
from igwas.io.matrix import LabeledMatrix
from igwas.stats.pvalue import neg_log10_pvalue


def _readonly(array: np.ndarray) -> np.ndarray:
    out = np.array(array, dtype=np.float64, copy=True)
    out.flags.writeable = False
    return out


@dataclass
class PhenotypeChunk:
    """One phenotype's contribution to one window of variants.

    Attributes:
        phenotype_id: Phenotype name, matching a projection row label.
        variant_ids: Ordered variant identifiers for the window.
        sample_sizes: (n_variants,) int64 per-variant sample sizes.
        beta_update: (n_variants, n_projections) partial projected betas.
        gpv_update: (n_variants,) partial genotype variance estimates.
    """

    phenotype_id: str
    variant_ids: list[str]
    sample_sizes: np.ndarray
    beta_update: np.ndarray
    gpv_update: np.ndarray

    @property
    def n_variants(self) -> int:
        return len(self.variant_ids)


@dataclass(frozen=True)
class ProcessingStats:
    """Read-only run-wide data a reader needs to build PhenotypeChunks.

    Attributes:
        projection: (n_phenotypes, n_projections) read-only projection matrix.
        fpv: (n_phenotypes,) read-only phenotype variances (covariance diagonal).
        phenotype_index: Phenotype name -> projection row.
        n_covar: Number of covariates in the per-phenotype regressions.
    """

    projection: np.ndarray
    fpv: np.ndarray
    phenotype_index: Mapping[str, int]
    n_covar: int

    def phenotype_chunk(
        self,
        phenotype_id: str,
        variant_ids: Sequence[str],
        beta: np.ndarray,
        std_error: np.ndarray,
        sample_sizes: np.ndarray,
    ) -> PhenotypeChunk:
        """Convert one phenotype's raw GWAS rows into its partial contributions.

        With dof = n - 2 - n_covar, a phenotype's own regression satisfies
        se^2 * dof + beta^2 = var(y) / var(g), so

            gpv_update = var(y) / (se^2 * dof + beta^2)
            beta_update = beta (outer) P[k, :]

        Args:
            phenotype_id: Phenotype name.
            variant_ids: Variant identifiers, one per row.
            beta: Effect estimates.
            std_error: Standard errors of the effect estimates.
            sample_sizes: Per-variant sample sizes.

        Returns:
            PhenotypeChunk for the rows.

        Raises:
            LabelMismatch: If phenotype_id is not a projection row label.
            ShapeMismatch: If the input columns differ in length.
        """
        try:
            k = self.phenotype_index[phenotype_id]
        except KeyError:
            raise LabelMismatch(
                f"Phenotype {phenotype_id!r} is not a row of the projection matrix"
            ) from None

        beta = np.asarray(beta, dtype=np.float64)
        std_error = np.asarray(std_error, dtype=np.float64)
        sample_sizes = np.asarray(sample_sizes, dtype=np.int64)
        n = len(variant_ids)
        if not (beta.shape == std_error.shape == sample_sizes.shape == (n,)):
            raise ShapeMismatch(
                f"Phenotype {phenotype_id!r}: columns have mismatched lengths "
                f"(ids={n}, beta={beta.shape}, se={std_error.shape}, "
                f"n={sample_sizes.shape})"
            )

        dof = sample_sizes - 2 - self.n_covar
        with np.errstate(divide="ignore", invalid="ignore"):
            gpv_update = self.fpv[k] / (std_error**2 * dof + beta**2)

        return PhenotypeChunk(
            phenotype_id=phenotype_id,
            variant_ids=list(variant_ids),
            sample_sizes=sample_sizes,
            beta_update=np.outer(beta, self.projection[k]),
            gpv_update=gpv_update,
        )


@dataclass
class FinalizedChunk:
    """Projected summary statistics for one window.

    One entry per (projection, variant) pair, projection-major then
    variant-minor. All arrays have the same length.
    """

    projection_ids: np.ndarray
    variant_ids: np.ndarray
    beta: np.ndarray
    se: np.ndarray
    t_stat: np.ndarray
    neg_log10_p: np.ndarray
    sample_size: np.ndarray

    def __len__(self) -> int:
        return len(self.beta)


class RunningSufficientStats:
    """Accumulates per-phenotype contributions for one window of variants.

    Lifecycle per window: clear_window(size), then one update() per
    phenotype in any order, then finalize(). The projection and covariance
    data are copied once at construction, made read-only, and shared for the
    whole run.

    Not thread-safe: callers serialize access (ChunkPipeline holds a lock).

    Args:
        projection: (n_phenotypes, n_projections) projection matrix. Row labels
            are phenotype names, column labels are projection names.
        covariance: (n_phenotypes, n_phenotypes) phenotype covariance matrix
            with the projection's row labels on both axes, in the same order.
        n_covar: Number of covariates used in the per-phenotype GWAS.
        window_size: Initial window buffer size in variants.

    Raises:
        ShapeMismatch: If the covariance is not square with one row per
            projection row.
        LabelMismatch: If the covariance labels differ from the projection
            row labels.
        ValueError: If window_size < 1 or n_covar < 0.

    Example:
        >>> stats = RunningSufficientStats(proj, cov, n_covar=1, window_size=3)
        >>> stats.clear_window(3)
        >>> for chunk in chunks:
        ...     stats.update(chunk)
        >>> result = stats.finalize()
    """

    def __init__(
        self,
        projection: LabeledMatrix,
        covariance: LabeledMatrix,
        n_covar: int,
        window_size: int,
    ) -> None:
        n_features, n_projections = projection.matrix.shape
        if covariance.matrix.shape != (n_features, n_features):
            rows, cols = covariance.matrix.shape
            raise ShapeMismatch(
                f"Covariance matrix has wrong shape, expected "
                f"{n_features} x {n_features}, got {rows} x {cols}"
            )
        if (
            list(covariance.row_labels) != list(projection.row_labels)
            or list(covariance.col_labels) != list(projection.row_labels)
        ):
            raise LabelMismatch(
                "Projection and covariance matrices have different labels"
            )
        if window_size < 1:
            raise ValueError(f"window_size must be at least 1, got {window_size}")
        if n_covar < 0:
            raise ValueError(f"n_covar must be non-negative, got {n_covar}")

        self.n_covar = n_covar
        self._proj = _readonly(projection.matrix)
        self._cov = _readonly(covariance.matrix)
        self._fpv = _readonly(np.diag(self._cov))
        # Projected phenotype variance: diag(P' C P), one product for all columns
        self._ppv = _readonly(np.diag(self._proj.T @ self._cov @ self._proj))
        self._phenotype_index = MappingProxyType(
            {label: i for i, label in enumerate(projection.row_labels)}
        )
        self._projection_ids = np.array(projection.col_labels, dtype=object)
        self._n_features = n_features
        self._n_projections = n_projections

        self._window_size = window_size
        self._beta = np.zeros((window_size, n_projections), dtype=np.float64)
        self._gpv = np.zeros(window_size, dtype=np.float64)
        self._sample_sizes = np.zeros(window_size, dtype=np.int64)
        self._variant_ids: list[str] | None = None
        self._seen: set[str] = set()

    @property
    def window_size(self) -> int:
        return self._window_size

    @property
    def n_phenotypes(self) -> int:
        return self._n_features

    @property
    def n_projections(self) -> int:
        return self._n_projections

    @property
    def n_seen(self) -> int:
        """Number of phenotypes applied to the current window."""
        return len(self._seen)

    @property
    def phenotype_ids(self) -> list[str]:
        return list(self._phenotype_index)

    @property
    def projection_ids(self) -> list[str]:
        return list(self._projection_ids)

    @property
    def beta(self) -> np.ndarray:
        """Running (window_size, n_projections) projected beta sums."""
        return self._beta

    @property
    def gpv(self) -> np.ndarray:
        """Running (window_size,) sum of genotype variance estimates."""
        return self._gpv

    @property
    def sample_sizes(self) -> np.ndarray:
        """Running (window_size,) elementwise minimum sample size."""
        return self._sample_sizes

    @property
    def variant_ids(self) -> list[str] | None:
        """Canonical variant IDs of the current window, None before the first update."""
        return self._variant_ids

    def build_processing_stats(self) -> ProcessingStats:
        """Snapshot of the read-only data readers need to build PhenotypeChunks."""
        return ProcessingStats(
            projection=self._proj,
            fpv=self._fpv,
            phenotype_index=self._phenotype_index,
            n_covar=self.n_covar,
        )

    def clear_window(self, new_size: int) -> None:
        """Reset the window buffers, reallocating only if the size changes.

        Args:
            new_size: Number of variants in the next window.
        """
        if new_size < 1:
            raise ValueError(f"window size must be at least 1, got {new_size}")
        if new_size != self._window_size:
            logger.debug(f"Resizing window buffers {self._window_size} -> {new_size}")
            self._beta = np.zeros((new_size, self._n_projections), dtype=np.float64)
            self._gpv = np.zeros(new_size, dtype=np.float64)
            self._sample_sizes = np.zeros(new_size, dtype=np.int64)
            self._window_size = new_size
        else:
            self._beta.fill(0.0)
            self._gpv.fill(0.0)
            self._sample_sizes.fill(0)
        self._variant_ids = None
        self._seen = set()

    def update(self, chunk: PhenotypeChunk) -> None:
        """Fold one phenotype's contribution into the current window.

        The first update of a window adopts the chunk's variant IDs and sample
        sizes; later updates take the elementwise minimum of sample sizes and
        must carry the same variant IDs. Every check runs before any buffer
        is touched, so a rejected chunk leaves the window unchanged.

        Args:
            chunk: Contribution for the current window.

        Raises:
            LabelMismatch: If the phenotype is not in the projection matrix.
            DuplicatePhenotypeSource: If the phenotype already contributed to
                this window.
            ShapeMismatch: If the chunk's length differs from the window size.
            MismatchedVariantIds: If the variant IDs differ from the window's.
        """
        if chunk.phenotype_id not in self._phenotype_index:
            raise LabelMismatch(
                f"Phenotype {chunk.phenotype_id!r} is not a row of the "
                "projection matrix"
            )
        if chunk.phenotype_id in self._seen:
            raise DuplicatePhenotypeSource(
                f"Phenotype {chunk.phenotype_id!r} already contributed to this window"
            )
        expected = (self._window_size, self._n_projections)
        if (
            chunk.n_variants != self._window_size
            or chunk.beta_update.shape != expected
            or chunk.gpv_update.shape != (self._window_size,)
            or chunk.sample_sizes.shape != (self._window_size,)
        ):
            raise ShapeMismatch(
                f"Phenotype {chunk.phenotype_id!r} chunk has {chunk.n_variants} "
                f"variants but the window holds {self._window_size}"
            )

        variant_ids = list(chunk.variant_ids)
        first = self._variant_ids is None
        if not first and variant_ids != self._variant_ids:
            pos = next(
                i
                for i, (a, b) in enumerate(zip(self._variant_ids, variant_ids))
                if a != b
            )
            raise MismatchedVariantIds(
                f"Mismatched variant ids for phenotype {chunk.phenotype_id!r} "
                f"at window position {pos}: expected {self._variant_ids[pos]!r}, "
                f"got {variant_ids[pos]!r}"
            )

        if first:
            self._sample_sizes[:] = chunk.sample_sizes
            self._variant_ids = variant_ids
        else:
            np.minimum(self._sample_sizes, chunk.sample_sizes, out=self._sample_sizes)

        self._beta += chunk.beta_update
        self._gpv += chunk.gpv_update
        self._seen.add(chunk.phenotype_id)

    def finalize(self) -> FinalizedChunk:
        """Compute projected statistics for the current window.

        Reads the window buffers without modifying them, so calling it twice
        returns identical results.

        dof <= 0 or a zero variance estimate produce NaN or inf standard
        errors; those are reported as-is and counted in a warning.

        Returns:
            FinalizedChunk ordered projection-major, variant-minor.

        Raises:
            IncompleteAggregation: If not every phenotype has contributed.
        """
        if len(self._seen) != self._n_features:
            raise IncompleteAggregation(
                f"Too few phenotypes seen. Expected {self._n_features}, "
                f"got {len(self._seen)}"
            )

        gpv = self._gpv / len(self._seen)
        dof = self._sample_sizes - 2 - self.n_covar

        with np.errstate(divide="ignore", invalid="ignore"):
            se = np.sqrt(
                (self._ppv[np.newaxis, :] / gpv[:, np.newaxis] - self._beta**2)
                / dof[:, np.newaxis]
            )
            t_stat = self._beta / se
        neg_log10_p = neg_log10_pvalue(t_stat, dof[:, np.newaxis])

        n_bad = int(np.count_nonzero(~np.isfinite(se)))
        if n_bad:
            logger.warning(
                f"{n_bad} of {se.size} standard errors in this window are not "
                f"finite (check sample sizes against n_covar={self.n_covar})"
            )

        n_variants = self._window_size
        window_ids = np.array(self._variant_ids, dtype=object)
        return FinalizedChunk(
            projection_ids=np.repeat(self._projection_ids, n_variants),
            variant_ids=np.tile(window_ids, self._n_projections),
            beta=self._beta.ravel(order="F").copy(),
            se=se.ravel(order="F"),
            t_stat=t_stat.ravel(order="F"),
            neg_log10_p=np.asarray(neg_log10_p).ravel(order="F"),
            sample_size=np.tile(self._sample_sizes, self._n_projections),
        )
