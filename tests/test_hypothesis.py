"""Property-based tests for the sufficient-statistics aggregator.

These tests verify:
1. Update order does not change the accumulated window state
2. Running sample sizes are the elementwise minimum of all contributions
3. A single phenotype under the identity projection reproduces its own stats
"""

from __future__ import annotations

import numpy as np
import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from igwas.io.matrix import LabeledMatrix
from igwas.stats.running import RunningSufficientStats

pytestmark = pytest.mark.tier0


@st.composite
def study(draw, max_phenotypes=5, max_projections=3, max_variants=8):
    """Random projection/covariance pair with GWAS rows for every phenotype."""
    n_phenotypes = draw(st.integers(min_value=1, max_value=max_phenotypes))
    n_projections = draw(st.integers(min_value=1, max_value=max_projections))
    n_variants = draw(st.integers(min_value=1, max_value=max_variants))
    seed = draw(st.integers(min_value=0, max_value=2**32 - 1))

    rng = np.random.default_rng(seed)
    names = [f"y{i}" for i in range(n_phenotypes)]
    a = rng.normal(size=(n_phenotypes, n_phenotypes))
    projection = LabeledMatrix(
        rng.normal(size=(n_phenotypes, n_projections)),
        names,
        [f"z{j}" for j in range(n_projections)],
    )
    covariance = LabeledMatrix(a @ a.T + np.eye(n_phenotypes), names, names)
    rows = {
        name: (
            rng.normal(scale=0.1, size=n_variants),
            rng.uniform(0.01, 0.1, size=n_variants),
            rng.integers(50, 5000, size=n_variants),
        )
        for name in names
    }
    order = draw(st.permutations(names))
    return projection, covariance, rows, list(order)


def accumulate(projection, covariance, rows, order, n_covar=3):
    n_variants = len(next(iter(rows.values()))[0])
    stats = RunningSufficientStats(projection, covariance, n_covar, n_variants)
    processing = stats.build_processing_stats()
    ids = [f"v{i}" for i in range(n_variants)]
    stats.clear_window(n_variants)
    for name in order:
        stats.update(processing.phenotype_chunk(name, ids, *rows[name]))
    return stats


@given(data=study())
@settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.too_slow])
def test_update_order_does_not_matter(data):
    projection, covariance, rows, order = data
    forward = accumulate(projection, covariance, rows, projection.row_labels)
    shuffled = accumulate(projection, covariance, rows, order)

    np.testing.assert_allclose(shuffled.beta, forward.beta, rtol=1e-12, atol=1e-15)
    np.testing.assert_allclose(shuffled.gpv, forward.gpv, rtol=1e-12)
    np.testing.assert_array_equal(shuffled.sample_sizes, forward.sample_sizes)

    a, b = forward.finalize(), shuffled.finalize()
    np.testing.assert_allclose(b.se, a.se, rtol=1e-10)
    np.testing.assert_allclose(b.neg_log10_p, a.neg_log10_p, rtol=1e-8, atol=1e-12)


@given(data=study())
@settings(max_examples=50, deadline=None)
def test_sample_size_is_running_minimum(data):
    projection, covariance, rows, order = data
    n_variants = len(next(iter(rows.values()))[0])
    stats = RunningSufficientStats(projection, covariance, 0, n_variants)
    processing = stats.build_processing_stats()
    ids = [f"v{i}" for i in range(n_variants)]
    stats.clear_window(n_variants)

    for k, name in enumerate(order, start=1):
        stats.update(processing.phenotype_chunk(name, ids, *rows[name]))
        expected = np.min([rows[n][2] for n in order[:k]], axis=0)
        np.testing.assert_array_equal(stats.sample_sizes, expected)


@given(
    beta=st.floats(min_value=-1.0, max_value=1.0),
    se=st.floats(min_value=1e-3, max_value=1.0),
    n=st.integers(min_value=10, max_value=100_000),
    variance=st.floats(min_value=0.1, max_value=10.0),
)
@settings(max_examples=100, deadline=None)
def test_identity_projection_reproduces_input(beta, se, n, variance):
    projection = LabeledMatrix(np.array([[1.0]]), ["y"], ["y"])
    covariance = LabeledMatrix(np.array([[variance]]), ["y"], ["y"])
    stats = accumulate(projection, covariance, {"y": ([beta], [se], [n])}, ["y"])

    result = stats.finalize()

    np.testing.assert_array_equal(result.beta, [beta])
    np.testing.assert_allclose(result.se, [se], rtol=1e-8)
