"""
Unit tests for portfolio evaluation.
"""

import numpy as np
import pytest

from portfolio_engine.core.evaluator import (
    normalize_weights,
    portfolio_sharpe,
    portfolio_stats,
    portfolio_variance,
)


class TestPortfolioStats:
    """Test suite for portfolio_stats."""

    def test_equal_weight_two_asset_stats(self, two_asset_moments):
        mean_vector, cov_matrix = two_asset_moments

        stats = portfolio_stats([0.5, 0.5], mean_vector, cov_matrix)

        assert stats['mean'] == pytest.approx(0.10)
        assert stats['variance'] == pytest.approx(0.0375)
        assert stats['std'] == pytest.approx(np.sqrt(0.0375))
        assert stats['sharpe'] == pytest.approx((0.10 - 0.04) / np.sqrt(0.0375))

    def test_risk_free_rate_is_configurable(self, two_asset_moments):
        mean_vector, cov_matrix = two_asset_moments

        stats = portfolio_stats([1.0, 0.0], mean_vector, cov_matrix, risk_free=0.0)

        assert stats['sharpe'] == pytest.approx(0.08 / 0.2)

    def test_zero_risk_portfolio_has_zero_sharpe(self):
        stats = portfolio_stats([1.0, 0.0], [0.05, 0.10], np.zeros((2, 2)))

        assert stats['std'] == 0.0
        assert stats['sharpe'] == 0.0

    def test_negative_variance_is_floored(self):
        """Rounding-level negative variance is reported as zero risk."""
        cov = np.array([[1.0, -1.0000001],
                        [-1.0000001, 1.0]])

        stats = portfolio_stats([0.5, 0.5], [0.1, 0.1], cov)

        assert stats['variance'] == 0.0
        assert stats['std'] == 0.0
        assert stats['sharpe'] == 0.0

    def test_shape_mismatch_raises(self, two_asset_moments):
        mean_vector, cov_matrix = two_asset_moments

        with pytest.raises(ValueError, match="mean vector"):
            portfolio_stats([1.0, 0.0, 0.0], mean_vector, cov_matrix)
        with pytest.raises(ValueError, match="Covariance"):
            portfolio_stats([0.5, 0.5], mean_vector, np.eye(3))


class TestPortfolioSharpe:
    """Test suite for portfolio_sharpe."""

    def test_matches_independent_computation(self, random_returns):
        """
        For weights summing to 1, the Sharpe ratio equals the formula
        applied to an independently computed return and variance.
        """
        data = random_returns.to_numpy()
        mean_vector = data.mean(axis=0) * 252
        cov_matrix = np.cov(data, rowvar=False) * 252
        rng = np.random.default_rng(5)

        for _ in range(20):
            w = rng.normal(size=5)
            w = w / w.sum()
            for rf in (0.0, 0.02, 0.04):
                ret = sum(w[i] * mean_vector[i] for i in range(5))
                var = sum(w[i] * w[j] * cov_matrix[i, j] for i in range(5) for j in range(5))
                expected = (ret - rf) / np.sqrt(var)

                assert portfolio_sharpe(w, mean_vector, cov_matrix, rf) == pytest.approx(
                    expected, abs=1e-9
                )

    def test_default_risk_free_rate(self, two_asset_moments):
        mean_vector, cov_matrix = two_asset_moments

        assert portfolio_sharpe([0.0, 1.0], mean_vector, cov_matrix) == pytest.approx(0.08 / 0.3)


class TestPortfolioVariance:
    """Test suite for portfolio_variance."""

    def test_quadratic_form(self, two_asset_moments):
        _, cov_matrix = two_asset_moments

        assert portfolio_variance([0.25, 0.75], cov_matrix) == pytest.approx(
            0.0625 * 0.04 + 0.5625 * 0.09 + 2 * 0.1875 * 0.01
        )

    def test_nan_is_not_floored_to_zero(self):
        cov_matrix = np.array([[np.nan, 0.0], [0.0, 0.09]])

        assert np.isnan(portfolio_variance([0.5, 0.5], cov_matrix))

    def test_nan_covariance_gives_nan_stats(self):
        cov_matrix = np.array([[np.nan, 0.0], [0.0, 0.09]])

        stats = portfolio_stats([0.5, 0.5], [0.08, 0.12], cov_matrix)

        assert np.isnan(stats['std'])
        assert np.isnan(stats['sharpe'])


class TestNormalizeWeights:
    """Test suite for normalize_weights."""

    def test_rescales_to_one(self):
        np.testing.assert_allclose(normalize_weights([1.0, 1.0, 2.0]), [0.25, 0.25, 0.5])

    def test_zero_sum_left_as_is(self):
        np.testing.assert_array_equal(normalize_weights([1.0, -1.0]), [1.0, -1.0])
