"""
Portfolio Evaluation
====================

Risk, return and Sharpe ratio of an arbitrary weight vector.

    mu_p      = w^T mu
    sigma_p^2 = w^T Sigma w          (floored at 0)
    Sharpe    = (mu_p - rf) / sigma_p (0 when sigma_p is 0)

All functions are pure; the same code evaluates frontier points, the
tangency portfolio and the user's current allocation.
"""

from typing import Dict, Sequence

import numpy as np

from portfolio_engine.config import DEFAULT_RISK_FREE_RATE, NORMALIZATION_TOLERANCE


def _check_shapes(weights: np.ndarray, mean_vector: np.ndarray, cov_matrix: np.ndarray):
    n = weights.shape[0]
    if mean_vector.shape[0] != n:
        raise ValueError(
            f"Weights length {n} doesn't match mean vector length {mean_vector.shape[0]}"
        )
    if cov_matrix.shape != (n, n):
        raise ValueError(
            f"Covariance matrix shape {cov_matrix.shape} doesn't match "
            f"number of weights {n}"
        )


def portfolio_return(weights: Sequence[float], mean_vector: Sequence[float]) -> float:
    """Expected portfolio return w^T mu."""
    return float(np.dot(np.asarray(weights, dtype=float), np.asarray(mean_vector, dtype=float)))


def portfolio_variance(weights: Sequence[float], cov_matrix: np.ndarray) -> float:
    """
    Portfolio variance w^T Sigma w, floored at 0.

    Rounding can push the quadratic form of a near-singular covariance
    slightly below zero; that is reported as 0. NaN propagates.
    """
    w = np.asarray(weights, dtype=float)
    variance = float(np.dot(w, np.dot(np.asarray(cov_matrix, dtype=float), w)))
    if variance < 0.0:
        return 0.0
    return variance


def portfolio_stats(
    weights: Sequence[float],
    mean_vector: Sequence[float],
    cov_matrix: np.ndarray,
    risk_free: float = DEFAULT_RISK_FREE_RATE
) -> Dict[str, float]:
    """
    Calculate all portfolio statistics.

    Args:
        weights: Portfolio weights (n)
        mean_vector: Annualized expected returns (n)
        cov_matrix: Annualized covariance matrix (n x n)
        risk_free: Annual risk-free rate (default 0.04)

    Returns:
        Dictionary containing mean, std, variance, and Sharpe ratio

    Raises:
        ValueError: If the shapes of the inputs don't agree
    """
    w = np.asarray(weights, dtype=float).flatten()
    mu = np.asarray(mean_vector, dtype=float).flatten()
    cov = np.asarray(cov_matrix, dtype=float)
    _check_shapes(w, mu, cov)

    ret = portfolio_return(w, mu)
    var = portfolio_variance(w, cov)
    std = np.sqrt(var)
    if std > 0:
        sharpe = (ret - risk_free) / std
    elif std == 0:
        sharpe = 0.0
    else:
        sharpe = np.nan

    return {
        'mean': ret,
        'std': float(std),
        'variance': var,
        'sharpe': float(sharpe)
    }


def portfolio_sharpe(
    weights: Sequence[float],
    mean_vector: Sequence[float],
    cov_matrix: np.ndarray,
    risk_free: float = DEFAULT_RISK_FREE_RATE
) -> float:
    """
    Sharpe ratio of a portfolio: (mu_p - rf) / sigma_p.

    A zero-risk portfolio has an undefined Sharpe ratio, reported as 0.
    """
    return portfolio_stats(weights, mean_vector, cov_matrix, risk_free)['sharpe']


def normalize_weights(weights: Sequence[float]) -> np.ndarray:
    """
    Rescale weights so they sum to 1.

    Weights whose sum is within 1e-12 of zero cannot be normalized and are
    returned unchanged.
    """
    w = np.asarray(weights, dtype=float).flatten()
    total = w.sum()
    if abs(total) < NORMALIZATION_TOLERANCE:
        return w.copy()
    return w / total
