"""
Moment Estimation
=================

Sample mean vector and sample covariance matrix from aligned returns,
annualized with the trading-period factor.

    mean_ann = mean_daily * 252
    cov_ann  = cov_daily  * 252        (unbiased, divide by T - 1)
    std_ann  = std_daily  * sqrt(252)

Cost is O(n^2 T); cap the universe with `select_universe` first when the
candidate list is large.
"""

from typing import Dict, List, Tuple, Union

import numpy as np
import pandas as pd

from portfolio_engine.config import TRADING_DAYS_PER_YEAR

ReturnsInput = Union[pd.DataFrame, np.ndarray]


def _as_matrix(returns: ReturnsInput) -> np.ndarray:
    """Return a (T x n) float matrix, rows = periods, columns = assets."""
    if isinstance(returns, pd.DataFrame):
        matrix = returns.to_numpy(dtype=float)
    else:
        matrix = np.asarray(returns, dtype=float)
    if matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1)
    return matrix


def sample_covariance(returns: ReturnsInput) -> np.ndarray:
    """
    Unbiased sample covariance of per-period returns.

    Cov = (R - mean)^T (R - mean) / (T - 1)

    Args:
        returns: T x n returns (rows = periods, columns = assets)

    Returns:
        n x n symmetric covariance matrix; all zeros when T <= 1
    """
    matrix = _as_matrix(returns)
    n_periods, n_assets = matrix.shape

    if n_periods <= 1:
        return np.zeros((n_assets, n_assets))

    demeaned = matrix - matrix.mean(axis=0)
    cov = np.dot(demeaned.T, demeaned) / (n_periods - 1)

    # Exact symmetry regardless of summation order
    return (cov + cov.T) / 2


def estimate_moments(
    returns: ReturnsInput,
    periods_per_year: int = TRADING_DAYS_PER_YEAR
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Estimate annualized expected returns and covariance.

    Args:
        returns: Aligned T x n returns, e.g. the output of `align_returns`
        periods_per_year: Annualization factor (default 252)

    Returns:
        Tuple of (mean_vector, cov_matrix), both annualized. The mean vector
        has one entry per column, in column order.

    Example:
        >>> rets = align_returns({'AAA': closes_a, 'BBB': closes_b})
        >>> mean, cov = estimate_moments(rets)
    """
    matrix = _as_matrix(returns)
    n_periods, n_assets = matrix.shape

    if n_periods == 0:
        return np.zeros(n_assets), np.zeros((n_assets, n_assets))

    mean_vector = matrix.mean(axis=0) * periods_per_year
    cov_matrix = sample_covariance(matrix) * periods_per_year

    return mean_vector, cov_matrix


def asset_risk_return(
    returns: ReturnsInput,
    periods_per_year: int = TRADING_DAYS_PER_YEAR
) -> List[Dict[str, Union[str, float]]]:
    """
    Annualized (return, risk) of every asset on its own.

    These are the individual-asset points drawn next to the frontier.

    Args:
        returns: Aligned T x n returns
        periods_per_year: Annualization factor (default 252)

    Returns:
        One dict per asset with 'symbol', 'mean' and 'std'
    """
    if isinstance(returns, pd.DataFrame):
        names = [str(c) for c in returns.columns]
    else:
        names = [f"Asset_{i+1}" for i in range(_as_matrix(returns).shape[1])]

    mean_vector, cov_matrix = estimate_moments(returns, periods_per_year)
    stds = np.sqrt(np.maximum(np.diag(cov_matrix), 0.0))

    return [
        {'symbol': name, 'mean': float(mean_vector[i]), 'std': float(stds[i])}
        for i, name in enumerate(names)
    ]
