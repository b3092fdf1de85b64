"""
Portfolio Optimizer - Mean-Variance Engine
==========================================

This module implements the Markowitz mean-variance machinery used by the
dashboard:
- Efficient Frontier (minimum variance for each target return)
- Global Minimum Variance Portfolio
- Tangency Portfolio (Maximum Sharpe Ratio)
- Capital Market Line (CML)

Everything is solved in closed form with the Gaussian elimination routines
in `portfolio_engine.core.linalg`; there is no iterative optimizer.

Theory Background:
------------------
For a target return mu*, the frontier portfolio solves

    minimize    w^T Sigma w
    subject to  w^T mu = mu*,  w^T 1 = 1

with no sign constraint on w. Setting the gradient of the Lagrangian to
zero gives the (n + 2) x (n + 2) KKT system

    | 2 Sigma  -mu  -1 | | w  |   | 0   |
    | mu^T      0    0 | | l1 | = | mu* |
    | 1^T       0    0 | | l2 |   | 1   |

whose first n unknowns are the frontier weights.

The tangency portfolio against a risk-free rate rf has the closed form

    w ∝ Sigma^-1 (mu - rf 1),   normalized so that sum(w) = 1

Negative weights are allowed by the math. Whether the caller accepts them
is a separate policy (see `WeightPolicy`).

Degenerate data never raises: a singular system yields None and the
frontier sweep skips that target.
"""

import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from portfolio_engine.config import (
    DEFAULT_FRONTIER_POINTS,
    DEFAULT_RISK_FREE_RATE,
    FRONTIER_SOLVE_TOLERANCE,
    INVERSION_TOLERANCE,
    NEGATIVE_WEIGHT_TOLERANCE,
    NORMALIZATION_TOLERANCE,
    TRADING_DAYS_PER_YEAR,
)
from portfolio_engine.core.evaluator import portfolio_stats
from portfolio_engine.core.linalg import invert, solve_linear_system
from portfolio_engine.core.moments import estimate_moments

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortfolioPoint:
    """One portfolio on (or near) the frontier, in annualized units."""

    expected_return: float
    risk: float
    weights: Optional[Tuple[float, ...]] = None


class WeightPolicy(Enum):
    """
    What to do with negative weights in an otherwise valid solution.

    REJECT: any weight below the tolerance (-0.01) makes the allocation
        infeasible; smaller negatives are clipped to 0 and the rest
        renormalized.
    CLIP_RENORMALIZE: always clip negatives to 0 and renormalize
        (long-only display).
    """

    REJECT = "reject"
    CLIP_RENORMALIZE = "clip"


def apply_weight_policy(
    weights: Optional[Sequence[float]],
    policy: Optional[WeightPolicy],
    tolerance: float = NEGATIVE_WEIGHT_TOLERANCE
) -> Optional[np.ndarray]:
    """
    Post-process raw optimizer weights according to a sign policy.

    Args:
        weights: Raw weights summing to 1, or None
        policy: WeightPolicy, or None to return the raw weights untouched
        tolerance: Reject threshold for WeightPolicy.REJECT (default -0.01)

    Returns:
        Post-processed weights summing to 1, or None if the weights were None,
        were rejected, or have no positive part left after clipping
    """
    if weights is None:
        return None

    w = np.asarray(weights, dtype=float).flatten()
    if policy is None:
        return w

    if policy is WeightPolicy.REJECT and np.any(w < tolerance):
        logger.debug(f"Allocation rejected: min weight {w.min():.4f} < {tolerance}")
        return None

    clipped = np.clip(w, 0.0, None)
    if not clipped.sum() >= NORMALIZATION_TOLERANCE:
        return None
    return clipped / clipped.sum()


def _as_moments(
    mean_vector: Sequence[float],
    cov_matrix: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    mu = np.asarray(mean_vector, dtype=float).flatten()
    cov = np.asarray(cov_matrix, dtype=float)
    if cov.shape != (mu.shape[0], mu.shape[0]):
        raise ValueError(
            f"Covariance matrix shape {cov.shape} doesn't match "
            f"number of assets {mu.shape[0]}"
        )
    return mu, cov


def target_return_weights(
    mean_vector: Sequence[float],
    cov_matrix: np.ndarray,
    target_return: float
) -> Optional[np.ndarray]:
    """
    Minimum-variance weights for a target expected return (one frontier point).

    Builds and solves the KKT system described in the module docstring.

    Args:
        mean_vector: Annualized expected returns (n)
        cov_matrix: Annualized covariance matrix (n x n)
        target_return: Target expected return mu*

    Returns:
        Weights (n) with w^T mu = mu* and sum(w) = 1, or None if singular
    """
    mu, cov = _as_moments(mean_vector, cov_matrix)
    n = mu.shape[0]

    A = np.zeros((n + 2, n + 2))
    A[:n, :n] = 2 * cov
    A[:n, n] = -mu
    A[:n, n + 1] = -1.0
    A[n, :n] = mu
    A[n + 1, :n] = 1.0

    b = np.zeros(n + 2)
    b[n] = target_return
    b[n + 1] = 1.0

    x = solve_linear_system(A, b, tol=FRONTIER_SOLVE_TOLERANCE)
    if x is None:
        return None
    return x[:n]


def min_variance_weights(
    cov_matrix: np.ndarray,
    policy: Optional[WeightPolicy] = None
) -> Optional[np.ndarray]:
    """
    Global Minimum Variance Portfolio weights.

    This is the frontier solve with the return constraint dropped:

        | 2 Sigma  -1 | | w |   | 0 |
        | 1^T       0 | | l | = | 1 |

    Args:
        cov_matrix: Annualized covariance matrix (n x n)
        policy: Optional sign policy applied to the result

    Returns:
        Weights summing to 1, or None if singular, empty or rejected
    """
    cov = np.asarray(cov_matrix, dtype=float)
    if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
        raise ValueError(f"Covariance matrix must be square, got shape {cov.shape}")

    n = cov.shape[0]
    if n == 0:
        return None

    A = np.zeros((n + 1, n + 1))
    A[:n, :n] = 2 * cov
    A[:n, n] = -1.0
    A[n, :n] = 1.0

    b = np.zeros(n + 1)
    b[n] = 1.0

    x = solve_linear_system(A, b, tol=FRONTIER_SOLVE_TOLERANCE)
    if x is None:
        return None
    return apply_weight_policy(x[:n], policy)


def max_sharpe_weights(
    mean_vector: Sequence[float],
    cov_matrix: np.ndarray,
    risk_free: float = DEFAULT_RISK_FREE_RATE,
    policy: Optional[WeightPolicy] = None
) -> Optional[np.ndarray]:
    """
    Tangency (maximum Sharpe ratio) portfolio weights.

    w = Sigma^-1 (mu - rf) / sum(Sigma^-1 (mu - rf))

    Args:
        mean_vector: Annualized expected returns (n)
        cov_matrix: Annualized covariance matrix (n x n)
        risk_free: Annual risk-free rate (default 0.04)
        policy: None for the raw weights (may be negative), or a WeightPolicy

    Returns:
        Weights summing to 1, or None if the covariance is singular, the
        unnormalized weights sum to ~0, or the policy rejects the result
    """
    mu, cov = _as_moments(mean_vector, cov_matrix)
    if mu.shape[0] == 0:
        return None

    cov_inv = invert(cov, tol=INVERSION_TOLERANCE)
    if cov_inv is None:
        return None

    raw = np.dot(cov_inv, mu - risk_free)
    total = raw.sum()
    if not abs(total) >= NORMALIZATION_TOLERANCE:
        logger.debug(f"Tangency weights sum to {total}; no normalizable solution")
        return None

    return apply_weight_policy(raw / total, policy)


def max_sharpe_weights_long_only(
    mean_vector: Sequence[float],
    cov_matrix: np.ndarray,
    risk_free: float = DEFAULT_RISK_FREE_RATE
) -> Optional[np.ndarray]:
    """Tangency weights with negatives clipped to 0 and renormalized."""
    return max_sharpe_weights(
        mean_vector, cov_matrix, risk_free, policy=WeightPolicy.CLIP_RENORMALIZE
    )


def efficient_frontier(
    mean_vector: Sequence[float],
    cov_matrix: np.ndarray,
    n_points: int = DEFAULT_FRONTIER_POINTS,
    risk_free: float = DEFAULT_RISK_FREE_RATE
) -> List[PortfolioPoint]:
    """
    Trace the efficient frontier from annualized moments.

    Sweeps n_points + 1 equally spaced target returns from the lowest to the
    highest single-asset mean (inclusive) and solves the KKT system for each.
    Singular targets are skipped. Points are returned sorted by risk, since
    with ill-conditioned inputs the sweep order need not be risk order.

    Args:
        mean_vector: Annualized expected returns (n)
        cov_matrix: Annualized covariance matrix (n x n)
        n_points: Number of steps in the sweep (default 50)
        risk_free: Risk-free rate used for the point statistics

    Returns:
        List of PortfolioPoint ascending by risk; empty for n = 0, a single
        degenerate point for n = 1

    Raises:
        ValueError: If n_points is negative or the shapes don't agree
    """
    if n_points < 0:
        raise ValueError(f"Number of frontier points must be non-negative, got {n_points}")

    mu, cov = _as_moments(mean_vector, cov_matrix)
    n = mu.shape[0]

    if n == 0:
        return []
    if n == 1:
        return [PortfolioPoint(float(mu[0]), float(np.sqrt(max(cov[0, 0], 0.0))), (1.0,))]

    targets = np.linspace(mu.min(), mu.max(), n_points + 1)

    frontier = []
    for target in targets:
        weights = target_return_weights(mu, cov, target)
        if weights is None:
            logger.debug(f"Skipping frontier target {target:.6f}: singular KKT system")
            continue
        stats = portfolio_stats(weights, mu, cov, risk_free)
        frontier.append(PortfolioPoint(stats['mean'], stats['std'], tuple(weights.tolist())))

    return sorted(frontier, key=lambda point: point.risk)


def compute_efficient_frontier(
    asset_returns: Sequence[Sequence[float]],
    n_points: int = DEFAULT_FRONTIER_POINTS,
    periods_per_year: int = TRADING_DAYS_PER_YEAR
) -> List[PortfolioPoint]:
    """
    Efficient frontier straight from per-asset return series.

    Series may have different lengths; each is truncated to the most recent
    observations of the shortest one before the moments are estimated.

    Args:
        asset_returns: One sequence of period returns per asset (oldest first)
        n_points: Number of steps in the target-return sweep (default 50)
        periods_per_year: Annualization factor (default 252)

    Returns:
        Annualized frontier points ascending by risk. Empty when there are no
        assets or fewer than 2 common observations.
    """
    series = [np.asarray(r, dtype=float).flatten() for r in asset_returns]
    if not series:
        return []

    min_len = min(r.shape[0] for r in series)
    if min_len < 2:
        return []

    matrix = np.column_stack([r[-min_len:] for r in series])
    mean_vector, cov_matrix = estimate_moments(matrix, periods_per_year)
    return efficient_frontier(mean_vector, cov_matrix, n_points)


class PortfolioOptimizer:
    """
    Mean-variance optimizer over one fixed set of annualized moments.

    This class wraps the module functions for callers that work with a
    single asset universe:
    - Calculate portfolio statistics (mean, variance, standard deviation)
    - Find the minimum variance portfolio
    - Find the tangent (maximum Sharpe ratio) portfolio
    - Compute the efficient frontier
    - Generate the Capital Market Line

    Weights-returning methods follow the (weights, stats) convention and
    return (None, None) when no feasible portfolio exists.

    Attributes:
        expected_returns (np.ndarray): Annualized expected returns
        cov_matrix (np.ndarray): Annualized covariance matrix
        asset_names (List[str]): Names of the assets
        n_assets (int): Number of assets in the portfolio
        rf_rate (float): Annual risk-free rate (default: 0.04)

    Example:
        >>> optimizer = PortfolioOptimizer([0.08, 0.12], [[0.04, 0.01], [0.01, 0.09]])
        >>> weights, stats = optimizer.tangent_portfolio()
    """

    def __init__(
        self,
        expected_returns: Sequence[float],
        cov_matrix: np.ndarray,
        asset_names: Optional[List[str]] = None,
        rf_rate: float = DEFAULT_RISK_FREE_RATE
    ):
        """
        Initialize the Portfolio Optimizer.

        Args:
            expected_returns: Annualized expected returns for each asset
            cov_matrix: Annualized covariance matrix (n x n)
            asset_names: Optional list of asset names (default: Asset_1, Asset_2, ...)
            rf_rate: Annual risk-free rate (default: 0.04)

        Raises:
            ValueError: If dimensions don't match
        """
        self.expected_returns = np.array(expected_returns, dtype=float).flatten()
        self.cov_matrix = np.array(cov_matrix, dtype=float)
        self.n_assets = len(self.expected_returns)
        self.rf_rate = rf_rate

        self._validate_inputs()

        if asset_names is None:
            self.asset_names = [f"Asset_{i+1}" for i in range(self.n_assets)]
        else:
            self.asset_names = list(asset_names)

    @classmethod
    def from_returns(
        cls,
        returns,
        rf_rate: float = DEFAULT_RISK_FREE_RATE,
        periods_per_year: int = TRADING_DAYS_PER_YEAR
    ) -> "PortfolioOptimizer":
        """
        Build an optimizer from aligned period returns.

        Args:
            returns: DataFrame from `align_returns` (or a T x n array)
            rf_rate: Annual risk-free rate
            periods_per_year: Annualization factor
        """
        names = [str(c) for c in returns.columns] if hasattr(returns, 'columns') else None
        mean_vector, cov_matrix = estimate_moments(returns, periods_per_year)
        return cls(mean_vector, cov_matrix, names, rf_rate)

    def _validate_inputs(self):
        """Validate that inputs are properly formatted."""
        if self.cov_matrix.shape != (self.n_assets, self.n_assets):
            raise ValueError(
                f"Covariance matrix shape {self.cov_matrix.shape} doesn't match "
                f"number of assets {self.n_assets}"
            )

        if self.n_assets == 0:
            return

        if not (np.all(np.isfinite(self.expected_returns)) and np.all(np.isfinite(self.cov_matrix))):
            warnings.warn("Expected returns or covariance contain NaN or inf. "
                          "No portfolio can be computed.")
            return

        if not np.allclose(self.cov_matrix, self.cov_matrix.T):
            warnings.warn("Covariance matrix is not symmetric. Symmetrizing...")
            self.cov_matrix = (self.cov_matrix + self.cov_matrix.T) / 2

        eigenvalues = np.linalg.eigvalsh(self.cov_matrix)
        if np.any(eigenvalues < -1e-10):
            warnings.warn("Covariance matrix has negative eigenvalues. "
                          "Results may be unreliable.")

    def portfolio_stats(self, weights: Sequence[float]) -> Dict[str, float]:
        """Mean, std, variance and Sharpe ratio of the given weights."""
        return portfolio_stats(weights, self.expected_returns, self.cov_matrix, self.rf_rate)

    def portfolio_sharpe(self, weights: Sequence[float]) -> float:
        return self.portfolio_stats(weights)['sharpe']

    def _with_stats(
        self,
        weights: Optional[np.ndarray]
    ) -> Tuple[Optional[np.ndarray], Optional[Dict[str, float]]]:
        if weights is None:
            return None, None
        return weights, self.portfolio_stats(weights)

    def minimum_variance_portfolio(
        self,
        policy: Optional[WeightPolicy] = None
    ) -> Tuple[Optional[np.ndarray], Optional[Dict[str, float]]]:
        """
        Find the Global Minimum Variance Portfolio.

        Args:
            policy: Optional sign policy for the weights

        Returns:
            Tuple of (weights, stats_dict), or (None, None)
        """
        return self._with_stats(min_variance_weights(self.cov_matrix, policy))

    def tangent_portfolio(
        self,
        policy: Optional[WeightPolicy] = None
    ) -> Tuple[Optional[np.ndarray], Optional[Dict[str, float]]]:
        """
        Find the Tangent Portfolio (Maximum Sharpe Ratio Portfolio).

        Args:
            policy: None for raw weights, WeightPolicy.REJECT to refuse
                allocations with material shorts, WeightPolicy.CLIP_RENORMALIZE
                for a long-only display

        Returns:
            Tuple of (weights, stats_dict), or (None, None)
        """
        weights = max_sharpe_weights(
            self.expected_returns, self.cov_matrix, self.rf_rate, policy
        )
        return self._with_stats(weights)

    def optimize_for_target_return(
        self,
        target_return: float
    ) -> Tuple[Optional[np.ndarray], Optional[Dict[str, float]]]:
        """
        Find the minimum variance portfolio for a target return.

        This traces one point on the efficient frontier.

        Args:
            target_return: Target expected return (annualized)

        Returns:
            Tuple of (weights, stats_dict), or (None, None) if singular
        """
        weights = target_return_weights(self.expected_returns, self.cov_matrix, target_return)
        return self._with_stats(weights)

    def efficient_frontier(self, n_points: int = DEFAULT_FRONTIER_POINTS) -> List[PortfolioPoint]:
        """Frontier points over the span of single-asset means, ascending by risk."""
        return efficient_frontier(
            self.expected_returns, self.cov_matrix, n_points, self.rf_rate
        )

    def capital_market_line(
        self,
        n_points: int = 100,
        max_leverage: float = 2.0,
        policy: Optional[WeightPolicy] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute the Capital Market Line (CML).

        The CML combines the risk-free asset with the tangent portfolio:
        - mean = weight_t * mu_t + (1 - weight_t) * rf
        - std = weight_t * sigma_t (rf has zero risk)

        Args:
            n_points: Number of points on the CML
            max_leverage: Maximum weight on the tangent portfolio
            policy: Sign policy used for the tangent portfolio

        Returns:
            Tuple of (returns, stds); both empty if there is no tangent portfolio
        """
        tan_w, tan_stats = self.tangent_portfolio(policy)
        if tan_w is None:
            return np.array([]), np.array([])

        weights_tangent = np.linspace(0, max_leverage, n_points)
        cml_returns = weights_tangent * tan_stats['mean'] + (1 - weights_tangent) * self.rf_rate
        cml_stds = weights_tangent * tan_stats['std']

        return cml_returns, cml_stds

    def get_asset_stats(self) -> Dict[str, Dict[str, float]]:
        """
        Get individual asset statistics.

        Returns:
            Dictionary mapping asset names to their stats
        """
        stats = {}
        for i, name in enumerate(self.asset_names):
            variance = max(self.cov_matrix[i, i], 0.0)
            stats[name] = {
                'mean': float(self.expected_returns[i]),
                'std': float(np.sqrt(variance)),
                'variance': float(variance)
            }
        return stats

    def summary_report(self, policy: Optional[WeightPolicy] = WeightPolicy.CLIP_RENORMALIZE) -> str:
        """
        Generate a plain-text summary of the asset universe and optimal portfolios.

        Args:
            policy: Sign policy for the MVP and tangent portfolios

        Returns:
            Formatted string report
        """
        lines = []
        lines.append("=" * 70)
        lines.append("PORTFOLIO OPTIMIZATION SUMMARY REPORT")
        lines.append("=" * 70)

        lines.append("\n--- Individual Asset Statistics (annualized) ---")
        lines.append(f"{'Asset':<12} {'Mean':>12} {'Std Dev':>12} {'Variance':>12}")
        lines.append("-" * 50)
        for name, asset in self.get_asset_stats().items():
            lines.append(
                f"{name:<12} {asset['mean']:>12.6f} {asset['std']:>12.6f} {asset['variance']:>12.6f}"
            )

        lines.append(f"\nRisk-free rate: {self.rf_rate:.4f} ({self.rf_rate*100:.2f}%)")

        sections = [
            ("Minimum Variance Portfolio (MVP)", self.minimum_variance_portfolio(policy)),
            ("Tangent Portfolio (Maximum Sharpe Ratio)", self.tangent_portfolio(policy)),
        ]
        for title, (weights, stats) in sections:
            lines.append(f"\n--- {title} ---")
            if weights is None:
                lines.append("No feasible portfolio (singular or degenerate inputs)")
                continue
            lines.append("Weights:")
            for i, name in enumerate(self.asset_names):
                lines.append(f"  {name}: {weights[i]:.6f} ({weights[i]*100:.2f}%)")
            lines.append(f"Expected Return: {stats['mean']:.6f} ({stats['mean']*100:.2f}%)")
            lines.append(f"Standard Deviation: {stats['std']:.6f} ({stats['std']*100:.2f}%)")
            lines.append(f"Sharpe Ratio: {stats['sharpe']:.6f}")

        lines.append("\n" + "=" * 70)

        return "\n".join(lines)
