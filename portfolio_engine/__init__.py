"""
Portfolio Engine - Mean-Variance Optimization for a Portfolio Dashboard
=======================================================================

Efficient frontier, maximum Sharpe and minimum variance portfolios computed
from historical close prices.

Usage:
    from portfolio_engine import align_returns, estimate_moments, max_sharpe_weights
    from portfolio_engine.visualization import plot_efficient_frontier

Classes:
    PortfolioOptimizer - Optimizer over one set of annualized moments
    DataLoader - Price histories from CSV/Excel
    WeightPolicy - Negative weight handling (reject / clip and renormalize)

Functions:
    align_returns - Trailing-window return matrix from close prices
    estimate_moments - Annualized mean vector and covariance matrix
    compute_efficient_frontier - Frontier from per-asset return series
    max_sharpe_weights - Tangency portfolio
    min_variance_weights - Global minimum variance portfolio
    portfolio_sharpe - Sharpe ratio of any weight vector
"""

from portfolio_engine.core.evaluator import portfolio_sharpe, portfolio_stats
from portfolio_engine.core.linalg import invert, solve_linear_system
from portfolio_engine.core.loader import DataLoader, generate_sample_prices
from portfolio_engine.core.moments import estimate_moments
from portfolio_engine.core.optimizer import (
    PortfolioOptimizer,
    PortfolioPoint,
    WeightPolicy,
    compute_efficient_frontier,
    efficient_frontier,
    max_sharpe_weights,
    max_sharpe_weights_long_only,
    min_variance_weights,
)
from portfolio_engine.core.preprocess import align_returns, select_universe

__version__ = "1.0.0"

__all__ = [
    "PortfolioOptimizer",
    "PortfolioPoint",
    "WeightPolicy",
    "DataLoader",
    "align_returns",
    "select_universe",
    "estimate_moments",
    "solve_linear_system",
    "invert",
    "compute_efficient_frontier",
    "efficient_frontier",
    "max_sharpe_weights",
    "max_sharpe_weights_long_only",
    "min_variance_weights",
    "portfolio_sharpe",
    "portfolio_stats",
    "generate_sample_prices",
]
