"""Core computational modules for portfolio optimization."""

from portfolio_engine.core.evaluator import portfolio_sharpe, portfolio_stats
from portfolio_engine.core.linalg import invert, solve_linear_system
from portfolio_engine.core.loader import DataLoader, generate_sample_prices
from portfolio_engine.core.moments import estimate_moments
from portfolio_engine.core.optimizer import (
    PortfolioOptimizer,
    PortfolioPoint,
    WeightPolicy,
    compute_efficient_frontier,
    max_sharpe_weights,
    max_sharpe_weights_long_only,
    min_variance_weights,
)
from portfolio_engine.core.preprocess import align_returns

__all__ = [
    "PortfolioOptimizer",
    "PortfolioPoint",
    "WeightPolicy",
    "DataLoader",
    "align_returns",
    "estimate_moments",
    "solve_linear_system",
    "invert",
    "compute_efficient_frontier",
    "max_sharpe_weights",
    "max_sharpe_weights_long_only",
    "min_variance_weights",
    "portfolio_sharpe",
    "portfolio_stats",
    "generate_sample_prices",
]
