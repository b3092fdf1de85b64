"""Visualization modules for portfolio analysis."""

from portfolio_engine.visualization.plots import (
    plot_efficient_frontier,
    plot_portfolio_weights,
    plot_portfolio_evolution
)

__all__ = [
    "plot_efficient_frontier",
    "plot_portfolio_weights",
    "plot_portfolio_evolution",
]
