"""
Plotting Module for Portfolio Optimization
==========================================

Charts for the optimizer output:
- Efficient frontier with individual assets, the tangency portfolio and the
  user's current portfolio on the risk-return plane
- Portfolio weights as a bar chart
- Portfolio evolution over time

Returns and risks are passed in as decimals and drawn as percentages.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from portfolio_engine.core.optimizer import PortfolioPoint

logger = logging.getLogger(__name__)


def _save(fig: Figure, save_path: Optional[str]):
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Figure saved to: {save_path}")


def plot_efficient_frontier(
    frontier: Sequence[PortfolioPoint],
    asset_points: Optional[List[Dict[str, Union[str, float]]]] = None,
    optimal_point: Optional[Dict[str, float]] = None,
    portfolio_point: Optional[Dict[str, float]] = None,
    cml: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    label_assets: bool = True,
    figsize: Tuple[int, int] = (12, 8),
    save_path: Optional[str] = None,
    title: str = "Efficient Frontier"
) -> Figure:
    """
    Create a plot of the efficient frontier.

    Args:
        frontier: Frontier points (ascending by risk)
        asset_points: Per-asset dicts with 'symbol', 'mean' and 'std'
        optimal_point: Stats dict ('mean', 'std', 'sharpe') of the tangency portfolio
        portfolio_point: Stats dict of the user's current portfolio
        cml: Optional (returns, stds) of the Capital Market Line
        label_assets: If True, annotate each asset with its symbol
        figsize: Figure size (width, height)
        save_path: If provided, save the figure to this path
        title: Plot title

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    if frontier:
        risks = np.array([p.risk for p in frontier])
        returns = np.array([p.expected_return for p in frontier])
        ax.plot(risks * 100, returns * 100,
                'b-', linewidth=2, label='Efficient Frontier', zorder=2)

    if cml is not None and len(cml[0]) > 0:
        cml_returns, cml_stds = cml
        ax.plot(np.asarray(cml_stds) * 100, np.asarray(cml_returns) * 100,
                'g--', linewidth=1.5, label='Capital Market Line (CML)', zorder=2)

    if asset_points:
        stds = np.array([a['std'] for a in asset_points])
        means = np.array([a['mean'] for a in asset_points])
        ax.scatter(stds * 100, means * 100,
                   c='grey', s=25, alpha=0.6, label='Individual Assets', zorder=3)

        # Annotations become unreadable on a large universe
        if label_assets and len(asset_points) <= 30:
            for a in asset_points:
                ax.annotate(a['symbol'], (a['std'] * 100, a['mean'] * 100),
                            xytext=(4, 4), textcoords='offset points', fontsize=8)

    if optimal_point is not None:
        ax.scatter([optimal_point['std'] * 100], [optimal_point['mean'] * 100],
                   c='gold', s=200, marker='D', edgecolors='black',
                   label=f"Max Sharpe (Sharpe={optimal_point['sharpe']:.3f})",
                   zorder=6)

    if portfolio_point is not None:
        ax.scatter([portfolio_point['std'] * 100], [portfolio_point['mean'] * 100],
                   c='red', s=200, marker='*', edgecolors='black',
                   label=f"Current Portfolio (Sharpe={portfolio_point['sharpe']:.3f})",
                   zorder=7)

    ax.set_xlabel('Risk (Annualized Std Dev) %', fontsize=12)
    ax.set_ylabel('Expected Return (Annualized) %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', fontsize=10)
    ax.grid(True, alpha=0.3)

    _save(fig, save_path)
    return fig


def plot_portfolio_weights(
    weights: np.ndarray,
    asset_names: List[str],
    title: str = "Portfolio Weights",
    figsize: Tuple[int, int] = (10, 6),
    save_path: Optional[str] = None
) -> Figure:
    """
    Create a bar chart of portfolio weights.

    Args:
        weights: Portfolio weights
        asset_names: Names of assets
        title: Plot title
        figsize: Figure size
        save_path: If provided, save to this path

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    weights = np.asarray(weights, dtype=float)
    colors = ['green' if w >= 0 else 'red' for w in weights]
    bars = ax.bar(asset_names, weights * 100, color=colors, edgecolor='black')

    for bar, weight in zip(bars, weights):
        height = bar.get_height()
        ax.annotate(f'{weight*100:.1f}%',
                    xy=(bar.get_x() + bar.get_width() / 2, height),
                    xytext=(0, 3 if height >= 0 else -12),
                    textcoords='offset points',
                    ha='center', fontsize=9)

    ax.axhline(y=0, color='black', linewidth=0.5)
    ax.set_xlabel('Asset', fontsize=12)
    ax.set_ylabel('Weight %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3, axis='y')
    if len(asset_names) > 10:
        plt.setp(ax.get_xticklabels(), rotation=45, ha='right')

    _save(fig, save_path)
    return fig


def plot_portfolio_evolution(
    evolution: pd.Series,
    title: str = "Portfolio Evolution",
    figsize: Tuple[int, int] = (12, 6),
    save_path: Optional[str] = None
) -> Figure:
    """
    Plot the growth of one unit invested in a fixed-weight portfolio.

    Args:
        evolution: Series of portfolio values indexed by date
        title: Plot title
        figsize: Figure size
        save_path: If provided, save to this path

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    if len(evolution) > 0:
        ax.plot(evolution.index, evolution.values, 'b-', linewidth=1.5, label='Portfolio')
        ax.axhline(y=1.0, color='black', linewidth=0.5, linestyle=':')

    ax.set_xlabel('Date', fontsize=12)
    ax.set_ylabel('Value (start = 1)', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()

    _save(fig, save_path)
    return fig
