"""
Smoke tests for the plotting functions (Agg backend, no display).
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
import pytest

from portfolio_engine.core.optimizer import PortfolioOptimizer
from portfolio_engine.visualization import (
    plot_efficient_frontier,
    plot_portfolio_evolution,
    plot_portfolio_weights,
)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


@pytest.fixture
def optimizer(two_asset_moments):
    mean, cov = two_asset_moments
    return PortfolioOptimizer(mean, cov, ['LOW', 'HIGH'], rf_rate=0.02)


class TestPlotEfficientFrontier:
    """Test suite for plot_efficient_frontier."""

    def test_full_chart_is_saved(self, optimizer, tmp_path):
        _, tan_stats = optimizer.tangent_portfolio()
        path = tmp_path / "frontier.png"

        fig = plot_efficient_frontier(
            optimizer.efficient_frontier(20),
            asset_points=[
                {'symbol': name, 'mean': s['mean'], 'std': s['std']}
                for name, s in optimizer.get_asset_stats().items()
            ],
            optimal_point=tan_stats,
            portfolio_point=optimizer.portfolio_stats(np.array([0.5, 0.5])),
            cml=optimizer.capital_market_line(10),
            save_path=str(path)
        )

        assert isinstance(fig, Figure)
        assert path.exists()

    def test_empty_frontier(self):
        fig = plot_efficient_frontier([])

        assert isinstance(fig, Figure)


class TestPlotPortfolioWeights:
    """Test suite for plot_portfolio_weights."""

    def test_negative_weights_are_drawn(self, tmp_path):
        path = tmp_path / "weights.png"

        fig = plot_portfolio_weights(np.array([1.2, -0.2]), ['AAA', 'BBB'], save_path=str(path))

        assert isinstance(fig, Figure)
        assert len(fig.axes[0].patches) == 2
        assert path.exists()


class TestPlotPortfolioEvolution:
    """Test suite for plot_portfolio_evolution."""

    def test_series_is_plotted(self, tmp_path):
        dates = pd.bdate_range('2024-01-01', periods=5)
        evolution = pd.Series([1.0, 1.01, 0.99, 1.02, 1.05], index=dates, name='value')
        path = tmp_path / "evolution.png"

        fig = plot_portfolio_evolution(evolution, save_path=str(path))

        assert isinstance(fig, Figure)
        assert path.exists()

    def test_empty_series(self):
        fig = plot_portfolio_evolution(pd.Series(dtype=float, name='value'))

        assert isinstance(fig, Figure)
