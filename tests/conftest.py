"""
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest and provides:
- Custom markers for test categorization
- Shared fixtures available to all tests
"""

import sys
from pathlib import Path

import matplotlib

matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from portfolio_engine.core.loader import generate_sample_prices


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests for individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests across multiple components"
    )


# ============================================================================
# Shared Fixtures
# ============================================================================

@pytest.fixture
def sample_prices():
    """Four correlated assets, 300 business days of closes."""
    return generate_sample_prices(n_assets=4, n_days=300, seed=7)


@pytest.fixture
def two_asset_moments():
    """Annualized means and covariance of the two-asset reference case."""
    mean_vector = np.array([0.08, 0.12])
    cov_matrix = np.array([[0.04, 0.01],
                           [0.01, 0.09]])
    return mean_vector, cov_matrix


@pytest.fixture
def random_returns():
    """250 daily returns for 5 assets with a non-degenerate covariance."""
    rng = np.random.default_rng(11)
    mixing = rng.normal(0.0, 0.3, (5, 5)) + np.eye(5)
    shocks = rng.normal(0.0, 0.01, (250, 5))
    drifts = np.array([0.0001, 0.0003, 0.0005, 0.0007, 0.0009])
    return pd.DataFrame(
        drifts + shocks @ mixing.T,
        columns=['AAA', 'BBB', 'CCC', 'DDD', 'EEE']
    )
