"""
Reporting Metrics
=================

Per-asset and per-portfolio figures shown around the optimizer output:
- Asset metrics (calendar-year returns, volatility, max drawdown, Sharpe)
- Portfolio evolution (growth of 1 unit on calendar-aligned closes)
- Frontier proximity (user Sharpe as a percentage of the optimal Sharpe)
- Cash allocation of a weight vector
"""

from typing import Dict, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from portfolio_engine.config import DEFAULT_RISK_FREE_RATE, TRADING_DAYS_PER_YEAR
from portfolio_engine.core.preprocess import align_prices_by_date


def compute_asset_metrics(
    closes: pd.Series,
    risk_free: float = DEFAULT_RISK_FREE_RATE,
    periods_per_year: int = TRADING_DAYS_PER_YEAR
) -> Dict[str, Union[float, Dict[str, float]]]:
    """
    Summary metrics for one asset.

    Volatility uses the population variance of daily returns, annualized.
    Yearly returns compound the daily returns that fall in each calendar
    year (keyed by the year of the later close).

    Args:
        closes: Close prices indexed by date, oldest first
        risk_free: Annual risk-free rate for the Sharpe ratio
        periods_per_year: Annualization factor

    Returns:
        Dictionary with yearly_returns, volatility, max_drawdown and
        sharpe_ratio. All zero (and no yearly returns) for fewer than 2 closes.
    """
    if closes is None or len(closes) < 2:
        return {
            'yearly_returns': {},
            'volatility': 0.0,
            'max_drawdown': 0.0,
            'sharpe_ratio': 0.0
        }

    closes = closes.astype(float)
    closes.index = pd.to_datetime(closes.index)
    returns = closes.pct_change().iloc[1:]

    yearly = (1 + returns).groupby(returns.index.year).prod() - 1
    yearly_returns = {str(year): float(value) for year, value in yearly.items()}

    volatility = float(np.sqrt(returns.var(ddof=0) * periods_per_year))

    running_peak = closes.cummax()
    max_drawdown = float(((running_peak - closes) / running_peak).max())

    excess_return = returns.mean() * periods_per_year - risk_free
    sharpe_ratio = float(excess_return / volatility) if volatility > 0 else 0.0

    return {
        'yearly_returns': yearly_returns,
        'volatility': volatility,
        'max_drawdown': max_drawdown,
        'sharpe_ratio': sharpe_ratio
    }


def portfolio_evolution(
    prices: Mapping[str, pd.Series],
    weights: Union[Mapping[str, float], Sequence[float]],
    start: Optional[Union[str, pd.Timestamp]] = None
) -> pd.Series:
    """
    Value over time of a fixed-weight portfolio worth 1 on the first common date.

    value(t) = sum_i w_i * p_i(t) / p_i(t0)

    Closes are aligned by calendar date (only dates present for every asset
    are used), unlike the trailing-window alignment of the optimizer.

    Args:
        prices: Mapping of symbol -> close Series indexed by date
        weights: Weights by symbol, or a sequence in the order of `prices`
        start: Optional cut-off date (e.g. one or three years back)

    Returns:
        Series of portfolio values indexed by date; empty when fewer than two
        assets have data or fewer than two common dates remain
    """
    if not isinstance(weights, Mapping):
        weights = dict(zip(prices.keys(), np.asarray(weights, dtype=float).flatten()))

    aligned = align_prices_by_date(
        {symbol: series for symbol, series in prices.items() if symbol in weights},
        start=start
    )
    if aligned.shape[1] < 2 or aligned.shape[0] < 2:
        return pd.Series(dtype=float, name='value')

    w = pd.Series({symbol: float(weights[symbol]) for symbol in aligned.columns})
    growth = aligned / aligned.iloc[0]
    return growth.mul(w, axis=1).sum(axis=1).rename('value')


def frontier_proximity(user_sharpe: float, optimal_sharpe: Optional[float]) -> Optional[int]:
    """
    User Sharpe ratio as a percentage of the optimal one, capped at 100.

    Returns None when there is no optimal portfolio or its Sharpe is not positive.
    """
    if optimal_sharpe is None or optimal_sharpe <= 0:
        return None
    return min(100, int(round(user_sharpe / optimal_sharpe * 100)))


def allocate_amount(
    weights: Sequence[float],
    symbols: Sequence[str],
    total_amount: float
) -> pd.DataFrame:
    """
    Split a cash amount across assets.

    Args:
        weights: Portfolio weights
        symbols: Asset symbols in weight order
        total_amount: Amount to invest

    Returns:
        DataFrame with columns symbol, weight and amount
    """
    weights = np.asarray(weights, dtype=float).flatten()
    if len(symbols) != weights.shape[0]:
        raise ValueError(
            f"Got {weights.shape[0]} weights for {len(symbols)} symbols"
        )
    return pd.DataFrame({
        'symbol': list(symbols),
        'weight': weights,
        'amount': weights * total_amount
    })
