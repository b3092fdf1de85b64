"""
Return Series Preprocessing
===========================

Turns raw per-asset close prices into the aligned return matrix the
moment estimator works on.

Two alignment policies exist:

1. Trailing window (used for every optimization). Series are aligned by
   recency only: each one is truncated to its most recent `min_len` closes,
   where `min_len` is the length of the shortest series. Calendar dates are
   ignored.
2. Calendar dates (used for the evolution chart). Only dates present in
   every series are kept. See `align_prices_by_date`.

Price input can be a mapping of symbol -> sequence of closes (a list,
numpy array or pandas Series, oldest first), a wide DataFrame with one
column per asset, or a plain sequence of such sequences, in which case
assets are named Asset_1, Asset_2, ...
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from portfolio_engine.config import MAX_FRONTIER_SYMBOLS, MIN_HISTORY_POINTS

logger = logging.getLogger(__name__)

PriceInput = Union[pd.DataFrame, Mapping[str, Sequence[float]], Sequence[Sequence[float]]]


def _as_named_series(prices: PriceInput) -> Dict[str, np.ndarray]:
    """Normalize price input to an ordered dict of name -> float array."""
    if isinstance(prices, pd.DataFrame):
        # Wide layout: one column per asset, NaN marks a missing date
        items = [(col, prices[col].dropna()) for col in prices.columns]
    elif isinstance(prices, Mapping):
        items = list(prices.items())
    else:
        items = [(f"Asset_{i+1}", series) for i, series in enumerate(prices)]

    named = {}
    for name, series in items:
        values = series.to_numpy() if isinstance(series, pd.Series) else series
        named[str(name)] = np.asarray(values, dtype=float).flatten()
    return named


def simple_returns(closes: Sequence[float]) -> np.ndarray:
    """
    Compute simple period returns r[t] = (p[t] - p[t-1]) / p[t-1].

    Args:
        closes: Close prices, oldest first

    Returns:
        Array of length len(closes) - 1 (empty for fewer than 2 closes)
    """
    closes = np.asarray(closes, dtype=float).flatten()
    if closes.shape[0] < 2:
        return np.array([])
    return (closes[1:] - closes[:-1]) / closes[:-1]


def align_returns(prices: PriceInput) -> Optional[pd.DataFrame]:
    """
    Align price series to a common trailing window and convert to returns.

    Assets with an empty series are dropped, and so are assets with a NaN,
    infinite or non-positive close, whose returns would be undefined.
    Every remaining series is truncated to the most recent `min_len` closes
    and converted to simple returns, so all columns have the same number of
    observations.

    Args:
        prices: Per-asset close prices (mapping, wide DataFrame or sequence,
            oldest first)

    Returns:
        DataFrame of returns (rows = periods, columns = assets in input
        order), or None when fewer than 2 assets have data or the common
        window has fewer than 2 closes.
    """
    named = {}
    for name, closes in _as_named_series(prices).items():
        if closes.shape[0] == 0:
            continue
        if not (np.all(np.isfinite(closes)) and np.all(closes > 0)):
            logger.warning(f"Dropping {name}: NaN, infinite or non-positive close prices")
            continue
        named[name] = closes

    if len(named) < 2:
        logger.debug(f"Cannot align returns: only {len(named)} asset(s) with data")
        return None

    min_len = min(closes.shape[0] for closes in named.values())
    if min_len < 2:
        logger.debug(f"Cannot align returns: common window has {min_len} close(s)")
        return None

    returns = {name: simple_returns(closes[-min_len:]) for name, closes in named.items()}
    return pd.DataFrame(returns)


def select_universe(
    prices: Mapping[str, Sequence[float]],
    max_symbols: int = MAX_FRONTIER_SYMBOLS,
    min_history: int = MIN_HISTORY_POINTS
) -> Dict[str, np.ndarray]:
    """
    Cap the optimizable universe before estimating moments.

    Symbols with fewer than `min_history` closes are discarded. The rest are
    ranked by history length (longest first, input order on ties) and the
    top `max_symbols` are kept. Moment estimation is O(n^2 T) and the
    inversion O(n^3), so an uncapped universe of several hundred symbols is
    too slow for a single frontier computation.

    Args:
        prices: Mapping of symbol -> closes (oldest first)
        max_symbols: Maximum number of symbols to keep (default 120)
        min_history: Minimum number of closes per symbol (default 60)

    Returns:
        Ordered dict of the retained symbols -> close arrays, longest first
    """
    named = _as_named_series(prices)
    eligible = [(name, closes) for name, closes in named.items()
                if closes.shape[0] >= min_history]

    # sorted() is stable, so equal lengths keep their input order
    ranked = sorted(eligible, key=lambda item: item[1].shape[0], reverse=True)
    selected = dict(ranked[:max_symbols])

    if len(selected) < len(named):
        logger.info(
            f"Universe capped: kept {len(selected)} of {len(named)} symbols "
            f"(min history {min_history}, max {max_symbols})"
        )
    return selected


def align_prices_by_date(
    prices: Mapping[str, pd.Series],
    start: Optional[Union[str, pd.Timestamp]] = None
) -> pd.DataFrame:
    """
    Align date-indexed close series on the dates common to all of them.

    Args:
        prices: Mapping of symbol -> pandas Series of closes indexed by date
        start: Optional cut-off; earlier dates are discarded

    Returns:
        DataFrame (index = common dates ascending, columns = symbols).
        Symbols with no data are dropped. The frame is empty when nothing
        overlaps.
    """
    frames: List[pd.Series] = []
    for symbol, series in prices.items():
        if series is None or len(series) == 0:
            continue
        series = pd.Series(series, copy=True)
        series.index = pd.to_datetime(series.index)
        series = series[~series.index.duplicated(keep='last')].sort_index()
        frames.append(series.rename(symbol))

    if not frames:
        return pd.DataFrame()

    aligned = pd.concat(frames, axis=1, join='inner').dropna()
    if start is not None:
        aligned = aligned[aligned.index >= pd.Timestamp(start)]
    return aligned.sort_index()
