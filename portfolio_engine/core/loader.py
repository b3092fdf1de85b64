"""
Data Loader Module for Price Histories
======================================

This module handles loading close-price histories from various sources:
- Long-format CSV (one row per symbol and date, e.g. a daily-bars table export)
- Wide-format CSV (a date column plus one column per symbol)
- Excel workbooks in either layout
- Direct mappings

Every loader returns an ordered dict of symbol -> pandas Series of closes,
indexed by date and sorted oldest first. That is the input expected by
`select_universe`, `align_returns` and `portfolio_evolution`.
"""

from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Any

import numpy as np
import pandas as pd

from portfolio_engine.config import MIN_HISTORY_POINTS


def _clean_series(series: pd.Series, name: str) -> pd.Series:
    """Coerce to float, drop gaps and duplicate dates, sort by date."""
    series = pd.to_numeric(series, errors='coerce').dropna()
    series.index = pd.to_datetime(series.index)
    series = series[~series.index.duplicated(keep='last')].sort_index()
    series.name = name
    return series


class DataLoader:
    """
    A class for loading price histories from various sources.

    Example:
        >>> loader = DataLoader()
        >>> prices = loader.load_long_csv("sp500_daily.csv")
        >>> prices['AAPL'].tail()
    """

    def __init__(
        self,
        date_column: str = 'date',
        symbol_column: str = 'symbol',
        close_column: str = 'close'
    ):
        """
        Initialize the DataLoader.

        Args:
            date_column: Name of the date column
            symbol_column: Name of the symbol column (long format only)
            close_column: Name of the close column (long format only)
        """
        self.date_column = date_column
        self.symbol_column = symbol_column
        self.close_column = close_column

    def _require_columns(self, df: pd.DataFrame, columns: List[str]):
        for col in columns:
            if col not in df.columns:
                raise ValueError(
                    f"Missing column '{col}' (found: {', '.join(map(str, df.columns))})"
                )

    def from_long_frame(self, df: pd.DataFrame) -> Dict[str, pd.Series]:
        """
        Split a long-format frame (date, symbol, close rows) into per-symbol series.

        Args:
            df: DataFrame with date, symbol and close columns

        Returns:
            Dict of symbol -> close Series, symbols in order of first appearance
        """
        self._require_columns(df, [self.date_column, self.symbol_column, self.close_column])

        prices = {}
        for symbol, rows in df.groupby(self.symbol_column, sort=False):
            symbol = str(symbol).strip()
            if not symbol:
                continue
            series = rows.set_index(self.date_column)[self.close_column]
            series = _clean_series(series, symbol)
            if len(series) > 0:
                prices[symbol] = series

        return prices

    def from_wide_frame(self, df: pd.DataFrame) -> Dict[str, pd.Series]:
        """
        Split a wide-format frame (date column + one column per symbol).

        Args:
            df: DataFrame whose date column is `date_column`

        Returns:
            Dict of symbol -> close Series, in column order
        """
        self._require_columns(df, [self.date_column])

        df = df.set_index(self.date_column)
        prices = {}
        for col in df.columns:
            series = _clean_series(df[col], str(col).strip())
            if len(series) > 0:
                prices[series.name] = series

        return prices

    def load_long_csv(self, file_path: str) -> Dict[str, pd.Series]:
        """Load a long-format CSV of daily closes."""
        return self.from_long_frame(pd.read_csv(file_path))

    def load_wide_csv(self, file_path: str) -> Dict[str, pd.Series]:
        """Load a wide-format CSV of daily closes."""
        return self.from_wide_frame(pd.read_csv(file_path))

    def load_excel(
        self,
        file_path: str,
        sheet: Any = 0,
        layout: str = 'wide'
    ) -> Dict[str, pd.Series]:
        """
        Load closes from an Excel workbook.

        Args:
            file_path: Path to the .xlsx file
            sheet: Sheet name or index (default: first sheet)
            layout: 'wide' or 'long'

        Returns:
            Dict of symbol -> close Series
        """
        df = pd.read_excel(file_path, sheet_name=sheet, engine='openpyxl')
        if layout == 'long':
            return self.from_long_frame(df)
        if layout == 'wide':
            return self.from_wide_frame(df)
        raise ValueError(f"Unknown layout: {layout}. Use 'wide' or 'long'")

    def load(self, file_path: str, fmt: str = 'long', sheet: Any = 0) -> Dict[str, pd.Series]:
        """
        Load closes from a file in the given format.

        Args:
            file_path: Path to the file
            fmt: 'long', 'wide' or 'excel'
            sheet: Sheet for Excel files

        Returns:
            Dict of symbol -> close Series
        """
        fmt = fmt.lower()
        if fmt == 'long':
            return self.load_long_csv(file_path)
        elif fmt == 'wide':
            return self.load_wide_csv(file_path)
        elif fmt == 'excel':
            return self.load_excel(file_path, sheet)
        else:
            raise ValueError(f"Unknown format: {fmt}. Use 'long', 'wide' or 'excel'")

    def load_direct(
        self,
        prices: Mapping[str, Sequence[float]],
        start_date: str = '2020-01-01'
    ) -> Dict[str, pd.Series]:
        """
        Load closes directly from a mapping.

        Plain sequences get a business-day index ending at their last value
        so they line up by recency; Series keep their own index.

        Args:
            prices: Mapping of symbol -> closes (oldest first)
            start_date: First business day for the longest plain sequence

        Returns:
            Dict of symbol -> close Series
        """
        plain_lengths = [len(v) for v in prices.values() if not isinstance(v, pd.Series)]
        index = pd.bdate_range(start=start_date, periods=max(plain_lengths, default=0))

        loaded = {}
        for symbol, values in prices.items():
            if isinstance(values, pd.Series):
                series = values
            else:
                values = np.asarray(values, dtype=float).flatten()
                series = pd.Series(values, index=index[len(index) - len(values):])
            series = _clean_series(series, str(symbol))
            if len(series) > 0:
                loaded[str(symbol)] = series

        return loaded

    def validate_prices(
        self,
        prices: Mapping[str, pd.Series],
        min_history: int = MIN_HISTORY_POINTS
    ) -> Dict[str, Any]:
        """
        Validate loaded price histories and return diagnostics.

        Checks:
        - At least two symbols with data
        - Non-positive closes (returns would be undefined)
        - Symbols with less than `min_history` closes

        Args:
            prices: Dict of symbol -> close Series
            min_history: History length below which a symbol is flagged

        Returns:
            Dictionary with validation results
        """
        results = {
            'is_valid': True,
            'warnings': [],
            'errors': [],
            'n_symbols': len(prices),
            'history_lengths': {s: len(p) for s, p in prices.items()}
        }

        if len(prices) < 2:
            results['errors'].append(
                f"Need at least 2 symbols with history, got {len(prices)}"
            )
            results['is_valid'] = False

        for symbol, series in prices.items():
            if (series <= 0).any():
                results['errors'].append(f"{symbol}: non-positive close prices")
                results['is_valid'] = False
            if len(series) < min_history:
                results['warnings'].append(
                    f"{symbol}: only {len(series)} closes (< {min_history}), "
                    f"excluded from the frontier universe"
                )

        lengths = list(results['history_lengths'].values())
        if lengths:
            results['length_stats'] = {
                'min': min(lengths),
                'max': max(lengths),
                'mean': float(np.mean(lengths))
            }

        return results


def generate_sample_prices(
    n_assets: int = 4,
    n_days: int = 300,
    seed: int = 42,
    start_date: str = '2022-01-03'
) -> Dict[str, pd.Series]:
    """
    Generate sample close prices for testing.

    Each asset follows a geometric random walk with its own drift and
    volatility, driven partly by a common market factor so the assets are
    correlated.

    Args:
        n_assets: Number of assets (default: 4)
        n_days: Number of business days
        seed: Random seed for reproducibility
        start_date: First business day

    Returns:
        Dict of symbol -> close Series
    """
    rng = np.random.default_rng(seed)
    dates = pd.bdate_range(start=start_date, periods=n_days)

    if n_assets == 4:
        symbols = ['AAPL', 'MSFT', 'JNJ', 'XOM']
    elif n_assets == 6:
        symbols = ['AAPL', 'MSFT', 'JNJ', 'XOM', 'JPM', 'KO']
    else:
        symbols = [f'STOCK{i+1}' for i in range(n_assets)]

    drifts = np.linspace(0.0002, 0.0008, n_assets)
    vols = np.linspace(0.010, 0.022, n_assets)
    market = rng.normal(0.0, 0.008, n_days)

    prices = {}
    for i, symbol in enumerate(symbols):
        idio = rng.normal(0.0, vols[i], n_days)
        daily = drifts[i] + 0.6 * market + idio
        closes = 100.0 * np.cumprod(1 + daily)
        prices[symbol] = pd.Series(closes, index=dates, name=symbol)

    return prices


def subset_prices(
    prices: Mapping[str, pd.Series],
    selected: Sequence[str]
) -> Tuple[Dict[str, pd.Series], List[str]]:
    """
    Extract a subset of symbols, e.g. the user's selected assets.

    Args:
        prices: Full dict of symbol -> close Series
        selected: Symbols to keep, in the desired order

    Returns:
        Tuple of (subset dict, list of requested symbols with no data)
    """
    subset = {}
    missing = []
    for symbol in selected:
        if symbol in prices and len(prices[symbol]) > 0:
            subset[symbol] = prices[symbol]
        else:
            missing.append(symbol)
    return subset, missing
