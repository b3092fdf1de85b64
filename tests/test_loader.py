"""
Unit tests for price loading.
"""

import numpy as np
import pandas as pd
import pytest

from portfolio_engine.core.loader import DataLoader, generate_sample_prices, subset_prices


@pytest.fixture
def long_frame():
    """Daily-bars rows for two symbols, deliberately out of date order."""
    return pd.DataFrame({
        'date': ['2024-01-03', '2024-01-02', '2024-01-04', '2024-01-02', '2024-01-03'],
        'symbol': ['AAA', 'AAA', 'AAA', 'BBB', 'BBB'],
        'close': [101.0, 100.0, 102.0, 50.0, 51.0],
    })


class TestDataLoaderLongFormat:
    """Test suite for long-format (date, symbol, close) input."""

    def test_splits_by_symbol_sorted_by_date(self, long_frame):
        prices = DataLoader().from_long_frame(long_frame)

        assert list(prices.keys()) == ['AAA', 'BBB']
        assert prices['AAA'].tolist() == [100.0, 101.0, 102.0]
        assert prices['AAA'].index.is_monotonic_increasing
        assert prices['BBB'].name == 'BBB'

    def test_load_long_csv(self, tmp_path, long_frame):
        path = tmp_path / "sp500_daily.csv"
        long_frame.to_csv(path, index=False)

        prices = DataLoader().load_long_csv(str(path))

        assert prices['BBB'].tolist() == [50.0, 51.0]
        assert isinstance(prices['BBB'].index, pd.DatetimeIndex)

    def test_duplicate_dates_keep_last(self):
        df = pd.DataFrame({
            'date': ['2024-01-02', '2024-01-02', '2024-01-03'],
            'symbol': ['AAA', 'AAA', 'AAA'],
            'close': [100.0, 100.5, 101.0],
        })

        prices = DataLoader().from_long_frame(df)

        assert prices['AAA'].tolist() == [100.5, 101.0]

    def test_non_numeric_closes_are_dropped(self):
        df = pd.DataFrame({
            'date': ['2024-01-02', '2024-01-03', '2024-01-04'],
            'symbol': ['AAA', 'AAA', 'AAA'],
            'close': ['100', 'n/a', '102.5'],
        })

        prices = DataLoader().from_long_frame(df)

        assert prices['AAA'].tolist() == [100.0, 102.5]

    def test_custom_column_names(self):
        df = pd.DataFrame({'Date': ['2024-01-02'], 'Ticker': ['AAA'], 'Adj Close': [10.0]})

        prices = DataLoader('Date', 'Ticker', 'Adj Close').from_long_frame(df)

        assert prices['AAA'].tolist() == [10.0]

    def test_missing_column_raises(self, long_frame):
        with pytest.raises(ValueError, match="Missing column 'close'"):
            DataLoader().from_long_frame(long_frame.drop(columns=['close']))


class TestDataLoaderWideFormat:
    """Test suite for wide-format (date + one column per symbol) input."""

    @pytest.fixture
    def wide_frame(self):
        return pd.DataFrame({
            'date': ['2024-01-02', '2024-01-03', '2024-01-04'],
            'AAA': [100.0, 101.0, 102.0],
            'BBB': [np.nan, 51.0, 52.0],
        })

    def test_wide_csv_drops_gaps(self, tmp_path, wide_frame):
        path = tmp_path / "closes.csv"
        wide_frame.to_csv(path, index=False)

        prices = DataLoader().load(str(path), fmt='wide')

        assert list(prices.keys()) == ['AAA', 'BBB']
        assert len(prices['AAA']) == 3
        assert prices['BBB'].tolist() == [51.0, 52.0]

    def test_excel_workbook(self, tmp_path, wide_frame):
        path = tmp_path / "closes.xlsx"
        wide_frame.to_excel(path, index=False, engine='openpyxl')

        prices = DataLoader().load(str(path), fmt='excel')

        assert prices['AAA'].tolist() == [100.0, 101.0, 102.0]

    def test_excel_long_layout(self, tmp_path, long_frame):
        path = tmp_path / "bars.xlsx"
        long_frame.to_excel(path, index=False, engine='openpyxl')

        prices = DataLoader().load_excel(str(path), layout='long')

        assert prices['AAA'].tolist() == [100.0, 101.0, 102.0]

    def test_unknown_format_raises(self):
        with pytest.raises(ValueError, match="Unknown format"):
            DataLoader().load("prices.parquet", fmt='parquet')

    def test_unknown_layout_raises(self, tmp_path, wide_frame):
        path = tmp_path / "closes.xlsx"
        wide_frame.to_excel(path, index=False, engine='openpyxl')

        with pytest.raises(ValueError, match="Unknown layout"):
            DataLoader().load_excel(str(path), layout='diagonal')


class TestLoadDirect:
    """Test suite for load_direct."""

    def test_plain_sequences_share_the_last_date(self):
        prices = DataLoader().load_direct({'AAA': [1.0, 2.0, 3.0], 'BBB': [5.0, 6.0]})

        assert prices['AAA'].index[-1] == prices['BBB'].index[-1]
        assert prices['BBB'].index[0] == prices['AAA'].index[1]

    def test_series_keep_their_index(self, sample_prices):
        prices = DataLoader().load_direct({'AAPL': sample_prices['AAPL']})

        pd.testing.assert_index_equal(prices['AAPL'].index, sample_prices['AAPL'].index)

    def test_empty_sequences_are_dropped(self):
        assert DataLoader().load_direct({'AAA': [1.0, 2.0], 'BBB': []}).keys() == {'AAA'}


class TestValidatePrices:
    """Test suite for validate_prices."""

    def test_valid_prices(self, sample_prices):
        results = DataLoader().validate_prices(sample_prices)

        assert results['is_valid']
        assert results['errors'] == []
        assert results['n_symbols'] == 4
        assert results['length_stats']['min'] == 300

    def test_single_symbol_is_invalid(self, sample_prices):
        results = DataLoader().validate_prices({'AAPL': sample_prices['AAPL']})

        assert not results['is_valid']

    def test_non_positive_close_is_invalid(self, sample_prices):
        broken = sample_prices['MSFT'].copy()
        broken.iloc[10] = 0.0

        results = DataLoader().validate_prices({**sample_prices, 'MSFT': broken})

        assert not results['is_valid']
        assert any('MSFT' in e for e in results['errors'])

    def test_short_history_is_a_warning(self, sample_prices):
        short = {**sample_prices, 'NEW': sample_prices['AAPL'].iloc[-20:]}

        results = DataLoader().validate_prices(short, min_history=60)

        assert results['is_valid']
        assert any('NEW' in w for w in results['warnings'])


class TestSampleData:
    """Test suite for generate_sample_prices and subset_prices."""

    def test_reproducible_and_positive(self):
        first = generate_sample_prices(6, n_days=100, seed=3)
        second = generate_sample_prices(6, n_days=100, seed=3)

        assert list(first.keys()) == ['AAPL', 'MSFT', 'JNJ', 'XOM', 'JPM', 'KO']
        for symbol in first:
            pd.testing.assert_series_equal(first[symbol], second[symbol])
            assert (first[symbol] > 0).all()
            assert len(first[symbol]) == 100

    def test_generic_symbol_names(self):
        assert list(generate_sample_prices(3).keys()) == ['STOCK1', 'STOCK2', 'STOCK3']

    def test_subset_reports_missing(self, sample_prices):
        subset, missing = subset_prices(sample_prices, ['XOM', 'TSLA', 'AAPL'])

        assert list(subset.keys()) == ['XOM', 'AAPL']
        assert missing == ['TSLA']
