"""
Integration tests for the analysis runner.
"""

import logging

import numpy as np
import pandas as pd
import pytest

from portfolio_engine.cli.main import (
    AnalysisCheckpoint,
    _sheet_arg,
    main,
    optimize_selection,
    run_full_analysis,
    setup_logger,
)
from portfolio_engine.core.loader import generate_sample_prices
from portfolio_engine.core.optimizer import WeightPolicy


@pytest.fixture
def quiet_logger():
    logger = logging.getLogger("portfolio_engine.tests")
    logger.addHandler(logging.NullHandler())
    return logger


@pytest.mark.unit
class TestOptimizeSelection:
    """Test suite for optimize_selection."""

    def test_max_sharpe_clipped_is_long_only(self, sample_prices, quiet_logger):
        allocation = optimize_selection(
            sample_prices, 'max-sharpe', WeightPolicy.CLIP_RENORMALIZE, 0.04, quiet_logger
        )

        assert allocation['symbols'] == list(sample_prices.keys())
        assert np.sum(allocation['weights']) == pytest.approx(1.0)
        assert (allocation['weights'] >= 0).all()
        assert set(allocation['stats']) == {'mean', 'std', 'variance', 'sharpe'}

    def test_min_variance(self, sample_prices, quiet_logger):
        allocation = optimize_selection(sample_prices, 'min-variance', None, 0.04, quiet_logger)

        assert np.sum(allocation['weights']) == pytest.approx(1.0)

    def test_single_asset_is_insufficient(self, sample_prices, quiet_logger):
        assert optimize_selection({'AAPL': sample_prices['AAPL']}, logger=quiet_logger) is None

    def test_unknown_strategy_raises(self, sample_prices, quiet_logger):
        with pytest.raises(ValueError, match="Unknown strategy"):
            optimize_selection(sample_prices, 'risk-parity', logger=quiet_logger)

    def test_zero_close_asset_is_excluded(self, sample_prices, quiet_logger):
        broken = sample_prices['MSFT'].copy()
        broken.iloc[100] = 0.0
        prices = {**sample_prices, 'MSFT': broken}

        allocation = optimize_selection(prices, logger=quiet_logger)

        assert allocation['symbols'] == ['AAPL', 'JNJ', 'XOM']
        assert np.isfinite(allocation['weights']).all()
        assert np.isfinite(allocation['stats']['std'])

    def test_nan_close_leaves_nothing_to_optimize(self, sample_prices, quiet_logger):
        broken = sample_prices['MSFT'].copy()
        broken.iloc[10] = np.nan
        prices = {'AAPL': sample_prices['AAPL'], 'MSFT': broken}

        assert optimize_selection(prices, logger=quiet_logger) is None


@pytest.mark.integration
class TestRunFullAnalysis:
    """Test suite for run_full_analysis."""

    def test_results_and_plots(self, sample_prices, tmp_path, quiet_logger):
        results = run_full_analysis(
            sample_prices,
            selected=['AAPL', 'JNJ', 'XOM'],
            current_weights=[0.5, 0.3, 0.2],
            n_points=20,
            amount=10000.0,
            output_dir=str(tmp_path),
            logger=quiet_logger
        )

        assert len(results['frontier']) > 0
        risks = [p.risk for p in results['frontier']]
        assert risks == sorted(risks)
        assert len(results['asset_points']) == 4
        assert results['optimal'] is not None

        current = results['current']
        np.testing.assert_allclose(current['weights'], [0.5, 0.3, 0.2])
        assert current['proximity'] is None or current['proximity'] <= 100
        assert current['evolution'].iloc[0] == pytest.approx(1.0)
        assert set(current['asset_metrics']) == {'AAPL', 'JNJ', 'XOM'}

        assert results['cash_allocation']['amount'].sum() == pytest.approx(10000.0)

        for name in ("efficient_frontier.png", "optimal_weights.png", "portfolio_evolution.png"):
            assert (tmp_path / name).exists()

    def test_short_histories_give_empty_frontier(self, quiet_logger):
        prices = generate_sample_prices(3, n_days=30)

        results = run_full_analysis(prices, save_plots=False, logger=quiet_logger)

        assert results['frontier'] == []
        assert results['optimal'] is None
        # The selection itself still has enough aligned history
        assert results['allocation'] is not None


@pytest.mark.integration
class TestMain:
    """Test suite for the command-line entry point."""

    def test_sample_data_run(self, tmp_path):
        assert main(['--no-plots', '--log-dir', str(tmp_path)]) == 0

    def test_long_csv_run(self, tmp_path, sample_prices):
        rows = [
            {'date': date, 'symbol': symbol, 'close': close}
            for symbol, series in sample_prices.items()
            for date, close in series.items()
        ]
        path = tmp_path / "daily.csv"
        pd.DataFrame(rows).to_csv(path, index=False)

        exit_code = main([
            '--file', str(path), '--select', 'AAPL', 'MSFT',
            '--policy', 'reject', '--amount', '5000',
            '--output-dir', str(tmp_path / "plots"), '--log-dir', str(tmp_path)
        ])

        assert exit_code == 0
        assert (tmp_path / "plots" / "efficient_frontier.png").exists()

    def test_missing_file_fails(self, tmp_path):
        exit_code = main([
            '--file', str(tmp_path / "missing.csv"), '--no-plots', '--log-dir', str(tmp_path)
        ])

        assert exit_code == 1

    def test_single_symbol_file_fails_validation(self, tmp_path, sample_prices):
        path = tmp_path / "one.csv"
        pd.DataFrame({
            'date': sample_prices['AAPL'].index,
            'symbol': 'AAPL',
            'close': sample_prices['AAPL'].values
        }).to_csv(path, index=False)

        assert main(['--file', str(path), '--no-plots', '--log-dir', str(tmp_path)]) == 1


    def test_excel_sheet_by_index(self, tmp_path, sample_prices):
        wide = pd.DataFrame(sample_prices)
        wide.index.name = 'date'
        path = tmp_path / "closes.xlsx"
        with pd.ExcelWriter(path, engine='openpyxl') as writer:
            pd.DataFrame({'note': ['cover sheet']}).to_excel(writer, sheet_name='Cover')
            wide.reset_index().to_excel(writer, sheet_name='Prices', index=False)

        exit_code = main([
            '--file', str(path), '--format', 'excel', '--sheet', '1',
            '--no-plots', '--log-dir', str(tmp_path)
        ])

        assert exit_code == 0

    def test_sheet_argument(self):
        assert _sheet_arg('1') == 1
        assert _sheet_arg('Prices') == 'Prices'


class TestAnalysisCheckpoint:
    """Test suite for AnalysisCheckpoint."""

    def test_stores_step_results(self, quiet_logger):
        checkpoint = AnalysisCheckpoint(quiet_logger)

        checkpoint.start_step("Load")
        checkpoint.complete_step("Load", {'n_symbols': 4})
        checkpoint.complete_step("Plots")

        assert checkpoint.results == {'Load': {'n_symbols': 4}}
        assert checkpoint.get_progress_summary()['steps_completed'] == ['Load', 'Plots']


class TestSetupLogger:
    """Test suite for setup_logger."""

    def test_writes_log_file(self, tmp_path):
        logger = setup_logger("unit_test", tmp_path)
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()

        log_files = list(tmp_path.glob("log_unit_test_*.txt"))
        assert len(log_files) == 1
        assert "hello" in log_files[0].read_text(encoding='utf-8')

    def test_no_duplicate_handlers(self, tmp_path):
        setup_logger("unit_test_dup", tmp_path)
        logger = setup_logger("unit_test_dup", tmp_path)

        assert len(logger.handlers) == 2
