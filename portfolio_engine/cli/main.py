"""
Main Runner Script for Portfolio Optimization
=============================================

This script runs the full dashboard computation on a set of price histories:
1. Loading closes (CSV / Excel, or sample data)
2. Capping the universe and computing the efficient frontier
3. Finding the optimal portfolio (max Sharpe or minimum variance)
4. Evaluating the current allocation and its distance to the optimum
5. Visualizing results

Usage:
    pe-analyze                               # Run with sample data
    pe-analyze --file prices.csv             # Long-format CSV (date,symbol,close)
    pe-analyze --file closes.csv --format wide
    pe-analyze --strategy min-variance       # Minimum variance instead of max Sharpe
    pe-analyze --policy reject               # Refuse allocations with material shorts
"""

import sys
import argparse
import logging
import traceback
from datetime import datetime
from typing import Dict, List, Optional
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib

matplotlib.use('Agg')
import matplotlib.pyplot as plt

from portfolio_engine.config import (
    DEFAULT_FRONTIER_POINTS,
    DEFAULT_RISK_FREE_RATE,
    MAX_FRONTIER_SYMBOLS,
    MIN_HISTORY_POINTS,
)
from portfolio_engine.core.evaluator import normalize_weights, portfolio_stats
from portfolio_engine.core.loader import DataLoader, generate_sample_prices
from portfolio_engine.core.metrics import (
    allocate_amount,
    compute_asset_metrics,
    frontier_proximity,
    portfolio_evolution,
)
from portfolio_engine.core.moments import asset_risk_return, estimate_moments
from portfolio_engine.core.optimizer import (
    PortfolioOptimizer,
    WeightPolicy,
    max_sharpe_weights,
    min_variance_weights,
)
from portfolio_engine.core.preprocess import align_returns, select_universe
from portfolio_engine.visualization import (
    plot_efficient_frontier,
    plot_portfolio_evolution,
    plot_portfolio_weights,
)


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logger(
    script_name: str = "portfolio_engine",
    log_dir: Optional[Path] = None
) -> logging.Logger:
    """
    Sets up a logger that writes to both file and console.

    Args:
        script_name: Name of the script (used in log filename)
        log_dir: Directory for log files (default: logs/ next to the package)

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        log_dir = Path(__file__).parent.parent.parent / "logs"
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y_%m_%d_%H%M")
    log_filename = log_dir / f"log_{script_name}_{timestamp}.txt"

    logger = logging.getLogger(script_name)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    # Clear existing handlers (prevent duplicates)
    if logger.hasHandlers():
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# =============================================================================
# ANALYSIS CLASS
# =============================================================================

class AnalysisCheckpoint:
    """
    Tracks the progress of a portfolio analysis run.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.steps_completed = {}
        self.results = {}
        self.start_time = datetime.now()
        self.current_step = None

    def start_step(self, step_name: str):
        """Mark a step as started."""
        self.current_step = step_name
        self.logger.info(f"[CHECKPOINT] Starting: {step_name}")

    def complete_step(self, step_name: str, result=None):
        """Mark a step as completed and save result."""
        self.steps_completed[step_name] = True
        if result is not None:
            self.results[step_name] = result
        self.logger.info(f"[CHECKPOINT] Completed: {step_name}")

    def get_progress_summary(self) -> dict:
        """Get summary of analysis progress."""
        elapsed = (datetime.now() - self.start_time).total_seconds()
        return {
            'steps_completed': list(self.steps_completed.keys()),
            'current_step': self.current_step,
            'elapsed_seconds': elapsed
        }

    def log_final_report(self):
        """Log final analysis report."""
        summary = self.get_progress_summary()
        self.logger.info("=" * 60)
        self.logger.info("  ANALYSIS COMPLETE")
        self.logger.info("=" * 60)
        self.logger.info(f"  Steps completed: {len(summary['steps_completed'])}")
        self.logger.info(f"  Total time: {summary['elapsed_seconds']:.2f} seconds")
        self.logger.info("=" * 60)


# =============================================================================
# MAIN ANALYSIS FUNCTIONS
# =============================================================================

def get_output_dir() -> Path:
    """Get the output directory path."""
    package_root = Path(__file__).parent.parent.parent
    output_dir = package_root / "output"
    output_dir.mkdir(exist_ok=True)
    return output_dir


def _sheet_arg(value: str):
    """Excel sheet given on the command line: an index if numeric, else a name."""
    return int(value) if value.isdigit() else value


def _log_weights(logger: logging.Logger, symbols: List[str], weights: np.ndarray):
    logger.info("Weights:")
    for symbol, weight in zip(symbols, weights):
        logger.info(f"  {symbol}: {weight*100:>8.2f}%")


def optimize_selection(
    prices: Dict[str, pd.Series],
    strategy: str = 'max-sharpe',
    policy: Optional[WeightPolicy] = WeightPolicy.CLIP_RENORMALIZE,
    rf_rate: float = DEFAULT_RISK_FREE_RATE,
    logger: Optional[logging.Logger] = None
) -> Optional[dict]:
    """
    Optimal weights for the user's selected assets.

    Args:
        prices: Dict of symbol -> close Series for the selected assets
        strategy: 'max-sharpe' or 'min-variance'
        policy: Sign policy for the weights
        rf_rate: Annual risk-free rate
        logger: Logger instance

    Returns:
        Dict with symbols, weights and stats, or None when the selection
        cannot be optimized (insufficient data or no feasible portfolio)
    """
    logger = logger or logging.getLogger(__name__)

    returns = align_returns(prices)
    if returns is None:
        logger.warning("Insufficient data: add at least 2 assets with history")
        return None

    mean_vector, cov_matrix = estimate_moments(returns)

    if strategy == 'max-sharpe':
        weights = max_sharpe_weights(mean_vector, cov_matrix, rf_rate, policy)
    elif strategy == 'min-variance':
        weights = min_variance_weights(cov_matrix, policy)
    else:
        raise ValueError(f"Unknown strategy: {strategy}. Use 'max-sharpe' or 'min-variance'")

    if weights is None:
        logger.warning("Optimization impossible: no feasible portfolio for these assets")
        return None

    return {
        'symbols': list(returns.columns),
        'weights': weights,
        'stats': portfolio_stats(weights, mean_vector, cov_matrix, rf_rate)
    }


def run_full_analysis(
    prices: Dict[str, pd.Series],
    selected: Optional[List[str]] = None,
    current_weights: Optional[List[float]] = None,
    strategy: str = 'max-sharpe',
    policy: Optional[WeightPolicy] = WeightPolicy.CLIP_RENORMALIZE,
    rf_rate: float = DEFAULT_RISK_FREE_RATE,
    n_points: int = DEFAULT_FRONTIER_POINTS,
    max_symbols: int = MAX_FRONTIER_SYMBOLS,
    min_history: int = MIN_HISTORY_POINTS,
    amount: float = 0.0,
    save_plots: bool = True,
    output_dir: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> dict:
    """
    Run the complete dashboard computation.

    This function performs:
    1. Universe selection and frontier calculation
    2. Max Sharpe portfolio of the universe
    3. Optimal allocation of the selected assets
    4. Current allocation statistics and frontier proximity
    5. Visualization generation

    Args:
        prices: Dict of symbol -> close Series (the universe)
        selected: Symbols held by the user (default: every symbol)
        current_weights: The user's weights for `selected` (default: equal)
        strategy: 'max-sharpe' or 'min-variance' for the selection
        policy: Sign policy for optimal weights
        rf_rate: Annual risk-free rate
        n_points: Frontier sweep steps
        max_symbols: Universe cap
        min_history: Minimum closes for the universe
        amount: Cash amount to allocate (0 to skip)
        save_plots: If True, save plots to files
        output_dir: Directory for output files
        logger: Logger instance

    Returns:
        Dictionary containing all analysis results
    """
    if logger is None:
        logger = setup_logger()

    checkpoint = AnalysisCheckpoint(logger)
    results = {}

    if selected is None:
        selected = list(prices.keys())

    logger.info("=" * 70)
    logger.info("  PORTFOLIO OPTIMIZATION ANALYSIS")
    logger.info("=" * 70)
    logger.info(f"  Universe: {len(prices)} symbols")
    logger.info(f"  Selected: {', '.join(selected)}")
    logger.info(f"  Risk-free rate: {rf_rate:.4f} ({rf_rate*100:.2f}%)")
    logger.info(f"  Strategy: {strategy} (policy: {policy.value if policy else 'none'})")
    logger.info("=" * 70)

    # Step 1: Universe and frontier
    checkpoint.start_step("Calculate Efficient Frontier")
    universe = select_universe(prices, max_symbols, min_history)
    universe_returns = align_returns(universe)

    if universe_returns is None:
        logger.warning("Cannot compute the frontier: fewer than 2 symbols with enough history")
        results['frontier'] = []
        results['asset_points'] = []
        results['optimal'] = None
    else:
        optimizer = PortfolioOptimizer.from_returns(universe_returns, rf_rate)
        results['optimizer'] = optimizer
        results['frontier'] = optimizer.efficient_frontier(n_points)
        results['asset_points'] = asset_risk_return(universe_returns)
        logger.info(f"Efficient frontier calculated with {len(results['frontier'])} points "
                    f"over {optimizer.n_assets} symbols")

        tan_w, tan_stats = optimizer.tangent_portfolio(policy)
        results['optimal'] = None if tan_w is None else {'weights': tan_w, 'stats': tan_stats}
        if tan_w is None:
            logger.warning("No max Sharpe portfolio for the universe (singular covariance)")
        else:
            logger.info(f"Universe max Sharpe: return {tan_stats['mean']*100:.2f}%, "
                        f"risk {tan_stats['std']*100:.2f}%, Sharpe {tan_stats['sharpe']:.4f}")
    checkpoint.complete_step("Calculate Efficient Frontier", results['frontier'])

    # Step 2: Optimal allocation of the selected assets
    checkpoint.start_step("Optimize Selection")
    selected_prices = {s: prices[s] for s in selected if s in prices and len(prices[s]) > 0}
    allocation = optimize_selection(selected_prices, strategy, policy, rf_rate, logger)
    results['allocation'] = allocation

    if allocation is not None:
        logger.info(f"\n--- Optimal Allocation ({strategy}) ---")
        _log_weights(logger, allocation['symbols'], allocation['weights'])
        stats = allocation['stats']
        logger.info(f"Expected Return: {stats['mean']*100:.4f}%")
        logger.info(f"Standard Deviation: {stats['std']*100:.4f}%")
        logger.info(f"Sharpe Ratio: {stats['sharpe']:.4f}")

        if amount > 0:
            results['cash_allocation'] = allocate_amount(
                allocation['weights'], allocation['symbols'], amount
            )
            for row in results['cash_allocation'].itertuples(index=False):
                logger.info(f"  {row.symbol}: {row.amount:,.2f}")
    checkpoint.complete_step("Optimize Selection", allocation)

    # Step 3: Current allocation
    checkpoint.start_step("Evaluate Current Portfolio")
    results['current'] = None
    current_returns = align_returns(selected_prices)
    if current_returns is not None:
        symbols = list(current_returns.columns)
        if current_weights is None:
            raw_weights = np.ones(len(symbols))
        else:
            by_symbol = dict(zip(selected, current_weights))
            raw_weights = np.array([by_symbol.get(s, 0.0) for s in symbols])
        weights = normalize_weights(raw_weights)

        mean_vector, cov_matrix = estimate_moments(current_returns)
        stats = portfolio_stats(weights, mean_vector, cov_matrix, rf_rate)
        optimal_sharpe = results['optimal']['stats']['sharpe'] if results['optimal'] else None
        proximity = frontier_proximity(stats['sharpe'], optimal_sharpe)

        results['current'] = {
            'symbols': symbols,
            'weights': weights,
            'stats': stats,
            'proximity': proximity,
            'evolution': portfolio_evolution(selected_prices, dict(zip(symbols, weights))),
            'asset_metrics': {s: compute_asset_metrics(selected_prices[s]) for s in symbols}
        }
        logger.info(f"Current portfolio: return {stats['mean']*100:.2f}%, "
                    f"risk {stats['std']*100:.2f}%, Sharpe {stats['sharpe']:.4f}")
        if proximity is not None:
            logger.info(f"Frontier proximity: {proximity}%")
    checkpoint.complete_step("Evaluate Current Portfolio", results['current'])

    # Step 4: Plots
    if save_plots:
        checkpoint.start_step("Generate Plots")
        output_dir = get_output_dir() if output_dir is None else Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        plot_efficient_frontier(
            results['frontier'],
            asset_points=results['asset_points'],
            optimal_point=results['optimal']['stats'] if results['optimal'] else None,
            portfolio_point=results['current']['stats'] if results['current'] else None,
            save_path=str(output_dir / "efficient_frontier.png")
        )
        if allocation is not None:
            plot_portfolio_weights(
                allocation['weights'], allocation['symbols'],
                title=f"Optimal Weights ({strategy})",
                save_path=str(output_dir / "optimal_weights.png")
            )
        if results['current'] is not None and len(results['current']['evolution']) > 0:
            plot_portfolio_evolution(
                results['current']['evolution'],
                save_path=str(output_dir / "portfolio_evolution.png")
            )
        plt.close('all')
        checkpoint.complete_step("Generate Plots")

    checkpoint.log_final_report()
    return results


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the portfolio optimization script."""
    parser = argparse.ArgumentParser(
        description='Portfolio Optimization Tool',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pe-analyze                                    # Run with sample data
  pe-analyze --file sp500_daily.csv             # Long-format CSV
  pe-analyze --file closes.csv --format wide --select AAPL MSFT KO
  pe-analyze --strategy min-variance --policy reject
        """
    )

    parser.add_argument('--file', '-f', type=str,
                        help='Path to a price file')
    parser.add_argument('--format', choices=['long', 'wide', 'excel'], default='long',
                        help='Price file layout (default: long)')
    parser.add_argument('--sheet', type=_sheet_arg, default=0,
                        help='Sheet name or 0-based index for Excel files (default: 0)')
    parser.add_argument('--select', nargs='+',
                        help='Symbols held in the current portfolio (default: all)')
    parser.add_argument('--rf-rate', '-r', type=float, default=DEFAULT_RISK_FREE_RATE,
                        help='Annual risk-free rate (default: 0.04 = 4%%)')
    parser.add_argument('--strategy', choices=['max-sharpe', 'min-variance'],
                        default='max-sharpe', help='Optimization strategy')
    parser.add_argument('--policy', choices=['clip', 'reject', 'none'], default='clip',
                        help='Negative weight policy (default: clip)')
    parser.add_argument('--points', '-n', type=int, default=DEFAULT_FRONTIER_POINTS,
                        help='Frontier sweep steps (default: 50)')
    parser.add_argument('--max-symbols', type=int, default=MAX_FRONTIER_SYMBOLS,
                        help='Universe cap for the frontier (default: 120)')
    parser.add_argument('--min-history', type=int, default=MIN_HISTORY_POINTS,
                        help='Minimum closes per symbol (default: 60)')
    parser.add_argument('--amount', type=float, default=0.0,
                        help='Cash amount to allocate')
    parser.add_argument('--no-plots', action='store_true',
                        help='Disable plot generation')
    parser.add_argument('--output-dir', type=str,
                        help='Directory for plots (default: output/)')
    parser.add_argument('--log-dir', type=str,
                        help='Directory for log files (default: logs/)')

    args = parser.parse_args(argv)

    logger = setup_logger("portfolio_analysis", args.log_dir)
    policy = None if args.policy == 'none' else WeightPolicy(args.policy)

    try:
        if args.file:
            logger.info(f"Loading prices from: {args.file}")
            loader = DataLoader()
            prices = loader.load(args.file, args.format, args.sheet)

            validation = loader.validate_prices(prices, args.min_history)
            for warning in validation['warnings']:
                logger.warning(warning)
            if not validation['is_valid']:
                for error in validation['errors']:
                    logger.error(error)
                raise ValueError("Price validation failed")
        else:
            logger.info("No file specified. Using sample data...")
            prices = generate_sample_prices(4)

        run_full_analysis(
            prices,
            selected=args.select,
            strategy=args.strategy,
            policy=policy,
            rf_rate=args.rf_rate,
            n_points=args.points,
            max_symbols=args.max_symbols,
            min_history=args.min_history,
            amount=args.amount,
            save_plots=not args.no_plots,
            output_dir=args.output_dir,
            logger=logger
        )

        logger.info("Analysis completed successfully!")
        return 0

    except Exception as e:
        logger.error(f"Analysis failed: {e}")
        logger.error(traceback.format_exc())
        return 1


if __name__ == "__main__":
    sys.exit(main())
