"""
CLI entry point for portfolio analysis.

Usage:
    python run_cli.py                          # Run with sample data
    python run_cli.py --file sp500_daily.csv   # Long-format CSV (date,symbol,close)
    python run_cli.py --strategy min-variance  # Minimum variance allocation
    python run_cli.py --no-plots               # Skip chart generation

For installed package, use: pe-analyze
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from portfolio_engine.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
