"""
Default settings for the portfolio engine.

These are the values the optimizers and the CLI fall back on when the
caller does not pass its own. Rates and returns are annualized decimals.
"""

# Trading periods per year used to annualize daily statistics
TRADING_DAYS_PER_YEAR = 252

# Annual risk-free rate (4%)
DEFAULT_RISK_FREE_RATE = 0.04

# Number of target-return steps in a frontier sweep (yields n + 1 targets)
DEFAULT_FRONTIER_POINTS = 50

# Universe cap applied before moment estimation
MAX_FRONTIER_SYMBOLS = 120

# Symbols with fewer closes than this are not considered for the frontier
MIN_HISTORY_POINTS = 60

# Pivot tolerances for Gaussian elimination
FRONTIER_SOLVE_TOLERANCE = 1e-10
INVERSION_TOLERANCE = 1e-12

# Weight sums closer to zero than this are not normalized
NORMALIZATION_TOLERANCE = 1e-12

# Weights below this make an allocation infeasible under the reject policy
NEGATIVE_WEIGHT_TOLERANCE = -0.01
