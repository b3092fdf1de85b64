"""
Dense Linear Algebra
====================

Gaussian elimination with partial pivoting, shared by the frontier solve
(KKT system) and the covariance inversion used by the tangency portfolio.

Both entry points reduce an augmented matrix [A | B] in place with the
same Gauss-Jordan routine; they only differ in the right-hand side
(a single vector or the identity) and in the pivot tolerance.

Singularity is not an exception here. When the best available pivot in a
column is smaller than the tolerance the routines return None, and callers
treat that as "no feasible portfolio".
"""

import logging
from typing import Optional

import numpy as np

from portfolio_engine.config import FRONTIER_SOLVE_TOLERANCE, INVERSION_TOLERANCE

logger = logging.getLogger(__name__)


def _gauss_jordan(augmented: np.ndarray, tol: float) -> Optional[np.ndarray]:
    """
    Reduce an n x (n + k) augmented matrix to [I | X].

    At every column the row with the largest absolute entry among the
    remaining rows is swapped into the pivot position. The pivot row is
    scaled to 1 and the column is cleared in every other row.

    Args:
        augmented: Float array of shape (n, n + k), modified in place
        tol: Minimum acceptable pivot magnitude

    Returns:
        The (n, k) block X, or None if a pivot falls below tol or the
        input holds NaN or inf
    """
    n = augmented.shape[0]

    if not np.all(np.isfinite(augmented)):
        logger.debug("Singular system: non-finite entries in the augmented matrix")
        return None

    for col in range(n):
        pivot = col + int(np.argmax(np.abs(augmented[col:, col])))
        if pivot != col:
            augmented[[col, pivot]] = augmented[[pivot, col]]

        if not abs(augmented[col, col]) >= tol:
            logger.debug(f"Singular system: pivot {augmented[col, col]:.3e} at column {col}")
            return None

        augmented[col] /= augmented[col, col]

        for row in range(n):
            if row == col:
                continue
            factor = augmented[row, col]
            if factor != 0.0:
                augmented[row] -= factor * augmented[col]

    return augmented[:, n:]


def solve_linear_system(
    A: np.ndarray,
    b: np.ndarray,
    tol: float = FRONTIER_SOLVE_TOLERANCE
) -> Optional[np.ndarray]:
    """
    Solve A x = b for a dense square system.

    Args:
        A: Square coefficient matrix (n x n)
        b: Right-hand side vector (n)
        tol: Pivot tolerance (default 1e-10, the frontier KKT setting)

    Returns:
        Solution vector x, or None if A is singular to within tol

    Raises:
        ValueError: If A is not square or b has the wrong length
    """
    A = np.asarray(A, dtype=float)
    b = np.asarray(b, dtype=float).flatten()

    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError(f"Coefficient matrix must be square, got shape {A.shape}")
    if b.shape[0] != A.shape[0]:
        raise ValueError(
            f"Right-hand side length {b.shape[0]} doesn't match matrix size {A.shape[0]}"
        )

    augmented = np.column_stack([A, b])
    solution = _gauss_jordan(augmented, tol)
    if solution is None:
        return None
    return solution[:, 0].copy()


def invert(M: np.ndarray, tol: float = INVERSION_TOLERANCE) -> Optional[np.ndarray]:
    """
    Invert a square matrix by Gauss-Jordan elimination against the identity.

    Args:
        M: Square matrix (n x n)
        tol: Pivot tolerance (default 1e-12)

    Returns:
        The inverse matrix, or None if M is singular to within tol.
        Degenerate inputs such as duplicate assets or a covariance estimated
        from fewer observations than assets end up here.

    Raises:
        ValueError: If M is not square
    """
    M = np.asarray(M, dtype=float)

    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise ValueError(f"Matrix must be square, got shape {M.shape}")

    n = M.shape[0]
    augmented = np.hstack([M, np.eye(n)])
    inverse = _gauss_jordan(augmented, tol)
    if inverse is None:
        return None
    return inverse.copy()
