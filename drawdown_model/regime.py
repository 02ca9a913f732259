"""
Regime Statistics Module

Closed-form long-run statistics for the two-state (bull/bear) Markov chain used by
the regime-switching return model. None of these values drive the trajectory loop,
except the stationary distribution when a trajectory draws its starting regime.
"""

import numpy as np

BULL = 0
BEAR = 1
REGIME_NAMES = ('bull', 'bear')

_ROW_SUM_TOLERANCE = 1e-9


def validate_transition_matrix(transition_matrix):
    """Return a list of problems with a 2x2 transition matrix (empty when valid)"""
    if transition_matrix is None:
        return ["Transition matrix is required for the regime-switching model"]
    matrix = np.asarray(transition_matrix, dtype=float)
    if matrix.shape != (2, 2):
        return [f"Transition matrix must be 2x2, got shape {matrix.shape}"]
    errors = []
    if np.any(matrix < 0.0) or np.any(matrix > 1.0):
        errors.append("Transition probabilities must lie between 0 and 1")
    row_sums = matrix.sum(axis=1)
    if not np.allclose(row_sums, 1.0, atol=_ROW_SUM_TOLERANCE):
        errors.append(f"Transition matrix rows must sum to 1, got {row_sums.tolist()}")
    return errors


def stationary_distribution(transition_matrix):
    """
    Long-run occupancy probabilities of a two-state Markov chain.

    For T[i][j] = P(next = j | current = i), the stationary distribution is the
    left eigenvector of T for eigenvalue 1, which for two states reduces to

        pi_bull = (1 - T[1][1]) / ((1 - T[0][0]) + (1 - T[1][1]))

    Parameters:
    -----------
    transition_matrix : array-like, shape (2, 2)
        Row-stochastic transition matrix, bull first

    Returns:
    --------
    numpy.ndarray
        (pi_bull, pi_bear), summing to 1

    Raises:
    -------
    ValueError
        If both regimes are absorbing; the chain then stays in whatever regime it starts in
    """
    matrix = np.asarray(transition_matrix, dtype=float)
    leave_bull = 1.0 - matrix[BULL, BULL]
    leave_bear = 1.0 - matrix[BEAR, BEAR]
    denominator = leave_bull + leave_bear
    if denominator <= 0.0:
        raise ValueError("Stationary distribution is undefined: neither regime can be left, "
                         "so the regime is whatever it starts as")
    pi_bull = leave_bear / denominator
    return np.array([pi_bull, 1.0 - pi_bull])


def long_run_expected_return(transition_matrix, regimes):
    """Equilibrium-weighted arithmetic mean return across regimes"""
    weights = stationary_distribution(transition_matrix)
    means = np.array([regime.mean for regime in regimes], dtype=float)
    return float(weights @ means)


def expected_regime_durations(transition_matrix):
    """Mean number of consecutive years spent in each regime, 1 / (1 - stay)"""
    matrix = np.asarray(transition_matrix, dtype=float)
    durations = []
    for state in (BULL, BEAR):
        leave = 1.0 - matrix[state, state]
        durations.append(np.inf if leave <= 0.0 else 1.0 / leave)
    return np.array(durations)


def describe_regimes(transition_matrix, regimes):
    """Descriptive summary of a regime configuration for display"""
    weights = stationary_distribution(transition_matrix)
    durations = expected_regime_durations(transition_matrix)
    return {
        'equilibrium_bull': float(weights[BULL]),
        'equilibrium_bear': float(weights[BEAR]),
        'avg_bull_years': float(durations[BULL]),
        'avg_bear_years': float(durations[BEAR]),
        'weighted_mean_return': long_run_expected_return(transition_matrix, regimes),
    }
