"""
Return Model Module

Annual real return processes for a single trajectory: i.i.d. lognormal returns,
or a two-state (bull/bear) Markov regime-switching process with a lognormal
return distribution per regime.
"""

import math

from .random_source import gaussian
from .regime import BULL, BEAR, REGIME_NAMES, stationary_distribution


def lognormal_params(mean_arithmetic, volatility):
    """
    Convert an arithmetic mean/volatility pair into lognormal parameters.

    With mu_log = ln(1 + mean) - 0.5 * vol^2 and sigma_log = vol, the growth
    factor exp(N(mu_log, sigma_log)) has expectation 1 + mean.
    """
    mu_log = math.log(1.0 + mean_arithmetic) - 0.5 * volatility ** 2
    return mu_log, volatility


class StandardReturnModel:
    """I.i.d. lognormal annual returns: one Gaussian draw per trajectory per year"""

    name = 'standard'

    def __init__(self, mean_arithmetic, volatility):
        self.mean_arithmetic = mean_arithmetic
        self.volatility = volatility
        self.mu_log, self.sigma_log = lognormal_params(mean_arithmetic, volatility)

    def initial_regime_for(self, source):
        return None

    def draw(self, source, state):
        return math.exp(gaussian(self.mu_log, self.sigma_log, source)) - 1.0


class RegimeSwitchingReturnModel:
    """
    Two-state Markov chain over bull (0) and bear (1) regimes.

    Each year the trajectory's regime first moves according to its row of the
    transition matrix (one uniform draw), then that regime's lognormal
    distribution produces the year's return (one Gaussian draw).
    """

    name = 'regime'

    def __init__(self, regimes, transition_matrix, initial_regime='stationary'):
        self.regimes = list(regimes)
        self.transition_matrix = [list(map(float, row)) for row in transition_matrix]
        self.initial_regime = initial_regime
        self._log_params = [lognormal_params(r.mean, r.volatility) for r in self.regimes]
        if initial_regime == 'stationary':
            self.pi_bull = float(stationary_distribution(self.transition_matrix)[BULL])
        else:
            self.pi_bull = None

    def initial_regime_for(self, source):
        """Pick a trajectory's starting regime; only the stationary selector consumes a draw"""
        if self.initial_regime == 'bull':
            return BULL
        if self.initial_regime == 'bear':
            return BEAR
        return BULL if source.uniform() < self.pi_bull else BEAR

    def next_regime(self, current, source):
        return BULL if source.uniform() < self.transition_matrix[current][BULL] else BEAR

    def draw(self, source, state):
        state.regime = self.next_regime(state.regime, source)
        mu_log, sigma_log = self._log_params[state.regime]
        return math.exp(gaussian(mu_log, sigma_log, source)) - 1.0

    def __repr__(self):
        parts = ', '.join(f"{REGIME_NAMES[i]}={r.mean:.3f}/{r.volatility:.3f}"
                          for i, r in enumerate(self.regimes))
        return f"RegimeSwitchingReturnModel({parts}, initial={self.initial_regime})"


def create_return_model(config):
    """Build the return model selected by a validated SimulationConfig"""
    if config.return_model == 'regime':
        return RegimeSwitchingReturnModel(config.regimes, config.transition_matrix,
                                          config.initial_regime)
    return StandardReturnModel(config.real_arithmetic_mean, config.volatility)
