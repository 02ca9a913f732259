"""
Pension Drawdown Simulation Package

This package provides a Monte Carlo model of a household's pension pot from today
to a terminal age: accumulation until a retirement trigger fires, then income
drawdown with state and defined-benefit pensions, dependents' university fees and
gifts, under either i.i.d. lognormal returns or a bull/bear regime-switching model.

config.py to set the simulation parameters.
simulation.py to run a trajectory or a whole run-set.
results.py for the aggregate statistics.
main.py for the command-line entry point.
"""

from .config import (
    SimulationConfig,
    RegimeParams,
    PensionEntry,
    DCPot,
    Dependent,
    REGIME_PRESETS,
)
from .regime import stationary_distribution, describe_regimes
from .returns import StandardReturnModel, RegimeSwitchingReturnModel, create_return_model
from .results import SimulationResult, percentile, percentile_bands
from .simulation import (
    simulate_trajectory,
    run_trajectories,
    run_simulation,
    compare_return_models,
)

__version__ = '1.0.0'

__all__ = [
    'SimulationConfig',
    'RegimeParams',
    'PensionEntry',
    'DCPot',
    'Dependent',
    'REGIME_PRESETS',
    'stationary_distribution',
    'describe_regimes',
    'StandardReturnModel',
    'RegimeSwitchingReturnModel',
    'create_return_model',
    'SimulationResult',
    'percentile',
    'percentile_bands',
    'simulate_trajectory',
    'run_trajectories',
    'run_simulation',
    'compare_return_models',
]
