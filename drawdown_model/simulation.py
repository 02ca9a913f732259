"""
Core Simulation Module

This module contains the per-trajectory life-cycle simulation (growth, retirement
trigger, contributions, drawdown, gifts, university fees and ruin detection) and
the run-set driver that executes every trajectory, optionally across worker
processes, and hands columnar per-age arrays to the aggregator.
"""

import copy
import logging
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from tqdm import tqdm

from .random_source import RandomSource, derive_trajectory_seed
from .returns import create_return_model
from .results import aggregate_results

logger = logging.getLogger(__name__)

MIN_TRAJECTORIES_PER_WORKER = 100


class TrajectoryState:
    """Mutable state of one trajectory; never shared between trajectories"""

    def __init__(self, pot, num_dependents, regime=None):
        self.pot = pot
        self.retired = False
        self.retirement_age = None
        self.ruin_age = None
        self.gifts_paid = [False] * num_dependents
        self.regime = regime
        self.initial_regime = regime

    def retire(self, age):
        if not self.retired:
            self.retired = True
            self.retirement_age = age


@dataclass
class TrajectoryResult:
    """Per-age series and key events pulled out of a finished trajectory"""
    pot: np.ndarray
    income: np.ndarray
    retirement_age: int
    ruin_age: Optional[int]
    gifts_paid: Tuple[bool, ...]
    initial_regime: Optional[int]


@dataclass
class RunSetData:
    """Columnar raw output of a run-set: one row per age, one column per trajectory"""
    ages: np.ndarray
    pots: np.ndarray
    incomes: np.ndarray
    retirement_ages: np.ndarray
    ruin_ages: np.ndarray
    gifts_paid: np.ndarray
    initial_regimes: np.ndarray
    base_seed: int


def should_retire(config, state, age, pot, pensions):
    """Retirement trigger: pot reached threshold, forced latest age, or pensions cover the floor"""
    if state.retired or age < config.earliest_retirement_age:
        return False
    return (pot >= config.retirement_threshold
            or age >= config.latest_retirement_age
            or pensions >= config.income_floor)


def drawdown(config, pot, pensions):
    """
    Retirement withdrawal for one year.

    Target income is pot * withdrawal rate clamped to [floor, ceiling]; pensions
    count towards it and the pot covers the rest, as far as it can.

    Returns:
        tuple: (withdrawal, total_income, surplus_pension)
    """
    target_income = pot * config.withdrawal_rate
    target_income = max(target_income, config.income_floor)
    target_income = min(target_income, config.income_ceiling)
    withdrawal = max(target_income - pensions, 0.0)
    withdrawal = min(withdrawal, max(pot, 0.0))
    surplus_pension = max(pensions - target_income, 0.0)
    return withdrawal, withdrawal + pensions, surplus_pension


def simulate_trajectory(config, return_model, trajectory_index, base_seed):
    """
    Run one trajectory from the current age to the terminal age.

    Parameters:
    -----------
    config : SimulationConfig
        Validated configuration; never modified
    return_model : StandardReturnModel or RegimeSwitchingReturnModel
        Stateless return policy; per-trajectory regime lives on the TrajectoryState
    trajectory_index : int
        Global index of the trajectory within the run-set
    base_seed : int
        Base seed of the run-set

    Returns:
    --------
    TrajectoryResult
    """
    source = RandomSource(derive_trajectory_seed(base_seed, trajectory_index))
    n_ages = config.num_ages
    dependents = list(config.dependents)

    pot_path = np.zeros(n_ages)
    income_path = np.zeros(n_ages)
    pot_path[0] = config.initial_pot

    state = TrajectoryState(pot_path[0], len(dependents),
                            regime=return_model.initial_regime_for(source))

    for i in range(1, n_ages):
        age = config.start_age + i
        annual_return = return_model.draw(source, state)
        pot = max(state.pot, 0.0) * (1.0 + annual_return)
        pensions = config.pension_income_at(age)

        if should_retire(config, state, age, pot, pensions):
            state.retire(age)

        for dc in config.dc_pots:
            if dc.contributes_at(age, state.retired):
                pot += dc.annual_contribution

        if not state.retired:
            pot += config.annual_contribution
        else:
            withdrawal, total_income, surplus = drawdown(config, pot, pensions)
            pot -= withdrawal
            income_path[i] = total_income
            if config.surplus_pension_to_pot:
                pot += surplus
                income_path[i] -= surplus

            for c, dependent in enumerate(dependents):
                if (dependent.gets_gift and age == dependent.gift_age
                        and not state.gifts_paid[c] and pot >= config.gift_min_pot):
                    pot -= config.gift_amount
                    state.gifts_paid[c] = True

        for dependent in dependents:
            if dependent.at_university(age, config.university_years):
                pot -= config.university_fee_per_year

        if state.retired and pot <= 0.0 and state.ruin_age is None:
            state.ruin_age = age

        pot_path[i] = max(pot, 0.0)
        state.pot = pot_path[i]

    return TrajectoryResult(
        pot=pot_path,
        income=income_path,
        retirement_age=state.retirement_age,
        ruin_age=state.ruin_age,
        gifts_paid=tuple(state.gifts_paid),
        initial_regime=state.initial_regime,
    )


def simulate_trajectory_range(config, start, stop, base_seed, show_progress=False):
    """Worker function: simulate trajectories [start, stop) with their own return model"""
    return_model = create_return_model(config)
    return [simulate_trajectory(config, return_model, index, base_seed)
            for index in tqdm(range(start, stop), desc="Running trajectories",
                              disable=not show_progress)]


def resolve_base_seed(config):
    if config.seed is not None:
        return int(config.seed)
    base_seed = int(np.random.default_rng().integers(0, 2**31 - 1))
    logger.info(f"No seed configured; drew base seed {base_seed}")
    return base_seed


def _worker_ranges(num_trajectories, num_workers):
    per_worker = num_trajectories // num_workers
    remaining = num_trajectories % num_workers
    ranges = []
    start = 0
    for i in range(num_workers):
        count = per_worker + (1 if i < remaining else 0)
        if count > 0:
            ranges.append((start, start + count))
            start += count
    return ranges


def run_trajectories(config, base_seed=None):
    """
    Simulate every trajectory of a run-set and collect columnar per-age arrays.

    Trajectory seeds are derived from the global trajectory index, so the output
    does not depend on how the work is split between processes.
    """
    if base_seed is None:
        base_seed = resolve_base_seed(config)
    n = config.num_trajectories

    num_workers = min(config.num_workers, max(1, n // MIN_TRAJECTORIES_PER_WORKER))
    if num_workers <= 1:
        trajectories = simulate_trajectory_range(config, 0, n, base_seed, config.show_progress)
    else:
        futures = []
        with ProcessPoolExecutor(max_workers=num_workers) as executor:
            for start, stop in _worker_ranges(n, num_workers):
                futures.append(executor.submit(simulate_trajectory_range,
                                               config, start, stop, base_seed))
            trajectories = []
            for future in tqdm(futures, desc="Collecting worker results",
                               disable=not config.show_progress):
                trajectories.extend(future.result())

    n_ages = config.num_ages
    n_dependents = len(config.dependents)
    pots = np.empty((n_ages, n))
    incomes = np.empty((n_ages, n))
    retirement_ages = np.empty(n, dtype=int)
    ruin_ages = np.full(n, np.nan)
    gifts_paid = np.zeros((n, n_dependents), dtype=bool)
    initial_regimes = np.full(n, -1, dtype=int)

    for run, trajectory in enumerate(trajectories):
        pots[:, run] = trajectory.pot
        incomes[:, run] = trajectory.income
        retirement_ages[run] = trajectory.retirement_age
        if trajectory.ruin_age is not None:
            ruin_ages[run] = trajectory.ruin_age
        if n_dependents:
            gifts_paid[run, :] = trajectory.gifts_paid
        if trajectory.initial_regime is not None:
            initial_regimes[run] = trajectory.initial_regime

    return RunSetData(
        ages=np.arange(config.start_age, config.terminal_age + 1),
        pots=pots,
        incomes=incomes,
        retirement_ages=retirement_ages,
        ruin_ages=ruin_ages,
        gifts_paid=gifts_paid,
        initial_regimes=initial_regimes,
        base_seed=base_seed,
    )


def run_simulation(config):
    """
    Run a full Monte Carlo run-set and return the aggregate result.

    Raises:
        ValueError: if the configuration is invalid; no simulation work is done
    """
    config.validate()
    base_seed = resolve_base_seed(config)
    logger.info(f"Running {config.num_trajectories} trajectories ({config.return_model} model, "
                f"ages {config.start_age}-{config.terminal_age}, base seed {base_seed})")

    t_start = time.perf_counter()
    data = run_trajectories(config, base_seed)
    result = aggregate_results(config, data)
    logger.info(f"Run-set finished in {time.perf_counter() - t_start:.2f}s: "
                f"survival {result.survival_pct:.1f}%, "
                f"median retirement age {result.median_retirement_age:.1f}")
    return result


def compare_return_models(config):
    """Run the same household under both return models"""
    results = {}
    for model in ('standard', 'regime'):
        model_config = copy.copy(config)
        model_config.return_model = model
        results[model] = run_simulation(model_config)
    return results
