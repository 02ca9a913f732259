"""
Monte Carlo run-set aggregation and analysis.

This module turns the columnar per-age pot and income matrices of a run-set into
percentile bands, retirement and ruin statistics, gift tallies and estate
figures, and packages them in an immutable SimulationResult.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Standard percentile levels reported for pot, income and estate
POT_PERCENTILES = (5, 10, 25, 50, 75, 95)
RETIREMENT_POT_PERCENTILES = (5, 25, 50, 75, 95)


def percentile(sorted_values, p):
    """
    Linear-interpolation percentile of an already sorted sequence.

    The value sits at fractional index p/100 * (n - 1) and is interpolated between
    the neighbouring order statistics. An empty sequence gives 0.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = p / 100.0 * (n - 1)
    lower = int(math.floor(index))
    upper = min(lower + 1, n - 1)
    fraction = index - lower
    return float(sorted_values[lower] + fraction * (sorted_values[upper] - sorted_values[lower]))


def percentile_bands(matrix, percentiles=POT_PERCENTILES):
    """
    Per-row percentiles of an (n_ages, n_trajectories) matrix.

    The matrix is sorted in place along the trajectory axis, so callers must pull
    any per-trajectory values out of it first.

    Returns:
        Dict mapping each percentile to an array with one value per row
    """
    matrix.sort(axis=1)
    n_rows, n = matrix.shape
    bands = {}
    for p in percentiles:
        if n == 0:
            bands[p] = np.zeros(n_rows)
            continue
        index = p / 100.0 * (n - 1)
        lower = int(math.floor(index))
        upper = min(lower + 1, n - 1)
        fraction = index - lower
        bands[p] = matrix[:, lower] + fraction * (matrix[:, upper] - matrix[:, lower])
    return bands


def _read_only(array):
    array = np.asarray(array)
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class SimulationResult:
    """Aggregate statistics of one run-set; produced once and never modified"""
    ages: np.ndarray
    start_age: int
    num_trajectories: int
    seed: int
    return_model: str

    pot_percentiles: Dict[int, np.ndarray]
    income_percentiles: Dict[int, np.ndarray]

    retirement_ages: np.ndarray
    retirement_age_counts: Dict[int, int]
    median_retirement_age: float
    mean_retirement_age: float
    retired_fraction: np.ndarray

    ruin_ages: np.ndarray
    ruin_count: int
    survival_pct: float
    median_ruin_age: Optional[float]
    earliest_ruin_age: Optional[int]

    pot_at_retirement_percentiles: Dict[int, float]
    estate_percentiles: Dict[int, float]
    estate_mean: float

    gift_all_count: int
    gift_some_count: int
    gift_none_count: int

    initial_regimes: np.ndarray

    @property
    def median_pot(self):
        return self.pot_percentiles[50]

    @property
    def median_pot_at_retirement(self):
        return self.pot_at_retirement_percentiles[50]

    @property
    def median_estate(self):
        return self.estate_percentiles[50]

    def summary(self):
        """Headline scalars, suitable for a table or a CSV row"""
        return {
            'return_model': self.return_model,
            'num_trajectories': self.num_trajectories,
            'seed': self.seed,
            'survival_pct': self.survival_pct,
            'ruin_count': self.ruin_count,
            'median_ruin_age': self.median_ruin_age,
            'earliest_ruin_age': self.earliest_ruin_age,
            'median_retirement_age': self.median_retirement_age,
            'mean_retirement_age': self.mean_retirement_age,
            'median_pot_at_retirement': self.median_pot_at_retirement,
            'median_estate': self.median_estate,
            'estate_mean': self.estate_mean,
            'gift_all_count': self.gift_all_count,
            'gift_some_count': self.gift_some_count,
            'gift_none_count': self.gift_none_count,
        }

    def to_dataframe(self):
        """Per-age table of pot and income percentile bands and the retired share"""
        data = {'Age': self.ages}
        for p, band in self.pot_percentiles.items():
            data[f'Pot P{p}'] = band
        for p, band in self.income_percentiles.items():
            data[f'Income P{p}'] = band
        data['Retired Fraction'] = self.retired_fraction
        return pd.DataFrame(data)


def _gift_tallies(dependents, gifts_paid):
    n = gifts_paid.shape[0]
    gift_columns = [c for c, dependent in enumerate(dependents) if dependent.gets_gift]
    if not gift_columns:
        return 0, 0, n
    paid = gifts_paid[:, gift_columns].sum(axis=1)
    all_count = int(np.sum(paid == len(gift_columns)))
    none_count = int(np.sum(paid == 0))
    return all_count, n - all_count - none_count, none_count


def aggregate_results(config, data):
    """
    Reduce a run-set's columnar output to a SimulationResult.

    Parameters:
    -----------
    config : SimulationConfig
        Configuration the run-set was produced with
    data : RunSetData
        Columnar output of run_trajectories; its pot and income matrices are
        sorted in place

    Returns:
    --------
    SimulationResult
    """
    n = data.pots.shape[1]
    columns = np.arange(n)

    # Per-trajectory values first; the percentile pass reorders each row
    retirement_rows = data.retirement_ages - config.start_age
    pot_at_retirement = np.sort(data.pots[retirement_rows, columns])
    estates = np.sort(data.pots[-1, :])

    pot_bands = percentile_bands(data.pots, POT_PERCENTILES)
    income_bands = percentile_bands(data.incomes, POT_PERCENTILES)

    sorted_retirement_ages = np.sort(data.retirement_ages)
    retirement_age_counts = {
        age: int(np.sum(data.retirement_ages == age))
        for age in range(config.earliest_retirement_age, config.latest_retirement_age + 1)
    }
    retired_fraction = np.array([np.mean(data.retirement_ages <= age) for age in data.ages])

    ruined = np.sort(data.ruin_ages[~np.isnan(data.ruin_ages)])
    ruin_count = len(ruined)
    gift_all, gift_some, gift_none = _gift_tallies(config.dependents, data.gifts_paid)

    logger.debug(f"Aggregated {n} trajectories: {ruin_count} ruined, "
                 f"gifts all/some/none = {gift_all}/{gift_some}/{gift_none}")

    return SimulationResult(
        ages=_read_only(data.ages),
        start_age=config.start_age,
        num_trajectories=n,
        seed=data.base_seed,
        return_model=config.return_model,
        pot_percentiles={p: _read_only(band) for p, band in pot_bands.items()},
        income_percentiles={p: _read_only(band) for p, band in income_bands.items()},
        retirement_ages=_read_only(data.retirement_ages),
        retirement_age_counts=retirement_age_counts,
        median_retirement_age=percentile(sorted_retirement_ages, 50),
        mean_retirement_age=float(np.mean(data.retirement_ages)) if n else 0.0,
        retired_fraction=_read_only(retired_fraction),
        ruin_ages=_read_only(data.ruin_ages),
        ruin_count=ruin_count,
        survival_pct=100.0 * (1.0 - ruin_count / n) if n else 0.0,
        median_ruin_age=percentile(ruined, 50) if ruin_count else None,
        earliest_ruin_age=int(ruined[0]) if ruin_count else None,
        pot_at_retirement_percentiles={p: percentile(pot_at_retirement, p)
                                       for p in RETIREMENT_POT_PERCENTILES},
        estate_percentiles={p: percentile(estates, p) for p in POT_PERCENTILES},
        estate_mean=float(np.mean(estates)) if n else 0.0,
        gift_all_count=gift_all,
        gift_some_count=gift_some,
        gift_none_count=gift_none,
        initial_regimes=_read_only(data.initial_regimes),
    )
