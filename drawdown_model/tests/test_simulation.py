"""
Tests for the trajectory simulator and the run-set driver.
"""

import unittest

import numpy as np

from ..config import DCPot, Dependent, PensionEntry, SimulationConfig
from ..returns import create_return_model
from ..simulation import (
    compare_return_models,
    drawdown,
    run_simulation,
    run_trajectories,
    should_retire,
    simulate_trajectory,
    TrajectoryState,
)

NEVER = 1e15


def make_config(**overrides):
    """Small household without dependents or pensions unless overridden"""
    params = dict(
        num_trajectories=200,
        seed=42,
        state_pensions=[],
        dependents=[],
    )
    params.update(overrides)
    return SimulationConfig(**params)


class TestDrawdownRules(unittest.TestCase):
    """Tests for the retirement trigger and the withdrawal arithmetic."""

    def test_trigger_waits_for_earliest_age(self):
        config = make_config(retirement_threshold=0)
        state = TrajectoryState(0.0, 0)
        self.assertFalse(should_retire(config, state, 56, 1e6, 0.0))
        self.assertTrue(should_retire(config, state, 57, 1e6, 0.0))

    def test_trigger_conditions(self):
        config = make_config(retirement_threshold=1_000_000, income_floor=50_000)
        state = TrajectoryState(0.0, 0)
        self.assertTrue(should_retire(config, state, 58, 1_000_000, 0.0))
        self.assertTrue(should_retire(config, state, 58, 10, 50_000))
        self.assertTrue(should_retire(config, state, 63, 10, 0.0))
        self.assertFalse(should_retire(config, state, 58, 999_999, 49_999))
        state.retire(58)
        self.assertFalse(should_retire(config, state, 63, 10, 0.0))
        state.retire(63)
        self.assertEqual(state.retirement_age, 58)

    def test_withdrawal_clamped_to_floor_and_ceiling(self):
        config = make_config(withdrawal_rate=0.04, income_floor=50_000, income_ceiling=80_000)
        self.assertEqual(drawdown(config, 500_000, 0.0)[0], 50_000)
        self.assertEqual(drawdown(config, 1_500_000, 0.0)[0], 60_000)
        self.assertEqual(drawdown(config, 5_000_000, 0.0)[0], 80_000)

    def test_pensions_count_towards_target(self):
        config = make_config(withdrawal_rate=0.04, income_floor=50_000, income_ceiling=80_000)
        withdrawal, income, surplus = drawdown(config, 1_500_000, 25_000)
        self.assertEqual(withdrawal, 35_000)
        self.assertEqual(income, 60_000)
        self.assertEqual(surplus, 0.0)
        withdrawal, income, surplus = drawdown(config, 1_500_000, 100_000)
        self.assertEqual(withdrawal, 0.0)
        self.assertEqual(income, 100_000)
        self.assertEqual(surplus, 40_000)

    def test_withdrawal_limited_by_pot(self):
        config = make_config(income_floor=50_000, income_ceiling=80_000)
        withdrawal, income, _ = drawdown(config, 20_000, 10_000)
        self.assertEqual(withdrawal, 20_000)
        self.assertEqual(income, 30_000)


class TestTrajectory(unittest.TestCase):
    """Tests for a single simulated trajectory."""

    def run_one(self, config, index=0, base_seed=42):
        return simulate_trajectory(config, create_return_model(config), index, base_seed)

    def test_index_zero_holds_initial_pot(self):
        config = make_config(starting_pot=777_777)
        trajectory = self.run_one(config)
        self.assertEqual(trajectory.pot[0], 777_777)
        self.assertEqual(len(trajectory.pot), config.num_ages)
        self.assertEqual(trajectory.income[0], 0.0)

    def test_same_index_same_trajectory(self):
        config = make_config()
        a = self.run_one(config, index=5)
        b = self.run_one(config, index=5)
        np.testing.assert_array_equal(a.pot, b.pot)
        c = self.run_one(config, index=6)
        self.assertFalse(np.array_equal(a.pot, c.pot))

    def test_linear_accumulation(self):
        config = make_config(starting_pot=0, annual_contribution=10_000,
                             real_arithmetic_mean=0.0, volatility=1e-9,
                             retirement_threshold=NEVER)
        trajectory = self.run_one(config)
        for n in range(1, 12):
            self.assertAlmostEqual(trajectory.pot[n], n * 10_000, delta=1.0)

    def test_income_zero_before_retirement(self):
        config = make_config(retirement_threshold=NEVER)
        trajectory = self.run_one(config)
        retirement_index = trajectory.retirement_age - config.start_age
        self.assertEqual(trajectory.retirement_age, config.latest_retirement_age)
        self.assertTrue(np.all(trajectory.income[:retirement_index] == 0.0))
        self.assertGreater(trajectory.income[retirement_index], 0.0)

    def test_pot_never_negative(self):
        config = make_config(starting_pot=50_000, annual_contribution=0,
                             real_arithmetic_mean=0.0, volatility=1e-9,
                             retirement_threshold=0, income_floor=100_000, income_ceiling=100_000,
                             dependents=[Dependent(university_start_age=58)])
        trajectory = self.run_one(config)
        self.assertTrue(np.all(trajectory.pot >= 0.0))
        self.assertEqual(trajectory.ruin_age, 57)

    def test_fee_after_retirement_causes_ruin(self):
        config = make_config(starting_pot=20_000, annual_contribution=0,
                             real_arithmetic_mean=0.0, volatility=1e-9,
                             retirement_threshold=0, income_floor=0, income_ceiling=0,
                             dependents=[Dependent(university_start_age=60)],
                             university_fee_per_year=30_000, university_years=1)
        trajectory = self.run_one(config)
        self.assertEqual(trajectory.retirement_age, 57)
        self.assertAlmostEqual(trajectory.pot[59 - 45], 20_000, delta=1.0)
        self.assertEqual(trajectory.ruin_age, 60)
        self.assertEqual(trajectory.pot[60 - 45], 0.0)

    def test_empty_pot_before_retirement_is_not_ruin(self):
        config = make_config(starting_pot=10_000, annual_contribution=0,
                             real_arithmetic_mean=0.0, volatility=1e-9,
                             retirement_threshold=NEVER, income_floor=50_000, income_ceiling=80_000,
                             dependents=[Dependent(university_start_age=50)],
                             university_fee_per_year=30_000, university_years=4)
        trajectory = self.run_one(config)
        self.assertEqual(trajectory.pot[50 - 45], 0.0)
        self.assertEqual(trajectory.retirement_age, 63)
        # first retired year with an empty pot
        self.assertEqual(trajectory.ruin_age, 63)

    def test_university_fees_reduce_pot(self):
        base = dict(starting_pot=500_000, annual_contribution=0, real_arithmetic_mean=0.0,
                    volatility=1e-9, retirement_threshold=NEVER, university_fee_per_year=9_000,
                    university_years=4)
        without = self.run_one(make_config(**base))
        with_fees = self.run_one(make_config(dependents=[Dependent(university_start_age=50)], **base))
        index = 55 - 45
        self.assertAlmostEqual(without.pot[index] - with_fees.pot[index], 36_000, delta=1.0)
        self.assertAlmostEqual(without.pot[5] - with_fees.pot[5], 9_000, delta=1.0)

    def test_gift_paid_once_when_pot_allows(self):
        config = make_config(starting_pot=2_000_000, annual_contribution=0, retirement_threshold=0,
                             real_arithmetic_mean=0.0, volatility=1e-9,
                             income_floor=0, income_ceiling=0,
                             dependents=[Dependent(gift_age=60), Dependent(gift_age=61)],
                             gift_amount=100_000, gift_min_pot=0)
        trajectory = self.run_one(config)
        self.assertEqual(trajectory.gifts_paid, (True, True))
        self.assertAlmostEqual(trajectory.pot[-1], 1_800_000, delta=1.0)

    def test_gift_skipped_below_minimum_pot(self):
        config = make_config(starting_pot=100_000, retirement_threshold=0,
                             dependents=[Dependent(gift_age=60)],
                             gift_amount=50_000, gift_min_pot=10_000_000)
        trajectory = self.run_one(config)
        self.assertEqual(trajectory.gifts_paid, (False,))

    def test_gift_not_paid_before_retirement(self):
        config = make_config(starting_pot=2_000_000, retirement_threshold=NEVER,
                             dependents=[Dependent(gift_age=50)], gift_min_pot=0)
        trajectory = self.run_one(config)
        self.assertEqual(trajectory.gifts_paid, (False,))

    def test_surplus_pension_switch(self):
        base = dict(starting_pot=200_000, retirement_threshold=0, income_floor=10_000,
                    income_ceiling=20_000, db_pensions=[PensionEntry(58, 100_000)])
        off = self.run_one(make_config(**base))
        on = self.run_one(make_config(surplus_pension_to_pot=True, **base))
        index = 60 - 45
        self.assertEqual(off.income[index], 100_000)
        self.assertLessEqual(on.income[index], 20_000)
        self.assertGreater(on.pot[-1], off.pot[-1])

    def test_dc_contributions(self):
        base = dict(starting_pot=0, annual_contribution=0, real_arithmetic_mean=0.0,
                    volatility=1e-9, retirement_threshold=NEVER, income_floor=0, income_ceiling=0)
        until_retirement = self.run_one(make_config(
            dc_pots=[DCPot(current_value=1_000, annual_contribution=2_000)], **base))
        # zero pension income meets a zero floor, so retirement is at 57: ages 46..56
        self.assertAlmostEqual(until_retirement.pot[-1], 1_000 + 11 * 2_000, delta=1.0)

        fixed_age = self.run_one(make_config(
            dc_pots=[DCPot(annual_contribution=2_000, contributions_until_retirement=False,
                           contributions_end_age=70)], **base))
        # ages 46..69 regardless of retirement
        self.assertAlmostEqual(fixed_age.pot[-1], 24 * 2_000, delta=1.0)

    def test_regime_trajectory_records_initial_regime(self):
        config = make_config(return_model='regime', initial_regime='bear')
        trajectory = self.run_one(config)
        self.assertEqual(trajectory.initial_regime, 1)
        self.assertIsNone(self.run_one(make_config()).initial_regime)


class TestRunSimulation(unittest.TestCase):
    """Tests for whole run-sets."""

    def test_reproducibility(self):
        a = run_simulation(make_config(num_trajectories=300, seed=7))
        b = run_simulation(make_config(num_trajectories=300, seed=7))
        for p in a.pot_percentiles:
            np.testing.assert_array_equal(a.pot_percentiles[p], b.pot_percentiles[p])
        self.assertEqual(a.survival_pct, b.survival_pct)
        self.assertEqual(a.median_retirement_age, b.median_retirement_age)

    def test_seed_sensitivity(self):
        a = run_simulation(make_config(num_trajectories=300, seed=1))
        b = run_simulation(make_config(num_trajectories=300, seed=2))
        mid = len(a.ages) // 2
        self.assertTrue(a.ruin_count != b.ruin_count
                        or a.median_retirement_age != b.median_retirement_age
                        or a.median_pot[mid] != b.median_pot[mid])

    def test_seed_none_records_drawn_seed(self):
        result = run_simulation(make_config(seed=None, num_trajectories=100))
        self.assertIsInstance(result.seed, int)
        self.assertGreaterEqual(result.seed, 0)

    def test_invalid_config_raises_before_running(self):
        with self.assertRaises(ValueError):
            run_simulation(make_config(num_trajectories=5))

    def test_forced_earliest_retirement(self):
        result = run_simulation(make_config(retirement_threshold=1, num_trajectories=500))
        self.assertTrue(np.all(result.retirement_ages == 57))
        self.assertEqual(result.median_retirement_age, 57)
        self.assertEqual(result.retirement_age_counts[57], 500)

    def test_forced_latest_retirement(self):
        result = run_simulation(make_config(retirement_threshold=NEVER, income_floor=50_000,
                                            state_pensions=[PensionEntry(70, 10_000)]))
        self.assertTrue(np.all(result.retirement_ages == 63))
        self.assertEqual(result.retirement_age_counts[63], 200)
        self.assertEqual(sum(result.retirement_age_counts.values()), 200)

    def test_pension_triggered_retirement(self):
        for starting_pot in (10_000, 5_000_000):
            result = run_simulation(make_config(
                starting_pot=starting_pot, retirement_threshold=NEVER,
                earliest_retirement_age=57, latest_retirement_age=68, income_floor=50_000,
                db_pensions=[PensionEntry(62, 60_000)]))
            self.assertTrue(np.all(result.retirement_ages == 62))

    def test_low_volatility_convergence(self):
        result = run_simulation(make_config(starting_pot=500_000, annual_contribution=0,
                                            real_arithmetic_mean=0.05, volatility=1e-4,
                                            retirement_threshold=NEVER))
        for n in (1, 5, 10):
            expected = 500_000 * 1.05 ** n
            self.assertAlmostEqual(result.pot_percentiles[50][n] / expected, 1.0, delta=0.001)
            spread = result.pot_percentiles[95][n] - result.pot_percentiles[5][n]
            self.assertLess(spread / expected, 0.005)

    def test_universal_ruin(self):
        result = run_simulation(make_config(starting_pot=10_000, annual_contribution=0,
                                            retirement_threshold=0, income_floor=1_000_000,
                                            income_ceiling=1_000_000))
        self.assertEqual(result.ruin_count, result.num_trajectories)
        self.assertEqual(result.survival_pct, 0.0)
        self.assertEqual(result.earliest_ruin_age, 57)

    def test_no_withdrawal_survival(self):
        result = run_simulation(make_config(income_floor=0, income_ceiling=0))
        self.assertEqual(result.survival_pct, 100.0)
        self.assertEqual(result.ruin_count, 0)
        self.assertIsNone(result.earliest_ruin_age)
        self.assertIsNone(result.median_ruin_age)

    def test_index_zero_exactness(self):
        result = run_simulation(make_config(starting_pot=777_777,
                                            dc_pots=[DCPot(current_value=22_223)]))
        for band in result.pot_percentiles.values():
            self.assertEqual(band[0], 800_000)

    def test_gift_tallies_add_up(self):
        config = make_config(starting_pot=900_000, dependents=[Dependent(58, 65), Dependent(60, 70)])
        result = run_simulation(config)
        self.assertEqual(result.gift_all_count + result.gift_some_count + result.gift_none_count,
                         result.num_trajectories)

    def test_no_gifts_configured_counts_as_none(self):
        result = run_simulation(make_config(dependents=[Dependent(university_start_age=58)]))
        self.assertEqual(result.gift_none_count, result.num_trajectories)
        self.assertEqual(result.gift_all_count, 0)

    def test_regime_run_records_initial_regimes(self):
        config = make_config(return_model='regime', num_trajectories=2000)
        result = run_simulation(config)
        bull_share = np.mean(result.initial_regimes == 0)
        self.assertAlmostEqual(bull_share, 0.13 / 0.17, delta=0.04)
        standard = run_simulation(make_config())
        self.assertTrue(np.all(standard.initial_regimes == -1))

    def test_parallel_matches_sequential(self):
        sequential = run_trajectories(make_config(num_trajectories=250), base_seed=99)
        parallel = run_trajectories(make_config(num_trajectories=250, num_workers=2), base_seed=99)
        np.testing.assert_array_equal(sequential.pots, parallel.pots)
        np.testing.assert_array_equal(sequential.incomes, parallel.incomes)
        np.testing.assert_array_equal(sequential.retirement_ages, parallel.retirement_ages)
        np.testing.assert_array_equal(sequential.ruin_ages, parallel.ruin_ages)

    def test_compare_return_models(self):
        config = make_config(num_trajectories=150)
        results = compare_return_models(config)
        self.assertEqual(set(results), {'standard', 'regime'})
        self.assertEqual(results['regime'].return_model, 'regime')
        self.assertEqual(results['standard'].return_model, 'standard')
        self.assertEqual(config.return_model, 'standard')

    def test_law_of_large_numbers(self):
        def survival(num_trajectories, seed):
            return run_simulation(make_config(
                num_trajectories=num_trajectories, seed=seed, starting_pot=300_000,
                annual_contribution=10_000, retirement_threshold=500_000,
                earliest_retirement_age=57, latest_retirement_age=68,
                income_floor=70_000, income_ceiling=200_000, withdrawal_rate=0.04,
                real_arithmetic_mean=0.04, volatility=0.15,
                state_pensions=[PensionEntry(67, 10_000)], gift_amount=0)).survival_pct

        seeds = [s * 10_000_000 for s in range(1, 9)]
        small = [survival(100, seed) for seed in seeds]
        large = [survival(5000, seed) for seed in seeds]
        self.assertGreater(np.std(small), 2 * np.std(large))


if __name__ == '__main__':
    unittest.main()
