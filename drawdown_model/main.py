"""
Main Execution Module

This module is the command-line entry point: it builds a SimulationConfig from
the command line, runs one or both return models, prints the results as rich
tables and optionally exports them to CSV.
"""

import argparse
import logging

import pandas as pd

from .config import SimulationConfig, REGIME_PRESETS
from .regime import describe_regimes
from .simulation import run_simulation, compare_return_models
from .utils import export_to_csv, format_age, format_money, print_rich_table

logger = logging.getLogger(__name__)

TABLE_AGE_STEP = 5


def build_parser():
    parser = argparse.ArgumentParser(description="Monte Carlo Pension Drawdown Simulation")
    parser.add_argument('--runs', type=int, default=None,
                        help='Number of trajectories (at least 100)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Base seed; omit to use the configured default')
    parser.add_argument('--random-seed', action='store_true',
                        help='Draw a fresh base seed instead of the configured one')
    parser.add_argument('--model', choices=['standard', 'regime', 'both'], default='standard',
                        help='Return model to simulate')
    parser.add_argument('--preset', choices=sorted(REGIME_PRESETS), default='hardy',
                        help='Regime-switching parameter preset')
    parser.add_argument('--workers', type=int, default=1,
                        help='Number of worker processes')
    parser.add_argument('--csv', action='store_true',
                        help='Export per-age bands and the summary to CSV')
    parser.add_argument('--output-dir', default=None,
                        help='Directory for CSV output')
    parser.add_argument('--progress', action='store_true',
                        help='Show a progress bar')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    return parser


def config_from_args(args):
    """Apply command-line options on top of the default configuration"""
    config = SimulationConfig()
    if args.runs is not None:
        config.num_trajectories = args.runs
    if args.random_seed:
        config.seed = None
    elif args.seed is not None:
        config.seed = args.seed
    if args.model != 'both':
        config.return_model = args.model
    config.apply_regime_preset(args.preset)
    config.num_workers = args.workers
    config.show_progress = args.progress
    config.generate_csv_summary = args.csv
    if args.output_dir:
        config.output_directory = args.output_dir
    return config


def display_configuration(config, model):
    """Print the household and return-model assumptions"""
    print(f"[INFO] Household: age {config.current_age} to {config.terminal_age}, "
          f"starting pot {format_money(config.initial_pot)}, "
          f"contribution {format_money(config.annual_contribution)}/yr")
    print(f"  Retirement: threshold {format_money(config.retirement_threshold)}, "
          f"ages {config.earliest_retirement_age}-{config.latest_retirement_age}")
    print(f"  Income: {config.withdrawal_rate * 100:.1f}% of pot, "
          f"floor {format_money(config.income_floor)}, ceiling {format_money(config.income_ceiling)}")
    if model in ('standard', 'both'):
        print(f"[INFO] Standard model: mean {config.real_arithmetic_mean * 100:.1f}%, "
              f"volatility {config.volatility * 100:.1f}%")
    if model in ('regime', 'both'):
        stats = describe_regimes(config.transition_matrix, config.regimes)
        bull, bear = config.regimes
        print(f"[INFO] Regime model: bull {bull.mean * 100:.1f}%/{bull.volatility * 100:.1f}%, "
              f"bear {bear.mean * 100:.1f}%/{bear.volatility * 100:.1f}%, "
              f"initial regime {config.initial_regime}")
        print(f"  Equilibrium: {stats['equilibrium_bull'] * 100:.1f}% bull / "
              f"{stats['equilibrium_bear'] * 100:.1f}% bear, "
              f"avg bull run {stats['avg_bull_years']:.1f} yrs, "
              f"avg bear run {stats['avg_bear_years']:.1f} yrs, "
              f"weighted mean {stats['weighted_mean_return'] * 100:.2f}%")
    print()


def build_summary_table(results):
    """Headline statistics, one column per return model"""
    rows = [
        ('Trajectories', lambda r: f"{r.num_trajectories:,}"),
        ('Base seed', lambda r: str(r.seed)),
        ('Survival', lambda r: f"{r.survival_pct:.1f}%"),
        ('Ruined trajectories', lambda r: f"{r.ruin_count:,}"),
        ('Median ruin age', lambda r: format_age(r.median_ruin_age)),
        ('Earliest ruin age', lambda r: format_age(r.earliest_ruin_age)),
        ('Median retirement age', lambda r: format_age(r.median_retirement_age)),
        ('Mean retirement age', lambda r: format_age(r.mean_retirement_age)),
        ('Median pot at retirement', lambda r: format_money(r.median_pot_at_retirement)),
        ('Median estate', lambda r: format_money(r.median_estate)),
        ('Mean estate', lambda r: format_money(r.estate_mean)),
        ('All gifts paid', lambda r: f"{r.gift_all_count:,}"),
        ('Some gifts paid', lambda r: f"{r.gift_some_count:,}"),
        ('No gifts paid', lambda r: f"{r.gift_none_count:,}"),
    ]
    data = {'Metric': [label for label, _ in rows]}
    for name, result in results.items():
        data[name.capitalize()] = [fmt(result) for _, fmt in rows]
    return pd.DataFrame(data)


def build_band_table(result, step=TABLE_AGE_STEP):
    """Pot and income percentile bands every few years, plus the terminal age"""
    df = result.to_dataframe()
    mask = ((df['Age'] - result.start_age) % step == 0) | (df.index == len(df) - 1)
    df = df[mask].copy()
    display = pd.DataFrame({'Age': df['Age']})
    for column in df.columns:
        if column.startswith('Pot') or column.startswith('Income'):
            display[column] = df[column].apply(format_money)
    display['Retired'] = df['Retired Fraction'].apply(lambda x: f"{x * 100:.0f}%")
    return display


def build_retirement_age_table(result):
    n = result.num_trajectories
    return pd.DataFrame({
        'Age': list(result.retirement_age_counts),
        'Trajectories': [f"{count:,}" for count in result.retirement_age_counts.values()],
        'Share': [f"{count / n * 100:.1f}%" for count in result.retirement_age_counts.values()],
    })


def display_results(results):
    """Print every result table"""
    print_rich_table(build_summary_table(results), "Pension Drawdown Monte Carlo Summary")
    for name, result in results.items():
        label = name.capitalize()
        print_rich_table(build_band_table(result), f"{label} Model: Pot and Income Percentiles by Age")
        print_rich_table(build_retirement_age_table(result), f"{label} Model: Retirement Age Distribution")
        pot_at_retirement = pd.DataFrame({
            'Percentile': [f"P{p}" for p in result.pot_at_retirement_percentiles],
            'Pot at Retirement': [format_money(v) for v in result.pot_at_retirement_percentiles.values()],
        })
        print_rich_table(pot_at_retirement, f"{label} Model: Pot at Retirement")


def export_results(results, config):
    """Write per-age bands and the headline summary for each model"""
    summaries = []
    for name, result in results.items():
        export_to_csv(result.to_dataframe(), f'{name}_percentiles_by_age.csv',
                      config.output_directory, subdirectory='Percentiles')
        summaries.append(result.summary())
    export_to_csv(summaries, 'summary.csv', config.output_directory)


def main(argv=None):
    """Main execution function - run this to start the simulation"""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    print("\n" + "=" * 70)
    print("PENSION DRAWDOWN MONTE CARLO SIMULATION")
    print("=" * 70 + "\n")

    try:
        config = config_from_args(args)
        display_configuration(config, args.model)
        if args.model == 'both':
            results = compare_return_models(config)
        else:
            results = {config.return_model: run_simulation(config)}
    except ValueError as e:
        logger.error(f"An error occurred: {e}")
        return 1

    display_results(results)
    if config.generate_csv_summary:
        export_results(results, config)

    logger.info("[OK] Simulation completed successfully")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
