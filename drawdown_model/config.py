"""
Configuration classes for the Pension Drawdown Simulation
"""
import logging
import numbers
from dataclasses import dataclass
from typing import Optional

from .regime import validate_transition_matrix

logger = logging.getLogger(__name__)

TERMINAL_AGE = 90
MIN_TRAJECTORIES = 100
MAX_DEPENDENTS = 4

RETURN_MODELS = ('standard', 'regime')
INITIAL_REGIMES = ('bull', 'bear', 'stationary')

# Presets tuned so the equilibrium-weighted arithmetic mean is close to the
# standard model's 6% default.
REGIME_PRESETS = {
    'hardy': {
        'bull_mean': 0.095, 'bull_vol': 0.12, 'bull_stay': 0.96,
        'bear_mean': -0.05, 'bear_vol': 0.25, 'bear_stay': 0.87,
    },
    'conservative': {
        'bull_mean': 0.08, 'bull_vol': 0.10, 'bull_stay': 0.95,
        'bear_mean': -0.02, 'bear_vol': 0.20, 'bear_stay': 0.85,
    },
}


@dataclass(frozen=True)
class RegimeParams:
    """Arithmetic mean and volatility of annual real returns in one regime."""
    mean: float
    volatility: float


@dataclass(frozen=True)
class PensionEntry:
    """A fixed annual income starting at a given age (state or defined-benefit)."""
    start_age: int
    annual_amount: float


@dataclass(frozen=True)
class DCPot:
    """Partner defined-contribution pot, merged into the household pot at the start.

    Attributes:
        current_value: Value today, added to the starting pot
        access_age: Age at which the funds become available (descriptive only)
        annual_contribution: Amount paid in each year while contributions are active
        contributions_until_retirement: If True, contributions stop when the household retires
        contributions_end_age: Otherwise, contributions are paid while age < this age
    """
    current_value: float = 0.0
    access_age: int = 57
    annual_contribution: float = 0.0
    contributions_until_retirement: bool = True
    contributions_end_age: int = 65

    def contributes_at(self, age, retired):
        if self.contributions_until_retirement:
            return not retired
        return age < self.contributions_end_age


@dataclass(frozen=True)
class Dependent:
    """A dependent with an optional university window and an optional one-off gift.

    Ages are the household's own age, not the dependent's.
    """
    university_start_age: Optional[int] = None
    gift_age: Optional[int] = None

    @property
    def goes_to_university(self):
        return self.university_start_age is not None

    @property
    def gets_gift(self):
        return self.gift_age is not None

    def at_university(self, age, university_years):
        if self.university_start_age is None:
            return False
        return self.university_start_age <= age < self.university_start_age + university_years


class SimulationConfig:
    """Configuration class for simulation parameters"""
    def __init__(self, **overrides):
        self.current_age = 45
        self.terminal_age = TERMINAL_AGE
        self.starting_pot = 800_000
        self.annual_contribution = 40_000
        self.retirement_threshold = 1_200_000  # Pot size that triggers retirement
        self.earliest_retirement_age = 57
        self.latest_retirement_age = 63  # Forced retirement at this age
        self.income_floor = 50_000
        self.income_ceiling = 80_000
        self.withdrawal_rate = 0.04  # Target income as a fraction of the pot (inc. pensions)

        # Return model: 'standard' (i.i.d. lognormal) or 'regime' (two-state Markov)
        self.return_model = 'standard'
        self.real_arithmetic_mean = 0.06
        self.volatility = 0.16
        self.regimes = None
        self.transition_matrix = None
        self.initial_regime = 'stationary'  # 'bull', 'bear' or 'stationary'
        self.apply_regime_preset('hardy')

        # Monte Carlo sizes
        self.num_trajectories = 2000
        self.seed = 42  # None draws a fresh base seed for each run-set

        # Pensions, merged into one pension bucket per year
        self.state_pensions = [
            PensionEntry(start_age=68, annual_amount=12_000),
            PensionEntry(start_age=72, annual_amount=25_000),
        ]
        self.db_pensions = []
        self.dc_pots = []

        # Dependents (up to four); fee, duration and gift terms are shared
        self.dependents = [
            Dependent(university_start_age=58, gift_age=70),
            Dependent(university_start_age=60, gift_age=72),
        ]
        self.university_fee_per_year = 9_000
        self.university_years = 4
        self.gift_amount = 300_000
        self.gift_min_pot = 750_000  # Gift is only paid if the pot is at least this large

        # Add pension income above the target income back into the pot
        self.surplus_pension_to_pot = False

        self.num_workers = 1  # number of worker processes for the trajectory loop
        self.show_progress = False
        self.generate_csv_summary = False
        self.output_directory = 'Drawdown Outputs'

        for name, value in overrides.items():
            if not hasattr(self, name):
                raise AttributeError(f"Unknown configuration parameter: {name}")
            setattr(self, name, value)

    def apply_regime_preset(self, name):
        """Load regime means, volatilities and stay probabilities from a named preset"""
        if name not in REGIME_PRESETS:
            raise ValueError(f"Unknown regime preset '{name}'. Available: {sorted(REGIME_PRESETS)}")
        preset = REGIME_PRESETS[name]
        self.regimes = [
            RegimeParams(preset['bull_mean'], preset['bull_vol']),
            RegimeParams(preset['bear_mean'], preset['bear_vol']),
        ]
        self.transition_matrix = [
            [preset['bull_stay'], 1.0 - preset['bull_stay']],
            [1.0 - preset['bear_stay'], preset['bear_stay']],
        ]

    @property
    def start_age(self):
        return self.current_age

    @property
    def num_ages(self):
        return self.terminal_age - self.current_age + 1

    @property
    def initial_pot(self):
        """Starting pot with every partner DC pot merged in"""
        return float(self.starting_pot) + sum(float(dc.current_value) for dc in self.dc_pots)

    def pension_income_at(self, age):
        """Combined state and defined-benefit pension income available at an age"""
        total = 0.0
        for pension in list(self.state_pensions) + list(self.db_pensions):
            if age >= pension.start_age:
                total += pension.annual_amount
        return total

    def validate(self):
        """Validate configuration parameters"""
        errors = []
        if not (0 <= self.current_age < self.terminal_age):
            errors.append(f"Current age ({self.current_age}) must be between 0 and terminal age ({self.terminal_age})")
        if not (self.earliest_retirement_age <= self.latest_retirement_age <= self.terminal_age):
            errors.append(f"Retirement age range ({self.earliest_retirement_age}-{self.latest_retirement_age}) "
                          f"must be ordered and end no later than terminal age ({self.terminal_age})")
        if self.latest_retirement_age <= self.current_age:
            errors.append(f"latest_retirement_age ({self.latest_retirement_age}) must be greater than "
                          f"current_age ({self.current_age})")
        if self.num_trajectories < MIN_TRAJECTORIES:
            errors.append(f"num_trajectories ({self.num_trajectories}) must be at least {MIN_TRAJECTORIES}")
        if self.seed is not None and (not isinstance(self.seed, numbers.Integral) or self.seed < 0):
            errors.append(f"seed must be None or a non-negative integer, got {self.seed!r}")
        if not (0.0 <= self.withdrawal_rate <= 1.0):
            errors.append(f"Withdrawal rate ({self.withdrawal_rate}) must be between 0 and 1")
        if self.income_floor < 0 or self.income_floor > self.income_ceiling:
            errors.append(f"Income floor ({self.income_floor}) must be non-negative and "
                          f"not exceed income ceiling ({self.income_ceiling})")
        for name in ('starting_pot', 'annual_contribution', 'retirement_threshold',
                     'university_fee_per_year', 'gift_amount', 'gift_min_pot'):
            if getattr(self, name) < 0:
                errors.append(f"{name} cannot be negative")

        if self.return_model == 'standard':
            if self.volatility <= 0:
                errors.append(f"Volatility must be positive, got {self.volatility}")
            if self.real_arithmetic_mean <= -1:
                errors.append(f"Arithmetic mean return must exceed -100%, got {self.real_arithmetic_mean}")
        elif self.return_model == 'regime':
            errors.extend(self._validate_regimes())
        else:
            errors.append(f"return_model must be one of {RETURN_MODELS}, got {self.return_model!r}")

        for pension in list(self.state_pensions) + list(self.db_pensions):
            if pension.annual_amount < 0:
                errors.append(f"Pension amount cannot be negative: {pension}")
        for dc in self.dc_pots:
            if dc.current_value < 0 or dc.annual_contribution < 0:
                errors.append(f"DC pot values cannot be negative: {dc}")
        if len(self.dependents) > MAX_DEPENDENTS:
            errors.append(f"At most {MAX_DEPENDENTS} dependents are supported, got {len(self.dependents)}")
        if self.university_years < 1:
            errors.append(f"university_years ({self.university_years}) must be at least 1")
        if self.num_workers < 1:
            errors.append(f"num_workers ({self.num_workers}) must be at least 1")

        if errors:
            raise ValueError("Parameter validation failed:\n" + "\n".join(errors))
        logger.info("All parameters validated successfully")

    def _validate_regimes(self):
        errors = []
        if self.regimes is None or len(self.regimes) != 2:
            errors.append("Regime-switching model needs exactly two regimes (bull, bear)")
        else:
            for label, regime in zip(('bull', 'bear'), self.regimes):
                if regime.volatility <= 0:
                    errors.append(f"{label} regime volatility must be positive, got {regime.volatility}")
                if regime.mean <= -1:
                    errors.append(f"{label} regime mean must exceed -100%, got {regime.mean}")
        matrix_errors = validate_transition_matrix(self.transition_matrix)
        errors.extend(matrix_errors)
        if self.initial_regime not in INITIAL_REGIMES:
            errors.append(f"initial_regime must be one of {INITIAL_REGIMES}, got {self.initial_regime!r}")
        elif self.initial_regime == 'stationary' and not matrix_errors:
            if self.transition_matrix[0][0] == 1.0 and self.transition_matrix[1][1] == 1.0:
                errors.append("Stationary initial regime is undefined when neither regime can be left")
        return errors
