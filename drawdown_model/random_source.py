"""
Random Source Module

Seeded uniform generator owned by a single trajectory, the per-trajectory seed
derivation rule, and the Box-Muller Gaussian sampler built on top of it.
"""

import math

import numpy as np

# Distance between consecutive trajectory seeds
SEED_STRIDE = 1000

_BLOCK_SIZE = 256


def derive_trajectory_seed(base_seed, trajectory_index):
    """Seed for one trajectory; the whole run-set is reproducible from (base_seed, count)"""
    if trajectory_index < 0:
        raise ValueError(f"trajectory_index must be non-negative, got {trajectory_index}")
    return int(base_seed) + int(trajectory_index) * SEED_STRIDE


class RandomSource:
    """Deterministic stream of uniform draws in [0, 1) for one trajectory.

    Draws are generated in blocks from a numpy Generator and handed out one at a
    time, so the sequence depends only on the seed and the number of calls.
    """

    def __init__(self, seed):
        self.seed = seed
        self._rng = np.random.default_rng(seed)
        self._block = self._rng.random(_BLOCK_SIZE)
        self._position = 0
        self.draws = 0

    def uniform(self):
        if self._position == _BLOCK_SIZE:
            self._block = self._rng.random(_BLOCK_SIZE)
            self._position = 0
        value = self._block[self._position]
        self._position += 1
        self.draws += 1
        return float(value)


def gaussian(mu, sigma, source):
    """
    One Normal(mu, sigma) sample from two uniform draws (Box-Muller).

    A first draw of exactly zero would need log(0); both draws are then
    discarded and taken again.
    """
    while True:
        u1 = source.uniform()
        u2 = source.uniform()
        if u1 > 0.0:
            break
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mu + sigma * z
