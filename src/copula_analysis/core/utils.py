"""
Core utility functions shared across copula analysis modules.

This module provides the random-number plumbing used by the fitters,
the goodness-of-fit bootstrap and the process-pool runner. Every
stochastic routine receives an explicit Generator or seed; nothing reads
ambient global RNG state.
"""

import numpy as np
from numpy.random import Generator, SeedSequence


def get_rng(seed: int | SeedSequence | None = None) -> Generator:
    """
    Create a numpy random Generator with optional seed.

    Args:
        seed: Random seed or SeedSequence for reproducibility. If None,
            uses entropy.

    Returns:
        A numpy random Generator instance.
    """
    return np.random.default_rng(seed)


def spawn_seeds(base_seed: int | None, n: int) -> list[SeedSequence]:
    """
    Derive n independent child seed sequences from a base seed.

    Child i depends only on (base_seed, i), so parallel workers can be
    seeded deterministically regardless of scheduling order.
    """
    return SeedSequence(base_seed).spawn(n)


def seed_to_int(seq: SeedSequence) -> int:
    """Collapse a SeedSequence to a plain int seed."""
    return int(seq.generate_state(1)[0])
