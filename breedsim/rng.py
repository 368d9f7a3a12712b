"""Seeded RNG factory for reproducible breeding runs.

Uses NumPy's SeedSequence → PCG64 hierarchy to guarantee:
  - Statistical independence between named streams
  - Bit-exact replay with the same master seed
  - Per-task sub-streams so threaded meiosis gives the same result
    for any worker count

Randomness in the engines is always an explicitly passed Generator;
nothing here touches NumPy's global state.
"""

from __future__ import annotations

from typing import Dict, List

import numpy as np


STREAM_NAMES = ('founders', 'mating', 'meiosis')


def create_rng_hierarchy(master_seed: int) -> Dict[str, np.random.Generator]:
    """Create independent RNG streams for the stages of a breeding run.

    Streams created:
      - 'founders': Founder genotype sampling
      - 'mating':   Parent selection (which individuals are crossed)
      - 'meiosis':  Crossover counts, positions and homolog coin flips

    Args:
        master_seed: Master RNG seed (non-negative integer).

    Returns:
        Dictionary mapping stream names to numpy Generator instances.

    Example:
        >>> rngs = create_rng_hierarchy(42)
        >>> rngs['meiosis'].poisson(1.0)  # reproducible
    """
    ss = np.random.SeedSequence(master_seed)
    child_seeds = ss.spawn(len(STREAM_NAMES))
    return {
        name: np.random.Generator(np.random.PCG64(seed))
        for name, seed in zip(STREAM_NAMES, child_seeds)
    }


def get_stream(
    rngs: Dict[str, np.random.Generator],
    name: str,
) -> np.random.Generator:
    """Get a named RNG stream.

    Raises:
        KeyError: If the hierarchy has no stream called ``name``.
    """
    if name not in rngs:
        raise KeyError(
            f"No RNG stream '{name}'. Available: {', '.join(sorted(rngs))}"
        )
    return rngs[name]


def spawn_streams(rng: np.random.Generator, n: int) -> List[np.random.Generator]:
    """Derive ``n`` independent child generators from ``rng``.

    The parent generator advances by a fixed amount regardless of ``n``, so
    a call's children depend only on the parent's state, never on how
    the work is later scheduled across threads.

    Args:
        rng: Caller-owned parent generator.
        n: Number of child streams (one per unit of work).

    Returns:
        List of ``n`` PCG64 generators.
    """
    entropy = rng.integers(0, np.iinfo(np.int64).max, size=4, dtype=np.int64)
    ss = np.random.SeedSequence([int(e) for e in entropy])
    return [np.random.Generator(np.random.PCG64(s)) for s in ss.spawn(n)]


def rng_state_snapshot(
    rngs: Dict[str, np.random.Generator],
) -> Dict[str, dict]:
    """Capture full RNG state for checkpointing.

    Returns a dict of {name: state_dict} that can be serialized (e.g. via pickle)
    and restored to resume a run exactly.
    """
    return {name: rng.bit_generator.state for name, rng in rngs.items()}


def restore_rng_state(
    rngs: Dict[str, np.random.Generator],
    states: Dict[str, dict],
) -> None:
    """Restore RNG state from a checkpoint snapshot.

    Args:
        rngs: RNG hierarchy (must have same keys as states).
        states: State snapshot from rng_state_snapshot().

    Raises:
        KeyError: If a stream in states doesn't exist in rngs.
    """
    for name, state in states.items():
        if name not in rngs:
            raise KeyError(f"Cannot restore RNG state for unknown stream '{name}'")
        rngs[name].bit_generator.state = state
