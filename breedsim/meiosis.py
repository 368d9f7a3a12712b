"""Meiosis: crossover placement and recombinant gamete assembly.

Implements the diploid gamete simulator used by every crossing engine:
  - IntervalSearch: locate the map interval holding a crossover position
  - Crossover process: Haldane model, Poisson(L) count, uniform positions,
    no interference
  - Bivalent: one recombinant haploid chromosome from two homologs
  - Sex-specific map scaling for heterochiasmy (recombination ratio)

Gamete assembly rule: the gamete starts on a randomly chosen homolog and
switches homolog after each crossover's interval. Crossovers that land in
the same inter-locus gap still switch, so an even number of them cancels.

All functions are pure given their Generator; they hold no shared state
and are safe to call concurrently with independent streams.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from breedsim.types import ALLELE_DTYPE, BEFORE_START, ContractError, MapSearchError


# ═══════════════════════════════════════════════════════════════════════
# INTERVAL SEARCH
# ═══════════════════════════════════════════════════════════════════════


def interval_search(x: np.ndarray, value: float, left: int = 0) -> int:
    """Find the interval of ``x`` containing ``value``.

    Returns ``i`` such that ``x[i] <= value < x[i+1]``, searching
    ``[left, len(x) - 1]``. Ties go to the rightmost index holding
    ``value``, so zero-distance loci always fall on the same side of a
    breakpoint.

    Args:
        x: Non-decreasing positions (length >= 1).
        value: Query position.
        left: Lower search bound. Passing the previous result while
            walking a sorted crossover list keeps each search short.

    Returns:
        Interval index, the last index if ``value >= x[-1]``, or
        BEFORE_START (-1) if ``value < x[left]``.
    """
    if x[left] > value:
        return BEFORE_START
    end = len(x) - 1
    if x[end] <= value:
        return end
    right = end
    while right - left > 1:
        middle = (left + right) // 2
        if x[middle] == value:
            left = middle
            while left < end and x[left + 1] == value:
                left += 1
            break
        elif x[middle] > value:
            right = middle
        else:
            left = middle
    return left


def locate_intervals(x: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """Vectorized interval_search for a batch of query positions.

    Same edge policy as interval_search with ``left=0``: rightmost tie,
    last index at or past the end, BEFORE_START before the first entry.
    For sorted positions this equals calling interval_search with each
    previous result as ``left``.

    Args:
        x: (n_sites,) non-decreasing map positions.
        positions: (k,) query positions.

    Returns:
        (k,) int64 interval indices.
    """
    return np.searchsorted(x, positions, side='right').astype(np.int64) - 1


# ═══════════════════════════════════════════════════════════════════════
# CROSSOVER PROCESS
# ═══════════════════════════════════════════════════════════════════════


def sex_scales(recomb_ratio: float) -> Tuple[float, float]:
    """Female and male map scaling factors for a recombination ratio.

    female = 2 / (1/r + 1), male = 2 / (r + 1). Both are 1 when r == 1.

    Args:
        recomb_ratio: Female:male recombination rate ratio (> 0).

    Returns:
        (female_scale, male_scale).

    Raises:
        ContractError: If ``recomb_ratio`` is not a positive finite number.
    """
    r = float(recomb_ratio)
    if not np.isfinite(r) or r <= 0.0:
        raise ContractError(f"recomb_ratio must be > 0, got {recomb_ratio}")
    return 2.0 / (1.0 / r + 1.0), 2.0 / (r + 1.0)


def draw_crossovers(gen_length: float, rng: np.random.Generator) -> np.ndarray:
    """Draw crossover positions for one meiosis (Haldane, no interference).

    Args:
        gen_length: Chromosome genetic length L (Morgans).
        rng: Random generator.

    Returns:
        Sorted (k,) float64 positions on [0, L), k ~ Poisson(L).
    """
    n_co = rng.poisson(gen_length)
    if n_co == 0:
        return np.empty(0, dtype=np.float64)
    positions = rng.random(n_co) * gen_length
    positions.sort()
    return positions


# ═══════════════════════════════════════════════════════════════════════
# GAMETE ASSEMBLY
# ═══════════════════════════════════════════════════════════════════════


def recombine(
    chr1: np.ndarray,
    chr2: np.ndarray,
    gen_map: np.ndarray,
    positions: np.ndarray,
    start: int,
) -> np.ndarray:
    """Assemble a gamete from two homologs and known crossover positions.

    Loci up to and including the first crossover's interval are read
    from the starting homolog; each crossover switches homolog for the
    following loci.

    Args:
        chr1: (n_sites,) alleles of homolog 0.
        chr2: (n_sites,) alleles of homolog 1.
        gen_map: (n_sites,) map positions (Morgans).
        positions: (k,) crossover positions; sorted here if needed.
        start: Starting homolog, 0 (chr1) or 1 (chr2).

    Returns:
        (n_sites,) uint8 gamete.

    Raises:
        MapSearchError: If a crossover falls before the first map position.
    """
    positions = np.asarray(positions, dtype=np.float64)
    if positions.size == 0:
        return np.array(chr2 if start else chr1, dtype=ALLELE_DTYPE)

    # Batched interval_search: each sorted position restarts from the previous interval
    intervals = locate_intervals(gen_map, np.sort(positions))
    if intervals[0] == BEFORE_START:
        raise MapSearchError(
            f"crossover at {positions.min():.6g} M precedes map start "
            f"{gen_map[0]:.6g} M"
        )

    # Number of crossovers strictly left of each locus
    switches = np.searchsorted(intervals, np.arange(len(chr1)), side='left')
    from_chr2 = ((switches + start) & 1).astype(bool)
    return np.where(from_chr2, chr2, chr1).astype(ALLELE_DTYPE, copy=False)


def bivalent(
    chr1: np.ndarray,
    chr2: np.ndarray,
    gen_map: np.ndarray,
    rng: np.random.Generator,
) -> np.ndarray:
    """Simulate one gamete from a pair of homologs (ploidy = 2).

    Draws k ~ Poisson(L) crossovers with L = gen_map[-1], places them
    uniformly on [0, L), flips a fair coin for the starting homolog and
    assembles the gamete with recombine(). With k == 0 the gamete is one
    parental homolog unchanged.

    Args:
        chr1: (n_sites,) alleles of homolog 0.
        chr2: (n_sites,) alleles of homolog 1.
        gen_map: (n_sites,) map positions, possibly sex-scaled.
        rng: Random generator.

    Returns:
        (n_sites,) uint8 gamete.
    """
    n_sites = chr1.shape[0]
    if chr2.shape[0] != n_sites or gen_map.shape[0] != n_sites:
        raise ContractError(
            f"homologs ({n_sites}, {chr2.shape[0]}) and map "
            f"({gen_map.shape[0]}) differ in length"
        )
    positions = draw_crossovers(gen_map[-1], rng)
    start = int(rng.integers(0, 2))
    return recombine(chr1, chr2, gen_map, positions, start)
