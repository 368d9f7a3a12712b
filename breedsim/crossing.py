"""Crossing engines: offspring, doubled haploids and pedigrees.

Every engine realizes individual gametes with meiosis.bivalent() and
returns a NEW GenotypeStore; inputs are never modified.

  - cross():                 explicit mother/father index lists
  - make_doubled_haploids(): one gamete per line, duplicated to both homologs
  - cross_pedigree():        ordered pedigree over founders and earlier entries

Sex-specific recombination: the shared map is scaled by
2/(1/r + 1) for female meioses and 2/(r + 1) for male meioses, where r is
the female:male recombination ratio.

Concurrency: one ``n_workers`` parameter on every engine. Work units are
offspring (cross), output lines (doubled haploids) and chromosomes
(pedigree). Each unit draws from its own stream spawned from the caller's
generator, so results do not depend on ``n_workers``.

All indices here are 0-based. External 1-based conversion lives in
breedsim.api.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence, Tuple

import numpy as np

from breedsim.meiosis import bivalent, sex_scales
from breedsim.rng import spawn_streams
from breedsim.types import (
    MATERNAL,
    NO_PARENT,
    PATERNAL,
    ContractError,
    GeneticMap,
    GenotypeStore,
    PedigreeOrderError,
    allocate_blocks,
)


# ═══════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════


def _run_units(
    work: Callable[[int, np.random.Generator], None],
    streams: List[np.random.Generator],
    n_workers: int,
) -> None:
    """Run ``work(unit, rng)`` for every unit, serially or on a thread pool.

    Each unit writes only its own output slot. An exception in any unit
    propagates and aborts the whole call.
    """
    if n_workers < 1:
        raise ContractError(f"n_workers must be >= 1, got {n_workers}")
    n_units = len(streams)
    if n_workers == 1 or n_units < 2:
        for unit, unit_rng in enumerate(streams):
            work(unit, unit_rng)
        return
    with ThreadPoolExecutor(max_workers=min(n_workers, n_units)) as pool:
        # list() drains the iterator so worker exceptions are re-raised here
        list(pool.map(work, range(n_units), streams))


def _parent_indices(indices: Sequence[int], n_ind: int, label: str) -> np.ndarray:
    """Validate a 0-based parent index list against a store size."""
    idx = np.asarray(indices, dtype=np.int64).ravel()
    if idx.size and (idx.min() < 0 or idx.max() >= n_ind):
        bad = int(np.flatnonzero((idx < 0) | (idx >= n_ind))[0])
        raise ContractError(
            f"{label}[{bad}] = {idx[bad]} outside [0, {n_ind})"
        )
    return idx


# ═══════════════════════════════════════════════════════════════════════
# CROSS ENGINE
# ═══════════════════════════════════════════════════════════════════════


def cross(
    mother_geno: GenotypeStore,
    mother: Sequence[int],
    father_geno: GenotypeStore,
    father: Sequence[int],
    genetic_map: GeneticMap,
    rng: np.random.Generator,
    recomb_ratio: float = 1.0,
    n_workers: int = 1,
) -> GenotypeStore:
    """Make one offspring per (mother, father) pair.

    Offspring i receives, on every chromosome, a female-scaled gamete of
    mother[i] as homolog 0 and a male-scaled gamete of father[i] as
    homolog 1.

    Args:
        mother_geno: Store holding the mothers.
        mother: (n_offspring,) 0-based indices into ``mother_geno``.
        father_geno: Store holding the fathers (may be ``mother_geno``).
        father: (n_offspring,) 0-based indices into ``father_geno``.
        genetic_map: Unscaled per-chromosome map.
        rng: Caller-owned generator; advanced once per call.
        recomb_ratio: Female:male recombination ratio (1.0 = equal).
        n_workers: Threads used across offspring.

    Returns:
        GenotypeStore with n_offspring individuals.

    Raises:
        ContractError: On mismatched list lengths, out-of-range indices or
            stores that do not match the map.
    """
    female_scale, male_scale = sex_scales(recomb_ratio)
    genetic_map.check_store(mother_geno, "mother genotypes")
    genetic_map.check_store(father_geno, "father genotypes")
    mother = _parent_indices(mother, mother_geno.n_ind, "mother")
    father = _parent_indices(father, father_geno.n_ind, "father")
    if mother.size != father.size:
        raise ContractError(
            f"mother ({mother.size}) and father ({father.size}) lists differ in length"
        )

    n_offspring = mother.size
    female_map = genetic_map.scaled(female_scale)
    male_map = genetic_map.scaled(male_scale)
    blocks = allocate_blocks(genetic_map.n_loci, n_offspring)

    def make_offspring(ind: int, ind_rng: np.random.Generator) -> None:
        m, f = mother[ind], father[ind]
        for chr_idx, block in enumerate(blocks):
            mat = mother_geno.blocks[chr_idx][:, :, m]
            block[:, MATERNAL, ind] = bivalent(
                mat[:, 0], mat[:, 1], female_map[chr_idx], ind_rng)
            pat = father_geno.blocks[chr_idx][:, :, f]
            block[:, PATERNAL, ind] = bivalent(
                pat[:, 0], pat[:, 1], male_map[chr_idx], ind_rng)

    _run_units(make_offspring, spawn_streams(rng, n_offspring), n_workers)
    return GenotypeStore(tuple(blocks))


# ═══════════════════════════════════════════════════════════════════════
# DOUBLED HAPLOIDS
# ═══════════════════════════════════════════════════════════════════════


def make_doubled_haploids(
    geno: GenotypeStore,
    n_dh: int,
    genetic_map: GeneticMap,
    rng: np.random.Generator,
    recomb_ratio: float = 1.0,
    use_female: bool = True,
    n_workers: int = 1,
) -> GenotypeStore:
    """Derive fully homozygous lines from a single meiosis each.

    Output individual ``i * n_dh + j`` is the j-th line of source
    individual i: one gamete copied into both homologs on every
    chromosome.

    Args:
        geno: Source individuals.
        n_dh: Lines per source individual (>= 1).
        genetic_map: Unscaled per-chromosome map.
        rng: Caller-owned generator.
        recomb_ratio: Female:male recombination ratio.
        use_female: Scale the map for a female (True) or male meiosis.
        n_workers: Threads used across output lines.

    Returns:
        GenotypeStore with geno.n_ind * n_dh homozygous individuals.
    """
    if int(n_dh) < 1:
        raise ContractError(f"n_dh must be >= 1, got {n_dh}")
    n_dh = int(n_dh)
    female_scale, male_scale = sex_scales(recomb_ratio)
    genetic_map.check_store(geno, "source genotypes")

    dh_map = genetic_map.scaled(female_scale if use_female else male_scale)
    n_out = geno.n_ind * n_dh
    blocks = allocate_blocks(genetic_map.n_loci, n_out)

    def make_line(out: int, out_rng: np.random.Generator) -> None:
        src = out // n_dh
        for chr_idx, block in enumerate(blocks):
            parent = geno.blocks[chr_idx][:, :, src]
            gamete = bivalent(parent[:, 0], parent[:, 1], dh_map[chr_idx], out_rng)
            block[:, MATERNAL, out] = gamete
            block[:, PATERNAL, out] = gamete

    _run_units(make_line, spawn_streams(rng, n_out), n_workers)
    return GenotypeStore(tuple(blocks))


# ═══════════════════════════════════════════════════════════════════════
# PEDIGREE CROSSING
# ═══════════════════════════════════════════════════════════════════════


def validate_pedigree(
    mother: Sequence[int],
    father: Sequence[int],
) -> Tuple[np.ndarray, np.ndarray]:
    """Check that a pedigree is topologically ordered.

    Every reference must be NO_PARENT or the index of a strictly
    earlier entry.

    Args:
        mother: (n,) 0-based mother references.
        father: (n,) 0-based father references.

    Returns:
        (mother, father) as int64 arrays.

    Raises:
        ContractError: If the lists differ in length.
        PedigreeOrderError: Naming the first entry with a bad reference.
    """
    mother = np.asarray(mother, dtype=np.int64).ravel()
    father = np.asarray(father, dtype=np.int64).ravel()
    if mother.size != father.size:
        raise ContractError(
            f"mother ({mother.size}) and father ({father.size}) lists differ in length"
        )
    entry = np.arange(mother.size)
    for label, refs in (('mother', mother), ('father', father)):
        bad = (refs != NO_PARENT) & ((refs < 0) | (refs >= entry))
        if bad.any():
            first = int(np.flatnonzero(bad)[0])
            raise PedigreeOrderError(
                f"pedigree entry {first}: {label} reference {refs[first]} "
                f"is neither an earlier entry nor NO_PARENT"
            )
    return mother, father


def cross_pedigree(
    founders: GenotypeStore,
    mother: Sequence[int],
    father: Sequence[int],
    genetic_map: GeneticMap,
    rng: np.random.Generator,
    recomb_ratio: float = 1.0,
    n_workers: int = 1,
) -> GenotypeStore:
    """Simulate an ordered pedigree.

    Entries are produced in input order. A NO_PARENT reference takes the
    gamete from a uniformly drawn founder (one draw per entry and role,
    used on every chromosome); any other reference takes it from an
    earlier entry of this same pedigree.

    Args:
        founders: Founder genotypes.
        mother: (n,) 0-based mother references or NO_PARENT.
        father: (n,) 0-based father references or NO_PARENT.
        genetic_map: Unscaled per-chromosome map.
        rng: Caller-owned generator.
        recomb_ratio: Female:male recombination ratio.
        n_workers: Threads used across chromosomes.

    Returns:
        GenotypeStore with one individual per pedigree entry.
    """
    mother, father = validate_pedigree(mother, father)
    female_scale, male_scale = sex_scales(recomb_ratio)
    genetic_map.check_store(founders, "founder genotypes")

    n_ind = mother.size
    needs_founder = bool(np.any(mother == NO_PARENT) or np.any(father == NO_PARENT))
    if needs_founder and founders.n_ind == 0:
        raise ContractError("pedigree needs founders but the founder store is empty")
    n_draw = founders.n_ind if founders.n_ind > 0 else 1
    mother_founder = rng.integers(0, n_draw, size=n_ind)
    father_founder = rng.integers(0, n_draw, size=n_ind)

    female_map = genetic_map.scaled(female_scale)
    male_map = genetic_map.scaled(male_scale)
    blocks = allocate_blocks(genetic_map.n_loci, n_ind)

    def make_chromosome(chr_idx: int, chr_rng: np.random.Generator) -> None:
        block = blocks[chr_idx]
        founder_block = founders.blocks[chr_idx]
        for ind in range(n_ind):
            if mother[ind] == NO_PARENT:
                src = founder_block[:, :, mother_founder[ind]]
            else:
                src = block[:, :, mother[ind]]
            block[:, MATERNAL, ind] = bivalent(
                src[:, 0], src[:, 1], female_map[chr_idx], chr_rng)

            if father[ind] == NO_PARENT:
                src = founder_block[:, :, father_founder[ind]]
            else:
                src = block[:, :, father[ind]]
            block[:, PATERNAL, ind] = bivalent(
                src[:, 0], src[:, 1], male_map[chr_idx], chr_rng)

    _run_units(make_chromosome, spawn_streams(rng, genetic_map.n_chr), n_workers)
    return GenotypeStore(tuple(blocks))
