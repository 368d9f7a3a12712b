"""Genotype accessors, founder sampling and diagnostics.

Read-only views over a GenotypeStore for a selected subset of loci:
  - Dosage matrix (individuals × loci), allele sum over homologs
  - Dominance indicator (heterozygote = 1)
  - Full haplotype matrix ((individuals × ploidy) × loci)
  - Single-homolog matrix (individuals × loci)

Plus Hardy-Weinberg founder sampling and the allele frequency /
heterozygosity summaries used to follow a population across generations.

Locus selections are 0-based here; breedsim.api converts external
1-based locations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence, Tuple

import numpy as np

from breedsim.types import (
    ALLELE_DTYPE,
    PLOIDY,
    ContractError,
    GenotypeStore,
    allocate_blocks,
)


# ═══════════════════════════════════════════════════════════════════════
# LOCUS SELECTION
# ═══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, eq=False)
class LocusSelection:
    """Loci to extract, grouped by chromosome.

    ``loci_loc`` is flat: the first ``loci_per_chr[0]`` entries are
    locations on chromosome 0, the next ``loci_per_chr[1]`` on
    chromosome 1, and so on.
    """
    loci_per_chr: np.ndarray   # (n_chr,) int64
    loci_loc: np.ndarray       # (sum(loci_per_chr),) int64, 0-based within chromosome

    def __post_init__(self):
        per_chr = np.asarray(self.loci_per_chr, dtype=np.int64).ravel()
        loc = np.asarray(self.loci_loc, dtype=np.int64).ravel()
        if np.any(per_chr < 0):
            raise ContractError("loci_per_chr must be non-negative")
        if per_chr.sum() != loc.size:
            raise ContractError(
                f"loci_per_chr sums to {per_chr.sum()} but {loc.size} "
                f"locations were given"
            )
        object.__setattr__(self, 'loci_per_chr', per_chr)
        object.__setattr__(self, 'loci_loc', loc)

    @property
    def n_selected(self) -> int:
        return int(self.loci_loc.size)

    def chromosome_slices(
        self,
        store: GenotypeStore,
    ) -> Iterator[Tuple[int, slice, np.ndarray]]:
        """Yield (chromosome, output column slice, locus rows) per chromosome.

        Raises:
            ContractError: If the selection does not fit ``store``.
        """
        if self.loci_per_chr.size != store.n_chr:
            raise ContractError(
                f"selection covers {self.loci_per_chr.size} chromosomes, "
                f"store has {store.n_chr}"
            )
        col = 0
        for chr_idx, count in enumerate(self.loci_per_chr):
            if count == 0:
                continue
            rows = self.loci_loc[col:col + count]
            n_loci = store.loci_per_chr[chr_idx]
            if rows.min() < 0 or rows.max() >= n_loci:
                raise ContractError(
                    f"chromosome {chr_idx}: locus location outside "
                    f"[0, {n_loci})"
                )
            yield chr_idx, slice(col, col + count), rows
            col += count


def select_all_loci(store: GenotypeStore) -> LocusSelection:
    """Selection of every locus on every chromosome, in order."""
    return LocusSelection(
        loci_per_chr=store.loci_per_chr.copy(),
        loci_loc=np.concatenate([np.arange(n) for n in store.loci_per_chr]),
    )


# ═══════════════════════════════════════════════════════════════════════
# ACCESSORS
# ═══════════════════════════════════════════════════════════════════════


def get_dosage(store: GenotypeStore, selection: LocusSelection) -> np.ndarray:
    """Allele dosage per individual and selected locus.

    Args:
        store: Genotypes.
        selection: Loci to extract.

    Returns:
        (n_ind, n_selected) uint8, values in 0..ploidy.
    """
    out = np.zeros((store.n_ind, selection.n_selected), dtype=ALLELE_DTYPE)
    for chr_idx, cols, rows in selection.chromosome_slices(store):
        block = store.blocks[chr_idx]
        out[:, cols] = block[rows].sum(axis=1, dtype=ALLELE_DTYPE).T
    return out


def get_dominance(dosage: np.ndarray) -> np.ndarray:
    """Heterozygote indicator from a diploid dosage matrix (2 → 0)."""
    return np.where(dosage == PLOIDY, 0, dosage).astype(ALLELE_DTYPE)


def get_haplotypes(store: GenotypeStore, selection: LocusSelection) -> np.ndarray:
    """Every homolog of every individual as its own row.

    Rows are individual-major, homolog-minor: row ``i * ploidy + h`` is
    homolog h of individual i.

    Returns:
        (n_ind * ploidy, n_selected) uint8.
    """
    n_ind = store.n_ind
    out = np.zeros((n_ind * PLOIDY, selection.n_selected), dtype=ALLELE_DTYPE)
    for chr_idx, cols, rows in selection.chromosome_slices(store):
        sub = store.blocks[chr_idx][rows]               # (n_sel, ploidy, n_ind)
        out[:, cols] = sub.transpose(2, 1, 0).reshape(n_ind * PLOIDY, -1)
    return out


def get_one_haplotype(
    store: GenotypeStore,
    selection: LocusSelection,
    haplo: int,
) -> np.ndarray:
    """One homolog per individual (e.g. MATERNAL or PATERNAL).

    Returns:
        (n_ind, n_selected) uint8.
    """
    if not 0 <= haplo < PLOIDY:
        raise ContractError(f"haplo must be in [0, {PLOIDY}), got {haplo}")
    out = np.zeros((store.n_ind, selection.n_selected), dtype=ALLELE_DTYPE)
    for chr_idx, cols, rows in selection.chromosome_slices(store):
        out[:, cols] = store.blocks[chr_idx][rows, haplo, :].T
    return out


# ═══════════════════════════════════════════════════════════════════════
# FOUNDERS
# ═══════════════════════════════════════════════════════════════════════


def random_founders(
    loci_per_chr: Sequence[int],
    n_ind: int,
    rng: np.random.Generator,
    allele_freq: float = 0.5,
) -> GenotypeStore:
    """Sample founder genotypes at Hardy-Weinberg equilibrium.

    Every allele copy is drawn independently from Bernoulli(q).

    Args:
        loci_per_chr: Loci on each chromosome.
        n_ind: Number of founders.
        rng: Random generator.
        allele_freq: Frequency q of allele 1 at every locus.

    Returns:
        GenotypeStore of n_ind founders.
    """
    if not 0.0 <= allele_freq <= 1.0:
        raise ContractError(f"allele_freq must be in [0, 1], got {allele_freq}")
    blocks = allocate_blocks(loci_per_chr, n_ind)
    for block in blocks:
        block[...] = rng.random(block.shape) < allele_freq
    return GenotypeStore(tuple(blocks))


# ═══════════════════════════════════════════════════════════════════════
# DIAGNOSTICS
# ═══════════════════════════════════════════════════════════════════════


def compute_allele_frequencies(store: GenotypeStore) -> np.ndarray:
    """Frequency of allele 1 at each locus (all chromosomes, in order).

    Returns:
        (n_loci_total,) float64. Zeros if the store has no individuals.
    """
    if store.n_ind == 0:
        return np.zeros(store.n_loci_total, dtype=np.float64)
    return np.concatenate([
        block.sum(axis=(1, 2), dtype=np.int64) / (PLOIDY * store.n_ind)
        for block in store.blocks
    ])


def compute_heterozygosity(store: GenotypeStore) -> Tuple[float, float]:
    """Observed and expected heterozygosity averaged over all loci.

    H_o = mean fraction of heterozygous individuals per locus.
    H_e = mean 2pq per locus (expected under HWE).

    Returns:
        (H_o, H_e). (0.0, 0.0) for fewer than two individuals or no loci.
    """
    if store.n_ind < 2 or store.n_loci_total == 0:
        return 0.0, 0.0
    het = np.concatenate([
        np.mean(block[:, 0, :] != block[:, 1, :], axis=1)
        for block in store.blocks
    ])
    q = compute_allele_frequencies(store)
    return float(np.mean(het)), float(np.mean(2.0 * q * (1.0 - q)))
