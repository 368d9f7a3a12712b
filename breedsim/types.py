"""Core data types for breedsim.

This module is the SINGLE SOURCE OF TRUTH for:
  - Allele storage dtype, ploidy and homolog constants
  - Sentinels (IntervalSearch "before start", pedigree "no parent")
  - GenotypeStore: per-chromosome (locus, homolog, individual) cubes
  - GeneticMap: per-chromosome cumulative positions in Morgans
  - Exceptions raised by the meiosis and crossing engines

All modules import these types from here. No other module defines
genotype layouts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

PLOIDY = 2                  # Diploid only
ALLELE_DTYPE = np.uint8     # 0/1 for biallelic loci

MATERNAL = 0                # Homolog 0: female-derived gamete
PATERNAL = 1                # Homolog 1: male-derived gamete

BEFORE_START = -1           # IntervalSearch: value precedes x[left]
NO_PARENT = -1              # Pedigree: draw a random founder


# ═══════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════

class ContractError(ValueError):
    """Caller supplied inputs that break an engine's input contract."""


class PedigreeOrderError(ContractError):
    """A pedigree entry references a parent that is not yet resolved."""


class MapSearchError(RuntimeError):
    """A crossover resolved to a position before the start of the map."""


# ═══════════════════════════════════════════════════════════════════════
# GENOTYPE STORE
# ═══════════════════════════════════════════════════════════════════════

def allocate_blocks(loci_per_chr: Sequence[int], n_ind: int) -> List[np.ndarray]:
    """Allocate writable zeroed chromosome blocks.

    Args:
        loci_per_chr: Number of loci on each chromosome.
        n_ind: Number of individuals.

    Returns:
        List of (n_loci, PLOIDY, n_ind) uint8 arrays, one per chromosome.
    """
    return [
        np.zeros((int(n_loci), PLOIDY, n_ind), dtype=ALLELE_DTYPE)
        for n_loci in loci_per_chr
    ]


@dataclass(frozen=True, eq=False)
class GenotypeStore:
    """Phased genotypes for a set of individuals across all chromosomes.

    Each block is shaped (n_loci, ploidy, n_ind). The store takes
    ownership of the arrays it is given and marks them read-only;
    engines always return a new store.
    """
    blocks: Tuple[np.ndarray, ...]
    loci_per_chr: np.ndarray = field(init=False, repr=False)
    offsets: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        blocks = tuple(np.asarray(b, dtype=ALLELE_DTYPE) for b in self.blocks)
        if len(blocks) == 0:
            raise ContractError("GenotypeStore needs at least one chromosome")
        n_ind = None
        for chr_idx, block in enumerate(blocks):
            if block.ndim != 3:
                raise ContractError(
                    f"chromosome {chr_idx}: expected (loci, ploidy, ind) block, "
                    f"got {block.ndim}-D array"
                )
            if block.shape[1] != PLOIDY:
                raise ContractError(
                    f"chromosome {chr_idx}: ploidy {block.shape[1]} != {PLOIDY}"
                )
            if n_ind is None:
                n_ind = block.shape[2]
            elif block.shape[2] != n_ind:
                raise ContractError(
                    f"chromosome {chr_idx}: {block.shape[2]} individuals, "
                    f"expected {n_ind}"
                )
            block.flags.writeable = False

        loci = np.array([b.shape[0] for b in blocks], dtype=np.int64)
        offsets = np.zeros(len(blocks) + 1, dtype=np.int64)
        np.cumsum(loci, out=offsets[1:])

        object.__setattr__(self, 'blocks', blocks)
        object.__setattr__(self, 'loci_per_chr', loci)
        object.__setattr__(self, 'offsets', offsets)

    @property
    def n_chr(self) -> int:
        return len(self.blocks)

    @property
    def n_ind(self) -> int:
        return self.blocks[0].shape[2]

    @property
    def ploidy(self) -> int:
        return PLOIDY

    @property
    def n_loci_total(self) -> int:
        return int(self.offsets[-1])

    def subset(self, individuals: Sequence[int]) -> 'GenotypeStore':
        """New store holding copies of the selected individuals, in order."""
        idx = np.asarray(individuals, dtype=np.int64)
        if idx.size and (idx.min() < 0 or idx.max() >= self.n_ind):
            raise ContractError(
                f"individual index out of range [0, {self.n_ind})"
            )
        return GenotypeStore(tuple(b[:, :, idx].copy() for b in self.blocks))


# ═══════════════════════════════════════════════════════════════════════
# GENETIC MAP
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class GeneticMap:
    """Per-chromosome cumulative genetic positions (Morgans).

    Positions are non-decreasing and start at 0, so every crossover
    drawn on [0, L) falls inside the map.
    The last position is the chromosome's genetic length.
    """
    chromosomes: Tuple[np.ndarray, ...]

    def __post_init__(self):
        chroms = []
        for chr_idx, positions in enumerate(self.chromosomes):
            x = np.array(positions, dtype=np.float64).ravel()
            if x.size == 0:
                raise ContractError(f"chromosome {chr_idx}: empty genetic map")
            if not np.all(np.isfinite(x)):
                raise ContractError(f"chromosome {chr_idx}: non-finite map position")
            if x[0] != 0.0:
                raise ContractError(
                    f"chromosome {chr_idx}: map must start at 0, got {x[0]}"
                )
            if np.any(np.diff(x) < 0.0):
                raise ContractError(
                    f"chromosome {chr_idx}: map positions must be non-decreasing"
                )
            x.flags.writeable = False
            chroms.append(x)
        if not chroms:
            raise ContractError("GeneticMap needs at least one chromosome")
        object.__setattr__(self, 'chromosomes', tuple(chroms))

    @classmethod
    def uniform(cls, loci_per_chr: Sequence[int], length: float = 1.0) -> 'GeneticMap':
        """Evenly spaced loci from 0 to ``length`` Morgans on every chromosome."""
        return cls(tuple(
            np.linspace(0.0, length, int(n)) for n in loci_per_chr
        ))

    @property
    def n_chr(self) -> int:
        return len(self.chromosomes)

    @property
    def n_loci(self) -> Tuple[int, ...]:
        return tuple(x.size for x in self.chromosomes)

    @property
    def lengths(self) -> np.ndarray:
        return np.array([x[-1] for x in self.chromosomes])

    def __getitem__(self, chr_idx: int) -> np.ndarray:
        return self.chromosomes[chr_idx]

    def scaled(self, factor: float) -> 'GeneticMap':
        """Return a new map with every position multiplied by ``factor``."""
        return GeneticMap(tuple(x * factor for x in self.chromosomes))

    def check_store(self, store: GenotypeStore, label: str = "genotypes") -> None:
        """Raise ContractError unless ``store`` has this map's locus layout."""
        if store.n_chr != self.n_chr:
            raise ContractError(
                f"{label}: {store.n_chr} chromosomes, map has {self.n_chr}"
            )
        for chr_idx, (n_store, n_map) in enumerate(
                zip(store.loci_per_chr, self.n_loci)):
            if n_store != n_map:
                raise ContractError(
                    f"{label}: chromosome {chr_idx} has {n_store} loci, "
                    f"map has {n_map}"
                )
