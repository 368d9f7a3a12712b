"""External (1-based) entry points.

The ONLY place where external index conventions are converted:
  - parent indices:         1..n            → 0..n-1
  - pedigree references:    0 = no parent   → NO_PARENT (-1)
  - locus locations:        1..n_loci       → 0..n_loci-1
  - haplotype number:       1 = maternal    → MATERNAL (0)

Genetic maps may be given as a GeneticMap or as a sequence of
per-chromosome position arrays. Everything behind this module works in
0-based terms.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence, Union

import numpy as np

from breedsim import crossing, export
from breedsim.genotypes import (
    LocusSelection,
    get_dominance,
    get_dosage,
    get_haplotypes,
    get_one_haplotype,
)
from breedsim.types import ContractError, GeneticMap, GenotypeStore

MapLike = Union[GeneticMap, Sequence[Sequence[float]]]


# ═══════════════════════════════════════════════════════════════════════
# INDEX CONVERSION
# ═══════════════════════════════════════════════════════════════════════


def _to_zero_based(indices: Sequence[int], label: str, minimum: int = 1) -> np.ndarray:
    idx = np.asarray(indices, dtype=np.int64).ravel()
    if idx.size and idx.min() < minimum:
        raise ContractError(
            f"{label}: external indices start at {minimum}, got {idx.min()}"
        )
    return idx - 1


def _as_map(gen_maps: MapLike) -> GeneticMap:
    if isinstance(gen_maps, GeneticMap):
        return gen_maps
    return GeneticMap(tuple(gen_maps))


def _selection(loci_per_chr: Sequence[int], loci_loc: Sequence[int]) -> LocusSelection:
    return LocusSelection(
        loci_per_chr=np.asarray(loci_per_chr, dtype=np.int64),
        loci_loc=_to_zero_based(loci_loc, "loci_loc"),
    )


# ═══════════════════════════════════════════════════════════════════════
# CROSSING
# ═══════════════════════════════════════════════════════════════════════


def cross(
    mother_geno: GenotypeStore,
    mother: Sequence[int],
    father_geno: GenotypeStore,
    father: Sequence[int],
    gen_maps: MapLike,
    recomb_ratio: float,
    rng: np.random.Generator,
    n_workers: int = 1,
) -> GenotypeStore:
    """Cross 1-based mothers with 1-based fathers."""
    return crossing.cross(
        mother_geno, _to_zero_based(mother, "mother"),
        father_geno, _to_zero_based(father, "father"),
        _as_map(gen_maps), rng,
        recomb_ratio=recomb_ratio,
        n_workers=n_workers,
    )


def create_dh(
    geno: GenotypeStore,
    n_dh: int,
    gen_maps: MapLike,
    recomb_ratio: float,
    use_female: bool,
    rng: np.random.Generator,
    n_workers: int = 1,
) -> GenotypeStore:
    """Doubled-haploid lines; no index conversion needed."""
    return crossing.make_doubled_haploids(
        geno, n_dh, _as_map(gen_maps), rng,
        recomb_ratio=recomb_ratio,
        use_female=use_female,
        n_workers=n_workers,
    )


def cross_pedigree(
    founders: GenotypeStore,
    mother: Sequence[int],
    father: Sequence[int],
    gen_maps: MapLike,
    recomb_ratio: float,
    rng: np.random.Generator,
    n_workers: int = 1,
) -> GenotypeStore:
    """Pedigree with 1-based references into itself; 0 means no parent."""
    return crossing.cross_pedigree(
        founders,
        _to_zero_based(mother, "mother", minimum=0),
        _to_zero_based(father, "father", minimum=0),
        _as_map(gen_maps), rng,
        recomb_ratio=recomb_ratio,
        n_workers=n_workers,
    )


# ═══════════════════════════════════════════════════════════════════════
# ACCESSORS
# ═══════════════════════════════════════════════════════════════════════


def get_geno(
    geno: GenotypeStore,
    loci_per_chr: Sequence[int],
    loci_loc: Sequence[int],
) -> np.ndarray:
    """Dosage matrix for 1-based locus locations."""
    return get_dosage(geno, _selection(loci_per_chr, loci_loc))


def get_dom_geno(geno_matrix: np.ndarray) -> np.ndarray:
    """Dominance indicator matrix from a dosage matrix."""
    return get_dominance(geno_matrix)


def get_haplo(
    geno: GenotypeStore,
    loci_per_chr: Sequence[int],
    loci_loc: Sequence[int],
) -> np.ndarray:
    """Haplotype matrix for 1-based locus locations."""
    return get_haplotypes(geno, _selection(loci_per_chr, loci_loc))


def get_one_haplo(
    geno: GenotypeStore,
    loci_per_chr: Sequence[int],
    loci_loc: Sequence[int],
    haplo: int,
) -> np.ndarray:
    """One homolog per individual; ``haplo`` 1 = maternal, 2 = paternal."""
    haplo_idx = int(_to_zero_based([haplo], "haplo")[0])
    return get_one_haplotype(geno, _selection(loci_per_chr, loci_loc), haplo_idx)


def write_geno(
    geno: GenotypeStore,
    loci_per_chr: Sequence[int],
    loci_loc: Sequence[int],
    file_path: Union[str, Path],
) -> None:
    export.write_dosage(geno, _selection(loci_per_chr, loci_loc), file_path)


def write_one_haplo(
    geno: GenotypeStore,
    loci_per_chr: Sequence[int],
    loci_loc: Sequence[int],
    haplo: int,
    file_path: Union[str, Path],
) -> None:
    haplo_idx = int(_to_zero_based([haplo], "haplo")[0])
    export.write_one_haplotype(
        geno, _selection(loci_per_chr, loci_loc), haplo_idx, file_path)
