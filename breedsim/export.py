"""Plain-text genotype dumps.

Appends accessor matrices to a text file, one individual per line,
whitespace-separated integers. Repeated calls on the same path append,
so several generations can be written to one file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np

from breedsim.genotypes import LocusSelection, get_dosage, get_one_haplotype
from breedsim.types import GenotypeStore


def _append_matrix(matrix: np.ndarray, path: Union[str, Path]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'a') as f:
        np.savetxt(f, matrix, fmt='%d')


def write_dosage(
    store: GenotypeStore,
    selection: LocusSelection,
    path: Union[str, Path],
) -> None:
    """Append the dosage matrix of ``store`` to ``path``."""
    _append_matrix(get_dosage(store, selection), path)


def write_one_haplotype(
    store: GenotypeStore,
    selection: LocusSelection,
    haplo: int,
    path: Union[str, Path],
) -> None:
    """Append one homolog per individual (0-based ``haplo``) to ``path``."""
    _append_matrix(get_one_haplotype(store, selection, haplo), path)
