"""breedsim: meiosis and crossing engine for breeding simulations.

Simulates recombinant gametes and composes them into new genotypes:
  - Phased diploid genotype stores (locus × homolog × individual per chromosome)
  - Haldane crossover model with sex-specific map scaling
  - Crosses, doubled-haploid lines and pedigree-driven populations
  - Dosage / haplotype accessors over arbitrary locus subsets
"""

__version__ = "0.1.0"
