#!/usr/bin/env python3
"""Benchmark threaded crossing.

Crosses a 200-founder population on 10 chromosomes of 2000 loci at
workers=1,2,4,8 and reports wall-clock times and gamete throughput.
"""

import time

import numpy as np

from breedsim.crossing import cross, make_doubled_haploids
from breedsim.genotypes import random_founders
from breedsim.perf import PerfMonitor
from breedsim.types import GeneticMap


def make_population(n_chr=10, loci_per_chr=2000, n_founders=200, seed=1):
    """Founders and a 1.5 M uniform map."""
    loci = [loci_per_chr] * n_chr
    founders = random_founders(loci, n_founders, np.random.default_rng(seed))
    return founders, GeneticMap.uniform(loci, 1.5)


def benchmark(n_offspring=1000, workers_list=None, seed=42):
    """Run cross + doubled haploids across different worker counts."""
    if workers_list is None:
        workers_list = [1, 2, 4, 8]

    founders, gmap = make_population()
    pick = np.random.default_rng(seed)
    mother = pick.integers(0, founders.n_ind, size=n_offspring)
    father = pick.integers(0, founders.n_ind, size=n_offspring)

    results = {}
    reference = None
    for w in workers_list:
        perf = PerfMonitor(enabled=True)
        perf.start()
        with perf.track("cross", gametes=2 * n_offspring * gmap.n_chr):
            offspring = cross(founders, mother, founders, father, gmap,
                              np.random.default_rng(seed), recomb_ratio=1.5,
                              n_workers=w)
        with perf.track("doubled_haploids", gametes=founders.n_ind * 2 * gmap.n_chr):
            make_doubled_haploids(founders, 2, gmap, np.random.default_rng(seed),
                                  n_workers=w)
        perf.stop()

        if reference is None:
            reference = offspring
        identical = all(
            np.array_equal(a, b) for a, b in zip(reference.blocks, offspring.blocks))

        summary = perf.summary()
        results[w] = {
            'elapsed': summary['_total_s'],
            'cross_gametes_per_s': summary['cross']['gametes_per_s'],
            'identical': identical,
        }
        print(f"  workers={w:2d}  time={summary['_total_s']:6.2f}s  "
              f"cross={summary['cross']['gametes_per_s']:9.0f} gametes/s  "
              f"identical={identical}")

    return results


if __name__ == "__main__":
    print("Benchmark: 200 founders, 10 x 2000 loci, 1000 offspring + 400 DH lines")
    print(f"{'='*60}")
    results = benchmark()

    print(f"\n{'='*60}")
    print("Summary:")
    serial_time = results[1]['elapsed']
    for w, r in results.items():
        speedup = serial_time / r['elapsed'] if r['elapsed'] > 0 else 0
        print(f"  workers={w:2d}: {r['elapsed']:6.2f}s  "
              f"speedup={speedup:.2f}x")
