"""Tests for breedsim.model — multi-generation breeding driver."""

import numpy as np
import pytest

from breedsim.config import default_config
from breedsim.genotypes import random_founders
from breedsim.model import BreedingSimResult, run_breeding_simulation
from breedsim.perf import PerfMonitor
from breedsim.types import ContractError, GeneticMap


@pytest.fixture
def small_config():
    cfg = default_config()
    cfg.simulation.seed = 11
    cfg.simulation.n_generations = 3
    cfg.genome.n_chr = 2
    cfg.genome.loci_per_chr = 50
    cfg.population.n_founders = 20
    cfg.population.n_offspring = 15
    return cfg


class TestRunBreedingSimulation:
    def test_shapes(self, small_config):
        result = run_breeding_simulation(small_config)
        assert isinstance(result, BreedingSimResult)
        assert result.n_generations == 3
        assert result.founders.n_ind == 20
        assert result.final.n_ind == 15
        assert result.genetic_map.n_loci == (50, 50)
        assert result.mean_allele_freq.shape == (4,)
        assert result.heterozygosity_obs.shape == (4,)
        assert result.doubled_haploids is None
        assert result.perf == {}

    def test_reproducible(self, small_config):
        a = run_breeding_simulation(small_config)
        b = run_breeding_simulation(small_config)
        for block_a, block_b in zip(a.final.blocks, b.final.blocks):
            np.testing.assert_array_equal(block_a, block_b)
        np.testing.assert_array_equal(a.heterozygosity_obs, b.heterozygosity_obs)

    def test_seed_changes_result(self, small_config):
        a = run_breeding_simulation(small_config)
        small_config.simulation.seed = 12
        b = run_breeding_simulation(small_config)
        assert not all(
            np.array_equal(x, y) for x, y in zip(a.final.blocks, b.final.blocks))

    def test_zero_generations(self, small_config):
        small_config.simulation.n_generations = 0
        result = run_breeding_simulation(small_config)
        assert result.final is result.founders
        assert result.n_generations == 0

    def test_alleles_only_from_founders(self, small_config):
        small_config.genome.allele_freq = 0.0
        result = run_breeding_simulation(small_config)
        assert all(not b.any() for b in result.final.blocks)
        np.testing.assert_array_equal(result.mean_allele_freq, 0.0)

    def test_doubled_haploids(self, small_config):
        small_config.population.n_dh = 2
        result = run_breeding_simulation(small_config)
        dh = result.doubled_haploids
        assert dh.n_ind == 30
        for block in dh.blocks:
            np.testing.assert_array_equal(block[:, 0, :], block[:, 1, :])

    def test_supplied_founders_and_map(self, small_config):
        gmap = GeneticMap(([0.0, 0.2, 0.2, 0.9], [0.0, 0.1, 0.3]))
        founders = random_founders(gmap.n_loci, 8, np.random.default_rng(0))
        result = run_breeding_simulation(small_config, founders=founders,
                                         genetic_map=gmap)
        assert result.founders is founders
        assert result.genetic_map is gmap
        np.testing.assert_array_equal(result.final.loci_per_chr, [4, 3])

    def test_founders_must_match_map(self, small_config):
        founders = random_founders([10], 8, np.random.default_rng(0))
        with pytest.raises(ContractError):
            run_breeding_simulation(small_config, founders=founders,
                                    genetic_map=GeneticMap.uniform([12]))

    def test_verbose_prints_generations(self, small_config, capsys):
        small_config.simulation.verbose = True
        run_breeding_simulation(small_config)
        out = capsys.readouterr().out
        assert out.count("gen ") == 4

    def test_perf_summary(self, small_config):
        small_config.population.n_dh = 1
        result = run_breeding_simulation(small_config, perf=PerfMonitor(enabled=True))
        assert result.perf["cross"]["calls"] == 3
        assert result.perf["cross"]["gametes"] == 3 * 2 * 15 * 2
        assert "founders" in result.perf
        assert "doubled_haploids" in result.perf

    def test_default_config_used(self, monkeypatch):
        import breedsim.model as model_mod

        cfg = default_config()
        cfg.simulation.n_generations = 1
        cfg.genome.n_chr = 1
        cfg.genome.loci_per_chr = 10
        cfg.population.n_founders = 4
        cfg.population.n_offspring = 4
        monkeypatch.setattr(model_mod, "default_config", lambda: cfg)
        result = run_breeding_simulation()
        assert result.final.n_ind == 4


class TestCheckpointResume:
    def test_result_carries_stream_states(self, small_config):
        result = run_breeding_simulation(small_config)
        assert set(result.rng_state) == {'founders', 'mating', 'meiosis'}

    def test_resume_matches_uninterrupted_run(self, small_config):
        small_config.simulation.n_generations = 4
        whole = run_breeding_simulation(small_config)

        small_config.simulation.n_generations = 2
        first = run_breeding_simulation(small_config)
        second = run_breeding_simulation(
            small_config, founders=first.final, genetic_map=first.genetic_map,
            rng_state=first.rng_state,
        )
        for block_a, block_b in zip(whole.final.blocks, second.final.blocks):
            np.testing.assert_array_equal(block_a, block_b)
        np.testing.assert_array_equal(
            whole.heterozygosity_obs[2:], second.heterozygosity_obs)

    def test_unknown_stream_in_state(self, small_config):
        with pytest.raises(KeyError, match="larval"):
            run_breeding_simulation(small_config, rng_state={'larval': {}})
