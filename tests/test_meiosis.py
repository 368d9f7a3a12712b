"""Tests for breedsim.meiosis — interval search, crossovers, gamete assembly.

Acceptance criteria:
  - interval_search: last index at/after the end, -1 before the start,
    rightmost index on ties, monotone restart gives the same answers
  - Crossover count ~ Poisson(L), positions sorted on [0, L)
  - Zero-crossover gametes equal one parental homolog exactly
  - Same-gap crossovers cancel in pairs
  - Forced single crossover at 0.5 M on a 2-locus map gives [0, 1] or
    [1, 0] with equal probability
"""

import numpy as np
import pytest
from scipy import stats

from breedsim import meiosis
from breedsim.meiosis import (
    bivalent,
    draw_crossovers,
    interval_search,
    locate_intervals,
    recombine,
    sex_scales,
)
from breedsim.types import BEFORE_START, ContractError, MapSearchError


# ═══════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def het_pair():
    """Fully informative homologs: all 0 vs all 1 over 1001 loci, 1 M."""
    n = 1001
    return (
        np.zeros(n, dtype=np.uint8),
        np.ones(n, dtype=np.uint8),
        np.linspace(0.0, 1.0, n),
    )


# ═══════════════════════════════════════════════════════════════════════
# INTERVAL SEARCH
# ═══════════════════════════════════════════════════════════════════════


class TestIntervalSearch:
    x = np.array([0.0, 0.1, 0.2, 0.3])

    def test_inside_interval(self):
        assert interval_search(self.x, 0.15) == 1
        assert interval_search(self.x, 0.05) == 0
        assert interval_search(self.x, 0.25) == 2

    def test_exact_position_belongs_to_its_own_interval(self):
        assert interval_search(self.x, 0.1) == 1
        assert interval_search(self.x, 0.0) == 0

    def test_at_or_past_end_returns_last(self):
        assert interval_search(self.x, 0.3) == 3
        assert interval_search(self.x, 7.0) == 3

    def test_before_start(self):
        assert interval_search(self.x, -0.01) == BEFORE_START

    def test_before_left_bound(self):
        assert interval_search(self.x, 0.15, left=2) == BEFORE_START

    def test_left_bound_respected(self):
        assert interval_search(self.x, 0.25, left=2) == 2

    def test_single_entry_map(self):
        x = np.array([0.0])
        assert interval_search(x, 0.0) == 0
        assert interval_search(x, 0.5) == 0
        assert interval_search(x, -0.5) == BEFORE_START

    @pytest.mark.parametrize("x, value, expected", [
        ([0.0, 0.5, 0.5, 0.5, 1.0], 0.5, 3),
        ([0.0, 0.0, 0.0, 1.0], 0.0, 2),
        ([0.0, 0.2, 0.2, 0.4, 0.4, 0.4, 0.4, 0.9], 0.4, 6),
        ([0.0, 1.0, 1.0], 1.0, 2),
    ])
    def test_ties_go_to_rightmost(self, x, value, expected):
        assert interval_search(np.array(x), value) == expected

    def test_matches_vectorized_with_monotone_restart(self, rng):
        x = np.sort(np.round(rng.random(200), 2))   # many duplicate positions
        x[0] = 0.0
        positions = np.sort(np.concatenate([rng.random(300) * x[-1], x[::7]]))
        expected = locate_intervals(x, positions)
        left = 0
        for p, e in zip(positions, expected):
            found = interval_search(x, p, left)
            assert found == e
            assert found == interval_search(x, p)
            left = found

    def test_vectorized_sentinels(self):
        found = locate_intervals(self.x, np.array([-1.0, 0.3, 9.0]))
        np.testing.assert_array_equal(found, [BEFORE_START, 3, 3])


# ═══════════════════════════════════════════════════════════════════════
# CROSSOVER PROCESS
# ═══════════════════════════════════════════════════════════════════════


class TestSexScales:
    def test_equal_rates(self):
        assert sex_scales(1.0) == (1.0, 1.0)

    def test_heterochiasmy(self):
        female, male = sex_scales(2.0)
        assert np.isclose(female, 4.0 / 3.0)
        assert np.isclose(male, 2.0 / 3.0)
        assert np.isclose(female / male, 2.0)

    @pytest.mark.parametrize("bad", [0.0, -1.0, np.nan, np.inf])
    def test_invalid_ratio(self, bad):
        with pytest.raises(ContractError):
            sex_scales(bad)


class TestDrawCrossovers:
    def test_zero_length_never_crosses(self, rng):
        for _ in range(100):
            assert draw_crossovers(0.0, rng).size == 0

    def test_sorted_within_chromosome(self, rng):
        for _ in range(200):
            pos = draw_crossovers(2.5, rng)
            assert np.all(np.diff(pos) >= 0)
            assert np.all((pos >= 0.0) & (pos < 2.5))

    def test_count_is_poisson_mean_length(self, rng):
        L = 1.5
        counts = np.array([draw_crossovers(L, rng).size for _ in range(20000)])
        assert abs(counts.mean() - L) < 0.04
        assert abs(counts.var() - L) < 0.1


# ═══════════════════════════════════════════════════════════════════════
# GAMETE ASSEMBLY
# ═══════════════════════════════════════════════════════════════════════


class TestRecombine:
    chr1 = np.array([0, 0], dtype=np.uint8)
    chr2 = np.array([1, 1], dtype=np.uint8)
    two_locus_map = np.array([0.0, 1.0])

    def test_single_crossover_start_on_chr1(self):
        g = recombine(self.chr1, self.chr2, self.two_locus_map, np.array([0.5]), 0)
        np.testing.assert_array_equal(g, [0, 1])

    def test_single_crossover_start_on_chr2(self):
        g = recombine(self.chr1, self.chr2, self.two_locus_map, np.array([0.5]), 1)
        np.testing.assert_array_equal(g, [1, 0])

    def test_no_crossover_copies_start_homolog(self):
        g = recombine(self.chr1, self.chr2, self.two_locus_map, np.array([]), 1)
        np.testing.assert_array_equal(g, self.chr2)
        assert g is not self.chr2
        assert g.dtype == np.uint8

    def test_double_crossover_in_same_gap_cancels(self):
        gmap = np.array([0.0, 0.5, 1.0])
        c1, c2 = np.zeros(3, np.uint8), np.ones(3, np.uint8)
        g = recombine(c1, c2, gmap, np.array([0.6, 0.7]), 0)
        np.testing.assert_array_equal(g, [0, 0, 0])

    def test_triple_crossover_in_same_gap_flips(self):
        gmap = np.array([0.0, 0.5, 1.0])
        c1, c2 = np.zeros(3, np.uint8), np.ones(3, np.uint8)
        g = recombine(c1, c2, gmap, np.array([0.6, 0.7, 0.8]), 0)
        np.testing.assert_array_equal(g, [0, 0, 1])

    def test_crossovers_in_different_gaps(self):
        gmap = np.array([0.0, 0.25, 0.5, 0.75, 1.0])
        c1, c2 = np.zeros(5, np.uint8), np.ones(5, np.uint8)
        g = recombine(c1, c2, gmap, np.array([0.1, 0.6]), 0)
        np.testing.assert_array_equal(g, [0, 1, 1, 0, 0])

    def test_crossover_on_locus_position(self):
        gmap = np.array([0.0, 0.5, 1.0])
        c1, c2 = np.zeros(3, np.uint8), np.ones(3, np.uint8)
        g = recombine(c1, c2, gmap, np.array([0.5]), 0)
        np.testing.assert_array_equal(g, [0, 0, 1])

    def test_zero_distance_loci_stay_together(self):
        gmap = np.array([0.0, 0.5, 0.5, 1.0])
        c1, c2 = np.zeros(4, np.uint8), np.ones(4, np.uint8)
        g = recombine(c1, c2, gmap, np.array([0.5]), 0)
        np.testing.assert_array_equal(g, [0, 0, 0, 1])
        g = recombine(c1, c2, gmap, np.array([0.4]), 0)
        np.testing.assert_array_equal(g, [0, 1, 1, 1])

    def test_unsorted_positions_are_sorted(self):
        gmap = np.array([0.0, 0.25, 0.5, 0.75, 1.0])
        c1, c2 = np.zeros(5, np.uint8), np.ones(5, np.uint8)
        a = recombine(c1, c2, gmap, np.array([0.6, 0.1]), 0)
        b = recombine(c1, c2, gmap, np.array([0.1, 0.6]), 0)
        np.testing.assert_array_equal(a, b)

    def test_crossover_before_map_start_raises(self):
        gmap = np.array([0.2, 0.5, 1.0])
        c1, c2 = np.zeros(3, np.uint8), np.ones(3, np.uint8)
        with pytest.raises(MapSearchError):
            recombine(c1, c2, gmap, np.array([0.1]), 0)


class TestBivalent:
    def test_zero_length_map_returns_parent(self, rng):
        c1 = np.array([0, 1, 0, 1], dtype=np.uint8)
        c2 = np.array([1, 1, 0, 0], dtype=np.uint8)
        gmap = np.zeros(4)
        seen = set()
        for _ in range(200):
            g = bivalent(c1, c2, gmap, rng)
            if np.array_equal(g, c1):
                seen.add(0)
            elif np.array_equal(g, c2):
                seen.add(1)
            else:
                pytest.fail(f"mixed gamete {g} without crossovers")
        assert seen == {0, 1}

    def test_single_locus_chromosome(self, rng):
        g = bivalent(np.array([0], np.uint8), np.array([1], np.uint8),
                     np.array([0.0]), rng)
        assert g.shape == (1,)
        assert g[0] in (0, 1)

    def test_zero_crossover_draws_are_never_mixed(self, rng, monkeypatch):
        monkeypatch.setattr(meiosis, 'draw_crossovers',
                            lambda L, r: np.empty(0, dtype=np.float64))
        c1 = rng.integers(0, 2, 50).astype(np.uint8)
        c2 = 1 - c1
        gmap = np.linspace(0.0, 2.0, 50)
        for _ in range(100):
            g = bivalent(c1, c2, gmap, rng)
            assert np.array_equal(g, c1) or np.array_equal(g, c2)

    def test_every_locus_from_a_parent(self, rng):
        c1 = rng.integers(0, 2, 300).astype(np.uint8)
        c2 = rng.integers(0, 2, 300).astype(np.uint8)
        gmap = np.linspace(0.0, 3.0, 300)
        for _ in range(100):
            g = bivalent(c1, c2, gmap, rng)
            assert np.all((g == c1) | (g == c2))

    def test_forced_single_crossover_is_fair(self, rng, monkeypatch):
        """2 loci at [0, 1] M, one crossover at 0.5 M → [0,1] or [1,0], p = 0.5."""
        monkeypatch.setattr(meiosis, 'draw_crossovers',
                            lambda L, r: np.array([0.5]))
        c1 = np.array([0, 0], dtype=np.uint8)
        c2 = np.array([1, 1], dtype=np.uint8)
        gmap = np.array([0.0, 1.0])
        n_trials = 4000
        n_01 = 0
        for _ in range(n_trials):
            g = tuple(bivalent(c1, c2, gmap, rng))
            assert g in ((0, 1), (1, 0))
            n_01 += g == (0, 1)
        assert stats.binomtest(n_01, n_trials, 0.5).pvalue > 1e-3

    def test_transition_rate_matches_length(self, rng, het_pair):
        c1, c2, gmap = het_pair
        switches = [np.count_nonzero(np.diff(bivalent(c1, c2, gmap, rng)))
                    for _ in range(5000)]
        assert abs(np.mean(switches) - 1.0) < 0.06

    def test_length_mismatch_raises(self, rng):
        with pytest.raises(ContractError):
            bivalent(np.zeros(3, np.uint8), np.zeros(4, np.uint8), np.zeros(3), rng)
        with pytest.raises(ContractError):
            bivalent(np.zeros(3, np.uint8), np.zeros(3, np.uint8), np.zeros(2), rng)

    def test_reproducible(self, het_pair):
        c1, c2, gmap = het_pair
        g1 = bivalent(c1, c2, gmap, np.random.default_rng(7))
        g2 = bivalent(c1, c2, gmap, np.random.default_rng(7))
        np.testing.assert_array_equal(g1, g2)
