"""Tests for bed_random and bed_shuffle."""
import numpy as np
import pandas.testing as pdt
import pytest

import pyvalr as pv
from pyvalr.randomize import _placement_ok


@pytest.fixture
def big_genome():
    return pv.GenomeIndex({"chr1": 10000, "chr2": 5000})


class TestBedRandom:
    """Random interval generation."""

    def test_shape_and_bounds(self, big_genome):
        result = pv.bed_random(big_genome, n=1000, length=100, seed=42)
        assert len(result) == 1000
        assert list(result.columns) == ["chrom", "start", "end"]
        assert ((result["end"] - result["start"]) == 100).all()
        assert (result["start"] >= 0).all()
        sizes = big_genome.sizes(result["chrom"])
        assert (result["end"].to_numpy() <= sizes).all()
        assert pv.bed_is_sorted(result)

    def test_same_seed_same_result(self, big_genome):
        first = pv.bed_random(big_genome, n=1000, length=100, seed=42)
        second = pv.bed_random(big_genome, n=1000, length=100, seed=42)
        pdt.assert_frame_equal(first, second)

    def test_different_seed_differs(self, big_genome):
        first = pv.bed_random(big_genome, n=1000, length=100, seed=42)
        second = pv.bed_random(big_genome, n=1000, length=100, seed=43)
        assert not first.equals(second)

    def test_chromosomes_weighted_by_size(self, big_genome):
        result = pv.bed_random(big_genome, n=3000, length=10, seed=7)
        share = (result["chrom"] == "chr1").mean()
        assert 0.6 < share < 0.73

    def test_short_chromosome_avoided(self):
        genome = pv.GenomeIndex({"chr1": 10000, "chrM": 50})
        result = pv.bed_random(genome, n=500, length=100, seed=1)
        assert set(result["chrom"]) == {"chr1"}

    def test_length_too_long(self):
        genome = pv.GenomeIndex({"chr1": 100, "chr2": 50})
        with pytest.raises(pv.InvalidLengthError):
            pv.bed_random(genome, n=10, length=100, seed=1)

    def test_zero_n(self, big_genome):
        assert len(pv.bed_random(big_genome, n=0, length=10)) == 0

    def test_seed_recorded(self, big_genome):
        result = pv.bed_random(big_genome, n=10, length=10, seed=None)
        seed = result.attrs["seed"]
        again = pv.bed_random(big_genome, n=10, length=10, seed=seed)
        pdt.assert_frame_equal(result, again)

    @pytest.mark.parametrize("kwargs", [{"length": 0}, {"n": -1}, {"seed": -3}, {"seed": 1.5}])
    def test_invalid_arguments(self, big_genome, kwargs):
        with pytest.raises(ValueError):
            pv.bed_random(big_genome, **kwargs)


class TestBedShuffle:
    """Interval shuffling."""

    @pytest.fixture
    def x(self):
        return pv.bed_intervals(
            ["chr1", "chr1", "chr1", "chr2"],
            [100, 500, 2000, 300],
            [200, 900, 2050, 320],
            strand=["+", "-", "+", "-"],
            name=["a", "b", "c", "d"],
        )

    def _by_name(self, frame):
        return {row.Index: row for row in frame.set_index("name").itertuples()}

    def test_preserves_length_strand_payload(self, x, big_genome):
        result = pv.bed_shuffle(x, big_genome, seed=3)
        assert sorted(result["name"]) == ["a", "b", "c", "d"]
        before = self._by_name(x)
        after = self._by_name(result)
        for name, row in before.items():
            assert after[name].end - after[name].start == row.end - row.start
            assert after[name].strand == row.strand
            assert after[name].chrom == row.chrom

    def test_within_bounds_and_sorted(self, x, big_genome):
        result = pv.bed_shuffle(x, big_genome, seed=3)
        assert (result["start"] >= 0).all()
        assert (result["end"].to_numpy() <= big_genome.sizes(result["chrom"])).all()
        assert pv.bed_is_sorted(result)

    def test_deterministic(self, x, big_genome):
        pdt.assert_frame_equal(
            pv.bed_shuffle(x, big_genome, seed=11),
            pv.bed_shuffle(x, big_genome, seed=11),
        )

    def test_seed_changes_result(self, x, big_genome):
        first = pv.bed_shuffle(x, big_genome, seed=11)
        second = pv.bed_shuffle(x, big_genome, seed=12)
        assert not first.equals(second)

    def test_exclude(self, x, big_genome):
        exclude = pv.bed_intervals(["chr1", "chr2"], [0, 0], [5000, 2500])
        result = pv.bed_shuffle(x, big_genome, seed=5, exclude=exclude)
        assert len(pv.bed_intersect(result, exclude)) == 0

    def test_include(self, x, big_genome):
        include = pv.bed_intervals(["chr1", "chr1", "chr2"], [1000, 6000, 0], [3000, 7000, 1000])
        result = pv.bed_shuffle(x, big_genome, seed=5, include=include)
        inside = pv.bed_intersect(result, include)
        inside = inside[inside["overlap_length"] == inside["end_x"] - inside["start_x"]]
        assert len(inside) == len(x)

    def test_not_within(self, big_genome):
        x = pv.bed_intervals("chr1", list(range(0, 5000, 50)), list(range(10, 5010, 50)))
        result = pv.bed_shuffle(x, big_genome, seed=2, within=False)
        assert len(result) == len(x)
        assert set(result["chrom"]) == {"chr1", "chr2"}

    def test_exhausted_raises(self, x, big_genome):
        include = pv.bed_intervals(["chr1", "chr2"], [0, 0], [10, 10])
        with pytest.raises(pv.SamplingExhaustedError, match="placement"):
            pv.bed_shuffle(x, big_genome, seed=1, include=include, max_attempts=20)

    def test_exhausted_drop(self, x, big_genome):
        include = pv.bed_intervals(["chr1", "chr2"], [0, 0], [10, 10])
        with pytest.warns(RuntimeWarning, match="dropped 4"):
            result = pv.bed_shuffle(x, big_genome, seed=1, include=include, max_attempts=20, on_exhausted="drop")
        assert len(result) == 0
        assert result.attrs["n_exhausted"] == 4

    def test_out_of_bounds_input(self, big_genome):
        x = pv.bed_intervals("chr2", 4900, 5100)
        with pytest.raises(pv.OutOfBoundsError):
            pv.bed_shuffle(x, big_genome, seed=1)

    def test_unknown_chrom(self, big_genome):
        x = pv.bed_intervals("chrX", 0, 10)
        with pytest.raises(pv.UnknownChromError):
            pv.bed_shuffle(x, big_genome, seed=1)

    def test_invalid_on_exhausted(self, x, big_genome):
        with pytest.raises(ValueError, match="on_exhausted"):
            pv.bed_shuffle(x, big_genome, on_exhausted="skip")

    def test_group_by_streams(self, x, big_genome):
        result = pv.bed_shuffle(x, big_genome, seed=4, group_by="strand")
        assert sorted(result["name"]) == ["a", "b", "c", "d"]

    def test_point_exclude_blocks_placement(self):
        genome = pv.GenomeIndex({"chr1": 100})
        x = pv.bed_intervals("chr1", 0, 10)
        points = list(range(1, 91))
        exclude = pv.bed_intervals("chr1", points, points)
        with pytest.raises(pv.SamplingExhaustedError):
            pv.bed_shuffle(x, genome, seed=1, exclude=exclude, max_attempts=500)


def test_placement_rejects_point_at_start():
    excl = (np.array([50]), np.array([50]))
    ok = _placement_ok(np.array([50, 40, 60]), np.array([60, 60, 70]), excl, None)
    assert ok.tolist() == [False, False, True]
