"""Tests for GenomeIndex, read_genome_frame and bed_clamp."""
import pickle

import pandas as pd
import pytest
from conftest import coords

import pyvalr as pv


class TestGenomeIndex:
    """Construction and lookups."""

    def test_sizes_and_order(self, genome):
        assert genome.chroms == ("chr1", "chr2")
        assert genome.size("chr2") == 500
        assert genome.total_size == 1500
        assert len(genome) == 2
        assert list(genome) == ["chr1", "chr2"]

    def test_contains(self, genome):
        assert "chr1" in genome
        assert "chrX" not in genome

    def test_repr(self, genome):
        assert repr(genome) == "GenomeIndex(2 chromosomes, 1,500 bp)"

    def test_pairs_input(self):
        genome = pv.GenomeIndex([("chrB", 10), ("chrA", 20)])
        assert genome.chroms == ("chrB", "chrA")

    def test_integral_float_size_accepted(self):
        assert pv.GenomeIndex({"chr1": 100.0}).size("chr1") == 100

    def test_unknown_chrom(self, genome):
        with pytest.raises(pv.UnknownChromError):
            genome.size("chrX")

    def test_sizes_vectorized(self, genome):
        assert genome.sizes(["chr2", "chr1", "chr2"]).tolist() == [500, 1000, 500]

    def test_to_frame_roundtrip(self, genome):
        assert pv.read_genome_frame(genome.to_frame()) == genome

    def test_to_dict(self, genome):
        assert genome.to_dict() == {"chr1": 1000, "chr2": 500}

    def test_immutable(self, genome):
        with pytest.raises(AttributeError):
            genome._sizes = {}

    def test_pickle(self, genome):
        clone = pickle.loads(pickle.dumps(genome))
        assert clone == genome
        assert hash(clone) == hash(genome)


class TestGenomeIndexValidation:
    """Invalid genomes are rejected."""

    @pytest.mark.parametrize("sizes", [
        {},
        [("chr1", 10), ("chr1", 20)],
        {"chr1": 0},
        {"chr1": -5},
        {"chr1": 1.5},
        {"chr1": "abc"},
        {"chr1": True},
    ])
    def test_invalid(self, sizes):
        with pytest.raises(pv.InvalidGenomeError):
            pv.GenomeIndex(sizes)

    def test_invalid_is_value_error(self):
        with pytest.raises(ValueError):
            pv.GenomeIndex({})

    def test_frame_missing_column(self):
        with pytest.raises(pv.InvalidGenomeError, match="size"):
            pv.read_genome_frame(pd.DataFrame({"chrom": ["chr1"]}))

    def test_frame_custom_columns(self):
        frame = pd.DataFrame({"name": ["chr1", "chr2"], "length": [10, 20]})
        genome = pv.GenomeIndex.from_frame(frame, chrom_col="name", size_col="length")
        assert genome.total_size == 30


class TestBedClamp:
    """Bounds policies."""

    @pytest.fixture
    def x(self):
        return pd.DataFrame({
            "chrom": ["chr1", "chr1", "chr1"],
            "start": [-50, 900, 100],
            "end": [100, 1200, 200],
            "name": ["a", "b", "c"],
        })

    def test_trim(self, x, genome):
        result = pv.bed_clamp(x, genome)
        assert coords(result) == [("chr1", 0, 100), ("chr1", 900, 1000), ("chr1", 100, 200)]
        assert result["name"].tolist() == ["a", "b", "c"]
        assert result.attrs["n_affected"] == 2

    def test_drop(self, x, genome):
        result = pv.bed_clamp(x, genome, policy="drop")
        assert coords(result) == [("chr1", 100, 200)]
        assert result.attrs["n_affected"] == 2

    def test_error(self, x, genome):
        with pytest.raises(pv.OutOfBoundsError, match="chr1:-50-100"):
            pv.bed_clamp(x, genome, policy="error")

    def test_error_policy_passes_valid(self, genome):
        x = pv.bed_intervals("chr1", 0, 1000)
        result = pv.bed_clamp(x, genome, policy="error")
        assert result.attrs["n_affected"] == 0

    def test_trim_drops_rows_left_empty(self, genome):
        x = pd.DataFrame({"chrom": ["chr2"], "start": [600], "end": [700]})
        result = pv.bed_clamp(x, genome)
        assert len(result) == 0
        assert result.attrs["n_affected"] == 1

    def test_unknown_chrom(self, genome):
        x = pv.bed_intervals("chrX", 0, 10)
        with pytest.raises(pv.UnknownChromError, match="chrX"):
            pv.bed_clamp(x, genome)

    def test_invalid_policy(self, x, genome):
        with pytest.raises(ValueError, match="policy"):
            pv.bed_clamp(x, genome, policy="wrap")

    def test_accepts_mapping_genome(self, x):
        result = pv.bed_clamp(x, {"chr1": 1000})
        assert result.attrs["n_affected"] == 2
