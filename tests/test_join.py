"""
Tests for the sweep joins: bed_intersect, bed_window, bed_closest and bed_map.

Distances in bed_closest are signed on genome coordinates:
- Negative: the reference lies before the query
- Positive: the reference lies after the query
- Zero: overlapping or bookended intervals
"""
import numpy as np
import pytest
from conftest import empty_intervals

import pyvalr as pv


def _pairs(result):
    return sorted(zip(result["start_x"], result["end_x"], result["start_y"], result["end_y"], strict=True))


# ============================================================================
# bed_intersect
# ============================================================================

class TestBedIntersect:
    """Overlap joins."""

    def test_single_overlap(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", 150, 250)
        result = pv.bed_intersect(x, y)
        assert list(result.columns) == ["chrom", "start_x", "end_x", "start_y", "end_y", "overlap_length"]
        assert len(result) == 1
        row = result.iloc[0]
        assert (row["start_x"], row["end_x"], row["start_y"], row["end_y"]) == (100, 200, 150, 250)
        assert row["overlap_length"] == 50

    def test_bookended_do_not_overlap(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", 200, 300)
        result = pv.bed_intersect(x, y)
        assert len(result) == 0
        assert "overlap_length" in result.columns

    def test_multiple_hits(self):
        x = pv.bed_intervals("chr1", 0, 1000)
        y = pv.bed_intervals("chr1", [100, 300, 900], [200, 400, 1100])
        result = pv.bed_intersect(x, y)
        assert result["start_y"].tolist() == [100, 300, 900]
        assert result["overlap_length"].tolist() == [100, 100, 100]

    def test_symmetric(self):
        x = pv.bed_intervals("chr1", [0, 50, 400, 800], [100, 300, 500, 900])
        y = pv.bed_intervals("chr1", [90, 250, 450, 1000], [260, 450, 460, 1100])
        forward = _pairs(pv.bed_intersect(x, y))
        backward = _pairs(pv.bed_intersect(y, x))
        assert forward == sorted((c, d, a, b) for a, b, c, d in backward)

    def test_long_interval_spanning_many(self):
        x = pv.bed_intervals("chr1", [0, 10, 20], [5, 15, 25])
        y = pv.bed_intervals("chr1", [0, 12], [100, 13])
        result = pv.bed_intersect(x, y)
        assert _pairs(result) == [(0, 5, 0, 100), (10, 15, 0, 100), (10, 15, 12, 13), (20, 25, 0, 100)]

    def test_different_chroms(self):
        x = pv.bed_intervals(["chr1", "chr2"], [100, 100], [200, 200])
        y = pv.bed_intervals("chr2", 150, 160)
        result = pv.bed_intersect(x, y)
        assert result["chrom"].tolist() == ["chr2"]

    def test_point_interval(self):
        x = pv.bed_intervals("chr1", 150, 150)
        y = pv.bed_intervals("chr1", 100, 200)
        result = pv.bed_intersect(x, y)
        assert len(result) == 1
        assert result["overlap_length"].tolist() == [0]

    def test_payload_suffixes(self):
        x = pv.bed_intervals("chr1", 100, 200, name="a")
        y = pv.bed_intervals("chr1", 150, 250, name="b")
        result = pv.bed_intersect(x, y, suffix=(".q", ".r"))
        assert result["name.q"].tolist() == ["a"]
        assert result["name.r"].tolist() == ["b"]

    def test_group_by_strand(self):
        x = pv.bed_intervals("chr1", 100, 200, strand="+")
        y = pv.bed_intervals("chr1", 150, 250, strand="-")
        assert len(pv.bed_intersect(x, y, group_by="strand")) == 0
        result = pv.bed_intersect(x, pv.flip_strands(y), group_by="strand")
        assert result["strand"].tolist() == ["+"]

    def test_invert(self):
        x = pv.bed_intervals("chr1", [100, 300], [200, 400], name=["hit", "miss"])
        y = pv.bed_intervals("chr1", 150, 250)
        result = pv.bed_intersect(x, y, invert=True)
        assert list(result.columns) == ["chrom", "start", "end", "name"]
        assert result["name"].tolist() == ["miss"]

    def test_empty_inputs(self):
        x = pv.bed_intervals("chr1", 100, 200)
        assert len(pv.bed_intersect(x, empty_intervals())) == 0
        assert len(pv.bed_intersect(empty_intervals(), x)) == 0

    def test_invalid_suffix(self):
        x = pv.bed_intervals("chr1", 100, 200)
        with pytest.raises(ValueError, match="suffix"):
            pv.bed_intersect(x, x, suffix=("_a", "_a"))


# ============================================================================
# bed_window
# ============================================================================

class TestBedWindow:
    """Window joins."""

    def test_hit_within_window(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", 230, 300)
        result = pv.bed_window(x, y, both=50)
        assert len(result) == 1
        assert result.iloc[0]["start_x"] == 100
        assert result.iloc[0]["end_x"] == 200
        assert result.iloc[0]["overlap_length"] == 20
        assert "_orig_start_x" not in result.columns

    def test_outside_window(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", 230, 300)
        assert len(pv.bed_window(x, y, both=20)) == 0

    def test_strand_aware(self):
        x = pv.bed_intervals("chr1", 100, 200, strand="-")
        y = pv.bed_intervals("chr1", 230, 300)
        assert len(pv.bed_window(x, y, left=50)) == 0
        assert len(pv.bed_window(x, y, left=50, strand=True)) == 1

    def test_trimmed_to_genome(self, genome):
        x = pv.bed_intervals("chr2", 0, 10)
        y = pv.bed_intervals("chr2", 0, 5)
        result = pv.bed_window(x, y, genome=genome, both=100)
        assert result["overlap_length"].tolist() == [5]

    def test_fraction(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", 230, 300)
        assert len(pv.bed_window(x, y, both=0.1, fraction=True)) == 0
        result = pv.bed_window(x, y, right=0.5, fraction=True)
        assert result["start_x"].tolist() == [100]
        assert result["end_x"].tolist() == [200]
        assert result["overlap_length"].tolist() == [20]

    def test_group_by(self):
        x = pv.bed_intervals("chr1", [100, 100], [200, 200], strand=["+", "-"])
        y = pv.bed_intervals("chr1", 230, 300, strand="+")
        result = pv.bed_window(x, y, both=50, group_by="strand")
        assert result["strand"].tolist() == ["+"]
        assert result["overlap_length"].tolist() == [20]

    def test_column_order(self):
        x = pv.bed_intervals("chr1", 100, 200, name="q")
        y = pv.bed_intervals("chr1", 150, 160)
        result = pv.bed_window(x, y, both=1)
        assert list(result.columns) == [
            "chrom", "start_x", "end_x", "name_x", "start_y", "end_y", "overlap_length",
        ]

    def test_requires_side(self):
        x = pv.bed_intervals("chr1", 100, 200)
        with pytest.raises(pv.AmbiguousParameterError):
            pv.bed_window(x, x)


# ============================================================================
# bed_closest
# ============================================================================

class TestBedClosest:
    """Nearest-neighbor joins."""

    def test_downstream(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", 300, 400)
        result = pv.bed_closest(x, y)
        assert result["distance"].tolist() == [100]
        assert result["overlap_length"].tolist() == [0]

    def test_upstream_closer(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", [0, 300], [50, 400])
        result = pv.bed_closest(x, y)
        assert result["start_y"].tolist() == [0]
        assert result["distance"].tolist() == [-50]

    @pytest.mark.parametrize("ties,expected", [
        ("upstream", [-50]),
        ("downstream", [50]),
        ("all", [-50, 50]),
    ])
    def test_ties(self, ties, expected):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", [0, 250], [50, 300])
        assert pv.bed_closest(x, y, ties=ties)["distance"].tolist() == expected

    def test_overlap_wins(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", [150, 201], [160, 400])
        result = pv.bed_closest(x, y)
        assert result["start_y"].tolist() == [150]
        assert result["distance"].tolist() == [0]
        assert result["overlap_length"].tolist() == [10]

    def test_overlap_disabled(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", [150, 300], [160, 400])
        result = pv.bed_closest(x, y, overlap=False)
        assert result["start_y"].tolist() == [300]
        assert result["distance"].tolist() == [100]

    def test_bookended(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", 200, 300)
        result = pv.bed_closest(x, y)
        assert result["distance"].tolist() == [0]
        assert result["overlap_length"].tolist() == [0]

    def test_equal_start_downstream_all_reported(self):
        x = pv.bed_intervals("chr1", 100, 200)
        y = pv.bed_intervals("chr1", [300, 300], [400, 350])
        result = pv.bed_closest(x, y)
        assert result["end_y"].tolist() == [350, 400]
        assert result["distance"].tolist() == [100, 100]

    def test_several_queries(self):
        x = pv.bed_intervals("chr1", [100, 200], [110, 210])
        y = pv.bed_intervals("chr1", [0, 120], [50, 130])
        result = pv.bed_closest(x, y)
        assert result["start_x"].tolist() == [100, 200]
        assert result["distance"].tolist() == [10, -70]

    def test_use_strand(self):
        x = pv.bed_intervals("chr1", 100, 200, strand="-")
        y = pv.bed_intervals("chr1", 300, 400)
        assert pv.bed_closest(x, y, use_strand=True)["distance"].tolist() == [-100]
        assert pv.bed_closest(x, y)["distance"].tolist() == [100]

    def test_use_strand_requires_column(self):
        x = pv.bed_intervals("chr1", 100, 200)
        with pytest.raises(pv.SchemaError):
            pv.bed_closest(x, x, use_strand=True)

    def test_no_candidate(self):
        x = pv.bed_intervals(["chr1", "chr2"], [100, 100], [200, 200])
        y = pv.bed_intervals("chr1", 300, 400)
        result = pv.bed_closest(x, y)
        assert result["chrom"].tolist() == ["chr1"]

    def test_invalid_ties(self):
        x = pv.bed_intervals("chr1", 100, 200)
        with pytest.raises(ValueError, match="ties"):
            pv.bed_closest(x, x, ties="nearest")


# ============================================================================
# bed_map
# ============================================================================

class TestBedMap:
    """Overlap aggregation."""

    @pytest.fixture
    def x(self):
        return pv.bed_intervals("chr1", [100, 500], [250, 600])

    @pytest.fixture
    def y(self):
        return pv.bed_intervals("chr1", [120, 200], [150, 400], score=[10, 5], name=["a", "b"])

    def test_sum_and_count(self, x, y):
        result = pv.bed_map(x, y, {"total": ("score", "sum"), "n": ("score", "count")})
        assert result["total"].iloc[0] == 15
        assert np.isnan(result["total"].iloc[1])
        assert result["n"].tolist() == [2, 0]

    def test_keeps_all_queries(self, x, y):
        result = pv.bed_map(x, y, {"m": ("score", "mean")})
        assert result["start"].tolist() == [100, 500]
        assert result["m"].iloc[0] == pytest.approx(7.5)

    def test_string_aggregations(self, x, y):
        result = pv.bed_map(x, y, {"names": ("name", "concat"), "first": ("name", "first")})
        assert result["names"].iloc[0] == "a,b"
        assert result["first"].iloc[0] == "a"

    def test_distinct(self, x):
        y = pv.bed_intervals("chr1", [100, 110, 120], [105, 115, 125], name=["a", "a", "b"])
        result = pv.bed_map(x, y, {"names": ("name", "distinct"), "k": ("name", "count_distinct")})
        assert result["names"].iloc[0] == "a,b"
        assert result["k"].tolist() == [2, 0]

    def test_callable(self, x, y):
        result = pv.bed_map(x, y, {"span": ("score", lambda s: s.max() - s.min())})
        assert result["span"].iloc[0] == 5

    def test_default_dict(self, x, y):
        result = pv.bed_map(x, y, {"total": ("score", "sum")}, default={"total": 0})
        assert result["total"].tolist() == [15, 0]

    def test_unknown_column(self, x, y):
        with pytest.raises(pv.SchemaError, match="missing"):
            pv.bed_map(x, y, {"t": ("missing", "sum")})

    def test_unknown_function(self, x, y):
        with pytest.raises(ValueError, match="Unknown aggregation"):
            pv.bed_map(x, y, {"t": ("score", "mode")})

    def test_output_collision(self, x, y):
        with pytest.raises(ValueError, match="overwrite"):
            pv.bed_map(x, y, {"start": ("score", "sum")})

    def test_empty_reference(self, x):
        y = empty_intervals("score")
        result = pv.bed_map(x, y, {"n": ("score", "count")})
        assert result["n"].tolist() == [0, 0]
