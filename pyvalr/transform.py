"""Flanks, slop, shifts and windows over single interval sets."""

import numpy as _numpy
import pandas as _pandas

from ._errors import AmbiguousParameterError
from ._shared import _check_intervals
from .genome import _as_genome, bed_clamp
from .intervals import bed_sort


def _side_spec(both, left, right):
    """Resolve ``both``/``left``/``right`` into a ``(left, right)`` pair."""
    for name, value in (("both", both), ("left", left), ("right", right)):
        if value < 0:
            raise ValueError(f"{name} must be non-negative")
    if not any(v > 0 for v in (both, left, right)):
        raise AmbiguousParameterError("specify one of both, left, right")
    if both != 0 and (left != 0 or right != 0):
        raise AmbiguousParameterError("ambiguous side spec: both cannot be combined with left or right")
    if both:
        return both, both
    return left, right


def _side_lengths(intervals, left, right, fraction):
    if not fraction:
        n = len(intervals)
        return (_numpy.full(n, int(left), dtype=_numpy.int64),
                _numpy.full(n, int(right), dtype=_numpy.int64))
    size = (intervals["end"] - intervals["start"]).to_numpy(dtype=_numpy.float64)
    # half-to-even rounding, matching R's round()
    return (_numpy.round(left * size).astype(_numpy.int64),
            _numpy.round(right * size).astype(_numpy.int64))


def _minus_mask(intervals, strand):
    if not strand:
        return _numpy.zeros(len(intervals), dtype=bool)
    return intervals["strand"].astype(str).to_numpy() == "-"


def _slop_coords(intervals, left, right, fraction=False, strand=False):
    """Start/end arrays of *intervals* extended by the given flank sizes."""
    lsize, rsize = _side_lengths(intervals, left, right, fraction)
    minus = _minus_mask(intervals, strand)
    starts = intervals["start"].to_numpy(dtype=_numpy.int64)
    ends = intervals["end"].to_numpy(dtype=_numpy.int64)
    new_starts = starts - _numpy.where(minus, rsize, lsize)
    new_ends = ends + _numpy.where(minus, lsize, rsize)
    return new_starts, new_ends


def _bound(result, genome, trim):
    result = bed_clamp(result, genome, policy="trim" if trim else "drop")
    return bed_sort(result)


def bed_flank(intervals, genome, both=0, left=0, right=0, fraction=False,
              strand=False, trim=False):
    """
    Create flanking intervals from input intervals.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with columns chrom, start, end and any payload.
    genome : GenomeIndex
        Chromosome sizes.
    both : int or float, default 0
        Number of bases on both sides.
    left : int or float, default 0
        Number of bases on the left side.
    right : int or float, default 0
        Number of bases on the right side.
    fraction : bool, default False
        Interpret *both*, *left* and *right* as fractions of interval length.
    strand : bool, default False
        Define left and right relative to the ``strand`` column; on ``-``
        strand intervals left is downstream in genome coordinates.
    trim : bool, default False
        Clip out-of-bounds flanks to the chromosome instead of dropping them.

    Returns
    -------
    DataFrame
        Flank intervals carrying the payload of their source interval,
        sorted. When both sides are requested each input yields two rows.

    Raises
    ------
    AmbiguousParameterError
        If none of *both*, *left*, *right* is positive or *both* is combined
        with *left* or *right*.
    SchemaError
        If *strand* is set and *intervals* has no strand column.

    See Also
    --------
    bed_slop : Enlarge intervals instead of creating flanks.
    bed_window : Join on flank-extended intervals.

    Examples
    --------
    >>> import pyvalr as pv
    >>> genome = pv.GenomeIndex({"chr1": 5000})
    >>> x = pv.bed_intervals("chr1", [500, 1000], [1000, 1500], strand=["+", "-"])
    >>> pv.bed_flank(x, genome, left=100)  # doctest: +SKIP
    >>> pv.bed_flank(x, genome, both=0.5, fraction=True)  # doctest: +SKIP
    """
    _check_intervals(intervals, require_strand=strand)
    genome = _as_genome(genome)
    left, right = _side_spec(both, left, right)

    lsize, rsize = _side_lengths(intervals, left, right, fraction)
    minus = _minus_mask(intervals, strand)
    starts = intervals["start"].to_numpy(dtype=_numpy.int64)
    ends = intervals["end"].to_numpy(dtype=_numpy.int64)

    left_start = _numpy.where(minus, ends, starts - lsize)
    left_end = _numpy.where(minus, ends + lsize, starts)
    right_start = _numpy.where(minus, starts - rsize, ends)
    right_end = _numpy.where(minus, starts, ends + rsize)

    pieces = []
    if left:
        flank = intervals.copy()
        flank["start"] = left_start
        flank["end"] = left_end
        pieces.append(flank)
    if right:
        flank = intervals.copy()
        flank["start"] = right_start
        flank["end"] = right_end
        pieces.append(flank)

    result = _pandas.concat(pieces, ignore_index=True)
    return _bound(result, genome, trim)


def bed_slop(intervals, genome, both=0, left=0, right=0, fraction=False,
             strand=False, trim=False):
    """
    Increase the size of input intervals.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with columns chrom, start, end and any payload.
    genome : GenomeIndex
        Chromosome sizes.
    both, left, right : int or float, default 0
        Bases to add on both sides, or on the left/right side only.
    fraction : bool, default False
        Interpret sizes as fractions of interval length.
    strand : bool, default False
        Define left and right relative to the ``strand`` column.
    trim : bool, default False
        Clip out-of-bounds intervals instead of dropping them.

    Returns
    -------
    DataFrame
        Enlarged, sorted intervals.

    Raises
    ------
    AmbiguousParameterError
        If no side is given or *both* is combined with *left*/*right*.
    SchemaError
        If *strand* is set and *intervals* has no strand column.

    See Also
    --------
    bed_flank : Create flanking intervals.

    Examples
    --------
    >>> import pyvalr as pv
    >>> genome = pv.GenomeIndex({"chr1": 5000})
    >>> x = pv.bed_intervals("chr1", 110, 125)
    >>> pv.bed_slop(x, genome, left=10)  # doctest: +SKIP
    """
    _check_intervals(intervals, require_strand=strand)
    genome = _as_genome(genome)
    left, right = _side_spec(both, left, right)

    result = intervals.copy()
    result["start"], result["end"] = _slop_coords(intervals, left, right, fraction, strand)
    return _bound(result, genome, trim)


def bed_shift(intervals, genome, size=0, fraction=0, trim=False):
    """
    Shift intervals along their chromosome.

    Intervals on the ``-`` strand (when a strand column exists) move in the
    opposite direction.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with columns chrom, start, end.
    genome : GenomeIndex
        Chromosome sizes.
    size : int, default 0
        Number of bases to shift; negative values shift left.
    fraction : float, default 0
        Shift by this fraction of each interval's length instead.
    trim : bool, default False
        Clip intervals shifted past a chromosome edge instead of dropping
        them.

    Returns
    -------
    DataFrame
        Shifted, sorted intervals.
    """
    _check_intervals(intervals)
    genome = _as_genome(genome)
    if size and fraction:
        raise AmbiguousParameterError("specify only one of size or fraction")

    result = intervals.copy()
    starts = intervals["start"].to_numpy(dtype=_numpy.int64)
    ends = intervals["end"].to_numpy(dtype=_numpy.int64)
    if fraction:
        offsets = _numpy.round(fraction * (ends - starts)).astype(_numpy.int64)
    else:
        offsets = _numpy.full(len(result), int(size), dtype=_numpy.int64)
    if "strand" in intervals.columns:
        offsets = _numpy.where(_minus_mask(intervals, True), -offsets, offsets)

    result["start"] = starts + offsets
    result["end"] = ends + offsets
    return _bound(result, genome, trim)


def bed_makewindows(intervals, win_size=0, step_size=0, num_win=0, reverse=False):
    """
    Divide intervals into windows.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with columns chrom, start, end.
    win_size : int, default 0
        Window size in bases.
    step_size : int, default 0
        Distance between window starts; defaults to *win_size*, smaller
        values create overlapping windows.
    num_win : int, default 0
        Split every interval into this many near-equal windows instead.
    reverse : bool, default False
        Number windows from the end of each interval.

    Returns
    -------
    DataFrame
        One row per window with the source payload and a 1-based ``win_id``.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", 100, 200)
    >>> pv.bed_makewindows(x, win_size=25)  # doctest: +SKIP
    """
    _check_intervals(intervals)
    if (win_size > 0) == (num_win > 0):
        raise AmbiguousParameterError("specify exactly one of win_size or num_win")
    if step_size < 0:
        raise ValueError("step_size must be non-negative")
    if "win_id" in intervals.columns:
        raise ValueError("Column 'win_id' already exists in intervals")

    rows = []
    starts = []
    ends = []
    ids = []
    for i, (start, end) in enumerate(zip(intervals["start"].tolist(), intervals["end"].tolist(), strict=True)):
        if num_win > 0:
            bounds = [start + (k * (end - start)) // num_win for k in range(num_win + 1)]
            windows = [(s, e) for s, e in zip(bounds[:-1], bounds[1:], strict=True) if e > s]
        else:
            step = step_size or win_size
            windows = [(s, min(s + win_size, end)) for s in range(start, end, step)]
        n = len(windows)
        for k, (s, e) in enumerate(windows):
            rows.append(i)
            starts.append(s)
            ends.append(e)
            ids.append(n - k if reverse else k + 1)

    result = intervals.iloc[rows].reset_index(drop=True)
    result["start"] = _numpy.asarray(starts, dtype=_numpy.int64)
    result["end"] = _numpy.asarray(ends, dtype=_numpy.int64)
    result["win_id"] = _numpy.asarray(ids, dtype=_numpy.int64)
    return result
