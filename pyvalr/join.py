"""Pairwise sweep joins: intersect, window, closest and map."""

import pickle as _pickle

import numpy as _numpy
import pandas as _pandas

from . import _sweep
from ._errors import SchemaError
from ._shared import (
    _check_intervals,
    _concat,
    _empty_like,
    _group_cols,
    map_partitions,
    partitions,
)
from .genome import _as_genome, bed_clamp
from .transform import _side_spec, _slop_coords

CLOSEST_TIES = ("upstream", "downstream", "all")


# ---------------------------------------------------------------------------
# Partition pairing
# ---------------------------------------------------------------------------

def _paired_partitions(x, y, group_by):
    """Pair every partition of *x* with the matching partition of *y*.

    Order follows *x*; a missing *y* partition is an empty frame.
    """
    y_parts = dict(partitions(y, group_by, "y"))
    empty_y = y.iloc[0:0].reset_index(drop=True)
    return [(a, y_parts.get(key, empty_y)) for key, a in partitions(x, group_by, "x")]


def _coords(frame):
    return (frame["start"].to_numpy(dtype=_numpy.int64),
            frame["end"].to_numpy(dtype=_numpy.int64))


def _pair_frame(a, b, ia, ib, keys, suffix):
    """Join rows ``a[ia]`` and ``b[ib]`` side by side.

    Partition columns appear once; other columns get *suffix*.
    """
    sx, sy = suffix
    left = a.iloc[ia].reset_index(drop=True)
    right = b.iloc[ib].reset_index(drop=True)
    left = left.rename(columns={c: c + sx for c in left.columns if c not in keys})
    right = right.drop(columns=[c for c in keys if c in right.columns])
    right = right.rename(columns={c: c + sy for c in right.columns})
    return _pandas.concat([left, right], axis=1)


def _overlap_lengths(a, b, ia, ib):
    a_starts, a_ends = _coords(a)
    b_starts, b_ends = _coords(b)
    length = (_numpy.minimum(a_ends[ia], b_ends[ib])
              - _numpy.maximum(a_starts[ia], b_starts[ib]))
    return _numpy.maximum(length, 0)


def _check_suffix(suffix):
    if len(suffix) != 2 or suffix[0] == suffix[1]:
        raise ValueError("suffix must be two distinct strings")
    return tuple(suffix)


def _total_rows(*frames):
    return sum(len(f) for f in frames)


# ---------------------------------------------------------------------------
# bed_intersect / bed_window
# ---------------------------------------------------------------------------

def _intersect_task(task):
    a, b, keys, suffix, invert = task
    ia, ib = _sweep.overlap_pairs(*_coords(a), *_coords(b))
    if invert:
        hit = _numpy.zeros(len(a), dtype=bool)
        hit[ia] = True
        return a.loc[~hit].reset_index(drop=True)
    out = _pair_frame(a, b, ia, ib, keys, suffix)
    out["overlap_length"] = _overlap_lengths(a, b, ia, ib)
    return out


def _intersect(x, y, group_by, suffix, invert):
    keys = ["chrom"] + _group_cols(group_by)
    if invert:
        template = _empty_like(x)
    else:
        none = _numpy.empty(0, dtype=_numpy.int64)
        template = _pair_frame(x.iloc[0:0], y.iloc[0:0], none, none, keys, suffix)
        template["overlap_length"] = _numpy.empty(0, dtype=_numpy.int64)

    tasks = [(a, b, keys, suffix, invert) for a, b in _paired_partitions(x, y, group_by)]
    results = map_partitions(_intersect_task, tasks, n_rows=_total_rows(x, y))
    return _concat(results, template)


def bed_intersect(x, y, group_by=None, suffix=("_x", "_y"), invert=False):
    """
    Identify intersecting intervals.

    Reports one row per overlapping pair of *x* and *y* rows, found by a
    single sorted sweep per ``(chrom, group)`` partition.

    Parameters
    ----------
    x : DataFrame
        Query intervals (chrom, start, end and any payload).
    y : DataFrame
        Reference intervals.
    group_by : str or list of str, optional
        Secondary partition columns present in both sets, e.g. ``"strand"``.
    suffix : tuple of str, default ``("_x", "_y")``
        Appended to the non-partition columns of *x* and *y*.
    invert : bool, default False
        Return the rows of *x* that overlap nothing in *y* instead.

    Returns
    -------
    DataFrame
        Joined rows with an ``overlap_length`` column, ordered by the
        partitions of *x* and then by position. With ``invert=True`` the
        non-overlapping rows of *x* with their original columns.

    See Also
    --------
    bed_window : Intersect after extending query intervals.
    bed_subtract : Remove overlapping regions.
    flip_strands : Compare intervals on opposite strands.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", 100, 200)
    >>> y = pv.bed_intervals("chr1", 150, 250)
    >>> pv.bed_intersect(x, y)  # doctest: +SKIP
      chrom  start_x  end_x  start_y  end_y  overlap_length
    0  chr1      100    200      150    250              50
    """
    _check_intervals(x, "x", group_by)
    _check_intervals(y, "y", group_by)
    return _intersect(x, y, group_by, _check_suffix(suffix), invert)


def bed_window(x, y, genome=None, both=0, left=0, right=0, fraction=False,
               strand=False, group_by=None, suffix=("_x", "_y")):
    """
    Identify intervals within a window of query intervals.

    Each *x* interval is virtually extended by the flank sizes (same
    arithmetic as :func:`bed_slop`) before the overlap test. Reported *x*
    coordinates are the original ones.

    Parameters
    ----------
    x : DataFrame
        Query intervals.
    y : DataFrame
        Reference intervals.
    genome : GenomeIndex, optional
        When given, extended windows are trimmed to chromosome bounds.
    both, left, right : int or float, default 0
        Window size on both sides, or on the left/right side only.
    fraction : bool, default False
        Interpret window sizes as fractions of interval length.
    strand : bool, default False
        Define left and right relative to the strand of *x*.
    group_by : str or list of str, optional
        Secondary partition columns.
    suffix : tuple of str, default ``("_x", "_y")``
        Column suffixes.

    Returns
    -------
    DataFrame
        Joined rows; ``overlap_length`` is measured against the extended
        window.

    Raises
    ------
    AmbiguousParameterError
        If no window size is given or *both* is combined with *left*/*right*.
    SchemaError
        If *strand* is set and *x* has no strand column.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", 100, 200)
    >>> y = pv.bed_intervals("chr1", 230, 300)
    >>> pv.bed_window(x, y, both=50)  # doctest: +SKIP
    """
    _check_intervals(x, "x", group_by, require_strand=strand)
    _check_intervals(y, "y", group_by)
    suffix = _check_suffix(suffix)
    lsize, rsize = _side_spec(both, left, right)

    for col in ("_orig_start", "_orig_end"):
        if col in x.columns:
            raise ValueError(f"Column '{col}' is reserved by bed_window")

    ext = x.copy()
    ext["_orig_start"] = ext["start"]
    ext["_orig_end"] = ext["end"]
    ext["start"], ext["end"] = _slop_coords(x, lsize, rsize, fraction, strand)
    if genome is not None:
        ext = bed_clamp(ext, _as_genome(genome), policy="trim")

    result = _intersect(ext, y, group_by, suffix, invert=False)
    sx = suffix[0]
    result[f"start{sx}"] = result.pop(f"_orig_start{sx}")
    result[f"end{sx}"] = result.pop(f"_orig_end{sx}")
    order = [c for c in ["chrom"] + _group_cols(group_by)]
    order += [f"{c}{sx}" for c in x.columns if c not in order]
    order += [c for c in result.columns if c not in order]
    return result[order]


# ---------------------------------------------------------------------------
# bed_closest
# ---------------------------------------------------------------------------

def _closest_task(task):
    a, b, keys, suffix, ties, overlap, use_strand = task
    ia, ib, dist = _sweep.closest_pairs(*_coords(a), *_coords(b), ties=ties, overlap=overlap)
    out = _pair_frame(a, b, ia, ib, keys, suffix)
    out["overlap_length"] = _overlap_lengths(a, b, ia, ib)
    if use_strand:
        minus = a["strand"].astype(str).to_numpy()[ia] == "-"
        dist = _numpy.where(minus, -dist, dist)
    out["distance"] = dist
    return out


def bed_closest(x, y, group_by=None, ties="upstream", use_strand=False,
                overlap=True, suffix=("_x", "_y")):
    """
    Identify the closest intervals.

    For each *x* row, overlapping *y* rows are reported with distance 0 and
    take precedence. Otherwise the nearest *y* rows upstream (ending at or
    before ``x.start``) and downstream (starting at or after ``x.end``) are
    compared and the closer side wins.

    Parameters
    ----------
    x : DataFrame
        Query intervals.
    y : DataFrame
        Reference intervals.
    group_by : str or list of str, optional
        Secondary partition columns.
    ties : {"upstream", "downstream", "all"}, default "upstream"
        Which side to report when both sides are equally distant. Several
        *y* rows at the same coordinate on the chosen side are all
        reported.
    use_strand : bool, default False
        Report distances relative to the strand of *x*: for ``-`` strand
        rows the sign is reversed, so negative always means upstream in
        transcription direction.
    overlap : bool, default True
        Consider overlapping *y* rows. When False only non-overlapping
        neighbors are reported.
    suffix : tuple of str, default ``("_x", "_y")``
        Column suffixes.

    Returns
    -------
    DataFrame
        Joined rows with ``overlap_length`` and signed ``distance`` columns
        (negative: *y* lies before *x*; positive: after). Rows of *x* with
        no candidate in their partition are omitted.

    Raises
    ------
    SchemaError
        If *use_strand* is set and *x* has no strand column.

    See Also
    --------
    bed_absdist : Midpoint distances to the nearest reference.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", 100, 200)
    >>> y = pv.bed_intervals("chr1", 300, 400)
    >>> pv.bed_closest(x, y)["distance"].tolist()  # doctest: +SKIP
    [100]
    """
    if ties not in CLOSEST_TIES:
        raise ValueError(f"ties must be one of {', '.join(CLOSEST_TIES)}, got {ties!r}")
    _check_intervals(x, "x", group_by, require_strand=use_strand)
    _check_intervals(y, "y", group_by)
    suffix = _check_suffix(suffix)
    keys = ["chrom"] + _group_cols(group_by)

    none = _numpy.empty(0, dtype=_numpy.int64)
    template = _pair_frame(x.iloc[0:0], y.iloc[0:0], none, none, keys, suffix)
    template["overlap_length"] = none
    template["distance"] = none

    tasks = [
        (a, b, keys, suffix, ties, overlap, use_strand)
        for a, b in _paired_partitions(x, y, group_by)
    ]
    results = map_partitions(_closest_task, tasks, n_rows=_total_rows(x, y))
    return _concat(results, template)


# ---------------------------------------------------------------------------
# bed_map
# ---------------------------------------------------------------------------

def _concat_values(values):
    return ",".join(str(v) for v in values)


def _distinct_values(values):
    return ",".join(str(v) for v in _pandas.unique(values))


AGGREGATIONS = {
    "sum": "sum",
    "mean": "mean",
    "median": "median",
    "min": "min",
    "max": "max",
    "count": "count",
    "count_distinct": "nunique",
    "first": "first",
    "last": "last",
    "concat": _concat_values,
    "distinct": _distinct_values,
}

_ZERO_DEFAULT = ("count", "count_distinct")


def _resolve_aggregations(aggregations, columns, what="aggregations"):
    """Validate ``{out_name: (column, func)}`` and resolve function names."""
    if not isinstance(aggregations, dict) or not aggregations:
        raise ValueError(f"{what} must be a non-empty dict of out_name -> (column, func)")
    resolved = {}
    for out_name, spec in aggregations.items():
        try:
            column, func = spec
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{what}['{out_name}'] must be a (column, func) pair") from exc
        if column not in columns:
            raise SchemaError(f"Column '{column}' named in {what}['{out_name}'] does not exist")
        if isinstance(func, str):
            if func not in AGGREGATIONS:
                raise ValueError(
                    f"Unknown aggregation '{func}'; use one of {', '.join(AGGREGATIONS)} or a callable"
                )
            resolved[out_name] = (column, func, AGGREGATIONS[func])
        elif callable(func):
            resolved[out_name] = (column, None, func)
        else:
            raise ValueError(f"{what}['{out_name}'] function must be a name or a callable")
    return resolved


def _picklable(resolved):
    try:
        _pickle.dumps([agg for _col, _name, agg in resolved.values()])
    except (_pickle.PicklingError, AttributeError, TypeError):
        return False
    return True


def _fill_value(out_name, name, default):
    if isinstance(default, dict):
        if out_name in default:
            return default[out_name]
        return 0 if name in _ZERO_DEFAULT else _numpy.nan
    if name in _ZERO_DEFAULT:
        return 0
    return default


def _aggregate_groups(frame, group_ids, n_groups, resolved, default):
    """Aggregate *frame* rows by *group_ids* into one value per group id."""
    out = {}
    for out_name, (column, name, agg) in resolved.items():
        full = _pandas.Series([_fill_value(out_name, name, default)] * n_groups, dtype=object)
        if len(group_ids):
            values = frame[column].reset_index(drop=True)
            reduced = values.groupby(group_ids, sort=True).agg(agg)
            full.iloc[reduced.index.to_numpy()] = reduced.to_numpy()
        out[out_name] = full.infer_objects().to_numpy()
    return out


def _map_task(task):
    a, b, resolved, default = task
    ia, ib = _sweep.overlap_pairs(*_coords(a), *_coords(b))
    hits = b.iloc[ib].reset_index(drop=True)
    aggregated = _aggregate_groups(hits, ia, len(a), resolved, default)
    out = a.copy()
    for out_name, values in aggregated.items():
        out[out_name] = values
    return out


def bed_map(x, y, aggregations, group_by=None, default=_numpy.nan):
    """
    Summarize the reference intervals overlapping each query interval.

    Every row of *x* is kept (left-outer semantics). Overlapping *y* rows
    are collected and each aggregation is applied to one of their columns.

    Parameters
    ----------
    x : DataFrame
        Query intervals.
    y : DataFrame
        Reference intervals carrying the columns to aggregate.
    aggregations : dict
        ``{out_name: (column, func)}``. *func* is one of ``"sum"``,
        ``"mean"``, ``"median"``, ``"min"``, ``"max"``, ``"count"``,
        ``"count_distinct"``, ``"first"``, ``"last"``, ``"concat"``
        (comma-joined values), ``"distinct"`` (comma-joined unique values)
        or a callable receiving a Series of the overlapping values.
    group_by : str or list of str, optional
        Secondary partition columns.
    default : scalar or dict, default NaN
        Value for queries without overlaps; a dict gives per-column values.
        Counts default to 0.

    Returns
    -------
    DataFrame
        *x* in partition order with one column per aggregation.

    Raises
    ------
    SchemaError
        If an aggregation names a column absent from *y*.
    ValueError
        If an output column already exists in *x*.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", [100, 500], [250, 600])
    >>> y = pv.bed_intervals("chr1", [120, 200], [150, 400], score=[10, 5])
    >>> pv.bed_map(x, y, {"total": ("score", "sum"), "n": ("score", "count")})  # doctest: +SKIP
    """
    _check_intervals(x, "x", group_by)
    _check_intervals(y, "y", group_by)
    resolved = _resolve_aggregations(aggregations, y.columns)
    conflicts = [c for c in resolved if c in x.columns]
    if conflicts:
        raise ValueError(f"Aggregation columns would overwrite existing columns: {', '.join(conflicts)}")

    template = _empty_like(x)
    for out_name in resolved:
        template[out_name] = _pandas.Series(dtype=float)

    tasks = [(a, b, resolved, default) for a, b in _paired_partitions(x, y, group_by)]
    results = map_partitions(
        _map_task, tasks, n_rows=_total_rows(x, y), parallel=_picklable(resolved)
    )
    return _concat(results, template)
