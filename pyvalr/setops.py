"""Set operations: merge, cluster, complement and subtract."""

import numpy as _numpy
import pandas as _pandas

from . import _sweep
from ._shared import (
    _check_intervals,
    _concat,
    _empty_like,
    _group_cols,
    map_partitions,
    partitions,
)
from .genome import _as_genome
from .join import (
    _aggregate_groups,
    _coords,
    _paired_partitions,
    _picklable,
    _resolve_aggregations,
)


def _check_max_dist(max_dist):
    if max_dist < 0:
        raise ValueError("max_dist must be non-negative")
    return int(max_dist)


def _positive_length(frame):
    """Rows with non-zero length; points cover no bases."""
    return frame.loc[frame["end"] > frame["start"]].reset_index(drop=True)


# ---------------------------------------------------------------------------
# bed_merge / bed_cluster
# ---------------------------------------------------------------------------

def _merge_task(task):
    a, key_cols, key, max_dist, resolved = task
    ids, starts, ends = _sweep.merge_spans(*_coords(a), max_dist)
    out = {}
    for col, value in zip(key_cols, key, strict=True):
        out[col] = [value] * len(starts)
    out["start"] = starts
    out["end"] = ends
    if resolved:
        out.update(_aggregate_groups(a, ids, len(starts), resolved, _numpy.nan))
    return _pandas.DataFrame(out)


def bed_merge(intervals, max_dist=0, group_by=None, reductions=None):
    """
    Merge overlapping and nearby intervals.

    Within each ``(chrom, group)`` partition, intervals are coalesced while
    the gap between the next start and the running end is at most
    *max_dist*. Bookended intervals merge at ``max_dist=0``.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with columns chrom, start, end and any payload.
    max_dist : int, default 0
        Largest gap that still merges two intervals.
    group_by : str or list of str, optional
        Secondary partition columns, e.g. ``"strand"``.
    reductions : dict, optional
        ``{out_name: (column, func)}`` combining payload of merged rows,
        with the same function vocabulary as :func:`bed_map` (``"sum"``,
        ``"concat"``, ``"count"``, ...). Payload not named here is dropped.

    Returns
    -------
    DataFrame
        Merged intervals with columns chrom, the *group_by* columns, start,
        end and one column per reduction.

    See Also
    --------
    bed_cluster : Label rows instead of merging them.
    bed_complement : Gaps between merged intervals.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", [1, 10, 100], [50, 75, 120], score=[1, 2, 3])
    >>> pv.bed_merge(x)  # doctest: +SKIP
      chrom  start  end
    0  chr1      1   75
    1  chr1    100  120
    >>> pv.bed_merge(x, reductions={"total": ("score", "sum")})  # doctest: +SKIP
    """
    _check_intervals(intervals, group_by=group_by)
    max_dist = _check_max_dist(max_dist)
    resolved = _resolve_aggregations(reductions, intervals.columns, "reductions") if reductions else {}
    key_cols = ["chrom"] + _group_cols(group_by)

    template = intervals[key_cols + ["start", "end"]].iloc[0:0].reset_index(drop=True)
    for out_name in resolved:
        template[out_name] = _pandas.Series(dtype=float)

    tasks = [(a, key_cols, key, max_dist, resolved) for key, a in partitions(intervals, group_by)]
    results = map_partitions(
        _merge_task, tasks, n_rows=len(intervals), parallel=_picklable(resolved)
    )
    return _concat(results, template)


def _cluster_task(task):
    a, max_dist = task
    return _sweep.cluster_ids(*_coords(a), max_dist)


def bed_cluster(intervals, max_dist=0, group_by=None, id_col="cluster_id"):
    """
    Cluster neighboring intervals.

    Uses the same grouping criterion as :func:`bed_merge` but keeps every
    input row, labelled with the cluster it belongs to.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with columns chrom, start, end and any payload.
    max_dist : int, default 0
        Largest gap between rows of one cluster.
    group_by : str or list of str, optional
        Secondary partition columns.
    id_col : str, default ``"cluster_id"``
        Name of the cluster label column.

    Returns
    -------
    DataFrame
        All input rows in partition order with an integer *id_col*. Ids
        increase in first-occurrence order and are unique across
        partitions.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", [100, 180, 400], [200, 250, 500])
    >>> pv.bed_cluster(x)["cluster_id"].tolist()  # doctest: +SKIP
    [0, 0, 1]
    """
    _check_intervals(intervals, group_by=group_by)
    max_dist = _check_max_dist(max_dist)
    if id_col in intervals.columns:
        raise ValueError(f"Column '{id_col}' already exists in intervals")

    parts = [a for _key, a in partitions(intervals, group_by)]
    ids = map_partitions(_cluster_task, [(a, max_dist) for a in parts], n_rows=len(intervals))

    offset = 0
    frames = []
    for a, local in zip(parts, ids, strict=True):
        a = a.copy()
        a[id_col] = local + offset
        if len(local):
            offset += int(local[-1]) + 1
        frames.append(a)

    template = _empty_like(intervals, {id_col: _numpy.int64})
    return _concat(frames, template)


# ---------------------------------------------------------------------------
# bed_complement
# ---------------------------------------------------------------------------

def _complement_task(task):
    chrom, size, a = task
    if a is None or len(a) == 0:
        return _pandas.DataFrame({"chrom": [chrom], "start": [0], "end": [size]})
    _ids, starts, ends = _sweep.merge_spans(*_coords(a), 0)
    gap_starts = _numpy.concatenate([[0], ends])
    gap_ends = _numpy.concatenate([starts, [size]])
    keep = gap_ends > gap_starts
    return _pandas.DataFrame({
        "chrom": [chrom] * int(keep.sum()),
        "start": gap_starts[keep].astype(_numpy.int64),
        "end": gap_ends[keep].astype(_numpy.int64),
    })


def bed_complement(intervals, genome):
    """
    Identify intervals in a genome not covered by the input.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with columns chrom, start, end. Overlaps are merged
        first; secondary grouping does not apply.
    genome : GenomeIndex
        Chromosome sizes.

    Returns
    -------
    DataFrame
        Uncovered intervals (chrom, start, end) in genome order. A
        chromosome without input rows is returned whole; a fully covered
        chromosome contributes nothing.

    Raises
    ------
    UnknownChromError
        If *intervals* references a chromosome missing from *genome*.

    Examples
    --------
    >>> import pyvalr as pv
    >>> genome = pv.GenomeIndex({"chr1": 500, "chr2": 100})
    >>> x = pv.bed_intervals("chr1", [0, 150], [100, 200])
    >>> pv.bed_complement(x, genome)  # doctest: +SKIP
      chrom  start  end
    0  chr1    100  150
    1  chr1    200  500
    2  chr2      0  100
    """
    _check_intervals(intervals)
    genome = _as_genome(genome)
    genome.check_chroms(intervals, "bed_complement")

    parts = {str(key[0]): a for key, a in partitions(_positive_length(intervals))}
    tasks = [(chrom, genome.size(chrom), parts.get(chrom)) for chrom in genome.chroms]

    results = map_partitions(_complement_task, tasks, n_rows=len(intervals))
    template = _pandas.DataFrame({
        "chrom": _pandas.Series(dtype=object),
        "start": _pandas.Series(dtype=_numpy.int64),
        "end": _pandas.Series(dtype=_numpy.int64),
    })
    return _concat(results, template)


# ---------------------------------------------------------------------------
# bed_subtract
# ---------------------------------------------------------------------------

def _subtract_task(task):
    a, b, remove_any = task
    if remove_any:
        counts = _sweep.overlap_counts(*_coords(a), *_coords(b))
        return a.loc[counts == 0].reset_index(drop=True)
    _ids, m_starts, m_ends = _sweep.merge_spans(*_coords(_positive_length(b)), 0)
    ia, starts, ends = _sweep.subtract_fragments(*_coords(a), m_starts, m_ends)
    out = a.iloc[ia].reset_index(drop=True)
    out["start"] = starts
    out["end"] = ends
    return out


def bed_subtract(x, y, group_by=None, remove_any=False):
    """
    Subtract two sets of intervals.

    Removes from each *x* row the bases covered by the union of the
    overlapping *y* rows. A row may be split into several fragments, all
    carrying its payload; a fully covered row disappears and a row without
    overlap is returned unchanged.

    Parameters
    ----------
    x : DataFrame
        Intervals to subtract from.
    y : DataFrame
        Intervals to subtract.
    group_by : str or list of str, optional
        Secondary partition columns.
    remove_any : bool, default False
        Drop every *x* row overlapping *y* at all instead of cutting it.

    Returns
    -------
    DataFrame
        Remaining intervals with the columns of *x*, in partition order.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", 100, 200)
    >>> y = pv.bed_intervals("chr1", 150, 250)
    >>> pv.bed_subtract(x, y)  # doctest: +SKIP
      chrom  start  end
    0  chr1    100  150
    """
    _check_intervals(x, "x", group_by)
    _check_intervals(y, "y", group_by)

    tasks = [(a, b, remove_any) for a, b in _paired_partitions(x, y, group_by)]
    results = map_partitions(_subtract_task, tasks, n_rows=len(x) + len(y))
    return _concat(results, _empty_like(x))
