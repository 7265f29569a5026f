"""Interval set construction, sorting and strand utilities."""

import numpy as _numpy
import pandas as _pandas

from ._errors import SchemaError
from ._shared import (
    _check_intervals,
    _first_unsorted,
    _group_cols,
)

STRANDS = ("+", "-", ".")


def bed_intervals(chroms, starts, ends, strand=None, **payload):
    """
    Create an intervals DataFrame.

    Constructs intervals from parallel arrays of chromosome names, start
    and end coordinates. Scalar arguments are broadcast to match the
    longest array.

    Parameters
    ----------
    chroms : str or list of str
        Chromosome names.
    starts : int or list of int
        Start coordinates (0-based, inclusive).
    ends : int or list of int
        End coordinates (0-based, exclusive).
    strand : str or list of str, optional
        Strand labels, one of ``"+"``, ``"-"`` or ``"."``.
    **payload
        Extra columns, scalars or sequences of matching length.

    Returns
    -------
    DataFrame
        Intervals with columns chrom, start, end (strand and payload when
        given), in the order supplied.

    Raises
    ------
    SchemaError
        If an interval has ``start < 0`` or ``end < start`` or a strand label
        is invalid.

    See Also
    --------
    bed_sort : Sort intervals by chromosome and position.

    Examples
    --------
    >>> import pyvalr as pv
    >>> pv.bed_intervals("chr1", [100, 500], [200, 800], name=["a", "b"])  # doctest: +SKIP
    """
    if isinstance(chroms, str):
        chroms = [chroms]
    if isinstance(starts, (int, _numpy.integer)):
        starts = [starts]
    if isinstance(ends, (int, _numpy.integer)):
        ends = [ends]

    chroms = [str(c) for c in chroms]
    starts = [int(s) for s in starts]
    ends = [int(e) for e in ends]

    n = max(len(chroms), len(starts), len(ends))
    if len(chroms) == 1:
        chroms = chroms * n
    if len(starts) == 1:
        starts = starts * n
    if len(ends) == 1:
        ends = ends * n

    if not (len(chroms) == len(starts) == len(ends)):
        raise ValueError("chroms, starts, and ends must have the same length")

    df = _pandas.DataFrame({
        'chrom': chroms,
        'start': _numpy.array(starts, dtype=_numpy.int64),
        'end': _numpy.array(ends, dtype=_numpy.int64),
    })

    if strand is not None:
        if isinstance(strand, str):
            strand = [strand] * n
        strand = list(strand)
        if len(strand) != n:
            raise ValueError("strand must have the same length as other arguments")
        for s in strand:
            if s not in STRANDS:
                raise SchemaError(f"Invalid strand value {s!r}: must be one of {', '.join(STRANDS)}")
        df['strand'] = strand

    for col, values in payload.items():
        if col in df.columns:
            raise ValueError(f"Payload column '{col}' collides with an interval column")
        df[col] = values

    return _check_intervals(df)


def bed_sort(intervals, group_by=None, by_size=False, reverse=False):
    """
    Sort intervals.

    Rows are ordered by chromosome name, then by the *group_by* columns,
    then by start and end. The sort is stable, so rows with identical keys
    keep their relative order.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with columns chrom, start, end.
    group_by : str or list of str, optional
        Secondary partition columns sorted right after chrom.
    by_size : bool, default False
        Sort by interval length instead of coordinates.
    reverse : bool, default False
        Reverse the coordinate (or size) order within each chromosome.

    Returns
    -------
    DataFrame
        A sorted copy with a fresh index.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals(["chr2", "chr1", "chr1"], [5, 30, 10], [20, 40, 15])
    >>> pv.bed_sort(x)  # doctest: +SKIP
    """
    _check_intervals(intervals, group_by=group_by)
    if len(intervals) == 0:
        return intervals.copy().reset_index(drop=True)

    keys = ["chrom"] + _group_cols(group_by)
    ascending = [True] * len(keys)
    df = intervals.copy()
    if by_size:
        df["_size"] = df["end"] - df["start"]
        keys.append("_size")
        ascending.append(not reverse)
    else:
        keys.extend(["start", "end"])
        ascending.extend([not reverse, not reverse])

    df = df.sort_values(keys, ascending=ascending, kind="mergesort").reset_index(drop=True)
    if by_size:
        df = df.drop(columns=["_size"])
    return df


def bed_is_sorted(intervals, group_by=None):
    """
    Check whether intervals are sorted within their partitions.

    Partitions are ``(chrom, *group_by)`` keys; their relative order does
    not matter. Inside each partition rows must be ascending by
    ``(start, end)``.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with columns chrom, start, end.
    group_by : str or list of str, optional
        Secondary partition columns.

    Returns
    -------
    bool
    """
    _check_intervals(intervals, group_by=group_by)
    keys = ["chrom"] + _group_cols(group_by)
    for _key, frame in intervals.groupby(keys, sort=False, dropna=False, observed=True):
        if _first_unsorted(frame["start"].to_numpy(), frame["end"].to_numpy()) >= 0:
            return False
    return True


def flip_strands(intervals):
    """
    Swap ``+`` and ``-`` strand labels.

    Grouping one side of a pairwise operation on a flipped strand compares
    intervals on opposite strands.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with a ``strand`` column.

    Returns
    -------
    DataFrame
        A copy with flipped strands; ``"."`` is left unchanged.

    Raises
    ------
    SchemaError
        If *intervals* has no strand column.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", 100, 200, strand="+")
    >>> y = pv.bed_intervals("chr1", 150, 250, strand="-")
    >>> pv.bed_intersect(x, pv.flip_strands(y), group_by="strand")  # doctest: +SKIP
    """
    _check_intervals(intervals, require_strand=True)
    result = intervals.copy()
    strands = result["strand"].astype(str).to_numpy()
    result["strand"] = _numpy.where(strands == "+", "-", _numpy.where(strands == "-", "+", strands))
    return result

