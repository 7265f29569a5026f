"""Overlap statistics: jaccard, relative/absolute distance and Fisher's test."""

import numpy as _numpy
import pandas as _pandas
from scipy import stats as _scipy_stats

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
from .join import _coords

FISHER_MODES = ("bases", "counts")
FISHER_ALTERNATIVES = ("two-sided", "greater", "less")


def _merged(frame):
    """Merged, positive-length spans of one sorted partition."""
    if frame is None or len(frame) == 0:
        empty = _numpy.empty(0, dtype=_numpy.int64)
        return empty, empty
    starts, ends = _coords(frame)
    keep = ends > starts
    _ids, m_starts, m_ends = _sweep.merge_spans(starts[keep], ends[keep], 0)
    return m_starts, m_ends


def _union_partitions(x, y, group_by):
    """Pair partitions of *x* and *y* over the union of their keys."""
    x_parts = partitions(x, group_by, "x")
    y_parts = dict(partitions(y, group_by, "y"))
    pairs = [(key, a, y_parts.pop(key, None)) for key, a in x_parts]
    pairs.extend((key, None, b) for key, b in y_parts.items())
    return pairs


# ---------------------------------------------------------------------------
# bed_jaccard
# ---------------------------------------------------------------------------

def _jaccard_task(task):
    a, b = task
    xs, xe = _merged(a)
    ys, ye = _merged(b)
    ia, ib = _sweep.overlap_pairs(xs, xe, ys, ye)
    len_i = int((_numpy.minimum(xe[ia], ye[ib]) - _numpy.maximum(xs[ia], ys[ib])).sum())
    starts = _numpy.concatenate([xs, ys])
    ends = _numpy.concatenate([xe, ye])
    order = _numpy.lexsort((ends, starts))
    len_u = _sweep.covered_length(starts[order], ends[order])
    return len_i, len_u, len(ia)


def _jaccard_row(len_i, len_u, n):
    jaccard = len_i / len_u if len_u > 0 else _numpy.nan
    return {"len_i": len_i, "len_u": len_u, "jaccard": jaccard, "n": n}


def bed_jaccard(x, y, group_by=None):
    """
    Calculate the Jaccard statistic for two sets of intervals.

    The intersection length is the overlap of the merged sets, so bases
    covered by several intervals count once; the union length is the
    covered length of ``merge(x ∪ y)``.

    Parameters
    ----------
    x : DataFrame
        First interval set.
    y : DataFrame
        Second interval set.
    group_by : str or list of str, optional
        Compute one statistic per value of these columns.

    Returns
    -------
    Series or DataFrame
        ``len_i``, ``len_u``, ``jaccard`` (in ``[0, 1]``; NaN when both sets
        are empty) and ``n`` (number of intersections). With *group_by*, a
        DataFrame with one row per group.

    See Also
    --------
    bed_fisher : Significance of the overlap.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", [0, 200], [100, 300])
    >>> y = pv.bed_intervals("chr1", 50, 250)
    >>> pv.bed_jaccard(x, y)  # doctest: +SKIP
    len_i      100.000000
    len_u      300.000000
    jaccard      0.333333
    n            2.000000
    dtype: float64
    """
    _check_intervals(x, "x", group_by)
    _check_intervals(y, "y", group_by)

    pairs = _union_partitions(x, y, group_by)
    results = map_partitions(_jaccard_task, [(a, b) for _key, a, b in pairs], n_rows=len(x) + len(y))

    group_cols = _group_cols(group_by)
    if not group_cols:
        totals = _numpy.array(results, dtype=_numpy.int64).reshape(-1, 3).sum(axis=0)
        return _pandas.Series(_jaccard_row(int(totals[0]), int(totals[1]), int(totals[2])))

    sums = {}
    for (key, _a, _b), (len_i, len_u, n) in zip(pairs, results, strict=True):
        group = key[1:]
        acc = sums.setdefault(group, [0, 0, 0])
        acc[0] += len_i
        acc[1] += len_u
        acc[2] += n
    rows = []
    for group, (len_i, len_u, n) in sums.items():
        row = dict(zip(group_cols, group, strict=True))
        row.update(_jaccard_row(len_i, len_u, n))
        rows.append(row)
    return _pandas.DataFrame(rows, columns=group_cols + ["len_i", "len_u", "jaccard", "n"])


# ---------------------------------------------------------------------------
# bed_reldist / bed_absdist
# ---------------------------------------------------------------------------

def _midpoints(frame):
    starts, ends = _coords(frame)
    return (starts + ends) // 2


def _reference_midpoints(y):
    return {key[0]: _numpy.sort(_midpoints(b)) for key, b in partitions(y)}


def _reldist_task(task):
    a, ref = task
    query = _midpoints(a)
    if ref is None or len(ref) < 2:
        return _numpy.full(len(a), _numpy.nan)
    idx = _numpy.searchsorted(ref, query, side="right")
    inside = (idx > 0) & (idx < len(ref))
    result = _numpy.full(len(a), _numpy.nan)
    left = ref[idx[inside] - 1]
    right = ref[idx[inside]]
    q = query[inside]
    result[inside] = _numpy.minimum(q - left, right - q) / (right - left)
    return result


def bed_reldist(x, y, detail=False):
    """
    Compute the relative distances between two sets of intervals.

    For every *x* midpoint, the two flanking *y* midpoints on the same
    chromosome are found and the distance to the nearer one is divided by
    the gap between them. The result lies in ``[0, 0.5]``; *x* rows
    outside the span of *y* midpoints are dropped.

    Parameters
    ----------
    x : DataFrame
        Query intervals.
    y : DataFrame
        Reference intervals.
    detail : bool, default False
        Return one row per query instead of a histogram.

    Returns
    -------
    DataFrame
        With ``detail=True``, the rows of *x* with a ``reldist`` column.
        Otherwise a histogram with columns ``reldist`` (bin lower bound in
        0.01 steps), ``counts``, ``total`` and ``freq``.

    See Also
    --------
    bed_absdist : Unnormalized nearest-neighbor distances.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", [100, 500], [110, 510])
    >>> y = pv.bed_intervals("chr1", [0, 400, 1000], [10, 410, 1010])
    >>> pv.bed_reldist(x, y, detail=True)  # doctest: +SKIP
    """
    _check_intervals(x, "x")
    _check_intervals(y, "y")
    if "reldist" in x.columns:
        raise ValueError("Column 'reldist' already exists in x")

    refs = _reference_midpoints(y)
    parts = [a for _key, a in partitions(x)]
    tasks = [(a, refs.get(a["chrom"].iloc[0])) for a in parts]
    values = map_partitions(_reldist_task, tasks, n_rows=len(x) + len(y))

    frames = []
    for a, rel in zip(parts, values, strict=True):
        a = a.copy()
        a["reldist"] = rel
        frames.append(a.loc[~_numpy.isnan(rel)])
    template = _empty_like(x, {"reldist": float})
    detailed = _concat(frames, template)
    if detail:
        return detailed

    scaled = _numpy.round(detailed["reldist"].to_numpy(dtype=float) * 100, 6)
    bins = (_numpy.floor(scaled) / 100).round(2)
    counts = _pandas.Series(bins).value_counts().sort_index()
    total = int(counts.sum())
    return _pandas.DataFrame({
        "reldist": counts.index.to_numpy(dtype=float),
        "counts": counts.to_numpy(dtype=_numpy.int64),
        "total": total,
        "freq": counts.to_numpy(dtype=float) / total if total else _numpy.empty(0),
    })


def _absdist_task(task):
    a, ref = task
    query = _midpoints(a)
    if ref is None or len(ref) == 0:
        return _numpy.full(len(a), _numpy.nan)
    n = len(ref)
    ref_f = ref.astype(float)
    q = query.astype(float)
    idx = _numpy.searchsorted(ref, query, side="left")
    up = _numpy.where(idx > 0, ref_f[_numpy.maximum(idx - 1, 0)] - q, -_numpy.inf)
    down = _numpy.where(idx < n, ref_f[_numpy.minimum(idx, n - 1)] - q, _numpy.inf)
    return _numpy.where(_numpy.abs(up) <= _numpy.abs(down), up, down)


def bed_absdist(x, y, genome=None):
    """
    Compute absolute distances between two sets of intervals.

    For every *x* midpoint, the signed distance to the nearest *y* midpoint
    on the same chromosome (``y_mid - x_mid``; negative when the reference
    lies upstream). Equal distances on both sides resolve upstream.

    Parameters
    ----------
    x : DataFrame
        Query intervals.
    y : DataFrame
        Reference intervals.
    genome : GenomeIndex, optional
        When given, add ``absdist_scaled``: the absolute distance divided by
        the expected spacing of references on the chromosome
        (``chrom_size / n_references``).

    Returns
    -------
    DataFrame
        The rows of *x* in partition order with an ``absdist`` column, NaN
        where the chromosome has no reference.

    Examples
    --------
    >>> import pyvalr as pv
    >>> x = pv.bed_intervals("chr1", 100, 110)
    >>> y = pv.bed_intervals("chr1", [0, 300], [10, 310])
    >>> pv.bed_absdist(x, y)["absdist"].tolist()  # doctest: +SKIP
    [-100.0]
    """
    _check_intervals(x, "x")
    _check_intervals(y, "y")
    for col in ("absdist", "absdist_scaled"):
        if col in x.columns:
            raise ValueError(f"Column '{col}' already exists in x")
    if genome is not None:
        genome = _as_genome(genome)
        genome.check_chroms(x, "bed_absdist")

    refs = _reference_midpoints(y)
    parts = [a for _key, a in partitions(x)]
    tasks = [(a, refs.get(a["chrom"].iloc[0])) for a in parts]
    values = map_partitions(_absdist_task, tasks, n_rows=len(x) + len(y))

    frames = []
    for a, dist in zip(parts, values, strict=True):
        a = a.copy()
        a["absdist"] = dist
        if genome is not None:
            chrom = a["chrom"].iloc[0]
            n_ref = len(refs.get(chrom, ()))
            spacing = genome.size(chrom) / n_ref if n_ref else _numpy.nan
            a["absdist_scaled"] = _numpy.abs(dist) / spacing
        frames.append(a)

    template = _empty_like(x, {"absdist": float})
    if genome is not None:
        template["absdist_scaled"] = _pandas.Series(dtype=float)
    return _concat(frames, template)


# ---------------------------------------------------------------------------
# bed_fisher
# ---------------------------------------------------------------------------

def _fisher_task(task):
    a, b = task
    xs, xe = _merged(a)
    ys, ye = _merged(b)
    ia, ib = _sweep.overlap_pairs(xs, xe, ys, ye)
    both_bp = int((_numpy.minimum(xe[ia], ye[ib]) - _numpy.maximum(xs[ia], ys[ib])).sum())
    return {
        "x_bp": int((xe - xs).sum()),
        "y_bp": int((ye - ys).sum()),
        "both_bp": both_bp,
        "x_n": len(xs),
        "y_n": len(ys),
        "both_n": len(_numpy.unique(ia)),
    }


def bed_fisher(x, y, genome, mode="bases", alternative="two-sided"):
    """
    Fisher's exact test on the overlap of two sets of intervals.

    Builds the 2x2 table ``[[both, x_only], [y_only, neither]]`` and tests
    it against the null of independent placement along the genome.

    Parameters
    ----------
    x : DataFrame
        First interval set. Overlapping rows are merged first.
    y : DataFrame
        Second interval set.
    genome : GenomeIndex
        Chromosome sizes; the table spans ``genome.total_size``.
    mode : {"bases", "counts"}, default "bases"
        ``"bases"`` tabulates covered base pairs. ``"counts"`` tabulates
        intervals: ``both`` is the number of merged *x* intervals overlapping
        *y*, and ``neither`` is the uncovered genome divided into blocks of
        ``1 + union_bp / (n_x + n_y)`` bases.
    alternative : {"two-sided", "greater", "less"}, default "two-sided"
        ``"greater"`` tests for enrichment of overlap, ``"less"`` for
        depletion.

    Returns
    -------
    Series
        ``n_both``, ``n_x_only``, ``n_y_only``, ``n_neither``,
        ``odds_ratio`` and ``p_value``.

    Raises
    ------
    UnknownChromError
        If either set references a chromosome missing from *genome*.

    See Also
    --------
    bed_jaccard : Overlap relative to union length.

    Examples
    --------
    >>> import pyvalr as pv
    >>> genome = pv.GenomeIndex({"chr1": 10000})
    >>> x = pv.bed_intervals("chr1", [100, 1000], [200, 1100])
    >>> y = pv.bed_intervals("chr1", [150, 1050], [250, 1150])
    >>> pv.bed_fisher(x, y, genome, alternative="greater")  # doctest: +SKIP
    """
    if mode not in FISHER_MODES:
        raise ValueError(f"mode must be one of {', '.join(FISHER_MODES)}, got {mode!r}")
    if alternative not in FISHER_ALTERNATIVES:
        raise ValueError(
            f"alternative must be one of {', '.join(FISHER_ALTERNATIVES)}, got {alternative!r}"
        )
    _check_intervals(x, "x")
    _check_intervals(y, "y")
    genome = _as_genome(genome)
    genome.check_chroms(x, "bed_fisher")
    genome.check_chroms(y, "bed_fisher")

    pairs = _union_partitions(x, y, None)
    parts = map_partitions(_fisher_task, [(a, b) for _key, a, b in pairs], n_rows=len(x) + len(y))
    totals = {k: sum(p[k] for p in parts) for k in ("x_bp", "y_bp", "both_bp", "x_n", "y_n", "both_n")}

    total = genome.total_size
    union_bp = totals["x_bp"] + totals["y_bp"] - totals["both_bp"]
    if mode == "bases":
        n_both = totals["both_bp"]
        n_x_only = totals["x_bp"] - n_both
        n_y_only = totals["y_bp"] - n_both
        n_neither = max(total - union_bp, 0)
    else:
        n_both = totals["both_n"]
        n_x_only = totals["x_n"] - n_both
        n_y_only = max(totals["y_n"] - n_both, 0)
        n_intervals = totals["x_n"] + totals["y_n"]
        block = 1.0 + (union_bp / n_intervals if n_intervals else 0.0)
        n_neither = max(int((total - union_bp) / block), 0)

    table = [[n_both, n_x_only], [n_y_only, n_neither]]
    odds_ratio, p_value = _scipy_stats.fisher_exact(table, alternative=alternative)
    return _pandas.Series({
        "n_both": n_both,
        "n_x_only": n_x_only,
        "n_y_only": n_y_only,
        "n_neither": n_neither,
        "odds_ratio": float(odds_ratio),
        "p_value": float(p_value),
    })
