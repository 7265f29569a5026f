"""Sweep-line kernels over one sorted partition.

All functions take numpy coordinate arrays of a single ``(chrom, group)``
partition, sorted ascending by ``(start, end)``, and return row positions
into those arrays.

A point interval ``[p, p)`` is probed as ``[p, p + 1)``, so it overlaps any
interval containing ``p``.
"""

from bisect import bisect_left

import numpy as _numpy

_EMPTY = _numpy.empty(0, dtype=_numpy.int64)


def probe_ends(starts, ends):
    """End coordinates used by the overlap predicate."""
    return _numpy.where(ends > starts, ends, starts + 1)


def overlap_pairs(a_starts, a_ends, b_starts, b_ends):
    """Return ``(ia, ib)`` for every overlapping pair of rows.

    Pairs are grouped by ``a`` row and, within one ``a``, follow ``b`` order.
    """
    na = len(a_starts)
    nb = len(b_starts)
    if na == 0 or nb == 0:
        return _EMPTY, _EMPTY

    a_s = a_starts.tolist()
    a_e = probe_ends(a_starts, a_ends).tolist()
    b_s = b_starts.tolist()
    b_e = probe_ends(b_starts, b_ends).tolist()

    out_a = []
    out_b = []
    active = []
    j = 0
    for i in range(na):
        start = a_s[i]
        end = a_e[i]
        while j < nb and b_s[j] < end:
            active.append(j)
            j += 1
        if not active:
            continue
        # a starts never decrease, so an evicted b cannot overlap a later a
        active = [k for k in active if b_e[k] > start]
        for k in active:
            if b_s[k] < end:
                out_a.append(i)
                out_b.append(k)

    return _numpy.asarray(out_a, dtype=_numpy.int64), _numpy.asarray(out_b, dtype=_numpy.int64)


def overlap_counts(a_starts, a_ends, b_starts, b_ends):
    """Number of overlapping ``b`` rows for every ``a`` row."""
    ia, _ib = overlap_pairs(a_starts, a_ends, b_starts, b_ends)
    return _numpy.bincount(ia, minlength=len(a_starts))


def closest_pairs(a_starts, a_ends, b_starts, b_ends, ties="upstream", overlap=True):
    """Return ``(ia, ib, distance)`` linking every ``a`` to its nearest ``b``.

    Overlapping rows get distance 0 and win over any other candidate. Other
    candidates are the upstream rows with the largest end at or before
    ``a.start`` and the downstream rows with the smallest start at or after
    ``a.end``. Distances are signed on genome coordinates: negative when
    ``b`` lies before ``a``.
    """
    na = len(a_starts)
    nb = len(b_starts)
    if na == 0 or nb == 0:
        return _EMPTY, _EMPTY, _EMPTY

    a_s = a_starts.tolist()
    a_end = a_ends.tolist()
    a_e = probe_ends(a_starts, a_ends).tolist()
    b_s = b_starts.tolist()
    b_end = b_ends.tolist()
    b_e = probe_ends(b_starts, b_ends).tolist()

    out_a = []
    out_b = []
    out_d = []
    active = []
    up_end = None
    up_rows = []
    j = 0
    for i in range(na):
        start = a_s[i]
        end = a_e[i]
        while j < nb and b_s[j] < end:
            active.append(j)
            j += 1

        kept = []
        for k in active:
            if b_e[k] > start:
                kept.append(k)
            elif up_end is None or b_end[k] > up_end:
                up_end = b_end[k]
                up_rows = [k]
            elif b_end[k] == up_end:
                up_rows.append(k)
        active = kept

        if overlap:
            hits = [k for k in active if b_s[k] < end]
            if hits:
                out_a.extend([i] * len(hits))
                out_b.extend(hits)
                out_d.extend([0] * len(hits))
                continue

        up_dist = start - up_end if up_end is not None else None
        down = bisect_left(b_s, end)
        down_dist = b_s[down] - a_end[i] if down < nb else None

        take_up = up_dist is not None and (
            down_dist is None
            or up_dist < down_dist
            or (up_dist == down_dist and ties in ("upstream", "all"))
        )
        take_down = down_dist is not None and (
            up_dist is None
            or down_dist < up_dist
            or (up_dist == down_dist and ties in ("downstream", "all"))
        )

        if take_up:
            out_a.extend([i] * len(up_rows))
            out_b.extend(up_rows)
            out_d.extend([-up_dist] * len(up_rows))
        if take_down:
            k = down
            while k < nb and b_s[k] == b_s[down]:
                out_a.append(i)
                out_b.append(k)
                out_d.append(down_dist)
                k += 1

    return (
        _numpy.asarray(out_a, dtype=_numpy.int64),
        _numpy.asarray(out_b, dtype=_numpy.int64),
        _numpy.asarray(out_d, dtype=_numpy.int64),
    )


def cluster_ids(starts, ends, max_dist=0):
    """Cluster index of every row; rows join while ``start - running_end <= max_dist``."""
    n = len(starts)
    if n == 0:
        return _EMPTY
    running_end = _numpy.maximum.accumulate(ends)
    breaks = (starts[1:] - running_end[:-1]) > max_dist
    return _numpy.concatenate([[0], _numpy.cumsum(breaks)]).astype(_numpy.int64)


def merge_spans(starts, ends, max_dist=0):
    """Return ``(ids, merged_starts, merged_ends)`` of coalesced rows."""
    ids = cluster_ids(starts, ends, max_dist)
    if len(ids) == 0:
        return ids, _EMPTY, _EMPTY
    n_clusters = int(ids[-1]) + 1
    first = _numpy.searchsorted(ids, _numpy.arange(n_clusters), side="left")
    merged_ends = _numpy.maximum.reduceat(ends, first)
    return ids, starts[first], merged_ends


def subtract_fragments(a_starts, a_ends, m_starts, m_ends):
    """Cut disjoint sorted spans ``m`` out of every ``a`` row.

    Returns ``(ia, frag_starts, frag_ends)``. Rows without any overlapping
    span are returned whole; fully covered rows produce nothing.
    """
    na = len(a_starts)
    if na == 0:
        return _EMPTY, _EMPTY, _EMPTY

    m_s = m_starts.tolist()
    m_e = m_ends.tolist()
    a_probe = probe_ends(a_starts, a_ends).tolist()
    first = _numpy.searchsorted(m_ends, a_starts, side="right").tolist()
    nm = len(m_s)

    out_a = []
    out_s = []
    out_e = []
    for i, (start, end) in enumerate(zip(a_starts.tolist(), a_ends.tolist(), strict=True)):
        k = first[i]
        if k >= nm or m_s[k] >= a_probe[i]:
            out_a.append(i)
            out_s.append(start)
            out_e.append(end)
            continue
        cur = start
        while k < nm and m_s[k] < end:
            if m_s[k] > cur:
                out_a.append(i)
                out_s.append(cur)
                out_e.append(m_s[k])
            cur = max(cur, m_e[k])
            k += 1
        if cur < end:
            out_a.append(i)
            out_s.append(cur)
            out_e.append(end)

    return (
        _numpy.asarray(out_a, dtype=_numpy.int64),
        _numpy.asarray(out_s, dtype=_numpy.int64),
        _numpy.asarray(out_e, dtype=_numpy.int64),
    )


def covered_length(starts, ends):
    """Total bases covered by sorted rows, counting overlaps once."""
    _ids, merged_starts, merged_ends = merge_spans(starts, ends, max_dist=0)
    return int((merged_ends - merged_starts).sum())
