"""
Shared configuration and partition utilities for pyvalr modules.

Thread-safety note:
``CONFIG`` is process-global and not synchronized for concurrent mutation.
Change it from a single controlling thread.
"""

import hashlib as _hashlib
import logging as _logging
import multiprocessing as _multiprocessing
import os as _os

import numpy as _numpy
import pandas as _pandas

from ._errors import OrderingError, SchemaError

_logger = _logging.getLogger(__name__)

CONFIG = {
    'multitasking': True,           # Allow parallel processing of partitions
    'min_processes': 2,             # Min workers for multitasking
    'max_processes': 16,            # Max workers for multitasking
    'multitask_min_rows': 2000000,  # Row count below which work stays serial
    'auto_sort': True,              # Re-sort unsorted input instead of raising
}

BASIC_COLS = ("chrom", "start", "end")


def _group_cols(group_by):
    if group_by is None:
        return []
    if isinstance(group_by, str):
        return [group_by]
    return list(group_by)


def _check_intervals(intervals, name="intervals", group_by=None, require_strand=False):
    """Validate the interval schema and return the frame unchanged."""
    if intervals is None:
        raise ValueError(f"{name} cannot be None")
    if not isinstance(intervals, _pandas.DataFrame):
        raise SchemaError(f"{name} must be a DataFrame")

    required = list(BASIC_COLS) + _group_cols(group_by)
    if require_strand:
        required.append("strand")
    missing = [c for c in required if c not in intervals.columns]
    if missing:
        raise SchemaError(f"{name} is missing required column(s): {', '.join(missing)}")

    if len(intervals) == 0:
        return intervals

    for col in ("start", "end"):
        if not _pandas.api.types.is_integer_dtype(intervals[col]):
            raise SchemaError(f"{name} column '{col}' must hold integers")

    starts = intervals["start"].to_numpy()
    ends = intervals["end"].to_numpy()
    bad = _numpy.flatnonzero((starts < 0) | (ends < starts))
    if bad.size:
        row = intervals.iloc[bad[0]]
        raise SchemaError(
            f"Invalid interval in {name} ({row['chrom']}, {row['start']}, {row['end']}): "
            "expected 0 <= start <= end"
        )
    return intervals


def _first_unsorted(starts, ends):
    if len(starts) < 2:
        return -1
    bad = (starts[1:] < starts[:-1]) | ((starts[1:] == starts[:-1]) & (ends[1:] < ends[:-1]))
    idx = _numpy.flatnonzero(bad)
    return int(idx[0]) + 1 if idx.size else -1


def partitions(intervals, group_by=None, name="intervals"):
    """Split intervals into ``(key, frame)`` partitions.

    Partitions follow the order in which ``(chrom, *group values)`` keys first
    appear in the input. Each frame is stably sorted by ``(start, end)`` and
    carries a fresh ``RangeIndex``. When ``CONFIG['auto_sort']`` is off an
    unsorted partition raises :class:`OrderingError`.
    """
    if len(intervals) == 0:
        return []

    keys = ["chrom"] + _group_cols(group_by)
    result = []
    for key, frame in intervals.groupby(keys, sort=False, dropna=False, observed=True):
        starts = frame["start"].to_numpy(dtype=_numpy.int64)
        ends = frame["end"].to_numpy(dtype=_numpy.int64)
        pos = _first_unsorted(starts, ends)
        if pos >= 0:
            if not CONFIG['auto_sort']:
                raise OrderingError(
                    f"{name} is not sorted by (start, end) within its partition",
                    frame["chrom"].iloc[pos], int(starts[pos]), int(ends[pos]),
                )
            frame = frame.sort_values(["start", "end"], kind="mergesort")
        if not isinstance(key, tuple):
            key = (key,)
        result.append((key, frame.reset_index(drop=True)))
    return result


def _num_processes(n_tasks, n_rows):
    if not CONFIG['multitasking'] or n_tasks < 2:
        return 1
    if n_rows < CONFIG['multitask_min_rows']:
        return 1
    ncpu = _os.cpu_count() or 1
    n = min(int(CONFIG['max_processes']), n_tasks, ncpu)
    n = max(n, min(int(CONFIG['min_processes']), n_tasks))
    return max(1, n)


def map_partitions(func, tasks, n_rows=0, parallel=True):
    """Apply ``func`` to every task, optionally across a process pool.

    Results come back in task order regardless of which worker finishes
    first. ``func`` must be a module-level function.
    """
    tasks = list(tasks)
    n_proc = _num_processes(len(tasks), n_rows) if parallel else 1
    if n_proc <= 1:
        return [func(task) for task in tasks]

    _logger.info(
        "Processing %d partitions (%s rows) across %d processes...",
        len(tasks), f"{n_rows:,}", n_proc,
    )
    ctx = _multiprocessing.get_context("fork")
    with ctx.Pool(processes=n_proc) as pool:
        return pool.map(func, tasks)


def partition_seed(seed, key):
    """Derive the ``SeedSequence`` of one partition from the base seed.

    The derivation depends only on ``seed`` and the partition key, so every
    partition draws the same numbers whatever process handles it.
    """
    label = "\t".join(str(k) for k in key).encode("utf-8")
    digest = _hashlib.blake2b(label, digest_size=8).digest()
    return _numpy.random.SeedSequence([int(seed), int.from_bytes(digest, "little")])


def _resolve_seed(seed):
    if seed is None:
        return int(_numpy.random.SeedSequence().entropy % (2 ** 63))
    if isinstance(seed, bool) or not isinstance(seed, (int, _numpy.integer)) or seed < 0:
        raise ValueError("seed must be a non-negative integer or None")
    return int(seed)


def _empty_like(intervals, extra=None):
    out = intervals.iloc[0:0].copy().reset_index(drop=True)
    for col, dtype in (extra or {}).items():
        out[col] = _pandas.Series(dtype=dtype)
    return out


def _concat(frames, template):
    frames = [f for f in frames if f is not None and len(f) > 0]
    if not frames:
        return template
    return _pandas.concat(frames, ignore_index=True)
