"""Random interval generation and shuffling."""

import logging as _logging
import warnings

import numpy as _numpy
import pandas as _pandas

from . import _sweep
from ._errors import InvalidLengthError, OutOfBoundsError, SamplingExhaustedError
from ._shared import (
    _check_intervals,
    _concat,
    _empty_like,
    _resolve_seed,
    map_partitions,
    partition_seed,
    partitions,
)
from .genome import _as_genome
from .intervals import bed_sort
from .join import _coords

_logger = _logging.getLogger(__name__)

ON_EXHAUSTED = ("raise", "drop")

# Key of the stream used to pick chromosomes in bed_random
_CHROM_STREAM = ("__chromosomes__",)


def _rng(seed, key):
    return _numpy.random.default_rng(partition_seed(seed, key))


def _check_count(value, name, allow_zero=False):
    if isinstance(value, bool) or not isinstance(value, (int, _numpy.integer)):
        raise ValueError(f"{name} must be an integer")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValueError(f"{name} must be a {'non-negative' if allow_zero else 'positive'} integer")
    return int(value)


# ---------------------------------------------------------------------------
# bed_random
# ---------------------------------------------------------------------------

def _random_task(task):
    seed, chrom, size, count, length = task
    return _rng(seed, (chrom,)).integers(0, size - length, size=count, dtype=_numpy.int64)


def bed_random(genome, n=1_000_000, length=1000, seed=0, max_attempts=100):
    """
    Generate randomly placed intervals on a genome.

    The chromosome of each draw is sampled with probability proportional
    to its size; the start is uniform over ``[0, chrom_size - length)``.
    Draws landing on a chromosome too short for *length* are redrawn.

    Parameters
    ----------
    genome : GenomeIndex
        Chromosome sizes.
    n : int, default 1_000_000
        Number of intervals.
    length : int, default 1000
        Length of every interval.
    seed : int or None, default 0
        Base seed. The same seed always yields the same intervals; ``None``
        draws a fresh seed, stored in ``result.attrs['seed']``.
    max_attempts : int, default 100
        Rounds of chromosome redraws for draws that do not fit.

    Returns
    -------
    DataFrame
        *n* sorted intervals with columns chrom, start, end.

    Raises
    ------
    InvalidLengthError
        If draws still land on chromosomes shorter than or equal to
        *length* after *max_attempts* rounds.

    See Also
    --------
    bed_shuffle : Randomly reposition existing intervals.

    Examples
    --------
    >>> import pyvalr as pv
    >>> genome = pv.GenomeIndex({"chr1": 10000, "chr2": 5000})
    >>> pv.bed_random(genome, n=5, length=100, seed=42)  # doctest: +SKIP
    """
    genome = _as_genome(genome)
    n = _check_count(n, "n", allow_zero=True)
    length = _check_count(length, "length")
    max_attempts = _check_count(max_attempts, "max_attempts")
    seed = _resolve_seed(seed)

    chroms = list(genome.chroms)
    sizes = genome.sizes(chroms)
    weights = sizes / sizes.sum()

    rng = _rng(seed, _CHROM_STREAM)
    picks = rng.choice(len(chroms), size=n, p=weights)
    for attempt in range(max_attempts):
        bad = sizes[picks] <= length
        if not bad.any():
            break
        _logger.debug("bed_random: redrawing %d chromosome picks (round %d)", int(bad.sum()), attempt + 1)
        picks[bad] = rng.choice(len(chroms), size=int(bad.sum()), p=weights)
    bad = sizes[picks] <= length
    if bad.any():
        chrom = chroms[picks[bad][0]]
        raise InvalidLengthError(
            f"bed_random: length {length} does not fit chromosome '{chrom}' "
            f"(size {genome.size(chrom)}) after {max_attempts} attempts"
        )

    tasks = []
    for i, chrom in enumerate(chroms):
        count = int((picks == i).sum())
        if count:
            tasks.append((seed, chrom, int(sizes[i]), count, length))
    draws = map_partitions(_random_task, tasks, n_rows=n)

    starts = _numpy.empty(n, dtype=_numpy.int64)
    for (_seed, chrom, _size, _count, _length), values in zip(tasks, draws, strict=True):
        starts[picks == chroms.index(chrom)] = values

    result = _pandas.DataFrame({
        "chrom": [chroms[i] for i in picks],
        "start": starts,
        "end": starts + length,
    })
    result = bed_sort(result)
    result.attrs["seed"] = seed
    return result


# ---------------------------------------------------------------------------
# bed_shuffle
# ---------------------------------------------------------------------------

def _spans_by_chrom(intervals):
    """Merged ``(starts, ends)`` arrays of *intervals* keyed by chromosome."""
    spans = {}
    if intervals is None:
        return spans
    for key, frame in partitions(intervals, name="regions"):
        _ids, starts, ends = _sweep.merge_spans(*_coords(frame), 0)
        spans[str(key[0])] = (starts, ends)
    return spans


def _placement_ok(starts, ends, excl, incl):
    ok = _numpy.ones(len(starts), dtype=bool)
    if excl is not None:
        ex_starts, ex_ends = excl
        probe = _sweep.probe_ends(starts, ends)
        k = _numpy.searchsorted(_sweep.probe_ends(ex_starts, ex_ends), starts, side="right")
        hit = k < len(ex_starts)
        hit[hit] = ex_starts[k[hit]] < probe[hit]
        ok &= ~hit
    if incl is not None:
        in_starts, in_ends = incl
        k = _numpy.searchsorted(in_ends, starts, side="right")
        inside = k < len(in_starts)
        inside[inside] = (in_starts[k[inside]] <= starts[inside]) & (ends[inside] <= in_ends[k[inside]])
        ok &= inside
    return ok


def _shuffle_task(task):
    a, key, seed, chroms, sizes, excl, incl, within, max_attempts = task
    rng = _rng(seed, key)
    lengths = (a["end"] - a["start"]).to_numpy(dtype=_numpy.int64)
    n = len(a)

    if within:
        home = chroms.index(str(key[0]))
        picks = _numpy.full(n, home, dtype=_numpy.int64)
    else:
        weights = sizes / sizes.sum()
        picks = _numpy.zeros(n, dtype=_numpy.int64)
    starts = _numpy.zeros(n, dtype=_numpy.int64)
    pending = _numpy.arange(n)

    rounds = 0
    while pending.size and rounds < max_attempts:
        rounds += 1
        if not within:
            picks[pending] = rng.choice(len(chroms), size=pending.size, p=weights)
        room = sizes[picks[pending]] - lengths[pending]
        draws = rng.integers(0, _numpy.maximum(room, 0) + 1, dtype=_numpy.int64)
        fits = room >= 0
        placed = _numpy.zeros(pending.size, dtype=bool)
        for c in _numpy.unique(picks[pending]):
            on_chrom = fits & (picks[pending] == c)
            cand_starts = draws[on_chrom]
            cand_ends = cand_starts + lengths[pending][on_chrom]
            chrom = chroms[c]
            placed[on_chrom] = _placement_ok(cand_starts, cand_ends, excl.get(chrom), incl.get(chrom) if incl is not None else None)
        starts[pending[placed]] = draws[placed]
        pending = pending[~placed]

    _logger.debug("bed_shuffle: partition %s placed %d/%d rows in %d rounds", key, n - pending.size, n, rounds)
    out = a.copy()
    out["chrom"] = [chroms[c] for c in picks]
    out["start"] = starts
    out["end"] = starts + lengths
    exhausted = _numpy.zeros(n, dtype=bool)
    exhausted[pending] = True
    return out, exhausted


def bed_shuffle(intervals, genome, seed=0, exclude=None, include=None, within=True,
                max_attempts=1000, on_exhausted="raise", group_by=None):
    """
    Shuffle the positions of intervals.

    Every interval keeps its length, strand and payload and receives a
    start drawn uniformly over the positions where it fits on its
    chromosome. Placements overlapping *exclude* (or not contained in a
    single *include* region) are rejected and redrawn.

    Random streams are derived from ``(seed, chrom, group values)`` for each
    partition, so results do not depend on multitasking.

    Parameters
    ----------
    intervals : DataFrame
        Intervals to shuffle, within chromosome bounds.
    genome : GenomeIndex
        Chromosome sizes.
    seed : int or None, default 0
        Base seed; ``None`` draws a fresh one, stored in
        ``result.attrs['seed']``.
    exclude : DataFrame, optional
        Regions that shuffled intervals must not overlap.
    include : DataFrame, optional
        Regions that must fully contain every shuffled interval.
    within : bool, default True
        Keep each interval on its chromosome. When False the chromosome is
        redrawn proportionally to size as well.
    max_attempts : int, default 1000
        Placement attempts per interval.
    on_exhausted : {"raise", "drop"}, default "raise"
        ``"raise"`` fails the whole call when an interval cannot be placed;
        ``"drop"`` omits such intervals with a warning and records their
        number in ``result.attrs['n_exhausted']``.
    group_by : str or list of str, optional
        Secondary partition columns keying the random streams.

    Returns
    -------
    DataFrame
        Shuffled, sorted intervals.

    Raises
    ------
    SamplingExhaustedError
        If an interval cannot be placed and *on_exhausted* is ``"raise"``.
    OutOfBoundsError
        If an input interval exceeds its chromosome.
    UnknownChromError
        If an interval lies on a chromosome missing from *genome*.

    See Also
    --------
    bed_random : Generate new random intervals.

    Examples
    --------
    >>> import pyvalr as pv
    >>> genome = pv.GenomeIndex({"chr1": 10000})
    >>> x = pv.bed_intervals("chr1", [100, 500], [200, 900], strand=["+", "-"])
    >>> pv.bed_shuffle(x, genome, seed=1)  # doctest: +SKIP
    >>> gaps = pv.bed_intervals("chr1", 0, 5000)
    >>> pv.bed_shuffle(x, genome, seed=1, exclude=gaps)  # doctest: +SKIP
    """
    if on_exhausted not in ON_EXHAUSTED:
        raise ValueError(f"on_exhausted must be one of {', '.join(ON_EXHAUSTED)}, got {on_exhausted!r}")
    _check_intervals(intervals, group_by=group_by)
    genome = _as_genome(genome)
    genome.check_chroms(intervals, "bed_shuffle")
    max_attempts = _check_count(max_attempts, "max_attempts")
    seed = _resolve_seed(seed)

    if len(intervals):
        sizes = genome.sizes(intervals["chrom"].astype(str))
        beyond = (intervals["end"].to_numpy() > sizes)
        if beyond.any():
            row = intervals.loc[beyond].iloc[0]
            raise OutOfBoundsError(
                "bed_shuffle: interval exceeds its chromosome",
                row["chrom"], row["start"], row["end"],
            )

    if exclude is not None:
        _check_intervals(exclude, "exclude")
    if include is not None:
        _check_intervals(include, "include")
    excl = _spans_by_chrom(exclude)
    incl = _spans_by_chrom(include) if include is not None else None

    chroms = list(genome.chroms)
    chrom_sizes = genome.sizes(chroms)
    parts = partitions(intervals, group_by)
    tasks = [
        (a, key, seed, chroms, chrom_sizes, excl, incl, within, max_attempts)
        for key, a in parts
    ]
    results = map_partitions(_shuffle_task, tasks, n_rows=len(intervals))

    frames = []
    n_exhausted = 0
    for (key, a), (out, exhausted) in zip(parts, results, strict=True):
        if exhausted.any():
            if on_exhausted == "raise":
                row = a.loc[exhausted].iloc[0]
                raise SamplingExhaustedError(
                    f"bed_shuffle: no valid placement found in {max_attempts} attempts",
                    row["chrom"], row["start"], row["end"],
                )
            n_exhausted += int(exhausted.sum())
            out = out.loc[~exhausted]
        frames.append(out)

    if n_exhausted:
        warnings.warn(
            f"bed_shuffle: dropped {n_exhausted} interval(s) that could not be placed "
            f"in {max_attempts} attempts",
            RuntimeWarning,
            stacklevel=2,
        )

    result = bed_sort(_concat(frames, _empty_like(intervals)), group_by=group_by)
    result.attrs["seed"] = seed
    result.attrs["n_exhausted"] = n_exhausted
    return result
