"""Chromosome sizes and bounds checking."""

from __future__ import annotations

from collections.abc import Mapping

import numpy as _numpy
import pandas as _pandas

from ._errors import InvalidGenomeError, OutOfBoundsError, UnknownChromError

CLAMP_POLICIES = ("trim", "drop", "error")


class GenomeIndex:
    """Immutable mapping of chromosome names to sizes.

    The index is the bounds authority for every genome-aware operation:
    complement, clamping, flanking, randomization and the Fisher test.
    Chromosome order is the order in which sizes were supplied.

    Parameters
    ----------
    sizes : mapping or iterable of (chrom, size) pairs
        Chromosome sizes in base pairs. Every size must be a positive
        integer and every name unique.

    Raises
    ------
    InvalidGenomeError
        If the genome is empty, a name is duplicated or a size is not a
        positive integer.

    Examples
    --------
    >>> import pyvalr as pv
    >>> genome = pv.GenomeIndex({"chr1": 1000, "chr2": 500})
    >>> genome.size("chr2")
    500
    >>> genome.total_size
    1500
    """

    __slots__ = ("_sizes", "_chroms")

    def __init__(self, sizes):
        items = list(sizes.items()) if isinstance(sizes, Mapping) else list(sizes)
        if not items:
            raise InvalidGenomeError("genome must contain at least one chromosome")

        checked = {}
        for item in items:
            try:
                chrom, size = item
            except (TypeError, ValueError) as exc:
                raise InvalidGenomeError(f"Invalid genome entry {item!r}") from exc
            chrom = str(chrom)
            if chrom in checked:
                raise InvalidGenomeError(f"Duplicated chromosome '{chrom}' in genome")
            if isinstance(size, bool) or not isinstance(size, (int, _numpy.integer)):
                if isinstance(size, (float, _numpy.floating)) and float(size).is_integer():
                    size = int(size)
                else:
                    raise InvalidGenomeError(f"Size of chromosome '{chrom}' must be an integer, got {size!r}")
            if size <= 0:
                raise InvalidGenomeError(f"Size of chromosome '{chrom}' must be positive, got {size}")
            checked[chrom] = int(size)

        object.__setattr__(self, "_sizes", checked)
        object.__setattr__(self, "_chroms", tuple(checked))

    @classmethod
    def from_frame(cls, frame, chrom_col="chrom", size_col="size"):
        """Build an index from a DataFrame with chromosome and size columns."""
        if frame is None:
            raise ValueError("frame cannot be None")
        missing = [c for c in (chrom_col, size_col) if c not in frame.columns]
        if missing:
            raise InvalidGenomeError(f"genome frame is missing column(s): {', '.join(missing)}")
        return cls(zip(frame[chrom_col].astype(str).tolist(), frame[size_col].tolist(), strict=True))

    def __setattr__(self, name, value):
        raise AttributeError("GenomeIndex is immutable")

    def __delattr__(self, name):
        raise AttributeError("GenomeIndex is immutable")

    def __reduce__(self):
        return (self.__class__, (list(self._sizes.items()),))

    def __contains__(self, chrom):
        return str(chrom) in self._sizes

    def __len__(self):
        return len(self._chroms)

    def __iter__(self):
        return iter(self._chroms)

    def __eq__(self, other):
        if not isinstance(other, GenomeIndex):
            return NotImplemented
        return list(self._sizes.items()) == list(other._sizes.items())

    def __hash__(self):
        return hash(tuple(self._sizes.items()))

    def __repr__(self):
        return f"GenomeIndex({len(self)} chromosomes, {self.total_size:,} bp)"

    @property
    def chroms(self):
        return self._chroms

    @property
    def total_size(self):
        return sum(self._sizes.values())

    def size(self, chrom):
        """Return the size of *chrom*, raising :class:`UnknownChromError` if absent."""
        try:
            return self._sizes[str(chrom)]
        except KeyError:
            raise UnknownChromError(f"Unknown chromosome '{chrom}'") from None

    def sizes(self, chroms):
        """Vectorized :meth:`size` for an array of chromosome names."""
        return _numpy.array([self.size(c) for c in chroms], dtype=_numpy.int64)

    def to_dict(self):
        return dict(self._sizes)

    def to_frame(self):
        """Return the genome as a DataFrame with ``chrom`` and ``size`` columns."""
        return _pandas.DataFrame({
            "chrom": list(self._chroms),
            "size": _numpy.array([self._sizes[c] for c in self._chroms], dtype=_numpy.int64),
        })

    def check_chroms(self, intervals, operation="operation"):
        """Raise :class:`UnknownChromError` for the first row on an unknown chromosome."""
        if len(intervals) == 0:
            return
        known = intervals["chrom"].astype(str).isin(self._sizes)
        if not known.all():
            row = intervals.loc[~known].iloc[0]
            raise UnknownChromError(
                f"{operation}: chromosome '{row['chrom']}' is not in the genome",
                row["chrom"], row["start"], row["end"],
            )


def read_genome_frame(frame):
    """
    Create a :class:`GenomeIndex` from a chrom/size table.

    Parameters
    ----------
    frame : DataFrame
        Table with ``chrom`` and ``size`` columns, as produced by callers
        parsing a ``chrom.sizes`` file.

    Returns
    -------
    GenomeIndex

    Examples
    --------
    >>> import pandas as pd
    >>> import pyvalr as pv
    >>> pv.read_genome_frame(pd.DataFrame({"chrom": ["chr1"], "size": [5000]}))
    GenomeIndex(1 chromosomes, 5,000 bp)
    """
    return GenomeIndex.from_frame(frame)


def _as_genome(genome):
    if genome is None:
        raise ValueError("genome cannot be None")
    if isinstance(genome, GenomeIndex):
        return genome
    if isinstance(genome, _pandas.DataFrame):
        return GenomeIndex.from_frame(genome)
    return GenomeIndex(genome)


def bed_clamp(intervals, genome, policy="trim"):
    """
    Force intervals into their chromosome bounds.

    Parameters
    ----------
    intervals : DataFrame
        Intervals with columns chrom, start, end and any payload. Starts may
        be negative here, as produced by flank or slop arithmetic.
    genome : GenomeIndex
        Chromosome sizes.
    policy : {"trim", "drop", "error"}, default "trim"
        ``"trim"`` clips start to 0 and end to the chromosome size and drops
        rows left empty; ``"drop"`` removes every row exceeding bounds;
        ``"error"`` raises on the first violation.

    Returns
    -------
    DataFrame
        The bounded intervals. ``result.attrs['n_affected']`` holds the number
        of rows that were trimmed or removed.

    Raises
    ------
    OutOfBoundsError
        Under the ``"error"`` policy.
    UnknownChromError
        If a row lies on a chromosome missing from *genome*.

    See Also
    --------
    bed_flank : Create flanking intervals, bounded by this function.
    bed_slop : Enlarge intervals, bounded by this function.

    Examples
    --------
    >>> import pyvalr as pv
    >>> genome = pv.GenomeIndex({"chr1": 1000})
    >>> import pandas as pd
    >>> x = pd.DataFrame({"chrom": ["chr1", "chr1"], "start": [-50, 900], "end": [100, 1200]})
    >>> pv.bed_clamp(x, genome)  # doctest: +SKIP
    """
    if policy not in CLAMP_POLICIES:
        raise ValueError(f"policy must be one of {', '.join(CLAMP_POLICIES)}, got {policy!r}")
    genome = _as_genome(genome)
    if intervals is None:
        raise ValueError("intervals cannot be None")

    result = intervals.copy().reset_index(drop=True)
    if len(result) == 0:
        result.attrs["n_affected"] = 0
        return result

    genome.check_chroms(result, "bed_clamp")
    starts = result["start"].to_numpy(dtype=_numpy.int64)
    ends = result["end"].to_numpy(dtype=_numpy.int64)
    sizes = genome.sizes(result["chrom"].astype(str))
    outside = (starts < 0) | (ends > sizes)

    if policy == "error":
        if outside.any():
            row = result.loc[outside].iloc[0]
            raise OutOfBoundsError(
                f"bed_clamp: interval exceeds chromosome bounds [0, {genome.size(row['chrom'])})",
                row["chrom"], row["start"], row["end"],
            )
        result.attrs["n_affected"] = 0
        return result

    if policy == "drop":
        result = result.loc[~outside].reset_index(drop=True)
    else:
        result["start"] = _numpy.maximum(starts, 0)
        result["end"] = _numpy.minimum(ends, sizes)
        result = result.loc[(result["start"] < result["end"]) | ~outside].reset_index(drop=True)

    result.attrs["n_affected"] = int(outside.sum())
    return result

