"""Exception taxonomy for interval operations."""

from __future__ import annotations


class PyvalrError(ValueError):
    """Base class for all engine errors."""


class RecordError(PyvalrError):
    """An error tied to a specific interval record."""

    def __init__(self, message, chrom=None, start=None, end=None):
        self.chrom = chrom
        self.start = start
        self.end = end
        if chrom is not None:
            message = f"{message} (record {chrom}:{start}-{end})"
        super().__init__(message)


class SchemaError(PyvalrError):
    """Raised when a required column is missing or holds invalid values."""


class UnknownChromError(RecordError):
    """Raised when an interval references a chromosome absent from the genome."""


class OrderingError(RecordError):
    """Raised when input is unsorted and automatic sorting is disabled."""


class OutOfBoundsError(RecordError):
    """Raised when an interval exceeds its chromosome bounds."""


class AmbiguousParameterError(PyvalrError):
    """Raised when operation parameters conflict."""


class InvalidGenomeError(PyvalrError):
    """Raised when chromosome sizes are missing, duplicated or not positive."""


class InvalidLengthError(PyvalrError):
    """Raised when a random interval length does not fit any sampled chromosome."""


class SamplingExhaustedError(RecordError):
    """Raised when shuffling cannot place an interval within the attempt budget."""
