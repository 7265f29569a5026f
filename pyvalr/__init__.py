"""
pyvalr - Genomic interval algebra on pandas DataFrames
"""

__version__ = '0.1.0'

from ._errors import (
    AmbiguousParameterError,
    InvalidGenomeError,
    InvalidLengthError,
    OrderingError,
    OutOfBoundsError,
    PyvalrError,
    RecordError,
    SamplingExhaustedError,
    SchemaError,
    UnknownChromError,
)
from ._shared import CONFIG
from .genome import GenomeIndex, bed_clamp, read_genome_frame
from .intervals import bed_intervals, bed_is_sorted, bed_sort, flip_strands
from .join import bed_closest, bed_intersect, bed_map, bed_window
from .randomize import bed_random, bed_shuffle
from .setops import bed_cluster, bed_complement, bed_merge, bed_subtract
from .stats import bed_absdist, bed_fisher, bed_jaccard, bed_reldist
from .transform import bed_flank, bed_makewindows, bed_shift, bed_slop

__all__ = [
    # Configuration
    'CONFIG',

    # Errors
    'PyvalrError',
    'RecordError',
    'SchemaError',
    'UnknownChromError',
    'OrderingError',
    'OutOfBoundsError',
    'SamplingExhaustedError',
    'AmbiguousParameterError',
    'InvalidGenomeError',
    'InvalidLengthError',

    # Genome
    'GenomeIndex',
    'read_genome_frame',
    'bed_clamp',

    # Interval sets
    'bed_intervals',
    'bed_sort',
    'bed_is_sorted',
    'flip_strands',

    # Single-set transforms
    'bed_flank',
    'bed_slop',
    'bed_shift',
    'bed_makewindows',

    # Joins
    'bed_intersect',
    'bed_window',
    'bed_closest',
    'bed_map',

    # Set operations
    'bed_merge',
    'bed_cluster',
    'bed_complement',
    'bed_subtract',

    # Statistics
    'bed_jaccard',
    'bed_reldist',
    'bed_absdist',
    'bed_fisher',

    # Randomization
    'bed_random',
    'bed_shuffle',
]
