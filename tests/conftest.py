import pandas as pd
import pytest

import pyvalr as pv


@pytest.fixture
def genome():
    return pv.GenomeIndex({"chr1": 1000, "chr2": 500})


@pytest.fixture
def multi_genome():
    return pv.GenomeIndex({f"chr{i}": 20000 + 1000 * i for i in range(1, 6)})


@pytest.fixture
def config():
    """Yield ``pv.CONFIG`` and restore it after the test."""
    saved = pv.CONFIG.copy()
    try:
        yield pv.CONFIG
    finally:
        pv.CONFIG.clear()
        pv.CONFIG.update(saved)


def empty_intervals(*extra):
    cols = {"chrom": pd.Series(dtype=object), "start": pd.Series(dtype="int64"), "end": pd.Series(dtype="int64")}
    for col in extra:
        cols[col] = pd.Series(dtype=object)
    return pd.DataFrame(cols)


def coords(df):
    """Rows of *df* as ``(chrom, start, end)`` tuples."""
    return list(zip(df["chrom"].astype(str), df["start"].astype(int), df["end"].astype(int), strict=True))
