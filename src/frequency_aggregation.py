"""
Dataset-wide category frequency aggregation (fit phase).

Per-row category maps are summed per column with a monoid merge: the identity
is the empty mapping and the combine is a pointwise integer sum. Rows are cut
into contiguous partitions that are aggregated independently and then merged
pairwise, so the result does not depend on how the data is split or on the
order in which partitions finish.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from joblib import Parallel, delayed

from src.row_converter import CategoryMap, CleanFn, Column, convert_row
from src.text_cleaning import clean_text

log = logging.getLogger(__name__)

ColumnCounts = List[Dict[str, int]]


def merge_counts(a: Mapping[str, int], b: Mapping[str, int]) -> Dict[str, int]:
    """Pointwise sum of two count maps. Neither input is modified."""
    if len(a) < len(b):
        a, b = b, a
    merged = dict(a)
    for key, count in b.items():
        merged[key] = merged.get(key, 0) + count
    return merged


def merge_column_counts(a: Sequence[Mapping[str, int]], b: Sequence[Mapping[str, int]]) -> ColumnCounts:
    if len(a) != len(b):
        raise ValueError(f"Cannot merge counts for {len(a)} and {len(b)} columns")
    return [merge_counts(x, y) for x, y in zip(a, b)]


def aggregate_partition(
    rows: Sequence[Sequence[Any]],
    columns: Sequence[Column],
    should_clean: bool,
    clean_fn: CleanFn = clean_text,
    start: int = 0,
) -> ColumnCounts:
    """Aggregate one contiguous partition; ``start`` is its first row's position."""
    acc: ColumnCounts = [{} for _ in columns]
    for offset, row in enumerate(rows):
        maps: List[CategoryMap] = convert_row(columns, row, should_clean, clean_fn, row_index=start + offset)
        for counts, occ in zip(acc, maps):
            for key, n in occ.items():
                counts[key] = counts.get(key, 0) + n
    return acc


def partition_bounds(n_rows: int, n_partitions: int) -> List[tuple]:
    """Contiguous ``(start, stop)`` slices covering ``n_rows`` rows."""
    n_partitions = max(1, min(n_partitions, n_rows))
    step, extra = divmod(n_rows, n_partitions)
    bounds = []
    start = 0
    for i in range(n_partitions):
        stop = start + step + (1 if i < extra else 0)
        bounds.append((start, stop))
        start = stop
    return bounds


def tree_reduce(partials: List[ColumnCounts], n_columns: int) -> ColumnCounts:
    """Merge partial results pairwise until one remains."""
    if not partials:
        return [{} for _ in range(n_columns)]
    level = list(partials)
    while len(level) > 1:
        nxt = [merge_column_counts(level[i], level[i + 1]) for i in range(0, len(level) - 1, 2)]
        if len(level) % 2:
            nxt.append(level[-1])
        level = nxt
    return level[0]


def aggregate_counts(
    rows: Sequence[Sequence[Any]],
    columns: Sequence[Column],
    should_clean: bool,
    clean_fn: CleanFn = clean_text,
    n_partitions: int = 1,
    n_jobs: Optional[int] = None,
    cardinality_warning: Optional[int] = None,
) -> ColumnCounts:
    """Total category counts per column over the whole dataset.

    An empty dataset yields one empty mapping per column.
    """
    rows = rows if isinstance(rows, Sequence) else list(rows)
    bounds = partition_bounds(len(rows), n_partitions) if len(rows) else []
    log.info("Aggregating %s rows over %d partition(s), %d column(s)", f"{len(rows):,}", len(bounds), len(columns))

    if n_jobs not in (None, 0, 1) and len(bounds) > 1:
        partials = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(aggregate_partition)(rows[s:e], columns, should_clean, clean_fn, s) for s, e in bounds
        )
    else:
        partials = [aggregate_partition(rows[s:e], columns, should_clean, clean_fn, s) for s, e in bounds]

    totals = tree_reduce(list(partials), len(columns))

    if cardinality_warning is not None:
        for col, counts in zip(columns, totals):
            if len(counts) > cardinality_warning:
                log.warning(
                    "Column '%s' has %s distinct categories (warning threshold %s)",
                    col.name,
                    f"{len(counts):,}",
                    f"{cardinality_warning:,}",
                )
    return totals
