"""Tests for dataset-wide frequency aggregation."""

import logging
import random

import pytest

from src.frequency_aggregation import (
    aggregate_counts,
    aggregate_partition,
    merge_column_counts,
    merge_counts,
    partition_bounds,
    tree_reduce,
)
from src.row_converter import RowShapeError, declare_columns


def _random_rows(n, seed=42):
    rng = random.Random(seed)
    rows = []
    for _ in range(n):
        tags = [rng.choice("abcdefgh") for _ in range(rng.randint(0, 4))]
        city = rng.choice(["Boston", "Austin", "Denver", None, ""])
        rows.append((tags, city))
    return rows


COLUMNS = declare_columns({"tags": "set", "city": "text"})


# ─── merge ───


class TestMergeCounts:
    def test_pointwise_sum(self):
        assert merge_counts({"a": 1}, {"a": 2, "b": 1}) == {"a": 3, "b": 1}

    def test_inputs_not_mutated(self):
        a, b = {"a": 1}, {"a": 2, "b": 1}
        merge_counts(a, b)
        assert a == {"a": 1} and b == {"a": 2, "b": 1}

    def test_identity(self):
        assert merge_counts({}, {"x": 4}) == {"x": 4}
        assert merge_counts({"x": 4}, {}) == {"x": 4}

    def test_commutative_and_associative(self):
        a, b, c = {"a": 1, "b": 2}, {"b": 3}, {"a": 5, "c": 1}
        assert merge_counts(a, b) == merge_counts(b, a)
        assert merge_counts(merge_counts(a, b), c) == merge_counts(a, merge_counts(b, c))

    def test_column_count_mismatch(self):
        with pytest.raises(ValueError):
            merge_column_counts([{}], [{}, {}])


# ─── partitioning ───


class TestPartitionBounds:
    def test_even_cover(self):
        assert partition_bounds(10, 3) == [(0, 4), (4, 7), (7, 10)]

    def test_more_partitions_than_rows(self):
        assert partition_bounds(2, 5) == [(0, 1), (1, 2)]

    def test_tree_reduce_empty(self):
        assert tree_reduce([], 3) == [{}, {}, {}]


# ─── aggregate ───


class TestAggregateCounts:
    def test_sums_multiplicities(self):
        rows = [(["a", "a"], "x"), (["b"], None), (["c", "c", "c"], "x")]
        counts = aggregate_counts(rows, COLUMNS, False)
        assert counts == [{"a": 2, "b": 1, "c": 3}, {"x": 2}]

    def test_empty_dataset(self):
        assert aggregate_counts([], COLUMNS, True) == [{}, {}]

    def test_partitioning_does_not_change_result(self):
        rows = _random_rows(257)
        expected = aggregate_partition(rows, COLUMNS, True)
        for n_partitions in (1, 2, 3, 16, 500):
            assert aggregate_counts(rows, COLUMNS, True, n_partitions=n_partitions) == expected

    def test_row_order_does_not_change_result(self):
        rows = _random_rows(100)
        shuffled = list(rows)
        random.Random(7).shuffle(shuffled)
        assert aggregate_counts(rows, COLUMNS, False, n_partitions=4) == aggregate_counts(
            shuffled, COLUMNS, False, n_partitions=3
        )

    def test_parallel_matches_sequential(self):
        rows = _random_rows(300)
        sequential = aggregate_counts(rows, COLUMNS, True, n_partitions=6)
        parallel = aggregate_counts(rows, COLUMNS, True, n_partitions=6, n_jobs=2)
        assert parallel == sequential

    def test_accepts_generators(self):
        rows = _random_rows(20)
        assert aggregate_counts(iter(rows), COLUMNS, False) == aggregate_counts(rows, COLUMNS, False)

    def test_row_shape_error_reports_global_position(self):
        rows = [(["a"], "x"), (["b"], "y"), (["c"],)]
        with pytest.raises(RowShapeError) as exc_info:
            aggregate_counts(rows, COLUMNS, False, n_partitions=2)
        assert exc_info.value.row_index == 2

    def test_cardinality_warning(self, caplog):
        rows = [([str(i)], "x") for i in range(10)]
        with caplog.at_level(logging.WARNING, logger="src.frequency_aggregation"):
            aggregate_counts(rows, COLUMNS, False, cardinality_warning=5)
        assert "Column 'tags' has 10 distinct categories" in caplog.text
        assert "'city'" not in caplog.text
