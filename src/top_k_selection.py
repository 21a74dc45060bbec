"""Minimum-support filtering and deterministic top-K selection per column."""

from typing import Mapping, Sequence, Tuple

from src.config_loader import validate_options

TopValues = Tuple[str, ...]


def select_top_values(counts: Mapping[str, int], top_k: int, min_support: int) -> TopValues:
    """Keep categories with ``count >= min_support``, most frequent first.

    Ties are broken by ascending string order, so the result depends only on
    the counts and never on how they were produced.
    """
    validate_options(top_k, min_support)
    eligible = [(value, n) for value, n in counts.items() if n >= min_support]
    eligible.sort(key=lambda item: (-item[1], item[0]))
    return tuple(value for value, _ in eligible[:top_k])


def select_all_top_values(
    column_counts: Sequence[Mapping[str, int]],
    top_k: int,
    min_support: int,
) -> Tuple[TopValues, ...]:
    return tuple(select_top_values(counts, top_k, min_support) for counts in column_counts)
