"""Per-row conversion of raw column values into category -> occurrence counts.

Two value shapes exist: set-valued columns (a collection of raw values per row)
and text columns (one optional string per row). The converter for a column is
picked from ``CONVERTERS`` by its declared shape.
"""

from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Sequence, Union

import pandas as pd

from src.config_loader import ConfigError
from src.text_cleaning import clean_if, clean_text

CategoryMap = Dict[str, int]
CleanFn = Callable[[str], str]


class ColumnShape(str, enum.Enum):
    SET = "set"
    TEXT = "text"


@dataclass(frozen=True)
class Column:
    """One declared categorical input.

    ``name`` is the label as declared, so DataFrame columns with integer or
    other non-string labels can be selected with it.
    """

    name: Hashable
    shape: ColumnShape
    index: int


class RowShapeError(ValueError):
    """A row supplies a different number of values than there are columns."""

    def __init__(self, row_index: int, expected: int, actual: int):
        self.row_index = row_index
        self.expected = expected
        self.actual = actual
        super().__init__(f"Row {row_index} has {actual} values but {expected} columns were declared")


def _is_missing(value: Any) -> bool:
    return pd.api.types.is_scalar(value) and bool(pd.isna(value))


def convert_set(value: Any, should_clean: bool, clean_fn: CleanFn = clean_text) -> CategoryMap:
    """Count cleaned elements of a collection, keeping duplicate multiplicities."""
    if _is_missing(value):
        return {}
    if isinstance(value, str):
        value = [value]
    counts = Counter(clean_if(str(v), should_clean, clean_fn) for v in value if not _is_missing(v))
    return dict(counts)


def convert_text(value: Any, should_clean: bool, clean_fn: CleanFn = clean_text) -> CategoryMap:
    """A present, non-empty string yields a single category with count 1."""
    if _is_missing(value):
        return {}
    value = str(value)
    if value == "":
        return {}
    return {clean_if(value, should_clean, clean_fn): 1}


CONVERTERS: Mapping[ColumnShape, Callable[..., CategoryMap]] = {
    ColumnShape.SET: convert_set,
    ColumnShape.TEXT: convert_text,
}


def convert_value(column: Column, value: Any, should_clean: bool, clean_fn: CleanFn = clean_text) -> CategoryMap:
    return CONVERTERS[column.shape](value, should_clean, clean_fn)


def convert_row(
    columns: Sequence[Column],
    row: Sequence[Any],
    should_clean: bool,
    clean_fn: CleanFn = clean_text,
    row_index: int = 0,
) -> List[CategoryMap]:
    """Convert every value of ``row``; the row length must match ``columns``."""
    if len(row) != len(columns):
        raise RowShapeError(row_index, len(columns), len(row))
    return [convert_value(col, value, should_clean, clean_fn) for col, value in zip(columns, row)]


def declare_columns(spec: Union[Mapping[Hashable, Any], Iterable[Any]]) -> List[Column]:
    """Normalize a column declaration into an ordered list of ``Column``.

    Accepts a mapping ``name -> shape`` or an iterable of ``Column`` /
    ``(name, shape)`` pairs. Positions follow declaration order.
    """
    items = list(spec.items()) if isinstance(spec, Mapping) else list(spec)

    columns: List[Column] = []
    for i, item in enumerate(items):
        if isinstance(item, Column):
            name, shape = item.name, item.shape
        else:
            name, shape = item
        try:
            shape = ColumnShape(shape)
        except ValueError:
            raise ConfigError(f"Column '{name}' has unknown shape {shape!r}; expected 'set' or 'text'") from None
        columns.append(Column(name=name, shape=shape, index=i))

    names = [c.name for c in columns]
    dupes = sorted({n for n in names if names.count(n) > 1}, key=str)
    if dupes:
        raise ConfigError(f"Duplicate column names: {dupes}")
    return columns
