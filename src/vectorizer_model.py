"""
Fitted vectorizer model and the description of its output coordinates.

Each column owns a contiguous block of the output vector laid out as
``[top values...][other][null]`` (the null slot only when nulls are tracked).
``build_column_metadata`` walks the blocks in exactly that order, so entry
``i`` describes vector coordinate ``i``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Hashable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from src.config_loader import DEFAULT_NULL_NAME, DEFAULT_UNSEEN_NAME, VectorizerConfig
from src.row_converter import Column
from src.top_k_selection import TopValues, select_all_top_values

OTHER_KIND = "other"
NULL_KIND = "null"
VALUE_KIND = "value"


@dataclass(frozen=True)
class VectorizerModel:
    """Immutable fit result; safe to share between concurrent transforms."""

    columns: Tuple[Column, ...]
    top_values: Tuple[TopValues, ...]
    clean_text: bool
    track_nulls: bool
    block_widths: Tuple[int, ...] = field(init=False, repr=False, compare=False)
    offsets: Tuple[int, ...] = field(init=False, repr=False, compare=False)
    top_sets: Tuple[FrozenSet[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if len(self.columns) != len(self.top_values):
            raise ValueError(
                f"Model has {len(self.columns)} columns but {len(self.top_values)} top-value lists"
            )
        extra = 2 if self.track_nulls else 1
        widths = tuple(len(top) + extra for top in self.top_values)
        # Global index of the first slot of each column's block.
        offsets = []
        start = 0
        for w in widths:
            offsets.append(start)
            start += w
        object.__setattr__(self, "block_widths", widths)
        object.__setattr__(self, "offsets", tuple(offsets))
        object.__setattr__(self, "top_sets", tuple(frozenset(top) for top in self.top_values))

    @property
    def n_columns(self) -> int:
        return len(self.columns)

    @property
    def width(self) -> int:
        return int(sum(self.block_widths))


def build_model(columns: Sequence[Column], column_counts, config: VectorizerConfig) -> VectorizerModel:
    """Select top values per column and freeze them with the global flags."""
    top_values = select_all_top_values(column_counts, config.top_k, config.min_support)
    return VectorizerModel(
        columns=tuple(columns),
        top_values=top_values,
        clean_text=config.clean_text,
        track_nulls=config.track_nulls,
    )


@dataclass(frozen=True)
class ColumnMetadataEntry:
    index: int
    parent_column: Hashable
    parent_type: str
    indicator_group: Hashable
    indicator_value: Optional[str]
    kind: str


def build_column_metadata(
    model: VectorizerModel,
    unseen_name: str = DEFAULT_UNSEEN_NAME,
    null_name: str = DEFAULT_NULL_NAME,
) -> Tuple[ColumnMetadataEntry, ...]:
    entries: List[ColumnMetadataEntry] = []

    def _add(col: Column, value, kind: str):
        entries.append(
            ColumnMetadataEntry(
                index=len(entries),
                parent_column=col.name,
                parent_type=col.shape.value,
                indicator_group=col.name,
                indicator_value=value,
                kind=kind,
            )
        )

    for col, top in zip(model.columns, model.top_values):
        for value in top:
            _add(col, value, VALUE_KIND)
        _add(col, unseen_name, OTHER_KIND)
        if model.track_nulls:
            _add(col, null_name, NULL_KIND)
    return tuple(entries)


def metadata_frame(entries: Sequence[ColumnMetadataEntry]) -> pd.DataFrame:
    """Tabular view of the metadata, one row per output coordinate."""
    cols = ["index", "parent_column", "parent_type", "indicator_group", "indicator_value", "kind"]
    return pd.DataFrame([[getattr(e, c) for c in cols] for e in entries], columns=cols)


def feature_names(entries: Sequence[ColumnMetadataEntry]) -> np.ndarray:
    return np.asarray(
        [f"{e.parent_column}_{e.indicator_value}_{e.index}" for e in entries],
        dtype=object,
    )
