"""
Per-row sparse encoding against a fitted ``VectorizerModel`` (transform phase).

For every column the row's category map is compared with the column's top
values: present top values carry their occurrence count, everything else is
summed into the "other" slot, and an optional null slot flags an empty map.
Column-local pairs are shifted by the column's offset and concatenated into
ascending, unique global indices.
"""

from __future__ import annotations

import logging
from typing import Any, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed
from scipy import sparse
from tqdm import tqdm

from src.row_converter import CleanFn, convert_row
from src.text_cleaning import clean_text
from src.vectorizer_model import VectorizerModel

log = logging.getLogger(__name__)


def encode_block(
    top: Sequence[str],
    occ: dict,
    track_nulls: bool,
    top_set: Optional[FrozenSet[str]] = None,
) -> List[Tuple[int, float]]:
    """Column-local ``(slot, value)`` pairs for one column."""
    pairs = [(i, float(occ[value])) for i, value in enumerate(top) if value in occ]
    if top_set is None:
        top_set = frozenset(top)
    other = sum(n for key, n in occ.items() if key not in top_set)
    pairs.append((len(top), float(other)))
    if track_nulls:
        pairs.append((len(top) + 1, 1.0 if not occ else 0.0))
    return pairs


def encode_row(
    model: VectorizerModel,
    row: Sequence[Any],
    clean_fn: CleanFn = clean_text,
    row_index: int = 0,
) -> Tuple[np.ndarray, np.ndarray]:
    """Encode one row into ``(indices, values)``; zero values are dropped."""
    maps = convert_row(model.columns, row, model.clean_text, clean_fn, row_index=row_index)

    indices: List[int] = []
    values: List[float] = []
    for offset, top, top_set, occ in zip(model.offsets, model.top_values, model.top_sets, maps):
        for slot, value in encode_block(top, occ, model.track_nulls, top_set):
            if value != 0.0:
                indices.append(offset + slot)
                values.append(value)
    return np.asarray(indices, dtype=np.int64), np.asarray(values, dtype=np.float64)


def _encode_chunk(model, rows, clean_fn, start) -> sparse.csr_matrix:
    indptr = [0]
    indices: List[np.ndarray] = []
    data: List[np.ndarray] = []
    for offset, row in enumerate(rows):
        idx, val = encode_row(model, row, clean_fn, row_index=start + offset)
        indices.append(idx)
        data.append(val)
        indptr.append(indptr[-1] + len(idx))
    return sparse.csr_matrix(
        (
            np.concatenate(data) if data else np.empty(0, dtype=np.float64),
            np.concatenate(indices) if indices else np.empty(0, dtype=np.int64),
            np.asarray(indptr, dtype=np.int64),
        ),
        shape=(len(rows), model.width),
    )


def encode_rows(
    model: VectorizerModel,
    rows: Sequence[Sequence[Any]],
    clean_fn: CleanFn = clean_text,
    n_jobs: Optional[int] = None,
    chunk_size: int = 10_000,
    progress: bool = False,
) -> sparse.csr_matrix:
    """Encode many rows into a ``(n_rows, model.width)`` CSR matrix, in input order."""
    rows = rows if isinstance(rows, Sequence) else list(rows)
    if not rows:
        return sparse.csr_matrix((0, model.width), dtype=np.float64)

    starts = range(0, len(rows), chunk_size)
    if n_jobs not in (None, 0, 1) and len(starts) > 1:
        chunks = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(_encode_chunk)(model, rows[s : s + chunk_size], clean_fn, s) for s in starts
        )
    else:
        chunks = [
            _encode_chunk(model, rows[s : s + chunk_size], clean_fn, s)
            for s in tqdm(starts, desc="encode", disable=not progress)
        ]

    out = sparse.vstack(chunks, format="csr")
    log.debug("Encoded %d rows into width %d (nnz=%d)", out.shape[0], out.shape[1], out.nnz)
    return out
