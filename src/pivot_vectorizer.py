"""
PivotVectorizer — top-K one-hot style vectorizer for categorical columns.

Wraps fit (aggregate → select → freeze model) and transform (encode rows) as a
single scikit-learn transformer so it can sit inside ``Pipeline`` /
``ColumnTransformer`` like any other preprocessing step.

Each call to .fit() builds a new model from scratch; the previous model is
only replaced once the new one is complete.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Hashable, List, Optional, Sequence

import pandas as pd
from scipy import sparse
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_is_fitted

from src.config_loader import DEFAULT_NULL_NAME, DEFAULT_UNSEEN_NAME, VectorizerConfig
from src.encoder import encode_rows
from src.frequency_aggregation import aggregate_counts
from src.row_converter import Column, declare_columns
from src.text_cleaning import clean_text
from src.vectorizer_model import build_column_metadata, build_model, feature_names, metadata_frame

log = logging.getLogger(__name__)


class PivotVectorizer(BaseEstimator, TransformerMixin):
    """Keep the ``top_k`` most frequent values of each categorical column.

    Parameters
    ----------
    columns : mapping name -> "set" | "text", or sequence of Column / (name, shape)
    top_k : max categories retained per column (> 0)
    min_support : min total count for a category to be retained (>= 0)
    clean_text : normalize values with ``clean_fn`` before counting and matching
    track_nulls : add a null-indicator slot per column
    unseen_name, null_name : labels of the other / null slots in the metadata
    clean_fn : text normalization function, defaults to ``src.text_cleaning.clean_text``
    n_partitions : partitions used when aggregating counts during fit
    n_jobs : joblib workers for fit and transform (None or 1 = sequential)
    cardinality_warning : log a warning above this many distinct values per column
    progress : show a tqdm progress bar while encoding rows in transform

    Notes
    -----
    ``X`` may be a DataFrame (columns are picked by name) or any sequence of
    rows whose values are in declared column order. Output is a CSR matrix.
    """

    def __init__(
        self,
        columns,
        top_k: int = 20,
        min_support: int = 10,
        clean_text: bool = True,
        track_nulls: bool = True,
        unseen_name: str = DEFAULT_UNSEEN_NAME,
        null_name: str = DEFAULT_NULL_NAME,
        clean_fn=None,
        n_partitions: int = 1,
        n_jobs: Optional[int] = None,
        cardinality_warning: Optional[int] = None,
        progress: bool = False,
    ):
        self.columns = columns
        self.top_k = top_k
        self.min_support = min_support
        self.clean_text = clean_text
        self.track_nulls = track_nulls
        self.unseen_name = unseen_name
        self.null_name = null_name
        self.clean_fn = clean_fn
        self.n_partitions = n_partitions
        self.n_jobs = n_jobs
        self.cardinality_warning = cardinality_warning
        self.progress = progress

    @classmethod
    def from_config(cls, columns, config: VectorizerConfig, clean_fn=None, progress: bool = False) -> "PivotVectorizer":
        return cls(
            columns,
            top_k=config.top_k,
            min_support=config.min_support,
            clean_text=config.clean_text,
            track_nulls=config.track_nulls,
            unseen_name=config.unseen_name,
            null_name=config.null_name,
            clean_fn=clean_fn,
            n_partitions=config.n_partitions,
            n_jobs=config.n_jobs,
            cardinality_warning=config.cardinality_warning,
            progress=progress,
        )

    # ── Internal helpers ───────────────────────────────────────────────

    def _config(self) -> VectorizerConfig:
        return VectorizerConfig(
            top_k=self.top_k,
            min_support=self.min_support,
            clean_text=bool(self.clean_text),
            track_nulls=bool(self.track_nulls),
            unseen_name=self.unseen_name,
            null_name=self.null_name,
            n_partitions=self.n_partitions,
            n_jobs=self.n_jobs,
            cardinality_warning=self.cardinality_warning,
        )

    def _clean_fn(self):
        return self.clean_fn if self.clean_fn is not None else clean_text

    @staticmethod
    def _rows(X, columns: Sequence[Column]) -> List[Sequence[Any]]:
        """Materialize ``X`` as a list of rows in declared column order."""
        if isinstance(X, pd.DataFrame):
            names = [c.name for c in columns]
            missing = [n for n in names if n not in X.columns]
            if missing:
                raise KeyError(f"Columns not found in input: {missing}")
            return list(X[names].itertuples(index=False, name=None))
        return [tuple(row) for row in X]

    # ── Public API ─────────────────────────────────────────────────────

    def fit(self, X, y=None):
        """Count categories over ``X`` and freeze the top values per column."""
        config = self._config()
        columns = declare_columns(self.columns)
        rows = self._rows(X, columns)

        counts = aggregate_counts(
            rows,
            columns,
            config.clean_text,
            self._clean_fn(),
            n_partitions=config.n_partitions,
            n_jobs=config.n_jobs,
            cardinality_warning=config.cardinality_warning,
        )
        model = build_model(columns, counts, config)
        metadata = build_column_metadata(model, config.unseen_name, config.null_name)

        for col, top, col_counts in zip(columns, model.top_values, counts):
            log.info("Column %s (%s): kept %d of %d distinct values", col.name, col.shape.value, len(top), len(col_counts))
        log.info("Output width: %d", model.width)

        self.model_ = model
        self.column_metadata_ = metadata
        self.n_features_out_ = model.width
        return self

    def transform(self, X) -> sparse.csr_matrix:
        check_is_fitted(self, "model_")
        rows = self._rows(X, self.model_.columns)
        return encode_rows(self.model_, rows, self._clean_fn(), n_jobs=self.n_jobs, progress=bool(self.progress))

    def get_feature_names_out(self, input_features=None):
        check_is_fitted(self, "model_")
        return feature_names(self.column_metadata_)

    def metadata_frame(self) -> pd.DataFrame:
        check_is_fitted(self, "model_")
        return metadata_frame(self.column_metadata_)

    @property
    def top_values_(self) -> Dict[Hashable, List[str]]:
        check_is_fitted(self, "model_")
        return {col.name: list(top) for col, top in zip(self.model_.columns, self.model_.top_values)}
