#!/usr/bin/env python3
"""
Top-K pivot vectorizer for categorical columns.

Fits the vectorizer on a tabular file and writes the learned top values, the
per-coordinate metadata and the encoded sparse matrix.

Usage:
    python main.py --data data/raw/rows.csv
    python main.py --config config/config.yaml --data rows.parquet --out results/run1
    python main.py --data rows.csv --top-k 50 --min-support 5 --n-jobs 4
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import pandas as pd
from scipy import sparse


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging():
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    return logging.getLogger(__name__)


def add_file_handler(out_dir: Path) -> logging.Handler:
    """Mirror the root logger into ``out_dir/run.log``."""
    out_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(out_dir / "run.log", mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    return handler


def read_table(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix in {".csv", ".txt"}:
        try:
            return pd.read_csv(path, low_memory=False, encoding="utf-8", dtype=str, keep_default_na=True)
        except UnicodeDecodeError:
            return pd.read_csv(path, low_memory=False, encoding="latin1", dtype=str, keep_default_na=True)
    raise ValueError(f"Unsupported input format for '{path}'. Use .parquet, .csv or .txt.")


def split_set_columns(df: pd.DataFrame, set_columns, separator: str) -> pd.DataFrame:
    """Turn delimited strings into lists for set-valued columns stored as text."""
    df = df.copy()
    for col in set_columns:
        if col not in df.columns:
            continue
        df[col] = df[col].map(
            lambda v: [p.strip() for p in v.split(separator) if p.strip()] if isinstance(v, str) else v
        )
    return df


def column_declaration(data_cfg) -> dict:
    declared = {}
    for name in data_cfg.get("set_columns", []) or []:
        declared[name] = "set"
    for name in data_cfg.get("text_columns", []) or []:
        declared[name] = "text"
    if not declared:
        raise ValueError("No categorical columns declared (data.set_columns / data.text_columns).")
    return declared


def main(argv=None):
    parser = argparse.ArgumentParser(description="Top-K pivot vectorizer")
    parser.add_argument("--config", default="config/config.yaml")
    parser.add_argument("--data", default=None, help="Input table (.csv, .txt or .parquet)")
    parser.add_argument("--out", default=None, help="Output directory")
    parser.add_argument("--top-k", type=int, default=None, help="Override vectorizer.top_k")
    parser.add_argument("--min-support", type=int, default=None, help="Override vectorizer.min_support")
    parser.add_argument("--n-jobs", type=int, default=None, help="Override vectorizer.n_jobs")
    args = parser.parse_args(argv)

    log = setup_logging()

    from src.config_loader import load_config

    cfg = load_config(args.config)
    log.info("Config loaded from %s", args.config)
    data_cfg = cfg.get("data", {}) or {}
    out_dir = Path(args.out or cfg.get("paths", {}).get("output", "results"))
    file_handler = add_file_handler(out_dir)
    try:
        return _run(args, cfg, data_cfg, out_dir, log)
    finally:
        logging.getLogger().removeHandler(file_handler)
        file_handler.close()


def _run(args, cfg, data_cfg, out_dir: Path, log):
    from src.config_loader import build_vectorizer_config

    config = build_vectorizer_config(cfg).replace(
        top_k=args.top_k,
        min_support=args.min_support,
        n_jobs=args.n_jobs,
    )
    log.info("Vectorizer config: %s", config)

    from src.pivot_vectorizer import PivotVectorizer

    declared = column_declaration(data_cfg)
    set_columns = [name for name, shape in declared.items() if shape == "set"]

    data_path = Path(args.data or data_cfg["filepath"])
    df = read_table(data_path)
    log.info("Loaded %s: %s", data_path, df.shape)
    df = split_set_columns(df, set_columns, data_cfg.get("set_separator", "|"))

    vectorizer = PivotVectorizer.from_config(declared, config, progress=True)
    X = vectorizer.fit_transform(df)
    log.info("Encoded matrix: %s | nnz=%s", X.shape, f"{X.nnz:,}")

    with open(out_dir / "top_values.json", "w", encoding="utf-8") as f:
        json.dump(vectorizer.top_values_, f, indent=2, ensure_ascii=False)
    vectorizer.metadata_frame().to_csv(out_dir / "column_metadata.csv", index=False)
    sparse.save_npz(out_dir / "vectors.npz", X)

    log.info("Saved artifacts in %s", out_dir)
    log.info("Completed at: %s", datetime.now().isoformat())
    return X


if __name__ == "__main__":
    main()
