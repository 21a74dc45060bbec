import json
import logging

import pandas as pd
import pytest
from scipy import sparse

import main as cli
import src.config_loader as config_loader


def _write_config(tmp_path, extra=""):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "data:\n"
        "  set_separator: '|'\n"
        "  set_columns: [tags]\n"
        "  text_columns: [city]\n"
        "vectorizer:\n"
        "  top_k: 2\n"
        "  min_support: 1\n"
        "  clean_text: true\n"
        "  track_nulls: true\n" + extra,
        encoding="utf-8",
    )
    return config_path


@pytest.fixture(autouse=True)
def _reset_cache(monkeypatch):
    monkeypatch.setattr(config_loader, "_CONFIG", None)
    monkeypatch.setattr(config_loader, "_CONFIG_PATH", None)


def test_split_set_columns():
    df = pd.DataFrame({"tags": ["a| b", None, "c||c"], "city": ["x|y", "z", None]})
    out = cli.split_set_columns(df, ["tags", "missing"], "|")
    assert out["tags"].tolist()[0] == ["a", "b"]
    assert out["tags"].tolist()[2] == ["c", "c"]
    assert out["tags"].isna().tolist()[1]
    assert out["city"].tolist()[0] == "x|y"
    assert df["tags"].tolist()[0] == "a| b"


def test_column_declaration_requires_columns():
    assert cli.column_declaration({"set_columns": ["a"], "text_columns": ["b"]}) == {"a": "set", "b": "text"}
    with pytest.raises(ValueError):
        cli.column_declaration({})


def test_read_table_rejects_unknown_suffix(tmp_path):
    with pytest.raises(ValueError):
        cli.read_table(tmp_path / "rows.xlsx")


def test_main_writes_artifacts(tmp_path):
    data_path = tmp_path / "rows.csv"
    data_path.write_text("tags,city\na|a,Boston\nb,\nc|c|c,boston\n", encoding="utf-8")
    config_path = _write_config(tmp_path)
    out_dir = tmp_path / "out"

    X = cli.main(["--config", str(config_path), "--data", str(data_path), "--out", str(out_dir)])

    top_values = json.loads((out_dir / "top_values.json").read_text(encoding="utf-8"))
    assert top_values == {"tags": ["C", "A"], "city": ["Boston"]}

    assert X.shape == (3, 7)
    saved = sparse.load_npz(out_dir / "vectors.npz")
    assert (saved != X).nnz == 0
    # row "b," -> tags other = 1, city null = 1
    assert saved.toarray()[1].tolist() == [0, 0, 1, 0, 0, 0, 1]

    meta = pd.read_csv(out_dir / "column_metadata.csv")
    assert len(meta) == 7
    assert meta["indicator_value"].tolist()[:4] == ["C", "A", "OTHER", "NullIndicatorValue"]


def test_main_cli_overrides(tmp_path):
    data_path = tmp_path / "rows.csv"
    data_path.write_text("tags,city\na|a,Boston\nb,\nc|c|c,boston\n", encoding="utf-8")
    config_path = _write_config(tmp_path)

    X = cli.main(
        [
            "--config",
            str(config_path),
            "--data",
            str(data_path),
            "--out",
            str(tmp_path / "out"),
            "--top-k",
            "1",
            "--min-support",
            "3",
        ]
    )
    # tags keeps only C (count 3); city keeps nothing (Boston has 2)
    assert X.shape == (3, 3 + 2)


def test_logging_configured_before_config_load(tmp_path, monkeypatch, caplog):
    caplog.set_level(logging.INFO)
    data_path = tmp_path / "rows.csv"
    data_path.write_text("tags,city\na,Boston\n", encoding="utf-8")
    config_path = _write_config(tmp_path)
    out_dir = tmp_path / "out"

    calls = []
    real_setup, real_load = cli.setup_logging, config_loader.load_config

    def recording_setup():
        calls.append("setup_logging")
        return real_setup()

    def recording_load(path="config/config.yaml"):
        calls.append("load_config")
        return real_load(path)

    monkeypatch.setattr(cli, "setup_logging", recording_setup)
    monkeypatch.setattr(config_loader, "load_config", recording_load)

    cli.main(["--config", str(config_path), "--data", str(data_path), "--out", str(out_dir)])

    assert calls == ["setup_logging", "load_config"]
    assert f"Config loaded from {config_path}" in caplog.text
    assert (out_dir / "run.log").exists()
    # the run.log handler does not outlive the run
    assert not [
        h for h in logging.getLogger().handlers
        if isinstance(h, logging.FileHandler) and str(out_dir) in h.baseFilename
    ]
