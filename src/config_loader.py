"""Centralised configuration loader.

The YAML file is cached per path: calling ``load_config`` with a different
path logs a warning and reloads, so callers always get the configuration they
asked for. The ``vectorizer`` section is turned into an immutable
``VectorizerConfig`` that is threaded through both fit and transform.
"""

import logging
import numbers
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

import yaml

log = logging.getLogger(__name__)

_CONFIG: Optional[Dict[str, Any]] = None
_CONFIG_PATH: Optional[str] = None

DEFAULT_UNSEEN_NAME = "OTHER"
DEFAULT_NULL_NAME = "NullIndicatorValue"


class ConfigError(ValueError):
    """Raised when vectorizer options are invalid."""


def load_config(path: str = "config/config.yaml") -> Dict[str, Any]:
    """Load and cache YAML configuration.

    If the config has already been loaded from a *different* ``path``, a
    warning is logged and the config is reloaded from the new path so that
    the caller always gets the configuration they asked for.
    """
    global _CONFIG, _CONFIG_PATH

    if _CONFIG is not None:
        if _CONFIG_PATH == path:
            return _CONFIG
        log.warning(
            "load_config called with path '%s' but config was already loaded "
            "from '%s'. Reloading from the new path.",
            path,
            _CONFIG_PATH,
        )

    with open(path, "r", encoding="utf-8") as f:
        _CONFIG = yaml.safe_load(f) or {}
    _CONFIG_PATH = path
    return _CONFIG


def reload_config(path: str = "config/config.yaml") -> Dict[str, Any]:
    """Force-reload configuration from disk."""
    global _CONFIG, _CONFIG_PATH
    _CONFIG = None
    _CONFIG_PATH = None
    return load_config(path)


@dataclass(frozen=True)
class VectorizerConfig:
    """Immutable options shared by fit and transform."""

    top_k: int = 20
    min_support: int = 10
    clean_text: bool = True
    track_nulls: bool = True
    unseen_name: str = DEFAULT_UNSEEN_NAME
    null_name: str = DEFAULT_NULL_NAME
    n_partitions: int = 1
    n_jobs: Optional[int] = None
    cardinality_warning: Optional[int] = None

    def __post_init__(self):
        validate_options(self.top_k, self.min_support, self.n_partitions)
        warn_at = self.cardinality_warning
        if warn_at is not None and (isinstance(warn_at, bool) or not isinstance(warn_at, numbers.Integral) or warn_at <= 0):
            raise ConfigError(f"cardinality_warning must be a positive integer, got {warn_at!r}")

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]]) -> "VectorizerConfig":
        """Build a config from a plain mapping, rejecting unknown keys."""
        options = dict(options or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigError(f"Unknown vectorizer options: {unknown}")
        return cls(**options)

    def replace(self, **overrides) -> "VectorizerConfig":
        """Return a copy with ``overrides`` applied (``None`` values are ignored)."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update({k: v for k, v in overrides.items() if v is not None})
        return VectorizerConfig(**current)


def validate_options(top_k: Any, min_support: Any, n_partitions: Any = 1) -> None:
    """Reject invalid options before any data is touched."""
    if isinstance(top_k, bool) or not isinstance(top_k, numbers.Integral) or top_k <= 0:
        raise ConfigError(f"top_k must be a positive integer, got {top_k!r}")
    if isinstance(min_support, bool) or not isinstance(min_support, numbers.Integral) or min_support < 0:
        raise ConfigError(f"min_support must be a non-negative integer, got {min_support!r}")
    if isinstance(n_partitions, bool) or not isinstance(n_partitions, numbers.Integral) or n_partitions <= 0:
        raise ConfigError(f"n_partitions must be a positive integer, got {n_partitions!r}")


def build_vectorizer_config(cfg: Mapping[str, Any]) -> VectorizerConfig:
    """Extract the ``vectorizer`` section of a loaded config."""
    return VectorizerConfig.from_mapping(cfg.get("vectorizer"))
