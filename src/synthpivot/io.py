"""
Module: io
Purpose: YAML run-configuration loading with validation
Dependencies: yaml, pydantic

Expected layout:

    seed: 2021
    seed_policy: per_iteration   # or sequential (default)
    jobs: 4
    quantiles: [0.05, 0.5, 0.95]
    runs:
      - kind: sphericity
        nsample: 100
        pvariates: 4
        iterations: 10000
      - kind: canonical
        nsample: 100
        pvariates: 4
        part: 2

A single simulation may also be given inline (kind/nsample/... at top level)
instead of a `runs` list.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml
from pydantic import ValidationError

from .config import RunConfig
from .errors import ConfigError

_RUN_KEYS = ("kind", "nsample", "pvariates", "iterations", "part")

__all__ = ["load_config", "parse_config"]


def parse_config(data: Mapping[str, Any], *, source: str = "<mapping>") -> RunConfig:
    """Validate a mapping into a RunConfig; ConfigError on any problem."""
    if not isinstance(data, Mapping):
        raise ConfigError(f"config from {source} must be a mapping, got {type(data).__name__}")
    d: Dict[str, Any] = dict(data)
    if "runs" not in d and "kind" in d:
        d["runs"] = [{k: d.pop(k) for k in _RUN_KEYS if k in d}]
    try:
        return RunConfig.model_validate(d)
    except ValidationError as e:
        raise ConfigError(f"invalid config in {source}:\n{e}") from e


def load_config(path: Union[str, Path]) -> RunConfig:
    p = Path(path)
    try:
        raw = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"could not read config at {str(p)!r}: {e}") from e
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        loc = f" (line={mark.line + 1}, column={mark.column + 1})" if mark is not None else ""
        raise ConfigError(f"YAML parse error in {str(p)!r}{loc}: {e}") from e
    if data is None:
        raise ConfigError(f"config at {str(p)!r} is empty")
    return parse_config(data, source=repr(str(p)))
