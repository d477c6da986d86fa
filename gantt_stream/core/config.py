from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class EngineConfig:
    # Shared cap for RESOLVE_DEPENDENCY retries and fixed-point passes.
    max_iterations: int = 10
    fenced: bool = True
    chunk_size: int = 64


DEFAULT_CONFIG = EngineConfig()


class EngineConfigError(ValueError):
    pass


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load engine overrides from a YAML file.

    Format:
      max_iterations: 10
      fenced: true
      chunk_size: 64

    Returns only the keys present in the file, validated.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise EngineConfigError("config file must be a mapping of key -> value")

    known = asdict(DEFAULT_CONFIG)
    out: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known:
            raise EngineConfigError(f"unknown config key '{k}' (choose from: {', '.join(sorted(known))})")
        if k in ("max_iterations", "chunk_size"):
            if isinstance(v, bool) or not isinstance(v, int) or v < 1:
                raise EngineConfigError(f"'{k}' must be a positive integer")
        elif k == "fenced":
            if not isinstance(v, bool):
                raise EngineConfigError("'fenced' must be true or false")
        out[k] = v
    return out


def merged_config(overrides: dict[str, Any] | None = None) -> EngineConfig:
    """Return DEFAULT_CONFIG with optional overrides applied."""
    if not overrides:
        return DEFAULT_CONFIG
    return replace(DEFAULT_CONFIG, **overrides)


def load_and_merge(config_file: str | None) -> EngineConfig:
    if not config_file:
        return merged_config()
    return merged_config(load_config_file(config_file))
