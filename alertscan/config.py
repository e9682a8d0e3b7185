from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .scanner import MAX_LINE_LENGTH
from .sink import DEFAULT_SINK_PATH


CONFIG_ENV = "ALERTSCAN_CONFIG"


@dataclass
class Settings:
    sink: str = DEFAULT_SINK_PATH
    poll_interval: float = 0.5
    pause: float = 0.5
    max_line_length: int = MAX_LINE_LENGTH
    incremental: bool = False

    def merged(self, **overrides: Any) -> "Settings":
        """Return a copy with every non-None override applied, validated like file values."""
        values: Dict[str, Any] = {}
        for key, val in overrides.items():
            if val is None:
                continue
            try:
                values[key] = _CASTS[key](val)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"invalid value for {key!r}: {val!r} ({e})") from e
        return replace(self, **values)


def _as_bool(val: Any) -> bool:
    if not isinstance(val, bool):
        raise ValueError("expected true or false")
    return val


def _positive_int(val: Any) -> int:
    if isinstance(val, bool):
        raise ValueError("expected an integer")
    n = int(val)
    if n <= 0:
        raise ValueError("must be greater than zero")
    return n


def _non_negative_float(val: Any) -> float:
    if isinstance(val, bool):
        raise ValueError("expected a number")
    f = float(val)
    if f < 0:
        raise ValueError("must not be negative")
    return f


_CASTS = {
    "sink": str,
    "poll_interval": _non_negative_float,
    "pause": _non_negative_float,
    "max_line_length": _positive_int,
    "incremental": _as_bool,
}


def _config_path(path: Optional[str]) -> Optional[Path]:
    if path:
        return Path(path)
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env)
    return None


def load_settings(path: Optional[str] = None) -> Settings:
    """Load settings from a YAML file (explicit path, else $ALERTSCAN_CONFIG).

    A missing file yields defaults. Unknown keys are ignored.
    """
    cfg_path = _config_path(path)
    if cfg_path is None or not cfg_path.exists():
        return Settings()
    try:
        data = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config {cfg_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config {cfg_path} must be a mapping")
    known = {f.name for f in fields(Settings)}
    values: Dict[str, Any] = {}
    for key, val in data.items():
        if key not in known or val is None:
            continue
        try:
            values[key] = _CASTS[key](val)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid value for {key!r} in {cfg_path}: {val!r} ({e})") from e
    return Settings(**values)
