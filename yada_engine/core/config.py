from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml


CONFIG_FILE = "yada.yaml"
ROOT_ENV_VAR = "YADA_ROOT"

DEFAULT_SETTINGS: dict[str, str] = {
    # Where .yada definition files live, relative to the project root.
    "dps_dir": "dps",
    "extension": ".yada",
    # Compiled plan, relative to the project root.
    "state_file": ".yadasmith",
}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ProjectConfig:
    dps_dir: str = DEFAULT_SETTINGS["dps_dir"]
    extension: str = DEFAULT_SETTINGS["extension"]
    state_file: str = DEFAULT_SETTINGS["state_file"]


DEFAULT_CONFIG = ProjectConfig()


def load_config_file(path: str | Path) -> dict[str, str]:
    """Load project settings from a YAML file.

    Format:
      dps_dir: dps
      extension: .yada
      state_file: .yadasmith

    Unknown keys are rejected so typos do not silently fall back to defaults.
    """
    p = Path(path)
    raw: Any = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{p}: config must be a mapping of setting -> string")

    out: dict[str, str] = {}
    for k, v in raw.items():
        if k not in DEFAULT_SETTINGS:
            raise ConfigError(f"{p}: unknown setting '{k}' (known: {', '.join(sorted(DEFAULT_SETTINGS))})")
        if not isinstance(v, str) or not v.strip():
            raise ConfigError(f"{p}: setting '{k}' must be a non-empty string")
        out[k] = v.strip()
    return out


def merged_config(overrides: dict[str, str] | None = None) -> ProjectConfig:
    if not overrides:
        return DEFAULT_CONFIG
    return replace(DEFAULT_CONFIG, **overrides)


def load_config(root: str | Path) -> ProjectConfig:
    """Return the defaults merged with <root>/yada.yaml when it exists."""
    p = Path(root) / CONFIG_FILE
    if not p.is_file():
        return DEFAULT_CONFIG
    return merged_config(load_config_file(p))


def find_project_root(start: str | Path | None = None, config: ProjectConfig = DEFAULT_CONFIG) -> Path:
    """Locate the directory holding the dps/ folder.

    An explicit start (argument or YADA_ROOT) is used as-is. Otherwise the
    current directory, its yada/ child and its parent are probed, in that
    order, falling back to the current directory.
    """
    explicit = start or os.getenv(ROOT_ENV_VAR)
    if explicit:
        return Path(explicit).resolve()

    p = Path(os.getcwd()).resolve()
    for candidate in (p, p / "yada", p.parent):
        if (candidate / config.dps_dir).is_dir():
            return candidate
    return p
