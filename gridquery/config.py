"""YAML configuration for the query engine and its table source."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .models import coerce_bool


def _config_flag(cfg: Mapping[str, Any], key: str, default: bool) -> bool:
    if key not in cfg or cfg[key] is None:
        return default
    flag = coerce_bool(cfg[key])
    if flag is None:
        raise ValueError(f"Configuration value '{key}' must be a boolean, got {cfg[key]!r}.")
    return flag


@dataclass(frozen=True)
class EngineConfig:
    """Defaults applied to requests that leave an option unset."""

    case_insensitive: bool = True
    escape: str = "true"
    rownames: bool = False

    @classmethod
    def from_config(cls, cfg: Optional[Mapping[str, Any]]) -> "EngineConfig":
        cfg = dict(cfg or {})
        escape = cfg.get("escape", "true")
        if isinstance(escape, bool):
            escape = "true" if escape else "false"
        elif isinstance(escape, (list, tuple)):
            escape = ",".join(str(item) for item in escape)
        return cls(
            case_insensitive=_config_flag(cfg, "case_insensitive", True),
            escape=str(escape),
            rownames=_config_flag(cfg, "rownames", False),
        )


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    dir: Optional[str] = None
    to_console: bool = True

    @classmethod
    def from_config(cls, cfg: Optional[Mapping[str, Any]]) -> "LoggingConfig":
        cfg = dict(cfg or {})
        log_dir = cfg.get("dir")
        return cls(
            level=str(cfg.get("level", "INFO")).upper(),
            dir=str(log_dir) if log_dir is not None else None,
            to_console=_config_flag(cfg, "to_console", True),
        )


@dataclass(frozen=True)
class AppConfig:
    """Whole configuration file: engine defaults, logging, data source and columns."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    data: Dict[str, Any] = field(default_factory=dict)
    columns: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, cfg: Optional[Mapping[str, Any]]) -> "AppConfig":
        cfg = dict(cfg or {})
        columns = cfg.get("columns") or {}
        if not isinstance(columns, Mapping):
            raise ValueError("The 'columns' section must map column names to settings.")
        return cls(
            engine=EngineConfig.from_config(cfg.get("engine")),
            logging=LoggingConfig.from_config(cfg.get("logging")),
            data=dict(cfg.get("data") or {}),
            columns={str(name): dict(value or {}) for name, value in columns.items()},
        )


def _resolve_data_path(config_path: Path, data_cfg: Dict[str, Any]) -> Dict[str, Any]:
    resolved = dict(data_cfg)
    if "path" not in resolved:
        return resolved
    raw_path = Path(str(resolved["path"])).expanduser()
    if not raw_path.is_absolute():
        resolved["path"] = str((config_path.parent / raw_path).resolve())
    else:
        resolved["path"] = str(raw_path)
    return resolved


def load_config(path: Union[str, Path]) -> AppConfig:
    """Read a YAML configuration file; relative data paths resolve against it."""

    config_path = Path(path).expanduser()
    with config_path.open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Configuration file {config_path} must contain a mapping.")
    config = AppConfig.from_config(raw)
    if config.data:
        config = AppConfig(
            engine=config.engine,
            logging=config.logging,
            data=_resolve_data_path(config_path, config.data),
            columns=config.columns,
        )
    return config


__all__ = ["AppConfig", "EngineConfig", "LoggingConfig", "load_config"]
