"""
Configuration management for cuepoint.

Configuration comes from a YAML file with ``CUEPOINT_*`` environment
variables layered on top. Besides timeouts and loop intervals the file may
seed stream sources, failover rules and SCTE-35 program configs.
"""

import os
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import BaseModel, Field

from cuepoint.failover.models import FailoverRule, StreamSource
from cuepoint.scte35.models import ProgramConfig

CONFIG_ENV_VAR = "CUEPOINT_CONFIG"
DEFAULT_CONFIG_NAME = "config.yaml"

# Cached by load_config(), returned by get_config()
_config: Optional["CuepointConfig"] = None


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: str = "logs/cuepoint.log"
    max_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    backup_count: int = Field(default=5, ge=0)
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    to_console: bool = True
    to_file: bool = False


class TimeoutsConfig(BaseModel):
    """Upper bounds (seconds) for every call leaving the process."""
    probe: float = Field(default=5.0, gt=0)
    redirect: float = Field(default=10.0, gt=0)
    inject: float = Field(default=5.0, gt=0)
    reload: float = Field(default=10.0, gt=0)
    store: float = Field(default=10.0, gt=0)


class FailoverConfig(BaseModel):
    """Health monitoring and failover configuration."""
    auto_start: bool = True
    event_history_limit: int = Field(default=100, ge=1)
    sources: list[StreamSource] = Field(default_factory=list)
    rules: list[FailoverRule] = Field(default_factory=list)


class SCTE35Config(BaseModel):
    """SCTE-35 event scheduling configuration."""
    tick_interval: float = Field(default=1.0, gt=0)
    marker_id_start: int = Field(default=10001, ge=1)
    programs: list[ProgramConfig] = Field(default_factory=list)


class UpdatesConfig(BaseModel):
    """Schedule update queue configuration."""
    tick_interval: float = Field(default=1.0, gt=0)
    history_limit: int = Field(default=100, ge=1)
    emergency_queue_limit: int = Field(default=100, ge=1)


class CuepointConfig(BaseModel):
    """Main cuepoint configuration."""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    failover: FailoverConfig = Field(default_factory=FailoverConfig)
    scte35: SCTE35Config = Field(default_factory=SCTE35Config)
    updates: UpdatesConfig = Field(default_factory=UpdatesConfig)


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Environment variable -> (config path, parser)
ENV_OVERRIDES: dict[str, tuple[tuple[str, str], Callable[[str], Any]]] = {
    "CUEPOINT_LOG_LEVEL": (("logging", "level"), str.upper),
    "CUEPOINT_LOG_FILE": (("logging", "file"), str),
    "CUEPOINT_LOG_TO_FILE": (("logging", "to_file"), _as_bool),
    "CUEPOINT_PROBE_TIMEOUT": (("timeouts", "probe"), float),
    "CUEPOINT_REDIRECT_TIMEOUT": (("timeouts", "redirect"), float),
    "CUEPOINT_INJECT_TIMEOUT": (("timeouts", "inject"), float),
    "CUEPOINT_RELOAD_TIMEOUT": (("timeouts", "reload"), float),
    "CUEPOINT_STORE_TIMEOUT": (("timeouts", "store"), float),
    "CUEPOINT_FAILOVER_AUTO_START": (("failover", "auto_start"), _as_bool),
    "CUEPOINT_SCTE35_TICK": (("scte35", "tick_interval"), float),
    "CUEPOINT_MARKER_ID_START": (("scte35", "marker_id_start"), int),
    "CUEPOINT_UPDATES_TICK": (("updates", "tick_interval"), float),
}


def find_config_file() -> Optional[Path]:
    """
    Locate the configuration file.

    Order: ``$CUEPOINT_CONFIG``, ``config.yaml`` in the working directory,
    then ``config.yaml`` next to the package.
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    candidates = [Path(explicit)] if explicit else []
    candidates += [
        Path.cwd() / DEFAULT_CONFIG_NAME,
        Path(__file__).resolve().parent.parent / DEFAULT_CONFIG_NAME,
    ]
    return next((path for path in candidates if path.is_file()), None)


def load_config(config_path: Optional[str] = None) -> CuepointConfig:
    """
    Load, override and validate the configuration, and cache it.

    Args:
        config_path: Explicit YAML file. A path that does not exist yields
            the defaults (plus environment overrides).

    Raises:
        pydantic.ValidationError: the merged configuration is invalid
    """
    global _config

    path = Path(config_path) if config_path else find_config_file()
    data: dict[str, Any] = {}
    if path is not None and path.is_file():
        data = yaml.safe_load(path.read_text()) or {}

    for section, values in env_overrides().items():
        data[section] = {**(data.get(section) or {}), **values}

    _config = CuepointConfig.model_validate(data)
    return _config


def get_config() -> CuepointConfig:
    """Cached configuration, loaded on first use."""
    return _config if _config is not None else load_config()


def reload_config() -> CuepointConfig:
    """Drop the cached configuration and load it again."""
    global _config
    _config = None
    return load_config()


def env_overrides() -> dict[str, dict[str, Any]]:
    """Section -> {key: parsed value} for every ``CUEPOINT_*`` variable set."""
    overrides: dict[str, dict[str, Any]] = {}
    for env_var, ((section, key), parse) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_var)
        if raw is None:
            continue
        try:
            overrides.setdefault(section, {})[key] = parse(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {env_var}: {raw!r}") from e
    return overrides
