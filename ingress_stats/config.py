"""Configuration — defaults, optional YAML file, env vars, then CLI flags."""

import logging
import os
from dataclasses import dataclass, fields

import yaml

from ingress_stats.collector import HIGH_LATENCY_THRESHOLD, REPORTING_THRESHOLD, GroupKind
from ingress_stats.parser import NGINX_INGRESS_ACCESS_FORMAT, NGINX_INGRESS_ERROR_FORMAT
from ingress_stats.records import TIME_LOCAL_FORMAT

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
OUTPUT_FORMATS = ("text", "json")

ENV_PREFIX = "INGRESS_"


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    group_by: str = GroupKind.PATH.value
    output: str = "text"
    export_csv: bool = False
    export_dir: str = "."
    report_every: int = 0
    response_threshold: int = REPORTING_THRESHOLD
    high_latency_threshold: float = HIGH_LATENCY_THRESHOLD
    access_format: str = NGINX_INGRESS_ACCESS_FORMAT
    error_format: str = NGINX_INGRESS_ERROR_FORMAT
    time_format: str = TIME_LOCAL_FORMAT
    log_level: str = "INFO"

    def __post_init__(self):
        if self.group_by not in {g.value for g in GroupKind}:
            raise ValueError(f"unknown group_by {self.group_by!r}")
        if self.output not in OUTPUT_FORMATS:
            raise ValueError(f"unknown output format {self.output!r}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"unknown log level {self.log_level!r}")
        if self.report_every < 0:
            raise ValueError("report_every must be >= 0")
        if self.response_threshold < 0:
            raise ValueError("response_threshold must be >= 0")
        if self.high_latency_threshold <= 0:
            raise ValueError("high_latency_threshold must be > 0")

    @property
    def group_kind(self) -> GroupKind:
        return GroupKind(self.group_by)


# field name -> converter applied to YAML, env and CLI values
_CONVERTERS = {
    "group_by": str,
    "output": str,
    "export_csv": _parse_bool,
    "export_dir": str,
    "report_every": int,
    "response_threshold": int,
    "high_latency_threshold": float,
    "access_format": str,
    "error_format": str,
    "time_format": str,
    "log_level": lambda v: str(v).upper(),
}


def load_yaml_config(path: str | None) -> dict:
    """Load a YAML config file. Returns an empty dict if there is no path or file."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def _convert(name: str, value):
    try:
        return _CONVERTERS[name](value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid value for {name}: {value!r}") from e


def load_config(cli_args=None, yaml_data: dict | None = None) -> Config:
    """Build Config; later sources win: defaults, YAML, INGRESS_* env, CLI."""
    values = {}

    for key, value in (yaml_data or {}).items():
        if key not in _CONVERTERS:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        values[key] = _convert(key, value)

    for f in fields(Config):
        env_value = os.environ.get(ENV_PREFIX + f.name.upper())
        if env_value is not None:
            values[f.name] = _convert(f.name, env_value)

    if cli_args is not None:
        for f in fields(Config):
            cli_value = getattr(cli_args, f.name, None)
            if cli_value is not None:
                values[f.name] = _convert(f.name, cli_value)

    return Config(**values)
