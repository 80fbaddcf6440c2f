"""Application configuration: settings schema and batcha.yml loader"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from batcha.errors import ConfigError


logger = logging.getLogger(__name__)

ENV_PREFIX = "BATCHA_"
ENV_FIELDS = ("region", "job_definition", "job_queue")
REGION_ENV_FALLBACKS = ("AWS_REGION", "AWS_DEFAULT_REGION")


class Plugin(BaseModel):
    name: str
    config: dict[str, Any] = {}


class Settings(BaseModel):
    region:         str = Field(default="", description="AWS region; falls back to AWS_REGION / AWS_DEFAULT_REGION")
    job_definition: str = Field(default="", description="Path to the job definition template")
    job_queue:      str = Field(default="", description="Default job queue for run/logs")
    plugins:        list[Plugin] = []
    config_dir:     Path = Field(default=Path("."), exclude=True, description="Directory holding the config file")


def _region_fallback() -> str:
    for name in REGION_ENV_FALLBACKS:
        if val := os.getenv(name):
            return val
    return ""


def load_config(path: str | Path, overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from path, then BATCHA_<FIELD> env vars, then non-None CLI overrides."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to read config: {e}") from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"failed to parse config: expected a mapping, got {type(data).__name__}")

    for name in ENV_FIELDS:
        if val := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        settings = Settings(**{**data, "config_dir": path.parent})
    except ValidationError as e:
        raise ConfigError(f"failed to parse config: {e}") from e
    if not settings.job_definition:
        raise ConfigError("job_definition is required in config")
    if not settings.region:
        settings.region = _region_fallback()
    logger.debug("loaded config %s (region=%r)", path, settings.region)
    return settings


def template_path(settings: Settings) -> Path:
    """Resolve job_definition relative to the config file's directory."""
    p = Path(settings.job_definition)
    return p if p.is_absolute() else settings.config_dir / p
