"""Repository configuration helpers.

Settings live in the optional ``.timemachine/config.yaml``; a repository
without one runs on defaults. ``TIMEMACHINE_*`` environment variables take
precedence over the file.
"""

import os
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .constants import DEFAULT_COMPRESSION_LEVEL, DEFAULT_LOCK_TIMEOUT
from .context import RepositoryContext
from .errors import ConfigError

ENV_PREFIX = "TIMEMACHINE_"


class TimeMachineConfig(BaseModel):
    """Repository configuration (stored in .timemachine/config.yaml)."""

    compression_level: int = Field(default=DEFAULT_COMPRESSION_LEVEL, ge=1, le=22)
    recursive: bool = False  # scan subdirectories too
    lock_timeout: float = Field(default=DEFAULT_LOCK_TIMEOUT, gt=0)


def _env_overrides() -> Dict[str, Any]:
    overrides = {}
    for field_name in TimeMachineConfig.model_fields:
        value = os.environ.get(ENV_PREFIX + field_name.upper())
        if value is not None and value.strip():
            overrides[field_name] = value.strip()
    return overrides


def load_config(ctx: Optional[RepositoryContext] = None) -> TimeMachineConfig:
    """Load configuration, applying environment overrides.

    Raises:
        ConfigError: If the file is not valid YAML or a value is invalid
    """
    if ctx is None:
        ctx = RepositoryContext()

    data: Dict[str, Any] = {}
    if ctx.config_path.exists():
        try:
            data = yaml.safe_load(ctx.config_path.read_text()) or {}
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise ConfigError(f"Invalid YAML in {ctx.config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping in {ctx.config_path}")

    data.update(_env_overrides())
    try:
        return TimeMachineConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

