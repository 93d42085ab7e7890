"""
Runtime configuration for the pipeline and the extractors.

Values resolve as: built-in default < YAML file (``pipeline`` / ``extract``
sections) < environment variable. ``.env`` files are loaded by the CLI.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; LaxDBBot/1.0; +https://laxdb.io/bot)"
DEFAULT_CONFIG_FILE = "pipeline.yml"

# field name -> (environment variable, cast)
_EnvSpec = Dict[str, Tuple[str, Callable[[Any], Any]]]


def _resolve(spec: _EnvSpec, overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    overrides = overrides or {}
    for name, (env_var, cast) in spec.items():
        raw = os.getenv(env_var)
        source = env_var
        if raw is None and name in overrides:
            raw = overrides[name]
            source = f"config key '{name}'"
        if raw is None:
            continue
        try:
            values[name] = cast(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {source}: {raw!r}") from e
    return values


@dataclass(frozen=True)
class PipelineConfig:
    """Settings shared by the fetch layer."""

    user_agent: str = DEFAULT_USER_AGENT
    default_timeout_ms: int = 30000
    max_retries: int = 3
    retry_delay_ms: int = 1000
    max_retry_delay_ms: int = 60000
    rate_limit_delay_ms: int = 100
    max_concurrency: int = 5

    ENV: ClassVar[_EnvSpec] = {
        "user_agent": ("PIPELINE_USER_AGENT", str),
        "default_timeout_ms": ("PIPELINE_DEFAULT_TIMEOUT_MS", int),
        "max_retries": ("PIPELINE_MAX_RETRIES", int),
        "retry_delay_ms": ("PIPELINE_RETRY_DELAY_MS", int),
        "max_retry_delay_ms": ("PIPELINE_MAX_RETRY_DELAY_MS", int),
        "rate_limit_delay_ms": ("PIPELINE_RATE_LIMIT_DELAY_MS", int),
        "max_concurrency": ("PIPELINE_MAX_CONCURRENCY", int),
    }

    @classmethod
    def from_env(cls, overrides: Optional[Mapping[str, Any]] = None) -> "PipelineConfig":
        return cls(**_resolve(cls.ENV, overrides))


@dataclass(frozen=True)
class ExtractConfig:
    """Settings for extraction runs."""

    output_dir: Path = field(default_factory=lambda: Path.cwd() / "output")
    concurrency: int = 5
    delay_between_requests_ms: int = 100
    delay_between_batches_ms: int = 500
    rate_limit_retries: int = 1

    ENV: ClassVar[_EnvSpec] = {
        "output_dir": ("EXTRACT_OUTPUT_DIR", Path),
        "concurrency": ("EXTRACT_CONCURRENCY", int),
        "delay_between_requests_ms": ("EXTRACT_DELAY_MS", int),
        "delay_between_batches_ms": ("EXTRACT_BATCH_DELAY_MS", int),
        "rate_limit_retries": ("EXTRACT_RATE_LIMIT_RETRIES", int),
    }

    @classmethod
    def from_env(cls, overrides: Optional[Mapping[str, Any]] = None) -> "ExtractConfig":
        return cls(**_resolve(cls.ENV, overrides))


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the optional YAML config file. A missing file yields ``{}``."""
    path = Path(config_path or os.getenv("PIPELINE_CONFIG", DEFAULT_CONFIG_FILE))
    if not path.exists():
        logger.debug("Config file not found: %s", path)
        return {}

    with path.open() as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(config_path: Optional[str] = None) -> Tuple[PipelineConfig, ExtractConfig]:
    data = load_config_file(config_path)
    return (
        PipelineConfig.from_env(data.get("pipeline")),
        ExtractConfig.from_env(data.get("extract")),
    )
