"""
Generable — Configuration System

All configuration is Pydantic-validated and loaded from:
1. default.yaml (defaults)
2. Environment variables (overrides), e.g. GENERABLE_OLLAMA__MODEL
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from generable.generation.types import RetryPolicy

_ENV_PREFIX = "GENERABLE_"
_ENV_NESTED_DELIMITER = "__"

# ─── Sub-configs ──────────────────────────────────────────────────


class OllamaConfig(BaseModel):
    base_url: str = "http://localhost:11434"
    model: str = "llama3.2"
    timeout_s: float = Field(default=120.0, gt=0)
    # Passed through as-is, e.g. "5m" or "-1"
    keep_alive: str | None = None


class RetryConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=0)
    include_error_context: bool = True
    base_delay_s: float = Field(default=0.5, ge=0)

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            include_error_context=self.include_error_context,
            base_delay_s=self.base_delay_s,
        )


class StreamConfig(BaseModel):
    yield_partial_values: bool = True
    min_content_for_parse: int = Field(default=10, ge=0)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # "console" | "json"


# ─── Root Configuration ──────────────────────────────────────────


class GenerableConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix=_ENV_PREFIX,
        env_nested_delimiter=_ENV_NESTED_DELIMITER,
        extra="ignore",
    )

    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        path = key[len(_ENV_PREFIX):].lower().split(_ENV_NESTED_DELIMITER)
        if not all(path):
            continue
        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
            if not isinstance(node, dict):
                break
        else:
            node[path[-1]] = value
    return overrides


def load_config(config_path: str | Path | None = None) -> GenerableConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.

    Values passed to BaseSettings as init kwargs outrank its own env lookup,
    so env overrides are merged into the YAML data here.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    raw = _deep_merge(raw, _env_overrides(dict(os.environ)))
    return GenerableConfig(**raw)
