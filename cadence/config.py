from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_PREFIX = "CADENCE_"


class ModelsConfig(BaseModel):
    model: str = "scripted-model"
    """Model name quoted in context-compression notices."""
    auth_type: Literal["oauth", "api_key", "cloud", "none"] = "none"
    """Selects the rate-limit guidance appended to formatted API errors."""


class StreamConfig(BaseModel):
    split_long_messages: bool = True


class ToolsConfig(BaseModel):
    approval_required: list[str] = Field(default_factory=list)
    auto_approve: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


class TelemetryConfig(BaseModel):
    """OpenTelemetry tracing configuration."""

    enabled: bool = False
    endpoint: str = "localhost:4317"
    env: str = "dev"


class ObservabilityConfig(BaseModel):
    """Prometheus metrics exposure."""

    metrics_enabled: bool = False
    metrics_port: int = Field(default=9464, ge=1, le=65535)


class ChannelConfig(BaseModel):
    prompt: str = "cadence> "
    color: bool = True


class CadenceSettings(BaseSettings):
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    channel: ChannelConfig = Field(default_factory=ChannelConfig)

    model_config = SettingsConfigDict(
        env_prefix=_ENV_PREFIX,
        env_nested_delimiter="__",
        extra="ignore",
    )


def _coerce_env_value(value: str) -> object:
    parsed = yaml.safe_load(value)
    return value if parsed is None else parsed


def _set_nested(mapping: dict[str, object], path: list[str], value: object) -> None:
    current = mapping
    for key in path[:-1]:
        existing = current.get(key)
        if not isinstance(existing, dict):
            existing = {}
        else:
            existing = dict(existing)
        current[key] = existing
        current = existing
    current[path[-1]] = value


def _apply_env_overrides(data: dict[str, object]) -> dict[str, object]:
    merged = dict(data)
    for key, raw_value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        path = key[len(_ENV_PREFIX) :].lower().split("__")
        _set_nested(merged, path, _coerce_env_value(raw_value))
    return merged


def load_config(path: str | Path = "config/cadence.yaml") -> CadenceSettings:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")

    loaded = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(loaded, dict):
        raise ValueError("config file must contain a top-level mapping")

    raw = loaded.get("cadence", loaded)
    if not isinstance(raw, dict):
        raise ValueError("cadence config section must be a mapping")

    return CadenceSettings.model_validate(_apply_env_overrides(raw))


__all__ = [
    "CadenceSettings",
    "ChannelConfig",
    "LoggingConfig",
    "ModelsConfig",
    "ObservabilityConfig",
    "StreamConfig",
    "TelemetryConfig",
    "ToolsConfig",
    "load_config",
]
