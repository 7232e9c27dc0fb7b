"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "CHKS_"
DEFAULT_CONFIG_PATH = Path("~/.config/chunk-store/config.yaml")
DAY_IN_SECONDS = 86400

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("storage", "chunks_limit"): "chunks_limit",
    ("cache", "backend"): "cache_backend",
    ("cache", "prefix"): "cache_prefix",
    ("cache", "ttl_seconds"): "cache_ttl_seconds",
    ("cache", "chunk_size"): "cache_chunk_size",
    ("cache", "max_value_bytes"): "cache_max_value_bytes",
    ("pipeline", "retry_delay_seconds"): "retry_delay_seconds",
    ("pipeline", "retry_max_attempts"): "retry_max_attempts",
    ("pipeline", "lease_seconds"): "lease_seconds",
    ("pipeline", "site_url"): "site_url",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "api_url"): "embedding_api_url",
    ("embeddings", "api_key"): "embedding_api_key",
    ("vector_index", "enabled"): "vector_index_enabled",
    ("vector_index", "url"): "vector_index_url",
    ("vector_index", "api_key"): "vector_index_api_key",
    ("vector_index", "collection"): "vector_index_collection",
    ("logging", "level"): "log_level",
    ("logging", "json"): "log_json",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".chunk-store" / "chunks.db")
    chunks_limit: int = Field(default=500, ge=0)

    cache_backend: Literal["sqlite", "memory"] = "sqlite"
    cache_prefix: str = "chunk-store-"
    cache_ttl_seconds: int = Field(default=DAY_IN_SECONDS, gt=0)
    cache_chunk_size: int = Field(default=50, gt=0)
    cache_max_value_bytes: int = Field(default=1024 * 1024, gt=0)

    retry_delay_seconds: int = Field(default=60, ge=0)
    retry_max_attempts: int | None = Field(default=None, ge=1)
    lease_seconds: int = Field(default=0, ge=0)
    site_url: str = ""

    embedding_backend: Literal["hashed", "http"] = "hashed"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = Field(default=384, gt=0)
    embedding_api_url: str = "https://api.openai.com/v1"
    embedding_api_key: str | None = None

    vector_index_enabled: bool = False
    vector_index_url: str | None = None
    vector_index_api_key: str | None = None
    vector_index_collection: str = "chunk-store"

    log_level: str = "INFO"
    log_json: bool = True

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @field_validator("retry_max_attempts", mode="before")
    @classmethod
    def _blank_means_unbounded(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in {"", "none", "0"}:
            return None
        if value == 0:
            return None
        return value

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Build settings from defaults, then the YAML file, then ``CHKS_*`` variables.

        ``path`` wins over ``CHKS_CONFIG``, which wins over the default
        location. A missing file is not an error; a file that does not parse
        to a mapping is.
        """
        data: dict[str, Any] = {}
        config_path = _config_path(path)
        if config_path is not None:
            data.update(_flatten_yaml(_read_yaml(config_path)))
        data.update(_env_overrides(os.environ))
        return cls(**data)


class ConfigError(ValueError):
    """The configuration file exists but cannot be used."""


def _config_path(path: Path | None) -> Path | None:
    candidate = path or os.environ.get(f"{ENV_PREFIX}CONFIG") or DEFAULT_CONFIG_PATH
    resolved = Path(candidate).expanduser()
    return resolved if resolved.is_file() else None


def _read_yaml(path: Path) -> Mapping[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{path}: top level must be a mapping, got {type(raw).__name__}")
    return raw


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Map nested sections (``cache.prefix``) and bare field names to Settings fields."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        path = (*prefix, str(key))
        if path in _YAML_KEY_MAP:
            flat[_YAML_KEY_MAP[path]] = value
        elif isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=path))
        elif not prefix and key in Settings.model_fields:
            flat[key] = value
    return flat


def _env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    """``CHKS_CACHE_PREFIX=x`` becomes ``{"cache_prefix": "x"}``; ``CHKS_CONFIG`` is a path, not a field."""
    overrides: dict[str, str] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX) :].lower()
        if name in Settings.model_fields:
            overrides[name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings for the CLI when no ``--config`` is given."""
    return Settings.from_yaml()


__all__ = ["ConfigError", "DAY_IN_SECONDS", "Settings", "get_settings"]
