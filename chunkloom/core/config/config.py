"""Centralized configuration management for chunkloom.

This module provides a unified configuration system with clear precedence:
1. CLI arguments (highest priority)
2. Local .chunkloom.json in target directory (if present)
3. Config file (via --config path)
4. Environment variables
5. Default values (lowest priority)
"""

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .chunking_config import ChunkingConfig
from .database_config import DatabaseConfig
from .embedding_config import EmbeddingConfig
from .indexing_config import IndexingConfig
from .llm_config import LLMConfig
from .worker_config import WorkerConfig

LOCAL_CONFIG_NAME = ".chunkloom.json"


class Config(BaseModel):
    """Centralized configuration for chunkloom."""

    model_config = ConfigDict(validate_assignment=True)

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    debug: bool = Field(default=False)

    @classmethod
    def load(
        cls,
        config_file: Path | None = None,
        overrides: dict[str, Any] | None = None,
        target_dir: Path | None = None,
    ) -> "Config":
        """Build a configuration with hierarchical loading.

        Args:
            config_file: Optional path to configuration file (from --config)
            overrides: Optional dictionary of CLI overrides
            target_dir: Optional directory checked for .chunkloom.json

        Returns:
            Validated Config instance

        Raises:
            ValueError: If a config file contains invalid JSON
        """
        config_data: dict[str, Any] = {}

        # 1. Environment variables
        _deep_merge(config_data, _load_env_vars())

        # 2. Config file passed explicitly
        if config_file and config_file.exists():
            _deep_merge(config_data, _read_json(config_file))

        # 3. Local config in the target directory
        if target_dir is not None:
            local_config_path = target_dir / LOCAL_CONFIG_NAME
            if local_config_path.exists():
                _deep_merge(config_data, _read_json(local_config_path))

        # 4. CLI overrides
        if overrides:
            _deep_merge(config_data, overrides)

        # Settings classes also read their own CHUNKLOOM_LLM_* / CHUNKLOOM_EMBEDDING_*
        # variables; explicit values passed here take precedence over those.
        for key, settings_cls in (("llm", LLMConfig), ("embedding", EmbeddingConfig)):
            section = config_data.get(key)
            if isinstance(section, dict):
                config_data[key] = settings_cls(**section)

        return cls(**config_data)

    @classmethod
    def from_cli_args(
        cls,
        args: Any,
        config_file: Path | None = None,
        target_dir: Path | None = None,
    ) -> "Config":
        """Create configuration from parsed CLI arguments."""
        overrides: dict[str, Any] = {}

        sections = (
            ("database", DatabaseConfig.extract_cli_overrides(args)),
            ("indexing", IndexingConfig.extract_cli_overrides(args)),
            ("llm", LLMConfig.extract_cli_overrides(args)),
            ("worker", WorkerConfig.extract_cli_overrides(args)),
        )
        for name, section in sections:
            if section:
                overrides[name] = section

        if getattr(args, "verbose", False):
            overrides["debug"] = True

        return cls.load(config_file=config_file, overrides=overrides, target_dir=target_dir)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary, with secrets masked."""
        return self.model_dump(mode="json", exclude_none=True)


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from environment variables.

    Uses the CHUNKLOOM_ prefix with __ delimiter for nested values.
    """
    config: dict[str, Any] = {}

    if debug := os.getenv("CHUNKLOOM_DEBUG"):
        config["debug"] = debug.lower() in ("true", "1", "yes")

    for key, section in (
        ("database", DatabaseConfig.load_from_env()),
        ("indexing", IndexingConfig.load_from_env()),
        ("worker", WorkerConfig.load_from_env()),
    ):
        if section:
            config[key] = section

    return config


def _read_json(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(
            f"Invalid JSON in config file {path}: {e}. "
            "Please check the file format and try again."
        ) from e


def _deep_merge(base: dict[str, Any], update: dict[str, Any]) -> None:
    """Deep merge update dictionary into base dictionary."""
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


# Global configuration instance
_global_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = Config.load(target_dir=Path.cwd())
    return _global_config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _global_config
    _global_config = None
