"""
LLM configuration for chunk summarization.

This module provides a validated configuration for the summarization
provider with support for multiple configuration sources (environment
variables, config files, CLI arguments).
"""

import argparse
from typing import Any, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMConfig(BaseSettings):
    """
    LLM configuration for chunk summarization.

    Configuration Sources (in order of precedence):
    1. CLI arguments
    2. Config files
    3. Environment variables (CHUNKLOOM_LLM_*)
    4. Default values

    Environment Variables:
        CHUNKLOOM_LLM_API_KEY=sk-...
        CHUNKLOOM_LLM_MODEL=gpt-4o-mini
        CHUNKLOOM_LLM_BASE_URL=https://api.openai.com/v1
        CHUNKLOOM_LLM_PROVIDER=openai
    """

    model_config = SettingsConfigDict(
        env_prefix="CHUNKLOOM_LLM_",
        env_nested_delimiter="__",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    provider: Literal["openai", "ollama"] = Field(
        default="openai", description="LLM provider (openai, ollama)"
    )

    model: str = Field(default="", description="Model used for chunk summaries")

    api_key: SecretStr | None = Field(
        default=None, description="API key for authentication"
    )

    base_url: str | None = Field(default=None, description="Base URL for the LLM API")

    timeout: int = Field(default=60, description="Timeout for LLM calls (seconds)")
    max_retries: int = Field(default=3, description="Retries for transient failures")
    max_completion_tokens: int = Field(default=256, description="Summary length cap")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)

    @field_validator("base_url")
    def validate_base_url(cls, v: str | None) -> str | None:  # noqa: N805
        """Validate and normalize base URL."""
        if v is None:
            return v

        v = v.rstrip("/")

        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("base_url must start with http:// or https://")

        return v

    def get_default_model(self) -> str:
        if self.provider == "ollama":
            return "llama3.2"
        return "gpt-4o-mini"

    def get_provider_config(self) -> dict[str, Any]:
        """Keyword arguments for the summarizer constructor."""
        config: dict[str, Any] = {
            "model": self.model or self.get_default_model(),
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            "max_completion_tokens": self.max_completion_tokens,
            "temperature": self.temperature,
        }
        if self.api_key:
            config["api_key"] = self.api_key.get_secret_value()
        if self.base_url:
            config["base_url"] = self.base_url
        return config

    def is_provider_configured(self) -> bool:
        """Check if the selected provider is usable."""
        if self.provider == "ollama":
            # Local deployment, no key required
            return True
        return self.api_key is not None

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--skip-llm",
            action="store_true",
            help="Do not generate chunk summaries",
        )
        parser.add_argument("--llm-model", help="Model used for chunk summaries")

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        if getattr(args, "llm_model", None):
            overrides["model"] = args.llm_model
        return overrides

    def __repr__(self) -> str:
        api_key_display = "***" if self.api_key else None
        return (
            f"LLMConfig(provider={self.provider}, model={self.model}, "
            f"api_key={api_key_display}, base_url={self.base_url})"
        )
