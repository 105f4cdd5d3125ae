"""Embedding provider configuration for chunkloom."""

from typing import Any, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Vector sizes used when the provider does not report one
DEFAULT_DIMENSIONS: dict[str, int] = {
    "openai": 1536,
    "bigmodel": 1024,
    "voyage": 1024,
}


class EmbeddingConfig(BaseSettings):
    """
    Embedding configuration.

    Environment Variables:
        CHUNKLOOM_EMBEDDING_API_KEY=sk-...
        CHUNKLOOM_EMBEDDING_MODEL=text-embedding-3-small
        CHUNKLOOM_EMBEDDING_BASE_URL=https://api.openai.com
        CHUNKLOOM_EMBEDDING_PROVIDER=openai
    """

    model_config = SettingsConfigDict(
        env_prefix="CHUNKLOOM_EMBEDDING_",
        env_nested_delimiter="__",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    provider: Literal["openai", "bigmodel", "voyage", "openai-compatible"] = Field(
        default="openai"
    )
    model: str = Field(default="text-embedding-3-small")
    api_key: SecretStr | None = Field(default=None)
    base_url: str = Field(default="https://api.openai.com")
    dimensions: int | None = Field(default=None)

    batch_size: int = Field(default=100, gt=0, description="Texts per HTTP request")
    max_concurrent_batches: int = Field(
        default=4, gt=0, description="HTTP requests in flight at once"
    )
    timeout: int = Field(default=60, description="Request timeout (seconds)")

    @field_validator("base_url")
    def validate_base_url(cls, v: str) -> str:  # noqa: N805
        v = v.rstrip("/")
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("base_url must start with http:// or https://")
        # The provider appends /v1/embeddings itself
        if v.endswith("/v1"):
            v = v[: -len("/v1")]
        return v

    def get_dimensions(self) -> int:
        if self.dimensions:
            return self.dimensions
        return DEFAULT_DIMENSIONS.get(self.provider, 1024)

    def get_provider_config(self) -> dict[str, Any]:
        config: dict[str, Any] = {
            "base_url": self.base_url,
            "model": self.model,
            "dims": self.get_dimensions(),
            "batch_size": self.batch_size,
            "max_concurrent_batches": self.max_concurrent_batches,
            "timeout": self.timeout,
        }
        if self.api_key:
            config["api_key"] = self.api_key.get_secret_value()
        return config

    def is_provider_configured(self) -> bool:
        if self.provider == "openai-compatible":
            return True
        return self.api_key is not None

    def __repr__(self) -> str:
        api_key_display = "***" if self.api_key else None
        return (
            f"EmbeddingConfig(provider={self.provider}, model={self.model}, "
            f"api_key={api_key_display}, base_url={self.base_url})"
        )
