"""Embedding providers for chunkloom."""

from .openai_compatible import EmbeddingRequestError, OpenAICompatibleEmbeddingProvider

__all__ = ["EmbeddingRequestError", "OpenAICompatibleEmbeddingProvider"]
