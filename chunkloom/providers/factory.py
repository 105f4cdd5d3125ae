"""Provider factory - composition root for summarizers, embedders and the pipeline.

Each ``create_*`` function returns ``None`` when its provider is not
configured; the pipeline then skips the matching phase.
"""

from loguru import logger

from chunkloom.core.config.config import Config
from chunkloom.core.config.embedding_config import EmbeddingConfig
from chunkloom.core.config.llm_config import LLMConfig
from chunkloom.interfaces.embedding_provider import EmbeddingProvider
from chunkloom.interfaces.summarizer import Summarizer
from chunkloom.parsers.ast_chunker import AstChunker
from chunkloom.providers.database.duckdb_provider import DuckDBProvider
from chunkloom.providers.embeddings.openai_compatible import (
    OpenAICompatibleEmbeddingProvider,
)
from chunkloom.providers.llm.openai_summarizer import (
    OLLAMA_DEFAULT_BASE_URL,
    OpenAISummarizer,
)
from chunkloom.services.indexing_pipeline import IndexingPipeline


def create_summarizer(config: LLMConfig) -> Summarizer | None:
    """Create the chunk summarizer, or None if no LLM is configured."""
    if not config.is_provider_configured():
        logger.debug("No LLM provider configured; summaries disabled")
        return None

    kwargs = config.get_provider_config()
    if config.provider == "ollama":
        kwargs.setdefault("base_url", OLLAMA_DEFAULT_BASE_URL)
        # The OpenAI client requires a key even where the server ignores it
        kwargs.setdefault("api_key", "ollama")

    return OpenAISummarizer(provider_name=config.provider, **kwargs)


def create_embedding_provider(config: EmbeddingConfig) -> EmbeddingProvider | None:
    """Create the embedding provider, or None if no key is configured."""
    if not config.is_provider_configured():
        logger.debug("No embedding provider configured; embeddings disabled")
        return None

    return OpenAICompatibleEmbeddingProvider(
        provider_name=config.provider, **config.get_provider_config()
    )


def create_indexing_pipeline(config: Config, db: DuckDBProvider) -> IndexingPipeline:
    """Wire an indexing pipeline to the DuckDB stores and configured providers."""
    return IndexingPipeline(
        metadata_store=db.file_metadata,
        summarizer=create_summarizer(config.llm),
        embedding_provider=create_embedding_provider(config.embedding),
        vector_store=db.vectors,
        chunker=AstChunker(config.chunking),
        indexing_config=config.indexing,
    )
