"""Tests for the summarizer, the embedding provider and the provider factory."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from chunkloom.core.config.config import Config
from chunkloom.core.config.embedding_config import EmbeddingConfig
from chunkloom.core.config.llm_config import LLMConfig
from chunkloom.core.types.common import Language
from chunkloom.providers import factory
from chunkloom.providers.database import DuckDBProvider
from chunkloom.providers.embeddings import openai_compatible
from chunkloom.providers.embeddings.openai_compatible import (
    EmbeddingRequestError,
    OpenAICompatibleEmbeddingProvider,
)
from chunkloom.providers.llm.openai_summarizer import (
    OpenAISummarizer,
    build_summary_prompt,
    parse_summary_response,
    should_summarize,
)

LONG_CODE = "def compute(values):\n    return sum(v * v for v in values if v is not None)\n"


class TestSummaryParsing:
    def test_parses_json(self):
        result = parse_summary_response(
            '{"summary": "Sums squares.", "keywords": ["math", "sum"]}'
        )
        assert result.summary == "Sums squares."
        assert result.keywords == ["math", "sum"]

    def test_parses_json_inside_fences(self):
        response = 'Here you go:\n```json\n{"summary": "Loads config", "keywords": []}\n```'
        assert parse_summary_response(response).summary == "Loads config"

    def test_falls_back_to_raw_text(self):
        result = parse_summary_response("  This function adds numbers.  ")
        assert result.summary == "This function adds numbers."
        assert result.keywords == []

    def test_invalid_json_falls_back(self):
        result = parse_summary_response("{not json}")
        assert result.summary == "{not json}"

    def test_raw_text_is_truncated(self):
        assert len(parse_summary_response("x" * 2000).summary) == 500

    def test_non_list_keywords_are_dropped(self):
        result = parse_summary_response('{"summary": "s", "keywords": "a, b"}')
        assert result.keywords == []

    def test_should_summarize(self):
        assert should_summarize(LONG_CODE)
        assert not should_summarize("x = 1")
        assert not should_summarize("a" + " " * 60 + "b")

    def test_prompt_mentions_symbol_and_language(self):
        prompt = build_summary_prompt("code", "python", "compute")
        assert "python code (symbol: compute)" in prompt
        assert "```python\ncode\n```" in prompt


def completion(content: str, tokens: int = 30):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=tokens),
    )


class TestOpenAISummarizer:
    @pytest.fixture
    def summarizer(self):
        summarizer = OpenAISummarizer(api_key="test-key", model="test-model")
        summarizer._client = MagicMock()
        summarizer._client.chat.completions.create = AsyncMock(
            return_value=completion('{"summary": "Sums squares.", "keywords": ["math"]}')
        )
        return summarizer

    @pytest.mark.asyncio
    async def test_summarize(self, summarizer):
        result = await summarizer.summarize(LONG_CODE, Language.PYTHON, "compute")

        assert result.summary == "Sums squares."
        assert result.keywords == ["math"]
        kwargs = summarizer._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"][0]["role"] == "system"
        assert "compute" in kwargs["messages"][1]["content"]
        assert summarizer.get_usage_stats() == {"requests_made": 1, "total_tokens": 30}

    @pytest.mark.asyncio
    async def test_small_code_is_not_sent(self, summarizer):
        result = await summarizer.summarize("x = 1", Language.PYTHON)

        assert result.summary == ""
        summarizer._client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_client_error_is_wrapped(self, summarizer):
        summarizer._client.chat.completions.create.side_effect = ValueError("bad key")

        with pytest.raises(RuntimeError, match="LLM completion failed: bad key"):
            await summarizer.summarize(LONG_CODE, Language.PYTHON)

    def test_name_and_model(self, summarizer):
        assert summarizer.name == "openai"
        assert summarizer.model == "test-model"


class FakeResponse:
    def __init__(self, status: int, body):
        self.status = status
        self._body = body

    async def json(self):
        return self._body

    async def text(self):
        return json.dumps(self._body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession; answers each POST from ``handler``."""

    handler = None
    requests: list = []

    def __init__(self, *args, **kwargs):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def post(self, url, headers=None, json=None):
        FakeSession.requests.append({"url": url, "headers": headers, "json": json})
        return FakeSession.handler(json)


def reversed_embeddings(payload):
    # Items come back out of order, tagged with their index
    data = [
        {"index": i, "embedding": [float(len(text)), float(i)]}
        for i, text in enumerate(payload["input"])
    ]
    return FakeResponse(200, {"data": list(reversed(data))})


@pytest.fixture
def fake_session(monkeypatch):
    FakeSession.requests = []
    FakeSession.handler = reversed_embeddings
    monkeypatch.setattr(openai_compatible.aiohttp, "ClientSession", FakeSession)
    return FakeSession


class TestEmbeddingProvider:
    def make_provider(self, **kwargs):
        defaults = {"base_url": "http://embed.local/", "model": "m", "dims": 2}
        defaults.update(kwargs)
        return OpenAICompatibleEmbeddingProvider(**defaults)

    @pytest.mark.asyncio
    async def test_embed_batch_preserves_order(self, fake_session):
        provider = self.make_provider(api_key="secret", batch_size=2)
        texts = ["a", "bb", "ccc", "dddd", "eeeee"]

        vectors = await provider.embed_batch(texts)

        assert [v[0] for v in vectors] == [1.0, 2.0, 3.0, 4.0, 5.0]
        assert len(fake_session.requests) == 3
        request = fake_session.requests[0]
        assert request["url"] == "http://embed.local/v1/embeddings"
        assert request["headers"]["Authorization"] == "Bearer secret"
        assert request["json"]["model"] == "m"

    @pytest.mark.asyncio
    async def test_embed_single_text(self, fake_session):
        provider = self.make_provider()
        assert await provider.embed("abc") == [3.0, 0.0]
        assert "Authorization" not in fake_session.requests[0]["headers"]

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_request(self, fake_session):
        assert await self.make_provider().embed_batch([]) == []
        assert fake_session.requests == []

    @pytest.mark.asyncio
    async def test_error_status_raises(self, fake_session):
        fake_session.handler = lambda payload: FakeResponse(503, {"error": "overloaded"})

        with pytest.raises(EmbeddingRequestError, match="status 503"):
            await self.make_provider().embed_batch(["a"])

    @pytest.mark.asyncio
    async def test_missing_data_raises(self, fake_session):
        fake_session.handler = lambda payload: FakeResponse(200, {"object": "list"})

        with pytest.raises(EmbeddingRequestError, match="missing 'data'"):
            await self.make_provider().embed_batch(["a"])

    @pytest.mark.asyncio
    async def test_short_response_raises(self, fake_session):
        fake_session.handler = lambda payload: FakeResponse(
            200, {"data": [{"index": 0, "embedding": [1.0, 0.0]}]}
        )

        with pytest.raises(EmbeddingRequestError, match="Expected 2 embeddings, got 1"):
            await self.make_provider().embed_batch(["a", "b"])


class TestFactory:
    def test_no_llm_key_means_no_summarizer(self, clean_environment):
        assert factory.create_summarizer(LLMConfig()) is None

    def test_openai_summarizer(self, clean_environment):
        summarizer = factory.create_summarizer(LLMConfig(api_key="sk-test"))
        assert summarizer.name == "openai"
        assert summarizer.model == "gpt-4o-mini"

    def test_ollama_needs_no_key(self, clean_environment):
        summarizer = factory.create_summarizer(LLMConfig(provider="ollama"))
        assert summarizer.name == "ollama"
        assert summarizer.model == "llama3.2"

    def test_no_embedding_key_means_no_provider(self, clean_environment):
        assert factory.create_embedding_provider(EmbeddingConfig()) is None

    def test_openai_compatible_embeddings(self, clean_environment):
        provider = factory.create_embedding_provider(
            EmbeddingConfig(provider="openai-compatible", base_url="http://localhost:8080/v1")
        )
        assert provider.name == "openai-compatible"
        assert provider.dims == 1024

    def test_pipeline_wiring(self, clean_environment):
        db = DuckDBProvider(":memory:")
        pipeline = factory.create_indexing_pipeline(Config(), db)

        assert pipeline.summarizer_name is None
        assert pipeline.embedder_name is None
