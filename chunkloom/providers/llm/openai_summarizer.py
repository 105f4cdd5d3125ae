"""OpenAI summarizer implementation for chunkloom."""

import json
import re
from typing import Any

from loguru import logger
from openai import AsyncOpenAI

from chunkloom.core.models import CodeSummary
from chunkloom.core.types.common import Language
from chunkloom.interfaces.summarizer import Summarizer

SUMMARY_SYSTEM_PROMPT = """You are an expert code analyst. Your task is to analyze code snippets and provide concise, accurate summaries.

Guidelines:
- Be concise but comprehensive
- Focus on what the code does, not how it does it
- Identify the main purpose and functionality
- Extract relevant keywords for searchability

Always respond in valid JSON format."""

# Below these sizes a summary adds nothing over the code itself
MIN_SUMMARY_CHARS = 50
MIN_SUMMARY_NON_WHITESPACE = 30

OLLAMA_DEFAULT_BASE_URL = "http://localhost:11434/v1"

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_summary_prompt(code: str, language: str, symbol_name: str | None = None) -> str:
    symbol_context = f" (symbol: {symbol_name})" if symbol_name else ""
    return (
        f"Analyze the following {language} code{symbol_context} and provide:\n\n"
        "1. A concise one-sentence summary of what this code does (max 100 words)\n"
        "2. 3-5 keywords that describe its functionality (for search/indexing)\n\n"
        f"Code:\n```{language}\n{code}\n```\n\n"
        "Respond in JSON format:\n"
        '{\n  "summary": "...",\n  "keywords": ["keyword1", "keyword2", ...]\n}'
    )


def parse_summary_response(response: str) -> CodeSummary:
    """Parse a JSON summary, falling back to the raw text."""
    match = _JSON_OBJECT.search(response)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            keywords = parsed.get("keywords")
            return CodeSummary(
                summary=str(parsed.get("summary") or ""),
                keywords=[str(k) for k in keywords] if isinstance(keywords, list) else [],
            )

    return CodeSummary(summary=response.strip()[:500], keywords=[])


def should_summarize(code: str) -> bool:
    """Skip code too short to benefit from a summary."""
    if len(code) < MIN_SUMMARY_CHARS:
        return False
    return len(re.sub(r"\s+", "", code)) >= MIN_SUMMARY_NON_WHITESPACE


class OpenAISummarizer(Summarizer):
    """Summarizes code chunks with an OpenAI-compatible chat model."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        timeout: int = 60,
        max_retries: int = 3,
        max_completion_tokens: int = 256,
        temperature: float = 0.2,
        provider_name: str = "openai",
    ):
        """Initialize the summarizer.

        Args:
            api_key: API key (defaults to OPENAI_API_KEY env var)
            model: Chat model name
            base_url: Base URL for OpenAI-compatible endpoints
            timeout: Request timeout in seconds
            max_retries: Retries performed by the OpenAI client
            max_completion_tokens: Cap on the summary response
            temperature: Sampling temperature
            provider_name: Name reported by ``name``
        """
        self._model = model
        self._timeout = timeout
        self._max_completion_tokens = max_completion_tokens
        self._temperature = temperature
        self._provider_name = provider_name

        client_kwargs: dict[str, Any] = {
            "api_key": api_key,
            "timeout": timeout,
            "max_retries": max_retries,
        }
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._requests_made = 0
        self._tokens_used = 0

    @property
    def name(self) -> str:
        return self._provider_name

    @property
    def model(self) -> str:
        return self._model

    async def summarize(
        self,
        content: str,
        language: Language,
        symbol_name: str | None = None,
    ) -> CodeSummary:
        if not should_summarize(content):
            return CodeSummary(summary="", keywords=[])

        prompt = build_summary_prompt(content, language.value, symbol_name)
        response = await self._complete(prompt)
        return parse_summary_response(response)

    async def _complete(self, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_completion_tokens=self._max_completion_tokens,
                temperature=self._temperature,
                timeout=self._timeout,
            )
        except Exception as e:
            logger.error(f"OpenAI summary completion failed: {e}")
            raise RuntimeError(f"LLM completion failed: {e}") from e

        self._requests_made += 1
        if response.usage:
            self._tokens_used += response.usage.total_tokens
        return response.choices[0].message.content or ""

    def get_usage_stats(self) -> dict[str, Any]:
        return {
            "requests_made": self._requests_made,
            "total_tokens": self._tokens_used,
        }
