"""OpenAI-compatible embedding provider for chunkloom."""

import asyncio

import aiohttp
from loguru import logger

from chunkloom.utils.concurrency import ConcurrencyLimiter


class EmbeddingRequestError(Exception):
    """An embeddings endpoint returned an error or a malformed response."""


class OpenAICompatibleEmbeddingProvider:
    """Embedding provider for any server implementing the OpenAI embeddings API.

    Large inputs are split into sub-batches of ``batch_size`` texts which are
    sent concurrently, at most ``max_concurrent_batches`` at a time. Results
    are returned in input order regardless of completion order.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        dims: int,
        api_key: str | None = None,
        batch_size: int = 100,
        max_concurrent_batches: int = 4,
        timeout: int = 60,
        provider_name: str = "openai-compatible",
    ):
        """Initialize the provider.

        Args:
            base_url: Server base URL (e.g., 'https://api.openai.com')
            model: Embedding model name
            dims: Vector size produced by the model
            api_key: Optional API key for authentication
            batch_size: Maximum texts per HTTP request
            max_concurrent_batches: HTTP requests in flight at once
            timeout: Request timeout in seconds
            provider_name: Name reported by ``name``
        """
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._dims = dims
        self._api_key = api_key
        self._batch_size = batch_size
        self._timeout = timeout
        self._provider_name = provider_name
        self._limiter = ConcurrencyLimiter(max_concurrent_batches)

    @property
    def name(self) -> str:
        return self._provider_name

    @property
    def model(self) -> str:
        return self._model

    @property
    def dims(self) -> int:
        return self._dims

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        batches = [
            texts[i : i + self._batch_size]
            for i in range(0, len(texts), self._batch_size)
        ]
        logger.debug(
            f"Embedding {len(texts)} texts in {len(batches)} batch(es) "
            f"using {self._model} at {self._base_url}"
        )

        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            ) as session:
                results = await asyncio.gather(
                    *[self._limiter.run(self._post_batch, session, batch) for batch in batches]
                )
        except Exception as e:
            logger.error(f"Failed to generate embeddings from {self._base_url}: {e}")
            raise

        embeddings = [vector for batch in results for vector in batch]
        if len(embeddings) != len(texts):
            raise EmbeddingRequestError(
                f"Expected {len(texts)} embeddings, got {len(embeddings)}"
            )
        return embeddings

    async def _post_batch(
        self, session: aiohttp.ClientSession, batch: list[str]
    ) -> list[list[float]]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {
            "model": self._model,
            "input": batch,
            "encoding_format": "float",
        }

        url = f"{self._base_url}/v1/embeddings"
        async with session.post(url, headers=headers, json=payload) as response:
            if response.status != 200:
                error_text = await response.text()
                raise EmbeddingRequestError(
                    f"API request failed with status {response.status}: {error_text}"
                )
            response_data = await response.json()

        if "data" not in response_data:
            raise EmbeddingRequestError("Invalid response format: missing 'data' field")

        # Servers may return items out of order; "index" restores it
        items = sorted(response_data["data"], key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in items]

