"""OpenAI embedding adapter for lineage-memory."""

import logging
import os
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"
DEFAULT_DIMENSIONS = 768


class OpenAIEmbedding:
    """
    Embedding adapter using OpenAI's embedding API (async client).

    text-embedding-3 models accept a ``dimensions`` argument, so the output
    can be shrunk to match an existing vector index.

    Example:
        >>> embedder = OpenAIEmbedding(dimensions=768, api_key="sk-...")
        >>> vector = await embedder.embed_document("Quarterly revenue increased")
        >>> len(vector)
        768
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        dimensions: int = DEFAULT_DIMENSIONS,
        timeout: float = 30.0,
        max_retries: int = 3,
    ):
        """
        Initialize the OpenAI embedder.

        Args:
            model: OpenAI model name
            api_key: API key (None = OPENAI_API_KEY env var)
            base_url: Custom endpoint for OpenAI-compatible APIs
            dimensions: Output dimension requested from the API
            timeout: Request timeout in seconds
            max_retries: Retry attempts for failed requests
        """
        try:
            from openai import AsyncOpenAI
        except ImportError as e:
            raise ImportError(
                "openai is required for OpenAIEmbedding. "
                "Install with: pip install lineage-memory[openai]"
            ) from e

        self._model = model
        self._dimension = dimensions
        self._client = AsyncOpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

        logger.info(f"OpenAI embedder initialized: {model} ({dimensions} dimensions)")

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model

    async def _embed(self, texts: List[str]) -> List[List[float]]:
        if any(not text or not text.strip() for text in texts):
            raise ValueError("Cannot embed empty text")

        response = await self._client.embeddings.create(
            model=self._model, input=texts, dimensions=self._dimension
        )
        return [item.embedding for item in response.data]

    async def embed_document(self, text: str) -> List[float]:
        """
        Raises:
            ValueError: If text is empty
            openai.OpenAIError: If the API request fails
        """
        return (await self._embed([text]))[0]

    async def embed_query(self, text: str) -> List[float]:
        # OpenAI models make no document/query distinction
        return (await self._embed([text]))[0]

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        return await self._embed(texts)
