"""
Text embedding protocol for lineage-memory.

Embedding is an external capability: the store only needs a fixed-dimension
vector per text. Stored entries are embedded as documents and search text as
queries, so adapters for models that distinguish the two can prefix inputs.
"""

from typing import List, Protocol

from typing_extensions import runtime_checkable


@runtime_checkable
class TextEmbedding(Protocol):
    """
    Protocol for text embedding providers.

    Implementations must return vectors of length ``dimension`` for every
    input and must match the dimension of the vector index they feed.

    Example:
        >>> embedder = OpenAIEmbedding(dimensions=768)
        >>> vector = await embedder.embed_query("revenue increased")
        >>> len(vector) == embedder.dimension
        True
    """

    @property
    def dimension(self) -> int:
        """Number of elements in each embedding vector."""
        ...

    @property
    def model_name(self) -> str:
        """Identifier of the embedding model."""
        ...

    async def embed_document(self, text: str) -> List[float]:
        """
        Embed text that is about to be stored.

        Raises:
            ValueError: If text is empty
        """
        ...

    async def embed_query(self, text: str) -> List[float]:
        """
        Embed search text (support and shadow searches share this vector).

        Raises:
            ValueError: If text is empty
        """
        ...

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """
        Embed several documents in one call.

        Returns:
            Vectors in the same order as ``texts``
        """
        ...
