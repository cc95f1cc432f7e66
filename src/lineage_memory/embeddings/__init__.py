"""
Text embedding abstractions for lineage-memory.

- TextEmbedding: protocol consumed by MemoryService and ShadowSearch
- OpenAIEmbedding: OpenAI API adapter (needs the ``openai`` extra)
"""

from lineage_memory.embeddings.protocol import TextEmbedding

__all__ = [
    "TextEmbedding",
]

# Optional adapters (import only if dependencies available)
try:
    from lineage_memory.embeddings.openai_embedding import OpenAIEmbedding  # noqa: F401

    __all__.append("OpenAIEmbedding")
except ImportError:
    pass
