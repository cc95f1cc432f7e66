from lineage_memory.storage.vector.memory import InMemoryVectorIndex
from lineage_memory.storage.vector.models import VectorSearchHit

__all__ = ["InMemoryVectorIndex", "VectorSearchHit"]
