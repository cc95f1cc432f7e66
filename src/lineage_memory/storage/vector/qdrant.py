import logging
from typing import List, Optional, Sequence

from qdrant_client import QdrantClient
from qdrant_client.models import Distance, PointIdsList, PointStruct, VectorParams

from lineage_memory.storage.vector.models import VectorSearchHit

logger = logging.getLogger(__name__)


class QdrantVectorIndex:
    """VectorIndex backed by a Qdrant collection; point IDs are the entry labels."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6333,
        collection_name: str = "memories",
        dimension: int = 768,
        client: Optional[QdrantClient] = None,
    ):
        """
        Initialize Qdrant vector index.

        Args:
            host: Qdrant host (default: localhost)
            port: Qdrant port (default: 6333)
            collection_name: Collection name (default: memories)
            dimension: Embedding dimension of the collection
            client: Pre-built client (overrides host/port)
        """
        self.client = client or QdrantClient(host=host, port=port)
        self.collection_name = collection_name
        self.dimension = dimension
        self._init_collection()

    def _init_collection(self):
        if not self.client.collection_exists(self.collection_name):
            self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(size=self.dimension, distance=Distance.COSINE),
            )
            logger.info(
                f"Created Qdrant collection {self.collection_name} (dimension={self.dimension})"
            )

    def insert(self, label: int, vector: Sequence[float]) -> None:
        self.client.upsert(
            collection_name=self.collection_name,
            points=[PointStruct(id=label, vector=list(vector), payload={"label": label})],
        )
        logger.debug(f"Inserted vector for label {label}")

    def remove(self, label: int) -> bool:
        try:
            self.client.delete(
                collection_name=self.collection_name,
                points_selector=PointIdsList(points=[label]),
            )
            return True
        except Exception as e:
            logger.error(f"Failed to remove label {label}: {e}")
            raise

    def search(self, vector: Sequence[float], top_k: int = 10) -> List[VectorSearchHit]:
        response = self.client.query_points(
            collection_name=self.collection_name,
            query=list(vector),
            limit=top_k,
            with_payload=False,
            with_vectors=False,
        )

        hits = [
            VectorSearchHit(label=int(point.id), score=point.score) for point in response.points
        ]
        logger.debug(f"{len(hits)} hits found")
        return hits

    def clear(self):
        """Drop and recreate the collection (dangerous!)"""
        self.client.delete_collection(self.collection_name)
        self._init_collection()
