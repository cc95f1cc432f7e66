"""
Example: Provenance, causal links and credibility with lineage-memory

Demonstrates:
1. Storing root facts and derived entries (L-Score on write)
2. Tracing lineage back to the roots
3. Linking entries with causal relations and rendering the graph
4. Checking a claim for contradicting memories with shadow search

Runs fully offline: a tiny keyword embedder stands in for a real model.
For real embeddings:
    pip install lineage-memory[openai]
"""

import asyncio
import logging
from typing import List

from sqlalchemy import create_engine

from lineage_memory import LineageMemorySettings, MemoryService, ProvenanceThresholdError
from lineage_memory.storage import InMemoryVectorIndex, SQLAlchemyCausalStore

KEYWORDS = ("increase", "decrease", "cost", "hiring")


class KeywordEmbedding:
    """Counts keyword hits; 'decrease' points away from 'increase'."""

    dimension = len(KEYWORDS)
    model_name = "keyword-demo"

    def _vector(self, text: str) -> List[float]:
        text = text.lower()
        vector = [float(text.count(word)) for word in KEYWORDS]
        vector[0] -= vector[1]
        vector[1] = 0.0
        return vector if any(vector) else [0.0, 0.0, 0.0, 0.01]

    async def embed_document(self, text: str) -> List[float]:
        return self._vector(text)

    async def embed_query(self, text: str) -> List[float]:
        return self._vector(text)

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [self._vector(text) for text in texts]


async def main():
    logging.basicConfig(level=logging.WARNING)

    settings = LineageMemorySettings(_env_file=None, database_url="sqlite:///:memory:")
    engine = create_engine(settings.database_url)
    service = MemoryService(
        settings.create_entry_store(engine),
        SQLAlchemyCausalStore(engine),
        InMemoryVectorIndex(KeywordEmbedding.dimension),
        KeywordEmbedding(),
        settings,
    )
    service.initialize()

    print("\n=== Provenance ===")
    report = await service.store("Quarterly report: revenue increase of 20%", source="external")
    forecast = await service.store(
        "Revenue will increase again next quarter",
        source="agent_inference",
        parent_ids=[report.id],
        confidence=0.8,
        relevance=0.9,
    )
    print(f"Root L-Score:    {report.provenance.l_score:.3f}")
    print(f"Derived L-Score: {forecast.provenance.l_score:.3f}")
    print(f"Reliability:     {service.provenance.get_reliability_category(forecast.id)}")

    try:
        await service.store(
            "Hiring freeze is coming",
            parent_ids=[forecast.id],
            confidence=0.2,
            relevance=0.3,
        )
    except ProvenanceThresholdError as e:
        print(f"Rejected weak derivation: {e}")

    chain = service.provenance.trace_lineage(forecast.id)
    print(f"Lineage of forecast: {len(chain.nodes)} nodes, depth {chain.max_depth}")

    print("\n=== Causal relations ===")
    costs = await service.store("Cost increase from new hiring")
    service.causal.add_relation([costs.id], [forecast.id], type="prevents", strength=0.6)
    service.causal.add_relation([report.id], [forecast.id], type="enables", strength=0.9)
    print(f"Effects of the report: {service.causal.find_effects(report.id)}")
    print(service.causal.to_mermaid())

    print("\n=== Credibility ===")
    await service.store("Revenue decrease expected", source="agent_inference")
    result = await service.check_credibility("Revenue will increase")
    print(f"Supporting: {len(result.support)}  Contradicting: {result.count}")
    print(f"Credibility: {result.credibility:.2f}")
    print(f"Contested: {await service.is_contested('Revenue will increase')}")


if __name__ == "__main__":
    asyncio.run(main())
