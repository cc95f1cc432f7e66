"""
Shadow search: contradiction detection with an inverted query vector.

For any embedding d, cos(q, d) == -cos(-q, d), so the nearest neighbours of
the shadow vector -q are the stored entries most opposed to q. Comparing the
weight of those contradictions with the weight of ordinary support gives a
credibility score for the query claim.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from lineage_memory.adversarial.models import (
    Contradiction,
    ContradictionType,
    ShadowSearchConfig,
    ShadowSearchOptions,
    ShadowSearchResult,
)
from lineage_memory.embeddings.protocol import TextEmbedding
from lineage_memory.models import MemoryQueryFilter, QueryResult
from lineage_memory.provenance.store import ProvenanceStore
from lineage_memory.storage.protocols import EntryStore, VectorIndex

logger = logging.getLogger(__name__)

# Extra candidates fetched so tag/importance/type filtering can still fill top_k
CANDIDATE_MULTIPLIER = 3

DIRECT_NEGATION_BAND = 0.8
COUNTERARGUMENT_BAND = 0.65
ALTERNATIVE_BAND = 0.5

CONTESTED_TOP_K = 5


def invert(vector: Sequence[float]) -> List[float]:
    """Shadow vector: elementwise negation."""
    return (-np.asarray(vector, dtype=float)).tolist()


def classify_contradiction(refutation_strength: float) -> ContradictionType:
    if refutation_strength >= DIRECT_NEGATION_BAND:
        return "direct_negation"
    if refutation_strength >= COUNTERARGUMENT_BAND:
        return "counterargument"
    if refutation_strength >= ALTERNATIVE_BAND:
        return "alternative"
    return "exception"


class ShadowSearch:
    """
    Finds stored entries that contradict a query and scores its credibility.

    Example:
        shadow = ShadowSearch(index, embedder, entry_store, provenance)
        result = await shadow.search("revenue increased")
        if result.credibility < 0.5:
            ...
    """

    def __init__(
        self,
        vector_index: VectorIndex,
        embedding: TextEmbedding,
        entry_store: EntryStore,
        provenance: ProvenanceStore,
        config: Optional[ShadowSearchConfig] = None,
    ):
        self.vector_index = vector_index
        self.embedding = embedding
        self.entry_store = entry_store
        self.provenance = provenance
        self.config = config or ShadowSearchConfig()
        logger.info(
            f"ShadowSearch initialized (threshold={self.config.threshold}, "
            f"top_k={self.config.top_k})"
        )

    invert = staticmethod(invert)
    classify_contradiction = staticmethod(classify_contradiction)

    async def find_contradictions(
        self,
        query: str,
        options: Optional[ShadowSearchOptions] = None,
        query_embedding: Optional[Sequence[float]] = None,
    ) -> List[Contradiction]:
        """
        Search with the shadow of the query vector.

        Args:
            query: Claim to look for contradictions of
            options: Per-call overrides
            query_embedding: Already computed query vector (skips the embed call)

        Returns:
            Contradictions sorted by refutation strength, strongest first
        """
        options = options or ShadowSearchOptions()
        threshold = options.threshold if options.threshold is not None else self.config.threshold
        top_k = options.top_k or self.config.top_k
        entry_filter = MemoryQueryFilter(tags=options.tags, min_importance=options.min_importance)

        if query_embedding is None:
            query_embedding = await self.embedding.embed_query(query)
        shadow = invert(query_embedding)
        hits = self.vector_index.search(shadow, top_k * CANDIDATE_MULTIPLIER)

        contradictions: List[Contradiction] = []
        for hit in hits:
            if hit.score < threshold:
                continue

            entry_id = self.entry_store.get_entry_id_by_label(hit.label)
            if entry_id is None:
                logger.warning(f"Vector label {hit.label} has no entry mapping, skipping")
                continue
            entry = self.entry_store.get_entry(entry_id)
            if entry is None or not entry_filter.matches(entry):
                continue

            contradiction_type = classify_contradiction(hit.score)
            if options.contradiction_type and contradiction_type != options.contradiction_type:
                continue

            l_score = self.provenance.resolve_l_score(entry) if options.include_provenance else None
            contradictions.append(
                Contradiction(
                    entry=entry,
                    refutation_strength=hit.score,
                    contradiction_type=contradiction_type,
                    l_score=l_score,
                    shadow_similarity=hit.score,
                )
            )
            if len(contradictions) >= top_k:
                break

        contradictions.sort(key=lambda c: c.refutation_strength, reverse=True)
        logger.debug(f"Shadow search for '{query[:50]}': {len(contradictions)} contradictions")
        return contradictions

    async def find_support(
        self,
        query: str,
        options: Optional[ShadowSearchOptions] = None,
        query_embedding: Optional[Sequence[float]] = None,
    ) -> List[QueryResult]:
        """
        Ordinary nearest-neighbour search for entries agreeing with the query.

        Hits with a non-positive similarity are not support and are dropped.
        """
        options = options or ShadowSearchOptions()
        top_k = options.top_k or self.config.top_k
        entry_filter = MemoryQueryFilter(tags=options.tags, min_importance=options.min_importance)

        if query_embedding is None:
            query_embedding = await self.embedding.embed_query(query)
        hits = self.vector_index.search(query_embedding, top_k * CANDIDATE_MULTIPLIER)

        support: List[QueryResult] = []
        for hit in hits:
            if hit.score <= 0.0:
                continue
            entry_id = self.entry_store.get_entry_id_by_label(hit.label)
            entry = self.entry_store.get_entry(entry_id) if entry_id is not None else None
            if entry is None or not entry_filter.matches(entry):
                continue

            l_score = self.provenance.resolve_l_score(entry) if options.include_provenance else None
            support.append(QueryResult(entry=entry, score=hit.score, l_score=l_score))
            if len(support) >= top_k:
                break
        return support

    def calculate_credibility(
        self, support: Sequence[QueryResult], contradictions: Sequence[Contradiction]
    ) -> Tuple[float, float, float]:
        """
        Weigh support against contradictions.

        Each result weighs score * (L-Score or 1) * l_score_weight.

        Returns:
            (credibility, support_weight, contradiction_weight)
        """
        weight = self.config.l_score_weight
        support_weight = sum(
            result.score * (result.l_score if result.l_score is not None else 1.0) * weight
            for result in support
        )
        contradiction_weight = sum(
            c.refutation_strength * (c.l_score if c.l_score is not None else 1.0) * weight
            for c in contradictions
        )

        total = support_weight + contradiction_weight
        credibility = support_weight / total if total > 0 else 0.5
        return credibility, support_weight, contradiction_weight

    async def search(
        self, query: str, options: Optional[ShadowSearchOptions] = None
    ) -> ShadowSearchResult:
        """Support and contradictions from a single embedding call."""
        query_embedding = await self.embedding.embed_query(query)
        support = await self.find_support(query, options, query_embedding)
        contradictions = await self.find_contradictions(query, options, query_embedding)
        credibility, support_weight, contradiction_weight = self.calculate_credibility(
            support, contradictions
        )

        logger.info(
            f"Credibility of '{query[:50]}': {credibility:.3f} "
            f"(support={support_weight:.3f}, contradiction={contradiction_weight:.3f})"
        )
        return ShadowSearchResult(
            query=query,
            contradictions=contradictions,
            support=support,
            count=len(contradictions),
            credibility=credibility,
            support_weight=support_weight,
            contradiction_weight=contradiction_weight,
        )

    async def is_contested(
        self,
        query: str,
        credibility_threshold: float = 0.5,
        options: Optional[ShadowSearchOptions] = None,
    ) -> bool:
        """True when the weighted contradictions outweigh the support."""
        if options is None:
            options = ShadowSearchOptions(top_k=CONTESTED_TOP_K, include_provenance=True)
        result = await self.search(query, options)
        return result.credibility < credibility_threshold
