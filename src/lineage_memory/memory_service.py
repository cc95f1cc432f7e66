import logging
from typing import Dict, List, Optional

from lineage_memory.adversarial import ShadowSearch, ShadowSearchOptions, ShadowSearchResult
from lineage_memory.causal import CausalMemory
from lineage_memory.config import LineageMemorySettings
from lineage_memory.embeddings import TextEmbedding
from lineage_memory.exceptions import ProvenanceThresholdError
from lineage_memory.models import (
    MemoryEntry,
    MemoryQueryFilter,
    MemorySource,
    ProvenanceInfo,
    QueryResult,
    StoreStats,
)
from lineage_memory.provenance import ProvenanceStore
from lineage_memory.storage import CausalStore, SQLAlchemyEntryStore, VectorIndex

logger = logging.getLogger(__name__)

# Extra candidates fetched so post-search filters can still fill top_k
QUERY_CANDIDATE_MULTIPLIER = 3


class MemoryService:
    """
    Entry point tying together entries, provenance, causal relations and search.

    Example:
        settings = LineageMemorySettings()
        engine = settings.create_engine()
        service = MemoryService(
            settings.create_entry_store(engine),
            SQLAlchemyCausalStore(engine),
            InMemoryVectorIndex(settings.vector_dimension),
            settings.create_embedding(),
            settings,
        )
        service.initialize()
        root = await service.store("Q3 revenue was $1.2M")
        derived = await service.store(
            "Revenue grew 20%", parent_ids=[root.id], confidence=0.8, relevance=0.9
        )
    """

    def __init__(
        self,
        entry_store: SQLAlchemyEntryStore,
        causal_store: CausalStore,
        vector_index: VectorIndex,
        embedding: TextEmbedding,
        settings: Optional[LineageMemorySettings] = None,
    ):
        self.settings = settings or LineageMemorySettings()
        self.entry_store = entry_store
        self.vector_index = vector_index
        self.embedding = embedding
        self.provenance = ProvenanceStore(entry_store, self.settings.lscore_config())
        self.causal = CausalMemory(causal_store)
        self.shadow = ShadowSearch(
            vector_index,
            embedding,
            entry_store,
            self.provenance,
            self.settings.shadow_search_config(),
        )

    def initialize(self):
        """Create tables if needed and load the causal graph."""
        self.entry_store.create_tables()
        self.causal.store.create_tables()
        self.causal.initialize()
        logger.info("MemoryService initialized")

    async def store(
        self,
        content: str,
        tags: Optional[List[str]] = None,
        importance: float = 0.5,
        source: MemorySource = "user_input",
        parent_ids: Optional[List[str]] = None,
        confidence: float = 1.0,
        relevance: float = 1.0,
        session_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        context: Optional[Dict] = None,
    ) -> MemoryEntry:
        """
        Store a new entry, optionally derived from existing entries.

        The initial L-Score is a one-step update from the parents' aggregate
        score; roots score 1.0. Parent IDs that don't exist are dropped.

        Raises:
            ProvenanceThresholdError: If threshold enforcement is on and the
                derived entry scores below the configured threshold
        """
        parents = []
        for parent_id in dict.fromkeys(parent_ids or []):
            parent = self.entry_store.get_entry(parent_id)
            if parent is None:
                logger.warning(f"Unknown parent {parent_id} ignored for new entry")
                continue
            parents.append(parent)

        calculator = self.provenance.calculator
        if parents:
            depth = 1 + max(parent.provenance.lineage_depth for parent in parents)
            parent_score = calculator.aggregate_from_parents(
                [self.provenance.resolve_l_score(parent) for parent in parents]
            )
            l_score = calculator.calculate_incremental(parent_score, confidence, relevance)
            if calculator.config.enforce_threshold and not calculator.meets_threshold(l_score):
                raise ProvenanceThresholdError(l_score, calculator.config.threshold)
        else:
            depth = 0
            l_score = 1.0

        entry = MemoryEntry(
            content=content,
            tags=tags or [],
            importance=importance,
            source=source,
            session_id=session_id,
            agent_id=agent_id,
            context=context,
            provenance=ProvenanceInfo(
                parent_ids=[parent.id for parent in parents],
                lineage_depth=depth,
                confidence=confidence,
                relevance=relevance,
                l_score=l_score,
            ),
        )

        written = False
        try:
            vector = await self.embedding.embed_document(content)
            self.entry_store.store_entry(entry)
            written = True
            label = self.entry_store.store_vector_mapping(entry.id)
            self.vector_index.insert(label, vector)
        except Exception as e:
            logger.error(f"Failed to store entry: {e}")
            # delete_entry also removes the vector mapping
            if written:
                self.entry_store.delete_entry(entry.id)
            raise

        self.provenance.clear_cache()
        logger.info(
            f"Stored entry {entry.id} (label={label}, depth={depth}, l_score={l_score:.3f})"
        )
        return entry

    async def query(
        self,
        query: str,
        top_k: int = 10,
        min_score: float = 0.0,
        filters: Optional[MemoryQueryFilter] = None,
        include_provenance: bool = False,
    ) -> List[QueryResult]:
        """Nearest-neighbour search over stored entries, best match first."""
        query_vector = await self.embedding.embed_query(query)
        hits = self.vector_index.search(query_vector, top_k * QUERY_CANDIDATE_MULTIPLIER)
        filters = filters or MemoryQueryFilter()

        results: List[QueryResult] = []
        for hit in hits:
            if hit.score < min_score:
                continue
            entry_id = self.entry_store.get_entry_id_by_label(hit.label)
            entry = self.entry_store.get_entry(entry_id) if entry_id is not None else None
            if entry is None:
                logger.debug(f"Skipping unmapped vector label {hit.label}")
                continue
            if not filters.matches(entry):
                continue

            l_score = self.provenance.resolve_l_score(entry) if include_provenance else None
            self.entry_store.record_vector_access(hit.label)
            results.append(QueryResult(entry=entry, score=hit.score, l_score=l_score))
            if len(results) >= top_k:
                break

        logger.info(f"{len(results)} entries found")
        return results

    def get_entry(self, entry_id: str) -> Optional[MemoryEntry]:
        return self.entry_store.get_entry(entry_id)

    def update_entry(
        self,
        entry_id: str,
        tags: Optional[List[str]] = None,
        importance: Optional[float] = None,
        source: Optional[MemorySource] = None,
        context: Optional[Dict] = None,
    ) -> bool:
        return self.entry_store.update_entry(
            entry_id, tags=tags, importance=importance, source=source, context=context
        )

    def delete_entry(self, entry_id: str) -> bool:
        """
        Delete an entry and its vector.

        Former children lose the parent link, so their depth and score are
        re-derived.
        """
        label = self.entry_store.get_vector_label(entry_id)
        child_ids = self.entry_store.get_child_ids(entry_id)
        if not self.entry_store.delete_entry(entry_id):
            return False

        if label is not None:
            self.vector_index.remove(label)
        for child_id in child_ids:
            self.provenance.refresh_lineage_depth(child_id)
            self.provenance.propagate_l_score_update(child_id)
        self.provenance.clear_cache()
        return True

    def link_parent(self, child_id: str, parent_id: str) -> bool:
        """
        Record that an existing entry is also derived from another entry.

        Returns:
            True if a new link was added
        """
        if self.entry_store.get_entry(child_id) is None:
            logger.warning(f"Cannot link unknown entry {child_id}")
            return False
        if self.entry_store.get_entry(parent_id) is None:
            logger.warning(f"Cannot link {child_id} to unknown parent {parent_id}")
            return False
        if not self.entry_store.add_provenance_link(child_id, parent_id):
            return False

        self.provenance.refresh_lineage_depth(child_id)
        self.provenance.propagate_l_score_update(child_id)
        return True

    def update_provenance(
        self,
        entry_id: str,
        confidence: Optional[float] = None,
        relevance: Optional[float] = None,
    ) -> bool:
        """Change a derivation's confidence/relevance and re-score its descendants."""
        if not self.entry_store.update_provenance(entry_id, confidence, relevance):
            return False
        self.provenance.propagate_l_score_update(entry_id)
        return True

    async def check_credibility(
        self, query: str, options: Optional[ShadowSearchOptions] = None
    ) -> ShadowSearchResult:
        return await self.shadow.search(query, options)

    async def is_contested(self, query: str, credibility_threshold: float = 0.5) -> bool:
        return await self.shadow.is_contested(query, credibility_threshold)

    def get_stats(self) -> StoreStats:
        return self.entry_store.get_stats()
