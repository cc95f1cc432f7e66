import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from lineage_memory.utils.timestamps import utc_now

MemorySource = Literal["user_input", "agent_inference", "tool_output", "system", "external"]
CausalRelationType = Literal["causes", "enables", "prevents", "correlates", "precedes", "triggers"]
CausalDirection = Literal["forward", "backward", "both"]
CompressionTier = Literal["hot", "warm", "cold"]
ReliabilityCategory = Literal["high", "medium", "low", "unreliable"]

CAUSAL_RELATION_TYPES: tuple[str, ...] = (
    "causes",
    "enables",
    "prevents",
    "correlates",
    "precedes",
    "triggers",
)


class ProvenanceInfo(BaseModel):
    """Derivation record for a memory entry (1:1 with the entry)"""

    parent_ids: List[str] = Field(
        default_factory=list, description="Entries this one was derived from, in order"
    )
    lineage_depth: int = Field(
        default=0, ge=0, description="Derivation hops from the nearest root ancestor"
    )
    confidence: float = Field(
        default=1.0, ge=0.0, le=1.0, description="Confidence in the derivation step"
    )
    relevance: float = Field(
        default=1.0, ge=0.0, le=1.0, description="Relevance of the parents to this entry"
    )
    l_score: Optional[float] = Field(
        default=None, ge=0.0, le=1.0, description="Cached L-Score (None = not computed yet)"
    )

    @property
    def is_root(self) -> bool:
        return not self.parent_ids


class MemoryEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    tags: List[str] = Field(default_factory=list)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    source: MemorySource = "user_input"
    session_id: Optional[str] = None
    agent_id: Optional[str] = None
    context: Optional[Dict] = None
    provenance: ProvenanceInfo = Field(default_factory=ProvenanceInfo)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: List[str]) -> List[str]:
        # Tags behave as a set; keep first-seen order
        return list(dict.fromkeys(tags))


class CausalRelation(BaseModel):
    """A causal hyperedge: many sources jointly relate to many targets"""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: CausalRelationType = "causes"
    source_ids: List[str] = Field(default_factory=list)
    target_ids: List[str] = Field(default_factory=list)
    strength: float = Field(default=0.8, ge=0.0, le=1.0)
    metadata: Optional[Dict] = None
    created_at: datetime = Field(default_factory=utc_now)
    ttl: Optional[int] = Field(
        default=None, ge=0, description="Time-to-live in milliseconds (None = permanent)"
    )
    expires_at: Optional[datetime] = Field(
        default=None, description="When the relation stops being active"
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utc_now())


class VectorMapping(BaseModel):
    """Bridge between a memory entry and its label in the external ANN index"""

    entry_id: str
    label: int = Field(..., ge=0)
    access_count: int = Field(default=0, ge=0)
    last_accessed_at: Optional[datetime] = None
    compression_tier: CompressionTier = Field(
        default="hot", description="Hint for an external eviction policy"
    )


class MemoryQueryFilter(BaseModel):
    """Post-search entry filter; tags match if the entry carries ANY of them"""

    tags: Optional[List[str]] = None
    min_importance: Optional[float] = None
    source: Optional[List[MemorySource]] = None

    def matches(self, entry: MemoryEntry) -> bool:
        if self.tags and not set(self.tags) & set(entry.tags):
            return False
        if self.min_importance is not None and entry.importance < self.min_importance:
            return False
        if self.source and entry.source not in self.source:
            return False
        return True


class QueryResult(BaseModel):
    entry: MemoryEntry
    score: float
    l_score: Optional[float] = None


class StoreStats(BaseModel):
    total_entries: int = 0
    vector_count: int = 0
    causal_relations: int = 0
    avg_l_score: float = 0.0
    compression_tiers: Dict[str, int] = Field(default_factory=dict)
