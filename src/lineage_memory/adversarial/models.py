"""
Data structures for shadow (inverted-vector) search.

- ShadowSearchConfig / ShadowSearchOptions: defaults and per-call overrides
- Contradiction: an entry semantically opposed to the query
- ShadowSearchResult: support, contradictions and the resulting credibility
"""

from dataclasses import dataclass, field
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from lineage_memory.models import MemoryEntry, QueryResult

ContradictionType = Literal[
    "direct_negation",  # Direct opposite claim
    "counterargument",  # Argument against the claim
    "falsification",  # Evidence that disproves the claim
    "alternative",  # Alternative explanation or view
    "exception",  # Exception to a general rule
]


class ShadowSearchConfig(BaseModel):
    threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Minimum refutation strength kept"
    )
    top_k: int = Field(default=10, gt=0, description="Maximum contradictions returned")
    l_score_weight: float = Field(
        default=1.0, ge=0.0, description="Multiplier on L-Score weighted evidence"
    )


class ShadowSearchOptions(BaseModel):
    """Per-call overrides; None falls back to ShadowSearchConfig"""

    threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    top_k: Optional[int] = Field(default=None, gt=0)
    contradiction_type: Optional[ContradictionType] = Field(
        default=None, description="Only return contradictions of this type"
    )
    include_provenance: bool = Field(
        default=False, description="Attach (and weight by) each entry's L-Score"
    )
    tags: Optional[List[str]] = Field(default=None, description="Entry must carry any of these")
    min_importance: Optional[float] = Field(default=None, ge=0.0, le=1.0)


@dataclass
class Contradiction:
    """
    An entry retrieved by the shadow vector.

    Attributes:
        entry: The contradicting memory entry
        refutation_strength: Similarity to the shadow vector (higher = stronger)
        contradiction_type: Band the refutation strength falls into
        l_score: L-Score of the entry (only when provenance was requested)
        shadow_similarity: Raw similarity score from the vector index
    """

    entry: MemoryEntry
    refutation_strength: float
    contradiction_type: ContradictionType
    l_score: Optional[float] = None
    shadow_similarity: float = 0.0


@dataclass
class ShadowSearchResult:
    """
    Support and refutation for one query.

    credibility = support_weight / (support_weight + contradiction_weight),
    or 0.5 when there is no evidence either way.
    """

    query: str
    contradictions: List[Contradiction] = field(default_factory=list)
    support: List[QueryResult] = field(default_factory=list)
    count: int = 0
    credibility: float = 0.5
    support_weight: float = 0.0
    contradiction_weight: float = 0.0
