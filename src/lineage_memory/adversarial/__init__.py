"""Adversarial retrieval: contradiction detection and credibility scoring."""

from lineage_memory.adversarial.models import (
    Contradiction,
    ContradictionType,
    ShadowSearchConfig,
    ShadowSearchOptions,
    ShadowSearchResult,
)
from lineage_memory.adversarial.shadow_search import (
    ShadowSearch,
    classify_contradiction,
    invert,
)

__all__ = [
    "Contradiction",
    "ContradictionType",
    "ShadowSearch",
    "ShadowSearchConfig",
    "ShadowSearchOptions",
    "ShadowSearchResult",
    "classify_contradiction",
    "invert",
]
