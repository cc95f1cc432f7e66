"""
L-Score calculation for derived memories.

The L-Score is a reliability metric in [min_score, 1.0] for an entry derived
from other entries. Root entries (no parents, depth 0) always score 1.0.

    score = geometric_mean(confidences) * mean(relevances) * decay ** depth

The geometric mean lets one weak derivation step dominate the result; the
harmonic mean used when combining several parent scores is pulled down
sharply by any low input.
"""

import logging
import math
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from lineage_memory.models import ReliabilityCategory

logger = logging.getLogger(__name__)

# Floor applied before taking logs / reciprocals
EPSILON = 1e-10

HIGH_RELIABILITY = 0.8
MEDIUM_RELIABILITY = 0.5
LOW_RELIABILITY = 0.2


class LScoreConfig(BaseModel):
    """Configuration for L-Score calculation and enforcement"""

    depth_decay: float = Field(
        default=0.9, gt=0.0, le=1.0, description="Multiplier applied once per lineage hop"
    )
    min_score: float = Field(
        default=0.01, ge=0.0, le=1.0, description="Lower clamp for every computed score"
    )
    threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Derived entries scoring below this are rejected when enforcing",
    )
    enforce_threshold: bool = Field(
        default=True, description="Reject new derived entries below the threshold"
    )


def geometric_mean(values: Sequence[float]) -> float:
    """
    Geometric mean computed in log space.

    Values are floored at EPSILON so a zero confidence drives the mean
    towards zero instead of raising on log(0).
    """
    if not values:
        return 1.0
    log_sum = sum(math.log(max(value, EPSILON)) for value in values)
    return math.exp(log_sum / len(values))


def arithmetic_mean(values: Sequence[float]) -> float:
    if not values:
        return 1.0
    return sum(values) / len(values)


def harmonic_mean(values: Sequence[float]) -> float:
    if not values:
        return 1.0
    return len(values) / sum(1.0 / max(value, EPSILON) for value in values)


class LScoreCalculator:
    """
    Stateless L-Score calculator.

    Example:
        calc = LScoreCalculator(LScoreConfig(depth_decay=0.9))
        calc.calculate([0.8, 1.0], [0.9, 1.0], depth=1)
    """

    def __init__(self, config: Optional[LScoreConfig] = None):
        self.config = config or LScoreConfig()

    def clamp(self, score: float) -> float:
        return max(self.config.min_score, min(1.0, score))

    def calculate(
        self,
        confidences: Sequence[float],
        relevances: Sequence[float],
        depth: int,
        decay: Optional[float] = None,
    ) -> float:
        """
        Calculate the L-Score of a derivation.

        Args:
            confidences: Confidence of each sampled derivation step
            relevances: Relevance of each sampled derivation step
            depth: Lineage depth of the entry
            decay: Per-hop decay (defaults to config.depth_decay)

        Returns:
            Score in [min_score, 1.0]; 1.0 for roots
        """
        if depth == 0 or not confidences:
            return 1.0

        decay = self.config.depth_decay if decay is None else decay
        geo = geometric_mean(confidences)
        avg_relevance = arithmetic_mean(relevances)
        depth_factor = decay**depth
        score = self.clamp(geo * avg_relevance * depth_factor)

        logger.debug(
            f"L-Score: geo={geo:.4f}, relevance={avg_relevance:.4f}, "
            f"depth={depth} (factor={depth_factor:.4f}), score={score:.4f}"
        )
        return score

    def aggregate_from_parents(self, scores: Sequence[float]) -> float:
        """
        Combine the scores of several parents into one.

        No parents aggregates to 1.0 and a single parent passes through
        unchanged; otherwise the harmonic mean is used.
        """
        if not scores:
            return 1.0
        if len(scores) == 1:
            return scores[0]
        return self.clamp(harmonic_mean(scores))

    def calculate_incremental(
        self, parent_score: float, new_confidence: float, new_relevance: float
    ) -> float:
        """One-step update from an already known parent score."""
        return self.clamp(parent_score * new_confidence * new_relevance * self.config.depth_decay)

    def is_reliable(self, score: float, threshold: float = 0.5) -> bool:
        return score >= threshold

    def meets_threshold(self, score: float) -> bool:
        return score >= self.config.threshold

    def get_reliability_category(self, score: float) -> ReliabilityCategory:
        if score >= HIGH_RELIABILITY:
            return "high"
        if score >= MEDIUM_RELIABILITY:
            return "medium"
        if score >= LOW_RELIABILITY:
            return "low"
        return "unreliable"
