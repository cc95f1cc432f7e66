"""
Models for vector index results.
"""

from pydantic import BaseModel


class VectorSearchHit(BaseModel):
    """
    A single nearest-neighbour hit.

    The label is the stable integer assigned by the entry store's vector
    mappings; the score is the cosine similarity to the query vector
    (1.0 = identical direction, -1.0 = opposite).
    """

    label: int
    score: float
