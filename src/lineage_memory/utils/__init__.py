"""Utility functions for lineage-memory."""

from lineage_memory.utils.timestamps import (
    expiry_from_ttl,
    from_iso,
    to_iso,
    utc_now,
)

__all__ = [
    "expiry_from_ttl",
    "from_iso",
    "to_iso",
    "utc_now",
]
