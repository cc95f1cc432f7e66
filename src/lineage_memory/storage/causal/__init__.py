from lineage_memory.storage.causal.sqlalchemy import SQLAlchemyCausalStore

__all__ = ["SQLAlchemyCausalStore"]
