from lineage_memory.storage.entries.sqlalchemy import SQLAlchemyEntryStore

__all__ = ["SQLAlchemyEntryStore"]
