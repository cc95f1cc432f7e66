"""Exceptions raised by lineage-memory."""


class LineageMemoryError(Exception):
    """Base class for all lineage-memory errors."""


class CorruptRecordError(LineageMemoryError, ValueError):
    """A persisted structured column could not be decoded."""

    def __init__(self, table: str, record_id: str, column: str, reason: str):
        self.table = table
        self.record_id = record_id
        self.column = column
        super().__init__(f"Corrupt {column} in {table} row {record_id}: {reason}")


class ProvenanceThresholdError(LineageMemoryError):
    """A derived entry's L-Score falls below the configured threshold."""

    def __init__(self, l_score: float, threshold: float):
        self.l_score = l_score
        self.threshold = threshold
        super().__init__(
            f"L-Score {l_score:.4f} is below the reliability threshold {threshold:.4f}"
        )
