"""Exceptions raised across the ingest pipeline."""


class IngestError(Exception):
    pass


class ProviderHardError(IngestError):
    """Quota exhausted or credentials rejected; aborts the whole batch."""

    QUOTA = "quota"
    AUTH = "auth"

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.result = None  # BatchResult of the aborted run, set by the orchestrator


class ExtractionError(IngestError):
    """The extraction call produced no usable response."""
