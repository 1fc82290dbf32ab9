"""
JourneyRAG Errors
=================

Exception taxonomy shared by storage, retrieval and services.

Ingestion errors (InvalidEmbeddingDimension, DanglingReference) are fatal to
the call and never leave a partial write. RetrievalTimeout aborts only the
current request. PermissionDenied is used as a per-result filter.
"""

from typing import Any, Optional


class JourneyRAGError(RuntimeError):
    """Base class for all JourneyRAG errors."""


class InvalidEmbeddingDimension(JourneyRAGError):
    """Raised when a vector length differs from the deployment dimension."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"embedding dimension must be {expected}, got {actual}")


class DanglingReference(JourneyRAGError):
    """Raised when an edge references chunk ids that do not exist."""

    def __init__(self, missing_ids: list):
        self.missing_ids = sorted(missing_ids)
        super().__init__(f"edge references unknown chunk ids: {self.missing_ids}")


class EmptyQueryEmbedding(JourneyRAGError):
    """Raised when the query embedding is absent or cannot be normalised."""


class RetrievalTimeout(JourneyRAGError):
    """Raised when a store call exceeds the caller supplied timeout."""

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation} exceeded timeout of {timeout_seconds:.3f}s")


class NotFound(JourneyRAGError):
    """Raised for unknown chunk or edge ids."""

    def __init__(self, kind: str, identifier: Any):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier!r} not found")


class PermissionDenied(JourneyRAGError):
    """Raised by permission evaluators; treated as a filter, not a failure."""

    def __init__(
        self,
        detail: str = "permission denied",
        *,
        requesting_user_id: Optional[int] = None,
        node_id: Optional[str] = None,
    ):
        self.requesting_user_id = requesting_user_id
        self.node_id = node_id
        super().__init__(detail)
