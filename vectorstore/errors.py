"""Exception taxonomy for the vector indexing and retrieval layer."""


class VectorStoreError(Exception):
    """Base class for vector-store failures."""


class RemoteStoreError(VectorStoreError):
    """Transient remote failure: network error, service error, timeout or malformed response."""


class RemoteStoreConfigError(RemoteStoreError):
    """Initialisation failure that retrying cannot fix (missing host, missing index)."""


class EmbeddingUnavailableError(VectorStoreError):
    """No vector could be produced for the text and synthetic vectors are disabled."""


class VectorDimensionError(VectorStoreError):
    """Two vectors that must be compared have different lengths."""


class AllTiersFailedError(VectorStoreError):
    """Every storage tier raised for the same operation."""
