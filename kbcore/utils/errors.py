"""Exception hierarchy for kbcore.

All library exceptions inherit from :class:`KBCoreError`, which carries an
optional ``provider_name`` so callers can tell which backend or collaborator
(e.g. "pgvector", "chromadb", "markdown-parser") raised the failure.

    KBCoreError  (base -- catch-all)
    +-- ValidationError          (bad config, bad filter, bad ids)
    |   +-- UnsupportedFilterError  (filter has no native backend equivalent)
    +-- ParseError               (document could not be parsed)
    +-- ChunkError               (chunking produced an invalid result)
    +-- BackendError             (storage/embedding call failed)
    +-- NotFoundError            (missing provider or document)
    +-- ConfigurationError       (startup / missing config)
    +-- UnsupportedOperationError  (backend lacks an optional capability)

Validation errors are never retried.  Parse and chunk errors are fatal to
one document only.  Backend errors raised from a provider method mean the
whole call failed; per-item failures are reported in result objects instead.
"""


class KBCoreError(Exception):
    """Base exception for all kbcore errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[pgvector] Search failed: connection refused``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


class ValidationError(KBCoreError):
    """Raised for invalid caller input: chunking config, filters, ids, search params."""

    def __init__(
        self,
        message: str = "Validation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedFilterError(ValidationError):
    """Raised when a backend cannot express a filter operator or value natively."""

    def __init__(
        self,
        message: str = "Filter is not supported by this backend",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ParseError(KBCoreError):
    """Raised when a document parser cannot turn raw input into text."""

    def __init__(
        self,
        message: str = "Document parsing failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ChunkError(KBCoreError):
    """Raised when a chunking strategy produces an invalid chunk."""

    def __init__(
        self,
        message: str = "Chunking failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class BackendError(KBCoreError):
    """Raised when a storage or embedding backend call fails as a whole."""

    def __init__(
        self,
        message: str = "Backend operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(KBCoreError):
    """Raised when a provider registration, document or knowledge base is missing."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(KBCoreError):
    """Raised at startup when required configuration is missing or inconsistent."""

    def __init__(
        self,
        message: str = "Configuration error",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedOperationError(KBCoreError):
    """Raised when a backend does not implement an optional capability."""

    def __init__(
        self,
        message: str = "Operation is not supported by this backend",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
