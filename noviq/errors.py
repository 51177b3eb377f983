from typing import Optional


class NoviqError(Exception):
    """Base class for every failure raised by the idea workflow."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UpstreamError(NoviqError):
    """The LLM provider (or the Noviq API) answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(NoviqError):
    """A reply was not valid JSON, or did not match the stage schema."""


class TransportError(NoviqError):
    """Network failure or timeout while talking to a remote service."""


class StorageUnavailableError(NoviqError):
    """The document database could not be reached."""


class ValidationError(NoviqError):
    """A workflow invariant was violated by the caller."""


class ConfigurationError(NoviqError):
    """A required setting (API key, connection string) is missing."""


class DuplicateUserError(NoviqError):
    """Registration attempted for an email that already has an account."""
