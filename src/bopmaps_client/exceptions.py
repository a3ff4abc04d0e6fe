"""Client exceptions.

Ordinary request failures are reported through ``ResponseEnvelope``; these
exceptions cover refresh bookkeeping, storage failures and misuse.
"""


class BopmapsClientError(Exception):
    """Base exception for client errors."""


class TokenRefreshError(BopmapsClientError):
    """A provider refused or could not complete a token refresh.

    ``transient`` is True when the failure was a network, timeout or server
    error that may succeed later; False when the refresh token itself was
    rejected or the response was unusable.
    """

    def __init__(self, domain: str, detail: str, *, transient: bool = False) -> None:
        self.domain = domain
        self.detail = detail
        self.transient = transient
        super().__init__(f"Token refresh failed for {domain}: {detail}")


class SecretStoreError(BopmapsClientError):
    """The secret store could not be read, decrypted or written."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Secret store error: {detail}")


class UnsupportedOperationError(BopmapsClientError):
    """The requested operation is not available for this identity domain."""

    def __init__(self, domain: str, operation: str) -> None:
        self.domain = domain
        self.operation = operation
        super().__init__(f"{operation} is not supported for domain {domain!r}")
