"""Uniform outcome type returned by every client operation."""

import enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, model_validator

SUCCESS_RANGE = range(200, 300)


class ErrorKind(enum.StrEnum):
    """Classified failure of a request."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    PARSE = "parse"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"


# Failures that may succeed if the same request is simply sent again.
TRANSIENT_ERROR_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.TIMEOUT})


def classify_status(status_code: int, success_range: range = SUCCESS_RANGE) -> ErrorKind | None:
    """Map an HTTP status to an error kind, or None when it counts as success."""
    if status_code in success_range:
        return None
    if status_code == 401:
        return ErrorKind.UNAUTHORIZED
    if 400 <= status_code < 500:
        return ErrorKind.CLIENT_ERROR
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNKNOWN


class ResponseEnvelope(BaseModel):
    """Normalized result of one logical request.

    ``success`` is True exactly when ``error_kind`` is absent; the transport
    only builds successful envelopes for statuses inside its success range.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    status_code: int | None = None
    data: Any = None
    error_kind: ErrorKind | None = None
    message: str | None = None

    @model_validator(mode="after")
    def _check_outcome(self) -> Self:
        if self.success and self.error_kind is not None:
            raise ValueError("a successful envelope cannot carry an error_kind")
        if not self.success and self.error_kind is None:
            raise ValueError("a failed envelope must carry an error_kind")
        return self

    @classmethod
    def ok(cls, status_code: int, data: Any = None) -> "ResponseEnvelope":
        return cls(success=True, status_code=status_code, data=data)

    @classmethod
    def failure(
        cls,
        error_kind: ErrorKind,
        message: str | None = None,
        *,
        status_code: int | None = None,
        data: Any = None,
    ) -> "ResponseEnvelope":
        return cls(success=False, status_code=status_code, data=data, error_kind=error_kind, message=message)

    @property
    def is_transient(self) -> bool:
        """True for network/timeout failures, the only kinds worth retrying."""
        return self.error_kind in TRANSIENT_ERROR_KINDS

    @property
    def field_errors(self) -> dict[str, Any]:
        """Per-field validation errors from a response body shaped ``{"errors": {...}}``."""
        if isinstance(self.data, dict) and isinstance(self.data.get("errors"), dict):
            return dict(self.data["errors"])
        return {}

    @property
    def user_message(self) -> str:
        """Text a UI can show for this outcome.

        Only a client error with a structured (JSON object) body surfaces the
        server's own message, e.g. a validation summary; every other failure
        maps to fixed guidance so raw error pages and token details never
        reach the user.
        """
        if self.success:
            return "OK"
        if self.is_transient:
            return "Network error. Please check your connection and try again."
        if self.error_kind is ErrorKind.UNAUTHORIZED:
            return "Your session has expired. Please log in again."
        if self.error_kind is ErrorKind.SERVER_ERROR:
            return "An unexpected server error occurred. Please try again later."
        if self.error_kind is ErrorKind.CLIENT_ERROR:
            if self.message and isinstance(self.data, dict):
                return self.message
            if self.status_code == 403:
                return "You don't have permission to access this resource."
            if self.status_code == 404:
                return "The requested resource could not be found."
            if self.status_code == 422:
                return "The data you submitted was invalid."
        return "An unexpected error occurred. Please try again."
