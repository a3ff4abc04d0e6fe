"""HTTP layer: outcome envelope, single-attempt transport and retry policy."""

from bopmaps_client.http.envelope import ErrorKind, ResponseEnvelope, classify_status
from bopmaps_client.http.retry import RetryPolicy, RetryState
from bopmaps_client.http.transport import RetryingTransport

__all__ = [
    "ErrorKind",
    "ResponseEnvelope",
    "RetryPolicy",
    "RetryState",
    "RetryingTransport",
    "classify_status",
]
