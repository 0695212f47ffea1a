"""
Error taxonomy for webhook processing.

Only AuthenticationFailure (401) and MalformedPayload (400) ever reach
Zoom. Downstream failures happen after the response is sent and are
logged where they occur.
"""


class WebhookError(Exception):
    """Base exception for webhook processing errors."""

    def __init__(self, message: str, recoverable: bool = False):
        super().__init__(message)
        self.recoverable = recoverable


class AuthenticationFailure(WebhookError):
    """Missing headers, missing secret or signature mismatch."""


class MalformedPayload(WebhookError):
    """Body is not parseable or lacks fields required by its event kind."""


class DownstreamForwardFailure(WebhookError):
    """Forward sink unreachable or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, recoverable=True)
        self.status_code = status_code


class DownstreamStoreFailure(WebhookError):
    """A durable store read or write failed."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message, recoverable=True)
        self.operation = operation
