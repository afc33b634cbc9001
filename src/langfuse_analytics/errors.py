"""Exception hierarchy for the Langfuse analytics MCP server.

Every error carries a ``message`` that is safe to show to the calling
assistant.  Server-side details (URLs, response bodies, tracebacks) are
logged, never attached to the exception text.
"""

from __future__ import annotations

from typing import Optional


class LangfuseMcpError(Exception):
    """Base class for all errors raised by this package."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# -- startup (fatal) --------------------------------------------------------


class ConfigurationError(LangfuseMcpError):
    """Missing or invalid startup configuration."""


class InsecureTransportError(ConfigurationError):
    """The configured base URL does not use HTTPS."""


# -- per-call (converted to error envelopes) --------------------------------


class InvalidArguments(LangfuseMcpError):
    """Call arguments failed schema validation."""

    def __init__(self, operation: str, field: str, reason: str):
        super().__init__(f"Invalid arguments for '{operation}': {field}: {reason}")
        self.operation = operation
        self.field = field


class UnknownOperation(LangfuseMcpError):
    """The call names an operation that does not exist or is not visible."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ModeViolation(LangfuseMcpError):
    """A mutating operation was requested outside read-write mode, or by a
    name other than its visible (prefixed) form."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Mode violation for '{name}': {reason}")
        self.name = name


class ConfirmationRequired(LangfuseMcpError):
    """A destructive operation was called without ``confirm: true``."""

    def __init__(self, name: str):
        super().__init__(
            f"'{name}' is destructive and requires explicit confirmation. "
            "Call it again with \"confirm\": true to proceed."
        )
        self.name = name


class TransportFailure(LangfuseMcpError):
    """A backend call failed (non-2xx status, network error or timeout).

    Only the operation label and the HTTP status (when there is one) are
    carried; the request URL and response body stay in the server log.
    """

    def __init__(self, operation: str, status_code: Optional[int] = None, reason: str = ""):
        if status_code is not None:
            text = f"Failed to {operation.lower()}: API returned status {status_code}"
        else:
            text = f"Failed to {operation.lower()}: {reason or 'request failed'}"
        super().__init__(text)
        self.operation = operation
        self.status_code = status_code


class PartialAggregationFailure(LangfuseMcpError):
    """One optional breakdown of a multi-source aggregate could not be built.

    Never escapes the aggregator: the breakdown is reported empty and the
    rest of the result is returned normally.
    """

    def __init__(self, breakdown: str, cause: BaseException):
        reason = cause.message if isinstance(cause, LangfuseMcpError) else type(cause).__name__
        super().__init__(f"{breakdown} breakdown unavailable: {reason}")
        self.breakdown = breakdown
        self.cause = cause
