"""Exceptions raised by the Leiga client."""


class LeigaError(Exception):
    """Base class for all Leiga client errors."""


class ConfigurationError(LeigaError):
    """Client identity or secret missing at construction."""


class ValidationError(LeigaError):
    """Input rejected before any network call (e.g. malformed issue reference)."""


class TransportError(LeigaError):
    """Non-2xx HTTP status from the Leiga API."""

    def __init__(self, status_code: int, reason: str, body: str) -> None:
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(f"HTTP error {status_code}: {reason} - {body}")


class DomainError(LeigaError):
    """2xx response whose envelope code is not "0"."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"Leiga API error: {message}")


class PersistenceError(LeigaError):
    """Token file could not be written."""
