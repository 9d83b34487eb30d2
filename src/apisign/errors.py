from __future__ import annotations


class ApiSignError(Exception):
    """Base class for every error raised by apisign."""


class ConfigurationError(ApiSignError, ValueError):
    """Raised when required runtime configuration is missing or invalid."""


class InvalidSecretError(ApiSignError, ValueError):
    """Raised when an API secret or OTP seed cannot be decoded into key bytes."""


class ClockError(ApiSignError, RuntimeError):
    """Raised when the host clock reports a time before the Unix epoch."""


class TransportError(ApiSignError, RuntimeError):
    """Raised when a request fails below HTTP: connect, TLS or timeout."""

    def __init__(self, message: str, *, url: str | None = None, method: str | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.method = method


class SchemaValidationError(ApiSignError, ValueError):
    """Raised when a response body does not match its JSON schema.

    All individual violations are collected in ``errors`` so callers can report
    them together.
    """

    def __init__(self, errors: list[str] | tuple[str, ...], *, source: str | None = None) -> None:
        self.errors = tuple(errors)
        self.source = source
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}{len(self.errors)} schema violation(s): " + "; ".join(self.errors))
