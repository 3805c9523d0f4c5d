"""AI orchestration error taxonomy.

Per-provider errors (ProviderError subclasses) are recovered by the fallback
router and recorded; everything else is surfaced to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass


class AIError(Exception):
    """Base exception for AI operations."""
    pass


class AIDisabledError(AIError):
    """Global AI switch is off; no provider is attempted."""

    def __init__(self, message: str = "AI features are disabled globally."):
        super().__init__(message)


class ProviderError(AIError):
    """One provider failed; the router moves on to the next one."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(message)


class CredentialMissingError(ProviderError):
    pass


class ProviderTransportError(ProviderError):
    """Network failure, timeout or non-2xx response from a provider."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        body: str = "",
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(provider, message)


@dataclass(frozen=True)
class ProviderFailure:
    provider: str
    message: str


class AllProvidersFailedError(AIError):
    """Every attempted provider failed (or none was attempted)."""

    def __init__(self, errors: list[ProviderFailure]):
        self.errors = list(errors)
        details = "; ".join(f"{e.provider}: {e.message}" for e in self.errors)
        super().__init__(f"All enabled AI providers failed. Details: {details}")


class MalformedStructuredOutputError(AIError):
    """Provider answered, but the answer is not the JSON the task asked for."""

    def __init__(self, raw: str, message: str = "AI response was not valid JSON"):
        self.raw = raw
        super().__init__(message)


class DocumentExtractionError(Exception):
    """Uploaded document could not be turned into text."""
    pass
