"""
Failure taxonomy for the extraction pipeline.

Redirect loops/truncation and degraded fields are not errors: they are
recorded on RedirectTrace and in per-field provenance and never abort a request.
"""

from typing import Any


class ScraperError(Exception):
    """Base for failures that abort a request with a structured payload."""

    status_code = 500
    default_suggestion = "Tente novamente ou use um link diferente"

    def __init__(self, message: str, suggestion: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion or self.default_suggestion
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": True, "message": self.message, "suggestion": self.suggestion}
        payload.update(self.details)
        return payload


class InvalidInput(ScraperError):
    """Missing or empty URL. Rejected before any network I/O."""

    status_code = 400
    default_suggestion = "Cole o link do produto"


class UnsupportedSource(ScraperError):
    """URL does not belong to the retailer the caller asked for."""

    status_code = 400


class NormalizationFailure(ScraperError):
    status_code = 400
    default_suggestion = "Verifique o link e tente novamente"


class NetworkFailure(ScraperError):
    """Timeout, connection error or non-2xx terminal status."""

    status_code = 500

    def __init__(self, message: str, suggestion: str | None = None, details: dict[str, Any] | None = None,
                 timeout: bool = False):
        super().__init__(message, suggestion, details)
        self.timeout = timeout
