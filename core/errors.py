"""
Error taxonomy shared by the proxy, the question endpoint and the observation loader.

Every error knows its HTTP status and how to render itself as a JSON body, so
request handlers can turn any failure into a structured response.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ExplorerError(Exception):
    """Base class for all locally generated failures."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.detail:
            payload["detail"] = self.detail
        return payload


class ValidationError(ExplorerError):
    status_code = 400
    default_message = "Invalid request"


class InvalidPath(ValidationError):
    default_message = "Missing or invalid path"


class MethodNotAllowed(ExplorerError):
    status_code = 405
    default_message = "Method not allowed"


class RateLimited(ExplorerError):
    status_code = 429
    default_message = "Rate limit: 20/min. Please retry shortly."


class UpstreamTransportError(ExplorerError):
    status_code = 502
    default_message = "Proxy error"


class UpstreamInvalidJson(ExplorerError):
    status_code = 502
    default_message = "Upstream returned invalid JSON"


class ObservationFetchFailed(ExplorerError):
    """Raised inside the loader once every retry attempt failed. Never escapes `load`."""
    status_code = 502
    default_message = "Upstream error or invalid JSON. Pick another station (KSFO/KLAX/KJFK) and try again."


class QuestionDeliveryFailed(ExplorerError):
    status_code = 500
    default_message = "Failed to send question"
