"""Custom exceptions for the intake service."""

from typing import Any, Dict, Optional

from intake.app.core.utils import format_timestamp


class IntakeException(Exception):
    """Base class for intake exceptions with HTTP status code.

    All custom exceptions inherit from this class and define their specific
    status_code and error_code for consistent HTTP response handling.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str = "Intake error"):
        self.message = message
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        """Convert to API response body."""
        return {
            "success": False,
            "error": self.error_code,
            "message": self.message,
        }


class InvalidQuestionError(IntakeException):
    """Raised when a request body fails validation.

    Maps to HTTP 400 Bad Request. ``fields`` maps each offending field to
    the reason it was rejected.
    """
    status_code = 400
    error_code = "invalid_input"

    def __init__(
        self,
        fields: Dict[str, str],
        message: str = "Datos de solicitud inválidos",
    ):
        self.fields = fields
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["fields"] = self.fields
        return body


class RateLimitExceededError(IntakeException):
    """Raised when a client exhausts its request window.

    Maps to HTTP 429 Too Many Requests. Carries the limiter metadata so the
    handler can emit the rate limit headers on the rejection too.
    """
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        limit: int,
        reset_at: float,
        retry_after: int,
        detail: Optional[str] = None,
    ):
        self.limit = limit
        self.remaining = 0
        self.reset_at = reset_at
        self.retry_after = retry_after
        message = detail or (
            f"Demasiadas solicitudes. Por favor espera {retry_after} segundos."
        )
        super().__init__(message)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": format_timestamp(self.reset_at),
            "Retry-After": str(self.retry_after),
        }

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["retry_after"] = self.retry_after
        return body


class ClassificationError(IntakeException):
    """Raised when the AI classifier cannot produce a usable classification.

    Covers unconfigured credentials, transport failures, timeouts and
    malformed replies. Fatal to the request, never retried. Maps to HTTP 503.
    """
    status_code = 503
    error_code = "classification_unavailable"

    def __init__(self, detail: str = "No se pudo procesar la pregunta con IA"):
        self.detail = detail
        super().__init__(detail)
