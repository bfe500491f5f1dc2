"""Error taxonomy shared by services and the HTTP layer."""

from typing import Any, Dict, List, Optional

from fastapi import status


class DidattikaError(Exception):
    """Base application error carrying the HTTP status it maps to."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "application_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.message = message
        self.details = details or {}


class ValidationError(DidattikaError):
    """Missing or malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"

    def __init__(self, message: str, *, reasons: Optional[List[str]] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.reasons = reasons or [message]


class NotFoundError(DidattikaError):
    """Unknown id, or a record the caller does not own."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class AIGenerationError(DidattikaError):
    """Response synthesis or content analysis failed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "ai_generation_error"


class UnexpectedError(DidattikaError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "unexpected_error"
