# quotehub/errors.py
"""Domain errors raised by the quote and customer services.

Every error carries the HTTP status it maps to, so the app factory can
turn any of them into the standard JSON envelope without a lookup table.
"""

from typing import Any, Dict, Optional


class QuoteHubError(Exception):
    """Base class for all typed failures of the service layer."""

    status_code = 500

    def __init__(self, message: str, error_code: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        body = {'success': False, 'message': self.message, 'error': self.error_code}
        if self.context:
            body['details'] = self.context
        return body


class ValidationError(QuoteHubError):
    """Missing or invalid input."""
    status_code = 400


class ForbiddenError(QuoteHubError):
    """Outside the caller's scope, or the quote is no longer editable."""
    status_code = 403


class NotFoundError(QuoteHubError):
    status_code = 404


class ConflictError(QuoteHubError):
    """Referential guard or uniqueness collision."""
    status_code = 409


class PersistenceError(QuoteHubError):
    """A write transaction failed and was rolled back."""
    status_code = 500


class InternalError(QuoteHubError):
    status_code = 500

    def __init__(self, message: str = 'Internal server error'):
        super().__init__(message)
