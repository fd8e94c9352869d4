"""
Domain error taxonomy.

Services raise these; the API layer maps them to HTTP status codes
(see config/urls.py). None of them are logged as system faults except
PersistenceError.
"""
from typing import Dict, List, Optional


class DomainError(Exception):
    """Base class for all business-level failures."""
    code = "error"
    status_code = 400

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "code": self.code,
            "errors": self.errors,
        }


class ValidationError(DomainError):
    """Malformed or out-of-range input. Carries field-level detail."""
    code = "validation_error"
    status_code = 422

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors={field: [message]})


class ConflictError(DomainError):
    """Valid input that would violate a business invariant."""
    code = "conflict"
    status_code = 400


class NotFoundError(DomainError):
    """Referenced entity does not exist (or is soft-deleted)."""
    code = "not_found"
    status_code = 404


class AuthorizationError(DomainError):
    """Actor lacks the permission required for the operation."""
    code = "forbidden"
    status_code = 403


class PersistenceError(DomainError):
    """Underlying store failure. Nothing was committed."""
    code = "persistence_error"
    status_code = 500
