"""Domain-level exceptions for relationships, visibility and leaderboards.

Services raise these; ``pizzaboard.main`` converts them to HTTP responses.
Every mutating operation either returns the updated row or raises one of
these, so callers can roll back optimistic local state.
"""

from typing import Optional


class DomainError(Exception):
    """Base class for domain errors."""

    reason: str = "unknown"
    status_code: int = 400

    def __init__(self, reason: Optional[str] = None, message: Optional[str] = None) -> None:
        if reason:
            self.reason = reason
        super().__init__(message or self.reason)

    @property
    def message(self) -> str:
        return str(self)


class InvalidOperation(DomainError):
    """Malformed request, e.g. befriending yourself."""

    reason = "invalid_operation"
    status_code = 400


class AlreadyExists(InvalidOperation):
    """Uniqueness invariant violated (checked locally or reported by the store)."""

    reason = "already_exists"
    status_code = 409


class Unauthorized(DomainError):
    """Actor lacks the rights for the transition."""

    reason = "unauthorized"
    status_code = 403


class InvalidState(DomainError):
    """Transition attempted from a state that does not permit it."""

    reason = "invalid_state"
    status_code = 409


class NotFound(DomainError):
    """Referenced row or profile is absent."""

    reason = "not_found"
    status_code = 404
