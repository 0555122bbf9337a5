"""Domain-level exception primitives with stable machine-readable codes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(eq=False)
class DomainError(Exception):
    """Use-case level error with stable code and HTTP mapping."""

    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class _TaxonomyError(DomainError):
    """DomainError whose HTTP status is fixed by its category."""

    status: ClassVar[int] = 500

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(code=code, http_status=self.status, message=message, details=details)


class NotFoundError(_TaxonomyError):
    """Laptop, user or checkout absent (or soft-deleted)."""

    status = 404


class InvalidStateError(_TaxonomyError):
    """Laptop/checkout status precondition violated."""

    status = 400


class ConflictError(_TaxonomyError):
    """One-laptop-per-user rule or duplicate email."""

    status = 409


class ForbiddenError(_TaxonomyError):
    status = 403


class UnauthorizedError(_TaxonomyError):
    status = 401


class InternalError(_TaxonomyError):
    """Unexpected failure; surfaced to clients generically."""

    status = 500
