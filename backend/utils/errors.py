# backend/utils/errors.py
"""Domain errors raised by the services.

Services never know about HTTP. The presentation layer (``main.create_app``)
maps each kind to a status code.
"""


class DomainError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """Referenced record id does not resolve."""


class ConflictError(DomainError):
    """Uniqueness violation (feedback per user+book, ISBN, email)."""


class ForbiddenError(DomainError):
    """Authorization policy denial."""


class BadRequestError(DomainError):
    """Valid target but invalid transition."""
