"""
bookswap.services.exceptions — Service Error Taxonomy
======================================================

Services raise these; the API layer maps each class to an HTTP status
(see ``bookswap.api.main``).  Nothing in the service layer swallows them.
"""

from __future__ import annotations


class BookSwapError(Exception):
    """Base exception for all service errors."""


class NotFound(BookSwapError):
    """A book, swap request or user does not exist (or is not available)."""


class Forbidden(BookSwapError):
    """The acting user is not allowed to perform this operation."""


class NotEntitled(Forbidden):
    """The user's subscription doesn't cover a paywalled action."""


class InvalidOperation(BookSwapError):
    """The target is in a state that doesn't permit the operation,
    or a user targeted their own book."""


class ValidationError(BookSwapError):
    """Malformed input (email, postcode, enum values, ...)."""


class ConflictError(BookSwapError):
    """A uniqueness rule was violated (e.g. email already registered)."""


class BillingUnavailable(BookSwapError):
    """The payment provider is not configured or could not be reached."""
