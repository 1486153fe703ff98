"""
Domain exceptions.

Actions raise these; the server_action boundary turns them into
ActionResult failures carrying the exception message.
"""


class MoneyManagerError(Exception):
    """Base exception for all domain errors."""
    pass


class UnauthorizedError(MoneyManagerError):
    """No authenticated session."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class NotFoundError(MoneyManagerError):
    """Entity missing, or owned by another user."""
    pass


class ValidationError(MoneyManagerError):
    """Input rejected by a business rule."""
    pass


class InsufficientBalanceError(ValidationError):
    """Source account cannot cover the amount."""

    def __init__(self, message: str = "Insufficient balance in the selected account"):
        super().__init__(message)


class DuplicateError(MoneyManagerError):
    """Attempted to insert a duplicate entity."""
    pass


def not_found(entity: str) -> NotFoundError:
    return NotFoundError(f"{entity} not found or unauthorized")
