"""Domain-specific exceptions.

These exceptions represent business rule violations and domain errors.
They should be caught and handled by the application layer.
"""


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize domain exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SearchValidationError(DomainException):
    """Raised when search filter input cannot be turned into a query."""

    pass


class EmbeddingUnavailableError(DomainException):
    """Raised when a query embedding cannot be produced."""

    pass
