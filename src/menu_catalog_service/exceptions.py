"""Error taxonomy for catalog operations.

Every failure a caller can observe is one of these exceptions. The HTTP
layer maps ``status_code`` and ``message`` straight into the response body,
so messages must never carry raw storage error text.
"""


class CatalogError(Exception):
    """Base class for all catalog service errors."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable message, defaults to the class default
        """
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedError(CatalogError):
    """No session, or the session could not be validated."""

    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(CatalogError):
    """A link of the ownership chain is broken or the entity does not exist.

    Raised identically whether the entity is missing or owned by someone else,
    so callers cannot probe for other tenants' identifiers.
    """

    status_code = 404
    default_message = "Not found"


class InvalidInputError(CatalogError):
    """Field validation failed."""

    status_code = 400
    default_message = "Invalid input"

    def __init__(self, message: str | None = None, field: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Field-specific message shown to the caller
            field: Name of the offending field, if known
        """
        super().__init__(message)
        self.field = field


class ConflictError(CatalogError):
    """Uniqueness violation (menu slug, one restaurant per owner, owner email)."""

    status_code = 409
    default_message = "Conflict"


class InternalError(CatalogError):
    """Storage or unexpected failure."""

    status_code = 500
    default_message = "Internal server error"
