"""
Domain exceptions raised by the service layer.

Services never raise ``HTTPException``; ``cms.main`` maps each class below
to an HTTP status code via ``status_code``.
"""


class CMSError(Exception):
    """Base class for every error the service layer raises on purpose."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(CMSError):
    """Raised when an entity looked up by id does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with ID {entity_id} not found")


class ConflictError(CMSError):
    """Raised when a unique key (user email) is already taken."""

    status_code = 409


class ForbiddenError(CMSError):
    """Raised when the caller is neither the owner nor an admin."""

    status_code = 403


class InvalidCredentialsError(CMSError):
    """Raised by login for an unknown email or a wrong password."""

    status_code = 401

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class InvalidTokenError(CMSError):
    """Raised when a JWT is expired, mis-signed, malformed or orphaned."""

    status_code = 401

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)
