from __future__ import annotations


class ProofWallError(Exception):
    """
    Base for errors that cross the engine/API boundary.
    `status_code` and `public_message` are what the HTTP layer is allowed to expose.
    """

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(ProofWallError):
    status_code = 400
    public_message = "Invalid request"


class NotFoundError(ProofWallError):
    status_code = 404
    public_message = "Not found"


class ConflictError(ProofWallError):
    status_code = 409
    public_message = "Conflict"


class AuthorizationError(ProofWallError):
    status_code = 401
    public_message = "Unauthorized"


class StorageError(ProofWallError):
    # Message is for logs only; clients always get public_message.
    status_code = 500
    public_message = "Internal server error"
