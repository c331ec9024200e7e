class CapsuleError(Exception):
    """Base error. `message` is safe to show to the caller."""

    status_code = 500
    default_message = "Unexpected error."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CapsuleError):
    status_code = 400
    default_message = "Invalid request."


class AuthError(CapsuleError):
    status_code = 403
    default_message = "Forbidden. You do not have access to this capsule."


class AuthenticationError(AuthError):
    status_code = 401
    default_message = "Invalid or expired token."


class NotFoundError(CapsuleError):
    status_code = 404
    default_message = "Capsule not found."


class ConflictError(CapsuleError):
    status_code = 409
    default_message = "Resource already exists."


class StorageError(CapsuleError):
    status_code = 500
    default_message = "Storage is temporarily unavailable."
