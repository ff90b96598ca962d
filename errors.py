"""
Error taxonomy shared by the services and the API layer.

Services raise these; `main` renders them as `{"message": ...}` with the
attached status code.
"""


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(ApiError):
    status_code = 401
    default_message = "Authentication required"


class InvalidTokenError(AuthenticationError):
    status_code = 403
    default_message = "Invalid or expired token"


class AuthorizationError(ApiError):
    status_code = 403
    default_message = "Access denied"


class ConflictError(ApiError):
    # Register's contract reports duplicates as 400
    status_code = 400
    default_message = "Resource already exists"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Not found"


class InternalError(ApiError):
    status_code = 500
