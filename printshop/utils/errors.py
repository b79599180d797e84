"""
Application error types, each carrying the HTTP status it maps to
"""


class AppError(Exception):
    status_code = 400
    default_message = "Bad request"

    def __init__(self, message: str = None, status_code: int = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource already exists"


class StorageError(AppError):
    status_code = 502
    default_message = "Object storage request failed"


class PaymentGatewayError(AppError):
    status_code = 502
    default_message = "Payment gateway request failed"
