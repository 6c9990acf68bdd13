"""
Domain errors raised by the authenticator and the expense repository.

Each carries the HTTP status it maps to; `main.py` registers one handler
that turns any of them into a `{"error": message}` response.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class InvalidCredentialsError(AppError):
    status_code = 401
    default_message = "Invalid credentials"


class UnauthenticatedError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Expense not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Username already exists"


class InternalError(AppError):
    status_code = 500
