# fintrack/errors.py
"""Error taxonomy. Each error knows the HTTP status it maps to."""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Missing or invalid field, non-positive amount."""
    status_code = 400


class AuthError(AppError):
    """Missing/invalid/expired token or password mismatch."""
    status_code = 401


class NotFoundError(AppError):
    """Row absent or owned by someone else."""
    status_code = 404


class ConflictError(AppError):
    status_code = 409
