from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response envelope."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(AppError):
    status_code = 400


class StateTransitionError(ValidationError):
    """The payment is not in a state that allows the requested move."""


class NotFoundError(AppError):
    status_code = 404


class SignatureError(AppError):
    status_code = 401


class ConflictError(AppError):
    status_code = 409


class GatewayError(AppError):
    status_code = 500

    def __init__(self, message: str, detail: Optional[Any] = None, transient: bool = False):
        super().__init__(message, detail)
        self.transient = transient


class PersistenceError(AppError):
    status_code = 500


class NotificationError(AppError):
    status_code = 500
