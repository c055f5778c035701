"""Domain exceptions raised by the service layer.

``app.main`` maps these onto HTTP responses, so services never import
FastAPI.
"""


class ServiceError(Exception):
    """Base exception for service errors."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailedError(ServiceError):
    """Request is well-formed but breaks a business rule."""

    status_code = 400


class PermissionDeniedError(ServiceError):
    """Caller is authenticated but not allowed to do this."""

    status_code = 403


class NotFoundError(ServiceError):
    """Referenced record does not exist or is not visible to the caller."""

    status_code = 404
