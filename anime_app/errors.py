"""
Error taxonomy shared by the services and the HTTP layer.

Client-correctable errors (``expose = True``) carry a message that is shown
to the caller as-is. Upstream and storage failures keep their detail for the
logs and answer with a fixed message instead.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500
    expose = False
    public_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)

    @property
    def message(self) -> str:
        if self.expose:
            return str(self)
        return self.public_message


class InvalidInput(AppError):
    status_code = 400
    expose = True
    public_message = "Invalid input"


class NotFound(AppError):
    status_code = 404
    expose = True
    public_message = "Not found"


class Conflict(AppError):
    status_code = 409
    expose = True
    public_message = "Conflict"


class Unauthorized(AppError):
    status_code = 401
    expose = True
    public_message = "Invalid credentials"


class UpstreamUnavailable(AppError):
    status_code = 502
    public_message = "Metadata provider unavailable"


class Internal(AppError):
    status_code = 500
    public_message = "Internal error"
