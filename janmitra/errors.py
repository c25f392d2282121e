"""
Error taxonomy for the civic reporting API.

Each error carries the HTTP status it maps to; the exception handlers in
main.py turn them into a uniform {"error": message} body.
"""

from typing import Optional


class JanMitraError(Exception):
    """Base exception for all application errors."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class InputError(JanMitraError):
    """Client precondition violated (missing image, missing chat message)."""

    status_code = 400


class PersistenceFailure(JanMitraError):
    """The issue store rejected a read or write."""

    status_code = 500


class MediaStorageFailure(JanMitraError):
    """The media store could not write the uploaded image."""

    status_code = 500


class ExternalServiceError(JanMitraError):
    """The model service answered with its own error; passed through as-is."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message, status_code=status_code)


class ExternalServiceUnavailable(JanMitraError):
    """The model service could not be reached."""

    status_code = 500


class RequestCancelled(JanMitraError):
    """The client went away before the reply was ready."""

    # nginx's "client closed request"
    status_code = 499
