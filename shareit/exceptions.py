"""
Domain errors raised by the ShareIt services.

Each error carries the HTTP status it is rendered with; app.py turns it
into a response.
"""

from fastapi import status


class ShareItError(Exception):
    """Base class for all errors the services report to a caller."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ShareItError):
    """Referenced entity is absent or not visible to the caller."""

    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(ShareItError):
    status_code = status.HTTP_403_FORBIDDEN


class InvalidStateError(ShareItError):
    """The entity is not in a state that allows the requested operation."""

    status_code = status.HTTP_400_BAD_REQUEST


class BadRequestError(ShareItError):
    status_code = status.HTTP_400_BAD_REQUEST


class CommentNotAllowedError(BadRequestError):
    """The author has no finished, approved booking of the item."""


class DuplicateFieldError(ShareItError):
    status_code = status.HTTP_409_CONFLICT
