from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ForbiddenError(AppError):
    pass


class ConflictError(AppError):
    pass


class ValidationError(AppError):
    pass


class FetchFailedError(AppError):
    """History or notification retrieval failed; the caller may retry."""


class SendFailedError(AppError):
    """Message submission failed; the caller still holds the content."""


class SubscriptionFailedError(AppError):
    """Live channel could not be established; the session runs fetch-only."""


class MarkReadFailedError(AppError):
    """Read flag update failed. Sessions log it and do not retry."""


class SessionClosedError(ConflictError):
    """The session was closed or re-opened while this operation was in flight."""
