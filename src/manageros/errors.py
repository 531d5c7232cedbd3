"""Domain exceptions raised by the service layer.

Each exception carries the HTTP status the API layer answers with; see
``manageros.api.errors`` for the handlers.
"""

from __future__ import annotations

from typing import Any


class ManagerOSError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AccessDeniedError(ManagerOSError):
    status_code = 403


class NotFoundError(ManagerOSError):
    status_code = 404


class DomainValidationError(ManagerOSError):
    status_code = 400


class TaskReminderValidationError(DomainValidationError):
    pass


class ConflictError(ManagerOSError):
    status_code = 409


class LimitExceededError(ManagerOSError):
    status_code = 403


class IntegrationError(ManagerOSError):
    """Failure talking to an upstream service (Jira, GitHub, Clerk)."""

    status_code = 502

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.upstream_status = status_code
        self.response = response


class JiraApiError(IntegrationError):
    pass


class GitHubApiError(IntegrationError):
    pass
