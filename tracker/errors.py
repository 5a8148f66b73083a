"""
Error taxonomy shared by the storage clients and the HTTP layer.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for every error raised by the tracker core."""


class StorageError(TrackerError):
    """The storage backend failed for a reason not classified below."""


class ConstraintViolation(StorageError):
    """A write clashed with a unique key (e.g. a second user with the same email)."""


class NotFound(TrackerError):
    """A row looked up by key does not exist."""


class UserNotFound(NotFound):
    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class ProjectNotFound(NotFound):
    def __init__(self, message: str = "Project not found"):
        super().__init__(message)


class InvalidCredentials(TrackerError):
    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class MembershipWriteError(StorageError):
    """Both lookups succeeded but persisting the new member list failed."""
