"""Error taxonomy for the authorization engine and its administrative registries."""

from __future__ import annotations


class AccessError(Exception):
    """Base class for every error raised by accessgate.security."""


# ---- Gate outcomes -------------------------------------------------------------------


class UserContextNotFound(AccessError):
    """The caller's user id did not resolve to an active user."""

    def __init__(self, user_id: int | None) -> None:
        super().__init__(f"User context not found for user_id={user_id}")
        self.user_id = user_id


class PermissionDenied(AccessError):
    def __init__(self, resource_type: str, action: str, record_id: int | None = None) -> None:
        if record_id is None:
            message = f"Access denied. Required permission: {resource_type}:{action}"
        else:
            message = f"Access denied to {resource_type} record {record_id}"
        super().__init__(message)
        self.resource_type = resource_type
        self.action = action
        self.record_id = record_id


class InsufficientPrivilege(AccessError):
    def __init__(self, required: int, actual: int) -> None:
        super().__init__(f"Insufficient privileges. Required level: {required}, User level: {actual}")
        self.required = required
        self.actual = actual


# ---- Administrative mutations --------------------------------------------------------


class LevelNumberConflict(AccessError):
    def __init__(self, level_number: int) -> None:
        super().__init__(f"Privilege level number {level_number} already exists")
        self.level_number = level_number


class LevelInUse(AccessError):
    def __init__(self, level_number: int, user_count: int) -> None:
        super().__init__(
            f"Cannot delete level {level_number}. "
            f"{user_count} user(s) are currently using this privilege level."
        )
        self.level_number = level_number
        self.user_count = user_count


class LevelNotFound(AccessError):
    def __init__(self, level_number: int) -> None:
        super().__init__(f"Custom privilege level {level_number} not found")
        self.level_number = level_number


class InvalidLevelDefinition(AccessError, ValueError):
    """A level number, name or permission entry failed validation on write."""


class UnknownTemplate(AccessError, LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Permission template {name!r} not found")
        self.name = name


class InvalidGrant(AccessError, ValueError):
    """A granular permission request failed validation (scope, key or expiry)."""


class UserNotFound(AccessError, LookupError):
    """The user an administrative operation targets is unknown or inactive."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class InvalidAssignment(AccessError, ValueError):
    """A privilege assignment was refused (bad level, department, manager or self-modification)."""


# ---- Infrastructure ------------------------------------------------------------------


class StoreUnavailable(AccessError):
    """The permission store could not be read or written. Decision paths turn this into deny."""
