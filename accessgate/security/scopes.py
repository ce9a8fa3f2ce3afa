"""Scope values, the scope comparison rule and the typed permission entry."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Scope(str, Enum):
    OWN = "own"
    DEPARTMENT = "department"
    ALL = "all"


def scope_satisfies(granted: Scope | None, requested: Scope | None) -> bool:
    """
    Does a granted scope cover the requested one?

    "all" covers every request (including no specific request). "department"
    and "own" only cover an identical or absent request: neither implies the
    other.
    """

    if granted is None:
        return False
    if requested is None or granted == Scope.ALL:
        return True
    return granted == requested


class PermissionEntry(BaseModel):
    """One (resource_type, action, scope) triple of a custom level or template."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    resource_type: str = Field(min_length=1, max_length=50)
    action: str = Field(min_length=1, max_length=50)
    scope: Scope

    def matches(self, resource_type: str, action: str) -> bool:
        return self.resource_type == resource_type and self.action == action


PermissionList = TypeAdapter(list[PermissionEntry])


def encode_permissions(entries: list[PermissionEntry]) -> str:
    return PermissionList.dump_json(entries).decode("utf-8")


def decode_permissions(raw: str | bytes) -> list[PermissionEntry]:
    """Parse a stored JSON permission list; raises pydantic.ValidationError when malformed."""
    return PermissionList.validate_json(raw)
