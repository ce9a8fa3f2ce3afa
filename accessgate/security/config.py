from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from accessgate.security.scopes import PermissionEntry, Scope


class StandardLevelDef(BaseModel):
    level: int = Field(ge=1)
    name: str
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)


class StandardGrant(BaseModel):
    """Seed row for the standard permission table."""

    level: int = Field(ge=1)
    resource_type: str = Field(min_length=1)
    action: str = Field(min_length=1)
    scope: Scope


class CustomLevelSeed(BaseModel):
    level_number: int
    name: str = Field(min_length=1)
    description: str | None = None
    permissions: list[PermissionEntry] = Field(default_factory=list)


class PermissionTemplate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    permissions: list[PermissionEntry] = Field(default_factory=list)
    # Grants made from this template expire after this many days unless the
    # caller passes an explicit expiry.
    expires_in_days: int | None = Field(default=None, ge=1)


class PrivilegesConfigModel(BaseModel):
    standard_levels: list[StandardLevelDef] = Field(default_factory=list)
    standard_permissions: list[StandardGrant] = Field(default_factory=list)
    custom_levels: list[CustomLevelSeed] = Field(default_factory=list)
    templates: list[PermissionTemplate] = Field(default_factory=list)

    @field_validator("standard_permissions")
    @classmethod
    def _unique_standard_keys(cls, value: list[StandardGrant]) -> list[StandardGrant]:
        seen: set[tuple[int, str, str]] = set()
        for grant in value:
            key = (grant.level, grant.resource_type, grant.action)
            if key in seen:
                raise ValueError(f"duplicate standard permission {key}")
            seen.add(key)
        return value

    @model_validator(mode="after")
    def _unique_names(self) -> PrivilegesConfigModel:
        numbers = [lvl.level_number for lvl in self.custom_levels]
        if len(numbers) != len(set(numbers)):
            raise ValueError("custom_levels contains duplicate level_number values")
        names = [t.name for t in self.templates]
        if len(names) != len(set(names)):
            raise ValueError("templates contains duplicate names")
        return self


class PrivilegesConfig:
    """
    Runtime helper around the validated privileges file.
    """

    def __init__(self, model: PrivilegesConfigModel, custom_level_threshold: int = 6):
        self.model = model
        self.custom_level_threshold = custom_level_threshold

        for grant in model.standard_permissions:
            if grant.level >= custom_level_threshold:
                raise ValueError(
                    f"standard permission for level {grant.level} is not below the "
                    f"custom level threshold {custom_level_threshold}"
                )
        for seed in model.custom_levels:
            if seed.level_number < custom_level_threshold:
                raise ValueError(
                    f"custom level {seed.level_number} is below the custom level threshold {custom_level_threshold}"
                )

        self._templates = {t.name: t for t in model.templates}

    @property
    def standard_levels(self) -> list[StandardLevelDef]:
        return sorted(self.model.standard_levels, key=lambda lvl: lvl.level)

    def template(self, name: str) -> PermissionTemplate | None:
        return self._templates.get(name)

    @property
    def templates(self) -> list[PermissionTemplate]:
        return sorted(self._templates.values(), key=lambda t: t.name)


def load_privileges_config(path: Path, custom_level_threshold: int = 6) -> PrivilegesConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "privileges" not in raw:
        raise ValueError(f"Missing top-level 'privileges' key in config: {path}")

    model = PrivilegesConfigModel.model_validate(raw["privileges"])
    return PrivilegesConfig(model, custom_level_threshold=custom_level_threshold)
