from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import ConfigDict, Field, StringConstraints, field_validator, model_validator
from pydantic.alias_generators import to_camel

from moby_kanban.domain.task_models import EntityId, WireModel

DEFAULT_PROJECT_COLOR = "#3b82f6"

# Sidebar palette
PROJECT_COLORS = (
    "#3b82f6",  # blue
    "#10b981",  # green
    "#f59e0b",  # amber
    "#ef4444",  # red
    "#8b5cf6",  # purple
    "#ec4899",  # pink
    "#06b6d4",  # cyan
    "#84cc16",  # lime
)

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Color = Annotated[str, StringConstraints(pattern=r"^#[0-9a-fA-F]{6}$")]
Description = Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)]


class ProjectCreate(WireModel):
    name: Name
    description: Optional[Description] = None
    color: Color = DEFAULT_PROJECT_COLOR

    @field_validator("description")
    @classmethod
    def _blank_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class ProjectUpdate(WireModel):
    name: Optional[Name] = None
    description: Optional[Description] = None
    color: Optional[Color] = None
    position: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _required_fields_not_cleared(self) -> "ProjectUpdate":
        for name in ("name", "color", "position"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ProjectReorder(WireModel):
    project_ids: List[EntityId] = Field(min_length=1)


class Project(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    color: str = DEFAULT_PROJECT_COLOR
    position: int = Field(default=0, ge=0)
    created_at: datetime
    updated_at: datetime
