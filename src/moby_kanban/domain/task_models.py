from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskStatus(str, Enum):
    backlog = "BACKLOG"
    in_progress = "IN_PROGRESS"
    done = "DONE"


# Column order on the board
STATUS_ORDER: tuple[TaskStatus, ...] = (TaskStatus.backlog, TaskStatus.in_progress, TaskStatus.done)


class TaskPriority(str, Enum):
    low = "LOW"
    medium = "MEDIUM"
    high = "HIGH"
    urgent = "URGENT"


class TaskCreator(str, Enum):
    moby = "MOBY"
    stephan = "STEPHAN"


Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)]
EntityId = Annotated[str, StringConstraints(pattern=r"^[0-9a-fA-F-]{36}$")]


class TaskCreate(WireModel):
    title: Title
    description: Optional[Description] = None
    priority: TaskPriority = TaskPriority.medium
    creator: TaskCreator = TaskCreator.moby
    project_id: Optional[EntityId] = None

    @field_validator("description")
    @classmethod
    def _blank_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class TaskUpdate(WireModel):
    """Partial update; only fields the caller actually set are applied."""

    title: Optional[Title] = None
    description: Optional[Description] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    creator: Optional[TaskCreator] = None
    needs_review: Optional[bool] = None
    position: Optional[int] = Field(default=None, ge=0)
    project_id: Optional[EntityId] = None

    @model_validator(mode="after")
    def _required_fields_not_cleared(self) -> "TaskUpdate":
        for name in ("title", "status", "priority", "creator", "needs_review", "position"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class TaskReorder(WireModel):
    task_ids: List[EntityId] = Field(min_length=1)
    status: TaskStatus


class Task(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.backlog
    priority: TaskPriority = TaskPriority.medium
    creator: TaskCreator = TaskCreator.moby
    needs_review: bool = False
    position: int = Field(default=0, ge=0)
    project_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


def new_id() -> str:
    return str(uuid.uuid4())
