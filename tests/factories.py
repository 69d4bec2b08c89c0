"""Builders for domain records and an in-memory BoardApi used across the tests."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

from moby_kanban.client.errors import BoardApiError, NotFoundError
from moby_kanban.domain.project_models import Project, ProjectCreate
from moby_kanban.domain.task_models import Task, TaskCreate, TaskStatus, new_id

NOW = datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc)


def make_task(title: str, status: TaskStatus = TaskStatus.backlog, position: int = 0, **fields) -> Task:
    fields.setdefault("id", new_id())
    return Task(title=title, status=status, position=position, created_at=NOW, updated_at=NOW, **fields)


def make_column(*titles: str, status: TaskStatus = TaskStatus.backlog) -> List[Task]:
    return [make_task(title, status, i) for i, title in enumerate(titles)]


def make_project(name: str, position: int = 0, **fields) -> Project:
    fields.setdefault("id", new_id())
    return Project(name=name, position=position, created_at=NOW, updated_at=NOW, **fields)


class FakeBoardApi:
    """
    Server stand-in. `failures[name]` makes the next call to `name` raise,
    `gates[name]` holds the next call until the event is set.
    """

    def __init__(self, tasks=(), projects=()):
        self.tasks: List[Task] = list(tasks)
        self.projects: List[Project] = list(projects)
        self.calls: List[str] = []
        self.failures: Dict[str, BoardApiError] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.reorder_response: Optional[List[Task]] = None

    async def _call(self, name: str) -> None:
        self.calls.append(name)
        gate = self.gates.pop(name, None)
        if gate is not None:
            await gate.wait()
        error = self.failures.pop(name, None)
        if error is not None:
            raise error

    def _task(self, task_id: str) -> Task:
        for t in self.tasks:
            if t.id == task_id:
                return t
        raise NotFoundError(f"Task {task_id} not found", 404)

    def _store(self, task: Task) -> Task:
        self.tasks = [task if t.id == task.id else t for t in self.tasks]
        return task

    async def fetch_tasks(self):
        snapshot = list(self.tasks)
        await self._call("fetch_tasks")
        return snapshot

    async def create_task(self, data: TaskCreate):
        await self._call("create_task")
        backlog = [t for t in self.tasks if t.status == TaskStatus.backlog]
        task = make_task(data.title, TaskStatus.backlog, len(backlog), priority=data.priority,
                         creator=data.creator, project_id=data.project_id, description=data.description)
        self.tasks.append(task)
        return task

    async def update_task(self, task_id, changes):
        await self._call("update_task")
        return self._store(self._task(task_id).model_copy(update=changes))

    async def delete_task(self, task_id):
        await self._call("delete_task")
        self._task(task_id)
        self.tasks = [t for t in self.tasks if t.id != task_id]

    async def toggle_task_flag(self, task_id):
        await self._call("toggle_task_flag")
        task = self._task(task_id)
        return self._store(task.model_copy(update={"needs_review": not task.needs_review}))

    async def reorder_tasks(self, task_ids, status):
        await self._call("reorder_tasks")
        if self.reorder_response is not None:
            return self.reorder_response
        ordered = [self._task(i).model_copy(update={"status": status, "position": n}) for n, i in enumerate(task_ids)]
        for t in ordered:
            self._store(t)
        return ordered

    async def fetch_projects(self):
        snapshot = list(self.projects)
        await self._call("fetch_projects")
        return snapshot

    async def create_project(self, data: ProjectCreate):
        await self._call("create_project")
        project = make_project(data.name, len(self.projects), color=data.color, description=data.description)
        self.projects.append(project)
        return project

    async def update_project(self, project_id, changes):
        await self._call("update_project")
        project = next(p for p in self.projects if p.id == project_id).model_copy(update=changes)
        self.projects = [project if p.id == project_id else p for p in self.projects]
        return project

    async def delete_project(self, project_id):
        await self._call("delete_project")
        self.projects = [p for p in self.projects if p.id != project_id]

    async def reorder_projects(self, project_ids):
        await self._call("reorder_projects")
        by_id = {p.id: p for p in self.projects}
        self.projects = [by_id[i].model_copy(update={"position": n}) for n, i in enumerate(project_ids)]
        return self.projects
