"""
Optimistic sync controller.

Every user mutation follows the same protocol:

1. capture the working copy as the rollback snapshot;
2. apply the change locally and publish it immediately;
3. issue exactly one persistence call;
4. on success adopt the server's canonical record(s);
5. on failure restore the snapshot and show a transient notice.

Collaborator failures (`BoardApiError`) never escape this module; they become
a rollback plus a notice. Input validation errors (pydantic) are raised to the
caller before anything is touched.

Loads carry a sequence number; a response that is not for the latest issued
load is discarded, so a slow refresh can never overwrite newer data.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Set

from moby_kanban.client import reorder as engine
from moby_kanban.client.api import BoardApi
from moby_kanban.client.drag import DropDescriptor
from moby_kanban.client.errors import BoardApiError
from moby_kanban.client.notices import NoticeCenter, failure_message
from moby_kanban.client.state import BoardState, Mutation, WorkingCopy
from moby_kanban.config import Settings
from moby_kanban.domain.project_models import Project, ProjectCreate, ProjectUpdate
from moby_kanban.domain.task_models import Task, TaskCreate, TaskUpdate

logger = logging.getLogger("moby_kanban.sync")


class MutationOutcome(str, Enum):
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"
    NOOP = "NOOP"


class LoadOutcome(str, Enum):
    LOADED = "LOADED"
    STALE = "STALE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class LoadFailure:
    """Persistent error state for a board that never loaded; cleared by `retry_load`."""

    message: str
    error: BoardApiError


_ACTION_BY_KIND = {
    engine.ReorderKind.PROJECT: "move to project",
    engine.ReorderKind.MOVE: "move",
    engine.ReorderKind.REORDER: "reorder",
}


class SyncController:
    def __init__(self, api: BoardApi, state: Optional[BoardState] = None, notices: Optional[NoticeCenter] = None):
        self.api = api
        self.state = state or BoardState()
        self.notices = notices or NoticeCenter()
        self.load_error: Optional[LoadFailure] = None
        self._load_seq = 0
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, api: BoardApi, settings: Settings) -> "SyncController":
        return cls(api, notices=NoticeCenter(ttl=settings.notice_ttl_seconds))

    @property
    def board(self) -> WorkingCopy:
        return self.state.current

    # Loading

    async def load(self) -> LoadOutcome:
        self._load_seq += 1
        seq = self._load_seq
        try:
            tasks = await self.api.fetch_tasks()
            projects = await self.api.fetch_projects()
        except BoardApiError as e:
            if seq != self._load_seq:
                return self._discard(seq)
            if not self.state.loaded:
                self.load_error = LoadFailure(f"Couldn't load the board: {e.reason}", e)
                logger.error(
                    "load.failed",
                    extra={"category": "sync", "event": "load.failed", "seq": seq, "error": e.message},
                )
            else:
                self.notices.show(f"Couldn't refresh the board: {e.reason}", "refresh")
            return LoadOutcome.FAILED

        if seq != self._load_seq:
            return self._discard(seq)
        self.load_error = None
        self.state.replace(WorkingCopy(tuple(tasks), tuple(projects)))
        logger.info(
            "load.done",
            extra={"category": "sync", "event": "load.done", "seq": seq, "tasks": len(tasks), "projects": len(projects)},
        )
        return LoadOutcome.LOADED

    def _discard(self, seq: int) -> LoadOutcome:
        logger.debug("load.stale", extra={"category": "sync", "event": "load.stale", "seq": seq, "latest": self._load_seq})
        return LoadOutcome.STALE

    async def refresh(self) -> LoadOutcome:
        return await self.load()

    async def retry_load(self) -> LoadOutcome:
        return await self.load()

    def _schedule_resync(self) -> None:
        task = asyncio.get_running_loop().create_task(self.load())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def settle(self) -> None:
        """Wait for background resyncs (used on shutdown and in tests)."""
        while self._background:
            await asyncio.gather(*list(self._background))

    # Protocol

    async def _mutate(
        self,
        action: str,
        subject: str,
        entity_id: str,
        mutation: Mutation,
        call: Callable[[], Awaitable],
        adopt: Optional[Callable[[WorkingCopy, object], WorkingCopy]] = None,
        resync_on_failure: bool = False,
    ) -> MutationOutcome:
        pending = self.state.apply(mutation, label=f"{action}:{entity_id}")
        try:
            result = await call()
        except BoardApiError as e:
            restored = self.state.rollback(pending)
            logger.warning(
                "sync.rollback",
                extra={"category": "sync", "event": "sync.rollback", "action": action, "entity_id": entity_id,
                       "error": e.message, "error_type": type(e).__name__, "full_restore": restored},
            )
            self.notices.show(failure_message(action, subject, e), action, entity_id)
            if resync_on_failure or not restored:
                self._schedule_resync()
            return MutationOutcome.ROLLED_BACK

        self.state.commit(pending, adopt=(lambda copy: adopt(copy, result)) if adopt else None)
        logger.debug(
            "sync.commit",
            extra={"category": "sync", "event": "sync.commit", "action": action, "entity_id": entity_id},
        )
        return MutationOutcome.COMMITTED

    def _missing(self, action: str, entity_id: str) -> MutationOutcome:
        logger.warning(
            "sync.unknown_entity",
            extra={"category": "sync", "event": "sync.unknown_entity", "action": action, "entity_id": entity_id},
        )
        return MutationOutcome.NOOP

    # Tasks

    async def create_task(self, **fields) -> Optional[Task]:
        data = TaskCreate(**fields)
        try:
            task = await self.api.create_task(data)
        except BoardApiError as e:
            self.notices.show(failure_message("create", data.title, e), "create")
            return None
        self.state.update(lambda copy: copy.with_tasks(engine.append_task(copy.tasks, task)))
        return task

    async def update_task(self, task_id: str, **fields) -> MutationOutcome:
        changes = TaskUpdate(**fields).changes()
        task = self.board.task(task_id)
        if task is None:
            return self._missing("update", task_id)
        if not changes:
            return MutationOutcome.NOOP

        moves = "status" in changes or "position" in changes
        plain = {k: v for k, v in changes.items() if k not in ("status", "position")}

        def mutation(copy: WorkingCopy) -> WorkingCopy:
            tasks = copy.tasks
            if moves:
                current = copy.task(task_id)
                status = changes.get("status", current.status)
                index = changes.get("position")
                if index is None and status == current.status:
                    index = current.position
                tasks = engine.move_task(tasks, task_id, status, index).tasks
            tasks = tuple(t.model_copy(update=plain) if t.id == task_id else t for t in tasks)
            return copy.with_tasks(tasks)

        return await self._mutate(
            "update", task.title, task_id, mutation,
            lambda: self.api.update_task(task_id, changes),
            adopt=lambda copy, canonical: copy.adopt_tasks([canonical]),
            resync_on_failure=moves,
        )

    async def delete_task(self, task_id: str) -> MutationOutcome:
        task = self.board.task(task_id)
        if task is None:
            return self._missing("delete", task_id)
        return await self._mutate(
            "delete", task.title, task_id,
            lambda copy: copy.with_tasks(engine.remove_task(copy.tasks, task_id)),
            lambda: self.api.delete_task(task_id),
        )

    async def toggle_flag(self, task_id: str) -> MutationOutcome:
        task = self.board.task(task_id)
        if task is None:
            return self._missing("flag", task_id)

        def mutation(copy: WorkingCopy) -> WorkingCopy:
            return copy.with_tasks(
                t.model_copy(update={"needs_review": not t.needs_review}) if t.id == task_id else t
                for t in copy.tasks
            )

        return await self._mutate(
            "flag", task.title, task_id, mutation,
            lambda: self.api.toggle_task_flag(task_id),
            adopt=lambda copy, canonical: copy.adopt_tasks([canonical]),
        )

    async def drop(self, task_id: str, drop: DropDescriptor) -> MutationOutcome:
        """Commit a released drag: project reassignment, cross-column move or in-column reorder."""
        result = engine.reorder(self.board.tasks, task_id, drop)
        if result.is_noop:
            return MutationOutcome.NOOP

        moved = result.task
        title = self.board.task(task_id).title
        action = _ACTION_BY_KIND[result.kind]

        def mutation(copy: WorkingCopy) -> WorkingCopy:
            # Replayed against the copy current at apply time
            return copy.with_tasks(engine.reorder(copy.tasks, task_id, drop).tasks)

        if result.kind is engine.ReorderKind.REORDER:
            column_ids = [t.id for t in engine.column(result.tasks, moved.status)]

            async def call():
                canonical = await self.api.reorder_tasks(column_ids, moved.status)
                missing = set(column_ids) - {t.id for t in canonical or ()}
                if missing:
                    raise BoardApiError(f"reorder applied to {len(column_ids) - len(missing)} of {len(column_ids)} tasks")
                return canonical

            return await self._mutate(
                action, title, task_id, mutation, call,
                adopt=lambda copy, canonical: copy.adopt_tasks(canonical),
                resync_on_failure=True,
            )

        if result.kind is engine.ReorderKind.PROJECT:
            changes = {"project_id": moved.project_id}
        else:
            changes = {"status": moved.status, "position": moved.position}
        return await self._mutate(
            action, title, task_id, mutation,
            lambda: self.api.update_task(task_id, changes),
            adopt=lambda copy, canonical: copy.adopt_tasks([canonical]),
            resync_on_failure=result.kind is engine.ReorderKind.MOVE,
        )

    async def assign_project(self, task_id: str, project_id: Optional[str]) -> MutationOutcome:
        return await self.drop(task_id, DropDescriptor.project(project_id))

    # Projects

    async def create_project(self, **fields) -> Optional[Project]:
        data = ProjectCreate(**fields)
        try:
            project = await self.api.create_project(data)
        except BoardApiError as e:
            self.notices.show(failure_message("create", data.name, e), "create")
            return None
        self.state.update(lambda copy: copy.adopt_projects([project]))
        return project

    async def update_project(self, project_id: str, **fields) -> MutationOutcome:
        changes = ProjectUpdate(**fields).changes()
        project = self.board.project(project_id)
        if project is None:
            return self._missing("update", project_id)
        if not changes:
            return MutationOutcome.NOOP

        plain = {k: v for k, v in changes.items() if k != "position"}

        def mutation(copy: WorkingCopy) -> WorkingCopy:
            projects = copy.projects
            if "position" in changes:
                projects = engine.move_project(projects, project_id, changes["position"]) or projects
            return copy.with_projects(p.model_copy(update=plain) if p.id == project_id else p for p in projects)

        return await self._mutate(
            "update", project.name, project_id, mutation,
            lambda: self.api.update_project(project_id, changes),
            adopt=lambda copy, canonical: copy.adopt_projects([canonical]),
            resync_on_failure="position" in changes,
        )

    async def delete_project(self, project_id: str) -> MutationOutcome:
        """Tasks of the project fall back to "no project", mirroring the service."""
        project = self.board.project(project_id)
        if project is None:
            return self._missing("delete", project_id)

        def mutation(copy: WorkingCopy) -> WorkingCopy:
            return WorkingCopy(
                tasks=engine.unassign_project(copy.tasks, project_id),
                projects=engine.remove_project(copy.projects, project_id),
            )

        return await self._mutate(
            "delete", project.name, project_id, mutation,
            lambda: self.api.delete_project(project_id),
        )

    async def reorder_projects(self, dragged_id: str, target_id: str) -> MutationOutcome:
        reordered = engine.reorder_projects(self.board.projects, dragged_id, target_id)
        if reordered is None:
            return MutationOutcome.NOOP
        project_ids = [p.id for p in reordered]

        def mutation(copy: WorkingCopy) -> WorkingCopy:
            return copy.with_projects(engine.reorder_projects(copy.projects, dragged_id, target_id) or copy.projects)

        return await self._mutate(
            "reorder", self.board.project(dragged_id).name, dragged_id, mutation,
            lambda: self.api.reorder_projects(project_ids),
            adopt=lambda copy, canonical: copy.adopt_projects(canonical or ()),
            resync_on_failure=True,
        )
